"""Utility modules for logging and native library noise."""

from .stderr import native_stderr_silenced, quiet_audio
from .logging import setup_logging

__all__ = ["native_stderr_silenced", "quiet_audio", "setup_logging"]
