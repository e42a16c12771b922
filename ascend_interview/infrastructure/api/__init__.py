"""Backend REST access."""

from .client import AscendApiClient

__all__ = ["AscendApiClient"]
