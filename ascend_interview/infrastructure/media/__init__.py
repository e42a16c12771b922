"""Camera and microphone acquisition."""

from .capture import MediaCapture, MediaMode

__all__ = ["MediaCapture", "MediaMode"]
