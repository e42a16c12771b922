"""Infrastructure components for the Ascend interview client.

This module contains the low-level pieces the session controller talks to:
the backend REST client, camera/microphone capture, and speech services.
"""

from .api import AscendApiClient
from .media import MediaCapture, MediaMode
from .speech import AudioPlayer, PlaybackError, StreamingRecognizer, RecognitionResult

__all__ = [
    # Backend
    "AscendApiClient",

    # Media
    "MediaCapture", "MediaMode",

    # Speech
    "AudioPlayer", "PlaybackError", "StreamingRecognizer", "RecognitionResult"
]
