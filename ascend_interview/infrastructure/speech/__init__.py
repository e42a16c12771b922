"""Speech-to-text and narration playback."""

from .tts import AudioPlayer, PlaybackError
from .stt import StreamingRecognizer, RecognitionResult

__all__ = ["AudioPlayer", "PlaybackError", "StreamingRecognizer", "RecognitionResult"]
