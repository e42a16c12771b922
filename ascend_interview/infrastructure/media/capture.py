"""
Camera and microphone acquisition with a video-only fallback.
"""
import logging
import threading
from enum import Enum
from typing import Optional

import cv2
import numpy as np

from ...config import (
    CAMERA_INDEX, FRAME_WIDTH, FRAME_HEIGHT, JPEG_QUALITY,
    MIC_SAMPLE_RATE, MIC_CHUNK_FRAMES
)
from ...utils import quiet_audio

logger = logging.getLogger("media_capture")


class MediaMode(str, Enum):
    """What the capture session managed to acquire."""
    CLOSED = "closed"
    AUDIO_VIDEO = "audio_video"
    VIDEO_ONLY = "video_only"


class MediaCapture:
    """
    Holds the camera (OpenCV) and microphone (PyAudio) for one interview.

    Combined capture is attempted first; a microphone that cannot be opened
    degrades the session to video-only instead of failing it. A camera that
    cannot be opened is a hard failure.
    """

    def __init__(self,
                 camera_index: int = CAMERA_INDEX,
                 width: int = FRAME_WIDTH,
                 height: int = FRAME_HEIGHT,
                 jpeg_quality: int = JPEG_QUALITY,
                 sample_rate: int = MIC_SAMPLE_RATE,
                 chunk_frames: int = MIC_CHUNK_FRAMES,
                 enable_audio: bool = True):
        self.camera_index = camera_index
        self.width = width
        self.height = height
        self.jpeg_quality = jpeg_quality
        self.sample_rate = sample_rate
        self.chunk_frames = chunk_frames
        self.enable_audio = enable_audio

        self.mode = MediaMode.CLOSED
        self._cap = None
        self._pa = None
        self._audio_stream = None
        # Frame reads come from worker threads (monitor tick and submit can overlap)
        self._camera_lock = threading.Lock()

    def open(self) -> MediaMode:
        """
        Acquire camera and, if possible, microphone.

        Raises:
            RuntimeError: if the camera cannot be opened
        """
        self._open_camera()

        if self.enable_audio and self._open_microphone():
            self.mode = MediaMode.AUDIO_VIDEO
        else:
            logger.warning("Continuing with video-only capture")
            self.mode = MediaMode.VIDEO_ONLY

        logger.info(f"Media capture open: {self.mode.value}")
        return self.mode

    def _open_camera(self):
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"Could not open camera {self.camera_index}")
        # Ideal size only; drivers are free to pick the nearest supported mode
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap

    @quiet_audio
    def _open_microphone(self) -> bool:
        import pyaudio
        try:
            self._pa = pyaudio.PyAudio()
            self._audio_stream = self._pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                input=True,
                frames_per_buffer=self.chunk_frames,
            )
            return True
        except (OSError, IOError) as e:
            logger.warning(f"Microphone unavailable for combined capture: {e}")
            self._close_microphone()
            return False

    @quiet_audio
    def check_microphone(self) -> bool:
        """
        Open and immediately close a throwaway input stream.

        Used before every recognition start so that revoked access or an
        unplugged device is reported up front.
        """
        import pyaudio
        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(format=pyaudio.paInt16, channels=1, rate=self.sample_rate,
                             input=True, frames_per_buffer=self.chunk_frames)
            stream.close()
            return True
        except (OSError, IOError) as e:
            logger.warning(f"Microphone check failed: {e}")
            return False
        finally:
            pa.terminate()

    def capture_frame(self) -> Optional[bytes]:
        """Current camera frame as JPEG bytes, or None when no usable frame is available."""
        try:
            with self._camera_lock:
                if self._cap is None:
                    return None
                ok, frame = self._cap.read()

            if not ok or not _is_usable_frame(frame):
                logger.debug("No usable camera frame")
                return None

            ok, buffer = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), self.jpeg_quality])
        except cv2.error as e:
            logger.warning(f"Frame capture failed: {e}")
            return None
        if not ok:
            logger.warning("JPEG encoding failed")
            return None
        return buffer.tobytes()

    def _close_microphone(self):
        if self._audio_stream is not None:
            try:
                self._audio_stream.stop_stream()
                self._audio_stream.close()
            except OSError as e:
                logger.warning(f"Error closing microphone stream: {e}")
            self._audio_stream = None
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None

    def release(self):
        """Stop every track. Safe to call more than once."""
        with self._camera_lock:
            if self._cap is not None:
                self._cap.release()
                self._cap = None
        self._close_microphone()
        if self.mode != MediaMode.CLOSED:
            logger.info("Media capture released")
        self.mode = MediaMode.CLOSED


def _is_usable_frame(frame: Optional[np.ndarray]) -> bool:
    # Some webcams return all-zero frames while warming up
    return frame is not None and frame.size > 0 and bool(np.any(frame))
