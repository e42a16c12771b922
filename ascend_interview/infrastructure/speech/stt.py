"""
Continuous speech-to-text using Google Cloud Speech streaming recognition.
"""
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Iterator, List, Optional

import google.auth.exceptions
from google.api_core import exceptions as google_exceptions
from google.cloud import speech
from google.oauth2 import service_account

from ...config import LANGUAGE_CODE, MIC_SAMPLE_RATE, MIC_CHUNK_FRAMES
from ...utils import quiet_audio

logger = logging.getLogger("speech_stt")


@dataclass
class RecognitionResult:
    """One hypothesis from a recognition event."""
    transcript: str
    is_final: bool


ResultHandler = Callable[[List[RecognitionResult]], None]
Handler = Callable[[], None]
ErrorHandler = Callable[[str], None]


def _noop(*_args) -> None:
    return None


class StreamingRecognizer:
    """
    Microphone -> Google Cloud Speech streaming session with interim results.

    Callbacks fire on the recognizer's worker thread; callers that own state
    on an event loop must marshal them over themselves.
    """

    def __init__(self,
                 language_code: str = LANGUAGE_CODE,
                 credentials_json: Optional[str] = None,
                 sample_rate: int = MIC_SAMPLE_RATE,
                 chunk_frames: int = MIC_CHUNK_FRAMES,
                 on_start: Handler = _noop,
                 on_result: ResultHandler = _noop,
                 on_speech_start: Handler = _noop,
                 on_error: ErrorHandler = _noop,
                 on_end: Handler = _noop):
        self.language_code = language_code
        self.sample_rate = sample_rate
        self.chunk_frames = chunk_frames
        self.on_start = on_start
        self.on_result = on_result
        self.on_speech_start = on_speech_start
        self.on_error = on_error
        self.on_end = on_end

        try:
            if credentials_json:
                creds = service_account.Credentials.from_service_account_file(credentials_json)
                self._client = speech.SpeechClient(credentials=creds)
            else:
                self._client = speech.SpeechClient()
        except (google.auth.exceptions.DefaultCredentialsError, OSError) as e:
            raise RuntimeError(f"Speech recognition unavailable: {e}") from e

        self._audio: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._stopping = threading.Event()
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def _streaming_config(self) -> speech.StreamingRecognitionConfig:
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sample_rate,
            language_code=self.language_code,
            enable_automatic_punctuation=True,
        )
        return speech.StreamingRecognitionConfig(
            config=config,
            interim_results=True,
            single_utterance=False,
            enable_voice_activity_events=True,
        )

    def start(self):
        """
        Begin a recognition session.

        Raises:
            RuntimeError: if a session is already running
        """
        if self._active:
            raise RuntimeError("Recognition already in progress")
        self._active = True
        self._stopping.clear()
        self._audio = queue.Queue()
        self._thread = threading.Thread(target=self._run, name="speech-recognizer", daemon=True)
        self._thread.start()

    def stop(self):
        """Ask the session to finish; `on_end` fires once it has."""
        if not self._active:
            return
        self._stopping.set()
        self._audio.put(None)

    @quiet_audio
    def _open_stream(self):
        import pyaudio
        pa = pyaudio.PyAudio()

        def fill(in_data, frame_count, time_info, status_flags):
            self._audio.put(in_data)
            return None, pyaudio.paContinue

        stream = pa.open(format=pyaudio.paInt16, channels=1, rate=self.sample_rate, input=True,
                         frames_per_buffer=self.chunk_frames, stream_callback=fill)
        return pa, stream

    def _chunks(self) -> Iterator[bytes]:
        while not self._stopping.is_set():
            chunk = self._audio.get()
            if chunk is None:
                return
            # Drain whatever else is buffered into one request
            data = [chunk]
            while True:
                try:
                    chunk = self._audio.get(block=False)
                except queue.Empty:
                    break
                if chunk is None:
                    self._stopping.set()
                    break
                data.append(chunk)
            yield b"".join(data)

    def _run(self):
        pa = stream = None
        try:
            pa, stream = self._open_stream()
            self.on_start()
            logger.info("Speech recognition started (%s)", self.language_code)

            requests = (speech.StreamingRecognizeRequest(audio_content=chunk) for chunk in self._chunks())
            responses = self._client.streaming_recognize(self._streaming_config(), requests)

            for response in responses:
                if response.speech_event_type == speech.StreamingRecognizeResponse.SpeechEventType.SPEECH_ACTIVITY_BEGIN:
                    self.on_speech_start()
                results = [
                    RecognitionResult(r.alternatives[0].transcript, r.is_final)
                    for r in response.results if r.alternatives
                ]
                if results:
                    self.on_result(results)
        except (google_exceptions.GoogleAPICallError, OSError) as e:
            logger.error("Speech recognition failed: %s", e)
            self.on_error(str(e))
        finally:
            if stream is not None:
                stream.stop_stream()
                stream.close()
            if pa is not None:
                pa.terminate()
            self._active = False
            logger.info("Speech recognition ended")
            self.on_end()
