"""
Testing infrastructure with mock collaborators for the interview controller.

The mocks stand in for the network, camera, microphone, recognizer and audio
output so that the controller's real code paths can run anywhere.
"""
import threading
from typing import Dict, Any, List, Optional, Callable

from ..errors import ApiError
from ..infrastructure.media import MediaMode
from ..infrastructure.speech import PlaybackError, RecognitionResult
from .services import SpeechCaptureService


class MockApiClient:
    """
    Scripted stand-in for `AscendApiClient`.

    Replies are queued per method; an `ApiError` instance in a queue is raised
    instead of returned. Every call is recorded in `calls`.
    """

    def __init__(self,
                 session_data: Optional[Dict[str, Any]] = None,
                 token: Optional[str] = "test-token",
                 profile: Optional[Dict[str, Any]] = None):
        self.token = token
        self.session_data = session_data or make_session_data(["Tell me about yourself."])
        self.profile = profile if profile is not None else {
            "success": True, "data": {"subscription": {"isActive": True, "type": "pro"}}
        }
        self.calls: List[tuple] = []
        self.submit_replies: List[Any] = []
        self.follow_up_replies: List[Any] = []
        self.analysis_replies: List[Any] = []
        self.assessment_replies: List[Any] = []
        self.monitor_replies: List[Any] = []
        self.tts_reply: Any = b"RIFF-mock-audio"
        self.start_error: Optional[ApiError] = None

    @property
    def has_token(self) -> bool:
        return bool(self.token)

    def _next(self, queue: List[Any], default: Any) -> Any:
        reply = queue.pop(0) if queue else default
        if isinstance(reply, Exception):
            raise reply
        return reply

    def get_profile(self) -> Dict[str, Any]:
        self.calls.append(("get_profile",))
        if isinstance(self.profile, Exception):
            raise self.profile
        return self.profile

    def get_interview(self, interview_id: str) -> Dict[str, Any]:
        self.calls.append(("get_interview", interview_id))
        if self.start_error:
            raise self.start_error
        return self.session_data

    def start_interview(self, configuration: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("start_interview", configuration))
        if self.start_error:
            raise self.start_error
        return self.session_data

    def submit_response(self, interview_id, question_index, text_response, image=None):
        self.calls.append(("submit_response", interview_id, question_index, text_response, image))
        return self._next(self.submit_replies, {})

    def submit_follow_up(self, interview_id, question_index, follow_up_index, text_response, image=None):
        self.calls.append(("submit_follow_up", interview_id, question_index, follow_up_index, text_response, image))
        return self._next(self.follow_up_replies, {})

    def generate_assessment(self, interview_id):
        self.calls.append(("generate_assessment", interview_id))
        return self._next(self.assessment_replies, {"assessment": {"overallScore": 75}})

    def text_to_speech(self, text: str) -> bytes:
        self.calls.append(("text_to_speech", text))
        if isinstance(self.tts_reply, Exception):
            raise self.tts_reply
        return self.tts_reply

    def monitor_frame(self, interview_id, jpeg):
        self.calls.append(("monitor_frame", interview_id))
        return self._next(self.monitor_replies, {"isSecure": True})

    def analyze_response(self, transcription, question, question_type):
        self.calls.append(("analyze_response", transcription, question, question_type))
        return self._next(self.analysis_replies, {})

    def calls_to(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


class MockMediaCapture:
    """Camera and microphone that never touch hardware."""

    def __init__(self, frame: Optional[bytes] = b"\xff\xd8mock-jpeg", microphone_ok: bool = True,
                 camera_ok: bool = True):
        self.frame = frame
        self.microphone_ok = microphone_ok
        self.camera_ok = camera_ok
        self.mode = MediaMode.CLOSED
        self.released = False

    def open(self) -> MediaMode:
        if not self.camera_ok:
            raise RuntimeError("Could not open camera 0")
        self.mode = MediaMode.AUDIO_VIDEO if self.microphone_ok else MediaMode.VIDEO_ONLY
        return self.mode

    def check_microphone(self) -> bool:
        return self.microphone_ok

    def capture_frame(self) -> Optional[bytes]:
        return self.frame

    def release(self):
        self.released = True
        self.mode = MediaMode.CLOSED


class MockRecognizer:
    """Recognizer whose events are pushed by the test."""

    def __init__(self, on_start: Callable, on_result: Callable, on_speech_start: Callable,
                 on_error: Callable, on_end: Callable):
        self.on_start = on_start
        self.on_result = on_result
        self.on_speech_start = on_speech_start
        self.on_error = on_error
        self.on_end = on_end
        self.is_active = False
        self.start_count = 0
        self.stop_count = 0
        # Seconds before `on_end` arrives after `stop`, from another thread
        self.end_delay = 0.0

    def start(self):
        if self.is_active:
            raise RuntimeError("Recognition already in progress")
        self.is_active = True
        self.start_count += 1
        self.on_start()

    def stop(self):
        self.stop_count += 1
        if self.is_active:
            self.is_active = False
            if self.end_delay > 0:
                threading.Timer(self.end_delay, self.on_end).start()
            else:
                self.on_end()

    def say(self, text: str, final: bool = True):
        self.on_result([RecognitionResult(text, final)])

    def speech_started(self):
        self.on_speech_start()

    def fail(self, message: str):
        self.is_active = False
        self.on_error(message)
        self.on_end()


class MockAudioPlayer:
    """Records what would have been played."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.played: List[bytes] = []
        self.stop_count = 0

    def play(self, audio: bytes):
        if self.fail:
            raise PlaybackError("Mock playback failure")
        self.played.append(audio)

    def stop(self):
        self.stop_count += 1


class MockSpeechCapture(SpeechCaptureService):
    """Speech capture wired to a `MockRecognizer`, exposed as `.mock`."""

    def __init__(self, media: MockMediaCapture, available: bool = True):
        self.mock: Optional[MockRecognizer] = None

        def factory(**callbacks):
            if not available:
                raise RuntimeError("No speech backend")
            self.mock = MockRecognizer(**callbacks)
            return self.mock

        super().__init__(media, factory)


def make_session_data(questions: List[str], interview_id: str = "iv-1",
                      question_type: str = "behavioral") -> Dict[str, Any]:
    """A `data` object as returned by the start and load endpoints."""
    return {
        "interviewId": interview_id,
        "questions": [
            {"id": f"q{i}", "question": text, "type": question_type, "expectedDuration": 300}
            for i, text in enumerate(questions)
        ],
        "currentQuestionIndex": 0,
    }


def make_analysis(clarity=80, relevance=70, depth=60, structure=90, text="Solid answer") -> Dict[str, Any]:
    return {
        "scores": {"clarity": clarity, "relevance": relevance, "depth": depth, "structure": structure},
        "analysis": text,
    }
