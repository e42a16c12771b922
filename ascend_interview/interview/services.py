"""
Service classes for the interview session.

Every method here is blocking; the controller runs them in worker threads.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Any, Optional, Callable

from .models import InterviewSession, FollowUpState
from .schemas import (
    SessionPayload, SubmitPayload, AnalysisPayload, SecurityStatus, AssessmentPayload, parse_payload
)
from .messages import SessionMessages
from ..errors import ApiError, SetupError
from ..infrastructure.speech import PlaybackError
from ..config import LOGIN_ROUTE, INTERVIEW_ROUTE

logger = logging.getLogger("services")


@dataclass
class BootstrapResult:
    """Either a loaded session or a route the user must be sent to instead."""
    session: Optional[InterviewSession] = None
    redirect: Optional[str] = None


class SessionBootstrapper:
    """Checks entitlement and loads or creates the interview."""

    def __init__(self, api):
        self.api = api

    def bootstrap(self, interview_id: Optional[str], defaults: Dict[str, Any]) -> BootstrapResult:
        """
        Resolve the session to run.

        Args:
            interview_id: Existing interview to resume, or None to start a new one
            defaults: Configuration for a new interview

        Returns:
            BootstrapResult with a session, or with a redirect route

        Raises:
            SetupError: if the interview cannot be loaded or created
        """
        if not self.api.has_token:
            logger.info("No auth token; redirecting to login")
            return BootstrapResult(redirect=LOGIN_ROUTE)

        if not self._has_interview_entitlement():
            logger.info("Subscription does not cover interviews; redirecting")
            return BootstrapResult(redirect=INTERVIEW_ROUTE)

        try:
            if interview_id:
                logger.info(f"Loading interview {interview_id}")
                data = self.api.get_interview(interview_id)
            else:
                logger.info(f"Starting new interview: {defaults}")
                data = self.api.start_interview(defaults)
        except ApiError as e:
            message = (SessionMessages.load_failed(e.message) if interview_id
                       else SessionMessages.start_failed(e.message))
            raise SetupError(message) from e

        try:
            session = parse_payload(SessionPayload, data, "interview").to_session()
        except ValueError as e:
            raise SetupError(str(e)) from e

        if not session.questions:
            raise SetupError("Interview has no questions")

        logger.info(f"Session {session.interview_id} ready with {session.question_count} questions")
        return BootstrapResult(session=session)

    def _has_interview_entitlement(self) -> bool:
        # A failed lookup does not block the interview
        try:
            body = self.api.get_profile()
        except ApiError as e:
            logger.warning(f"Subscription check failed, continuing: {e}")
            return True

        data = body.get("data") if isinstance(body, dict) else None
        if not body.get("success") or not isinstance(data, dict):
            return True

        subscription = data.get("subscription")
        if not isinstance(subscription, dict):
            return True
        return bool(subscription.get("isActive")) and subscription.get("type") != "free"


class NarrationService:
    """Reads prompts aloud with backend-synthesized audio."""

    def __init__(self, api, player, enabled: bool = True):
        self.api = api
        self.player = player
        self.enabled = enabled

    def narrate(self, text: str) -> bool:
        """
        Fetch and play narration for `text`.

        Returns:
            True if the audio played to the end; False on any failure. Either
            way the caller treats narration as finished.
        """
        if not self.enabled or not text:
            return False
        try:
            audio = self.api.text_to_speech(text)
            self.player.play(audio)
            return True
        except ApiError as e:
            logger.warning(f"Narration request failed: {e}")
        except PlaybackError as e:
            logger.warning(f"Narration playback failed: {e}")
        return False

    def stop(self):
        if self.player is not None:
            self.player.stop()


RecognizerFactory = Callable[..., Any]


class SpeechCaptureService:
    """Owns the recognizer, which is built on first use."""

    def __init__(self, media, recognizer_factory: RecognizerFactory):
        self.media = media
        self.recognizer_factory = recognizer_factory
        self.recognizer = None
        self.callbacks: Dict[str, Callable] = {}

    def bind(self, on_start, on_result, on_speech_start, on_error, on_end):
        """Set the callbacks used when the recognizer is built."""
        self.callbacks = {
            "on_start": on_start,
            "on_result": on_result,
            "on_speech_start": on_speech_start,
            "on_error": on_error,
            "on_end": on_end,
        }

    @property
    def is_active(self) -> bool:
        return self.recognizer is not None and self.recognizer.is_active

    def start(self) -> bool:
        """
        Start a recognition session.

        Returns:
            False if one is already running

        Raises:
            SetupError: if the microphone or the recognizer is unavailable
        """
        if self.is_active:
            logger.debug("Recognition already active")
            return False

        if not self.media.check_microphone():
            raise SetupError(SessionMessages.MICROPHONE_REQUIRED, actions=("retry", "back"))

        if self.recognizer is None:
            try:
                self.recognizer = self.recognizer_factory(**self.callbacks)
            except RuntimeError as e:
                logger.error(f"Recognizer unavailable: {e}")
                raise SetupError(SessionMessages.SPEECH_UNSUPPORTED, actions=("retry", "back")) from e

        try:
            self.recognizer.start()
        except RuntimeError as e:
            raise SetupError(SessionMessages.recording_failed(str(e)), actions=("retry",)) from e
        return True

    def stop(self):
        if self.recognizer is not None:
            self.recognizer.stop()


class FrameMonitor:
    """Sends proctoring frames to the backend."""

    def __init__(self, api, media):
        self.api = api
        self.media = media

    def check(self, interview_id: str) -> Optional[SecurityStatus]:
        """One monitor tick. Returns None when the tick was skipped."""
        frame = self.media.capture_frame()
        if frame is None:
            return None
        try:
            data = self.api.monitor_frame(interview_id, frame)
            return parse_payload(SecurityStatus, data, "monitor")
        except (ApiError, ValueError) as e:
            logger.warning(f"Monitor tick skipped: {e}")
            return None


class ResponseSubmitter:
    """Packages answers for the backend and fetches analyses and the final assessment."""

    def __init__(self, api, media=None):
        self.api = api
        self.media = media

    @staticmethod
    def follow_up_index_for(follow_up: FollowUpState) -> Optional[int]:
        """Follow-up index to submit against, or None for the main-question endpoint."""
        if not follow_up.is_follow_up_mode:
            return None
        if not follow_up.follow_up_questions:
            logger.warning("Follow-up mode without follow-up questions; submitting as main question")
            return None
        if not follow_up.has_valid_index:
            logger.warning(
                f"Follow-up index {follow_up.current_follow_up_index} out of range "
                f"({len(follow_up.follow_up_questions)} follow-ups); submitting as main question"
            )
            return None
        return follow_up.current_follow_up_index

    def _frame(self) -> Optional[bytes]:
        if self.media is None:
            return None
        return self.media.capture_frame()

    def submit(self, session: InterviewSession, follow_up: FollowUpState, text: str) -> SubmitPayload:
        """
        Post an answer.

        Raises:
            ApiError: on transport failure or a non-2xx reply
            ValueError: if the reply does not parse
        """
        image = self._frame()
        q = session.current_question_index
        f = self.follow_up_index_for(follow_up)

        if f is None:
            logger.info(f"Submitting answer for question {q} ({len(text)} chars, frame={image is not None})")
            data = self.api.submit_response(session.interview_id, q, text, image)
        else:
            logger.info(f"Submitting answer for follow-up {q}/{f} ({len(text)} chars, frame={image is not None})")
            data = self.api.submit_follow_up(session.interview_id, q, f, text, image)

        return parse_payload(SubmitPayload, data, "submit")

    def analyze(self, transcription: str, question: str, question_type: str) -> AnalysisPayload:
        """
        Ask for a standalone analysis.

        Raises:
            ApiError, ValueError
        """
        data = self.api.analyze_response(transcription, question, question_type)
        return parse_payload(AnalysisPayload, data, "analysis")

    def assessment(self, interview_id: str) -> AssessmentPayload:
        """
        Generate the final assessment.

        Raises:
            ApiError, ValueError
        """
        data = self.api.generate_assessment(interview_id)
        return parse_payload(AssessmentPayload, data.get("assessment") or {}, "assessment")
