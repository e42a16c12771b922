"""
Interview session controller.

Owns all session state and runs on a single asyncio event loop. Blocking
work (HTTP, audio playback, camera reads) is pushed to worker threads and
its results are applied back on the loop; recognizer callbacks are
marshalled onto the loop as well.
"""
import asyncio
import logging
import time
from typing import Optional, Set

from .models import (
    InterviewSession, FollowUpState, TranscriptionBuffer, ScoreSnapshot,
    ErrorKind, ErrorNotice, SessionStatus, SessionOutcome, PromptKey
)
from .schemas import (
    SubmitPayload, SecurityStatus, AnalysisPayload, InlineAnalysis, DeferredAnalysis,
    resolve_analysis, scores_from_analysis, ANALYSIS_FALLBACK_TEXT
)
from .transitions import Transition, TransitionKind, decide_for_session
from .autoflow import AutoFlowTimer, AutoFlowPhase
from .security import SecurityMonitor, InputEvent
from .services import (
    SessionBootstrapper, NarrationService, SpeechCaptureService, FrameMonitor, ResponseSubmitter
)
from .report import FinalReport
from .messages import SessionMessages
from .events import (
    SessionEventBus, EventLogger, SessionMetrics, SessionEvent,
    SessionStartedEvent, PromptPresentedEvent, NarrationFinishedEvent, TranscriptUpdatedEvent,
    CountdownStartedEvent, AnswerSubmittedEvent, TransitionDecidedEvent, ScoresUpdatedEvent,
    SecurityViolationEvent, SessionTerminatedEvent, AssessmentReadyEvent, ErrorOccurredEvent
)
from ..errors import ApiError, SetupError
from ..config import (
    Config, SecurityPolicy, INTERVIEW_ROUTE,
    RECORDING_STOP_TIMEOUT_SECONDS, RECORDING_STOP_POLL_SECONDS
)

logger = logging.getLogger("controller")


class CancellationToken:
    """Set once at teardown; anything finishing after that is discarded."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self):
        self._cancelled = True


class InterviewController:
    """
    Drives one interview from bootstrap to final assessment.

    Collaborators are injected so that front-ends and tests can swap the
    backend client, media, recognizer and player for their own.
    """

    def __init__(self,
                 api,
                 media=None,
                 speech: Optional[SpeechCaptureService] = None,
                 player=None,
                 config: Optional[Config] = None,
                 security_policy: Optional[SecurityPolicy] = None,
                 event_bus: Optional[SessionEventBus] = None,
                 tick_interval: float = 1.0,
                 recording_stop_timeout: float = RECORDING_STOP_TIMEOUT_SECONDS):
        self.config = config or Config()
        self.api = api
        self.media = media
        self.speech = speech
        self.tick_interval = tick_interval
        self.recording_stop_timeout = recording_stop_timeout
        self.transition_delay = self.config.transition_delay
        self.monitor_interval = self.config.monitor_interval

        # Services
        self.bootstrapper = SessionBootstrapper(api)
        self.narration = NarrationService(api, player, enabled=self.config.enable_tts and player is not None)
        self.submitter = ResponseSubmitter(api, media)
        self.frame_monitor = FrameMonitor(api, media) if media is not None else None

        # Event system
        self.event_bus = event_bus or SessionEventBus()
        self.event_logger = EventLogger()
        self.metrics = SessionMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        # Session state
        self.session: Optional[InterviewSession] = None
        self.follow_up = FollowUpState()
        self.transcript = TranscriptionBuffer()
        self.autoflow = AutoFlowTimer(self.config.countdown_seconds)
        self.security = SecurityMonitor(security_policy or self.config.get_security_policy())
        self.scores: Optional[ScoreSnapshot] = None
        self.analysis_text = ""
        self.security_status: Optional[SecurityStatus] = None
        self.report: Optional[FinalReport] = None
        self.error: Optional[ErrorNotice] = None

        self.is_recording = False
        self.is_narrating = False
        self.is_busy = False  # submit or transition in flight
        self.read_prompts: Set[PromptKey] = set()
        self._narration_seq = 0

        self.interview_id: Optional[str] = None
        self.token = CancellationToken()
        self.outcome: Optional[SessionOutcome] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._done: Optional[asyncio.Event] = None
        self._tasks: Set[asyncio.Task] = set()
        self._countdown_task: Optional[asyncio.Task] = None
        self._monitor_task: Optional[asyncio.Task] = None
        self._pending_finalize = False
        self._torn_down = False

        if self.speech is not None:
            self.speech.bind(
                on_start=self._threadsafe(self._on_recognition_start),
                on_result=self._threadsafe(self._on_recognition_result),
                on_speech_start=self._threadsafe(self._on_speech_start),
                on_error=self._threadsafe(self._on_recognition_error),
                on_end=self._threadsafe(self._on_recognition_end),
            )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def run(self, interview_id: Optional[str] = None) -> SessionOutcome:
        """Run the session until it completes, redirects, terminates or is quit."""
        try:
            await self.start(interview_id)
            await self._done.wait()
        finally:
            await self.teardown()
        return self.outcome

    async def start(self, interview_id: Optional[str] = None):
        """Bootstrap, open media, and present the first prompt."""
        self._loop = asyncio.get_running_loop()
        if self._done is None:
            self._done = asyncio.Event()
        self.interview_id = interview_id
        self.error = None

        try:
            result = await asyncio.to_thread(
                self.bootstrapper.bootstrap, interview_id, self.config.interview_defaults()
            )
        except SetupError as e:
            self._setup_failed(e, "bootstrap")
            return
        if self.token.cancelled:
            return

        if result.redirect:
            self._finish(SessionOutcome(SessionStatus.REDIRECTED, route=result.redirect))
            return

        if self.media is not None:
            try:
                mode = await asyncio.to_thread(self.media.open)
            except RuntimeError as e:
                self._setup_failed(SetupError(SessionMessages.camera_failed(str(e))), "media")
                return
            media_mode = mode.value
        else:
            media_mode = "none"

        self.session = result.session
        self._emit(SessionStartedEvent(self._session_id, time.time(), self.session.question_count, media_mode))

        if self.frame_monitor is not None and self.monitor_interval:
            self._monitor_task = self._watch(asyncio.create_task(self._monitor_loop()))

        self.present_current()

    async def retry(self) -> bool:
        """User-initiated retry of whatever failed last."""
        if self.error is not None and self.error.kind == ErrorKind.SETUP and self.session is None:
            await self.start(self.interview_id)
            return self.error is None
        if self._pending_finalize:
            await self._finalize()
            return not self._pending_finalize
        if self.session is not None:
            return await self.submit()
        return False

    def quit(self):
        self._finish(SessionOutcome(SessionStatus.ABORTED))

    async def teardown(self):
        """Stop everything. Safe to call more than once."""
        if self._torn_down:
            return
        self._torn_down = True
        self.token.cancel()

        cancelled = []
        for task in list(self._tasks) + [self._countdown_task, self._monitor_task]:
            if task is not None and not task.done() and task is not asyncio.current_task():
                task.cancel()
                cancelled.append(task)
        self._countdown_task = None
        self.autoflow.reset()
        if cancelled:
            await asyncio.gather(*cancelled, return_exceptions=True)

        if self.speech is not None:
            self.speech.stop()
        self.narration.stop()
        if self.media is not None:
            await asyncio.to_thread(self.media.release)
        logger.info("Session torn down")

    async def wait_idle(self):
        """Wait until narration, submissions and scheduled work have settled."""
        while True:
            pending = [t for t in self._tasks if not t.done() and t is not asyncio.current_task()]
            if not pending:
                return
            await asyncio.wait(pending)

    @property
    def is_finished(self) -> bool:
        return self.outcome is not None

    # ------------------------------------------------------------------
    # Prompt presentation and narration
    # ------------------------------------------------------------------

    @property
    def prompt_key(self) -> PromptKey:
        f = self.follow_up.current_follow_up_index if self.follow_up.is_follow_up_mode else None
        return self.session.current_question_index, f

    @property
    def current_prompt(self) -> str:
        return self.follow_up.current_prompt or self.session.current_question.question

    def present_current(self):
        """Show the active prompt and narrate it if it has not been read yet."""
        if self.session is None or self.is_finished:
            return
        key = self.prompt_key
        text = self.current_prompt
        self._emit(PromptPresentedEvent(self._session_id, time.time(), key[0], key[1], text))

        if key in self.read_prompts or self.is_narrating:
            return
        self.read_prompts.add(key)
        self._spawn(self._narrate(key, text))

    def replay(self) -> bool:
        """Narrate the current prompt again on request."""
        if self.session is None or self.is_narrating or self.is_finished:
            return False
        self._spawn(self._narrate(self.prompt_key, self.current_prompt))
        return True

    def stop_narration(self):
        self.narration.stop()

    async def _narrate(self, key: PromptKey, text: str):
        self._narration_seq += 1
        seq = self._narration_seq
        self.is_narrating = True
        self.autoflow.narration_started()
        try:
            played = await asyncio.to_thread(self.narration.narrate, text)
        finally:
            # A newer narration owns the flag once the prompt has changed
            if seq == self._narration_seq:
                self.is_narrating = False
        if self.token.cancelled or self.session is None or key != self.prompt_key:
            return

        # Played, failed to play, or failed to fetch: all mean "finished"
        self.autoflow.narration_finished()
        self._emit(NarrationFinishedEvent(self._session_id, time.time(), played))

        if self.speech is not None and not self.is_recording:
            await self.start_recording()

    # ------------------------------------------------------------------
    # Speech capture
    # ------------------------------------------------------------------

    async def start_recording(self) -> bool:
        if self.speech is None:
            self._set_error(ErrorNotice(ErrorKind.SETUP, SessionMessages.SPEECH_UNSUPPORTED, ("retry", "back")),
                            "speech")
            return False
        if self.is_recording or self.is_finished:
            return False

        self.transcript.clear()
        try:
            started = await asyncio.to_thread(self.speech.start)
        except SetupError as e:
            self._set_error(ErrorNotice(ErrorKind.SETUP, e.message, e.actions), "speech")
            return False
        if started:
            self.error = None
        return started

    def stop_recording(self):
        if self.speech is not None and self.is_recording:
            self.speech.stop()

    def edit_transcript(self, text: str):
        """
        Replace the live transcript with hand-edited text.

        Raises:
            TranscriptLockedError: while recording
        """
        self.transcript.edit(text, self.is_recording)

    def _threadsafe(self, callback):
        def marshal(*args):
            loop = self._loop
            if loop is None or loop.is_closed():
                return
            loop.call_soon_threadsafe(callback, *args)
        return marshal

    def _on_recognition_start(self):
        self.is_recording = True
        logger.info("Recording started")

    def _on_recognition_result(self, results):
        if self.token.cancelled:
            return
        heard = self.transcript.apply_results((r.transcript, r.is_final) for r in results)
        if heard:
            self._emit(TranscriptUpdatedEvent(self._session_id, time.time(), self.transcript.live_text))
            self._voice_detected()

    def _on_speech_start(self):
        if not self.token.cancelled:
            self._voice_detected()

    def _on_recognition_error(self, message: str):
        self.is_recording = False
        if self.token.cancelled:
            return
        self._set_error(ErrorNotice(ErrorKind.TRANSIENT, SessionMessages.recognition_error(message)), "speech")

    def _on_recognition_end(self):
        self.is_recording = False
        logger.info("Recording stopped")

    async def _wait_until_recording_stops(self):
        deadline = self._loop.time() + self.recording_stop_timeout
        while self.is_recording and self._loop.time() < deadline:
            await asyncio.sleep(RECORDING_STOP_POLL_SECONDS)

    # ------------------------------------------------------------------
    # Auto-flow
    # ------------------------------------------------------------------

    def _voice_detected(self):
        if self.is_busy or not self.autoflow.on_voice():
            return
        if self.autoflow.start_countdown():
            self._emit(CountdownStartedEvent(self._session_id, time.time(), self.autoflow.remaining))
            self._countdown_task = self._watch(asyncio.create_task(self._run_countdown()))

    async def _run_countdown(self):
        while self.autoflow.phase == AutoFlowPhase.COUNTING:
            await asyncio.sleep(self.tick_interval)
            if self.autoflow.tick():
                self._spawn(self.auto_submit())
                return

    def _cancel_countdown(self):
        self.autoflow.clear()
        task = self._countdown_task
        self._countdown_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def auto_submit(self) -> bool:
        """Countdown expiry: stop recording, then take the manual submit path."""
        if not self.autoflow.begin_auto_submit():
            logger.debug("Auto-submit already in progress")
            return False
        self._cancel_countdown()
        try:
            self.stop_recording()
            await self._wait_until_recording_stops()
            return await self.submit(automatic=True)
        finally:
            self.autoflow.end_auto_submit()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, automatic: bool = False) -> bool:
        """
        Submit the current answer and move on.

        Returns:
            True if the backend accepted the answer
        """
        if self.session is None or self.is_busy or self.is_finished:
            return False
        if not automatic and self.autoflow.auto_submit_in_progress:
            logger.debug("Manual submit ignored; auto-submit in progress")
            return False
        self._cancel_countdown()

        if self.transcript.is_empty:
            self._set_error(ErrorNotice(ErrorKind.VALIDATION, SessionMessages.NO_RESPONSE), "submit")
            return False

        # Held from here on, including while waiting for the recognizer to stop
        self.is_busy = True
        try:
            if self.is_recording:
                self.stop_recording()
                await self._wait_until_recording_stops()

            text = self.transcript.response_text
            key = self.prompt_key
            prompt = self.current_prompt
            question_type = self.session.current_question.type or "behavioral"

            try:
                payload = await asyncio.to_thread(self.submitter.submit, self.session, self.follow_up, text)
            except (ApiError, ValueError) as e:
                if not self.token.cancelled:
                    logger.error(f"Submit failed: {e}")
                    self._set_error(ErrorNotice(ErrorKind.TRANSIENT, SessionMessages.SUBMIT_FAILED, ("retry",)),
                                    "submit")
                return False
            if self.token.cancelled:
                return False

            self.error = None
            if payload.security_status is not None:
                self.security_status = payload.security_status
            self._emit(AnswerSubmittedEvent(self._session_id, time.time(), key[0], key[1], text, automatic))

            await self._apply_analysis(resolve_analysis(payload, text), prompt, question_type)
            if self.token.cancelled:
                return False

            transition = self._decide(payload)
            await self._transition(transition)
            return True
        finally:
            self.is_busy = False

    def _decide(self, payload: SubmitPayload) -> Transition:
        if self.follow_up.is_follow_up_mode and payload.follow_up_questions:
            logger.info("Ignoring follow-ups returned while already in follow-up mode")
        transition = decide_for_session(
            self.session, self.follow_up, payload.follow_up_questions, payload.next_question_index
        )
        logger.info(f"Transition: {transition.kind.value} (next={transition.next_question_index})")
        self._emit(TransitionDecidedEvent(
            self._session_id, time.time(), transition.kind.value, transition.next_question_index
        ))
        return transition

    async def _apply_analysis(self, result, prompt: str, question_type: str):
        if isinstance(result, InlineAnalysis):
            self._apply_scores(result.analysis)
            return

        if isinstance(result, DeferredAnalysis):
            if not result.transcription.strip():
                return
            try:
                analysis = await asyncio.to_thread(
                    self.submitter.analyze, result.transcription, prompt, question_type
                )
            except (ApiError, ValueError) as e:
                if self.token.cancelled:
                    return
                logger.warning(f"Analysis failed, showing generic feedback: {e}")
                self.analysis_text = ANALYSIS_FALLBACK_TEXT
                self._emit(ErrorOccurredEvent(
                    self._session_id, time.time(), ErrorKind.TRANSIENT.value, str(e), "analysis"
                ))
                return
            if not self.token.cancelled:
                self._apply_scores(analysis)

    def _apply_scores(self, analysis: AnalysisPayload):
        self.analysis_text = analysis.summary
        scores = scores_from_analysis(analysis)
        if scores is None:
            logger.info("Analysis carried no scores; keeping previous snapshot")
            return
        self.scores = scores
        self._emit(ScoresUpdatedEvent(self._session_id, time.time(), scores.to_dict(), self.analysis_text))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _transition(self, transition: Transition):
        self._cancel_countdown()
        self.stop_recording()
        self.stop_narration()

        await asyncio.sleep(self.transition_delay)
        if self.token.cancelled or self.is_finished:
            return

        if transition.kind == TransitionKind.FINALIZE:
            await self._finalize()
            return

        if transition.kind == TransitionKind.ADVANCE_FOLLOW_UP:
            self.follow_up.advance()
        elif transition.kind == TransitionKind.ENTER_FOLLOW_UP:
            self.follow_up.enter(list(transition.follow_up_questions))
        elif transition.kind == TransitionKind.ADVANCE_MAIN:
            self.session.current_question_index = transition.next_question_index
            self.follow_up.clear()

        self._reset_question_state()
        self.present_current()

    def _reset_question_state(self):
        # Scores and analysis text stay until a new analysis replaces them
        self.transcript.clear()
        self.is_recording = False
        self.is_narrating = False
        self._narration_seq += 1
        self.autoflow.reset()

    async def _finalize(self):
        logger.info("All questions answered; generating final assessment")
        try:
            payload = await asyncio.to_thread(self.submitter.assessment, self.session.interview_id)
        except (ApiError, ValueError) as e:
            if self.token.cancelled:
                return
            logger.error(f"Assessment failed: {e}")
            self._pending_finalize = True
            self._set_error(ErrorNotice(ErrorKind.TRANSIENT, SessionMessages.ASSESSMENT_FAILED, ("retry",)),
                            "assessment")
            return
        if self.token.cancelled:
            return

        self._pending_finalize = False
        self.error = None
        self.report = FinalReport.from_payload(payload)
        self._emit(AssessmentReadyEvent(self._session_id, time.time(), self.report.overall_score))
        self._finish(SessionOutcome(
            SessionStatus.COMPLETED, report=self.report, scores=self.scores,
            violations=list(self.security.violations)
        ))

    # ------------------------------------------------------------------
    # Proctoring
    # ------------------------------------------------------------------

    async def _monitor_loop(self):
        while not self.token.cancelled and not self.is_finished:
            await asyncio.sleep(self.monitor_interval)
            status = await asyncio.to_thread(self.frame_monitor.check, self.session.interview_id)
            if self.token.cancelled:
                return
            if status is None:
                continue
            self.security_status = status
            if status.should_pause_interview:
                self._set_error(ErrorNotice(ErrorKind.SECURITY, SessionMessages.SECURITY_PAUSED), "monitor")

    def handle_input_event(self, event: InputEvent) -> bool:
        """
        Apply the security policy to a front-end input event.

        Returns:
            True if the front-end should suppress the event
        """
        decision = self.security.handle(event)
        if decision.violation:
            self._emit(SecurityViolationEvent(
                self._session_id, time.time(), decision.violation, self.security.violation_count
            ))
        if self.security.take_redirect():
            self._set_error(ErrorNotice(ErrorKind.SECURITY, SessionMessages.SECURITY_TERMINATING), "security")
            self._spawn(self._terminate_for_violations())
        return decision.prevented

    async def _terminate_for_violations(self):
        await asyncio.sleep(self.security.policy.redirect_delay_seconds)
        if self.is_finished:
            return
        self._emit(SessionTerminatedEvent(self._session_id, time.time(), "security_violations", INTERVIEW_ROUTE))
        self._finish(SessionOutcome(
            SessionStatus.TERMINATED, route=INTERVIEW_ROUTE, scores=self.scores,
            violations=list(self.security.violations), error=self.error
        ))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @property
    def _session_id(self) -> str:
        if self.session is not None:
            return self.session.interview_id
        return self.interview_id or "new"

    def _emit(self, event: SessionEvent):
        self.event_bus.emit(event)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _watch(self, task: asyncio.Task) -> asyncio.Task:
        """Log failures of a long-running task that `wait_idle` does not wait on."""
        task.add_done_callback(self._log_failure)
        return task

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        self._log_failure(task)

    def _log_failure(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task failed: {exc!r}")

    def _set_error(self, notice: ErrorNotice, component: str):
        self.error = notice
        logger.warning(f"[{notice.kind.value}] {notice.message}")
        self._emit(ErrorOccurredEvent(self._session_id, time.time(), notice.kind.value, notice.message, component))

    def _setup_failed(self, error: SetupError, component: str):
        self._set_error(ErrorNotice(ErrorKind.SETUP, error.message, error.actions), component)

    def _finish(self, outcome: SessionOutcome):
        if self.outcome is not None:
            return
        self.outcome = outcome
        logger.info(f"Session finished: {outcome.status.value} {outcome.route or ''}".strip())
        if self._done is not None:
            self._done.set()
