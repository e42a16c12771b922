"""End-to-end controller behavior with scripted collaborators.

Every test drives the real controller on an asyncio loop. Only the network,
media, recognizer and audio output are replaced.
"""

import asyncio
import logging

import pytest

from ascend_interview.config import Config, SecurityPolicy, INTERVIEW_ROUTE, LOGIN_ROUTE
from ascend_interview.errors import ApiError, TranscriptLockedError
from ascend_interview.interview.autoflow import AutoFlowPhase
from ascend_interview.interview.controller import InterviewController
from ascend_interview.interview.events import EventType
from ascend_interview.interview.messages import SessionMessages
from ascend_interview.interview.models import ErrorKind, SessionStatus
from ascend_interview.interview.schemas import ANALYSIS_FALLBACK_TEXT
from ascend_interview.interview.security import InputEvent, InputEventType
from ascend_interview.interview.testing import (
    MockApiClient,
    MockAudioPlayer,
    MockMediaCapture,
    MockSpeechCapture,
    make_analysis,
    make_session_data,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _controller(api, voice=True, player="default", countdown=30, tick_interval=3600.0,
                policy=None) -> InterviewController:
    config = Config(countdown_seconds=countdown, transition_delay=0, monitor_interval=0)
    media = MockMediaCapture()
    return InterviewController(
        api,
        media=media,
        speech=MockSpeechCapture(media) if voice else None,
        player=MockAudioPlayer() if player == "default" else player,
        config=config,
        security_policy=policy,
        tick_interval=tick_interval,
        recording_stop_timeout=0.5,
    )


def _recorder(controller):
    events = []
    controller.event_bus.subscribe_all(events.append)
    return events


def _of_type(events, event_type):
    return [e for e in events if e.event_type == event_type]


async def _settle(controller):
    """Let marshalled callbacks and background work finish."""
    for _ in range(3):
        await asyncio.sleep(0)
        await controller.wait_idle()


async def _speak(controller, text):
    controller.speech.mock.say(text, final=True)
    await _settle(controller)


# ---------------------------------------------------------------------------
# Full session
# ---------------------------------------------------------------------------


class TestFullSession:
    def test_two_questions_with_one_follow_up(self) -> None:
        api = MockApiClient(session_data=make_session_data(["Q1", "Q2"]))
        api.submit_replies = [
            {"aiAnalysis": make_analysis(80, 70, 60, 90), "followUpQuestions": ["F1"]},
            {},
        ]
        api.assessment_replies = [{"assessment": {"overallScore": 81, "strengths": ["Concise"]}}]
        controller = _controller(api)
        events = _recorder(controller)

        async def scenario():
            await controller.start()
            await _settle(controller)
            assert controller.is_recording

            await _speak(controller, "First answer")
            assert await controller.submit()
            await _settle(controller)
            assert controller.follow_up.is_follow_up_mode
            assert controller.current_prompt == "F1"

            await _speak(controller, "Follow-up answer")
            assert await controller.submit()
            await _settle(controller)
            assert not controller.follow_up.is_follow_up_mode
            assert controller.session.current_question_index == 1

            await _speak(controller, "Second answer")
            assert await controller.submit()
            await _settle(controller)
            await controller.teardown()

        asyncio.run(scenario())

        assert [c[2] for c in api.calls_to("submit_response")] == [0, 1]
        assert api.calls_to("submit_follow_up")[0][1:5] == ("iv-1", 0, 0, "Follow-up answer")
        assert [c[1] for c in api.calls_to("text_to_speech")] == ["Q1", "F1", "Q2"]
        assert len(api.calls_to("analyze_response")) == 2
        assert len(api.calls_to("generate_assessment")) == 1

        assert controller.outcome.status == SessionStatus.COMPLETED
        assert controller.outcome.report.overall_score == 81
        # Later analyses had no scores, so the first snapshot is kept
        assert controller.scores.overall == 75

        kinds = [e.data["kind"] for e in _of_type(events, EventType.TRANSITION_DECIDED)]
        assert kinds == ["enter_follow_up", "advance_main", "finalize"]
        assert controller.metrics.get_metrics()["follow_ups_presented"] == 1

    def test_run_redirects_without_token(self) -> None:
        api = MockApiClient(token=None)
        controller = _controller(api)
        outcome = asyncio.run(controller.run())
        assert outcome.status == SessionStatus.REDIRECTED
        assert outcome.route == LOGIN_ROUTE
        assert controller.media.released

    def test_text_mode_submits_typed_answer(self) -> None:
        api = MockApiClient()
        controller = _controller(api, voice=False, player=None)

        async def scenario():
            await controller.start()
            await _settle(controller)
            controller.edit_transcript("Typed answer")
            await controller.submit()
            await _settle(controller)

        asyncio.run(scenario())
        assert api.calls_to("submit_response")[0][3] == "Typed answer"
        assert not api.calls_to("text_to_speech")
        assert controller.outcome.status == SessionStatus.COMPLETED


# ---------------------------------------------------------------------------
# Auto-flow
# ---------------------------------------------------------------------------


class TestAutoFlow:
    def test_countdown_expiry_submits(self) -> None:
        api = MockApiClient()
        controller = _controller(api, countdown=3, tick_interval=0.01)

        async def scenario():
            await controller.start()
            await _settle(controller)
            await _speak(controller, "Spoken answer")
            await asyncio.sleep(0.2)
            await _settle(controller)

        asyncio.run(scenario())
        assert len(api.calls_to("submit_response")) == 1
        assert controller.metrics.get_metrics()["auto_submits"] == 1
        assert controller.speech.mock.stop_count >= 1

    def test_manual_submit_cancels_running_countdown(self) -> None:
        api = MockApiClient(session_data=make_session_data(["Q1", "Q2"]))
        controller = _controller(api, countdown=30)
        events = _recorder(controller)

        async def scenario():
            await controller.start()
            await _settle(controller)
            await _speak(controller, "An answer")
            assert controller.autoflow.is_countdown_active
            countdown_task = controller._countdown_task
            for _ in range(10):
                controller.autoflow.tick()
            assert controller.autoflow.remaining == 20

            await controller.submit()
            await _settle(controller)
            assert countdown_task.cancelled() or countdown_task.done()
            await controller.teardown()

        asyncio.run(scenario())
        submitted = _of_type(events, EventType.ANSWER_SUBMITTED)
        assert len(submitted) == 1
        assert submitted[0].data["automatic"] is False
        assert len(api.calls_to("submit_response")) == 1
        assert controller.autoflow.phase == AutoFlowPhase.IDLE

    def test_voice_during_narration_does_not_arm(self) -> None:
        api = MockApiClient()
        controller = _controller(api)

        async def scenario():
            await controller.start()
            await _settle(controller)
            controller.autoflow.narration_started()
            await _speak(controller, "Too early")
            assert not controller.autoflow.is_countdown_active
            await controller.teardown()

        asyncio.run(scenario())

    def test_auto_and_manual_submit_post_answer_once(self) -> None:
        api = MockApiClient(session_data=make_session_data(["Q1", "Q2"]))
        controller = _controller(api)

        async def scenario():
            await controller.start()
            await _settle(controller)
            await _speak(controller, "One answer")
            # The recognizer reports the end of recording from its own thread
            controller.speech.mock.end_delay = 0.2
            results = await asyncio.gather(controller.auto_submit(), controller.submit())
            await _settle(controller)
            await controller.teardown()
            return results

        assert asyncio.run(scenario()) == [True, False]
        assert [c[2] for c in api.calls_to("submit_response")] == [0]
        assert controller.metrics.get_metrics()["auto_submits"] == 1
        assert controller.session.current_question_index == 1

    def test_concurrent_manual_submits_post_answer_once(self) -> None:
        api = MockApiClient(session_data=make_session_data(["Q1", "Q2"]))
        controller = _controller(api)

        async def scenario():
            await controller.start()
            await _settle(controller)
            await _speak(controller, "One answer")
            controller.speech.mock.end_delay = 0.2
            results = await asyncio.gather(controller.submit(), controller.submit())
            await _settle(controller)
            await controller.teardown()
            return results

        assert asyncio.run(scenario()) == [True, False]
        assert [c[2] for c in api.calls_to("submit_response")] == [0]

    def test_teardown_cancels_countdown(self) -> None:
        controller = _controller(MockApiClient())

        async def scenario():
            await controller.start()
            await _settle(controller)
            await _speak(controller, "An answer")
            countdown_task = controller._countdown_task
            await controller.teardown()
            return countdown_task

        countdown_task = asyncio.run(scenario())
        assert countdown_task.cancelled()
        assert controller.autoflow.phase == AutoFlowPhase.IDLE

    @pytest.mark.parametrize("setup", ["fetch_fails", "playback_fails", "no_player"])
    def test_narration_failures_are_treated_as_finished(self, setup) -> None:
        api = MockApiClient()
        player = MockAudioPlayer()
        if setup == "fetch_fails":
            api.tts_reply = ApiError("TTS unavailable", status=503)
        elif setup == "playback_fails":
            player = MockAudioPlayer(fail=True)
        else:
            player = None
        controller = _controller(api, player=player)
        events = _recorder(controller)

        async def scenario():
            await controller.start()
            await _settle(controller)
            assert controller.is_recording
            await _speak(controller, "Answer")
            assert controller.autoflow.is_countdown_active
            await controller.teardown()

        asyncio.run(scenario())
        finished = _of_type(events, EventType.NARRATION_FINISHED)
        assert [e.data["played"] for e in finished] == [False]
        assert controller.speech.mock.start_count == 1


# ---------------------------------------------------------------------------
# Submission errors
# ---------------------------------------------------------------------------


class TestSubmissionErrors:
    def test_empty_answer_makes_no_call(self) -> None:
        api = MockApiClient()
        controller = _controller(api, voice=False)

        async def scenario():
            await controller.start()
            await _settle(controller)
            assert await controller.submit() is False
            await controller.teardown()

        asyncio.run(scenario())
        assert controller.error.kind == ErrorKind.VALIDATION
        assert controller.error.message == SessionMessages.NO_RESPONSE
        assert not api.calls_to("submit_response")

    def test_failed_submit_keeps_answer_for_retry(self) -> None:
        api = MockApiClient(session_data=make_session_data(["Q1", "Q2"]))
        api.submit_replies = [ApiError("Service unavailable", status=503)]
        controller = _controller(api)

        async def scenario():
            await controller.start()
            await _settle(controller)
            await _speak(controller, "Kept answer")
            assert await controller.submit() is False
            assert controller.error.kind == ErrorKind.TRANSIENT
            assert controller.error.actions == ("retry",)
            assert controller.session.current_question_index == 0
            assert await controller.retry() is True
            await _settle(controller)
            await controller.teardown()

        asyncio.run(scenario())
        assert [c[3] for c in api.calls_to("submit_response")] == ["Kept answer", "Kept answer"]
        assert controller.session.current_question_index == 1

    def test_failed_analysis_shows_generic_feedback(self) -> None:
        api = MockApiClient(session_data=make_session_data(["Q1", "Q2"]))
        api.analysis_replies = [ApiError("Analysis failed", status=500)]
        controller = _controller(api, voice=False)

        async def scenario():
            await controller.start()
            controller.edit_transcript("Answer")
            assert await controller.submit()
            await _settle(controller)
            await controller.teardown()

        asyncio.run(scenario())
        assert controller.analysis_text == ANALYSIS_FALLBACK_TEXT
        assert controller.session.current_question_index == 1

    def test_assessment_failure_can_be_retried(self) -> None:
        api = MockApiClient()
        api.assessment_replies = [ApiError("Timeout", status=504)]
        controller = _controller(api, voice=False)

        async def scenario():
            await controller.start()
            controller.edit_transcript("Answer")
            await controller.submit()
            assert controller.error.message == SessionMessages.ASSESSMENT_FAILED
            assert not controller.is_finished
            assert await controller.retry() is True

        asyncio.run(scenario())
        assert controller.outcome.status == SessionStatus.COMPLETED
        assert len(api.calls_to("submit_response")) == 1
        assert len(api.calls_to("generate_assessment")) == 2

    def test_setup_failure_and_retry(self) -> None:
        api = MockApiClient()
        api.start_error = ApiError("Backend down", status=500)
        controller = _controller(api, voice=False)

        async def scenario():
            await controller.start()
            assert controller.error.kind == ErrorKind.SETUP
            assert controller.error.message == "Failed to start interview: Backend down"
            api.start_error = None
            assert await controller.retry() is True
            await controller.teardown()

        asyncio.run(scenario())
        assert controller.session is not None


# ---------------------------------------------------------------------------
# Transcript and narration controls
# ---------------------------------------------------------------------------


class TestControls:
    def test_edit_rejected_while_recording(self) -> None:
        controller = _controller(MockApiClient())

        async def scenario():
            await controller.start()
            await _settle(controller)
            with pytest.raises(TranscriptLockedError):
                controller.edit_transcript("edited")
            controller.stop_recording()
            await _settle(controller)
            controller.edit_transcript("edited")
            await controller.teardown()

        asyncio.run(scenario())
        assert controller.transcript.response_text == "edited"

    def test_replay_narrates_again_but_prompt_is_read_once(self) -> None:
        api = MockApiClient()
        controller = _controller(api)

        async def scenario():
            await controller.start()
            await _settle(controller)
            controller.present_current()
            await _settle(controller)
            assert controller.replay()
            await _settle(controller)
            await controller.teardown()

        asyncio.run(scenario())
        assert len(api.calls_to("text_to_speech")) == 2

    def test_results_after_teardown_are_discarded(self) -> None:
        controller = _controller(MockApiClient())

        async def scenario():
            await controller.start()
            await _settle(controller)
            recognizer = controller.speech.mock
            await controller.teardown()
            recognizer.say("late words")
            await asyncio.sleep(0)

        asyncio.run(scenario())
        assert controller.transcript.is_empty


# ---------------------------------------------------------------------------
# Proctoring
# ---------------------------------------------------------------------------


class TestProctoring:
    def test_threshold_terminates_session(self) -> None:
        api = MockApiClient()
        controller = _controller(api, policy=SecurityPolicy(redirect_delay_seconds=0))
        events = _recorder(controller)
        context_menu = InputEvent(InputEventType.CONTEXT_MENU)

        async def scenario():
            await controller.start()
            await _settle(controller)
            for _ in range(3):
                assert controller.handle_input_event(context_menu)
            await _settle(controller)
            await controller.teardown()

        asyncio.run(scenario())
        assert controller.outcome.status == SessionStatus.TERMINATED
        assert controller.outcome.route == INTERVIEW_ROUTE
        assert len(controller.outcome.violations) == 3
        assert len(_of_type(events, EventType.SECURITY_VIOLATION)) == 3
        assert len(_of_type(events, EventType.SESSION_TERMINATED)) == 1

    def test_lower_threshold(self) -> None:
        controller = _controller(
            MockApiClient(), voice=False, policy=SecurityPolicy(max_violations=2, redirect_delay_seconds=0)
        )

        async def scenario():
            await controller.start()
            controller.handle_input_event(InputEvent(InputEventType.CONTEXT_MENU))
            controller.handle_input_event(InputEvent(InputEventType.KEY_DOWN, key="F12"))
            await _settle(controller)

        asyncio.run(scenario())
        assert controller.outcome.status == SessionStatus.TERMINATED

    def test_monitor_pause_sets_security_notice(self) -> None:
        api = MockApiClient()
        api.monitor_replies = [{"isSecure": False, "faceCount": 2, "shouldPauseInterview": True}] * 100
        controller = _controller(api, voice=False)
        controller.monitor_interval = 0.01

        async def scenario():
            await controller.start()
            await asyncio.sleep(0.1)
            await controller.teardown()

        asyncio.run(scenario())
        assert controller.error.kind == ErrorKind.SECURITY
        assert controller.security_status.face_count == 2

    def test_monitor_crash_is_logged(self, caplog) -> None:
        controller = _controller(MockApiClient(), voice=False)
        controller.monitor_interval = 0.01

        def broken_check(interview_id):
            raise RuntimeError("camera vanished")

        controller.frame_monitor.check = broken_check

        async def scenario():
            await controller.start()
            await asyncio.sleep(0.1)
            assert controller._monitor_task.done()
            await controller.teardown()

        with caplog.at_level(logging.ERROR, logger="controller"):
            asyncio.run(scenario())
        assert "camera vanished" in caplog.text
