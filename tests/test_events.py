"""Event bus delivery and session metrics."""

from ascend_interview.interview.events import (
    AnswerSubmittedEvent,
    EventType,
    NarrationFinishedEvent,
    PromptPresentedEvent,
    SessionEventBus,
    SessionMetrics,
)


def _prompt(follow_up_index=None):
    return PromptPresentedEvent("iv-1", 0.0, 0, follow_up_index, "Q1")


class TestSessionEventBus:
    def test_typed_handlers_run_before_catch_all(self) -> None:
        bus = SessionEventBus()
        seen = []
        bus.subscribe_all(lambda e: seen.append("all"))
        bus.subscribe(EventType.PROMPT_PRESENTED, lambda e: seen.append("typed"))
        bus.emit(_prompt())
        assert seen == ["typed", "all"]

    def test_failing_handler_does_not_stop_delivery(self) -> None:
        bus = SessionEventBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(EventType.PROMPT_PRESENTED, broken)
        bus.subscribe(EventType.PROMPT_PRESENTED, seen.append)
        bus.emit(_prompt())
        assert len(seen) == 1

    def test_returned_callable_unsubscribes(self) -> None:
        bus = SessionEventBus()
        seen = []
        remove = bus.subscribe(EventType.PROMPT_PRESENTED, seen.append)
        remove()
        bus.emit(_prompt())
        assert seen == []

    def test_other_types_not_delivered(self) -> None:
        bus = SessionEventBus()
        seen = []
        bus.subscribe(EventType.SCORES_UPDATED, seen.append)
        bus.emit(_prompt())
        assert seen == []


def test_metrics() -> None:
    metrics = SessionMetrics()
    for event in (
        _prompt(),
        _prompt(follow_up_index=0),
        NarrationFinishedEvent("iv-1", 0.0, played=False),
        AnswerSubmittedEvent("iv-1", 0.0, 0, None, "text", automatic=True),
    ):
        metrics.handle_event(event)
    snapshot = metrics.get_metrics()
    assert snapshot["prompts_presented"] == 2
    assert snapshot["follow_ups_presented"] == 1
    assert snapshot["narration_failures"] == 1
    assert snapshot["auto_submits"] == 1
    metrics.reset()
    assert metrics.get_metrics()["answers_submitted"] == 0
