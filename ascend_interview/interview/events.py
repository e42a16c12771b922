"""
Event-driven architecture for the interview session.
"""
import logging
from abc import ABC
from collections import defaultdict
from typing import Dict, Any, List, Callable, Optional, DefaultDict
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    SESSION_STARTED = "session_started"
    PROMPT_PRESENTED = "prompt_presented"
    NARRATION_FINISHED = "narration_finished"
    TRANSCRIPT_UPDATED = "transcript_updated"
    COUNTDOWN_STARTED = "countdown_started"
    ANSWER_SUBMITTED = "answer_submitted"
    TRANSITION_DECIDED = "transition_decided"
    SCORES_UPDATED = "scores_updated"
    SECURITY_VIOLATION = "security_violation"
    SESSION_TERMINATED = "session_terminated"
    ASSESSMENT_READY = "assessment_ready"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class SessionEvent(ABC):
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(SessionEvent):
    """Event fired once the session is loaded and media is open."""
    def __init__(self, session_id: str, timestamp: float, question_count: int, media_mode: str):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"question_count": question_count, "media_mode": media_mode}
        )


@dataclass
class PromptPresentedEvent(SessionEvent):
    """Event fired when a main question or follow-up becomes the active prompt."""
    def __init__(self, session_id: str, timestamp: float, question_index: int,
                 follow_up_index: Optional[int], text: str):
        super().__init__(
            event_type=EventType.PROMPT_PRESENTED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "question_index": question_index,
                "follow_up_index": follow_up_index,
                "text": text
            }
        )


@dataclass
class NarrationFinishedEvent(SessionEvent):
    """Event fired when narration ends, whether it played or not."""
    def __init__(self, session_id: str, timestamp: float, played: bool):
        super().__init__(
            event_type=EventType.NARRATION_FINISHED,
            session_id=session_id,
            timestamp=timestamp,
            data={"played": played}
        )


@dataclass
class TranscriptUpdatedEvent(SessionEvent):
    """Event fired when recognition changes the live transcript."""
    def __init__(self, session_id: str, timestamp: float, live_text: str):
        super().__init__(
            event_type=EventType.TRANSCRIPT_UPDATED,
            session_id=session_id,
            timestamp=timestamp,
            data={"live_text": live_text}
        )


@dataclass
class CountdownStartedEvent(SessionEvent):
    """Event fired when the auto-submit countdown starts."""
    def __init__(self, session_id: str, timestamp: float, seconds: int):
        super().__init__(
            event_type=EventType.COUNTDOWN_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"seconds": seconds}
        )


@dataclass
class AnswerSubmittedEvent(SessionEvent):
    """Event fired when the backend accepted an answer."""
    def __init__(self, session_id: str, timestamp: float, question_index: int,
                 follow_up_index: Optional[int], text: str, automatic: bool):
        super().__init__(
            event_type=EventType.ANSWER_SUBMITTED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "question_index": question_index,
                "follow_up_index": follow_up_index,
                "text": text,
                "automatic": automatic
            }
        )


@dataclass
class TransitionDecidedEvent(SessionEvent):
    """Event fired when the next step after an answer is known."""
    def __init__(self, session_id: str, timestamp: float, kind: str, next_question_index: Optional[int]):
        super().__init__(
            event_type=EventType.TRANSITION_DECIDED,
            session_id=session_id,
            timestamp=timestamp,
            data={"kind": kind, "next_question_index": next_question_index}
        )


@dataclass
class ScoresUpdatedEvent(SessionEvent):
    """Event fired when a new analysis replaced the score snapshot."""
    def __init__(self, session_id: str, timestamp: float, scores: Dict[str, int], analysis: str):
        super().__init__(
            event_type=EventType.SCORES_UPDATED,
            session_id=session_id,
            timestamp=timestamp,
            data={"scores": scores, "analysis": analysis}
        )


@dataclass
class SecurityViolationEvent(SessionEvent):
    """Event fired for each recorded violation."""
    def __init__(self, session_id: str, timestamp: float, description: str, violation_count: int):
        super().__init__(
            event_type=EventType.SECURITY_VIOLATION,
            session_id=session_id,
            timestamp=timestamp,
            data={"description": description, "violation_count": violation_count}
        )


@dataclass
class SessionTerminatedEvent(SessionEvent):
    """Event fired when the session is ended early."""
    def __init__(self, session_id: str, timestamp: float, reason: str, route: Optional[str]):
        super().__init__(
            event_type=EventType.SESSION_TERMINATED,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason, "route": route}
        )


@dataclass
class AssessmentReadyEvent(SessionEvent):
    """Event fired when the final assessment arrived."""
    def __init__(self, session_id: str, timestamp: float, overall_score: float):
        super().__init__(
            event_type=EventType.ASSESSMENT_READY,
            session_id=session_id,
            timestamp=timestamp,
            data={"overall_score": overall_score}
        )


@dataclass
class ErrorOccurredEvent(SessionEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_kind: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_kind": error_kind,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """
    Synchronous publish/subscribe hub for one session.

    Handlers run on the emitting thread (the controller's event loop) in
    subscription order: type-specific handlers first, then catch-all ones.
    """

    def __init__(self):
        self._handlers: DefaultDict[Optional[EventType], List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> Callable[[], None]:
        """
        Register `handler` for one event type.

        Returns:
            A callable that removes the subscription again
        """
        self._handlers[event_type].append(handler)
        logger.debug(f"Handler registered for {event_type.value}")
        return lambda: self.unsubscribe(event_type, handler)

    def subscribe_all(self, handler: EventHandler) -> Callable[[], None]:
        """Register `handler` for every event type."""
        self._handlers[None].append(handler)
        return lambda: self._discard(None, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if not self._discard(event_type, handler):
            logger.warning(f"No such handler for {event_type.value}")

    def _discard(self, key: Optional[EventType], handler: EventHandler) -> bool:
        handlers = self._handlers.get(key, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def emit(self, event: SessionEvent) -> None:
        """Deliver `event`. A handler that raises is logged and the rest still run."""
        targets = list(self._handlers.get(event.event_type, [])) + list(self._handlers.get(None, []))
        for handler in targets:
            try:
                handler(event)
            except Exception as e:
                name = getattr(handler, "__qualname__", repr(handler))
                logger.error(f"Handler {name} failed on {event.event_type.value}: {e}")


class EventLogger:
    """Writes every event to the log file."""

    # Fired on every interim recognition result
    CHATTY = frozenset({EventType.TRANSCRIPT_UPDATED})

    def __init__(self):
        self.logger = logging.getLogger("event_logger")

    def handle_event(self, event: SessionEvent) -> None:
        level = logging.DEBUG if event.event_type in self.CHATTY else logging.INFO
        self.logger.log(level, f"[{event.session_id}] {event.event_type.value}: {event.data}")


class SessionMetrics:
    """Collects metrics from session events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.PROMPT_PRESENTED:
            self.prompts_presented += 1
            if event.data.get("follow_up_index") is not None:
                self.follow_ups_presented += 1
        elif event.event_type == EventType.NARRATION_FINISHED:
            if not event.data.get("played"):
                self.narration_failures += 1
        elif event.event_type == EventType.ANSWER_SUBMITTED:
            self.answers_submitted += 1
            if event.data.get("automatic"):
                self.auto_submits += 1
        elif event.event_type == EventType.SCORES_UPDATED:
            self.analyses_received += 1
        elif event.event_type == EventType.SECURITY_VIOLATION:
            self.security_violations += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "prompts_presented": self.prompts_presented,
            "follow_ups_presented": self.follow_ups_presented,
            "narration_failures": self.narration_failures,
            "answers_submitted": self.answers_submitted,
            "auto_submits": self.auto_submits,
            "analyses_received": self.analyses_received,
            "security_violations": self.security_violations,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.prompts_presented = 0
        self.follow_ups_presented = 0
        self.narration_failures = 0
        self.answers_submitted = 0
        self.auto_submits = 0
        self.analyses_received = 0
        self.security_violations = 0
        self.errors_occurred = 0
