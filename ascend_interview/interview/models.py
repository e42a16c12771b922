"""
Data models for the interview session.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple, Iterable

from ..errors import TranscriptLockedError

# (question_index, follow_up_index); main questions use None
PromptKey = Tuple[int, Optional[int]]


@dataclass(frozen=True)
class Question:
    """A main interview question as loaded from the backend."""
    id: str
    question: str
    type: str = "behavioral"
    expected_duration: int = 0
    ai_analysis: Optional[Dict[str, Any]] = None


@dataclass
class InterviewSession:
    """The loaded interview. The question list never changes after bootstrap."""
    interview_id: str
    questions: Tuple[Question, ...]
    current_question_index: int = 0

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_question_index]


@dataclass
class FollowUpState:
    """Follow-up prompts for the current main question."""
    is_follow_up_mode: bool = False
    follow_up_questions: List[str] = field(default_factory=list)
    current_follow_up_index: int = 0

    def enter(self, questions: List[str]):
        self.is_follow_up_mode = True
        self.follow_up_questions = list(questions)
        self.current_follow_up_index = 0

    def advance(self):
        self.current_follow_up_index += 1

    def clear(self):
        self.is_follow_up_mode = False
        self.follow_up_questions = []
        self.current_follow_up_index = 0

    @property
    def has_valid_index(self) -> bool:
        return 0 <= self.current_follow_up_index < len(self.follow_up_questions)

    @property
    def current_prompt(self) -> Optional[str]:
        if self.is_follow_up_mode and self.has_valid_index:
            return self.follow_up_questions[self.current_follow_up_index]
        return None


@dataclass
class TranscriptionBuffer:
    """
    Text captured for the current prompt.

    `live_text` is what the user sees (and may edit while not recording);
    `finalized_text` accumulates phrases the recognizer has committed to.
    """
    live_text: str = ""
    finalized_text: str = ""

    def clear(self):
        self.live_text = ""
        self.finalized_text = ""

    def apply_results(self, results: Iterable[Tuple[str, bool]]) -> bool:
        """
        Fold one recognition event into the buffer.

        Returns:
            True if the event carried any speech
        """
        final_parts = []
        interim_parts = []
        for transcript, is_final in results:
            text = transcript.strip()
            if not text:
                continue
            (final_parts if is_final else interim_parts).append(text)

        if final_parts:
            self.finalized_text += " ".join(final_parts) + " "

        window = " ".join([self.finalized_text.strip()] + interim_parts).strip()
        if window:
            self.live_text = window
        return bool(final_parts or interim_parts)

    def edit(self, text: str, is_recording: bool):
        if is_recording:
            raise TranscriptLockedError("Stop recording before editing the transcript")
        self.live_text = text

    @property
    def response_text(self) -> str:
        """Edited live text wins over the recognizer's finalized text."""
        return self.live_text.strip() or self.finalized_text.strip()

    @property
    def is_empty(self) -> bool:
        return not self.live_text.strip() and not self.finalized_text.strip()


@dataclass(frozen=True)
class ScoreSnapshot:
    """Per-answer scores shown to the candidate."""
    communication: int
    technical: int
    problem_solving: int
    confidence: int
    overall: int

    @classmethod
    def from_sub_scores(cls, clarity: float, relevance: float, depth: float, structure: float) -> 'ScoreSnapshot':
        # Half-up rounding of the unweighted mean
        overall = int((clarity + relevance + depth + structure) / 4 + 0.5)
        return cls(
            communication=int(clarity),
            technical=int(depth),
            problem_solving=int(structure),
            confidence=int(relevance),
            overall=overall,
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "communication": self.communication,
            "technical": self.technical,
            "problemSolving": self.problem_solving,
            "confidence": self.confidence,
            "overall": self.overall,
        }


class ErrorKind(str, Enum):
    SETUP = "setup"
    TRANSIENT = "transient"
    VALIDATION = "validation"
    SECURITY = "security"


@dataclass(frozen=True)
class ErrorNotice:
    """An error as the front-end should present it."""
    kind: ErrorKind
    message: str
    actions: Tuple[str, ...] = ()

    @property
    def blocking(self) -> bool:
        return self.kind in (ErrorKind.SETUP, ErrorKind.SECURITY)


class SessionStatus(str, Enum):
    COMPLETED = "completed"
    REDIRECTED = "redirected"
    TERMINATED = "terminated"
    ABORTED = "aborted"


@dataclass
class SessionOutcome:
    """How a session ended."""
    status: SessionStatus
    route: Optional[str] = None
    report: Optional[Any] = None
    scores: Optional[ScoreSnapshot] = None
    violations: List[str] = field(default_factory=list)
    error: Optional[ErrorNotice] = None
