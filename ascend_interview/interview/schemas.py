"""
Structured schemas for backend replies.

Every endpoint wraps its payload as `{success, data}`; these models describe
the `data` part and tolerate missing or extra fields.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any, List, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .models import Question, InterviewSession, ScoreSnapshot

logger = logging.getLogger("schemas")

DEFAULT_ANALYSIS_TEXT = "AI analysis completed"
ANALYSIS_FALLBACK_TEXT = "AI analysis completed with suggestions for improvement"


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class QuestionPayload(_Payload):
    id: str = ""
    question: str
    type: str = "behavioral"
    expected_duration: int = Field(0, alias="expectedDuration")
    ai_analysis: Optional[Dict[str, Any]] = Field(None, alias="aiAnalysis")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return "" if value is None else str(value)

    def to_question(self) -> Question:
        return Question(
            id=self.id,
            question=self.question,
            type=self.type,
            expected_duration=self.expected_duration,
            ai_analysis=self.ai_analysis,
        )


class SessionPayload(_Payload):
    """Reply of `GET /interview/:id` and `POST /interview/ai/start`."""
    interview_id: str = Field(alias="interviewId")
    questions: List[QuestionPayload]
    current_question_index: int = Field(0, alias="currentQuestionIndex")

    @field_validator("interview_id", mode="before")
    @classmethod
    def _stringify_id(cls, value):
        return "" if value is None else str(value)

    def to_session(self) -> InterviewSession:
        questions = tuple(q.to_question() for q in self.questions)
        index = self.current_question_index
        if not 0 <= index < len(questions):
            index = 0
        return InterviewSession(self.interview_id, questions, index)


class SecurityStatus(_Payload):
    """Proctoring status from the monitor and submit endpoints."""
    face_count: int = Field(1, alias="faceCount")
    violations: List[Any] = Field(default_factory=list)
    is_secure: bool = Field(True, alias="isSecure")
    violation_count: int = Field(0, alias="violationCount")
    max_violations: Optional[int] = Field(None, alias="maxViolations")
    should_pause_interview: bool = Field(False, alias="shouldPauseInterview")


class SubScores(_Payload):
    # Missing sub-scores count as zero
    clarity: float = 0
    relevance: float = 0
    depth: float = 0
    structure: float = 0

    @field_validator("clarity", "relevance", "depth", "structure", mode="before")
    @classmethod
    def _none_is_zero(cls, value):
        return 0 if value is None else value


class AnalysisPayload(_Payload):
    """An AI analysis, either embedded in a submit reply or from `/analyze-response`."""
    scores: Optional[SubScores] = None
    analysis: Any = None
    suggestions: Any = None
    feedback: Any = None
    # Flat score format some analysis replies use instead of `scores`
    overall_score: Optional[float] = Field(None, alias="overallScore")
    communication_score: Optional[float] = Field(None, alias="communicationScore")
    technical_score: Optional[float] = Field(None, alias="technicalScore")
    problem_solving_score: Optional[float] = Field(None, alias="problemSolvingScore")
    confidence_score: Optional[float] = Field(None, alias="confidenceScore")

    @property
    def summary(self) -> str:
        for text in (self.analysis, self.suggestions, self.feedback):
            if isinstance(text, list):
                text = "\n".join(str(item) for item in text)
            if text:
                return str(text)
        return DEFAULT_ANALYSIS_TEXT


class SubmitPayload(_Payload):
    """Reply of the submit and submit-followup endpoints."""
    ai_analysis: Optional[AnalysisPayload] = Field(None, alias="aiAnalysis")
    follow_up_questions: List[str] = Field(default_factory=list, alias="followUpQuestions")
    next_question_index: Optional[int] = Field(None, alias="nextQuestionIndex")
    security_status: Optional[SecurityStatus] = Field(None, alias="securityStatus")
    transcription: Optional[str] = None

    @field_validator("follow_up_questions", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return [] if value is None else value

    @field_validator("next_question_index", mode="before")
    @classmethod
    def _integral_index(cls, value):
        # Anything that is not a plain integer is treated as absent
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value


class BreakdownPayload(_Payload):
    communication: float = 0
    technical: float = 0
    problem_solving: float = Field(0, alias="problemSolving")
    confidence: float = 0


class AssessmentPayload(_Payload):
    """`data.assessment` of the final assessment reply."""
    overall_score: float = Field(0, alias="overallScore")
    breakdown: BreakdownPayload = Field(default_factory=BreakdownPayload)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    feedback: str = ""
    metrics: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("strengths", "improvements", "recommendations", mode="before")
    @classmethod
    def _listify(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value


# =============================================================================
# Analysis resolution
# =============================================================================

@dataclass(frozen=True)
class InlineAnalysis:
    """The submit reply already carried an analysis."""
    analysis: AnalysisPayload


@dataclass(frozen=True)
class DeferredAnalysis:
    """No analysis yet; it has to be requested separately for this text."""
    transcription: str


AnalysisResult = Union[InlineAnalysis, DeferredAnalysis]


def resolve_analysis(payload: SubmitPayload, response_text: str) -> AnalysisResult:
    """Decide whether scores come with the reply or need a second call."""
    if payload.ai_analysis is not None:
        return InlineAnalysis(payload.ai_analysis)
    return DeferredAnalysis(payload.transcription or response_text)


def scores_from_analysis(analysis: AnalysisPayload) -> Optional[ScoreSnapshot]:
    """Scores carried by an analysis, or None when it has none."""
    if analysis.scores is not None:
        s = analysis.scores
        return ScoreSnapshot.from_sub_scores(s.clarity, s.relevance, s.depth, s.structure)
    if analysis.overall_score:
        return ScoreSnapshot(
            communication=int(analysis.communication_score or 70),
            technical=int(analysis.technical_score or 70),
            problem_solving=int(analysis.problem_solving_score or 70),
            confidence=int(analysis.confidence_score or 70),
            overall=int(analysis.overall_score),
        )
    return None


def parse_payload(model: type, data: Dict[str, Any], what: str):
    """
    Validate `data` against `model`.

    Raises:
        ValueError: if the backend reply does not fit the schema
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error(f"Malformed {what} reply: {e}")
        raise ValueError(f"Malformed {what} reply from backend") from e
