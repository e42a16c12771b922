"""
Final interview report and its text rendering.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List

from .schemas import AssessmentPayload

logger = logging.getLogger("report")


def score_band(score: float) -> str:
    """Qualitative band for a 0-100 score."""
    if score >= 80:
        return "Excellent"
    if score >= 70:
        return "Good"
    if score >= 60:
        return "Fair"
    return "Needs work"


@dataclass
class FinalReport:
    """Backend-generated assessment of the whole session."""
    overall_score: float = 0.0
    breakdown: Dict[str, float] = field(default_factory=dict)
    strengths: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    feedback: str = ""
    metrics: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: AssessmentPayload) -> 'FinalReport':
        b = payload.breakdown
        return cls(
            overall_score=payload.overall_score,
            breakdown={
                "communication": b.communication,
                "technical": b.technical,
                "problemSolving": b.problem_solving,
                "confidence": b.confidence,
            },
            strengths=list(payload.strengths),
            improvements=list(payload.improvements),
            recommendations=list(payload.recommendations),
            feedback=payload.feedback,
            metrics=dict(payload.metrics),
        )

    @property
    def band(self) -> str:
        return score_band(self.overall_score)


_BREAKDOWN_LABELS = (
    ("communication", "Communication"),
    ("technical", "Technical"),
    ("problemSolving", "Problem solving"),
    ("confidence", "Confidence"),
)


def _bullets(title: str, items: List[str]) -> List[str]:
    if not items:
        return []
    return [f"{title}:"] + [f"  • {item}" for item in items]


def format_report(report: FinalReport, width: int = 50) -> str:
    """Render the report for a terminal."""
    lines = [
        "=" * width,
        "🎯 INTERVIEW COMPLETE",
        "=" * width,
        f"🔢 Overall Score: {report.overall_score:.0f}% ({report.band})",
    ]

    for key, label in _BREAKDOWN_LABELS:
        if key in report.breakdown:
            score = report.breakdown[key]
            lines.append(f"   {label:<16} {score:>5.0f}%  {score_band(score)}")

    lines.extend(_bullets("💪 Strengths", report.strengths))
    lines.extend(_bullets("📈 Improvements", report.improvements))
    lines.extend(_bullets("🧭 Recommendations", report.recommendations))

    if report.feedback:
        lines.append(f"📝 Feedback: {report.feedback}")

    if report.metrics:
        completion = report.metrics.get("completionRate")
        violations = report.metrics.get("totalViolations")
        if completion is not None:
            lines.append(f"✅ Completion rate: {completion}%")
        if violations:
            lines.append(f"⚠️  Proctoring violations: {violations}")

    return "\n".join(lines)
