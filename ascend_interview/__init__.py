"""
Ascend Interview: terminal client for Ascend Skills AI mock interviews.

Runs an interview session against the Ascend backend: narrated questions,
live speech-to-text answers, auto-submission, follow-up questions, proctoring,
and the final assessment.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.controller import InterviewController
from .interview.models import SessionOutcome, ScoreSnapshot
from .interview.report import FinalReport

__all__ = ["InterviewController", "SessionOutcome", "ScoreSnapshot", "FinalReport"]
