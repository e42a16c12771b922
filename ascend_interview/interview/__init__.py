"""Interview session components.

This module contains the business logic of an interview session: the
controller, its state models, the transition and auto-flow rules, proctoring,
and the services that talk to the backend.
"""

# Core controller class
from .controller import InterviewController, CancellationToken

# Data models
from .models import (
    Question, InterviewSession, FollowUpState, TranscriptionBuffer,
    ScoreSnapshot, ErrorKind, ErrorNotice, SessionStatus, SessionOutcome
)

# Backend reply schemas
from .schemas import (
    SessionPayload, SubmitPayload, AnalysisPayload, SecurityStatus, AssessmentPayload,
    InlineAnalysis, DeferredAnalysis, AnalysisResult, resolve_analysis, scores_from_analysis
)

# Flow rules
from .transitions import TransitionKind, Transition, decide_transition
from .autoflow import AutoFlowTimer, AutoFlowPhase
from .security import SecurityMonitor, InputEvent, InputEventType

# Service classes
from .services import (
    SessionBootstrapper, NarrationService, SpeechCaptureService,
    FrameMonitor, ResponseSubmitter
)

# Report
from .report import FinalReport, format_report

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics, EventType, SessionEvent
)

__all__ = [
    # Controller
    "InterviewController", "CancellationToken",

    # Data models
    "Question", "InterviewSession", "FollowUpState", "TranscriptionBuffer",
    "ScoreSnapshot", "ErrorKind", "ErrorNotice", "SessionStatus", "SessionOutcome",

    # Schemas
    "SessionPayload", "SubmitPayload", "AnalysisPayload", "SecurityStatus", "AssessmentPayload",
    "InlineAnalysis", "DeferredAnalysis", "AnalysisResult", "resolve_analysis", "scores_from_analysis",

    # Flow rules
    "TransitionKind", "Transition", "decide_transition",
    "AutoFlowTimer", "AutoFlowPhase",
    "SecurityMonitor", "InputEvent", "InputEventType",

    # Services
    "SessionBootstrapper", "NarrationService", "SpeechCaptureService",
    "FrameMonitor", "ResponseSubmitter",

    # Report
    "FinalReport", "format_report",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics", "EventType", "SessionEvent",
]
