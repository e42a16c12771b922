"""
Ascend Interview Configuration
==============================

This file contains ALL configuration for the Ascend interview client.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the interview client
# =============================================================================

# Backend
API_BASE_URL = "http://localhost:5000/api"
AUTH_TOKEN = None  # Normally supplied through ASCEND_AUTH_TOKEN

# New interview defaults (used when no interview id is given)
INTERVIEW_TYPE = "behavioral"
INTERVIEW_DIFFICULTY = "medium"
QUESTION_COUNT = 5

# Auto-flow pacing
COUNTDOWN_SECONDS = 30
TRANSITION_DELAY_SECONDS = 2.0
MONITOR_INTERVAL_SECONDS = 5.0

# Speech settings
ENABLE_TTS = True
LANGUAGE_CODE = "en-US"
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Camera
CAMERA_INDEX = 0

# Proctoring
SECURITY_LEVEL = "standard"  # Options: off, standard, strict

# Logging
LOG_FILE = "./_interview/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# SECURITY POLICY
# =============================================================================

class SecurityLevel(str, Enum):
    """How aggressively the session discourages capture of its content."""
    OFF = "off"
    STANDARD = "standard"
    STRICT = "strict"


@dataclass
class SecurityPolicy:
    """Which input events are intercepted and which of them count as violations."""
    level: SecurityLevel = SecurityLevel.STANDARD

    # Interception flags
    block_context_menu: bool = True
    block_shortcuts: bool = True
    block_selection: bool = True
    block_drag: bool = True

    # Selection and drag are prevented silently unless this is set
    record_selection_violations: bool = False

    max_violations: int = 3
    redirect_delay_seconds: float = 3.0

    @classmethod
    def from_preset(cls, preset_name: str) -> 'SecurityPolicy':
        """Create a policy from a named level."""
        presets = {
            "off": cls(
                level=SecurityLevel.OFF, block_context_menu=False,
                block_shortcuts=False, block_selection=False, block_drag=False
            ),
            "standard": cls(level=SecurityLevel.STANDARD),
            "strict": cls(
                level=SecurityLevel.STRICT, record_selection_violations=True
            ),
        }
        if preset_name not in presets:
            raise ValueError(f"Unknown security level: {preset_name!r}")
        return presets[preset_name]


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Navigation targets
LOGIN_ROUTE = "/auth/login"
INTERVIEW_ROUTE = "/interview"

# HTTP
HTTP_TIMEOUT = 30
NON_CRITICAL_RETRY_ATTEMPTS = 3
RETRY_WAIT_MIN_SECONDS = 0.5
RETRY_WAIT_MAX_SECONDS = 4.0

# Frames
FRAME_WIDTH = 640
FRAME_HEIGHT = 480
JPEG_QUALITY = 80

# Microphone
MIC_SAMPLE_RATE = 16000
MIC_CHUNK_FRAMES = 1600

# Auto-submit
RECORDING_STOP_TIMEOUT_SECONDS = 2.0
RECORDING_STOP_POLL_SECONDS = 0.05


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    api_base_url: str = API_BASE_URL
    auth_token: Optional[str] = AUTH_TOKEN
    interview_type: str = INTERVIEW_TYPE
    difficulty: str = INTERVIEW_DIFFICULTY
    question_count: int = QUESTION_COUNT
    countdown_seconds: int = COUNTDOWN_SECONDS
    transition_delay: float = TRANSITION_DELAY_SECONDS
    monitor_interval: float = MONITOR_INTERVAL_SECONDS
    enable_tts: bool = ENABLE_TTS
    language_code: str = LANGUAGE_CODE
    google_application_credentials: Optional[str] = GOOGLE_APPLICATION_CREDENTIALS
    camera_index: int = CAMERA_INDEX
    security_level: str = SECURITY_LEVEL
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    def get_security_policy(self) -> SecurityPolicy:
        """Get the proctoring policy for the configured level."""
        return SecurityPolicy.from_preset(self.security_level)

    def interview_defaults(self) -> dict:
        """Body sent when asking the backend for a new interview."""
        return {
            "type": self.interview_type,
            "difficulty": self.difficulty,
            "questionCount": self.question_count,
        }


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def get_config() -> Config:
    """Load configuration, letting environment variables override the settings above."""
    security_level = os.getenv("ASCEND_SECURITY_LEVEL") or SECURITY_LEVEL
    if security_level not in {level.value for level in SecurityLevel}:
        raise ValueError(f"ASCEND_SECURITY_LEVEL must be one of off/standard/strict, got {security_level!r}")

    question_count = _env_int("ASCEND_QUESTION_COUNT", QUESTION_COUNT)
    if question_count <= 0:
        raise ValueError("ASCEND_QUESTION_COUNT must be positive")

    countdown_seconds = _env_int("ASCEND_COUNTDOWN_SECONDS", COUNTDOWN_SECONDS)
    if countdown_seconds <= 0:
        raise ValueError("ASCEND_COUNTDOWN_SECONDS must be positive")

    return Config(
        api_base_url=(os.getenv("ASCEND_API_URL") or API_BASE_URL).rstrip("/"),
        auth_token=os.getenv("ASCEND_AUTH_TOKEN") or AUTH_TOKEN,
        interview_type=os.getenv("ASCEND_INTERVIEW_TYPE") or INTERVIEW_TYPE,
        difficulty=os.getenv("ASCEND_DIFFICULTY") or INTERVIEW_DIFFICULTY,
        question_count=question_count,
        countdown_seconds=countdown_seconds,
        language_code=os.getenv("ASCEND_LANGUAGE") or LANGUAGE_CODE,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        camera_index=_env_int("ASCEND_CAMERA_INDEX", CAMERA_INDEX),
        security_level=security_level,
        log_file=os.getenv("ASCEND_LOG_FILE") or LOG_FILE,
    )
