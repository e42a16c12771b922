"""
User-facing messages.

Kept apart from the controller so wording can change without touching flow
logic.
"""


class SessionMessages:
    """Collection of all messages shown to the candidate."""

    NO_RESPONSE = "No response recorded. Please speak your answer or type manually."
    SUBMIT_FAILED = "Failed to submit response"
    ASSESSMENT_FAILED = "Failed to generate final assessment"
    MICROPHONE_REQUIRED = (
        "Microphone permission is required for speech recognition. Please allow microphone access."
    )
    SPEECH_UNSUPPORTED = (
        "Speech recognition is not supported on this system. "
        "Check the speech service credentials and try again."
    )
    SECURITY_PAUSED = "Security violation detected. Interview paused."
    SECURITY_TERMINATING = (
        "Too many security violations. The interview will end and you will be redirected."
    )
    TRANSCRIPT_LOCKED = "Stop recording before editing your answer."

    @staticmethod
    def load_failed(reason: str) -> str:
        return f"Failed to load interview: {reason}"

    @staticmethod
    def start_failed(reason: str) -> str:
        return f"Failed to start interview: {reason}"

    @staticmethod
    def camera_failed(reason: str) -> str:
        return f"Failed to access camera: {reason}"

    @staticmethod
    def recording_failed(reason: str) -> str:
        return f"Failed to start recording: {reason}"

    @staticmethod
    def recognition_error(reason: str) -> str:
        return f"Speech recognition error: {reason}"
