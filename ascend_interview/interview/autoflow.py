"""
Auto-flow countdown: submits the answer for the candidate if they don't.

Idle -> Armed     first voice after narration has finished
Armed -> Counting countdown seeded
Counting -> Fired countdown reached zero
any -> Idle       cleared (manual submit, transition, teardown)
"""
import logging
from enum import Enum

from ..config import COUNTDOWN_SECONDS

logger = logging.getLogger("autoflow")


class AutoFlowPhase(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    COUNTING = "counting"
    FIRED = "fired"


class AutoFlowTimer:
    """
    Countdown state for one prompt instance.

    The timer holds no clock of its own; the owner calls `tick()` once per
    second while the phase is COUNTING.
    """

    def __init__(self, countdown_seconds: int = COUNTDOWN_SECONDS):
        self.countdown_seconds = countdown_seconds
        self.auto_submit_in_progress = False
        self.reset()

    def reset(self):
        """Fresh state for a new prompt."""
        self.phase = AutoFlowPhase.IDLE
        self.remaining = self.countdown_seconds
        self.has_tts_finished = False
        self.voice_detected = False

    @property
    def is_countdown_active(self) -> bool:
        return self.phase == AutoFlowPhase.COUNTING

    def narration_started(self):
        self.has_tts_finished = False
        self.voice_detected = False

    def narration_finished(self):
        self.has_tts_finished = True

    def on_voice(self) -> bool:
        """
        Register detected speech.

        Returns:
            True if this is the first voice after narration and the timer armed
        """
        if not self.has_tts_finished or self.voice_detected:
            return False
        self.voice_detected = True
        return self.arm()

    def arm(self) -> bool:
        if self.phase != AutoFlowPhase.IDLE:
            logger.debug(f"Refusing to arm while {self.phase.value}")
            return False
        self.phase = AutoFlowPhase.ARMED
        return True

    def start_countdown(self) -> bool:
        if self.phase != AutoFlowPhase.ARMED:
            return False
        self.remaining = self.countdown_seconds
        self.phase = AutoFlowPhase.COUNTING
        logger.info(f"Countdown started: {self.remaining}s")
        return True

    def tick(self) -> bool:
        """
        Advance the countdown by one second.

        Returns:
            True exactly when the countdown fires
        """
        if self.phase != AutoFlowPhase.COUNTING:
            return False
        self.remaining = max(0, self.remaining - 1)
        if self.remaining == 0:
            self.phase = AutoFlowPhase.FIRED
            logger.info("Countdown expired")
            return True
        return False

    def clear(self):
        """Cancel any countdown. Voice detection is kept, so the same prompt cannot re-arm."""
        if self.phase != AutoFlowPhase.IDLE:
            logger.debug(f"Countdown cleared from {self.phase.value} at {self.remaining}s")
        self.phase = AutoFlowPhase.IDLE
        self.remaining = self.countdown_seconds

    def begin_auto_submit(self) -> bool:
        """Take the auto-submit lock; False if an auto-submit is already running."""
        if self.auto_submit_in_progress:
            return False
        self.auto_submit_in_progress = True
        return True

    def end_auto_submit(self):
        self.auto_submit_in_progress = False
