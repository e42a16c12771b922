"""
Capture deterrence for the interview screen.

Front-ends translate their own input events into `InputEvent`s and ask the
monitor what to do with them. This is a deterrent, not a security boundary.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple

from ..config import SecurityPolicy, SecurityLevel

logger = logging.getLogger("security")


class InputEventType(str, Enum):
    CONTEXT_MENU = "contextmenu"
    KEY_DOWN = "keydown"
    KEY_PRESS = "keypress"
    SELECT_START = "selectstart"
    DRAG_START = "dragstart"


@dataclass(frozen=True)
class InputEvent:
    type: InputEventType
    key: str = ""
    key_code: Optional[int] = None
    ctrl: bool = False
    shift: bool = False
    meta: bool = False
    alt: bool = False

    @property
    def modifiers(self) -> FrozenSet[str]:
        pressed = {"ctrl": self.ctrl, "shift": self.shift, "meta": self.meta, "alt": self.alt}
        return frozenset(name for name, down in pressed.items() if down)


# (required modifiers, key); keys are matched case-sensitively
BLOCKED_SHORTCUTS: Tuple[Tuple[FrozenSet[str], str], ...] = (
    (frozenset({"ctrl"}), "PrintScreen"),
    (frozenset({"ctrl", "shift"}), "I"),
    (frozenset({"ctrl", "shift"}), "C"),
    (frozenset({"ctrl", "shift"}), "J"),
    (frozenset(), "F12"),
    (frozenset({"meta", "shift"}), "3"),
    (frozenset({"meta", "shift"}), "4"),
    (frozenset({"meta", "shift"}), "5"),
    (frozenset({"meta"}), "I"),
    (frozenset({"meta"}), "J"),
    (frozenset({"meta"}), "C"),
    (frozenset({"ctrl"}), "u"),
    (frozenset({"ctrl"}), "s"),
    (frozenset({"ctrl"}), "p"),
    (frozenset({"meta"}), "S"),
    (frozenset({"meta"}), "P"),
    (frozenset({"meta"}), "U"),
)

PRINT_SCREEN_KEY_CODE = 44


def is_blocked_shortcut(event: InputEvent) -> bool:
    pressed = event.modifiers
    return any(required <= pressed and event.key == key for required, key in BLOCKED_SHORTCUTS)


@dataclass(frozen=True)
class SecurityDecision:
    prevented: bool = False
    violation: Optional[str] = None
    show_warning: bool = False


class SecurityMonitor:
    """Applies a `SecurityPolicy` to input events and keeps the violation list."""

    def __init__(self, policy: Optional[SecurityPolicy] = None):
        self.policy = policy or SecurityPolicy()
        self.violations: List[str] = []
        self.warning_visible = False
        self._redirect_scheduled = False

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    @property
    def is_secure(self) -> bool:
        return not self.violations

    @property
    def threshold_reached(self) -> bool:
        return self.violation_count >= self.policy.max_violations

    def handle(self, event: InputEvent) -> SecurityDecision:
        """Decide whether to prevent `event` and record any violation it represents."""
        if self.policy.level == SecurityLevel.OFF:
            return SecurityDecision()

        policy = self.policy
        if event.type == InputEventType.CONTEXT_MENU and policy.block_context_menu:
            return self._violation("Right-click context menu attempted", show_warning=False)

        if event.type == InputEventType.KEY_DOWN and policy.block_shortcuts and is_blocked_shortcut(event):
            return self._violation(f"Screenshot shortcut attempted: {event.key}", show_warning=True)

        if event.type == InputEventType.KEY_PRESS and policy.block_shortcuts:
            if event.key == "PrintScreen" or event.key_code == PRINT_SCREEN_KEY_CODE:
                return self._violation("PrintScreen key pressed", show_warning=True)

        if event.type == InputEventType.SELECT_START and policy.block_selection:
            return self._silent_or_violation("Text selection attempted")

        if event.type == InputEventType.DRAG_START and policy.block_drag:
            return self._silent_or_violation("Drag attempted")

        return SecurityDecision()

    def _silent_or_violation(self, description: str) -> SecurityDecision:
        if self.policy.record_selection_violations:
            return self._violation(description, show_warning=False)
        return SecurityDecision(prevented=True)

    def _violation(self, description: str, show_warning: bool) -> SecurityDecision:
        self.violations.append(description)
        logger.warning(f"Security violation {self.violation_count}: {description}")
        if show_warning or self.threshold_reached:
            self.warning_visible = True
        return SecurityDecision(prevented=True, violation=description, show_warning=self.warning_visible)

    def take_redirect(self) -> bool:
        """True exactly once, when the threshold has been reached and nobody scheduled the redirect yet."""
        if self.threshold_reached and not self._redirect_scheduled:
            self._redirect_scheduled = True
            return True
        return False
