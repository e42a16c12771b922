"""
Where the interview goes after an answer has been accepted.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from .models import InterviewSession, FollowUpState


class TransitionKind(str, Enum):
    ADVANCE_FOLLOW_UP = "advance_follow_up"
    ADVANCE_MAIN = "advance_main"
    ENTER_FOLLOW_UP = "enter_follow_up"
    FINALIZE = "finalize"


@dataclass(frozen=True)
class Transition:
    kind: TransitionKind
    next_question_index: Optional[int] = None
    follow_up_questions: Tuple[str, ...] = ()


def is_valid_question_index(index: Optional[int], question_count: int) -> bool:
    return isinstance(index, int) and not isinstance(index, bool) and 0 <= index < question_count


def _advance_or_finalize(next_question_index: Optional[int],
                         current_question_index: int,
                         question_count: int) -> Transition:
    if is_valid_question_index(next_question_index, question_count):
        return Transition(TransitionKind.ADVANCE_MAIN, next_question_index=next_question_index)
    if current_question_index >= question_count - 1:
        return Transition(TransitionKind.FINALIZE)
    return Transition(TransitionKind.ADVANCE_MAIN, next_question_index=current_question_index + 1)


def decide_transition(is_follow_up_mode: bool,
                      current_follow_up_index: int,
                      follow_up_count: int,
                      returned_follow_ups: Sequence[str],
                      next_question_index: Optional[int],
                      current_question_index: int,
                      question_count: int) -> Transition:
    """
    Pick exactly one transition for a submitted answer.

    In follow-up mode the follow-up list is the one entered with; follow-ups
    returned by a follow-up submit are not considered. In main mode, returned
    follow-ups always win over `next_question_index`.
    """
    if is_follow_up_mode:
        if current_follow_up_index < follow_up_count - 1:
            return Transition(TransitionKind.ADVANCE_FOLLOW_UP)
        return _advance_or_finalize(next_question_index, current_question_index, question_count)

    if returned_follow_ups:
        return Transition(TransitionKind.ENTER_FOLLOW_UP, follow_up_questions=tuple(returned_follow_ups))
    return _advance_or_finalize(next_question_index, current_question_index, question_count)


def decide_for_session(session: InterviewSession,
                       follow_up: FollowUpState,
                       returned_follow_ups: Sequence[str],
                       next_question_index: Optional[int]) -> Transition:
    return decide_transition(
        is_follow_up_mode=follow_up.is_follow_up_mode,
        current_follow_up_index=follow_up.current_follow_up_index,
        follow_up_count=len(follow_up.follow_up_questions),
        returned_follow_ups=returned_follow_ups,
        next_question_index=next_question_index,
        current_question_index=session.current_question_index,
        question_count=session.question_count,
    )
