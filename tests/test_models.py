"""Transcript buffer and follow-up state."""

import pytest

from ascend_interview.errors import TranscriptLockedError
from ascend_interview.interview.models import ErrorKind, ErrorNotice, FollowUpState, TranscriptionBuffer


class TestTranscriptionBuffer:
    def test_interim_then_final(self) -> None:
        buffer = TranscriptionBuffer()
        assert buffer.apply_results([("I led", False)])
        assert buffer.live_text == "I led"
        assert buffer.finalized_text == ""
        buffer.apply_results([("I led the team", True)])
        assert buffer.live_text == "I led the team"
        buffer.apply_results([("through a migration", False)])
        assert buffer.live_text == "I led the team through a migration"

    def test_finals_accumulate(self) -> None:
        buffer = TranscriptionBuffer()
        buffer.apply_results([("First part.", True)])
        buffer.apply_results([("Second part.", True)])
        assert buffer.response_text == "First part. Second part."

    def test_blank_results_carry_no_speech(self) -> None:
        buffer = TranscriptionBuffer()
        assert buffer.apply_results([("  ", False)]) is False
        assert buffer.is_empty

    def test_edit_wins_over_finalized_text(self) -> None:
        buffer = TranscriptionBuffer()
        buffer.apply_results([("recognised", True)])
        buffer.edit("corrected", is_recording=False)
        assert buffer.response_text == "corrected"

    def test_edit_rejected_while_recording(self) -> None:
        buffer = TranscriptionBuffer()
        with pytest.raises(TranscriptLockedError):
            buffer.edit("text", is_recording=True)

    def test_clearing_edit_falls_back_to_finalized(self) -> None:
        buffer = TranscriptionBuffer()
        buffer.apply_results([("spoken", True)])
        buffer.edit("   ", is_recording=False)
        assert buffer.response_text == "spoken"
        assert not buffer.is_empty


class TestFollowUpState:
    def test_prompt_only_with_valid_index(self) -> None:
        state = FollowUpState()
        assert state.current_prompt is None
        state.enter(["F1"])
        assert state.current_prompt == "F1"
        state.advance()
        assert state.current_prompt is None
        state.clear()
        assert not state.is_follow_up_mode


def test_blocking_notices() -> None:
    assert ErrorNotice(ErrorKind.SETUP, "x").blocking
    assert ErrorNotice(ErrorKind.SECURITY, "x").blocking
    assert not ErrorNotice(ErrorKind.TRANSIENT, "x").blocking
