"""Countdown state machine."""

from ascend_interview.interview.autoflow import AutoFlowPhase, AutoFlowTimer


def _armed_after_narration(seconds: int = 3) -> AutoFlowTimer:
    timer = AutoFlowTimer(seconds)
    timer.narration_started()
    timer.narration_finished()
    return timer


class TestArming:
    def test_voice_before_narration_finished_is_ignored(self) -> None:
        timer = AutoFlowTimer(3)
        timer.narration_started()
        assert timer.on_voice() is False
        assert timer.phase == AutoFlowPhase.IDLE

    def test_first_voice_arms(self) -> None:
        timer = _armed_after_narration()
        assert timer.on_voice() is True
        assert timer.phase == AutoFlowPhase.ARMED

    def test_second_voice_does_not_rearm(self) -> None:
        timer = _armed_after_narration()
        timer.on_voice()
        timer.start_countdown()
        assert timer.on_voice() is False
        assert timer.phase == AutoFlowPhase.COUNTING

    def test_cleared_timer_cannot_rearm_for_same_prompt(self) -> None:
        timer = _armed_after_narration()
        timer.on_voice()
        timer.start_countdown()
        timer.clear()
        assert timer.phase == AutoFlowPhase.IDLE
        assert timer.on_voice() is False

    def test_reset_allows_arming_for_next_prompt(self) -> None:
        timer = _armed_after_narration()
        timer.on_voice()
        timer.reset()
        timer.narration_finished()
        assert timer.on_voice() is True

    def test_countdown_requires_armed(self) -> None:
        timer = AutoFlowTimer(3)
        assert timer.start_countdown() is False
        assert not timer.is_countdown_active


class TestCountdown:
    def test_fires_exactly_once(self) -> None:
        timer = _armed_after_narration(3)
        timer.on_voice()
        timer.start_countdown()
        fired = [timer.tick() for _ in range(5)]
        assert fired == [False, False, True, False, False]
        assert timer.phase == AutoFlowPhase.FIRED
        assert timer.remaining == 0

    def test_clear_stops_countdown_midway(self) -> None:
        timer = _armed_after_narration(30)
        timer.on_voice()
        timer.start_countdown()
        for _ in range(10):
            timer.tick()
        assert timer.remaining == 20
        timer.clear()
        assert timer.tick() is False
        assert timer.remaining == 30

    def test_auto_submit_lock(self) -> None:
        timer = AutoFlowTimer(3)
        assert timer.begin_auto_submit() is True
        assert timer.begin_auto_submit() is False
        timer.end_auto_submit()
        assert timer.begin_auto_submit() is True
