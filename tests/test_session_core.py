from __future__ import annotations

import pytest

import cognitive_bubbles.session as session_mod
from cognitive_bubbles.expressions import MEDIUM, Expression, Operator, Round, TierBands
from cognitive_bubbles.session import (
    BubblesConfig,
    BubblesSession,
    HistoryEntry,
    Outcome,
    SessionState,
)


def _fixed_round() -> Round:
    # Values 5, 9, 2 -> ascending order is [2, 0, 1].
    return Round(
        expressions=(
            Expression.binary(2, Operator.ADD, 3, 5),
            Expression.binary(3, Operator.MUL, 3, 9),
            Expression.binary(4, Operator.DIV, 2, 2),
        ),
        correct_order=(2, 0, 1),
        tier=MEDIUM,
    )


@pytest.fixture
def fixed_rounds(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_build_rounds(generator, total_rounds, bands=None):  # type: ignore[no-untyped-def]
        return tuple(_fixed_round() for _ in range(total_rounds))

    monkeypatch.setattr(session_mod, "build_rounds", fake_build_rounds)


def _running(config: BubblesConfig | None = None, seed: int = 11) -> BubblesSession:
    s = BubblesSession(config or BubblesConfig(total_rounds=3, round_seconds=10), seed=seed)
    s.start()
    return s


def test_bootstrap_state() -> None:
    s = BubblesSession(BubblesConfig(total_rounds=4, round_seconds=8), seed=1)
    assert s.state is SessionState.IDLE
    assert len(s.rounds) == 4
    assert s.round_index == 0
    assert s.picks == ()
    assert s.history == ()
    assert s.seconds_left == 8
    assert s.generation == 1
    assert not s.is_finished


def test_correct_picks_are_judged_correct(fixed_rounds: None) -> None:
    s = _running()
    for i in (2, 0, 1):
        s.pick(i)
    assert s.history[-1].is_correct
    assert s.history[-1].picks == (2, 0, 1)
    assert s.history[-1].outcome is Outcome.CORRECT


def test_wrong_order_is_judged_incorrect(fixed_rounds: None) -> None:
    s = _running()
    for i in (2, 1, 0):
        s.pick(i)
    entry = s.history[-1]
    assert not entry.is_correct
    assert not entry.timed_out
    assert entry.outcome is Outcome.INCORRECT
    assert s.incorrect == 1


def test_partial_picks_then_timeout_is_timed_out_not_correct(fixed_rounds: None) -> None:
    s = _running()
    s.pick(2)
    s.pick(0)
    for _ in range(10):
        s.tick()
    entry = s.history[-1]
    assert entry.picks == (2, 0)
    assert entry.timed_out
    assert not entry.is_correct
    assert entry.outcome is Outcome.TIMED_OUT
    assert entry.time_used_s == 10


def test_deselect_removes_pick_without_finalizing() -> None:
    s = _running()
    s.pick(1)
    s.pick(1)
    assert s.picks == ()

    s.pick(0)
    s.pick(1)
    s.pick(0)
    assert s.picks == (1,)
    assert s.history == ()
    assert s.round_index == 0


def test_invalid_picks_are_ignored() -> None:
    s = BubblesSession(BubblesConfig(total_rounds=3), seed=3)
    s.pick(0)  # not running
    assert s.picks == ()

    s.start()
    for bad in (3, -1, True, "1", None):
        s.pick(bad)  # type: ignore[arg-type]
    assert s.picks == ()


def test_third_pick_finalizes_synchronously_and_resets_round() -> None:
    s = _running()
    for _ in range(3):
        s.tick()
    for i in (0, 1, 2):
        s.pick(i)
    assert len(s.history) == 1
    assert s.history[0].time_used_s == 3
    assert s.round_index == 1
    assert s.picks == ()
    assert s.seconds_left == 10
    assert s.state is SessionState.RUNNING


def test_reentrant_finalization_during_notification_is_absorbed() -> None:
    s = _running()
    seen: list[Outcome] = []

    def racing_listener(outcome: Outcome, entry: HistoryEntry) -> None:
        seen.append(outcome)
        assert s.state is SessionState.FINALIZING
        # Timer expiry arriving in the same instant as the third pick.
        s.finalize_round(timed_out=True)
        s.tick()

    s.add_listener(racing_listener)
    s.pick(0)
    s.pick(1)
    s.pick(2)

    assert len(s.history) == 1
    assert len(seen) == 1
    assert not s.history[0].timed_out
    assert s.round_index == 1
    assert s.seconds_left == 10
    assert s.state is SessionState.RUNNING


def test_stale_trigger_for_closed_round_is_ignored() -> None:
    s = _running()
    closing = s.round_index
    s.pick(0)
    s.pick(1)
    s.pick(2)
    s.finalize_round(timed_out=True, round_index=closing)
    assert len(s.history) == 1
    assert s.round_index == 1


def test_expiry_then_pick_does_not_double_finalize() -> None:
    s = _running()
    for _ in range(9):
        s.tick()
    s.pick(0)
    s.pick(1)
    s.tick()  # expiry wins
    s.pick(2)  # lands on the next round
    assert len(s.history) == 1
    assert s.history[0].timed_out
    assert s.history[0].picks == (0, 1)
    assert s.picks == (2,)


def test_pause_keeps_remaining_time_and_blocks_input() -> None:
    s = _running()
    for _ in range(3):
        s.tick()
    s.pause()
    assert s.state is SessionState.PAUSED
    s.tick()
    s.pick(0)
    assert s.seconds_left == 7
    assert s.picks == ()

    s.toggle_running()
    assert s.state is SessionState.RUNNING
    assert s.seconds_left == 7
    s.toggle_running()
    assert s.state is SessionState.PAUSED


def test_restart_mid_round_discards_everything_and_regenerates() -> None:
    s = _running(BubblesConfig(total_rounds=15, round_seconds=10), seed=99)
    before = [e.value for r in s.rounds for e in r.expressions]
    s.pick(1)
    for _ in range(4):
        s.tick()
    assert s.seconds_left == 6

    s.restart()
    assert s.picks == ()
    assert s.seconds_left == 10
    assert s.history == ()
    assert s.round_index == 0
    assert s.state is SessionState.IDLE
    assert s.generation == 2
    after = [e.value for r in s.rounds for e in r.expressions]
    assert after != before


def test_listener_failure_does_not_block_advancement() -> None:
    s = _running()
    calls: list[int] = []

    def broken(outcome: Outcome, entry: HistoryEntry) -> None:
        raise RuntimeError("speaker unplugged")

    s.add_listener(broken)
    s.add_listener(lambda outcome, entry: calls.append(entry.round_index))
    for i in (0, 1, 2):
        s.pick(i)
    assert s.round_index == 1
    assert calls == [0]

    s.remove_listener(broken)
    for i in (0, 1, 2):
        s.pick(i)
    assert calls == [0, 1]


def test_finished_session_ignores_commands() -> None:
    s = _running(BubblesConfig(total_rounds=1, round_seconds=5))
    for i in (0, 1, 2):
        s.pick(i)
    assert s.state is SessionState.FINISHED
    assert s.is_finished
    assert s.current_round is None
    assert s.seconds_left == 0

    s.start()
    s.tick()
    s.pick(0)
    s.finalize_round(timed_out=True)
    assert s.state is SessionState.FINISHED
    assert len(s.history) == 1


def test_accuracy_rounds_half_up() -> None:
    s = _running(BubblesConfig(total_rounds=8, round_seconds=2))
    rnd = s.current_round
    assert rnd is not None
    for i in rnd.correct_order:
        s.pick(i)
    assert s.score == 1
    assert s.accuracy_pct == 13  # 12.5 -> 13


def test_snapshot_reports_ranks_and_totals() -> None:
    s = _running(BubblesConfig(total_rounds=3, round_seconds=10))
    s.pick(2)
    s.pick(0)
    snap = s.snapshot()
    assert snap.state is SessionState.RUNNING
    assert snap.running
    assert snap.round_number == 1
    assert [b.index for b in snap.bubbles] == [0, 1, 2]
    assert [b.rank for b in snap.bubbles] == [2, None, 1]
    assert snap.picks == (2, 0)
    assert snap.time_available_s == 30
    assert "Set 1 / 3" in s.status_text()


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        BubblesConfig(total_rounds=0)
    with pytest.raises(ValueError):
        BubblesConfig(round_seconds=0)
    with pytest.raises(ValueError):
        BubblesConfig(total_rounds=10, bands=TierBands(easy_rounds=6, medium_rounds=6))
