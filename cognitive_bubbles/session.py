"""Round session controller for Cognitive Bubbles.

The session owns the generated rounds, the per-round countdown, the player's
picks for the active round and the append-only history of completed rounds.
It is driven by two kinds of input:

* ``tick()`` once per countdown unit (see ``scheduler.IntervalTicker``), and
* discrete commands from the input layer: ``start``, ``pause``, ``restart``
  and ``pick``.

Either a third pick or the countdown reaching zero closes the active round.
A latch held for the whole of ``finalize_round`` makes sure a round is closed
exactly once, whichever trigger arrives first.  Invalid commands are ignored
rather than raised so stray input events are harmless.

No wall-clock time is read here; countdown values are whole ticks.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from .cognitive_core import SeededRng, new_seed, round_half_up
from .expressions import ROUND_SIZE, ExpressionGenerator, Round, TierBands, build_rounds

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    IDLE = "idle"
    PAUSED = "paused"
    RUNNING = "running"
    FINALIZING = "finalizing"
    FINISHED = "finished"


class Outcome(StrEnum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    round_index: int
    picks: tuple[int, ...]
    is_correct: bool
    timed_out: bool
    time_used_s: int

    @property
    def outcome(self) -> Outcome:
        if self.is_correct:
            return Outcome.CORRECT
        if self.timed_out:
            return Outcome.TIMED_OUT
        return Outcome.INCORRECT


@dataclass(frozen=True, slots=True)
class BubblesConfig:
    total_rounds: int = 15
    round_seconds: int = 10
    bands: TierBands | None = None

    def __post_init__(self) -> None:
        if self.total_rounds < 1:
            raise ValueError("total_rounds must be >= 1")
        if self.round_seconds < 1:
            raise ValueError("round_seconds must be >= 1")
        if self.bands is not None and not self.bands.fits(self.total_rounds):
            raise ValueError("easy + medium bands exceed total_rounds")


@dataclass(frozen=True, slots=True)
class BubbleView:
    index: int
    display: str
    rank: int | None  # 1-based pick position, None if not picked


@dataclass(frozen=True, slots=True)
class SessionSnapshot:
    """View model for the presentation layer (pure data)."""

    state: SessionState
    round_number: int
    total_rounds: int
    bubbles: tuple[BubbleView, ...]
    picks: tuple[int, ...]
    seconds_left: int
    round_seconds: int
    running: bool
    finished: bool
    score: int
    incorrect: int
    timeouts: int
    accuracy_pct: int
    time_used_s: int
    time_available_s: int


OutcomeListener = Callable[[Outcome, HistoryEntry], None]


class BubblesSession:
    """Idle -> Running <-> Paused -> ... -> Finished, one round at a time."""

    def __init__(
        self,
        config: BubblesConfig | None = None,
        *,
        seed: int | None = None,
        rng: SeededRng | None = None,
    ) -> None:
        self._config = config or BubblesConfig()
        if rng is None:
            rng = SeededRng(new_seed() if seed is None else seed)
        self._rng = rng
        self._generator = ExpressionGenerator(rng=rng)
        self._listeners: list[OutcomeListener] = []

        self._rounds: tuple[Round, ...] = ()
        self._round_index = 0
        self._picks: list[int] = []
        self._history: list[HistoryEntry] = []
        self._seconds_left = self._config.round_seconds
        self._state = SessionState.IDLE
        self._finalizing = False
        self._generation = 0

        self.bootstrap()

    # -- Lifecycle -----------------------------------------------------------
    def bootstrap(self) -> None:
        """Regenerate every round and discard all progress."""

        self._rounds = build_rounds(self._generator, self._config.total_rounds, self._config.bands)
        self._round_index = 0
        self._picks = []
        self._history = []
        self._seconds_left = self._config.round_seconds
        self._state = SessionState.IDLE
        self._finalizing = False
        self._generation += 1
        logger.info(
            "bootstrapped %d rounds (generation %d, seed %d)",
            len(self._rounds),
            self._generation,
            self._rng.seed,
        )

    def restart(self) -> None:
        self.bootstrap()

    def start(self) -> None:
        if self._state not in (SessionState.IDLE, SessionState.PAUSED):
            return
        self._state = SessionState.RUNNING
        logger.info("running at round %d with %ds left", self._round_index + 1, self._seconds_left)

    def pause(self) -> None:
        if self._state is not SessionState.RUNNING:
            return
        self._state = SessionState.PAUSED
        logger.info("paused at round %d with %ds left", self._round_index + 1, self._seconds_left)

    def toggle_running(self) -> None:
        if self._state is SessionState.RUNNING:
            self.pause()
        else:
            self.start()

    # -- Inputs --------------------------------------------------------------
    def tick(self) -> None:
        if self.state is not SessionState.RUNNING:
            return
        self._seconds_left = max(0, self._seconds_left - 1)
        if self._seconds_left == 0:
            self.finalize_round(timed_out=True)

    def pick(self, index: int) -> None:
        if self.state is not SessionState.RUNNING:
            logger.debug("pick %r ignored in state %s", index, self.state)
            return
        if isinstance(index, bool) or not isinstance(index, int) or not (0 <= index < ROUND_SIZE):
            logger.debug("pick %r ignored: out of range", index)
            return
        if index in self._picks:
            self._picks.remove(index)
            return
        if len(self._picks) >= ROUND_SIZE:
            return

        self._picks.append(index)
        if len(self._picks) == ROUND_SIZE:
            self.finalize_round(timed_out=False)

    def finalize_round(self, timed_out: bool, *, round_index: int | None = None) -> None:
        """Close the active round once; repeated or stale triggers are absorbed."""

        if self._finalizing or self._state is SessionState.FINISHED:
            return
        if round_index is not None and round_index != self._round_index:
            return
        current = self.current_round
        if current is None:
            return

        self._finalizing = True
        try:
            picks = tuple(self._picks)
            is_correct = not timed_out and len(picks) == ROUND_SIZE and picks == current.correct_order
            duration = self._config.round_seconds
            used = min(duration, max(0, duration - self._seconds_left))

            entry = HistoryEntry(
                round_index=self._round_index,
                picks=picks,
                is_correct=is_correct,
                timed_out=bool(timed_out),
                time_used_s=used,
            )
            self._history.append(entry)
            self._round_index += 1
            self._picks = []

            if self._round_index < len(self._rounds):
                self._seconds_left = duration
            else:
                self._seconds_left = 0
                self._state = SessionState.FINISHED
                logger.info(
                    "run finished: %d/%d correct, %d timed out",
                    self.score,
                    len(self._rounds),
                    self.timeouts,
                )

            self._notify(entry)
        finally:
            self._finalizing = False

    # -- Notifications -------------------------------------------------------
    def add_listener(self, listener: OutcomeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: OutcomeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, entry: HistoryEntry) -> None:
        outcome = entry.outcome
        for listener in list(self._listeners):
            try:
                listener(outcome, entry)
            except Exception:
                logger.exception("outcome listener failed for round %d", entry.round_index + 1)

    # -- Views ---------------------------------------------------------------
    @property
    def config(self) -> BubblesConfig:
        return self._config

    @property
    def seed(self) -> int:
        return self._rng.seed

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def state(self) -> SessionState:
        if self._finalizing:
            return SessionState.FINALIZING
        return self._state

    @property
    def running(self) -> bool:
        return self.state is SessionState.RUNNING

    @property
    def is_finished(self) -> bool:
        return self._round_index >= len(self._rounds)

    @property
    def rounds(self) -> tuple[Round, ...]:
        return self._rounds

    @property
    def round_index(self) -> int:
        return self._round_index

    @property
    def current_round(self) -> Round | None:
        if self.is_finished:
            return None
        return self._rounds[self._round_index]

    @property
    def picks(self) -> tuple[int, ...]:
        return tuple(self._picks)

    @property
    def seconds_left(self) -> int:
        return self._seconds_left

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._history)

    @property
    def score(self) -> int:
        return sum(1 for h in self._history if h.is_correct)

    @property
    def incorrect(self) -> int:
        return sum(1 for h in self._history if not h.is_correct and not h.timed_out)

    @property
    def timeouts(self) -> int:
        return sum(1 for h in self._history if h.timed_out)

    @property
    def accuracy_pct(self) -> int:
        total = self._config.total_rounds
        return round_half_up(self.score / total * 100) if total else 0

    @property
    def time_used_s(self) -> int:
        return sum(h.time_used_s for h in self._history)

    @property
    def time_available_s(self) -> int:
        return self._config.total_rounds * self._config.round_seconds

    def snapshot(self) -> SessionSnapshot:
        current = self.current_round
        bubbles: tuple[BubbleView, ...] = ()
        if current is not None:
            bubbles = tuple(
                BubbleView(
                    index=i,
                    display=expr.display,
                    rank=(self._picks.index(i) + 1) if i in self._picks else None,
                )
                for i, expr in enumerate(current.expressions)
            )
        state = self.state
        return SessionSnapshot(
            state=state,
            round_number=min(self._round_index + 1, self._config.total_rounds),
            total_rounds=self._config.total_rounds,
            bubbles=bubbles,
            picks=self.picks,
            seconds_left=self._seconds_left,
            round_seconds=self._config.round_seconds,
            running=state is SessionState.RUNNING,
            finished=self.is_finished,
            score=self.score,
            incorrect=self.incorrect,
            timeouts=self.timeouts,
            accuracy_pct=self.accuracy_pct,
            time_used_s=self.time_used_s,
            time_available_s=self.time_available_s,
        )

    def status_text(self) -> str:
        if self.is_finished:
            return (
                f"Completed. Final score: {self.score} / {self._config.total_rounds} "
                f"(accuracy {self.accuracy_pct}%, incorrect {self.incorrect}, timed out {self.timeouts})"
            )
        state = self.state
        if state is SessionState.IDLE:
            return "Press Space to start."
        if state is SessionState.PAUSED:
            return f"Paused. Set {self._round_index + 1} / {self._config.total_rounds}. Press Space to resume."
        return (
            f"Set {self._round_index + 1} / {self._config.total_rounds}. "
            f"Time left: {self._seconds_left}s. Picked {len(self._picks)} of {ROUND_SIZE}."
        )
