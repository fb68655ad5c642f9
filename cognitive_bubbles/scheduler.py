from __future__ import annotations

import logging

from .clock import Clock
from .session import BubblesSession

logger = logging.getLogger(__name__)


class IntervalTicker:
    """Turns clock readings into ``session.tick()`` calls.

    Call :meth:`update` once per frame.  The first tick of a round fires one
    full interval after the round became active; pausing drops the partial
    interval but keeps the session's countdown.  A restart (new generation)
    or a round change re-anchors, so ticks scheduled for earlier rounds never
    land on later ones.
    """

    def __init__(self, session: BubblesSession, *, clock: Clock, interval_s: float = 1.0) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self._session = session
        self._clock = clock
        self._interval_s = float(interval_s)
        self._anchor_s: float | None = None
        self._key: tuple[int, int] | None = None

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def reset(self) -> None:
        self._anchor_s = None
        self._key = None

    def update(self) -> int:
        session = self._session
        if not session.running:
            self.reset()
            return 0

        now = self._clock.now()
        key = (session.generation, session.round_index)
        if self._anchor_s is None or key != self._key:
            self._anchor_s = now
            self._key = key
            return 0

        fired = 0
        while now - self._anchor_s >= self._interval_s:
            self._anchor_s += self._interval_s
            session.tick()
            fired += 1
            if not session.running or (session.generation, session.round_index) != key:
                # Round closed by this tick; the next round anchors at now.
                self._anchor_s = now
                self._key = (session.generation, session.round_index)
                break
        if fired > 1:
            logger.debug("caught up %d ticks in one update", fired)
        return fired
