from __future__ import annotations

from dataclasses import dataclass

from .session import BubblesSession, HistoryEntry, Outcome

OUTCOME_LABELS: dict[Outcome, str] = {
    Outcome.CORRECT: "Correct",
    Outcome.INCORRECT: "Incorrect",
    Outcome.TIMED_OUT: "Timed out",
}


@dataclass(frozen=True, slots=True)
class RunResult:
    """Summary + entry log for a run, finished or not."""

    seed: int
    total_rounds: int
    round_seconds: int

    score: int
    incorrect: int
    timeouts: int
    accuracy_pct: int
    time_used_s: int
    time_available_s: int

    entries: tuple[HistoryEntry, ...]


def run_result_from_session(session: BubblesSession) -> RunResult:
    cfg = session.config
    return RunResult(
        seed=int(session.seed),
        total_rounds=int(cfg.total_rounds),
        round_seconds=int(cfg.round_seconds),
        score=session.score,
        incorrect=session.incorrect,
        timeouts=session.timeouts,
        accuracy_pct=session.accuracy_pct,
        time_used_s=session.time_used_s,
        time_available_s=session.time_available_s,
        entries=session.history,
    )


@dataclass(frozen=True, slots=True)
class ReviewRow:
    round_number: int
    outcome: Outcome
    label: str
    correct_order: str
    picks: str
    time_used_s: int


def review_rows(session: BubblesSession) -> list[ReviewRow]:
    """Resolve every history entry back to its round's expressions."""

    rows: list[ReviewRow] = []
    for entry in session.history:
        rnd = session.rounds[entry.round_index]
        picks = "  <  ".join(rnd.display_for(entry.picks)) if entry.picks else "-"
        rows.append(
            ReviewRow(
                round_number=entry.round_index + 1,
                outcome=entry.outcome,
                label=OUTCOME_LABELS[entry.outcome],
                correct_order="  <  ".join(rnd.display_for(rnd.correct_order)),
                picks=picks,
                time_used_s=entry.time_used_s,
            )
        )
    return rows
