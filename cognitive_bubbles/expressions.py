"""Deterministic expression and round generation for Cognitive Bubbles.

Every expression is a single arithmetic operation on two integers (or a bare
integer) whose value is a positive integer no larger than ``MAX_VALUE``.  A
round is three such expressions with pairwise-distinct values together with
the ascending order of their positional indices.

Difficulty is selected purely by round position: a run is split into
contiguous easy, medium and hard bands.  Operand bounds widen with each band
and zero operands are only ever allowed for addition in the easy band.

All randomness flows through a ``SeededRng`` so that a seed fully determines
the generated rounds.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum

from .cognitive_core import SeededRng

logger = logging.getLogger(__name__)

MAX_VALUE = 200
MAX_ATTEMPTS = 30
ROUND_SIZE = 3


class Operator(StrEnum):
    ADD = "+"
    SUB = "-"
    MUL = "×"
    DIV = "÷"


ALL_OPERATORS: tuple[Operator, ...] = tuple(Operator)


@dataclass(frozen=True, slots=True)
class Expression:
    display: str
    value: int
    operator: Operator | None = None
    operands: tuple[int, ...] = ()

    @classmethod
    def binary(cls, a: int, op: Operator, b: int, value: int) -> "Expression":
        return cls(display=f"{a} {op} {b}", value=value, operator=op, operands=(a, b))

    @classmethod
    def literal(cls, value: int) -> "Expression":
        return cls(display=str(value), value=value, operator=None, operands=(value,))


@dataclass(frozen=True, slots=True)
class DifficultyTier:
    """Operand range and operator set for one difficulty band."""

    name: str
    operators: tuple[Operator, ...]
    min_operand: int
    max_operand: int
    allow_zero_for_addition: bool = False

    def __post_init__(self) -> None:
        if not self.operators:
            raise ValueError("operators must not be empty")
        if self.min_operand < 1:
            raise ValueError("min_operand must be >= 1 (use allow_zero_for_addition for zero)")
        if self.max_operand < self.min_operand:
            raise ValueError("max_operand must be >= min_operand")


EASY = DifficultyTier("easy", ALL_OPERATORS, 1, 9, allow_zero_for_addition=True)
MEDIUM = DifficultyTier("medium", ALL_OPERATORS, 2, 20)
HARD = DifficultyTier("hard", ALL_OPERATORS, 5, 50)


@dataclass(frozen=True, slots=True)
class TierBands:
    """Widths of the easy and medium bands; the rest of the run is hard."""

    easy_rounds: int
    medium_rounds: int

    def __post_init__(self) -> None:
        if self.easy_rounds < 0 or self.medium_rounds < 0:
            raise ValueError("band widths must be >= 0")

    @classmethod
    def split(cls, total_rounds: int) -> "TierBands":
        """Split a run into thirds, giving any remainder to the easier bands."""

        base, extra = divmod(max(0, int(total_rounds)), 3)
        return cls(easy_rounds=base + (1 if extra >= 1 else 0), medium_rounds=base + (1 if extra >= 2 else 0))

    def fits(self, total_rounds: int) -> bool:
        return self.easy_rounds + self.medium_rounds <= total_rounds


def tier_for_round_index(i: int, total_rounds: int, bands: TierBands | None = None) -> DifficultyTier:
    if total_rounds < 1:
        raise ValueError("total_rounds must be >= 1")
    if not (0 <= i < total_rounds):
        raise ValueError(f"round index {i} out of range for {total_rounds} rounds")

    b = bands if bands is not None else TierBands.split(total_rounds)
    if i < b.easy_rounds:
        return EASY
    if i < b.easy_rounds + b.medium_rounds:
        return MEDIUM
    return HARD


@dataclass(frozen=True, slots=True)
class Round:
    expressions: tuple[Expression, Expression, Expression]
    correct_order: tuple[int, int, int]
    tier: DifficultyTier

    def ordered_expressions(self) -> tuple[Expression, ...]:
        return tuple(self.expressions[i] for i in self.correct_order)

    def display_for(self, indices: tuple[int, ...] | list[int]) -> tuple[str, ...]:
        return tuple(self.expressions[i].display for i in indices)


def _within(v: int) -> bool:
    return 0 < v <= MAX_VALUE


class ExpressionGenerator:
    """Deterministic generator of single-operation expressions and rounds."""

    def __init__(self, *, seed: int | None = None, rng: SeededRng | None = None) -> None:
        if rng is None:
            if seed is None:
                raise ValueError("either seed or rng is required")
            rng = SeededRng(seed)
        self._rng = rng

    def generate(self, tier: DifficultyTier) -> Expression:
        op = self._rng.choice(tier.operators)

        for _ in range(MAX_ATTEMPTS):
            expr = self._try_operator(op, tier)
            if expr is not None:
                return expr

        logger.debug("no valid %s expression after %d attempts in %s tier", op, MAX_ATTEMPTS, tier.name)
        return self._fallback(tier)

    def generate_round(self, tier: DifficultyTier) -> Round:
        picked: list[Expression] = []
        seen: set[int] = set()
        while len(picked) < ROUND_SIZE:
            expr = self.generate(tier)
            if expr.value in seen:
                continue
            picked.append(expr)
            seen.add(expr.value)

        order = sorted(range(ROUND_SIZE), key=lambda idx: picked[idx].value)
        return Round(
            expressions=(picked[0], picked[1], picked[2]),
            correct_order=(order[0], order[1], order[2]),
            tier=tier,
        )

    def _operand(self, tier: DifficultyTier, *, allow_zero: bool = False) -> int:
        lo = min(0, tier.min_operand) if allow_zero else tier.min_operand
        return self._rng.randint(lo, tier.max_operand)

    def _try_operator(self, op: Operator, tier: DifficultyTier) -> Expression | None:
        if op is Operator.ADD:
            a = self._operand(tier, allow_zero=tier.allow_zero_for_addition)
            b = self._operand(tier, allow_zero=tier.allow_zero_for_addition)
            v = a + b
            return Expression.binary(a, op, b, v) if _within(v) else None

        if op is Operator.SUB:
            a = self._operand(tier)
            b = self._operand(tier)
            if a <= b:
                return None
            v = a - b
            return Expression.binary(a, op, b, v) if _within(v) else None

        if op is Operator.MUL:
            a = self._operand(tier)
            b = self._operand(tier)
            if a < 1 or b < 1:
                return None
            v = a * b
            return Expression.binary(a, op, b, v) if _within(v) else None

        # Division: dividend = divisor * quotient keeps the result exact.
        divisor = max(1, self._operand(tier))
        max_q = min(MAX_VALUE, tier.max_operand // divisor)
        min_q = max(1, math.ceil(tier.min_operand / divisor))
        if max_q < min_q:
            return None
        q = self._rng.randint(min_q, max_q)
        dividend = divisor * q
        if not (tier.min_operand <= dividend <= tier.max_operand) or not _within(q):
            return None
        return Expression.binary(dividend, op, divisor, q)

    def _fallback(self, tier: DifficultyTier) -> Expression:
        a = self._operand(tier, allow_zero=tier.allow_zero_for_addition)
        b = self._operand(tier, allow_zero=tier.allow_zero_for_addition)
        v = a + b
        if _within(v):
            return Expression.binary(a, Operator.ADD, b, v)
        return Expression.binary(1, Operator.ADD, 1, 2)


def build_rounds(
    generator: ExpressionGenerator,
    total_rounds: int,
    bands: TierBands | None = None,
) -> tuple[Round, ...]:
    """Generate a full run of rounds, one tier lookup per position."""

    return tuple(
        generator.generate_round(tier_for_round_index(i, total_rounds, bands))
        for i in range(total_rounds)
    )
