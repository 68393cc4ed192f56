"""
Risk engine: scores how risky a transaction looks.

A score is the sum of independent scorers, clamped to
[0, 100]. Each scorer is a pure function of a RiskContext
and is itself bounded, so adding a scorer (velocity,
geolocation, ...) never lets one rule swamp the total.

The engine has no I/O and no state; it is safe to call from
anywhere.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Sequence

MIN_SCORE = 0
MAX_SCORE = 100

# Amount bands, highest first. Only the first matching band counts.
AMOUNT_BANDS: tuple[tuple[Decimal, int], ...] = (
    (Decimal("10000"), 40),
    (Decimal("5000"), 20),
    (Decimal("1000"), 10),
)

OFF_HOURS_PENALTY = 15
BUSINESS_DAY_START = 6   # hours before this are off-hours
BUSINESS_DAY_END = 22    # hours after this are off-hours


@dataclass(frozen=True)
class RiskContext:
    amount: Decimal
    hour: int


Scorer = Callable[[RiskContext], int]


def clamp(value: int, low: int = MIN_SCORE, high: int = MAX_SCORE) -> int:
    return max(low, min(high, value))


def amount_band_scorer(ctx: RiskContext) -> int:
    for threshold, points in AMOUNT_BANDS:
        if ctx.amount > threshold:
            return points
    return 0


def off_hours_scorer(ctx: RiskContext) -> int:
    if ctx.hour < BUSINESS_DAY_START or ctx.hour > BUSINESS_DAY_END:
        return OFF_HOURS_PENALTY
    return 0


DEFAULT_SCORERS: tuple[Scorer, ...] = (amount_band_scorer, off_hours_scorer)


class RiskEngine:

    def __init__(self, scorers: Sequence[Scorer] = DEFAULT_SCORERS):
        self.scorers = tuple(scorers)

    def score(self, amount: Decimal | int | float, hour: int) -> int:
        """
        Score a transaction amount at the given hour of day (0-23).

        >>> RiskEngine().score(15000, 2)
        55
        """
        if not 0 <= hour <= 23:
            raise ValueError(f"hour must be between 0 and 23, got {hour}")

        ctx = RiskContext(amount=Decimal(str(amount)), hour=hour)
        total = sum(clamp(scorer(ctx)) for scorer in self.scorers)
        return clamp(total)


_default_engine = RiskEngine()


def score(amount: Decimal | int | float, hour: int) -> int:
    """Score with the default amount-band and off-hours rules."""
    return _default_engine.score(amount, hour)
