"""Value types shared by the classifier, generator, optimizer, and validator."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal

from progol_opt.errors import InputError

Outcome = Literal["L", "E", "V"]
Category = Literal["anchor", "draw_leaning", "divisor", "volatile", "neutral"]
TicketKind = Literal["core", "satellite", "candidate"]

HOME: Outcome = "L"
DRAW: Outcome = "E"
AWAY: Outcome = "V"
OUTCOMES: tuple[Outcome, ...] = (HOME, DRAW, AWAY)
MATCH_COUNT = 14

ANCHOR: Category = "anchor"
DRAW_LEANING: Category = "draw_leaning"
DIVISOR: Category = "divisor"
VOLATILE: Category = "volatile"
NEUTRAL: Category = "neutral"
CATEGORIES: tuple[Category, ...] = (ANCHOR, DRAW_LEANING, DIVISOR, VOLATILE, NEUTRAL)

_SUM_TOLERANCE = 1e-6


def normalize_triple(home: float, draw: float, away: float) -> tuple[float, float, float]:
    """Scale a non-negative probability triple so it sums to one."""
    values = (float(home), float(draw), float(away))
    if any(not math.isfinite(value) for value in values):
        raise InputError(f"probability triple must be finite: {values}")
    if any(value < 0.0 for value in values):
        raise InputError(f"probability triple must be non-negative: {values}")
    total = sum(values)
    if total <= 0.0:
        raise InputError(f"probability triple cannot be normalized: {values}")
    return values[0] / total, values[1] / total, values[2] / total


@dataclass(frozen=True)
class Match:
    """One fixture with market probabilities and contextual signals."""

    home_team: str
    away_team: str
    p_home: float
    p_draw: float
    p_away: float
    form_diff: float = 0.0
    injury_impact: float = 0.0
    decisive: bool = False

    def __post_init__(self) -> None:
        probs = (self.p_home, self.p_draw, self.p_away)
        for value in probs:
            if not math.isfinite(value) or value < 0.0 or value > 1.0:
                raise InputError(
                    f"{self.label}: probabilities must lie in [0, 1], got {probs}"
                )
        if abs(sum(probs) - 1.0) > _SUM_TOLERANCE:
            raise InputError(f"{self.label}: probabilities must sum to 1, got {sum(probs):.6f}")

    @classmethod
    def from_raw(
        cls,
        home_team: str,
        away_team: str,
        p_home: float,
        p_draw: float,
        p_away: float,
        *,
        form_diff: float = 0.0,
        injury_impact: float = 0.0,
        decisive: bool = False,
    ) -> Match:
        """Build a match from an unnormalized probability triple."""
        home, draw, away = normalize_triple(p_home, p_draw, p_away)
        return cls(
            home_team=home_team,
            away_team=away_team,
            p_home=home,
            p_draw=draw,
            p_away=away,
            form_diff=float(form_diff),
            injury_impact=float(injury_impact),
            decisive=bool(decisive),
        )

    @property
    def label(self) -> str:
        return f"{self.home_team} vs {self.away_team}"


@dataclass(frozen=True)
class ClassifiedMatch:
    """Calibrated match with its category and derived signals."""

    index: int
    match: Match
    p_home: float
    p_draw: float
    p_away: float
    category: Category
    suggested: Outcome
    confidence: float
    volatility: float

    def prob(self, outcome: Outcome) -> float:
        if outcome == HOME:
            return self.p_home
        if outcome == DRAW:
            return self.p_draw
        if outcome == AWAY:
            return self.p_away
        raise ValueError(f"unknown outcome: {outcome}")

    def ranked_outcomes(self) -> tuple[Outcome, ...]:
        """Outcomes by descending probability; ties keep L, E, V order."""
        return tuple(sorted(OUTCOMES, key=lambda outcome: -self.prob(outcome)))

    @property
    def second_choice(self) -> Outcome:
        return self.ranked_outcomes()[1]

    @property
    def best_non_draw(self) -> Outcome:
        return HOME if self.p_home >= self.p_away else AWAY

    @property
    def is_anchor(self) -> bool:
        return self.category == ANCHOR

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "home_team": self.match.home_team,
            "away_team": self.match.away_team,
            "p_home": round(self.p_home, 6),
            "p_draw": round(self.p_draw, 6),
            "p_away": round(self.p_away, 6),
            "category": self.category,
            "suggested": self.suggested,
            "confidence": round(self.confidence, 6),
            "volatility": round(self.volatility, 6),
        }


@dataclass(frozen=True)
class Ticket:
    """Immutable 14-pick ticket with its P(>= 11 hits)."""

    ticket_id: str
    kind: TicketKind
    picks: tuple[Outcome, ...]
    hit_probability: float

    def __post_init__(self) -> None:
        if len(self.picks) != MATCH_COUNT:
            raise InputError(
                f"ticket {self.ticket_id} must have {MATCH_COUNT} picks, got {len(self.picks)}"
            )
        for pick in self.picks:
            if pick not in OUTCOMES:
                raise InputError(f"ticket {self.ticket_id} has invalid pick: {pick!r}")

    @property
    def draw_count(self) -> int:
        return sum(1 for pick in self.picks if pick == DRAW)

    def distribution(self) -> dict[str, float]:
        return {outcome: self.picks.count(outcome) / MATCH_COUNT for outcome in OUTCOMES}

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.ticket_id,
            "type": self.kind,
            "picks": list(self.picks),
            "draw_count": self.draw_count,
            "distribution": {
                outcome: round(share, 4) for outcome, share in self.distribution().items()
            },
            "prob_at_least_11": round(self.hit_probability, 8),
        }


@dataclass(frozen=True)
class PortfolioMetrics:
    """Non-blocking metrics reported alongside every validation."""

    distribution: dict[str, float] = field(default_factory=dict)
    portfolio_probability: float = 0.0
    mean_ticket_probability: float = 0.0
    min_ticket_probability: float = 0.0
    max_ticket_probability: float = 0.0
    total_cost: float = 0.0
    efficiency: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "distribution": {key: round(value, 6) for key, value in self.distribution.items()},
            "portfolio_probability": round(self.portfolio_probability, 8),
            "mean_ticket_probability": round(self.mean_ticket_probability, 8),
            "min_ticket_probability": round(self.min_ticket_probability, 8),
            "max_ticket_probability": round(self.max_ticket_probability, 8),
            "total_cost": self.total_cost,
            "efficiency": round(self.efficiency, 8),
        }


@dataclass(frozen=True)
class ValidationReport:
    """Pass/fail verdict, violated-constraint messages, and metrics."""

    valid: bool
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    metrics: PortfolioMetrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "metrics": self.metrics.to_dict(),
        }
