"""Hard-constraint validation for ticket portfolios."""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from progol_opt.hit_probability import portfolio_hit_probability
from progol_opt.models import (
    AWAY,
    DRAW,
    HOME,
    MATCH_COUNT,
    OUTCOMES,
    Outcome,
    PortfolioMetrics,
    Ticket,
    ValidationReport,
)

_FLOAT_SLACK = 1e-9


def _default_bands() -> Mapping[Outcome, tuple[float, float]]:
    return MappingProxyType({HOME: (0.35, 0.41), DRAW: (0.25, 0.33), AWAY: (0.30, 0.36)})


def _default_historical() -> Mapping[Outcome, float]:
    return MappingProxyType({HOME: 0.38, DRAW: 0.29, AWAY: 0.33})


@dataclass(frozen=True)
class PortfolioRules:
    """Historical and diversity limits every submitted portfolio must satisfy."""

    min_draws: int = 4
    max_draws: int = 6
    distribution_bands: Mapping[Outcome, tuple[float, float]] = field(
        default_factory=_default_bands
    )
    historical_distribution: Mapping[Outcome, float] = field(default_factory=_default_historical)
    concentration_cap: float = 0.70
    initial_concentration_cap: float = 0.60
    initial_matches: int = 3
    ticket_cost: float = 15.0

    def __post_init__(self) -> None:
        # stored as read-only copies
        bands = {key: tuple(band) for key, band in self.distribution_bands.items()}
        object.__setattr__(self, "distribution_bands", MappingProxyType(bands))
        historical = MappingProxyType(dict(self.historical_distribution))
        object.__setattr__(self, "historical_distribution", historical)

    def concentration_limit(self, match_index: int) -> float:
        if match_index < self.initial_matches:
            return self.initial_concentration_cap
        return self.concentration_cap

    def concentration_max_count(self, match_index: int, ticket_count: int) -> int:
        """Largest number of tickets that may share one outcome on a match."""
        return int(self.concentration_limit(match_index) * ticket_count + _FLOAT_SLACK)

    def band_counts(self, outcome: Outcome, ticket_count: int) -> tuple[int, int]:
        """Inclusive pick-count range that keeps an outcome inside its band."""
        total = ticket_count * MATCH_COUNT
        low, high = self.distribution_bands[outcome]
        return math.ceil(low * total - _FLOAT_SLACK), math.floor(high * total + _FLOAT_SLACK)


def _pct(value: float, digits: int = 1) -> str:
    return f"{value * 100:.{digits}f}%"


def global_distribution(tickets: Sequence[Ticket]) -> dict[Outcome, float]:
    counts: Counter[str] = Counter()
    for ticket in tickets:
        counts.update(ticket.picks)
    total = len(tickets) * MATCH_COUNT
    if total == 0:
        return {outcome: 0.0 for outcome in OUTCOMES}
    return {outcome: counts.get(outcome, 0) / total for outcome in OUTCOMES}


def match_counts(tickets: Sequence[Ticket], match_index: int) -> dict[Outcome, int]:
    counts = {outcome: 0 for outcome in OUTCOMES}
    for ticket in tickets:
        counts[ticket.picks[match_index]] += 1
    return counts


class PortfolioValidator:
    """Checks global distribution, per-ticket draws, and per-match concentration."""

    def __init__(self, rules: PortfolioRules | None = None) -> None:
        self.rules = rules or PortfolioRules()

    def validate(self, tickets: Sequence[Ticket]) -> ValidationReport:
        if not tickets:
            return ValidationReport(
                valid=False,
                errors=("portfolio has no tickets",),
                warnings=(),
                metrics=PortfolioMetrics(),
            )
        errors: list[str] = []
        warnings: list[str] = []
        distribution = global_distribution(tickets)
        errors.extend(self._distribution_errors(distribution))
        errors.extend(self._draw_errors(tickets))
        errors.extend(self._concentration_errors(tickets))
        if len({ticket.picks for ticket in tickets}) < len(tickets):
            warnings.append("portfolio contains duplicate tickets")
        return ValidationReport(
            valid=not errors,
            errors=tuple(errors),
            warnings=tuple(warnings),
            metrics=self.metrics(tickets, distribution),
        )

    def _distribution_errors(self, distribution: dict[Outcome, float]) -> list[str]:
        errors: list[str] = []
        for outcome in OUTCOMES:
            low, high = self.rules.distribution_bands[outcome]
            share = distribution[outcome]
            if share < low - _FLOAT_SLACK or share > high + _FLOAT_SLACK:
                errors.append(
                    f"global share of '{outcome}' {_pct(share)} "
                    f"outside [{_pct(low)} - {_pct(high)}]"
                )
        return errors

    def _draw_errors(self, tickets: Sequence[Ticket]) -> list[str]:
        errors: list[str] = []
        for ticket in tickets:
            draws = ticket.draw_count
            if draws < self.rules.min_draws or draws > self.rules.max_draws:
                errors.append(
                    f"ticket {ticket.ticket_id} has {draws} draws, outside "
                    f"[{self.rules.min_draws}-{self.rules.max_draws}]"
                )
        return errors

    def _concentration_errors(self, tickets: Sequence[Ticket]) -> list[str]:
        if len(tickets) < 2:
            return []
        errors: list[str] = []
        for match_index in range(MATCH_COUNT):
            counts = match_counts(tickets, match_index)
            top_outcome = max(OUTCOMES, key=lambda outcome: counts[outcome])
            share = counts[top_outcome] / len(tickets)
            limit = self.rules.concentration_limit(match_index)
            if share > limit + _FLOAT_SLACK:
                errors.append(
                    f"match {match_index + 1} concentration {_pct(share, 0)} on '{top_outcome}' "
                    f"exceeds limit {_pct(limit, 0)}"
                )
        return errors

    def metrics(
        self,
        tickets: Sequence[Ticket],
        distribution: dict[Outcome, float] | None = None,
    ) -> PortfolioMetrics:
        probabilities = [ticket.hit_probability for ticket in tickets]
        if not probabilities:
            return PortfolioMetrics()
        portfolio_probability = portfolio_hit_probability(probabilities)
        total_cost = len(tickets) * self.rules.ticket_cost
        return PortfolioMetrics(
            distribution=dict(distribution or global_distribution(tickets)),
            portfolio_probability=portfolio_probability,
            mean_ticket_probability=sum(probabilities) / len(probabilities),
            min_ticket_probability=min(probabilities),
            max_ticket_probability=max(probabilities),
            total_cost=total_cost,
            efficiency=portfolio_probability / (total_cost / 1000.0) if total_cost else 0.0,
        )


def validate(tickets: Sequence[Ticket], rules: PortfolioRules | None = None) -> ValidationReport:
    """Validate one portfolio with the given (or default) rules."""
    return PortfolioValidator(rules).validate(tickets)
