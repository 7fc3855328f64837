"""Core and satellite ticket construction."""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from dataclasses import dataclass

from progol_opt.hit_probability import build_ticket
from progol_opt.models import (
    DIVISOR,
    DRAW,
    DRAW_LEANING,
    NEUTRAL,
    OUTCOMES,
    VOLATILE,
    ClassifiedMatch,
    Outcome,
    Ticket,
)
from progol_opt.validator import PortfolioRules

logger = logging.getLogger(__name__)

CORE_STYLES: tuple[str, ...] = ("base", "conservative", "aggressive", "balanced")
_SATELLITE_CATEGORIES = frozenset({DIVISOR, DRAW_LEANING, VOLATILE})


@dataclass(frozen=True)
class GeneratorConfig:
    """Tuning for core variations and satellite construction."""

    conservative_draw_floor: float = 0.27
    borderline_confidence: float = 0.10
    aggressive_confidence: float = 0.10
    balanced_flip_fraction: float = 0.5
    satellite_subset_fraction: float = 0.5
    satellite_volatility_floor: float = 0.90
    leftover_trials: int = 200
    leftover_flip_probability: float = 0.4


def adjust_draws(
    picks: Sequence[Outcome],
    classified: Sequence[ClassifiedMatch],
    rules: PortfolioRules,
) -> tuple[Outcome, ...]:
    """Bring a ticket's draw count into [min_draws, max_draws] with greedy conversions."""
    adjusted = list(picks)
    draws = adjusted.count(DRAW)
    if draws < rules.min_draws:
        # non-anchor matches first, anchors only if nothing else is left
        candidates = sorted(
            (i for i, pick in enumerate(adjusted) if pick != DRAW),
            key=lambda i: (classified[i].is_anchor, -classified[i].p_draw, i),
        )
        for i in candidates[: rules.min_draws - draws]:
            adjusted[i] = DRAW
    elif draws > rules.max_draws:
        candidates = sorted(
            (i for i, pick in enumerate(adjusted) if pick == DRAW),
            key=lambda i: (classified[i].category == DRAW_LEANING, classified[i].p_draw, i),
        )
        for i in candidates[: draws - rules.max_draws]:
            adjusted[i] = classified[i].best_non_draw
    return tuple(adjusted)


def hamming_distance(left: Sequence[Outcome], right: Sequence[Outcome]) -> int:
    return sum(1 for a, b in zip(left, right, strict=True) if a != b)


def mean_hamming_distance(picks: Sequence[Outcome], others: Sequence[Sequence[Outcome]]) -> float:
    if not others:
        return 0.0
    return sum(hamming_distance(picks, other) for other in others) / len(others)


class PortfolioGenerator:
    """Builds core and satellite tickets from classified matches."""

    def __init__(
        self,
        rules: PortfolioRules | None = None,
        config: GeneratorConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.rules = rules or PortfolioRules()
        self.config = config or GeneratorConfig()
        self.rng = rng or random.Random(0)

    def base_picks(self, classified: Sequence[ClassifiedMatch]) -> tuple[Outcome, ...]:
        picks: list[Outcome] = []
        draws = 0
        for match in classified:
            pick = match.suggested
            if not match.is_anchor and match.category == DRAW_LEANING:
                if draws < self.rules.max_draws:
                    pick = DRAW
            if pick == DRAW:
                draws += 1
            picks.append(pick)
        return adjust_draws(picks, classified, self.rules)

    def _conservative(
        self, base: Sequence[Outcome], classified: Sequence[ClassifiedMatch]
    ) -> tuple[Outcome, ...]:
        picks = list(base)
        for match in classified:
            if match.category != DIVISOR:
                continue
            if (
                match.p_draw >= self.config.conservative_draw_floor
                or match.confidence < self.config.borderline_confidence
            ):
                picks[match.index] = DRAW
        return adjust_draws(picks, classified, self.rules)

    def _aggressive(
        self, base: Sequence[Outcome], classified: Sequence[ClassifiedMatch]
    ) -> tuple[Outcome, ...]:
        picks = list(base)
        for match in classified:
            if match.category != DIVISOR:
                continue
            if match.confidence >= self.config.aggressive_confidence:
                picks[match.index] = match.suggested
            else:
                picks[match.index] = match.second_choice
        return adjust_draws(picks, classified, self.rules)

    def _balanced(
        self, base: Sequence[Outcome], classified: Sequence[ClassifiedMatch]
    ) -> tuple[Outcome, ...]:
        picks = list(base)
        pool = sorted(
            (match for match in classified if match.category in {VOLATILE, NEUTRAL}),
            key=lambda match: (match.confidence, match.index),
        )
        flips = math.ceil(len(pool) * self.config.balanced_flip_fraction)
        for match in pool[:flips]:
            picks[match.index] = match.second_choice
        return adjust_draws(picks, classified, self.rules)

    def generate_core(self, classified: Sequence[ClassifiedMatch]) -> tuple[Ticket, ...]:
        """Base ticket plus conservative, aggressive, and balanced variations."""
        base = self.base_picks(classified)
        variants = {
            "base": base,
            "conservative": self._conservative(base, classified),
            "aggressive": self._aggressive(base, classified),
            "balanced": self._balanced(base, classified),
        }
        core = tuple(
            build_ticket(f"Core-{i + 1}", "core", variants[style], classified)
            for i, style in enumerate(CORE_STYLES)
        )
        logger.info("generated %d core tickets", len(core))
        return core

    def satellite_targets(self, classified: Sequence[ClassifiedMatch]) -> list[ClassifiedMatch]:
        targets = [
            match
            for match in classified
            if not match.is_anchor
            and (
                match.category in _SATELLITE_CATEGORIES
                or match.volatility >= self.config.satellite_volatility_floor
            )
        ]
        if not targets:
            targets = [match for match in classified if not match.is_anchor]
        return sorted(targets, key=lambda match: (-match.volatility, match.index))

    def _satellite_pair(
        self,
        classified: Sequence[ClassifiedMatch],
        base: Sequence[Outcome],
        targets: Sequence[ClassifiedMatch],
        pair_index: int,
    ) -> tuple[Ticket, Ticket]:
        picks_a = list(base)
        picks_b = list(base)
        if targets:
            principal = targets[pair_index % len(targets)]
            rest = [match for match in targets if match.index != principal.index]
            size = max(1, math.ceil(len(targets) * self.config.satellite_subset_fraction))
            subset = [principal, *self.rng.sample(rest, min(size - 1, len(rest)))]
            for match in subset:
                ranked = match.ranked_outcomes()
                picks_a[match.index] = ranked[0]
                picks_b[match.index] = ranked[1]
        label = f"Sat-{pair_index + 1}"
        return (
            build_ticket(
                f"{label}A", "satellite", adjust_draws(picks_a, classified, self.rules), classified
            ),
            build_ticket(
                f"{label}B", "satellite", adjust_draws(picks_b, classified, self.rules), classified
            ),
        )

    def _leftover_satellite(
        self,
        classified: Sequence[ClassifiedMatch],
        base: Sequence[Outcome],
        placed: Sequence[Ticket],
        ticket_id: str,
    ) -> Ticket:
        placed_picks = [ticket.picks for ticket in placed]
        best_picks = tuple(base)
        best_distance = -1.0
        for _ in range(max(1, self.config.leftover_trials)):
            picks = list(base)
            for match in classified:
                if match.is_anchor:
                    continue
                if self.rng.random() < self.config.leftover_flip_probability:
                    picks[match.index] = match.second_choice
            adjusted = adjust_draws(picks, classified, self.rules)
            distance = mean_hamming_distance(adjusted, placed_picks)
            if distance > best_distance:
                best_picks = adjusted
                best_distance = distance
        return build_ticket(ticket_id, "satellite", best_picks, classified)

    def generate_satellites(
        self,
        classified: Sequence[ClassifiedMatch],
        core: Sequence[Ticket],
        count: int,
    ) -> tuple[Ticket, ...]:
        """Anti-correlated satellite pairs plus one max-diversity ticket for odd counts."""
        if count < 0:
            raise ValueError(f"satellite count must be non-negative, got {count}")
        base = self.base_picks(classified)
        targets = self.satellite_targets(classified)
        satellites: list[Ticket] = []
        pair_count = count // 2
        for pair_index in range(pair_count):
            satellites.extend(self._satellite_pair(classified, base, targets, pair_index))
        if count % 2:
            satellites.append(
                self._leftover_satellite(
                    classified, base, [*core, *satellites], f"Sat-{pair_count + 1}"
                )
            )
        logger.info(
            "generated %d satellite tickets over %d target matches", len(satellites), len(targets)
        )
        return tuple(satellites)

    def grasp_picks(
        self, classified: Sequence[ClassifiedMatch], alpha: float
    ) -> tuple[Outcome, ...]:
        """Randomized-greedy ticket: uniform pick from each match's restricted candidate list."""
        picks: list[Outcome] = []
        for match in classified:
            probs = [match.prob(outcome) for outcome in OUTCOMES]
            high, low = max(probs), min(probs)
            threshold = high - alpha * (high - low)
            rcl = [outcome for outcome in OUTCOMES if match.prob(outcome) >= threshold - 1e-12]
            picks.append(self.rng.choice(rcl))
        return adjust_draws(picks, classified, self.rules)
