"""Match calibration and five-way categorization."""

from __future__ import annotations

import logging
import math
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from progol_opt.errors import InputError
from progol_opt.models import (
    ANCHOR,
    DIVISOR,
    DRAW_LEANING,
    MATCH_COUNT,
    NEUTRAL,
    OUTCOMES,
    VOLATILE,
    Category,
    ClassifiedMatch,
    Match,
    Outcome,
    normalize_triple,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClassifierConfig:
    """Calibration weights and category thresholds."""

    form_weight: float = 0.15
    injury_weight: float = 0.10
    decisive_weight: float = 0.20
    min_factor: float = 0.1
    draw_propensity_gap: float = 0.08
    draw_propensity_boost: float = 0.06
    draw_propensity_cap: float = 0.95
    anchor_threshold: float = 0.60
    anchor_margin: float = 0.20
    draw_threshold: float = 0.30
    draw_parity_margin: float = 0.02
    divisor_min: float = 0.40
    divisor_max: float = 0.60
    volatile_gap: float = 0.10


def calibrate(match: Match, config: ClassifierConfig) -> tuple[float, float, float]:
    """Apply contextual adjustment and the draw-propensity rule, then renormalize."""
    factor = (
        1.0
        + config.form_weight * match.form_diff
        + config.injury_weight * match.injury_impact
        + config.decisive_weight * (1.0 if match.decisive else 0.0)
    )
    factor = max(factor, config.min_factor)
    home = match.p_home * factor
    draw = match.p_draw
    away = match.p_away / factor

    if abs(home - away) < config.draw_propensity_gap and draw > max(home, away):
        draw = min(draw + config.draw_propensity_boost, config.draw_propensity_cap)

    return normalize_triple(home, draw, away)


def categorize(p_home: float, p_draw: float, p_away: float, config: ClassifierConfig) -> Category:
    """Assign exactly one category; checks run in precedence order."""
    top, second, _ = sorted((p_home, p_draw, p_away), reverse=True)
    if top > config.anchor_threshold and top - second >= config.anchor_margin:
        return ANCHOR
    if p_draw > config.draw_threshold and p_draw >= max(p_home, p_away) - config.draw_parity_margin:
        return DRAW_LEANING
    if config.divisor_min <= top < config.divisor_max:
        return DIVISOR
    if top - second < config.volatile_gap:
        return VOLATILE
    return NEUTRAL


def normalized_entropy(probabilities: Sequence[float]) -> float:
    entropy = -sum(p * math.log(p) for p in probabilities if p > 0.0)
    return entropy / math.log(len(probabilities))


def _suggested(probs: dict[Outcome, float]) -> Outcome:
    best = OUTCOMES[0]
    for outcome in OUTCOMES[1:]:
        if probs[outcome] > probs[best]:
            best = outcome
    return best


def classify_match(index: int, match: Match, config: ClassifierConfig) -> ClassifiedMatch:
    p_home, p_draw, p_away = calibrate(match, config)
    probs: dict[Outcome, float] = {"L": p_home, "E": p_draw, "V": p_away}
    top, second, _ = sorted(probs.values(), reverse=True)
    return ClassifiedMatch(
        index=index,
        match=match,
        p_home=p_home,
        p_draw=p_draw,
        p_away=p_away,
        category=categorize(p_home, p_draw, p_away, config),
        suggested=_suggested(probs),
        confidence=top - second,
        volatility=normalized_entropy((p_home, p_draw, p_away)),
    )


def classify(
    matches: Sequence[Match], config: ClassifierConfig | None = None
) -> tuple[ClassifiedMatch, ...]:
    """Calibrate and categorize exactly 14 matches."""
    if len(matches) != MATCH_COUNT:
        raise InputError(f"exactly {MATCH_COUNT} matches are required, got {len(matches)}")
    resolved = config or ClassifierConfig()
    classified = tuple(classify_match(i, match, resolved) for i, match in enumerate(matches))
    counts = Counter(item.category for item in classified)
    logger.info("classified %d matches: %s", len(classified), dict(sorted(counts.items())))
    return classified
