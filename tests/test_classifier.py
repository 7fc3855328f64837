from __future__ import annotations

import pytest

from progol_opt.classifier import (
    ClassifierConfig,
    calibrate,
    categorize,
    classify,
    normalized_entropy,
)
from progol_opt.errors import InputError
from progol_opt.models import CATEGORIES, Match


@pytest.mark.parametrize(
    ("triple", "expected"),
    [
        ((0.70, 0.18, 0.12), "anchor"),
        ((0.33, 0.36, 0.31), "draw_leaning"),
        ((0.50, 0.28, 0.22), "divisor"),
        ((0.38, 0.30, 0.32), "volatile"),
        ((0.60, 0.05, 0.35), "neutral"),
    ],
)
def test_categorize_precedence(triple: tuple[float, float, float], expected: str) -> None:
    assert categorize(*triple, ClassifierConfig()) == expected


def test_calibration_applies_context_factor() -> None:
    match = Match("A", "B", 0.40, 0.30, 0.30, form_diff=1.0, decisive=True)

    home, draw, away = calibrate(match, ClassifierConfig())

    factor = 1.0 + 0.15 + 0.20
    raw = (0.40 * factor, 0.30, 0.30 / factor)
    total = sum(raw)
    assert home == pytest.approx(raw[0] / total)
    assert draw == pytest.approx(raw[1] / total)
    assert away == pytest.approx(raw[2] / total)
    assert home + draw + away == pytest.approx(1.0)


def test_calibration_factor_is_floored() -> None:
    match = Match("A", "B", 0.40, 0.30, 0.30, form_diff=-20.0)

    home, _, away = calibrate(match, ClassifierConfig())

    assert home < away
    assert home > 0.0


def test_draw_propensity_boosts_close_draw_favored_match() -> None:
    match = Match("A", "B", 0.32, 0.36, 0.32)

    home, draw, away = calibrate(match, ClassifierConfig())

    assert draw == pytest.approx(0.42 / 1.06)
    assert home == pytest.approx(away)


def test_draw_propensity_skipped_when_draw_not_favored() -> None:
    match = Match("A", "B", 0.36, 0.30, 0.34)

    _, draw, _ = calibrate(match, ClassifierConfig())

    assert draw == pytest.approx(0.30)


def test_classify_requires_exactly_fourteen_matches(slate: list[Match]) -> None:
    with pytest.raises(InputError, match="exactly 14"):
        classify(slate[:13])
    with pytest.raises(InputError, match="exactly 14"):
        classify([*slate, slate[0]])


def test_classify_is_deterministic_and_total(slate: list[Match]) -> None:
    first = classify(slate)
    second = classify(slate)

    assert first == second
    assert [match.index for match in first] == list(range(14))
    assert all(match.category in CATEGORIES for match in first)
    assert first[6].category == "anchor"
    assert first[2].category == "draw_leaning"
    assert first[2].suggested == "E"


def test_classified_signals_are_bounded(slate: list[Match]) -> None:
    for match in classify(slate):
        assert 0.0 <= match.confidence <= 1.0
        assert 0.0 <= match.volatility <= 1.0
        assert match.p_home + match.p_draw + match.p_away == pytest.approx(1.0)


def test_normalized_entropy_bounds() -> None:
    assert normalized_entropy((1 / 3, 1 / 3, 1 / 3)) == pytest.approx(1.0)
    assert normalized_entropy((1.0, 0.0, 0.0)) == pytest.approx(0.0)
