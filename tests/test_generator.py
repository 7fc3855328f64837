from __future__ import annotations

import random

import pytest

from progol_opt.generator import (
    PortfolioGenerator,
    adjust_draws,
    hamming_distance,
    mean_hamming_distance,
)
from progol_opt.models import ClassifiedMatch, Outcome
from progol_opt.validator import PortfolioRules

ANCHOR_INDEX = 6


def _generator(seed: int = 5) -> PortfolioGenerator:
    return PortfolioGenerator(PortfolioRules(), rng=random.Random(seed))


def test_adjust_draws_raises_low_draw_count(classified: tuple[ClassifiedMatch, ...]) -> None:
    picks: list[Outcome] = [match.best_non_draw for match in classified]

    adjusted = adjust_draws(picks, classified, PortfolioRules())

    assert adjusted.count("E") == 4
    assert adjusted[ANCHOR_INDEX] == picks[ANCHOR_INDEX]


def test_adjust_draws_lowers_high_draw_count(classified: tuple[ClassifiedMatch, ...]) -> None:
    adjusted = adjust_draws(["E"] * 14, classified, PortfolioRules())

    assert adjusted.count("E") == 6
    assert adjusted[2] == "E"


def test_adjust_draws_is_idempotent_on_compliant_tickets(
    classified: tuple[ClassifiedMatch, ...],
) -> None:
    rng = random.Random(17)
    rules = PortfolioRules()
    for _ in range(100):
        picks = [rng.choice(("L", "E", "V")) for _ in range(14)]
        once = adjust_draws(picks, classified, rules)
        assert rules.min_draws <= once.count("E") <= rules.max_draws
        assert adjust_draws(once, classified, rules) == once


def test_core_tickets_respect_draw_bounds_and_anchors(
    classified: tuple[ClassifiedMatch, ...],
) -> None:
    core = _generator().generate_core(classified)

    assert [ticket.ticket_id for ticket in core] == ["Core-1", "Core-2", "Core-3", "Core-4"]
    assert all(ticket.kind == "core" for ticket in core)
    for ticket in core:
        assert 4 <= ticket.draw_count <= 6
        assert ticket.picks[ANCHOR_INDEX] == classified[ANCHOR_INDEX].suggested
        assert 0.0 < ticket.hit_probability < 1.0


def test_core_generation_is_deterministic(classified: tuple[ClassifiedMatch, ...]) -> None:
    first = _generator(1).generate_core(classified)
    second = _generator(99).generate_core(classified)

    assert first == second


def test_base_ticket_draws_on_draw_leaning_match(classified: tuple[ClassifiedMatch, ...]) -> None:
    base = _generator().base_picks(classified)

    assert base[2] == "E"


@pytest.mark.parametrize(("count", "last_id"), [(16, "Sat-8B"), (5, "Sat-3"), (1, "Sat-1")])
def test_satellite_count_and_ids(
    classified: tuple[ClassifiedMatch, ...], count: int, last_id: str
) -> None:
    generator = _generator()
    core = generator.generate_core(classified)

    satellites = generator.generate_satellites(classified, core, count)

    assert len(satellites) == count
    assert satellites[-1].ticket_id == last_id
    for ticket in satellites:
        assert ticket.kind == "satellite"
        assert 4 <= ticket.draw_count <= 6
        assert ticket.picks[ANCHOR_INDEX] == classified[ANCHOR_INDEX].suggested


def test_satellite_pairs_diverge(classified: tuple[ClassifiedMatch, ...]) -> None:
    generator = _generator()
    core = generator.generate_core(classified)

    satellites = generator.generate_satellites(classified, core, 8)

    pairs = list(zip(satellites[::2], satellites[1::2], strict=True))
    assert all(a.ticket_id.endswith("A") and b.ticket_id.endswith("B") for a, b in pairs)
    assert sum(hamming_distance(a.picks, b.picks) for a, b in pairs) > 0


def test_satellite_targets_exclude_anchors(classified: tuple[ClassifiedMatch, ...]) -> None:
    targets = _generator().satellite_targets(classified)

    assert targets
    assert all(not match.is_anchor for match in targets)
    volatilities = [match.volatility for match in targets]
    assert volatilities == sorted(volatilities, reverse=True)


def test_negative_satellite_count_rejected(classified: tuple[ClassifiedMatch, ...]) -> None:
    with pytest.raises(ValueError, match="non-negative"):
        _generator().generate_satellites(classified, (), -1)


def test_grasp_picks_stay_in_restricted_candidate_list(
    classified: tuple[ClassifiedMatch, ...],
) -> None:
    generator = _generator()
    for _ in range(20):
        picks = generator.grasp_picks(classified, 0.0)
        assert 4 <= picks.count("E") <= 6
        assert picks[ANCHOR_INDEX] == "L"


def test_hamming_helpers() -> None:
    assert hamming_distance(("L", "E", "V"), ("L", "V", "V")) == 1
    assert mean_hamming_distance(("L", "E"), []) == 0.0
    assert mean_hamming_distance(("L", "E"), [("L", "E"), ("V", "V")]) == pytest.approx(1.0)
