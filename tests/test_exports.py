from __future__ import annotations

import json
from pathlib import Path

import pytest

from progol_opt.errors import InputError
from progol_opt.exports import (
    CSV_COLUMNS,
    load_portfolio_csv,
    portfolio_csv,
    portfolio_json,
    portfolio_slip,
    write_exports,
)
from progol_opt.generator import PortfolioGenerator
from progol_opt.models import ClassifiedMatch, Ticket
from progol_opt.validator import validate


def _tickets(classified: tuple[ClassifiedMatch, ...]) -> tuple[Ticket, ...]:
    return PortfolioGenerator().generate_core(classified)


def test_portfolio_csv_layout(classified: tuple[ClassifiedMatch, ...]) -> None:
    tickets = _tickets(classified)

    lines = portfolio_csv(tickets).splitlines()

    assert lines[0].split(",") == list(CSV_COLUMNS)
    assert len(lines) == 5
    first = lines[1].split(",")
    assert first[0] == "Core-1"
    assert first[1] == "core"
    assert first[2:16] == list(tickets[0].picks)
    assert first[16] == str(tickets[0].draw_count)
    assert first[17] == f"{tickets[0].hit_probability * 100:.2f}%"


def test_portfolio_json_sections(classified: tuple[ClassifiedMatch, ...]) -> None:
    tickets = _tickets(classified)
    report = validate(tickets)

    payload = portfolio_json(tickets, classified, report, generated_at="2026-01-01T00:00:00Z")

    assert payload["metadata"]["generated_at"] == "2026-01-01T00:00:00Z"
    assert payload["metadata"]["total_tickets"] == 4
    assert payload["metadata"]["historical_distribution"] == {"L": 0.38, "E": 0.29, "V": 0.33}
    assert len(payload["classified_matches"]) == 14
    assert [row["id"] for row in payload["portfolio"]] == ["Core-1", "Core-2", "Core-3", "Core-4"]
    assert sum(payload["portfolio"][0]["distribution"].values()) == pytest.approx(1.0, abs=1e-3)
    assert payload["validation"]["valid"] == report.valid
    json.dumps(payload)


def test_portfolio_slip_lists_matches_and_tickets(classified: tuple[ClassifiedMatch, ...]) -> None:
    tickets = _tickets(classified)

    slip = portfolio_slip(tickets, classified, generated_at="2026-01-01T00:00:00Z")

    assert slip.startswith("PROGOL OPTIMIZER - OPTIMIZED PORTFOLIO\n")
    assert " 1. America vs Chivas" in slip
    assert "14. Cancun vs Merida" in slip
    assert "Core-4" in slip
    assert "Total tickets: 4" in slip


def test_write_exports_and_reload(tmp_path: Path, classified: tuple[ClassifiedMatch, ...]) -> None:
    tickets = _tickets(classified)
    report = validate(tickets)

    paths = write_exports(tmp_path / "out", tickets, classified, report)

    assert sorted(paths) == ["csv", "json", "slip"]
    assert all(path.exists() for path in paths.values())
    assert not list((tmp_path / "out").glob(".tmp-*"))
    reloaded = load_portfolio_csv(paths["csv"], classified)
    assert [ticket.picks for ticket in reloaded] == [ticket.picks for ticket in tickets]
    assert [ticket.kind for ticket in reloaded] == ["core"] * 4
    assert reloaded[0].hit_probability == pytest.approx(tickets[0].hit_probability)
    payload = json.loads(paths["json"].read_text(encoding="utf-8"))
    assert payload["metadata"]["generated_at"].endswith("Z")


def test_load_portfolio_csv_requires_pick_columns(
    tmp_path: Path, classified: tuple[ClassifiedMatch, ...]
) -> None:
    path = tmp_path / "portfolio.csv"
    path.write_text("ID,Type,P1\nT-1,core,L\n", encoding="utf-8")

    with pytest.raises(InputError, match="missing columns"):
        load_portfolio_csv(path, classified)
