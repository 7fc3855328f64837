from __future__ import annotations

from pathlib import Path

import pytest

from progol_opt.errors import InputError
from progol_opt.match_io import load_matches_csv, match_from_row


def _write(path: Path, lines: list[str]) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_load_matches_csv_reads_slate(slate_csv: Path) -> None:
    matches = load_matches_csv(slate_csv)

    assert len(matches) == 14
    assert matches[0].home_team == "America"
    assert matches[0].away_team == "Chivas"
    assert matches[0].p_home + matches[0].p_draw + matches[0].p_away == pytest.approx(1.0)
    assert matches[0].decisive is False


def test_load_matches_csv_normalizes_and_reads_optional_columns(tmp_path: Path) -> None:
    rows = ["# odds as percentages", "Home,Away,P_Home,P_Draw,P_Away,Decisive,Form_Diff"]
    rows.extend(f"H{i},A{i},50%,30%,30%,{'yes' if i == 0 else ''},0.5" for i in range(14))
    path = _write(tmp_path / "matches.csv", rows)

    matches = load_matches_csv(path)

    assert matches[0].decisive is True
    assert matches[1].decisive is False
    assert matches[0].form_diff == pytest.approx(0.5)
    assert matches[0].p_home == pytest.approx(0.5 / 1.1)


def test_load_matches_csv_requires_fourteen_rows(tmp_path: Path) -> None:
    rows = ["home,away,p_home,p_draw,p_away"]
    rows.extend(f"H{i},A{i},0.4,0.3,0.3" for i in range(13))
    path = _write(tmp_path / "matches.csv", rows)

    with pytest.raises(InputError, match="must contain 14 matches, got 13"):
        load_matches_csv(path)


def test_load_matches_csv_reports_missing_columns(tmp_path: Path) -> None:
    path = _write(tmp_path / "matches.csv", ["home,away,p_home", "A,B,0.4"])

    with pytest.raises(InputError, match="p_draw, p_away"):
        load_matches_csv(path)


def test_load_matches_csv_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_matches_csv(tmp_path / "nope.csv")


@pytest.mark.parametrize(
    ("row", "message"),
    [
        ({"home": "", "away": "B", "p_home": "0.4", "p_draw": "0.3", "p_away": "0.3"}, "team"),
        ({"home": "A", "away": "B", "p_home": "x", "p_draw": "0.3", "p_away": "0.3"}, "p_home"),
        (
            {"home": "A", "away": "B", "p_home": "0", "p_draw": "0", "p_away": "0"},
            "cannot be normalized",
        ),
        (
            {
                "home": "A",
                "away": "B",
                "p_home": "0.4",
                "p_draw": "0.3",
                "p_away": "0.3",
                "decisive": "maybe",
            },
            "decisive",
        ),
        (
            {
                "home": "A",
                "away": "B",
                "p_home": "0.4",
                "p_draw": "0.3",
                "p_away": "0.3",
                "form_diff": "strong",
            },
            "form_diff",
        ),
        (
            {
                "home": "A",
                "away": "B",
                "p_home": "0.4",
                "p_draw": "0.3",
                "p_away": "0.3",
                "injury_impact": "n/a",
            },
            "injury_impact",
        ),
    ],
)
def test_match_from_row_rejects_bad_rows(row: dict[str, str], message: str) -> None:
    with pytest.raises(InputError, match=message):
        match_from_row(row, 2)


def test_match_from_row_treats_blank_context_as_zero() -> None:
    row = {
        "home": "A",
        "away": "B",
        "p_home": "0.4",
        "p_draw": "0.3",
        "p_away": "0.3",
        "form_diff": " ",
        "injury_impact": "",
    }

    match = match_from_row(row, 2)

    assert match.form_diff == 0.0
    assert match.injury_impact == 0.0
