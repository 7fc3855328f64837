"""Load match slates from CSV."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl

from progol_opt.errors import InputError
from progol_opt.models import MATCH_COUNT, Match
from progol_opt.util.parsing import safe_bool, safe_float

REQUIRED_COLUMNS: tuple[str, ...] = ("home", "away", "p_home", "p_draw", "p_away")
OPTIONAL_COLUMNS: tuple[str, ...] = ("decisive", "form_diff", "injury_impact")


def _required_float(row: dict[str, Any], column: str, line: int) -> float:
    value = safe_float(row.get(column))
    if value is None:
        raise InputError(f"row {line}: column '{column}' is not a number: {row.get(column)!r}")
    return value


def _optional_float(row: dict[str, Any], column: str, line: int) -> float:
    raw = row.get(column)
    if raw is None or not str(raw).strip():
        return 0.0
    return _required_float(row, column, line)


def match_from_row(row: dict[str, Any], line: int) -> Match:
    home = str(row.get("home") or "").strip()
    away = str(row.get("away") or "").strip()
    if not home or not away:
        raise InputError(f"row {line}: home and away team names are required")
    decisive = safe_bool(row.get("decisive"))
    if decisive is None:
        raise InputError(f"row {line}: column 'decisive' is not a boolean: {row.get('decisive')!r}")
    return Match.from_raw(
        home,
        away,
        _required_float(row, "p_home", line),
        _required_float(row, "p_draw", line),
        _required_float(row, "p_away", line),
        form_diff=_optional_float(row, "form_diff", line),
        injury_impact=_optional_float(row, "injury_impact", line),
        decisive=decisive,
    )


def load_matches_csv(path: Path, *, expected: int = MATCH_COUNT) -> list[Match]:
    """Read and normalize a match slate; the file must hold exactly `expected` rows."""
    if not path.exists():
        raise FileNotFoundError(f"matches file not found: {path}")
    try:
        frame = pl.read_csv(path, comment_prefix="#", infer_schema_length=0)
    except pl.exceptions.PolarsError as exc:
        raise InputError(f"failed reading matches CSV {path}: {exc}") from exc
    frame = frame.rename({column: column.strip().lower() for column in frame.columns})
    missing = [column for column in REQUIRED_COLUMNS if column not in frame.columns]
    if missing:
        raise InputError(f"matches CSV {path} is missing columns: {', '.join(missing)}")
    matches = [match_from_row(row, line) for line, row in enumerate(frame.iter_rows(named=True), 2)]
    if len(matches) != expected:
        raise InputError(f"matches CSV {path} must contain {expected} matches, got {len(matches)}")
    return matches
