"""CSV, JSON, and printable-slip renderings of a final portfolio."""

from __future__ import annotations

import csv
import io
import json
import os
import uuid
from collections.abc import Sequence
from contextlib import suppress
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, cast

import polars as pl

from progol_opt.errors import InputError
from progol_opt.hit_probability import build_ticket
from progol_opt.models import (
    MATCH_COUNT,
    ClassifiedMatch,
    Outcome,
    Ticket,
    TicketKind,
    ValidationReport,
)
from progol_opt.validator import PortfolioRules

PICK_COLUMNS: tuple[str, ...] = tuple(f"P{i + 1}" for i in range(MATCH_COUNT))
CSV_COLUMNS: tuple[str, ...] = ("ID", "Type", *PICK_COLUMNS, "DrawCount", "ProbAtLeast11")
METHOD_LABEL = "Core + Satellites with GRASP-Annealing"
_KINDS: frozenset[str] = frozenset({"core", "satellite", "candidate"})


def _timestamp() -> str:
    return datetime.now(UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".tmp-{path.name}-{uuid.uuid4().hex}")
    try:
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError:
        with suppress(FileNotFoundError):
            tmp_path.unlink()
        raise


def portfolio_csv(tickets: Sequence[Ticket]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for ticket in tickets:
        writer.writerow(
            [
                ticket.ticket_id,
                ticket.kind,
                *ticket.picks,
                ticket.draw_count,
                f"{ticket.hit_probability * 100:.2f}%",
            ]
        )
    return buffer.getvalue()


def load_portfolio_csv(path: Path, classified: Sequence[ClassifiedMatch]) -> tuple[Ticket, ...]:
    """Read a portfolio CSV export; probabilities are recomputed from `classified`."""
    if not path.exists():
        raise FileNotFoundError(f"portfolio file not found: {path}")
    frame = pl.read_csv(path, infer_schema_length=0)
    missing = [column for column in ("ID", *PICK_COLUMNS) if column not in frame.columns]
    if missing:
        raise InputError(f"portfolio CSV {path} is missing columns: {', '.join(missing)}")
    tickets: list[Ticket] = []
    for row in frame.iter_rows(named=True):
        raw_kind = str(row.get("Type") or "").strip().lower()
        kind = cast(TicketKind, raw_kind if raw_kind in _KINDS else "candidate")
        picks = [cast(Outcome, str(row[column] or "").strip().upper()) for column in PICK_COLUMNS]
        tickets.append(build_ticket(str(row["ID"]), kind, picks, classified))
    return tuple(tickets)


def portfolio_json(
    tickets: Sequence[Ticket],
    classified: Sequence[ClassifiedMatch],
    report: ValidationReport,
    *,
    rules: PortfolioRules | None = None,
    generated_at: str = "",
) -> dict[str, Any]:
    resolved = rules or PortfolioRules()
    return {
        "metadata": {
            "generated_at": generated_at or _timestamp(),
            "total_tickets": len(tickets),
            "method": METHOD_LABEL,
            "historical_distribution": dict(resolved.historical_distribution),
        },
        "classified_matches": [match.to_dict() for match in classified],
        "portfolio": [ticket.to_dict() for ticket in tickets],
        "validation": report.to_dict(),
    }


def portfolio_slip(
    tickets: Sequence[Ticket],
    classified: Sequence[ClassifiedMatch],
    *,
    generated_at: str = "",
) -> str:
    lines = [
        "PROGOL OPTIMIZER - OPTIMIZED PORTFOLIO",
        "=" * 50,
        f"Generated: {generated_at or _timestamp()}",
        f"Total tickets: {len(tickets)}",
        "",
        "MATCHES:",
    ]
    for i, match in enumerate(classified[:MATCH_COUNT]):
        lines.append(f"{i + 1:>2}. {match.match.home_team} vs {match.match.away_team}")
    lines.extend(["", "TICKETS:"])
    for ticket in tickets:
        picks = " ".join(ticket.picks)
        lines.append(
            f"{ticket.ticket_id:<10}: {picks} | Draws: {ticket.draw_count} | "
            f"P[>=11]: {ticket.hit_probability * 100:.1f}%"
        )
    return "\n".join(lines) + "\n"


def write_exports(
    out_dir: Path,
    tickets: Sequence[Ticket],
    classified: Sequence[ClassifiedMatch],
    report: ValidationReport,
    *,
    rules: PortfolioRules | None = None,
) -> dict[str, Path]:
    """Write CSV, JSON, and slip files; returns their paths keyed by format."""
    generated_at = _timestamp()
    paths = {
        "csv": out_dir / "portfolio.csv",
        "json": out_dir / "portfolio.json",
        "slip": out_dir / "portfolio_slip.txt",
    }
    payload = portfolio_json(tickets, classified, report, rules=rules, generated_at=generated_at)
    _atomic_write_text(paths["csv"], portfolio_csv(tickets))
    _atomic_write_text(paths["json"], json.dumps(payload, ensure_ascii=False, indent=2) + "\n")
    slip = portfolio_slip(tickets, classified, generated_at=generated_at)
    _atomic_write_text(paths["slip"], slip)
    return paths
