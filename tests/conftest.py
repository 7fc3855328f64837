from __future__ import annotations

from pathlib import Path

import pytest

from progol_opt.classifier import classify
from progol_opt.models import ClassifiedMatch, Match

SLATE_ROWS: list[tuple[str, str, float, float, float]] = [
    ("America", "Chivas", 0.45, 0.28, 0.27),
    ("Cruz Azul", "Pumas", 0.38, 0.30, 0.32),
    ("Toluca", "Leon", 0.33, 0.36, 0.31),
    ("Monterrey", "Tigres", 0.50, 0.27, 0.23),
    ("Santos", "Atlas", 0.41, 0.31, 0.28),
    ("Pachuca", "Necaxa", 0.36, 0.29, 0.35),
    ("Puebla", "Queretaro", 0.72, 0.17, 0.11),
    ("Mazatlan", "Juarez", 0.29, 0.33, 0.38),
    ("Tijuana", "San Luis", 0.47, 0.30, 0.23),
    ("Celaya", "Morelia", 0.35, 0.31, 0.34),
    ("Leones", "Venados", 0.42, 0.29, 0.29),
    ("Atlante", "Tampico", 0.52, 0.26, 0.22),
    ("Oaxaca", "Sinaloa", 0.37, 0.27, 0.36),
    ("Cancun", "Merida", 0.44, 0.30, 0.26),
]


@pytest.fixture
def slate() -> list[Match]:
    return [Match.from_raw(home, away, h, d, a) for home, away, h, d, a in SLATE_ROWS]


@pytest.fixture
def classified(slate: list[Match]) -> tuple[ClassifiedMatch, ...]:
    return classify(slate)


@pytest.fixture
def slate_csv(tmp_path: Path) -> Path:
    path = tmp_path / "matches.csv"
    lines = ["home,away,p_home,p_draw,p_away"]
    lines.extend(f"{home},{away},{h},{d},{a}" for home, away, h, d, a in SLATE_ROWS)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
