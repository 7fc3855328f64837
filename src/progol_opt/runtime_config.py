"""Runtime configuration loader (config-first, flag-overrides)."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from progol_opt.classifier import ClassifierConfig
from progol_opt.errors import ConfigError
from progol_opt.generator import GeneratorConfig
from progol_opt.models import AWAY, DRAW, HOME, Outcome
from progol_opt.optimizer import OptimizerConfig
from progol_opt.validator import PortfolioRules

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "runtime.toml"
DEFAULT_LOCAL_OVERRIDE_PATH = Path(__file__).resolve().parents[2] / "config" / "runtime.local.toml"

_BAND_KEYS: dict[str, Outcome] = {"home": HOME, "draw": DRAW, "away": AWAY}


@dataclass(frozen=True)
class RuntimeConfig:
    """Materialized runtime configuration."""

    config_path: Path | None
    output_dir: Path
    log_level: str
    rules: PortfolioRules
    classifier: ClassifierConfig
    generator: GeneratorConfig
    optimizer: OptimizerConfig

    def with_overrides(
        self,
        *,
        seed: int | None = None,
        iterations: int | None = None,
        target_size: int | None = None,
        output_dir: Path | None = None,
        log_level: str | None = None,
    ) -> RuntimeConfig:
        """Return copy with explicit CLI/env overrides applied."""
        optimizer = self.optimizer
        if seed is not None:
            optimizer = replace(optimizer, seed=seed)
        if iterations is not None:
            optimizer = replace(optimizer, iterations=iterations)
        if target_size is not None:
            optimizer = replace(optimizer, target_size=target_size)
        return replace(
            self,
            optimizer=optimizer,
            output_dir=output_dir or self.output_dir,
            log_level=log_level or self.log_level,
        )


def default_runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        config_path=None,
        output_dir=Path("output").resolve(),
        log_level="INFO",
        rules=PortfolioRules(),
        classifier=ClassifierConfig(),
        generator=GeneratorConfig(),
        optimizer=OptimizerConfig(),
    )


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for key, value in overlay.items():
        existing = out.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            out[key] = _deep_merge(existing, value)
        else:
            out[key] = value
    return out


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        payload = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"failed reading runtime config: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid runtime config TOML: {path}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"runtime config root must be a table: {path}")
    return payload


def _as_table(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key, {})
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"runtime config section [{key}] must be a table")
    return value


def _as_str(value: Any, *, default: str) -> str:
    if isinstance(value, str):
        stripped = value.strip()
        if stripped:
            return stripped
    return default


def _as_int(value: Any, *, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return default
    return default


def _as_float(value: Any, *, default: float) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def _as_band(value: Any, *, default: tuple[float, float], name: str) -> tuple[float, float]:
    if value is None:
        return default
    if not isinstance(value, list) or len(value) != 2:
        raise ConfigError(f"band '{name}' must be a two-element [low, high] list")
    low = _as_float(value[0], default=default[0])
    high = _as_float(value[1], default=default[1])
    if not (0.0 <= low <= high <= 1.0):
        raise ConfigError(f"band '{name}' must satisfy 0 <= low <= high <= 1")
    return low, high


def _resolve_path(raw: Any, *, default: str, base_dir: Path) -> Path:
    value = _as_str(raw, default=default)
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    return path


def _rules_from(table: dict[str, Any]) -> PortfolioRules:
    defaults = PortfolioRules()
    bands_table = _as_table(table, "bands")
    bands = {
        outcome: _as_band(
            bands_table.get(key), default=defaults.distribution_bands[outcome], name=key
        )
        for key, outcome in _BAND_KEYS.items()
    }
    rules = PortfolioRules(
        min_draws=_as_int(table.get("min_draws"), default=defaults.min_draws),
        max_draws=_as_int(table.get("max_draws"), default=defaults.max_draws),
        distribution_bands=bands,
        historical_distribution=defaults.historical_distribution,
        concentration_cap=_as_float(
            table.get("concentration_cap"), default=defaults.concentration_cap
        ),
        initial_concentration_cap=_as_float(
            table.get("initial_concentration_cap"),
            default=defaults.initial_concentration_cap,
        ),
        initial_matches=_as_int(table.get("initial_matches"), default=defaults.initial_matches),
        ticket_cost=_as_float(table.get("ticket_cost"), default=defaults.ticket_cost),
    )
    if not (0 <= rules.min_draws <= rules.max_draws <= 14):
        raise ConfigError("rules require 0 <= min_draws <= max_draws <= 14")
    return rules


def _classifier_from(table: dict[str, Any]) -> ClassifierConfig:
    defaults = ClassifierConfig()
    return ClassifierConfig(
        form_weight=_as_float(table.get("form_weight"), default=defaults.form_weight),
        injury_weight=_as_float(table.get("injury_weight"), default=defaults.injury_weight),
        decisive_weight=_as_float(table.get("decisive_weight"), default=defaults.decisive_weight),
        draw_propensity_gap=_as_float(
            table.get("draw_propensity_gap"), default=defaults.draw_propensity_gap
        ),
        draw_propensity_boost=_as_float(
            table.get("draw_propensity_boost"), default=defaults.draw_propensity_boost
        ),
        anchor_threshold=_as_float(
            table.get("anchor_threshold"), default=defaults.anchor_threshold
        ),
        anchor_margin=_as_float(table.get("anchor_margin"), default=defaults.anchor_margin),
        draw_threshold=_as_float(table.get("draw_threshold"), default=defaults.draw_threshold),
        divisor_min=_as_float(table.get("divisor_min"), default=defaults.divisor_min),
        divisor_max=_as_float(table.get("divisor_max"), default=defaults.divisor_max),
        volatile_gap=_as_float(table.get("volatile_gap"), default=defaults.volatile_gap),
    )


def _generator_from(table: dict[str, Any]) -> GeneratorConfig:
    defaults = GeneratorConfig()
    return GeneratorConfig(
        conservative_draw_floor=_as_float(
            table.get("conservative_draw_floor"), default=defaults.conservative_draw_floor
        ),
        borderline_confidence=_as_float(
            table.get("borderline_confidence"), default=defaults.borderline_confidence
        ),
        aggressive_confidence=_as_float(
            table.get("aggressive_confidence"), default=defaults.aggressive_confidence
        ),
        balanced_flip_fraction=_as_float(
            table.get("balanced_flip_fraction"), default=defaults.balanced_flip_fraction
        ),
        satellite_subset_fraction=_as_float(
            table.get("satellite_subset_fraction"), default=defaults.satellite_subset_fraction
        ),
        satellite_volatility_floor=_as_float(
            table.get("satellite_volatility_floor"), default=defaults.satellite_volatility_floor
        ),
        leftover_trials=_as_int(table.get("leftover_trials"), default=defaults.leftover_trials),
        leftover_flip_probability=_as_float(
            table.get("leftover_flip_probability"), default=defaults.leftover_flip_probability
        ),
    )


def _optimizer_from(table: dict[str, Any]) -> OptimizerConfig:
    defaults = OptimizerConfig()
    try:
        return OptimizerConfig(
            iterations=_as_int(table.get("iterations"), default=defaults.iterations),
            initial_temperature=_as_float(
                table.get("initial_temperature"), default=defaults.initial_temperature
            ),
            cooling_rate=_as_float(table.get("cooling_rate"), default=defaults.cooling_rate),
            target_size=_as_int(table.get("target_size"), default=defaults.target_size),
            seed=_as_int(table.get("seed"), default=defaults.seed),
            pool_size=_as_int(table.get("pool_size"), default=defaults.pool_size),
            rcl_alpha=_as_float(table.get("rcl_alpha"), default=defaults.rcl_alpha),
            selection_alpha=_as_float(
                table.get("selection_alpha"), default=defaults.selection_alpha
            ),
            max_flips=_as_int(table.get("max_flips"), default=defaults.max_flips),
            progress_every=_as_int(table.get("progress_every"), default=defaults.progress_every),
            repair_passes=_as_int(table.get("repair_passes"), default=defaults.repair_passes),
        )
    except ValueError as exc:
        raise ConfigError(f"invalid [optimizer] config: {exc}") from exc


def load_runtime_config(config_path: Path | None = None) -> RuntimeConfig:
    """Load runtime config from `config/runtime.toml` plus optional local override."""
    source = (config_path or DEFAULT_CONFIG_PATH).expanduser().resolve()
    if not source.exists():
        raise ConfigError(f"runtime config file not found: {source}")

    payload = _read_toml(source)
    if source == DEFAULT_CONFIG_PATH and DEFAULT_LOCAL_OVERRIDE_PATH.exists():
        payload = _deep_merge(payload, _read_toml(DEFAULT_LOCAL_OVERRIDE_PATH))

    output = _as_table(payload, "output")
    return RuntimeConfig(
        config_path=source,
        output_dir=_resolve_path(output.get("dir"), default="output", base_dir=source.parent),
        log_level=_as_str(output.get("log_level"), default="INFO").upper(),
        rules=_rules_from(_as_table(payload, "rules")),
        classifier=_classifier_from(_as_table(payload, "classifier")),
        generator=_generator_from(_as_table(payload, "generator")),
        optimizer=_optimizer_from(_as_table(payload, "optimizer")),
    )
