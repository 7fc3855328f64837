"""End-to-end run: classify, generate, optimize, validate."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from dataclasses import dataclass

from progol_opt.classifier import classify
from progol_opt.generator import CORE_STYLES, PortfolioGenerator
from progol_opt.models import ClassifiedMatch, Match, Ticket, ValidationReport
from progol_opt.optimizer import (
    OptimizationResult,
    PortfolioOptimizer,
    ProgressCallback,
    StopCheck,
    relabel,
)
from progol_opt.runtime_config import RuntimeConfig, default_runtime_config
from progol_opt.validator import PortfolioValidator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    classified: tuple[ClassifiedMatch, ...]
    core: tuple[Ticket, ...]
    satellites: tuple[Ticket, ...]
    optimization: OptimizationResult
    tickets: tuple[Ticket, ...]
    report: ValidationReport


def run_pipeline(
    matches: Sequence[Match],
    config: RuntimeConfig | None = None,
    *,
    on_progress: ProgressCallback | None = None,
    should_stop: StopCheck | None = None,
) -> PipelineResult:
    """Run one seeded optimization over a 14-match slate."""
    runtime = config or default_runtime_config()
    rng = random.Random(runtime.optimizer.seed)

    classified = classify(matches, runtime.classifier)
    generator = PortfolioGenerator(runtime.rules, runtime.generator, rng)
    core = generator.generate_core(classified)
    satellite_count = max(0, runtime.optimizer.target_size - len(CORE_STYLES))
    satellites = generator.generate_satellites(classified, core, satellite_count)

    validator = PortfolioValidator(runtime.rules)
    optimizer = PortfolioOptimizer(
        runtime.rules,
        runtime.optimizer,
        generator_config=runtime.generator,
        rng=rng,
        validator=validator,
    )
    initial = core[: runtime.optimizer.target_size]
    optimization = optimizer.run(
        initial,
        classified,
        extra_candidates=satellites,
        on_progress=on_progress,
        should_stop=should_stop,
    )
    tickets = relabel(optimization.tickets)
    report = validator.validate(tickets)
    logger.info(
        "portfolio of %d tickets: valid=%s P(>=1 ticket with 11+)=%.4f",
        len(tickets),
        report.valid,
        report.metrics.portfolio_probability,
    )
    return PipelineResult(
        classified=classified,
        core=core,
        satellites=satellites,
        optimization=optimization,
        tickets=tickets,
        report=report,
    )
