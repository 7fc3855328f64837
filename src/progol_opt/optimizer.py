"""GRASP construction plus simulated-annealing refinement of ticket portfolios."""

from __future__ import annotations

import logging
import math
import random
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import dataclass, replace
from typing import Literal

from progol_opt.errors import NoValidPortfolioError
from progol_opt.generator import GeneratorConfig, PortfolioGenerator, adjust_draws
from progol_opt.hit_probability import build_ticket, portfolio_hit_probability
from progol_opt.models import (
    DRAW,
    MATCH_COUNT,
    OUTCOMES,
    ClassifiedMatch,
    Outcome,
    Ticket,
    ValidationReport,
)
from progol_opt.validator import PortfolioRules, PortfolioValidator, match_counts

logger = logging.getLogger(__name__)

Phase = Literal["grasp", "repair", "annealing", "done"]
ProgressCallback = Callable[["ProgressEvent"], None]
StopCheck = Callable[[], bool]

_GRASP_POOL_SHARE = 10.0
_GRASP_SHARE = 15.0
_REPAIR_SHARE = 20.0
_WEIGHT_FLOOR = 1e-6


@dataclass(frozen=True)
class OptimizerConfig:
    """Search budget and GRASP/annealing parameters for one optimization run."""

    iterations: int = 5000
    initial_temperature: float = 0.80
    cooling_rate: float = 0.995
    target_size: int = 20
    seed: int = 42
    pool_size: int = 1000
    rcl_alpha: float = 0.25
    selection_alpha: float = 0.15
    max_flips: int = 3
    progress_every: int = 50
    repair_passes: int = 40

    def __post_init__(self) -> None:
        if self.target_size <= 0:
            raise ValueError("target_size must be positive")
        if self.iterations < 0:
            raise ValueError("iterations must be non-negative")
        if self.initial_temperature <= 0:
            raise ValueError("initial_temperature must be positive")
        if not (0.0 < self.cooling_rate <= 1.0):
            raise ValueError("cooling_rate must be in (0, 1]")
        if not (0.0 <= self.rcl_alpha <= 1.0):
            raise ValueError("rcl_alpha must be in [0, 1]")
        if not (0.0 < self.selection_alpha <= 1.0):
            raise ValueError("selection_alpha must be in (0, 1]")
        if self.max_flips < 1:
            raise ValueError("max_flips must be at least 1")
        if self.progress_every < 1:
            raise ValueError("progress_every must be at least 1")


@dataclass(frozen=True)
class ProgressEvent:
    """Snapshot pushed to the caller at each cooperative yield point."""

    phase: Phase
    iteration: int
    total_iterations: int
    best_score: float
    percent: float
    message: str = ""


@dataclass(frozen=True)
class OptimizationResult:
    tickets: tuple[Ticket, ...]
    score: float
    report: ValidationReport
    iterations: int
    accepted: int
    rejected: int
    improved: int
    cancelled: bool
    constructed_valid: bool
    final_temperature: float


def portfolio_score(tickets: Sequence[Ticket]) -> float:
    """Objective: probability that at least one ticket reaches 11 hits."""
    return portfolio_hit_probability(ticket.hit_probability for ticket in tickets)


class PortfolioOptimizer:
    """Two-phase GRASP + simulated annealing search over validated portfolios."""

    def __init__(
        self,
        rules: PortfolioRules | None = None,
        config: OptimizerConfig | None = None,
        *,
        generator_config: GeneratorConfig | None = None,
        rng: random.Random | None = None,
        validator: PortfolioValidator | None = None,
    ) -> None:
        self.rules = rules or PortfolioRules()
        self.config = config or OptimizerConfig()
        self.rng = rng or random.Random(self.config.seed)
        self.generator = PortfolioGenerator(self.rules, generator_config, self.rng)
        self.validator = validator or PortfolioValidator(self.rules)
        self._on_progress: ProgressCallback | None = None
        self._should_stop: StopCheck | None = None
        self._best_score = 0.0

    def _checkpoint(self, phase: Phase, iteration: int, percent: float, message: str) -> bool:
        """Push one progress event and report whether the caller asked to stop."""
        event = ProgressEvent(
            phase=phase,
            iteration=iteration,
            total_iterations=self.config.iterations,
            best_score=self._best_score,
            percent=round(min(100.0, max(0.0, percent)), 2),
            message=message,
        )
        logger.debug("%s iteration=%d best=%.6f", phase, iteration, self._best_score)
        if self._on_progress is not None:
            self._on_progress(event)
        return bool(self._should_stop is not None and self._should_stop())

    def _candidate_pool(
        self,
        classified: Sequence[ClassifiedMatch],
        initial: Sequence[Ticket],
        extra_candidates: Sequence[Ticket],
    ) -> tuple[list[Ticket], bool]:
        seen = {ticket.picks for ticket in initial}
        pool: list[Ticket] = []
        for ticket in extra_candidates:
            if ticket.picks not in seen:
                seen.add(ticket.picks)
                pool.append(ticket)
        cadence = self.config.progress_every
        for i in range(self.config.pool_size):
            picks = self.generator.grasp_picks(classified, self.config.rcl_alpha)
            if picks not in seen:
                seen.add(picks)
                pool.append(build_ticket(f"Grasp-{i + 1}", "candidate", picks, classified))
            if (i + 1) % cadence == 0:
                percent = (i + 1) / self.config.pool_size * _GRASP_POOL_SHARE
                if self._checkpoint("grasp", 0, percent, "building candidate pool"):
                    return pool, True
        return pool, False

    def construct(
        self,
        initial: Sequence[Ticket],
        classified: Sequence[ClassifiedMatch],
        pool: list[Ticket],
    ) -> list[Ticket]:
        """Grow the portfolio by random picks from the top alpha-fraction of marginal gains."""
        portfolio = list(initial)
        miss = 1.0 - portfolio_score(portfolio)
        fresh = 0
        while len(portfolio) < self.config.target_size:
            if not pool:
                fresh += 1
                picks = self.generator.grasp_picks(classified, self.config.rcl_alpha)
                pool.append(build_ticket(f"Grasp-x{fresh}", "candidate", picks, classified))
            # adding p to a portfolio whose miss probability is m raises the objective by m * p
            gains = [miss * candidate.hit_probability for candidate in pool]
            order = sorted(range(len(pool)), key=lambda i: (-gains[i], i))
            top_n = max(1, int(len(pool) * self.config.selection_alpha))
            chosen = pool.pop(order[self.rng.randrange(top_n)])
            portfolio.append(chosen)
            miss *= 1.0 - chosen.hit_probability
        return portfolio

    def _with_pick(
        self,
        ticket: Ticket,
        match_index: int,
        outcome: Outcome,
        classified: Sequence[ClassifiedMatch],
    ) -> Ticket:
        picks = list(ticket.picks)
        picks[match_index] = outcome
        return build_ticket(ticket.ticket_id, ticket.kind, picks, classified)

    def _draws_ok(self, ticket: Ticket, source: Outcome, target: Outcome) -> bool:
        draws = ticket.draw_count - (source == DRAW) + (target == DRAW)
        return self.rules.min_draws <= draws <= self.rules.max_draws

    def _repair_draws(self, tickets: list[Ticket], classified: Sequence[ClassifiedMatch]) -> bool:
        changed = False
        for i, ticket in enumerate(tickets):
            adjusted = adjust_draws(ticket.picks, classified, self.rules)
            if adjusted != ticket.picks:
                tickets[i] = build_ticket(ticket.ticket_id, ticket.kind, adjusted, classified)
                changed = True
        return changed

    def _spread_concentration(
        self, tickets: list[Ticket], classified: Sequence[ClassifiedMatch]
    ) -> bool:
        """Move the weakest tickets off any over-concentrated outcome."""
        if len(tickets) < 2:
            return False
        changed = False
        for match_index in range(MATCH_COUNT):
            match = classified[match_index]
            cap = self.rules.concentration_max_count(match_index, len(tickets))
            counts = match_counts(tickets, match_index)
            top = max(OUTCOMES, key=lambda outcome: counts[outcome])
            excess = counts[top] - cap
            if excess <= 0:
                continue
            holders = sorted(
                (i for i, ticket in enumerate(tickets) if ticket.picks[match_index] == top),
                key=lambda i: (tickets[i].hit_probability, i),
            )
            for i in holders:
                if excess <= 0:
                    break
                options = sorted(
                    (outcome for outcome in OUTCOMES if outcome != top and counts[outcome] < cap),
                    key=lambda outcome: (-match.prob(outcome), counts[outcome]),
                )
                for target in options:
                    moved = self._move_keeping_draws(tickets, i, match_index, target, classified)
                    if moved is None:
                        continue
                    tickets[i] = moved
                    counts[top] -= 1
                    counts[target] += 1
                    excess -= 1
                    changed = True
                    break
        return changed

    def _move_keeping_draws(
        self,
        tickets: Sequence[Ticket],
        i: int,
        match_index: int,
        target: Outcome,
        classified: Sequence[ClassifiedMatch],
    ) -> Ticket | None:
        """Change one pick; trade a draw on another match when the draw bounds would break."""
        picks = list(tickets[i].picks)
        picks[match_index] = target
        draws = picks.count(DRAW)
        if draws < self.rules.min_draws or draws > self.rules.max_draws:
            adding = draws < self.rules.min_draws
            trades: list[tuple[bool, float, int, Outcome]] = []
            for j, match in enumerate(classified):
                if j == match_index or (picks[j] == DRAW) == adding:
                    continue
                replacement = DRAW if adding else match.best_non_draw
                cap = self.rules.concentration_max_count(j, len(tickets))
                if len(tickets) >= 2 and match_counts(tickets, j)[replacement] + 1 > cap:
                    continue
                loss = match.prob(picks[j]) - match.prob(replacement)
                trades.append((match.is_anchor, loss, j, replacement))
            if not trades:
                return None
            _, _, j, replacement = min(trades)
            picks[j] = replacement
        ticket = tickets[i]
        return build_ticket(ticket.ticket_id, ticket.kind, picks, classified)

    def _distribution_moves(
        self, counts: Counter[str], ticket_count: int
    ) -> list[tuple[Outcome, Outcome]]:
        bounds = {outcome: self.rules.band_counts(outcome, ticket_count) for outcome in OUTCOMES}
        over = [outcome for outcome in OUTCOMES if counts[outcome] > bounds[outcome][1]]
        under = [outcome for outcome in OUTCOMES if counts[outcome] < bounds[outcome][0]]
        if not over and not under:
            return []
        sources = over or [outcome for outcome in OUTCOMES if counts[outcome] > bounds[outcome][0]]
        targets = under or [outcome for outcome in OUTCOMES if counts[outcome] < bounds[outcome][1]]
        moves = [(source, target) for source in sources for target in targets if source != target]
        return sorted(
            moves,
            key=lambda move: (
                -(counts[move[0]] - bounds[move[0]][1]),
                counts[move[1]] - bounds[move[1]][0],
            ),
        )

    def _cheapest_move(
        self,
        tickets: Sequence[Ticket],
        classified: Sequence[ClassifiedMatch],
        source: Outcome,
        target: Outcome,
    ) -> tuple[int, int] | None:
        best: tuple[int, int] | None = None
        best_key: tuple[bool, float, int, int] | None = None
        for match_index in range(MATCH_COUNT):
            match = classified[match_index]
            cap = self.rules.concentration_max_count(match_index, len(tickets))
            if len(tickets) >= 2 and match_counts(tickets, match_index)[target] + 1 > cap:
                continue
            loss = match.prob(source) - match.prob(target)
            for i, ticket in enumerate(tickets):
                if ticket.picks[match_index] != source:
                    continue
                if not self._draws_ok(ticket, source, target):
                    continue
                key = (match.is_anchor, loss, i, match_index)
                if best_key is None or key < best_key:
                    best_key = key
                    best = (i, match_index)
        return best

    def _rebalance_distribution(
        self, tickets: list[Ticket], classified: Sequence[ClassifiedMatch]
    ) -> bool:
        """Shift single picks between outcomes until the global shares sit inside their bands."""
        changed = False
        for _ in range(len(tickets) * MATCH_COUNT):
            counts: Counter[str] = Counter()
            for ticket in tickets:
                counts.update(ticket.picks)
            move = None
            for source, target in self._distribution_moves(counts, len(tickets)):
                position = self._cheapest_move(tickets, classified, source, target)
                if position is not None:
                    move = (position, target)
                    break
            if move is None:
                break
            (i, match_index), target = move
            tickets[i] = self._with_pick(tickets[i], match_index, target, classified)
            changed = True
        return changed

    def repair(
        self, tickets: Sequence[Ticket], classified: Sequence[ClassifiedMatch]
    ) -> list[Ticket]:
        """Greedy feasibility repair; the objective plays no part in it."""
        current = list(tickets)
        for _ in range(self.config.repair_passes):
            if self.validator.validate(current).valid:
                break
            changed = self._repair_draws(current, classified)
            changed = self._spread_concentration(current, classified) or changed
            changed = self._rebalance_distribution(current, classified) or changed
            if not changed:
                break
        return current

    def neighbor(
        self, current: Sequence[Ticket], classified: Sequence[ClassifiedMatch]
    ) -> tuple[Ticket, ...]:
        """Fresh portfolio with 1-3 non-anchor picks of one (preferably weak) ticket changed."""
        free = [match for match in classified if not match.is_anchor]
        if not current or not free:
            return tuple(current)
        ranked = sorted(range(len(current)), key=lambda i: (current[i].hit_probability, i))
        weights = [0] * len(current)
        for rank, i in enumerate(ranked):
            weights[i] = len(current) - rank
        index = self.rng.choices(range(len(current)), weights=weights, k=1)[0]
        ticket = current[index]

        picks = list(ticket.picks)
        flips = self.rng.randint(1, min(self.config.max_flips, len(free)))
        for match in self.rng.sample(free, flips):
            alternatives = [outcome for outcome in OUTCOMES if outcome != picks[match.index]]
            alt_weights = [match.prob(outcome) + _WEIGHT_FLOOR for outcome in alternatives]
            picks[match.index] = self.rng.choices(alternatives, weights=alt_weights, k=1)[0]
        adjusted = adjust_draws(picks, classified, self.rules)

        neighbor = list(current)
        neighbor[index] = build_ticket(ticket.ticket_id, ticket.kind, adjusted, classified)
        return tuple(neighbor)

    def run(
        self,
        initial: Sequence[Ticket],
        classified: Sequence[ClassifiedMatch],
        *,
        extra_candidates: Sequence[Ticket] = (),
        on_progress: ProgressCallback | None = None,
        should_stop: StopCheck | None = None,
    ) -> OptimizationResult:
        """Run GRASP construction, feasibility repair, then annealing; return best valid state."""
        if len(initial) > self.config.target_size:
            raise ValueError(
                f"{len(initial)} initial tickets exceed target size {self.config.target_size}"
            )
        self._on_progress = on_progress
        self._should_stop = should_stop
        self._best_score = 0.0

        pool, cancelled = self._candidate_pool(classified, initial, extra_candidates)
        constructed = self.construct(initial, classified, pool)
        logger.info(
            "grasp built %d tickets (score %.6f)", len(constructed), portfolio_score(constructed)
        )
        if not cancelled:
            cancelled = self._checkpoint("grasp", 0, _GRASP_SHARE, "portfolio constructed")

        constructed_valid = self.validator.validate(constructed).valid
        current = tuple(self.repair(constructed, classified))
        current_score = portfolio_score(current)
        current_report = self.validator.validate(current)
        best: tuple[Ticket, ...] | None = None
        best_report: ValidationReport | None = None
        if current_report.valid:
            best, best_report = current, current_report
            self._best_score = current_score
        else:
            logger.warning("repair left %d violations", len(current_report.errors))
        if not cancelled:
            cancelled = self._checkpoint("repair", 0, _REPAIR_SHARE, "feasibility repair done")

        temperature = self.config.initial_temperature
        accepted = rejected = improved = iterations_run = 0
        total = self.config.iterations
        budget = 0 if cancelled else total
        for iteration in range(1, budget + 1):
            iterations_run = iteration
            candidate = self.neighbor(current, classified)
            report = self.validator.validate(candidate)
            if not report.valid:
                rejected += 1
            else:
                score = portfolio_score(candidate)
                delta = score - current_score
                if delta > 0 or (
                    temperature > 0 and self.rng.random() < math.exp(delta / temperature)
                ):
                    current, current_score = candidate, score
                    accepted += 1
                    if best is None or score > self._best_score:
                        best, best_report = candidate, report
                        self._best_score = score
                        improved += 1
            temperature *= self.config.cooling_rate
            if iteration % self.config.progress_every == 0 or iteration == total:
                percent = _REPAIR_SHARE + (100.0 - _REPAIR_SHARE) * iteration / total
                if self._checkpoint("annealing", iteration, percent, "refining portfolio"):
                    cancelled = True
                    break

        logger.info(
            "annealing done: iterations=%d accepted=%d rejected=%d best=%.6f",
            iterations_run,
            accepted,
            rejected,
            self._best_score,
        )
        if best is None or best_report is None:
            raise NoValidPortfolioError(
                "optimizer found no portfolio that passes validation",
                last_portfolio=current,
                last_report=self.validator.validate(current),
            )
        self._checkpoint("done", iterations_run, 100.0, "optimization finished")
        return OptimizationResult(
            tickets=best,
            score=self._best_score,
            report=best_report,
            iterations=iterations_run,
            accepted=accepted,
            rejected=rejected,
            improved=improved,
            cancelled=cancelled,
            constructed_valid=constructed_valid,
            final_temperature=temperature,
        )


def optimize(
    initial: Sequence[Ticket],
    classified: Sequence[ClassifiedMatch],
    config: OptimizerConfig | None = None,
    on_progress: ProgressCallback | None = None,
    *,
    rules: PortfolioRules | None = None,
    extra_candidates: Sequence[Ticket] = (),
) -> tuple[Ticket, ...]:
    """Optimize a portfolio seeded with `initial` and return the best validated tickets."""
    optimizer = PortfolioOptimizer(rules, config)
    result = optimizer.run(
        initial, classified, extra_candidates=extra_candidates, on_progress=on_progress
    )
    return result.tickets


def relabel(tickets: Sequence[Ticket]) -> tuple[Ticket, ...]:
    """Give GRASP-sourced tickets sequential ids once the search is over."""
    relabeled: list[Ticket] = []
    counter = 0
    for ticket in tickets:
        if ticket.kind == "candidate":
            counter += 1
            ticket = replace(ticket, ticket_id=f"Opt-{counter}")
        relabeled.append(ticket)
    return tuple(relabeled)
