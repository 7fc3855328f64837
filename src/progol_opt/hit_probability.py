"""Exact hit-count probabilities for tickets and portfolios."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import numpy as np

from progol_opt.models import ClassifiedMatch, Outcome, Ticket, TicketKind

PROB_EPSILON = 1e-6
PRIZE_THRESHOLD = 11


def hit_distribution(
    probabilities: Sequence[float], *, epsilon: float = PROB_EPSILON
) -> np.ndarray:
    """Return the Poisson-binomial pmf of hit counts, index = number of hits."""
    clipped = np.clip(np.asarray(probabilities, dtype=np.float64), epsilon, 1.0 - epsilon)
    dp = np.zeros(clipped.size + 1, dtype=np.float64)
    dp[0] = 1.0
    for p in clipped:
        # right-hand side is evaluated before assignment, so dp[:-1] is the previous row
        dp[1:] = dp[1:] * (1.0 - p) + dp[:-1] * p
        dp[0] *= 1.0 - p
    return dp


def prob_at_least(
    probabilities: Sequence[float],
    k: int = PRIZE_THRESHOLD,
    *,
    epsilon: float = PROB_EPSILON,
) -> float:
    """P(hits >= k) for independent per-match correct probabilities."""
    if k <= 0:
        return 1.0
    if k > len(probabilities):
        return 0.0
    dist = hit_distribution(probabilities, epsilon=epsilon)
    return float(min(1.0, max(0.0, dist[k:].sum())))


def correct_probabilities(
    picks: Sequence[Outcome], classified: Sequence[ClassifiedMatch]
) -> list[float]:
    if len(picks) != len(classified):
        raise ValueError(f"picks ({len(picks)}) and matches ({len(classified)}) differ in length")
    return [match.prob(pick) for pick, match in zip(picks, classified, strict=True)]


def ticket_hit_probability(
    picks: Sequence[Outcome],
    classified: Sequence[ClassifiedMatch],
    *,
    k: int = PRIZE_THRESHOLD,
) -> float:
    return prob_at_least(correct_probabilities(picks, classified), k)


def portfolio_hit_probability(probabilities: Iterable[float]) -> float:
    """P(at least one ticket reaches the prize threshold) = 1 - prod(1 - p_i)."""
    miss = 1.0
    for probability in probabilities:
        miss *= 1.0 - probability
    return 1.0 - miss


def build_ticket(
    ticket_id: str,
    kind: TicketKind,
    picks: Sequence[Outcome],
    classified: Sequence[ClassifiedMatch],
) -> Ticket:
    """Create a fresh ticket value with its hit probability computed."""
    frozen = tuple(picks)
    return Ticket(
        ticket_id=ticket_id,
        kind=kind,
        picks=frozen,
        hit_probability=ticket_hit_probability(frozen, classified),
    )
