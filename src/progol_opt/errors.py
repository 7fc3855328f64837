"""Error types for progol-opt flows."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from progol_opt.models import Ticket, ValidationReport


class ProgolError(RuntimeError):
    """Base error for progol-opt operations."""


class InputError(ProgolError, ValueError):
    """Raised when supplied matches or probability triples are unusable."""


class ConfigError(ProgolError):
    """Raised when runtime config cannot be read or is malformed."""


class NoValidPortfolioError(ProgolError):
    """Raised when the optimizer never observed a portfolio that passed validation."""

    def __init__(
        self,
        message: str,
        *,
        last_portfolio: tuple[Ticket, ...] = (),
        last_report: ValidationReport | None = None,
    ) -> None:
        super().__init__(message)
        self.last_portfolio = last_portfolio
        self.last_report = last_report
