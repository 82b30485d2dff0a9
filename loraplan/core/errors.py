"""Exception taxonomy for the link planner.

- InvalidInputError: rejected immediately, never retried.
- ProviderUnavailable: terrain data could not be fetched; callers recover
  locally with a flat profile or a distance based estimate.
- ComputationDomainError: a formula was evaluated outside its domain. With
  validated input this indicates a logic fault, not a user error.
"""
from __future__ import annotations


class LinkPlannerError(Exception):
    """Base class for all planner errors."""


class InvalidInputError(LinkPlannerError, ValueError):
    """Out-of-range coordinates, power, resolution or degenerate geometry."""


class ProviderUnavailable(LinkPlannerError):
    """The terrain/elevation provider failed (network, rate limit, parse)."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ComputationDomainError(LinkPlannerError, ValueError):
    """Math evaluated outside its domain, e.g. log10 of a non-positive distance."""
