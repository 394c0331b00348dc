"""Ordered fallback chains.

A chain is a list of tiers, each a (precondition, attempt, falls_through)
triple. Tiers run in order until one succeeds; a failed tier hands over
to the next only when its failure is recognized by ``falls_through``.
Both the scaffold tiers and the install strategies are expressed this way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from buildspace.schemas import ExecutionResult


logger = logging.getLogger(__name__)


def always(*_args: object) -> bool:
    return True


@dataclass(frozen=True)
class Tier:
    """One strategy in a fallback chain."""
    name: str
    attempt: Callable[[], Awaitable[ExecutionResult]]
    precondition: Callable[[], bool] = always
    falls_through: Callable[[ExecutionResult], bool] = always


@dataclass
class ChainOutcome:
    """Result of evaluating a fallback chain."""
    result: ExecutionResult | None = None
    succeeded_tier: str | None = None
    attempts: list[tuple[str, ExecutionResult]] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    # True when a failure was not recognized and the chain stopped early
    halted: bool = False

    @property
    def ok(self) -> bool:
        return self.succeeded_tier is not None

    @property
    def attempted(self) -> list[str]:
        return [name for name, _ in self.attempts]


async def run_tiers(tiers: list[Tier], label: str = "chain") -> ChainOutcome:
    """Evaluate tiers in order.

    Args:
        tiers: Ordered tiers
        label: Name used in log messages

    Returns:
        ChainOutcome; ``result`` is the last attempted tier's result
    """
    outcome = ChainOutcome()

    for tier in tiers:
        if not tier.precondition():
            logger.info(f"{label}: skipping {tier.name} (precondition not met)")
            outcome.skipped.append(tier.name)
            continue

        logger.info(f"{label}: attempting {tier.name}")
        result = await tier.attempt()
        outcome.attempts.append((tier.name, result))
        outcome.result = result

        if result.ok:
            outcome.succeeded_tier = tier.name
            logger.info(f"{label}: {tier.name} succeeded")
            return outcome

        if not tier.falls_through(result):
            logger.warning(f"{label}: {tier.name} failed with an unrecognized error, stopping")
            outcome.halted = True
            return outcome

        logger.warning(f"{label}: {tier.name} failed, falling back")

    return outcome
