"""Dependency installation with fallback strategies.

Strategies, tried in order until one exits zero:
1. npm install
2. npm install --legacy-peer-deps
3. npm install --force
4. npm ci (skipped up front when there is no lockfile)

Caches live inside the project directory so installs never touch a
shared global cache.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from buildspace.schemas import InstallReport
from buildspace.scaffold.tiers import Tier, run_tiers
from buildspace.tools.process import CommandRunner, run_process, scoped_env, DEFAULT_MAX_OUTPUT_BYTES


logger = logging.getLogger(__name__)

LOCKFILE_NAME = "package-lock.json"
INSTALL_CACHE_DIR = ".npm-install"


@dataclass(frozen=True)
class InstallStrategy:
    """Named install command template."""
    name: str
    command: str
    requires_lockfile: bool = False


INSTALL_STRATEGIES: tuple[InstallStrategy, ...] = (
    InstallStrategy("standard", "npm install"),
    InstallStrategy("legacy-peer-deps", "npm install --legacy-peer-deps"),
    InstallStrategy("force", "npm install --force"),
    InstallStrategy("lockfile", "npm ci", requires_lockfile=True),
)


class DependencyInstaller:
    """Installs a freshly scaffolded project's dependencies."""

    def __init__(
        self,
        runner: CommandRunner = run_process,
        strategies: tuple[InstallStrategy, ...] = INSTALL_STRATEGIES,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ):
        self.runner = runner
        self.strategies = strategies
        self.max_output_bytes = max_output_bytes

    async def install(self, project_dir: Path) -> InstallReport:
        """Install dependencies in project_dir.

        Never raises for install failures; a shortfall is reported with
        ``ok=False`` so the project stays usable and can be retried.
        """
        project_dir = Path(project_dir)
        has_lockfile = (project_dir / LOCKFILE_NAME).is_file()
        env = scoped_env(project_dir / INSTALL_CACHE_DIR)

        def attempt(strategy: InstallStrategy):
            async def _run():
                return await self.runner(
                    strategy.command, project_dir, env, None, self.max_output_bytes
                )
            return _run

        tiers = [
            Tier(
                name=strategy.name,
                attempt=attempt(strategy),
                precondition=(lambda: has_lockfile) if strategy.requires_lockfile else (lambda: True),
            )
            for strategy in self.strategies
        ]

        outcome = await run_tiers(tiers, label=f"install {project_dir.name}")

        if outcome.ok:
            logger.info(f"Dependencies installed in {project_dir} via {outcome.succeeded_tier}")
            return InstallReport(
                ok=True,
                strategy=outcome.succeeded_tier,
                attempted=outcome.attempted,
                skipped=outcome.skipped,
            )

        last_error = outcome.result.error if outcome.result else None
        logger.warning(
            f"All install strategies failed in {project_dir} "
            f"(tried: {', '.join(outcome.attempted)})"
        )
        return InstallReport(
            ok=False,
            attempted=outcome.attempted,
            skipped=outcome.skipped,
            error=last_error or "No install strategy succeeded",
        )
