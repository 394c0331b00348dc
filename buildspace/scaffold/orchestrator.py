"""Project scaffolding with tiered fallbacks.

Tiers, in strict order:
1. primary   - the project-creation command as given
2. mirror    - fetch the template's file tree without history (degit)
3. synthetic - write a minimal working project by hand

Tier 1 hands over to tier 2 only on a recognized engine-incompatibility
failure; anything else is reported as-is. Tier 2 hands over to tier 3 on
any failure. After a successful tier the workspace's working directory
moves into the new project and dependencies are installed.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from pathlib import Path

from buildspace.config import Settings, get_settings
from buildspace.errors import ContainmentError
from buildspace.registry.registry import WorkspaceRegistry
from buildspace.schemas import ErrorKind, ExecutionResult, ScaffoldRequest, Workspace
from buildspace.scaffold.installer import DependencyInstaller
from buildspace.scaffold.synthetic import synthesize_project
from buildspace.scaffold.templates import mirror_fetch_command
from buildspace.scaffold.tiers import ChainOutcome, Tier, run_tiers
from buildspace.tools.paths import PathResolver
from buildspace.tools.process import CommandRunner, run_process


logger = logging.getLogger(__name__)

INCOMPATIBILITY_SIGNATURES: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"EBADENGINE",
        r"Unsupported engine",
        r"requires Node\.?js version",
        r"You are using Node\.?js",
        r"engine \"node\" is incompatible",
    )
)


def is_incompatibility(result: ExecutionResult) -> bool:
    """Check if a failure is a recognized runtime-incompatibility signature."""
    text = f"{result.output}\n{result.error or ''}"
    return any(pattern.search(text) for pattern in INCOMPATIBILITY_SIGNATURES)


def _first_line(text: str | None) -> str:
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return "unknown error"


class ScaffoldOrchestrator:
    """Runs project creation through the fallback tiers."""

    def __init__(
        self,
        registry: WorkspaceRegistry,
        resolver: PathResolver,
        installer: DependencyInstaller | None = None,
        runner: CommandRunner = run_process,
        settings: Settings | None = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.runner = runner
        self.settings = settings or get_settings()
        self.installer = installer or DependencyInstaller(
            runner=runner,
            max_output_bytes=self.settings.sandbox_max_output_bytes,
        )

    def build_tiers(
        self,
        request: ScaffoldRequest,
        cwd: Path,
        project_dir: Path,
        env: dict[str, str] | None,
    ) -> list[Tier]:
        max_output = self.settings.sandbox_max_output_bytes
        mirror_command = mirror_fetch_command(
            request.template, request.project_name, self.settings.default_template
        )

        async def primary() -> ExecutionResult:
            return await self.runner(request.original_command, cwd, env, None, max_output)

        async def mirror() -> ExecutionResult:
            return await self.runner(mirror_command, cwd, env, None, max_output)

        async def synthetic() -> ExecutionResult:
            return synthesize_project(project_dir)

        return [
            Tier("primary", primary, falls_through=is_incompatibility),
            Tier("mirror", mirror),
            Tier("synthetic", synthetic),
        ]

    async def scaffold(
        self,
        workspace: Workspace,
        request: ScaffoldRequest,
        cwd: Path,
        env: dict[str, str] | None = None,
    ) -> ExecutionResult:
        """Create a project and move the workspace into it.

        Args:
            workspace: Owning workspace
            request: Parsed project-creation request
            cwd: Directory the creation command runs in
            env: Process environment for the tiers

        Returns:
            ExecutionResult of the successful tier (annotated), the tier-1
            result for unrecognized failures, or a scaffold-exhaustion result
        """
        try:
            project_dir = self.resolver.ensure_contained(
                Path(os.path.normpath(Path(cwd) / request.project_name))
            )
        except ContainmentError as e:
            return ExecutionResult(
                output="",
                error=str(e),
                exit_code=1,
                error_kind=ErrorKind.CONTAINMENT_VIOLATION,
            )

        logger.info(
            f"Scaffolding {request.project_name} (template {request.template}) in {cwd}"
        )
        tiers = self.build_tiers(request, Path(cwd), project_dir, env)
        outcome = await run_tiers(tiers, label=f"scaffold {request.project_name}")

        if not outcome.ok:
            return self._failure(outcome)

        return await self.post_create(workspace, project_dir, outcome, in_place=request.in_place)

    def _failure(self, outcome: ChainOutcome) -> ExecutionResult:
        primary = outcome.attempts[0][1]
        if outcome.halted or len(outcome.attempts) == 1:
            return primary

        fallbacks = "; ".join(
            f"{name}: {_first_line(result.error)}" for name, result in outcome.attempts[1:]
        )
        logger.error(f"Scaffolding exhausted all tiers ({fallbacks})")
        return ExecutionResult(
            output=primary.output,
            error=f"{primary.error or 'Project creation failed'}\n"
                  f"Fallback attempts also failed: {fallbacks}",
            exit_code=primary.exit_code or 1,
            error_kind=ErrorKind.SCAFFOLD_EXHAUSTION,
        )

    async def post_create(
        self,
        workspace: Workspace,
        project_dir: Path,
        outcome: ChainOutcome,
        in_place: bool = False,
    ) -> ExecutionResult:
        """Settle, switch the working directory and install dependencies.

        In-place projects keep the current working directory.
        """
        result = outcome.result
        notes: list[str] = []
        warnings = list(result.warnings)
        error_kind = None

        if outcome.succeeded_tier != "primary":
            notes.append(
                f"Project creation tool was incompatible with this runtime; "
                f"created via {outcome.succeeded_tier} fallback."
            )

        await asyncio.sleep(self.settings.scaffold_settle_seconds)

        if not project_dir.is_dir():
            message = (
                f"Scaffold reported success but {project_dir.name} was not found; "
                f"working directory unchanged."
            )
            logger.warning(f"{message} (expected {project_dir})")
            warnings.append(message)
            return result.model_copy(update={
                "output": "\n".join([result.output.rstrip(), *notes]).strip(),
                "warnings": warnings,
            })

        if not in_place:
            await self.registry.update_working_dir(workspace.id, project_dir)
            notes.append(f"Working directory set to {project_dir.name}.")

        report = await self.installer.install(project_dir)
        if report.ok:
            notes.append(f"Dependencies installed ({report.strategy}).")
        else:
            error_kind = ErrorKind.INSTALL_SHORTFALL
            warnings.append(
                f"Dependency installation failed after {', '.join(report.attempted)}: "
                f"{_first_line(report.error)}. Run `npm install` to retry."
            )

        return ExecutionResult(
            output="\n".join([result.output.rstrip(), *notes]).strip(),
            error=result.error,
            exit_code=0,
            error_kind=error_kind,
            warnings=warnings,
        )
