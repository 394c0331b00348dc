"""Sandbox command gateway.

Runs workspace commands in a controlled way:
- Rewrites package-manager invocations that are unreliable in this runtime
- Allowlist of permitted command shapes
- Pre-flight check that ``run <script>`` targets an existing script
- Output capture with bounded buffers and a per-class timeout
- Project-creation commands are handed to the scaffold orchestrator
"""

from __future__ import annotations

import json
import logging
import os
import re
import shlex
from pathlib import Path, PurePosixPath

from buildspace.config import Settings, get_settings
from buildspace.errors import ContainmentError, WorkspaceNotFoundError
from buildspace.registry.registry import WorkspaceRegistry
from buildspace.schemas import CommandClass, ErrorKind, ExecutionResult, Workspace
from buildspace.scaffold.orchestrator import ScaffoldOrchestrator
from buildspace.scaffold.parser import parse_scaffold_command
from buildspace.tools.paths import PathResolver
from buildspace.tools.process import CommandRunner, run_process, scoped_env


logger = logging.getLogger(__name__)

PACKAGE_MANAGERS = frozenset({"npm", "npx", "pnpm", "yarn", "node"})
READ_ONLY_UTILITIES = frozenset({
    "ls", "cat", "echo", "pwd", "head", "tail", "wc",
    "find", "grep", "tree", "which", "mkdir", "touch",
})
VERSION_CONTROL = frozenset({"git"})

FORBIDDEN_ARGS: dict[str, frozenset[str]] = {
    "find": frozenset({"-exec", "-execdir", "-ok", "-okdir", "-delete"}),
}

INSTALL_VERBS = frozenset({"install", "i", "ci", "add", "create", "init"})
RUN_VERBS = frozenset({"run", "run-script"})

# bun invocations replaced by their npm equivalents, keyed by bun verb
BUN_REWRITES: dict[str, list[str]] = {
    "run": ["npm", "run"],
    "install": ["npm", "install"],
    "add": ["npm", "install"],
    "i": ["npm", "install"],
    "create": ["npm", "create"],
}

# Programs whose operands are never paths
NON_PATH_PROGRAMS = frozenset({"echo", "which", "pwd"})

# Options whose value names a file or directory
PATH_OPTIONS: dict[str, frozenset[str]] = {
    "grep": frozenset({"-f", "--file", "--exclude-from"}),
    "git": frozenset({"-C", "--git-dir", "--work-tree", "-F", "--file"}),
    "find": frozenset({"-newer", "-anewer", "-cnewer", "-samefile"}),
}

# Options whose value is free text
TEXT_OPTIONS: dict[str, frozenset[str]] = {
    "grep": frozenset({
        "-e", "--regexp", "-m", "--max-count", "-A", "--after-context",
        "-B", "--before-context", "-C", "--context", "--include",
        "--exclude", "--exclude-dir", "--label",
    }),
    "git": frozenset({
        "-m", "--message", "-b", "-B", "-c", "--author", "--format",
        "--pretty", "--grep", "--branch",
    }),
    "find": frozenset({
        "-name", "-iname", "-path", "-ipath", "-wholename", "-regex",
        "-iregex", "-type", "-maxdepth", "-mindepth", "-size", "-mtime",
        "-perm", "-user", "-group",
    }),
    "head": frozenset({"-n", "--lines", "-c", "--bytes"}),
    "tail": frozenset({"-n", "--lines", "-c", "--bytes"}),
}

# find spells options as single-dash words, never as letter clusters
_WORD_OPTION_PROGRAMS = frozenset({"find"})
_PATTERN_OPTIONS = frozenset({"-e", "--regexp", "-f", "--file"})

_CONTROL_CHARS = frozenset("();<>|&")
_SAFE_TOKEN = re.compile(r"[\w@%+=:,./*?~^\[\]{}-]+")


# =============================================================================
# Command text helpers
# =============================================================================

def preprocess_command(command: str, legacy_prefix: str = "/workspace") -> str:
    """Drop a leading legacy ``cd ... &&``."""
    prefix = re.escape(legacy_prefix.rstrip("/"))
    processed = re.sub(rf"^cd\s+{prefix}(?:/\S*)?\s*&&\s*", "", command.strip())
    return processed.strip()


def rewrite_segment(segment: list[str]) -> list[str]:
    """Replace a bun invocation with its npm/npx equivalent."""
    program, args = segment[0], segment[1:]
    if program == "bunx":
        rewritten = ["npx", *args]
    elif program == "bun" and args and args[0] in BUN_REWRITES:
        rewritten = [*BUN_REWRITES[args[0]], *args[1:]]
    else:
        return segment
    logger.info(f"Rewrote {' '.join(segment[:2])} -> {' '.join(rewritten[:2])}")
    return rewritten


def tokenize(command: str) -> list[str] | None:
    """Split a command into words and shell operators, honoring quotes."""
    lexer = shlex.shlex(command, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        return list(lexer)
    except ValueError:
        return None


def split_segments(tokens: list[str]) -> list[list[str]] | None:
    """Split tokens on ``&&``; any other shell operator makes the command invalid."""
    segments: list[list[str]] = [[]]
    for token in tokens:
        if token == "&&":
            segments.append([])
        elif set(token) <= _CONTROL_CHARS:
            return None
        else:
            segments[-1].append(token)
    if any(not segment for segment in segments):
        return None
    return segments


def _is_relative_inside(path: str) -> bool:
    pure = PurePosixPath(path)
    return not (
        pure.is_absolute() or path.startswith(("~", "-")) or ".." in pure.parts
    )


def _segment_class(segment: list[str], position: int) -> CommandClass | None:
    program, args = segment[0], segment[1:]

    if program == "cd":
        if len(args) > 1:
            return None
        if position > 0 and not (args and _is_relative_inside(args[0])):
            return None
        return CommandClass.DIRECTORY_CHANGE

    if "/" in program:
        return None
    if any(arg in FORBIDDEN_ARGS.get(program, ()) for arg in args):
        return None

    if program in PACKAGE_MANAGERS:
        return CommandClass.PACKAGE_MANAGER
    if program in READ_ONLY_UTILITIES:
        return CommandClass.READ_ONLY
    if program in VERSION_CONTROL:
        return CommandClass.VERSION_CONTROL
    return None


def classify_segments(segments: list[list[str]]) -> CommandClass | None:
    """Match segments against the allowlisted shapes."""
    if len(segments) == 1:
        return _segment_class(segments[0], 0)
    for position, segment in enumerate(segments):
        if _segment_class(segment, position) is None:
            return None
    return CommandClass.COMPOUND


def parse_command(command: str) -> tuple[CommandClass, list[list[str]]] | None:
    """Tokenize, split, rewrite and classify a preprocessed command.

    Returns:
        The command class and rewritten segments, or None if the command
        is not allowed
    """
    if not command or "`" in command or "$(" in command:
        return None
    tokens = tokenize(command)
    if not tokens:
        return None
    segments = split_segments(tokens)
    if segments is None:
        return None
    segments = [rewrite_segment(segment) for segment in segments]
    command_class = classify_segments(segments)
    if command_class is None:
        return None
    return command_class, segments


def join_segment(segment: list[str]) -> str:
    return " ".join(
        token if _SAFE_TOKEN.fullmatch(token) else shlex.quote(token)
        for token in segment
    )


def is_install_segment(segment: list[str]) -> bool:
    """Install/download-class commands run without a timeout."""
    program, args = segment[0], segment[1:]
    if program == "npx":
        return True
    if program in ("npm", "pnpm", "yarn") and args and args[0] in INSTALL_VERBS:
        return True
    return program == "git" and bool(args) and args[0] == "clone"


def requested_script(segment: list[str]) -> str | None:
    """Script name for ``<pm> run <script>`` segments."""
    if segment[0] not in ("npm", "pnpm", "yarn") or len(segment) < 3:
        return None
    if segment[1] not in RUN_VERBS:
        return None
    for arg in segment[2:]:
        if arg == "--":
            return None
        if not arg.startswith("-"):
            return arg
    return None


# =============================================================================
# Gateway
# =============================================================================

class CommandGateway:
    """Gatekeeps and executes commands inside a workspace."""

    def __init__(
        self,
        registry: WorkspaceRegistry,
        resolver: PathResolver,
        settings: Settings | None = None,
        runner: CommandRunner = run_process,
        orchestrator: ScaffoldOrchestrator | None = None,
    ):
        self.registry = registry
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.runner = runner
        self.orchestrator = orchestrator or ScaffoldOrchestrator(
            registry, resolver, runner=runner, settings=self.settings
        )

    async def execute(
        self,
        workspace: Workspace,
        raw_command: str,
        working_dir: str | None = None,
    ) -> ExecutionResult:
        """Run a command in a workspace.

        Args:
            workspace: Target workspace
            raw_command: Command as requested by the caller
            working_dir: Optional working directory override

        Returns:
            ExecutionResult; policy, validation and execution failures are
            returned, never raised
        """
        try:
            return await self._execute(workspace, raw_command, working_dir)
        except WorkspaceNotFoundError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected failure running {raw_command!r}")
            return ExecutionResult(
                output="",
                error=str(e),
                exit_code=1,
                error_kind=ErrorKind.EXECUTION_FAILURE,
            )

    async def _execute(
        self,
        workspace: Workspace,
        raw_command: str,
        working_dir: str | None,
    ) -> ExecutionResult:
        command = preprocess_command(raw_command, self.settings.legacy_path_prefix)
        if command != raw_command.strip():
            logger.info(f"Stripped legacy cd: {raw_command!r} -> {command!r}")

        parsed = parse_command(command)
        if parsed is None:
            return self._reject(raw_command)
        command_class, segments = parsed
        logger.debug(f"Classified {command!r} as {command_class.value}")

        try:
            cwd = self.resolver.resolve(workspace, ".", working_dir)
        except ContainmentError as e:
            return _containment_result(e)

        if len(segments) == 1 and segments[0][0] == "cd":
            return await self._change_directory(workspace, segments[0], working_dir)

        if segments[0][0] == "cd":
            target = segments[0][1] if len(segments[0]) > 1 else str(workspace.root_dir)
            try:
                cwd = self.resolver.resolve(workspace, target, working_dir)
            except ContainmentError as e:
                return _containment_result(e)
            if not cwd.is_dir():
                return _failure(f"cd: no such directory: {target}")
            segments = segments[1:]

        try:
            segments = self._contain_arguments(segments, cwd)
        except ContainmentError as e:
            return _containment_result(e)

        invalid = self._validate_scripts(segments, cwd)
        if invalid is not None:
            return invalid

        env = scoped_env(workspace.root_dir / ".cache")
        request = parse_scaffold_command(
            join_segment(segments[0]),
            self.settings.default_project_name,
            self.settings.default_template,
        )
        if request is not None:
            result = await self.orchestrator.scaffold(workspace, request, cwd, env)
            if len(segments) == 1 or not result.ok:
                return result
            rest = await self._run(segments[1:], cwd, env)
            return _combine(result, rest)

        return await self._run(segments, cwd, env)

    async def _run(
        self,
        segments: list[list[str]],
        cwd: Path,
        env: dict[str, str],
    ) -> ExecutionResult:
        command_line = " && ".join(join_segment(segment) for segment in segments)
        timeout = None
        if not any(is_install_segment(segment) for segment in segments):
            timeout = self.settings.sandbox_timeout_seconds

        logger.info(f"Executing in {cwd}: {command_line}")
        return await self.runner(
            command_line, cwd, env, timeout, self.settings.sandbox_max_output_bytes
        )

    async def _change_directory(
        self,
        workspace: Workspace,
        segment: list[str],
        working_dir: str | None,
    ) -> ExecutionResult:
        target = segment[1] if len(segment) > 1 else str(workspace.root_dir)
        try:
            path = self.resolver.resolve(workspace, target, working_dir)
            if not path.is_dir():
                return _failure(f"cd: no such directory: {target}")
            updated = await self.registry.update_working_dir(workspace.id, path)
        except ContainmentError as e:
            return _containment_result(e)
        return ExecutionResult(output=f"{updated.working_dir}\n", exit_code=0)

    def _contain_arguments(self, segments: list[list[str]], cwd: Path) -> list[list[str]]:
        """Check the path arguments of utilities and git against the root.

        Relative arguments are checked against the directory the segment
        runs in (following ``cd`` segments) and left as written. Legacy
        absolute arguments are rebased onto cwd.

        Raises:
            ContainmentError: If an argument escapes the workspace root
        """
        contained: list[list[str]] = []
        current = cwd
        for segment in segments:
            program = segment[0]
            if program == "cd":
                if len(segment) > 1:
                    current = Path(os.path.normpath(current / segment[1]))
                contained.append(segment)
            elif program in NON_PATH_PROGRAMS or program not in READ_ONLY_UTILITIES | VERSION_CONTROL:
                contained.append(segment)
            else:
                contained.append(self._contain_segment(segment, cwd, current))
        return contained

    def _contain_segment(self, segment: list[str], base: Path, cwd: Path) -> list[str]:
        program = segment[0]
        path_options = PATH_OPTIONS.get(program, frozenset())
        text_options = TEXT_OPTIONS.get(program, frozenset())
        clustered = program not in _WORD_OPTION_PROGRAMS

        def check(value: str) -> str:
            return self._contain_path(value, base, cwd)

        args: list[str] = []
        # What the next token is: "path", "text" or an operand
        expect: str | None = None
        options_done = False
        # grep's first operand is the pattern; git's is the subcommand
        skip_operand = program in ("grep", "git")

        for arg in segment[1:]:
            if expect == "path":
                args.append(check(arg))
                expect = None
                continue
            if expect == "text":
                args.append(arg)
                expect = None
                continue

            if options_done or not arg.startswith("-") or arg == "-":
                if skip_operand:
                    skip_operand = False
                    args.append(arg)
                else:
                    args.append(check(arg))
                continue

            if arg == "--":
                options_done = True
                args.append(arg)
                continue

            flag, eq, value = arg.partition("=")
            if program == "grep" and (
                flag in _PATTERN_OPTIONS
                or (not arg.startswith("--") and ("e" in arg or "f" in arg))
            ):
                # The pattern comes from -e/-f, so every operand is a file
                skip_operand = False

            if eq and arg.startswith("--"):
                args.append(arg if flag in text_options else f"{flag}={check(value)}")
                continue
            if arg in path_options:
                expect = "path"
                args.append(arg)
                continue
            if arg in text_options:
                expect = "text"
                args.append(arg)
                continue
            if not clustered or arg.startswith("--"):
                args.append(arg)
                continue

            # Short option cluster such as -rnf<file>
            for index, ch in enumerate(arg[1:], start=1):
                option = f"-{ch}"
                attached = arg[index + 1:]
                if option in path_options:
                    if attached:
                        arg = arg[:index + 1] + check(attached)
                    else:
                        expect = "path"
                    break
                if option in text_options:
                    if not attached:
                        expect = "text"
                    break
            args.append(arg)

        return [program, *args]

    def _contain_path(self, value: str, base: Path, cwd: Path) -> str:
        """Return value unchanged, or rebased if it is a legacy path.

        Raises:
            ContainmentError: If value points outside the workspace root
        """
        root = str(self.resolver.workspace_root)
        if value.startswith("~"):
            raise ContainmentError(value, root)

        pure = PurePosixPath(value)
        if pure.is_absolute():
            if self.resolver.is_contained(value):
                return value
            if self.resolver.is_legacy_path(value):
                remainder = value[len(self.resolver.legacy_prefix):].lstrip("/")
                rebased = os.path.normpath(os.path.join(base, remainder))
                return str(self.resolver.ensure_contained(rebased))
            raise ContainmentError(value, root)

        if ".." in pure.parts:
            self.resolver.ensure_contained(os.path.normpath(os.path.join(cwd, value)))
        return value

    def _validate_scripts(
        self,
        segments: list[list[str]],
        cwd: Path,
    ) -> ExecutionResult | None:
        for segment in segments:
            if segment[0] == "cd":
                if len(segment) > 1:
                    cwd = cwd / segment[1]
                continue

            script = requested_script(segment)
            manifest = cwd / "package.json"
            if script is None or not manifest.is_file():
                continue

            try:
                scripts = json.loads(manifest.read_text(encoding="utf-8")).get("scripts") or {}
            except (OSError, ValueError, AttributeError) as e:
                logger.warning(f"Could not read scripts from {manifest}: {e}")
                continue
            if not isinstance(scripts, dict):
                continue

            if script not in scripts:
                available = ", ".join(sorted(scripts)) or "(none)"
                logger.warning(f"Script {script!r} missing from {manifest}")
                return ExecutionResult(
                    output="",
                    error=(
                        f'Script "{script}" not found in package.json. '
                        f"Available scripts: {available}"
                    ),
                    exit_code=1,
                    error_kind=ErrorKind.VALIDATION_FAILURE,
                )
        return None

    def _reject(self, raw_command: str) -> ExecutionResult:
        logger.warning(f"Rejected command: {raw_command!r}")
        return ExecutionResult(
            output="",
            error=(
                f"Command not allowed: {raw_command!r}. Allowed: package managers "
                f"(npm, npx, pnpm, yarn, node), read-only utilities, git and cd, "
                f"optionally chained with &&."
            ),
            exit_code=1,
            error_kind=ErrorKind.POLICY_REJECTION,
        )


def _containment_result(error: ContainmentError) -> ExecutionResult:
    return ExecutionResult(
        output="",
        error=str(error),
        exit_code=1,
        error_kind=ErrorKind.CONTAINMENT_VIOLATION,
    )


def _failure(message: str) -> ExecutionResult:
    return ExecutionResult(
        output="",
        error=message,
        exit_code=1,
        error_kind=ErrorKind.EXECUTION_FAILURE,
    )


def _combine(first: ExecutionResult, second: ExecutionResult) -> ExecutionResult:
    return ExecutionResult(
        output="\n".join(part for part in (first.output.rstrip(), second.output) if part),
        error=second.error,
        exit_code=second.exit_code,
        error_kind=second.error_kind or first.error_kind,
        warnings=[*first.warnings, *second.warnings],
    )
