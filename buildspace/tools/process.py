"""Low-level subprocess execution.

Runs a shell command with:
- Output captured up to a bounded size per stream
- Optional wall-clock timeout (process group killed on expiry)
- Package-manager caches scoped to a directory inside the workspace
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import Awaitable, Callable

from buildspace.schemas import ErrorKind, ExecutionResult


logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 10 * 1024 * 1024
TIMEOUT_EXIT_CODE = 124

# (command, cwd, env, timeout, max_output_bytes) -> ExecutionResult
CommandRunner = Callable[
    [str, Path, "dict[str, str] | None", "float | None", int],
    Awaitable[ExecutionResult],
]


def scoped_env(cache_root: Path, env: dict[str, str] | None = None) -> dict[str, str]:
    """Build a process environment whose package-manager state lives under cache_root."""
    run_env = os.environ.copy()
    run_env.update({
        "npm_config_cache": str(cache_root / "npm"),
        "npm_config_prefix": str(cache_root / "npm-global"),
        "npm_config_store_dir": str(cache_root / "pnpm-store"),
        "YARN_CACHE_FOLDER": str(cache_root / "yarn"),
        "npm_config_yes": "true",
        "npm_config_update_notifier": "false",
        "npm_config_fund": "false",
    })
    if env:
        run_env.update(env)
    return run_env


async def _read_bounded(
    stream: asyncio.StreamReader | None,
    buffer: bytearray,
    limit: int,
    overflow: list[int],
) -> None:
    """Drain stream into buffer, keeping at most limit bytes."""
    if stream is None:
        return
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        room = limit - len(buffer)
        if room > 0:
            buffer.extend(chunk[:room])
        if len(chunk) > room:
            overflow[0] += len(chunk) - max(room, 0)


def _decode(buffer: bytearray, overflow: int, limit: int) -> str:
    text = buffer.decode("utf-8", errors="replace")
    if overflow:
        text += f"\n[output truncated at {limit} bytes]"
    return text


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass
    except AttributeError:
        proc.kill()


async def run_process(
    command: str,
    cwd: Path,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> ExecutionResult:
    """Run a shell command and capture its result.

    Args:
        command: Command line, already validated by the caller
        cwd: Working directory
        env: Full process environment (inherits ours if None)
        timeout: Seconds before the process group is killed, None for no limit
        max_output_bytes: Per-stream capture bound

    Returns:
        ExecutionResult; failures never raise
    """
    try:
        proc = await asyncio.create_subprocess_shell(
            command,
            cwd=str(cwd),
            env=env,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
    except OSError as e:
        logger.error(f"Failed to start command {command!r}: {e}")
        return ExecutionResult(
            output="",
            error=str(e),
            exit_code=1,
            error_kind=ErrorKind.EXECUTION_FAILURE,
        )

    stdout_buf, stderr_buf = bytearray(), bytearray()
    stdout_over, stderr_over = [0], [0]

    async def communicate() -> int:
        await asyncio.gather(
            _read_bounded(proc.stdout, stdout_buf, max_output_bytes, stdout_over),
            _read_bounded(proc.stderr, stderr_buf, max_output_bytes, stderr_over),
        )
        return await proc.wait()

    try:
        exit_code = await asyncio.wait_for(communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        _kill_group(proc)
        await proc.wait()
        logger.error(f"Command timed out after {timeout}s: {command}")
        stderr = _decode(stderr_buf, stderr_over[0], max_output_bytes)
        message = f"Command timed out after {timeout} seconds"
        return ExecutionResult(
            output=_decode(stdout_buf, stdout_over[0], max_output_bytes),
            error=f"{message}\n{stderr}".rstrip() if stderr else message,
            exit_code=TIMEOUT_EXIT_CODE,
            error_kind=ErrorKind.EXECUTION_FAILURE,
        )

    output = _decode(stdout_buf, stdout_over[0], max_output_bytes)
    stderr = _decode(stderr_buf, stderr_over[0], max_output_bytes)

    if exit_code == 0:
        return ExecutionResult(output=output, error=stderr or None, exit_code=0)

    if exit_code < 0:
        reason = f"Command terminated by signal {-exit_code}"
    else:
        reason = f"Command failed with exit code {exit_code}"
    logger.error(f"{reason}: {command}")

    return ExecutionResult(
        output=output,
        error=stderr or reason,
        exit_code=exit_code,
        error_kind=ErrorKind.EXECUTION_FAILURE,
    )
