"""Runtime helpers for invoking the container engine CLI."""

import asyncio
import logging
import shlex
import shutil
import time
from collections.abc import Iterable
from dataclasses import dataclass

from dastbox.errors import RuntimeCommandError
from dastbox.utils.debug import debug_print

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Captured subprocess result."""

    command: list[str]
    returncode: int
    stdout: str
    stderr: str


def resolve_binary(name: str) -> str | None:
    """Return absolute path for a binary name when available."""
    return shutil.which(name)


async def run_command(
    command: list[str],
    timeout: float | None = None,
    allowed_exit_codes: Iterable[int] = (0,),
) -> CommandResult:
    """Run a subprocess command and capture decoded output."""
    started = time.perf_counter()
    cmd_preview = " ".join(shlex.quote(part) for part in command)
    logger.debug("running: %s", cmd_preview)
    debug_print("runtime", f"$ {cmd_preview}")
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise RuntimeCommandError(command, 127, f"{command[0]}: command not found") from None
    try:
        if timeout is None:
            stdout, stderr = await process.communicate()
        else:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=3.0)
        except TimeoutError:
            process.kill()
            await process.wait()
        raise RuntimeCommandError(command, None) from None
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    result = CommandResult(
        command=list(command),
        returncode=process.returncode,
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )
    elapsed = time.perf_counter() - started
    debug_print("runtime", f"exit={result.returncode} ({elapsed:.2f}s)")

    if result.returncode not in set(allowed_exit_codes):
        raise RuntimeCommandError(command, result.returncode, result.stderr or result.stdout)
    return result
