"""Bounded execution of privileged system commands."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable, Sequence

from ...core.errors import CommandFailed, UnsupportedOnPlatform

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], float], Awaitable[str]]


def ensure_supported_platform(action: str) -> None:
    if sys.platform == "win32":
        raise UnsupportedOnPlatform(f"Cannot {action} on Windows.")


async def run_command(args: Sequence[str], timeout: float) -> str:
    """
    Run ``args`` and return its standard output.

    Raises ``UnsupportedOnPlatform`` when the executable does not exist and
    ``CommandFailed`` on a non-zero exit code, any stderr output or a timeout.
    """

    logger.debug("Running command: %s", " ".join(args))
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise UnsupportedOnPlatform(f"Command '{args[0]}' is not available: {exc}") from exc

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError as exc:
        process.kill()
        await process.wait()
        raise CommandFailed(f"Command '{' '.join(args)}' timed out after {timeout}s") from exc

    error_text = stderr.decode(errors="replace").strip()
    if process.returncode != 0 or error_text:
        raise CommandFailed(
            f"Command '{' '.join(args)}' failed with code {process.returncode}: {error_text}"
        )
    return stdout.decode(errors="replace")


def privileged(args: Sequence[str], *, use_sudo: bool) -> list[str]:
    return ["sudo", *args] if use_sudo else list(args)


__all__ = ["CommandRunner", "ensure_supported_platform", "privileged", "run_command"]
