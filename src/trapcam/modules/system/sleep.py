"""Hand-off to the shell script that powers the device down until its wake-up time."""

from __future__ import annotations

import logging
from typing import Protocol

from .commands import CommandRunner, ensure_supported_platform, privileged, run_command

logger = logging.getLogger(__name__)


class SleepTrigger(Protocol):
    """Puts the device to sleep; ``waking_up_time`` is HH:MM or ``None`` for no wake-up."""

    async def sleep(self, waking_up_time: str | None) -> None: ...


class ShellSleepTrigger:
    """Runs ``<script> <device_type> [<waking_up_time>]``."""

    def __init__(
        self,
        *,
        script: str,
        device_type: str,
        use_sudo: bool = True,
        timeout: float = 30.0,
        runner: CommandRunner | None = None,
    ) -> None:
        self._script = script
        self._device_type = device_type
        self._use_sudo = use_sudo
        self._timeout = timeout
        self._run = runner or run_command

    async def sleep(self, waking_up_time: str | None) -> None:
        ensure_supported_platform("put the device to sleep")
        args = [self._script, self._device_type]
        if waking_up_time:
            args.append(waking_up_time)
        logger.info("Going to sleep; waking up at %s", waking_up_time or "<never>")
        await self._run(privileged(args, use_sudo=self._use_sudo), self._timeout)


__all__ = ["ShellSleepTrigger", "SleepTrigger"]
