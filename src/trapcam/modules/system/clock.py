"""
System clock and time zone access through ``date``/``timedatectl``.

The current time is read in-process and rendered in the zone the host reports
at that moment. Everything that touches the host configuration shells out
through the shared command runner so timeouts and error reporting are uniform.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ...core.errors import CommandFailed
from .commands import CommandRunner, ensure_supported_platform, privileged, run_command

logger = logging.getLogger(__name__)


class ClockAdapter(Protocol):
    """Protocol implemented by host clock backends."""

    async def get_time(self) -> dt.datetime: ...

    async def set_time(self, time: dt.datetime, high_precision: bool) -> None: ...

    async def get_time_zone(self) -> str: ...

    async def set_time_zone(self, time_zone: str) -> None: ...

    async def list_time_zones(self) -> list[str]: ...


class SystemClock:
    """Clock adapter for systemd-based Linux hosts."""

    def __init__(
        self,
        *,
        use_sudo: bool = True,
        timeout: float = 10.0,
        runner: CommandRunner | None = None,
    ) -> None:
        self._use_sudo = use_sudo
        self._timeout = timeout
        self._run = runner or run_command

    async def get_time(self) -> dt.datetime:
        # libc loads the local zone once per process; ask the host each time.
        time_zone = await self.get_time_zone()
        try:
            zone = ZoneInfo(time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise CommandFailed(f"Host reports unknown time zone '{time_zone}'") from exc
        return dt.datetime.now(zone).replace(microsecond=0)

    async def set_time(self, time: dt.datetime, high_precision: bool) -> None:
        ensure_supported_platform("set the system time")
        utc_time = time.astimezone(dt.UTC).strftime("%Y-%m-%d %H:%M:%S")
        await self._run(
            privileged(["date", "--utc", "--set", utc_time], use_sudo=self._use_sudo),
            self._timeout,
        )
        if high_precision:
            # The RTC of these boards is not synced by the OS on its own.
            await self._run(
                privileged(["hwclock", "--systohc", "--utc"], use_sudo=self._use_sudo),
                self._timeout,
            )
        logger.info("System time set to %s (UTC)", utc_time)

    async def get_time_zone(self) -> str:
        ensure_supported_platform("read the time zone")
        output = await self._run(
            ["timedatectl", "show", "--property=Timezone", "--value"], self._timeout
        )
        return output.strip()

    async def set_time_zone(self, time_zone: str) -> None:
        ensure_supported_platform("set the time zone")
        await self._run(
            privileged(["timedatectl", "set-timezone", time_zone], use_sudo=self._use_sudo),
            self._timeout,
        )
        logger.info("System time zone set to %s", time_zone)

    async def list_time_zones(self) -> list[str]:
        ensure_supported_platform("list time zones")
        output = await self._run(["timedatectl", "list-timezones"], self._timeout)
        return [line.strip() for line in output.splitlines() if line.strip()]


__all__ = ["ClockAdapter", "SystemClock"]
