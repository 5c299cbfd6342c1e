import datetime as dt
import sys
from collections.abc import Sequence
from zoneinfo import ZoneInfo

import pytest

from trapcam.core.errors import CommandFailed, UnsupportedOnPlatform
from trapcam.modules.system import commands
from trapcam.modules.system.clock import SystemClock
from trapcam.modules.system.sleep import ShellSleepTrigger


class _RecordingRunner:
    def __init__(self, output: str = "") -> None:
        self.output = output
        self.commands: list[list[str]] = []

    async def __call__(self, args: Sequence[str], timeout: float) -> str:
        self.commands.append(list(args))
        return self.output


@pytest.fixture
def linux(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(commands.sys, "platform", "linux")


@pytest.mark.asyncio
async def test_set_time_uses_utc_and_syncs_rtc_on_precise_devices(linux) -> None:
    runner = _RecordingRunner()
    clock = SystemClock(use_sudo=True, runner=runner)
    local = dt.datetime(2022, 1, 18, 14, 48, 37, tzinfo=dt.timezone(dt.timedelta(hours=1)))

    await clock.set_time(local, high_precision=False)
    await clock.set_time(local, high_precision=True)

    assert runner.commands == [
        ["sudo", "date", "--utc", "--set", "2022-01-18 13:48:37"],
        ["sudo", "date", "--utc", "--set", "2022-01-18 13:48:37"],
        ["sudo", "hwclock", "--systohc", "--utc"],
    ]


@pytest.mark.asyncio
async def test_time_zone_commands(linux) -> None:
    runner = _RecordingRunner("Europe/Luxembourg\n")
    clock = SystemClock(use_sudo=False, runner=runner)

    assert await clock.get_time_zone() == "Europe/Luxembourg"
    await clock.set_time_zone("Europe/Paris")

    assert runner.commands == [
        ["timedatectl", "show", "--property=Timezone", "--value"],
        ["timedatectl", "set-timezone", "Europe/Paris"],
    ]


@pytest.mark.asyncio
async def test_list_time_zones_skips_blank_lines(linux) -> None:
    runner = _RecordingRunner("Europe/Luxembourg\nEurope/Paris\n\nUTC\n")
    assert await SystemClock(runner=runner).list_time_zones() == [
        "Europe/Luxembourg",
        "Europe/Paris",
        "UTC",
    ]


@pytest.mark.asyncio
async def test_get_time_is_timezone_aware(linux) -> None:
    now = await SystemClock(runner=_RecordingRunner("UTC\n")).get_time()
    assert now.tzinfo is not None
    assert now.utcoffset() == dt.timedelta(0)
    assert now.microsecond == 0


@pytest.mark.asyncio
async def test_get_time_follows_time_zone_changes(linux) -> None:
    runner = _RecordingRunner("Europe/Luxembourg\n")
    clock = SystemClock(use_sudo=False, runner=runner)

    before = await clock.get_time()
    await clock.set_time_zone("America/New_York")
    runner.output = "America/New_York\n"
    after = await clock.get_time()

    assert before.tzinfo == ZoneInfo("Europe/Luxembourg")
    assert after.tzinfo == ZoneInfo("America/New_York")
    assert after.utcoffset() != before.utcoffset()


@pytest.mark.asyncio
async def test_get_time_rejects_unknown_host_zone(linux) -> None:
    with pytest.raises(CommandFailed):
        await SystemClock(runner=_RecordingRunner("Mars/Olympus_Mons\n")).get_time()


@pytest.mark.asyncio
async def test_clock_is_unsupported_on_windows(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(commands.sys, "platform", "win32")
    runner = _RecordingRunner()
    with pytest.raises(UnsupportedOnPlatform):
        await SystemClock(runner=runner).set_time_zone("UTC")
    assert runner.commands == []


@pytest.mark.asyncio
async def test_sleep_trigger_passes_device_type_and_wake_time(linux) -> None:
    runner = _RecordingRunner()
    trigger = ShellSleepTrigger(
        script="/opt/trapcam/go-to-sleep.sh", device_type="variscite", runner=runner
    )

    await trigger.sleep("06:30")
    await trigger.sleep(None)

    assert runner.commands == [
        ["sudo", "/opt/trapcam/go-to-sleep.sh", "variscite", "06:30"],
        ["sudo", "/opt/trapcam/go-to-sleep.sh", "variscite"],
    ]


@pytest.mark.asyncio
async def test_run_command_returns_stdout() -> None:
    output = await commands.run_command([sys.executable, "-c", "print('hello')"], timeout=10)
    assert output.strip() == "hello"


@pytest.mark.asyncio
async def test_run_command_fails_on_stderr() -> None:
    with pytest.raises(CommandFailed):
        await commands.run_command(
            [sys.executable, "-c", "import sys; sys.stderr.write('boom')"], timeout=10
        )


@pytest.mark.asyncio
async def test_run_command_fails_on_exit_code() -> None:
    with pytest.raises(CommandFailed):
        await commands.run_command([sys.executable, "-c", "raise SystemExit(3)"], timeout=10)


@pytest.mark.asyncio
async def test_run_command_times_out() -> None:
    with pytest.raises(CommandFailed):
        await commands.run_command(
            [sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2
        )


@pytest.mark.asyncio
async def test_missing_executable_is_unsupported() -> None:
    with pytest.raises(UnsupportedOnPlatform):
        await commands.run_command(["trapcam-no-such-binary"], timeout=1)
