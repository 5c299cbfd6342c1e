from __future__ import annotations

import datetime as dt
import textwrap
from pathlib import Path
from typing import Any

import pytest

from trapcam.core.config import ConfigService, DeviceSettings
from trapcam.core.engine import ReconciliationEngine
from trapcam.core.errors import DaemonConnectionRefused, RemoteRejected, StoreUnavailable
from trapcam.core.settings import PersistedGeneral, PersistedSettings, PersistedTriggering

LUXEMBOURG = dt.timezone(dt.timedelta(hours=1))
WINTER_NOON = dt.datetime(2022, 1, 18, 12, 0, tzinfo=LUXEMBOURG)


def _write_yaml(path: Path, content: str) -> None:
    path.write_text(textwrap.dedent(content).strip() + "\n", encoding="utf-8")


@pytest.fixture
def sample_config_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary configuration directory for tests.
    """

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_yaml = f"""
    device:
      device_type: "variscite"
      default_device_name: "lab-trap"
      default_site_name: "forest"

    store:
      path: "{(tmp_path / "settings.json").as_posix()}"

    daemon:
      base_url: "http://motion.test:8080"
      camera_id: 0
      timeout_seconds: 2

    clock:
      use_sudo: false

    sleep:
      enabled: true
      script: "/opt/trapcam/go-to-sleep.sh"
      use_sudo: false

    api:
      host: "127.0.0.1"
      port: 3100
      serve_api: false

    logging:
      file: "{(tmp_path / "logs" / "trapcam.log").as_posix()}"
      max_mb: 1
    """
    secrets_yaml = """
    daemon:
      base_url: "http://motion.secret:8080"
      camera_id: 1
      timeout_seconds: 2
    """
    _write_yaml(config_dir / "config.yaml", config_yaml)
    _write_yaml(config_dir / "secrets.yaml", secrets_yaml)
    return config_dir


@pytest.fixture
def sample_config_service(sample_config_dir: Path) -> ConfigService:
    """Return a ConfigService wired to the temporary configuration."""

    return ConfigService(config_dir=sample_config_dir)


class FakeStore:
    """In-memory settings store that records every write."""

    def __init__(self, document: PersistedSettings | None = None) -> None:
        self.document = document or PersistedSettings()
        self.writes: list[PersistedSettings] = []
        self.unavailable = False

    async def read(self) -> PersistedSettings:
        if self.unavailable:
            raise StoreUnavailable("settings file missing")
        return self.document.model_copy(deep=True)

    async def write(self, settings: PersistedSettings) -> None:
        if self.unavailable:
            raise StoreUnavailable("settings file read-only")
        # Mirror the JSON round trip so excluded fields disappear.
        self.document = PersistedSettings.model_validate_json(
            settings.model_dump_json(by_alias=True, exclude_none=True)
        )
        self.writes.append(self.document)


class FakeClock:
    """Host clock double; mutations are recorded in ``calls``."""

    def __init__(
        self,
        *,
        now: dt.datetime = WINTER_NOON,
        time_zone: str = "Europe/Luxembourg",
        time_zones: list[str] | None = None,
    ) -> None:
        self.now = now
        self.time_zone = time_zone
        self.time_zones = time_zones or [
            "Europe/Berlin",
            "Europe/Luxembourg",
            "Europe/Paris",
            "UTC",
        ]
        self.calls: list[tuple[Any, ...]] = []

    async def get_time(self) -> dt.datetime:
        return self.now

    async def set_time(self, time: dt.datetime, high_precision: bool) -> None:
        self.calls.append(("set_time", time, high_precision))
        self.now = time

    async def get_time_zone(self) -> str:
        return self.time_zone

    async def set_time_zone(self, time_zone: str) -> None:
        self.calls.append(("set_time_zone", time_zone))
        self.time_zone = time_zone

    async def list_time_zones(self) -> list[str]:
        return list(self.time_zones)


class FakeDaemon:
    """Camera daemon double keeping its options in a dict."""

    def __init__(self, **options: Any) -> None:
        self.options: dict[str, Any] = {
            "picture_quality": 80,
            "movie_quality": 70,
            "picture_output": "best",
            "movie_output": "off",
            "height": 480,
            "width": 640,
            "threshold": 1500,
            "target_dir": "/var/lib/motion",
            "picture_filename": "",
            "movie_filename": "",
            "snapshot_filename": "",
            "text_left": "",
        }
        self.options.update(options)
        self.calls: list[tuple[str, Any]] = []
        self.refuse_connections = False
        self.reject: set[str] = set()

    def _check(self, option: str) -> None:
        if self.refuse_connections:
            raise DaemonConnectionRefused("connect ECONNREFUSED 127.0.0.1:8080")
        if option in self.reject:
            raise RemoteRejected(f"option {option} rejected", status_code=500)

    async def _get(self, option: str) -> Any:
        self._check(option)
        return self.options[option]

    async def _set(self, option: str, value: Any) -> None:
        self._check(option)
        self.calls.append((option, value))
        self.options[option] = value

    def set_calls(self, option: str) -> list[Any]:
        return [value for name, value in self.calls if name == option]

    async def get_picture_quality(self) -> int:
        return await self._get("picture_quality")

    async def set_picture_quality(self, quality: int) -> None:
        await self._set("picture_quality", quality)

    async def get_movie_quality(self) -> int:
        return await self._get("movie_quality")

    async def set_movie_quality(self, quality: int) -> None:
        await self._set("movie_quality", quality)

    async def get_picture_output(self) -> str:
        return await self._get("picture_output")

    async def set_picture_output(self, mode: str) -> None:
        await self._set("picture_output", mode)

    async def get_movie_output(self) -> str:
        return await self._get("movie_output")

    async def set_movie_output(self, mode: str) -> None:
        await self._set("movie_output", mode)

    async def get_height(self) -> int:
        return await self._get("height")

    async def get_width(self) -> int:
        return await self._get("width")

    async def get_threshold(self) -> int:
        return await self._get("threshold")

    async def set_threshold(self, threshold: int) -> None:
        await self._set("threshold", threshold)

    async def set_filename(self, pattern: str) -> None:
        for option in ("picture_filename", "movie_filename", "snapshot_filename"):
            await self._set(option, pattern)

    async def set_text_left(self, text: str) -> None:
        await self._set("text_left", text)

    async def get_target_dir(self) -> str:
        return await self._get("target_dir")

    async def set_target_dir(self, path: str) -> None:
        await self._set("target_dir", path)


class FakeSleepTrigger:
    def __init__(self) -> None:
        self.calls: list[str | None] = []

    async def sleep(self, waking_up_time: str | None) -> None:
        self.calls.append(waking_up_time)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore(
        PersistedSettings(
            general=PersistedGeneral(device_name="trap-01", site_name="forest"),
            triggering=PersistedTriggering(sleeping_time="22:00", waking_up_time="06:30"),
        )
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def daemon() -> FakeDaemon:
    return FakeDaemon()


@pytest.fixture
def sleep_trigger() -> FakeSleepTrigger:
    return FakeSleepTrigger()


@pytest.fixture
def engine(
    store: FakeStore,
    clock: FakeClock,
    daemon: FakeDaemon,
    sleep_trigger: FakeSleepTrigger,
) -> ReconciliationEngine:
    return ReconciliationEngine(
        store=store,
        clock=clock,
        daemon=daemon,
        device=DeviceSettings(device_type="raspberry-pi"),
        sleep_trigger=sleep_trigger,
        wall_clock=lambda: WINTER_NOON,
    )
