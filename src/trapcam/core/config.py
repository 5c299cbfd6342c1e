"""
Dynaconf-powered configuration loader with Pydantic validation.

The configuration service loads the layered YAML files from the config
directory (``config.yaml`` plus an optional ``secrets.yaml``), lets
``TRAPCAM_*`` environment variables override them, validates the result and
produces the explicit configuration structs handed to the engine and to the
lifecycle modules. Nothing reads configuration from global state.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dynaconf import Dynaconf
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .contracts import ModuleConfig


def _section(raw: dict[str, Any], key: str) -> dict[str, Any]:
    """Case-insensitive dictionary lookup helper."""
    value = raw.get(key) or raw.get(key.upper()) or raw.get(key.lower())
    if isinstance(value, dict):
        return value
    return {}


CONFIG_FILENAMES = ("config.yaml", "secrets.yaml")
_REPO_ROOT = Path(__file__).resolve().parents[3]
DEFAULT_CONFIG_DIR = _REPO_ROOT / "config"


class ConfigError(RuntimeError):
    """Raised when configuration files are missing or invalid."""


class DeviceSettings(BaseModel):
    """Hardware class of the camera trap and the defaults used at provisioning."""

    model_config = ConfigDict(extra="ignore")

    device_type: str = Field(default="raspberry-pi")
    high_precision_device_types: list[str] = Field(default_factory=lambda: ["variscite"])
    default_device_name: str = Field(default="trapcam", pattern=r"^[a-zA-Z0-9-]+$")
    default_site_name: str = Field(default="", pattern=r"^[a-zA-Z0-9-]*$")

    @property
    def high_precision_clock(self) -> bool:
        """Whether setting the clock also needs a hardware clock sync on this device."""
        return self.device_type.lower() in {name.lower() for name in self.high_precision_device_types}


class StoreSettings(BaseModel):
    """Location of the persisted settings document."""

    model_config = ConfigDict(extra="ignore")

    path: Path = Field(default=Path("settings.json"))

    @field_validator("path", mode="before")
    @classmethod
    def _coerce_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value
        return Path(value)


class DaemonSettings(BaseModel):
    """HTTP control surface of the camera daemon."""

    model_config = ConfigDict(extra="ignore")

    base_url: str = Field(default="http://127.0.0.1:8080")
    camera_id: int = Field(default=0, ge=0)
    timeout_seconds: float = Field(default=5.0, gt=0.0)


class ClockSettings(BaseModel):
    """Privileged clock/timezone command execution."""

    model_config = ConfigDict(extra="ignore")

    use_sudo: bool = Field(default=True)
    command_timeout_seconds: float = Field(default=10.0, gt=0.0)


class SleepSettings(BaseModel):
    """Scheduled sleep hand-off."""

    model_config = ConfigDict(extra="ignore")

    enabled: bool = Field(default=True)
    script: str = Field(default="scripts/go-to-sleep.sh")
    use_sudo: bool = Field(default=True)
    command_timeout_seconds: float = Field(default=30.0, gt=0.0)


class SettingsApiSettings(BaseModel):
    """Settings API (FastAPI) configuration."""

    model_config = ConfigDict(extra="ignore")

    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000)
    serve_api: bool = Field(default=True)


class LoggingSettings(BaseModel):
    """Rotating log file attached by the entrypoint."""

    model_config = ConfigDict(extra="ignore")

    file: Path | None = Field(default=Path("logs") / "trapcam.log")
    max_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=3, ge=0)


class ConfigSnapshot(BaseModel):
    """Validated, immutable view of the whole configuration."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    device: DeviceSettings = Field(default_factory=DeviceSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    daemon: DaemonSettings = Field(default_factory=DaemonSettings)
    clock: ClockSettings = Field(default_factory=ClockSettings)
    sleep: SleepSettings = Field(default_factory=SleepSettings)
    api: SettingsApiSettings = Field(default_factory=SettingsApiSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def module_config(self, module_name: str) -> ModuleConfig:
        """Return the ``ModuleConfig`` for a lifecycle module."""
        if module_name == "modules.dashboard.settings_api":
            return ModuleConfig(options=self.api.model_dump())
        if module_name == "modules.system.sleep_scheduler":
            return ModuleConfig(enabled=self.sleep.enabled)
        raise KeyError(f"No configuration available for module '{module_name}'")


class ConfigService:
    """
    Runtime facade for loading and validating configuration.
    """

    def __init__(
        self,
        *,
        config_dir: str | Path | None = None,
        settings: Dynaconf | None = None,
    ) -> None:
        self._config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        settings_files = [self._config_dir / name for name in CONFIG_FILENAMES]
        existing_files = [str(path) for path in settings_files if path.exists()]
        if not existing_files and settings is None:
            raise ConfigError(
                f"No configuration files found in {self._config_dir}. "
                "Expected at least config.yaml."
            )

        self._settings = settings or Dynaconf(
            envvar_prefix="TRAPCAM",
            settings_files=existing_files,
            load_dotenv=True,
            environments=False,
        )
        self._snapshot = self._build_snapshot()

    @property
    def snapshot(self) -> ConfigSnapshot:
        """Latest validated configuration snapshot."""
        return self._snapshot

    def _build_snapshot(self) -> ConfigSnapshot:
        raw = self._settings.as_dict()
        data = {
            "device": _section(raw, "device"),
            "store": _section(raw, "store"),
            "daemon": _section(raw, "daemon"),
            "clock": _section(raw, "clock"),
            "sleep": _section(raw, "sleep"),
            "api": _section(raw, "api"),
            "logging": _section(raw, "logging"),
        }
        try:
            return ConfigSnapshot.model_validate(data)
        except ValidationError as exc:
            raise ConfigError("Configuration validation failed") from exc


__all__ = [
    "ClockSettings",
    "ConfigError",
    "ConfigService",
    "ConfigSnapshot",
    "DaemonSettings",
    "DeviceSettings",
    "LoggingSettings",
    "SettingsApiSettings",
    "StoreSettings",
    "SleepSettings",
]
