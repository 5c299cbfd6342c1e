"""Tests for the Dynaconf-backed configuration service."""

from __future__ import annotations

from pathlib import Path

import pytest

from trapcam.core.config import (
    ConfigError,
    ConfigService,
    ConfigSnapshot,
    DeviceSettings,
)
from trapcam.core.contracts import ModuleConfig


def test_config_service_loads_snapshot(sample_config_service: ConfigService, tmp_path: Path) -> None:
    snapshot = sample_config_service.snapshot
    assert isinstance(snapshot, ConfigSnapshot)
    assert snapshot.device.device_type == "variscite"
    assert snapshot.device.high_precision_clock is True
    assert snapshot.device.default_device_name == "lab-trap"
    assert snapshot.store.path == tmp_path / "settings.json"
    assert snapshot.clock.use_sudo is False
    assert snapshot.clock.command_timeout_seconds == 10.0
    assert snapshot.sleep.script == "/opt/trapcam/go-to-sleep.sh"
    assert snapshot.api.port == 3100
    assert snapshot.logging.max_mb == 1


def test_secrets_file_overrides_config(sample_config_service: ConfigService) -> None:
    daemon = sample_config_service.snapshot.daemon
    assert daemon.base_url == "http://motion.secret:8080"
    assert daemon.camera_id == 1


def test_module_config_generation(sample_config_service: ConfigService) -> None:
    api_cfg = sample_config_service.snapshot.module_config("modules.dashboard.settings_api")
    assert isinstance(api_cfg, ModuleConfig)
    assert api_cfg.options == {"host": "127.0.0.1", "port": 3100, "serve_api": False}

    scheduler_cfg = sample_config_service.snapshot.module_config("modules.system.sleep_scheduler")
    assert scheduler_cfg.enabled is True

    with pytest.raises(KeyError):
        sample_config_service.snapshot.module_config("modules.unknown")


def test_missing_config_dir_raises(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        ConfigService(config_dir=tmp_path / "nowhere")


def test_invalid_config_raises(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text(
        "device:\n  default_device_name: 'not valid'\n", encoding="utf-8"
    )
    with pytest.raises(ConfigError):
        ConfigService(config_dir=tmp_path)


def test_defaults_without_sections(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("device:\n  device_type: raspberry-pi\n", encoding="utf-8")
    snapshot = ConfigService(config_dir=tmp_path).snapshot
    assert snapshot.device.high_precision_clock is False
    assert snapshot.api.port == 3000
    assert snapshot.store.path == Path("settings.json")
    assert snapshot.daemon.base_url == "http://127.0.0.1:8080"


def test_high_precision_match_is_case_insensitive() -> None:
    assert DeviceSettings(device_type="Variscite").high_precision_clock is True
