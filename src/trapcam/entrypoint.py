"""
CLI entrypoint that boots the camera trap settings service.

Loads Dynaconf configuration, provisions the settings file on first boot,
wires the reconciliation engine to the host clock, the camera daemon and the
sleep script, then runs the settings API and the sleep scheduler until a
termination signal arrives.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import signal
from collections.abc import Sequence
from pathlib import Path

from .core.config import ConfigError, ConfigService, ConfigSnapshot
from .core.engine import ReconciliationEngine
from .core.orchestrator import Orchestrator
from .core.settings import PersistedGeneral, PersistedSettings
from .modules.daemon.motion_client import MotionHttpClient
from .modules.dashboard.settings_api import SettingsApi
from .modules.storage.settings_store import JsonSettingsStore
from .modules.system.clock import SystemClock
from .modules.system.scheduler import SleepScheduler
from .modules.system.sleep import ShellSleepTrigger

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing) == log_file.resolve():
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def default_persisted_settings(snapshot: ConfigSnapshot) -> PersistedSettings:
    """Settings document written on first boot."""
    return PersistedSettings(
        general=PersistedGeneral(
            device_name=snapshot.device.default_device_name,
            site_name=snapshot.device.default_site_name,
        )
    )


def build_engine(
    snapshot: ConfigSnapshot,
    *,
    enable_sleep: bool = True,
) -> tuple[ReconciliationEngine, JsonSettingsStore]:
    """Wire the engine to the host-backed collaborators described by ``snapshot``."""

    store = JsonSettingsStore(snapshot.store.path)
    clock = SystemClock(
        use_sudo=snapshot.clock.use_sudo,
        timeout=snapshot.clock.command_timeout_seconds,
    )
    daemon = MotionHttpClient(
        base_url=snapshot.daemon.base_url,
        camera_id=snapshot.daemon.camera_id,
        timeout=snapshot.daemon.timeout_seconds,
    )
    sleep_trigger = None
    if enable_sleep and snapshot.sleep.enabled:
        sleep_trigger = ShellSleepTrigger(
            script=snapshot.sleep.script,
            device_type=snapshot.device.device_type,
            use_sudo=snapshot.sleep.use_sudo,
            timeout=snapshot.sleep.command_timeout_seconds,
        )
    engine = ReconciliationEngine(
        store=store,
        clock=clock,
        daemon=daemon,
        device=snapshot.device,
        sleep_trigger=sleep_trigger,
    )
    return engine, store


async def run_service(
    *,
    config_dir: Path | None,
    enable_sleep_schedule: bool = True,
) -> None:
    """Provision, start the lifecycle modules and run until interrupted."""

    snapshot = ConfigService(config_dir=config_dir).snapshot
    if snapshot.logging.file is not None:
        _ensure_rotating_file_handler(
            snapshot.logging.file,
            max_mb=snapshot.logging.max_mb,
            backup_count=snapshot.logging.backup_count,
        )

    engine, store = build_engine(snapshot, enable_sleep=enable_sleep_schedule)
    await store.provision(default_persisted_settings(snapshot))

    orchestrator = Orchestrator()
    await orchestrator.add_module(
        SettingsApi(engine, health_provider=orchestrator.health),
        snapshot.module_config(SettingsApi.name),
    )
    scheduler_config = snapshot.module_config(SleepScheduler.name)
    if enable_sleep_schedule and scheduler_config.enabled:
        await orchestrator.add_module(SleepScheduler(engine), scheduler_config)
    else:
        LOGGER.info("Sleep schedule disabled; the device stays awake.")

    if snapshot.api.serve_api and snapshot.api.host not in ("127.0.0.1", "localhost", "::1"):
        LOGGER.warning(
            "Settings API is bound to %s without authentication. Consider a reverse proxy.",
            snapshot.api.host,
        )

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    await orchestrator.start()
    LOGGER.info(
        "Trapcam running (device type %s, settings file %s). Press Ctrl+C to stop.",
        snapshot.device.device_type,
        store.path,
    )

    try:
        await stop_event.wait()
    finally:
        await orchestrator.stop()


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str) -> None:
        if not stop_event.is_set():
            LOGGER.info("Received %s, beginning graceful shutdown.", sig_name)
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
        except NotImplementedError:  # Windows Proactor loop
            signal.signal(  # type: ignore[arg-type]
                sig,
                lambda signum, _frame, sig_name=sig.name: loop.call_soon_threadsafe(
                    _request_shutdown, sig_name or str(signum)
                ),
            )


def configure_logging(level: str) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
    )


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Camera trap settings service.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains config.yaml/secrets.yaml (default: repo config/).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Python logging level (default: INFO).",
    )
    parser.add_argument(
        "--no-sleep-schedule",
        action="store_true",
        help="Do not put the device to sleep at the configured sleeping time.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    try:
        asyncio.run(
            run_service(
                config_dir=args.config_dir,
                enable_sleep_schedule=not args.no_sleep_schedule,
            )
        )
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except ConfigError as exc:
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Trapcam service crashed.")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["build_engine", "default_persisted_settings", "main", "run_service"]
