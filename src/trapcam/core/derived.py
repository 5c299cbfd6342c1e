"""Strings pushed to the camera daemon that are derived from site, device and time zone."""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import SettingsValidationError

TIMESTAMP_PATTERN = "%Y%m%d%H%M%S%z-%v-%q"


def _check_time_zone(time_zone: str) -> None:
    try:
        ZoneInfo(time_zone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise SettingsValidationError(f"Unknown time zone '{time_zone}'.") from exc


def create_filename(site_name: str | None, device_name: str | None, time_zone: str) -> str:
    """
    Build the daemon filename pattern.

    The daemon expands the timestamp placeholders in the host's local time
    when a file is written, so ``%z`` always carries the offset in force at
    capture, across daylight saving changes. ``%v`` is the event number and
    ``%q`` the frame number. The pattern is re-pushed whenever the zone
    changes so the daemon picks up the new local time.
    """

    _check_time_zone(time_zone)
    prefix = "-".join(part for part in (site_name, device_name) if part)
    return f"{prefix}-{TIMESTAMP_PATTERN}" if prefix else TIMESTAMP_PATTERN


def create_overlay_text(site_name: str | None, device_name: str | None) -> str:
    return " ".join(part for part in (site_name, device_name) if part)


__all__ = ["TIMESTAMP_PATTERN", "create_filename", "create_overlay_text"]
