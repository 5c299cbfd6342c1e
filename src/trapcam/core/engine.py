"""
Settings reconciliation engine.

The camera trap's settings live in three places that are owned by different
parties: the persisted settings file, the host clock/time zone, and the live
configuration of the camera daemon. The engine is the only component that
talks to all three. It validates updates before touching anything, applies
them store by store in a fixed order, derives the daemon filename pattern and
overlay text from the identity fields, and maps the operator-facing
sensitivity onto the daemon's pixel threshold.

All mutating operations run under a single ``asyncio.Lock`` so concurrent
read-modify-write cycles on the settings file cannot lose updates. Reads are
not serialized.

A daemon that is not running is an expected condition on a field device:
camera-group updates and the camera part of ``get_all`` degrade instead of
failing. Every other failure propagates to the caller.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import re
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from .config import DeviceSettings
from .derived import create_filename, create_overlay_text
from .errors import ConsistencyError, DaemonError, SettingsValidationError, StoreUnavailable
from .sensitivity import MAX_SENSITIVITY, MIN_SENSITIVITY, to_sensitivity, to_threshold
from .settings import (
    NAME_PATTERN,
    TIME_OF_DAY_PATTERN,
    CameraPatch,
    CameraSettings,
    GeneralSettings,
    PatchSettings,
    PersistedGeneral,
    PersistedSettings,
    PersistedTriggering,
    Presence,
    Settings,
    TriggeringSettings,
    presence_of,
)

if TYPE_CHECKING:
    from ..modules.daemon.motion_client import DaemonClient
    from ..modules.storage.settings_store import SettingsStore
    from ..modules.system.clock import ClockAdapter
    from ..modules.system.sleep import SleepTrigger

logger = logging.getLogger(__name__)

PERSISTED_FIELDS = frozenset(
    {
        "general.device_name",
        "general.site_name",
        "triggering.sleeping_time",
        "triggering.waking_up_time",
    }
)
FILENAME_INPUTS = frozenset({"general.site_name", "general.device_name", "general.time_zone"})
OVERLAY_INPUTS = frozenset({"general.site_name", "general.device_name"})


def _validate_name(label: str, value: str | None, *, allow_empty: bool) -> None:
    if not value:
        if allow_empty:
            return
        raise SettingsValidationError(f"{label} must not be empty.")
    if not re.fullmatch(NAME_PATTERN, value):
        raise SettingsValidationError(
            f"{label} '{value}' may only contain letters, digits and hyphens."
        )


def _validate_time_of_day(label: str, value: str | None) -> None:
    if value and not re.fullmatch(TIME_OF_DAY_PATTERN, value):
        raise SettingsValidationError(f"{label} '{value}' is not a valid HH:MM time.")


def _validate_sensitivity(value: float | None) -> None:
    if value is None:
        raise SettingsValidationError("sensitivity must not be empty.")
    if not MIN_SENSITIVITY <= value <= MAX_SENSITIVITY:
        raise SettingsValidationError(
            f"sensitivity {value} is outside [{MIN_SENSITIVITY}, {MAX_SENSITIVITY}]."
        )
    if round(value, 2) != value:
        raise SettingsValidationError(f"sensitivity {value} has more than two decimals.")


def _validate_sleep_window(sleeping_time: str | None, waking_up_time: str | None) -> None:
    if bool(sleeping_time) != bool(waking_up_time):
        raise SettingsValidationError(
            "sleepingTime and wakingUpTime must either both be set or both be empty."
        )


def _validate_system_time(value: dt.datetime | None) -> None:
    if value is None:
        raise SettingsValidationError("systemTime must not be empty.")
    if value.tzinfo is None or value.utcoffset() is None:
        raise SettingsValidationError("systemTime must carry a UTC offset.")


class ReconciliationEngine:
    """Keep the settings file, the host clock and the camera daemon consistent."""

    def __init__(
        self,
        *,
        store: SettingsStore,
        clock: ClockAdapter,
        daemon: DaemonClient,
        device: DeviceSettings,
        sleep_trigger: SleepTrigger | None = None,
        wall_clock: Callable[[], dt.datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._daemon = daemon
        self._device = device
        self._sleep_trigger = sleep_trigger
        self._wall_clock = wall_clock
        self._lock = asyncio.Lock()
        self._accessors: dict[
            str, tuple[Callable[[], Awaitable[Any]], Callable[[Any], Awaitable[None]]]
        ] = {
            "siteName": (self.get_site_name, self.set_site_name),
            "deviceName": (self.get_device_name, self.set_device_name),
            "systemTime": (self.get_system_time, self._set_system_time_field),
            "timeZone": (self.get_time_zone, self.set_time_zone),
            "shotsFolder": (self.get_shots_folder, self.set_shots_folder),
            "sleepingTime": (self.get_sleeping_time, self.set_sleeping_time),
            "wakingUpTime": (self.get_waking_up_time, self.set_waking_up_time),
        }

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(self._accessors)

    # ------------------------------------------------------------------ reads

    async def get_all(self) -> Settings:
        """Assemble the full settings view from the file, the host and the daemon."""
        persisted = await self._store.read()
        system_time = await self._clock.get_time()
        time_zone = await self._checked_time_zone(persisted)
        camera, sensitivity = await self._read_daemon_state()
        try:
            general = GeneralSettings(
                device_name=persisted.general.device_name or "",
                site_name=persisted.general.site_name or "",
                system_time=system_time,
                time_zone=time_zone,
            )
            triggering = TriggeringSettings(
                sensitivity=sensitivity,
                sleeping_time=persisted.triggering.sleeping_time,
                waking_up_time=persisted.triggering.waking_up_time,
            )
        except ValidationError as exc:
            raise StoreUnavailable(f"Settings file holds invalid values: {exc}") from exc
        return Settings(camera=camera, general=general, triggering=triggering)

    async def list_time_zones(self) -> list[str]:
        return await self._clock.list_time_zones()

    # ------------------------------------------------------------ bulk writes

    async def patch(self, patch: PatchSettings) -> None:
        """
        Apply the supplied fields of ``patch``.

        Order: camera daemon pushes (best effort), host clock and time zone,
        settings file, derived filename/overlay, sensitivity threshold.
        """
        async with self._lock:
            await self._validate_patch(patch)
            supplied = patch.supplied_fields()
            if not supplied:
                logger.debug("Empty settings patch ignored.")
                return
            camera, general, triggering = patch.camera, patch.general, patch.triggering
            high_precision = self._device.high_precision_clock

            if supplied == {"general.system_time"}:
                # systemTime lives only in the host clock.
                await self._clock.set_time(general.system_time, high_precision)
                return

            if camera is not None:
                await self._apply_camera(camera)

            if "general.system_time" in supplied:
                await self._clock.set_time(general.system_time, high_precision)
            time_zone_changed = "general.time_zone" in supplied
            if time_zone_changed:
                await self._clock.set_time_zone(general.time_zone)

            persisted: PersistedSettings | None = None
            if supplied & (PERSISTED_FIELDS | FILENAME_INPUTS):
                persisted = await self._store.read()
                rewrite = bool(supplied & PERSISTED_FIELDS)
                if rewrite:
                    persisted = self._merge_persisted(persisted, patch)
                if time_zone_changed and persisted.general.time_zone is not None:
                    rewrite = True
                if rewrite:
                    await self._store.write(persisted)

            if persisted is not None and supplied & FILENAME_INPUTS:
                if time_zone_changed:
                    time_zone = general.time_zone
                else:
                    time_zone = await self._clock.get_time_zone()
                await self._push_derived(
                    persisted.general,
                    time_zone,
                    overlay=bool(supplied & OVERLAY_INPUTS),
                )

            if "triggering.sensitivity" in supplied:
                await self._push_sensitivity(triggering.sensitivity)
        logger.info("Settings patched: %s", ", ".join(sorted(supplied)))

    async def put(self, settings: Settings) -> None:
        """Replace every setting with the values in ``settings``; no merge with prior state."""
        async with self._lock:
            await self._validate_full(settings)
            general, triggering = settings.general, settings.triggering

            await self._clock.set_time(general.system_time, self._device.high_precision_clock)
            await self._clock.set_time_zone(general.time_zone)
            await self._apply_camera(settings.camera)
            await self._push_sensitivity(triggering.sensitivity, best_effort=True)

            persisted = PersistedSettings(
                general=PersistedGeneral(
                    device_name=general.device_name,
                    site_name=general.site_name,
                ),
                triggering=PersistedTriggering(
                    sleeping_time=triggering.sleeping_time,
                    waking_up_time=triggering.waking_up_time,
                ),
            )
            await self._store.write(persisted)
            await self._push_derived(persisted.general, general.time_zone)
        logger.info("All settings replaced.")

    # ------------------------------------------------------- field accessors

    async def get_field(self, name: str) -> Any:
        getter, _ = self._accessor(name)
        return await getter()

    async def set_field(self, name: str, value: Any) -> None:
        _, setter = self._accessor(name)
        await setter(value)

    async def get_site_name(self) -> str:
        persisted = await self._store.read()
        return persisted.general.site_name or ""

    async def set_site_name(self, site_name: str) -> None:
        _validate_name("siteName", site_name, allow_empty=True)
        await self._set_identity(site_name=site_name or "")

    async def get_device_name(self) -> str:
        persisted = await self._store.read()
        return persisted.general.device_name or ""

    async def set_device_name(self, device_name: str) -> None:
        _validate_name("deviceName", device_name, allow_empty=False)
        await self._set_identity(device_name=device_name)

    async def get_system_time(self) -> dt.datetime:
        return await self._clock.get_time()

    async def set_system_time(self, system_time: dt.datetime) -> None:
        _validate_system_time(system_time)
        async with self._lock:
            await self._clock.set_time(system_time, self._device.high_precision_clock)

    async def get_time_zone(self) -> str:
        persisted = await self._store.read()
        return await self._checked_time_zone(persisted)

    async def set_time_zone(self, time_zone: str) -> None:
        async with self._lock:
            await self._validate_time_zone(time_zone)
            await self._clock.set_time_zone(time_zone)
            persisted = await self._store.read()
            if persisted.general.time_zone is not None:
                # Writing drops the zone recorded by older firmware.
                await self._store.write(persisted)
            await self._push_derived(persisted.general, time_zone, overlay=False)
        logger.info("Time zone changed to %s", time_zone)

    async def get_shots_folder(self) -> str:
        return await self._daemon.get_target_dir()

    async def set_shots_folder(self, path: str) -> None:
        if not path:
            raise SettingsValidationError("shotsFolder must not be empty.")
        async with self._lock:
            await self._daemon.set_target_dir(path)

    async def get_sleeping_time(self) -> str | None:
        persisted = await self._store.read()
        return persisted.triggering.sleeping_time

    async def set_sleeping_time(self, sleeping_time: str | None) -> None:
        _validate_time_of_day("sleepingTime", sleeping_time)
        await self._set_sleep_window(sleeping_time=sleeping_time or None)

    async def get_waking_up_time(self) -> str | None:
        persisted = await self._store.read()
        return persisted.triggering.waking_up_time

    async def set_waking_up_time(self, waking_up_time: str | None) -> None:
        _validate_time_of_day("wakingUpTime", waking_up_time)
        await self._set_sleep_window(waking_up_time=waking_up_time or None)

    # --------------------------------------------------------------- schedule

    async def sleep_when_scheduled(self, now: dt.datetime | None = None) -> bool:
        """
        Put the device to sleep if the configured sleeping time is the current minute.

        Meant to be called on every tick of an external schedule; returns
        whether the sleep trigger was invoked.
        """
        persisted = await self._store.read()
        sleeping_time = persisted.triggering.sleeping_time
        if not sleeping_time:
            return False
        if now is None:
            now = self._wall_clock() if self._wall_clock else await self._clock.get_time()
        current = now.strftime("%H:%M")
        if current != sleeping_time:
            return False
        waking_up_time = persisted.triggering.waking_up_time
        if not waking_up_time:
            logger.error("Sleeping time %s reached but no waking up time is set.", sleeping_time)
        if self._sleep_trigger is None:
            logger.warning("Sleeping time %s reached but no sleep trigger is configured.", current)
            return False
        logger.info("Sleeping time %s reached; waking up at %s", sleeping_time, waking_up_time)
        await self._sleep_trigger.sleep(waking_up_time)
        return True

    # -------------------------------------------------------------- internals

    def _accessor(
        self, name: str
    ) -> tuple[Callable[[], Awaitable[Any]], Callable[[Any], Awaitable[None]]]:
        try:
            return self._accessors[name]
        except KeyError:
            raise KeyError(f"Unknown settings field '{name}'") from None

    async def _set_system_time_field(self, value: dt.datetime | str) -> None:
        if isinstance(value, str):
            try:
                value = dt.datetime.fromisoformat(value)
            except ValueError as exc:
                raise SettingsValidationError(f"systemTime '{value}' is not ISO-8601.") from exc
        await self.set_system_time(value)

    async def _validate_patch(self, patch: PatchSettings) -> None:
        camera, general, triggering = patch.camera, patch.general, patch.triggering
        for field, label in (("picture_quality", "pictureQuality"), ("video_quality", "videoQuality")):
            if presence_of(camera, field) is Presence.CLEARED:
                raise SettingsValidationError(f"{label} must not be empty.")

        if presence_of(general, "device_name").supplied:
            _validate_name("deviceName", general.device_name, allow_empty=False)
        if presence_of(general, "site_name").supplied:
            _validate_name("siteName", general.site_name, allow_empty=True)
        if presence_of(general, "system_time").supplied:
            _validate_system_time(general.system_time)

        if presence_of(triggering, "sensitivity").supplied:
            _validate_sensitivity(triggering.sensitivity)
        sleeping = presence_of(triggering, "sleeping_time")
        waking = presence_of(triggering, "waking_up_time")
        if sleeping.supplied != waking.supplied:
            raise SettingsValidationError(
                "sleepingTime and wakingUpTime must be supplied together."
            )
        if sleeping.supplied:
            # Both are supplied, so the merged window is exactly the patched one.
            _validate_time_of_day("sleepingTime", triggering.sleeping_time)
            _validate_time_of_day("wakingUpTime", triggering.waking_up_time)
            _validate_sleep_window(triggering.sleeping_time, triggering.waking_up_time)

        if presence_of(general, "time_zone").supplied:
            await self._validate_time_zone(general.time_zone)

    async def _validate_full(self, settings: Settings) -> None:
        general, triggering = settings.general, settings.triggering
        _validate_name("deviceName", general.device_name, allow_empty=False)
        _validate_name("siteName", general.site_name, allow_empty=True)
        _validate_system_time(general.system_time)
        _validate_sensitivity(triggering.sensitivity)
        _validate_time_of_day("sleepingTime", triggering.sleeping_time)
        _validate_time_of_day("wakingUpTime", triggering.waking_up_time)
        _validate_sleep_window(triggering.sleeping_time, triggering.waking_up_time)
        await self._validate_time_zone(general.time_zone)

    async def _validate_time_zone(self, time_zone: str | None) -> None:
        if not time_zone:
            raise SettingsValidationError("timeZone must not be empty.")
        supported = await self._clock.list_time_zones()
        if time_zone not in supported:
            raise SettingsValidationError(f"The time zone '{time_zone}' is not supported.")

    async def _checked_time_zone(self, persisted: PersistedSettings) -> str:
        system_time_zone = await self._clock.get_time_zone()
        recorded = persisted.general.time_zone
        if recorded and recorded != system_time_zone:
            raise ConsistencyError(
                f"There is a mismatch between the system time zone '{system_time_zone}' "
                f"and the time zone stored in the settings file '{recorded}'."
            )
        return system_time_zone

    async def _read_daemon_state(self) -> tuple[CameraSettings, float]:
        daemon = self._daemon
        try:
            (
                picture_quality,
                movie_quality,
                picture_output,
                movie_output,
                height,
                width,
                threshold,
            ) = await asyncio.gather(
                daemon.get_picture_quality(),
                daemon.get_movie_quality(),
                daemon.get_picture_output(),
                daemon.get_movie_output(),
                daemon.get_height(),
                daemon.get_width(),
                daemon.get_threshold(),
            )
        except DaemonError as exc:
            if not exc.is_recoverable():
                raise
            logger.warning("Camera daemon unreachable; reporting empty camera settings: %s", exc)
            return CameraSettings(shot_types=[], picture_quality=0, video_quality=0), 0.0

        shot_types = []
        if picture_output != "off":
            shot_types.append("pictures")
        if movie_output != "off":
            shot_types.append("videos")
        camera = CameraSettings(
            shot_types=shot_types,
            picture_quality=picture_quality,
            video_quality=movie_quality,
        )
        return camera, to_sensitivity(threshold, height, width)

    async def _apply_camera(self, camera: CameraPatch | CameraSettings) -> None:
        try:
            if presence_of(camera, "shot_types").supplied:
                shot_types = camera.shot_types or []
                await self._daemon.set_picture_output("best" if "pictures" in shot_types else "off")
                await self._daemon.set_movie_output("on" if "videos" in shot_types else "off")
            if presence_of(camera, "picture_quality") is Presence.VALUE:
                await self._daemon.set_picture_quality(camera.picture_quality)
            if presence_of(camera, "video_quality") is Presence.VALUE:
                await self._daemon.set_movie_quality(camera.video_quality)
        except DaemonError as exc:
            if not exc.is_recoverable():
                raise
            logger.warning("Camera daemon unreachable; camera settings not applied: %s", exc)

    async def _push_sensitivity(self, sensitivity: float, *, best_effort: bool = False) -> None:
        try:
            height, width = await asyncio.gather(self._daemon.get_height(), self._daemon.get_width())
            threshold = to_threshold(sensitivity, height, width)
            await self._daemon.set_threshold(threshold)
        except DaemonError as exc:
            if not (best_effort and exc.is_recoverable()):
                raise
            logger.warning("Camera daemon unreachable; sensitivity not applied: %s", exc)
            return
        logger.debug("Sensitivity %.2f mapped to threshold %d (%dx%d)", sensitivity, threshold, width, height)

    async def _push_derived(
        self, general: PersistedGeneral, time_zone: str, *, overlay: bool = True
    ) -> None:
        filename = create_filename(general.site_name, general.device_name, time_zone)
        await self._daemon.set_filename(filename)
        if overlay:
            await self._daemon.set_text_left(
                create_overlay_text(general.site_name, general.device_name)
            )

    async def _set_identity(self, **updates: str) -> None:
        async with self._lock:
            persisted = await self._store.read()
            persisted = persisted.model_copy(
                update={"general": persisted.general.model_copy(update=updates)}
            )
            await self._store.write(persisted)
            time_zone = await self._clock.get_time_zone()
            await self._push_derived(persisted.general, time_zone)

    async def _set_sleep_window(self, **updates: str | None) -> None:
        async with self._lock:
            persisted = await self._store.read()
            triggering = persisted.triggering.model_copy(update=updates)
            _validate_sleep_window(triggering.sleeping_time, triggering.waking_up_time)
            await self._store.write(persisted.model_copy(update={"triggering": triggering}))

    @staticmethod
    def _merge_persisted(persisted: PersistedSettings, patch: PatchSettings) -> PersistedSettings:
        general_updates: dict[str, Any] = {}
        if presence_of(patch.general, "device_name").supplied:
            general_updates["device_name"] = patch.general.device_name
        if presence_of(patch.general, "site_name").supplied:
            general_updates["site_name"] = patch.general.site_name or ""
        triggering_updates: dict[str, Any] = {}
        if presence_of(patch.triggering, "sleeping_time").supplied:
            triggering_updates["sleeping_time"] = patch.triggering.sleeping_time
            triggering_updates["waking_up_time"] = patch.triggering.waking_up_time
        return persisted.model_copy(
            update={
                "general": persisted.general.model_copy(update=general_updates),
                "triggering": persisted.triggering.model_copy(update=triggering_updates),
            }
        )


__all__ = ["FILENAME_INPUTS", "OVERLAY_INPUTS", "PERSISTED_FIELDS", "ReconciliationEngine"]
