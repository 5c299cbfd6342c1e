"""
Settings schemas exchanged with operators and persisted on disk.

Attributes use snake_case in Python and camelCase on the wire and in the
settings file. Three families of models live here:

* ``Settings`` - the full view assembled on every read and required by PUT.
* ``PatchSettings`` - the same shape with every field optional. Pydantic's
  ``model_fields_set`` records which fields the caller actually supplied,
  which ``presence_of`` turns into an explicit ``Presence`` tag so "absent"
  and "present but empty" never collapse into ``None``.
* ``PersistedSettings`` - the subset owned by the settings file.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

ShotType = Literal["pictures", "videos"]
SHOT_TYPES: tuple[ShotType, ...] = ("pictures", "videos")

NAME_PATTERN = r"^[a-zA-Z0-9-]*$"
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

Name = Annotated[str, StringConstraints(pattern=NAME_PATTERN)]
TimeOfDay = Annotated[str, StringConstraints(pattern=TIME_OF_DAY_PATTERN)]
Quality = Annotated[int, Field(ge=0, le=100)]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _unique_shot_types(value: list[ShotType] | None) -> list[ShotType] | None:
    if value is None:
        return None
    return [shot for shot in SHOT_TYPES if shot in value]


class _Group(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class CameraSettings(_Group):
    shot_types: list[ShotType]
    picture_quality: Quality
    video_quality: Quality

    @field_validator("shot_types")
    @classmethod
    def _dedupe_shot_types(cls, value: list[ShotType] | None) -> list[ShotType] | None:
        return _unique_shot_types(value)


class GeneralSettings(_Group):
    device_name: Name
    site_name: Name
    system_time: AwareDatetime
    time_zone: str


class TriggeringSettings(_Group):
    sensitivity: float
    sleeping_time: TimeOfDay | None = None
    waking_up_time: TimeOfDay | None = None

    @field_validator("sleeping_time", "waking_up_time", mode="before")
    @classmethod
    def _blank_means_cleared(cls, value: Any) -> Any:
        return _blank_to_none(value)


class Settings(_Group):
    """Full settings view; every group is required."""

    camera: CameraSettings
    general: GeneralSettings
    triggering: TriggeringSettings


class CameraPatch(_Group):
    shot_types: list[ShotType] | None = None
    picture_quality: Quality | None = None
    video_quality: Quality | None = None

    @field_validator("shot_types")
    @classmethod
    def _dedupe_shot_types(cls, value: list[ShotType] | None) -> list[ShotType] | None:
        return _unique_shot_types(value)


class GeneralPatch(_Group):
    device_name: Name | None = None
    site_name: Name | None = None
    system_time: AwareDatetime | None = None
    time_zone: str | None = None

    @field_validator("system_time", mode="before")
    @classmethod
    def _blank_means_cleared(cls, value: Any) -> Any:
        return _blank_to_none(value)


class TriggeringPatch(_Group):
    sensitivity: float | None = None
    sleeping_time: TimeOfDay | None = None
    waking_up_time: TimeOfDay | None = None

    @field_validator("sleeping_time", "waking_up_time", mode="before")
    @classmethod
    def _blank_means_cleared(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PatchSettings(_Group):
    """Partial update; only supplied fields are applied."""

    camera: CameraPatch | None = None
    general: GeneralPatch | None = None
    triggering: TriggeringPatch | None = None

    def supplied_fields(self) -> set[str]:
        """Return ``group.field`` names the caller supplied, empty or not."""
        fields: set[str] = set()
        for group_name in ("camera", "general", "triggering"):
            group = getattr(self, group_name)
            if group is None:
                continue
            fields.update(f"{group_name}.{name}" for name in group.model_fields_set)
        return fields


class Presence(enum.Enum):
    """Whether a patch field was left out, supplied empty, or supplied with a value."""

    UNSET = "unset"
    CLEARED = "cleared"
    VALUE = "value"

    @property
    def supplied(self) -> bool:
        return self is not Presence.UNSET


def presence_of(group: BaseModel | None, field: str) -> Presence:
    if group is None or field not in group.model_fields_set:
        return Presence.UNSET
    value = getattr(group, field)
    if value is None or value == "":
        return Presence.CLEARED
    return Presence.VALUE


class _PersistedGroup(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PersistedGeneral(_PersistedGroup):
    device_name: str | None = None
    site_name: str | None = None
    # Written by older firmware; read for consistency checks, never written back.
    time_zone: str | None = Field(default=None, exclude=True)


class PersistedTriggering(_PersistedGroup):
    sleeping_time: str | None = None
    waking_up_time: str | None = None

    @field_validator("sleeping_time", "waking_up_time", mode="before")
    @classmethod
    def _blank_means_cleared(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PersistedSettings(_PersistedGroup):
    """Durable subset of the settings owned by the settings file."""

    general: PersistedGeneral = Field(default_factory=PersistedGeneral)
    triggering: PersistedTriggering = Field(default_factory=PersistedTriggering)


__all__ = [
    "CameraPatch",
    "CameraSettings",
    "GeneralPatch",
    "GeneralSettings",
    "NAME_PATTERN",
    "Name",
    "PatchSettings",
    "PersistedGeneral",
    "PersistedSettings",
    "PersistedTriggering",
    "Presence",
    "SHOT_TYPES",
    "Settings",
    "ShotType",
    "TIME_OF_DAY_PATTERN",
    "TimeOfDay",
    "TriggeringPatch",
    "TriggeringSettings",
    "presence_of",
]
