"""
JSON file holding the persisted subset of the camera trap settings.

Reads and writes are whole-document operations executed off the event loop.
Writes go to a sibling temporary file that is then renamed over the target,
so a crash mid-write never leaves a truncated document behind.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from ...core.errors import StoreUnavailable
from ...core.settings import PersistedSettings

logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    """Protocol implemented by persisted settings backends."""

    async def read(self) -> PersistedSettings: ...

    async def write(self, settings: PersistedSettings) -> None: ...


class JsonSettingsStore:
    """Settings store backed by a JSON document on disk."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def read(self) -> PersistedSettings:
        try:
            document = await asyncio.to_thread(self._path.read_bytes)
        except OSError as exc:
            raise StoreUnavailable(f"Cannot read settings file {self._path}: {exc}") from exc
        try:
            return PersistedSettings.model_validate_json(document)
        except (ValidationError, UnicodeDecodeError) as exc:
            raise StoreUnavailable(f"Settings file {self._path} is not valid: {exc}") from exc

    async def write(self, settings: PersistedSettings) -> None:
        document = settings.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        try:
            await asyncio.to_thread(self._write_atomically, document + "\n")
        except OSError as exc:
            raise StoreUnavailable(f"Cannot write settings file {self._path}: {exc}") from exc
        logger.debug("Wrote settings file %s", self._path)

    async def provision(self, defaults: PersistedSettings) -> bool:
        """Create the settings file with ``defaults`` unless it already exists."""
        if await asyncio.to_thread(self._path.exists):
            return False
        await self.write(defaults)
        logger.info("Provisioned settings file %s", self._path)
        return True

    def _write_atomically(self, document: str) -> None:
        if self._path.parent != Path():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        temporary = self._path.with_name(f".{self._path.name}.tmp")
        temporary.write_text(document, encoding="utf-8")
        os.replace(temporary, self._path)


__all__ = ["JsonSettingsStore", "SettingsStore"]
