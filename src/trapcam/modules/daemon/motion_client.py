"""
HTTP client for the camera daemon's per-field configuration surface.

The daemon answers ``GET /<camera>/config/get?query=<option>`` with a line of
the form ``Camera 0 <option> = <value> Done`` and accepts
``GET /<camera>/config/set?<option>=<value>``. Every call is one request; the
daemon decides which options are readable and writable.
"""

from __future__ import annotations

import logging
import re
from typing import Literal, Protocol

import httpx

from ...core.errors import DaemonConnectionRefused, DaemonError, RemoteRejected

logger = logging.getLogger(__name__)

OutputMode = Literal["on", "off", "best"]
_OUTPUT_MODES: tuple[str, ...] = ("on", "off", "best")

_GET_RESPONSE = re.compile(r"^Camera \d+ (?P<option>\S+) = (?P<value>.*?) Done\s*$", re.DOTALL)

FILENAME_OPTIONS = ("picture_filename", "movie_filename", "snapshot_filename")


class DaemonClient(Protocol):
    """Protocol implemented by camera daemon clients."""

    async def get_picture_quality(self) -> int: ...

    async def set_picture_quality(self, quality: int) -> None: ...

    async def get_movie_quality(self) -> int: ...

    async def set_movie_quality(self, quality: int) -> None: ...

    async def get_picture_output(self) -> OutputMode: ...

    async def set_picture_output(self, mode: OutputMode) -> None: ...

    async def get_movie_output(self) -> OutputMode: ...

    async def set_movie_output(self, mode: OutputMode) -> None: ...

    async def get_height(self) -> int: ...

    async def get_width(self) -> int: ...

    async def get_threshold(self) -> int: ...

    async def set_threshold(self, threshold: int) -> None: ...

    async def set_filename(self, pattern: str) -> None: ...

    async def set_text_left(self, text: str) -> None: ...

    async def get_target_dir(self) -> str: ...

    async def set_target_dir(self, path: str) -> None: ...


class MotionHttpClient:
    """Daemon client implemented with httpx."""

    def __init__(
        self,
        *,
        base_url: str = "http://127.0.0.1:8080",
        camera_id: int = 0,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._camera_id = camera_id
        self._timeout = timeout
        self._transport = transport

    async def get_picture_quality(self) -> int:
        return await self._get_int("picture_quality")

    async def set_picture_quality(self, quality: int) -> None:
        await self._set_option("picture_quality", str(quality))

    async def get_movie_quality(self) -> int:
        return await self._get_int("movie_quality")

    async def set_movie_quality(self, quality: int) -> None:
        await self._set_option("movie_quality", str(quality))

    async def get_picture_output(self) -> OutputMode:
        return await self._get_output("picture_output")

    async def set_picture_output(self, mode: OutputMode) -> None:
        await self._set_option("picture_output", mode)

    async def get_movie_output(self) -> OutputMode:
        return await self._get_output("movie_output")

    async def set_movie_output(self, mode: OutputMode) -> None:
        await self._set_option("movie_output", mode)

    async def get_height(self) -> int:
        return await self._get_int("height")

    async def get_width(self) -> int:
        return await self._get_int("width")

    async def get_threshold(self) -> int:
        return await self._get_int("threshold")

    async def set_threshold(self, threshold: int) -> None:
        await self._set_option("threshold", str(threshold))

    async def set_filename(self, pattern: str) -> None:
        for option in FILENAME_OPTIONS:
            await self._set_option(option, pattern)

    async def set_text_left(self, text: str) -> None:
        await self._set_option("text_left", text)

    async def get_target_dir(self) -> str:
        return await self._get_option("target_dir")

    async def set_target_dir(self, path: str) -> None:
        await self._set_option("target_dir", path)

    async def _get_option(self, option: str) -> str:
        body = await self._request("config/get", {"query": option})
        match = _GET_RESPONSE.match(body.strip())
        if match is None or match.group("option") != option:
            raise RemoteRejected(f"Unexpected daemon response for '{option}': {body!r}")
        return match.group("value").strip()

    async def _get_int(self, option: str) -> int:
        value = await self._get_option(option)
        try:
            return int(value)
        except ValueError as exc:
            raise RemoteRejected(f"Daemon option '{option}' is not an integer: {value!r}") from exc

    async def _get_output(self, option: str) -> OutputMode:
        value = await self._get_option(option)
        if value not in _OUTPUT_MODES:
            raise RemoteRejected(f"Daemon option '{option}' has unknown mode {value!r}")
        return value  # type: ignore[return-value]

    async def _set_option(self, option: str, value: str) -> None:
        await self._request("config/set", {option: value})
        logger.debug("Daemon option %s set to %r", option, value)

    async def _request(self, action: str, params: dict[str, str]) -> str:
        url = f"{self._base_url}/{self._camera_id}/{action}"
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.get(url, params=params)
                response.raise_for_status()
            except (httpx.ConnectError, httpx.TimeoutException) as exc:
                raise DaemonConnectionRefused(f"Camera daemon unreachable at {url}: {exc}") from exc
            except httpx.HTTPStatusError as exc:
                raise RemoteRejected(
                    f"Camera daemon rejected {action} {params}: {exc.response.status_code}",
                    status_code=exc.response.status_code,
                ) from exc
            except httpx.HTTPError as exc:
                raise DaemonError(f"Camera daemon request {action} failed: {exc}") from exc
        return response.text


__all__ = ["DaemonClient", "FILENAME_OPTIONS", "MotionHttpClient", "OutputMode"]
