"""
FastAPI-powered settings surface for the camera trap.

Routes are thin: request bodies are validated with the settings schemas and
handed to the reconciliation engine; engine failures are mapped onto status
codes by the exception handlers registered in ``_build_app``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

import uvicorn
from fastapi import Body, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import AwareDatetime, BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from ... import __version__
from ...core.contracts import BaseModule, HealthStatus, ModuleConfig
from ...core.engine import ReconciliationEngine
from ...core.orchestrator import Orchestrator
from ...core.errors import (
    DaemonError,
    SettingsValidationError,
    TrapcamError,
    UnsupportedOnPlatform,
)
from ...core.settings import Name, PatchSettings, Settings, TimeOfDay

logger = logging.getLogger(__name__)


class _FieldBody(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class SiteNameBody(_FieldBody):
    site_name: Name


class DeviceNameBody(_FieldBody):
    device_name: Name


class SystemTimeBody(_FieldBody):
    system_time: AwareDatetime


class TimeZoneBody(_FieldBody):
    time_zone: str


class ShotsFolderBody(_FieldBody):
    shots_folder: str


class SleepingTimeBody(_FieldBody):
    sleeping_time: TimeOfDay | None = None

    @field_validator("sleeping_time", mode="before")
    @classmethod
    def _blank_means_cleared(cls, value: Any) -> Any:
        return value or None


class WakingUpTimeBody(_FieldBody):
    waking_up_time: TimeOfDay | None = None

    @field_validator("waking_up_time", mode="before")
    @classmethod
    def _blank_means_cleared(cls, value: Any) -> Any:
        return value or None


FIELD_BODIES: dict[str, tuple[type[_FieldBody], str]] = {
    "siteName": (SiteNameBody, "site_name"),
    "deviceName": (DeviceNameBody, "device_name"),
    "systemTime": (SystemTimeBody, "system_time"),
    "timeZone": (TimeZoneBody, "time_zone"),
    "shotsFolder": (ShotsFolderBody, "shots_folder"),
    "sleepingTime": (SleepingTimeBody, "sleeping_time"),
    "wakingUpTime": (WakingUpTimeBody, "waking_up_time"),
}

_SLEEP_WINDOW_NOTE = (
    "sleepingTime and wakingUpTime are stored as a pair, both set or both empty. "
    "This route can only move the time of an existing window. "
    "To create or clear a window, send both fields together with PATCH /settings."
)
FIELD_DESCRIPTIONS: dict[str, str] = {
    "sleepingTime": _SLEEP_WINDOW_NOTE,
    "wakingUpTime": _SLEEP_WINDOW_NOTE,
}


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


class SettingsApi(BaseModule):
    """Expose the reconciliation engine over HTTP."""

    name = "modules.dashboard.settings_api"

    def __init__(
        self,
        engine: ReconciliationEngine,
        *,
        config_factory: Callable[..., uvicorn.Config] | None = None,
        server_factory: Callable[[uvicorn.Config], uvicorn.Server] | None = None,
        health_provider: Callable[[], Awaitable[dict[str, HealthStatus]]] | None = None,
    ) -> None:
        super().__init__()
        self._engine = engine
        self._health_provider = health_provider
        self._host = "127.0.0.1"
        self._port = 3000
        self._serve_api = True
        self._app: FastAPI | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task[None] | None = None
        self._config_factory = config_factory or uvicorn.Config
        self._server_factory = server_factory or uvicorn.Server

    async def configure(self, config: ModuleConfig) -> None:
        await super().configure(config)
        options = config.options
        self._host = options.get("host", self._host)
        self._port = int(options.get("port", self._port))
        self._serve_api = bool(options.get("serve_api", self._serve_api))

    async def start(self) -> None:
        self._app = self._build_app()
        if not self._serve_api:
            logger.info("SettingsApi running in embedded-only mode (no HTTP server).")
            return
        config = self._config_factory(
            app=self._app,
            host=self._host,
            port=self._port,
            loop="asyncio",
            lifespan="on",
            log_level="info",
        )
        self._server = self._server_factory(config)
        self._server_task = asyncio.create_task(self._server.serve())
        logger.info("SettingsApi listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        if self._server_task:
            self._server.should_exit = True  # type: ignore[union-attr]
            await asyncio.wait(
                [self._server_task],
                timeout=1,
            )
            self._server_task = None
        self._server = None

    async def health(self) -> HealthStatus:
        if self._app is None:
            return HealthStatus(status="degraded", details={"started": False})
        details: dict[str, Any] = {"serving": self._server_task is not None}
        if self._serve_api:
            details["address"] = f"{self._host}:{self._port}"
        return HealthStatus(status="healthy", details=details)

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            raise RuntimeError("SettingsApi has not been started or configured yet.")
        return self._app

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="Trapcam Settings API", version=__version__)
        self._register_error_handlers(app)
        engine = self._engine

        @app.get("/health")
        async def health() -> dict[str, Any]:
            if self._health_provider is not None:
                reports = await self._health_provider()
            else:
                reports = {self.name: await self.health()}
            return {
                "status": Orchestrator.overall_status(reports),
                "modules": {name: report.model_dump() for name, report in reports.items()},
            }

        @app.get("/settings", response_model=Settings)
        async def read_settings() -> Settings:
            return await engine.get_all()

        @app.patch("/settings")
        async def patch_settings(patch: PatchSettings) -> Response:
            await engine.patch(patch)
            return Response(status_code=200)

        @app.put("/settings")
        async def put_settings(settings: Settings) -> Response:
            await engine.put(settings)
            return Response(status_code=200)

        @app.get("/settings/timeZones")
        async def time_zones() -> dict[str, list[str]]:
            return {"timeZones": await engine.list_time_zones()}

        for field in FIELD_BODIES:
            self._add_field_routes(app, field)
        return app

    def _add_field_routes(self, app: FastAPI, field: str) -> None:
        body_model, attribute = FIELD_BODIES[field]
        engine = self._engine

        async def read_field() -> dict[str, Any]:
            return {field: await engine.get_field(field)}

        async def write_field(payload: dict[str, Any] = Body(...)) -> Response:
            try:
                body = body_model.model_validate(payload)
            except ValidationError as exc:
                raise RequestValidationError(exc.errors(include_url=False)) from exc
            await engine.set_field(field, getattr(body, attribute))
            return Response(status_code=200)

        path = f"/settings/{field}"
        app.add_api_route(path, read_field, methods=["GET"], name=f"read_{attribute}")
        app.add_api_route(
            path,
            write_field,
            methods=["PUT"],
            name=f"write_{attribute}",
            description=FIELD_DESCRIPTIONS.get(field),
        )

    @staticmethod
    def _register_error_handlers(app: FastAPI) -> None:
        @app.exception_handler(RequestValidationError)
        async def invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
            return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

        @app.exception_handler(SettingsValidationError)
        async def invalid_settings(request: Request, exc: SettingsValidationError) -> JSONResponse:
            return _error_response(400, exc)

        @app.exception_handler(DaemonError)
        async def daemon_failed(request: Request, exc: DaemonError) -> JSONResponse:
            logger.warning("%s %s: camera daemon error: %s", request.method, request.url.path, exc)
            return _error_response(502, exc)

        @app.exception_handler(UnsupportedOnPlatform)
        async def unsupported(request: Request, exc: UnsupportedOnPlatform) -> JSONResponse:
            return _error_response(501, exc)

        @app.exception_handler(TrapcamError)
        async def engine_failed(request: Request, exc: TrapcamError) -> JSONResponse:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
            return _error_response(500, exc)


__all__ = ["FIELD_BODIES", "FIELD_DESCRIPTIONS", "SettingsApi"]
