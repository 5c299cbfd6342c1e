"""
Lifecycle contracts for the host-side modules.

The reconciliation engine itself is a plain object; the modules that expose it
(the settings API) or poke it periodically (the sleep scheduler) share this
configure/start/stop/health lifecycle so the orchestrator can manage them.
"""

from __future__ import annotations

import abc
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(BaseModel):
    """Structured health report for modules."""

    model_config = ConfigDict(extra="allow", frozen=True)

    status: str = Field(description="Health classification such as healthy/degraded/error.")
    details: dict[str, Any] = Field(default_factory=dict)


class ModuleConfig(BaseModel):
    """Baseline configuration contract applied to all modules."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = Field(default=True)
    options: dict[str, Any] = Field(
        default_factory=dict, description="Arbitrary module configuration."
    )


class BaseModule(abc.ABC):
    """
    Abstract base class for lifecycle-managed components.
    """

    name: str

    def __init__(self) -> None:
        self._configured = False
        self._config = ModuleConfig()

    async def configure(self, config: ModuleConfig) -> None:
        """Apply the provided configuration prior to module start."""
        self._config = config
        self._configured = True

    @abc.abstractmethod
    async def start(self) -> None:
        """Begin serving or schedule background tasks."""

    async def stop(self) -> None:
        """
        Optional hook to release resources.

        Base implementation is a no-op so subclasses can override only
        when needed without being forced to mark the method abstract.
        """
        return None

    async def health(self) -> HealthStatus:
        """Return a basic health status; modules can override for richer diagnostics."""
        status = "healthy" if self._configured else "degraded"
        return HealthStatus(status=status, details={"configured": self._configured})


__all__ = ["BaseModule", "HealthStatus", "ModuleConfig"]
