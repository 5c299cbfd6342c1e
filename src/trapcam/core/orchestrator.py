"""
Lifecycle coordinator for the host-side trapcam modules.

The orchestrator configures modules, starts them in registration order and
stops them in reverse order. Modules that fail to stop are logged and do not
prevent the remaining modules from shutting down.
"""

from __future__ import annotations

import logging

from .contracts import BaseModule, HealthStatus, ModuleConfig

logger = logging.getLogger(__name__)


class Orchestrator:
    """Manage module lifecycle."""

    def __init__(self) -> None:
        self._modules: list[BaseModule] = []
        self._running = False

    @property
    def modules(self) -> list[BaseModule]:
        return list(self._modules)

    async def add_module(self, module: BaseModule, config: ModuleConfig | None = None) -> None:
        """
        Register a module with an optional configuration.

        Configuration defaults to the module's baseline if one is not provided.
        """
        if config is None:
            config = ModuleConfig()
        await module.configure(config)
        self._modules.append(module)
        logger.info("Registered module %s", module.name)

    async def start(self) -> None:
        """Start all registered modules."""
        if self._running:
            logger.warning("Orchestrator already running.")
            return
        for module in self._modules:
            logger.info("Starting module %s", module.name)
            await module.start()
        self._running = True
        logger.info("Orchestrator started %d modules.", len(self._modules))

    async def stop(self) -> None:
        """Stop all modules in reverse start order."""
        if not self._running:
            logger.warning("Orchestrator stop requested while not running.")
            return
        for module in reversed(self._modules):
            try:
                await module.stop()
            except Exception:  # pragma: no cover - logged for troubleshooting
                logger.exception("Module %s failed to stop cleanly.", module.name)
        self._running = False
        logger.info("Orchestrator stopped.")

    async def health(self) -> dict[str, HealthStatus]:
        """Aggregate health information from all modules."""
        reports: dict[str, HealthStatus] = {}
        for module in self._modules:
            reports[module.name] = await module.health()
        return reports

    @staticmethod
    def overall_status(reports: dict[str, HealthStatus]) -> str:
        statuses = {report.status for report in reports.values()}
        if "error" in statuses:
            return "error"
        if "degraded" in statuses:
            return "degraded"
        return "healthy"


__all__ = ["Orchestrator"]
