"""
Core infrastructure of the camera trap host service.

This package holds the settings schemas, the error taxonomy, configuration
loading, the lifecycle contracts and the reconciliation engine.
"""

from .config import ConfigService, ConfigSnapshot
from .contracts import BaseModule, HealthStatus, ModuleConfig
from .engine import ReconciliationEngine
from .errors import TrapcamError
from .orchestrator import Orchestrator
from .settings import PatchSettings, PersistedSettings, Settings

__all__ = [
    "BaseModule",
    "ConfigService",
    "ConfigSnapshot",
    "HealthStatus",
    "ModuleConfig",
    "Orchestrator",
    "PatchSettings",
    "PersistedSettings",
    "ReconciliationEngine",
    "Settings",
    "TrapcamError",
]
