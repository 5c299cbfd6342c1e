"""
Collection of trapcam components grouped by the store or surface they own.
"""

from .daemon.motion_client import MotionHttpClient
from .dashboard.settings_api import SettingsApi
from .storage.settings_store import JsonSettingsStore
from .system.clock import SystemClock
from .system.scheduler import SleepScheduler
from .system.sleep import ShellSleepTrigger

__all__ = [
    "JsonSettingsStore",
    "MotionHttpClient",
    "SettingsApi",
    "ShellSleepTrigger",
    "SleepScheduler",
    "SystemClock",
]
