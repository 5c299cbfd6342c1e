"""Persistence for the settings owned by the device."""

from .settings_store import JsonSettingsStore, SettingsStore

__all__ = ["JsonSettingsStore", "SettingsStore"]
