"""Operator-facing surfaces."""

from .settings_api import SettingsApi

__all__ = ["SettingsApi"]
