"""Host system integration: clock, sleep hand-off and the sleep schedule."""

from .clock import ClockAdapter, SystemClock
from .scheduler import SleepScheduler
from .sleep import ShellSleepTrigger, SleepTrigger

__all__ = ["ClockAdapter", "ShellSleepTrigger", "SleepScheduler", "SleepTrigger", "SystemClock"]
