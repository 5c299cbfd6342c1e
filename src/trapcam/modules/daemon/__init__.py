"""Client side of the camera daemon control surface."""

from .motion_client import DaemonClient, MotionHttpClient, OutputMode

__all__ = ["DaemonClient", "MotionHttpClient", "OutputMode"]
