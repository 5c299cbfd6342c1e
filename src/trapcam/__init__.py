"""
Trapcam - settings reconciliation for field camera traps

Keeps the persisted device settings, the host clock and time zone and the
live configuration of the motion camera daemon consistent with each other.
"""

__version__ = "0.1.0"
