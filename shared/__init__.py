"""
Shared data structures available to the acquisition back end and the GUI.
"""

from .app_settings import AcquisitionSettings, AppSettingsStore
from .event_log import EventLog
from .models import AcceptanceWindow, DecayEvent, EventLogSnapshot, RunState, TaskMode

__all__ = [
    "AcceptanceWindow",
    "AcquisitionSettings",
    "AppSettingsStore",
    "DecayEvent",
    "EventLog",
    "EventLogSnapshot",
    "RunState",
    "TaskMode",
]
