"""Core simulation logic."""

from .engine import ClusterEngine
from .events import EventBus
from .interpreter import CommandInterpreter
from .reconciler import ReconciliationLoop
from .scheduler import AsyncioScheduler, ManualScheduler, WallClockScheduler
from .store import ResourceStore

__all__ = [
    "ClusterEngine",
    "EventBus",
    "CommandInterpreter",
    "ReconciliationLoop",
    "AsyncioScheduler",
    "ManualScheduler",
    "WallClockScheduler",
    "ResourceStore",
]
