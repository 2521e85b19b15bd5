"""Data models for kubesim."""

from .config import EngineConfig
from .export import OutputFormat
from .events import ClusterEvent, EventKind, parse_event
from .resources import (
    ConfigMap,
    Deployment,
    Node,
    Pod,
    PodPhase,
    ReplicaSet,
    ResourceKind,
    Secret,
    Service,
    ServiceType,
)
from .result import CommandResult, ParsedCommand

__all__ = [
    "EngineConfig",
    "OutputFormat",
    "ClusterEvent",
    "EventKind",
    "parse_event",
    "ConfigMap",
    "Deployment",
    "Node",
    "Pod",
    "PodPhase",
    "ReplicaSet",
    "ResourceKind",
    "Secret",
    "Service",
    "ServiceType",
    "CommandResult",
    "ParsedCommand",
]
