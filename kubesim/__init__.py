"""In-process Kubernetes cluster-state reconciliation engine."""

from .core import ClusterEngine
from .model import CommandResult, EngineConfig

__version__ = "0.1.0"

__all__ = ["ClusterEngine", "CommandResult", "EngineConfig", "__version__"]
