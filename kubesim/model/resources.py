"""Cluster resource models."""

from enum import Enum
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    """Resource kinds held by the store."""

    POD = "pod"
    DEPLOYMENT = "deployment"
    REPLICA_SET = "replicaset"
    SERVICE = "service"
    CONFIG_MAP = "configmap"
    SECRET = "secret"
    NODE = "node"

    @property
    def display_name(self) -> str:
        """Kubernetes-style kind name used in messages."""
        return KIND_DISPLAY_NAMES[self]


KIND_DISPLAY_NAMES: Dict[ResourceKind, str] = {
    ResourceKind.POD: "Pod",
    ResourceKind.DEPLOYMENT: "Deployment",
    ResourceKind.REPLICA_SET: "ReplicaSet",
    ResourceKind.SERVICE: "Service",
    ResourceKind.CONFIG_MAP: "ConfigMap",
    ResourceKind.SECRET: "Secret",
    ResourceKind.NODE: "Node",
}


class PodPhase(str, Enum):
    """Pod lifecycle phases."""

    PENDING = "Pending"
    RUNNING = "Running"
    TERMINATING = "Terminating"
    FAILED = "Failed"
    SUCCEEDED = "Succeeded"


class ServiceType(str, Enum):
    """Supported service types."""

    CLUSTER_IP = "ClusterIP"
    NODE_PORT = "NodePort"
    LOAD_BALANCER = "LoadBalancer"


class Node(BaseModel):
    """A cluster node hosting pods."""

    name: str
    capacity: int
    pods: Set[str] = Field(default_factory=set)

    @property
    def has_capacity(self) -> bool:
        return len(self.pods) < self.capacity

    def summary(self) -> Dict[str, object]:
        return {"name": self.name, "pods": len(self.pods), "capacity": self.capacity}


class Pod(BaseModel):
    """The smallest workload unit, hosted by exactly one node."""

    name: str
    image: str
    node_name: str
    phase: PodPhase = PodPhase.PENDING
    owner: Optional[str] = None  # ReplicaSet name
    sequence: int = 0
    created_at: float = 0.0

    @property
    def is_running(self) -> bool:
        return self.phase == PodPhase.RUNNING

    @property
    def is_terminating(self) -> bool:
        return self.phase == PodPhase.TERMINATING

    def summary(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "status": self.phase.value,
            "node": self.node_name,
            "image": self.image,
            "owner": self.owner,
        }


class ReplicaSet(BaseModel):
    """Keeps a target number of pods alive for one deployment."""

    name: str
    deployment: str
    desired: int = 0
    current: int = 0
    pods: List[str] = Field(default_factory=list)
    pod_counter: int = 0

    def summary(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "deployment": self.deployment,
            "desired": self.desired,
            "current": self.current,
        }


class Deployment(BaseModel):
    """Declares the desired replica count and image of a workload."""

    name: str
    replicas: int = 1
    image: str
    previous_image: Optional[str] = None
    paused: bool = False

    def summary(self, ready: int = 0) -> Dict[str, object]:
        return {
            "name": self.name,
            "ready": f"{ready}/{self.replicas}",
            "replicas": self.replicas,
            "image": self.image,
        }


class Service(BaseModel):
    """Network endpoint in front of workloads."""

    name: str
    type: ServiceType = ServiceType.CLUSTER_IP

    def summary(self) -> Dict[str, object]:
        return {"name": self.name, "type": self.type.value}


class ConfigMap(BaseModel):
    """Plain key/value configuration."""

    name: str
    data: Dict[str, str] = Field(default_factory=dict)

    def summary(self) -> Dict[str, object]:
        return {"name": self.name, "data": len(self.data)}


class Secret(BaseModel):
    """Key/value configuration whose values are never echoed back."""

    name: str
    data: Dict[str, str] = Field(default_factory=dict)

    def summary(self) -> Dict[str, object]:
        return {"name": self.name, "type": "Opaque", "data": len(self.data)}
