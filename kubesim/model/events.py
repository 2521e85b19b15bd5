"""Typed cluster events published on the event bus."""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class EventKind(str, Enum):
    """Names under which events are published."""

    POD_CREATED = "podCreated"
    POD_RUNNING = "podRunning"
    POD_FAILED = "podFailed"
    POD_DELETED = "podDeleted"
    DEPLOYMENT_CREATED = "deploymentCreated"
    DEPLOYMENT_SCALED = "deploymentScaled"
    DEPLOYMENT_IMAGE_UPDATED = "deploymentImageUpdated"
    DEPLOYMENT_ROLLED_BACK = "deploymentRolledBack"
    DEPLOYMENT_DELETED = "deploymentDeleted"
    REPLICA_SET_CREATED = "replicaSetCreated"
    REPLICA_SET_DELETED = "replicaSetDeleted"
    SERVICE_CREATED = "serviceCreated"
    SERVICE_DELETED = "serviceDeleted"
    CONFIG_MAP_CREATED = "configMapCreated"
    CONFIG_MAP_DELETED = "configMapDeleted"
    SECRET_CREATED = "secretCreated"
    SECRET_DELETED = "secretDeleted"


class ClusterEvent(BaseModel):
    """Common shape of every event: a kind tag and the resource name."""

    name: str

    class Config:
        populate_by_name = True
        frozen = True

    def payload(self) -> dict:
        """Event fields as published to consumers, without the kind tag."""
        return self.model_dump(by_alias=True, exclude={"kind"})


class PodCreated(ClusterEvent):
    kind: Literal[EventKind.POD_CREATED] = EventKind.POD_CREATED
    node: Optional[str] = None


class PodRunning(ClusterEvent):
    kind: Literal[EventKind.POD_RUNNING] = EventKind.POD_RUNNING


class PodFailed(ClusterEvent):
    kind: Literal[EventKind.POD_FAILED] = EventKind.POD_FAILED


class PodDeleted(ClusterEvent):
    kind: Literal[EventKind.POD_DELETED] = EventKind.POD_DELETED


class DeploymentCreated(ClusterEvent):
    kind: Literal[EventKind.DEPLOYMENT_CREATED] = EventKind.DEPLOYMENT_CREATED
    replicas: int


class DeploymentScaled(ClusterEvent):
    kind: Literal[EventKind.DEPLOYMENT_SCALED] = EventKind.DEPLOYMENT_SCALED
    new_replicas: int = Field(alias="newReplicas")


class DeploymentImageUpdated(ClusterEvent):
    kind: Literal[EventKind.DEPLOYMENT_IMAGE_UPDATED] = EventKind.DEPLOYMENT_IMAGE_UPDATED
    image: str
    previous_image: str = Field(alias="previousImage")


class DeploymentRolledBack(ClusterEvent):
    kind: Literal[EventKind.DEPLOYMENT_ROLLED_BACK] = EventKind.DEPLOYMENT_ROLLED_BACK
    image: str


class DeploymentDeleted(ClusterEvent):
    kind: Literal[EventKind.DEPLOYMENT_DELETED] = EventKind.DEPLOYMENT_DELETED


class ReplicaSetCreated(ClusterEvent):
    kind: Literal[EventKind.REPLICA_SET_CREATED] = EventKind.REPLICA_SET_CREATED
    deployment: str


class ReplicaSetDeleted(ClusterEvent):
    kind: Literal[EventKind.REPLICA_SET_DELETED] = EventKind.REPLICA_SET_DELETED


class ServiceCreated(ClusterEvent):
    kind: Literal[EventKind.SERVICE_CREATED] = EventKind.SERVICE_CREATED
    type: str


class ServiceDeleted(ClusterEvent):
    kind: Literal[EventKind.SERVICE_DELETED] = EventKind.SERVICE_DELETED


class ConfigMapCreated(ClusterEvent):
    kind: Literal[EventKind.CONFIG_MAP_CREATED] = EventKind.CONFIG_MAP_CREATED


class ConfigMapDeleted(ClusterEvent):
    kind: Literal[EventKind.CONFIG_MAP_DELETED] = EventKind.CONFIG_MAP_DELETED


class SecretCreated(ClusterEvent):
    kind: Literal[EventKind.SECRET_CREATED] = EventKind.SECRET_CREATED


class SecretDeleted(ClusterEvent):
    kind: Literal[EventKind.SECRET_DELETED] = EventKind.SECRET_DELETED


# Discriminated union used wherever an arbitrary event is parsed or stored
AnyClusterEvent = Annotated[
    Union[
        PodCreated,
        PodRunning,
        PodFailed,
        PodDeleted,
        DeploymentCreated,
        DeploymentScaled,
        DeploymentImageUpdated,
        DeploymentRolledBack,
        DeploymentDeleted,
        ReplicaSetCreated,
        ReplicaSetDeleted,
        ServiceCreated,
        ServiceDeleted,
        ConfigMapCreated,
        ConfigMapDeleted,
        SecretCreated,
        SecretDeleted,
    ],
    Field(discriminator="kind"),
]

_event_adapter = TypeAdapter(AnyClusterEvent)


def parse_event(data: Dict[str, Any]) -> ClusterEvent:
    """Rebuild a typed event from its serialized form (``kind`` plus payload)."""
    return _event_adapter.validate_python(data)
