"""Typed resource store: the single owner of mutable cluster state."""

import itertools
import random
from typing import Callable, Dict, List, Optional

from ..model.config import EngineConfig
from ..model.events import (
    ConfigMapCreated,
    ConfigMapDeleted,
    DeploymentCreated,
    DeploymentDeleted,
    DeploymentImageUpdated,
    DeploymentRolledBack,
    DeploymentScaled,
    PodCreated,
    PodDeleted,
    PodFailed,
    PodRunning,
    ReplicaSetCreated,
    ReplicaSetDeleted,
    SecretCreated,
    SecretDeleted,
    ServiceCreated,
    ServiceDeleted,
)
from ..model.resources import (
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
from ..utils.logger import get_logger
from .errors import CapacityError, DuplicateError, NotFoundError, RollbackError, ValidationError
from .events import EventBus
from .scheduler import ScheduledTask, Scheduler

logger = get_logger(__name__)


class ResourceStore:
    """Keyed collections of resources enforcing uniqueness and ownership.

    Readers get copies; every mutation goes through a method here so the
    invariants (unique names, Deployment -> ReplicaSet -> Pod ownership, live
    node references, two-phase pod deletion) are enforced in one place.
    """

    def __init__(self, bus: EventBus, scheduler: Scheduler, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self._bus = bus
        self._scheduler = scheduler
        self._rng = random.Random(self.config.seed)
        self._sequence = itertools.count(1)
        self._round_robin = 0
        self._disposed = False

        self._nodes: Dict[str, Node] = {}
        self._pods: Dict[str, Pod] = {}
        self._deployments: Dict[str, Deployment] = {}
        self._replica_sets: Dict[str, ReplicaSet] = {}
        self._services: Dict[str, Service] = {}
        self._config_maps: Dict[str, ConfigMap] = {}
        self._secrets: Dict[str, Secret] = {}

        # Cancellation handles for pod promotion and deletion grace periods
        self._promotions: Dict[str, ScheduledTask] = {}
        self._purges: Dict[str, ScheduledTask] = {}

        self._bootstrap_nodes()

    def _bootstrap_nodes(self) -> None:
        for index in range(1, self.config.node_count + 1):
            name = f"node-{index}"
            self._nodes[name] = Node(name=name, capacity=self.config.node_capacity)
        logger.info(
            f"Bootstrapped {len(self._nodes)} node(s) with capacity {self.config.node_capacity}"
        )

    # ------------------------------------------------------------------
    # Generic access by kind
    # ------------------------------------------------------------------

    def _collection(self, kind: ResourceKind) -> Dict:
        collections = {
            ResourceKind.POD: self._pods,
            ResourceKind.DEPLOYMENT: self._deployments,
            ResourceKind.REPLICA_SET: self._replica_sets,
            ResourceKind.SERVICE: self._services,
            ResourceKind.CONFIG_MAP: self._config_maps,
            ResourceKind.SECRET: self._secrets,
            ResourceKind.NODE: self._nodes,
        }
        return collections[kind]

    def get(self, kind: ResourceKind, name: str):
        """Return a copy of the named resource, or None."""
        resource = self._collection(kind).get(name)
        return resource.model_copy(deep=True) if resource is not None else None

    def require(self, kind: ResourceKind, name: str):
        """Like ``get`` but raises NotFoundError for a missing name."""
        resource = self.get(kind, name)
        if resource is None:
            raise NotFoundError(kind, name)
        return resource

    def list(self, kind: ResourceKind) -> List:
        """Return copies of every resource of a kind, in creation order."""
        resources = [r.model_copy(deep=True) for r in self._collection(kind).values()]
        if kind == ResourceKind.POD:
            resources.sort(key=lambda pod: pod.sequence)
        return resources

    def exists(self, kind: ResourceKind, name: str) -> bool:
        return name in self._collection(kind)

    def delete(self, kind: ResourceKind, name: str) -> None:
        """Delete by kind; only user-managed kinds can be deleted."""
        deleters: Dict[ResourceKind, Callable[[str], None]] = {
            ResourceKind.POD: self.delete_pod,
            ResourceKind.DEPLOYMENT: self.delete_deployment,
            ResourceKind.SERVICE: self.delete_service,
            ResourceKind.CONFIG_MAP: self.delete_config_map,
            ResourceKind.SECRET: self.delete_secret,
        }
        deleter = deleters.get(kind)
        if deleter is None:
            raise ValidationError(f"{kind.display_name} resources cannot be deleted")
        deleter(name)

    def _check_unique(self, kind: ResourceKind, name: str) -> None:
        if not name:
            raise ValidationError(f"{kind.display_name} name must not be empty")
        if name in self._collection(kind):
            raise DuplicateError(kind, name)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def get_node(self, name: str) -> Optional[Node]:
        return self.get(ResourceKind.NODE, name)

    def list_nodes(self) -> List[Node]:
        return self.list(ResourceKind.NODE)

    def _select_node(self, pod_name: str) -> Node:
        """First node under capacity; round-robin when all are full unless overcommit is off."""
        for node in self._nodes.values():
            if node.has_capacity:
                return node

        if not self.config.allow_overcommit:
            raise CapacityError(pod_name)

        nodes = list(self._nodes.values())
        node = nodes[self._round_robin % len(nodes)]
        self._round_robin += 1
        return node

    # ------------------------------------------------------------------
    # Pods
    # ------------------------------------------------------------------

    def create_pod(self, name: str, image: Optional[str] = None, owner: Optional[str] = None) -> Pod:
        """Create a Pending pod on the first node with room."""
        self._check_unique(ResourceKind.POD, name)
        replica_set = None
        if owner is not None:
            replica_set = self._replica_sets.get(owner)
            if replica_set is None:
                raise NotFoundError(ResourceKind.REPLICA_SET, owner)

        node = self._select_node(name)

        pod = Pod(
            name=name,
            image=image or self.config.default_image,
            node_name=node.name,
            owner=owner,
            sequence=next(self._sequence),
            created_at=self._scheduler.now(),
        )
        self._pods[name] = pod
        node.pods.add(name)
        if replica_set is not None:
            replica_set.pods.append(name)

        self._schedule_promotion(name)
        logger.info(f"Pod {name} created on {node.name}")
        self._bus.publish(PodCreated(name=name, node=node.name))
        return pod.model_copy(deep=True)

    def _schedule_promotion(self, name: str) -> None:
        delay = self.config.promotion_delay
        if self.config.promotion_jitter:
            delay += self._rng.uniform(0, self.config.promotion_jitter)
        self._promotions[name] = self._scheduler.call_later(
            delay, lambda: self._promote(name), name=f"promote:{name}"
        )

    def _promote(self, name: str) -> None:
        self._promotions.pop(name, None)
        pod = self._pods.get(name)
        if pod is None or pod.phase != PodPhase.PENDING:
            return
        pod.phase = PodPhase.RUNNING
        logger.debug(f"Pod {name} is Running")
        self._bus.publish(PodRunning(name=name))

    def get_pod(self, name: str) -> Optional[Pod]:
        return self.get(ResourceKind.POD, name)

    def list_pods(self) -> List[Pod]:
        return self.list(ResourceKind.POD)

    def delete_pod(self, name: str) -> None:
        """Mark a pod Terminating now; remove it after the grace period."""
        pod = self._pods.get(name)
        if pod is None:
            raise NotFoundError(ResourceKind.POD, name)
        if pod.is_terminating:
            raise NotFoundError(ResourceKind.POD, name, reason="is already terminating")

        promotion = self._promotions.pop(name, None)
        if promotion is not None:
            promotion.cancel()

        pod.phase = PodPhase.TERMINATING
        self._purges[name] = self._scheduler.call_later(
            self.config.grace_period, lambda: self._purge_pod(name), name=f"purge:{name}"
        )
        logger.info(f"Pod {name} terminating")
        self._bus.publish(PodDeleted(name=name))

    def _purge_pod(self, name: str) -> None:
        self._purges.pop(name, None)
        pod = self._pods.pop(name, None)
        if pod is None:
            return

        node = self._nodes.get(pod.node_name)
        if node is not None:
            node.pods.discard(name)

        if pod.owner is not None:
            replica_set = self._replica_sets.get(pod.owner)
            if replica_set is not None and name in replica_set.pods:
                replica_set.pods.remove(name)

        logger.debug(f"Pod {name} removed")

    def fail_pod(self, name: str) -> None:
        """Mark a live pod Failed, as if its container crashed; already Failed is a no-op."""
        pod = self._pods.get(name)
        if pod is None or pod.is_terminating:
            raise NotFoundError(ResourceKind.POD, name)
        if pod.phase == PodPhase.FAILED:
            return

        promotion = self._promotions.pop(name, None)
        if promotion is not None:
            promotion.cancel()

        pod.phase = PodPhase.FAILED
        logger.warning(f"Pod {name} failed")
        self._bus.publish(PodFailed(name=name))

    def pods_owned_by(self, replica_set: str) -> List[Pod]:
        """Pods owned by a ReplicaSet, oldest first."""
        pods = [pod for pod in self._pods.values() if pod.owner == replica_set]
        pods.sort(key=lambda pod: pod.sequence)
        return [pod.model_copy(deep=True) for pod in pods]

    def count_running(self, replica_set: str) -> int:
        return sum(1 for pod in self._pods.values() if pod.owner == replica_set and pod.is_running)

    def count_pending(self, replica_set: str) -> int:
        return sum(
            1
            for pod in self._pods.values()
            if pod.owner == replica_set and pod.phase == PodPhase.PENDING
        )

    # ------------------------------------------------------------------
    # Deployments
    # ------------------------------------------------------------------

    def create_deployment(self, name: str, replicas: int = 1, image: Optional[str] = None) -> Deployment:
        """Record desired state; the reconciliation loop creates the pods."""
        self._check_unique(ResourceKind.DEPLOYMENT, name)
        if replicas < 0:
            raise ValidationError(f"Replicas must be zero or more, got {replicas}")

        deployment = Deployment(name=name, replicas=replicas, image=image or self.config.default_image)
        self._deployments[name] = deployment
        logger.info(f"Deployment {name} created with {replicas} replica(s), image {deployment.image}")
        self._bus.publish(DeploymentCreated(name=name, replicas=replicas))
        return deployment.model_copy(deep=True)

    def get_deployment(self, name: str) -> Optional[Deployment]:
        return self.get(ResourceKind.DEPLOYMENT, name)

    def list_deployments(self) -> List[Deployment]:
        return self.list(ResourceKind.DEPLOYMENT)

    def _require_deployment(self, name: str) -> Deployment:
        deployment = self._deployments.get(name)
        if deployment is None:
            raise NotFoundError(ResourceKind.DEPLOYMENT, name)
        return deployment

    def scale_deployment(self, name: str, replicas: int) -> Deployment:
        """Change the desired replica count; convergence happens on later ticks."""
        if replicas < 0:
            raise ValidationError(f"Replicas must be zero or more, got {replicas}")
        deployment = self._require_deployment(name)

        old_replicas = deployment.replicas
        deployment.replicas = replicas
        logger.info(f"Deployment {name} scaled from {old_replicas} to {replicas} replicas")
        self._bus.publish(DeploymentScaled(name=name, new_replicas=replicas))
        return deployment.model_copy(deep=True)

    def update_image(self, name: str, image: str) -> Deployment:
        """Switch to a new image, remembering exactly one previous image."""
        if not image:
            raise ValidationError("Image must not be empty")
        deployment = self._require_deployment(name)

        deployment.previous_image = deployment.image
        deployment.image = image
        logger.info(f"Deployment {name} image updated from {deployment.previous_image} to {image}")
        self._bus.publish(
            DeploymentImageUpdated(name=name, image=image, previous_image=deployment.previous_image)
        )
        return deployment.model_copy(deep=True)

    def rollback(self, name: str) -> Deployment:
        """Return to the previous image; a second rollback without an update fails."""
        deployment = self._require_deployment(name)
        if deployment.previous_image is None:
            raise RollbackError(name)

        deployment.image = deployment.previous_image
        deployment.previous_image = None
        logger.info(f"Deployment {name} rolled back to {deployment.image}")
        self._bus.publish(DeploymentRolledBack(name=name, image=deployment.image))
        return deployment.model_copy(deep=True)

    def set_paused(self, name: str, paused: bool) -> Deployment:
        deployment = self._require_deployment(name)
        deployment.paused = paused
        logger.info(f"Deployment {name} rollout {'paused' if paused else 'resumed'}")
        return deployment.model_copy(deep=True)

    def delete_deployment(self, name: str) -> None:
        """Delete a deployment, its ReplicaSet and every pod it owns."""
        self._require_deployment(name)
        del self._deployments[name]
        logger.info(f"Deployment {name} deleted")
        self._bus.publish(DeploymentDeleted(name=name))

        replica_set = self._replica_set_for(name)
        if replica_set is not None:
            self._delete_replica_set(replica_set.name)

    # ------------------------------------------------------------------
    # ReplicaSets
    # ------------------------------------------------------------------

    def _replica_set_for(self, deployment: str) -> Optional[ReplicaSet]:
        for replica_set in self._replica_sets.values():
            if replica_set.deployment == deployment:
                return replica_set
        return None

    def replica_set_for(self, deployment: str) -> Optional[ReplicaSet]:
        """The ReplicaSet owned by a deployment, if one has been created."""
        replica_set = self._replica_set_for(deployment)
        return replica_set.model_copy(deep=True) if replica_set is not None else None

    def create_replica_set(self, deployment: str) -> ReplicaSet:
        """Create the single ReplicaSet of a deployment."""
        owner = self._require_deployment(deployment)
        if self._replica_set_for(deployment) is not None:
            raise DuplicateError(ResourceKind.REPLICA_SET, f"{deployment}-rs")

        name = f"{deployment}-rs"
        self._check_unique(ResourceKind.REPLICA_SET, name)
        replica_set = ReplicaSet(name=name, deployment=deployment, desired=owner.replicas)
        self._replica_sets[name] = replica_set
        logger.info(f"ReplicaSet {name} created for Deployment {deployment}")
        self._bus.publish(ReplicaSetCreated(name=name, deployment=deployment))
        return replica_set.model_copy(deep=True)

    def get_replica_set(self, name: str) -> Optional[ReplicaSet]:
        return self.get(ResourceKind.REPLICA_SET, name)

    def list_replica_sets(self) -> List[ReplicaSet]:
        return self.list(ResourceKind.REPLICA_SET)

    def sync_replica_set(self, name: str, desired: int) -> None:
        self._require_replica_set(name).desired = desired

    def refresh_replica_set(self, name: str) -> int:
        """Recompute ``current`` from the running pods it owns."""
        replica_set = self._require_replica_set(name)
        replica_set.current = self.count_running(name)
        return replica_set.current

    def next_pod_name(self, name: str) -> str:
        """Reserve the next collision-free pod name for a ReplicaSet."""
        replica_set = self._require_replica_set(name)
        while True:
            replica_set.pod_counter += 1
            candidate = f"{replica_set.deployment}-pod-{replica_set.pod_counter}"
            if candidate not in self._pods:
                return candidate

    def _require_replica_set(self, name: str) -> ReplicaSet:
        replica_set = self._replica_sets.get(name)
        if replica_set is None:
            raise NotFoundError(ResourceKind.REPLICA_SET, name)
        return replica_set

    def _delete_replica_set(self, name: str) -> None:
        replica_set = self._replica_sets.pop(name)
        logger.info(f"ReplicaSet {name} deleted")
        self._bus.publish(ReplicaSetDeleted(name=name))

        for pod in [p for p in self._pods.values() if p.owner == name]:
            if not pod.is_terminating:
                self.delete_pod(pod.name)
            # Owner is gone; terminating pods must not point at it
            pod.owner = None
        replica_set.pods.clear()

    # ------------------------------------------------------------------
    # Services, ConfigMaps, Secrets
    # ------------------------------------------------------------------

    def create_service(self, name: str, service_type: ServiceType = ServiceType.CLUSTER_IP) -> Service:
        self._check_unique(ResourceKind.SERVICE, name)
        service = Service(name=name, type=service_type)
        self._services[name] = service
        logger.info(f"Service {name} ({service_type.value}) created")
        self._bus.publish(ServiceCreated(name=name, type=service_type.value))
        return service.model_copy(deep=True)

    def get_service(self, name: str) -> Optional[Service]:
        return self.get(ResourceKind.SERVICE, name)

    def list_services(self) -> List[Service]:
        return self.list(ResourceKind.SERVICE)

    def delete_service(self, name: str) -> None:
        if self._services.pop(name, None) is None:
            raise NotFoundError(ResourceKind.SERVICE, name)
        logger.info(f"Service {name} deleted")
        self._bus.publish(ServiceDeleted(name=name))

    def create_config_map(self, name: str, data: Optional[Dict[str, str]] = None) -> ConfigMap:
        self._check_unique(ResourceKind.CONFIG_MAP, name)
        config_map = ConfigMap(name=name, data=dict(data or {}))
        self._config_maps[name] = config_map
        logger.info(f"ConfigMap {name} created with {len(config_map.data)} key(s)")
        self._bus.publish(ConfigMapCreated(name=name))
        return config_map.model_copy(deep=True)

    def delete_config_map(self, name: str) -> None:
        if self._config_maps.pop(name, None) is None:
            raise NotFoundError(ResourceKind.CONFIG_MAP, name)
        logger.info(f"ConfigMap {name} deleted")
        self._bus.publish(ConfigMapDeleted(name=name))

    def create_secret(self, name: str, data: Optional[Dict[str, str]] = None) -> Secret:
        self._check_unique(ResourceKind.SECRET, name)
        secret = Secret(name=name, data=dict(data or {}))
        self._secrets[name] = secret
        logger.info(f"Secret {name} created with {len(secret.data)} key(s)")
        self._bus.publish(SecretCreated(name=name))
        return secret.model_copy(deep=True)

    def delete_secret(self, name: str) -> None:
        if self._secrets.pop(name, None) is None:
            raise NotFoundError(ResourceKind.SECRET, name)
        logger.info(f"Secret {name} deleted")
        self._bus.publish(SecretDeleted(name=name))

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    @property
    def pending_timers(self) -> int:
        return len(self._promotions) + len(self._purges)

    def dispose(self) -> None:
        """Cancel every promotion and grace-period timer."""
        if self._disposed:
            return
        self._disposed = True

        for handles in (self._promotions, self._purges):
            for task in handles.values():
                task.cancel()
            handles.clear()
        logger.debug("Resource store disposed")
