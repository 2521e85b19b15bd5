"""Control loop converging ReplicaSet pod counts toward deployment specs."""

from typing import Optional

from ..model.resources import Deployment, PodPhase, ReplicaSet
from ..utils.logger import get_logger
from .errors import CapacityError
from .scheduler import ScheduledTask, Scheduler
from .store import ResourceStore

logger = get_logger(__name__)


class ReconciliationLoop:
    """Periodically compares desired and running pod counts and corrects them.

    Each tick visits every deployment in creation order:

    1. resolve or create its ReplicaSet and re-sync ``desired``
    2. delete owned pods that have Failed (they are replaced below)
    3. create missing pods, or delete surplus Running pods newest first
    4. when the count is right, replace the oldest pod running a stale image
    5. refresh ``current``
    """

    def __init__(self, store: ResourceStore, scheduler: Scheduler, interval: Optional[float] = None):
        self.store = store
        self.scheduler = scheduler
        self.interval = interval if interval is not None else store.config.reconcile_interval
        self.ticks = 0
        self._handle: Optional[ScheduledTask] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._handle is not None and self._handle.pending

    def start(self) -> None:
        """Begin ticking every ``interval`` seconds."""
        if self._stopped:
            raise RuntimeError("Reconciliation loop was stopped and cannot be restarted")
        if self.running:
            return
        logger.info(f"Reconciliation loop started (interval {self.interval}s)")
        self._schedule_next()

    def stop(self) -> None:
        """Cancel the pending tick; no further ticks will run."""
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        logger.info("Reconciliation loop stopped")

    def _schedule_next(self) -> None:
        self._handle = self.scheduler.call_later(self.interval, self._on_timer, name="reconcile")

    def _on_timer(self) -> None:
        try:
            self.tick()
        finally:
            if not self._stopped:
                self._schedule_next()

    def tick(self) -> None:
        """Run one reconciliation pass over every deployment."""
        if self._stopped:
            return
        self.ticks += 1
        deployments = self.store.list_deployments()
        logger.debug(f"Reconcile tick {self.ticks}: {len(deployments)} deployment(s)")

        for deployment in deployments:
            try:
                self.reconcile_deployment(deployment)
            except Exception as e:
                logger.error(f"Failed to reconcile deployment {deployment.name}: {e}")

    def reconcile_deployment(self, deployment: Deployment) -> ReplicaSet:
        """Converge one deployment by a single step."""
        replica_set = self.store.replica_set_for(deployment.name)
        if replica_set is None:
            replica_set = self.store.create_replica_set(deployment.name)

        self.store.sync_replica_set(replica_set.name, deployment.replicas)
        self._remove_failed(replica_set.name)

        diff = deployment.replicas - self.store.count_running(replica_set.name)
        if diff > 0:
            # Pods still starting already count toward the shortfall
            missing = diff - self.store.count_pending(replica_set.name)
            if missing > 0:
                self._scale_up(deployment, replica_set.name, missing)
        elif diff < 0:
            self._scale_down(replica_set.name, -diff)
        elif not deployment.paused:
            self._roll_one(deployment, replica_set.name)

        self.store.refresh_replica_set(replica_set.name)
        return self.store.get_replica_set(replica_set.name)

    def _remove_failed(self, replica_set: str) -> None:
        for pod in self.store.pods_owned_by(replica_set):
            if pod.phase == PodPhase.FAILED:
                logger.info(f"Replacing failed pod {pod.name}")
                self.store.delete_pod(pod.name)

    def _scale_up(self, deployment: Deployment, replica_set: str, count: int) -> int:
        created = 0
        for _ in range(count):
            name = self.store.next_pod_name(replica_set)
            try:
                self.store.create_pod(name, image=deployment.image, owner=replica_set)
            except CapacityError as e:
                # Retried on the next tick
                logger.warning(f"{e}; {count - created} pod(s) deferred")
                break
            created += 1

        if created:
            logger.info(f"ReplicaSet {replica_set} creating {created} new pod(s)")
        return created

    def _scale_down(self, replica_set: str, count: int) -> None:
        running = [pod for pod in self.store.pods_owned_by(replica_set) if pod.is_running]
        # Newest first, so long-running pods survive
        victims = sorted(running, key=lambda pod: pod.sequence, reverse=True)[:count]
        for pod in victims:
            self.store.delete_pod(pod.name)
        logger.info(f"ReplicaSet {replica_set} removing {len(victims)} pod(s)")

    def _roll_one(self, deployment: Deployment, replica_set: str) -> None:
        stale = [
            pod
            for pod in self.store.pods_owned_by(replica_set)
            if pod.is_running and pod.image != deployment.image
        ]
        if not stale:
            return
        oldest = stale[0]
        logger.info(f"Rolling pod {oldest.name} from {oldest.image} to {deployment.image}")
        self.store.delete_pod(oldest.name)
