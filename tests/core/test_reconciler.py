"""Tests for the reconciliation loop."""

import pytest

from kubesim.core.events import EventBus
from kubesim.core.reconciler import ReconciliationLoop
from kubesim.core.scheduler import ManualScheduler
from kubesim.core.store import ResourceStore
from kubesim.model.config import EngineConfig
from kubesim.model.resources import PodPhase


@pytest.fixture
def loop(store, scheduler):
    loop = ReconciliationLoop(store, scheduler)
    yield loop
    loop.stop()


def converge(loop, scheduler, rounds: int = 3) -> None:
    """Tick, then let promotions and grace periods elapse."""
    for _ in range(rounds):
        loop.tick()
        scheduler.advance(1)


def running(store, replica_set: str = "web-rs"):
    return [pod for pod in store.pods_owned_by(replica_set) if pod.is_running]


@pytest.mark.unit
class TestConvergence:
    def test_replica_set_created_lazily(self, store, loop, recorder):
        store.create_deployment("web", replicas=2)
        assert store.get_replica_set("web-rs") is None

        loop.tick()

        replica_set = store.get_replica_set("web-rs")
        assert replica_set.deployment == "web"
        assert replica_set.desired == 2
        assert recorder.kinds()[:2] == ["deploymentCreated", "replicaSetCreated"]

    def test_scale_up_from_zero(self, store, loop, scheduler):
        store.create_deployment("web", replicas=3, image="nginx:1.25")

        loop.tick()
        pods = store.pods_owned_by("web-rs")
        assert [p.name for p in pods] == ["web-pod-1", "web-pod-2", "web-pod-3"]
        assert all(p.phase == PodPhase.PENDING for p in pods)
        assert all(p.image == "nginx:1.25" for p in pods)
        assert store.get_replica_set("web-rs").current == 0

        scheduler.advance(1)
        loop.tick()

        assert len(running(store)) == 3
        assert store.get_replica_set("web-rs").current == 3

    def test_back_to_back_ticks_do_not_double_create(self, store, loop, scheduler):
        """Pending pods from the previous pass count toward the desired total."""
        store.create_deployment("web", replicas=3)

        loop.tick()
        loop.tick()

        names = [p.name for p in store.pods_owned_by("web-rs")]
        assert names == ["web-pod-1", "web-pod-2", "web-pod-3"]

        scheduler.advance(1)
        loop.tick()
        assert len(running(store)) == 3
        assert len(store.pods_owned_by("web-rs")) == 3

    def test_no_overshoot_with_default_timing(self, store, loop, scheduler):
        store.create_deployment("web", replicas=3)

        for _ in range(5):
            loop.tick()
            scheduler.advance(2)

        assert len(store.pods_owned_by("web-rs")) == 3

    def test_scale_down_removes_newest_first(self, store, loop, scheduler):
        store.create_deployment("web", replicas=5)
        converge(loop, scheduler, rounds=1)

        store.scale_deployment("web", 3)
        loop.tick()

        terminating = [p.name for p in store.pods_owned_by("web-rs") if p.is_terminating]
        assert terminating == ["web-pod-4", "web-pod-5"]

        scheduler.advance(1)
        loop.tick()
        assert [p.name for p in running(store)] == ["web-pod-1", "web-pod-2", "web-pod-3"]
        assert store.get_replica_set("web-rs").current == 3

    def test_scale_to_zero(self, store, loop, scheduler):
        store.create_deployment("web", replicas=2)
        converge(loop, scheduler, rounds=1)

        store.scale_deployment("web", 0)
        converge(loop, scheduler, rounds=2)

        assert store.pods_owned_by("web-rs") == []
        assert store.get_replica_set("web-rs").desired == 0

    def test_deployments_reconciled_independently(self, store, loop, scheduler):
        store.create_deployment("a", replicas=1)
        store.create_deployment("b", replicas=2)

        converge(loop, scheduler, rounds=2)

        assert len(running(store, "a-rs")) == 1
        assert len(running(store, "b-rs")) == 2


@pytest.mark.unit
class TestRecovery:
    def test_capacity_shortfall_retried_next_tick(self):
        """A full cluster defers pods until room frees up."""
        scheduler = ManualScheduler()
        config = EngineConfig(node_count=1, node_capacity=2, allow_overcommit=False)
        store = ResourceStore(EventBus(), scheduler, config)
        loop = ReconciliationLoop(store, scheduler)
        store.create_pod("filler")
        store.create_deployment("web", replicas=2)

        loop.tick()
        assert [p.name for p in store.pods_owned_by("web-rs")] == ["web-pod-1"]

        store.delete_pod("filler")
        scheduler.advance(1)
        loop.tick()

        # The counter value reserved by the failed attempt is not reused
        assert [p.name for p in store.pods_owned_by("web-rs")] == ["web-pod-1", "web-pod-3"]
        store.dispose()

    def test_failed_pod_replaced(self, store, loop, scheduler, recorder):
        store.create_deployment("web", replicas=2)
        converge(loop, scheduler, rounds=1)

        store.fail_pod("web-pod-1")
        converge(loop, scheduler, rounds=2)

        assert [p.name for p in running(store)] == ["web-pod-2", "web-pod-3"]
        assert store.get_pod("web-pod-1") is None
        assert "podFailed" in recorder.kinds()

    def test_manually_deleted_pod_replaced(self, store, loop, scheduler):
        store.create_deployment("web", replicas=2)
        converge(loop, scheduler, rounds=1)

        store.delete_pod("web-pod-2")
        converge(loop, scheduler, rounds=2)

        assert [p.name for p in running(store)] == ["web-pod-1", "web-pod-3"]

    def test_one_bad_deployment_does_not_block_others(self, store, loop, monkeypatch):
        store.create_deployment("a", replicas=1)
        store.create_deployment("b", replicas=1)
        original = loop.reconcile_deployment

        def flaky(deployment):
            if deployment.name == "a":
                raise RuntimeError("boom")
            return original(deployment)

        monkeypatch.setattr(loop, "reconcile_deployment", flaky)
        loop.tick()

        assert store.get_replica_set("a-rs") is None
        assert store.get_replica_set("b-rs") is not None


@pytest.mark.unit
class TestRollingUpdate:
    def test_pods_replaced_one_at_a_time(self, store, loop, scheduler):
        store.create_deployment("web", replicas=2, image="v1")
        converge(loop, scheduler, rounds=1)

        store.update_image("web", "v2")
        loop.tick()
        terminating = [p.name for p in store.pods_owned_by("web-rs") if p.is_terminating]
        assert terminating == ["web-pod-1"]

        scheduler.advance(1)
        converge(loop, scheduler, rounds=5)

        pods = running(store)
        assert len(pods) == 2
        assert {p.image for p in pods} == {"v2"}

    def test_paused_rollout_keeps_old_pods(self, store, loop, scheduler):
        store.create_deployment("web", replicas=2, image="v1")
        converge(loop, scheduler, rounds=1)

        store.set_paused("web", True)
        store.update_image("web", "v2")
        converge(loop, scheduler, rounds=3)

        assert [p.image for p in running(store)] == ["v1", "v1"]

        store.set_paused("web", False)
        converge(loop, scheduler, rounds=6)
        assert [p.image for p in running(store)] == ["v2", "v2"]

    def test_rollback_restores_previous_image(self, store, loop, scheduler):
        store.create_deployment("web", replicas=1, image="v1")
        converge(loop, scheduler, rounds=1)
        store.update_image("web", "v2")
        converge(loop, scheduler, rounds=3)

        store.rollback("web")
        converge(loop, scheduler, rounds=3)

        assert [p.image for p in running(store)] == ["v1"]


@pytest.mark.unit
class TestTimer:
    def test_ticks_on_interval(self, store, scheduler, loop):
        loop.start()

        scheduler.advance(1.5)
        assert loop.ticks == 0
        scheduler.advance(0.5)
        assert loop.ticks == 1
        scheduler.advance(4)
        assert loop.ticks == 3

    def test_start_is_idempotent(self, scheduler, loop):
        loop.start()
        loop.start()

        scheduler.advance(2)
        assert loop.ticks == 1

    def test_stop_cancels_pending_tick(self, scheduler, loop):
        loop.start()
        loop.stop()

        scheduler.advance(10)
        assert loop.ticks == 0
        assert not loop.running
        with pytest.raises(RuntimeError):
            loop.start()

    def test_tick_after_stop_is_noop(self, store, loop):
        store.create_deployment("web")
        loop.stop()

        loop.tick()
        assert store.get_replica_set("web-rs") is None
