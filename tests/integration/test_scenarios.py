"""End-to-end scenarios through the command surface."""

import pytest

from kubesim.core import ClusterEngine
from kubesim.model.config import EngineConfig


@pytest.mark.integration
class TestDeploymentLifecycle:
    def test_scale_up_then_down(self, engine, engine_events, running_names):
        """3 replicas, scaled to 5, then to 2 keeps the two oldest pods."""
        assert engine.execute("kubectl create deployment web --replicas=3 --image=nginx").success
        engine.settle()
        assert running_names(engine) == ["web-pod-1", "web-pod-2", "web-pod-3"]

        assert engine.execute("kubectl scale deployment web 5").success
        engine.settle()
        assert running_names(engine) == [f"web-pod-{i}" for i in range(1, 6)]

        assert engine.execute("kubectl scale deployment web 2").success
        engine.settle()
        assert running_names(engine) == ["web-pod-1", "web-pod-2"]
        assert [p.name for p in engine.store.list_pods()] == ["web-pod-1", "web-pod-2"]

        result = engine.execute("kubectl get rs")
        assert result.data == [{"name": "web-rs", "deployment": "web", "desired": 2, "current": 2}]

        assert engine_events.kinds().count("podCreated") == 5
        assert engine_events.kinds().count("podDeleted") == 3
        assert [e.new_replicas for e in engine_events.of("deploymentScaled")] == [5, 2]

    def test_event_sequence_for_one_replica(self, engine, engine_events):
        engine.execute("kubectl create deployment api --replicas=1")
        engine.settle()
        engine.execute("kubectl delete deployment api")
        engine.settle()

        assert engine_events.kinds() == [
            "deploymentCreated",
            "replicaSetCreated",
            "podCreated",
            "podRunning",
            "deploymentDeleted",
            "replicaSetDeleted",
            "podDeleted",
        ]
        assert engine.store.list_pods() == []
        assert engine.execute("kubectl get rs").data == []
        missing = engine.execute("kubectl get pod api-pod-1")
        assert not missing.success
        assert missing.error == "NotFound"

    def test_rolling_update_and_undo(self, engine, running_names):
        engine.execute("kubectl create deployment web --replicas=2 --image=nginx:1.24")
        engine.settle()

        engine.execute("kubectl set image deployment/web web=nginx:1.25")
        engine.settle(6)

        images = [p.image for p in engine.store.list_pods() if p.is_running]
        assert images == ["nginx:1.25", "nginx:1.25"]
        status = engine.execute("kubectl rollout status deployment/web")
        assert status.message == 'Deployment "web" successfully rolled out'

        engine.execute("kubectl rollout undo deployment/web")
        engine.settle(6)

        images = [p.image for p in engine.store.list_pods() if p.is_running]
        assert images == ["nginx:1.24", "nginx:1.24"]

    def test_standalone_pod_is_not_managed(self, engine, running_names):
        engine.execute("kubectl create pod solo")
        engine.execute("kubectl create deployment web --replicas=1")
        engine.settle()

        engine.execute("kubectl delete pod solo")
        engine.settle()

        assert running_names(engine) == ["web-pod-1"]

    def test_deleted_deployment_pod_is_recreated(self, engine, running_names):
        engine.execute("kubectl create deployment web --replicas=2")
        engine.settle()

        engine.execute("kubectl delete pod web-pod-1")
        engine.settle()

        assert running_names(engine) == ["web-pod-2", "web-pod-3"]


@pytest.mark.integration
class TestCapacity:
    def test_deployment_larger_than_cluster(self):
        config = EngineConfig(node_count=2, node_capacity=2, allow_overcommit=False)
        with ClusterEngine(config) as engine:
            engine.execute("kubectl create deployment big --replicas=6")
            engine.settle()

            assert len(engine.store.list_pods()) == 4
            nodes = engine.execute("kubectl get nodes").data
            assert [n["pods"] for n in nodes] == [2, 2]

            engine.execute("kubectl scale deployment big 3")
            engine.settle()
            assert len(engine.store.list_pods()) == 3

    def test_default_placement_overflows_round_robin(self):
        config = EngineConfig(node_count=2, node_capacity=1)
        with ClusterEngine(config) as engine:
            for name in ("a", "b", "c"):
                result = engine.execute(f"kubectl create pod {name}")
                assert result.success, result.message

            assert engine.execute("kubectl get pod c").data[0]["node"] == "node-1"

    def test_overcommit(self):
        config = EngineConfig(node_count=2, node_capacity=1)
        with ClusterEngine(config) as engine:
            engine.execute("kubectl create deployment big --replicas=4")
            engine.settle()

            nodes = engine.execute("kubectl get nodes").data
            assert [n["pods"] for n in nodes] == [2, 2]


@pytest.mark.integration
def test_reproducible_with_seed():
    """Two engines with the same seed and jitter produce the same history."""
    histories = []
    for _ in range(2):
        config = EngineConfig(promotion_jitter=0.5, seed=7)
        with ClusterEngine(config) as engine:
            seen = []
            engine.events.subscribe("*", lambda e: seen.append((e.kind.value, e.name)))
            engine.execute("kubectl create deployment web --replicas=4")
            engine.settle()
            histories.append(seen)

    assert histories[0] == histories[1]
    assert len(histories[0]) == 1 + 1 + 4 + 4
