"""Test configuration and fixtures."""

from typing import List

import pytest

pytest_plugins = ("pytest_asyncio",)

from kubesim.core import ClusterEngine, EventBus, ManualScheduler, ResourceStore
from kubesim.core.events import ALL_EVENTS
from kubesim.model.config import EngineConfig
from kubesim.model.events import ClusterEvent


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self, bus: EventBus):
        self.events: List[ClusterEvent] = []
        bus.subscribe(ALL_EVENTS, self.events.append)

    def kinds(self) -> List[str]:
        return [event.kind.value for event in self.events]

    def of(self, kind: str) -> List[ClusterEvent]:
        return [event for event in self.events if event.kind.value == kind]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def config():
    """Default timings: 2s ticks, 1s promotion, 0.5s grace, 3 nodes of 10."""
    return EngineConfig()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(bus, scheduler, config):
    store = ResourceStore(bus, scheduler, config)
    yield store
    store.dispose()


@pytest.fixture
def recorder(bus):
    return EventRecorder(bus)


@pytest.fixture
def engine(config):
    """A started engine on a virtual clock."""
    engine = ClusterEngine(config)
    engine.start()
    yield engine
    engine.dispose()


@pytest.fixture
def engine_events(engine):
    return EventRecorder(engine.events)


@pytest.fixture
def running_names():
    """Names of Running pods in an engine, in creation order."""

    def _names(engine: ClusterEngine) -> List[str]:
        return [pod.name for pod in engine.store.list_pods() if pod.is_running]

    return _names
