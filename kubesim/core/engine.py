"""The cluster engine: one explicit owner for all simulator state."""

from typing import Optional

from ..model.config import EngineConfig
from ..model.result import CommandResult
from ..utils.logger import get_logger
from .events import EventBus
from .interpreter import CommandInterpreter
from .reconciler import ReconciliationLoop
from .scheduler import ManualScheduler, Scheduler
from .store import ResourceStore

logger = get_logger(__name__)


class ClusterEngine:
    """Wires the scheduler, event bus, store, loop and interpreter together.

    Callers construct an engine, ``start()`` it and ``dispose()`` it when done;
    disposal cancels every pending timer. Without an explicit scheduler the
    engine runs on a ``ManualScheduler`` driven by ``advance()``.
    """

    def __init__(self, config: Optional[EngineConfig] = None, scheduler: Optional[Scheduler] = None):
        self.config = config or EngineConfig()
        self.scheduler = scheduler or ManualScheduler()
        self.events = EventBus()
        self.store = ResourceStore(self.events, self.scheduler, self.config)
        self.loop = ReconciliationLoop(self.store, self.scheduler, self.config.reconcile_interval)
        self.interpreter = CommandInterpreter(self.store, self.config)
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def start(self) -> "ClusterEngine":
        """Start the reconciliation loop."""
        if self._disposed:
            raise RuntimeError("Cannot start a disposed engine")
        self.loop.start()
        return self

    def execute(self, command: str) -> CommandResult:
        """Run one kubectl-style command."""
        if self._disposed:
            return CommandResult.fail("Error: engine has been disposed", error="Disposed")
        return self.interpreter.execute(command)

    def tick(self) -> None:
        """Run one reconciliation pass immediately."""
        if not self._disposed:
            self.loop.tick()

    def advance(self, seconds: float) -> int:
        """Move virtual time forward (manual schedulers only)."""
        if not isinstance(self.scheduler, ManualScheduler):
            raise TypeError("advance() requires a ManualScheduler")
        return self.scheduler.advance(seconds)

    def settle(self, ticks: int = 3) -> None:
        """Advance through enough reconciliation intervals for pods to converge."""
        self.advance(self.config.reconcile_interval * ticks)

    def dispose(self) -> None:
        """Stop the loop, cancel every timer and drop subscribers."""
        if self._disposed:
            return
        self._disposed = True
        self.loop.stop()
        self.store.dispose()
        leftover = self.scheduler.cancel_all()
        if leftover:
            logger.debug(f"Cancelled {leftover} leftover task(s) on dispose")
        self.events.clear()
        logger.info("Cluster engine disposed")

    def __enter__(self) -> "ClusterEngine":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()
