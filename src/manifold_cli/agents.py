"""Background agents.

An agent is a thread that runs a task every ``interval`` seconds until its
handle is stopped. There is no process-wide registry: whoever starts an
agent owns the returned ``AgentHandle``. Each run opens its own store
through ``store_factory`` so agents never share a store with the caller.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, Optional

from manifold_cli.collaboration.service import ReconcileResult, reconcile_spec
from manifold_cli.collaboration.sync import SnapshotSource
from manifold_cli.errors import ManifoldError
from manifold_cli.storage.base import SpecStore

logger = logging.getLogger(__name__)

AgentTask = Callable[[SpecStore], object]
StoreFactory = Callable[[], SpecStore]


class AgentHandle:
    """Owner-side handle of a running agent.

    Attributes:
        agent_id: Agent identifier (used in logs and the thread name)
        interval: Seconds between runs
        runs: Number of completed runs
        errors: ``"<ExceptionType>: <message>"`` for every failed run
    """

    def __init__(self, agent_id: str, interval: float, task: AgentTask, store_factory: StoreFactory) -> None:
        self.agent_id = agent_id
        self.interval = interval
        self.runs = 0
        self.errors: list[str] = []
        self._task = task
        self._store_factory = store_factory
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run_loop, name=f"manifold-agent-{agent_id}", daemon=True
        )

    def __repr__(self) -> str:
        return f"AgentHandle(agent_id={self.agent_id!r}, running={self.is_running}, runs={self.runs})"

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the agent and wait for it. Returns True if it has exited."""
        self._stop_event.set()
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self._task(self._store_factory())
            except Exception as exc:  # the loop survives task failures; they are kept on the handle
                self.errors.append(f"{type(exc).__name__}: {exc}")
                logger.exception("Agent %s: task error", self.agent_id)
            self.runs += 1
            self._stop_event.wait(self.interval)
        logger.info("Agent %s stopped after %d run(s)", self.agent_id, self.runs)


def start_agent(
    agent_id: str,
    interval: float,
    task: AgentTask,
    store_factory: StoreFactory,
) -> AgentHandle:
    """Run ``task`` in a daemon thread, once immediately and then every ``interval`` seconds."""
    if interval <= 0:
        raise ValueError("Agent interval must be positive")
    handle = AgentHandle(agent_id, interval, task, store_factory)
    handle.start()
    logger.info("Agent %s started (every %ss)", agent_id, interval)
    return handle


def reconciliation_task(
    spec_ids: Iterable[str],
    snapshot_source: SnapshotSource,
    actor: str = "agent",
) -> Callable[[SpecStore], list[ReconcileResult]]:
    """Build an agent task that reconciles ``spec_ids`` against ``snapshot_source``.

    Specs that no longer exist locally are skipped. A failure on one spec is
    logged and does not stop the others.
    """
    spec_ids = list(spec_ids)

    def run(store: SpecStore) -> list[ReconcileResult]:
        results = []
        for spec_id in spec_ids:
            if not store.exists(spec_id):
                logger.warning("Agent: spec %s no longer exists, skipping", spec_id)
                continue
            try:
                snapshot = snapshot_source.fetch(spec_id)
                results.append(reconcile_spec(store, spec_id, snapshot, actor=actor))
            except ManifoldError as exc:
                logger.warning("Agent: reconciling %s failed: %s", spec_id, exc)
        return results

    return run
