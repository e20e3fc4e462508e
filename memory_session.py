"""
memory_session.py

One inspection session per debuggee: a GraphBuilder, its build worker and a
GraphStore, wired together so each debugger step yields a Snapshot plus the
changes since the previous one.

Example:
    >>> with InspectionSession(catalog, port) as session:
    ...     first = session.step(frame="main")
    ...     second = session.step(frame="main")
    ...     print(format_diff(second.changes, first.snapshot, second.snapshot))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional

from memory_config import EngineConfig
from memory_diff import DiffEntry, diff
from memory_graph import BuildJob, BuildWorker, GraphBuilder, RootSpec
from memory_logging import get_logger
from memory_model import Snapshot, TypeCatalog
from memory_port import MemoryAccessPort, RegionMap
from memory_store import GraphStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepResult:
    """Outcome of one visualization step.

    Attributes:
        snapshot: The freshly built snapshot
        changes: Diff against the previously recorded snapshot (empty on the
            first step)
    """
    snapshot: Snapshot
    changes: List[DiffEntry] = field(default_factory=list)


class InspectionSession:
    """Builder/store pair for a single inspected process.

    Sessions share no state, so several processes can be inspected side by
    side with one session each.
    """

    def __init__(
        self,
        catalog: TypeCatalog,
        memory: MemoryAccessPort,
        config: Optional[EngineConfig] = None,
        regions: Optional[RegionMap] = None,
        pointer_hints: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.catalog = catalog
        self.builder = GraphBuilder(catalog, memory, self.config, regions, pointer_hints)
        self.store = GraphStore(self.config.retention)
        self._worker: Optional[BuildWorker] = None
        self.closed = False

    def _roots(self, frame: Optional[str], roots: Optional[Iterable[RootSpec]]) -> List[RootSpec]:
        if roots is not None:
            return list(roots)
        if frame is None:
            raise ValueError("step() needs either a frame name or explicit roots")
        return list(self.catalog.roots_for_frame(frame))

    def _ensure_open(self) -> None:
        if self.closed:
            raise RuntimeError("Inspection session is closed")

    def step(
        self,
        frame: Optional[str] = None,
        roots: Optional[Iterable[RootSpec]] = None,
        description: Optional[str] = None,
    ) -> StepResult:
        """Build, record and diff a snapshot synchronously.

        Args:
            frame: Function whose frame (plus globals) supplies the roots
            roots: Explicit roots, overriding ``frame``
            description: Stored on the snapshot
        """
        self._ensure_open()
        snapshot = self.builder.build(self._roots(frame, roots), description=description)
        return self._publish(snapshot)

    def step_async(
        self,
        frame: Optional[str] = None,
        roots: Optional[Iterable[RootSpec]] = None,
        description: Optional[str] = None,
    ) -> BuildJob:
        """Build on the worker thread; the snapshot is recorded when done.

        Cancelling the returned job leaves the store untouched.
        """
        self._ensure_open()
        if self._worker is None:
            self._worker = BuildWorker(self.builder)
        return self._worker.submit(self._roots(frame, roots), description=description,
                                   on_complete=self._publish)

    def _publish(self, snapshot: Snapshot) -> StepResult:
        previous = self.store.latest()
        self.store.record(snapshot)
        changes = diff(previous, snapshot) if previous is not None else []
        logger.debug("Recorded snapshot %d (%d changes)", snapshot.sequence, len(changes))
        return StepResult(snapshot, changes)

    def latest_changes(self) -> List[DiffEntry]:
        """Diff between the two most recent snapshots."""
        latest, previous = self.store.latest(), self.store.previous()
        if latest is None or previous is None:
            return []
        return diff(previous, latest)

    def compare(self, older: int, newer: int) -> List[DiffEntry]:
        """Diff any two retained snapshots by sequence number.

        Raises:
            KeyError: If either snapshot is no longer retained
        """
        a, b = self.store.get(older), self.store.get(newer)
        if a is None or b is None:
            missing = older if a is None else newer
            raise KeyError(f"Snapshot {missing} is not retained")
        return diff(a, b)

    def close(self) -> None:
        """End the session: stop the worker and clear the store."""
        if self._worker is not None:
            self._worker.shutdown(wait=True)
            self._worker = None
        self.store.clear()
        self.closed = True

    def __enter__(self) -> "InspectionSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
