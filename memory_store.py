"""
memory_store.py

Bounded history of recently built Snapshots for one debuggee session.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import List, Optional

from memory_errors import ConfigurationError
from memory_logging import get_logger
from memory_model import Snapshot

logger = get_logger(__name__)


class GraphStore:
    """Holds the most recent Snapshots, keyed by sequence number.

    Writes are expected from one builder at a time; only completed
    snapshots are ever recorded.

    Args:
        retention: How many snapshots to keep (at least 2)
    """

    def __init__(self, retention: int = 2) -> None:
        if retention < 2:
            raise ConfigurationError("retention must keep at least 2 snapshots",
                                     {"retention": str(retention)})
        self.retention = retention
        self._snapshots: "OrderedDict[int, Snapshot]" = OrderedDict()

    def record(self, snapshot: Snapshot) -> None:
        """Append a snapshot, evicting the oldest beyond the retention window.

        Raises:
            ValueError: If the sequence number does not increase
        """
        latest = self.latest()
        if latest is not None and snapshot.sequence <= latest.sequence:
            raise ValueError(
                f"Snapshot sequence {snapshot.sequence} is not newer than {latest.sequence}"
            )
        self._snapshots[snapshot.sequence] = snapshot
        while len(self._snapshots) > self.retention:
            evicted, _ = self._snapshots.popitem(last=False)
            logger.debug("Evicted snapshot %d", evicted)

    def latest(self) -> Optional[Snapshot]:
        """Most recently recorded snapshot."""
        if not self._snapshots:
            return None
        return next(reversed(self._snapshots.values()))

    def previous(self) -> Optional[Snapshot]:
        """Snapshot recorded just before the latest one."""
        if len(self._snapshots) < 2:
            return None
        return list(self._snapshots.values())[-2]

    def get(self, sequence: int) -> Optional[Snapshot]:
        return self._snapshots.get(sequence)

    def history(self) -> List[Snapshot]:
        """Retained snapshots, oldest first."""
        return list(self._snapshots.values())

    def clear(self) -> None:
        """Drop every snapshot (session end)."""
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, sequence: int) -> bool:
        return sequence in self._snapshots
