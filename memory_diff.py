"""
memory_diff.py

Edit scripts between two Snapshots.

Nodes correspond across snapshots by (address, type id), never by node id,
since node ids are local to the snapshot that assigned them. Edges
correspond by (source identity, label, target identity, kind). Neither
snapshot is modified, so any pair of retained snapshots can be compared.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from memory_model import (
    Edge,
    EdgeKind,
    EdgeLabel,
    Identity,
    Node,
    NodeMarker,
    Snapshot,
    Value,
    format_address,
    format_label,
    format_value,
)

EdgeKey = Tuple[Identity, EdgeLabel, Identity, EdgeKind]


class DiffKind(Enum):
    NODE_ADDED = "node_added"
    NODE_REMOVED = "node_removed"
    VALUE_CHANGED = "value_changed"
    EDGE_ADDED = "edge_added"
    EDGE_REMOVED = "edge_removed"


@dataclass(frozen=True)
class NodeAdded:
    """A node present only in the current snapshot."""
    identity: Identity
    node: Node
    kind: DiffKind = DiffKind.NODE_ADDED


@dataclass(frozen=True)
class NodeRemoved:
    """A node present only in the previous snapshot."""
    identity: Identity
    node: Node
    kind: DiffKind = DiffKind.NODE_REMOVED


@dataclass(frozen=True)
class ValueChanged:
    """A node present in both snapshots whose value or marker differs.

    Attributes:
        identity: (address, type id) of the node
        node_id: Node id in the current snapshot
        old: Value in the previous snapshot
        new: Value in the current snapshot
        old_marker: Marker in the previous snapshot
        new_marker: Marker in the current snapshot
    """
    identity: Identity
    node_id: int
    old: Value
    new: Value
    old_marker: Optional[NodeMarker] = None
    new_marker: Optional[NodeMarker] = None
    kind: DiffKind = DiffKind.VALUE_CHANGED


@dataclass(frozen=True)
class EdgeAdded:
    key: EdgeKey
    edge: Edge
    kind: DiffKind = DiffKind.EDGE_ADDED


@dataclass(frozen=True)
class EdgeRemoved:
    key: EdgeKey
    edge: Edge
    kind: DiffKind = DiffKind.EDGE_REMOVED


DiffEntry = Union[NodeAdded, NodeRemoved, ValueChanged, EdgeAdded, EdgeRemoved]


def edge_key(snapshot: Snapshot, edge: Edge) -> EdgeKey:
    """Snapshot-independent key of an edge."""
    return (
        snapshot.node(edge.source).identity,
        edge.label,
        snapshot.node(edge.target).identity,
        edge.kind,
    )


def _edge_index(snapshot: Snapshot) -> Dict[EdgeKey, Edge]:
    index: Dict[EdgeKey, Edge] = {}
    for edge in snapshot.edges:
        index.setdefault(edge_key(snapshot, edge), edge)
    return index


def diff(previous: Snapshot, current: Snapshot) -> List[DiffEntry]:
    """Compute the edit script turning ``previous`` into ``current``.

    Entries come in this order: node removals (previous discovery order),
    node additions and value changes (current discovery order), edge
    removals, edge additions.
    """
    entries: List[DiffEntry] = []

    for node in previous.nodes:
        if current.by_identity(node.identity) is None:
            entries.append(NodeRemoved(node.identity, node))

    for node in current.nodes:
        old = previous.by_identity(node.identity)
        if old is None:
            entries.append(NodeAdded(node.identity, node))
        elif old.value != node.value or old.marker != node.marker:
            entries.append(ValueChanged(node.identity, node.node_id, old.value, node.value,
                                        old.marker, node.marker))

    old_edges = _edge_index(previous)
    new_edges = _edge_index(current)
    for key, edge in old_edges.items():
        if key not in new_edges:
            entries.append(EdgeRemoved(key, edge))
    for key, edge in new_edges.items():
        if key not in old_edges:
            entries.append(EdgeAdded(key, edge))

    return entries


def summarize(entries: List[DiffEntry]) -> Dict[DiffKind, int]:
    """Count entries per kind (kinds with no entries map to 0)."""
    counts = Counter(entry.kind for entry in entries)
    return {kind: counts.get(kind, 0) for kind in DiffKind}


def _describe_identity(identity: Identity) -> str:
    address, type_id = identity
    return f"{type_id} @ {format_address(address)}"


def _describe_edge(key: EdgeKey) -> str:
    source, label, target, kind = key
    arrow = "→" if kind is EdgeKind.POINTER else "⊃"
    return f"{_describe_identity(source)} .{format_label(label)} {arrow} {_describe_identity(target)}"


def format_diff(entries: List[DiffEntry], previous: Snapshot, current: Snapshot) -> str:
    """Create a textual description of a diff.

    Args:
        entries: Output of :func:`diff`
        previous: Earlier snapshot
        current: Later snapshot

    Returns:
        A string describing the changes
    """
    changes: List[str] = []
    changes.append(f"=== Changes from Step {previous.sequence} to Step {current.sequence} ===")
    changes.append("")

    node_changes: List[str] = []
    edge_changes: List[str] = []
    for entry in entries:
        if isinstance(entry, NodeAdded):
            node_changes.append(f"  + Added {_describe_identity(entry.identity)} = "
                                f"{format_value(entry.node.value)}")
        elif isinstance(entry, NodeRemoved):
            node_changes.append(f"  - Removed {_describe_identity(entry.identity)}")
        elif isinstance(entry, ValueChanged):
            line = (f"  ~ Changed {_describe_identity(entry.identity)}: "
                    f"{format_value(entry.old)} → {format_value(entry.new)}")
            if entry.old_marker != entry.new_marker:
                old_m = entry.old_marker.value if entry.old_marker else "ok"
                new_m = entry.new_marker.value if entry.new_marker else "ok"
                line += f" [{old_m} → {new_m}]"
            node_changes.append(line)
        elif isinstance(entry, EdgeAdded):
            edge_changes.append(f"  + {_describe_edge(entry.key)}")
        elif isinstance(entry, EdgeRemoved):
            edge_changes.append(f"  - {_describe_edge(entry.key)}")

    if node_changes:
        changes.append("Nodes:")
        changes.extend(node_changes)
        changes.append("")

    if edge_changes:
        changes.append("Edges:")
        changes.extend(edge_changes)
        changes.append("")

    if len(changes) == 2:
        changes.append("(no changes)")

    return "\n".join(changes)
