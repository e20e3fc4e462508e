"""
memory_graph.py

Reachability traversal from root variables into an immutable Snapshot.

The builder walks breadth-first from the roots, keeping an address-keyed
memo of the nodes it has created. A second reference to a known address
links the existing node instead of reading it again, which is what makes
aliases collapse into one node and cycles terminate.

Failures never abort a build:
- unreadable targets become DanglingPointer nodes (marker DANGLING)
- unknown types and broken layouts become InvalidValue nodes (INVALID)
- a pointer chain deeper than ``max_depth`` stops at a TRUNCATED node
"""

from __future__ import annotations

import itertools
import threading
from collections import deque
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, Deque, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from memory_config import EngineConfig
from memory_errors import BuildCancelled, DepthExceeded, MemoryReadError, MemvizError
from memory_interpreter import interpret, locate, pointer_slots
from memory_logging import get_logger
from memory_model import (
    DanglingPointer,
    Edge,
    EdgeKind,
    InvalidValue,
    Node,
    NodeMarker,
    VariableBinding,
    RootRef,
    Snapshot,
    TypeCatalog,
    format_address,
)
from memory_port import MemoryAccessPort, RegionLabel, RegionMap

logger = get_logger(__name__)

RootSpec = Tuple[str, str, int]

# Nodes whose bytes were never decoded cannot contain other nodes.
_UNDECODED = (NodeMarker.DANGLING, NodeMarker.INVALID)


@dataclass
class _Draft:
    """Mutable node state while a build is in progress."""
    node: Node


class GraphBuilder:
    """Builds Snapshots for one debuggee session.

    Args:
        catalog: Read-only type/symbol catalog
        memory: Port used to read target memory
        config: Engine configuration (depth bound, untyped pointer policy,
            target word size and byte order the catalog leaves unset)
        regions: Optional region map used to label nodes
        pointer_hints: Pointee types for untyped pointers, keyed by site
            (``"struct Pad.p"``) or by root variable name
    """

    def __init__(
        self,
        catalog: TypeCatalog,
        memory: MemoryAccessPort,
        config: Optional[EngineConfig] = None,
        regions: Optional[RegionMap] = None,
        pointer_hints: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.catalog = catalog
        self.memory = memory
        self.config = config or EngineConfig()
        catalog.set_target_defaults(self.config.word_size, self.config.byte_order)
        self.regions = regions
        self.pointer_hints: Dict[str, str] = dict(pointer_hints or {})
        self._sequence = itertools.count(1)

    # ------------- Public API ------------- #

    def build(
        self,
        roots: Iterable[RootSpec],
        max_depth: Optional[int] = None,
        description: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Snapshot:
        """Build a Snapshot of everything reachable from ``roots``.

        Args:
            roots: Ordered (name, type id, address) triples or VariableBindings
            max_depth: Pointer hop bound, defaults to the configured one
            description: Free-form description stored on the snapshot
            cancel_event: When set during the build, the build stops

        Raises:
            BuildCancelled: If ``cancel_event`` was set before completion
        """
        depth_bound = self.config.max_depth if max_depth is None else max_depth
        sequence = next(self._sequence)
        return _Traversal(self, depth_bound, cancel_event, sequence).run(
            [_as_root(r) for r in roots], description
        )

    def resolve_pointee(self, site: Optional[str], pointee: Optional[str]) -> Optional[str]:
        """Type to read a pointer target as, or None to leave it opaque."""
        if pointee is not None:
            return pointee
        if site is None or self.config.untyped_pointers == "opaque":
            return None
        return self.pointer_hints.get(site)

    def region_of(self, address: int) -> str:
        if self.regions is None:
            return RegionLabel.UNKNOWN.value
        return self.regions.classify(address).value


def _as_root(root) -> VariableBinding:
    if isinstance(root, VariableBinding):
        return root
    name, type_id, address = root
    return VariableBinding(name, type_id, address)


class _Traversal:
    """State of a single build."""

    def __init__(self, builder: GraphBuilder, max_depth: int,
                 cancel_event: Optional[threading.Event], sequence: int) -> None:
        self.builder = builder
        self.catalog = builder.catalog
        self.max_depth = max_depth
        self.cancel_event = cancel_event
        self.sequence = sequence
        self.drafts: List[_Draft] = []
        self.by_address: Dict[int, int] = {}
        self.edges: List[Edge] = []
        self.queue: Deque[int] = deque()

    def run(self, roots: Sequence[VariableBinding], description: Optional[str]) -> Snapshot:
        refs: List[RootRef] = []
        for root in roots:
            self._check_cancelled()
            node_id = self._discover(root.address, root.type_id, depth=0)
            refs.append(RootRef(root.name, node_id))

        root_names = {ref.node_id: ref.name for ref in reversed(refs)}
        while self.queue:
            self._check_cancelled()
            node_id = self.queue.popleft()
            try:
                self._expand(node_id, root_names.get(node_id))
            except DepthExceeded as e:
                draft = self.drafts[node_id]
                draft.node = replace(draft.node, marker=NodeMarker.TRUNCATED)
                logger.debug("Truncated %s at depth %d", format_address(draft.node.address), e.depth)

        self._link_embedded()
        self._check_cancelled()

        snapshot = Snapshot(
            sequence=self.sequence,
            nodes=tuple(d.node for d in self.drafts),
            edges=tuple(self.edges),
            roots=tuple(refs),
            description=description,
        )
        logger.debug("Built snapshot %d: %d nodes, %d edges",
                     snapshot.sequence, len(snapshot.nodes), len(snapshot.edges))
        return snapshot

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise BuildCancelled(self.sequence)

    def _discover(self, address: int, type_id: str, depth: int) -> int:
        """Return the node at ``address``, creating and enqueueing it if new."""
        existing = self.by_address.get(address)
        if existing is not None:
            known = self.drafts[existing].node
            if known.type_id != type_id:
                logger.debug("Alias at %s seen as %s, keeping %s",
                             format_address(address), type_id, known.type_id)
            return existing

        node_id = len(self.drafts)
        region = self.builder.region_of(address)
        size = 0
        marker = None
        expandable = False
        try:
            descriptor = self.catalog.get(type_id)
            size = self.catalog.size_of(descriptor)
            data = self.builder.memory.read(address, size)
            value = interpret(descriptor, data, self.catalog)
            expandable = True
        except MemoryReadError as e:
            value = DanglingPointer(address, size, e.reason)
            marker = NodeMarker.DANGLING
            logger.info("Dangling pointer target %s (%s)", format_address(address), e.reason)
        except MemvizError as e:
            value = InvalidValue(type_id, type(e).__name__, e.message)
            marker = NodeMarker.INVALID
            logger.warning("Cannot decode %s at %s: %s", type_id, format_address(address), e)

        node = Node(node_id, address, type_id, value, size=size, depth=depth,
                    region=region, marker=marker)
        self.drafts.append(_Draft(node))
        self.by_address[address] = node_id
        if expandable:
            self.queue.append(node_id)
        return node_id

    def _expand(self, node_id: int, root_name: Optional[str]) -> None:
        """Follow every non-null typed pointer held by a node."""
        node = self.drafts[node_id].node
        descriptor = self.catalog.get(node.type_id)
        truncated_at: Optional[DepthExceeded] = None
        for label, pointer, site in pointer_slots(node.value, descriptor, self.catalog):
            if pointer.is_null:
                continue
            if label is None and site is None:
                site = root_name
            pointee = self.builder.resolve_pointee(site, pointer.target_type)
            if pointee is None:
                continue
            if pointer.address not in self.by_address and node.depth + 1 > self.max_depth:
                truncated_at = DepthExceeded(node.depth + 1, self.max_depth)
                continue
            target = self._discover(pointer.address, pointee, node.depth + 1)
            self.edges.append(Edge(node_id, label, target, EdgeKind.POINTER))
        if truncated_at is not None:
            raise truncated_at

    def _link_embedded(self) -> None:
        """Add EMBEDDED edges from each node to the nodes nested inside it."""
        nodes = [d.node for d in self.drafts if d.node.size > 0]
        for inner in nodes:
            container = None
            for outer in nodes:
                if outer.node_id == inner.node_id or outer.marker in _UNDECODED:
                    continue
                if outer.address <= inner.address and inner.end <= outer.end \
                        and outer.size > inner.size:
                    if container is None or outer.size < container.size:
                        container = outer
            if container is None:
                continue
            label = locate(self.catalog, container.type_id,
                           inner.address - container.address, inner.type_id)
            if label is None:
                label = f"+{inner.address - container.address}"
            self.edges.append(Edge(container.node_id, label, inner.node_id, EdgeKind.EMBEDDED))


def build_snapshot(
    roots: Iterable[RootSpec],
    memory: MemoryAccessPort,
    catalog: TypeCatalog,
    max_depth: int = 64,
    regions: Optional[RegionMap] = None,
    pointer_hints: Optional[Mapping[str, str]] = None,
    description: Optional[str] = None,
) -> Snapshot:
    """Build a single Snapshot with a throwaway builder."""
    builder = GraphBuilder(catalog, memory, regions=regions, pointer_hints=pointer_hints)
    return builder.build(roots, max_depth=max_depth, description=description)


# ============================================================
#  Background builds
# ============================================================

class BuildJob:
    """Handle on a build running on a BuildWorker."""

    def __init__(self, future: Future, cancel_event: threading.Event) -> None:
        self._future = future
        self._cancel_event = cancel_event

    def cancel(self) -> None:
        """Ask the build to stop; a cancelled build never publishes."""
        self._cancel_event.set()
        self._future.cancel()

    def cancelled(self) -> bool:
        if self._future.cancelled():
            return True
        if not self._future.done():
            return False
        return isinstance(self._future.exception(), BuildCancelled)

    def done(self) -> bool:
        return self._future.done()

    def add_done_callback(self, fn: Callable[["BuildJob"], None]) -> None:
        """Call ``fn(job)`` once the build finishes, fails or is cancelled."""
        self._future.add_done_callback(lambda _: fn(self))

    def result(self, timeout: Optional[float] = None) -> Snapshot:
        """Wait for the snapshot.

        Raises:
            BuildCancelled: If the job was cancelled
            concurrent.futures.TimeoutError: If ``timeout`` elapsed first
        """
        try:
            return self._future.result(timeout)
        except CancelledError:
            raise BuildCancelled() from None


class BuildWorker:
    """Runs builds on one dedicated thread so slow memory reads never block
    the caller.

    Builds run one at a time, in submission order. Shutting the worker down
    cancels every build that has not finished.
    """

    def __init__(self, builder: GraphBuilder) -> None:
        self.builder = builder
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="memviz-build")
        self._jobs: Set[BuildJob] = set()
        self._lock = threading.Lock()

    def submit(
        self,
        roots: Iterable[RootSpec],
        max_depth: Optional[int] = None,
        description: Optional[str] = None,
        on_complete: Optional[Callable[[Snapshot], None]] = None,
    ) -> BuildJob:
        """Schedule a build.

        Args:
            roots: Traversal roots
            max_depth: Pointer hop bound
            description: Snapshot description
            on_complete: Called on the worker thread with the finished
                snapshot, only if the build was not cancelled
        """
        cancel_event = threading.Event()
        root_list = list(roots)

        def run() -> Snapshot:
            snapshot = self.builder.build(root_list, max_depth=max_depth,
                                          description=description, cancel_event=cancel_event)
            if cancel_event.is_set():
                raise BuildCancelled(snapshot.sequence)
            if on_complete is not None:
                on_complete(snapshot)
            return snapshot

        job = BuildJob(self._executor.submit(run), cancel_event)
        with self._lock:
            self._jobs.add(job)
        job.add_done_callback(self._forget)
        return job

    def _forget(self, job: BuildJob) -> None:
        with self._lock:
            self._jobs.discard(job)

    def pending(self) -> int:
        """Number of submitted builds that have not finished."""
        with self._lock:
            return len(self._jobs)

    def shutdown(self, wait: bool = True) -> None:
        """Cancel unfinished builds and stop the worker thread.

        With ``wait`` the call returns once a running build has noticed the
        cancellation, which can take as long as its current memory read.
        """
        with self._lock:
            outstanding = list(self._jobs)
        logger.debug("Stopping build worker (%d unfinished builds)", len(outstanding))
        for job in outstanding:
            job.cancel()
        self._executor.shutdown(wait=wait, cancel_futures=True)
