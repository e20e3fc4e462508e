"""
test_memory_graph.py

Unit tests for graph building: aliasing, cycles, depth bounds, dangling
pointers and background builds.
"""

import threading

import pytest

from conftest import RING_A, RING_B, RING_C, GatedPort
from example_usage import (
    ARR,
    HEAP_NODE,
    NODE0,
    NODE1,
    NODE2,
    NODE_PTR,
    POINTER_HINTS,
    STACK_BASE,
    X,
    free_heap_node,
    pack_ptr,
)
from memory_config import EngineConfig
from memory_errors import BuildCancelled
from memory_graph import BuildWorker, GraphBuilder, build_snapshot
from memory_model import (
    DanglingPointer,
    EdgeKind,
    FieldDescriptor,
    InvalidValue,
    NodeMarker,
    RecordValue,
    TypeCatalog,
    TypeDescriptor,
)
from memory_port import InMemoryPort, RegionLabel


def _pointer_edges(snapshot):
    return [e for e in snapshot.edges if e.kind is EdgeKind.POINTER]


# ============================================================
# Sample Program Tests
# ============================================================

class TestMainFrame:
    """Tests against the main frame of the sample program."""

    def test_counts(self, main_snapshot):
        """Test nodes and edges of the whole frame."""
        assert len(main_snapshot) == 15
        assert len(main_snapshot.roots) == 13
        assert len(_pointer_edges(main_snapshot)) == 6
        embedded = [e for e in main_snapshot.edges if e.kind is EdgeKind.EMBEDDED]
        assert len(embedded) == 1

    def test_list_links(self, main_snapshot):
        """Test node0 -> node1 -> node2 -> NULL."""
        node0 = main_snapshot.root("node0")
        node1 = main_snapshot.root("node1")
        node2 = main_snapshot.root("node2")
        assert [(e.label, e.target) for e in main_snapshot.out_edges(node0.node_id)] == \
            [("next", node1.node_id)]
        assert [(e.label, e.target) for e in main_snapshot.out_edges(node1.node_id)] == \
            [("next", node2.node_id)]
        assert main_snapshot.out_edges(node2.node_id) == []

    def test_alias_collapses(self, main_snapshot):
        """Test that a pointer to a root variable links to the root's node."""
        node_ptr = main_snapshot.root("node_ptr")
        edges = main_snapshot.out_edges(node_ptr.node_id)
        assert len(edges) == 1
        assert edges[0].label is None
        assert edges[0].target == main_snapshot.root("node0").node_id

    def test_two_pointers_one_heap_node(self, main_snapshot):
        """Test that pad.p and heap_node share the heap node."""
        heap = main_snapshot.node_at(HEAP_NODE)
        assert heap.type_id == "struct Node"
        assert heap.depth == 1
        assert heap.region == "[heap]"
        sources = {e.source for e in main_snapshot.in_edges(heap.node_id)}
        assert sources == {main_snapshot.root("pad").node_id,
                           main_snapshot.root("heap_node").node_id}
        described = sorted(name for name, _ in main_snapshot.find_all_pointers_to(heap.node_id))
        assert described == ["heap_node.*", "pad.p"]

    def test_interior_pointer(self, main_snapshot):
        """Test p = &arr[3] yields an int node embedded in arr."""
        target = main_snapshot.node_at(ARR + 12)
        assert target.type_id == "int"
        assert target.value.value == 4
        embedded = [e for e in main_snapshot.in_edges(target.node_id) if e.kind is EdgeKind.EMBEDDED]
        assert len(embedded) == 1
        assert embedded[0].source == main_snapshot.root("arr").node_id
        assert embedded[0].label == 3

    def test_regions(self, main_snapshot):
        """Test region labels of roots."""
        assert main_snapshot.root("node0").region == "[stack]"
        assert main_snapshot.root("g_counter").region == "[data]"
        assert main_snapshot.root("g_message").value.text == "hello-memviz"

    def test_each_node_read_once(self, builder, catalog, port):
        """Test that the memo avoids reading a node twice."""
        port.reads = 0
        snapshot = builder.build(catalog.roots_for_frame("main"))
        assert port.reads == len(snapshot)

    def test_sequence_increments(self, builder, catalog):
        """Test that each build gets a new sequence number."""
        roots = catalog.roots_for_frame("main")
        first = builder.build(roots)
        second = builder.build(roots)
        assert second.sequence == first.sequence + 1

    def test_follow_list(self, main_snapshot):
        """Test walking the list from node_ptr."""
        chain = main_snapshot.follow("node_ptr")
        assert [n.address for n in chain] == [NODE0, NODE1, NODE2]

    def test_dangling_after_free(self, builder, catalog, port):
        """Test that a freed heap block becomes a dangling node."""
        free_heap_node(port)
        snapshot = builder.build(catalog.roots_for_frame("main"))
        heap = snapshot.node_at(HEAP_NODE)
        assert heap.marker is NodeMarker.DANGLING
        assert isinstance(heap.value, DanglingPointer)
        assert len(snapshot.in_edges(heap.node_id)) == 2
        assert len(snapshot) == 15


# ============================================================
# Untyped Pointer Tests
# ============================================================

class TestUntypedPointers:
    """Tests for void pointers and pointer hints."""

    def test_opaque_policy_ignores_hints(self, catalog, port):
        """Test that void pointers are leaves under the opaque policy."""
        builder = GraphBuilder(catalog, port, EngineConfig(untyped_pointers="opaque"),
                               pointer_hints=POINTER_HINTS)
        snapshot = builder.build(catalog.roots_for_frame("main"))
        assert snapshot.out_edges(snapshot.root("pad").node_id) == []
        assert len(_pointer_edges(snapshot)) == 5

    def test_no_hint_is_opaque(self, catalog, port):
        """Test a void pointer without a hint."""
        snapshot = GraphBuilder(catalog, port).build(catalog.roots_for_frame("main"))
        assert snapshot.out_edges(snapshot.root("pad").node_id) == []

    def test_root_name_hint(self, catalog, port):
        """Test resolving a void pointer root through its name."""
        blob = STACK_BASE + 0x200
        port.write(blob, pack_ptr(NODE2))
        builder = GraphBuilder(catalog, port, pointer_hints={"blob": "struct Node"})
        snapshot = builder.build([("blob", "void *", blob)])
        assert len(snapshot) == 2
        assert snapshot.node_at(NODE2).type_id == "struct Node"


# ============================================================
# Cycle And Depth Tests
# ============================================================

class TestCyclesAndDepth:
    """Tests for cycle termination and the depth bound."""

    def test_ring_terminates(self, catalog, ring_port):
        """Test A -> B -> C -> A."""
        snapshot = GraphBuilder(catalog, ring_port).build([("a", "struct Node", RING_A)])
        assert len(snapshot) == 3
        assert len(snapshot.edges) == 3
        assert [n.depth for n in snapshot.nodes] == [0, 1, 2]
        c = snapshot.node_at(RING_C)
        assert snapshot.out_edges(c.node_id)[0].target == snapshot.root("a").node_id

    def test_truncated_at_bound(self, catalog, ring_port):
        """Test that the last expanded node is marked truncated."""
        snapshot = GraphBuilder(catalog, ring_port).build([("a", "struct Node", RING_A)],
                                                          max_depth=1)
        assert len(snapshot) == 2
        assert snapshot.node_at(RING_B).marker is NodeMarker.TRUNCATED
        assert snapshot.node_at(RING_A).marker is None
        assert snapshot.node_at(RING_C) is None

    def test_zero_depth(self, catalog, ring_port):
        """Test that max_depth=0 keeps only the roots."""
        snapshot = GraphBuilder(catalog, ring_port).build([("a", "struct Node", RING_A)],
                                                          max_depth=0)
        assert len(snapshot) == 1
        assert snapshot.root("a").marker is NodeMarker.TRUNCATED

    def test_known_nodes_linked_beyond_bound(self, catalog, ring_port):
        """Test that a back edge to a known node is kept at the bound."""
        snapshot = GraphBuilder(catalog, ring_port).build([("a", "struct Node", RING_A)],
                                                          max_depth=2)
        assert len(snapshot) == 3
        assert len(snapshot.edges) == 3
        assert all(n.marker is None for n in snapshot.nodes)

    def test_configured_depth(self, catalog, ring_port):
        """Test that the configured bound applies by default."""
        builder = GraphBuilder(catalog, ring_port, EngineConfig(max_depth=1))
        assert len(builder.build([("a", "struct Node", RING_A)])) == 2

    def test_truncated_node_keeps_embedded_edges(self, builder, port):
        """Test that a node cut off at the bound still contains its fields."""
        q = STACK_BASE + 0x200
        port.write(q, pack_ptr(NODE0 + 4))
        roots = [("node_ptr", "struct Node *", NODE_PTR), ("q", "int *", q)]

        shallow = builder.build(roots, max_depth=1)
        node0 = shallow.node_at(NODE0)
        assert node0.marker is NodeMarker.TRUNCATED
        count = shallow.node_at(NODE0 + 4)
        embedded = [(e.source, e.label) for e in shallow.in_edges(count.node_id)
                    if e.kind is EdgeKind.EMBEDDED]
        assert embedded == [(node0.node_id, "count")]

        deep = builder.build(roots, max_depth=2)
        assert [(e.label, deep.node_at(e.target).address) for e in deep.edges
                if e.kind is EdgeKind.EMBEDDED] == [("count", NODE0 + 4)]


# ============================================================
# Target Property Tests
# ============================================================

class TestTargetDefaults:
    """Tests for word size and byte order taken from the configuration."""

    def test_config_fills_catalog(self):
        """Test a 4-byte big-endian target described only by the config."""
        catalog = TypeCatalog()
        catalog.register(TypeDescriptor.scalar("int", 4))
        catalog.register(TypeDescriptor.pointer("int *", "int"))
        port = InMemoryPort()
        port.map(0x1000, 0x20, RegionLabel.STACK)
        port.write(0x1000, (0x1010).to_bytes(4, "big"))
        port.write(0x1010, (7).to_bytes(4, "big"))

        builder = GraphBuilder(catalog, port, EngineConfig(word_size=4, byte_order="big"))
        assert catalog.size_of("int *") == 4
        assert catalog.byte_order == "big"
        snapshot = builder.build([("p", "int *", 0x1000)])
        assert len(snapshot) == 2
        assert snapshot.node_at(0x1010).value.value == 7

    def test_catalog_values_win(self, catalog, port):
        """Test that target properties reported by the catalog are kept."""
        GraphBuilder(catalog, port, EngineConfig(word_size=4, byte_order="big"))
        assert catalog.word_size == 8
        assert catalog.byte_order == "little"
        assert catalog.size_of("struct Node *") == 8


# ============================================================
# Failure Tests
# ============================================================

class TestFailures:
    """Tests for nodes that cannot be read or decoded."""

    def test_unknown_type(self, builder):
        """Test that an unknown root type becomes an invalid node."""
        snapshot = builder.build([("mystery", "struct Missing", X), ("x", "int", X + 4)])
        node = snapshot.root("mystery")
        assert node.marker is NodeMarker.INVALID
        assert isinstance(node.value, InvalidValue)
        assert node.value.error == "UnknownType"
        assert snapshot.root("x").marker is None

    def test_malformed_record(self, builder, catalog):
        """Test that a record with overlapping fields becomes invalid."""
        catalog.register(TypeDescriptor.record("struct Bad", [
            FieldDescriptor("a", "int", 0),
            FieldDescriptor("b", "int", 2),
        ], size=8))
        node = builder.build([("bad", "struct Bad", X)]).root("bad")
        assert node.marker is NodeMarker.INVALID
        assert node.value.error == "MalformedLayout"

    def test_unreadable_root(self, builder):
        """Test a root whose memory is not mapped."""
        node = builder.build([("gone", "int", 0x10)]).root("gone")
        assert node.marker is NodeMarker.DANGLING
        assert node.value.address == 0x10

    def test_partial_record(self, builder, catalog, port):
        """Test that one bad field does not hide the others."""
        catalog.register(TypeDescriptor.record("struct Odd", [
            FieldDescriptor("a", "int", 0),
            FieldDescriptor("b", "struct Missing", 4),
        ], size=8))
        node = builder.build([("odd", "struct Odd", X)]).root("odd")
        assert node.marker is None
        assert isinstance(node.value, RecordValue)
        assert node.value["a"].value == 42

    def test_cancelled_before_start(self, builder, catalog):
        """Test that a set cancel event aborts the build."""
        event = threading.Event()
        event.set()
        with pytest.raises(BuildCancelled):
            builder.build(catalog.roots_for_frame("main"), cancel_event=event)

    def test_build_snapshot(self, catalog, port):
        """Test the one-shot helper."""
        snapshot = build_snapshot([("node0", "struct Node", NODE0)], port, catalog,
                                  description="list")
        assert len(snapshot) == 3
        assert snapshot.description == "list"
        assert snapshot.root("node0").region == "[unknown]"


# ============================================================
# BuildWorker Tests
# ============================================================

class TestBuildWorker:
    """Tests for background builds."""

    def test_result(self, builder, catalog):
        """Test a build running to completion."""
        published = []
        worker = BuildWorker(builder)
        try:
            job = worker.submit(catalog.roots_for_frame("main"), on_complete=published.append)
            snapshot = job.result(timeout=5)
        finally:
            worker.shutdown()
        assert len(snapshot) == 15
        assert job.done()
        assert not job.cancelled()
        assert published == [snapshot]

    def test_cancel(self, catalog, port):
        """Test cancelling a running and a queued build."""
        gated = GatedPort(port)
        worker = BuildWorker(GraphBuilder(catalog, gated, pointer_hints=POINTER_HINTS))
        published = []
        roots = catalog.roots_for_frame("main")
        try:
            running = worker.submit(roots, on_complete=published.append)
            queued = worker.submit(roots, on_complete=published.append)
            assert gated.entered.wait(5)
            running.cancel()
            queued.cancel()
            gated.gate.set()
            with pytest.raises(BuildCancelled):
                running.result(timeout=5)
            with pytest.raises(BuildCancelled):
                queued.result(timeout=5)
        finally:
            gated.gate.set()
            worker.shutdown()
        assert running.cancelled()
        assert queued.cancelled()
        assert published == []

    def test_shutdown_cancels_running_build(self, catalog, port):
        """Test that shutting down stops a build that is still reading."""
        gated = GatedPort(port)
        worker = BuildWorker(GraphBuilder(catalog, gated, pointer_hints=POINTER_HINTS))
        published = []
        try:
            job = worker.submit(catalog.roots_for_frame("main"), on_complete=published.append)
            assert gated.entered.wait(5)
            assert worker.pending() == 1
            worker.shutdown(wait=False)
            gated.gate.set()
            with pytest.raises(BuildCancelled):
                job.result(timeout=5)
        finally:
            gated.gate.set()
            worker.shutdown()
        assert job.cancelled()
        assert published == []
        assert worker.pending() == 0
