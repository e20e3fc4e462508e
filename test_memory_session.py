"""
test_memory_session.py

Unit tests for InspectionSession: stepping through the sample program.
"""

import threading

import pytest

from conftest import GatedPort
from example_usage import HEAP_NODE, NODE0, POINTER_HINTS, free_heap_node, run_helpers
from memory_config import EngineConfig
from memory_diff import DiffKind
from memory_errors import BuildCancelled
from memory_model import NodeMarker
from memory_session import InspectionSession


@pytest.fixture
def session(catalog, port):
    with InspectionSession(catalog, port, regions=port.region_map(),
                           pointer_hints=POINTER_HINTS) as s:
        yield s


class TestInspectionSession:
    """Tests for InspectionSession."""

    def test_first_step_has_no_changes(self, session):
        """Test the first step of a session."""
        result = session.step(frame="main", description="start")
        assert result.changes == []
        assert result.snapshot.description == "start"
        assert len(result.snapshot) == 15

    def test_program_walkthrough(self, session, port):
        """Test the three steps of the sample program."""
        session.step(frame="main")
        run_helpers(port)
        second = session.step(frame="main")
        assert [c.kind for c in second.changes] == [DiffKind.VALUE_CHANGED] * 4

        free_heap_node(port)
        third = session.step(frame="main")
        assert len(third.changes) == 1
        assert third.changes[0].identity == (HEAP_NODE, "struct Node")
        assert third.changes[0].new_marker is NodeMarker.DANGLING
        assert session.latest_changes() == third.changes

    def test_explicit_roots(self, session):
        """Test stepping with explicit roots."""
        result = session.step(roots=[("node0", "struct Node", NODE0)])
        assert len(result.snapshot) == 3

    def test_step_needs_roots(self, session):
        """Test that step() needs a frame or roots."""
        with pytest.raises(ValueError):
            session.step()

    def test_compare_retained(self, catalog, port):
        """Test comparing any two retained snapshots."""
        with InspectionSession(catalog, port, EngineConfig(retention=3),
                               pointer_hints=POINTER_HINTS) as session:
            first = session.step(frame="main")
            run_helpers(port)
            session.step(frame="main")
            free_heap_node(port)
            third = session.step(frame="main")
            changes = session.compare(first.snapshot.sequence, third.snapshot.sequence)
            assert len(changes) == 5
            with pytest.raises(KeyError):
                session.compare(first.snapshot.sequence - 1, third.snapshot.sequence)

    def test_retention(self, session, port):
        """Test that only the configured number of snapshots is kept."""
        for _ in range(4):
            session.step(frame="main")
        assert len(session.store) == 2

    def test_step_async(self, session, port):
        """Test that a background build is recorded and diffed."""
        session.step(frame="main")
        run_helpers(port)
        snapshot = session.step_async(frame="main").result(timeout=5)
        assert session.store.latest() is snapshot
        assert len(session.latest_changes()) == 4

    def test_cancelled_async_step_not_recorded(self, session):
        """Test that a cancelled build leaves the store untouched."""
        session.step(frame="main")
        job = session.step_async(frame="main")
        job.cancel()
        try:
            job.result(timeout=5)
        except BuildCancelled:
            assert len(session.store) == 1
        else:
            # The build finished before the cancel request arrived.
            assert len(session.store) == 2

    def test_closed_session(self, catalog, port):
        """Test that a closed session refuses new steps."""
        session = InspectionSession(catalog, port)
        session.step(frame="main")
        session.close()
        assert session.closed
        assert session.store.latest() is None
        with pytest.raises(RuntimeError):
            session.step(frame="main")

    def test_close_cancels_running_step(self, catalog, port):
        """Test that closing the session stops a background build."""
        gated = GatedPort(port)
        session = InspectionSession(catalog, gated, pointer_hints=POINTER_HINTS)
        opener = threading.Timer(0.05, gated.gate.set)
        try:
            job = session.step_async(frame="main")
            assert gated.entered.wait(5)
            opener.start()
            session.close()
        finally:
            gated.gate.set()
            opener.cancel()
        assert job.cancelled()
        assert len(session.store) == 0
        with pytest.raises(BuildCancelled):
            job.result(timeout=5)

    def test_sessions_are_independent(self, catalog, port, ring_port):
        """Test that two sessions share no state."""
        with InspectionSession(catalog, port) as a, InspectionSession(catalog, ring_port) as b:
            a.step(frame="main")
            a.step(frame="main")
            b.step(roots=[("a", "struct Node", 0x9000)])
            assert len(a.store) == 2
            assert len(b.store) == 1
            assert b.store.latest().sequence == 1
