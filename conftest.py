"""Shared fixtures: the sample program's types and memory, plus small
hand-built address spaces."""

import threading

import pytest

from example_usage import POINTER_HINTS, build_catalog, build_memory, pack_node
from memory_graph import GraphBuilder
from memory_model import render_config
from memory_port import InMemoryPort, RegionLabel

RING_A = 0x9000
RING_B = 0x9020
RING_C = 0x9040


class GatedPort:
    """Port whose reads block until the gate opens."""

    def __init__(self, inner):
        self.inner = inner
        self.gate = threading.Event()
        self.entered = threading.Event()

    def read(self, address, length):
        self.entered.set()
        self.gate.wait(5)
        return self.inner.read(address, length)


@pytest.fixture(autouse=True)
def reset_render_config():
    """Restore console rendering defaults after each test."""
    saved = (render_config.pointer_arrow, render_config.show_addresses_hex,
             render_config.max_value_width, render_config.compact_mode,
             render_config.hexdump_width)
    yield
    (render_config.pointer_arrow, render_config.show_addresses_hex,
     render_config.max_value_width, render_config.compact_mode,
     render_config.hexdump_width) = saved


@pytest.fixture
def catalog():
    return build_catalog()


@pytest.fixture
def port():
    return build_memory()


@pytest.fixture
def builder(catalog, port):
    return GraphBuilder(catalog, port, regions=port.region_map(), pointer_hints=POINTER_HINTS)


@pytest.fixture
def main_snapshot(builder, catalog):
    return builder.build(catalog.roots_for_frame("main"))


@pytest.fixture
def ring_port():
    """Three list nodes A -> B -> C -> A."""
    port = InMemoryPort()
    port.map(RING_A, 0x60, RegionLabel.HEAP)
    port.write(RING_A, pack_node(1, 10, "a", RING_B))
    port.write(RING_B, pack_node(2, 20, "b", RING_C))
    port.write(RING_C, pack_node(3, 30, "c", RING_A))
    return port
