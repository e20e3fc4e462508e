"""
example_usage.py

The gdb-memviz sample program rebuilt inside a fake address space.

    struct Node { int id; int count; char name[16]; struct Node *next; };
    struct Pad  { char c; int i; short s; char buf[3]; void *p; };

    int g_counter = 1234;
    char g_message[16] = "hello-memviz";

    int main(int argc, char **argv) {
        int x = 42;
        int y = argc + 7;
        int arr[5] = {1, 2, 3, 4, 5};
        struct Node node0 = {0, 10, "node0", NULL};
        struct Node node1 = {1, 20, "node1", NULL};
        struct Node node2 = {2, 30, "node2", NULL};
        struct Pad pad = {'p', 10, 2, "pt", NULL};
        struct Node *heap_node = malloc(sizeof(struct Node));
        ...
        pad.p = heap_node;
        node0.next = &node1;
        node1.next = &node2;
        struct Node *node_ptr = &node0;
        int *p = &arr[3];
        helper(x, node_ptr);
        helper(y, node_ptr->next);
        *p = x + y;
        arr[0] = node0.count + node1.count;
        ...
        free(heap_node);
    }

Running this script steps through the program three times and prints each
snapshot and the changes between them.
"""

from memory_config import load_config
from memory_diff import format_diff
from memory_logging import setup_logging
from memory_model import (
    FieldDescriptor,
    GlobalVariable,
    StackFrame,
    TypeCatalog,
    TypeDescriptor,
    VariableBinding,
    VariableStorageClass,
    render_config,
)
from memory_port import InMemoryPort, RegionLabel
from memory_session import InspectionSession

STACK_BASE = 0x7FFC_0000
DATA_BASE = 0x4000
HEAP_NODE = 0x5555_A2A0

ARGC = STACK_BASE + 0xF0
X = STACK_BASE + 0x100
Y = STACK_BASE + 0x104
ARR = STACK_BASE + 0x110
NODE0 = STACK_BASE + 0x140
NODE1 = STACK_BASE + 0x160
NODE2 = STACK_BASE + 0x180
PAD = STACK_BASE + 0x1A0
HEAP_NODE_PTR = STACK_BASE + 0x1B8
NODE_PTR = STACK_BASE + 0x1C0
P = STACK_BASE + 0x1C8

G_COUNTER = DATA_BASE + 0x10
G_MESSAGE = DATA_BASE + 0x20

PAD_FILLER = b"\xaa"

# pad.p is declared void *; the program stores heap_node in it.
POINTER_HINTS = {"struct Pad.p": "struct Node"}


def build_catalog() -> TypeCatalog:
    """Types and variables of the sample program, as a symbol provider would
    report them for x86-64."""
    catalog = TypeCatalog(word_size=8, byte_order="little")
    catalog.register(TypeDescriptor.scalar("int", 4))
    catalog.register(TypeDescriptor.scalar("short", 2))
    catalog.register(TypeDescriptor.scalar("char", 1, is_char=True))
    catalog.register(TypeDescriptor.array("char[16]", "char", 16))
    catalog.register(TypeDescriptor.array("char[3]", "char", 3))
    catalog.register(TypeDescriptor.array("int[5]", "int", 5))
    catalog.register(TypeDescriptor.pointer("int *", "int"))
    catalog.register(TypeDescriptor.pointer("void *", None))
    catalog.register(TypeDescriptor.pointer("struct Node *", "struct Node"))
    catalog.register(TypeDescriptor.record(
        "struct Node",
        [
            FieldDescriptor("id", "int", 0),
            FieldDescriptor("count", "int", 4),
            FieldDescriptor("name", "char[16]", 8),
            FieldDescriptor("next", "struct Node *", 24),
        ],
        size=32,
    ))
    catalog.register(TypeDescriptor.record(
        "struct Pad",
        [
            FieldDescriptor("c", "char", 0),
            FieldDescriptor("i", "int", 4),
            FieldDescriptor("s", "short", 8),
            FieldDescriptor("buf", "char[3]", 10),
            FieldDescriptor("p", "void *", 16),
        ],
        size=24,
    ))

    catalog.register_frame(StackFrame(
        "main",
        parameters=[VariableBinding("argc", "int", ARGC)],
        locals=[
            VariableBinding("x", "int", X),
            VariableBinding("y", "int", Y),
            VariableBinding("arr", "int[5]", ARR),
            VariableBinding("node0", "struct Node", NODE0),
            VariableBinding("node1", "struct Node", NODE1),
            VariableBinding("node2", "struct Node", NODE2),
            VariableBinding("pad", "struct Pad", PAD),
            VariableBinding("heap_node", "struct Node *", HEAP_NODE_PTR),
            VariableBinding("node_ptr", "struct Node *", NODE_PTR),
            VariableBinding("p", "int *", P),
        ],
    ))
    catalog.register_global(GlobalVariable("g_counter", "int", G_COUNTER))
    catalog.register_global(GlobalVariable("g_message", "char[16]", G_MESSAGE,
                                           VariableStorageClass.GLOBAL, ".data"))
    return catalog


# ============================================================
#  Byte encoders (x86-64, little-endian)
# ============================================================

def pack_int(value: int, size: int = 4) -> bytes:
    return value.to_bytes(size, "little", signed=True)


def pack_ptr(address: int) -> bytes:
    return address.to_bytes(8, "little")


def pack_chars(text: str, size: int) -> bytes:
    raw = text.encode("ascii")[:size]
    return raw + b"\x00" * (size - len(raw))


def pack_node(node_id: int, count: int, name: str, next_addr: int = 0) -> bytes:
    return pack_int(node_id) + pack_int(count) + pack_chars(name, 16) + pack_ptr(next_addr)


def pack_pad(c: str, i: int, s: int, buf: str, p: int) -> bytes:
    return (c.encode("ascii") + PAD_FILLER * 3 + pack_int(i) + pack_int(s, 2)
            + pack_chars(buf, 3) + PAD_FILLER * 3 + pack_ptr(p))


# ============================================================
#  Program states
# ============================================================

def build_memory(argc: int = 1) -> InMemoryPort:
    """Memory of ``main`` right after ``int *p = &arr[3];``."""
    port = InMemoryPort()
    port.map(STACK_BASE, 0x1000, RegionLabel.STACK)
    port.map(DATA_BASE, 0x100, RegionLabel.DATA)
    port.allocate(HEAP_NODE, pack_node(99, 999, "heap"), RegionLabel.HEAP)

    port.write(G_COUNTER, pack_int(1234))
    port.write(G_MESSAGE, pack_chars("hello-memviz", 16))

    port.write(ARGC, pack_int(argc))
    port.write(X, pack_int(42))
    port.write(Y, pack_int(argc + 7))
    port.write(ARR, b"".join(pack_int(v) for v in (1, 2, 3, 4, 5)))
    port.write(NODE0, pack_node(0, 10, "node0", NODE1))
    port.write(NODE1, pack_node(1, 20, "node1", NODE2))
    port.write(NODE2, pack_node(2, 30, "node2"))
    port.write(PAD, pack_pad("p", 10, 2, "pt", HEAP_NODE))
    port.write(HEAP_NODE_PTR, pack_ptr(HEAP_NODE))
    port.write(NODE_PTR, pack_ptr(NODE0))
    port.write(P, pack_ptr(ARR + 3 * 4))
    return port


def run_helpers(port: InMemoryPort, argc: int = 1) -> None:
    """Apply both ``helper`` calls plus the two stores that follow them."""
    x, y = 42, argc + 7
    helper_ptr_value = 33
    count0 = 10 + x * 3 + helper_ptr_value
    count1 = 20 + y * 3 + helper_ptr_value
    port.write(NODE0, pack_node(0, count0, "id0", NODE1))
    port.write(NODE1, pack_node(1, count1, "id1", NODE2))
    port.write(ARR + 3 * 4, pack_int(x + y))
    port.write(ARR, pack_int(count0 + count1))


def free_heap_node(port: InMemoryPort) -> None:
    """``free(heap_node)``: the block is no longer readable."""
    port.free(HEAP_NODE)


def main():
    """Step through the sample program and print what changes."""
    config = load_config()
    setup_logging(verbose=config.verbose, quiet=config.quiet)
    render_config.pointer_arrow = "→"
    render_config.show_addresses_hex = True

    catalog = build_catalog()
    port = build_memory()
    print(catalog.to_console())
    print()

    with InspectionSession(catalog, port, config, regions=port.region_map(),
                           pointer_hints=POINTER_HINTS) as session:
        first = session.step(frame="main", description="After int *p = &arr[3]")
        first.snapshot.print()
        print()

        run_helpers(port)
        second = session.step(frame="main", description="After helper calls")
        print(format_diff(second.changes, first.snapshot, second.snapshot))

        free_heap_node(port)
        third = session.step(frame="main", description="After free(heap_node)")
        print(format_diff(third.changes, second.snapshot, third.snapshot))
        print()

        chain = third.snapshot.follow("node_ptr")
        print("follow node_ptr:", " → ".join(f"{n.type_id}@{hex(n.address)}" for n in chain))


if __name__ == "__main__":
    main()
