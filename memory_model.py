"""
memory_model.py

Data model for reconstructing the memory graph of a C program.

This library provides:
- A closed set of type descriptors (scalar, pointer, array, record) and a
  read-only TypeCatalog with the frame/global variable bindings of a program
- Immutable Values decoded from raw bytes, including degraded states for
  dangling pointers and broken layouts
- Nodes, Edges and the immutable Snapshot graph built at each debugger step
- Console rendering with configurable output

Example:
    >>> from memory_model import *
    >>>
    >>> catalog = TypeCatalog()
    >>> catalog.register(TypeDescriptor.scalar("int", 4))
    >>> catalog.register(TypeDescriptor.pointer("struct Node *", "struct Node"))
    >>> catalog.register(TypeDescriptor.record(
    ...     "struct Node",
    ...     [FieldDescriptor("id", "int", 0), FieldDescriptor("next", "struct Node *", 8)],
    ...     size=16,
    ... ))
    >>> catalog.size_of("struct Node")
    16
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from memory_errors import MalformedLayout, UnknownType


# ============================================================
#  Console rendering configuration
# ============================================================

@dataclass
class ConsoleRenderConfig:
    """Configuration for console rendering output.

    Attributes:
        pointer_arrow: Symbol to use for pointer visualization (→ or ->)
        show_addresses_hex: Display addresses in hexadecimal format
        max_value_width: Values longer than this are truncated with "..."
        compact_mode: Skip edge listings and padding details
        hexdump_width: Bytes per line in hexdumps
    """
    pointer_arrow: str = "→"
    show_addresses_hex: bool = True
    max_value_width: int = 60
    compact_mode: bool = False
    hexdump_width: int = 8


render_config = ConsoleRenderConfig()


def format_address(address: Optional[int]) -> str:
    """Format an address according to the render configuration."""
    if address is None:
        return "(none)"
    return hex(address) if render_config.show_addresses_hex else str(address)


# ============================================================
#  Type descriptors
# ============================================================

DEFAULT_WORD_SIZE = 8
DEFAULT_BYTE_ORDER = "little"


def choose_link_field(pointer_fields: Iterable[str]) -> Optional[str]:
    """Pick the field a list walk follows: ``next`` if present, otherwise
    the first pointer field."""
    first = None
    for name in pointer_fields:
        if name == "next":
            return name
        if first is None:
            first = name
    return first


class TypeKind(Enum):
    """Shape of a type as reported by the symbol provider."""
    SCALAR = "scalar"
    POINTER = "pointer"
    ARRAY = "array"
    RECORD = "record"


@dataclass(frozen=True)
class FieldDescriptor:
    """Describes a field within a record.

    Attributes:
        name: Field name
        type_id: Type of the field
        offset: Byte offset from record start
    """
    name: str
    type_id: str
    offset: int


@dataclass(frozen=True)
class TypeDescriptor:
    """Shape of one type. Build instances with the factory classmethods.

    Attributes:
        type_id: Identifier used by the catalog ("int", "struct Node", ...)
        kind: Which variant this descriptor is
        size: Static width in bytes (arrays: 0, derived from the catalog;
            pointers: 0 means the catalog word size)
        signed: Scalar signedness
        is_float: Scalar is an IEEE float
        is_char: Scalar is a character type
        pointee: Pointer target type, None for untyped (void) pointers
        element: Array element type
        length: Array element count
        fields: Record fields sorted by offset
    """
    type_id: str
    kind: TypeKind
    size: int = 0
    signed: bool = False
    is_float: bool = False
    is_char: bool = False
    pointee: Optional[str] = None
    element: Optional[str] = None
    length: int = 0
    fields: Tuple[FieldDescriptor, ...] = ()

    @classmethod
    def scalar(cls, type_id: str, size: int, signed: bool = True,
               is_float: bool = False, is_char: bool = False) -> "TypeDescriptor":
        """Create a scalar type (integer, float or character)."""
        if size <= 0:
            raise MalformedLayout(type_id, "scalar width must be positive", actual=size)
        return cls(type_id, TypeKind.SCALAR, size=size, signed=signed,
                   is_float=is_float, is_char=is_char)

    @classmethod
    def pointer(cls, type_id: str, pointee: Optional[str],
                size: Optional[int] = None) -> "TypeDescriptor":
        """Create a pointer type. ``pointee=None`` models ``void *``.

        Without an explicit ``size`` the pointer is as wide as the catalog's
        word size.
        """
        return cls(type_id, TypeKind.POINTER, size=size or 0, pointee=pointee)

    @classmethod
    def array(cls, type_id: str, element: str, length: int) -> "TypeDescriptor":
        """Create a fixed-length array type."""
        if length < 0:
            raise MalformedLayout(type_id, "array length must be >= 0", actual=length)
        return cls(type_id, TypeKind.ARRAY, element=element, length=length)

    @classmethod
    def record(cls, type_id: str, fields: Iterable[FieldDescriptor],
               size: Optional[int] = None) -> "TypeDescriptor":
        """Create a record (struct) type.

        Args:
            type_id: Record identifier
            fields: Field descriptors in any order
            size: Declared total size including trailing padding; when None
                the catalog derives it from the last field extent
        """
        ordered = tuple(sorted(fields, key=lambda f: f.offset))
        return cls(type_id, TypeKind.RECORD, size=size or 0, fields=ordered)

    @property
    def is_untyped_pointer(self) -> bool:
        return self.kind is TypeKind.POINTER and self.pointee is None

    def field_named(self, name: str) -> Optional[FieldDescriptor]:
        """Get a record field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None


# ============================================================
#  Symbols: stack frames and globals
# ============================================================

class VariableStorageClass(Enum):
    """Storage class for variables outside the stack."""
    GLOBAL = "global"
    STATIC = "static"


@dataclass(frozen=True)
class VariableBinding:
    """A source-level variable bound to a type and an address.

    Also used as a named starting point for graph traversal.
    """
    name: str
    type_id: str
    address: int


@dataclass(frozen=True)
class GlobalVariable:
    """A global or static variable.

    Attributes:
        name: Variable name
        type_id: Type of the variable
        address: Memory address
        storage_class: GLOBAL or STATIC
        section: Memory section (.data, .bss, .rodata, etc.)
    """
    name: str
    type_id: str
    address: int
    storage_class: VariableStorageClass = VariableStorageClass.GLOBAL
    section: str = ".data"


@dataclass
class StackFrame:
    """Variable bindings of one function frame.

    Attributes:
        function_name: Name of the function
        parameters: Parameters in declaration order
        locals: Locals in declaration order
    """
    function_name: str
    parameters: List[VariableBinding] = field(default_factory=list)
    locals: List[VariableBinding] = field(default_factory=list)

    def get_variable(self, name: str) -> Optional[VariableBinding]:
        """Get a variable (parameter or local) by name; parameters win."""
        for var in self.parameters:
            if var.name == name:
                return var
        for var in self.locals:
            if var.name == name:
                return var
        return None

    def all_variables(self) -> List[VariableBinding]:
        """Get all variables in this frame (parameters, then locals)."""
        return list(self.parameters) + list(self.locals)


class TypeCatalog:
    """Registry of type shapes and variable bindings for one debuggee load.

    Filled by the symbol provider, then only read by the engine. Target
    properties the symbol provider leaves out (None) are filled once from
    the engine configuration by :meth:`set_target_defaults`.

    Attributes:
        word_size: Pointer width of the target in bytes
        byte_order: "little" or "big"
    """

    def __init__(self, word_size: Optional[int] = None, byte_order: Optional[str] = None) -> None:
        self._word_size = word_size
        self._byte_order = byte_order
        self._types: Dict[str, TypeDescriptor] = {}
        self._typedefs: Dict[str, str] = {}
        self._frames: Dict[str, StackFrame] = {}
        self._globals: Dict[str, GlobalVariable] = {}

    @property
    def word_size(self) -> int:
        return self._word_size or DEFAULT_WORD_SIZE

    @property
    def byte_order(self) -> str:
        return self._byte_order or DEFAULT_BYTE_ORDER

    def set_target_defaults(self, word_size: int, byte_order: str) -> None:
        """Fill in the target properties the symbol provider did not report."""
        if self._word_size is None:
            self._word_size = word_size
        if self._byte_order is None:
            self._byte_order = byte_order

    # ------------- Registration ------------- #

    def register(self, descriptor: TypeDescriptor) -> None:
        """Register a type descriptor."""
        self._types[descriptor.type_id] = descriptor

    def register_typedef(self, alias: str, real_type: str) -> None:
        """Register a typedef alias."""
        self._typedefs[alias] = real_type

    def register_frame(self, frame: StackFrame) -> None:
        """Register the variable bindings of a stack frame."""
        self._frames[frame.function_name] = frame

    def register_global(self, variable: GlobalVariable) -> None:
        """Register a global or static variable."""
        self._globals[variable.name] = variable

    # ------------- Types ------------- #

    def resolve_type(self, type_id: str) -> str:
        """Resolve a type name through the typedef chain."""
        seen = set()
        while type_id in self._typedefs and type_id not in seen:
            seen.add(type_id)
            type_id = self._typedefs[type_id]
        return type_id

    def __contains__(self, type_id: str) -> bool:
        return self.resolve_type(type_id) in self._types

    def get(self, type_id: str) -> TypeDescriptor:
        """Get the descriptor for a type id.

        Raises:
            UnknownType: If the id (after typedef resolution) is not registered
        """
        descriptor = self._types.get(self.resolve_type(type_id))
        if descriptor is None:
            raise UnknownType(type_id)
        return descriptor

    def size_of(self, type_or_id: Union[str, TypeDescriptor]) -> int:
        """Static width of a type in bytes."""
        descriptor = self._descriptor(type_or_id)
        if descriptor.kind is TypeKind.ARRAY:
            return descriptor.length * self.size_of(descriptor.element)
        if descriptor.kind is TypeKind.POINTER:
            return descriptor.size or self.word_size
        if descriptor.kind is TypeKind.RECORD and not descriptor.size:
            if not descriptor.fields:
                return 0
            last = max(descriptor.fields, key=lambda f: f.offset + self.size_of(f.type_id))
            return last.offset + self.size_of(last.type_id)
        return descriptor.size

    def validate(self, type_or_id: Union[str, TypeDescriptor]) -> None:
        """Check record layout invariants.

        Raises:
            MalformedLayout: If two fields overlap or a field overruns the record
            UnknownType: If a field type is not registered
        """
        descriptor = self._descriptor(type_or_id)
        if descriptor.kind is not TypeKind.RECORD:
            return
        total = self.size_of(descriptor)
        end = 0
        for f in descriptor.fields:
            if f.offset < end:
                raise MalformedLayout(descriptor.type_id, f"field '{f.name}' overlaps previous field")
            end = f.offset + self.size_of(f.type_id)
            if end > total:
                raise MalformedLayout(descriptor.type_id, f"field '{f.name}' overruns record",
                                      expected=total, actual=end)

    def find_pointer_field(self, type_id: str) -> Optional[FieldDescriptor]:
        """Pick the link field of a record: ``next`` if it is a pointer,
        otherwise the first pointer field."""
        descriptor = self.get(type_id)
        name = choose_link_field(
            f.name for f in descriptor.fields
            if f.type_id in self and self.get(f.type_id).kind is TypeKind.POINTER
        )
        return None if name is None else descriptor.field_named(name)

    def type_ids(self) -> List[str]:
        return list(self._types)

    def _descriptor(self, type_or_id: Union[str, TypeDescriptor]) -> TypeDescriptor:
        if isinstance(type_or_id, TypeDescriptor):
            return type_or_id
        return self.get(type_or_id)

    # ------------- Variables ------------- #

    def frame(self, function_name: str) -> StackFrame:
        """Get a registered frame.

        Raises:
            KeyError: If no frame with that name was registered
        """
        frame = self._frames.get(function_name)
        if frame is None:
            raise KeyError(f"No frame registered for function '{function_name}'")
        return frame

    def resolve_variable(self, function_name: str, name: str) -> VariableBinding:
        """Resolve a variable visible from a frame (frame first, then globals).

        Raises:
            KeyError: If the variable is not visible from that frame
        """
        var = self.frame(function_name).get_variable(name)
        if var is not None:
            return var
        g = self._globals.get(name)
        if g is not None:
            return VariableBinding(g.name, g.type_id, g.address)
        raise KeyError(f"Variable '{name}' not visible from frame '{function_name}'")

    def roots_for_frame(self, function_name: str, include_globals: bool = True) -> List[VariableBinding]:
        """Traversal roots for a frame: parameters, locals, then globals."""
        roots = self.frame(function_name).all_variables()
        if include_globals:
            roots.extend(VariableBinding(g.name, g.type_id, g.address) for g in self._globals.values())
        return roots

    # ------------- Rendering ------------- #

    def to_console(self) -> str:
        """Render the catalog to console format."""
        lines: List[str] = []
        lines.append(f"=== Types (word size {self.word_size}, {self.byte_order}-endian) ===")
        if not self._types and not self._typedefs:
            lines.append("(no types defined)")
            return "\n".join(lines)

        for type_id, desc in self._types.items():
            if desc.kind is TypeKind.RECORD:
                lines.append(f"{type_id} (size={self.size_of(desc)} bytes)")
                for f in desc.fields:
                    lines.append(f"  + {f.name:15} : {f.type_id:20} @ offset {f.offset}")
            elif desc.kind is TypeKind.POINTER:
                lines.append(f"{type_id} → {desc.pointee or 'void'}")
            elif desc.kind is TypeKind.ARRAY:
                lines.append(f"{type_id} = {desc.element}[{desc.length}]")
            else:
                lines.append(f"{type_id} (scalar, {desc.size} bytes)")

        if self._typedefs:
            lines.append("-- Typedefs --")
            for alias, real in self._typedefs.items():
                lines.append(f"typedef {alias:20} = {real}")

        return "\n".join(lines)

    def print(self) -> None:
        """Print the catalog to console."""
        print(self.to_console())


# ============================================================
#  Values
# ============================================================

@dataclass(frozen=True)
class ScalarValue:
    """A decoded scalar. Equality is by raw bytes.

    Attributes:
        raw: Bytes as read
        value: Decoded number, None when the width has no decoding
        is_char: Whether the scalar is a character
    """
    raw: bytes
    value: Union[int, float, None] = field(default=None, compare=False)
    is_char: bool = field(default=False, compare=False)

    @property
    def char(self) -> Optional[str]:
        if not self.is_char or self.value is None:
            return None
        code = int(self.value) & 0xFF
        return chr(code) if 0x20 <= code <= 0x7E else None

    def __str__(self) -> str:
        if self.char is not None:
            return f"{self.value} '{self.char}'"
        if self.value is None:
            return "0x" + self.raw.hex()
        return str(self.value)


@dataclass(frozen=True)
class PointerValue:
    """Represents a pointer value with target address and type.

    Attributes:
        address: Memory address the pointer points to
        target_type: Type of the pointed-to value, None for untyped pointers
        raw: Bytes as read
    """
    address: int
    target_type: Optional[str]
    raw: bytes = b""

    @property
    def is_null(self) -> bool:
        return self.address == 0

    def __str__(self) -> str:
        if self.is_null:
            return "NULL"
        return f"{render_config.pointer_arrow} {format_address(self.address)}"


@dataclass(frozen=True)
class ArrayValue:
    """A fixed-size array of values.

    Attributes:
        elements: Decoded elements in index order
        raw: Bytes as read
        text: Printable view for character arrays, otherwise None
    """
    elements: Tuple["Value", ...]
    raw: bytes = b""
    text: Optional[str] = field(default=None, compare=False)

    def __len__(self) -> int:
        return len(self.elements)

    def __getitem__(self, index: int) -> "Value":
        return self.elements[index]

    def __str__(self) -> str:
        if self.text is not None:
            return f'"{self.text}"'
        return "[" + ", ".join(str(e) for e in self.elements) + "]"


@dataclass(frozen=True)
class Padding:
    """Bytes of a record not covered by any field."""
    offset: int
    raw: bytes


@dataclass(frozen=True)
class RecordValue:
    """A decoded record.

    Attributes:
        members: (field name, value) pairs in offset order
        padding: Gaps between fields and the tail, as read
        raw: Bytes as read
    """
    members: Tuple[Tuple[str, "Value"], ...]
    padding: Tuple[Padding, ...] = ()
    raw: bytes = b""

    def get(self, name: str) -> Optional["Value"]:
        for member_name, value in self.members:
            if member_name == name:
                return value
        return None

    def __getitem__(self, name: str) -> "Value":
        value = self.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def names(self) -> List[str]:
        return [name for name, _ in self.members]

    def __str__(self) -> str:
        return "{" + ", ".join(f"{name} = {value}" for name, value in self.members) + "}"


@dataclass(frozen=True)
class DanglingPointer:
    """The bytes of a pointer target could not be read."""
    address: int
    length: int
    reason: str = "unmapped"

    def __str__(self) -> str:
        return f"<dangling {format_address(self.address)}: {self.reason}>"


@dataclass(frozen=True)
class InvalidValue:
    """A value that could not be decoded against its type."""
    type_id: str
    error: str
    reason: str

    def __str__(self) -> str:
        return f"<{self.error}: {self.reason}>"


Value = Union[ScalarValue, PointerValue, ArrayValue, RecordValue, DanglingPointer, InvalidValue]


def format_value(value: Any) -> str:
    """Format a value for single-line display."""
    s = str(value)
    limit = render_config.max_value_width
    return s if len(s) <= limit else s[:max(limit - 3, 0)] + "..."


def hexdump(raw: bytes, width: Optional[int] = None) -> List[str]:
    """Render bytes as offset / hex / ascii lines."""
    w = max(width or render_config.hexdump_width, 1)
    lines: List[str] = []
    for offset in range(0, len(raw), w):
        chunk = raw[offset:offset + w]
        hex_part = " ".join(f"{b:02x}" for b in chunk)
        hex_part += " .." * (w - len(chunk))
        ascii_part = "".join(chr(b) if 0x20 <= b <= 0x7E else "." for b in chunk)
        lines.append(f"+0x{offset:04x}: {hex_part} | ascii=\"{ascii_part}\"")
    return lines


# ============================================================
#  Graph: nodes, edges, snapshots
# ============================================================

class NodeMarker(Enum):
    """Degraded-data markers attached to a node."""
    DANGLING = "dangling"
    TRUNCATED = "truncated"
    INVALID = "invalid"


class EdgeKind(Enum):
    """What relationship an edge represents."""
    POINTER = "pointer"
    EMBEDDED = "embedded"


Identity = Tuple[int, str]
EdgeLabel = Union[str, int, None]


@dataclass(frozen=True)
class Node:
    """A memory location plus its decoded value.

    Attributes:
        node_id: Snapshot-local identifier, assigned in discovery order
        address: Start address
        type_id: Type the bytes were interpreted as
        value: Decoded value (or degraded state)
        size: Extent in bytes (0 when the type was unknown)
        depth: Pointer hops from the nearest root
        region: Label of the memory region the node lives in
        marker: Degraded-data marker, if any
    """
    node_id: int
    address: int
    type_id: str
    value: Value
    size: int = 0
    depth: int = 0
    region: str = "[unknown]"
    marker: Optional[NodeMarker] = None

    @property
    def identity(self) -> Identity:
        return (self.address, self.type_id)

    @property
    def end(self) -> int:
        return self.address + self.size


@dataclass(frozen=True)
class Edge:
    """A resolved pointer or embedding between two nodes."""
    source: int
    label: EdgeLabel
    target: int
    kind: EdgeKind = EdgeKind.POINTER


@dataclass(frozen=True)
class RootRef:
    """A root variable bound to the node holding its storage."""
    name: str
    node_id: int


def format_label(label: EdgeLabel) -> str:
    if label is None:
        return "*"
    if isinstance(label, int):
        return f"[{label}]"
    return label


@dataclass(frozen=True)
class Snapshot:
    """Immutable graph of a process's inspected memory at one instant.

    Attributes:
        sequence: Monotonically increasing build number
        nodes: Nodes in discovery order (index == node_id)
        edges: Edges in discovery order
        roots: Root bindings in the order they were listed
        description: Human-readable description of this state
    """
    sequence: int
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    roots: Tuple[RootRef, ...] = ()
    description: Optional[str] = None
    _by_address: Dict[int, int] = field(default_factory=dict, init=False, repr=False, compare=False)
    _by_identity: Dict[Identity, int] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for node in self.nodes:
            self._by_address.setdefault(node.address, node.node_id)
            self._by_identity[node.identity] = node.node_id

    # ------------- Lookups ------------- #

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def node(self, node_id: int) -> Node:
        return self.nodes[node_id]

    def node_at(self, address: int) -> Optional[Node]:
        """Get the node starting at an address."""
        node_id = self._by_address.get(address)
        return None if node_id is None else self.nodes[node_id]

    def by_identity(self, identity: Identity) -> Optional[Node]:
        node_id = self._by_identity.get(identity)
        return None if node_id is None else self.nodes[node_id]

    def root(self, name: str) -> Optional[Node]:
        """Get the node bound to a root variable."""
        for ref in self.roots:
            if ref.name == name:
                return self.nodes[ref.node_id]
        return None

    def out_edges(self, node_id: int) -> List[Edge]:
        return [e for e in self.edges if e.source == node_id]

    def in_edges(self, node_id: int) -> List[Edge]:
        return [e for e in self.edges if e.target == node_id]

    def find_all_pointers_to(self, node_id: int) -> List[Tuple[str, Edge]]:
        """Find all pointer edges into a node.

        Returns:
            List of (location_description, edge) tuples
        """
        pointers: List[Tuple[str, Edge]] = []
        for edge in self.in_edges(node_id):
            if edge.kind is not EdgeKind.POINTER:
                continue
            source = self.nodes[edge.source]
            names = [ref.name for ref in self.roots if ref.node_id == source.node_id]
            where = names[0] if names else f"{source.type_id} @ {format_address(source.address)}"
            pointers.append((f"{where}.{format_label(edge.label)}", edge))
        return pointers

    def follow(self, root_name: str, link_field: Optional[str] = None,
               limit: int = 8) -> List[Node]:
        """Walk a pointer chain from a root through one link field.

        A pointer root is dereferenced first. Stops at the end of the chain,
        at a revisited node, or after ``limit`` nodes.
        """
        start = self.root(root_name)
        if start is None:
            raise KeyError(f"No root named '{root_name}'")
        if isinstance(start.value, PointerValue):
            hops = [e for e in self.out_edges(start.node_id)
                    if e.kind is EdgeKind.POINTER and e.label is None]
            if not hops:
                return []
            start = self.nodes[hops[0].target]

        chain: List[Node] = []
        seen = set()
        current: Optional[Node] = start
        while current is not None and len(chain) < limit and current.node_id not in seen:
            chain.append(current)
            seen.add(current.node_id)
            label = link_field
            if label is None and isinstance(current.value, RecordValue):
                label = choose_link_field(name for name, v in current.value.members
                                          if isinstance(v, PointerValue))
            nxt = [e for e in self.out_edges(current.node_id)
                   if e.kind is EdgeKind.POINTER and e.label == label]
            current = self.nodes[nxt[0].target] if nxt else None
        return chain

    # ------------- Rendering ------------- #

    def to_console(self) -> str:
        """Render the snapshot to console format."""
        lines: List[str] = []
        lines.append("=" * 70)
        if self.description:
            lines.append(f" Step {self.sequence}: {self.description}")
        else:
            lines.append(f" Step {self.sequence}")
        lines.append("=" * 70)

        lines.append("=== Roots ===")
        if not self.roots:
            lines.append("(no roots)")
        for ref in self.roots:
            node = self.nodes[ref.node_id]
            lines.append(f"{ref.name:15} #{node.node_id:<4} {node.type_id:18} = {format_value(node.value)}")

        lines.append("")
        lines.append("=== Nodes ===")
        header = f"{'Id':5} {'Address':16} {'Type':18} {'Region':9} {'Value'}"
        lines.append(header)
        lines.append("-" * len(header))
        for node in self.nodes:
            addr = format_address(node.address)
            marker = f" [{node.marker.value}]" if node.marker else ""
            lines.append(f"#{node.node_id:<4} {addr:16} {node.type_id:18} {node.region:9} "
                         f"{format_value(node.value)}{marker}")

        if self.edges and not render_config.compact_mode:
            lines.append("")
            lines.append("=== Edges ===")
            for edge in self.edges:
                arrow = render_config.pointer_arrow if edge.kind is EdgeKind.POINTER else "⊃"
                lines.append(f"#{edge.source} .{format_label(edge.label)} {arrow} #{edge.target}")

        return "\n".join(lines)

    def print(self) -> None:
        """Print the snapshot to console."""
        print(self.to_console())
