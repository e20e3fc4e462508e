"""
memory_port.py

Read-only access to the memory of the inspected process.

The engine only ever consumes :class:`MemoryAccessPort`; debugger backends
implement it. :class:`InMemoryPort` is a fake address space used by tests
and demos, and :class:`RegionMap` labels addresses the same way
``/proc/<pid>/maps`` does.
"""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Protocol, runtime_checkable

from memory_errors import MemoryReadError


@runtime_checkable
class MemoryAccessPort(Protocol):
    """Returns the bytes currently resident in the target process.

    Implementations raise MemoryReadError when any byte of the span is
    unmapped or the read times out. They must be safe to call repeatedly.
    """

    def read(self, address: int, length: int) -> bytes:
        ...


# ============================================================
#  Regions
# ============================================================

class RegionLabel(Enum):
    """Coarse classification of a mapped region."""
    TEXT = "[text]"
    DATA = "[data]"
    HEAP = "[heap]"
    STACK = "[stack]"
    LIB = "[lib]"
    ANONYMOUS = "[anon]"
    OTHER = "[other]"
    UNKNOWN = "[unknown]"


@dataclass(frozen=True)
class MemoryRegion:
    """A mapped address range [start, end)."""
    start: int
    end: int
    perms: str = "rw-p"
    pathname: str = ""
    label: RegionLabel = RegionLabel.ANONYMOUS

    @property
    def size(self) -> int:
        return max(self.end - self.start, 0)

    def contains(self, address: int) -> bool:
        return self.start <= address < self.end


def classify_region(perms: str, pathname: str) -> RegionLabel:
    """Label a mapping from its permissions and path."""
    path = pathname.strip()
    if path == "[heap]":
        return RegionLabel.HEAP
    if path == "[stack]":
        return RegionLabel.STACK
    if not path:
        return RegionLabel.ANONYMOUS
    if "lib" in path or ".so" in path:
        return RegionLabel.LIB
    if perms.startswith("r-x"):
        return RegionLabel.TEXT
    if perms.startswith("rw-"):
        return RegionLabel.DATA
    return RegionLabel.OTHER


def parse_proc_maps(text: str) -> List[MemoryRegion]:
    """Parse the contents of ``/proc/<pid>/maps``.

    Malformed lines and empty ranges are skipped.
    """
    regions: List[MemoryRegion] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        range_part, perms = parts[0], parts[1]
        pathname = " ".join(parts[5:])
        start_str, sep, end_str = range_part.partition("-")
        if not sep:
            continue
        try:
            start = int(start_str, 16)
            end = int(end_str, 16)
        except ValueError:
            continue
        if start >= end:
            continue
        regions.append(MemoryRegion(start, end, perms, pathname, classify_region(perms, pathname)))
    return regions


class RegionMap:
    """Address-to-region lookup over non-overlapping regions."""

    def __init__(self, regions: Iterable[MemoryRegion] = ()) -> None:
        self._regions = sorted(regions, key=lambda r: r.start)
        self._starts = [r.start for r in self._regions]

    @classmethod
    def from_proc_maps(cls, text: str) -> "RegionMap":
        return cls(parse_proc_maps(text))

    @property
    def regions(self) -> List[MemoryRegion]:
        return list(self._regions)

    def find(self, address: int) -> Optional[MemoryRegion]:
        index = bisect.bisect_right(self._starts, address) - 1
        if index >= 0 and self._regions[index].contains(address):
            return self._regions[index]
        return None

    def classify(self, address: int) -> RegionLabel:
        region = self.find(address)
        return region.label if region is not None else RegionLabel.UNKNOWN


# ============================================================
#  In-memory fake address space
# ============================================================

class InMemoryPort:
    """A fake process address space made of independently mapped segments.

    Segments can be mapped, written and unmapped at will, which is how
    tests model ``malloc``/``free`` and stack frames going away.

    Example:
        >>> port = InMemoryPort()
        >>> port.allocate(0x1000, b"\\x2a\\x00\\x00\\x00")
        >>> port.read(0x1000, 4)
        b'*\\x00\\x00\\x00'
    """

    def __init__(self) -> None:
        self._segments: Dict[int, bytearray] = {}
        self._labels: Dict[int, RegionLabel] = {}
        self.reads = 0

    def map(self, start: int, size: int, label: RegionLabel = RegionLabel.ANONYMOUS) -> None:
        """Map a zero-filled segment.

        Raises:
            ValueError: If the segment overlaps an existing one
        """
        if size <= 0:
            raise ValueError(f"Cannot map empty segment at {hex(start)}")
        for seg_start, data in self._segments.items():
            if start < seg_start + len(data) and seg_start < start + size:
                raise ValueError(f"Segment at {hex(start)} overlaps segment at {hex(seg_start)}")
        self._segments[start] = bytearray(size)
        self._labels[start] = label

    def allocate(self, address: int, data: bytes, label: RegionLabel = RegionLabel.HEAP) -> None:
        """Map a segment exactly covering ``data`` and fill it."""
        self.map(address, len(data), label)
        self.write(address, data)

    def write(self, address: int, data: bytes) -> None:
        """Write bytes into a mapped segment.

        Raises:
            MemoryReadError: If any byte falls outside a mapped segment
        """
        start, segment = self._locate(address, len(data))
        offset = address - start
        segment[offset:offset + len(data)] = data

    def unmap(self, start: int) -> None:
        """Remove the segment starting at ``start``.

        Raises:
            KeyError: If no segment starts there
        """
        if start not in self._segments:
            raise KeyError(f"No segment mapped at {hex(start)}")
        del self._segments[start]
        del self._labels[start]

    free = unmap

    def read(self, address: int, length: int) -> bytes:
        self.reads += 1
        start, segment = self._locate(address, length)
        offset = address - start
        return bytes(segment[offset:offset + length])

    def region_map(self) -> RegionMap:
        """Region map describing the currently mapped segments."""
        return RegionMap(
            MemoryRegion(start, start + len(data), label=self._labels[start])
            for start, data in self._segments.items()
        )

    def _locate(self, address: int, length: int):
        if length < 0:
            raise MemoryReadError(address, length, "negative length")
        for start, segment in self._segments.items():
            if start <= address and address + length <= start + len(segment):
                return start, segment
        raise MemoryReadError(address, length)
