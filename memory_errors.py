"""
memory_errors.py

Exception hierarchy for the memory graph engine.

Every failure is scoped: the interpreter raises on a single value, the
graph builder catches these per node or per branch and records a marker
instead, so a snapshot build never aborts because of bad target memory.
"""

from __future__ import annotations

from typing import Dict, Optional


class MemvizError(Exception):
    """Base exception for all memory graph engine errors."""

    def __init__(self, message: str, details: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class MalformedLayout(MemvizError):
    """A byte span does not match the width or layout of its type."""

    def __init__(self, type_id: str, reason: str, expected: Optional[int] = None,
                 actual: Optional[int] = None):
        details = {"type": type_id}
        if expected is not None:
            details["expected"] = str(expected)
        if actual is not None:
            details["actual"] = str(actual)
        super().__init__(f"Malformed layout: {reason}", details)
        self.type_id = type_id
        self.reason = reason


class UnknownType(MemvizError):
    """A type identifier has no entry in the type catalog."""

    def __init__(self, type_id: str):
        super().__init__(f"Unknown type '{type_id}'", {"type": type_id})
        self.type_id = type_id


class MemoryReadError(MemvizError):
    """The memory access port could not read the requested span."""

    def __init__(self, address: int, length: int, reason: str = "unmapped"):
        super().__init__(
            f"Cannot read {length} bytes at {hex(address)}",
            {"reason": reason},
        )
        self.address = address
        self.length = length
        self.reason = reason


class DepthExceeded(MemvizError):
    """A pointer chain went deeper than the configured traversal bound."""

    def __init__(self, depth: int, max_depth: int):
        super().__init__(
            "Traversal depth bound reached",
            {"depth": str(depth), "max_depth": str(max_depth)},
        )
        self.depth = depth
        self.max_depth = max_depth


class BuildCancelled(MemvizError):
    """An in-flight snapshot build was cancelled before completion."""

    def __init__(self, sequence: Optional[int] = None):
        details = {"sequence": str(sequence)} if sequence is not None else None
        super().__init__("Snapshot build cancelled", details)
        self.sequence = sequence


class ConfigurationError(MemvizError):
    """Invalid engine configuration."""
