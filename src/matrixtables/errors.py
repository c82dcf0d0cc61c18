"""
Error Types
===========
Every fatal condition raised by the readers and writers derives from
TableError and carries the complete diagnostic text. Each class also derives
from the closest builtin exception so callers may catch either.
"""
from __future__ import annotations

from typing import Optional


class TableError(Exception):
    """Base class for all table loading and storing errors."""


class TableNotFoundError(TableError, LookupError):
    """A variable, struct field or text table name could not be resolved."""


class ContainerNotFoundError(TableError, FileNotFoundError):
    """The table file does not exist or cannot be opened for reading."""


class ShapeMismatchError(TableError, ValueError):
    """The variable is not a real numeric rank-2 matrix of the requested size."""


class TableFormatError(TableError, ValueError):
    """Malformed text table file."""

    def __init__(self, message: str, line_number: Optional[int] = None) -> None:
        super().__init__(message)
        self.line_number = line_number


class DeclaredSizeMismatchError(TableFormatError):
    """More numbers on the last row than the declared table size allows."""


class TableAllocationError(TableError, MemoryError):
    """A table or line buffer could not be allocated."""


class VersionError(TableError, ValueError):
    """Unknown MAT-file version tag."""


class ContainerReadError(TableError, OSError):
    """The element data of a resolved variable could not be read."""


class ContainerWriteError(TableError, OSError):
    """A MAT-file could not be created, opened for writing, or written."""
