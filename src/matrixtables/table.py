"""
Table Data Model
================
Defines the value types passed between the codecs and the public API.

Classes:
    Table: Row-major 2-D numeric table.
    TablePath: Dotted variable name split into segments.
    ElementKind: Element type keyword of a text table header.
    TextTableHeader: Parsed "<kind> <name>(<rows>,<cols>)" line.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
import re
from typing import Optional, TYPE_CHECKING

import numpy as np

from matrixtables.codec.numbers import parse_integer

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass
class Table:
    """
    A 2-D table of doubles in row-major order.

    The absent table (rows == cols == 0, empty data) is what failed decodes
    report alongside their error.
    """
    rows: int
    cols: int
    data: npt.NDArray[np.float64] = field(default_factory=lambda: np.empty(0, dtype=np.float64))

    def __post_init__(self) -> None:
        self.data = np.asarray(self.data, dtype=np.float64).reshape(-1)
        if self.rows < 0 or self.cols < 0:
            raise ValueError(f"Table dimensions must not be negative, got ({self.rows},{self.cols}).")
        if self.data.size != self.rows * self.cols:
            raise ValueError(
                f"Table data has {self.data.size} elements, expected {self.rows}*{self.cols}."
            )

    @classmethod
    def absent(cls) -> Table:
        return cls(rows=0, cols=0)

    @classmethod
    def from_matrix(cls, matrix: npt.ArrayLike) -> Table:
        """Build a table from a 2-D array-like (copied, C order)."""
        array = np.array(matrix, dtype=np.float64, order="C")
        if array.ndim != 2:
            raise ValueError(f"Expected a 2-D matrix, got {array.ndim} dimension(s).")
        rows, cols = array.shape
        return cls(rows=rows, cols=cols, data=array.reshape(-1))

    @property
    def is_absent(self) -> bool:
        return self.rows == 0 and self.cols == 0

    @property
    def shape(self) -> tuple[int, int]:
        return self.rows, self.cols

    def to_matrix(self) -> npt.NDArray[np.float64]:
        """Return a (rows, cols) view on the data."""
        return self.data.reshape(self.rows, self.cols)


@dataclass(frozen=True)
class TablePath:
    """
    Dotted MAT-file variable name, e.g. "a.b.c".

    The first segment names a top-level variable, every further segment a
    field of a 1x1 struct.
    """
    name: str
    segments: tuple[str, ...]

    @classmethod
    def parse(cls, name: str) -> TablePath:
        # Consecutive, leading and trailing dots yield no segment
        segments = tuple(segment for segment in name.split(".") if segment)
        if not segments:
            segments = (name,)
        return cls(name=name, segments=segments)

    @property
    def root(self) -> str:
        return self.segments[0]

    @property
    def fields(self) -> tuple[str, ...]:
        return self.segments[1:]

    def __str__(self) -> str:
        return self.name


class ElementKind(StrEnum):
    DOUBLE = "double"
    FLOAT = "float"


# Delimiters of the header line "<kind> <name>(<rows>,<cols>)"
_HEADER_DELIMITERS = re.compile(r"[ \t(,)\r]+")


@dataclass(frozen=True)
class TextTableHeader:
    element_kind: ElementKind
    name: str
    declared_rows: int
    declared_cols: int

    @staticmethod
    def tokenize(line: str) -> list[str]:
        return [token for token in _HEADER_DELIMITERS.split(line) if token]

    @classmethod
    def parse(cls, line: str) -> Optional[TextTableHeader]:
        """
        Parse a header line.

        Returns:
            The header, or None if the line is not a complete header (unknown
            kind, missing name, or dimensions that are not non-negative
            integers). Tokens after the column count are ignored.
        """
        tokens = cls.tokenize(line)
        if len(tokens) < 4:
            return None
        kind, name, rows_token, cols_token = tokens[:4]
        if kind not in (ElementKind.DOUBLE, ElementKind.FLOAT):
            return None
        rows = parse_integer(rows_token)
        cols = parse_integer(cols_token)
        if rows is None or cols is None or rows < 0 or cols < 0:
            return None
        return cls(
            element_kind=ElementKind(kind),
            name=name,
            declared_rows=rows,
            declared_cols=cols,
        )

    def label(self) -> str:
        """Name with declared size, as used in diagnostics: T(2,3)."""
        return f"{self.name}({self.declared_rows},{self.declared_cols})"
