# transpose.py
from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import numba as nb

if TYPE_CHECKING:
    import numpy.typing as npt


@nb.njit(cache=True)
def _transpose_cycles(table: npt.NDArray[np.float64], n_row: int, n_col: int) -> None:
    """
    Cycle-based in-place array transposition.

    Element i of the row-major result comes from index
    n_row * (i % n_col) + i // n_col of the column-major input. Each cycle of
    that permutation is rotated once, starting from its smallest index.
    """
    size = n_row * n_col
    for i in range(1, size - 1):
        x = n_row * (i % n_col) + i // n_col  # predecessor of i in the cycle
        # Cycle of length one, or predecessor already visited
        if x <= i:
            continue
        # Cycle already visited
        while x > i:
            x = n_row * (x % n_col) + x // n_col
        if x < i:
            continue

        tmp = table[i]
        s = i  # start index in the cycle
        x = n_row * (i % n_col) + i // n_col
        while x != i:
            table[s] = table[x]
            s = x
            x = n_row * (x % n_col) + x // n_col
        table[s] = tmp


def transpose(table: npt.NDArray[np.float64], n_row: int, n_col: int) -> None:
    """
    Convert a column-major n_row x n_col buffer to row-major, in place.

    The same call converts a row-major n_col x n_row buffer to column-major,
    so transpose(b, m, n) followed by transpose(b, n, m) restores b.

    Args:
        table: Contiguous 1-D float64 array of length n_row * n_col.
        n_row: Number of rows of the matrix stored column-major.
        n_col: Number of columns of the matrix stored column-major.
    """
    if not isinstance(table, np.ndarray) or table.ndim != 1 or table.dtype != np.float64:
        raise ValueError("Transposition needs a 1-D float64 numpy array.")
    if not table.flags.c_contiguous or not table.flags.writeable:
        raise ValueError("Transposition needs a contiguous, writeable buffer.")
    if n_row < 0 or n_col < 0 or table.size != n_row * n_col:
        raise ValueError(
            f"Buffer of {table.size} elements does not hold a {n_row}x{n_col} matrix."
        )
    _transpose_cycles(table, int(n_row), int(n_col))


def to_row_major(table: npt.NDArray[np.float64], rows: int, cols: int) -> None:
    """Rewrite a column-major rows x cols buffer row-major (decode direction)."""
    transpose(table, rows, cols)


def to_column_major(table: npt.NDArray[np.float64], rows: int, cols: int) -> None:
    """Rewrite a row-major rows x cols buffer column-major (encode direction)."""
    transpose(table, cols, rows)
