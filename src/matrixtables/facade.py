"""
Table Facade
============
Public entry points used by a simulation runtime to load and store lookup
tables.

Functions:
    read_matrix_sizes: Dimensions of a MAT-file matrix, (0, 0) if unavailable.
    read_real_matrix: MAT-file matrix of known size.
    write_real_matrix: Store a matrix in a MAT-file.
    read_real_table: Table from a MAT-file or "#1" text file, chosen by the
        file extension.

Each call opens, reads and closes its file; nothing is cached between calls.
"""
from __future__ import annotations

import logging
import os
from typing import Optional, TYPE_CHECKING

import numpy as np

from matrixtables.codec.text import read_text_table
from matrixtables.config import DEFAULT_VERSION, MAT_EXTENSIONS
from matrixtables.container.adapter import (
    read_container_matrix,
    read_container_sizes,
    read_container_table,
    write_container_matrix,
)
from matrixtables.errors import TableError
from matrixtables.table import Table

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


def _loading_notice(name: str, file_name: str) -> None:
    logger.info(f'... loading "{name}" from "{file_name}"')


def is_mat_file(file_name: str) -> bool:
    """
    Whether a file name is routed to the MAT-file reader.

    The extension is compared case-insensitively by its leading characters,
    so "x.mat" and "x.MAT" qualify, "x.txt" and "x" do not.
    """
    ext = os.path.splitext(file_name)[1].lower()
    return any(ext.startswith(mat_ext) for mat_ext in MAT_EXTENSIONS)


def read_matrix_sizes(file_name: str, matrix_name: str) -> tuple[int, int]:
    """
    Read the dimensions of a matrix in a MAT-file.

    Args:
        file_name: Path of the MAT-file.
        matrix_name: Dotted variable name.

    Returns:
        (rows, cols), or (0, 0) if the file or variable cannot be resolved.
    """
    try:
        return read_container_sizes(file_name, matrix_name)
    except TableError as e:
        logger.debug(f"Sizes of '{matrix_name}' in {file_name} unavailable: {e}")
        return 0, 0


def read_real_matrix(
    file_name: str,
    matrix_name: str,
    rows: int,
    cols: int,
    verbose: bool = False,
) -> npt.NDArray[np.float64]:
    """
    Read a matrix of known size from a MAT-file.

    Args:
        file_name: Path of the MAT-file.
        matrix_name: Dotted variable name.
        rows: Expected number of rows.
        cols: Expected number of columns.
        verbose: Log a loading notice.

    Returns:
        Array of shape (rows, cols).

    Raises:
        TableError: Any failure to resolve, validate or read the matrix,
            including a size different from (rows, cols).
    """
    if verbose:
        _loading_notice(matrix_name, file_name)
    return read_container_matrix(file_name, matrix_name, rows, cols)


def _as_row_major(
    matrix: npt.ArrayLike,
    rows: Optional[int],
    cols: Optional[int],
) -> tuple[npt.NDArray[np.float64], int, int]:
    array = np.asarray(matrix, dtype=np.float64)
    if array.ndim == 2:
        if (rows is not None and rows != array.shape[0]) or (cols is not None and cols != array.shape[1]):
            raise ValueError(
                f"Matrix of shape {array.shape} does not match the given size ({rows},{cols})."
            )
        rows, cols = array.shape
    elif rows is None or cols is None:
        raise ValueError("rows and cols are required unless the matrix is 2-D.")
    elif array.size != rows * cols:
        raise ValueError(f"{array.size} values do not fill a {rows}x{cols} matrix.")
    return array.reshape(-1), rows, cols


def write_real_matrix(
    file_name: str,
    matrix_name: str,
    matrix: npt.ArrayLike,
    rows: Optional[int] = None,
    cols: Optional[int] = None,
    append: bool = False,
    version: str = DEFAULT_VERSION,
) -> bool:
    """
    Write a matrix to a MAT-file as double variable.

    Args:
        file_name: Path of the MAT-file.
        matrix_name: Variable name.
        matrix: 2-D array-like, or flat row-major values with rows and cols.
        rows: Number of rows (taken from a 2-D matrix if omitted).
        cols: Number of columns (taken from a 2-D matrix if omitted).
        append: Add to an existing file instead of creating a new one; a
            variable of the same name is replaced.
        version: MAT-file version "4", "6", "7" or "7.3".

    Returns:
        True if the variable was written. False if the version tag is
        invalid or the file could not be created, opened or written; the
        diagnostic is logged at error level.

    Raises:
        ValueError: matrix, rows and cols do not describe a matrix.
    """
    data, rows, cols = _as_row_major(matrix, rows, cols)
    try:
        write_container_matrix(file_name, matrix_name, data, rows, cols, append=append, version=version)
    except TableError:
        return False
    logger.debug(f"Stored '{matrix_name}' ({rows}x{cols}) in {file_name} (version {version})")
    return True


def read_real_table(file_name: str, table_name: str, verbose: bool = False) -> Table:
    """
    Read a table from a MAT-file or a "#1" text file.

    Files with a ".mat" extension (any case) are read as MAT-files with
    dotted variable names, everything else as text tables.

    Raises:
        TableError: The table cannot be found or read.
    """
    if verbose:
        _loading_notice(table_name, file_name)

    if is_mat_file(file_name):
        return read_container_table(file_name, table_name)
    return read_text_table(file_name, table_name)
