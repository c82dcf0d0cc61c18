"""
MAT-File Table Adapter
======================
Resolves dotted variable names in MAT-files, checks that the variable is a
real numeric matrix and moves its data in and out in row-major order.

Every open file and resolved variable is owned by an ExitStack, so the file
handle, the variable and its root are released exactly once on every path,
including all error paths.
"""
from __future__ import annotations

import contextlib
from dataclasses import dataclass
import logging
import struct
from typing import Iterator, NoReturn, TYPE_CHECKING
import zlib

import numpy as np
from scipy.io.matlab import MatReadError

from matrixtables.codec.transpose import to_column_major, to_row_major
from matrixtables.config import DEFAULT_VERSION, NAME_LENGTH_MAX, get_version_profile
from matrixtables.container.matfile import (
    NUMERIC_CLASSES,
    MatFile,
    MatVariable,
    MatWriter,
    create_mat_file,
    open_mat_file,
    open_mat_file_for_append,
)
from matrixtables.errors import (
    ContainerNotFoundError,
    ContainerReadError,
    ContainerWriteError,
    ShapeMismatchError,
    TableAllocationError,
    TableError,
    TableNotFoundError,
)
from matrixtables.table import Table, TablePath

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

# Raised by scipy.io and h5py on unreadable or corrupt file content
_DECODE_ERRORS = (OSError, ValueError, MatReadError, NotImplementedError, zlib.error, struct.error)


def _fail(error_class: type[TableError], msg: str) -> NoReturn:
    logger.error(msg)
    raise error_class(msg)


@dataclass
class ResolvedVariable:
    """A validated rank-2 real numeric variable of an open MAT-file."""
    mat: MatFile
    variable: MatVariable
    path: TablePath

    @property
    def rows(self) -> int:
        return self.variable.dims[0]

    @property
    def cols(self) -> int:
        return self.variable.dims[1]

    @property
    def root(self) -> MatVariable:
        return self.variable.top

    def read_column_major(self, file_name: str) -> npt.NDArray[np.float64]:
        """Element data widened to double, in column-major order."""
        try:
            data = self.mat.read_bulk(self.variable)
        except MemoryError:
            _fail(TableAllocationError, "Memory allocation error")
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.debug(f"Bulk read of '{self.path}' failed: {e}")
            _fail(
                ContainerReadError,
                f'Error when reading numeric data of matrix "{self.path}({self.rows},{self.cols})" '
                f'from file "{file_name}"',
            )
        if data.size != self.rows * self.cols:
            _fail(
                ContainerReadError,
                f'Error when reading numeric data of matrix "{self.path}({self.rows},{self.cols})" '
                f'from file "{file_name}"',
            )
        return data

    def read_row_major(self, file_name: str) -> npt.NDArray[np.float64]:
        data = self.read_column_major(file_name)
        # MAT-file arrays are stored column-wise
        to_row_major(data, self.rows, self.cols)
        return data


def _display_name(segment: str) -> str:
    if len(segment) > NAME_LENGTH_MAX - 1:
        return segment[:NAME_LENGTH_MAX - 1] + "..."
    return segment


def _open_for_reading(file_name: str) -> MatFile:
    try:
        return open_mat_file(file_name)
    except _DECODE_ERRORS as e:
        logger.debug(f"Opening {file_name} failed: {e}")
        _fail(
            ContainerNotFoundError,
            f'Not possible to open file "{file_name}": No such file or directory',
        )


def _resolve(mat: MatFile, path: TablePath, file_name: str, stack: contextlib.ExitStack) -> MatVariable:
    """Walk the dotted path, registering the root for release on `stack`."""
    root = mat.resolve_top_level(path.root)
    if root is None:
        _fail(
            TableNotFoundError,
            f'Variable "{_display_name(path.root)}" not found on file "{file_name}".',
        )
    stack.callback(mat.free_variable, root)

    variable = root
    for segment in path.fields:
        # Fields can only be taken from 1x1 structs
        field = mat.resolve_struct_field(variable, segment, 0) if variable.is_scalar_struct() else None
        if field is None:
            _fail(TableNotFoundError, f'Variable "{path}" not found on file "{file_name}".')
        variable = field
    if variable is not root:
        stack.callback(mat.free_variable, variable)
    logger.debug(f"Resolved '{path}' in {file_name}: {variable.class_name} {variable.dims}")
    return variable


def _validate(variable: MatVariable, path: TablePath) -> None:
    if variable.rank != 2:
        _fail(ShapeMismatchError, f'Variable "{path}" has not the required rank 2.')
    if variable.class_name not in NUMERIC_CLASSES:
        _fail(ShapeMismatchError, f'Matrix "{path}" has not the required numeric variable class.')
    if variable.is_complex:
        _fail(ShapeMismatchError, f'Matrix "{path}" must not be complex.')


@contextlib.contextmanager
def open_table_variable(file_name: str, matrix_name: str) -> Iterator[ResolvedVariable]:
    """
    Open a MAT-file and resolve a real numeric matrix by dotted name.

    Args:
        file_name: Path of the MAT-file (any version).
        matrix_name: Dotted name, e.g. "a.b.c" for field c of 1x1 struct
            field b of 1x1 struct variable a.

    Yields:
        The resolved variable. Its data is read as double whatever the
        stored integer or floating-point class is.

    Raises:
        ContainerNotFoundError: The file cannot be opened.
        TableNotFoundError: A path segment cannot be resolved.
        ShapeMismatchError: The variable is not rank 2, not numeric, or
            complex.
    """
    path = TablePath.parse(matrix_name)
    with contextlib.ExitStack() as stack:
        mat = _open_for_reading(file_name)
        stack.callback(mat.close)
        try:
            variable = _resolve(mat, path, file_name, stack)
        except _DECODE_ERRORS as e:
            if isinstance(e, TableError):
                raise
            logger.debug(f"Resolving '{path}' in {file_name} failed: {e}")
            _fail(ContainerReadError, f'Error when reading variable "{path}" from file "{file_name}".')
        _validate(variable, path)
        yield ResolvedVariable(mat=mat, variable=variable, path=path)


def read_container_sizes(file_name: str, matrix_name: str) -> tuple[int, int]:
    """Dimensions (rows, cols) of a matrix variable."""
    with open_table_variable(file_name, matrix_name) as resolved:
        return resolved.rows, resolved.cols


def read_container_matrix(file_name: str, matrix_name: str, rows: int, cols: int) -> npt.NDArray[np.float64]:
    """
    Read a matrix variable whose size is known in advance.

    Returns:
        Array of shape (rows, cols).

    Raises:
        ShapeMismatchError: The variable has a different size.
    """
    with open_table_variable(file_name, matrix_name) as resolved:
        actual = f'"{matrix_name}({resolved.rows},{resolved.cols})" from file "{file_name}"'
        if rows != resolved.rows:
            _fail(ShapeMismatchError, f"Cannot read {rows} rows of array {actual}")
        if cols != resolved.cols:
            _fail(ShapeMismatchError, f"Cannot read {cols} columns of array {actual}")
        data = resolved.read_row_major(file_name)
    return data.reshape(rows, cols)


def read_container_table(file_name: str, matrix_name: str) -> Table:
    """Read a matrix variable of any size as a Table."""
    with open_table_variable(file_name, matrix_name) as resolved:
        data = resolved.read_row_major(file_name)
        return Table(rows=resolved.rows, cols=resolved.cols, data=data)


def _open_writer(file_name: str, version: str, append: bool) -> MatWriter:
    profile = get_version_profile(version, file_name)
    if not append:
        try:
            return create_mat_file(file_name, profile)
        except (OSError, ValueError) as e:
            logger.debug(f"Creating {file_name} failed: {e}")
            _fail(
                ContainerWriteError,
                f'Not possible to newly create file "{file_name}"\n(maybe version 7.3 not supported)',
            )
    try:
        return open_mat_file_for_append(file_name, profile)
    except _DECODE_ERRORS as e:
        logger.debug(f"Opening {file_name} for appending failed: {e}")
        _fail(ContainerWriteError, f'Not possible to open file "{file_name}"')


def write_container_matrix(
    file_name: str,
    matrix_name: str,
    data: npt.NDArray[np.float64],
    rows: int,
    cols: int,
    append: bool = False,
    version: str = DEFAULT_VERSION,
) -> None:
    """
    Write a row-major matrix as double variable.

    Args:
        file_name: Path of the MAT-file.
        matrix_name: Variable name.
        data: rows*cols values in row-major order (not modified).
        rows: Number of rows.
        cols: Number of columns.
        append: Add to an existing file, replacing a variable of the same
            name, instead of creating a new file.
        version: One of "4", "6", "7" (compressed) or "7.3" (HDF5).

    Raises:
        VersionError: Unknown version tag.
        ContainerWriteError: The file cannot be created, opened, or written.
    """
    with contextlib.ExitStack() as stack:
        writer = stack.enter_context(_open_writer(file_name, version, append))

        # MAT-file arrays are stored column-wise; transpose a private copy
        try:
            column_major = np.ascontiguousarray(data, dtype=np.float64).flatten()
        except MemoryError:
            _fail(TableAllocationError, "Memory allocation error")
        to_column_major(column_major, rows, cols)

        if append and writer.delete_variable(matrix_name):
            logger.debug(f"Deleted existing variable '{matrix_name}' from {file_name}")

        try:
            writer.write_variable(matrix_name, (rows, cols), column_major)
        except (OSError, ValueError, TypeError) as e:
            logger.debug(f"Writing '{matrix_name}' to {file_name} failed: {e}")
            _fail(ContainerWriteError, f'Cannot write variable "{matrix_name}" to "{file_name}"')
