"""
matrixtables
============
Loading and storing of 2-D lookup tables for simulation models.

A table lives either in a MATLAB MAT-file (versions 4, 6, 7 and 7.3), where it
is addressed by a dotted variable name such as "data.curves.k", or in a text
file starting with "#1" that holds blocks like "double k(3,2)" followed by
the numbers.
"""
from matrixtables.errors import (
    ContainerNotFoundError,
    ContainerReadError,
    ContainerWriteError,
    DeclaredSizeMismatchError,
    ShapeMismatchError,
    TableAllocationError,
    TableError,
    TableFormatError,
    TableNotFoundError,
    VersionError,
)
from matrixtables.table import Table, TablePath
from matrixtables.facade import (
    is_mat_file,
    read_matrix_sizes,
    read_real_matrix,
    read_real_table,
    write_real_matrix,
)
from matrixtables.logging_config import setup_logging

__all__ = [
    "ContainerNotFoundError",
    "ContainerReadError",
    "ContainerWriteError",
    "DeclaredSizeMismatchError",
    "ShapeMismatchError",
    "Table",
    "TableAllocationError",
    "TableError",
    "TableFormatError",
    "TableNotFoundError",
    "TablePath",
    "VersionError",
    "is_mat_file",
    "read_matrix_sizes",
    "read_real_matrix",
    "read_real_table",
    "setup_logging",
    "write_real_matrix",
]
