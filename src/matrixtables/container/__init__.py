"""
The CONTAINER layer reads and writes matrices in MATLAB MAT-files.
matfile.py wraps scipy.io and h5py behind one handle interface; adapter.py
resolves dotted names, validates the variable and converts layouts.
"""
from matrixtables.container.adapter import (
    ResolvedVariable,
    open_table_variable,
    read_container_matrix,
    read_container_sizes,
    read_container_table,
    write_container_matrix,
)

__all__ = [
    "ResolvedVariable",
    "open_table_variable",
    "read_container_matrix",
    "read_container_sizes",
    "read_container_table",
    "write_container_matrix",
]
