"""Shared test configuration and fixtures."""

from pathlib import Path

import h5py
import numpy as np
import pytest
import scipy.io


@pytest.fixture
def write_text(tmp_path: Path):
    """Write a text table file and return its path as str."""

    def _write(content: str, name: str = "table.txt") -> str:
        path = tmp_path / name
        path.write_bytes(content.encode("latin-1"))
        return str(path)

    return _write


@pytest.fixture
def matrix_3x3() -> np.ndarray:
    return np.arange(1.0, 10.0).reshape(3, 3)


@pytest.fixture
def struct_mat_file(tmp_path: Path, matrix_3x3: np.ndarray) -> str:
    """MAT 5 file with nested 1x1 structs and assorted top-level variables."""
    path = tmp_path / "struct.mat"
    struct_array = np.zeros((1, 2), dtype=[("b", "O")])
    struct_array["b"][0, 0] = matrix_3x3
    struct_array["b"][0, 1] = matrix_3x3
    cell = np.empty((1, 2), dtype=object)
    cell[0, 0] = np.array([[1.0]])
    cell[0, 1] = np.array([[2.0]])
    scipy.io.savemat(
        str(path),
        {
            "a": {"b": matrix_3x3, "n": {"c": np.array([[1.0, 2.0]])}},
            "s": struct_array,
            "m": np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]),
            "i": np.array([[1, 2], [3, 4]], dtype=np.int16),
            "u": np.array([[250, 251]], dtype=np.uint8),
            "f": np.array([[0.5, 1.5]], dtype=np.float32),
            "z": np.array([[1 + 2j, 3 - 1j]]),
            "t": "text",
            "c": cell,
            "cube": np.zeros((2, 2, 2)),
        },
    )
    return str(path)


@pytest.fixture
def hdf5_mat_file(tmp_path: Path, matrix_3x3: np.ndarray) -> str:
    """MAT 7.3 style file built directly with h5py."""
    path = tmp_path / "struct73.mat"
    with h5py.File(path, "w") as f:
        group = f.create_group("a")
        group.attrs["MATLAB_class"] = np.bytes_("struct")
        # HDF5 stores the transposed MATLAB shape
        leaf = group.create_dataset("b", data=matrix_3x3.T)
        leaf.attrs["MATLAB_class"] = np.bytes_("double")
        wide = f.create_dataset("w", data=np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]]).T)
        wide.attrs["MATLAB_class"] = np.bytes_("double")
        ints = f.create_dataset("i", data=np.array([[1, 2], [3, 4]], dtype=np.int32).T)
        ints.attrs["MATLAB_class"] = np.bytes_("int32")
        cplx = f.create_dataset("z", data=np.array([[(1.0, 2.0), (3.0, 4.0)]], dtype=[("real", "<f8"), ("imag", "<f8")]))
        cplx.attrs["MATLAB_class"] = np.bytes_("double")
        text = f.create_dataset("t", data=np.array([[116], [101]], dtype=np.uint16))
        text.attrs["MATLAB_class"] = np.bytes_("char")
    return str(path)
