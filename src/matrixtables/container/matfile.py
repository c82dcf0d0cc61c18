"""
MAT-File Handles
================
Minimal handle layer over the two libraries that understand MATLAB MAT-files:

* scipy.io reads and writes MAT versions 4 and 5 (the "6" and "7" tags),
* h5py reads and writes MAT version 7.3, which is HDF5 with a 512 byte
  MATLAB header in the user block.

Both backends expose the same operations: open a file, resolve a top-level
variable, resolve a field of a struct variable, read the element data of a
variable in MATLAB (column-major) order, and on the write side delete and
write variables. Variables are described by MatVariable regardless of the
backend.

Classes:
    MatClass: MATLAB class of a variable.
    MatVariable: Class, complexity and dimensions of a resolved variable.
    MatFile: Read handle (ScipyMatFile, HDF5MatFile).
    MatWriter: Write handle (ScipyMatWriter, HDF5MatWriter).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
import io
import logging
import os
import platform
import re
import tempfile
from typing import Any, BinaryIO, Dict, Optional, TYPE_CHECKING

import h5py
import numpy as np
import scipy.io
import scipy.sparse
from scipy.io.matlab import MatlabFunction, MatlabObject, MatlabOpaque, matfile_version

from matrixtables.config import WriteProfile

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


class MatClass(StrEnum):
    DOUBLE = "double"
    SINGLE = "single"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    LOGICAL = "logical"
    CHAR = "char"
    CELL = "cell"
    STRUCT = "struct"
    SPARSE = "sparse"
    FUNCTION = "function_handle"
    OBJECT = "object"
    UNKNOWN = "unknown"

    @classmethod
    def from_name(cls, name: str) -> MatClass:
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


# Integer and floating-point classes; their values can be widened to double
NUMERIC_CLASSES = frozenset({
    MatClass.DOUBLE, MatClass.SINGLE,
    MatClass.INT8, MatClass.UINT8,
    MatClass.INT16, MatClass.UINT16,
    MatClass.INT32, MatClass.UINT32,
    MatClass.INT64, MatClass.UINT64,
})

_DTYPE_CLASSES: Dict[np.dtype, MatClass] = {
    np.dtype(np.float64): MatClass.DOUBLE,
    np.dtype(np.float32): MatClass.SINGLE,
    np.dtype(np.int8): MatClass.INT8,
    np.dtype(np.uint8): MatClass.UINT8,
    np.dtype(np.int16): MatClass.INT16,
    np.dtype(np.uint16): MatClass.UINT16,
    np.dtype(np.int32): MatClass.INT32,
    np.dtype(np.uint32): MatClass.UINT32,
    np.dtype(np.int64): MatClass.INT64,
    np.dtype(np.uint64): MatClass.UINT64,
    np.dtype(np.bool_): MatClass.LOGICAL,
}

# MATLAB variable names
_VALID_NAME = re.compile(r"[A-Za-z][A-Za-z0-9_]*")

MAT73_USER_BLOCK_SIZE = 512


def _class_of_dtype(dtype: np.dtype) -> MatClass:
    if dtype.kind in ("U", "S"):
        return MatClass.CHAR
    return _DTYPE_CLASSES.get(dtype.newbyteorder("="), MatClass.UNKNOWN)


@dataclass(eq=False)
class MatVariable:
    """
    A variable resolved in an open MAT-file.

    Struct fields keep a reference to the top-level variable they were
    resolved from; freeing that root releases the whole tree.
    """
    name: str
    class_name: MatClass
    dims: tuple[int, ...]
    is_complex: bool = False
    root: Optional[MatVariable] = None
    payload: Any = field(default=None, repr=False)
    freed: bool = False

    @property
    def rank(self) -> int:
        return len(self.dims)

    @property
    def top(self) -> MatVariable:
        """The top-level variable (self for top-level variables)."""
        return self if self.root is None else self.root

    def is_scalar_struct(self) -> bool:
        return self.class_name == MatClass.STRUCT and self.dims == (1, 1)


# ==========================================
# READ HANDLES
# ==========================================

class MatFile(ABC):
    """Read handle of a MAT-file. Use as a context manager."""

    def __init__(self, path: str) -> None:
        self.path = path
        self.closed = False

    def __enter__(self) -> MatFile:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def resolve_top_level(self, name: str) -> Optional[MatVariable]:
        """Top-level variable by exact name, or None."""

    @abstractmethod
    def resolve_struct_field(self, variable: MatVariable, name: str, index: int = 0) -> Optional[MatVariable]:
        """Field `name` of struct element `index` (column-major), or None."""

    @abstractmethod
    def read_bulk(self, variable: MatVariable) -> npt.NDArray[np.float64]:
        """Element data as a new 1-D float64 array in column-major order."""

    @abstractmethod
    def _close(self) -> None:
        pass

    def free_variable(self, variable: Optional[MatVariable]) -> None:
        """Release a resolved variable. Freeing twice is a no-op."""
        if variable is None or variable.freed:
            return
        variable.payload = None
        variable.freed = True
        logger.debug(f"Freed variable '{variable.name}' of {self.path}")

    def close(self) -> None:
        if self.closed:
            return
        self._close()
        self.closed = True
        logger.debug(f"Closed {self.path}")


class ScipyMatFile(MatFile):
    """MAT version 4 and 5 files, read with scipy.io.loadmat."""

    def __init__(self, path: str, stream: BinaryIO, version: tuple[int, int]) -> None:
        super().__init__(path)
        self._stream = stream
        self.version = version

    @classmethod
    def open(cls, path: str) -> ScipyMatFile:
        stream = open(path, "rb")
        try:
            try:
                version = matfile_version(stream)
            except IndexError:
                # Shorter than the 128 byte level 5 header
                raise ValueError(f"{path} is not a MAT-file") from None
            if version[0] not in (0, 1):
                raise ValueError(f"Unsupported MAT-file version {version[0]}.{version[1]}")
        except BaseException:
            stream.close()
            raise
        logger.debug(f"Opened {path} (MAT version {version[0]}.{version[1]})")
        return cls(path, stream, version)

    @staticmethod
    def describe(name: str, value: Any, root: Optional[MatVariable] = None) -> MatVariable:
        is_complex = False
        if scipy.sparse.issparse(value):
            class_name = MatClass.SPARSE
        elif isinstance(value, MatlabFunction):
            class_name = MatClass.FUNCTION
        elif isinstance(value, (MatlabObject, MatlabOpaque)):
            class_name = MatClass.OBJECT
        elif value.dtype.names is not None:
            class_name = MatClass.STRUCT
        elif value.dtype.kind == "O":
            class_name = MatClass.CELL
        elif value.dtype.kind == "c":
            is_complex = True
            class_name = _class_of_dtype(value.real.dtype)
        else:
            class_name = _class_of_dtype(value.dtype)

        return MatVariable(
            name=name,
            class_name=class_name,
            dims=tuple(int(d) for d in value.shape),
            is_complex=is_complex,
            root=root,
            payload=value,
        )

    def resolve_top_level(self, name: str) -> Optional[MatVariable]:
        self._stream.seek(0)
        contents = scipy.io.loadmat(
            self._stream,
            variable_names=[name],
            mat_dtype=True,
            squeeze_me=False,
            struct_as_record=True,
            chars_as_strings=False,
        )
        if name not in contents:
            return None
        return self.describe(name, contents[name])

    def resolve_struct_field(self, variable: MatVariable, name: str, index: int = 0) -> Optional[MatVariable]:
        if variable.class_name != MatClass.STRUCT or variable.payload is None:
            return None
        array = variable.payload
        if name not in array.dtype.names:
            return None
        elements = array.ravel(order="F")
        if index >= elements.size:
            return None
        return self.describe(name, elements[index][name], root=variable.top)

    def read_bulk(self, variable: MatVariable) -> npt.NDArray[np.float64]:
        value = variable.payload
        if value is None or scipy.sparse.issparse(value) or variable.is_complex:
            raise ValueError(f"Variable '{variable.name}' has no real dense data")
        return np.asarray(value, dtype=np.float64).flatten(order="F")

    def _close(self) -> None:
        self._stream.close()


def _decode_attr(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("ascii", "replace")
    if isinstance(value, np.ndarray):
        return _decode_attr(value.item())
    return str(value)


def _is_reference(dataset: h5py.Dataset) -> bool:
    return h5py.check_dtype(ref=dataset.dtype) is h5py.Reference


class HDF5MatFile(MatFile):
    """MAT version 7.3 files, read with h5py."""

    def __init__(self, path: str, h5_file: h5py.File) -> None:
        super().__init__(path)
        self._file = h5_file

    @classmethod
    def open(cls, path: str) -> HDF5MatFile:
        h5_file = h5py.File(path, "r")
        logger.debug(f"Opened {path} (MAT version 7.3)")
        return cls(path, h5_file)

    @staticmethod
    def _struct_dims(group: h5py.Group) -> tuple[int, ...]:
        # Struct arrays store every field as a dataset of object references
        for child in group.values():
            if isinstance(child, h5py.Dataset) and _is_reference(child) and "MATLAB_class" not in child.attrs:
                return tuple(reversed(child.shape))
        return 1, 1

    def describe(self, name: str, obj: Any, root: Optional[MatVariable] = None) -> MatVariable:
        matlab_class = _decode_attr(obj.attrs.get("MATLAB_class"))
        is_complex = False

        if isinstance(obj, h5py.Group):
            if "MATLAB_sparse" in obj.attrs:
                class_name = MatClass.SPARSE
                n_col = obj["jc"].shape[0] - 1 if "jc" in obj else 0
                dims: tuple[int, ...] = (int(obj.attrs["MATLAB_sparse"]), max(n_col, 0))
            else:
                class_name = MatClass.STRUCT if matlab_class in (None, "struct") else MatClass.OBJECT
                dims = self._struct_dims(obj)
        elif isinstance(obj, h5py.Dataset):
            if obj.attrs.get("MATLAB_empty", 0):
                dims = tuple(int(d) for d in np.ravel(obj[()]))
            else:
                dims = tuple(int(d) for d in reversed(obj.shape))
            names = obj.dtype.names
            if names is not None and {"real", "imag"} <= set(names):
                is_complex = True
                element_dtype = obj.dtype["real"]
            else:
                element_dtype = obj.dtype

            if matlab_class is not None:
                class_name = MatClass.from_name(matlab_class)
            elif _is_reference(obj):
                class_name = MatClass.CELL
            else:
                class_name = _class_of_dtype(element_dtype)
        else:
            class_name = MatClass.UNKNOWN
            dims = ()

        return MatVariable(
            name=name,
            class_name=class_name,
            dims=dims,
            is_complex=is_complex,
            root=root,
            payload=obj,
        )

    def resolve_top_level(self, name: str) -> Optional[MatVariable]:
        # "#refs#" and "#subsystem#" hold MATLAB internals
        if not name or name.startswith("#") or "/" in name:
            return None
        obj = self._file.get(name)
        if obj is None:
            return None
        return self.describe(name, obj)

    def resolve_struct_field(self, variable: MatVariable, name: str, index: int = 0) -> Optional[MatVariable]:
        group = variable.payload
        if variable.class_name != MatClass.STRUCT or not isinstance(group, h5py.Group):
            return None
        if not name or "/" in name:
            return None
        child = group.get(name)
        if child is None:
            return None
        if isinstance(child, h5py.Dataset) and _is_reference(child) and "MATLAB_class" not in child.attrs:
            # Struct array: one reference per element
            references = child[()].ravel()
            if index >= references.size:
                return None
            child = self._file[references[index]]
        elif index != 0:
            return None
        return self.describe(name, child, root=variable.top)

    def read_bulk(self, variable: MatVariable) -> npt.NDArray[np.float64]:
        dataset = variable.payload
        if not isinstance(dataset, h5py.Dataset) or variable.is_complex:
            raise ValueError(f"Variable '{variable.name}' has no real dense data")
        if dataset.attrs.get("MATLAB_empty", 0):
            return np.zeros(0, dtype=np.float64)
        # HDF5 shape is the reversed MATLAB shape, so C order is MATLAB's column-major order
        return np.asarray(dataset[()], dtype=np.float64).reshape(-1).copy()

    def _close(self) -> None:
        self._file.close()


def open_mat_file(path: str) -> MatFile:
    """
    Open a MAT-file for reading.

    Raises:
        OSError: The file does not exist or cannot be read.
        ValueError: The file is not a MAT-file (scipy.io.matlab.MatReadError
            for empty files).
    """
    if h5py.is_hdf5(path):
        return HDF5MatFile.open(path)
    return ScipyMatFile.open(path)


# ==========================================
# WRITE HANDLES
# ==========================================

class MatWriter(ABC):
    """Write handle of a MAT-file. Use as a context manager."""

    def __init__(self, path: str, profile: WriteProfile) -> None:
        self.path = path
        self.profile = profile
        self.closed = False

    def __enter__(self) -> MatWriter:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @abstractmethod
    def delete_variable(self, name: str) -> bool:
        """Remove a top-level variable. Returns whether it existed."""

    @abstractmethod
    def _write(self, name: str, dims: tuple[int, int], data: npt.NDArray[np.float64], compress: bool) -> None:
        pass

    @abstractmethod
    def _close(self) -> None:
        pass

    def write_variable(
        self,
        name: str,
        dims: tuple[int, int],
        data: npt.NDArray[np.float64],
        compress: Optional[bool] = None,
    ) -> None:
        """
        Write a double matrix.

        Args:
            name: MATLAB variable name (letter followed by letters, digits, _).
            dims: (rows, cols) of the matrix.
            data: Element data in column-major order.
            compress: Overrides the compression of the write profile.
        """
        if _VALID_NAME.fullmatch(name) is None:
            raise ValueError(f"'{name}' is not a valid MATLAB variable name")
        if data.size != dims[0] * dims[1]:
            raise ValueError(f"{data.size} elements do not fill a {dims[0]}x{dims[1]} matrix")
        self._write(name, dims, data, self.profile.compress if compress is None else compress)
        logger.debug(f"Wrote variable '{name}' {dims[0]}x{dims[1]} to {self.path}")

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._close()
        logger.debug(f"Closed {self.path}")


def _replace_file(path: str, content: bytes) -> None:
    """Write `content` to a sibling temporary file, then move it over `path`."""
    directory = os.path.dirname(os.path.abspath(path))
    fd, temp_path = tempfile.mkstemp(prefix=".matrixtables-", suffix=".mat", dir=directory)
    try:
        with os.fdopen(fd, "wb") as stream:
            stream.write(content)
        if os.path.exists(path):
            os.chmod(temp_path, os.stat(path).st_mode & 0o7777)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.remove(temp_path)
        raise


class ScipyMatWriter(MatWriter):
    """
    MAT version 4 and 5 writer.

    scipy.io.savemat writes whole files, so the writer keeps all variables in
    memory and rewrites the file on each write.
    """

    def __init__(self, path: str, profile: WriteProfile, variables: Dict[str, Any]) -> None:
        super().__init__(path, profile)
        self._variables = variables

    @classmethod
    def create(cls, path: str, profile: WriteProfile) -> ScipyMatWriter:
        # Create (or truncate) the file right away, like a fresh MAT-file
        with open(path, "wb"):
            pass
        return cls(path, profile, {})

    @classmethod
    def open_for_append(cls, path: str, profile: WriteProfile) -> ScipyMatWriter:
        contents = scipy.io.loadmat(
            path,
            appendmat=False,
            mat_dtype=True,
            squeeze_me=False,
            struct_as_record=True,
            chars_as_strings=False,
        )
        variables = {name: value for name, value in contents.items() if not name.startswith("__")}
        return cls(path, profile, variables)

    def delete_variable(self, name: str) -> bool:
        return self._variables.pop(name, None) is not None

    def _write(self, name: str, dims: tuple[int, int], data: npt.NDArray[np.float64], compress: bool) -> None:
        previous = self._variables.get(name)
        self._variables[name] = data.reshape(dims, order="F")
        # Encode completely before the target is touched
        buffer = io.BytesIO()
        try:
            scipy.io.savemat(
                buffer,
                self._variables,
                format=self.profile.file_format,
                do_compression=compress,
                oned_as="column",
            )
        except BaseException:
            if previous is None:
                del self._variables[name]
            else:
                self._variables[name] = previous
            raise
        _replace_file(self.path, buffer.getvalue())

    def _close(self) -> None:
        self._variables = {}


def _mat73_header() -> bytes:
    """116 bytes text, 8 bytes subsystem offset, version 0x0200, endian 'IM'."""
    text = (
        f"MATLAB 7.3 MAT-file, Platform: {platform.system()}, "
        f"Created on: {datetime.now():%a %b %d %H:%M:%S %Y} HDF5 schema 1.00 ."
    )
    return text.encode("ascii", "replace")[:116].ljust(116, b" ") + b" " * 8 + b"\x00\x02IM"


class HDF5MatWriter(MatWriter):
    """MAT version 7.3 writer (HDF5 with MATLAB user block)."""

    def __init__(self, path: str, profile: WriteProfile, h5_file: h5py.File, write_header: bool) -> None:
        super().__init__(path, profile)
        self._file = h5_file
        self._write_header = write_header

    @classmethod
    def create(cls, path: str, profile: WriteProfile) -> HDF5MatWriter:
        h5_file = h5py.File(path, "w", userblock_size=MAT73_USER_BLOCK_SIZE, libver="earliest")
        return cls(path, profile, h5_file, write_header=True)

    @classmethod
    def open_for_append(cls, path: str, profile: WriteProfile) -> HDF5MatWriter:
        return cls(path, profile, h5py.File(path, "r+"), write_header=False)

    def delete_variable(self, name: str) -> bool:
        if name in self._file:
            del self._file[name]
            return True
        return False

    def _write(self, name: str, dims: tuple[int, int], data: npt.NDArray[np.float64], compress: bool) -> None:
        if data.size == 0:
            # MATLAB stores empty arrays as their dimensions
            dataset = self._file.create_dataset(name, data=np.array(dims, dtype=np.uint64))
            dataset.attrs["MATLAB_empty"] = np.uint8(1)
        else:
            dataset = self._file.create_dataset(
                name,
                data=data.reshape(tuple(reversed(dims))),
                compression="gzip" if compress else None,
            )
        dataset.attrs["MATLAB_class"] = np.bytes_("double")
        self._file.flush()

    def _close(self) -> None:
        self._file.close()
        if self._write_header:
            with open(self.path, "r+b") as stream:
                stream.write(_mat73_header())


def create_mat_file(path: str, profile: WriteProfile) -> MatWriter:
    """Create a new (or truncate an existing) MAT-file in the given profile."""
    if profile.is_hdf5:
        return HDF5MatWriter.create(path, profile)
    return ScipyMatWriter.create(path, profile)


def open_mat_file_for_append(path: str, profile: WriteProfile) -> MatWriter:
    """
    Open an existing MAT-file for adding variables.

    Version 7.3 files can only be appended with the "7.3" profile and the
    other versions only with the scipy profiles ("4", "6", "7").

    Raises:
        OSError: The file does not exist or cannot be opened.
        ValueError: The file format does not fit the profile.
    """
    if h5py.is_hdf5(path):
        if not profile.is_hdf5:
            raise ValueError(f"{path} is a MAT 7.3 file, cannot append with version {profile.tag}")
        return HDF5MatWriter.open_for_append(path, profile)
    if profile.is_hdf5:
        raise ValueError(f"{path} is not a MAT 7.3 file, cannot append with version {profile.tag}")
    return ScipyMatWriter.open_for_append(path, profile)
