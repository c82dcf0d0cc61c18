"""Tests of the public load and store functions."""

# pylint: disable=missing-class-docstring,missing-function-docstring

import logging

import h5py
import numpy as np
import pytest
import scipy.io

from matrixtables import (
    ContainerNotFoundError,
    ShapeMismatchError,
    Table,
    TableNotFoundError,
    is_mat_file,
    read_matrix_sizes,
    read_real_matrix,
    read_real_table,
    write_real_matrix,
)


MATRIX = np.array([[1.0, -2.5, 3.25], [1e-300, 4.0, np.pi]])


class TestIsMatFile:

    @pytest.mark.parametrize("name", ["x.mat", "x.MAT", "dir/x.Mat", "x.mat5"])
    def test_mat(self, name):
        assert is_mat_file(name)

    @pytest.mark.parametrize("name", ["x.txt", "x", "mat", "x.ma", "x.mat.txt"])
    def test_not_mat(self, name):
        assert not is_mat_file(name)


class TestWriteRead:

    @pytest.mark.parametrize("version", ["4", "6", "7", "7.3"])
    def test_round_trip(self, tmp_path, version):
        path = str(tmp_path / "out.mat")
        assert write_real_matrix(path, "k", MATRIX, version=version)
        assert read_matrix_sizes(path, "k") == (2, 3)
        np.testing.assert_array_equal(read_real_matrix(path, "k", 2, 3), MATRIX)

    def test_flat_values_with_size(self, tmp_path):
        path = str(tmp_path / "out.mat")
        assert write_real_matrix(path, "k", [1.0, 2.0, 3.0, 4.0, 5.0, 6.0], rows=3, cols=2)
        np.testing.assert_array_equal(read_real_matrix(path, "k", 3, 2), [[1, 2], [3, 4], [5, 6]])

    def test_input_is_not_modified(self, tmp_path):
        matrix = MATRIX.copy()
        write_real_matrix(str(tmp_path / "out.mat"), "k", matrix, version="6")
        np.testing.assert_array_equal(matrix, MATRIX)

    def test_version_73_has_matlab_header(self, tmp_path):
        path = tmp_path / "out.mat"
        assert write_real_matrix(str(path), "k", MATRIX, version="7.3")
        header = path.read_bytes()[:128]
        assert header.startswith(b"MATLAB 7.3 MAT-file")
        assert header[124:128] == b"\x00\x02IM"
        assert h5py.is_hdf5(path)

    def test_default_version_is_4(self, tmp_path):
        path = tmp_path / "out.mat"
        write_real_matrix(str(path), "k", MATRIX)
        # Level 5 files start with a 116 byte text header
        assert not path.read_bytes().startswith(b"MATLAB")

    def test_table_from_mat_file(self, tmp_path):
        path = str(tmp_path / "out.mat")
        write_real_matrix(path, "k", MATRIX, version="7")
        table = read_real_table(path, "k")
        assert table.shape == (2, 3)
        np.testing.assert_array_equal(table.to_matrix(), MATRIX)

    def test_size_mismatch(self, tmp_path):
        path = str(tmp_path / "out.mat")
        write_real_matrix(path, "k", MATRIX)
        with pytest.raises(ShapeMismatchError):
            read_real_matrix(path, "k", 3, 2)

    def test_empty_matrix_73(self, tmp_path):
        path = str(tmp_path / "out.mat")
        assert write_real_matrix(path, "e", np.zeros((0, 3)), version="7.3")
        assert read_matrix_sizes(path, "e") == (0, 3)


class TestAppend:

    @pytest.mark.parametrize("version", ["4", "6", "7", "7.3"])
    def test_append_keeps_other_variables(self, tmp_path, version):
        path = str(tmp_path / "out.mat")
        assert write_real_matrix(path, "first", MATRIX, version=version)
        assert write_real_matrix(path, "second", [[7.0]], append=True, version=version)
        np.testing.assert_array_equal(read_real_matrix(path, "first", 2, 3), MATRIX)
        np.testing.assert_array_equal(read_real_matrix(path, "second", 1, 1), [[7.0]])

    @pytest.mark.parametrize("version", ["6", "7.3"])
    def test_append_replaces_variable(self, tmp_path, version):
        path = str(tmp_path / "out.mat")
        write_real_matrix(path, "k", MATRIX, version=version)
        assert write_real_matrix(path, "k", [[1.0, 2.0]], append=True, version=version)
        assert read_matrix_sizes(path, "k") == (1, 2)

    def test_create_replaces_file(self, tmp_path):
        path = str(tmp_path / "out.mat")
        write_real_matrix(path, "first", MATRIX, version="6")
        write_real_matrix(path, "second", MATRIX, version="6")
        assert read_matrix_sizes(path, "first") == (0, 0)
        assert read_matrix_sizes(path, "second") == (2, 3)

    def test_append_to_missing_file(self, tmp_path, caplog):
        path = str(tmp_path / "missing.mat")
        with caplog.at_level(logging.ERROR, logger="matrixtables"):
            assert not write_real_matrix(path, "k", MATRIX, append=True, version="6")
        assert "Not possible to open file" in caplog.text

    def test_append_across_formats_fails(self, tmp_path):
        path = str(tmp_path / "out.mat")
        write_real_matrix(path, "k", MATRIX, version="7.3")
        assert not write_real_matrix(path, "j", MATRIX, append=True, version="6")

    def test_failed_append_keeps_file(self, tmp_path):
        path = tmp_path / "struct.mat"
        scipy.io.savemat(str(path), {"s": {"x": np.eye(2)}, "a": np.ones((2, 2))})
        before = path.read_bytes()
        # Version 4 cannot hold the struct already in the file
        assert not write_real_matrix(str(path), "b", [[1.0]], append=True, version="4")
        assert path.read_bytes() == before
        assert read_matrix_sizes(str(path), "a") == (2, 2)
        assert list(tmp_path.iterdir()) == [path]

    def test_append_keeps_char_variables(self, tmp_path):
        path = tmp_path / "chars.mat"
        scipy.io.savemat(str(path), {"t": np.array(["ab", "cd"])})
        assert write_real_matrix(str(path), "k", MATRIX, append=True, version="6")
        contents = scipy.io.loadmat(str(path), chars_as_strings=False)
        assert contents["t"].shape == (2, 2)
        assert read_matrix_sizes(str(path), "k") == (2, 3)


class TestWriteFailures:

    @pytest.mark.parametrize("version", ["5", "7.4", "", "v7"])
    def test_invalid_version(self, tmp_path, caplog, version):
        path = tmp_path / "out.mat"
        with caplog.at_level(logging.ERROR, logger="matrixtables"):
            assert not write_real_matrix(str(path), "k", MATRIX, version=version)
        assert f"Invalid version {version}" in caplog.text
        assert not path.exists()

    def test_invalid_variable_name(self, tmp_path):
        assert not write_real_matrix(str(tmp_path / "out.mat"), "1k", MATRIX, version="6")

    def test_directory_not_writable(self, tmp_path):
        path = str(tmp_path / "no" / "such" / "dir.mat")
        assert not write_real_matrix(path, "k", MATRIX)

    def test_rows_cols_required_for_flat_values(self, tmp_path):
        with pytest.raises(ValueError):
            write_real_matrix(str(tmp_path / "out.mat"), "k", [1.0, 2.0])

    def test_size_does_not_match_matrix(self, tmp_path):
        with pytest.raises(ValueError):
            write_real_matrix(str(tmp_path / "out.mat"), "k", MATRIX, rows=3, cols=2)

    def test_values_do_not_fill_matrix(self, tmp_path):
        with pytest.raises(ValueError):
            write_real_matrix(str(tmp_path / "out.mat"), "k", [1.0, 2.0, 3.0], rows=2, cols=2)


class TestReadTable:

    def test_text_file(self, write_text):
        path = write_text("#1\ndouble tab(2,2)\n1 2\n3 4\n")
        table = read_real_table(path, "tab")
        np.testing.assert_array_equal(table.to_matrix(), [[1, 2], [3, 4]])

    def test_upper_case_extension_is_mat(self, tmp_path):
        path = str(tmp_path / "OUT.MAT")
        write_real_matrix(path, "k", MATRIX, version="6")
        assert read_real_table(path, "k").shape == (2, 3)

    def test_text_content_in_mat_file(self, write_text):
        path = write_text("#1\ndouble tab(1,1)\n1\n", name="fake.mat")
        with pytest.raises(ContainerNotFoundError):
            read_real_table(path, "tab")

    def test_not_found_in_text_file(self, write_text):
        path = write_text("#1\ndouble tab(1,1)\n1\n")
        with pytest.raises(TableNotFoundError):
            read_real_table(path, "other")

    def test_verbose_notice(self, write_text, caplog):
        path = write_text("#1\ndouble tab(1,1)\n1\n")
        caplog.set_level(logging.INFO, logger="matrixtables")
        read_real_table(path, "tab", verbose=True)
        assert f'... loading "tab" from "{path}"' in caplog.text

    def test_no_notice_by_default(self, write_text, caplog):
        path = write_text("#1\ndouble tab(1,1)\n1\n")
        caplog.set_level(logging.INFO, logger="matrixtables")
        read_real_table(path, "tab")
        assert "loading" not in caplog.text

    def test_verbose_matrix_notice(self, tmp_path, caplog):
        path = str(tmp_path / "out.mat")
        write_real_matrix(path, "k", MATRIX)
        caplog.set_level(logging.INFO, logger="matrixtables")
        read_real_matrix(path, "k", 2, 3, verbose=True)
        assert '... loading "k" from' in caplog.text


class TestSizes:

    def test_unavailable_is_zero(self, struct_mat_file, tmp_path):
        assert read_matrix_sizes(struct_mat_file, "a.c") == (0, 0)
        assert read_matrix_sizes(struct_mat_file, "z") == (0, 0)
        assert read_matrix_sizes(str(tmp_path / "missing.mat"), "k") == (0, 0)

    def test_struct_field(self, struct_mat_file):
        assert read_matrix_sizes(struct_mat_file, "a.b") == (3, 3)


class TestTable:

    def test_from_matrix(self):
        table = Table.from_matrix([[1, 2, 3], [4, 5, 6]])
        assert table.shape == (2, 3)
        np.testing.assert_array_equal(table.data, [1.0, 2.0, 3.0, 4.0, 5.0, 6.0])

    def test_from_matrix_needs_two_dimensions(self):
        with pytest.raises(ValueError):
            Table.from_matrix([1.0, 2.0])

    def test_size_is_validated(self):
        with pytest.raises(ValueError):
            Table(rows=2, cols=2, data=[1.0, 2.0, 3.0])

    def test_absent(self):
        assert Table.absent().is_absent
        assert Table.absent().data.size == 0
