"""Unit tests for the in-place cycle transposition."""

# pylint: disable=missing-class-docstring,missing-function-docstring

import numpy as np
import pytest

from matrixtables.codec.transpose import to_column_major, to_row_major, transpose


class TestTranspose:

    def test_column_major_to_row_major(self):
        matrix = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        buffer = matrix.flatten(order="F")
        transpose(buffer, 2, 3)
        np.testing.assert_array_equal(buffer, matrix.reshape(-1))

    def test_row_major_to_column_major(self):
        matrix = np.array([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]])
        buffer = matrix.flatten()
        transpose(buffer, 3, 2)
        np.testing.assert_array_equal(buffer, matrix.flatten(order="F"))

    def test_square(self):
        matrix = np.arange(16.0).reshape(4, 4)
        buffer = matrix.flatten()
        transpose(buffer, 4, 4)
        np.testing.assert_array_equal(buffer, matrix.T.reshape(-1))

    def test_involution_all_small_shapes(self):
        for m in range(1, 51):
            for n in range(1, 51):
                original = np.arange(m * n, dtype=np.float64)
                buffer = original.copy()
                transpose(buffer, m, n)
                np.testing.assert_array_equal(buffer, original.reshape(n, m).T.reshape(-1))
                transpose(buffer, n, m)
                np.testing.assert_array_equal(buffer, original)

    def test_vectors_are_unchanged(self):
        buffer = np.arange(7.0)
        transpose(buffer, 1, 7)
        np.testing.assert_array_equal(buffer, np.arange(7.0))
        transpose(buffer, 7, 1)
        np.testing.assert_array_equal(buffer, np.arange(7.0))

    def test_empty(self):
        buffer = np.zeros(0)
        transpose(buffer, 0, 3)
        assert buffer.size == 0

    def test_works_in_place(self):
        buffer = np.arange(6.0)
        view = buffer
        to_row_major(buffer, 2, 3)
        assert view is buffer
        np.testing.assert_array_equal(buffer, [0.0, 2.0, 4.0, 1.0, 3.0, 5.0])


class TestHelpers:

    def test_round_trip(self):
        matrix = np.random.default_rng(7).random((5, 3))
        buffer = matrix.flatten()
        to_column_major(buffer, 5, 3)
        np.testing.assert_array_equal(buffer, matrix.flatten(order="F"))
        to_row_major(buffer, 5, 3)
        np.testing.assert_array_equal(buffer, matrix.reshape(-1))


class TestValidation:

    def test_size_mismatch(self):
        with pytest.raises(ValueError):
            transpose(np.zeros(5), 2, 3)

    def test_wrong_dtype(self):
        with pytest.raises(ValueError):
            transpose(np.zeros(6, dtype=np.float32), 2, 3)

    def test_two_dimensional(self):
        with pytest.raises(ValueError):
            transpose(np.zeros((2, 3)), 2, 3)

    def test_non_contiguous(self):
        with pytest.raises(ValueError):
            transpose(np.zeros(12)[::2], 2, 3)
