# tests/test_matrix_ops.py
"""Unit tests for fsi_saddle.matrix_ops.

This module verifies:
- materialize_dense reproduces explicit matrices (square and rectangular).
- materialize_dense reports operators returning the wrong size.
- as_dense_matrix handles dense, sparse and empty inputs and validates shape.
- factorize_dense solves 1D/2D right-hand sides, inverts, and rejects
  singular or non-finite matrices.
"""

from __future__ import annotations

import numpy as np
import pytest
from scipy.sparse import csr_matrix

from fsi_saddle.errors import DimensionMismatchError, ErrorCode, SingularMatrixError
from fsi_saddle.matrix_ops import (
    DenseFactorization,
    as_dense_matrix,
    dense_inverse,
    factorize_dense,
    materialize_dense,
)

# -------------------------------------------------------------------
# materialize_dense
# -------------------------------------------------------------------


def test_materialize_dense_recovers_square_matrix() -> None:
    """Probing x -> A @ x returns A."""
    rng = np.random.default_rng(0)
    a = rng.standard_normal((5, 5))

    out = materialize_dense(lambda x: a @ x, 5)

    np.testing.assert_allclose(out, a)


def test_materialize_dense_rectangular_and_shaped_output() -> None:
    """Outputs are raveled; out_size sets the number of rows."""
    rng = np.random.default_rng(1)
    b = rng.standard_normal((6, 3))

    out = materialize_dense(lambda x: (b @ x).reshape(3, 2), 3, out_size=6)

    assert out.shape == (6, 3)
    np.testing.assert_allclose(out, b)


def test_materialize_dense_composite_operator() -> None:
    """A nested matrix-free composition is extracted column by column."""
    rng = np.random.default_rng(2)
    t1t = rng.standard_normal((3, 4))
    k = rng.standard_normal((4, 4))
    t2 = rng.standard_normal((4, 3))

    out = materialize_dense(lambda u: t1t @ (k @ (t2 @ u)), 3)

    np.testing.assert_allclose(out, t1t @ k @ t2, atol=1e-12)


def test_materialize_dense_zero_dimension() -> None:
    """A zero-dimensional domain gives an empty matrix without calls."""
    calls: list[int] = []

    def op(x: np.ndarray) -> np.ndarray:
        calls.append(1)
        return x

    out = materialize_dense(op, 0)

    assert out.shape == (0, 0)
    assert calls == []


def test_materialize_dense_wrong_output_size() -> None:
    """An operator returning the wrong size raises DimensionMismatchError."""
    with pytest.raises(DimensionMismatchError, match="probe output") as excinfo:
        materialize_dense(lambda x: np.ones(4), 3, name="probe")
    assert excinfo.value.expected == 3
    assert excinfo.value.got == 4


def test_materialize_dense_negative_dim() -> None:
    """Negative dimensions are rejected."""
    with pytest.raises(ValueError, match="non-negative"):
        materialize_dense(lambda x: x, -1)


# -------------------------------------------------------------------
# as_dense_matrix
# -------------------------------------------------------------------


def test_as_dense_matrix_copies_dense_input() -> None:
    """The returned array never aliases the input."""
    a = np.eye(3)
    out = as_dense_matrix(a, name="M", shape=(3, 3))

    out[0, 0] = 5.0
    assert a[0, 0] == pytest.approx(1.0)


def test_as_dense_matrix_sparse_input() -> None:
    """Sparse matrices are densified."""
    a = np.array([[1.0, 0.0], [2.0, 3.0]])
    out = as_dense_matrix(csr_matrix(a), name="G")

    assert isinstance(out, np.ndarray)
    np.testing.assert_array_equal(out, a)


def test_as_dense_matrix_empty_block() -> None:
    """An empty block is reshaped to the requested (n, 0) shape."""
    out = as_dense_matrix([], name="G₁ᵀ", shape=(3, 0))
    assert out.shape == (3, 0)


def test_as_dense_matrix_shape_mismatch() -> None:
    """A wrong shape raises DimensionMismatchError."""
    with pytest.raises(DimensionMismatchError, match="M") as excinfo:
        as_dense_matrix(np.eye(2), name="M", shape=(3, 3))
    assert excinfo.value.code == ErrorCode.DIMENSION_MISMATCH


def test_as_dense_matrix_rejects_1d() -> None:
    """Non-empty 1D input is not a matrix."""
    with pytest.raises(ValueError, match="must be 2D"):
        as_dense_matrix(np.ones(3), name="M")


# -------------------------------------------------------------------
# factorize_dense / dense_inverse
# -------------------------------------------------------------------


def test_factorize_dense_solves_vector_and_matrix_rhs() -> None:
    """One factorization serves 1D and 2D right-hand sides."""
    rng = np.random.default_rng(3)
    a = rng.standard_normal((4, 4)) + 4.0 * np.eye(4)
    fac = factorize_dense(a, name="A")

    assert isinstance(fac, DenseFactorization)
    assert fac.shape == (4, 4)

    b = rng.standard_normal(4)
    np.testing.assert_allclose(a @ fac.solve(b), b, atol=1e-12)

    bb = rng.standard_normal((4, 3))
    np.testing.assert_allclose(a @ fac.solve(bb), bb, atol=1e-12)


def test_dense_inverse_matches_numpy() -> None:
    """dense_inverse agrees with numpy.linalg.inv."""
    rng = np.random.default_rng(4)
    a = rng.standard_normal((5, 5)) + 5.0 * np.eye(5)

    np.testing.assert_allclose(dense_inverse(a), np.linalg.inv(a), atol=1e-12)


def test_factorize_dense_rejects_singular() -> None:
    """Rank-deficient input raises SingularMatrixError naming the matrix."""
    a = np.array([[1.0, 2.0], [2.0, 4.0]])

    with pytest.raises(SingularMatrixError, match="Sbmat") as excinfo:
        factorize_dense(a, name="Sbmat")

    assert excinfo.value.name == "Sbmat"
    assert excinfo.value.code == ErrorCode.SINGULAR_MATRIX
    assert isinstance(excinfo.value, np.linalg.LinAlgError)


def test_factorize_dense_rejects_zero_matrix() -> None:
    """The zero matrix is singular."""
    with pytest.raises(SingularMatrixError):
        factorize_dense(np.zeros((3, 3)))


def test_factorize_dense_rejects_non_finite() -> None:
    """NaN/inf entries cannot be factorized."""
    a = np.eye(2)
    a[1, 1] = np.inf
    with pytest.raises(SingularMatrixError, match="non-finite"):
        factorize_dense(a)


def test_factorize_dense_rejects_non_square() -> None:
    """Non-square input raises ValueError."""
    with pytest.raises(ValueError, match="square"):
        factorize_dense(np.ones((2, 3)))


def test_factorize_dense_empty_matrix() -> None:
    """A 0x0 matrix factorizes and solves trivially."""
    fac = factorize_dense(np.zeros((0, 0)))

    assert fac.size == 0
    assert fac.solve(np.zeros(0)).shape == (0,)
    assert fac.inverse().shape == (0, 0)


def test_factorization_solve_rhs_size_mismatch() -> None:
    """A right-hand side of the wrong length is reported."""
    fac = factorize_dense(np.eye(3), name="A")
    with pytest.raises(DimensionMismatchError, match="right-hand side for A"):
        fac.solve(np.ones(2))
