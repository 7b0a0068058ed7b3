"""
Dense matrix utilities for the saddle-point solvers.

This module provides the small dense linear-algebra layer used by the
saddle-point systems:

- Materialization of implicitly defined linear maps as dense matrices via
  unit-vector probing.
- Conversion of dense/sparse matrix-likes into validated dense arrays.
- Immutable LU factorizations that are built once and reused for every
  subsequent solve, with explicit singularity detection.

Design notes:
    * CPU-first: dense paths rely on NumPy/SciPy BLAS/LAPACK.
    * Factorizations are owned by the caller (no global cache): the saddle
      systems keep their factorizations for their whole lifetime, so the
      matrices never have to be refactorized.
    * Singularity: LAPACK only warns for exactly zero pivots. We treat any
      pivot below ``n * eps * max|pivot|`` as singular and raise
      SingularMatrixError instead.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeAlias, cast

import numpy as np
from numpy.typing import DTypeLike, NDArray
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve
from scipy.sparse import issparse

from .errors import SingularMatrixError, raise_dimension_mismatch

if TYPE_CHECKING:
    from collections.abc import Callable


# =============================================================================
# Public types
# =============================================================================

DenseMatrix: TypeAlias = NDArray[np.floating]
LinearFunction: TypeAlias = "Callable[[NDArray[np.floating]], NDArray[np.floating]]"


# =============================================================================
# Error message constants
# =============================================================================

_SQUARE_ERROR = "{name} must be square; got shape {shape}"
_NDIM_ERROR = "{name} must be 2D; got ndim={ndim}"
_SINGULAR_ERROR = (
    "{name} is singular to working precision "
    "(smallest pivot {pivot_min:.3e}, largest pivot {pivot_max:.3e})."
)
_PROBE_DIM_ERROR = "dim must be a non-negative integer; got {dim}"


# =============================================================================
# Dense materialization of linear maps
# =============================================================================


def materialize_dense(
    linear_op: LinearFunction,
    dim: int,
    *,
    out_size: int | None = None,
    dtype: DTypeLike = np.float64,
    name: str = "linear operator",
) -> DenseMatrix:
    """
    Extract the dense matrix of a linear map by unit-vector probing.

    Column ``i`` of the result is ``linear_op(e_i)`` (raveled), where ``e_i``
    is the i-th unit vector of length ``dim``. This costs ``dim`` operator
    applications and is meant to run once, outside of time stepping loops.

    Args:
        linear_op: Linear map taking a 1D array of length ``dim``.
        dim: Dimension of the operator's domain.
        out_size: Size of the operator's codomain (defaults to ``dim``).
        dtype: Floating dtype of the probe vectors and of the result.
        name: Name used in error messages.

    Raises:
        ValueError: If dim is negative.

    Returns:
        Dense array of shape (out_size, dim).
    """
    if dim < 0:
        raise ValueError(_PROBE_DIM_ERROR.format(dim=dim))

    n_out = dim if out_size is None else int(out_size)
    dtype_obj = np.dtype(dtype)
    matrix = np.zeros((n_out, dim), dtype=dtype_obj)
    unit = np.zeros(dim, dtype=dtype_obj)

    for i in range(dim):
        unit[i] = 1.0
        column = np.asarray(linear_op(unit), dtype=dtype_obj).ravel()
        if column.size != n_out:
            raise_dimension_mismatch(
                name=f"{name} output", expected=n_out, got=column.size
            )
        matrix[:, i] = column
        unit[i] = 0.0

    return matrix


def as_dense_matrix(
    op: object,
    *,
    name: str,
    shape: tuple[int, int] | None = None,
    dtype: DTypeLike = np.float64,
) -> DenseMatrix:
    """
    Convert a dense or sparse matrix-like into a dense 2D array.

    Args:
        op: Dense ndarray, nested sequence or scipy sparse matrix.
        name: Name used in error messages.
        shape: Expected shape; validated if given.
        dtype: Floating dtype of the result.

    Raises:
        ValueError: If op is not 2D.

    Returns:
        A new dense 2D array (never a view of the input).
    """
    if issparse(op):
        arr = np.array(op.toarray(), dtype=dtype)  # type: ignore[attr-defined]
    else:
        arr = np.array(op, dtype=dtype)

    # Empty blocks (e.g. a joint-less body) may arrive as 1D empties
    if arr.size == 0 and shape is not None:
        arr = arr.reshape(shape)

    if arr.ndim != 2:
        raise ValueError(_NDIM_ERROR.format(name=name, ndim=arr.ndim))
    if shape is not None and arr.shape != tuple(shape):
        raise_dimension_mismatch(name=name, expected=tuple(shape), got=arr.shape)
    return cast("DenseMatrix", arr)


# =============================================================================
# Cached dense factorizations
# =============================================================================


@dataclass(frozen=True, slots=True)
class DenseFactorization:
    """LU factorization of a square dense matrix.

    Attributes:
        name: Name of the factorized matrix (for error messages).
        lu: Combined L/U factors as returned by scipy.linalg.lu_factor.
        piv: Pivot indices as returned by scipy.linalg.lu_factor.
    """

    name: str
    lu: DenseMatrix
    piv: NDArray[np.integer]

    @property
    def size(self) -> int:
        """Return the number of rows (and columns) of the factorized matrix."""
        return int(self.lu.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """Return the shape of the factorized matrix."""
        return (self.size, self.size)

    def solve(self, rhs: NDArray[np.floating]) -> NDArray[np.floating]:
        """
        Solve ``matrix @ x = rhs`` with the stored factors.

        Args:
            rhs: 1D array of length n or 2D array of shape (n, k).

        Returns:
            Solution with the same shape as rhs.
        """
        rhs_arr = np.asarray(rhs, dtype=self.lu.dtype)
        if rhs_arr.shape[0] != self.size:
            raise_dimension_mismatch(
                name=f"right-hand side for {self.name}",
                expected=self.size,
                got=rhs_arr.shape,
            )
        if self.size == 0:
            return np.zeros_like(rhs_arr)
        return cast("NDArray[np.floating]", lu_solve((self.lu, self.piv), rhs_arr))

    def inverse(self) -> DenseMatrix:
        """Return the dense inverse of the factorized matrix."""
        return self.solve(np.eye(self.size, dtype=self.lu.dtype))


def _validate_square(matrix: DenseMatrix, name: str) -> int:
    if matrix.ndim != 2:
        raise ValueError(_NDIM_ERROR.format(name=name, ndim=matrix.ndim))
    if matrix.shape[0] != matrix.shape[1]:
        raise ValueError(_SQUARE_ERROR.format(name=name, shape=matrix.shape))
    return int(matrix.shape[0])


def factorize_dense(matrix: DenseMatrix, *, name: str = "matrix") -> DenseFactorization:
    """
    LU-factorize a square dense matrix, rejecting singular input.

    Args:
        matrix: Square dense matrix.
        name: Name used in error messages.

    Raises:
        SingularMatrixError: If the matrix is singular to working precision.

    Returns:
        DenseFactorization usable for repeated solves.
    """
    arr = np.asarray(matrix, dtype=np.result_type(matrix, np.float64))
    n = _validate_square(arr, name)

    if n == 0:
        return DenseFactorization(
            name=name,
            lu=np.zeros((0, 0), dtype=arr.dtype),
            piv=np.zeros(0, dtype=np.int32),
        )

    if not np.all(np.isfinite(arr)):
        msg = f"{name} contains non-finite entries and cannot be factorized."
        raise SingularMatrixError(msg, name=name)

    # Zero pivots are checked explicitly below
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", LinAlgWarning)
        lu, piv = lu_factor(arr)

    pivots = np.abs(np.diag(lu))
    pivot_max = float(pivots.max())
    pivot_min = float(pivots.min())
    if pivot_max == 0.0 or pivot_min <= n * np.finfo(arr.dtype).eps * pivot_max:
        msg = _SINGULAR_ERROR.format(
            name=name, pivot_min=pivot_min, pivot_max=pivot_max
        )
        raise SingularMatrixError(msg, name=name)

    return DenseFactorization(name=name, lu=lu, piv=piv)


def dense_inverse(matrix: DenseMatrix, *, name: str = "matrix") -> DenseMatrix:
    """
    Compute the dense inverse of a square matrix.

    Args:
        matrix: Square dense matrix.
        name: Name used in error messages.

    Returns:
        Dense inverse of matrix.
    """
    return factorize_dense(matrix, name=name).inverse()
