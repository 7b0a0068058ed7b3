"""Uniform linear-operator wrappers for physical operators.

Physical operators handed to the saddle systems come in two flavours:

- function-like: ``op(x)`` returns the image of ``x`` (plain functions,
  closures, ``scipy.sparse.linalg.LinearOperator``), or
- matrix-like: ``op @ x`` returns the image of the raveled ``x`` (dense
  ndarrays, scipy sparse matrices).

``as_operator`` inspects an operator once and returns a wrapper exposing a
single call signature, so the solve loops never re-inspect operator types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, cast

import numpy as np

from .errors import raise_dimension_mismatch, raise_unsupported_operator

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray


class LinearMap(Protocol):
    """Minimal interface of an adapted operator."""

    name: str

    def __call__(self, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply the operator to x."""
        ...


@dataclass(frozen=True, slots=True)
class CallableOperator:
    """Operator backed by a function-like object.

    Attributes:
        func: Callable evaluating the operator.
        name: Role of the operator in the block system.
    """

    func: Callable[[NDArray[np.floating]], NDArray[np.floating]]
    name: str

    def __call__(self, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply the operator to x."""
        return np.asarray(self.func(x))


@dataclass(frozen=True, slots=True)
class MatrixOperator:
    """Operator backed by a matrix-like object.

    The input is raveled before the product and the result is reshaped to
    ``out_shape``, so a matrix can act on multi-dimensional fields.

    Attributes:
        matrix: Object supporting ``matrix @ vector``.
        name: Role of the operator in the block system.
        out_shape: Shape of the operator's image.
    """

    matrix: object
    name: str
    out_shape: tuple[int, ...]

    def __call__(self, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply the operator to x."""
        y = np.asarray(self.matrix @ np.asarray(x).ravel())  # type: ignore[operator]
        n_out = int(np.prod(self.out_shape))
        if y.size != n_out:
            raise_dimension_mismatch(
                name=f"{self.name} output", expected=n_out, got=y.size
            )
        return y.reshape(self.out_shape)


@dataclass(frozen=True, slots=True)
class ComposedOperator:
    """Composition ``outer(inner(x))`` of two adapted operators."""

    outer: LinearMap
    inner: LinearMap
    name: str

    def __call__(self, x: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply the composed operator to x."""
        return self.outer(self.inner(x))


def _supports_matmul(op: object) -> bool:
    return hasattr(op, "__matmul__")


def _check_matrix_shape(
    op: object, *, name: str, out_shape: tuple[int, ...], in_size: int | None
) -> None:
    shape = getattr(op, "shape", None)
    if shape is None or len(shape) != 2:
        return
    n_out = int(np.prod(out_shape))
    n_in = shape[1] if in_size is None else int(in_size)
    if tuple(shape) != (n_out, n_in):
        raise_dimension_mismatch(name=name, expected=(n_out, n_in), got=tuple(shape))


def as_operator(
    op: object,
    *,
    name: str,
    out_shape: tuple[int, ...],
    in_size: int | None = None,
) -> LinearMap:
    """
    Adapt a physical operator to the uniform LinearMap interface.

    Selection order: callables are used unchanged; otherwise objects
    supporting ``@`` are wrapped as ``x -> op @ x``. Matrix-likes exposing a
    2D ``shape`` are checked against ``(prod(out_shape), in_size)``.

    Args:
        op: Function-like or matrix-like operator.
        name: Role of the operator (e.g. "A⁻¹"), used in error messages.
        out_shape: Shape of the operator's image; used to reshape matrix
            products.
        in_size: Size of the operator's domain, if known.

    Raises:
        DimensionMismatchError: If a matrix-like has the wrong shape.

    Returns:
        Adapted operator.
    """
    if isinstance(op, (CallableOperator, MatrixOperator, ComposedOperator)):
        return op
    if callable(op):
        return CallableOperator(
            func=cast("Callable[[NDArray[np.floating]], NDArray[np.floating]]", op),
            name=name,
        )
    if _supports_matmul(op):
        _check_matrix_shape(op, name=name, out_shape=out_shape, in_size=in_size)
        return MatrixOperator(matrix=op, name=name, out_shape=tuple(out_shape))

    raise_unsupported_operator(role=name, operator=op)


def compose(
    outer: LinearMap, inner: LinearMap, *, name: str | None = None
) -> LinearMap:
    """
    Compose two adapted operators.

    Args:
        outer: Operator applied last.
        inner: Operator applied first.
        name: Role of the composition; defaults to the concatenated names.

    Returns:
        Operator evaluating ``outer(inner(x))``.
    """
    return ComposedOperator(
        outer=outer,
        inner=inner,
        name=name if name is not None else f"{outer.name}{inner.name}",
    )
