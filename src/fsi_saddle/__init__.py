"""fsi_saddle fluid-structure saddle-point solver package."""

from __future__ import annotations

from .config import FluidSolverOptions, SaddleSystemConfig
from .errors import (
    DimensionMismatchError,
    ErrorCode,
    FluidSolverConvergenceError,
    InvalidDtypeError,
    SaddleSystemConfigError,
    SaddleSystemError,
    SingularMatrixError,
    UnsupportedOperatorError,
)
from .fluid_solver import FluidSaddleSystem, FluidSubSolver
from .matrix_ops import (
    DenseFactorization,
    as_dense_matrix,
    dense_inverse,
    factorize_dense,
    materialize_dense,
)
from .operators import (
    CallableOperator,
    ComposedOperator,
    LinearMap,
    MatrixOperator,
    as_operator,
    compose,
)
from .saddle_system import SaddleSystem2d, SolveWorkspace

__all__ = [
    "CallableOperator",
    "ComposedOperator",
    "DenseFactorization",
    "DimensionMismatchError",
    "ErrorCode",
    "FluidSaddleSystem",
    "FluidSolverConvergenceError",
    "FluidSolverOptions",
    "FluidSubSolver",
    "InvalidDtypeError",
    "LinearMap",
    "MatrixOperator",
    "SaddleSystem2d",
    "SaddleSystemConfig",
    "SaddleSystemConfigError",
    "SaddleSystemError",
    "SingularMatrixError",
    "SolveWorkspace",
    "UnsupportedOperatorError",
    "as_dense_matrix",
    "as_operator",
    "compose",
    "dense_inverse",
    "factorize_dense",
    "materialize_dense",
]

__version__ = "0.1.0"
