# fsi_saddle/src/fsi_saddle/errors.py
"""Error types for fsi_saddle.

Design intent:
- every failure raised by this package derives from SaddleSystemError, so
  callers can catch solver-layer failures explicitly;
- each error also derives from the builtin exception it specializes
  (TypeError, ValueError, LinAlgError, RuntimeError), so generic handlers
  keep working;
- an optional ErrorCode classifies the failure for programmatic handling.
"""

from __future__ import annotations

from enum import StrEnum
from typing import NoReturn

import numpy as np


class ErrorCode(StrEnum):
    """Machine-readable classification for fsi_saddle failures."""

    UNSUPPORTED_OPERATOR = "unsupported_operator"
    SINGULAR_MATRIX = "singular_matrix"
    DIMENSION_MISMATCH = "dimension_mismatch"
    INVALID_CONFIG = "invalid_config"
    FLUID_SOLVER_CONVERGENCE = "fluid_solver_convergence"
    INVALID_DTYPE = "invalid_dtype"


class SaddleSystemError(Exception):
    """Base exception for fsi_saddle errors."""

    def __init__(self, message: str, *, code: ErrorCode | None = None) -> None:
        """
        Initialize a SaddleSystemError.

        Args:
            message: Human-readable error message.
            code: Optional machine-readable error code classifying the error.
        """
        super().__init__(message)
        self.code: ErrorCode | None = code


class UnsupportedOperatorError(SaddleSystemError, TypeError):
    """Raised when an operator supports neither calling nor matrix products."""

    def __init__(self, message: str, *, role: str) -> None:
        super().__init__(message, code=ErrorCode.UNSUPPORTED_OPERATOR)
        self.role = role


class SingularMatrixError(SaddleSystemError, np.linalg.LinAlgError):
    """Raised when a matrix that must be factorized is singular."""

    def __init__(self, message: str, *, name: str) -> None:
        super().__init__(message, code=ErrorCode.SINGULAR_MATRIX)
        self.name = name


class DimensionMismatchError(SaddleSystemError, ValueError):
    """Raised when an array or operator output has an unexpected size."""

    def __init__(
        self, message: str, *, name: str, expected: object, got: object
    ) -> None:
        super().__init__(message, code=ErrorCode.DIMENSION_MISMATCH)
        self.name = name
        self.expected = expected
        self.got = got


class InvalidDtypeError(SaddleSystemError, TypeError):
    """Raised when an array written in place cannot hold floating values."""

    def __init__(self, message: str, *, name: str, dtype: object) -> None:
        super().__init__(message, code=ErrorCode.INVALID_DTYPE)
        self.name = name
        self.dtype = dtype


class SaddleSystemConfigError(SaddleSystemError, ValueError):
    """Raised when the saddle-system configuration is invalid."""


class FluidSolverConvergenceError(SaddleSystemError, RuntimeError):
    """Raised when the iterative fluid sub-solver fails to converge."""


def raise_unsupported_operator(*, role: str, operator: object) -> NoReturn:
    """
    Raise a standardized UnsupportedOperatorError.

    Args:
        role: Role of the operator in the block system (e.g. "A⁻¹").
        operator: The offending operator object.

    Raises:
        UnsupportedOperatorError: Always.
    """
    msg = (
        f"No valid operator for {role} supplied: objects of type "
        f"{type(operator).__name__} are neither callable nor support matrix "
        "multiplication (@)."
    )
    raise UnsupportedOperatorError(msg, role=role)


def raise_dimension_mismatch(*, name: str, expected: object, got: object) -> NoReturn:
    """
    Raise a standardized DimensionMismatchError.

    Args:
        name: Name of the array or operator output with the wrong size.
        expected: Expected shape or size.
        got: Observed shape or size.

    Raises:
        DimensionMismatchError: Always.
    """
    msg = f"{name} has an invalid shape/size. Expected {expected}. Got: {got!r}."
    raise DimensionMismatchError(msg, name=name, expected=expected, got=got)


def raise_invalid_config(*, detail: str) -> NoReturn:
    """
    Raise a standardized SaddleSystemConfigError.

    Args:
        detail: Description of the configuration issue.

    Raises:
        SaddleSystemConfigError: Always.
    """
    msg = f"Invalid saddle system configuration. Detail: {detail}"
    raise SaddleSystemConfigError(msg, code=ErrorCode.INVALID_CONFIG)


def raise_invalid_dtype(*, name: str, dtype: object) -> NoReturn:
    """
    Raise a standardized InvalidDtypeError.

    Args:
        name: Name of the array with the unusable dtype.
        dtype: Observed dtype.

    Raises:
        InvalidDtypeError: Always.
    """
    msg = (
        f"{name} must have a floating dtype to be updated in place. "
        f"Got: {dtype}."
    )
    raise InvalidDtypeError(msg, name=name, dtype=dtype)
