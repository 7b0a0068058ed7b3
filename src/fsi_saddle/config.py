# fsi_saddle/src/fsi_saddle/config.py
"""Configuration models for the saddle-point systems.

This module defines the pydantic-facing configuration object accepted by
SaddleSystem2d and translates it into the plain options consumed by the
numerical code (FluidSolverOptions).

Notes:
    - Unknown fields are rejected (`extra="forbid"`); a typo in a tolerance
      name should fail loudly rather than silently fall back to a default.
    - The fictitious mass matrix may be any dense or sparse matrix-like; it
      is densified and shape-checked by `resolve_mass_fictitious`.
    - ρb = 0 makes the default fictitious mass M/ρb undefined, so an explicit
      matrix is required in that case.
"""

from __future__ import annotations

import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .errors import ErrorCode, SaddleSystemConfigError, raise_invalid_config
from .matrix_ops import DenseMatrix, as_dense_matrix

_MF_REQUIRED_ERROR = (
    "rho_b == 0 requires an explicit mass_fictitious matrix, since the default "
    "M / rho_b is undefined."
)
_MF_IGNORED_WARNING = (
    "mass_fictitious is ignored when rho_b != 0; the body block uses "
    "(1 - 1/rho_b) * M instead."
)


@dataclass(frozen=True, slots=True)
class FluidSolverOptions:
    """Options for the fluid saddle-point sub-solver.

    Attributes:
        tol: Relative tolerance of iterative solves.
        is_symmetric: Whether the fluid Schur complement is symmetric.
        is_posdef: Whether the fluid Schur complement is (negative) definite.
        store: Materialize and factorize the Schur complement once (direct
            solves) instead of solving iteratively.
        max_iter: Iteration cap for iterative solves (None: solver default).
    """

    tol: float = 1e-3
    is_symmetric: bool = False
    is_posdef: bool = True
    store: bool = True
    max_iter: int | None = None


class SaddleSystemConfig(BaseModel):
    """Configuration schema for SaddleSystem2d.

    Attributes:
        tol: Tolerance of the fluid sub-solver.
        rho_b: Body-to-fluid density ratio ρb used by the added-mass term.
        mass_fictitious: Fictitious mass matrix Mf (dense or sparse); only used
            when rho_b == 0.
        is_symmetric: Forwarded to the fluid sub-solver.
        is_posdef: Forwarded to the fluid sub-solver.
        store: Forwarded to the fluid sub-solver.
        max_iter: Forwarded to the fluid sub-solver.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    tol: float = Field(default=1e-3, gt=0.0)
    rho_b: float = Field(default=1.0, allow_inf_nan=False)
    mass_fictitious: Any = Field(default=None)

    # Fluid sub-solver controls
    is_symmetric: bool = Field(default=False)
    is_posdef: bool = Field(default=True)
    store: bool = Field(default=True)
    max_iter: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_mass_ratio(self) -> SaddleSystemConfig:
        if self.rho_b == 0.0 and self.mass_fictitious is None:
            raise ValueError(_MF_REQUIRED_ERROR)
        return self

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> SaddleSystemConfig:
        """
        Build a config from a plain mapping (e.g. a parsed YAML block).

        Args:
            mapping: Configuration values keyed by field name.

        Raises:
            SaddleSystemConfigError: If validation fails.

        Returns:
            Validated SaddleSystemConfig.
        """
        try:
            return cls.model_validate(dict(mapping))
        except ValidationError as exc:
            msg = f"Invalid saddle system configuration. Detail: {exc}"
            raise SaddleSystemConfigError(msg, code=ErrorCode.INVALID_CONFIG) from exc

    def fluid_options(self) -> FluidSolverOptions:
        """Convert the fluid-related fields to FluidSolverOptions.

        Returns:
            Fully constructed FluidSolverOptions instance.
        """
        return FluidSolverOptions(
            tol=self.tol,
            is_symmetric=self.is_symmetric,
            is_posdef=self.is_posdef,
            store=self.store,
            max_iter=self.max_iter,
        )

    def resolve_mass_fictitious(self, mass: DenseMatrix) -> DenseMatrix:
        """
        Return the fictitious mass matrix Mf for the inertia matrix M.

        Args:
            mass: Dense body inertia matrix M.

        Returns:
            The configured Mf (validated against the shape of M), or M / ρb.
        """
        if self.mass_fictitious is None:
            if self.rho_b == 0.0:
                raise_invalid_config(detail=_MF_REQUIRED_ERROR)
            return mass / self.rho_b

        if self.rho_b != 0.0:
            warnings.warn(_MF_IGNORED_WARNING, RuntimeWarning, stacklevel=3)
        return as_dense_matrix(
            self.mass_fictitious, name="mass_fictitious", shape=mass.shape
        )
