"""Fluid-only saddle-point sub-solver.

Solves the 2-block fluid system

    [ A   B₁ᵀ ] [c]   [rc]
    [ B₂  0   ] [f] = [rf]

given the operators A⁻¹ (state -> state), B₁ᵀ (force -> state) and
B₂ (state -> force). The force is eliminated through the fluid Schur
complement S = -B₂ A⁻¹ B₁ᵀ (an Nf x Nf operator):

    c* = A⁻¹ rc
    f  = S⁻¹ (rf - B₂ c*)
    c  = c* - A⁻¹ B₁ᵀ f

With ``store=True`` S is materialized once by unit-vector probing and
LU-factorized; every solve is then direct. With ``store=False`` S is only
applied implicitly and each solve runs a Krylov iteration (CG for symmetric
definite S, GMRES otherwise) at relative tolerance ``tol``.

Any object following the FluidSubSolver protocol can replace
FluidSaddleSystem inside SaddleSystem2d.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import numpy as np
from scipy.sparse.linalg import LinearOperator, cg, gmres

from .config import FluidSolverOptions
from .errors import ErrorCode, FluidSolverConvergenceError, raise_dimension_mismatch
from .matrix_ops import DenseFactorization, factorize_dense, materialize_dense
from .operators import as_operator, compose

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from .matrix_ops import DenseMatrix
    from .operators import LinearMap

    FloatArray = NDArray[np.floating]


_CONVERGENCE_ERROR_MSG = (
    "Fluid Schur-complement solve did not converge "
    "({method}, tol={tol:g}, info={info})."
)
_BREAKDOWN_ERROR_MSG = (
    "Fluid Schur-complement solve broke down ({method}, info={info})."
)


class FluidSubSolver(Protocol):
    """Interface SaddleSystem2d requires from a fluid sub-solver."""

    def solve(
        self, rc: FloatArray, rf: FloatArray
    ) -> tuple[FloatArray, FloatArray]:
        """Solve the fluid saddle system, returning new (c, f) arrays."""
        ...

    def schur_complement_inverse_matrix(self) -> DenseMatrix:
        """Return the negated dense inverse of the fluid Schur complement."""
        ...


class FluidSaddleSystem:
    """Default fluid sub-solver based on the Schur complement of the force."""

    def __init__(
        self,
        state: tuple[FloatArray, FloatArray],
        operators: tuple[object, object, object],
        options: FluidSolverOptions | None = None,
    ) -> None:
        """Initialize FluidSaddleSystem.

        Args:
            state: Templates (c, f) for the fluid state and fluid force. Only
                their shapes and dtypes are used.
            operators: (A⁻¹, B₁ᵀ, B₂), each function-like or matrix-like.
            options: Solver options; defaults to FluidSolverOptions().
        """
        c, f = state
        self.options = options if options is not None else FluidSolverOptions()
        self.state_shape: tuple[int, ...] = np.shape(c)
        self.force_shape: tuple[int, ...] = np.shape(f)
        self.dtype = np.result_type(np.asarray(c).dtype, np.asarray(f).dtype, float)
        self.n_constraints = int(np.size(f))

        a_inv, b1t, b2 = operators
        n_state = int(np.size(c))
        self.a_inv: LinearMap = as_operator(
            a_inv, name="A⁻¹", out_shape=self.state_shape, in_size=n_state
        )
        self.b1t: LinearMap = as_operator(
            b1t, name="B₁ᵀ", out_shape=self.state_shape, in_size=self.n_constraints
        )
        self.b2: LinearMap = as_operator(
            b2, name="B₂", out_shape=self.force_shape, in_size=n_state
        )
        self.a_inv_b1t: LinearMap = compose(self.a_inv, self.b1t, name="A⁻¹B₁ᵀ")

        self._schur_factor: DenseFactorization | None = None
        if self.options.store:
            self._schur_factor = factorize_dense(
                self.schur_matrix(), name="fluid Schur complement"
            )

    # ------------------------------------------------------------------
    # Schur complement
    # ------------------------------------------------------------------

    def apply_schur(self, f: FloatArray) -> FloatArray:
        """Apply S = -B₂ A⁻¹ B₁ᵀ to a force vector, returned raveled.

        Args:
            f: Fluid force, raveled or in force shape.

        Returns:
            1D array of length Nf.
        """
        f_shaped = np.asarray(f, dtype=self.dtype).reshape(self.force_shape)
        out = -np.asarray(self.b2(self.a_inv_b1t(f_shaped)), dtype=self.dtype)
        if out.size != self.n_constraints:
            raise_dimension_mismatch(
                name="B₂ output", expected=self.n_constraints, got=out.shape
            )
        return out.ravel()

    def schur_matrix(self) -> DenseMatrix:
        """Return the dense fluid Schur complement S (materialized by probing)."""
        return materialize_dense(
            self.apply_schur,
            self.n_constraints,
            dtype=self.dtype,
            name="fluid Schur complement",
        )

    def schur_complement_inverse_matrix(self) -> DenseMatrix:
        """Return -S⁻¹ = (B₂ A⁻¹ B₁ᵀ)⁻¹ as a dense matrix.

        Raises:
            SingularMatrixError: If S is singular.

        Returns:
            Dense (Nf, Nf) array.
        """
        factor = self._schur_factor
        if factor is None:
            factor = factorize_dense(self.schur_matrix(), name="fluid Schur complement")
        return -factor.inverse()

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def _solve_schur(self, rhs: FloatArray) -> FloatArray:
        if self._schur_factor is not None:
            return self._schur_factor.solve(rhs)

        n = self.n_constraints
        if n == 0:
            return np.zeros(0, dtype=self.dtype)

        opts = self.options
        if opts.is_symmetric and opts.is_posdef:
            # S is negative definite when B₂A⁻¹B₁ᵀ is positive definite
            method = "cg"
            neg_op = LinearOperator(
                shape=(n, n), dtype=self.dtype, matvec=lambda v: -self.apply_schur(v)
            )
            sol, info = cg(neg_op, -rhs, rtol=opts.tol, maxiter=opts.max_iter)
        else:
            method = "gmres"
            schur_op = LinearOperator(
                shape=(n, n), dtype=self.dtype, matvec=self.apply_schur
            )
            sol, info = gmres(schur_op, rhs, rtol=opts.tol, maxiter=opts.max_iter)

        if info > 0:
            msg = _CONVERGENCE_ERROR_MSG.format(method=method, tol=opts.tol, info=info)
            raise FluidSolverConvergenceError(
                msg, code=ErrorCode.FLUID_SOLVER_CONVERGENCE
            )
        if info < 0:
            msg = _BREAKDOWN_ERROR_MSG.format(method=method, info=info)
            raise FluidSolverConvergenceError(
                msg, code=ErrorCode.FLUID_SOLVER_CONVERGENCE
            )
        return np.asarray(sol, dtype=self.dtype)

    def solve(self, rc: FloatArray, rf: FloatArray) -> tuple[FloatArray, FloatArray]:
        """
        Solve the fluid saddle system for right-hand side (rc, rf).

        Args:
            rc: Fluid state right-hand side (state shape).
            rf: Fluid force right-hand side (force shape).

        Returns:
            New arrays (c, f) in state and force shapes.
        """
        rc_arr = np.asarray(rc, dtype=self.dtype)
        rf_arr = np.asarray(rf, dtype=self.dtype)
        if rc_arr.shape != self.state_shape:
            raise_dimension_mismatch(
                name="rc", expected=self.state_shape, got=rc_arr.shape
            )
        if rf_arr.shape != self.force_shape:
            raise_dimension_mismatch(
                name="rf", expected=self.force_shape, got=rf_arr.shape
            )

        c_star = np.asarray(self.a_inv(rc_arr), dtype=self.dtype).reshape(
            self.state_shape
        )
        schur_rhs = rf_arr.ravel() - np.asarray(self.b2(c_star)).ravel()
        f = self._solve_schur(schur_rhs).reshape(self.force_shape)
        c = c_star - np.asarray(self.a_inv_b1t(f)).reshape(self.state_shape)
        return c, f

    def __repr__(self) -> str:
        mode = "direct" if self.options.store else "iterative"
        return (
            f"FluidSaddleSystem(n_constraints={self.n_constraints}, "
            f"state_shape={self.state_shape}, mode={mode!r})"
        )
