# fsi_saddle/src/fsi_saddle/saddle_system.py
"""Block solver for fluid / rigid-body saddle-point systems.

SaddleSystem2d solves, at every time step, the 4-block system

    [ A    B₁ᵀ   0    0   ] [ċ]   [rċ]
    [ B₂   0    -T₂   0   ] [f] = [rf]
    [ 0   -T₁ᵀ   Mc   G₁ᵀ ] [u̇]   [ru̇]
    [ 0    0     G₂   0   ] [λ]   [rλ]

coupling a fluid saddle system (state ċ, constraint force f) to a body/joint
saddle system (body velocity u̇, joint force λ) through the FSI operators T₁ᵀ
and T₂. Mc is the added-mass corrected inertia, (1 - 1/ρb) M for ρb != 0 and
-Mf for ρb == 0.

Construction (once per operator configuration):
    1. Build the fluid sub-solver and Sf⁻¹ = (B₂ A⁻¹ B₁ᵀ)⁻¹.
    2. Probe T₁ᵀ Sf⁻¹ T₂ column by column into a dense Nu̇ x Nu̇ matrix.
    3. Assemble the dense body block Sbmat = [[T₁ᵀSf⁻¹T₂ + Mc, G₁ᵀ], [G₂, 0]]
       and LU-factorize it.
    4. Compose A⁻¹B₁ᵀ for the fluid correction.

Solve (every call):
    1. Fluid solve with a stationary body.
    2. Body right-hand side corrected by T₁ᵀ f.
    3. Dense body/joint solve against Sbmat.
    4. Fluid state and force corrected for the body motion.

Performance hygiene:
    - Sbmat and Sf⁻¹ are computed once; Sbmat's LU factors are reused.
    - All intermediate arrays live in a preallocated SolveWorkspace.
    - Instances are not safe for concurrent solves; build one per caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np

from .config import SaddleSystemConfig
from .errors import raise_dimension_mismatch, raise_invalid_dtype
from .fluid_solver import FluidSaddleSystem
from .matrix_ops import as_dense_matrix, factorize_dense, materialize_dense
from .operators import as_operator, compose

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from .fluid_solver import FluidSubSolver
    from .matrix_ops import DenseFactorization, DenseMatrix
    from .operators import LinearMap

    FloatArray = NDArray[np.floating]

StateTuple: TypeAlias = (
    "tuple[NDArray[np.floating], NDArray[np.floating], "
    "NDArray[np.floating], NDArray[np.floating]]"
)

_STATE_ROLES = ("ċ", "f", "u̇", "λ")
_RHS_ROLES = ("rċ", "rf", "ru̇", "rλ")


# =============================================================================
# Scratch space
# =============================================================================


@dataclass(slots=True)
class SolveWorkspace:
    """Preallocated scratch arrays owned by one SaddleSystem2d.

    Attributes:
        state_buffer: Fluid-state shaped buffer for A⁻¹B₁ᵀ applied to the
            added-mass force.
        force_buffer: Fluid-force shaped buffer for the added-mass force
            Sf⁻¹ T₂ u̇.
        velocity_buffer: Body-velocity shaped buffer for T₁ᵀ f.
        stacked: Length Nu̇ + Nλ vector holding [ru̇; rλ] and then [u̇; λ].
    """

    state_buffer: NDArray[np.floating]
    force_buffer: NDArray[np.floating]
    velocity_buffer: NDArray[np.floating]
    stacked: NDArray[np.floating]

    @classmethod
    def allocate(
        cls,
        state: FloatArray,
        force: FloatArray,
        velocity: FloatArray,
        n_joint: int,
    ) -> SolveWorkspace:
        """Allocate buffers shaped like the given templates.

        Args:
            state: Fluid state template.
            force: Fluid force template.
            velocity: Body velocity template.
            n_joint: Number of joint constraints Nλ.

        Returns:
            A new SolveWorkspace with zeroed buffers.
        """
        return cls(
            state_buffer=np.zeros_like(state, dtype=np.result_type(state, float)),
            force_buffer=np.zeros_like(force, dtype=np.result_type(force, float)),
            velocity_buffer=np.zeros_like(
                velocity, dtype=np.result_type(velocity, float)
            ),
            stacked=np.zeros(np.size(velocity) + n_joint, dtype=np.float64),
        )


# =============================================================================
# SaddleSystem2d
# =============================================================================


class SaddleSystem2d:
    """Schur-complement solver for a fluid saddle system coupled to a 2d body.

    Each operator may act on its data in a function-like way, ``op(x)``, or
    in a matrix-like way, ``op @ x``. M, G₁ᵀ and G₂ are matrices (dense or
    sparse).

    Operators, in the order they are passed:

    - ``A⁻¹``: inverse of the fluid operator A (e.g. diffusion), ċ -> ċ.
    - ``B₁ᵀ``: influence of the fluid constraint force on the fluid state,
      f -> ċ.
    - ``B₂``: influence of the fluid state on the fluid constraints, ċ -> f.
    - ``M``: body chain inertia matrix, Nu̇ x Nu̇.
    - ``G₁ᵀ``: influence of the joint constraint force on the body state,
      Nu̇ x Nλ.
    - ``G₂``: influence of the body state on the joint constraints, Nλ x Nu̇.
    - ``T₁ᵀ``: influence of the fluid constraint force on the body state,
      f -> u̇.
    - ``T₂``: influence of the body state on the fluid constraints, u̇ -> f.
    """

    def __init__(
        self,
        state: StateTuple,
        fluid_ops: tuple[object, object, object],
        body_ops: tuple[object, object, object],
        fsi_ops: tuple[object, object],
        *,
        tol: float = 1e-3,
        rho_b: float = 1.0,
        mass_fictitious: DenseMatrix | None = None,
        fluid_solver: FluidSubSolver | None = None,
        **fluid_options: Any,
    ) -> None:
        """Initialize SaddleSystem2d.

        Args:
            state: Templates (ċ, f, u̇, λ). Only shapes and dtypes are used;
                sizes fix Nf, Nu̇ and Nλ for the lifetime of the instance.
            fluid_ops: (A⁻¹, B₁ᵀ, B₂).
            body_ops: (M, G₁ᵀ, G₂).
            fsi_ops: (T₁ᵀ, T₂).
            tol: Tolerance of the fluid sub-solver.
            rho_b: Body-to-fluid density ratio ρb.
            mass_fictitious: Fictitious mass Mf; required when rho_b == 0,
                ignored (with a RuntimeWarning) otherwise. Defaults to M / ρb.
            fluid_solver: Optional prebuilt fluid sub-solver; by default a
                FluidSaddleSystem is built from fluid_ops.
            **fluid_options: Extra SaddleSystemConfig fields forwarded to the
                default fluid sub-solver (is_symmetric, is_posdef, store,
                max_iter).
        """
        self.config = SaddleSystemConfig.from_mapping({
            "tol": tol,
            "rho_b": rho_b,
            "mass_fictitious": mass_fictitious,
            **fluid_options,
        })

        c, f, u, lam = _as_state_tuple(state, name="state")
        self._shapes: tuple[tuple[int, ...], ...] = tuple(
            x.shape for x in (c, f, u, lam)
        )
        self._types: tuple[str, ...] = tuple(
            _describe_array(x) for x in (c, f, u, lam)
        )
        self.n_fluid_constraints = int(f.size)
        self.n_body_dofs = int(u.size)
        self.n_joint_constraints = int(lam.size)
        n_u = self.n_body_dofs
        n_lam = self.n_joint_constraints

        # Fluid saddle system
        a_inv, b1t, b2 = fluid_ops
        n_f = self.n_fluid_constraints
        a_inv_op = as_operator(a_inv, name="A⁻¹", out_shape=c.shape, in_size=c.size)
        b1t_op = as_operator(b1t, name="B₁ᵀ", out_shape=c.shape, in_size=n_f)
        b2_op = as_operator(b2, name="B₂", out_shape=f.shape, in_size=c.size)
        self.a_inv_b1t: LinearMap = compose(a_inv_op, b1t_op, name="A⁻¹B₁ᵀ")

        if fluid_solver is None:
            fluid_solver = FluidSaddleSystem(
                (c, f), (a_inv_op, b1t_op, b2_op), self.config.fluid_options()
            )
        self.fluid_solver: FluidSubSolver = fluid_solver

        # Body and FSI operators
        mass, g1t, g2 = body_ops
        self.mass: DenseMatrix = as_dense_matrix(mass, name="M", shape=(n_u, n_u))
        self.g1t: DenseMatrix = as_dense_matrix(g1t, name="G₁ᵀ", shape=(n_u, n_lam))
        self.g2: DenseMatrix = as_dense_matrix(g2, name="G₂", shape=(n_lam, n_u))
        self.mass_fictitious: DenseMatrix = self.config.resolve_mass_fictitious(
            self.mass
        )

        t1t, t2 = fsi_ops
        self.t1t: LinearMap = as_operator(
            t1t, name="T₁ᵀ", out_shape=u.shape, in_size=n_f
        )
        self.t2: LinearMap = as_operator(
            t2, name="T₂", out_shape=f.shape, in_size=n_u
        )

        # Fluid Schur complement inverse, already negated by the sub-solver
        sf_inv = np.array(
            self.fluid_solver.schur_complement_inverse_matrix(), dtype=np.float64
        )
        if sf_inv.shape != (self.n_fluid_constraints, self.n_fluid_constraints):
            raise_dimension_mismatch(
                name="Sf⁻¹",
                expected=(self.n_fluid_constraints, self.n_fluid_constraints),
                got=sf_inv.shape,
            )
        sf_inv.flags.writeable = False
        self._sf_inv: DenseMatrix = sf_inv

        # Body + joint Schur complement
        sbmat = self._build_body_matrix()
        sbmat.flags.writeable = False
        self._sbmat: DenseMatrix = sbmat
        self._sb_factor: DenseFactorization = factorize_dense(
            sbmat, name="body/joint Schur complement Sbmat"
        )

        self._work = SolveWorkspace.allocate(c, f, u, n_lam)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _added_mass_force(self, u: FloatArray) -> FloatArray:
        """Return Sf⁻¹ T₂(u̇), raveled."""
        t2u = np.asarray(self.t2(np.reshape(u, self._shapes[2]))).ravel()
        if t2u.size != self.n_fluid_constraints:
            raise_dimension_mismatch(
                name="T₂ output", expected=self.n_fluid_constraints, got=t2u.size
            )
        return self._sf_inv @ t2u

    def _t1t_sfinv_t2(self, u: FloatArray) -> FloatArray:
        """Apply T₁ᵀ Sf⁻¹ T₂ to a body velocity."""
        fb = self._added_mass_force(u).reshape(self._shapes[1])
        return np.asarray(self.t1t(fb)).ravel()

    def _build_body_matrix(self) -> DenseMatrix:
        n_u = self.n_body_dofs
        n_tot = n_u + self.n_joint_constraints

        coupling = materialize_dense(self._t1t_sfinv_t2, n_u, name="T₁ᵀSf⁻¹T₂")

        rho_b = self.config.rho_b
        if rho_b != 0.0:
            coupling += (1.0 - 1.0 / rho_b) * self.mass
        else:
            coupling -= self.mass_fictitious

        sbmat = np.zeros((n_tot, n_tot), dtype=np.float64)
        sbmat[:n_u, :n_u] = coupling
        sbmat[:n_u, n_u:] = self.g1t
        sbmat[n_u:, :n_u] = self.g2
        return sbmat

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def tol(self) -> float:
        """Tolerance of the fluid sub-solver."""
        return self.config.tol

    @property
    def rho_b(self) -> float:
        """Body-to-fluid density ratio."""
        return self.config.rho_b

    @property
    def schur_body_matrix(self) -> DenseMatrix:
        """Dense (Nu̇+Nλ) x (Nu̇+Nλ) body/joint Schur complement Sbmat."""
        return self._sbmat

    @property
    def fluid_schur_inverse(self) -> DenseMatrix:
        """Dense Nf x Nf matrix Sf⁻¹ = (B₂ A⁻¹ B₁ᵀ)⁻¹."""
        return self._sf_inv

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def _validate(self, arrays: StateTuple, roles: tuple[str, ...]) -> None:
        for arr, shape, role in zip(arrays, self._shapes, roles, strict=True):
            if arr.shape != shape:
                raise_dimension_mismatch(name=role, expected=shape, got=arr.shape)

    @staticmethod
    def _require_floating(
        arrays: tuple[FloatArray, ...], roles: tuple[str, ...]
    ) -> None:
        for arr, role in zip(arrays, roles, strict=True):
            if not np.issubdtype(arr.dtype, np.inexact):
                raise_invalid_dtype(name=role, dtype=arr.dtype)

    def ldiv(self, state: StateTuple, rhs: StateTuple) -> StateTuple:
        """
        Solve the block system in place.

        The solution is written into the arrays of ``state``. The body
        right-hand side ``ru̇`` is mutated: it receives the correction
        T₁ᵀ f from the stationary-body fluid solve. Other rhs arrays are
        only read. Shapes, and the floating dtypes of the arrays written in
        place, are checked before any write; if the solve itself raises, the
        contents of ``state`` are undefined.

        Args:
            state: Output arrays (ċ, f, u̇, λ), written in place.
            rhs: Right-hand side arrays (rċ, rf, ru̇, rλ).

        Returns:
            The ``state`` tuple.
        """
        c, f, u, lam = _as_state_tuple(state, name="state", copy=False)
        rc, rf, ru, rlam = _as_state_tuple(rhs, name="rhs", copy=False)
        self._validate((c, f, u, lam), _STATE_ROLES)
        self._validate((rc, rf, ru, rlam), _RHS_ROLES)
        self._require_floating((c, f, u, lam, ru), (*_STATE_ROLES, _RHS_ROLES[2]))

        work = self._work
        n_u = self.n_body_dofs

        # Fluid solve with a stationary body
        c_fluid, f_fluid = self.fluid_solver.solve(rc, rf)
        np.copyto(c, np.reshape(c_fluid, c.shape))
        np.copyto(f, np.reshape(f_fluid, f.shape))

        # Body solve with fluid added mass
        np.copyto(work.velocity_buffer, np.reshape(self.t1t(f), u.shape))
        ru += work.velocity_buffer
        work.stacked[:n_u] = ru.ravel()
        work.stacked[n_u:] = rlam.ravel()
        work.stacked[:] = self._sb_factor.solve(work.stacked)
        u[...] = work.stacked[:n_u].reshape(u.shape)
        lam[...] = work.stacked[n_u:].reshape(lam.shape)

        # Fluid state and force corrected for the moving body
        np.copyto(work.force_buffer, self._added_mass_force(u).reshape(f.shape))
        np.copyto(
            work.state_buffer, np.reshape(self.a_inv_b1t(work.force_buffer), c.shape)
        )
        c += work.state_buffer
        f -= work.force_buffer

        return c, f, u, lam

    def solve(self, rhs: StateTuple) -> StateTuple:
        """
        Solve the block system without touching the caller's arrays.

        Args:
            rhs: Right-hand side arrays (rċ, rf, ru̇, rλ).

        Returns:
            New arrays (ċ, f, u̇, λ).
        """
        rhs_copy = _as_state_tuple(rhs, name="rhs", copy=True)
        self._validate(rhs_copy, _RHS_ROLES)
        state = tuple(np.zeros_like(x) for x in rhs_copy)
        return self.ldiv(state, rhs_copy)  # type: ignore[arg-type]

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def describe(self) -> str:
        """Return a human-readable summary of the system."""
        c_type, f_type, u_type, lam_type = self._types
        return "\n".join([
            f"Saddle system with {self.n_fluid_constraints} constraints on fluid "
            f"and {self.n_joint_constraints} constraints on 2d body",
            f"   Fluid state of type {c_type}",
            f"   Fluid force of type {f_type}",
            f"   Body state of type {u_type}",
            f"   Joint force of type {lam_type}",
        ])

    def __str__(self) -> str:
        return self.describe()

    def __repr__(self) -> str:
        return (
            f"SaddleSystem2d(n_fluid_constraints={self.n_fluid_constraints}, "
            f"n_body_dofs={self.n_body_dofs}, "
            f"n_joint_constraints={self.n_joint_constraints}, "
            f"tol={self.tol:g}, rho_b={self.rho_b:g})"
        )


# =============================================================================
# Helpers
# =============================================================================


def _as_state_tuple(
    arrays: StateTuple, *, name: str, copy: bool = False
) -> StateTuple:
    if len(arrays) != 4:
        raise_dimension_mismatch(
            name=f"{name} tuple (ċ, f, u̇, λ)", expected=4, got=len(arrays)
        )
    if copy:
        arrs = [np.asarray(x) for x in arrays]
        out = tuple(np.array(x, dtype=np.result_type(x.dtype, float)) for x in arrs)
    else:
        out = tuple(np.asarray(x) for x in arrays)
    return out  # type: ignore[return-value]


def _describe_array(x: NDArray[Any]) -> str:
    return f"{type(x).__name__}[{x.dtype}, shape={x.shape}]"
