"""Global pytest configuration and shared fixtures for fsi_saddle."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import numpy as np
import pytest

from fsi_saddle import SaddleSystem2d

if TYPE_CHECKING:
    from collections.abc import Callable

    from numpy.typing import NDArray

    FloatArray = NDArray[np.floating]


# -----------------------------------------------------------------------------
# Small dense coupled problem
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class BlockProblem:
    """Hand-assembled dense operators for a small fluid/body system.

    Attributes:
        a: Fluid operator A (n_c x n_c).
        b1t: Force-to-state coupling B₁ᵀ (n_c x n_f).
        b2: State-to-force coupling B₂ (n_f x n_c).
        mass: Body inertia M (n_u x n_u).
        g1t: Joint-force-to-body coupling G₁ᵀ (n_u x n_lam).
        g2: Body-to-joint coupling G₂ (n_lam x n_u).
        t1t: Force-to-body coupling T₁ᵀ (n_u x n_f).
        t2: Body-to-force coupling T₂ (n_f x n_u).
    """

    a: FloatArray
    b1t: FloatArray
    b2: FloatArray
    mass: FloatArray
    g1t: FloatArray
    g2: FloatArray
    t1t: FloatArray
    t2: FloatArray

    @property
    def a_inv(self) -> FloatArray:
        """Return A⁻¹."""
        return np.linalg.inv(self.a)

    @property
    def sizes(self) -> tuple[int, int, int, int]:
        """Return (n_c, n_f, n_u, n_lam)."""
        return (
            self.a.shape[0],
            self.b2.shape[0],
            self.mass.shape[0],
            self.g2.shape[0],
        )

    def templates(self) -> tuple[FloatArray, FloatArray, FloatArray, FloatArray]:
        """Return zero state templates (ċ, f, u̇, λ)."""
        return tuple(np.zeros(n) for n in self.sizes)  # type: ignore[return-value]

    def fluid_ops(self) -> tuple[object, object, object]:
        """Return (A⁻¹, B₁ᵀ, B₂) as dense matrices."""
        return (self.a_inv, self.b1t, self.b2)

    def body_ops(self) -> tuple[object, object, object]:
        """Return (M, G₁ᵀ, G₂)."""
        return (self.mass, self.g1t, self.g2)

    def fsi_ops(self) -> tuple[object, object]:
        """Return (T₁ᵀ, T₂)."""
        return (self.t1t, self.t2)

    def build(self, **kwargs: Any) -> SaddleSystem2d:
        """Construct a SaddleSystem2d from the dense operators."""
        return SaddleSystem2d(
            self.templates(),
            self.fluid_ops(),
            self.body_ops(),
            self.fsi_ops(),
            **kwargs,
        )

    def full_matrix(
        self, *, rho_b: float = 1.0, mass_fictitious: FloatArray | None = None
    ) -> FloatArray:
        """Assemble the monolithic 4-block matrix solved by SaddleSystem2d."""
        n_c, n_f, n_u, n_lam = self.sizes
        if rho_b != 0.0:
            mass_c = (1.0 - 1.0 / rho_b) * self.mass
        else:
            assert mass_fictitious is not None
            mass_c = -mass_fictitious

        n = n_c + n_f + n_u + n_lam
        big = np.zeros((n, n))
        i_c = slice(0, n_c)
        i_f = slice(n_c, n_c + n_f)
        i_u = slice(n_c + n_f, n_c + n_f + n_u)
        i_l = slice(n_c + n_f + n_u, n)

        big[i_c, i_c] = self.a
        big[i_c, i_f] = self.b1t
        big[i_f, i_c] = self.b2
        big[i_f, i_u] = -self.t2
        big[i_u, i_f] = -self.t1t
        big[i_u, i_u] = mass_c
        big[i_u, i_l] = self.g1t
        big[i_l, i_u] = self.g2
        return big

    @staticmethod
    def stack(parts: tuple[FloatArray, ...]) -> FloatArray:
        """Concatenate raveled state components into one vector."""
        return np.concatenate([np.ravel(p) for p in parts])

    def random_rhs(
        self, rng: np.random.Generator
    ) -> tuple[FloatArray, FloatArray, FloatArray, FloatArray]:
        """Return a random right-hand side (rċ, rf, ru̇, rλ)."""
        parts = tuple(rng.standard_normal(n) for n in self.sizes)
        return parts  # type: ignore[return-value]


def make_block_problem(
    *,
    n_c: int = 6,
    n_f: int = 2,
    n_u: int = 2,
    n_lam: int = 1,
    seed: int = 0,
) -> BlockProblem:
    """
    Build a well-posed random BlockProblem.

    A is symmetric positive definite and B₂ = B₁ᵀᵀ, so B₂A⁻¹B₁ᵀ is SPD.
    T₂ = T₁ᵀᵀ and M is SPD, so the body block is SPD and, with G₁ᵀ of full
    column rank and G₂ = G₁ᵀᵀ, the body/joint saddle matrix is invertible
    for rho_b >= 1.

    Args:
        n_c: Fluid state size.
        n_f: Number of fluid constraints.
        n_u: Number of body degrees of freedom.
        n_lam: Number of joint constraints.
        seed: Random seed.

    Returns:
        BlockProblem instance.
    """
    rng = np.random.default_rng(seed)

    q = rng.standard_normal((n_c, n_c))
    a = q @ q.T / n_c + 2.0 * np.eye(n_c)
    b1t = rng.standard_normal((n_c, n_f))
    b2 = b1t.T.copy()

    r = rng.standard_normal((n_u, n_u))
    mass = r @ r.T / max(n_u, 1) + np.eye(n_u)
    g1t = rng.standard_normal((n_u, n_lam))
    g2 = g1t.T.copy()

    t1t = rng.standard_normal((n_u, n_f))
    t2 = t1t.T.copy()

    return BlockProblem(
        a=a, b1t=b1t, b2=b2, mass=mass, g1t=g1t, g2=g2, t1t=t1t, t2=t2
    )


@pytest.fixture
def problem() -> BlockProblem:
    """Default small problem: Nc=6, Nf=2, Nu̇=2, Nλ=1."""
    return make_block_problem()


@pytest.fixture
def problem_factory() -> Callable[..., BlockProblem]:
    """Factory fixture for problems of custom size."""
    return make_block_problem


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator."""
    return np.random.default_rng(12345)
