"""
Eigendecomposition of GTR rate matrices.

A reversible Q is similar to the symmetric matrix S = D^½ Q D^-½ with
D = diag(π), so its spectrum is real. Two routes are offered:

- "general": numpy.linalg.eig directly on Q
- "symmetric": numpy.linalg.eigh on S, mapped back to eigenvectors of Q

Either way the result satisfies Q = V @ diag(λ) @ V⁻¹ and can be reused for
any number of branch lengths.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from gtrml.core.config import DEFAULT_NUMERICAL, NumericalSettings
from gtrml.core.errors import InvalidArgumentError, NumericOverflowError, SingularMatrixError

logger = logging.getLogger(__name__)

METHODS = ("general", "symmetric")


@dataclass(frozen=True, eq=False)
class SpectralDecomposition:
    """
    Q = V @ diag(λ) @ V⁻¹.

    Attributes:
        eigenvalues: Real eigenvalues λ (4,)
        eigenvectors: Right eigenvectors V as columns (4, 4)
        eigenvectors_inv: V⁻¹ (4, 4); its rows are left eigenvectors
        zero_index: Position of the stationary (zero) eigenvalue
    """
    eigenvalues: np.ndarray
    eigenvectors: np.ndarray
    eigenvectors_inv: np.ndarray
    zero_index: int

    def reconstruct(self) -> np.ndarray:
        """Rebuild the rate matrix from its spectrum."""
        return (self.eigenvectors * self.eigenvalues) @ self.eigenvectors_inv


def decompose(
    Q: np.ndarray,
    frequencies: Optional[np.ndarray] = None,
    method: Optional[str] = None,
    settings: Optional[NumericalSettings] = None,
) -> SpectralDecomposition:
    """
    Eigendecompose a reversible rate matrix.

    Args:
        Q: 4×4 rate matrix
        frequencies: Stationary distribution π; required for "symmetric"
        method: "general" or "symmetric" (default: symmetric when π is known)
        settings: Numerical tolerances

    Returns:
        Read-only SpectralDecomposition

    Raises:
        NumericOverflowError: Complex spectrum, or no eigenvalue close to zero
        SingularMatrixError: V is not (numerically) invertible
    """
    settings = settings or DEFAULT_NUMERICAL
    Q = np.asarray(Q, dtype=float)
    if Q.ndim != 2 or Q.shape[0] != Q.shape[1]:
        raise InvalidArgumentError(f"Rate matrix must be square, got shape {Q.shape}")

    if method is None:
        method = "symmetric" if frequencies is not None else "general"
    if method == "symmetric":
        if frequencies is None:
            raise InvalidArgumentError("Symmetric decomposition requires frequencies")
        eigenvalues, V, V_inv = _eig_symmetrized(Q, np.asarray(frequencies, dtype=float))
    elif method == "general":
        eigenvalues, V = _eig_general(Q, settings)
        V_inv = _invert(V, settings)
    else:
        raise InvalidArgumentError(f"Unknown decomposition method: {method}")

    zero_index = _find_zero_eigenvalue(eigenvalues, settings)
    # exp(λ₀t) must stay exactly 1 for arbitrarily long branches
    eigenvalues = np.array(eigenvalues, dtype=float)
    eigenvalues[zero_index] = 0.0

    for array in (eigenvalues, V, V_inv):
        array.setflags(write=False)
    return SpectralDecomposition(
        eigenvalues=eigenvalues,
        eigenvectors=V,
        eigenvectors_inv=V_inv,
        zero_index=zero_index,
    )


def _eig_general(Q: np.ndarray, settings: NumericalSettings):
    eigenvalues, V = np.linalg.eig(Q)

    if np.iscomplexobj(eigenvalues):
        max_imag = np.max(np.abs(eigenvalues.imag))
        if max_imag > settings.imaginary_tol:
            raise NumericOverflowError(
                f"Rate matrix has complex eigenvalues (max |Im λ| = {max_imag:.3e}); "
                "it is not reversible"
            )
        eigenvalues = eigenvalues.real
        V = V.real

    return np.ascontiguousarray(eigenvalues), np.ascontiguousarray(V)


def _eig_symmetrized(Q: np.ndarray, pi: np.ndarray):
    # S = D^½ Q D^-½ is symmetric exactly when Q is reversible w.r.t. π
    sqrt_pi = np.sqrt(pi)
    S = sqrt_pi[:, None] * Q / sqrt_pi[None, :]
    S = 0.5 * (S + S.T)

    eigenvalues, U = np.linalg.eigh(S)

    V = U / sqrt_pi[:, None]
    V_inv = U.T * sqrt_pi[None, :]
    return eigenvalues, V, V_inv


def _invert(V: np.ndarray, settings: NumericalSettings) -> np.ndarray:
    cond = np.linalg.cond(V)
    if not np.isfinite(cond) or cond > settings.max_condition_number:
        raise SingularMatrixError(
            f"Eigenvector matrix is ill-conditioned (cond = {cond:.3e})"
        )
    try:
        return np.linalg.inv(V)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"Eigenvector matrix is singular: {e}") from e


def _find_zero_eigenvalue(eigenvalues: np.ndarray, settings: NumericalSettings) -> int:
    """Locate the stationary eigenvalue by minimum absolute value."""
    zero_index = int(np.argmin(np.abs(eigenvalues)))
    scale = max(1.0, float(np.max(np.abs(eigenvalues))))
    if abs(eigenvalues[zero_index]) > settings.zero_eigenvalue_tol * scale:
        raise NumericOverflowError(
            f"No zero eigenvalue found; smallest |λ| = {abs(eigenvalues[zero_index]):.3e}"
        )
    return zero_index


def stationary_distribution(decomposition: SpectralDecomposition) -> np.ndarray:
    """
    Recover π from the left eigenvector of the zero eigenvalue.

    Used as a consistency check on models built from a known π, and to derive
    π for rate matrices that were estimated directly.
    """
    row = decomposition.eigenvectors_inv[decomposition.zero_index]
    return row / row.sum()
