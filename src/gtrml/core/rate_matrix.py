"""
GTR rate matrix construction and the immutable RateModel bundle.

Off-diagonal rates are Q_ij = ρ_ij / (2π_i). This keeps Q reversible with
respect to π (π_i Q_ij = ρ_ij / 2 = π_j Q_ji) and normalizes the expected
substitution rate at equilibrium to Σ ρ = 1, so branch lengths are measured
in expected substitutions per site.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from gtrml.core.config import DEFAULT_NUMERICAL, NumericalSettings
from gtrml.core.errors import DomainError
from gtrml.core.spectral import SpectralDecomposition, decompose
from gtrml.core.states import N_PAIRS, N_STATES

logger = logging.getLogger(__name__)

ArrayLike = Union[Sequence[float], np.ndarray]

_UPPER = np.triu_indices(N_STATES, k=1)


def validate_simplex(
    x: ArrayLike,
    size: int,
    name: str,
    strict: bool = False,
    settings: Optional[NumericalSettings] = None,
) -> np.ndarray:
    """
    Check that x is a probability vector of the given size.

    Args:
        x: Candidate probability vector
        size: Expected length
        name: Used in error messages
        strict: Require every entry to be > 0 instead of >= 0
        settings: Numerical tolerances

    Returns:
        x as a float array

    Raises:
        DomainError: Wrong size, non-finite, negative (or zero when strict)
            entries, or a sum different from 1
    """
    settings = settings or DEFAULT_NUMERICAL
    x = np.asarray(x, dtype=float)
    if x.shape != (size,):
        raise DomainError(f"{name} must have {size} entries, got shape {x.shape}")
    if not np.all(np.isfinite(x)):
        raise DomainError(f"{name} has non-finite entries: {x}")
    if strict and np.any(x <= 0):
        raise DomainError(f"{name} must be strictly positive, got {x}")
    if np.any(x < 0):
        raise DomainError(f"{name} has negative entries: {x}")
    if abs(x.sum() - 1.0) > settings.simplex_tol:
        raise DomainError(f"{name} must sum to 1, got {x.sum():.12g}")
    return x


def build_rate_matrix(
    pi: ArrayLike,
    rho: ArrayLike,
    settings: Optional[NumericalSettings] = None,
) -> np.ndarray:
    """
    Build the 4×4 GTR rate matrix.

    Args:
        pi: Base frequencies (A, C, G, T), all > 0, summing to 1
        rho: Exchangeabilities (AC, AG, AT, CG, CT, GT), summing to 1
        settings: Numerical tolerances

    Returns:
        Rate matrix Q with rows summing to 0

    Raises:
        DomainError: If pi or rho is not a valid simplex
    """
    pi = validate_simplex(pi, N_STATES, "frequencies", strict=True, settings=settings)
    rho = validate_simplex(rho, N_PAIRS, "exchangeabilities", settings=settings)

    R = np.zeros((N_STATES, N_STATES))
    R[_UPPER] = rho
    R = R + R.T

    Q = R / (2.0 * pi[:, None])
    np.fill_diagonal(Q, 0)
    Q[np.diag_indices(N_STATES)] = -Q.sum(axis=1)

    return Q


@dataclass(frozen=True, eq=False)
class RateModel:
    """
    A GTR model: parameters, rate matrix and its cached decomposition.

    Build with RateModel.from_parameters (or rate_model for the cached
    variant). All arrays are read-only, so one instance can be shared
    between simulations and likelihood evaluations.

    Attributes:
        frequencies: Stationary base frequencies π (4,)
        exchangeabilities: Pair exchangeabilities ρ (6,)
        rate_matrix: Q (4, 4)
        decomposition: Eigendecomposition of Q
    """
    frequencies: np.ndarray
    exchangeabilities: np.ndarray
    rate_matrix: np.ndarray
    decomposition: SpectralDecomposition

    @classmethod
    def from_parameters(
        cls,
        pi: ArrayLike,
        rho: ArrayLike,
        method: Optional[str] = None,
        settings: Optional[NumericalSettings] = None,
    ) -> "RateModel":
        """
        Validate (π, ρ), build Q and decompose it.

        Args:
            pi: Base frequencies
            rho: Exchangeabilities
            method: Decomposition method ("general" or "symmetric")
            settings: Numerical tolerances
        """
        pi = np.array(pi, dtype=float)
        rho = np.array(rho, dtype=float)
        Q = build_rate_matrix(pi, rho, settings=settings)
        decomposition = decompose(Q, frequencies=pi, method=method, settings=settings)

        for array in (pi, rho, Q):
            array.setflags(write=False)
        return cls(
            frequencies=pi,
            exchangeabilities=rho,
            rate_matrix=Q,
            decomposition=decomposition,
        )

    @classmethod
    def jukes_cantor(cls) -> "RateModel":
        """Equal frequencies and exchangeabilities."""
        return cls.from_parameters(np.full(N_STATES, 1 / N_STATES), np.full(N_PAIRS, 1 / N_PAIRS))

    def expected_substitution_rate(self) -> float:
        """-Σ_i π_i Q_ii; equals 1 for this parameterization."""
        return float(-np.sum(self.frequencies * np.diag(self.rate_matrix)))

    def __repr__(self) -> str:
        pi = ", ".join(f"{p:.4f}" for p in self.frequencies)
        rho = ", ".join(f"{r:.4f}" for r in self.exchangeabilities)
        return f"RateModel(π=[{pi}], ρ=[{rho}])"


@lru_cache(maxsize=1024)
def _cached_rate_model(
    pi: Tuple[float, ...],
    rho: Tuple[float, ...],
    method: Optional[str],
    settings: NumericalSettings,
) -> RateModel:
    logger.debug(f"Decomposing new rate matrix for π={pi}, ρ={rho}")
    return RateModel.from_parameters(pi, rho, method=method, settings=settings)


def rate_model(
    pi: ArrayLike,
    rho: ArrayLike,
    method: Optional[str] = None,
    settings: Optional[NumericalSettings] = None,
    use_cache: bool = True,
) -> RateModel:
    """
    Get the RateModel for (π, ρ), reusing an earlier decomposition when the
    same parameters were seen before.

    Args:
        pi: Base frequencies
        rho: Exchangeabilities
        method: Decomposition method
        settings: Numerical tolerances
        use_cache: Whether to use the global LRU cache

    Returns:
        Immutable RateModel
    """
    settings = settings or DEFAULT_NUMERICAL
    if not use_cache:
        return RateModel.from_parameters(pi, rho, method=method, settings=settings)
    key_pi = tuple(float(p) for p in np.asarray(pi, dtype=float).ravel())
    key_rho = tuple(float(r) for r in np.asarray(rho, dtype=float).ravel())
    return _cached_rate_model(key_pi, key_rho, method, settings)


def clear_model_cache():
    """Clear the global rate model cache."""
    _cached_rate_model.cache_clear()


def get_cache_info():
    """Get cache statistics."""
    return _cached_rate_model.cache_info()
