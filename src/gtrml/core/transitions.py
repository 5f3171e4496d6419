"""Transition probabilities P(t) = exp(Qt) from a cached eigendecomposition."""

import logging
from typing import Dict, Iterable, Optional

import numpy as np

from gtrml.core.config import DEFAULT_NUMERICAL, NumericalSettings
from gtrml.core.errors import InvalidArgumentError, NumericOverflowError
from gtrml.core.spectral import SpectralDecomposition

logger = logging.getLogger(__name__)


def transition_matrix(
    decomposition: SpectralDecomposition,
    t: float,
    settings: Optional[NumericalSettings] = None,
) -> np.ndarray:
    """
    Compute P(t) = V @ diag(exp(λt)) @ V⁻¹.

    Args:
        decomposition: Eigendecomposition of the rate matrix
        t: Branch length (expected substitutions per site), t >= 0
        settings: Numerical tolerances

    Returns:
        Row-stochastic 4×4 matrix

    Raises:
        InvalidArgumentError: If t is negative or not finite
        NumericOverflowError: If P(t) has entries below -clip_tol or rows
            that do not sum to 1
    """
    settings = settings or DEFAULT_NUMERICAL
    t = float(t)
    if not np.isfinite(t) or t < 0:
        raise InvalidArgumentError(f"Branch length must be finite and >= 0, got {t}")

    n = len(decomposition.eigenvalues)
    if t == 0:
        return np.eye(n)

    exp_diag = np.exp(decomposition.eigenvalues * t)
    P = (decomposition.eigenvectors * exp_diag) @ decomposition.eigenvectors_inv

    if not np.all(np.isfinite(P)):
        raise NumericOverflowError(f"Non-finite transition probabilities at t={t}")

    min_entry = P.min()
    if min_entry < 0:
        if min_entry < -settings.clip_tol:
            raise NumericOverflowError(
                f"Transition matrix has negative entry {min_entry:.3e} at t={t}; "
                "the decomposition is inaccurate"
            )
        logger.warning(f"Clipping negative transition probabilities (min {min_entry:.3e}) at t={t}")
        P = np.maximum(P, 0)

    row_sums = P.sum(axis=1)
    deviation = np.max(np.abs(row_sums - 1.0))
    if deviation > settings.row_sum_tol:
        raise NumericOverflowError(
            f"Transition matrix rows deviate from 1 by {deviation:.3e} at t={t}"
        )

    return P / row_sums[:, None]


def transition_matrices(
    decomposition: SpectralDecomposition,
    lengths: Iterable[float],
    settings: Optional[NumericalSettings] = None,
) -> Dict[float, np.ndarray]:
    """P(t) for each distinct branch length, keyed by length."""
    return {
        float(t): transition_matrix(decomposition, t, settings=settings)
        for t in set(float(t) for t in lengths)
    }
