"""
Stick-breaking reparameterization between simplices and the unit box.

A k-simplex x maps to k-1 conditional proportions

    z_i = x_i / (1 - Σ_{j<i} x_j),   i = 1..k-1

and back by the forward recursion x_i = z_i (1 - Σ_{j<i} x_j) with
x_k = 1 - Σ_{i<k} x_i. The optimizer works on the box so that simplex
constraints reduce to bounds.

The optimization vector θ has 9 entries: the branch length t, then the
3 free stick-breaking coordinates of π, then the 5 of ρ.
"""

import logging
from typing import Optional, Tuple

import numpy as np

from gtrml.core.config import DEFAULT_NUMERICAL, NumericalSettings
from gtrml.core.errors import DomainError, InvalidArgumentError
from gtrml.core.rate_matrix import validate_simplex
from gtrml.core.states import N_PAIRS, N_STATES

logger = logging.getLogger(__name__)

N_THETA = 1 + (N_STATES - 1) + (N_PAIRS - 1)
FREQUENCY_SLICE = slice(1, N_STATES)
EXCHANGEABILITY_SLICE = slice(N_STATES, N_THETA)


def simplex_to_box(x: np.ndarray, settings: Optional[NumericalSettings] = None) -> np.ndarray:
    """
    Map a k-simplex to k-1 stick-breaking proportions.

    Args:
        x: Probability vector with every entry strictly inside (0, 1)

    Returns:
        (k-1,) array of proportions in (0, 1)

    Raises:
        DomainError: If x is not a simplex or touches the boundary
    """
    x = np.asarray(x, dtype=float)
    if x.ndim != 1 or x.size < 2:
        raise DomainError(f"Simplex must be a 1-D vector of length >= 2, got shape {x.shape}")
    x = validate_simplex(x, x.size, "simplex", strict=True, settings=settings)
    if np.any(x >= 1):
        raise DomainError(f"Simplex entries must be < 1, got {x}")

    remaining = 1.0 - np.concatenate(([0.0], np.cumsum(x[:-2])))
    return x[:-1] / remaining


def box_to_simplex(
    z: np.ndarray,
    clip: bool = True,
    settings: Optional[NumericalSettings] = None,
) -> np.ndarray:
    """
    Map k-1 stick-breaking proportions back to a k-simplex.

    Args:
        z: Proportions, nominally in [0, 1]
        clip: Clamp each proportion into [box_floor, 1 - box_floor] so every
            simplex entry stays strictly positive. Without clipping, values
            outside [0, 1] raise.
        settings: Numerical tolerances

    Returns:
        (k,) probability vector

    Raises:
        DomainError: Non-finite proportions, or out of range when clip=False
    """
    settings = settings or DEFAULT_NUMERICAL
    z = np.asarray(z, dtype=float)
    if z.ndim != 1 or not np.all(np.isfinite(z)):
        raise DomainError(f"Box coordinates must be a finite 1-D vector, got {z}")

    if clip:
        lo, hi = settings.box_floor, 1.0 - settings.box_floor
        clipped = np.clip(z, lo, hi)
        if np.any(clipped != z):
            logger.debug(f"Clamped box coordinates {z} into [{lo}, {hi}]")
        z = clipped
    elif np.any((z < 0) | (z > 1)):
        raise DomainError(f"Box coordinates must lie in [0, 1], got {z}")

    x = np.empty(z.size + 1)
    remaining = 1.0
    for i, zi in enumerate(z):
        x[i] = zi * remaining
        remaining -= x[i]
    x[-1] = remaining
    return x


def theta_to_parameters(
    theta: np.ndarray,
    settings: Optional[NumericalSettings] = None,
) -> Tuple[float, np.ndarray, np.ndarray]:
    """
    Expand an optimization vector into (t, π, ρ).

    Raises:
        InvalidArgumentError: If theta does not have 9 entries
    """
    theta = np.asarray(theta, dtype=float)
    if theta.shape != (N_THETA,):
        raise InvalidArgumentError(f"theta must have {N_THETA} entries, got shape {theta.shape}")
    t = float(theta[0])
    pi = box_to_simplex(theta[FREQUENCY_SLICE], settings=settings)
    rho = box_to_simplex(theta[EXCHANGEABILITY_SLICE], settings=settings)
    return t, pi, rho


def parameters_to_theta(
    t: float,
    pi: np.ndarray,
    rho: np.ndarray,
    settings: Optional[NumericalSettings] = None,
) -> np.ndarray:
    """Pack (t, π, ρ) into an optimization vector."""
    return np.concatenate((
        [float(t)],
        simplex_to_box(pi, settings=settings),
        simplex_to_box(rho, settings=settings),
    ))
