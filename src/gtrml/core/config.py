"""Numerical and optimizer settings."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class NumericalSettings:
    """Tolerances shared by the rate-matrix, decomposition and likelihood code."""

    simplex_tol: float = 1e-8
    """Maximum deviation of a simplex sum from 1."""

    zero_eigenvalue_tol: float = 1e-10
    """Tolerance on the stationary eigenvalue, scaled by max(1, max|λ|)."""

    imaginary_tol: float = 1e-9
    """Largest imaginary eigenvalue part accepted as round-off."""

    max_condition_number: float = 1e12
    """Eigenvector matrices with a larger condition number count as singular."""

    clip_tol: float = 1e-9
    """Negative probabilities down to -clip_tol are clipped to zero."""

    row_sum_tol: float = 1e-8
    """Maximum deviation of a transition-matrix row sum from 1."""

    box_floor: float = 1e-9
    """Stick-breaking coordinates are clamped into [box_floor, 1 - box_floor]."""


@dataclass(frozen=True)
class OptimizerSettings:
    """Settings for maximum likelihood fitting."""

    method: str = "L-BFGS-B"
    """scipy.optimize.minimize method; must accept bounds."""

    tol: float = 1e-8
    """Passed as ftol and gtol."""

    maxiter: int = 1000
    """Iteration budget. Exhausting it raises ConvergenceError."""

    max_branch_length: float = 5.0
    """Upper bound on the branch length."""

    pseudocount: float = 0.5
    """Added to every cell when deriving empirical starting values."""

    nonfinite_penalty: float = 1e12
    """Objective value used where the log-likelihood is -inf or NaN."""

    compute_se: bool = False
    """Estimate standard errors from a finite-difference Hessian."""

    numerical: NumericalSettings = field(default_factory=NumericalSettings)


DEFAULT_NUMERICAL = NumericalSettings()
DEFAULT_OPTIMIZER = OptimizerSettings()
