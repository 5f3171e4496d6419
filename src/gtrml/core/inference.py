"""
Maximum likelihood estimation of GTR parameters from a sequence pair.

The full model has 9 free parameters: the branch length t, three
stick-breaking coordinates for π and five for ρ. They are optimized jointly
with scipy.optimize under box constraints [0, max_branch_length] × [0, 1]^8,
starting from empirical frequencies and a Jukes-Cantor branch length.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np
from scipy import optimize

from gtrml.core.config import DEFAULT_OPTIMIZER, OptimizerSettings
from gtrml.core.data import SitePatternCounts
from gtrml.core.errors import ConvergenceError, GTRError, InvalidArgumentError, NumericOverflowError
from gtrml.core.likelihood import CountsLike, log_likelihood_from_model, log_likelihood_theta
from gtrml.core.rate_matrix import RateModel
from gtrml.core.reparameterize import N_THETA, parameters_to_theta, theta_to_parameters

logger = logging.getLogger(__name__)

PARAMETER_NAMES = (
    "t",
    "pi_A", "pi_C", "pi_G",
    "rho_AC", "rho_AG", "rho_AT", "rho_CG", "rho_CT",
)


@dataclass
class MLEResult:
    """
    Result of maximum likelihood estimation.

    Attributes:
        theta: Optimization vector at the optimum
        branch_length: Fitted t
        frequencies: Fitted π
        exchangeabilities: Fitted ρ
        log_likelihood: Log-likelihood at the optimum
        n_parameters: Number of free parameters
        n_observations: Number of sites
        aic: Akaike Information Criterion
        bic: Bayesian Information Criterion
        standard_errors: Optional standard errors on θ from the Hessian
        convergence: Whether optimization converged
        message: Optimization message
        n_iterations: Number of iterations
        n_function_evals: Number of function evaluations
    """
    theta: np.ndarray
    branch_length: float
    frequencies: np.ndarray
    exchangeabilities: np.ndarray
    log_likelihood: float
    n_parameters: int
    n_observations: int
    aic: float
    bic: float
    standard_errors: Optional[Dict[str, float]] = None
    convergence: bool = True
    message: str = ""
    n_iterations: int = 0
    n_function_evals: int = 0

    @property
    def model(self) -> RateModel:
        """RateModel at the fitted π and ρ."""
        return RateModel.from_parameters(self.frequencies, self.exchangeabilities)

    def __repr__(self) -> str:
        return (
            f"MLEResult(t={self.branch_length:.4f}, "
            f"LL={self.log_likelihood:.4f}, "
            f"AIC={self.aic:.2f})"
        )


def jukes_cantor_distance(p: float, max_distance: float = np.inf) -> float:
    """
    Jukes-Cantor distance -3/4 log(1 - 4p/3) for a proportion p of
    differing sites; saturated proportions (p >= 3/4) return max_distance.
    """
    if p < 0 or p > 1:
        raise InvalidArgumentError(f"Proportion must lie in [0, 1], got {p}")
    if p >= 0.75:
        return max_distance
    return min(-0.75 * np.log(1 - 4 * p / 3), max_distance)


def initial_theta(
    counts: CountsLike,
    settings: Optional[OptimizerSettings] = None,
) -> np.ndarray:
    """
    Starting point from the data: pooled base frequencies, symmetrized
    off-diagonal pair counts (both with a pseudocount) and the Jukes-Cantor
    distance.
    """
    settings = settings or DEFAULT_OPTIMIZER
    if not isinstance(counts, SitePatternCounts):
        counts = SitePatternCounts(counts)

    pi = counts.base_frequencies(settings.pseudocount)
    rho = counts.exchangeabilities(settings.pseudocount)
    t0 = jukes_cantor_distance(counts.proportion_different(), settings.max_branch_length)
    return parameters_to_theta(t0, pi, rho, settings=settings.numerical)


class GTRPairOptimizer:
    """
    Maximum likelihood optimizer for a GTR model on one sequence pair.

    Usage:
        counts = SitePatternCounts.from_sequences(seq1, seq2)
        optimizer = GTRPairOptimizer(counts)
        result = optimizer.fit()
    """

    def __init__(
        self,
        counts: CountsLike,
        settings: Optional[OptimizerSettings] = None,
    ):
        """
        Initialize optimizer.

        Args:
            counts: Site pattern counts of the pair
            settings: Optimizer settings
        """
        if not isinstance(counts, SitePatternCounts):
            counts = SitePatternCounts(counts)
        self.counts = counts
        self.settings = settings or DEFAULT_OPTIMIZER

    @property
    def bounds(self):
        return [(0.0, self.settings.max_branch_length)] + [(0.0, 1.0)] * (N_THETA - 1)

    def log_likelihood(self, theta: np.ndarray) -> float:
        return log_likelihood_theta(self.counts, theta, settings=self.settings.numerical)

    def _objective(self, theta: np.ndarray) -> float:
        try:
            ll = self.log_likelihood(theta)
        except NumericOverflowError as e:
            logger.warning(f"Likelihood evaluation failed at θ={theta}: {e}")
            return self.settings.nonfinite_penalty
        if not np.isfinite(ll):
            return self.settings.nonfinite_penalty
        return -ll

    def fit(self, theta0: Optional[np.ndarray] = None) -> MLEResult:
        """
        Fit (t, π, ρ) by maximum likelihood.

        Args:
            theta0: Optional starting vector (default: initial_theta)

        Returns:
            MLEResult at the optimum

        Raises:
            ConvergenceError: If the iteration budget runs out; the error
                carries the best θ found and its log-likelihood
        """
        if theta0 is None:
            theta0 = initial_theta(self.counts, self.settings)
        theta0 = np.asarray(theta0, dtype=float)
        if theta0.shape != (N_THETA,):
            raise InvalidArgumentError(f"theta0 must have {N_THETA} entries, got shape {theta0.shape}")
        bounds = self.bounds
        theta0 = np.clip(theta0, [b[0] for b in bounds], [b[1] for b in bounds])

        logger.info(
            f"Starting {self.settings.method} on {self.counts.n_sites} sites "
            f"from t={theta0[0]:.4f}"
        )
        opt = optimize.minimize(
            self._objective,
            theta0,
            method=self.settings.method,
            bounds=bounds,
            options={
                'maxiter': self.settings.maxiter,
                'ftol': self.settings.tol,
                'gtol': self.settings.tol,
            }
        )

        result = self._make_result(opt)

        if not opt.success:
            # status 1: iteration or evaluation limit reached
            if getattr(opt, "status", None) == 1:
                raise ConvergenceError(
                    f"Optimizer did not converge within {self.settings.maxiter} "
                    f"iterations: {opt.message}",
                    theta=result.theta,
                    log_likelihood=result.log_likelihood,
                    result=result,
                )
            logger.warning(f"Optimization did not converge: {opt.message}")

        logger.info(f"Optimization finished: {result!r}")
        return result

    def _make_result(self, opt) -> MLEResult:
        theta = np.asarray(opt.x, dtype=float)
        t, pi, rho = theta_to_parameters(theta, settings=self.settings.numerical)
        log_lik = self.log_likelihood(theta)

        standard_errors = None
        if self.settings.compute_se:
            standard_errors = self._standard_errors(theta)

        k = N_THETA
        n = self.counts.n_sites
        aic = 2 * k - 2 * log_lik
        bic = k * np.log(n) - 2 * log_lik if n > 0 else float('inf')

        message = opt.message
        if isinstance(message, bytes):
            message = message.decode()

        return MLEResult(
            theta=theta,
            branch_length=t,
            frequencies=pi,
            exchangeabilities=rho,
            log_likelihood=log_lik,
            n_parameters=k,
            n_observations=n,
            aic=aic,
            bic=bic,
            standard_errors=standard_errors,
            convergence=bool(opt.success),
            message=str(message),
            n_iterations=getattr(opt, 'nit', 0),
            n_function_evals=opt.nfev,
        )

    def _standard_errors(self, theta: np.ndarray) -> Optional[Dict[str, float]]:
        try:
            hess = self._compute_hessian(self._objective, theta)
            cov = np.linalg.inv(hess)
        except np.linalg.LinAlgError:
            logger.warning("Could not compute standard errors (singular Hessian)")
            return None
        except GTRError as e:
            logger.warning(f"Could not compute standard errors: {e}")
            return None
        with np.errstate(invalid="ignore"):
            se = np.sqrt(np.diag(cov))
        return {name: float(val) for name, val in zip(PARAMETER_NAMES, se)}

    def _compute_hessian(
        self,
        func: Callable[[np.ndarray], float],
        x: np.ndarray,
        eps: float = 1e-5,
    ) -> np.ndarray:
        """Compute numerical Hessian using finite differences."""
        n = len(x)
        hess = np.zeros((n, n))

        for i in range(n):
            for j in range(i, n):
                x_pp = x.copy()
                x_pm = x.copy()
                x_mp = x.copy()
                x_mm = x.copy()

                x_pp[i] += eps
                x_pp[j] += eps
                x_pm[i] += eps
                x_pm[j] -= eps
                x_mp[i] -= eps
                x_mp[j] += eps
                x_mm[i] -= eps
                x_mm[j] -= eps

                hess[i, j] = (func(x_pp) - func(x_pm) - func(x_mp) + func(x_mm)) / (4 * eps * eps)
                hess[j, i] = hess[i, j]

        return hess


def optimize_branch_length(
    counts: CountsLike,
    model: RateModel,
    settings: Optional[OptimizerSettings] = None,
    max_branch_length: Optional[float] = None,
) -> float:
    """
    Maximum likelihood branch length with π and ρ held fixed.

    Args:
        counts: Site pattern counts
        model: Fixed GTR model
        settings: Optimizer settings; supplies the search interval, the
            tolerance on t, the non-finite penalty and numerical tolerances
        max_branch_length: Override for settings.max_branch_length

    Returns:
        Fitted branch length in [0, max_branch_length]
    """
    settings = settings or DEFAULT_OPTIMIZER
    if max_branch_length is None:
        max_branch_length = settings.max_branch_length
    if not isinstance(counts, SitePatternCounts):
        counts = SitePatternCounts(counts)
    if counts.proportion_different() == 0:
        return 0.0

    def neg_ll(t: float) -> float:
        try:
            ll = log_likelihood_from_model(counts, model, t, settings=settings.numerical)
        except NumericOverflowError as e:
            logger.warning(f"Likelihood evaluation failed at t={t}: {e}")
            return settings.nonfinite_penalty
        return -ll if np.isfinite(ll) else settings.nonfinite_penalty

    opt = optimize.minimize_scalar(
        neg_ll,
        bounds=(0.0, max_branch_length),
        method="bounded",
        options={"xatol": settings.tol},
    )
    return float(opt.x)
