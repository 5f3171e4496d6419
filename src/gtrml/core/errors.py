"""Exception hierarchy for GTR modelling and inference.

Every error is raised at the point of detection. The concrete classes also
derive from the closest builtin exception so callers that only know about
``ValueError`` or ``LinAlgError`` still catch them.
"""

from typing import Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from gtrml.core.inference import MLEResult


class GTRError(Exception):
    """Base class for all errors raised by gtrml."""


class DomainError(GTRError, ValueError):
    """A probability vector is not a valid simplex or has a zero entry where
    a strictly positive one is required."""


class InvalidArgumentError(GTRError, ValueError):
    """A call violated its input contract (negative branch length,
    non-stochastic matrix, mismatched sequence lengths, unknown symbol)."""


class SingularMatrixError(GTRError, np.linalg.LinAlgError):
    """The eigenvector matrix of a rate matrix could not be inverted."""


class StructuralError(GTRError, ValueError):
    """A tree is not a single rooted, connected, acyclic structure."""


class NumericOverflowError(GTRError, ArithmeticError):
    """A numerical result fell outside its tolerance, which points at an
    upstream decomposition failure."""


class ConvergenceError(GTRError, RuntimeError):
    """
    The optimizer exhausted its iteration budget.

    Attributes:
        theta: Best optimization vector found
        log_likelihood: Log-likelihood at ``theta``
        result: Partial MLEResult, for caller-directed retries
    """

    def __init__(
        self,
        message: str,
        theta: Optional[np.ndarray] = None,
        log_likelihood: float = float("-inf"),
        result: Optional["MLEResult"] = None,
    ):
        super().__init__(message)
        self.theta = theta
        self.log_likelihood = log_likelihood
        self.result = result
