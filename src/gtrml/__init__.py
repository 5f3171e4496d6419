"""
gtrml: General Time-Reversible nucleotide models.

Simulation of sequence evolution along rooted trees and maximum likelihood
estimation of branch length, base frequencies and exchangeabilities from
aligned sequence pairs.
"""

__version__ = "0.1.0"

from gtrml.core import (
    Base,
    RateModel,
    SitePatternCounts,
    TreeStructure,
    GTRPairOptimizer,
    MLEResult,
    build_rate_matrix,
    decompose,
    transition_matrix,
    simulate_pair,
    simulate_tree_sequences,
    log_likelihood,
    GTRError,
    DomainError,
    InvalidArgumentError,
    SingularMatrixError,
    StructuralError,
    ConvergenceError,
    NumericOverflowError,
)

__all__ = [
    "Base",
    "RateModel",
    "SitePatternCounts",
    "TreeStructure",
    "GTRPairOptimizer",
    "MLEResult",
    "build_rate_matrix",
    "decompose",
    "transition_matrix",
    "simulate_pair",
    "simulate_tree_sequences",
    "log_likelihood",
    "GTRError",
    "DomainError",
    "InvalidArgumentError",
    "SingularMatrixError",
    "StructuralError",
    "ConvergenceError",
    "NumericOverflowError",
    "__version__",
]
