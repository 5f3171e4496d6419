"""Core GTR model: rate matrices, transition probabilities, simulation and inference."""

from gtrml.core.errors import (
    GTRError,
    DomainError,
    InvalidArgumentError,
    SingularMatrixError,
    StructuralError,
    ConvergenceError,
    NumericOverflowError,
)
from gtrml.core.config import NumericalSettings, OptimizerSettings
from gtrml.core.states import Base, BASE_PAIRS, NUCLEOTIDES, encode_sequence, decode_sequence
from gtrml.core.rate_matrix import (
    RateModel,
    build_rate_matrix,
    validate_simplex,
    rate_model,
    clear_model_cache,
    get_cache_info,
)
from gtrml.core.spectral import SpectralDecomposition, decompose, stationary_distribution
from gtrml.core.transitions import transition_matrix, transition_matrices
from gtrml.core.data import SitePatternCounts
from gtrml.core.trees import Edge, TreeNode, TreeStructure, load_tree
from gtrml.core.simulation import (
    generate_stationary,
    generate_child,
    generate_child_per_site,
    simulate_pair,
    simulate_tree_sequences,
)
from gtrml.core.reparameterize import (
    simplex_to_box,
    box_to_simplex,
    theta_to_parameters,
    parameters_to_theta,
)
from gtrml.core.likelihood import (
    log_likelihood,
    log_likelihood_from_model,
    log_likelihood_theta,
    site_log_likelihoods,
)
from gtrml.core.inference import (
    GTRPairOptimizer,
    MLEResult,
    initial_theta,
    jukes_cantor_distance,
    optimize_branch_length,
)

__all__ = [
    "GTRError",
    "DomainError",
    "InvalidArgumentError",
    "SingularMatrixError",
    "StructuralError",
    "ConvergenceError",
    "NumericOverflowError",
    "NumericalSettings",
    "OptimizerSettings",
    "Base",
    "BASE_PAIRS",
    "NUCLEOTIDES",
    "encode_sequence",
    "decode_sequence",
    "RateModel",
    "build_rate_matrix",
    "validate_simplex",
    "rate_model",
    "clear_model_cache",
    "get_cache_info",
    "SpectralDecomposition",
    "decompose",
    "stationary_distribution",
    "transition_matrix",
    "transition_matrices",
    "SitePatternCounts",
    "Edge",
    "TreeNode",
    "TreeStructure",
    "load_tree",
    "generate_stationary",
    "generate_child",
    "generate_child_per_site",
    "simulate_pair",
    "simulate_tree_sequences",
    "simplex_to_box",
    "box_to_simplex",
    "theta_to_parameters",
    "parameters_to_theta",
    "log_likelihood",
    "log_likelihood_from_model",
    "log_likelihood_theta",
    "site_log_likelihoods",
    "GTRPairOptimizer",
    "MLEResult",
    "initial_theta",
    "jukes_cantor_distance",
    "optimize_branch_length",
]
