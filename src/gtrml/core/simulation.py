"""
Forward simulation of nucleotide sequences under a GTR model.

Provides stationary root sampling, child sampling across a branch, and
simulation along a pair of sequences or a whole rooted tree. All randomness
comes from an injected numpy Generator so runs are reproducible.
"""

import logging
from typing import Dict, Optional, Tuple, Union

import numpy as np

from gtrml.core.config import DEFAULT_NUMERICAL, NumericalSettings
from gtrml.core.errors import InvalidArgumentError
from gtrml.core.rate_matrix import RateModel, validate_simplex
from gtrml.core.states import N_STATES, encode_sequence
from gtrml.core.transitions import transition_matrices, transition_matrix
from gtrml.core.trees import TreeStructure

logger = logging.getLogger(__name__)


def check_stochastic_matrix(
    P: np.ndarray,
    settings: Optional[NumericalSettings] = None,
) -> np.ndarray:
    """
    Check that P is a 4×4 row-stochastic matrix.

    Raises:
        InvalidArgumentError: Wrong shape, negative or non-finite entries,
            or rows that do not sum to 1
    """
    settings = settings or DEFAULT_NUMERICAL
    P = np.asarray(P, dtype=float)
    if P.shape != (N_STATES, N_STATES):
        raise InvalidArgumentError(f"Transition matrix must be 4×4, got shape {P.shape}")
    if not np.all(np.isfinite(P)) or np.any(P < 0):
        raise InvalidArgumentError("Transition matrix has negative or non-finite entries")
    deviation = np.max(np.abs(P.sum(axis=1) - 1.0))
    if deviation > settings.row_sum_tol:
        raise InvalidArgumentError(f"Transition matrix rows deviate from 1 by {deviation:.3e}")
    return P


def generate_stationary(
    n: int,
    pi: np.ndarray,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Draw n i.i.d. bases from the frequencies π.

    Args:
        n: Sequence length
        pi: Base frequencies
        rng: Random number generator (default: create new one)

    Returns:
        int8 array of Base indices

    Example:
        >>> rng = np.random.default_rng(42)
        >>> generate_stationary(5, [0.25, 0.25, 0.25, 0.25], rng).shape
        (5,)
    """
    if rng is None:
        rng = np.random.default_rng()
    if n < 0:
        raise InvalidArgumentError(f"Sequence length must be >= 0, got {n}")
    pi = validate_simplex(pi, N_STATES, "frequencies")
    return rng.choice(N_STATES, size=n, p=pi).astype(np.int8)


def generate_child(
    parent: Union[str, np.ndarray],
    P: np.ndarray,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Evolve a sequence across one branch.

    Positions are grouped by parent base and each group is drawn in one batch
    from the matching row of P, which is equivalent to an independent
    categorical draw per position.

    Args:
        parent: Parent sequence
        P: Row-stochastic transition matrix for the branch
        rng: Random number generator

    Returns:
        int8 array of Base indices, same length as parent
    """
    if rng is None:
        rng = np.random.default_rng()
    parent = encode_sequence(parent)
    P = check_stochastic_matrix(P)

    child = np.empty_like(parent)
    for base in range(N_STATES):
        positions = np.flatnonzero(parent == base)
        if positions.size:
            child[positions] = rng.choice(N_STATES, size=positions.size, p=P[base])
    return child


def generate_child_per_site(
    parent: Union[str, np.ndarray],
    P: np.ndarray,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """
    Evolve a sequence with one categorical draw per position.

    Each site inverts the cumulative distribution of its own row
    P[parent[site]] with a uniform variate. Produces the same distribution as
    generate_child.
    """
    if rng is None:
        rng = np.random.default_rng()
    parent = encode_sequence(parent)
    P = check_stochastic_matrix(P)

    cumulative = np.cumsum(P, axis=1)
    cumulative[:, -1] = 1.0
    u = rng.random(parent.size)
    child = (u[:, None] >= cumulative[parent]).sum(axis=1)
    return child.astype(np.int8)


def simulate_pair(
    n_sites: int,
    model: RateModel,
    t: float,
    rng: Optional[np.random.Generator] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Simulate an ancestor at stationarity and one descendant at distance t.

    Args:
        n_sites: Sequence length
        model: GTR model
        t: Branch length
        rng: Random number generator

    Returns:
        (ancestor, descendant) arrays of Base indices
    """
    if rng is None:
        rng = np.random.default_rng()
    ancestor = generate_stationary(n_sites, model.frequencies, rng)
    P = transition_matrix(model.decomposition, t)
    return ancestor, generate_child(ancestor, P, rng)


def simulate_tree_sequences(
    tree: TreeStructure,
    n_sites: int,
    model: RateModel,
    rng: Optional[np.random.Generator] = None,
    return_internal: bool = False,
):
    """
    Simulate sequences at the tips of a rooted tree.

    The root is drawn from the stationary distribution and every edge is
    applied in pre-order, so a parent is always populated before its
    children. One transition matrix is computed per distinct edge length.

    Args:
        tree: Validated TreeStructure with branch lengths
        n_sites: Sequence length
        model: GTR model shared by all edges
        rng: Random number generator (default: create new one)
        return_internal: Also return internal-node sequences

    Returns:
        {tip name: sequence}; with return_internal, a tuple
        ({tip name: sequence}, {internal node index: sequence})

    Example:
        >>> tree = TreeStructure.from_newick("((A:0.1,B:0.1):0.1,C:0.2);")
        >>> tips = simulate_tree_sequences(tree, 100, RateModel.jukes_cantor())
        >>> sorted(tips)
        ['A', 'B', 'C']
    """
    if rng is None:
        rng = np.random.default_rng()

    node_sequences: Dict[int, np.ndarray] = {
        tree.root_index: generate_stationary(n_sites, model.frequencies, rng)
    }
    edges = tree.preorder_edges()
    matrices = transition_matrices(model.decomposition, (edge.length for edge in edges))

    for edge in edges:
        node_sequences[edge.child] = generate_child(
            node_sequences[edge.parent], matrices[float(edge.length)], rng
        )

    logger.debug(
        f"Simulated {n_sites} sites on {tree!r} using {len(matrices)} transition matrices"
    )

    tips = {name: node_sequences[idx] for idx, name in zip(tree.tip_indices, tree.tip_names)}
    if return_internal:
        internal = {idx: node_sequences[idx] for idx in tree.internal_indices}
        return tips, internal
    return tips
