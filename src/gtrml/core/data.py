"""Site pattern counts for an aligned sequence pair."""

from dataclasses import dataclass
from typing import Tuple, Union

import numpy as np

from gtrml.core.errors import InvalidArgumentError
from gtrml.core.states import N_PAIRS, N_STATES, encode_sequence

SequenceLike = Union[str, np.ndarray]

_UPPER = np.triu_indices(N_STATES, k=1)


@dataclass(frozen=True, eq=False)
class SitePatternCounts:
    """
    Joint base counts of two aligned sequences.

    counts[i, j] is the number of sites where the first sequence has base i
    and the second has base j. Sites are treated as i.i.d., so this table is
    a sufficient statistic for the pairwise likelihood.

    Attributes:
        counts: (4, 4) nonnegative integer array
    """

    counts: np.ndarray

    def __post_init__(self):
        """Validate and freeze the count table."""
        counts = np.asarray(self.counts)
        if counts.shape != (N_STATES, N_STATES):
            raise InvalidArgumentError(f"Counts must be 4×4, got shape {counts.shape}")
        if not np.all(np.isfinite(counts)) or np.any(counts != np.round(counts)):
            raise InvalidArgumentError("Counts must be whole numbers")
        if np.any(counts < 0):
            raise InvalidArgumentError(f"Counts must be nonnegative, got {counts}")
        counts = counts.astype(np.int64)
        counts.setflags(write=False)
        object.__setattr__(self, "counts", counts)

    @classmethod
    def from_sequences(cls, first: SequenceLike, second: SequenceLike) -> "SitePatternCounts":
        """
        Tabulate two aligned sequences.

        Args:
            first: First sequence (string or Base indices)
            second: Second sequence, same length

        Raises:
            InvalidArgumentError: On length mismatch or non-ACGT symbols
        """
        x = encode_sequence(first)
        y = encode_sequence(second)
        if len(x) != len(y):
            raise InvalidArgumentError(
                f"Sequences must have equal length, got {len(x)} and {len(y)}"
            )
        flat = np.bincount(x.astype(np.int64) * N_STATES + y, minlength=N_STATES * N_STATES)
        return cls(flat.reshape(N_STATES, N_STATES))

    @property
    def n_sites(self) -> int:
        return int(self.counts.sum())

    @property
    def row_totals(self) -> np.ndarray:
        """Base counts of the first sequence."""
        return self.counts.sum(axis=1)

    def proportion_different(self) -> float:
        """Fraction of sites where the two sequences differ."""
        if self.n_sites == 0:
            return 0.0
        return 1.0 - np.trace(self.counts) / self.n_sites

    def base_frequencies(self, pseudocount: float = 0.0) -> np.ndarray:
        """
        Empirical base frequencies pooled over both sequences.

        Args:
            pseudocount: Added to each base count before normalizing

        Returns:
            (4,) frequencies; uniform when there is no data
        """
        totals = self.counts.sum(axis=0) + self.counts.sum(axis=1) + pseudocount
        if totals.sum() <= 0:
            return np.full(N_STATES, 1 / N_STATES)
        return totals / totals.sum()

    def exchangeabilities(self, pseudocount: float = 0.0) -> np.ndarray:
        """
        Empirical exchangeabilities from symmetrized off-diagonal counts.

        Args:
            pseudocount: Added to each pair count before normalizing

        Returns:
            (6,) values in BASE_PAIRS order; uniform when no site differs
        """
        symmetric = self.counts + self.counts.T
        pairs = symmetric[_UPPER] + pseudocount
        if pairs.sum() <= 0:
            return np.full(N_PAIRS, 1 / N_PAIRS)
        return pairs / pairs.sum()

    def expand(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Build a sequence pair that reproduces these counts.

        Sites are emitted in pattern order (all A/A sites first, then A/C...).
        """
        flat = self.counts.ravel()
        codes = np.repeat(np.arange(N_STATES * N_STATES), flat)
        first = (codes // N_STATES).astype(np.int8)
        second = (codes % N_STATES).astype(np.int8)
        return first, second

    def __repr__(self) -> str:
        return (
            f"SitePatternCounts(sites={self.n_sites}, "
            f"p_diff={self.proportion_different():.4f})"
        )
