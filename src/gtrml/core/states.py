"""Nucleotide alphabet and sequence encoding."""

from enum import IntEnum
from typing import Tuple, Union

import numpy as np

from gtrml.core.errors import InvalidArgumentError


class Base(IntEnum):
    """DNA bases with their canonical matrix index."""

    A = 0
    C = 1
    G = 2
    T = 3


NUCLEOTIDES = "ACGT"
N_STATES = len(Base)

# Exchangeability order; matches numpy.triu_indices(4, k=1).
BASE_PAIRS: Tuple[Tuple[Base, Base], ...] = (
    (Base.A, Base.C),
    (Base.A, Base.G),
    (Base.A, Base.T),
    (Base.C, Base.G),
    (Base.C, Base.T),
    (Base.G, Base.T),
)
N_PAIRS = len(BASE_PAIRS)

_LOOKUP = np.full(256, -1, dtype=np.int8)
for _base in Base:
    _LOOKUP[ord(_base.name)] = _base.value
    _LOOKUP[ord(_base.name.lower())] = _base.value


def encode_sequence(sequence: Union[str, np.ndarray]) -> np.ndarray:
    """
    Convert a DNA string to an array of Base indices.

    Arrays are checked and returned as int8 copies, so already-encoded
    sequences can be passed through.

    Args:
        sequence: String over {A,C,G,T} (any case) or array of indices

    Returns:
        int8 array of Base indices

    Raises:
        InvalidArgumentError: On gaps, ambiguity codes or any other symbol
    """
    if isinstance(sequence, str):
        try:
            raw = np.frombuffer(sequence.encode("ascii"), dtype=np.uint8)
        except UnicodeEncodeError:
            raise InvalidArgumentError("Sequence contains non-ASCII symbols")
        encoded = _LOOKUP[raw]
        bad = np.flatnonzero(encoded < 0)
        if bad.size:
            symbols = sorted({sequence[i] for i in bad})
            raise InvalidArgumentError(
                f"Sequence contains non-ACGT symbols {symbols} "
                f"(first at position {bad[0]})"
            )
        return encoded

    encoded = np.asarray(sequence)
    if encoded.ndim != 1:
        raise InvalidArgumentError(f"Sequence must be 1-D, got shape {encoded.shape}")
    if encoded.size and not np.issubdtype(encoded.dtype, np.integer):
        raise InvalidArgumentError(
            f"Encoded sequence must hold integer indices, got dtype {encoded.dtype}"
        )
    if encoded.size and (encoded.min() < 0 or encoded.max() >= N_STATES):
        raise InvalidArgumentError("Encoded sequence has indices outside 0..3")
    return encoded.astype(np.int8)


def decode_sequence(encoded: np.ndarray) -> str:
    """Convert an array of Base indices back to an upper-case string."""
    encoded = encode_sequence(encoded)
    return "".join(NUCLEOTIDES[i] for i in encoded)
