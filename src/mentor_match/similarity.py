"""Cosine similarity between embedding vectors."""

from collections.abc import Sequence

import numpy as np

from mentor_match.errors import DimensionMismatchError


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Compute cosine similarity between two equal-length vectors.

    A zero vector is treated as maximally dissimilar to everything, including
    another zero vector, so the result is 0.0 whenever either norm is zero.

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity in [-1, 1]

    Raises:
        DimensionMismatchError: If the vectors differ in length

    Example:
        >>> cosine_similarity([1.0, 0.0], [0.0, 1.0])
        0.0
    """
    if len(a) != len(b):
        raise DimensionMismatchError(expected=len(a), actual=len(b), subject="cosine similarity")

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    denominator = float(np.linalg.norm(va)) * float(np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(va, vb)) / denominator
