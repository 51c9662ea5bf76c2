"""
Cosine similarity over embedding vectors.
"""

from typing import Sequence, Union

import numpy as np

from ..core.errors import DimensionMismatch

VectorLike = Union[Sequence[float], np.ndarray]


def as_vector(values: VectorLike) -> np.ndarray:
    """Convert a list or array into a 1-D float64 array."""
    return np.asarray(values, dtype=np.float64).reshape(-1)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """Cosine similarity clamped to [0, 1].

    Negative similarity is floored at 0: "unrelated" and "opposite" are the same
    thing for retrieval. A zero-norm vector scores 0 against anything.

    Raises:
        DimensionMismatch: if the vectors have different lengths.
    """
    va = as_vector(a)
    vb = as_vector(b)
    if va.shape[0] != vb.shape[0]:
        raise DimensionMismatch(va.shape[0], vb.shape[0])

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    return min(max(similarity, 0.0), 1.0)


def normalize(vector: VectorLike) -> np.ndarray:
    """Scale a vector to unit length; zero vectors are returned unchanged."""
    v = as_vector(vector)
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm
