"""
deck_graph.vectors — small numpy helpers for embedding vectors.

Embeddings are read-only float32 arrays; everything here accepts any
sequence of numbers and never mutates its input.
"""

from typing import Iterable, Sequence

import numpy as np

from .exceptions import DimensionMismatch


def as_embedding(values: Sequence[float]) -> np.ndarray:
    """Copy ``values`` into a read-only float32 vector."""
    vec = np.array(values, dtype=np.float32).reshape(-1)
    vec.flags.writeable = False
    return vec


def has_embedding(vec) -> bool:
    return vec is not None and len(vec) > 0


def normalize(vec: Sequence[float]) -> np.ndarray:
    """L2-normalize. A zero vector comes back unchanged."""
    arr = np.asarray(vec, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.copy()
    return arr / norm


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between ``a`` and ``b``.

    Returns 0.0 when either vector has zero magnitude.
    Raises DimensionMismatch when the lengths differ.
    """
    va = np.asarray(a, dtype=np.float64).reshape(-1)
    vb = np.asarray(b, dtype=np.float64).reshape(-1)
    if va.shape != vb.shape:
        raise DimensionMismatch(va.shape[0], vb.shape[0])
    mag = np.linalg.norm(va) * np.linalg.norm(vb)
    if mag == 0:
        return 0.0
    return float(np.clip(np.dot(va, vb) / mag, -1.0, 1.0))


def mean_vector(vectors: Iterable[Sequence[float]]) -> np.ndarray:
    """
    Unit-length centroid of ``vectors``.

    An empty input gives an empty vector, which callers treat as
    "no centroid available".
    """
    rows = [np.asarray(v, dtype=np.float64).reshape(-1) for v in vectors]
    if not rows:
        return as_embedding([])
    dim = rows[0].shape[0]
    for row in rows[1:]:
        if row.shape[0] != dim:
            raise DimensionMismatch(dim, row.shape[0])
    mean = np.mean(np.stack(rows), axis=0)
    return as_embedding(normalize(mean))
