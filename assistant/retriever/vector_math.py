"""
Vector primitives for similarity search.

Stored rows and query vectors are unit-norm, so dot() is cosine similarity.
Inputs are assumed finite; NaN/Inf are not handled here.
"""

import numpy as np


def normalize(vector) -> np.ndarray:
    """Return a unit-L2-norm copy. The zero vector is returned unchanged."""
    v = np.array(vector, dtype=np.float64)
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def dot(a, b) -> float:
    """Dot product of two equal-length vectors."""
    a = np.asarray(a)
    b = np.asarray(b)
    if a.shape != b.shape:
        raise ValueError(f"Vector dimension mismatch: {a.shape} vs {b.shape}")
    return float(np.dot(a, b))
