"""Vector helpers: blob packing and cosine similarity."""

from __future__ import annotations

import numpy as np

from daybook.errors import ValidationError

EMBEDDING_DIM = 1536


def vector_to_blob(vec: np.ndarray) -> bytes:
    return np.asarray(vec, dtype=np.float32).tobytes()


def blob_to_vector(blob: bytes) -> np.ndarray:
    return np.frombuffer(blob, dtype=np.float32)


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """(a·b)/(|a||b|), in [-1, 1].

    A zero-norm vector has no direction, so it raises rather than scoring 0.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.shape != b.shape:
        raise ValidationError(f"Vectors must have the same length ({a.shape[0]} != {b.shape[0]})")

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        raise ValidationError("Cosine similarity is undefined for a zero vector")

    sim = float(np.dot(a, b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, sim))


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Row-wise cosine similarity of `matrix` against `query`.

    Rows with zero norm come back as NaN; the caller decides what to do with them.
    """
    query = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(query)
    if q_norm == 0:
        raise ValidationError("Cosine similarity is undefined for a zero query vector")
    if matrix.size == 0:
        return np.zeros(0)
    if matrix.shape[1] != query.shape[0]:
        raise ValidationError(
            f"Query dimension {query.shape[0]} does not match stored dimension {matrix.shape[1]}"
        )

    matrix = matrix.astype(np.float64, copy=False)
    norms = np.linalg.norm(matrix, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = (matrix @ query) / (norms * q_norm)
    sims[norms == 0] = np.nan
    return np.clip(sims, -1.0, 1.0)
