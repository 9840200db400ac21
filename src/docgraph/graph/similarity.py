from __future__ import annotations

from typing import AbstractSet, Any, Sequence

import numpy as np


def structural_similarity(neighbors_a: AbstractSet[Any], neighbors_b: AbstractSet[Any]) -> float:
    """Jaccard index of two neighbor sets; 0.0 when both are empty."""
    union = len(neighbors_a | neighbors_b)
    if union == 0:
        return 0.0
    return len(neighbors_a & neighbors_b) / union


def semantic_similarity(vec_a: Sequence[float] | np.ndarray | None, vec_b: Sequence[float] | np.ndarray | None) -> float:
    """Cosine similarity of two embeddings.

    Never raises: mismatched lengths, empty or zero vectors and non-numeric
    input all give 0.0. The result is clamped to [-1, 1].
    """
    if vec_a is None or vec_b is None:
        return 0.0
    try:
        a = np.asarray(vec_a, dtype=np.float64).ravel()
        b = np.asarray(vec_b, dtype=np.float64).ravel()
    except (TypeError, ValueError):
        return 0.0

    if a.size == 0 or a.shape != b.shape:
        return 0.0
    if not (np.all(np.isfinite(a)) and np.all(np.isfinite(b))):
        return 0.0

    with np.errstate(over="ignore", under="ignore", invalid="ignore"):
        norm_a = float(np.linalg.norm(a))
        norm_b = float(np.linalg.norm(b))
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0
        sim = float(np.dot(a, b) / (norm_a * norm_b))

    if not np.isfinite(sim):
        return 0.0
    return max(-1.0, min(1.0, sim))
