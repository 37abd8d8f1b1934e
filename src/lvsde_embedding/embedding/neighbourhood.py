from __future__ import annotations

from typing import Sequence

import numpy as np

from .points import DataPoint


def k_smallest(keys: np.ndarray, k: int, exclude: int | None = None) -> np.ndarray:
    """Return the indices of the ``k`` smallest entries of ``keys``.

    Equal keys are ordered by index (stable sort), so the selection is
    deterministic. ``exclude`` drops one index (the reference point itself)
    from the candidates.
    """

    keys = np.asarray(keys, dtype=np.float64)
    candidates = np.arange(keys.shape[0])
    if exclude is not None:
        candidates = candidates[candidates != exclude]
    if k > candidates.shape[0]:
        raise ValueError(f"Requested {k} nearest neighbours but only {candidates.shape[0]} candidates exist.")
    order = np.argsort(keys[candidates], kind="stable")
    return candidates[order[:k]]


def default_graph_size(number_of_points: int) -> int:
    return number_of_points // 3


def build_neighbourhood_graph(
    points: Sequence[DataPoint],
    distances_after: np.ndarray,
    k: int,
) -> None:
    """Attach the k nearest neighbours of every point to its primary projection.

    Every edge initially targets the neighbour's primary projection.
    """

    n = len(points)
    if distances_after.shape != (n, n):
        raise ValueError(f"Distance matrix shape {distances_after.shape} does not match {n} points")
    if k < 1:
        raise ValueError("Neighbourhood graph size must be at least 1.")
    if k > n - 1:
        raise ValueError(f"Neighbourhood graph size {k} exceeds the {n - 1} other points available.")

    for point in points:
        nearest = k_smallest(distances_after[point.index], k, exclude=point.index)
        point.projections[0].neighbours = [(int(j), 0) for j in nearest]
