from __future__ import annotations

import math

import numpy as np

from .neighbourhood import k_smallest
from .points import PointSet

LOCAL_SCALE_RANK = 20
COSINE_ORTHOGONAL_TOLERANCE = 1e-6


def euclidean_distances(X: np.ndarray, chunk_size: int = 512) -> np.ndarray:
    """Exact pairwise L2 distances, computed row-block by row-block."""

    X = np.asarray(X, dtype=np.float64)
    n = X.shape[0]
    distances = np.empty((n, n), dtype=np.float64)
    for start in range(0, n, chunk_size):
        block = X[start : start + chunk_size]
        diff = block[:, None, :] - X[None, :, :]
        distances[start : start + chunk_size] = np.sqrt(np.einsum("ijk,ijk->ij", diff, diff))
    np.fill_diagonal(distances, 0.0)
    return distances


def cosine_distances(X: np.ndarray) -> np.ndarray:
    """``1 - cos(u, v)``; pairs with ``|u.v| < 1e-6`` (zero vectors included) get 1.0."""

    X = np.asarray(X, dtype=np.float64)
    dots = X @ X.T
    norms = np.sqrt(np.einsum("ij,ij->i", X, X))
    with np.errstate(divide="ignore", invalid="ignore"):
        distances = 1.0 - dots / np.outer(norms, norms)
    distances = np.where(np.abs(dots) < COSINE_ORTHOGONAL_TOLERANCE, 1.0, distances)
    np.fill_diagonal(distances, 0.0)
    return distances


def local_scales(distances_before: np.ndarray) -> np.ndarray:
    """Per-point scale ``tan(1) / d20`` where ``d20`` is the 20th nearest other point.

    A set of exactly 20 points falls back to the farthest other point. A zero
    ``d20`` (duplicates) yields an infinite scale.
    """

    n = distances_before.shape[0]
    if n < LOCAL_SCALE_RANK:
        raise ValueError(
            f"At least {LOCAL_SCALE_RANK} points are required for the local scale lookup, got {n}."
        )
    rank = min(LOCAL_SCALE_RANK, n - 1)
    scales = np.empty(n, dtype=np.float64)
    for i in range(n):
        nearest = k_smallest(distances_before[i], rank, exclude=i)
        d_rank = distances_before[i, nearest[-1]]
        scales[i] = math.tan(1.0) / d_rank if d_rank > 0 else math.inf
    return scales


def _scaled_atan(scales: np.ndarray, distances: np.ndarray) -> np.ndarray:
    with np.errstate(invalid="ignore"):
        product = scales * distances
    product = np.where(distances == 0, 0.0, product)
    return np.arctan(product)


def transform_distances(distances_before: np.ndarray) -> np.ndarray:
    """Local-scale normalization used by the attractive force.

    ``after[i, j] = (atan(m_i * d_ij) + atan(m_j * d_ij)) / 2``. Averaging both
    endpoints keeps the matrix symmetric.
    """

    distances_before = np.asarray(distances_before, dtype=np.float64)
    scales = local_scales(distances_before)
    return (
        _scaled_atan(scales[:, None], distances_before) + _scaled_atan(scales[None, :], distances_before)
    ) / 2.0


def compute_distances(point_set: PointSet, use_cosine: bool = False) -> np.ndarray:
    """Fill ``distances_before`` from the best available source.

    Reduced (30-D) coordinates take precedence and are always compared with
    the Euclidean norm. A precomputed matrix is kept as loaded.
    """

    points = point_set.points
    if points and points[0].reduced_coordinates is not None:
        point_set.distances_before = euclidean_distances(np.vstack([p.reduced_coordinates for p in points]))
    elif point_set.distances_before is None:
        X = point_set.coordinate_matrix()
        point_set.distances_before = cosine_distances(X) if use_cosine else euclidean_distances(X)
    return point_set.distances_before
