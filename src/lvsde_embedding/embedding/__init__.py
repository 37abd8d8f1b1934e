"""Layered vertex splitting layout: distances, neighbourhood graph, force simulation."""

from .distances import compute_distances, cosine_distances, euclidean_distances, transform_distances  # noqa: F401
from .engine import EmbeddingResult, LVSDEEngine, NumericalInstabilityError  # noqa: F401
from .neighbourhood import build_neighbourhood_graph, k_smallest  # noqa: F401
from .points import DataPoint, IterationSnapshot, PointSet, PointVisibility, Projection  # noqa: F401
from .splitting import axis_directions, split_vertex  # noqa: F401

__all__ = [
    "compute_distances",
    "cosine_distances",
    "euclidean_distances",
    "transform_distances",
    "EmbeddingResult",
    "LVSDEEngine",
    "NumericalInstabilityError",
    "build_neighbourhood_graph",
    "k_smallest",
    "DataPoint",
    "IterationSnapshot",
    "PointSet",
    "PointVisibility",
    "Projection",
    "axis_directions",
    "split_vertex",
]
