"""Input loading and embedding specifications."""

from .ingest import read_point_set  # noqa: F401
from .specification import (  # noqa: F401
    DEFAULT_CLASS_LABELS,
    DEFAULT_COLOURS,
    EmbeddingSpecification,
    EmbeddingSpecifications,
    load_specifications,
)

__all__ = [
    "read_point_set",
    "DEFAULT_CLASS_LABELS",
    "DEFAULT_COLOURS",
    "EmbeddingSpecification",
    "EmbeddingSpecifications",
    "load_specifications",
]
