from __future__ import annotations

import numpy as np
import pytest

from lvsde_embedding.embedding.points import DataPoint, PointSet


def build_clusters(n: int = 40, dims: int = 5, seed: int = 0, spread: float = 6.0) -> PointSet:
    """Two Gaussian blobs, labels alternating 0/1 by index."""

    rng = np.random.default_rng(seed)
    labels = np.arange(n) % 2
    centres = np.vstack([np.zeros(dims), np.full(dims, spread)])
    X = centres[labels] + rng.normal(size=(n, dims))
    return PointSet(
        points=[DataPoint(index=i, class_label=int(labels[i]), original_coordinates=X[i]) for i in range(n)]
    )


@pytest.fixture(scope="session")
def make_clusters():
    return build_clusters


@pytest.fixture
def two_clusters() -> PointSet:
    return build_clusters()


@pytest.fixture
def write_points_csv(tmp_path):
    def _write(point_set: PointSet, name: str = "points.csv"):
        path = tmp_path / name
        rows = [
            ",".join([str(p.class_label)] + [repr(float(v)) for v in p.original_coordinates])
            for p in point_set.points
        ]
        path.write_text("\n".join(rows) + "\n")
        return path

    return _write
