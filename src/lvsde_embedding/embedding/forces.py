"""Force passes of the layout simulation.

All projections of all points are flattened into one table per iteration so
each pass can be computed with vectorized numpy. Work is partitioned by the
owning point index modulo the worker count. The partitioning invariant that
makes the passes race-free without locks:

* repulsion: a worker writes only the rows of projections owned by its points;
* attraction pass 1: a worker handles the edges whose *source* point is in its
  partition and writes only the source rows;
* attraction pass 2: a worker handles the edges whose *target* point is in its
  partition and writes only the target rows.

Every worker may read all positions; nothing writes positions while a pass
is running.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from .points import PRESSURE_AXES, DataPoint

EPSILON = 1e-10
REPULSION_BLOCK_ROWS = 256


@dataclass
class ProjectionLayout:
    """Flat index of every projection and of every attraction edge.

    Only changes when a point gains a projection, so the engine caches it
    between iterations.
    """

    slots: List[Tuple[int, int]]
    owner: np.ndarray
    edge_source: np.ndarray
    edge_target: np.ndarray
    edge_transformed: np.ndarray

    @classmethod
    def from_points(cls, points: Sequence[DataPoint], distances_after: np.ndarray) -> "ProjectionLayout":
        slots: List[Tuple[int, int]] = []
        flat = {}
        for point in points:
            for j in range(len(point.projections)):
                flat[(point.index, j)] = len(slots)
                slots.append((point.index, j))

        sources: List[int] = []
        targets: List[int] = []
        for point in points:
            for j, projection in enumerate(point.projections):
                source = flat[(point.index, j)]
                for ref in projection.neighbours:
                    sources.append(source)
                    targets.append(flat[ref])

        owner = np.array([s[0] for s in slots], dtype=np.int64)
        edge_source = np.array(sources, dtype=np.int64)
        edge_target = np.array(targets, dtype=np.int64)
        edge_transformed = distances_after[owner[edge_source], owner[edge_target]] if sources else np.zeros(0)
        return cls(
            slots=slots,
            owner=owner,
            edge_source=edge_source,
            edge_target=edge_target,
            edge_transformed=np.asarray(edge_transformed, dtype=np.float64),
        )

    def __len__(self) -> int:
        return len(self.slots)

    def partition_rows(self, slice_number: int, n_slices: int) -> np.ndarray:
        return np.flatnonzero(self.owner % n_slices == slice_number)


@dataclass
class ForceState:
    """Per-iteration gathered positions plus the accumulators the passes write."""

    positions: np.ndarray
    masses: np.ndarray
    active: np.ndarray
    pending: np.ndarray
    positive: np.ndarray
    negative: np.ndarray

    @classmethod
    def gather(cls, points: Sequence[DataPoint], layout: ProjectionLayout) -> "ForceState":
        count = len(layout)
        positions = np.empty((count, 2), dtype=np.float64)
        masses = np.empty(count, dtype=np.float64)
        active = np.empty(count, dtype=bool)
        for row, (i, j) in enumerate(layout.slots):
            point = points[i]
            positions[row] = point.projections[j].position
            masses[row] = point.projections[j].mass
            active[row] = not point.is_ineffective
        return cls(
            positions=positions,
            masses=masses,
            active=active,
            pending=np.zeros((count, 2), dtype=np.float64),
            positive=np.zeros((count, PRESSURE_AXES), dtype=np.float64),
            negative=np.zeros((count, PRESSURE_AXES), dtype=np.float64),
        )

    def scatter(self, points: Sequence[DataPoint], layout: ProjectionLayout) -> None:
        for row, (i, j) in enumerate(layout.slots):
            projection = points[i].projections[j]
            projection.pending_displacement[:] = self.pending[row]
            projection.positive_pressure[:] = self.positive[row]
            projection.negative_pressure[:] = self.negative[row]


@dataclass(frozen=True)
class ForceParameters:
    squared_base_distance: float
    base_distance: float
    density_adjustment: float
    max_transformed_distance: float
    max_initial_visual_distance: float
    axes: np.ndarray


def _axis_pressure(vectors: np.ndarray, axis: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    pressure = vectors @ axis
    return np.maximum(pressure, 0.0), np.maximum(-pressure, 0.0)


def _scatter_pressure(state: ForceState, owners: np.ndarray, vectors: np.ndarray, axes: np.ndarray) -> None:
    size = state.positive.shape[0]
    for a, axis in enumerate(axes):
        positive, negative = _axis_pressure(vectors, axis)
        state.positive[:, a] += np.bincount(owners, weights=positive, minlength=size)
        state.negative[:, a] += np.bincount(owners, weights=negative, minlength=size)


def repulsion_slice(
    state: ForceState,
    layout: ProjectionLayout,
    params: ForceParameters,
    slice_number: int,
    n_slices: int,
    record_pressure: bool,
) -> None:
    partition = layout.partition_rows(slice_number, n_slices)
    # Each block holds (rows, P) arrays; pressure is reduced one axis at a time.
    for start in range(0, partition.size, REPULSION_BLOCK_ROWS):
        rows = partition[start : start + REPULSION_BLOCK_ROWS]
        diff = state.positions[rows][:, None, :] - state.positions[None, :, :]
        distance = np.maximum(np.sqrt(np.einsum("ijk,ijk->ij", diff, diff)), EPSILON)

        valid = state.active[rows][:, None] & state.active[None, :]
        valid[np.arange(rows.size), rows] = False

        scale = np.where(valid, params.squared_base_distance / distance / distance, 0.0)
        vectors = diff * scale[:, :, None]

        state.pending[rows] += vectors.sum(axis=1)
        if record_pressure:
            for a, axis in enumerate(params.axes):
                positive, negative = _axis_pressure(vectors, axis)
                state.positive[rows, a] += positive.sum(axis=1)
                state.negative[rows, a] += negative.sum(axis=1)


def _attraction_vectors(
    state: ForceState,
    layout: ProjectionLayout,
    params: ForceParameters,
    edges: np.ndarray,
) -> np.ndarray:
    """Force on the edge source, pointing towards the target."""

    source = layout.edge_source[edges]
    target = layout.edge_target[edges]
    diff = state.positions[source] - state.positions[target]
    distance = np.maximum(np.sqrt(np.einsum("ij,ij->i", diff, diff)), EPSILON)

    density_term = (distance / params.base_distance) ** (1.0 - params.density_adjustment)
    ratio_term = layout.edge_transformed[edges] / params.max_transformed_distance
    ratio_term = ratio_term - distance / params.max_initial_visual_distance
    bound = np.abs(density_term) * 0.5
    ratio_term = np.clip(ratio_term, -bound, bound)

    magnitude = density_term + ratio_term
    return -(magnitude / distance)[:, None] * diff


def _valid_edges(state: ForceState, layout: ProjectionLayout) -> np.ndarray:
    source = layout.edge_source
    target = layout.edge_target
    return state.active[source] & state.active[target] & (source != target)


def attraction_source_slice(
    state: ForceState,
    layout: ProjectionLayout,
    params: ForceParameters,
    slice_number: int,
    n_slices: int,
    record_pressure: bool,
) -> None:
    owner = layout.owner[layout.edge_source]
    edges = np.flatnonzero((owner % n_slices == slice_number) & _valid_edges(state, layout))
    if edges.size == 0:
        return

    vectors = _attraction_vectors(state, layout, params, edges)
    source = layout.edge_source[edges]
    np.add.at(state.pending, source, vectors / state.masses[source][:, None])
    if record_pressure:
        _scatter_pressure(state, source, vectors, params.axes)


def attraction_target_slice(
    state: ForceState,
    layout: ProjectionLayout,
    params: ForceParameters,
    slice_number: int,
    n_slices: int,
    record_pressure: bool,
) -> None:
    owner = layout.owner[layout.edge_target]
    edges = np.flatnonzero((owner % n_slices == slice_number) & _valid_edges(state, layout))
    if edges.size == 0:
        return

    vectors = -_attraction_vectors(state, layout, params, edges)
    target = layout.edge_target[edges]
    np.add.at(state.pending, target, vectors / state.masses[target][:, None])
    if record_pressure:
        _scatter_pressure(state, target, vectors, params.axes)
