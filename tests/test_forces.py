"""Tests for the partitioned force passes."""

import math
import tracemalloc

import numpy as np
import pytest

from lvsde_embedding.embedding.forces import (
    ForceParameters,
    ForceState,
    ProjectionLayout,
    attraction_source_slice,
    attraction_target_slice,
    repulsion_slice,
)
from lvsde_embedding.embedding.points import DataPoint
from lvsde_embedding.embedding.splitting import axis_directions


def _parameters(n):
    squared_base = 1000.0 * 1000.0 / n
    return ForceParameters(
        squared_base_distance=squared_base,
        base_distance=math.sqrt(squared_base),
        density_adjustment=0.9,
        max_transformed_distance=1.0,
        max_initial_visual_distance=1000.0,
        axes=axis_directions(),
    )


def _setup(positions, edges=()):
    points = [DataPoint(index=i) for i in range(len(positions))]
    for point, xy in zip(points, positions):
        point.primary.position[:] = xy
    for source, target in edges:
        points[source].primary.neighbours.append((target, 0))
    n = len(points)
    layout = ProjectionLayout.from_points(points, np.full((n, n), 0.5) - 0.5 * np.eye(n))
    return points, layout


def _run(task, state, layout, params, n_slices, record=True):
    for slice_number in range(n_slices):
        task(state, layout, params, slice_number, n_slices, record)


class TestRepulsion:
    def test_pairwise_forces_cancel(self):
        rng = np.random.default_rng(4)
        points, layout = _setup(rng.random((9, 2)) * 1000.0)
        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, _parameters(9), 1)
        np.testing.assert_allclose(state.pending.sum(axis=0), 0.0, atol=1e-6)

    def test_two_points_push_apart(self):
        points, layout = _setup([(0.0, 0.0), (10.0, 0.0)])
        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, _parameters(2), 1)
        assert state.pending[0, 0] < 0 < state.pending[1, 0]
        np.testing.assert_allclose(state.pending[0], -state.pending[1])

    def test_ineffective_points_are_ignored(self):
        points, layout = _setup([(0.0, 0.0), (10.0, 0.0), (20.0, 0.0)])
        points[2].is_ineffective = True
        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, _parameters(3), 1)
        np.testing.assert_allclose(state.pending[0], -state.pending[1])
        np.testing.assert_array_equal(state.pending[2], 0.0)

    def test_pressure_only_when_recorded(self):
        points, layout = _setup([(0.0, 0.0), (10.0, 0.0)])
        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, _parameters(2), 1, record=False)
        assert not state.positive.any() and not state.negative.any()

        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, _parameters(2), 1, record=True)
        # Point 0 is pushed along -x: negative pressure on axis 0.
        assert state.negative[0, 0] > 0
        assert state.positive[0, 0] == 0

    def test_pressure_matches_pairwise_projection(self):
        rng = np.random.default_rng(6)
        positions = rng.random((6, 2)) * 1000.0
        points, layout = _setup(positions)
        params = _parameters(6)
        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, params, 1)

        positive = np.zeros((6, len(params.axes)))
        negative = np.zeros((6, len(params.axes)))
        for i in range(6):
            for j in range(6):
                if i == j:
                    continue
                diff = positions[i] - positions[j]
                force = diff * params.squared_base_distance / (diff @ diff)
                along = params.axes @ force
                positive[i] += np.maximum(along, 0.0)
                negative[i] += np.maximum(-along, 0.0)
        np.testing.assert_allclose(state.positive, positive, rtol=1e-9, atol=1e-6)
        np.testing.assert_allclose(state.negative, negative, rtol=1e-9, atol=1e-6)

    def test_peak_memory_grows_with_projection_count_only(self):
        n = 3000
        positions = np.random.default_rng(8).random((n, 2)) * 1000.0
        points, layout = _setup(positions)
        params = _parameters(n)
        state = ForceState.gather(points, layout)

        tracemalloc.start()
        try:
            repulsion_slice(state, layout, params, 0, 1, True)
            _, peak = tracemalloc.get_traced_memory()
        finally:
            tracemalloc.stop()
        # A full (rows, P, 36) pressure tensor would need well over 1 GB here.
        assert peak < 200_000_000
        assert state.positive.any() and state.negative.any()


class TestAttraction:
    def test_edge_pulls_both_ends_together(self):
        points, layout = _setup([(0.0, 0.0), (300.0, 0.0)], edges=[(0, 1)])
        params = _parameters(2)
        state = ForceState.gather(points, layout)
        _run(attraction_source_slice, state, layout, params, 1)
        _run(attraction_target_slice, state, layout, params, 1)
        assert state.pending[0, 0] > 0 > state.pending[1, 0]
        np.testing.assert_allclose(state.pending[0], -state.pending[1])

    def test_divided_by_mass(self):
        points, layout = _setup([(0.0, 0.0), (300.0, 0.0)], edges=[(0, 1)])
        points[0].primary.mass = 0.5
        params = _parameters(2)
        state = ForceState.gather(points, layout)
        _run(attraction_source_slice, state, layout, params, 1)
        _run(attraction_target_slice, state, layout, params, 1)
        np.testing.assert_allclose(state.pending[0], -2.0 * state.pending[1])

    def test_pressure_credited_to_both_ends(self):
        points, layout = _setup([(0.0, 0.0), (300.0, 0.0)], edges=[(0, 1)])
        params = _parameters(2)
        state = ForceState.gather(points, layout)
        _run(attraction_source_slice, state, layout, params, 1)
        _run(attraction_target_slice, state, layout, params, 1)
        # The source is pulled along +x, the target along -x.
        assert state.positive[0, 0] > 0 and state.negative[0, 0] == 0
        assert state.negative[1, 0] > 0 and state.positive[1, 0] == 0
        np.testing.assert_allclose(state.positive[0], state.negative[1])


class TestPartitioning:
    @pytest.mark.parametrize("n_slices", [2, 3, 7])
    def test_result_independent_of_worker_count(self, n_slices):
        rng = np.random.default_rng(11)
        positions = rng.random((15, 2)) * 1000.0
        edges = [(i, (i * 4 + 1) % 15) for i in range(15)] + [(i, (i + 3) % 15) for i in range(15)]
        params = _parameters(15)

        results = []
        for slices in (1, n_slices):
            points, layout = _setup(positions, edges)
            state = ForceState.gather(points, layout)
            for task in (repulsion_slice, attraction_source_slice, attraction_target_slice):
                _run(task, state, layout, params, slices)
            results.append(state)

        np.testing.assert_allclose(results[0].pending, results[1].pending, rtol=1e-9, atol=1e-9)
        np.testing.assert_allclose(results[0].positive, results[1].positive, rtol=1e-9, atol=1e-9)
        np.testing.assert_allclose(results[0].negative, results[1].negative, rtol=1e-9, atol=1e-9)

    def test_scatter_writes_back_to_projections(self):
        points, layout = _setup([(0.0, 0.0), (10.0, 0.0)])
        state = ForceState.gather(points, layout)
        _run(repulsion_slice, state, layout, _parameters(2), 1)
        state.scatter(points, layout)
        np.testing.assert_array_equal(points[1].primary.pending_displacement, state.pending[1])
