"""Tests for the neighbourhood graph builder."""

import numpy as np
import pytest

from lvsde_embedding.embedding.distances import euclidean_distances, transform_distances
from lvsde_embedding.embedding.neighbourhood import build_neighbourhood_graph, default_graph_size, k_smallest


class TestKSmallest:
    def test_ties_go_to_lower_index(self):
        keys = np.array([1.0, 0.0, 1.0, 0.0])
        assert list(k_smallest(keys, 3)) == [1, 3, 0]

    def test_exclude_reference(self):
        keys = np.array([0.0, 2.0, 1.0])
        assert list(k_smallest(keys, 2, exclude=0)) == [2, 1]

    def test_too_many_requested(self):
        with pytest.raises(ValueError):
            k_smallest(np.zeros(3), 3, exclude=0)


class TestBuildNeighbourhoodGraph:
    def test_edges_target_primary_projections(self, two_clusters):
        after = transform_distances(euclidean_distances(two_clusters.coordinate_matrix()))
        k = default_graph_size(len(two_clusters))
        build_neighbourhood_graph(two_clusters.points, after, k)
        for point in two_clusters.points:
            neighbours = point.primary.neighbours
            assert len(neighbours) == k
            assert all(slot == 0 for _, slot in neighbours)
            assert point.index not in [j for j, _ in neighbours]

    def test_nearest_neighbours_are_same_cluster(self, make_clusters):
        point_set = make_clusters(spread=12.0)
        after = transform_distances(euclidean_distances(point_set.coordinate_matrix()))
        build_neighbourhood_graph(point_set.points, after, 5)
        for point in point_set.points:
            labels = {point_set.points[j].class_label for j, _ in point.primary.neighbours}
            assert labels == {point.class_label}

    @pytest.mark.parametrize("k", [0, 40])
    def test_rejects_out_of_range_k(self, two_clusters, k):
        after = np.zeros((40, 40))
        with pytest.raises(ValueError):
            build_neighbourhood_graph(two_clusters.points, after, k)
