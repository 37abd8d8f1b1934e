"""Tests for the input loader."""

import numpy as np
import pytest

from lvsde_embedding.data_prep.ingest import read_point_set


class TestReadPointSet:
    def test_coordinates(self, tmp_path):
        path = tmp_path / "points.csv"
        path.write_text("0,1.0,2.0\n1,3.0,4.0\n1,5.0,6.0\n")
        point_set = read_point_set(path)
        assert len(point_set) == 3
        assert [p.class_label for p in point_set.points] == [0, 1, 1]
        np.testing.assert_array_equal(point_set.points[1].original_coordinates, [3.0, 4.0])
        assert point_set.distances_before is None

    def test_max_rows(self, tmp_path, two_clusters, write_points_csv):
        point_set = read_point_set(write_points_csv(two_clusters), max_rows=25)
        assert len(point_set) == 25
        assert [p.index for p in point_set.points] == list(range(25))

    def test_distance_rows(self, tmp_path):
        path = tmp_path / "distances.csv"
        path.write_text("0,0,1,2\n1,1,0,3\n0,2,3,0\n")
        point_set = read_point_set(path, is_input_distances=True, max_rows=2)
        assert not point_set.has_coordinates
        np.testing.assert_array_equal(point_set.distances_before, [[0.0, 1.0], [1.0, 0.0]])

    def test_label_needs_colour(self, tmp_path):
        path = tmp_path / "points.csv"
        path.write_text("0,1.0\n3,2.0\n")
        with pytest.raises(ValueError, match="colours"):
            read_point_set(path, colour_count=3)

    def test_negative_label_rejected(self, tmp_path):
        path = tmp_path / "points.csv"
        path.write_text("0,1.0\n-1,2.0\n")
        with pytest.raises(ValueError, match="non-negative"):
            read_point_set(path, colour_count=3)

    def test_non_numeric_cell(self, tmp_path):
        path = tmp_path / "points.csv"
        path.write_text("0,1.0\n1,abc\n")
        with pytest.raises(ValueError, match="Non-numeric"):
            read_point_set(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_point_set(tmp_path / "missing.csv")
