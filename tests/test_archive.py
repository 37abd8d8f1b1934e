"""Tests for serialized run artifacts."""

import json
import zipfile

import pytest

from lvsde_embedding.embedding.points import IterationSnapshot, PointVisibility
from lvsde_embedding.export.archive import (
    VCED_FILE_FORMAT,
    legend_html,
    to_embedded_data,
    write_run_archive,
)


@pytest.fixture
def snapshots():
    history = []
    for iteration in (1, 2):
        gray = iteration == 2
        points = (
            PointVisibility(0, 0, ((1.0, 2.0),), "red", iteration),
            PointVisibility(
                1,
                1,
                ((3.0, 4.0), (5.0, 6.0)) if gray else ((3.0, 4.0),),
                "gray" if gray else "red",
                iteration,
            ),
        )
        history.append(IterationSnapshot(iteration=iteration, points=points))
    return history


class TestEmbeddedData:
    def test_header(self, snapshots):
        document = to_embedded_data(snapshots, ["a", "b"], [0.9, 30, "false"])
        assert document["file_format"] == VCED_FILE_FORMAT
        assert document["file_structure_version"] == [1, 0, 0]
        assert document["red_layer_number"] == 0
        assert document["gray_layer_number"] == 1
        assert document["layer_names"] == ["Red", "Gray"]
        assert document["embedding_method_parameters"] == "0.9,30,false"
        assert document["single_class_labels"] == ["a", "b"]

    def test_projections_per_iteration(self, snapshots):
        document = to_embedded_data(snapshots, ["a", "b"], [])
        instance = document["data_instances"][1]
        assert instance["zero_based_index"] == 1
        assert instance["single_class_number"] == 1
        assert len(instance["iteration_projections"]) == 2
        assert [p["layer"] for p in instance["iteration_projections"][0]] == [0]
        assert [p["layer"] for p in instance["iteration_projections"][1]] == [1, 1]
        assert instance["iteration_projections"][1][1]["x"] == 5.0

    def test_requires_snapshots(self):
        with pytest.raises(ValueError):
            to_embedded_data([], [], [])


class TestWriteRunArchive:
    def test_writes_every_artifact(self, snapshots, tmp_path):
        paths = write_run_archive(snapshots, ["a", "b"], ["#000000", "#FFFFFF"], [0.9, 1, "false"], tmp_path)

        last = json.loads(paths["last_iteration"].read_text())
        assert last[1] == {
            "class_label_number": 1,
            "visual_space_coordinates": [[3.0, 4.0], [5.0, 6.0]],
            "data_abstraction_unit_number": 1,
            "iteration": 2,
            "layer": "gray",
        }

        with zipfile.ZipFile(paths["iterations"]) as archive:
            history = json.loads(archive.read("iterations.json"))
        assert len(history) == 2

        with zipfile.ZipFile(paths["embedded_data"]) as archive:
            assert json.loads(archive.read("embedded_data.json"))["embedding_method_name"] == "LVSDE"

        assert "Second projection" in paths["legend"].read_text()


class TestLegend:
    def test_labels_escaped(self):
        text = legend_html(["<cats>", "dogs"], ["#111111", "#222222"])
        assert "&lt;cats&gt;" in text
        assert text.count("#111111") == 3
