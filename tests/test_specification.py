"""Tests for embedding specification loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from lvsde_embedding.data_prep.specification import (
    DEFAULT_COLOURS,
    EmbeddingSpecification,
    load_specifications,
)


def _spec(**overrides):
    values = {"input_path": "points.csv", "output_dir": "out", "number_of_initial_points": 100}
    values.update(overrides)
    return EmbeddingSpecification(**values)


def _write(tmp_path, entries):
    path = tmp_path / "spec.yaml"
    path.write_text(yaml.safe_dump({"embedding_specifications": entries}))
    return path


class TestDefaults:
    def test_defaults(self):
        spec = _spec()
        assert spec.density_adjustment == 0.9
        assert spec.seed == 5
        assert spec.preliminary_umap is False
        assert spec.resolved_class_labels == [str(i) for i in range(10)]
        assert spec.resolved_colours == DEFAULT_COLOURS

    def test_example_config_sets_preliminary_umap_explicitly(self):
        path = Path(__file__).resolve().parents[1] / "configs" / "embedding_specifications.example.yaml"
        raw = yaml.safe_load(path.read_text())
        assert all("preliminary_umap" in entry for entry in raw["embedding_specifications"])
        (spec,) = load_specifications(path, check_filesystem=False)
        assert spec.preliminary_umap is False

    def test_colours_follow_labels(self):
        spec = _spec(class_labels=["cat", "dog"])
        assert spec.resolved_colours == DEFAULT_COLOURS[:2]

    def test_seed_prefers_random_seed(self):
        assert _spec(random_seed=42).seed == 42
        assert _spec(random_state=7).seed == 7

    def test_working_size(self):
        assert _spec(number_of_secondary_points=60).working_size == 60
        assert _spec().working_size == 100


class TestValidation:
    @pytest.mark.parametrize("density", [0.0, 1.0, 1.2])
    def test_density_range(self, density):
        with pytest.raises(ValidationError):
            _spec(density_adjustment=density)

    def test_seed_and_state_exclusive(self):
        with pytest.raises(ValidationError):
            _spec(random_seed=1, random_state=2)

    def test_negative_state(self):
        with pytest.raises(ValidationError):
            _spec(random_state=-1)

    def test_too_many_labels_without_colours(self):
        with pytest.raises(ValidationError):
            _spec(class_labels=[str(i) for i in range(11)])

    def test_colour_label_mismatch(self):
        with pytest.raises(ValidationError):
            _spec(class_labels=["a", "b"], colours=["#000000"])

    def test_malformed_colour(self):
        with pytest.raises(ValidationError):
            _spec(colours=["red"])

    def test_secondary_larger_than_initial(self):
        with pytest.raises(ValidationError):
            _spec(number_of_secondary_points=101)


class TestLoadSpecifications:
    def test_relative_paths_resolved(self, tmp_path):
        (tmp_path / "points.csv").write_text("0,1.0\n")
        path = _write(tmp_path, [{"input_path": "points.csv", "output_dir": "run", "number_of_initial_points": 1}])
        (spec,) = load_specifications(path)
        assert spec.input_path == tmp_path.resolve() / "points.csv"
        assert spec.output_dir == tmp_path.resolve() / "run"

    def test_multiple_entries_kept_in_order(self, tmp_path):
        (tmp_path / "points.csv").write_text("0,1.0\n")
        entries = [
            {"input_path": "points.csv", "output_dir": f"run{i}", "number_of_initial_points": 1} for i in range(3)
        ]
        specs = load_specifications(_write(tmp_path, entries))
        assert [s.output_dir.name for s in specs] == ["run0", "run1", "run2"]

    def test_existing_output_dir(self, tmp_path):
        (tmp_path / "points.csv").write_text("0,1.0\n")
        (tmp_path / "run").mkdir()
        path = _write(tmp_path, [{"input_path": "points.csv", "output_dir": "run", "number_of_initial_points": 1}])
        with pytest.raises(FileExistsError):
            load_specifications(path)

    def test_missing_input(self, tmp_path):
        path = _write(tmp_path, [{"input_path": "nope.csv", "output_dir": "run", "number_of_initial_points": 1}])
        with pytest.raises(FileNotFoundError):
            load_specifications(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_specifications(tmp_path / "absent.yaml")

    def test_empty_list_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            load_specifications(_write(tmp_path, []))
