from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_COLOURS = [
    "#8AB9F1",
    "#6F4E37",
    "#00FF00",
    "#8B008B",
    "#00356B",
    "#E1A95F",
    "#4F7942",
    "#FF66CC",
    "#F4C430",
    "#8806CE",
]
DEFAULT_CLASS_LABELS = [str(i) for i in range(10)]
DEFAULT_RANDOM_STATE = 5

_HEX_COLOUR = re.compile(r"^#[0-9A-Fa-f]{6}$")


class EmbeddingSpecification(BaseModel):
    """One embedding run: input, output and algorithm parameters."""

    input_path: Path
    is_input_distances: bool = False
    output_dir: Path
    number_of_initial_points: int = Field(gt=0)
    number_of_secondary_points: Optional[int] = Field(default=None, gt=0)
    class_labels: Optional[List[str]] = None
    colours: Optional[List[str]] = None
    random_seed: Optional[int] = None
    random_state: Optional[int] = None
    preliminary_umap: bool = False
    density_adjustment: float = 0.9
    neighbourhood_graph_size: Optional[int] = Field(default=None, gt=0)
    evaluation_neighbourhood_sizes: List[int] = Field(default_factory=list)
    compare_with_other_methods: bool = False
    use_cosine_distance: bool = False
    n_workers: Optional[int] = Field(default=None, gt=0)

    @field_validator("input_path", "output_dir", mode="before")
    @classmethod
    def _expand_path(cls, value: str | Path) -> Path:
        return Path(value).expanduser()

    @field_validator("density_adjustment")
    @classmethod
    def _check_density(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("density_adjustment must be strictly between 0 and 1")
        return value

    @field_validator("random_state")
    @classmethod
    def _check_state(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("random_state must not be negative")
        return value

    @field_validator("colours")
    @classmethod
    def _check_colours(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return value
        for colour in value:
            if not _HEX_COLOUR.match(colour):
                raise ValueError(f"'{colour}' is not a #RRGGBB colour")
        return value

    @field_validator("evaluation_neighbourhood_sizes")
    @classmethod
    def _check_sizes(cls, value: List[int]) -> List[int]:
        if any(k < 1 for k in value):
            raise ValueError("evaluation neighbourhood sizes must be positive")
        return value

    @model_validator(mode="after")
    def _check_consistency(self) -> "EmbeddingSpecification":
        if self.random_seed is not None and self.random_state is not None:
            raise ValueError("random_seed and random_state are mutually exclusive")
        if (
            self.number_of_secondary_points is not None
            and self.number_of_secondary_points > self.number_of_initial_points
        ):
            raise ValueError("number_of_secondary_points cannot exceed number_of_initial_points")
        if self.colours is None:
            if self.class_labels is not None and len(self.class_labels) > len(DEFAULT_COLOURS):
                raise ValueError(
                    f"{len(self.class_labels)} class labels need an explicit colour list "
                    f"(only {len(DEFAULT_COLOURS)} default colours)"
                )
        elif len(self.colours) != len(self.resolved_class_labels):
            raise ValueError("colours and class_labels must have the same length")
        return self

    @property
    def resolved_class_labels(self) -> List[str]:
        if self.class_labels is not None:
            return list(self.class_labels)
        if self.colours is not None:
            return [str(i) for i in range(len(self.colours))]
        return list(DEFAULT_CLASS_LABELS)

    @property
    def resolved_colours(self) -> List[str]:
        if self.colours is not None:
            return list(self.colours)
        return DEFAULT_COLOURS[: len(self.resolved_class_labels)]

    @property
    def seed(self) -> int:
        """Seed of the initial placement: ``random_seed`` if set, else ``random_state``."""

        if self.random_seed is not None:
            return self.random_seed
        return self.state

    @property
    def state(self) -> int:
        return DEFAULT_RANDOM_STATE if self.random_state is None else self.random_state

    @property
    def working_size(self) -> int:
        return self.number_of_secondary_points or self.number_of_initial_points

    def resolve_paths(self, base_dir: Path) -> "EmbeddingSpecification":
        """Return a copy whose relative paths are anchored at ``base_dir``."""

        updates = {}
        if not self.input_path.is_absolute():
            updates["input_path"] = base_dir / self.input_path
        if not self.output_dir.is_absolute():
            updates["output_dir"] = base_dir / self.output_dir
        return self.model_copy(update=updates)

    def check_filesystem(self) -> None:
        if not self.input_path.exists():
            raise FileNotFoundError(f"Input file '{self.input_path}' not found")
        if self.output_dir.exists():
            raise FileExistsError(f"Output directory '{self.output_dir}' already exists")


class EmbeddingSpecifications(BaseModel):
    """Top-level specifications file; every entry is run in order."""

    embedding_specifications: List[EmbeddingSpecification]

    @field_validator("embedding_specifications")
    @classmethod
    def _non_empty(cls, value: List[EmbeddingSpecification]) -> List[EmbeddingSpecification]:
        if not value:
            raise ValueError("Specifications file must define at least one embedding")
        return value


def load_specifications(path: Path, check_filesystem: bool = True) -> List[EmbeddingSpecification]:
    """Load, validate and path-resolve the embedding specifications in ``path``."""

    if not path.exists():
        raise FileNotFoundError(f"Specifications file '{path}' not found")

    with path.open("r", encoding="utf-8") as fp:
        raw = yaml.safe_load(fp) or {}

    specifications = EmbeddingSpecifications(**raw)
    base_dir = path.resolve().parent
    resolved = [spec.resolve_paths(base_dir) for spec in specifications.embedding_specifications]
    if check_filesystem:
        for spec in resolved:
            spec.check_filesystem()
    return resolved
