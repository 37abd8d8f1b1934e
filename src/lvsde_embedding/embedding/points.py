from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

PRESSURE_AXES = 36

NeighbourRef = Tuple[int, int]


def _zero_axes() -> np.ndarray:
    return np.zeros(PRESSURE_AXES, dtype=np.float64)


@dataclass
class Projection:
    """One 2-D visual slot of a data point.

    Position, mass, the per-iteration force accumulator, the directional
    pressure bins and the outgoing attraction edges travel together so a
    point can never hold a mass or pressure array for a projection it does
    not have.
    """

    position: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float64))
    mass: float = 1.0
    pending_displacement: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float64))
    positive_pressure: np.ndarray = field(default_factory=_zero_axes)
    negative_pressure: np.ndarray = field(default_factory=_zero_axes)
    neighbours: List[NeighbourRef] = field(default_factory=list)

    def reset_accumulators(self) -> None:
        self.pending_displacement[:] = 0.0
        self.positive_pressure[:] = 0.0
        self.negative_pressure[:] = 0.0

    @property
    def axis_pressure(self) -> np.ndarray:
        return self.positive_pressure + self.negative_pressure


@dataclass
class DataPoint:
    index: int
    class_label: int = -1
    original_coordinates: Optional[np.ndarray] = None
    reduced_coordinates: Optional[np.ndarray] = None
    projections: List[Projection] = field(default_factory=lambda: [Projection()])
    is_ineffective: bool = False
    is_in_red_layer: bool = True
    is_frozen: bool = False
    has_split_failed: bool = False
    comparison_positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)

    @property
    def primary(self) -> Projection:
        return self.projections[0]

    @property
    def layer(self) -> str:
        return "red" if self.is_in_red_layer else "gray"

    def move_to_gray_layer(self) -> None:
        self.is_in_red_layer = False
        self.is_ineffective = True
        self.is_frozen = True

    def to_visibility(self, iteration: int) -> "PointVisibility":
        return PointVisibility(
            point_index=self.index,
            class_label=self.class_label,
            positions=tuple((float(p.position[0]), float(p.position[1])) for p in self.projections),
            layer=self.layer,
            iteration=iteration,
        )

    def to_comparison_visibility(self, method: str) -> "PointVisibility":
        x, y = self.comparison_positions[method]
        return PointVisibility(
            point_index=self.index,
            class_label=self.class_label,
            positions=((float(x), float(y)),),
            layer="NA",
            iteration=1,
        )


@dataclass(frozen=True)
class PointVisibility:
    """Immutable per-iteration view of a point, consumed by renderers and evaluation."""

    point_index: int
    class_label: int
    positions: Tuple[Tuple[float, float], ...]
    layer: str
    iteration: int

    def to_dict(self) -> dict:
        return {
            "class_label_number": self.class_label,
            "visual_space_coordinates": [list(p) for p in self.positions],
            "data_abstraction_unit_number": self.point_index,
            "iteration": self.iteration,
            "layer": self.layer,
        }


@dataclass(frozen=True)
class IterationSnapshot:
    iteration: int
    points: Tuple[PointVisibility, ...]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def layer_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for point in self.points:
            counts[point.layer] = counts.get(point.layer, 0) + 1
        return counts

    def to_records(self) -> List[dict]:
        return [point.to_dict() for point in self.points]


@dataclass
class PointSet:
    points: List[DataPoint]
    distances_before: Optional[np.ndarray] = None
    distances_after: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.points)

    @property
    def has_coordinates(self) -> bool:
        return bool(self.points) and self.points[0].original_coordinates is not None

    def coordinate_matrix(self) -> np.ndarray:
        if not self.has_coordinates:
            raise ValueError("Point set was loaded from a distance matrix and has no coordinates.")
        return np.vstack([p.original_coordinates for p in self.points])

    def truncate(self, count: int) -> None:
        """Keep only the first ``count`` points (secondary subset)."""

        if count > len(self.points):
            raise ValueError(f"Cannot keep {count} points out of {len(self.points)}")
        self.points = self.points[:count]
        if self.distances_before is not None:
            self.distances_before = self.distances_before[:count, :count]
        self.distances_after = None

    def snapshot(self, iteration: int) -> IterationSnapshot:
        return IterationSnapshot(
            iteration=iteration,
            points=tuple(point.to_visibility(iteration) for point in self.points),
        )

    def comparison_snapshot(self, method: str) -> IterationSnapshot:
        return IterationSnapshot(
            iteration=1,
            points=tuple(point.to_comparison_visibility(method) for point in self.points),
        )
