from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .points import DataPoint, NeighbourRef, Projection


def axis_directions(count: int = 36) -> np.ndarray:
    """Unit vectors ``(cos, sin)`` of the pressure axes, 360/count degrees apart."""

    angles = np.pi * np.arange(count) * (360.0 / count) / 180.0
    return np.column_stack([np.cos(angles), np.sin(angles)])


def split_vertex(
    points: Sequence[DataPoint],
    point: DataPoint,
    axes: np.ndarray,
    index: int = 0,
) -> bool:
    """Split ``point.projections[index]`` along its highest-pressure axis.

    The neighbours are bisected by the sign of their offset projected onto the
    selected axis. Neighbours on the negative side stay with the original
    projection; the others move to a new projection placed at their
    centroid. Mass is shared in proportion to the edge counts. A point with
    no pressure, or whose neighbours all fall on one side, is flagged with
    ``has_split_failed`` and left untouched.
    """

    projection = point.projections[index]
    pressure = projection.axis_pressure
    if not np.any(pressure > 0):
        point.has_split_failed = True
        return False

    # argmax returns the first maximum, so ties go to the lowest axis.
    direction = axes[int(np.argmax(pressure))]

    group_1: List[NeighbourRef] = []
    group_2: List[NeighbourRef] = []
    for ref in projection.neighbours:
        neighbour_position = points[ref[0]].projections[ref[1]].position
        offset = neighbour_position - projection.position
        if float(direction @ offset) < 0:
            group_1.append(ref)
        else:
            group_2.append(ref)

    if not group_1 or not group_2:
        point.has_split_failed = True
        return False

    total = len(projection.neighbours)
    centroid = np.mean([points[p].projections[q].position for p, q in group_2], axis=0)
    mass = projection.mass

    duplicate = Projection(position=np.array(centroid, dtype=np.float64), mass=0.0)
    duplicate.neighbours = group_2
    duplicate.mass = mass * (len(group_2) / total)

    projection.neighbours = group_1
    projection.mass = mass * (len(group_1) / total)
    point.projections.append(duplicate)
    return True
