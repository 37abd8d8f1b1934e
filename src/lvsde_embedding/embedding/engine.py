from __future__ import annotations

import math
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np
from rich.console import Console
from rich.progress import track

from .distances import euclidean_distances, transform_distances
from .forces import (
    ForceParameters,
    ForceState,
    ProjectionLayout,
    attraction_source_slice,
    attraction_target_slice,
    repulsion_slice,
)
from .neighbourhood import build_neighbourhood_graph, default_graph_size
from .points import PRESSURE_AXES, DataPoint, IterationSnapshot, PointSet
from .splitting import axis_directions, split_vertex

console = Console()

NUMBER_OF_ITERATIONS = 1830
PHASE_2_ITERATION = 500
PHASE_3_ITERATION = 950
PHASE_4_ITERATION = 1340
PHASE_3_TEMPERATURE_ADJUSTMENT = 440
PHASE_4_TEMPERATURE_ADJUSTMENT = 830
INITIAL_TEMPERATURE = 100.0
CANVAS_WIDTH = 1000.0
CANVAS_HEIGHT = 1000.0
GRAY_CAPACITY_Z_SCORE = 1.2
FRAME_MARGIN_FRACTION = 1.0 / 20.0


class NumericalInstabilityError(FloatingPointError):
    """A projection position became NaN or infinite; the run cannot continue."""


def default_worker_count() -> int:
    return max(1, (os.cpu_count() or 2) - 1)


def initial_placement(count: int, seed: int, width: float = CANVAS_WIDTH, height: float = CANVAS_HEIGHT) -> np.ndarray:
    """Uniform random positions on the canvas, x then y per point."""

    rng = np.random.default_rng(seed)
    return rng.random((count, 2)) * np.array([width, height])


@dataclass
class Frame:
    low_x: float
    high_x: float
    low_y: float
    high_y: float

    @classmethod
    def around(cls, points: Sequence[DataPoint]) -> "Frame":
        positions = np.array([p.position for point in points for p in point.projections])
        low = positions.min(axis=0)
        high = positions.max(axis=0)
        margin = (high - low) * FRAME_MARGIN_FRACTION
        return cls(
            low_x=float(low[0] - margin[0]),
            high_x=float(high[0] + margin[0]),
            low_y=float(low[1] - margin[1]),
            high_y=float(high[1] + margin[1]),
        )

    def clamp(self, position: np.ndarray) -> None:
        position[0] = min(max(position[0], self.low_x), self.high_x)
        position[1] = min(max(position[1], self.low_y), self.high_y)


@dataclass
class SimulationContext:
    """Mutable state of one embedding run, handed to every step and worker."""

    point_set: PointSet
    parameters: ForceParameters
    n_workers: int
    phase: int = 1
    iteration: int = 0
    temperature_adjustment: int = -1
    temperature: float = INITIAL_TEMPERATURE
    frame: Optional[Frame] = None
    gray_capacity: int = -1
    gray_size: int = 0
    layout: Optional[ProjectionLayout] = None

    @property
    def points(self) -> List[DataPoint]:
        return self.point_set.points

    @property
    def records_pressure(self) -> bool:
        return self.phase >= 2

    def update_temperature(self) -> float:
        self.temperature = INITIAL_TEMPERATURE - (
            (self.iteration - self.temperature_adjustment) / 1000.0
        ) * INITIAL_TEMPERATURE
        return self.temperature

    def current_layout(self) -> ProjectionLayout:
        if self.layout is None:
            self.layout = ProjectionLayout.from_points(self.points, self.point_set.distances_after)
        return self.layout


@dataclass
class EmbeddingResult:
    snapshots: List[IterationSnapshot]
    points: List[DataPoint]
    density_adjustment: float
    neighbourhood_graph_size: int
    random_seed: int
    gray_layer_capacity: int
    split_failures: int = 0
    elapsed_seconds: float = 0.0

    @property
    def last_snapshot(self) -> IterationSnapshot:
        return self.snapshots[-1]


def max_pressure_per_point(points: Sequence[DataPoint]) -> np.ndarray:
    return np.array([max(0.0, float(point.primary.axis_pressure.max())) for point in points])


def compute_gray_capacity(points: Sequence[DataPoint]) -> int:
    """Number of points whose peak axis pressure is an outlier (|z| > 1.2), at most N/4."""

    peaks = max_pressure_per_point(points)
    mean = peaks.mean()
    std = peaks.std()
    capacity = int(np.count_nonzero(np.abs(peaks - mean) > GRAY_CAPACITY_Z_SCORE * std))
    return min(capacity, len(points) // 4)


def demote_one_red_point(points: Sequence[DataPoint]) -> Optional[DataPoint]:
    """Move the red point with the single highest axis pressure to the gray layer.

    Scanning is point by point, axis by axis; the first maximum found wins.
    """

    red = [point for point in points if point.is_in_red_layer]
    if not red:
        return None
    pressures = np.vstack([point.primary.axis_pressure for point in red])
    chosen = red[int(np.argmax(pressures)) // PRESSURE_AXES]
    chosen.move_to_gray_layer()
    return chosen


def _run_partitioned(executor: ThreadPoolExecutor, n_slices: int, task: Callable[[int], None]) -> None:
    futures = [executor.submit(task, slice_number) for slice_number in range(n_slices)]
    # Barrier: every slice must finish before the next pass reads the accumulators.
    for future in futures:
        future.result()


class LVSDEEngine:
    """Four-phase layered vertex splitting layout.

    Phase 1 lays out every point. Phase 2 demotes points under unusually
    strong directional pressure to the gray layer, one per iteration. Phase 3
    freezes the red layer and lets the gray layer settle around it. Phase 4
    splits gray points whose neighbourhood pulls them two ways.
    """

    def __init__(
        self,
        density_adjustment: float = 0.9,
        neighbourhood_graph_size: Optional[int] = None,
        random_seed: int = 5,
        n_workers: Optional[int] = None,
    ) -> None:
        if not 0.0 < density_adjustment < 1.0:
            raise ValueError(f"Density adjustment must lie in (0, 1), got {density_adjustment}")
        self.density_adjustment = density_adjustment
        self.neighbourhood_graph_size = neighbourhood_graph_size
        self.random_seed = random_seed
        self.n_workers = n_workers or default_worker_count()

    def prepare(self, point_set: PointSet) -> SimulationContext:
        """Transform distances, build the graph and place every point."""

        if point_set.distances_before is None:
            raise ValueError("Point set has no distances; compute them before embedding.")
        points = point_set.points
        n = len(points)

        point_set.distances_after = transform_distances(point_set.distances_before)

        k = self.neighbourhood_graph_size or default_graph_size(n)
        self.neighbourhood_graph_size = k
        build_neighbourhood_graph(points, point_set.distances_after, k)

        coordinates = initial_placement(n, self.random_seed)
        for point, xy in zip(points, coordinates):
            point.projections[0].position[:] = xy
            point.projections[0].pending_displacement[:] = 0.0

        squared_base = CANVAS_WIDTH * CANVAS_HEIGHT / n
        max_transformed = float(point_set.distances_after.max())
        max_visual = float(euclidean_distances(coordinates).max())
        parameters = ForceParameters(
            squared_base_distance=squared_base,
            base_distance=math.sqrt(squared_base),
            density_adjustment=self.density_adjustment,
            max_transformed_distance=max_transformed if max_transformed > 0 else 1.0,
            max_initial_visual_distance=max_visual if max_visual > 0 else 1.0,
            axes=axis_directions(PRESSURE_AXES),
        )
        return SimulationContext(point_set=point_set, parameters=parameters, n_workers=self.n_workers)

    def embed(self, point_set: PointSet) -> EmbeddingResult:
        started = time.perf_counter()
        console.print(f"[cyan]Parallel workers:[/cyan] {self.n_workers}")
        ctx = self.prepare(point_set)

        snapshots: List[IterationSnapshot] = []
        with ThreadPoolExecutor(max_workers=ctx.n_workers) as executor:
            iterations = range(1, NUMBER_OF_ITERATIONS + 1)
            for iteration in track(iterations, description="LVSDE iterations", console=console):
                ctx.iteration = iteration
                snapshots.append(self.step(ctx, executor))

        split_failures = sum(1 for point in ctx.points if point.has_split_failed)
        return EmbeddingResult(
            snapshots=snapshots,
            points=ctx.points,
            density_adjustment=self.density_adjustment,
            neighbourhood_graph_size=self.neighbourhood_graph_size,
            random_seed=self.random_seed,
            gray_layer_capacity=ctx.gray_capacity,
            split_failures=split_failures,
            elapsed_seconds=time.perf_counter() - started,
        )

    def step(self, ctx: SimulationContext, executor: ThreadPoolExecutor) -> IterationSnapshot:
        ctx.update_temperature()
        self.accumulate_forces(ctx, executor)
        self.apply_displacements(ctx)

        if ctx.phase == 2:
            if ctx.gray_capacity == -1:
                ctx.gray_capacity = compute_gray_capacity(ctx.points)
            if ctx.gray_size < ctx.gray_capacity and demote_one_red_point(ctx.points) is not None:
                ctx.gray_size += 1

        snapshot = ctx.point_set.snapshot(ctx.iteration)
        self.change_phase_if_required(ctx)
        return snapshot

    def accumulate_forces(self, ctx: SimulationContext, executor: ThreadPoolExecutor) -> None:
        for point in ctx.points:
            for projection in point.projections:
                projection.reset_accumulators()

        layout = ctx.current_layout()
        state = ForceState.gather(ctx.points, layout)
        n = ctx.n_workers
        record = ctx.records_pressure
        params = ctx.parameters

        _run_partitioned(executor, n, lambda s: repulsion_slice(state, layout, params, s, n, record))
        _run_partitioned(executor, n, lambda s: attraction_source_slice(state, layout, params, s, n, record))
        _run_partitioned(executor, n, lambda s: attraction_target_slice(state, layout, params, s, n, record))

        state.scatter(ctx.points, layout)

    def apply_displacements(self, ctx: SimulationContext) -> None:
        temperature = ctx.temperature
        for point in ctx.points:
            if point.is_frozen:
                continue
            for projection in point.projections:
                displacement = projection.pending_displacement
                length = math.hypot(displacement[0], displacement[1])
                if length > temperature:
                    projection.position += displacement * (temperature / length)
                else:
                    projection.position += displacement

                if not np.all(np.isfinite(projection.position)):
                    raise NumericalInstabilityError(
                        f"Point {point.index} reached a non-finite position at iteration {ctx.iteration}."
                    )

                if ctx.phase >= 2:
                    ctx.frame.clamp(projection.position)

    def change_phase_if_required(self, ctx: SimulationContext) -> None:
        if ctx.iteration == PHASE_2_ITERATION:
            ctx.phase = 2
            ctx.frame = Frame.around(ctx.points)
            console.print(f"[cyan]Phase 2[/cyan] at iteration {ctx.iteration}: selecting the gray layer")
        elif ctx.iteration == PHASE_3_ITERATION:
            ctx.phase = 3
            ctx.temperature_adjustment = PHASE_3_TEMPERATURE_ADJUSTMENT
            console.print(f"[cyan]Phase 3[/cyan] at iteration {ctx.iteration}: {ctx.gray_size} gray points, red layer frozen")
            for point in ctx.points:
                if point.is_in_red_layer:
                    point.is_frozen = True
                else:
                    point.is_ineffective = False
                    point.is_frozen = False
        elif ctx.iteration == PHASE_4_ITERATION:
            ctx.phase = 4
            ctx.temperature_adjustment = PHASE_4_TEMPERATURE_ADJUSTMENT
            for point in ctx.points:
                if not point.is_in_red_layer:
                    split_vertex(ctx.points, point, ctx.parameters.axes)
            ctx.layout = None
            splits = sum(1 for point in ctx.points if len(point.projections) > 1)
            console.print(f"[cyan]Phase 4[/cyan] at iteration {ctx.iteration}: {splits} gray points split")

