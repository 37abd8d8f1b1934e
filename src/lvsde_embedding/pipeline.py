from __future__ import annotations

from pathlib import Path
from typing import Dict

from rich.console import Console
from rich.table import Table

from .data_prep.ingest import read_point_set
from .data_prep.specification import EmbeddingSpecification
from .embedding.distances import compute_distances
from .embedding.engine import EmbeddingResult, LVSDEEngine
from .embedding.points import PointSet
from .evaluation.knn_accuracy import BASELINE_COMBINATIONS, write_evaluation
from .export.archive import write_run_archive, write_snapshot_json
from .visualization.manifold import (
    BASELINE_METHODS,
    ManifoldConfig,
    compute_baselines,
    plot_baseline,
    reduce_to_thirty_dimensions,
)
from .visualization.render import render_colourings

console = Console()

METHOD_DISPLAY_NAMES = {"umap": "UMAP", "tsne": "t-SNE"}


def prepare_point_set(spec: EmbeddingSpecification) -> PointSet:
    """Load the input and run the optional external reductions.

    Reductions see every initial point; only the first
    ``number_of_secondary_points`` are kept afterwards.
    """

    point_set = read_point_set(
        spec.input_path,
        is_input_distances=spec.is_input_distances,
        max_rows=spec.number_of_initial_points,
        colour_count=len(spec.resolved_colours),
    )
    console.print(f"[cyan]Loaded[/cyan] {len(point_set):,} points from {spec.input_path}")

    manifold_cfg = ManifoldConfig(random_state=spec.state, use_cosine_distance=spec.use_cosine_distance)
    if spec.compare_with_other_methods:
        compute_baselines(point_set, manifold_cfg)
    if spec.preliminary_umap:
        reduce_to_thirty_dimensions(point_set, manifold_cfg)

    if spec.working_size < len(point_set):
        point_set.truncate(spec.working_size)

    compute_distances(point_set, use_cosine=spec.use_cosine_distance)
    return point_set


def _write_comparisons(spec: EmbeddingSpecification, point_set: PointSet) -> Dict[str, Path]:
    compare_dir = spec.output_dir / "compare"
    class_labels = spec.resolved_class_labels
    colours = spec.resolved_colours
    paths: Dict[str, Path] = {}
    for method in BASELINE_METHODS:
        name = METHOD_DISPLAY_NAMES[method]
        snapshot = point_set.comparison_snapshot(method)
        render_colourings(snapshot, colours, compare_dir, prefix=name)
        paths[f"{method}_json"] = write_snapshot_json(snapshot, compare_dir / f"{name}_embedding.json")
        paths[f"{method}_plot"] = plot_baseline(point_set, method, class_labels, colours, compare_dir / "plots")
        if spec.evaluation_neighbourhood_sizes:
            evaluation = write_evaluation(
                snapshot,
                spec.evaluation_neighbourhood_sizes,
                compare_dir,
                name=f"evaluation_{name}",
                combinations=BASELINE_COMBINATIONS,
            )
            paths[f"{method}_evaluation"] = evaluation["csv"]
    return paths


def summarize_result(spec: EmbeddingSpecification, result: EmbeddingResult) -> None:
    counts = result.last_snapshot.layer_counts()
    table = Table(title="LVSDE Run Summary", show_header=True, header_style="bold cyan")
    table.add_column("Key", style="bold")
    table.add_column("Value", overflow="fold")
    table.add_row("output_dir", str(spec.output_dir))
    table.add_row("points", str(len(result.points)))
    table.add_row("neighbourhood_graph_size", str(result.neighbourhood_graph_size))
    table.add_row("density_adjustment", str(result.density_adjustment))
    table.add_row("random_seed", str(result.random_seed))
    table.add_row("red / gray", f"{counts.get('red', 0)} / {counts.get('gray', 0)}")
    table.add_row("gray_layer_capacity", str(result.gray_layer_capacity))
    table.add_row("split_failures", str(result.split_failures))
    table.add_row("elapsed", f"{result.elapsed_seconds:.1f}s")
    console.print(table)


def run_specification(spec: EmbeddingSpecification) -> EmbeddingResult:
    """Run one embedding end to end and write every artifact to ``spec.output_dir``."""

    if spec.output_dir.exists():
        raise FileExistsError(f"Output directory '{spec.output_dir}' already exists")

    point_set = prepare_point_set(spec)
    engine = LVSDEEngine(
        density_adjustment=spec.density_adjustment,
        neighbourhood_graph_size=spec.neighbourhood_graph_size,
        random_seed=spec.seed,
        n_workers=spec.n_workers,
    )
    result = engine.embed(point_set)

    spec.output_dir.mkdir(parents=True)
    console.print("[cyan]Saving to file...[/cyan]")
    class_labels = spec.resolved_class_labels
    colours = spec.resolved_colours
    render_colourings(result.last_snapshot, colours, spec.output_dir)
    write_run_archive(
        result.snapshots,
        class_labels,
        colours,
        [result.density_adjustment, result.neighbourhood_graph_size, str(spec.preliminary_umap).lower()],
        spec.output_dir,
    )

    if spec.evaluation_neighbourhood_sizes:
        write_evaluation(result.last_snapshot, spec.evaluation_neighbourhood_sizes, spec.output_dir)
    if spec.compare_with_other_methods:
        _write_comparisons(spec, point_set)

    summarize_result(spec, result)
    return result

