from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
from rich.console import Console
from sklearn.manifold import TSNE

from ..data_prep.ingest import read_point_set
from ..data_prep.specification import DEFAULT_CLASS_LABELS, DEFAULT_COLOURS
from ..embedding.points import PointSet

console = Console()

BASELINE_METHODS = ("umap", "tsne")
PRELIMINARY_COMPONENTS = 30


@dataclass
class ManifoldConfig:
    n_components: int = 2
    random_state: int = 5
    use_cosine_distance: bool = False
    figure_dir: Path = Path("reports/compare")


def _metric(point_set: PointSet, cfg: ManifoldConfig) -> str:
    if not point_set.has_coordinates:
        return "precomputed"
    return "cosine" if cfg.use_cosine_distance else "euclidean"


def _input_matrix(point_set: PointSet) -> np.ndarray:
    if point_set.has_coordinates:
        return point_set.coordinate_matrix()
    if point_set.distances_before is None:
        raise ValueError("Point set has neither coordinates nor distances.")
    return point_set.distances_before


def _embed_tsne(X: np.ndarray, metric: str, cfg: ManifoldConfig) -> np.ndarray:
    tsne = TSNE(
        n_components=cfg.n_components,
        init="random",
        learning_rate="auto",
        method="exact",
        metric=metric,
        random_state=cfg.random_state,
    )
    return tsne.fit_transform(X)


def _embed_umap(X: np.ndarray, metric: str, cfg: ManifoldConfig) -> np.ndarray:
    try:
        import umap
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError(
            "UMAP requires the optional dependency 'umap-learn'. Install via 'pip install lvsde-embedding[umap]'."
        ) from exc

    reducer = umap.UMAP(
        n_components=cfg.n_components,
        metric=metric,
        random_state=cfg.random_state,
    )
    return reducer.fit_transform(X)


def reduce_to_thirty_dimensions(point_set: PointSet, cfg: ManifoldConfig) -> np.ndarray:
    """Preliminary UMAP step; the result replaces the input space for distances."""

    metric = _metric(point_set, cfg)
    X = _input_matrix(point_set)
    console.print(
        f"[cyan]Reducing[/cyan] {len(point_set):,} points to {PRELIMINARY_COMPONENTS} dimensions with UMAP ({metric})"
    )
    reduced = _embed_umap(
        X,
        metric,
        ManifoldConfig(
            n_components=PRELIMINARY_COMPONENTS,
            random_state=cfg.random_state,
            use_cosine_distance=cfg.use_cosine_distance,
        ),
    )
    for point, row in zip(point_set.points, reduced):
        point.reduced_coordinates = np.asarray(row, dtype=np.float64)
    return reduced


def compute_baselines(
    point_set: PointSet,
    cfg: ManifoldConfig,
    methods: Sequence[str] = BASELINE_METHODS,
) -> Dict[str, np.ndarray]:
    """2-D UMAP and t-SNE layouts stored on each point for comparison."""

    metric = _metric(point_set, cfg)
    X = _input_matrix(point_set)
    embeddings: Dict[str, np.ndarray] = {}
    for method in methods:
        console.print(f"[cyan]Running {method.upper()}[/cyan] on {len(point_set):,} points ({metric})")
        if method == "tsne":
            embedding = _embed_tsne(X, metric, cfg)
        elif method == "umap":
            embedding = _embed_umap(X, metric, cfg)
        else:
            raise ValueError(f"Unsupported method {method}")
        for point, (x, y) in zip(point_set.points, embedding):
            point.comparison_positions[method] = (float(x), float(y))
        embeddings[method] = embedding
    return embeddings


def plot_baseline(
    point_set: PointSet,
    method: str,
    class_labels: Sequence[str],
    colours: Sequence[str],
    figure_dir: Path,
) -> Path:
    embed_df = pd.DataFrame(
        [
            (*point.comparison_positions[method], class_labels[point.class_label])
            for point in point_set.points
        ],
        columns=["dim1", "dim2", "class_label"],
    )
    palette = {label: colour for label, colour in zip(class_labels, colours)}

    figure_dir.mkdir(parents=True, exist_ok=True)
    plt.figure(figsize=(8, 8))
    sns.scatterplot(
        data=embed_df,
        x="dim1",
        y="dim2",
        hue="class_label",
        palette=palette,
        s=25,
        alpha=0.8,
        edgecolor="black",
        linewidth=0.3,
    )
    plt.title(f"{method.upper()} embedding")
    plt.tight_layout()
    fig_path = figure_dir / f"{method}.png"
    plt.savefig(fig_path, dpi=200)
    plt.close()

    console.print(f"[green]Saved embedding figure:[/] {fig_path}")
    return fig_path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate t-SNE/UMAP baseline layouts for an LVSDE input file.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--input", type=Path, required=True)
    parser.add_argument("--distances", action="store_true", help="Input rows are distance-matrix rows.")
    parser.add_argument("--max-rows", type=int, default=None)
    parser.add_argument("--method", choices=list(BASELINE_METHODS), nargs="+", default=list(BASELINE_METHODS))
    parser.add_argument("--cosine", action="store_true")
    parser.add_argument("--random-state", type=int, default=ManifoldConfig.random_state)
    parser.add_argument("--figure-dir", type=Path, default=ManifoldConfig.figure_dir)
    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    cfg = ManifoldConfig(
        random_state=args.random_state,
        use_cosine_distance=args.cosine,
        figure_dir=args.figure_dir,
    )
    point_set = read_point_set(
        args.input,
        is_input_distances=args.distances,
        max_rows=args.max_rows,
        colour_count=len(DEFAULT_COLOURS),
    )
    compute_baselines(point_set, cfg, args.method)
    for method in args.method:
        plot_baseline(point_set, method, DEFAULT_CLASS_LABELS, DEFAULT_COLOURS, cfg.figure_dir)


if __name__ == "__main__":  # pragma: no cover
    main()
