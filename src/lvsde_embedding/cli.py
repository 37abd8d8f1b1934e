from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Sequence

from rich.console import Console
from rich.table import Table

from . import __version__
from .data_prep.specification import EmbeddingSpecification, load_specifications
from .pipeline import run_specification

console = Console()
DEFAULT_SPECIFICATIONS_PATH = Path("embedding_specifications.yaml")


def summarize_specifications(specifications: Sequence[EmbeddingSpecification]) -> None:
    table = Table(title="Embedding Specifications", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Input", overflow="fold")
    table.add_column("Output", overflow="fold")
    table.add_column("Points", justify="right")
    table.add_column("Density", justify="right")
    table.add_column("K", justify="right")
    table.add_column("Seed", justify="right")
    table.add_column("Extras")

    for number, spec in enumerate(specifications, start=1):
        extras = []
        if spec.is_input_distances:
            extras.append("distances")
        if spec.use_cosine_distance:
            extras.append("cosine")
        if spec.preliminary_umap:
            extras.append("umap-30")
        if spec.compare_with_other_methods:
            extras.append("compare")
        if spec.evaluation_neighbourhood_sizes:
            extras.append("knn@" + ",".join(str(k) for k in spec.evaluation_neighbourhood_sizes))
        table.add_row(
            str(number),
            str(spec.input_path),
            str(spec.output_dir),
            str(spec.working_size),
            str(spec.density_adjustment),
            str(spec.neighbourhood_graph_size or "N/3"),
            str(spec.seed),
            " ".join(extras) or "-",
        )

    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lvsde",
        description="Layered vertex splitting data embedding.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--spec",
        type=Path,
        default=DEFAULT_SPECIFICATIONS_PATH,
        help="Path to a YAML (or JSON) embedding specifications file.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the specifications and inputs without embedding anything.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Override the worker count of every specification.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    specifications = load_specifications(args.spec)
    if args.workers is not None:
        if args.workers < 1:
            parser.error("--workers must be positive")
        specifications = [spec.model_copy(update={"n_workers": args.workers}) for spec in specifications]

    summarize_specifications(specifications)
    if args.dry_run:
        console.print("[yellow]Dry-run mode: specifications validated, no embedding performed.[/yellow]")
        return

    for number, spec in enumerate(specifications, start=1):
        console.rule(f"Embedding specification {number}/{len(specifications)}")
        run_specification(spec)
    console.print("[green]Finished processing the embedding specification file.[/green]")


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
