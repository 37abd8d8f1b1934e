from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
from rich.console import Console

from ..embedding.points import DataPoint, PointSet

console = Console()


def _read_table(path: Path, max_rows: Optional[int]) -> pd.DataFrame:
    """Load a header-less numeric table; the format follows the file suffix."""

    if not path.exists():
        raise FileNotFoundError(f"Input file missing at {path}")

    if path.suffix == ".parquet":
        df = pd.read_parquet(path)
        if max_rows is not None:
            df = df.iloc[:max_rows]
    else:
        df = pd.read_csv(path, header=None, nrows=max_rows, skipinitialspace=True)

    numeric = df.apply(pd.to_numeric, errors="coerce")
    bad = numeric.isna() & df.notna()
    if bad.to_numpy().any():
        row, col = np.argwhere(bad.to_numpy())[0]
        raise ValueError(f"Non-numeric value {df.iat[row, col]!r} at row {row}, column {col} of {path}")
    if numeric.isna().to_numpy().any():
        raise ValueError(f"Missing values in {path}")
    return numeric


def read_point_set(
    path: Path,
    is_input_distances: bool = False,
    max_rows: Optional[int] = None,
    colour_count: Optional[int] = None,
) -> PointSet:
    """Read data points (or a distance matrix) with the class label in column 0.

    For distance input every row carries the label followed by that point's
    row of the N x N matrix; only the first ``max_rows`` rows and columns are
    kept.
    """

    df = _read_table(path, max_rows)
    if df.shape[1] < 2:
        raise ValueError(f"{path} needs a class label column followed by at least one value column")

    labels = df.iloc[:, 0].to_numpy()
    if not np.all(labels == np.round(labels)):
        raise ValueError(f"Class labels in {path} must be integers")
    labels = labels.astype(np.int64)
    if labels.size and labels.min() < 0:
        raise ValueError(f"Class labels in {path} must be non-negative, found {labels.min()}")
    if colour_count is not None and labels.size and labels.max() > colour_count - 1:
        raise ValueError(
            f"Class label {labels.max()} needs more colours than the {colour_count} available"
        )

    values = df.iloc[:, 1:].to_numpy(dtype=np.float64)
    n = len(df)

    if is_input_distances:
        if values.shape[1] < n:
            raise ValueError(f"Distance rows in {path} have {values.shape[1]} columns, expected at least {n}")
        distances = values[:, :n]
        points = [DataPoint(index=i, class_label=int(labels[i])) for i in range(n)]
        return PointSet(points=points, distances_before=distances)

    points = [
        DataPoint(index=i, class_label=int(labels[i]), original_coordinates=values[i].copy())
        for i in range(n)
    ]
    return PointSet(points=points)


def summarize_point_set(point_set: PointSet) -> pd.DataFrame:
    labels = pd.Series([p.class_label for p in point_set.points], name="class_label")
    return labels.value_counts().sort_index().rename("count").to_frame()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect an LVSDE input file (class label in column 0).",
    )
    parser.add_argument("--input", type=Path, required=True, help="Header-less CSV or parquet file.")
    parser.add_argument("--distances", action="store_true", help="Rows are distance-matrix rows.")
    parser.add_argument("--max-rows", type=int, default=None)
    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    point_set = read_point_set(args.input, is_input_distances=args.distances, max_rows=args.max_rows)
    console.print(f"[green]Loaded[/green] {len(point_set)} points from {args.input}")
    console.print(summarize_point_set(point_set))


if __name__ == "__main__":  # pragma: no cover
    main()
