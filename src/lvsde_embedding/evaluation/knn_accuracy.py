from __future__ import annotations

import argparse
import json
import math
import zipfile
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from rich.console import Console
from sklearn.metrics import accuracy_score, confusion_matrix

from ..embedding.points import IterationSnapshot, PointVisibility

console = Console()

INSUFFICIENT = "not enough neighbours"

LayerSet = Tuple[str, ...]

LAYER_COMBINATIONS: List[Tuple[str, LayerSet, LayerSet]] = [
    ("KNN_accuracy_(red_and_gray)_(red_and_gray)", ("red", "gray"), ("red", "gray")),
    ("KNN_accuracy_(red_and_gray)_(red)", ("red", "gray"), ("red",)),
    ("KNN_accuracy_(red)_(red)", ("red",), ("red",)),
    ("KNN_accuracy_(gray)_(gray)", ("gray",), ("gray",)),
    ("KNN_accuracy_(gray)_(red)", ("gray",), ("red",)),
    ("KNN_accuracy_(gray)_(red_and_gray)", ("gray",), ("red", "gray")),
]

BASELINE_COMBINATIONS: List[Tuple[str, LayerSet, LayerSet]] = [
    ("KNN_accuracy", ("NA",), ("NA",)),
]


@dataclass
class EvaluationResult:
    neighbourhood_size: int
    evaluation_layers: LayerSet
    neighbour_layers: LayerSet
    accuracy: float
    confusion: Optional[pd.DataFrame] = None

    @property
    def sufficient(self) -> bool:
        return not math.isnan(self.accuracy)

    def formatted(self) -> str:
        return f"{self.accuracy:.3f}%" if self.sufficient else INSUFFICIENT


def _majority_label(counts: Counter) -> int:
    best_label = -1
    best_count = -1
    for label in sorted(counts):
        if counts[label] > best_count:
            best_count = counts[label]
            best_label = label
    return best_label


def _neighbour_table(points: Sequence[PointVisibility], layers: LayerSet) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
    owners: List[int] = []
    slots: List[int] = []
    positions: List[Tuple[float, float]] = []
    labels: List[int] = []
    for point in points:
        if point.layer not in layers:
            continue
        for slot, xy in enumerate(point.positions):
            owners.append(point.point_index)
            slots.append(slot)
            positions.append(xy)
            labels.append(point.class_label)
    return (
        np.array(owners, dtype=np.int64),
        np.array(slots, dtype=np.int64),
        np.array(positions, dtype=np.float64).reshape(-1, 2),
        np.array(labels, dtype=np.int64),
    )


def evaluate_embedding(
    snapshot: IterationSnapshot | Sequence[PointVisibility],
    neighbourhood_size: int,
    evaluation_layers: Iterable[str],
    neighbour_layers: Iterable[str],
) -> EvaluationResult:
    """k-NN classification accuracy of a layout.

    Every projection of a point in ``evaluation_layers`` votes with the class
    labels of its ``k`` nearest projections in ``neighbour_layers`` (its own
    other projection does not vote). The majority label, ties to the lowest
    label, is the prediction for the point. Too few eligible neighbours
    yields a NaN accuracy instead of an error.
    """

    points = list(snapshot)
    evaluation_layers = tuple(evaluation_layers)
    neighbour_layers = tuple(neighbour_layers)
    owners, slots, positions, labels = _neighbour_table(points, neighbour_layers)

    def insufficient() -> EvaluationResult:
        return EvaluationResult(neighbourhood_size, evaluation_layers, neighbour_layers, float("nan"))

    y_true: List[int] = []
    y_pred: List[int] = []
    for point in points:
        if point.layer not in evaluation_layers:
            continue
        counts: Counter = Counter()
        for slot, xy in enumerate(point.positions):
            candidates = np.flatnonzero(~((owners == point.point_index) & (slots == slot)))
            if candidates.size < neighbourhood_size:
                return insufficient()
            offsets = positions[candidates] - np.asarray(xy)
            distances = np.sqrt(np.einsum("ij,ij->i", offsets, offsets))
            nearest = candidates[np.argsort(distances, kind="stable")[:neighbourhood_size]]
            for row in nearest:
                if owners[row] != point.point_index:
                    counts[int(labels[row])] += 1
        y_true.append(point.class_label)
        y_pred.append(_majority_label(counts))

    if not y_true:
        return insufficient()

    class_labels = sorted(set(y_true) | set(y_pred))
    matrix = confusion_matrix(y_true, y_pred, labels=class_labels)
    confusion = pd.DataFrame(
        matrix,
        index=pd.Index(class_labels, name="true"),
        columns=pd.Index(class_labels, name="predicted"),
    )
    return EvaluationResult(
        neighbourhood_size,
        evaluation_layers,
        neighbour_layers,
        float(100.0 * accuracy_score(y_true, y_pred)),
        confusion,
    )


def evaluation_table(
    snapshot: IterationSnapshot | Sequence[PointVisibility],
    neighbourhood_sizes: Sequence[int],
    combinations: Sequence[Tuple[str, LayerSet, LayerSet]] = LAYER_COMBINATIONS,
) -> Tuple[pd.DataFrame, List[EvaluationResult]]:
    rows = []
    results: List[EvaluationResult] = []
    for k in neighbourhood_sizes:
        for name, evaluation_layers, neighbour_layers in combinations:
            result = evaluate_embedding(snapshot, k, evaluation_layers, neighbour_layers)
            results.append(result)
            rows.append(
                {
                    "Evaluation_type": name,
                    "Evaluation_neighbourhood_size": k,
                    "Evaluation": result.formatted(),
                }
            )
    return pd.DataFrame(rows), results


def confusion_report(results: Sequence[EvaluationResult]) -> List[Dict[str, object]]:
    report = []
    for result in results:
        entry: Dict[str, object] = {
            "neighbourhood_size": result.neighbourhood_size,
            "evaluation_layers": list(result.evaluation_layers),
            "neighbour_layers": list(result.neighbour_layers),
            "accuracy": result.accuracy if result.sufficient else None,
        }
        if result.confusion is not None:
            entry["labels"] = [int(label) for label in result.confusion.index]
            entry["matrix"] = result.confusion.to_numpy().tolist()
        report.append(entry)
    return report


def write_evaluation(
    snapshot: IterationSnapshot | Sequence[PointVisibility],
    neighbourhood_sizes: Sequence[int],
    output_dir: Path,
    name: str = "evaluation",
    combinations: Sequence[Tuple[str, LayerSet, LayerSet]] = LAYER_COMBINATIONS,
) -> Dict[str, Path]:
    table, results = evaluation_table(snapshot, neighbourhood_sizes, combinations)
    output_dir.mkdir(parents=True, exist_ok=True)

    csv_path = output_dir / f"{name}.csv"
    table.to_csv(csv_path, index=False)
    confusion_path = output_dir / f"{name}_confusion.json"
    confusion_path.write_text(json.dumps(confusion_report(results), indent=2))

    for _, row in table.iterrows():
        console.print(f"[cyan]{row['Evaluation_type']}[/cyan] k={row['Evaluation_neighbourhood_size']}: {row['Evaluation']}")
    return {"csv": csv_path, "confusion": confusion_path}


def _load_snapshot(path: Path) -> List[PointVisibility]:
    if not path.exists():
        raise FileNotFoundError(f"Snapshot file not found: {path}")
    if path.suffix == ".zip":
        with zipfile.ZipFile(path) as archive:
            iterations = json.loads(archive.read("iterations.json"))
        records = iterations[-1]
    else:
        records = json.loads(path.read_text())
    return [
        PointVisibility(
            point_index=int(r["data_abstraction_unit_number"]),
            class_label=int(r["class_label_number"]),
            positions=tuple((float(x), float(y)) for x, y in r["visual_space_coordinates"]),
            layer=r["layer"],
            iteration=int(r["iteration"]),
        )
        for r in records
    ]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute k-NN accuracy of a saved LVSDE layout.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--snapshot", type=Path, required=True, help="last_iteration.json or iterations.json.zip")
    parser.add_argument("--k", type=int, nargs="+", default=[5])
    parser.add_argument("--baseline", action="store_true", help="Evaluate a comparison embedding (layer 'NA').")
    parser.add_argument("--output-dir", type=Path, default=Path("reports/evaluation"))
    return parser


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    snapshot = _load_snapshot(args.snapshot)
    combinations = BASELINE_COMBINATIONS if args.baseline else LAYER_COMBINATIONS
    paths = write_evaluation(snapshot, args.k, args.output_dir, combinations=combinations)
    console.print(f"[green]Saved evaluation to[/green] {paths['csv']}")


if __name__ == "__main__":  # pragma: no cover
    main()
