"""Serialized layouts: per-iteration JSON, zipped histories and VCED archives."""

from __future__ import annotations

import html
import json
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Sequence

from rich.console import Console

from ..embedding.points import IterationSnapshot

console = Console()

VCED_FILE_FORMAT = "Versatile Cartesian Embedded Data File Format (VCED)"
VCED_STRUCTURE_VERSION = [1, 0, 0]
RED_LAYER_NUMBER = 0
GRAY_LAYER_NUMBER = 1
LAYER_NAMES = ["Red", "Gray"]


def _write_zipped_json(path: Path, member: str, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(member, json.dumps(payload, indent=2))
    return path


def write_snapshot_json(snapshot: IterationSnapshot, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot.to_records(), indent=2))
    return path


def write_iterations_zip(snapshots: Sequence[IterationSnapshot], path: Path) -> Path:
    return _write_zipped_json(path, "iterations.json", [snapshot.to_records() for snapshot in snapshots])


def to_embedded_data(
    snapshots: Sequence[IterationSnapshot],
    class_labels: Sequence[str],
    method_parameters: Sequence[object],
    method_name: str = "LVSDE",
    data_set_name: str = "Not specified",
) -> Dict[str, Any]:
    """Build the VCED document: one entry per point with its projections per iteration."""

    if not snapshots:
        raise ValueError("At least one snapshot is required to build an embedded data archive.")

    instances: List[Dict[str, Any]] = []
    for point in snapshots[0]:
        instances.append(
            {
                "zero_based_index": point.point_index,
                "iteration_projections": [],
                "single_class_number": point.class_label,
                "extra_class_numbers": [],
                "short_text_info": "",
                "long_text_info": "",
                "binary_info": [],
                "binary_info_types": [],
            }
        )

    for snapshot in snapshots:
        for instance, point in zip(instances, snapshot):
            layer = GRAY_LAYER_NUMBER if point.layer == "gray" else RED_LAYER_NUMBER
            instance["iteration_projections"].append(
                [{"x": x, "y": y, "extra_dimensions": [], "layer": layer} for x, y in point.positions]
            )

    return {
        "file_format": VCED_FILE_FORMAT,
        "file_structure_version": list(VCED_STRUCTURE_VERSION),
        "data_instances": instances,
        "is_red_gray": True,
        "is_strict_red_gray": True,
        "red_layer_number": RED_LAYER_NUMBER,
        "gray_layer_number": GRAY_LAYER_NUMBER,
        "layer_names": list(LAYER_NAMES),
        "embedding_method_name": method_name,
        "data_set_name": data_set_name,
        "embedding_method_parameters": ",".join(str(p) for p in method_parameters),
        "has_images": False,
        "has_short_text_info": False,
        "has_long_text_info": False,
        "has_multiple_class_numbers_per_data_instance": False,
        "single_class_labels": list(class_labels),
        "extra_classes_labels": [],
    }


def write_embedded_data_zip(document: Dict[str, Any], path: Path) -> Path:
    return _write_zipped_json(path, "embedded_data.json", document)


def _legend_section(title: str, class_labels: Sequence[str], colours: Sequence[str], big: bool) -> List[str]:
    lines = ['<div style="border:2px solid black; padding:10px;margin:10px;">', f"<div>{html.escape(title)}</div>"]
    circle = "legend-entry-circle-big" if big else "legend-entry-circle-small"
    entry = "legend-entry-big" if big else "legend-entry-small"
    border = "border:2px solid black;" if big else ""
    for label, colour in zip(class_labels, colours):
        lines.append(
            f'<div style="margin-top:6px;"><div class="{circle}" style="{border}background-color:{colour};"></div>'
            f'<div class="{entry}">{html.escape(label)}</div></div>'
        )
    return lines


def legend_html(class_labels: Sequence[str], colours: Sequence[str]) -> str:
    lines = [
        "<html>",
        "<head><title>Legend</title>",
        "<style>",
        ".legend-entry-circle-big{width:28px;height:28px;display:inline-block;border-radius:16px;vertical-align:middle;}",
        ".legend-entry-circle-small{width:16px;height:16px;display:inline-block;border-radius:8px;vertical-align:middle;}",
        ".legend-entry-big{min-height:32px;display:inline-block;line-height:32px;margin-left:5px;}",
        ".legend-entry-small{min-height:32px;display:inline-block;line-height:16px;margin-left:5px;}",
        "</style></head>",
        '<body style="font-size:18px;">',
    ]
    lines += _legend_section("Colouring 0 red layer:", class_labels, colours, big=True)
    lines.append("</div>")
    lines += _legend_section("Colouring 0 gray layer:", class_labels, colours, big=False)
    lines.append("</div>")
    lines += _legend_section("Colouring 2 gray layer:", class_labels, colours, big=True)
    lines.append(
        '<div style="margin-top:6px;"><div class="legend-entry-circle-big" '
        'style="border:2px solid black;background-color:white;text-align:center;line-height:28px;font-size:12px;">'
        "&#9899;</div><div class=\"legend-entry-big\">Second projection</div></div>"
    )
    lines.append("</div>")
    lines += ["</body>", "</html>"]
    return "\n".join(lines) + "\n"


def write_legend(class_labels: Sequence[str], colours: Sequence[str], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(legend_html(class_labels, colours), encoding="utf-8")
    return path


def write_run_archive(
    snapshots: Sequence[IterationSnapshot],
    class_labels: Sequence[str],
    colours: Sequence[str],
    method_parameters: Sequence[object],
    output_dir: Path,
) -> Dict[str, Path]:
    """Write every serialized artifact of one embedding run into ``output_dir``."""

    paths = {
        "last_iteration": write_snapshot_json(snapshots[-1], output_dir / "last_iteration.json"),
        "iterations": write_iterations_zip(snapshots, output_dir / "iterations.json.zip"),
        "embedded_data": write_embedded_data_zip(
            to_embedded_data(snapshots, class_labels, method_parameters),
            output_dir / "embedded_data.json.zip",
        ),
        "legend": write_legend(class_labels, colours, output_dir / "legend.html"),
    }
    for name, path in paths.items():
        console.print(f"[green]Saved {name.replace('_', ' ')}:[/] {path}")
    return paths
