"""Serialization of embedding runs."""

from .archive import (  # noqa: F401
    legend_html,
    to_embedded_data,
    write_iterations_zip,
    write_run_archive,
    write_snapshot_json,
)

__all__ = [
    "legend_html",
    "to_embedded_data",
    "write_iterations_zip",
    "write_run_archive",
    "write_snapshot_json",
]
