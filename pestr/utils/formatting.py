"""Rich / JSON formatting helpers for pestr reports."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Sequence

from rich.console import Group, RenderableType
from rich.markup import escape as escape_markup
from rich.style import Style
from rich.table import Table
from rich.text import Text

from pestr.geometry import CandidateGeometry, GeometryInput, GeometryReport

__all__ = [
    "escape_markup",
    "plural",
    "fill_color",
    "fill_style",
    "styled_fill",
    "alternates_table",
    "text_report",
    "json_report",
]

ALTERNATES_HEADING = "alternate geometries that fill the reservation:"
NOT_FILLED_WARNING = "warning: reservation is not filled"


def plural(count: int, singular: str, suffix: str = "s") -> str:
    """Return ``"1 node"`` / ``"3 nodes"`` style text."""
    return f"{count} {singular}" if count == 1 else f"{count} {singular}{suffix}"


def fill_color(report: GeometryReport) -> str:
    """Return a Rich colour name for the fill state of *report*."""
    return "green" if report.is_filled else "yellow"


def fill_style(report: GeometryReport) -> Style:
    return Style(color=fill_color(report))


def styled_fill(report: GeometryReport) -> Text:
    """Return ``filled`` / ``not filled`` coloured by :func:`fill_color`."""
    return Text("filled" if report.is_filled else "not filled", style=fill_style(report))


def summary_lines(report: GeometryReport) -> list[Text]:
    """Describe the reservation of *report*, with the idle-core warning."""
    lines = [
        Text(f"{plural(report.nodes_used, 'node')} "
             f"({plural(report.cores_reserved, 'CPU core')})"),
    ]
    if not report.is_filled:
        lines.append(Text(NOT_FILLED_WARNING, style="bold yellow"))
        lines.append(Text(f"  {plural(report.cores_in_use, 'CPU core')} in use"))
        lines.append(Text(
            f"  {plural(report.cores_idle, 'CPU core')} idle across "
            f"{plural(report.idle_node_count, 'node')}"
        ))
    return lines


def alternates_table(alternates: Sequence[CandidateGeometry]) -> Table:
    table = Table(box=None, show_edge=False, pad_edge=False, header_style="bold")
    for col in ("PEs", "Threads", "Nodes", "CPU cores"):
        table.add_column(col, justify="right")
    for alt in alternates:
        table.add_row(
            str(alt.pe_count),
            str(alt.threads_per_pe),
            str(alt.nodes_used),
            str(alt.cores_in_use),
        )
    return table


def text_report(
    report: GeometryReport, alternates: Sequence[CandidateGeometry] = (),
) -> RenderableType:
    """Build the human-readable report printed by the CLI."""
    parts: list[RenderableType] = list(summary_lines(report))
    if alternates:
        parts.append(Text(ALTERNATES_HEADING))
        parts.append(alternates_table(alternates))
    return Group(*parts)


def _geometry_dict(pe_count: int, threads_per_pe: int, geometry: GeometryInput) -> dict[str, Any]:
    return {
        "pe_count": pe_count,
        "threads_per_pe": threads_per_pe,
        "cpus_per_node": geometry.cpus_per_node,
        "hyperthreading": geometry.hyperthreading,
    }


def json_report(
    geometry: GeometryInput,
    report: GeometryReport,
    alternates: Sequence[CandidateGeometry] = (),
) -> str:
    """Serialise a geometry, its report and any alternates as JSON."""
    data = {
        "geometry": _geometry_dict(geometry.pe_count, geometry.threads_per_pe, geometry),
        "reservation": asdict(report),
        "alternatives": [
            {
                "geometry": _geometry_dict(alt.pe_count, alt.threads_per_pe, geometry),
                "reservation": asdict(alt.report),
            }
            for alt in alternates
        ],
    }
    return json.dumps(data, indent=2)
