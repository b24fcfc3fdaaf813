"""Tests for pestr.utils.formatting."""

from __future__ import annotations

import io
import json

from rich.console import Console
from rich.style import Style

from pestr.geometry import GeometryInput, SearchConfig, evaluate, search
from pestr.utils.formatting import (
    fill_color,
    fill_style,
    json_report,
    plural,
    styled_fill,
    text_report,
)


def _render(renderable) -> str:
    console = Console(file=io.StringIO(), width=100, color_system=None, highlight=False)
    console.print(renderable)
    return console.file.getvalue()


class TestPlural:
    def test_singular(self):
        assert plural(1, "node") == "1 node"

    def test_plural(self):
        assert plural(0, "node") == "0 nodes"
        assert plural(13, "node") == "13 nodes"


class TestFillStyle:
    def test_filled_is_green(self):
        assert fill_color(evaluate(512, 16, 128)) == "green"

    def test_unfilled_is_yellow(self):
        assert fill_color(evaluate(128, 12, 128)) == "yellow"

    def test_returns_style_object(self):
        s = fill_style(evaluate(1, 1, 1))
        assert isinstance(s, Style)
        assert s.color is not None
        assert s.color.name == "green"

    def test_styled_fill_text(self):
        assert str(styled_fill(evaluate(128, 12, 128))) == "not filled"
        assert str(styled_fill(evaluate(1, 1, 1))) == "filled"


class TestTextReport:
    def test_filled(self):
        out = _render(text_report(evaluate(512, 16, 128)))
        assert "64 nodes (8192 CPU cores)" in out
        assert "warning" not in out

    def test_single_node(self):
        assert "1 node (1 CPU core)" in _render(text_report(evaluate(1, 1, 1)))

    def test_unfilled_warning(self):
        out = _render(text_report(evaluate(128, 12, 128)))
        assert "13 nodes (1664 CPU cores)" in out
        assert "warning: reservation is not filled" in out
        assert "1536 CPU cores in use" in out
        assert "128 CPU cores idle across 1 node" in out

    def test_alternates_listed(self):
        geom = GeometryInput(128, 12, 128)
        alternates = search(geom, SearchConfig(0.25, 0.5, conserve_nodes=True))
        out = _render(text_report(evaluate(128, 12, 128), alternates))
        assert "alternate geometries that fill the reservation:" in out
        row = next(line for line in out.splitlines() if "104" in line)
        assert row.split() == ["104", "16", "13", "1664"]

    def test_no_alternates_heading_when_empty(self):
        out = _render(text_report(evaluate(128, 12, 128), []))
        assert "alternate" not in out


class TestJsonReport:
    def test_structure(self):
        geom = GeometryInput(128, 12, 128)
        alternates = search(geom, SearchConfig(0.25, 0.5, conserve_nodes=True))
        data = json.loads(json_report(geom, evaluate(128, 12, 128), alternates))

        assert data["geometry"] == {
            "pe_count": 128,
            "threads_per_pe": 12,
            "cpus_per_node": 128,
            "hyperthreading": False,
        }
        assert data["reservation"]["nodes_used"] == 13
        assert data["reservation"]["is_filled"] is False
        assert len(data["alternatives"]) == 1
        alt = data["alternatives"][0]
        assert alt["geometry"]["pe_count"] == 104
        assert alt["geometry"]["threads_per_pe"] == 16
        assert alt["reservation"]["cores_idle"] == 0

    def test_no_alternatives(self):
        geom = GeometryInput(1, 1, 1)
        data = json.loads(json_report(geom, evaluate(1, 1, 1)))
        assert data["alternatives"] == []
