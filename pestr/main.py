"""pestr — command-line entry point and interactive application."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Header, Footer

from pestr.config import PestrConfig, load_config
from pestr.geometry import GeometryInput, InvalidParameter, evaluate_input, search
from pestr.screens.calculator import CalculatorTab
from pestr.utils.formatting import json_report, text_report
from pestr.utils.validators import parse_positive_int, parse_radius, parse_search_options

logger = logging.getLogger(__name__)


class PestrApp(App):
    """Interactive node-filling calculator."""

    TITLE = "pestr"
    SUB_TITLE = ""

    BINDINGS = [
        Binding("q", "quit", "Quit", show=True, priority=True),
        Binding("ctrl+r", "reload_config", "Reload Config", show=True),
    ]

    def __init__(
        self,
        config: PestrConfig | None = None,
        config_path: Path | None = None,
        pe_count: int | None = None,
        threads_per_pe: int | None = None,
        search_enabled: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config or PestrConfig()
        self.config_path = config_path
        self._pe_count = pe_count
        self._threads_per_pe = threads_per_pe
        self._search_enabled = search_enabled

    def compose(self) -> ComposeResult:
        yield Header()
        yield CalculatorTab(
            config=self.config,
            pe_count=self._pe_count,
            threads_per_pe=self._threads_per_pe,
            search_enabled=self._search_enabled,
            id="calculator",
        )
        yield Footer()

    def on_mount(self) -> None:
        self._update_subtitle()

    def _update_subtitle(self) -> None:
        ht = " (HT)" if self.config.hyperthreading else ""
        self.sub_title = f"{self.config.cpus_per_node} CPUs/node{ht}"

    def action_reload_config(self) -> None:
        """Reload configuration from disk."""
        self.config = load_config(self.config_path)
        self.query_one(CalculatorTab).apply_config(self.config)
        self._update_subtitle()
        self.log.info("Configuration reloaded", config=self.config)
        self.notify("Configuration reloaded", severity="information")


def build_parser() -> argparse.ArgumentParser:
    from pestr import __version__

    parser = argparse.ArgumentParser(
        prog="pestr",
        description="Compute node usage for a PEs x threads job geometry "
                    "and suggest geometries that fill their nodes.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument("pes", metavar="PES", nargs="?", help="Number of PEs (MPI tasks)")
    parser.add_argument("threads", metavar="THREADS", nargs="?", help="Threads per PE")
    parser.add_argument(
        "-c", "--cpus-per-node", dest="cpus_per_node",
        help="CPU cores per node (default: from config, else 128)",
    )
    parser.add_argument(
        "--hyperthreading", action=argparse.BooleanOptionalAction, default=None,
        help="Count two hardware threads per core",
    )
    parser.add_argument(
        "-s", "--search", action="store_true",
        help="Suggest alternate geometries that fill their nodes",
    )
    parser.add_argument(
        "-S", "--search-options", metavar="OPTS",
        help="Search with options: a comma-separated list of conserve_nodes, "
             "pe_radius=R, thread_radius=R",
    )
    parser.add_argument(
        "--conserve-nodes", action=argparse.BooleanOptionalAction, default=None,
        help="Only suggest geometries using the same number of nodes",
    )
    parser.add_argument("--pe-radius", help="Fractional PE search radius")
    parser.add_argument("--thread-radius", help="Fractional thread search radius")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--config", type=Path, help="Path to a config.toml")
    parser.add_argument("--tui", action="store_true", help="Open the interactive calculator")
    parser.add_argument("--debug", action="store_true", help="Log debug output to stderr")
    return parser


def resolve_config(args: argparse.Namespace, cfg: PestrConfig) -> PestrConfig:
    """Apply command-line overrides on top of *cfg*.

    Raises :class:`ValueError` for malformed values.
    """
    if args.cpus_per_node is not None:
        cfg = replace(cfg, cpus_per_node=parse_positive_int(args.cpus_per_node))
    if args.hyperthreading is not None:
        cfg = replace(cfg, hyperthreading=args.hyperthreading)

    search_cfg = cfg.search
    if args.search_options is not None:
        search_cfg = parse_search_options(args.search_options, search_cfg)
    if args.conserve_nodes is not None:
        search_cfg = replace(search_cfg, conserve_nodes=args.conserve_nodes)
    if args.pe_radius is not None:
        search_cfg = replace(search_cfg, pe_radius=parse_radius(args.pe_radius))
    if args.thread_radius is not None:
        search_cfg = replace(search_cfg, thread_radius=parse_radius(args.thread_radius))
    return replace(cfg, search=search_cfg)


def _setup_logging(debug: bool) -> None:
    if not debug:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def run(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    _setup_logging(args.debug)

    err = Console(stderr=True, highlight=False)
    try:
        cfg = resolve_config(args, load_config(args.config))
        pes = parse_positive_int(args.pes) if args.pes is not None else None
        threads = parse_positive_int(args.threads) if args.threads is not None else None
    except ValueError as exc:
        err.print(f"error: {exc}", markup=False)
        return 1

    want_search = (
        args.search
        or args.search_options is not None
        or args.conserve_nodes is True
        or args.pe_radius is not None
        or args.thread_radius is not None
    )

    if args.tui:
        PestrApp(
            config=cfg,
            config_path=args.config,
            pe_count=pes,
            threads_per_pe=threads,
            search_enabled=want_search,
        ).run()
        return 0

    if pes is None or threads is None:
        parser.error("PES and THREADS are required unless --tui is given")

    geometry = GeometryInput(pes, threads, cfg.cpus_per_node, cfg.hyperthreading)
    try:
        report = evaluate_input(geometry)
        alternates = search(geometry, cfg.search) if want_search else []
    except InvalidParameter as exc:
        err.print(f"error: {exc}", markup=False)
        return 1
    logger.debug("report: %s", report)

    if args.json:
        print(json_report(geometry, report, alternates))
    else:
        Console(highlight=False).print(text_report(report, alternates))
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
