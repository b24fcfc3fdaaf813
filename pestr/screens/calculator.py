"""Calculator tab — geometry form with live report and alternate geometries."""

from __future__ import annotations

from functools import partial

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.timer import Timer
from textual.widgets import DataTable, Input, Label, Static, Switch
from textual.worker import Worker, WorkerState

from pestr.config import PestrConfig
from pestr.geometry import (
    CandidateGeometry,
    GeometryInput,
    GeometryReport,
    InvalidParameter,
    SearchConfig,
    evaluate_input,
    search,
)
from pestr.utils.formatting import escape_markup, styled_fill, summary_lines
from pestr.utils.validators import parse_positive_int, parse_radius

_ALT_COLS = ("PEs", "Threads", "Nodes", "Cores")

# input id -> (label, parser)
_FIELDS = {
    "input-pes": ("PEs", parse_positive_int),
    "input-threads": ("Threads per PE", parse_positive_int),
    "input-cpus": ("CPUs per node", parse_positive_int),
    "input-pe-radius": ("PE radius", parse_radius),
    "input-thread-radius": ("Thread radius", parse_radius),
}
_SEARCH_FIELDS = ("input-pe-radius", "input-thread-radius")

# seconds of quiet input before the form is re-evaluated
RECOMPUTE_DELAY = 0.3


class CalculatorTab(Vertical):
    """Geometry form on the left, reservation summary and alternates on the right."""

    BINDINGS = [
        Binding("ctrl+s", "toggle_search", "Search", show=True),
        Binding("ctrl+n", "toggle_conserve", "Conserve Nodes", show=True),
    ]

    DEFAULT_CSS = """
    CalculatorTab {
        height: 1fr;
    }
    #calc-grid {
        height: 1fr;
        layout: grid;
        grid-size: 2 1;
        grid-columns: 1fr 2fr;
        grid-gutter: 1;
        padding: 1;
    }
    #calc-form {
        height: 1fr;
        padding: 0 1;
    }
    .form-section {
        margin-top: 1;
        text-style: bold italic;
        color: $accent;
    }
    .form-label {
        text-style: bold;
        margin-top: 1;
    }
    .switch-row {
        height: auto;
        margin-top: 1;
    }
    .switch-row Label {
        padding: 1 1;
    }
    #calc-summary {
        height: auto;
        border: solid $accent;
        padding: 0 1;
    }
    #alt-table {
        height: 1fr;
        scrollbar-size: 1 1;
    }
    Input.-invalid {
        border: tall $error;
    }
    """

    def __init__(
        self,
        config: PestrConfig | None = None,
        pe_count: int | None = None,
        threads_per_pe: int | None = None,
        search_enabled: bool = False,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.config = config or PestrConfig()
        self._initial_pes = pe_count or 1
        self._initial_threads = threads_per_pe or 1
        self._initial_search = search_enabled
        self.report: GeometryReport | None = None
        self.alternates: list[CandidateGeometry] = []
        self._recompute_timer: Timer | None = None
        self._search_worker: Worker | None = None

    def compose(self) -> ComposeResult:
        cfg = self.config
        with Horizontal(id="calc-grid"):
            with VerticalScroll(id="calc-form"):
                yield Label("── Geometry ──", classes="form-section")
                yield Label("PEs", classes="form-label")
                yield Input(value=str(self._initial_pes), id="input-pes")
                yield Label("Threads per PE", classes="form-label")
                yield Input(value=str(self._initial_threads), id="input-threads")

                yield Label("── Node ──", classes="form-section")
                yield Label("CPUs per node", classes="form-label")
                yield Input(value=str(cfg.cpus_per_node), id="input-cpus")
                with Horizontal(classes="switch-row"):
                    yield Switch(value=cfg.hyperthreading, id="switch-ht")
                    yield Label("Hyperthreading")

                yield Label("── Search ──", classes="form-section")
                with Horizontal(classes="switch-row"):
                    yield Switch(value=self._initial_search, id="switch-search")
                    yield Label("Suggest alternates")
                with Horizontal(classes="switch-row"):
                    yield Switch(value=cfg.search.conserve_nodes, id="switch-conserve")
                    yield Label("Conserve node count")
                yield Label("PE radius", classes="form-label")
                yield Input(value=str(float(cfg.search.pe_radius)), id="input-pe-radius")
                yield Label("Thread radius", classes="form-label")
                yield Input(
                    value=str(float(cfg.search.thread_radius)), id="input-thread-radius",
                )
            with Vertical(id="calc-results"):
                yield Static("", id="calc-summary")
                yield DataTable(id="alt-table", cursor_type="row")
        yield Static("", id="calc-status", classes="status-bar")

    def on_mount(self) -> None:
        table = self.query_one("#alt-table", DataTable)
        for col in _ALT_COLS:
            table.add_column(col, key=col.lower())
        self.recompute()

    # ----- events ----------------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        self._schedule_recompute()

    def on_switch_changed(self, event: Switch.Changed) -> None:
        self._schedule_recompute()

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Load the selected alternate into the form."""
        key = event.row_key.value
        if not key:
            return
        pes, threads = (int(part) for part in key.split("x"))
        self.load_geometry(pes, threads)

    def action_toggle_search(self) -> None:
        switch = self.query_one("#switch-search", Switch)
        switch.value = not switch.value

    def action_toggle_conserve(self) -> None:
        switch = self.query_one("#switch-conserve", Switch)
        switch.value = not switch.value

    # ----- public API ------------------------------------------------------

    def load_geometry(self, pe_count: int, threads_per_pe: int) -> None:
        self.query_one("#input-pes", Input).value = str(pe_count)
        self.query_one("#input-threads", Input).value = str(threads_per_pe)

    def apply_config(self, config: PestrConfig) -> None:
        """Replace node and search settings with those of *config*."""
        self.config = config
        self.query_one("#input-cpus", Input).value = str(config.cpus_per_node)
        self.query_one("#switch-ht", Switch).value = config.hyperthreading
        self.query_one("#switch-conserve", Switch).value = config.search.conserve_nodes
        self.query_one("#input-pe-radius", Input).value = str(float(config.search.pe_radius))
        self.query_one("#input-thread-radius", Input).value = str(
            float(config.search.thread_radius)
        )

    def recompute(self) -> None:
        """Re-evaluate the form, then start a background search if enabled."""
        self._recompute_timer = None
        status = self.query_one("#calc-status", Static)
        searching = self.query_one("#switch-search", Switch).value
        values = {}
        for input_id, (label, parse) in _FIELDS.items():
            widget = self.query_one(f"#{input_id}", Input)
            if input_id in _SEARCH_FIELDS and not searching:
                widget.remove_class("-invalid")
                continue
            try:
                values[input_id] = parse(widget.value)
            except ValueError as exc:
                widget.add_class("-invalid")
                status.update(f" {label}: {escape_markup(str(exc))}")
                return
            widget.remove_class("-invalid")

        geometry = GeometryInput(
            pe_count=values["input-pes"],
            threads_per_pe=values["input-threads"],
            cpus_per_node=values["input-cpus"],
            hyperthreading=self.query_one("#switch-ht", Switch).value,
        )
        try:
            self.report = evaluate_input(geometry)
        except InvalidParameter as exc:
            status.update(f" {escape_markup(str(exc))}")
            return
        self._update_summary(self.report)

        if not searching:
            self._search_worker = None
            self.workers.cancel_group(self, "search")
            self.alternates = []
            self._update_alternates(self.alternates)
            self._update_status()
            return

        config = SearchConfig(
            pe_radius=values["input-pe-radius"],
            thread_radius=values["input-thread-radius"],
            conserve_nodes=self.query_one("#switch-conserve", Switch).value,
        )
        status.update(" Searching…")
        self._search_worker = self.run_worker(
            partial(search, geometry, config),
            thread=True, exclusive=True, group="search", exit_on_error=False,
        )

    def on_worker_state_changed(self, event: Worker.StateChanged) -> None:
        # results of superseded searches are dropped
        if event.worker is not self._search_worker:
            return
        if event.state == WorkerState.SUCCESS:
            self.alternates = event.worker.result or []
            self._update_alternates(self.alternates)
            self._update_status()
        elif event.state == WorkerState.ERROR:
            self.query_one("#calc-status", Static).update(
                f" Search failed: {escape_markup(str(event.worker.error))}"
            )

    def _schedule_recompute(self) -> None:
        """Debounce recomputation to avoid jank on rapid input."""
        if self._recompute_timer is not None:
            self._recompute_timer.stop()
        self._recompute_timer = self.set_timer(RECOMPUTE_DELAY, self.recompute)

    def _update_status(self) -> None:
        if self.report is None:
            return
        fill = styled_fill(self.report)
        fill.append(f" • {len(self.alternates)} alternates", style="")
        self.query_one("#calc-status", Static).update(fill)

    def _update_summary(self, report: GeometryReport) -> None:
        text = summary_lines(report)[0]
        for line in summary_lines(report)[1:]:
            text.append("\n")
            text.append_text(line)
        self.query_one("#calc-summary", Static).update(text)

    def _update_alternates(self, alternates: list[CandidateGeometry]) -> None:
        table = self.query_one("#alt-table", DataTable)
        if not table.columns:
            return
        table.clear()
        for alt in alternates:
            table.add_row(
                str(alt.pe_count),
                str(alt.threads_per_pe),
                str(alt.nodes_used),
                str(alt.cores_in_use),
                key=f"{alt.pe_count}x{alt.threads_per_pe}",
            )
