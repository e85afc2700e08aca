"""Interactive Plotly views of strategies and simulation results.

Four public functions:

    build_strategy_lookup_figure(table, count)
        Interactive hard/soft/pairs action grids of one strategy layer.
    build_cell_stats_figure(result, metric, count)
        Observed per-cell metric from a simulation run.
    build_row_ev_figure(row_result)
        Grouped bars: EV of each tested action per dealer upcard.
    save_lookup_html(fig, path)
        Export any figure to a self-contained HTML file.

Hover over any cell to see the hand, the dealer upcard and the action or
metric value. Figures open in a browser via ``fig.show()`` or embed in
Jupyter notebooks.
"""

from __future__ import annotations

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from src.analysis.heat_maps import (
    ACTION_ORDER,
    METRICS,
    build_cell_stats_matrix,
    build_strategy_matrix,
)
from src.analysis.simulator import SimulationResult
from src.engine.cards import DEALER_VALUES, value_label
from src.engine.strategy import HandKind, StrategyTable, table_keys
from src.solvers.row_testing import RowTestResult

# ─── Constants ────────────────────────────────────────────────────────────────

_COL_LABELS: list[str] = [value_label(d) for d in DEALER_VALUES]
_SECTIONS: list[tuple[HandKind, str]] = [
    (HandKind.HARD, "Hard totals"),
    (HandKind.SOFT, "Soft totals"),
    (HandKind.PAIR, "Pairs"),
]

# Stepped colorscale over action indices 0..3: H, S, D, P.
_ACTION_COLORSCALE: list[list] = [
    [0.0, "#d62728"], [0.25, "#d62728"],
    [0.25, "#f2c744"], [0.5, "#f2c744"],
    [0.5, "#2ca02c"], [0.75, "#2ca02c"],
    [0.75, "#1f77b4"], [1.0, "#1f77b4"],
]

_ACTION_COLORS: dict[str, str] = {"H": "#d62728", "S": "#f2c744", "D": "#2ca02c", "P": "#1f77b4"}


# ─── Hover text builders ──────────────────────────────────────────────────────


def _build_action_hover(data: np.ndarray, labels: list[str]) -> list[list[str]]:
    """Hover strings for an action grid (empty string for absent cells)."""
    rows: list[list[str]] = []
    for r, label in enumerate(labels):
        row: list[str] = []
        for c, dealer in enumerate(_COL_LABELS):
            val = data[r, c]
            if np.isnan(val):
                row.append("")
                continue
            row.append(
                f"Hand: <b>{label}</b><br>Dealer: {dealer}<br>"
                f"Action: <b>{ACTION_ORDER[int(val)].label}</b>"
            )
        rows.append(row)
    return rows


def _build_metric_hover(data: np.ndarray, labels: list[str], metric: str) -> list[list[str]]:
    """Hover strings for a metric grid (empty string for unobserved cells)."""
    rows: list[list[str]] = []
    for r, label in enumerate(labels):
        row: list[str] = []
        for c, dealer in enumerate(_COL_LABELS):
            val = data[r, c]
            if np.isnan(val):
                row.append("")
                continue
            row.append(
                f"Hand: <b>{label}</b><br>Dealer: {dealer}<br>"
                f"{METRICS[metric]}: <b>{val:.4f}</b>"
            )
        rows.append(row)
    return rows


def _make_heatmap_trace(
    data: np.ndarray,
    labels: list[str],
    hover: list[list[str]],
    *,
    colorscale,
    zmin: float,
    zmax: float,
    show_scale: bool,
    text: list[list[str]] | None = None,
) -> go.Heatmap:
    return go.Heatmap(
        z=data,
        x=_COL_LABELS,
        y=labels,
        text=text,
        texttemplate="%{text}" if text is not None else None,
        hovertext=hover,
        hoverinfo="text",
        colorscale=colorscale,
        zmin=zmin,
        zmax=zmax,
        showscale=show_scale,
    )


# ─── Figure builders ──────────────────────────────────────────────────────────


def build_strategy_lookup_figure(table: StrategyTable, count: int | None = None) -> go.Figure:
    """Return a 1×3 interactive action grid for one strategy layer.

    Args:
        table: Strategy table to draw.
        count: Count layer to draw; None for the base layer.

    Returns:
        go.Figure with one heatmap per section.
    """
    fig = make_subplots(rows=1, cols=3, subplot_titles=[title for _, title in _SECTIONS])
    for c, (kind, _) in enumerate(_SECTIONS, start=1):
        data = build_strategy_matrix(table, kind, count)
        labels = [key.label for key in table_keys(kind)]
        codes = [
            ["" if np.isnan(v) else ACTION_ORDER[int(v)].value for v in row]
            for row in data
        ]
        fig.add_trace(
            _make_heatmap_trace(
                data, labels, _build_action_hover(data, labels),
                colorscale=_ACTION_COLORSCALE, zmin=-0.5, zmax=3.5,
                show_scale=False, text=codes,
            ),
            row=1, col=c,
        )
        fig.update_yaxes(autorange="reversed", type="category", row=1, col=c)
        fig.update_xaxes(title_text="Dealer upcard", type="category", row=1, col=c)

    layer = "Base strategy" if count is None else f"Strategy at true count {count:+d}"
    fig.update_layout(title_text=layer, height=650, width=1300)
    return fig


def build_cell_stats_figure(
    result: SimulationResult,
    metric: str = 'mean',
    count: int | None = None,
) -> go.Figure:
    """Return a 1×3 interactive heatmap of an observed per-cell metric."""
    if metric not in METRICS:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {sorted(METRICS)}")
    panels = [build_cell_stats_matrix(result, kind, metric, count) for kind, _ in _SECTIONS]
    finite = [float(np.nanmax(np.abs(p))) for p in panels if np.isfinite(p).any()]
    limit = max(finite) if finite and max(finite) > 0 else 1.0

    fig = make_subplots(rows=1, cols=3, subplot_titles=[title for _, title in _SECTIONS])
    for c, ((kind, _), data) in enumerate(zip(_SECTIONS, panels), start=1):
        labels = [key.label for key in table_keys(kind)]
        fig.add_trace(
            _make_heatmap_trace(
                data, labels, _build_metric_hover(data, labels, metric),
                colorscale="RdYlGn", zmin=-limit, zmax=limit, show_scale=(c == 3),
            ),
            row=1, col=c,
        )
        fig.update_yaxes(autorange="reversed", type="category", row=1, col=c)
        fig.update_xaxes(title_text="Dealer upcard", type="category", row=1, col=c)

    suffix = "" if count is None else f" (true count {count:+d})"
    fig.update_layout(title_text=f"{METRICS[metric]}{suffix}", height=650, width=1300)
    return fig


def build_row_ev_figure(row_result: RowTestResult) -> go.Figure:
    """Return grouped bars of EV per tested action for each dealer upcard."""
    summary = row_result.summary
    dealers = list(summary)
    fig = go.Figure()
    for action in row_result.actions:
        fig.add_trace(
            go.Bar(
                name=action.label,
                x=dealers,
                y=[summary[d][action.value] for d in dealers],
                marker_color=_ACTION_COLORS[action.value],
            )
        )
    count = "" if row_result.count_level is None else f" at true count {row_result.count_level:+d}"
    fig.update_layout(
        barmode="group",
        title_text=f"{row_result.key.label}: EV by action{count}",
        xaxis_title="Dealer upcard",
        yaxis_title="EV per hand",
    )
    return fig


# ─── HTML export ───────────────────────────────────────────────────────────────


def save_lookup_html(fig: go.Figure, path: str) -> None:
    """Save a Plotly figure to a self-contained HTML file.

    The resulting file can be opened in any browser.  Plotly JS is loaded
    from the CDN so the file itself remains compact.

    Args:
        fig:  Any go.Figure produced by this module.
        path: Destination file path (e.g. ``"strategy_lookup.html"``).
    """
    fig.write_html(path, include_plotlyjs="cdn")


# ─── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    from src.analysis.session import Session, SimulationConfig
    from src.analysis.simulator import run_simulations

    session = Session.from_config(SimulationConfig(n_trials=100_000, seed=42))
    print("Simulating 100,000 hands …")
    result = run_simulations(session)

    save_lookup_html(build_strategy_lookup_figure(session.strategy), "strategy_lookup.html")
    save_lookup_html(build_cell_stats_figure(result, "mean"), "cell_stats_lookup.html")
    print("Saved: strategy_lookup.html, cell_stats_lookup.html")
