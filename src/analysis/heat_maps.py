"""Strategy and cell-statistics heat maps.

Two public data-builder functions return NumPy matrices that can be used
programmatically or passed to the plot helpers:

    build_strategy_matrix(table, kind, count)          action codes per cell
    build_cell_stats_matrix(result, kind, metric, count)  observed metric per cell

Two public plot functions render matplotlib figures, one panel per
table section (hard, soft, pairs):

    plot_strategy_chart(table, count, ...)
    plot_cell_stats_heatmaps(result, metric, count, ...)

Matrix convention (both builders):
    Shape  : (n_rows, 10) with rows = the section's keys in ascending order
             (hard 5–21, soft 13–21, pairs 2–11) and cols = dealer 2..10, A
    Values : action index (0=H, 1=S, 2=D, 3=P) or the metric value;
             np.nan = cell absent (not in the layer, or never observed)
"""

from __future__ import annotations

import matplotlib
import matplotlib.axes
import matplotlib.colors
import matplotlib.figure
import matplotlib.pyplot as plt
import numpy as np

from src.analysis.simulator import OutcomeTally, SimulationResult
from src.engine.cards import DEALER_VALUES, value_label
from src.engine.strategy import Action, HandKind, StrategyTable, table_keys

# ─── Constants ────────────────────────────────────────────────────────────────

ACTION_ORDER: list[Action] = [Action.HIT, Action.STAND, Action.DOUBLE, Action.SPLIT]
_ACTION_INDEX: dict[Action, int] = {a: i for i, a in enumerate(ACTION_ORDER)}
_COL_LABELS: list[str] = [value_label(d) for d in DEALER_VALUES]
_SECTIONS: list[tuple[HandKind, str]] = [
    (HandKind.HARD, "Hard totals"),
    (HandKind.SOFT, "Soft totals"),
    (HandKind.PAIR, "Pairs"),
]
_NAN_COLOR: str = "#cccccc"

METRICS: dict[str, str] = {
    'hands': "Hands played",
    'net': "Net winnings",
    'mean': "Mean winnings per hand",
    'ev': "Return per unit bet",
    'win_rate': "Win rate",
}


def _metric_value(tally: OutcomeTally, metric: str) -> float:
    if metric == 'hands':
        return float(tally.games)
    if metric == 'net':
        return tally.total_winnings
    if metric == 'mean':
        return tally.expected_value
    if metric == 'ev':
        return tally.return_rate
    if metric == 'win_rate':
        return tally.win_rate
    raise ValueError(f"Unknown metric {metric!r}; expected one of {sorted(METRICS)}")


# ─── Colormaps ────────────────────────────────────────────────────────────────


def _make_action_cmap() -> matplotlib.colors.ListedColormap:
    """Red=HIT, yellow=STAND, green=DOUBLE, blue=SPLIT, grey=absent."""
    cmap = matplotlib.colors.ListedColormap(["#d62728", "#f2c744", "#2ca02c", "#1f77b4"])
    cmap.set_bad(color=_NAN_COLOR)
    return cmap


def _make_diverging_cmap() -> matplotlib.colors.Colormap:
    """RdYlGn gradient centred on zero, grey=absent (NaN)."""
    cmap = matplotlib.colormaps["RdYlGn"].copy()
    cmap.set_bad(color=_NAN_COLOR)
    return cmap


_ACTION_CMAP: matplotlib.colors.Colormap = _make_action_cmap()
_DIVERGING_CMAP: matplotlib.colors.Colormap = _make_diverging_cmap()


# ─── Data builders ────────────────────────────────────────────────────────────


def build_strategy_matrix(
    table: StrategyTable, kind: HandKind, count: int | None = None
) -> np.ndarray:
    """Return the action-index matrix of one section of a strategy layer.

    Args:
        table: Strategy table to read.
        kind:  Section (HARD, SOFT or PAIR).
        count: Count layer to read; None for the base layer.

    Returns:
        float64 array of shape (n_rows, 10); NaN where the layer has no cell.
    """
    keys = table_keys(kind)
    data = np.full((len(keys), len(DEALER_VALUES)), np.nan)
    for r, key in enumerate(keys):
        for c, dealer in enumerate(DEALER_VALUES):
            if count is None:
                action = table.get_action(key, dealer)
            else:
                action = table.get_count_action(count, key, dealer)
            if action is not None:
                data[r, c] = _ACTION_INDEX[action]
    return data


def build_cell_stats_matrix(
    result: SimulationResult,
    kind: HandKind,
    metric: str = 'mean',
    count: int | None = None,
) -> np.ndarray:
    """Return one metric per cell as observed in a simulation.

    Tallies are merged over first actions; ``count`` keeps one rounded true
    count (with -4 and 4 also covering the tails).

    Returns:
        float64 array of shape (n_rows, 10); NaN where no hand was observed.
    """
    keys = table_keys(kind)
    rows = {key: r for r, key in enumerate(keys)}
    cols = {dealer: c for c, dealer in enumerate(DEALER_VALUES)}
    data = np.full((len(keys), len(DEALER_VALUES)), np.nan)
    for (key, dealer), tally in result.cell_grid(kind, count).items():
        if key in rows and tally.games:
            data[rows[key], cols[dealer]] = _metric_value(tally, metric)
    return data


# ─── Rendering helper ─────────────────────────────────────────────────────────


def _render_panel(
    ax: matplotlib.axes.Axes,
    data: np.ndarray,
    row_labels: list[str],
    actions: bool,
    limit: float = 1.0,
) -> matplotlib.image.AxesImage:
    """Render one heat-map panel onto *ax* and return the AxesImage.

    Sets axis ticks, tick labels, and cell annotations.  The caller is
    responsible for setting title, xlabel, and ylabel.
    """
    masked = np.ma.masked_invalid(data)
    if actions:
        im = ax.imshow(masked, cmap=_ACTION_CMAP, vmin=-0.5, vmax=3.5, aspect="auto")
    else:
        im = ax.imshow(masked, cmap=_DIVERGING_CMAP, vmin=-limit, vmax=limit, aspect="auto")

    ax.set_xticks(range(len(_COL_LABELS)))
    ax.set_xticklabels(_COL_LABELS, fontsize=8)
    ax.set_yticks(range(len(row_labels)))
    ax.set_yticklabels(row_labels, fontsize=8)

    for r in range(data.shape[0]):
        for c in range(data.shape[1]):
            val = data[r, c]
            if np.isnan(val):
                continue
            text = ACTION_ORDER[int(val)].value if actions else f"{val:.2f}"
            ax.text(c, r, text, ha="center", va="center", fontsize=7, color="black")

    return im


def _finish(fig: matplotlib.figure.Figure, show: bool, save_path: str | None) -> None:
    plt.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, bbox_inches="tight", dpi=120)
    if show:
        plt.show()


# ─── Public plot functions ────────────────────────────────────────────────────


def plot_strategy_chart(
    table: StrategyTable,
    count: int | None = None,
    *,
    show: bool = True,
    save_path: str | None = None,
) -> matplotlib.figure.Figure:
    """Plot a strategy layer as a 1×3 figure (hard, soft, pairs).

    Args:
        table:     Strategy table to draw.
        count:     Count layer to draw; None for the base layer.
        show:      If True, call plt.show() after rendering.
        save_path: If not None, save the figure to this path before showing.

    Returns:
        matplotlib.figure.Figure.
    """
    fig, axes = plt.subplots(1, 3, figsize=(15, 6))
    layer = "Base strategy" if count is None else f"Strategy at true count {count:+d}"
    fig.suptitle(layer, fontsize=13, fontweight="bold")

    for ax, (kind, title) in zip(axes, _SECTIONS):
        data = build_strategy_matrix(table, kind, count)
        labels = [key.label for key in table_keys(kind)]
        _render_panel(ax, data, labels, actions=True)
        ax.set_title(title, fontsize=10)
        ax.set_xlabel("Dealer upcard", fontsize=9)
        ax.set_ylabel("Player hand", fontsize=9)

    _finish(fig, show, save_path)
    return fig


def plot_cell_stats_heatmaps(
    result: SimulationResult,
    metric: str = 'mean',
    count: int | None = None,
    *,
    show: bool = True,
    save_path: str | None = None,
) -> matplotlib.figure.Figure:
    """Plot an observed per-cell metric as a 1×3 figure (hard, soft, pairs).

    The colour scale is symmetric around zero and shared by all panels.

    Args:
        result:    SimulationResult with cell statistics.
        metric:    One of METRICS ('hands', 'net', 'mean', 'ev', 'win_rate').
        count:     Restrict to one rounded true count; None for all counts.
        show:      If True, call plt.show() after rendering.
        save_path: If not None, save the figure to this path before showing.

    Returns:
        matplotlib.figure.Figure.
    """
    if metric not in METRICS:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {sorted(METRICS)}")
    panels = [build_cell_stats_matrix(result, kind, metric, count) for kind, _ in _SECTIONS]
    finite = [np.nanmax(np.abs(p)) for p in panels if np.isfinite(p).any()]
    limit = max(finite) if finite else 1.0

    fig, axes = plt.subplots(1, 3, figsize=(15, 6))
    suffix = "" if count is None else f" (true count {count:+d})"
    fig.suptitle(f"{METRICS[metric]}{suffix}", fontsize=13, fontweight="bold")

    for ax, (kind, title), data in zip(axes, _SECTIONS, panels):
        labels = [key.label for key in table_keys(kind)]
        im = _render_panel(ax, data, labels, actions=False, limit=limit or 1.0)
        ax.set_title(title, fontsize=10)
        ax.set_xlabel("Dealer upcard", fontsize=9)
        ax.set_ylabel("Player hand", fontsize=9)
        plt.colorbar(im, ax=ax, fraction=0.046, pad=0.04)

    _finish(fig, show, save_path)
    return fig
