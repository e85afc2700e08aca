"""
Strategy optimizer: sweeps every strategy cell and keeps the best action.

For each row of the table (hard 21 down to 5, soft 21 down to 13, pairs
A,A down to 2,2) the row's legal first actions are evaluated against all
ten dealer upcards with evaluate_row_actions(). Each cell is then set to
its highest-EV action if that differs from what the table holds, and the
change is logged.

With a count level, only trials at that rounded true count are played and
changes are written to that count's layer. The count-0 layer is never
consulted by lookup, so count level 0 writes to the base layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from src.analysis.session import CancelToken, ProgressCallback, Session, is_cancelled
from src.engine.cards import DEALER_VALUES, value_label
from src.engine.strategy import Action, HandKey, HandKind, StrategyTable, table_keys
from src.solvers.row_testing import evaluate_row_actions

logger = logging.getLogger(__name__)

OPTIMIZATION_ROWS: list[HandKey] = (
    table_keys(HandKind.HARD)[::-1]
    + table_keys(HandKind.SOFT)[::-1]
    + table_keys(HandKind.PAIR)[::-1]
)
TOTAL_CELLS = len(OPTIMIZATION_ROWS) * len(DEALER_VALUES)

COUNT_LEVELS = range(-4, 5)

_KIND_NAMES = {HandKind.HARD: 'Hard', HandKind.SOFT: 'Soft', HandKind.PAIR: 'Pair'}


def describe_row(key: HandKey) -> str:
    """Human-readable row name: 'Hard 16', 'Soft 18', 'Pair 8,8'."""
    value = key.label.lstrip('S') if key.kind is HandKind.SOFT else key.label
    return f"{_KIND_NAMES[key.kind]} {value}"


@dataclass
class StrategyChange:
    """One cell rewritten by the optimizer."""
    key: HandKey
    dealer: int
    old: Action | None
    new: Action
    expected_value: float
    count_level: int | None = None

    def __str__(self) -> str:
        layer = "Base" if self.count_level is None else f"TC {self.count_level:+d}"
        old = self.old.label if self.old else '-'
        return (
            f"{describe_row(self.key)} vs {value_label(self.dealer)}: "
            f"{old} → {self.new.label} ({layer}, EV {self.expected_value:.2f})"
        )


@dataclass
class OptimizationResult:
    """Outcome of one optimization sweep."""
    total_cells: int
    completed_cells: int = 0
    changes: list[StrategyChange] = field(default_factory=list)
    cancelled: bool = False
    count_level: int | None = None

    @property
    def changes_made(self) -> int:
        return len(self.changes)


def _current_action(
    table: StrategyTable, key: HandKey, dealer: int, layer: int | None
) -> Action | None:
    if layer is not None:
        action = table.get_count_action(layer, key, dealer)
        if action is not None:
            return action
    return table.get_action(key, dealer)


def optimize_strategy(
    session: Session,
    n_trials: int | None = None,
    bet_size: float | None = None,
    count_level: int | None = None,
    *,
    rows: Iterable[HandKey] | None = None,
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
) -> OptimizationResult:
    """Rewrite the session's strategy with the best tested action per cell.

    Args:
        session:     Supplies the strategy table to rewrite (mutated), rules,
                     deck count, counting system and random generator.
        n_trials:    Trials per row; defaults to the config's n_trials.
        bet_size:    Money per initial hand; defaults to the config's bet_size.
        count_level: Optimize for this rounded true count (needs counting);
                     None optimizes the base layer.
        rows:        Rows to sweep; all of OPTIMIZATION_ROWS by default.
        progress:    Called as progress(completed_cells, total_cells) after
                     every row.
        cancel:      Checked between rows and within row evaluation.

    Returns:
        OptimizationResult listing every change made.
    """
    rows = OPTIMIZATION_ROWS if rows is None else list(rows)
    counting = session.counter is not None
    target = count_level if counting else None
    layer = target if target not in (None, 0) else None
    table = session.strategy
    result = OptimizationResult(
        total_cells=len(rows) * len(DEALER_VALUES), count_level=target,
    )
    logger.info(
        "Optimizing %d cells (%s, %s trials per row)",
        result.total_cells, "base" if layer is None else f"TC {layer:+d}", n_trials,
    )

    for key in rows:
        if is_cancelled(cancel):
            result.cancelled = True
            break
        row_result = evaluate_row_actions(
            session, key, DEALER_VALUES, target, n_trials, bet_size, cancel=cancel,
        )
        if row_result.cancelled:
            result.cancelled = True
            break

        for dealer in DEALER_VALUES:
            result.completed_cells += 1
            best = row_result.best_action(dealer)
            if best is None:
                continue
            action, ev = best
            current = _current_action(table, key, dealer, layer)
            if action is current:
                continue
            if layer is None:
                table.set_action(key, dealer, action)
            else:
                table.set_count_action(layer, key, dealer, action)
            change = StrategyChange(key, dealer, current, action, ev, layer)
            result.changes.append(change)
            logger.info("%s", change)

        if progress is not None:
            progress(result.completed_cells, result.total_cells)

    logger.info(
        "Optimization %s: %d/%d cells, %d changes",
        "cancelled" if result.cancelled else "finished",
        result.completed_cells, result.total_cells, result.changes_made,
    )
    return result


def optimize_all_count_levels(
    session: Session,
    n_trials: int | None = None,
    bet_size: float | None = None,
    levels: Iterable[int] = COUNT_LEVELS,
    *,
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
) -> dict[int, OptimizationResult]:
    """Run optimize_strategy() for every count level in turn.

    Turns count-based lookup on. Stops at the first cancelled level.

    Raises:
        ValueError: If the session does not count cards.
    """
    if session.counter is None:
        raise ValueError("Optimizing by count level requires a counting system")
    levels = list(levels)
    session.strategy.count_based = True
    grand_total = TOTAL_CELLS * len(levels)
    results: dict[int, OptimizationResult] = {}

    for i, level in enumerate(levels):
        offset = i * TOTAL_CELLS

        def level_progress(done: int, total: int, offset: int = offset) -> None:
            if progress is not None:
                progress(offset + done, grand_total)

        results[level] = optimize_strategy(
            session, n_trials, bet_size, level, progress=level_progress, cancel=cancel,
        )
        if results[level].cancelled:
            break
    return results


# ─── __main__ ─────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    from src.analysis.session import SimulationConfig
    from src.analysis.strategy_report import print_optimization_changes, print_strategy_chart

    session = Session.from_config(SimulationConfig(n_trials=2_000, seed=7))
    outcome = optimize_strategy(
        session, progress=lambda done, total: print(f"\r{done}/{total} cells", end=""),
    )
    print()
    print_optimization_changes(outcome)
    print()
    print_strategy_chart(session.strategy)
