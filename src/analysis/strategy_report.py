"""Text reports for simulation, optimization and situation results.

Public functions format results into human-readable tables:

    print_simulation_summary(result)     totals, EV, confidence interval
    print_count_stats(result)            hands and EV per true count
    print_strategy_chart(table, count)   action grid of a strategy layer
    print_optimization_changes(result)   the optimizer's change log
    print_situation_analysis(analysis)   per-action EV for one situation
    cell_stats_frame(result)             cell statistics as a DataFrame
"""

from __future__ import annotations

import pandas as pd

from src.analysis.simulator import SimulationResult, cell_sort_key
from src.analysis.situation import SituationAnalysis, SituationError
from src.engine.cards import DEALER_VALUES, value_label
from src.engine.strategy import HandKind, StrategyTable, table_keys
from src.solvers.optimizer import OptimizationResult

_SECTION_TITLES = {
    HandKind.HARD: "Hard totals",
    HandKind.SOFT: "Soft totals",
    HandKind.PAIR: "Pairs",
}


def _rule(title: str) -> None:
    print("=" * 56)
    print(title)
    print("=" * 56)


# ─── Simulation ───────────────────────────────────────────────────────────────

def print_simulation_summary(result: SimulationResult) -> None:
    """Print totals, EV per hand with its 95% CI, and return rate.

    Args:
        result: SimulationResult returned by run_simulations().
    """
    _rule("Simulation Summary" + ("  (cancelled)" if result.cancelled else ""))
    n = result.total_games or 1
    print(f"  Hands:           {result.total_games:,}")
    print(f"  Wins:            {result.wins:,}  ({result.wins / n * 100:.2f}%)")
    print(f"  Losses:          {result.losses:,}  ({result.losses / n * 100:.2f}%)")
    print(f"  Pushes:          {result.pushes:,}  ({result.pushes / n * 100:.2f}%)")
    print(f"  Blackjacks:      {result.blackjacks:,}")
    print(f"  Total bet:       {result.total_bet:,.2f}")
    print(f"  Net winnings:    {result.total_winnings:+,.2f}")
    print(f"  EV per hand:     {result.expected_value:+.4f}")
    print(f"  95% CI:          [{result.ci_95_low:+.4f}, {result.ci_95_high:+.4f}]")
    print(f"  Return rate:     {result.return_rate * 100:+.3f}%")
    print()


def print_count_stats(result: SimulationResult) -> None:
    """Print hands, share and EV per rounded true count.

    Prints a note instead when the run did not count cards.
    """
    _rule("Results by True Count")
    stats = result.count_stats
    if stats is None or not stats.hands_by_count:
        print("  (counting was not enabled)")
        print()
        return
    distribution = stats.count_distribution
    ev = stats.ev_by_count
    print(f"  {'TC':>4}  {'Hands':>10}  {'Share':>7}  {'EV/hand':>9}")
    print(f"  {'----':>4}  {'----------':>10}  {'-------':>7}  {'---------':>9}")
    for count, hands in sorted(stats.hands_by_count.items()):
        print(
            f"  {count:>+4d}  {hands:>10,}  {distribution[count] * 100:>6.2f}%  {ev[count]:>+9.3f}"
        )
    print()


def cell_stats_frame(result: SimulationResult) -> pd.DataFrame:
    """Return cell statistics as a DataFrame, one row per observed cell.

    Columns: hand, kind, dealer, action, count, hands, wins, losses,
    pushes, net, total_bet, ev, win_rate.
    """
    records = [
        {
            'hand': key.hand.label,
            'kind': key.hand.kind.name.lower(),
            'dealer': value_label(key.dealer),
            'action': key.action.value,
            'count': key.count,
            'hands': tally.games,
            'wins': tally.wins,
            'losses': tally.losses,
            'pushes': tally.pushes,
            'net': tally.total_winnings,
            'total_bet': tally.total_bet,
            'ev': tally.expected_value,
            'win_rate': tally.win_rate,
        }
        for key, tally in sorted(result.cell_stats.items(), key=cell_sort_key)
    ]
    columns = [
        'hand', 'kind', 'dealer', 'action', 'count', 'hands', 'wins', 'losses',
        'pushes', 'net', 'total_bet', 'ev', 'win_rate',
    ]
    return pd.DataFrame.from_records(records, columns=columns)


# ─── Strategy ─────────────────────────────────────────────────────────────────

def print_strategy_chart(table: StrategyTable, count: int | None = None) -> None:
    """Print the action grid of the base layer or one count layer.

    Cells absent from a count layer are shown as '.'.
    """
    layer = "Base strategy" if count is None else f"Strategy at true count {count:+d}"
    _rule(layer)
    header = "  ".join(f"{value_label(d):>2}" for d in DEALER_VALUES)
    for kind in (HandKind.HARD, HandKind.SOFT, HandKind.PAIR):
        print(f"  {_SECTION_TITLES[kind]}")
        print(f"  {'':>6}  {header}")
        for key in reversed(table_keys(kind)):
            if count is None:
                cells = [table.get_action(key, d) for d in DEALER_VALUES]
            else:
                cells = [table.get_count_action(count, key, d) for d in DEALER_VALUES]
            row = "  ".join(f"{a.value if a else '.':>2}" for a in cells)
            print(f"  {key.label:>6}  {row}")
        print()


def print_optimization_changes(result: OptimizationResult) -> None:
    """Print the optimizer's change log and progress totals."""
    status = "cancelled" if result.cancelled else "complete"
    _rule(f"Optimization {status}: {result.completed_cells}/{result.total_cells} cells")
    if not result.changes:
        print("  No changes: every tested cell already held its best action.")
    for change in result.changes:
        print(f"  {change}")
    print(f"\n  Changes made: {result.changes_made}")
    print()


# ─── Situation ────────────────────────────────────────────────────────────────

def print_situation_analysis(analysis: SituationAnalysis | SituationError) -> None:
    """Print per-action EV for one situation, best action marked with '*'."""
    if isinstance(analysis, SituationError):
        print(f"Error: {analysis.error}")
        return
    _rule(f"Situation: {analysis.hand.label} vs {value_label(analysis.to_dict()['situation']['dealerCard'])}")
    best = analysis.best_action
    print(f"  {'Action':<8}  {'EV':>9}  {'Win%':>6}  {'Return':>8}  {'Games':>8}")
    for action, outcome in analysis.actions.items():
        marker = "*" if action is best else " "
        tally = outcome.tally
        print(
            f"{marker} {action.label:<8}  {tally.expected_value:>+9.3f}  "
            f"{tally.win_rate * 100:>5.1f}%  {tally.return_rate * 100:>+7.2f}%  {tally.games:>8,}"
        )
    print()
