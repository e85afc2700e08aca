"""Tests for src/analysis/strategy_report.py: text reports and the cell-stats DataFrame.

Tests verify that each print function produces the expected lines and that
the DataFrame export agrees with the simulation's cell statistics. Small
run sizes keep the suite fast.
"""

from __future__ import annotations

import numpy as np
import pytest

from src.analysis.session import Session, SimulationConfig
from src.analysis.simulator import SimulationResult, run_simulations
from src.analysis.situation import SituationError, analyze_situation
from src.analysis.strategy_report import (
    cell_stats_frame,
    print_count_stats,
    print_optimization_changes,
    print_simulation_summary,
    print_situation_analysis,
    print_strategy_chart,
)
from src.engine.strategy import Action, HandKey
from src.solvers.optimizer import OptimizationResult, StrategyChange


@pytest.fixture(scope="module")
def result() -> SimulationResult:
    session = Session.from_config(SimulationConfig(counting_system='Hi-Lo', seed=8))
    return run_simulations(session, 1_500)


# ─── Simulation ───────────────────────────────────────────────────────────────


class TestPrintSimulationSummary:
    def test_output(self, result: SimulationResult, capsys: pytest.CaptureFixture) -> None:
        print_simulation_summary(result)
        out = capsys.readouterr().out
        assert "Simulation Summary" in out
        assert "1,500" in out
        assert "95% CI" in out

    def test_cancelled_marker(self, capsys: pytest.CaptureFixture) -> None:
        print_simulation_summary(SimulationResult(cancelled=True))
        assert "(cancelled)" in capsys.readouterr().out


class TestPrintCountStats:
    def test_rows_per_count(self, result: SimulationResult, capsys: pytest.CaptureFixture) -> None:
        print_count_stats(result)
        out = capsys.readouterr().out
        assert "Results by True Count" in out
        assert "+0" in out

    def test_without_counting(self, capsys: pytest.CaptureFixture) -> None:
        print_count_stats(SimulationResult.empty(counting=False))
        assert "counting was not enabled" in capsys.readouterr().out


class TestCellStatsFrame:
    def test_one_row_per_cell(self, result: SimulationResult) -> None:
        frame = cell_stats_frame(result)
        assert len(frame) == len(result.cell_stats)
        assert list(frame.columns[:5]) == ['hand', 'kind', 'dealer', 'action', 'count']
        assert frame['hands'].sum() == sum(t.games for t in result.cell_stats.values())
        assert set(frame['kind']) <= {'hard', 'soft', 'pair'}

    def test_net_matches_totals(self, result: SimulationResult) -> None:
        frame = cell_stats_frame(result)
        assert np.isclose(frame['net'].sum(), sum(t.total_winnings for t in result.cell_stats.values()))

    def test_empty(self) -> None:
        frame = cell_stats_frame(SimulationResult())
        assert frame.empty
        assert 'ev' in frame.columns


# ─── Strategy ─────────────────────────────────────────────────────────────────


class TestPrintStrategyChart:
    def test_base_layer(self, basic, capsys: pytest.CaptureFixture) -> None:
        print_strategy_chart(basic)
        out = capsys.readouterr().out
        assert "Base strategy" in out
        assert "Hard totals" in out and "Soft totals" in out and "Pairs" in out
        assert "A,A" in out

    def test_count_layer_shows_gaps(self, basic, capsys: pytest.CaptureFixture) -> None:
        basic.set_count_action(2, '16', 10, Action.STAND)
        print_strategy_chart(basic, 2)
        out = capsys.readouterr().out
        assert "true count +2" in out
        assert " ." in out


class TestPrintOptimizationChanges:
    def test_lists_changes(self, capsys: pytest.CaptureFixture) -> None:
        outcome = OptimizationResult(total_cells=10, completed_cells=10)
        outcome.changes.append(StrategyChange(HandKey.hard(16), 10, Action.HIT, Action.STAND, -0.5))
        print_optimization_changes(outcome)
        out = capsys.readouterr().out
        assert "10/10 cells" in out
        assert "Hard 16 vs 10: Hit → Stand" in out
        assert "Changes made: 1" in out

    def test_no_changes(self, capsys: pytest.CaptureFixture) -> None:
        print_optimization_changes(OptimizationResult(total_cells=360, cancelled=True))
        out = capsys.readouterr().out
        assert "cancelled" in out
        assert "No changes" in out


# ─── Situation ────────────────────────────────────────────────────────────────


class TestPrintSituationAnalysis:
    def test_marks_best(self, capsys: pytest.CaptureFixture) -> None:
        analysis = analyze_situation('10,6', 'A', n_trials=100, rng=np.random.default_rng(1))
        print_situation_analysis(analysis)
        out = capsys.readouterr().out
        assert "16 vs A" in out
        assert f"* {analysis.best_action.label}" in out

    def test_error(self, capsys: pytest.CaptureFixture) -> None:
        print_situation_analysis(SituationError())
        assert "Error: Invalid card input" in capsys.readouterr().out
