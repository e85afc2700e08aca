"""Tests for src/solvers/optimizer.py: strategy sweeps and the change log."""

from __future__ import annotations

import pytest

from src.analysis.session import CancelToken, Session, SimulationConfig
from src.engine.cards import DEALER_VALUES
from src.engine.strategy import Action, HandKey, StrategyTable
from src.solvers.optimizer import (
    OPTIMIZATION_ROWS,
    TOTAL_CELLS,
    StrategyChange,
    describe_row,
    optimize_all_count_levels,
    optimize_strategy,
)


def _empty_session(**kwargs) -> Session:
    return Session.from_config(SimulationConfig(seed=13, **kwargs), strategy=StrategyTable())


class TestRows:
    def test_sweep_order(self):
        assert OPTIMIZATION_ROWS[0] == HandKey.hard(21)
        assert OPTIMIZATION_ROWS[16] == HandKey.hard(5)
        assert OPTIMIZATION_ROWS[17] == HandKey.soft(21)
        assert OPTIMIZATION_ROWS[-1] == HandKey.pair(2)
        assert TOTAL_CELLS == 360

    @pytest.mark.parametrize("label,name", [('16', 'Hard 16'), ('S18', 'Soft 18'), ('8,8', 'Pair 8,8')])
    def test_describe_row(self, label, name):
        assert describe_row(HandKey.parse(label)) == name

    def test_change_str(self):
        change = StrategyChange(HandKey.hard(16), 10, Action.HIT, Action.STAND, -54.2)
        assert str(change) == "Hard 16 vs 10: Hit → Stand (Base, EV -54.20)"
        change = StrategyChange(HandKey.pair(11), 11, None, Action.SPLIT, 12.0, count_level=2)
        assert str(change) == "Pair A,A vs A: - → Split (TC +2, EV 12.00)"


class TestOptimizeStrategy:
    def test_basic_twenty_unchanged(self, session):
        outcome = optimize_strategy(session, 300, 1.0, rows=[HandKey.hard(20)])
        assert outcome.completed_cells == 10
        assert outcome.changes == []
        assert not outcome.cancelled

    def test_fixes_standing_on_eleven(self):
        session = _empty_session()
        outcome = optimize_strategy(session, 300, 1.0, rows=[HandKey.hard(11)])
        assert outcome.changes_made == len(DEALER_VALUES)
        for change in outcome.changes:
            assert change.old is Action.STAND
            assert change.new in (Action.HIT, Action.DOUBLE)
            assert session.strategy.get_action(change.key, change.dealer) is change.new
            assert change.count_level is None

    def test_count_layer_written(self):
        session = _empty_session(counting_system='Hi-Lo')
        outcome = optimize_strategy(session, 200, 1.0, count_level=2, rows=[HandKey.hard(11)])
        table = session.strategy
        assert outcome.count_level == 2
        assert outcome.changes
        for change in outcome.changes:
            assert change.count_level == 2
            assert table.get_count_action(2, change.key, change.dealer) is change.new
        assert all(table.get_action('11', d) is Action.STAND for d in DEALER_VALUES)
        assert table.count_based

    def test_count_zero_writes_base(self):
        session = _empty_session(counting_system='Hi-Lo')
        outcome = optimize_strategy(session, 200, 1.0, count_level=0, rows=[HandKey.hard(11)])
        assert all(c.count_level is None for c in outcome.changes)
        assert session.strategy.count_levels() == []

    def test_progress_per_row(self, session):
        calls = []
        rows = [HandKey.hard(20), HandKey.hard(19)]
        optimize_strategy(session, 20, rows=rows, progress=lambda d, t: calls.append((d, t)))
        assert calls == [(10, 20), (20, 20)]

    def test_cancel_after_first_row(self, session):
        token = CancelToken()
        rows = [HandKey.hard(20), HandKey.hard(19), HandKey.hard(18)]
        outcome = optimize_strategy(
            session, 20, rows=rows, progress=lambda d, t: token.cancel(), cancel=token,
        )
        assert outcome.cancelled
        assert outcome.completed_cells == 10
        assert outcome.total_cells == 30


class TestOptimizeAllCountLevels:
    def test_requires_counting(self, session):
        with pytest.raises(ValueError):
            optimize_all_count_levels(session, 10)

    def test_stops_at_first_cancelled_level(self, counting_session):
        token = CancelToken()
        token.cancel()
        results = optimize_all_count_levels(counting_session, 10, levels=[-1, 1], cancel=token)
        assert list(results) == [-1]
        assert results[-1].cancelled
        assert counting_session.strategy.count_based
