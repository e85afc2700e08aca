"""Tests for src/analysis/situation.py: what-if analysis of one known situation."""

from __future__ import annotations

import numpy as np
import pytest

from src.analysis.situation import (
    SituationAnalysis,
    SituationError,
    analyze_situation,
    parse_cards,
)
from src.engine.cards import RANK_ACE
from src.engine.rules import Rules
from src.engine.strategy import Action, HandKey


def _analyze(player: str, dealer: str, n_trials: int = 1_500, **kwargs):
    return analyze_situation(
        player, dealer, n_trials=n_trials, bet_size=1.0, rng=np.random.default_rng(17), **kwargs,
    )


class TestParseCards:
    def test_parses_ranks(self):
        assert parse_cards('A, 7') == [RANK_ACE, 5]
        assert parse_cards('10,K') == [8, 11]

    @pytest.mark.parametrize("text", ['', ' , ', 'A,X', '1,5'])
    def test_rejects(self, text):
        with pytest.raises(ValueError):
            parse_cards(text)


class TestInvalidInput:
    @pytest.mark.parametrize("player,dealer", [('A,Z', '6'), ('', '6'), ('10,6', 'B'), ('10,6', '')])
    def test_returns_error(self, player, dealer):
        outcome = analyze_situation(player, dealer, n_trials=10)
        assert isinstance(outcome, SituationError)
        assert outcome.error == "Invalid card input"

    def test_too_many_of_a_rank(self):
        outcome = analyze_situation('A,A,A,A', 'A', num_decks=1, n_trials=10)
        assert isinstance(outcome, SituationError)


class TestAnalyzeSituation:
    def test_actions_offered(self):
        outcome = _analyze('10,6', '10', n_trials=50)
        assert isinstance(outcome, SituationAnalysis)
        assert list(outcome.actions) == [Action.HIT, Action.STAND, Action.DOUBLE]
        assert outcome.hand == HandKey.hard(16)

    def test_pair_offers_split(self):
        outcome = _analyze('8,8', '6', n_trials=50)
        assert Action.SPLIT in outcome.actions
        assert outcome.hand == HandKey.pair(8)

    def test_three_cards_no_double(self):
        outcome = _analyze('5,5,6', '10', n_trials=50)
        assert list(outcome.actions) == [Action.HIT, Action.STAND]

    def test_flags_override(self):
        outcome = _analyze('8,8', '6', n_trials=50, can_double=False, can_split=False)
        assert list(outcome.actions) == [Action.HIT, Action.STAND]
        assert outcome.hand == HandKey.hard(16)

    def test_every_action_gets_every_trial(self):
        outcome = _analyze('A,7', '9', n_trials=120)
        assert all(o.tally.games == 120 for o in outcome.actions.values())

    def test_eleven_vs_six_doubles(self):
        outcome = _analyze('6,5', '6')
        assert outcome.best_action is Action.DOUBLE
        assert outcome.best_expected_value > 0.2

    def test_twenty_stands(self):
        outcome = _analyze('K,Q', '7')
        stand = outcome.actions[Action.STAND].expected_value
        assert stand > outcome.actions[Action.HIT].expected_value
        assert stand > outcome.actions[Action.SPLIT].expected_value

    def test_progress(self):
        calls = []
        _analyze('10,6', '10', n_trials=2_000, progress=lambda d, t: calls.append((d, t)))
        assert calls == [(1_000, 2_000), (2_000, 2_000)]

    def test_to_dict(self):
        outcome = _analyze('A,7', '6', n_trials=50, rules=Rules(dealer_hits_soft_17=True))
        data = outcome.to_dict()
        assert data['situation'] == {'playerTotal': 18, 'hand': 'S18', 'dealerCard': 6}
        assert set(data['actions']) == {'H', 'S', 'D'}
        assert data['bestAction'] in data['actions']
        assert data['actions']['S']['totalGames'] == 50
        stand = outcome.actions[Action.STAND].tally
        assert data['actions']['S']['winRate'] == pytest.approx(stand.win_rate * 100)
