"""Tests for src/engine/rules.py: rule configuration, settlement and payouts."""

from __future__ import annotations

import pytest

from src.engine.rules import (
    BlackjackPayout,
    Outcome,
    Rules,
    calculate_payout,
    settle_hand,
    settle_naturals,
)


class TestRules:
    def test_defaults(self):
        rules = Rules()
        assert rules.dealer_hits_soft_17 is False
        assert rules.double_after_split is True
        assert rules.allow_resplit is True
        assert rules.resplit_aces is False
        assert rules.blackjack_multiplier == 1.5

    @pytest.mark.parametrize("ratio,mult", [('3:2', 1.5), ('6:5', 1.2), ('1:1', 1.0)])
    def test_payout_multipliers(self, ratio, mult):
        assert BlackjackPayout(ratio).multiplier == mult

    def test_from_dict_stands_on_17s(self):
        assert Rules.from_dict({'dealerStandsOn': '17s'}).dealer_hits_soft_17 is False
        assert Rules.from_dict({'dealerStandsOn': '17'}).dealer_hits_soft_17 is True

    def test_from_dict_explicit_flag_wins(self):
        rules = Rules.from_dict({'dealerHitsSoft17': True, 'dealerStandsOn': '17s'})
        assert rules.dealer_hits_soft_17 is True

    def test_from_dict_partial_keeps_defaults(self):
        rules = Rules.from_dict({'allowResplit': False})
        assert rules.allow_resplit is False
        assert rules.double_after_split is True
        assert rules.blackjack_pays is BlackjackPayout.THREE_TO_TWO

    def test_from_dict_bad_payout(self):
        with pytest.raises(ValueError):
            Rules.from_dict({'blackjackPays': '2:1'})

    def test_dict_roundtrip(self):
        rules = Rules(dealer_hits_soft_17=True, blackjack_pays=BlackjackPayout.SIX_TO_FIVE)
        assert Rules.from_dict(rules.to_dict()) == rules


class TestSettleHand:
    def test_higher_total_wins(self):
        assert settle_hand(20, 19) == (Outcome.WIN, 1.0)

    def test_lower_total_loses(self):
        assert settle_hand(17, 18) == (Outcome.LOSE, -1.0)

    def test_equal_pushes(self):
        assert settle_hand(18, 18) == (Outcome.PUSH, 0.0)

    def test_dealer_bust(self):
        assert settle_hand(12, 24, bet=2.0) == (Outcome.WIN, 2.0)

    def test_player_bust_loses_even_if_dealer_busts(self):
        assert settle_hand(23, 22) == (Outcome.LOSE, -1.0)

    def test_already_lost(self):
        assert settle_hand(20, 18, already_lost=True) == (Outcome.LOSE, -1.0)

    def test_doubled_hand(self):
        assert settle_hand(11, 20, bet=2.0) == (Outcome.LOSE, -2.0)


class TestSettleNaturals:
    def test_player_natural(self):
        assert settle_naturals(True, False, Rules()) == (Outcome.BLACKJACK, 1.5)

    def test_six_to_five(self):
        rules = Rules(blackjack_pays=BlackjackPayout.SIX_TO_FIVE)
        assert settle_naturals(True, False, rules) == (Outcome.BLACKJACK, 1.2)

    def test_both_natural_pushes(self):
        assert settle_naturals(True, True, Rules()) == (Outcome.PUSH, 0.0)

    def test_dealer_natural(self):
        assert settle_naturals(False, True, Rules()) == (Outcome.LOSE, -1.0)

    def test_no_naturals(self):
        assert settle_naturals(False, False, Rules()) is None


class TestOutcome:
    @pytest.mark.parametrize("winnings,outcome", [
        (150.0, Outcome.WIN), (-200.0, Outcome.LOSE), (0.0, Outcome.PUSH),
    ])
    def test_from_winnings(self, winnings, outcome):
        assert Outcome.from_winnings(winnings) is outcome

    def test_calculate_payout(self):
        assert calculate_payout(1.5, 10.0) == 15.0
        assert calculate_payout(-2.0, 100.0) == -200.0
