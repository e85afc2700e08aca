"""Tests for src/engine/game_state.py: round flow, splits, doubles and settlement.

Each scenario uses a stacked shoe, so every card dealt is known. Deal order:
player, player, dealer up, dealer hole, then every later draw in play order.
"""

from __future__ import annotations

import numpy as np
import pytest

from src.engine.cards import RANK_TEN, card_rank
from src.engine.counting import Counter
from src.engine.game_state import Phase, play_dealer, play_forced_hand, play_game
from src.engine.rules import BlackjackPayout, Outcome, Rules
from src.engine.shoe import Shoe
from src.engine.strategy import Action, HandKey
from tests.conftest import hand, stacked_shoe


# ─── Dealer ───────────────────────────────────────────────────────────────────

class TestPlayDealer:
    def test_stands_on_hard_17(self, rules):
        shoe = stacked_shoe('2C')
        assert play_dealer(shoe, hand('10S', '7H'), rules) == list(hand('10S', '7H'))

    def test_stands_on_soft_17_by_default(self, rules):
        shoe = stacked_shoe('2C')
        assert len(play_dealer(shoe, hand('AS', '6H'), rules)) == 2

    def test_hits_soft_17_when_configured(self):
        shoe = stacked_shoe('2C')
        cards = play_dealer(shoe, hand('AS', '6H'), Rules(dealer_hits_soft_17=True))
        assert cards == list(hand('AS', '6H', '2C'))

    def test_draws_until_17(self, rules):
        shoe = stacked_shoe('2C', '3D', 'KH')
        assert play_dealer(shoe, hand('5S', '6H'), rules) == list(hand('5S', '6H', '2C', '3D', 'KH'))


# ─── Naturals ─────────────────────────────────────────────────────────────────

class TestNaturals:
    def test_player_blackjack_pays_three_to_two(self, rules, basic):
        result = play_game(stacked_shoe('AS', 'KH', '6C', '9D'), rules, basic, bet_size=100)
        assert result.outcome is Outcome.BLACKJACK
        assert result.winnings == 150.0
        assert result.total_bet == 100.0
        assert result.ended_in is Phase.CHECK_NATURALS
        assert result.initial_action is None

    def test_six_to_five(self, basic):
        rules = Rules(blackjack_pays=BlackjackPayout.SIX_TO_FIVE)
        result = play_game(stacked_shoe('AS', 'KH', '6C', '9D'), rules, basic, bet_size=100)
        assert result.winnings == 120.0

    def test_both_naturals_push(self, rules, basic):
        result = play_game(stacked_shoe('AS', 'KH', 'AD', 'QC'), rules, basic, bet_size=100)
        assert result.outcome is Outcome.PUSH
        assert result.winnings == 0.0

    def test_dealer_natural_beats_player(self, rules, basic):
        result = play_game(stacked_shoe('10S', '9H', 'AH', 'KD'), rules, basic, bet_size=100)
        assert result.outcome is Outcome.LOSE
        assert result.winnings == -100.0
        assert result.ended_in is Phase.CHECK_NATURALS

    def test_split_21_is_not_a_natural(self, rules, basic):
        # A,A split: each ace draws one card and stands at 21 or hits on.
        shoe = stacked_shoe('AS', 'AH', '7C', '10D', 'KS', 'QH')
        result = play_game(shoe, rules, basic, bet_size=100)
        assert len(result.hands) == 2
        assert all(h.total == 21 for h in result.hands)
        assert result.outcome is Outcome.WIN
        assert result.winnings == 200.0


# ─── Player decisions ─────────────────────────────────────────────────────────

class TestPlayerTurn:
    def test_bust_loses(self, rules, basic):
        result = play_game(stacked_shoe('10S', '6H', '10C', '7D', 'KH'), rules, basic, bet_size=100)
        assert result.initial_action is Action.HIT
        assert result.hands[0].result is Outcome.LOSE
        assert result.winnings == -100.0

    def test_double_takes_one_card(self, rules, basic):
        shoe = stacked_shoe('5S', '6H', '6C', '10D', '9C', '8D')
        result = play_game(shoe, rules, basic, bet_size=100)
        assert result.initial_action is Action.DOUBLE
        assert len(result.hands[0].cards) == 3
        assert result.hands[0].bet == 2.0
        assert result.total_bet == 200.0
        assert result.winnings == 200.0  # dealer 16 draws 8 and busts

    def test_stand(self, rules, basic):
        result = play_game(stacked_shoe('10S', '8H', 'AS', '6D'), rules, basic, bet_size=100)
        assert result.initial_action is Action.STAND
        assert result.outcome is Outcome.WIN

    def test_dealer_hits_soft_17_changes_result(self, basic):
        shoe = stacked_shoe('10S', '8H', 'AS', '6D', '3C')
        result = play_game(shoe, Rules(dealer_hits_soft_17=True), basic, bet_size=100)
        assert result.outcome is Outcome.LOSE
        assert len(result.dealer_cards) == 3

    def test_result_helpers(self, rules, basic):
        result = play_game(stacked_shoe('10S', '8H', 'AS', '6D'), rules, basic, bet_size=100)
        assert result.dealer_upcard == hand('AS')[0]
        assert result.hand_key == HandKey.hard(18)
        assert 'WIN' in str(result)


# ─── Splits ───────────────────────────────────────────────────────────────────

class TestSplits:
    def test_no_resplit_gives_exactly_two_hands(self, basic):
        shoe = stacked_shoe('8C', '8D', '10H', '7S', '8H', '8S', '2C', '3C')
        result = play_game(shoe, Rules(allow_resplit=False), basic, bet_size=100)
        assert result.initial_action is Action.SPLIT
        assert len(result.hands) == 2
        assert [h.total for h in result.hands] == [18, 19]
        assert result.total_bet == 200.0
        assert result.winnings == 200.0

    def test_resplit_and_double_after_split(self, rules, basic):
        shoe = stacked_shoe(
            '8C', '8D', '10H', '7S',
            '8H',        # first hand's replacement: a pair again
            '9C',        # second hand: 8,9 = 17
            '2C', '3C',  # resplit: first hand 8,2 and third hand 8,3
            'KC',        # first hand hits 10 -> 20
            '9D',        # third hand doubles 11 -> 20
        )
        result = play_game(shoe, rules, basic, bet_size=100)
        assert len(result.hands) == 3
        assert [h.total for h in result.hands] == [20, 17, 20]
        assert [h.bet for h in result.hands] == [1.0, 1.0, 2.0]
        assert [h.result for h in result.hands] == [Outcome.WIN, Outcome.PUSH, Outcome.WIN]
        assert result.total_bet == 400.0
        assert result.winnings == 300.0

    def test_no_double_after_split(self, basic):
        shoe = stacked_shoe('8C', '8D', '10H', '7S', '8H', '3C', '2C', '9D')
        rules = Rules(allow_resplit=False, double_after_split=False)
        result = play_game(shoe, rules, basic, bet_size=100)
        assert [h.bet for h in result.hands] == [1.0, 1.0]
        assert [h.total for h in result.hands] == [18, 20]
        assert result.winnings == 200.0

    def test_double_after_split_allowed(self, basic):
        shoe = stacked_shoe('8C', '8D', '10H', '7S', '8H', '3C', '2C', '9D')
        result = play_game(shoe, Rules(allow_resplit=False), basic, bet_size=100)
        assert [h.bet for h in result.hands] == [1.0, 2.0]
        assert result.total_bet == 300.0
        assert result.winnings == 300.0

    def test_aces_not_resplit_by_default(self, rules, basic):
        shoe = stacked_shoe('AS', 'AH', '7C', '10D', 'AC', 'KS', '9H')
        result = play_game(shoe, rules, basic, bet_size=100)
        assert len(result.hands) == 2
        # A,A kept as soft 12 vs 7: hits to 21 with the 9.
        assert result.hands[0].total == 21


# ─── Shoe interaction ─────────────────────────────────────────────────────────

class TestShoeInteraction:
    def test_counter_sees_every_card(self, rules, basic):
        shoe = stacked_shoe('5S', '6H', '6C', '10D', '9C', '8D')
        counter = Counter('Hi-Lo')
        play_game(shoe, rules, basic, counter=counter, bet_size=100)
        assert counter.running_count == 2

    def test_reshuffles_at_threshold(self, rules, basic):
        shoe = Shoe(1, penetration_threshold=75, rng=np.random.default_rng(5))
        counter = Counter('Hi-Lo')
        for _ in range(45):
            shoe.draw(counter)
        assert shoe.should_reshuffle()
        play_game(shoe, rules, basic, counter=counter)
        assert shoe.dealt < 45

    def test_many_rounds_keep_tally(self, rules, basic):
        shoe = Shoe(6, rng=np.random.default_rng(9))
        for _ in range(500):
            result = play_game(shoe, rules, basic)
            assert shoe.remaining + shoe.dealt == shoe.total_cards
            assert result.total_bet >= 100.0


# ─── Forced first action ──────────────────────────────────────────────────────

class TestForcedHand:
    def test_forced_stand(self, rules, basic):
        result = play_forced_hand(
            stacked_shoe('7D'), rules, basic, hand('10S', '6H'), hand('10C')[0], Action.STAND,
        )
        assert result.initial_action is Action.STAND
        assert result.dealer_cards == hand('10C', '7D')
        assert result.winnings == -100.0

    def test_later_decisions_follow_strategy(self, rules, basic):
        shoe = stacked_shoe('7D', '4C', '3C')
        result = play_forced_hand(shoe, rules, basic, hand('10S', '2H'), hand('10C')[0], Action.HIT)
        assert result.hands[0].total == 19
        assert result.outcome is Outcome.WIN

    def test_split_on_non_pair_becomes_hit(self, rules, basic):
        shoe = stacked_shoe('7D', '4C', '3C')
        result = play_forced_hand(shoe, rules, basic, hand('10S', '2H'), hand('10C')[0], Action.SPLIT)
        assert result.initial_action is Action.HIT
        assert len(result.hands) == 1

    def test_double_not_allowed_becomes_hit(self, rules, basic):
        shoe = stacked_shoe('7D', '9C')
        result = play_forced_hand(
            shoe, rules, basic, hand('5S', '6H'), hand('6C')[0], Action.DOUBLE, can_double=False,
        )
        assert result.initial_action is Action.HIT
        assert result.total_bet == 100.0

    def test_forced_split(self, rules, basic):
        shoe = stacked_shoe('10D', '10C', '9H')
        result = play_forced_hand(
            shoe, rules, basic, hand('9S', '9D'), hand('7S')[0], Action.SPLIT, bet_size=10,
        )
        assert result.initial_action is Action.SPLIT
        assert [h.total for h in result.hands] == [19, 18]
        assert result.total_bet == 20.0
        assert result.winnings == 20.0

    @pytest.mark.slow
    def test_sixteen_vs_ten_hit_ev(self, rules, basic):
        # Rounds where the dealer peeks a natural are excluded.
        rng = np.random.default_rng(2024)
        ten, six = hand('10S', '6H')
        total, played = 0.0, 0
        for _ in range(100_000):
            shoe = Shoe(6, 100.0, rng=rng)
            cards = [shoe.deal_specific(card_rank(ten)), shoe.deal_specific(card_rank(six))]
            upcard = shoe.deal_specific(RANK_TEN)
            result = play_forced_hand(shoe, rules, basic, cards, upcard, Action.HIT, bet_size=1.0)
            if result.ended_in is Phase.CHECK_NATURALS:
                continue
            total += result.winnings
            played += 1
        assert basic.lookup(HandKey.hard(16), 10) is Action.HIT
        assert -0.555 < total / played < -0.50
