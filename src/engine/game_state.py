"""
Game flow: one complete round of blackjack against a shoe.

Implements the round as:
    DEAL → CHECK_NATURALS → PLAYER_TURN → DEALER_TURN → SETTLE

Rules modelled here:
    - A player natural pays the table's blackjack multiplier unless the
      dealer also has one (push); a dealer natural beats everything else.
    - Player hands are played from a worklist so that split hands are
      appended and played in turn.
    - Resplitting follows Rules.allow_resplit / Rules.resplit_aces as soon
      as any split has happened in the round.
    - Split hands may double only under Rules.double_after_split.
    - The dealer draws to 17 and hits soft 17 under Rules.dealer_hits_soft_17.

Decisions and transitions are traced with ``logging.debug``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Protocol, Sequence

from .cards import card_value, hand_to_str
from .counting import Counter
from .hand import calculate_total, can_split, hand_value, is_blackjack
from .rules import Outcome, Rules, calculate_payout, settle_hand, settle_naturals
from .shoe import Shoe
from .strategy import Action, HandKey

logger = logging.getLogger(__name__)


# ─── Enumerations ─────────────────────────────────────────────────────────────

class Phase(Enum):
    DEAL = auto()
    CHECK_NATURALS = auto()
    PLAYER_TURN = auto()
    DEALER_TURN = auto()
    SETTLE = auto()


class ActionLookup(Protocol):
    """Anything that resolves a decision point: StrategyTable or a view of it."""

    def lookup(
        self,
        key: HandKey,
        dealer: int,
        can_double: bool = True,
        can_split: bool = True,
        count_level: int = 0,
    ) -> Action: ...


# ─── State / Result types ─────────────────────────────────────────────────────

@dataclass
class Hand:
    """One player hand in a round. ``bet`` is a multiplier of the base bet."""
    cards: list[int]
    bet: float = 1.0
    result: Outcome | None = None   # LOSE once busted; None while undetermined

    @property
    def total(self) -> int:
        return calculate_total(self.cards)


@dataclass
class GameResult:
    """Result of a completed round, from the player's perspective."""
    outcome: Outcome
    winnings: float                    # Net money won (negative = lost)
    total_bet: float                   # Money wagered across all hands
    player_cards: tuple[int, ...]      # Initial two cards
    dealer_cards: tuple[int, ...]      # Dealer's final hand
    hands: list[Hand] = field(default_factory=list)
    initial_action: Action | None = None
    ended_in: Phase = Phase.SETTLE

    @property
    def dealer_upcard(self) -> int:
        return self.dealer_cards[0]

    @property
    def hand_key(self) -> HandKey:
        """The strategy row of the initial two cards."""
        return HandKey.from_cards(self.player_cards)

    def __str__(self) -> str:
        player_str = ' / '.join(
            f"{hand_to_str(h.cards)} ({h.total})" for h in self.hands
        ) or hand_to_str(self.player_cards)
        dealer_str = hand_to_str(self.dealer_cards)
        action_str = self.initial_action.label if self.initial_action else '-'
        winnings_str = f"+{self.winnings:.1f}" if self.winnings >= 0 else f"{self.winnings:.1f}"
        return (
            f"Player: {player_str} | "
            f"Dealer: {dealer_str} ({calculate_total(self.dealer_cards)}) | "
            f"First action: {action_str} | {self.outcome.name} {winnings_str}"
        )


# ─── Dealer ───────────────────────────────────────────────────────────────────

def play_dealer(
    shoe: Shoe,
    dealer_cards: Sequence[int],
    rules: Rules,
    counter: Counter | None = None,
) -> list[int]:
    """Draw dealer cards until the stand threshold is reached.

    The dealer stands on 17 or more; with ``dealer_hits_soft_17`` the
    threshold for a soft 17 is 18.

    Returns:
        The dealer's final cards.
    """
    cards = list(dealer_cards)
    while True:
        total, soft = hand_value(cards)
        threshold = 18 if (rules.dealer_hits_soft_17 and soft and total == 17) else 17
        if total >= threshold:
            return cards
        cards.append(shoe.draw(counter))


# ─── Player turn ──────────────────────────────────────────────────────────────

def _play_player_hands(
    shoe: Shoe,
    hands: list[Hand],
    dealer_upcard: int,
    rules: Rules,
    strategy: ActionLookup,
    counter: Counter | None,
    can_double_first: bool,
    forced_action: Action | None = None,
) -> Action | None:
    """Play every hand in the worklist; return the first decision taken.

    ``forced_action`` replaces the strategy for the very first decision of
    the first hand; everything afterwards follows ``strategy``.
    """
    dealer = card_value(dealer_upcard)
    initial_action: Action | None = None
    i = 0
    while i < len(hands):
        hand = hands[i]
        while True:
            total, _ = hand_value(hand.cards)
            if total > 21 or (len(hand.cards) == 2 and total == 21):
                break

            has_split = len(hands) > 1
            pair = can_split(hand.cards)
            if pair and has_split:
                if card_value(hand.cards[0]) == 11:
                    split_ok = rules.resplit_aces
                else:
                    split_ok = rules.allow_resplit
            else:
                split_ok = pair
            if len(hand.cards) != 2:
                double_ok = False
            elif has_split:
                double_ok = rules.double_after_split
            else:
                double_ok = can_double_first

            if forced_action is not None and i == 0 and initial_action is None:
                action = forced_action
            else:
                count_level = (
                    counter.count_range(shoe.remaining, shoe.num_decks) if counter else 0
                )
                key = HandKey.from_cards(hand.cards, allow_pair=split_ok)
                action = strategy.lookup(key, dealer, double_ok, split_ok, count_level)

            if action is Action.DOUBLE and not double_ok:
                action = Action.HIT
            elif action is Action.SPLIT and not split_ok:
                action = Action.HIT
            if i == 0 and initial_action is None:
                initial_action = action
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "%s hand %d [%s] vs %d: %s",
                    Phase.PLAYER_TURN.name, i, hand_to_str(hand.cards), dealer, action.label,
                )

            if action is Action.HIT:
                hand.cards.append(shoe.draw(counter))
                if calculate_total(hand.cards) > 21:
                    hand.result = Outcome.LOSE
                    break
            elif action is Action.DOUBLE:
                hand.bet *= 2
                hand.cards.append(shoe.draw(counter))
                if calculate_total(hand.cards) > 21:
                    hand.result = Outcome.LOSE
                break
            elif action is Action.SPLIT:
                moved = hand.cards.pop()
                hand.cards.append(shoe.draw(counter))
                hands.append(Hand([moved, shoe.draw(counter)], bet=hand.bet))
            else:
                break
        i += 1
    return initial_action


# ─── Round ────────────────────────────────────────────────────────────────────

def _play_round(
    shoe: Shoe,
    rules: Rules,
    strategy: ActionLookup,
    counter: Counter | None,
    player_cards: tuple[int, ...],
    dealer_cards: tuple[int, ...],
    bet_size: float,
    can_double: bool = True,
    forced_action: Action | None = None,
) -> GameResult:
    """Resolve naturals, play the player's hands and the dealer's, and settle."""
    naturals = settle_naturals(is_blackjack(player_cards), is_blackjack(dealer_cards), rules)
    if naturals is not None:
        outcome, units = naturals
        logger.debug("%s: %s", Phase.CHECK_NATURALS.name, outcome.name)
        return GameResult(
            outcome=outcome,
            winnings=calculate_payout(units, bet_size),
            total_bet=bet_size,
            player_cards=player_cards,
            dealer_cards=dealer_cards,
            hands=[Hand(list(player_cards))],
            initial_action=None,
            ended_in=Phase.CHECK_NATURALS,
        )

    hands = [Hand(list(player_cards))]
    initial_action = _play_player_hands(
        shoe, hands, dealer_cards[0], rules, strategy, counter, can_double, forced_action,
    )

    final_dealer = play_dealer(shoe, dealer_cards, rules, counter)
    dealer_total = calculate_total(final_dealer)
    logger.debug("%s: dealer %s (%d)", Phase.DEALER_TURN.name, hand_to_str(final_dealer), dealer_total)

    units = 0.0
    for hand in hands:
        outcome, payout = settle_hand(
            hand.total, dealer_total, hand.bet, already_lost=hand.result is Outcome.LOSE,
        )
        hand.result = outcome
        units += payout
    winnings = calculate_payout(units, bet_size)
    return GameResult(
        outcome=Outcome.from_winnings(winnings),
        winnings=winnings,
        total_bet=sum(h.bet for h in hands) * bet_size,
        player_cards=player_cards,
        dealer_cards=tuple(final_dealer),
        hands=hands,
        initial_action=initial_action,
        ended_in=Phase.SETTLE,
    )


def play_game(
    shoe: Shoe,
    rules: Rules,
    strategy: ActionLookup,
    counter: Counter | None = None,
    bet_size: float = 100.0,
) -> GameResult:
    """Play one complete round, dealing all cards from ``shoe``.

    The shoe is reshuffled first if its penetration threshold was reached.

    Args:
        shoe: The shoe to deal from (mutated).
        rules: Table rules.
        strategy: Resolves every player decision.
        counter: Running count to update with every card seen, if counting.
        bet_size: Money wagered on the initial hand.

    Returns:
        GameResult with complete outcome information.
    """
    if shoe.should_reshuffle():
        shoe.shuffle(counter)
    player_cards = (shoe.draw(counter), shoe.draw(counter))
    dealer_cards = (shoe.draw(counter), shoe.draw(counter))
    logger.debug(
        "%s: player %s, dealer up %s",
        Phase.DEAL.name, hand_to_str(player_cards), hand_to_str(dealer_cards[:1]),
    )
    return _play_round(shoe, rules, strategy, counter, player_cards, dealer_cards, bet_size)


def play_forced_hand(
    shoe: Shoe,
    rules: Rules,
    strategy: ActionLookup,
    player_cards: Sequence[int],
    dealer_upcard: int,
    forced_action: Action,
    counter: Counter | None = None,
    bet_size: float = 100.0,
    can_double: bool = True,
) -> GameResult:
    """Play a round from known cards with a forced first decision.

    The dealer's hole card is drawn from ``shoe``. ``forced_action`` is
    applied to the first decision with the usual downgrades (an ineligible
    Double or Split becomes Hit); every later decision follows ``strategy``.
    The known cards must already have been removed from the shoe.
    """
    dealer_cards = (dealer_upcard, shoe.draw(counter))
    return _play_round(
        shoe, rules, strategy, counter, tuple(player_cards), dealer_cards,
        bet_size, can_double=can_double, forced_action=forced_action,
    )
