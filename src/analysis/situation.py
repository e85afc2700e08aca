"""
What-if analysis of a single known situation.

Given the player's cards and the dealer's upcard as text ('A,7' vs '6'),
every legal first action is simulated from a fresh shoe with the known
cards removed, and the action with the highest EV is reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from src.analysis.session import ProgressCallback
from src.analysis.simulator import OutcomeTally
from src.engine.cards import card_value, parse_rank
from src.engine.game_state import play_forced_hand
from src.engine.hand import can_split as is_pair, hand_value
from src.engine.rules import Rules
from src.engine.shoe import Shoe
from src.engine.strategy import Action, HandKey, StrategyTable

INVALID_INPUT = "Invalid card input"


@dataclass
class ActionOutcome:
    """Simulated performance of one first action."""
    action: Action
    tally: OutcomeTally

    @property
    def expected_value(self) -> float:
        return self.tally.expected_value

    def to_dict(self) -> dict[str, Any]:
        return {
            'expectedValue': self.tally.expected_value,
            'winRate': self.tally.win_rate * 100,
            'returnRate': self.tally.return_rate * 100,
            'wins': self.tally.wins,
            'losses': self.tally.losses,
            'pushes': self.tally.pushes,
            'totalGames': self.tally.games,
        }


@dataclass
class SituationAnalysis:
    """Per-action results for one situation, best action first-class."""
    player_cards: tuple[int, ...]
    dealer_card: int
    hand: HandKey
    actions: dict[Action, ActionOutcome] = field(default_factory=dict)

    @property
    def best_action(self) -> Action:
        return max(self.actions, key=lambda a: self.actions[a].expected_value)

    @property
    def best_expected_value(self) -> float:
        return self.actions[self.best_action].expected_value

    def to_dict(self) -> dict[str, Any]:
        return {
            'situation': {
                'playerTotal': hand_value(self.player_cards)[0],
                'hand': self.hand.label,
                'dealerCard': card_value(self.dealer_card),
            },
            'actions': {a.value: outcome.to_dict() for a, outcome in self.actions.items()},
            'bestAction': self.best_action.value,
            'bestExpectedValue': self.best_expected_value,
        }


@dataclass
class SituationError:
    """Returned instead of an analysis when the input cannot be parsed."""
    error: str = INVALID_INPUT


def parse_cards(text: str) -> list[int]:
    """Parse a comma-separated list of ranks into rank indices.

    Raises:
        ValueError: On an empty list or any unrecognised token.

    Examples:
        >>> parse_cards('A, 7')
        [12, 5]
    """
    tokens = [t for t in text.split(',') if t.strip()]
    if not tokens:
        raise ValueError("No cards given")
    return [parse_rank(t) for t in tokens]


def analyze_situation(
    player_cards: str,
    dealer_card: str,
    *,
    rules: Rules | None = None,
    num_decks: int = 6,
    strategy: StrategyTable | None = None,
    n_trials: int = 10_000,
    bet_size: float = 100.0,
    can_double: bool | None = None,
    can_split: bool | None = None,
    rng: np.random.Generator | None = None,
    progress: ProgressCallback | None = None,
) -> SituationAnalysis | SituationError:
    """Simulate every legal first action for a known situation.

    Args:
        player_cards: Comma-separated ranks, e.g. 'A,7' or '10, 6'.
        dealer_card:  The dealer's upcard rank, e.g. '6' or 'A'.
        rules:        Table rules; defaults to Rules().
        num_decks:    Decks in each fresh trial shoe.
        strategy:     Strategy for decisions after the first; basic if omitted.
        n_trials:     Trials per action.
        bet_size:     Money per initial hand.
        can_double:   Offer Double; defaults to "exactly two cards".
        can_split:    Offer Split; defaults to "two cards of equal value".
        rng:          Random generator for the trial shoes.
        progress:     Called as progress(completed, n_trials) every 1000 trials.

    Returns:
        SituationAnalysis, or SituationError if any card is unparseable.
    """
    try:
        player_ranks = parse_cards(player_cards)
        dealer_rank = parse_rank(dealer_card)
    except ValueError:
        return SituationError()

    rules = rules or Rules()
    strategy = strategy or StrategyTable.basic()
    rng = rng if rng is not None else np.random.default_rng()

    template = Shoe(num_decks, 100.0, rng=rng)
    try:
        cards = [template.deal_specific(rank) for rank in player_ranks]
        upcard = template.deal_specific(dealer_rank)
    except ValueError:
        return SituationError("Not enough cards of that rank in the shoe")

    if can_double is None:
        can_double = len(cards) == 2
    if can_split is None:
        can_split = is_pair(cards)
    key = HandKey.from_cards(cards, allow_pair=can_split)
    dealer = card_value(upcard)

    actions = [Action.HIT, Action.STAND]
    if can_double:
        actions.append(Action.DOUBLE)
    if can_split:
        actions.append(Action.SPLIT)

    analysis = SituationAnalysis(tuple(cards), upcard, key)
    tallies = {action: OutcomeTally() for action in actions}
    overlays = {action: strategy.override(key, dealer, action) for action in actions}
    for trial in range(n_trials):
        shoe = Shoe(num_decks, 100.0, rng=rng)
        for rank in player_ranks:
            shoe.deal_specific(rank)
        shoe.deal_specific(dealer_rank)
        for action in actions:
            game = play_forced_hand(
                shoe.copy(), rules, overlays[action], cards, upcard, action,
                bet_size=bet_size, can_double=can_double,
            )
            tallies[action].record(game)
        if progress is not None and (trial + 1) % 1000 == 0:
            progress(trial + 1, n_trials)

    for action in actions:
        analysis.actions[action] = ActionOutcome(action, tallies[action])
    return analysis
