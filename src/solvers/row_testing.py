"""
Forced-action Monte Carlo evaluation of one strategy row.

For a strategy row (hard total, soft total or pair) and a set of dealer
upcards, every legal first action is played many times from a
representative starting hand, and the EV of each (dealer, action) pair is
estimated. Everything after the forced first decision follows the
session's strategy.

Each trial:
    1. builds a fresh shoe (penetration 100%, never reshuffles mid-trial)
    2. removes the representative player cards
    3. per dealer upcard, copies that shoe and removes the upcard
       (with a target count: burns cards until the rounded true count
       matches it, or skips the upcard when it cannot be reached)
    4. per action, copies the shoe again and plays the forced hand

Within one trial every action sees the same remaining card order, so the
comparison between actions is not blurred by different draws.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable

from src.analysis.session import CancelToken, ProgressCallback, Session, is_cancelled
from src.analysis.simulator import CHUNK_SIZE, OutcomeTally
from src.engine.cards import DEALER_VALUES, RANK_ACE, parse_value_label, value_label
from src.engine.counting import Counter
from src.engine.game_state import play_forced_hand
from src.engine.shoe import Shoe
from src.engine.strategy import TABLE_ROWS, Action, HandKey, HandKind

logger = logging.getLogger(__name__)

# Burning stops at this depth when searching for a target count.
MAX_BURN_PENETRATION = 75.0


# ─── Representative hands ─────────────────────────────────────────────────────


def _rank_of_value(value: int) -> int:
    """Rank index of a card with the given value (10 -> '10', 11 -> Ace)."""
    return RANK_ACE if value == 11 else value - 2


def representative_values(key: HandKey) -> tuple[int, ...]:
    """Card values of the starting hand used to test a strategy row.

    Hard 10–20 use a ten-heavy split, smaller hard totals split in half,
    and hard 21 needs three cards. Soft totals are an Ace plus the rest.

    Examples:
        >>> representative_values(HandKey.hard(16))
        (10, 6)
        >>> representative_values(HandKey.hard(9))
        (4, 5)
        >>> representative_values(HandKey.soft(18))
        (11, 7)
        >>> representative_values(HandKey.pair(8))
        (8, 8)
    """
    if key.kind is HandKind.PAIR:
        return key.value, key.value
    if key.kind is HandKind.SOFT:
        return 11, key.value - 11
    total = key.value
    if total == 21:
        return 10, 5, 6
    if 10 <= total <= 20:
        first = min(10, total - 5)
        return first, total - first
    return total // 2, total - total // 2


def candidate_actions(key: HandKey, n_cards: int) -> list[Action]:
    """Legal first actions to test for a row, in tie-break order.

    Examples:
        >>> [a.value for a in candidate_actions(HandKey.hard(16), 2)]
        ['H', 'S', 'D']
        >>> [a.value for a in candidate_actions(HandKey.soft(21), 2)]
        ['S']
    """
    if key == HandKey.soft(21):
        return [Action.STAND]
    actions = [Action.HIT, Action.STAND]
    if n_cards == 2 and key != HandKey.pair(11):
        actions.append(Action.DOUBLE)
    if key.kind is HandKind.PAIR:
        actions.append(Action.SPLIT)
    return actions


# ─── Result type ──────────────────────────────────────────────────────────────


@dataclass
class RowTestResult:
    """Per dealer upcard and action tallies for one strategy row.

    Attributes:
        key:         The strategy row tested.
        count_level: Target rounded true count, or None for no filter.
        actions:     Actions tested, in tie-break order.
        results:     results[dealer][action] -> OutcomeTally.
        trials:      Trials completed.
        attempts:    Dealer-upcard trials attempted (including skipped ones).
        skipped:     Dealer-upcard trials skipped by the count filter.
        cancelled:   True if the run stopped early.
    """
    key: HandKey
    count_level: int | None
    actions: list[Action]
    results: dict[int, dict[Action, OutcomeTally]] = field(default_factory=dict)
    trials: int = 0
    attempts: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def summary(self) -> dict[str, dict[str, float]]:
        """EV per dealer label and action code, e.g. summary['10']['H']."""
        return {
            value_label(dealer): {action.value: tally.expected_value for action, tally in row.items()}
            for dealer, row in self.results.items()
        }

    def games(self, dealer: int) -> int:
        return sum(t.games for t in self.results.get(dealer, {}).values())

    def best_action(self, dealer: int) -> tuple[Action, float] | None:
        """Highest-EV action for a dealer upcard (first wins ties), or None without data."""
        row = self.results.get(dealer)
        if not row or self.games(dealer) == 0:
            return None
        best = max(self.actions, key=lambda a: row[a].expected_value)
        return best, row[best].expected_value


# ─── Trials ───────────────────────────────────────────────────────────────────


def _burn_to_count(shoe: Shoe, counter: Counter, target: int) -> bool:
    """Deal cards off the top until the rounded true count equals ``target``."""
    while counter.count_range(shoe.remaining, shoe.num_decks) != target:
        if shoe.penetration >= MAX_BURN_PENETRATION:
            return False
        shoe.draw(counter)
    return True


def evaluate_row_actions(
    session: Session,
    row: HandKey | str,
    dealers: Iterable[int | str] = DEALER_VALUES,
    count_level: int | None = None,
    n_trials: int | None = None,
    bet_size: float | None = None,
    *,
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> RowTestResult:
    """Estimate the EV of every legal first action for one strategy row.

    Args:
        session:     Supplies rules, deck count, counting system, strategy
                     and random generator. Its own shoe is not touched.
        row:         HandKey or label ('16', 'S17', '8,8').
        dealers:     Dealer upcards to test (values 2–11 or labels).
        count_level: With counting enabled, only trials whose rounded true
                     count equals this value are played, and the tested
                     action overrides that count's layer.
        n_trials:    Trials per dealer upcard; defaults to the config's n_trials.
        bet_size:    Money per initial hand; defaults to the config's bet_size.
        progress:    Called as progress(completed_trials, n_trials) per chunk.
        cancel:      Checked per trial, per dealer upcard and per action.
        chunk_size:  Trials between progress reports.

    Returns:
        RowTestResult; partial with ``cancelled=True`` if cancelled.

    Raises:
        ValueError: If ``row`` is not a row of the strategy table.
    """
    key = HandKey.parse(row) if isinstance(row, str) else row
    if key.value not in TABLE_ROWS[key.kind]:
        raise ValueError(f"No strategy row for {key.label}")
    dealer_values = [parse_value_label(d) if isinstance(d, str) else d for d in dealers]
    if n_trials is None:
        n_trials = session.config.n_trials
    if bet_size is None:
        bet_size = session.config.bet_size
    counting = session.counter is not None
    target = count_level if counting else None

    ranks = [_rank_of_value(v) for v in representative_values(key)]
    actions = candidate_actions(key, len(ranks))
    result = RowTestResult(
        key=key,
        count_level=target,
        actions=actions,
        results={d: {a: OutcomeTally() for a in actions} for d in dealer_values},
    )
    rules, strategy = session.rules, session.strategy
    overlays = {
        (dealer, action): strategy.override(key, dealer, action, target)
        for dealer in dealer_values
        for action in actions
    }
    can_double = Action.DOUBLE in actions

    for trial in range(n_trials):
        if is_cancelled(cancel):
            result.cancelled = True
            break
        shoe = Shoe(session.config.num_decks, 100.0, rng=session.rng)
        counter = session.new_counter()
        player_cards = [shoe.deal_specific(rank, counter) for rank in ranks]

        for dealer in dealer_values:
            if is_cancelled(cancel):
                result.cancelled = True
                break
            result.attempts += 1
            dealer_shoe = shoe.copy()
            dealer_counter = counter.copy() if counter is not None else None
            upcard = dealer_shoe.deal_specific(_rank_of_value(dealer), dealer_counter)
            if target is not None and not _burn_to_count(dealer_shoe, dealer_counter, target):
                result.skipped += 1
                continue

            for action in actions:
                if is_cancelled(cancel):
                    result.cancelled = True
                    break
                game = play_forced_hand(
                    dealer_shoe.copy(),
                    rules,
                    overlays[dealer, action],
                    player_cards,
                    upcard,
                    action,
                    counter=dealer_counter.copy() if dealer_counter is not None else None,
                    bet_size=bet_size,
                    can_double=can_double,
                )
                result.results[dealer][action].record(game)
        if result.cancelled:
            break

        result.trials = trial + 1
        if progress is not None and (result.trials % chunk_size == 0 or result.trials == n_trials):
            progress(result.trials, n_trials)

    logger.debug(
        "Row %s: %d trials, %d/%d dealer trials skipped%s",
        key.label, result.trials, result.skipped, result.attempts,
        " (cancelled)" if result.cancelled else "",
    )
    return result
