"""
Monte Carlo simulator for blackjack strategy evaluation.

Plays rounds through the game engine against a persistent shoe and
accumulates:
    - totals (games, wins, losses, pushes, blackjacks, winnings, money bet)
    - per-hand winnings moments, for a standard deviation and 95% CI
    - count statistics (hands and EV per rounded true count) when counting
    - cell statistics keyed by (initial hand, dealer upcard, first action,
      count), which show how each strategy cell actually performs
    - the first SAMPLE_SIZE rounds, for playback

Work is done in chunks. iter_simulation() yields after every chunk so a
host can interleave other work; run_simulations() drives it with a
progress callback and a cancellation token.

All accumulators merge associatively, so independent sessions can be run
in parallel and reduced with SimulationResult.merge().
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterator, NamedTuple

from scipy import stats

from src.engine.cards import card_value, value_label
from src.engine.game_state import GameResult, play_game
from src.engine.rules import Outcome
from src.engine.strategy import Action, HandKey, HandKind
from src.analysis.session import CancelToken, ProgressCallback, Session, is_cancelled

logger = logging.getLogger(__name__)

CHUNK_SIZE = 10_000
SAMPLE_SIZE = 100

_Z_95 = float(stats.norm.ppf(0.975))


# ─── Accumulators ─────────────────────────────────────────────────────────────


@dataclass
class OutcomeTally:
    """Win/loss/push counts and money totals for a set of rounds."""
    games: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_winnings: float = 0.0
    total_bet: float = 0.0
    sum_sq_winnings: float = 0.0

    def record(self, result: GameResult) -> None:
        self.games += 1
        if result.outcome in (Outcome.WIN, Outcome.BLACKJACK):
            self.wins += 1
        elif result.outcome is Outcome.LOSE:
            self.losses += 1
        else:
            self.pushes += 1
        self.total_winnings += result.winnings
        self.total_bet += result.total_bet
        self.sum_sq_winnings += result.winnings * result.winnings

    def merge(self, other: OutcomeTally) -> None:
        self.games += other.games
        self.wins += other.wins
        self.losses += other.losses
        self.pushes += other.pushes
        self.total_winnings += other.total_winnings
        self.total_bet += other.total_bet
        self.sum_sq_winnings += other.sum_sq_winnings

    @property
    def expected_value(self) -> float:
        """Mean net winnings per round."""
        return self.total_winnings / self.games if self.games else 0.0

    @property
    def win_rate(self) -> float:
        return self.wins / self.games if self.games else 0.0

    @property
    def return_rate(self) -> float:
        """Net winnings per unit of money wagered."""
        return self.total_winnings / self.total_bet if self.total_bet else 0.0

    @property
    def std_winnings(self) -> float:
        """Sample standard deviation of per-round winnings."""
        if self.games < 2:
            return 0.0
        mean = self.expected_value
        variance = (self.sum_sq_winnings - self.games * mean * mean) / (self.games - 1)
        return math.sqrt(max(variance, 0.0))

    @property
    def std_error(self) -> float:
        return self.std_winnings / math.sqrt(self.games) if self.games else 0.0

    @property
    def ci_95(self) -> tuple[float, float]:
        margin = _Z_95 * self.std_error
        return self.expected_value - margin, self.expected_value + margin


def count_matches(count: int, count_filter: int | None) -> bool:
    """True if ``count`` falls in the ``count_filter`` bucket (None = any).

    Examples:
        >>> count_matches(-6, -4)
        True
        >>> count_matches(3, 4)
        False
    """
    if count_filter is None:
        return True
    if count_filter <= -4:
        return count <= -4
    if count_filter >= 4:
        return count >= 4
    return count == count_filter


class CellKey(NamedTuple):
    """A strategy cell as observed in play, bucketed by count."""
    hand: HandKey
    dealer: int
    action: Action
    count: int


def cell_sort_key(item: tuple[CellKey, OutcomeTally]) -> tuple:
    """Sort key for (CellKey, tally) pairs; Action members are not orderable."""
    key = item[0]
    return key.hand, key.dealer, key.action.value, key.count


@dataclass
class CountStats:
    """Hands and winnings per rounded true count."""
    hands_by_count: dict[int, int] = field(default_factory=dict)
    winnings_by_count: dict[int, float] = field(default_factory=dict)

    def record(self, count: int, winnings: float) -> None:
        self.hands_by_count[count] = self.hands_by_count.get(count, 0) + 1
        self.winnings_by_count[count] = self.winnings_by_count.get(count, 0.0) + winnings

    def merge(self, other: CountStats) -> None:
        for count, hands in other.hands_by_count.items():
            self.hands_by_count[count] = self.hands_by_count.get(count, 0) + hands
        for count, winnings in other.winnings_by_count.items():
            self.winnings_by_count[count] = self.winnings_by_count.get(count, 0.0) + winnings

    @property
    def count_distribution(self) -> dict[int, float]:
        """Share of hands played at each count."""
        total = sum(self.hands_by_count.values())
        if not total:
            return {}
        return {c: n / total for c, n in sorted(self.hands_by_count.items())}

    @property
    def ev_by_count(self) -> dict[int, float]:
        """Mean winnings per hand at each count."""
        return {
            c: self.winnings_by_count[c] / n
            for c, n in sorted(self.hands_by_count.items())
        }


# ─── Result type ──────────────────────────────────────────────────────────────


@dataclass
class SimulationResult:
    """Aggregate statistics from a Monte Carlo simulation run.

    Attributes:
        totals:         Outcome tally over every round played.
        blackjacks:     Rounds won with a player natural.
        count_stats:    Per-count statistics, or None when not counting.
        cell_stats:     Per-cell tallies; rounds with no player decision
                        (naturals) are not included.
        sample_results: The first SAMPLE_SIZE rounds.
        cancelled:      True if the run stopped before its requested size.
    """
    totals: OutcomeTally = field(default_factory=OutcomeTally)
    blackjacks: int = 0
    count_stats: CountStats | None = None
    cell_stats: dict[CellKey, OutcomeTally] = field(default_factory=dict)
    sample_results: list[GameResult] = field(default_factory=list)
    cancelled: bool = False

    @classmethod
    def empty(cls, counting: bool = False) -> SimulationResult:
        return cls(count_stats=CountStats() if counting else None)

    # ─── Derived statistics ───────────────────────────────────────────────────

    @property
    def total_games(self) -> int:
        return self.totals.games

    @property
    def wins(self) -> int:
        return self.totals.wins

    @property
    def losses(self) -> int:
        return self.totals.losses

    @property
    def pushes(self) -> int:
        return self.totals.pushes

    @property
    def total_winnings(self) -> float:
        return self.totals.total_winnings

    @property
    def total_bet(self) -> float:
        return self.totals.total_bet

    @property
    def expected_value(self) -> float:
        return self.totals.expected_value

    @property
    def win_rate(self) -> float:
        return self.totals.win_rate

    @property
    def return_rate(self) -> float:
        return self.totals.return_rate

    @property
    def std_ev(self) -> float:
        return self.totals.std_winnings

    @property
    def ci_95_low(self) -> float:
        return self.totals.ci_95[0]

    @property
    def ci_95_high(self) -> float:
        return self.totals.ci_95[1]

    # ─── Accumulation ─────────────────────────────────────────────────────────

    def record(self, result: GameResult, count_level: int = 0) -> None:
        """Fold one round, played at ``count_level``, into the statistics."""
        self.totals.record(result)
        if result.outcome is Outcome.BLACKJACK:
            self.blackjacks += 1
        if self.count_stats is not None:
            self.count_stats.record(count_level, result.winnings)
        if result.initial_action is not None:
            key = CellKey(
                result.hand_key, card_value(result.dealer_upcard),
                result.initial_action, count_level,
            )
            tally = self.cell_stats.get(key)
            if tally is None:
                tally = self.cell_stats[key] = OutcomeTally()
            tally.record(result)
        if len(self.sample_results) < SAMPLE_SIZE:
            self.sample_results.append(result)

    def merge(self, other: SimulationResult) -> None:
        """Fold another run's statistics into this one."""
        self.totals.merge(other.totals)
        self.blackjacks += other.blackjacks
        if other.count_stats is not None:
            if self.count_stats is None:
                self.count_stats = CountStats()
            self.count_stats.merge(other.count_stats)
        for key, tally in other.cell_stats.items():
            self.cell_stats.setdefault(key, OutcomeTally()).merge(tally)
        room = SAMPLE_SIZE - len(self.sample_results)
        if room > 0:
            self.sample_results.extend(other.sample_results[:room])
        self.cancelled = self.cancelled or other.cancelled

    def cell_grid(
        self, kind: HandKind, count: int | None = None
    ) -> dict[tuple[HandKey, int], OutcomeTally]:
        """Cell tallies of one table section, merged over actions and counts.

        ``count`` keeps only one rounded true count; -4 and 4 also take in
        everything beyond them.
        """
        grid: dict[tuple[HandKey, int], OutcomeTally] = {}
        for key, tally in self.cell_stats.items():
            if key.hand.kind is not kind or not count_matches(key.count, count):
                continue
            grid.setdefault((key.hand, key.dealer), OutcomeTally()).merge(tally)
        return grid

    # ─── Export ───────────────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Plain-data summary in the camelCase layout display layers expect.

        ``winRate`` and ``returnRate`` are percentages.
        """
        data: dict[str, Any] = {
            'totalGames': self.total_games,
            'wins': self.wins,
            'losses': self.losses,
            'pushes': self.pushes,
            'blackjacks': self.blackjacks,
            'totalWinnings': self.total_winnings,
            'totalBet': self.total_bet,
            'expectedValue': self.expected_value,
            'winRate': self.win_rate * 100,
            'returnRate': self.return_rate * 100,
            'cancelled': self.cancelled,
            'cellStats': [
                {
                    'playerTotal': key.hand.label,
                    'dealerCard': value_label(key.dealer),
                    'action': key.action.value,
                    'count': key.count,
                    'hands': tally.games,
                    'wins': tally.wins,
                    'losses': tally.losses,
                    'pushes': tally.pushes,
                    'totalWinnings': tally.total_winnings,
                    'totalBet': tally.total_bet,
                }
                for key, tally in sorted(self.cell_stats.items(), key=cell_sort_key)
            ],
        }
        if self.count_stats is not None:
            data['countStats'] = {
                'countDistribution': self.count_stats.count_distribution,
                'evByCount': self.count_stats.ev_by_count,
                'handsByCount': dict(sorted(self.count_stats.hands_by_count.items())),
            }
        return data

    def __str__(self) -> str:
        sign = "+" if self.expected_value >= 0 else ""
        return (
            f"Hands: {self.total_games:,} | "
            f"EV/hand: {sign}{self.expected_value:.4f} | "
            f"95% CI: [{self.ci_95_low:.4f}, {self.ci_95_high:.4f}] | "
            f"Return: {self.return_rate * 100:+.2f}% | "
            f"Win rate: {self.win_rate * 100:.1f}%"
            + (" | CANCELLED" if self.cancelled else "")
        )


# ─── Running ──────────────────────────────────────────────────────────────────


@dataclass
class SimulationProgress:
    """Snapshot yielded after each chunk of a simulation."""
    completed: int
    total: int
    result: SimulationResult


def iter_simulation(
    session: Session,
    n_hands: int,
    bet_size: float = 100.0,
    chunk_size: int = CHUNK_SIZE,
    result: SimulationResult | None = None,
) -> Iterator[SimulationProgress]:
    """Play ``n_hands`` rounds, yielding after every chunk.

    A due reshuffle happens first, then the true count is bucketed before
    the round is dealt. Statistics are accumulated into ``result`` (a fresh
    one if omitted), which every yielded SimulationProgress shares.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if result is None:
        result = SimulationResult.empty(counting=session.counter is not None)
    shoe, counter = session.shoe, session.counter
    rules, strategy = session.rules, session.strategy

    completed = 0
    while completed < n_hands:
        end = min(completed + chunk_size, n_hands)
        for _ in range(completed, end):
            if shoe.should_reshuffle():
                shoe.shuffle(counter)
            count_level = counter.count_range(shoe.remaining, shoe.num_decks) if counter else 0
            game = play_game(shoe, rules, strategy, counter, bet_size)
            result.record(game, count_level)
        completed = end
        logger.debug("Simulated %d/%d hands", completed, n_hands)
        yield SimulationProgress(completed, n_hands, result)


def run_simulations(
    session: Session,
    n_hands: int | None = None,
    bet_size: float | None = None,
    *,
    chunk_size: int = CHUNK_SIZE,
    progress: ProgressCallback | None = None,
    cancel: CancelToken | None = None,
) -> SimulationResult:
    """Simulate rounds with the session's shoe, rules and strategy.

    Args:
        session:    Shoe, counter, strategy and rules to play with (mutated).
        n_hands:    Rounds to play; defaults to the session config's n_trials.
        bet_size:   Money per initial hand; defaults to the config's bet_size.
        chunk_size: Rounds between progress reports and cancellation checks.
        progress:   Called as progress(completed, total) after every chunk.
        cancel:     Checked between chunks; a cancelled run returns the
                    statistics gathered so far with ``cancelled=True``.

    Returns:
        SimulationResult for the run.
    """
    if n_hands is None:
        n_hands = session.config.n_trials
    if bet_size is None:
        bet_size = session.config.bet_size
    result = SimulationResult.empty(counting=session.counter is not None)
    if is_cancelled(cancel):
        result.cancelled = True
        return result

    logger.info("Simulating %d hands (bet %.2f)", n_hands, bet_size)
    for step in iter_simulation(session, n_hands, bet_size, chunk_size, result):
        if progress is not None:
            progress(step.completed, step.total)
        if is_cancelled(cancel) and step.completed < step.total:
            result.cancelled = True
            logger.info("Simulation cancelled after %d hands", step.completed)
            break
    logger.info("Simulation finished: %s", result)
    return result


def play_single_hand(session: Session, bet_size: float | None = None) -> GameResult:
    """Play one round from the session's shoe, for step-by-step playback."""
    if bet_size is None:
        bet_size = session.config.bet_size
    return play_game(session.shoe, session.rules, session.strategy, session.counter, bet_size)


# ─── __main__ ─────────────────────────────────────────────────────────────────

if __name__ == "__main__":
    from src.analysis.session import SimulationConfig
    from src.analysis.strategy_report import print_count_stats, print_simulation_summary

    config = SimulationConfig(counting_system='Hi-Lo', n_trials=200_000, seed=42)
    result = run_simulations(Session.from_config(config))
    print_simulation_summary(result)
    print()
    print_count_stats(result)
