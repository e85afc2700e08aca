"""
Simulation configuration, session context and cancellation.

A Session bundles everything one simulation run mutates: the shoe, the
optional running count, the strategy table and the random generator.
Independent sessions share nothing, so they can run side by side.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

import numpy as np

from src.engine.counting import Counter
from src.engine.rules import Rules
from src.engine.shoe import Shoe
from src.engine.strategy import StrategyTable

# progress(completed, total)
ProgressCallback = Callable[[int, int], None]


class CancelToken:
    """Thread-safe cancellation flag checked by long-running operations.

    Examples:
        >>> token = CancelToken()
        >>> token.cancelled
        False
        >>> token.cancel()
        >>> token.cancelled
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def is_cancelled(cancel: CancelToken | None) -> bool:
    return cancel is not None and cancel.cancelled


@dataclass
class SimulationConfig:
    """Inbound settings for a simulation or optimization run.

    Attributes:
        num_decks: Decks in the shoe (1–8).
        penetration: Reshuffle threshold in percent (50–100).
        rules: Table rules.
        counting_system: Counting system name, or None to disable counting.
        custom_weights: Rank weights for the 'Custom' counting system.
        count_based: Consult per-count strategy layers during play.
        bet_size: Money wagered per initial hand.
        n_trials: Number of rounds (or trials) to run.
        seed: Seed for the session's random generator; None for entropy.
    """
    num_decks: int = 6
    penetration: float = 75.0
    rules: Rules = field(default_factory=Rules)
    counting_system: str | None = None
    custom_weights: dict[str, int] | None = None
    count_based: bool = False
    bet_size: float = 100.0
    n_trials: int = 10_000
    seed: int | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.num_decks <= 8:
            raise ValueError(f"num_decks must be between 1 and 8, got {self.num_decks}")
        if not 50 <= self.penetration <= 100:
            raise ValueError(f"penetration must be between 50 and 100, got {self.penetration}")
        if self.bet_size <= 0:
            raise ValueError(f"bet_size must be positive, got {self.bet_size}")
        if self.n_trials < 0:
            raise ValueError(f"n_trials must be non-negative, got {self.n_trials}")
        if self.counting_system == 'Custom' and not self.custom_weights:
            raise ValueError("The Custom counting system needs custom_weights")

    @property
    def counting_enabled(self) -> bool:
        return self.counting_system is not None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> SimulationConfig:
        """Build a config from an inbound camelCase payload.

        Counting is enabled by ``enableCounting`` (default: on when a
        ``countingSystem`` is named). ``strategyMode == 'countBased'``
        turns on count-based lookup.
        """
        system = data.get('countingSystem')
        if not data.get('enableCounting', system is not None):
            system = None
        elif system is None:
            system = 'Hi-Lo'
        defaults = cls()
        return cls(
            num_decks=int(data.get('numDecks', defaults.num_decks)),
            penetration=float(data.get('penetration', defaults.penetration)),
            rules=Rules.from_dict(data),
            counting_system=system,
            custom_weights=data.get('customValues'),
            count_based=data.get('strategyMode') == 'countBased',
            bet_size=float(data.get('betSize', defaults.bet_size)),
            n_trials=int(data.get('numSimulations', defaults.n_trials)),
            seed=data.get('seed'),
        )


@dataclass
class Session:
    """Everything a run mutates, bundled as an explicit context object."""
    config: SimulationConfig
    strategy: StrategyTable
    shoe: Shoe
    counter: Counter | None
    rng: np.random.Generator

    @classmethod
    def from_config(
        cls,
        config: SimulationConfig,
        strategy: StrategyTable | None = None,
    ) -> Session:
        """Create a session; the strategy defaults to basic strategy.

        A given ``strategy`` is used as is, not copied: optimizer writes land
        in it, and ``config.count_based`` switches its count layers on.
        """
        rng = np.random.default_rng(config.seed)
        if strategy is None:
            strategy = StrategyTable.basic()
        if config.count_based:
            strategy.count_based = True
        counter = (
            Counter(config.counting_system, config.custom_weights)
            if config.counting_enabled else None
        )
        shoe = Shoe(config.num_decks, config.penetration, rng=rng)
        return cls(config=config, strategy=strategy, shoe=shoe, counter=counter, rng=rng)

    @property
    def rules(self) -> Rules:
        return self.config.rules

    def new_counter(self) -> Counter | None:
        """A fresh counter of the session's system, or None when not counting."""
        if self.counter is None:
            return None
        return Counter(self.counter.system)

    def reset_shoe(self) -> None:
        """Shuffle the shoe and reset the running count."""
        self.shoe.shuffle(self.counter)
