"""
Card counting: point systems, running count and true count.

A counting system assigns an integer weight to every rank. The running
count is the sum of weights of all cards seen since the last shuffle; the
true count normalises it by the number of decks still in the shoe.

Count buckets are obtained with round_count(), which rounds halves upward
(-1.5 -> -1, 2.5 -> 3) so that bucket boundaries are the same on both
sides of zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Mapping

from .cards import RANK_NAMES
from .shoe import CARDS_PER_DECK

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CountingSystem:
    """A named card-counting system.

    ``weights`` maps rank names ('2'..'10', 'J', 'Q', 'K', 'A') to points.
    """

    name: str
    weights: Mapping[str, int]
    balanced: bool
    description: str = ""
    rank_weights: tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Per-rank-index lookup used on every dealt card.
        object.__setattr__(
            self,
            'rank_weights',
            tuple(int(self.weights.get(name, 0)) for name in RANK_NAMES),
        )

    def weight(self, card: int) -> int:
        """Return the count delta for a card integer."""
        return self.rank_weights[card // 4]

    @property
    def deck_sum(self) -> int:
        """Sum of weights over one full deck (0 for a balanced system)."""
        return 4 * sum(self.rank_weights)


def _weights(values: list[int]) -> dict[str, int]:
    """Expand a 2..10, A weight list into per-rank weights (J/Q/K share 10's)."""
    *low, ten, ace = values
    weights = dict(zip(RANK_NAMES[:8], low))
    weights.update({'10': ten, 'J': ten, 'Q': ten, 'K': ten, 'A': ace})
    return weights


COUNTING_SYSTEMS: dict[str, CountingSystem] = {
    system.name: system
    for system in (
        CountingSystem(
            'Hi-Lo',
            _weights([1, 1, 1, 1, 1, 0, 0, 0, -1, -1]),
            balanced=True,
            description="Most popular balanced system. Simple and effective.",
        ),
        CountingSystem(
            'Hi-Opt I',
            _weights([0, 1, 1, 1, 1, 0, 0, 0, -1, 0]),
            balanced=True,
            description="Ace-neutral balanced system. Requires side count of Aces.",
        ),
        CountingSystem(
            'Hi-Opt II',
            _weights([1, 1, 2, 2, 1, 1, 0, 0, -2, 0]),
            balanced=True,
            description="Multi-level balanced system. More accurate but complex.",
        ),
        CountingSystem(
            'Omega II',
            _weights([1, 1, 2, 2, 2, 1, 0, -1, -2, 0]),
            balanced=True,
            description="Multi-level balanced system. Very accurate.",
        ),
        CountingSystem(
            'KO',
            _weights([1, 1, 1, 1, 1, 1, 0, 0, -1, -1]),
            balanced=False,
            description="Unbalanced system. No true count conversion needed.",
        ),
        CountingSystem(
            'Ace-Five',
            _weights([0, 0, 0, 1, 0, 0, 0, 0, 0, -1]),
            balanced=False,
            description="Simple unbalanced system tracking Aces and 5s.",
        ),
    )
}

_ALIASES = {'KO (Knockout)': 'KO'}

DEFAULT_SYSTEM = 'Hi-Lo'


def custom_system(weights: Mapping[str, int], name: str = 'Custom') -> CountingSystem:
    """Build a user-defined system. Ranks missing from ``weights`` count 0.

    The balanced flag is derived from whether one full deck sums to zero.
    """
    unknown = set(weights) - set(RANK_NAMES)
    if unknown:
        raise ValueError(f"Unknown ranks in custom weights: {sorted(unknown)}")
    deck_sum = 4 * sum(int(weights.get(rank, 0)) for rank in RANK_NAMES)
    return CountingSystem(name, dict(weights), balanced=deck_sum == 0,
                          description="User-defined counting values.")


def get_system(name: str, custom_weights: Mapping[str, int] | None = None) -> CountingSystem:
    """Look up a counting system by name.

    'Custom' requires ``custom_weights``. Unknown names fall back to Hi-Lo.
    """
    if name == 'Custom':
        return custom_system(custom_weights or {})
    key = _ALIASES.get(name, name)
    if key not in COUNTING_SYSTEMS:
        logger.warning("Unknown counting system %r, using %s", name, DEFAULT_SYSTEM)
        key = DEFAULT_SYSTEM
    return COUNTING_SYSTEMS[key]


def round_count(value: float) -> int:
    """Round a true count to its integer bucket, halves upward.

    Examples:
        >>> round_count(2.5)
        3
        >>> round_count(-1.5)
        -1
        >>> round_count(-1.6)
        -2
    """
    return math.floor(value + 0.5)


class Counter:
    """Running-count tracker for one shoe.

    Examples:
        >>> counter = Counter('Hi-Lo')
        >>> counter.update(str_to_card('5H'))
        1
        >>> counter.running_count
        1
        >>> counter.true_count(remaining_cards=156)
        0.5
    """

    def __init__(
        self,
        system: str | CountingSystem = DEFAULT_SYSTEM,
        custom_weights: Mapping[str, int] | None = None,
    ) -> None:
        if isinstance(system, CountingSystem):
            self.system = system
        else:
            self.system = get_system(system, custom_weights)
        self._weights = self.system.rank_weights
        self.running_count = 0

    def update(self, card: int) -> int:
        """Add a seen card to the running count; return its delta."""
        delta = self._weights[card // 4]
        self.running_count += delta
        return delta

    def reset(self) -> None:
        self.running_count = 0

    def true_count(self, remaining_cards: int, num_decks: int | None = None) -> float:
        """Running count per remaining deck; 0 when no cards remain.

        ``num_decks`` is accepted for call-site symmetry and does not affect
        the result.
        """
        decks_remaining = remaining_cards / CARDS_PER_DECK
        if decks_remaining <= 0:
            return 0.0
        return self.running_count / decks_remaining

    def count_range(self, remaining_cards: int, num_decks: int | None = None) -> int:
        """Rounded true count used as the strategy-layer and statistics bucket."""
        return round_count(self.true_count(remaining_cards, num_decks))

    def count_category(self, remaining_cards: int, num_decks: int | None = None) -> str:
        """Coarse label for the current true count (for display)."""
        tc = self.true_count(remaining_cards, num_decks)
        if tc >= 4:
            return 'veryHigh'
        if tc >= 2:
            return 'high'
        if tc >= 0.5:
            return 'slightlyPositive'
        if tc >= -0.5:
            return 'neutral'
        if tc >= -2:
            return 'low'
        return 'veryLow'

    def copy(self) -> Counter:
        clone = Counter(self.system)
        clone.running_count = self.running_count
        return clone

    def __repr__(self) -> str:
        return f"Counter({self.system.name!r}, running_count={self.running_count})"


def system_info(name: str) -> dict:
    """Description, balance flag and weights of a built-in system, for display."""
    system = get_system(name)
    return {
        'name': system.name,
        'description': system.description,
        'balanced': system.balanced,
        'weights': dict(system.weights),
    }
