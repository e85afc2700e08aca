"""
Multi-deck shoe: shuffling, dealing, penetration and reshuffle policy.

The shoe is a Python list of card integers (0–51, each repeated once per
deck). Cards are drawn from the end of the list, so ``remaining`` is just
its length and the consumed tally is ``total_cards - remaining``.

Shuffling uses ``numpy.random.Generator.permutation`` so every shoe can be
seeded independently of global state.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

import numpy as np

if TYPE_CHECKING:
    from .counting import Counter

logger = logging.getLogger(__name__)

CARDS_PER_DECK = 52
DEFAULT_PENETRATION = 75.0


class Shoe:
    """A shuffled stack of ``num_decks`` standard decks.

    Args:
        num_decks: Number of 52-card decks (>= 1).
        penetration_threshold: Percentage of the shoe that may be dealt
            before a reshuffle is due at the next hand boundary.
        rng: Source of randomness. A fresh unseeded generator if omitted.

    Examples:
        >>> shoe = Shoe(num_decks=6, rng=np.random.default_rng(0))
        >>> shoe.remaining
        312
        >>> card = shoe.draw()
        >>> shoe.remaining, shoe.dealt
        (311, 1)
    """

    def __init__(
        self,
        num_decks: int = 6,
        penetration_threshold: float = DEFAULT_PENETRATION,
        rng: np.random.Generator | None = None,
    ) -> None:
        if num_decks < 1:
            raise ValueError(f"num_decks must be at least 1, got {num_decks}")
        self.num_decks = num_decks
        self.penetration_threshold = DEFAULT_PENETRATION
        self.set_penetration_threshold(penetration_threshold)
        self._rng = rng if rng is not None else np.random.default_rng()
        self._cards: list[int] = []
        self.shuffle()

    @classmethod
    def stacked(
        cls,
        top_cards: Iterable[int],
        num_decks: int = 1,
        rng: np.random.Generator | None = None,
    ) -> Shoe:
        """Build a full shoe whose next draws are exactly ``top_cards``, in order.

        The rest of the shoe is shuffled underneath, so exhaustion and
        penetration behave as for any other shoe.

        Raises:
            ValueError: If ``top_cards`` asks for more copies of a card than
                ``num_decks`` decks contain.
        """
        shoe = cls(num_decks=num_decks, rng=rng)
        top = list(top_cards)
        rest = list(shoe._cards)
        for card in top:
            try:
                rest.remove(card)
            except ValueError:
                raise ValueError(
                    f"Card {card} not available {num_decks} deck(s) deep"
                ) from None
        shoe._cards = rest + top[::-1]
        return shoe

    # ─── State ────────────────────────────────────────────────────────────────

    @property
    def total_cards(self) -> int:
        return self.num_decks * CARDS_PER_DECK

    @property
    def remaining(self) -> int:
        """Number of cards still drawable."""
        return len(self._cards)

    @property
    def dealt(self) -> int:
        """Number of cards consumed since the last shuffle."""
        return self.total_cards - len(self._cards)

    @property
    def penetration(self) -> float:
        """Percentage of the shoe consumed since the last shuffle."""
        return self.dealt / self.total_cards * 100.0

    def set_penetration_threshold(self, percent: float) -> None:
        """Set the reshuffle threshold; must lie in (0, 100]."""
        if not 0 < percent <= 100:
            raise ValueError(f"penetration threshold must be in (0, 100], got {percent}")
        self.penetration_threshold = float(percent)

    def should_reshuffle(self) -> bool:
        """True once penetration reaches the threshold and less than a deck remains."""
        return (
            self.penetration >= self.penetration_threshold
            and len(self._cards) < CARDS_PER_DECK
        )

    # ─── Dealing ──────────────────────────────────────────────────────────────

    def shuffle(self, counter: Counter | None = None) -> None:
        """Restore every card and shuffle uniformly. Resets ``counter`` if given."""
        base = np.tile(np.arange(CARDS_PER_DECK), self.num_decks)
        self._cards = self._rng.permutation(base).tolist()
        if counter is not None:
            counter.reset()
        logger.debug("Shuffled %d-deck shoe", self.num_decks)

    def draw(self, counter: Counter | None = None) -> int:
        """Pop the next card, reshuffling first if the shoe is empty.

        The drawn card is reported to ``counter`` if one is given.
        """
        if not self._cards:
            logger.debug("Shoe exhausted mid-hand, reshuffling")
            self.shuffle(counter)
        card = self._cards.pop()
        if counter is not None:
            counter.update(card)
        return card

    def deal_specific(self, rank: int, counter: Counter | None = None) -> int:
        """Remove one card of ``rank`` from the drawable stack and return it.

        One copy of the rank is picked uniformly at random and popped in
        place, so the order of every other card is untouched. The card is
        counted as consumed and reported to ``counter``. Used to take
        already-known cards out of a fresh shoe.

        Raises:
            ValueError: If no card of that rank remains.
        """
        matches = [i for i, card in enumerate(self._cards) if card // 4 == rank]
        if not matches:
            raise ValueError(f"No card of rank index {rank} left in the shoe")
        card = self._cards.pop(matches[int(self._rng.integers(len(matches)))])
        if counter is not None:
            counter.update(card)
        return card

    def copy(self) -> Shoe:
        """Return an independent shoe with the same card order (shares the RNG)."""
        clone = Shoe.__new__(Shoe)
        clone.num_decks = self.num_decks
        clone.penetration_threshold = self.penetration_threshold
        clone._rng = self._rng
        clone._cards = list(self._cards)
        return clone

    def __len__(self) -> int:
        return len(self._cards)

    def __repr__(self) -> str:
        return (
            f"Shoe(num_decks={self.num_decks}, remaining={self.remaining}, "
            f"penetration={self.penetration:.1f}%)"
        )
