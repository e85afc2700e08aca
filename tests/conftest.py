"""
Shared pytest fixtures for the blackjack simulator tests.

Provides convenience wrappers around str_to_card for building known hands
and stacked shoes whose next draws are fixed.
"""

from __future__ import annotations

import numpy as np
import pytest

from src.analysis.session import Session, SimulationConfig
from src.engine.cards import str_to_card
from src.engine.rules import Rules
from src.engine.shoe import Shoe
from src.engine.strategy import StrategyTable


def hand(*card_strs: str) -> tuple[int, ...]:
    """Build a hand tuple from human-readable card strings.

    Examples:
        >>> hand('AS', 'AC')   # Ace of Spades, Ace of Clubs
        (51, 48)
        >>> hand('7C', '7D', '7H')
        (20, 21, 22)
    """
    return tuple(str_to_card(s) for s in card_strs)


def stacked_shoe(*card_strs: str, num_decks: int = 1, seed: int = 0) -> Shoe:
    """A shoe whose next draws are exactly ``card_strs``, in order.

    Deal order in a round: player, player, dealer up, dealer hole, then
    every later draw in play order.
    """
    return Shoe.stacked(hand(*card_strs), num_decks=num_decks, rng=np.random.default_rng(seed))


@pytest.fixture
def rules() -> Rules:
    return Rules()


@pytest.fixture
def basic() -> StrategyTable:
    return StrategyTable.basic()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(12345)


@pytest.fixture
def session() -> Session:
    return Session.from_config(SimulationConfig(n_trials=2_000, seed=7))


@pytest.fixture
def counting_session() -> Session:
    return Session.from_config(
        SimulationConfig(counting_system='Hi-Lo', n_trials=2_000, seed=11)
    )


@pytest.fixture
def h():
    """Expose the hand() helper as a fixture for convenience."""
    return hand
