"""
Hand evaluation: total calculation and ace resolution.

Every ace starts at 11 and is demoted to 1, one at a time, while the
total exceeds 21. A hand is soft when at least one ace still counts 11.

All functions operate on sequences of card integers.
"""

from __future__ import annotations

from typing import Sequence

from .cards import RANK_ACE, RANK_VALUES


def hand_value(cards: Sequence[int]) -> tuple[int, bool]:
    """Return (total, is_soft) for a hand.

    Examples:
        >>> hand_value((str_to_card('AS'), str_to_card('6H')))   # A-6
        (17, True)
        >>> hand_value((str_to_card('AS'), str_to_card('AC')))   # A-A
        (12, True)
        >>> hand_value((str_to_card('AS'), str_to_card('7H'), str_to_card('8D')))
        (16, False)
    """
    total = 0
    aces = 0
    for card in cards:
        rank = card // 4
        total += RANK_VALUES[rank]
        if rank == RANK_ACE:
            aces += 1
    while total > 21 and aces:
        total -= 10
        aces -= 1
    return total, aces > 0


def calculate_total(cards: Sequence[int]) -> int:
    """Return the best total of a hand (may exceed 21 when bust).

    Examples:
        >>> calculate_total((str_to_card('KH'), str_to_card('QD'), str_to_card('5C')))
        25
    """
    return hand_value(cards)[0]


def is_soft(cards: Sequence[int]) -> bool:
    """Return True if an ace in the hand is still counted as 11."""
    return hand_value(cards)[1]


def is_bust(total: int) -> bool:
    """Return True if a total exceeds 21 (bust).

    Examples:
        >>> is_bust(21)
        False
        >>> is_bust(22)
        True
    """
    return total > 21


def is_blackjack(cards: Sequence[int]) -> bool:
    """Return True for a two-card 21 (a natural).

    Examples:
        >>> is_blackjack((str_to_card('AS'), str_to_card('KH')))
        True
        >>> is_blackjack((str_to_card('7S'), str_to_card('7H'), str_to_card('7D')))
        False
    """
    return len(cards) == 2 and hand_value(cards)[0] == 21


def can_split(cards: Sequence[int]) -> bool:
    """Return True for a two-card hand whose cards have equal value.

    Ten-value cards pair with each other, so K-10 is splittable.

    Examples:
        >>> can_split((str_to_card('KS'), str_to_card('10H')))
        True
        >>> can_split((str_to_card('9S'), str_to_card('10H')))
        False
    """
    return len(cards) == 2 and RANK_VALUES[cards[0] // 4] == RANK_VALUES[cards[1] // 4]


def can_double(cards: Sequence[int]) -> bool:
    """Return True when the hand is eligible for doubling by size (exactly two cards)."""
    return len(cards) == 2
