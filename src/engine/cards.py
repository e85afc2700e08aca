"""
Card constants, encoding, and human-readable I/O helpers.

Card encoding (integer 0–51):
    rank_index = card // 4  ->  0=2, 1=3, ..., 7=9, 8=10, 9=J, 10=Q, 11=K, 12=A
    suit_index = card % 4   ->  0=C, 1=D, 2=H, 3=S

A multi-deck shoe simply holds every integer once per deck. Suits never
matter for play; they survive only so cards can be printed and replayed.
String representations are used exclusively at I/O boundaries.
"""

from __future__ import annotations

# Rank value lookup: index matches rank_index. Aces are 11 here; the hand
# evaluator demotes them to 1 while the total exceeds 21.
RANK_VALUES: list[int] = [2, 3, 4, 5, 6, 7, 8, 9, 10, 10, 10, 10, 11]

RANK_NAMES: list[str] = ['2', '3', '4', '5', '6', '7', '8', '9', '10', 'J', 'Q', 'K', 'A']
SUIT_NAMES: list[str] = ['C', 'D', 'H', 'S']

RANK_ACE: int = 12
RANK_TEN: int = 8
RANK_JACK: int = 9
RANK_QUEEN: int = 10
RANK_KING: int = 11

TEN_VALUE_RANKS: frozenset[int] = frozenset({RANK_TEN, RANK_JACK, RANK_QUEEN, RANK_KING})

# Dealer upcards as strategy columns: 2..10, then 11 for the Ace.
DEALER_VALUES: tuple[int, ...] = (2, 3, 4, 5, 6, 7, 8, 9, 10, 11)

_RANK_ALIASES: dict[str, int] = {'ACE': RANK_ACE}


def card_rank(card: int) -> int:
    """Return the rank index (0–12) of a card.

    Examples:
        >>> card_rank(0)   # 2 of Clubs
        0
        >>> card_rank(51)  # Ace of Spades
        12
    """
    return card // 4


def card_value(card: int) -> int:
    """Return the blackjack value of a card, counting an Ace as 11.

    Examples:
        >>> card_value(0)    # 2 of Clubs
        2
        >>> card_value(36)   # Jack of Clubs
        10
        >>> card_value(48)   # Ace of Clubs
        11
    """
    return RANK_VALUES[card // 4]


def card_rank_label(card: int) -> str:
    """Return the rank of a card without its suit ('2'..'10', 'J', 'Q', 'K', 'A')."""
    return RANK_NAMES[card // 4]


def value_label(value: int) -> str:
    """Render a card value (2–11) the way strategy tables label it.

    Examples:
        >>> value_label(11)
        'A'
        >>> value_label(10)
        '10'
    """
    return 'A' if value == 11 else str(value)


def parse_value_label(label: str) -> int:
    """Inverse of value_label(); also accepts face cards and '11'.

    Examples:
        >>> parse_value_label('A')
        11
        >>> parse_value_label('K')
        10
    """
    return RANK_VALUES[parse_rank(label)] if label.strip() != '11' else 11


def parse_rank(text: str) -> int:
    """Parse a rank token ('2'..'10', 'J', 'Q', 'K', 'A' or 'ACE') to a rank index.

    Raises:
        ValueError: If the token is not a recognised rank.

    Examples:
        >>> parse_rank('a')
        12
        >>> parse_rank(' 10 ')
        8
    """
    token = text.strip().upper()
    if token in _RANK_ALIASES:
        return _RANK_ALIASES[token]
    try:
        return RANK_NAMES.index(token)
    except ValueError:
        raise ValueError(f"Unrecognised card rank: {text!r}") from None


def make_card(rank: int, suit: int = 3) -> int:
    """Build a card integer from a rank index and suit index."""
    return rank * 4 + suit


def card_to_str(card: int) -> str:
    """Convert a card integer to its human-readable string representation.

    Examples:
        >>> card_to_str(0)   # 2 of Clubs
        '2C'
        >>> card_to_str(51)  # Ace of Spades
        'AS'
        >>> card_to_str(32)  # 10 of Clubs
        '10C'
    """
    return RANK_NAMES[card // 4] + SUIT_NAMES[card % 4]


def str_to_card(s: str) -> int:
    """Parse a human-readable card string to its integer encoding.

    The format is <rank><suit> where suit is the last character.

    Examples:
        >>> str_to_card('2C')
        0
        >>> str_to_card('AS')
        51
        >>> str_to_card('10C')
        32
    """
    suit_char = s[-1]
    rank_str = s[:-1]
    rank = RANK_NAMES.index(rank_str)
    suit = SUIT_NAMES.index(suit_char)
    return rank * 4 + suit


def hand_to_str(cards) -> str:
    """Convert a sequence of card ints to a human-readable string.

    Examples:
        >>> hand_to_str((48, 51))
        'AC AS'
    """
    return ' '.join(card_to_str(c) for c in cards)
