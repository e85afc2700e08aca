"""
Table rules, settlement, and payout calculation.

Settlement of a finished player hand against the dealer (in order):
    1. Player hand already lost (busted)  → player loses the hand's bet
    2. Player total > 21                  → player loses the hand's bet
    3. Dealer busted                      → player wins the hand's bet
    4. Totals compared                    → higher total wins, equal pushes

Naturals are settled before any of this, in the game engine.

Payout convention (from player's perspective):
    +N  = player wins N units
    -N  = player loses N units
     0  = push (bet returned)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Mapping


class Outcome(Enum):
    WIN = auto()
    LOSE = auto()
    PUSH = auto()
    BLACKJACK = auto()

    @classmethod
    def from_winnings(cls, winnings: float) -> Outcome:
        """Classify a round by the sign of its net winnings."""
        if winnings > 0:
            return cls.WIN
        if winnings < 0:
            return cls.LOSE
        return cls.PUSH


class BlackjackPayout(Enum):
    """Payout ratio for a player natural."""
    THREE_TO_TWO = '3:2'
    SIX_TO_FIVE = '6:5'
    EVEN_MONEY = '1:1'

    @property
    def multiplier(self) -> float:
        return _PAYOUT_MULTIPLIERS[self]


_PAYOUT_MULTIPLIERS = {
    BlackjackPayout.THREE_TO_TWO: 1.5,
    BlackjackPayout.SIX_TO_FIVE: 1.2,
    BlackjackPayout.EVEN_MONEY: 1.0,
}


@dataclass(frozen=True)
class Rules:
    """House rules that change how a round is played or paid.

    Attributes:
        dealer_hits_soft_17: If False the dealer stands on every 17 ("S17").
        double_after_split: Split hands may double on their first two cards.
        allow_resplit: A pair formed again after a split may be split again.
        resplit_aces: Like ``allow_resplit`` but for a pair of aces.
        blackjack_pays: Payout for an unpushed player natural.
    """
    dealer_hits_soft_17: bool = False
    double_after_split: bool = True
    allow_resplit: bool = True
    resplit_aces: bool = False
    blackjack_pays: BlackjackPayout = BlackjackPayout.THREE_TO_TWO

    @property
    def blackjack_multiplier(self) -> float:
        return self.blackjack_pays.multiplier

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Rules:
        """Build rules from an inbound camelCase payload.

        Dealer behaviour is read from ``dealerHitsSoft17`` if present,
        otherwise from ``dealerStandsOn`` ('17s' means stand on all 17s).
        Missing keys keep their defaults.

        Examples:
            >>> Rules.from_dict({'dealerStandsOn': '17', 'blackjackPays': '6:5'})
            Rules(dealer_hits_soft_17=True, double_after_split=True, allow_resplit=True, resplit_aces=False, blackjack_pays=<BlackjackPayout.SIX_TO_FIVE: '6:5'>)
        """
        defaults = cls()
        if 'dealerHitsSoft17' in data:
            hits_soft_17 = bool(data['dealerHitsSoft17'])
        elif 'dealerStandsOn' in data:
            hits_soft_17 = str(data['dealerStandsOn']) != '17s'
        else:
            hits_soft_17 = defaults.dealer_hits_soft_17
        return cls(
            dealer_hits_soft_17=hits_soft_17,
            double_after_split=bool(data.get('doubleAfterSplit', defaults.double_after_split)),
            allow_resplit=bool(data.get('allowResplit', defaults.allow_resplit)),
            resplit_aces=bool(data.get('resplitAces', defaults.resplit_aces)),
            blackjack_pays=BlackjackPayout(data.get('blackjackPays', defaults.blackjack_pays.value)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            'dealerHitsSoft17': self.dealer_hits_soft_17,
            'doubleAfterSplit': self.double_after_split,
            'allowResplit': self.allow_resplit,
            'resplitAces': self.resplit_aces,
            'blackjackPays': self.blackjack_pays.value,
        }


# ─── Settlement ───────────────────────────────────────────────────────────────

def settle_hand(
    player_total: int,
    dealer_total: int,
    bet: float = 1.0,
    already_lost: bool = False,
) -> tuple[Outcome, float]:
    """Settle one finished, non-natural player hand.

    Args:
        player_total: Player's best total.
        dealer_total: Dealer's final total (> 21 means the dealer busted).
        bet: The hand's bet multiplier (2.0 after a double).
        already_lost: True if the hand was marked lost during play.

    Returns:
        (Outcome, payout) where payout is signed units of ``bet``.

    Examples:
        >>> settle_hand(20, 19)
        (<Outcome.WIN: 1>, 1.0)
        >>> settle_hand(12, 22, bet=2.0)
        (<Outcome.WIN: 1>, 2.0)
        >>> settle_hand(23, 22)
        (<Outcome.LOSE: 2>, -1.0)
    """
    if already_lost or player_total > 21:
        return Outcome.LOSE, -bet
    if dealer_total > 21 or player_total > dealer_total:
        return Outcome.WIN, bet
    if player_total < dealer_total:
        return Outcome.LOSE, -bet
    return Outcome.PUSH, 0.0


def settle_naturals(
    player_natural: bool,
    dealer_natural: bool,
    rules: Rules,
) -> tuple[Outcome, float] | None:
    """Settle a round decided by naturals, or return None to keep playing.

    Examples:
        >>> settle_naturals(True, False, Rules())
        (<Outcome.BLACKJACK: 4>, 1.5)
        >>> settle_naturals(True, True, Rules())
        (<Outcome.PUSH: 3>, 0.0)
        >>> settle_naturals(False, False, Rules()) is None
        True
    """
    if player_natural:
        if dealer_natural:
            return Outcome.PUSH, 0.0
        return Outcome.BLACKJACK, rules.blackjack_multiplier
    if dealer_natural:
        return Outcome.LOSE, -1.0
    return None


def calculate_payout(payout_units: float, bet: float = 1.0) -> float:
    """Convert a payout in units to a money amount given the bet size.

    Examples:
        >>> calculate_payout(1.5, 10.0)   # natural at 3:2, $10 bet
        15.0
        >>> calculate_payout(-2.0, 10.0)  # lost double
        -20.0
    """
    return payout_units * bet
