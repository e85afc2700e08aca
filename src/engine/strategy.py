"""
Strategy tables: player decisions indexed by hand and dealer upcard.

A table has a base layer and, optionally, one layer per rounded true
count. Each layer maps a HandKey (hard total, soft total or pair) and a
dealer upcard value (2–11, 11 = Ace) to an Action.

Rows kept in a table:
    hard  5–21
    soft 13–21  (S13 = A-2 ... S21 = A-10)
    pairs 2–11  (pair of equal-value cards; 11 = A,A)

Lookup resolution, first match wins:
    1. count layer for the current count (only when count-based and count != 0)
    2. base layer
    3. heuristic default (hard < 17 hit, soft < 19 hit, otherwise stand)
A resolved Double becomes Hit when doubling is not allowed.
"""

from __future__ import annotations

import json
import logging
from enum import Enum, IntEnum
from typing import Any, Iterator, Mapping, NamedTuple, Sequence

from .cards import DEALER_VALUES, RANK_VALUES, parse_value_label, value_label
from .hand import can_split as _is_pair, hand_value

logger = logging.getLogger(__name__)


# ─── Actions and hand keys ────────────────────────────────────────────────────

class Action(Enum):
    HIT = 'H'
    STAND = 'S'
    DOUBLE = 'D'
    SPLIT = 'P'

    @classmethod
    def from_code(cls, code: str) -> Action:
        """Parse a one-letter action code; unknown codes become STAND."""
        try:
            return cls(code.strip().upper())
        except (ValueError, AttributeError):
            logger.warning("Unknown action code %r, treating as Stand", code)
            return cls.STAND

    @property
    def label(self) -> str:
        return self.name.title()


class HandKind(IntEnum):
    HARD = 0
    SOFT = 1
    PAIR = 2


class HandKey(NamedTuple):
    """Identifies a strategy row: a hard total, a soft total or a pair value.

    Examples:
        >>> HandKey.parse('S17')
        HandKey(kind=<HandKind.SOFT: 1>, value=17)
        >>> HandKey.pair(11).label
        'A,A'
    """
    kind: HandKind
    value: int

    @classmethod
    def hard(cls, total: int) -> HandKey:
        return cls(HandKind.HARD, total)

    @classmethod
    def soft(cls, total: int) -> HandKey:
        return cls(HandKind.SOFT, total)

    @classmethod
    def pair(cls, value: int) -> HandKey:
        return cls(HandKind.PAIR, value)

    @classmethod
    def from_cards(cls, cards: Sequence[int], allow_pair: bool = True) -> HandKey:
        """Key for a hand: its pair row if it is a splittable pair, else its total."""
        if allow_pair and _is_pair(cards):
            return cls.pair(RANK_VALUES[cards[0] // 4])
        total, soft = hand_value(cards)
        return cls.soft(total) if soft else cls.hard(total)

    @classmethod
    def parse(cls, label: str) -> HandKey:
        """Parse '16', 'S17', '8,8', 'A,A' or '10,K' into a key.

        Raises:
            ValueError: If the label is malformed or names unequal cards.
        """
        text = label.strip().upper()
        try:
            if ',' in text:
                first, second = (parse_value_label(part) for part in text.split(','))
                if first != second:
                    raise ValueError(f"Not a pair: {label!r}")
                return cls.pair(first)
            if text.startswith('S'):
                return cls.soft(int(text[1:]))
            return cls.hard(int(text))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Malformed hand label {label!r}: {exc}") from None

    @property
    def label(self) -> str:
        if self.kind is HandKind.PAIR:
            card = value_label(self.value)
            return f"{card},{card}"
        if self.kind is HandKind.SOFT:
            return f"S{self.value}"
        return str(self.value)

    def as_total(self) -> HandKey:
        """The hard/soft key of the same two cards when they are not split."""
        if self.kind is not HandKind.PAIR:
            return self
        if self.value == 11:
            return HandKey.soft(12)
        return HandKey.hard(2 * self.value)


TABLE_ROWS: dict[HandKind, range] = {
    HandKind.HARD: range(5, 22),
    HandKind.SOFT: range(13, 22),
    HandKind.PAIR: range(2, 12),
}


def table_keys(kind: HandKind) -> list[HandKey]:
    """All keys of one section, in ascending order."""
    return [HandKey(kind, value) for value in TABLE_ROWS[kind]]


def _default_action(key: HandKey) -> Action:
    if key.kind is HandKind.HARD:
        return Action.HIT if key.value < 17 else Action.STAND
    if key.kind is HandKind.SOFT:
        return Action.HIT if key.value < 19 else Action.STAND
    return Action.STAND


# ─── Presets ──────────────────────────────────────────────────────────────────

# Multi-deck, dealer stands on soft 17. One code per dealer upcard 2..10, A.
_BASIC_HARD = {
    5: 'HHHHHHHHHH', 6: 'HHHHHHHHHH', 7: 'HHHHHHHHHH', 8: 'HHHHHHHHHH',
    9: 'HDDDDHHHHH', 10: 'DDDDDDDDHH', 11: 'DDDDDDDDDD', 12: 'HHSSSHHHHH',
    13: 'SSSSSHHHHH', 14: 'SSSSSHHHHH', 15: 'SSSSSHHHHH', 16: 'SSSSSHHHHH',
    17: 'SSSSSSSSSS', 18: 'SSSSSSSSSS', 19: 'SSSSSSSSSS', 20: 'SSSSSSSSSS',
    21: 'SSSSSSSSSS',
}
_BASIC_SOFT = {
    13: 'HHHDDHHHHH', 14: 'HHDDDHHHHH', 15: 'HHDDDHHHHH', 16: 'HHDDDHHHHH',
    17: 'HDDDDHHHHH', 18: 'SDDDDSSHHH', 19: 'SSSSSSSSSS', 20: 'SSSSSSSSSS',
    21: 'SSSSSSSSSS',
}
_BASIC_PAIRS = {
    2: 'PPPPPPHHHH', 3: 'PPPPPPHHHH', 4: 'HHHPPHHHHH', 5: 'DDDDDDDDHH',
    6: 'PPPPPHHHHH', 7: 'PPPPPPHHHH', 8: 'PPPPPPPPPP', 9: 'PPPPPSPPSS',
    10: 'SSSSSSSSSS', 11: 'PPPPPPPPPP',
}

Layer = dict[HandKey, dict[int, Action]]


def _expand(rows: Mapping[int, str], kind: HandKind) -> Layer:
    return {
        HandKey(kind, value): {
            dealer: Action(code) for dealer, code in zip(DEALER_VALUES, codes)
        }
        for value, codes in rows.items()
    }


def basic_strategy_layer() -> Layer:
    """A fresh copy of the basic-strategy cells."""
    layer = _expand(_BASIC_HARD, HandKind.HARD)
    layer.update(_expand(_BASIC_SOFT, HandKind.SOFT))
    layer.update(_expand(_BASIC_PAIRS, HandKind.PAIR))
    return layer


PRESETS = {
    'basic': basic_strategy_layer,
    'optimal': basic_strategy_layer,
}


# ─── Strategy table ───────────────────────────────────────────────────────────

def _as_key(key: HandKey | str) -> HandKey:
    return HandKey.parse(key) if isinstance(key, str) else key


def _as_dealer(dealer: int | str) -> int:
    return parse_value_label(dealer) if isinstance(dealer, str) else dealer


def _check_cell(key: HandKey, dealer: int) -> None:
    if key.value not in TABLE_ROWS[key.kind]:
        raise ValueError(f"No strategy row for {key.label}")
    if dealer not in DEALER_VALUES:
        raise ValueError(f"No strategy column for dealer {dealer}")


def _copy_layer(layer: Layer) -> Layer:
    return {key: dict(row) for key, row in layer.items()}


class StrategyTable:
    """Mutable strategy with a base layer and optional per-count layers.

    Keys may be given as HandKey or label ('16', 'S17', '8,8'); dealer
    upcards as values 2–11 or labels '2'..'10', 'A'.

    Examples:
        >>> table = StrategyTable.basic()
        >>> table.lookup(HandKey.hard(16), 10)
        <Action.HIT: 'H'>
        >>> table.lookup(HandKey.hard(11), 6, can_double=False)
        <Action.HIT: 'H'>
    """

    def __init__(self) -> None:
        self.count_based = False
        self._base: Layer = {}
        self._by_count: dict[int, Layer] = {}
        self.initialize_empty()

    @classmethod
    def basic(cls) -> StrategyTable:
        table = cls()
        table.load_basic_strategy()
        return table

    def initialize_empty(self) -> None:
        """Every hard and soft cell Stand, every pair cell Hit; no count layers."""
        self._base = {}
        for kind, filler in ((HandKind.HARD, Action.STAND),
                             (HandKind.SOFT, Action.STAND),
                             (HandKind.PAIR, Action.HIT)):
            for key in table_keys(kind):
                self._base[key] = {dealer: filler for dealer in DEALER_VALUES}
        self._by_count = {}

    def load_preset(self, name: str) -> None:
        """Replace the base layer with a named preset ('basic', 'optimal')."""
        try:
            self._base = PRESETS[name]()
        except KeyError:
            raise ValueError(f"Unknown strategy preset {name!r}") from None

    def load_basic_strategy(self) -> None:
        self.load_preset('basic')

    # ─── Cells ────────────────────────────────────────────────────────────────

    def get_action(self, key: HandKey | str, dealer: int | str) -> Action | None:
        """The base-layer cell, with no fallback."""
        key, dealer = _as_key(key), _as_dealer(dealer)
        return self._base.get(key, {}).get(dealer)

    def set_action(self, key: HandKey | str, dealer: int | str, action: Action) -> None:
        key, dealer = _as_key(key), _as_dealer(dealer)
        _check_cell(key, dealer)
        self._base.setdefault(key, {})[dealer] = action

    def get_count_action(self, count: int, key: HandKey | str, dealer: int | str) -> Action | None:
        """The cell of one count layer, with no fallback."""
        key, dealer = _as_key(key), _as_dealer(dealer)
        return self._by_count.get(count, {}).get(key, {}).get(dealer)

    def set_count_action(
        self, count: int, key: HandKey | str, dealer: int | str, action: Action
    ) -> None:
        """Write a count-layer cell. Turns count-based lookup on."""
        key, dealer = _as_key(key), _as_dealer(dealer)
        _check_cell(key, dealer)
        self._by_count.setdefault(count, {}).setdefault(key, {})[dealer] = action
        self.count_based = True

    def load_strategy_for_count(self, count: int, preset: str = 'basic') -> None:
        """Copy a preset into the layer for ``count``. Turns count-based lookup on."""
        if preset not in PRESETS:
            raise ValueError(f"Unknown strategy preset {preset!r}")
        self._by_count[count] = PRESETS[preset]()
        self.count_based = True

    def clear_count(self, count: int) -> None:
        self._by_count.pop(count, None)

    def count_levels(self) -> list[int]:
        return sorted(self._by_count)

    def cells(self, count: int | None = None) -> Iterator[tuple[HandKey, int, Action]]:
        """Iterate (key, dealer, action) over the base layer or one count layer."""
        layer = self._base if count is None else self._by_count.get(count, {})
        for key in sorted(layer):
            for dealer, action in sorted(layer[key].items()):
                yield key, dealer, action

    # ─── Lookup ───────────────────────────────────────────────────────────────

    def lookup(
        self,
        key: HandKey,
        dealer: int,
        can_double: bool = True,
        can_split: bool = True,
        count_level: int = 0,
    ) -> Action:
        """Resolve the action for a decision point.

        A pair key that may not be split is looked up as its plain total.
        """
        if key.kind is HandKind.PAIR and not can_split:
            key = key.as_total()
        action = None
        if self.count_based and count_level != 0:
            layer = self._by_count.get(count_level)
            if layer is not None:
                action = layer.get(key, {}).get(dealer)
        if action is None:
            action = self._base.get(key, {}).get(dealer)
        if action is None:
            action = _default_action(key)
        if action is Action.DOUBLE and not can_double:
            return Action.HIT
        return action

    def override(
        self,
        key: HandKey | str,
        dealer: int | str,
        action: Action,
        count_level: int | None = None,
    ) -> StrategyOverride:
        """A read-only view of this table answering one cell differently."""
        return StrategyOverride(self, _as_key(key), _as_dealer(dealer), action, count_level)

    def copy(self) -> StrategyTable:
        clone = StrategyTable()
        clone.count_based = self.count_based
        clone._base = _copy_layer(self._base)
        clone._by_count = {count: _copy_layer(layer) for count, layer in self._by_count.items()}
        return clone

    # ─── Import / export ──────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Export in the persisted format (string keys, one-letter codes)."""
        data: dict[str, Any] = {'countBased': self.count_based}
        for section, kind in _SECTIONS.items():
            data[section] = _export_section(self._base, kind)
            data[f"{section}ByCount"] = {
                str(count): _export_section(layer, kind)
                for count, layer in sorted(self._by_count.items())
            }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StrategyTable:
        """Rebuild a table from to_dict() output. Missing sections stay empty-initialised."""
        table = cls()
        for section, kind in _SECTIONS.items():
            for row_key, row in (data.get(section) or {}).items():
                key = _import_key(kind, row_key)
                for dealer_label, code in row.items():
                    table.set_action(key, parse_value_label(str(dealer_label)), Action.from_code(code))
            for count_key, layer in (data.get(f"{section}ByCount") or {}).items():
                for row_key, row in layer.items():
                    key = _import_key(kind, row_key)
                    for dealer_label, code in row.items():
                        table.set_count_action(
                            int(count_key), key, parse_value_label(str(dealer_label)),
                            Action.from_code(code),
                        )
        table.count_based = bool(data.get('countBased', False))
        return table

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_json(cls, text: str) -> StrategyTable:
        return cls.from_dict(json.loads(text))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StrategyTable):
            return NotImplemented
        return (
            self.count_based == other.count_based
            and self._base == other._base
            and {c: l for c, l in self._by_count.items() if l}
            == {c: l for c, l in other._by_count.items() if l}
        )


_SECTIONS = {'hard': HandKind.HARD, 'soft': HandKind.SOFT, 'pairs': HandKind.PAIR}


def _export_section(layer: Layer, kind: HandKind) -> dict[str, dict[str, str]]:
    return {
        str(key.value): {value_label(dealer): action.value for dealer, action in sorted(row.items())}
        for key, row in sorted(layer.items())
        if key.kind is kind
    }


def _import_key(kind: HandKind, row_key: str) -> HandKey:
    text = str(row_key).strip().upper()
    if kind is HandKind.PAIR:
        if ',' in text:
            return HandKey.parse(text)
        return HandKey.pair(parse_value_label(text))
    return HandKey(kind, int(text.lstrip('S')))


class StrategyOverride:
    """A StrategyTable view with one cell replaced.

    With ``count_level`` set, the replacement only answers at that count.
    """

    def __init__(
        self,
        table: StrategyTable,
        key: HandKey,
        dealer: int,
        action: Action,
        count_level: int | None = None,
    ) -> None:
        self.table = table
        self.key = key
        self.dealer = dealer
        self.action = action
        self.count_level = count_level

    def lookup(
        self,
        key: HandKey,
        dealer: int,
        can_double: bool = True,
        can_split: bool = True,
        count_level: int = 0,
    ) -> Action:
        if (
            key == self.key
            and dealer == self.dealer
            and (self.count_level is None or count_level == self.count_level)
            and (key.kind is not HandKind.PAIR or can_split)
        ):
            if self.action is Action.DOUBLE and not can_double:
                return Action.HIT
            return self.action
        return self.table.lookup(key, dealer, can_double, can_split, count_level)
