"""
Hanafuda deck: 48 cards, 12 months × 4 cards.
Card categories drive point value: Bright 20, Animal 10, Ribbon 5, Chaff 1 (264 per deck).
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional, Protocol, Sequence


class Category(IntEnum):
    """Hikari, Tane, Tan, Kasu. Order used when sorting cards by value (brights first)."""
    BRIGHT = 0
    ANIMAL = 1
    RIBBON = 2
    CHAFF = 3


CATEGORY_POINTS = {
    Category.BRIGHT: 20,
    Category.ANIMAL: 10,
    Category.RIBBON: 5,
    Category.CHAFF: 1,
}

NUM_MONTHS = 12
CARDS_PER_MONTH = 4
DECK_SIZE = NUM_MONTHS * CARDS_PER_MONTH

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

# Special card ids (stable across the whole package)
CRANE = 1
CURTAIN = 9
MOON = 29
RAIN_MAN = 41
PHOENIX = 45
BRIGHT_IDS = (CRANE, CURTAIN, MOON, RAIN_MAN, PHOENIX)
POETRY_RIBBON_IDS = (2, 6, 10)
BLUE_RIBBON_IDS = (22, 34, 38)
BUTTERFLIES = 21
BOAR = 25
DEER = 37
WILLOW_MONTH = 11


@dataclass(frozen=True)
class Card:
    """
    A single hanafuda card.
    - id: 1..48, unique identity
    - month: 1..12, drives matching
    - category: drives point value and combination detection
    """

    id: int
    month: int
    category: Category
    name: str = ""

    def __post_init__(self) -> None:
        if not 1 <= self.id <= DECK_SIZE:
            raise ValueError(f"Card id out of range: {self.id}")
        if not 1 <= self.month <= NUM_MONTHS:
            raise ValueError(f"Card month out of range: {self.month}")

    def points(self) -> int:
        return CATEGORY_POINTS[self.category]

    def is_bright(self) -> bool:
        return self.category == Category.BRIGHT

    def is_chaff_or_willow(self) -> bool:
        """Willow (November) cards count as chaff for hand combinations."""
        return self.category == Category.CHAFF or self.month == WILLOW_MONTH

    def __str__(self) -> str:
        return self.name or f"{MONTH_NAMES[self.month - 1]}-{self.category.name.lower()}"

    def __repr__(self) -> str:
        return f"Card({self.id}, {self})"


# (month, category, label) in id order 1..48
_DECK_LAYOUT: tuple[tuple[int, Category, str], ...] = (
    (1, Category.BRIGHT, "crane"), (1, Category.RIBBON, "poetry"), (1, Category.CHAFF, "chaff"), (1, Category.CHAFF, "chaff"),
    (2, Category.ANIMAL, "bush warbler"), (2, Category.RIBBON, "poetry"), (2, Category.CHAFF, "chaff"), (2, Category.CHAFF, "chaff"),
    (3, Category.BRIGHT, "curtain"), (3, Category.RIBBON, "poetry"), (3, Category.CHAFF, "chaff"), (3, Category.CHAFF, "chaff"),
    (4, Category.ANIMAL, "cuckoo"), (4, Category.RIBBON, "red"), (4, Category.CHAFF, "chaff"), (4, Category.CHAFF, "chaff"),
    (5, Category.ANIMAL, "bridge"), (5, Category.RIBBON, "red"), (5, Category.CHAFF, "chaff"), (5, Category.CHAFF, "chaff"),
    (6, Category.ANIMAL, "butterflies"), (6, Category.RIBBON, "blue"), (6, Category.CHAFF, "chaff"), (6, Category.CHAFF, "chaff"),
    (7, Category.ANIMAL, "boar"), (7, Category.RIBBON, "red"), (7, Category.CHAFF, "chaff"), (7, Category.CHAFF, "chaff"),
    (8, Category.BRIGHT, "moon"), (8, Category.ANIMAL, "geese"), (8, Category.CHAFF, "chaff"), (8, Category.CHAFF, "chaff"),
    (9, Category.ANIMAL, "sake cup"), (9, Category.RIBBON, "blue"), (9, Category.CHAFF, "chaff"), (9, Category.CHAFF, "chaff"),
    (10, Category.ANIMAL, "deer"), (10, Category.RIBBON, "blue"), (10, Category.CHAFF, "chaff"), (10, Category.CHAFF, "chaff"),
    (11, Category.BRIGHT, "rain man"), (11, Category.ANIMAL, "swallow"), (11, Category.RIBBON, "red"), (11, Category.CHAFF, "lightning"),
    (12, Category.BRIGHT, "phoenix"), (12, Category.CHAFF, "chaff"), (12, Category.CHAFF, "chaff"), (12, Category.CHAFF, "chaff"),
)


def _make_card(card_id: int) -> Card:
    month, category, label = _DECK_LAYOUT[card_id - 1]
    return Card(
        id=card_id,
        month=month,
        category=category,
        name=f"{MONTH_NAMES[month - 1]} - {category.name.lower()} - {label}",
    )


ALL_CARDS: tuple[Card, ...] = tuple(_make_card(i) for i in range(1, DECK_SIZE + 1))


def card_by_id(card_id: int) -> Card:
    return ALL_CARDS[card_id - 1]


def cards_of_month(month: int) -> list[Card]:
    return [c for c in ALL_CARDS if c.month == month]


def make_deck_48() -> list[Card]:
    """Build a full 48-card deck in id order (January first)."""
    return list(ALL_CARDS)


def cards_point_total(cards: Iterable[Card]) -> int:
    """Total card points in a set of cards. 264 per deck."""
    return sum(c.points() for c in cards)


class DeckLike(Protocol):
    """The deck primitive the round engine depends on."""

    def shuffle(self) -> None: ...

    def draw(self) -> Optional[Card]: ...

    def draw_multiple(self, n: int) -> list[Card]: ...

    def remaining(self) -> int: ...


class Deck:
    """
    Face-down draw pile. Cards are drawn from the front.

    Usage:
        deck = Deck(rng=random.Random(7))
        deck.shuffle()
        card = deck.draw()  # None once empty
    """

    def __init__(self, cards: Sequence[Card] | None = None, rng: random.Random | None = None) -> None:
        self._cards: list[Card] = list(cards) if cards is not None else make_deck_48()
        self._rng = rng or random.Random()

    def shuffle(self) -> None:
        self._rng.shuffle(self._cards)

    def draw(self) -> Optional[Card]:
        if not self._cards:
            return None
        return self._cards.pop(0)

    def draw_multiple(self, n: int) -> list[Card]:
        drawn: list[Card] = []
        for _ in range(n):
            card = self.draw()
            if card is None:
                break
            drawn.append(card)
        return drawn

    def remaining(self) -> int:
        return len(self._cards)

    def __len__(self) -> int:
        return len(self._cards)

    def __repr__(self) -> str:
        return f"Deck(remaining={len(self._cards)})"
