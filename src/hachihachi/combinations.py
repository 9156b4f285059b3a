"""
Scoring combinations (values in kan).

Dekiyaku are built from a capture pile during play and trigger the risk decision.
Teyaku are read from a player's dealt hand once, at round start.

Both detectors are pure functions ``cards -> list[Combination]``; the round engine
takes them as injectable collaborators, these are the reference implementations.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from .deck import (
    BLUE_RIBBON_IDS,
    BOAR,
    BRIGHT_IDS,
    BUTTERFLIES,
    DEER,
    POETRY_RIBBON_IDS,
    WILLOW_MONTH,
    Card,
    Category,
)


@dataclass(frozen=True)
class Combination:
    """A named combination and its value. Opaque to the engine beyond ``value``."""

    name: str
    value: int
    cards: tuple[Card, ...] = field(default=(), compare=False)

    def __str__(self) -> str:
        return f"{self.name}({self.value})"


Detector = Callable[[Sequence[Card]], list[Combination]]


def combinations_value(combos: Iterable[Combination]) -> int:
    return sum(c.value for c in combos)


# ---- Dekiyaku (capture pile) ----

FIVE_BRIGHTS = 12
FOUR_BRIGHTS = 10
SEVEN_RIBBONS = 10
POETRY_RIBBONS = 7
BLUE_RIBBONS = 7
BOAR_DEER_BUTTERFLIES = 7


def _with_ids(cards: Sequence[Card], ids: Sequence[int]) -> list[Card]:
    wanted = set(ids)
    return [c for c in cards if c.id in wanted]


def detect_dekiyaku(captured: Sequence[Card]) -> list[Combination]:
    """
    All dekiyaku present in a capture pile.
    Five Brights and Four Brights are mutually exclusive; everything else is cumulative.
    """
    found: list[Combination] = []

    brights = _with_ids(captured, BRIGHT_IDS)
    if len(brights) == 5:
        found.append(Combination("Five Brights", FIVE_BRIGHTS, tuple(brights)))
    elif len(brights) == 4:
        found.append(Combination("Four Brights", FOUR_BRIGHTS, tuple(brights)))

    # Willow ribbon does not count towards Seven Ribbons
    ribbons = [c for c in captured if c.category == Category.RIBBON and c.month != WILLOW_MONTH]
    if len(ribbons) >= 7:
        found.append(Combination("Seven Ribbons", SEVEN_RIBBONS, tuple(ribbons[:7])))

    poetry = _with_ids(captured, POETRY_RIBBON_IDS)
    if len(poetry) == 3:
        found.append(Combination("Poetry Ribbons", POETRY_RIBBONS, tuple(poetry)))

    blue = _with_ids(captured, BLUE_RIBBON_IDS)
    if len(blue) == 3:
        found.append(Combination("Blue Ribbons", BLUE_RIBBONS, tuple(blue)))

    bdb = _with_ids(captured, (BOAR, DEER, BUTTERFLIES))
    if len(bdb) == 3:
        found.append(Combination("Boar, Deer, Butterflies", BOAR_DEER_BUTTERFLIES, tuple(bdb)))

    return found


# ---- Teyaku (dealt hand) ----

STANDING_MONTHS = (4, 5, 7, 12)


def _month_cards(hand: Sequence[Card], month: int, n: int | None = None) -> list[Card]:
    cards = [c for c in hand if c.month == month]
    return cards if n is None else cards[:n]


def _set_teyaku_candidates(hand: Sequence[Card]) -> list[tuple[int, int, Combination]]:
    """(value, priority, combination) for every set teyaku the hand satisfies."""
    counts = Counter(c.month for c in hand)
    fours = [m for m, n in counts.items() if n == 4]
    exact_triplets = [m for m, n in counts.items() if n == 3]
    triplets = [m for m, n in counts.items() if n >= 3]
    pairs = [m for m, n in counts.items() if n == 2]
    at_least_pairs = [m for m, n in counts.items() if n >= 2]
    singles = [m for m, n in counts.items() if n == 1]
    standing = [m for m in STANDING_MONTHS if counts.get(m, 0) >= 3]
    regular = [m for m in triplets if m not in STANDING_MONTHS]

    def triplet_cards(months: Sequence[int]) -> tuple[Card, ...]:
        return tuple(c for m in months for c in _month_cards(hand, m, 3))

    out: list[tuple[int, int, Combination]] = []
    if fours and exact_triplets:
        cards = tuple(_month_cards(hand, fours[0])) + triplet_cards(exact_triplets[:1])
        out.append((20, 0, Combination("Four-Three", 20, cards)))
    if fours and pairs and singles:
        out.append((8, 1, Combination("One-Two-Four", 8, tuple(hand))))
    if len(standing) >= 2:
        out.append((8, 2, Combination("Two Standing Triplets", 8, triplet_cards(standing[:2]))))
    if exact_triplets and len(pairs) >= 2:
        cards = triplet_cards(exact_triplets[:1]) + tuple(
            c for m in pairs[:2] for c in _month_cards(hand, m, 2)
        )
        out.append((7, 3, Combination("Triplet and Two Pairs", 7, cards)))
    if len(triplets) >= 2:
        out.append((6, 4, Combination("Two Triplets", 6, triplet_cards(triplets[:2]))))
    if fours:
        out.append((6, 5, Combination("Four of a Kind", 6, tuple(_month_cards(hand, fours[0])))))
    if len(at_least_pairs) >= 3:
        cards = tuple(c for m in at_least_pairs[:3] for c in _month_cards(hand, m, 2))
        out.append((4, 6, Combination("Three Pairs", 4, cards)))
    if regular and standing:
        out.append((7, 7, Combination("Triplet and Standing Triplet", 7, triplet_cards([regular[0], standing[0]]))))
    if standing:
        out.append((3, 8, Combination("Standing Triplet", 3, triplet_cards(standing[:1]))))
    if triplets:
        out.append((2, 9, Combination("Triplet", 2, triplet_cards(triplets[:1]))))
    return out


def _chaff_teyaku_candidates(hand: Sequence[Card]) -> list[tuple[int, int, Combination]]:
    # Willow cards count both as chaff and as their own category
    chaff = tuple(c for c in hand if c.is_chaff_or_willow())
    by_category = Counter(c.category for c in hand)

    out: list[tuple[int, int, Combination]] = []
    if len(chaff) == len(hand):
        out.append((4, 0, Combination("Empty Hand", 4, tuple(hand))))
    singles = (
        (Category.BRIGHT, "One Bright", 4, 1),
        (Category.ANIMAL, "One Animal", 3, 2),
        (Category.RIBBON, "One Ribbon", 3, 3),
    )
    for category, name, value, priority in singles:
        if by_category[category] == 1 and len(chaff) == len(hand) - 1:
            out.append((value, priority, Combination(name, value, chaff)))
    if by_category[Category.RIBBON] >= 2 and chaff:
        out.append((2, 4, Combination("Red", 2, chaff)))
    return out


def _best(candidates: list[tuple[int, int, Combination]]) -> Combination | None:
    if not candidates:
        return None
    candidates.sort(key=lambda t: (-t[0], t[1]))
    return candidates[0][2]


def detect_teyaku(hand: Sequence[Card]) -> list[Combination]:
    """
    Best set teyaku plus best chaff teyaku of a dealt hand (at most one of each).
    Willow cards count as chaff.
    """
    if not hand:
        return []
    claimed: list[Combination] = []
    for best in (_best(_set_teyaku_candidates(hand)), _best(_chaff_teyaku_candidates(hand))):
        if best is not None:
            claimed.append(best)
    return claimed


__all__ = [
    "Combination",
    "Detector",
    "combinations_value",
    "detect_dekiyaku",
    "detect_teyaku",
]
