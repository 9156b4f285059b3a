"""
Distribution (deal) for the three-player game.
Field 4, then 8 rounds of one card to each player, then field 4 more: 8 + 8 + 8 + 8, 16 in the deck.
A field holding all four cards of a month is illegal and forces a full redeal.
"""
from __future__ import annotations

import logging
import random
from collections import Counter
from typing import Callable, Iterable, NamedTuple

from .deck import CRANE, CURTAIN, MOON, PHOENIX, RAIN_MAN, Card, Deck, DeckLike
from .errors import InvalidDealError

logger = logging.getLogger(__name__)

NUM_PLAYERS = 3
HAND_SIZE = 8
FIELD_SIZE = 8
MAX_REDEALS = 10

# Field multiplier triggers (exact card identities, not just the bright category)
GRAND_BRIGHT_IDS = frozenset({RAIN_MAN, PHOENIX})     # 4x
LARGE_BRIGHT_IDS = frozenset({CRANE, CURTAIN, MOON})  # 2x


class Deal3P(NamedTuple):
    """Result of a three-player deal. Hands and field are lists (mutated during play)."""
    hands: tuple[list[Card], list[Card], list[Card]]
    field: list[Card]
    deck: DeckLike
    multiplier: int
    attempts: int = 1


def deal_3p(deck: DeckLike | None = None, rng: random.Random | None = None) -> Deal3P:
    """
    Shuffle and deal once, without validating the field.
    Field gets 4, each player gets 8 one card at a time, field gets 4 more.
    """
    if deck is None:
        deck = Deck(rng=rng)
    deck.shuffle()

    field = deck.draw_multiple(FIELD_SIZE // 2)
    hands: list[list[Card]] = [[], [], []]
    for _ in range(HAND_SIZE):
        for p in range(NUM_PLAYERS):
            card = deck.draw()
            if card is not None:
                hands[p].append(card)
    field.extend(deck.draw_multiple(FIELD_SIZE - len(field)))

    return Deal3P(
        hands=(hands[0], hands[1], hands[2]),
        field=field,
        deck=deck,
        multiplier=field_multiplier(field),
    )


def full_month_on_field(field: Iterable[Card]) -> int | None:
    """Month whose four cards are all on the field, or None."""
    counts = Counter(c.month for c in field)
    for month, n in sorted(counts.items()):
        if n >= 4:
            return month
    return None


def field_is_valid(field: Iterable[Card]) -> bool:
    return full_month_on_field(field) is None


def field_multiplier(field: Iterable[Card]) -> int:
    """
    4 if the rain man or the phoenix is on the field,
    else 2 if the crane, the curtain or the moon is,
    else 1.
    """
    ids = {c.id for c in field}
    if ids & GRAND_BRIGHT_IDS:
        return 4
    if ids & LARGE_BRIGHT_IDS:
        return 2
    return 1


def deal_valid_3p(
    rng: random.Random | None = None,
    max_redeals: int = MAX_REDEALS,
    deck_factory: Callable[[random.Random], DeckLike] | None = None,
) -> Deal3P:
    """
    Deal until the field is legal. Each redeal starts from a fresh, reshuffled deck.
    Raises InvalidDealError once 1 + max_redeals attempts have all produced an illegal field.
    """
    if rng is None:
        rng = random.Random()
    if deck_factory is None:
        deck_factory = lambda r: Deck(rng=r)  # noqa: E731

    attempts = 0
    while attempts <= max_redeals:
        attempts += 1
        deal = deal_3p(deck=deck_factory(rng))
        month = full_month_on_field(deal.field)
        if month is None:
            logger.debug("Deal accepted after %d attempt(s), multiplier %dx", attempts, deal.multiplier)
            return deal._replace(attempts=attempts)
        logger.debug("Redeal: all four cards of month %d on the field (attempt %d)", month, attempts)

    raise InvalidDealError(
        f"No legal deal after {attempts} attempts (max_redeals={max_redeals})",
        attempts=attempts,
    )


__all__ = [
    "Deal3P",
    "deal_3p",
    "deal_valid_3p",
    "field_is_valid",
    "field_multiplier",
    "full_month_on_field",
    "MAX_REDEALS",
    "NUM_PLAYERS",
]
