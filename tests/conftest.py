"""Shared builders for hand-crafted rounds."""
from __future__ import annotations

from typing import Sequence

import pytest

from hachihachi.deal import Deal3P, field_multiplier
from hachihachi.deck import DECK_SIZE, Deck, card_by_id


class StackedDeck(Deck):
    """Deck whose order is fixed: shuffle is a no-op."""

    def shuffle(self) -> None:
        pass


def build_deal(
    hands: Sequence[Sequence[int]],
    field: Sequence[int],
    deck_front: Sequence[int] = (),
    deck_rest: bool = True,
) -> Deal3P:
    """
    Deal3P from explicit card ids. Every id not placed in a hand, on the field or in
    ``deck_front`` goes to the back of the deck in id order (so all 48 cards are in play).
    """
    used = [i for h in hands for i in h] + list(field) + list(deck_front)
    assert len(used) == len(set(used)), "card placed twice"
    rest = [i for i in range(1, DECK_SIZE + 1) if i not in set(used)] if deck_rest else []
    field_cards = [card_by_id(i) for i in field]
    return Deal3P(
        hands=tuple([card_by_id(i) for i in h] for h in hands),
        field=field_cards,
        deck=StackedDeck([card_by_id(i) for i in list(deck_front) + rest]),
        multiplier=field_multiplier(field_cards),
    )


@pytest.fixture
def make_deal():
    return build_deal


@pytest.fixture
def stacked_deck():
    return StackedDeck
