"""
Observation / action encoding for Hachi-Hachi.

Flat observations for one seat:
- Own hand, the field, and every capture pile, card-by-card (48 bits each).
- The card awaiting a two-way match choice, if it is this seat's decision.
- Round metadata: phase, seat, field multiplier, who is at risk, deck size and
  combination values.

Action space (51 indices):
- 0..47 : select the card with id ``index + 1`` (from the hand in SELECT_HAND, from the
          pending field matches in SELECT_FIELD / SELECT_DRAWN_MATCH)
- 48    : lock in
- 49    : continue
- 50    : retreat

This module has no RL library dependency; it only turns engine state into vectors.
"""
from __future__ import annotations

from typing import Iterable

import numpy as np

from .deal import NUM_PLAYERS
from .deck import DECK_SIZE, Card, card_by_id
from .game import ActionResult, RoundEngine
from .risk import Decision
from .state import Phase

NUM_CARDS: int = DECK_SIZE
DECISION_ACTIONS: tuple[Decision, ...] = (Decision.LOCK_IN, Decision.CONTINUE, Decision.RETREAT)
NUM_DECISION_ACTIONS: int = len(DECISION_ACTIONS)
NUM_CARD_ACTIONS: int = NUM_CARDS
NUM_ACTIONS: int = NUM_CARD_ACTIONS + NUM_DECISION_ACTIONS  # 48 + 3 = 51

_PHASES: tuple[Phase, ...] = tuple(Phase)
_MULTIPLIERS: tuple[int, ...] = (1, 2, 4)
# Rough upper bound used to scale combination values into [0, 1]
_VALUE_SCALE = 50.0
_CARD_BLOCKS = 3 + NUM_PLAYERS  # hand, field, pending card, capture piles
OBS_SIZE: int = _CARD_BLOCKS * NUM_CARDS + len(_PHASES) + NUM_PLAYERS + len(_MULTIPLIERS) + NUM_PLAYERS + 3


def card_index(card: Card) -> int:
    """Stable index 0..47, matching card ids 1..48."""
    return card.id - 1


def card_from_index(index: int) -> Card:
    if not 0 <= index < NUM_CARDS:
        raise ValueError(f"Card index {index} out of range")
    return card_by_id(index + 1)


def encode_card_set(cards: Iterable[Card]) -> np.ndarray:
    """Binary 48-dim vector: 1.0 where the card is present."""
    vec = np.zeros(NUM_CARDS, dtype=np.float32)
    for c in cards:
        vec[card_index(c)] = 1.0
    return vec


def _one_hot(index: int | None, size: int) -> np.ndarray:
    vec = np.zeros(size, dtype=np.float32)
    if index is not None and 0 <= index < size:
        vec[index] = 1.0
    return vec


def encode_observation(engine: RoundEngine, player: int) -> np.ndarray:
    """
    Observation for ``player``:

    - 48 bits : own hand
    - 48 bits : field
    - 48 bits : pending card (only when this seat must pick a match)
    - 3 × 48  : capture piles, rotated so this seat comes first
    - 6       : phase one-hot
    - 3       : seat one-hot
    - 3       : multiplier one-hot (1x, 2x, 4x)
    - 3       : at-risk flags, rotated like the capture piles
    - 3       : deck remaining / 48, own combination value and own baseline (scaled)
    """
    state = engine.state
    view = state.view(player)
    seats = [(player + k) % NUM_PLAYERS for k in range(NUM_PLAYERS)]

    pending = [view.pending_card] if view.pending_card is not None else []
    blocks = [
        encode_card_set(view.hand),
        encode_card_set(view.field),
        encode_card_set(pending),
    ]
    blocks.extend(encode_card_set(view.capture_piles[s]) for s in seats)

    meta = [
        _one_hot(_PHASES.index(state.phase), len(_PHASES)),
        _one_hot(player, NUM_PLAYERS),
        _one_hot(_MULTIPLIERS.index(view.multiplier) if view.multiplier in _MULTIPLIERS else None, len(_MULTIPLIERS)),
        np.array([float(state.players[s].has_declared_risk) for s in seats], dtype=np.float32),
        np.array(
            [
                view.deck_remaining / NUM_CARDS,
                min(view.combination_value / _VALUE_SCALE, 1.0),
                min(view.risk_baseline_value / _VALUE_SCALE, 1.0),
            ],
            dtype=np.float32,
        ),
    ]
    obs = np.concatenate(blocks + meta)
    assert obs.shape == (OBS_SIZE,)
    return obs


def legal_action_mask(engine: RoundEngine, player: int) -> np.ndarray:
    """Boolean mask over the 51 actions; all False when it is not ``player``'s decision."""
    mask = np.zeros(NUM_ACTIONS, dtype=bool)
    for c in engine.legal_cards(player):
        mask[card_index(c)] = True
    for d in engine.available_decisions(player):
        mask[NUM_CARD_ACTIONS + DECISION_ACTIONS.index(d)] = True
    return mask


def apply_action(engine: RoundEngine, player: int, action: int) -> ActionResult:
    """Translate a flat action index into the matching engine call."""
    if not 0 <= action < NUM_ACTIONS:
        raise ValueError(f"Action {action} out of range [0, {NUM_ACTIONS})")
    if action < NUM_CARD_ACTIONS:
        card = card_from_index(action)
        if engine.phase == Phase.SELECT_HAND:
            return engine.select_hand_card(player, card)
        return engine.select_field_card(player, card)
    return engine.decide(player, DECISION_ACTIONS[action - NUM_CARD_ACTIONS])


__all__ = [
    "DECISION_ACTIONS",
    "NUM_ACTIONS",
    "NUM_CARDS",
    "NUM_CARD_ACTIONS",
    "NUM_DECISION_ACTIONS",
    "OBS_SIZE",
    "apply_action",
    "card_from_index",
    "card_index",
    "encode_card_set",
    "encode_observation",
    "legal_action_mask",
]
