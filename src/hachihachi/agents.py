"""
Decision policies.

Two interfaces live here:

- ``OpponentPolicy``: the engine-facing contract used to run a seat without a human
  (which card to play, which of two matches to take, lock in / continue / retreat).
  ``HeuristicOpponent`` is the default, deterministic implementation.
- ``Policy``: the flat ``act(obs, legal_actions_mask) -> action_index`` contract used by
  ``HachiHachiEnv``. ``RandomAgent`` samples uniformly among legal actions.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, Protocol, Sequence

import numpy as np

from .deck import Card, Category
from .risk import Decision
from .state import PlayerView

# Desirability of a card when choosing what to play into a match
_MATCH_WEIGHT = {
    Category.BRIGHT: 10,
    Category.ANIMAL: 7,
    Category.RIBBON: 5,
    Category.CHAFF: 2,
}

DEFAULT_DECK_THRESHOLD = 3


class OpponentPolicy(Protocol):
    """Pure functions of what the seat can observe."""

    def choose_hand_card(self, view: PlayerView) -> Card:
        """Card to play from ``view.hand`` (never empty when called)."""

    def choose_field_match(self, view: PlayerView) -> Card:
        """One of ``view.pending_matches`` for ``view.pending_card``."""

    def decide_after_capture(self, view: PlayerView) -> Decision:
        """LOCK_IN or CONTINUE after the combination count went up."""

    def decide_at_turn_start(self, view: PlayerView) -> Decision:
        """CONTINUE or RETREAT at the top of a turn while at risk."""


@dataclass(frozen=True)
class HeuristicOpponent:
    """
    Greedy matcher with a deck-size risk threshold.

    - Play: the matching card with the best (category weight + 2 × match count), else the
      lowest-value card. Ties go to the first card in hand order.
    - Two-way match: the higher-value field card, first on ties.
    - Risk: keep going while more than ``deck_threshold`` cards remain in the deck, then
      lock in (after a capture) or retreat (at the top of a turn). An empty hand always
      locks in.
    """

    deck_threshold: int = DEFAULT_DECK_THRESHOLD

    def choose_hand_card(self, view: PlayerView) -> Card:
        if not view.hand:
            raise ValueError("choose_hand_card called with an empty hand")
        best: Card | None = None
        best_score = -1
        for card in view.hand:
            n = sum(1 for f in view.field if f.month == card.month)
            if n == 0:
                continue
            score = _MATCH_WEIGHT[card.category] + 2 * n
            if score > best_score:
                best, best_score = card, score
        if best is not None:
            return best
        return min(view.hand, key=lambda c: c.points())

    def choose_field_match(self, view: PlayerView) -> Card:
        if not view.pending_matches:
            raise ValueError("choose_field_match called without pending matches")
        return max(view.pending_matches, key=lambda c: c.points())

    def decide_after_capture(self, view: PlayerView) -> Decision:
        if not view.hand:
            return Decision.LOCK_IN
        if view.deck_remaining <= self.deck_threshold:
            return Decision.LOCK_IN
        return Decision.CONTINUE

    def decide_at_turn_start(self, view: PlayerView) -> Decision:
        if view.deck_remaining <= self.deck_threshold:
            return Decision.RETREAT
        return Decision.CONTINUE


class Policy(Protocol):
    """Stateless or stateful decision policy working on flat observations."""

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        """
        Choose an action index given an observation and a boolean legal-action mask.

        Implementations must only return indices where ``legal_actions_mask[i]`` is true.
        """


@dataclass
class RandomAgent:
    """
    Baseline policy that samples uniformly among legal actions.

    Usage:
        agent = RandomAgent(seed=42)
        action = agent.act(obs, legal_actions_mask)
    """

    seed: int | None = None

    def __post_init__(self) -> None:
        self._rng = random.Random(self.seed)

    def act(self, obs: Sequence[float], legal_actions_mask: Iterable[bool]) -> int:
        """Pick a random legal action given an observation and a boolean mask."""
        legal_indices = np.flatnonzero(np.asarray(list(legal_actions_mask), dtype=bool))
        if legal_indices.size == 0:
            raise ValueError("No legal actions available for RandomAgent")
        return int(self._rng.choice(legal_indices.tolist()))


__all__ = ["DEFAULT_DECK_THRESHOLD", "HeuristicOpponent", "OpponentPolicy", "Policy", "RandomAgent"]
