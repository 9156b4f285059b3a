"""
Round aggregate: per-player state, field, deck, phase and termination.

One RoundState is owned by one RoundEngine for the duration of a round and is passed
explicitly to the risk and settlement helpers. Nothing here is shared between rounds
except ``cumulative_score``, which the caller carries forward.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple, Optional

from .combinations import Combination, combinations_value
from .deck import DECK_SIZE, Card, DeckLike
from .errors import InvariantViolation


class Phase(Enum):
    """Phases in which the engine waits for a decision, plus the terminal phase."""
    SELECT_HAND = "select_hand"
    SELECT_FIELD = "select_field"              # hand card has two field matches
    SELECT_DRAWN_MATCH = "select_drawn_match"  # drawn card has two field matches
    RISK_DECISION = "risk_decision"            # combination count just increased
    RISK_CHECK = "risk_check"                  # top of turn for a player at risk
    ROUND_END = "round_end"


class TerminationReason(Enum):
    LOCKED_IN = "locked-in"
    RETREATED = "retreated"
    EXHAUSTED = "exhausted"


@dataclass
class PlayerState:
    hand: list[Card]
    captured: list[Card] = field(default_factory=list)
    combinations: list[Combination] = field(default_factory=list)
    locked_combinations: Optional[list[Combination]] = None
    teyaku: list[Combination] = field(default_factory=list)
    round_score: float = 0.0
    cumulative_score: float = 0.0
    has_declared_risk: bool = False
    risk_baseline_value: int = 0

    def combination_value(self) -> int:
        return combinations_value(self.combinations)

    def final_combinations(self) -> list[Combination]:
        """Locked snapshot if one was taken, else the live combinations."""
        if self.locked_combinations is not None:
            return self.locked_combinations
        return self.combinations

    def holds(self, card: Card) -> bool:
        return any(c.id == card.id for c in self.hand)


@dataclass(frozen=True)
class RoundSnapshot:
    """Read-only view of a round for observers (UI, logging, tests)."""

    phase: Phase
    field: tuple[Card, ...]
    hands: tuple[tuple[Card, ...], ...]
    capture_piles: tuple[tuple[Card, ...], ...]
    active_combinations: tuple[tuple[Combination, ...], ...]
    multiplier: int
    current_player: int
    termination_reason: Optional[TerminationReason]
    terminating_player: Optional[int]
    deck_remaining: int
    pending_card: Optional[Card]
    pending_matches: tuple[Card, ...]
    has_declared_risk: tuple[bool, ...]
    cumulative_scores: tuple[float, ...]


class PlayerView(NamedTuple):
    """What one seat may legitimately observe; input to opponent policies."""

    player: int
    hand: tuple[Card, ...]
    field: tuple[Card, ...]
    capture_piles: tuple[tuple[Card, ...], ...]
    combinations: tuple[Combination, ...]
    combination_value: int
    has_declared_risk: bool
    risk_baseline_value: int
    deck_remaining: int
    multiplier: int
    pending_card: Optional[Card]
    pending_matches: tuple[Card, ...]


@dataclass
class RoundState:
    players: list[PlayerState]
    field: list[Card]
    deck: DeckLike
    multiplier: int
    phase: Phase = Phase.SELECT_HAND
    current_player: int = 0
    termination_reason: Optional[TerminationReason] = None
    terminating_player: Optional[int] = None
    # Card awaiting a two-way match choice. A hand card stays in the hand until resolved;
    # a drawn card is in flight (out of the deck, not yet on the field).
    pending_card: Optional[Card] = None
    pending_matches: list[Card] = field(default_factory=list)
    # True while the current player still owes the deck draw for this turn
    pending_draw: bool = False
    last_actor: Optional[int] = None
    teyaku_payments: tuple[float, ...] = (0.0, 0.0, 0.0)

    @property
    def current(self) -> PlayerState:
        return self.players[self.current_player]

    def is_over(self) -> bool:
        return self.phase == Phase.ROUND_END

    def matches_on_field(self, card: Card) -> list[Card]:
        return [c for c in self.field if c.month == card.month]

    def cards_in_play(self) -> int:
        n = self.deck.remaining() + len(self.field)
        for p in self.players:
            n += len(p.hand) + len(p.captured)
        if self.phase == Phase.SELECT_DRAWN_MATCH and self.pending_card is not None:
            n += 1
        return n

    def check_conservation(self) -> None:
        n = self.cards_in_play()
        if n != DECK_SIZE:
            raise InvariantViolation(f"Card conservation broken: {n} cards accounted for, expected {DECK_SIZE}")

    def snapshot(self) -> RoundSnapshot:
        return RoundSnapshot(
            phase=self.phase,
            field=tuple(self.field),
            hands=tuple(tuple(p.hand) for p in self.players),
            capture_piles=tuple(tuple(p.captured) for p in self.players),
            active_combinations=tuple(tuple(p.combinations) for p in self.players),
            multiplier=self.multiplier,
            current_player=self.current_player,
            termination_reason=self.termination_reason,
            terminating_player=self.terminating_player,
            deck_remaining=self.deck.remaining(),
            pending_card=self.pending_card,
            pending_matches=tuple(self.pending_matches),
            has_declared_risk=tuple(p.has_declared_risk for p in self.players),
            cumulative_scores=tuple(p.cumulative_score for p in self.players),
        )

    def view(self, player: int) -> PlayerView:
        p = self.players[player]
        own_turn = player == self.current_player
        return PlayerView(
            player=player,
            hand=tuple(p.hand),
            field=tuple(self.field),
            capture_piles=tuple(tuple(q.captured) for q in self.players),
            combinations=tuple(p.combinations),
            combination_value=p.combination_value(),
            has_declared_risk=p.has_declared_risk,
            risk_baseline_value=p.risk_baseline_value,
            deck_remaining=self.deck.remaining(),
            multiplier=self.multiplier,
            pending_card=self.pending_card if own_turn else None,
            pending_matches=tuple(self.pending_matches) if own_turn else (),
        )


__all__ = [
    "Phase",
    "TerminationReason",
    "PlayerState",
    "PlayerView",
    "RoundSnapshot",
    "RoundState",
]
