"""
Risk decisions: lock in (shoubu), continue at risk (sage), retreat (cancel).

A decision is offered to the capturing player whenever their combination count goes up
(post-capture), and to any player at risk at the top of each of their turns.

- Post-capture: LOCK_IN or CONTINUE. With an empty hand CONTINUE is not offered and the
  lock-in is forced.
- Top of turn (player at risk): CONTINUE or RETREAT.

Lock-in freezes every player's combinations at that instant; retreat freezes only the
retreating player's. Both terminate the round.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from .combinations import Combination
from .errors import IllegalActionError
from .state import RoundState, TerminationReason

logger = logging.getLogger(__name__)


class Decision(Enum):
    LOCK_IN = "lock_in"
    CONTINUE = "continue"
    RETREAT = "retreat"


def combination_count_increased(before: Sequence[Combination], after: Sequence[Combination]) -> bool:
    return len(after) > len(before)


def must_lock_in(state: RoundState, player: int) -> bool:
    """No hand card left means no way to build another combination."""
    return not state.players[player].hand


def post_capture_options(state: RoundState, player: int) -> tuple[Decision, ...]:
    if must_lock_in(state, player):
        return (Decision.LOCK_IN,)
    return (Decision.LOCK_IN, Decision.CONTINUE)


def turn_start_options(state: RoundState, player: int) -> tuple[Decision, ...]:
    if not state.players[player].has_declared_risk:
        return ()
    return (Decision.CONTINUE, Decision.RETREAT)


def lock_in(state: RoundState, player: int) -> None:
    """Freeze all three players' combinations and end the round in ``player``'s favour."""
    for p in state.players:
        p.locked_combinations = list(p.combinations)
    state.termination_reason = TerminationReason.LOCKED_IN
    state.terminating_player = player
    logger.debug(
        "Player %d locks in with %s (value %d)",
        player,
        [str(c) for c in state.players[player].combinations],
        state.players[player].combination_value(),
    )


def continue_at_risk(state: RoundState, player: int) -> None:
    p = state.players[player]
    if must_lock_in(state, player):
        raise IllegalActionError("Cannot continue with an empty hand")
    p.has_declared_risk = True
    p.risk_baseline_value = p.combination_value()
    p.locked_combinations = None
    logger.debug("Player %d continues at risk, baseline %d", player, p.risk_baseline_value)


def retreat(state: RoundState, player: int) -> None:
    p = state.players[player]
    if not p.has_declared_risk:
        raise IllegalActionError("Only a player at risk can retreat")
    p.locked_combinations = list(p.combinations)
    state.termination_reason = TerminationReason.RETREATED
    state.terminating_player = player
    logger.debug("Player %d retreats with value %d", player, p.combination_value())


__all__ = [
    "Decision",
    "combination_count_increased",
    "continue_at_risk",
    "lock_in",
    "must_lock_in",
    "post_capture_options",
    "retreat",
    "turn_start_options",
]
