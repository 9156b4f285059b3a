"""
Environment wrapper around the three-player round engine.

- Single-agent view: one learning seat per env instance.
- Episode = one match of N rounds. The first player rotates each round. Reward is given
  only at the end of the match and equals the learning seat's match total (teyaku and
  round settlements included).
- At each step the env exposes the next decision of the learning seat: a hand card, a
  field match, or a risk decision. Other seats are played by an ``OpponentPolicy``.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .agents import HeuristicOpponent, OpponentPolicy
from .deal import NUM_PLAYERS, deal_valid_3p
from .env import NUM_ACTIONS, OBS_SIZE, apply_action, encode_observation, legal_action_mask
from .game import RoundConfig, RoundEngine

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Container returned by HachiHachiEnv.step/reset."""

    obs: np.ndarray
    reward: float
    done: bool
    info: dict
    legal_actions_mask: np.ndarray


class HachiHachiEnv:
    """
    Hachi-Hachi environment (single learning seat, full match episodes).

    Public API (Gym-like, without the dependency):
      - reset() -> StepResult          # start a new match, first decision for the learning seat
      - step(action: int) -> StepResult
    """

    def __init__(
        self,
        num_rounds: int = 3,
        learning_player: int = 0,
        rng: Optional[random.Random] = None,
        opponent: OpponentPolicy | None = None,
        config: RoundConfig | None = None,
    ) -> None:
        assert 0 <= learning_player < NUM_PLAYERS
        self.num_rounds = num_rounds
        self.learning_player = learning_player
        self.rng = rng or random.Random()
        self.opponent: OpponentPolicy = opponent or HeuristicOpponent()
        self.config = config or RoundConfig()

        self._round_index: int = 0
        self._first_player: int = 0
        self._totals: list[float] = [0.0] * NUM_PLAYERS
        self._engine: Optional[RoundEngine] = None
        self._done: bool = True

    @property
    def engine(self) -> Optional[RoundEngine]:
        return self._engine

    # ---- Public API ----

    def reset(self) -> StepResult:
        """Start a new match and return the first decision for the learning seat."""
        self._round_index = 0
        self._first_player = 0
        self._totals = [0.0] * NUM_PLAYERS
        self._engine = None
        self._done = False
        return self._start_next_round_or_finish()

    def step(self, action: int) -> StepResult:
        """Apply ``action`` for the learning seat at the current decision point."""
        if self._done or self._engine is None:
            return self._terminal(reward=0.0)
        mask = legal_action_mask(self._engine, self.learning_player)
        if not 0 <= action < NUM_ACTIONS or not mask[action]:
            raise ValueError(f"Invalid action {action} in phase {self._engine.phase.value}")
        result = apply_action(self._engine, self.learning_player, action)
        if not result.ok:
            raise RuntimeError(f"Engine rejected masked-legal action {action}: {result.reason}")
        return self._advance_to_decision()

    # ---- Internal helpers ----

    def _policies(self) -> list[Optional[OpponentPolicy]]:
        return [None if seat == self.learning_player else self.opponent for seat in range(NUM_PLAYERS)]

    def _start_next_round_or_finish(self) -> StepResult:
        if self._round_index >= self.num_rounds:
            self._done = True
            return self._terminal(reward=float(self._totals[self.learning_player]))

        deal = deal_valid_3p(rng=self.rng, max_redeals=self.config.max_redeals)
        self._engine = RoundEngine(
            deal,
            policies=self._policies(),
            config=self.config,
            first_player=self._first_player,
            cumulative_scores=self._totals,
        )
        return self._advance_to_decision()

    def _advance_to_decision(self) -> StepResult:
        """Let the opponents act until the learning seat must decide or the round ends."""
        engine = self._engine
        assert engine is not None
        engine.run_automated()
        if engine.is_over():
            self._totals = [p.cumulative_score for p in engine.state.players]
            logger.debug("Round %d finished, totals %s", self._round_index + 1, self._totals)
            self._round_index += 1
            self._first_player = (self._first_player + 1) % NUM_PLAYERS
            return self._start_next_round_or_finish()

        return StepResult(
            obs=encode_observation(engine, self.learning_player),
            reward=0.0,
            done=False,
            info={
                "phase": engine.phase.value,
                "round_index": self._round_index,
                "first_player": self._first_player,
            },
            legal_actions_mask=legal_action_mask(engine, self.learning_player),
        )

    def _terminal(self, reward: float) -> StepResult:
        return StepResult(
            obs=np.zeros(OBS_SIZE, dtype=np.float32),
            reward=reward,
            done=True,
            info={
                "phase": "done",
                "totals": tuple(self._totals),
                "rounds_played": self._round_index,
            },
            legal_actions_mask=np.zeros(NUM_ACTIONS, dtype=bool),
        )


__all__ = ["HachiHachiEnv", "StepResult"]
