"""
Round and match orchestration: deal → teyaku → turns (play, draw, capture, risk) → settlement.

``RoundEngine`` is the turn & capture state machine. Every step between two decisions is
computed eagerly; the engine only stops in a waiting phase (see ``Phase``) or at
``ROUND_END``. Seats with a policy are driven by ``advance`` / ``run_automated``; seats
without one (human-controlled) are driven through the input surface:

    select_hand_card, select_field_card, declare_lock_in, declare_continue, declare_retreat

Each returns an ``ActionResult``; a rejected action leaves the round untouched.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, NamedTuple, Optional, Sequence

from . import risk
from .agents import HeuristicOpponent, OpponentPolicy
from .combinations import Detector, combinations_value, detect_dekiyaku, detect_teyaku
from .deal import MAX_REDEALS, NUM_PLAYERS, Deal3P, deal_valid_3p, full_month_on_field
from .deck import Card, cards_point_total
from .errors import IllegalActionError, InvalidDealError
from .risk import Decision
from .scoring import PAR_VALUE, SettlementReport, settle_round, teyaku_payments
from .state import Phase, PlayerState, RoundSnapshot, RoundState, TerminationReason

logger = logging.getLogger(__name__)


@dataclass
class RoundConfig:
    """Rule knobs for a round."""

    max_redeals: int = MAX_REDEALS
    par_value: int = PAR_VALUE


class Action(Enum):
    SELECT_HAND_CARD = "select_hand_card"
    SELECT_FIELD_CARD = "select_field_card"
    LOCK_IN = "lock_in"
    CONTINUE = "continue"
    RETREAT = "retreat"


# Which actions each phase accepts. Anything else is rejected before touching state.
TRANSITIONS: dict[Phase, frozenset[Action]] = {
    Phase.SELECT_HAND: frozenset({Action.SELECT_HAND_CARD}),
    Phase.SELECT_FIELD: frozenset({Action.SELECT_FIELD_CARD}),
    Phase.SELECT_DRAWN_MATCH: frozenset({Action.SELECT_FIELD_CARD}),
    Phase.RISK_DECISION: frozenset({Action.LOCK_IN, Action.CONTINUE}),
    Phase.RISK_CHECK: frozenset({Action.CONTINUE, Action.RETREAT}),
    Phase.ROUND_END: frozenset(),
}


class ActionResult(NamedTuple):
    ok: bool
    reason: Optional[str] = None


def default_policies() -> list[Optional[OpponentPolicy]]:
    """Seat 0 is human-controlled, the two others use the heuristic opponent."""
    return [None, HeuristicOpponent(), HeuristicOpponent()]


class RoundEngine:
    """State machine for one round. Owns its RoundState exclusively."""

    def __init__(
        self,
        deal: Deal3P,
        policies: Sequence[Optional[OpponentPolicy]] | None = None,
        config: RoundConfig | None = None,
        first_player: int = 0,
        cumulative_scores: Sequence[float] | None = None,
        dekiyaku_detector: Detector = detect_dekiyaku,
        teyaku_detector: Detector = detect_teyaku,
    ) -> None:
        month = full_month_on_field(deal.field)
        if month is not None:
            raise InvalidDealError(f"All four cards of month {month} are on the field", attempts=deal.attempts)
        assert 0 <= first_player < NUM_PLAYERS
        self.config = config or RoundConfig()
        self.policies: list[Optional[OpponentPolicy]] = list(policies) if policies is not None else default_policies()
        if len(self.policies) != NUM_PLAYERS:
            raise ValueError(f"Expected {NUM_PLAYERS} policies, got {len(self.policies)}")
        self._detect_dekiyaku = dekiyaku_detector
        self._detect_teyaku = teyaku_detector
        self.report: Optional[SettlementReport] = None

        if cumulative_scores is None:
            cumulative_scores = [0.0] * NUM_PLAYERS
        players = [
            PlayerState(hand=list(hand), cumulative_score=float(cumulative_scores[i]))
            for i, hand in enumerate(deal.hands)
        ]
        self.state = RoundState(
            players=players,
            field=list(deal.field),
            deck=deal.deck,
            multiplier=deal.multiplier,
            current_player=first_player,
        )
        self._settle_teyaku()
        self.state.check_conservation()
        self._begin_turn()

    # ---- Observer surface ----

    def snapshot(self) -> RoundSnapshot:
        return self.state.snapshot()

    @property
    def phase(self) -> Phase:
        return self.state.phase

    def is_over(self) -> bool:
        return self.state.is_over()

    def awaiting_player(self) -> Optional[int]:
        """Seat whose decision the engine is waiting for, None once the round is over."""
        if self.state.is_over():
            return None
        return self.state.current_player

    def is_human_turn(self) -> bool:
        seat = self.awaiting_player()
        return seat is not None and self.policies[seat] is None

    def legal_cards(self, player: int) -> list[Card]:
        """Cards ``player`` may select right now (hand cards or pending field matches)."""
        st = self.state
        if st.is_over() or player != st.current_player:
            return []
        if st.phase == Phase.SELECT_HAND:
            return list(st.players[player].hand)
        if st.phase in (Phase.SELECT_FIELD, Phase.SELECT_DRAWN_MATCH):
            return list(st.pending_matches)
        return []

    def available_decisions(self, player: int) -> tuple[Decision, ...]:
        st = self.state
        if st.is_over() or player != st.current_player:
            return ()
        if st.phase == Phase.RISK_DECISION:
            return risk.post_capture_options(st, player)
        if st.phase == Phase.RISK_CHECK:
            return risk.turn_start_options(st, player)
        return ()

    # ---- Decision input surface ----

    def select_hand_card(self, player: int, card: Card) -> ActionResult:
        return self._attempt(Action.SELECT_HAND_CARD, player, lambda: self._play_hand_card(player, card))

    def select_field_card(self, player: int, card: Card) -> ActionResult:
        return self._attempt(Action.SELECT_FIELD_CARD, player, lambda: self._take_pending_match(card))

    def declare_lock_in(self, player: int) -> ActionResult:
        return self._attempt(Action.LOCK_IN, player, lambda: self._lock_in(player))

    def declare_continue(self, player: int) -> ActionResult:
        return self._attempt(Action.CONTINUE, player, lambda: self._continue(player))

    def declare_retreat(self, player: int) -> ActionResult:
        return self._attempt(Action.RETREAT, player, lambda: self._retreat(player))

    def decide(self, player: int, decision: Decision) -> ActionResult:
        if decision == Decision.LOCK_IN:
            return self.declare_lock_in(player)
        if decision == Decision.CONTINUE:
            return self.declare_continue(player)
        return self.declare_retreat(player)

    # ---- Automated seats ----

    def advance(self) -> bool:
        """
        Let the policy of the awaited seat make one decision.
        Returns False when the round is over or a human-controlled seat must act.
        """
        seat = self.awaiting_player()
        if seat is None:
            return False
        policy = self.policies[seat]
        if policy is None:
            return False

        view = self.state.view(seat)
        phase = self.state.phase
        if phase == Phase.SELECT_HAND:
            result = self.select_hand_card(seat, policy.choose_hand_card(view))
        elif phase in (Phase.SELECT_FIELD, Phase.SELECT_DRAWN_MATCH):
            result = self.select_field_card(seat, policy.choose_field_match(view))
        elif phase == Phase.RISK_DECISION:
            result = self.decide(seat, policy.decide_after_capture(view))
        else:
            result = self.decide(seat, policy.decide_at_turn_start(view))

        if not result.ok:
            raise RuntimeError(f"Policy for seat {seat} chose an illegal action in {phase.value}: {result.reason}")
        return True

    def run_automated(self, pacer: Callable[[RoundSnapshot], None] | None = None) -> RoundSnapshot:
        """
        Drive policy seats until a human decision is needed or the round ends.
        ``pacer`` is called after every automated step (presentation pacing only).
        """
        while self.advance():
            if pacer is not None:
                pacer(self.snapshot())
        return self.snapshot()

    # ---- Internal: validation ----

    def _attempt(self, action: Action, player: int, apply: Callable[[], None]) -> ActionResult:
        try:
            self._check_action(action, player)
            apply()
        except IllegalActionError as exc:
            logger.debug("Rejected %s by player %d: %s", action.value, player, exc)
            return ActionResult(False, str(exc))
        self.state.check_conservation()
        return ActionResult(True)

    def _check_action(self, action: Action, player: int) -> None:
        st = self.state
        if st.is_over():
            raise IllegalActionError("The round is over")
        if action not in TRANSITIONS[st.phase]:
            raise IllegalActionError(f"{action.value} is not allowed in phase {st.phase.value}")
        if player != st.current_player:
            raise IllegalActionError(f"Not player {player}'s turn (current player is {st.current_player})")

    # ---- Internal: turn flow ----

    def _settle_teyaku(self) -> None:
        st = self.state
        values = []
        for i, p in enumerate(st.players):
            p.teyaku = list(self._detect_teyaku(p.hand))
            values.append(combinations_value(p.teyaku))
            if p.teyaku:
                logger.debug("Player %d teyaku: %s", i, [str(t) for t in p.teyaku])
        st.teyaku_payments = teyaku_payments(values, st.multiplier)
        for p, share in zip(st.players, st.teyaku_payments):
            p.cumulative_score += share

    def _begin_turn(self) -> None:
        st = self.state
        p = st.current
        if st.deck.remaining() == 0 and (not p.hand or all(not q.hand for q in st.players)):
            self._finish(TerminationReason.EXHAUSTED)
            return
        if p.has_declared_risk:
            st.phase = Phase.RISK_CHECK
            return
        self._start_play()

    def _start_play(self) -> None:
        st = self.state
        if not st.current.hand:
            # Nothing to play: the turn is just the draw
            st.last_actor = st.current_player
            self._draw_step()
            return
        st.phase = Phase.SELECT_HAND

    def _play_hand_card(self, player: int, card: Card) -> None:
        st = self.state
        p = st.players[player]
        held = next((c for c in p.hand if c.id == card.id), None)
        if held is None:
            raise IllegalActionError(f"{card} is not in player {player}'s hand")
        matches = st.matches_on_field(held)
        st.last_actor = player
        if len(matches) == 2:
            st.pending_card = held
            st.pending_matches = matches
            st.phase = Phase.SELECT_FIELD
            return
        p.hand.remove(held)
        self._resolve(held, matches, from_hand=True)

    def _take_pending_match(self, card: Card) -> None:
        st = self.state
        match = next((m for m in st.pending_matches if m.id == card.id), None)
        if match is None:
            raise IllegalActionError(f"{card} is not a possible match for {st.pending_card}")
        played = st.pending_card
        assert played is not None
        from_hand = st.phase == Phase.SELECT_FIELD
        if from_hand:
            st.current.hand.remove(played)
        st.pending_card = None
        st.pending_matches = []
        self._capture(played, [match])
        self._after_capture(from_hand)

    def _draw_step(self) -> None:
        st = self.state
        card = st.deck.draw()
        if card is None:
            self._end_turn()
            return
        matches = st.matches_on_field(card)
        logger.debug("Player %d draws %s (%d match(es))", st.current_player, card, len(matches))
        if len(matches) == 2:
            st.pending_card = card
            st.pending_matches = matches
            st.phase = Phase.SELECT_DRAWN_MATCH
            return
        self._resolve(card, matches, from_hand=False)

    def _resolve(self, card: Card, matches: list[Card], from_hand: bool) -> None:
        """Zero matches: place on the field. One: capture the pair. Three: sweep the month."""
        if not matches:
            self.state.field.append(card)
            logger.debug("Player %d places %s on the field", self.state.current_player, card)
            self._continue_turn(draw_owed=from_hand)
            return
        self._capture(card, matches)
        self._after_capture(from_hand)

    def _capture(self, card: Card, targets: list[Card]) -> None:
        st = self.state
        p = st.current
        for t in targets:
            st.field.remove(t)
        p.captured.append(card)
        p.captured.extend(targets)
        if len(targets) == 3:
            logger.debug("Player %d sweeps month %d", st.current_player, card.month)
        else:
            logger.debug("Player %d captures %s with %s", st.current_player, targets[0], card)

    def _after_capture(self, from_hand: bool) -> None:
        st = self.state
        p = st.current
        before = p.combinations
        p.combinations = list(self._detect_dekiyaku(p.captured))
        if not risk.combination_count_increased(before, p.combinations):
            self._continue_turn(draw_owed=from_hand)
            return

        st.pending_draw = from_hand
        logger.debug(
            "Player %d combinations now %s (value %d)",
            st.current_player,
            [str(c) for c in p.combinations],
            p.combination_value(),
        )
        if risk.must_lock_in(st, st.current_player):
            self._lock_in(st.current_player)
            return
        st.phase = Phase.RISK_DECISION

    def _continue_turn(self, draw_owed: bool) -> None:
        if draw_owed:
            self._draw_step()
        else:
            self._end_turn()

    def _end_turn(self) -> None:
        st = self.state
        if st.deck.remaining() == 0 and all(not p.hand for p in st.players):
            self._finish(TerminationReason.EXHAUSTED)
            return
        st.current_player = (st.current_player + 1) % NUM_PLAYERS
        self._begin_turn()

    # ---- Internal: risk decisions ----

    def _lock_in(self, player: int) -> None:
        risk.lock_in(self.state, player)
        self._finish(TerminationReason.LOCKED_IN)

    def _continue(self, player: int) -> None:
        st = self.state
        if st.phase == Phase.RISK_CHECK:
            logger.debug("Player %d stays at risk", player)
            self._start_play()
            return
        risk.continue_at_risk(st, player)
        draw_owed = st.pending_draw
        st.pending_draw = False
        self._continue_turn(draw_owed)

    def _retreat(self, player: int) -> None:
        risk.retreat(self.state, player)
        self._finish(TerminationReason.RETREATED)

    # ---- Internal: round end ----

    def _card_points_with_field_remainder(self) -> list[int]:
        """Captured points per player; cards left on the field go to the last player to act."""
        st = self.state
        points = [cards_point_total(p.captured) for p in st.players]
        if st.field:
            holder = st.last_actor if st.last_actor is not None else st.current_player
            points[holder] += cards_point_total(st.field)
        return points

    def _finish(self, reason: TerminationReason) -> None:
        st = self.state
        st.termination_reason = reason
        if reason == TerminationReason.EXHAUSTED:
            st.terminating_player = None
        st.phase = Phase.ROUND_END
        st.pending_card = None
        st.pending_matches = []
        st.pending_draw = False

        report = settle_round(
            reason=reason,
            terminating_player=st.terminating_player,
            final_values=[combinations_value(p.final_combinations()) for p in st.players],
            risk_declared=[p.has_declared_risk for p in st.players],
            risk_baselines=[p.risk_baseline_value for p in st.players],
            card_points=self._card_points_with_field_remainder(),
            multiplier=st.multiplier,
            teyaku_shares=st.teyaku_payments,
            par_value=self.config.par_value,
        )
        for p, result in zip(st.players, report.per_player):
            if result.forfeited:
                p.combinations = []
                p.locked_combinations = []
            p.round_score = result.round_total
            p.cumulative_score += result.round_total
        self.report = report
        st.check_conservation()


def play_one_round_3p(
    policies: Sequence[OpponentPolicy] | None = None,
    rng: random.Random | None = None,
    config: RoundConfig | None = None,
    first_player: int = 0,
    cumulative_scores: Sequence[float] | None = None,
    pacer: Callable[[RoundSnapshot], None] | None = None,
) -> tuple[SettlementReport, RoundEngine]:
    """
    Deal (with redeals) and play one round with policies in every seat.
    Returns the settlement report and the finished engine.
    """
    if rng is None:
        rng = random.Random()
    config = config or RoundConfig()
    if policies is None:
        policies = [HeuristicOpponent() for _ in range(NUM_PLAYERS)]
    if any(p is None for p in policies):
        raise ValueError("play_one_round_3p needs a policy for every seat")
    deal = deal_valid_3p(rng=rng, max_redeals=config.max_redeals)
    engine = RoundEngine(
        deal,
        policies=policies,
        config=config,
        first_player=first_player,
        cumulative_scores=cumulative_scores,
    )
    engine.run_automated(pacer)
    assert engine.report is not None
    return engine.report, engine


def run_match_3p(
    num_rounds: int = 12,
    policies: Sequence[OpponentPolicy] | None = None,
    rng: random.Random | None = None,
    config: RoundConfig | None = None,
) -> tuple[tuple[float, float, float], list[SettlementReport]]:
    """
    Run a match of num_rounds. The first player rotates 0 -> 1 -> 2 -> 0.
    Teyaku are credited at round start, round totals at round end.
    Returns (total_p0, total_p1, total_p2), list of per-round reports.
    """
    if rng is None:
        rng = random.Random()
    totals: list[float] = [0.0, 0.0, 0.0]
    per_round: list[SettlementReport] = []
    first_player = 0
    for round_index in range(num_rounds):
        report, engine = play_one_round_3p(
            policies=policies,
            rng=rng,
            config=config,
            first_player=first_player,
            cumulative_scores=totals,
        )
        totals = [p.cumulative_score for p in engine.state.players]
        per_round.append(report)
        logger.debug("Round %d/%d totals: %s", round_index + 1, num_rounds, totals)
        first_player = (first_player + 1) % NUM_PLAYERS
    return (totals[0], totals[1], totals[2]), per_round


__all__ = [
    "Action",
    "ActionResult",
    "RoundConfig",
    "RoundEngine",
    "TRANSITIONS",
    "default_policies",
    "play_one_round_3p",
    "run_match_3p",
]
