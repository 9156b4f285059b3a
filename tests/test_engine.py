"""Round engine: turn flow, captures, risk decisions and end-to-end rounds."""
import random

import pytest

from hachihachi.agents import HeuristicOpponent
from hachihachi.combinations import Combination
from hachihachi.deal import deal_valid_3p
from hachihachi.deck import card_by_id
from hachihachi.errors import InvalidDealError
from hachihachi.game import RoundEngine, play_one_round_3p, run_match_3p
from hachihachi.risk import Decision
from hachihachi.state import Phase, TerminationReason

HUMANS = [None, None, None]


def no_teyaku(hand):
    return []


def no_dekiyaku(captured):
    return []


def dekiyaku_when_captured(rules):
    """Stub detector: {card_id: (name, value)} -> combination once that card is captured."""

    def detect(captured):
        ids = {c.id for c in captured}
        return [Combination(name, value) for card_id, (name, value) in rules.items() if card_id in ids]

    return detect


def _engine(deal, dekiyaku=no_dekiyaku, policies=HUMANS, **kwargs):
    return RoundEngine(
        deal,
        policies=policies,
        dekiyaku_detector=dekiyaku,
        teyaku_detector=no_teyaku,
        **kwargs,
    )


# ---- Forced lock-in ----


def test_forced_lock_in_on_last_hand_card(make_deal):
    deal = make_deal(hands=[[3], [7], [11]], field=[4, 14, 22, 33])
    engine = _engine(deal, dekiyaku=lambda captured: [Combination("Stub", 20)] if captured else [])
    assert engine.phase == Phase.SELECT_HAND
    assert engine.state.multiplier == 1

    result = engine.select_hand_card(0, card_by_id(3))
    assert result.ok
    assert engine.is_over()
    assert engine.state.termination_reason == TerminationReason.LOCKED_IN
    assert engine.state.terminating_player == 0
    assert engine.report.payments == (40.0, -20.0, -20.0)
    assert [p.round_score for p in engine.state.players] == [40.0, -20.0, -20.0]
    assert engine.state.deck.remaining() == 41


# ---- Sweeps and exhaustion ----


def _sweep_deal(make_deal):
    # Each seat holds the first card of four months; the other three cards of every month are on the field.
    hands = [[1, 5, 9, 13], [17, 21, 25, 29], [33, 37, 41, 45]]
    field = [i for i in range(1, 49) if i % 4 != 1]
    return make_deal(hands=hands, field=field, deck_rest=False)


def test_every_play_sweeps_and_round_exhausts(make_deal):
    deal = _sweep_deal(make_deal)
    assert deal.multiplier == 1
    engine = _engine(deal, policies=[HeuristicOpponent()] * 3)
    snapshot = engine.run_automated()

    assert snapshot.phase == Phase.ROUND_END
    assert snapshot.termination_reason == TerminationReason.EXHAUSTED
    assert snapshot.terminating_player is None
    assert snapshot.field == ()
    assert [len(pile) for pile in snapshot.capture_piles] == [16, 16, 16]
    # Card points 88 / 83 / 93 against a par of 88
    assert engine.report.payments == (0.0, -5.0, 5.0)
    assert engine.report.winner_index == 2


def test_pacer_sees_every_automated_step(make_deal):
    engine = _engine(_sweep_deal(make_deal), policies=[HeuristicOpponent()] * 3)
    seen = []
    engine.run_automated(pacer=seen.append)
    assert len(seen) == 12
    assert seen[-1].phase == Phase.ROUND_END


def test_drawn_card_sweeps_without_a_prompt(make_deal):
    deal = make_deal(hands=[[7, 3], [11], [19]], field=[14, 15, 16, 22], deck_front=[13])
    engine = _engine(deal)

    assert engine.select_hand_card(0, card_by_id(7)).ok  # no match, then draws the cuckoo
    assert {c.id for c in engine.state.players[0].captured} == {13, 14, 15, 16}
    assert not any(c.month == 4 for c in engine.state.field)
    assert engine.state.pending_card is None
    assert engine.state.current_player == 1
    assert engine.phase == Phase.SELECT_HAND


# ---- Two-way matches ----


def test_hand_card_with_two_matches_waits_for_choice(make_deal):
    deal = make_deal(hands=[[13, 3], [7], [11]], field=[14, 15, 22, 33], deck_front=[47])
    engine = _engine(deal)

    assert engine.select_hand_card(0, card_by_id(13)).ok
    assert engine.phase == Phase.SELECT_FIELD
    assert engine.state.pending_card == card_by_id(13)
    assert engine.state.players[0].holds(card_by_id(13))
    assert {c.id for c in engine.legal_cards(0)} == {14, 15}

    rejected = engine.select_field_card(0, card_by_id(22))
    assert not rejected.ok
    assert engine.phase == Phase.SELECT_FIELD

    assert engine.select_field_card(0, card_by_id(15)).ok
    p0 = engine.state.players[0]
    assert {c.id for c in p0.captured} == {13, 15}
    assert [c.id for c in p0.hand] == [3]
    # The draw (card 47, no match) was placed and the turn passed on
    assert card_by_id(47) in engine.state.field
    assert card_by_id(14) in engine.state.field
    assert engine.state.current_player == 1
    assert engine.phase == Phase.SELECT_HAND


def test_drawn_card_with_two_matches_is_in_flight(make_deal):
    deal = make_deal(hands=[[7, 3], [11], [19]], field=[14, 30, 31, 22], deck_front=[32])
    engine = _engine(deal)

    assert engine.select_hand_card(0, card_by_id(7)).ok
    assert engine.phase == Phase.SELECT_DRAWN_MATCH
    snap = engine.snapshot()
    assert snap.pending_card == card_by_id(32)
    assert {c.id for c in snap.pending_matches} == {30, 31}
    assert engine.state.cards_in_play() == 48

    assert engine.select_field_card(0, card_by_id(30)).ok
    assert {c.id for c in engine.state.players[0].captured} == {32, 30}
    assert card_by_id(31) in engine.state.field
    assert engine.state.current_player == 1


# ---- Illegal actions ----


def test_illegal_actions_leave_state_untouched(make_deal):
    deal = make_deal(hands=[[7, 3], [11], [19]], field=[14, 30, 31, 22])
    engine = _engine(deal)
    before = engine.snapshot()

    attempts = [
        engine.select_hand_card(1, card_by_id(11)),  # out of turn
        engine.select_hand_card(0, card_by_id(11)),  # not in hand
        engine.select_field_card(0, card_by_id(14)),  # wrong phase
        engine.declare_lock_in(0),
        engine.declare_continue(0),
        engine.declare_retreat(0),
    ]
    assert all(not r.ok for r in attempts)
    assert all(r.reason for r in attempts)
    assert engine.snapshot() == before


def test_no_actions_after_round_end(make_deal):
    deal = make_deal(hands=[[3], [7], [11]], field=[4, 14, 22, 33])
    engine = _engine(deal, dekiyaku=lambda captured: [Combination("Stub", 20)] if captured else [])
    engine.select_hand_card(0, card_by_id(3))
    assert engine.is_over()
    assert engine.awaiting_player() is None
    assert not engine.select_hand_card(1, card_by_id(7)).ok
    assert engine.legal_cards(1) == []


def test_invalid_field_rejected(make_deal):
    deal = make_deal(hands=[[5], [6], [7]], field=[1, 2, 3, 4])
    with pytest.raises(InvalidDealError):
        _engine(deal)


# ---- Risk decisions ----

BRIDGE = {17: ("Bridge", 8)}
BRIDGE_AND_CUP = {17: ("Bridge", 8), 33: ("Cup", 5)}


def _risk_deal(make_deal):
    return make_deal(
        hands=[[7, 8], [19, 20], [35, 36]],
        field=[17, 33, 14, 22],
        deck_front=[27, 47, 1, 2],
    )


def _to_first_risk_decision(engine):
    assert engine.select_hand_card(0, card_by_id(7)).ok  # placed, draws 27 (placed)
    assert engine.select_hand_card(1, card_by_id(19)).ok  # captures the bridge
    assert engine.phase == Phase.RISK_DECISION
    assert engine.available_decisions(1) == (Decision.LOCK_IN, Decision.CONTINUE)


def test_lock_in_right_away(make_deal):
    engine = _engine(_risk_deal(make_deal), dekiyaku=dekiyaku_when_captured(BRIDGE))
    _to_first_risk_decision(engine)
    live = [list(p.combinations) for p in engine.state.players]
    assert engine.declare_lock_in(1).ok
    assert engine.report.termination_reason == TerminationReason.LOCKED_IN
    assert engine.report.payments == (-8.0, 16.0, -8.0)
    assert [c.name for c in engine.state.players[1].locked_combinations] == ["Bridge"]
    # Every seat is frozen, not just the one that locked in
    assert [p.locked_combinations for p in engine.state.players] == live


def test_continue_then_retreat_collects_half(make_deal):
    engine = _engine(_risk_deal(make_deal), dekiyaku=dekiyaku_when_captured(BRIDGE))
    _to_first_risk_decision(engine)

    assert engine.declare_continue(1).ok
    p1 = engine.state.players[1]
    assert p1.has_declared_risk
    assert p1.risk_baseline_value == 8
    assert engine.state.current_player == 2

    assert engine.select_hand_card(2, card_by_id(35)).ok  # captures 33, draws 1
    assert engine.select_hand_card(0, card_by_id(8)).ok  # captures 7, then the draw (2) takes the crane
    assert engine.state.current_player == 1
    assert engine.phase == Phase.RISK_CHECK
    assert engine.available_decisions(1) == (Decision.CONTINUE, Decision.RETREAT)
    assert not engine.select_hand_card(1, card_by_id(20)).ok

    assert engine.declare_retreat(1).ok
    assert engine.report.termination_reason == TerminationReason.RETREATED
    assert engine.report.payments == (-4.0, 8.0, -4.0)


def test_unimproved_risk_holder_forfeits_when_another_locks_in(make_deal):
    engine = _engine(_risk_deal(make_deal), dekiyaku=dekiyaku_when_captured(BRIDGE_AND_CUP))
    _to_first_risk_decision(engine)
    assert engine.declare_continue(1).ok

    assert engine.select_hand_card(2, card_by_id(35)).ok
    assert engine.phase == Phase.RISK_DECISION
    assert engine.declare_lock_in(2).ok

    report = engine.report
    assert report.terminating_player == 2
    assert report.per_player[1].forfeited
    assert report.payments == (-5.0, 0.0, 5.0)
    p1 = engine.state.players[1]
    assert p1.round_score == 0.0
    assert p1.combinations == []
    assert p1.locked_combinations == []


def test_continue_at_risk_stays_in_play(make_deal):
    engine = _engine(_risk_deal(make_deal), dekiyaku=dekiyaku_when_captured(BRIDGE))
    _to_first_risk_decision(engine)
    engine.declare_continue(1)
    engine.select_hand_card(2, card_by_id(35))
    engine.select_hand_card(0, card_by_id(8))
    assert engine.declare_continue(1).ok
    assert engine.phase == Phase.SELECT_HAND
    assert engine.legal_cards(1) == [card_by_id(20)]


# ---- Teyaku at round start ----


def test_teyaku_paid_into_cumulative_scores(make_deal):
    deal = make_deal(hands=[[3, 4, 7, 8, 11, 12, 15, 16], [5, 9], [13, 29]], field=[14, 22, 33, 38])
    engine = RoundEngine(deal, policies=HUMANS, cumulative_scores=[10.0, 0.0, 0.0])
    p0 = engine.state.players[0]
    assert [t.name for t in p0.teyaku] == ["Three Pairs", "Empty Hand"]
    assert engine.state.teyaku_payments == (16.0, -8.0, -8.0)
    assert [p.cumulative_score for p in engine.state.players] == [26.0, -8.0, -8.0]


# ---- Full automated rounds ----


@pytest.mark.parametrize("seed", range(25))
def test_random_rounds_are_zero_sum_and_conserve_cards(seed):
    report, engine = play_one_round_3p(rng=random.Random(seed), first_player=seed % 3)
    assert engine.is_over()
    assert engine.state.cards_in_play() == 48
    assert sum(report.payments) == 0
    assert sum(report.teyaku_payments) == 0
    assert report.termination_reason in set(TerminationReason)
    for i, p in enumerate(report.per_player):
        if p.forfeited:
            assert p.round_total == 0


def test_default_policies_leave_seat_zero_to_a_human():
    engine = RoundEngine(deal_valid_3p(rng=random.Random(5)), first_player=1)
    engine.run_automated()
    assert engine.is_over() or engine.awaiting_player() == 0
    assert engine.is_over() or engine.is_human_turn()


def test_illegal_policy_choice_raises(make_deal):
    class Stubborn(HeuristicOpponent):
        def choose_hand_card(self, view):
            return card_by_id(48)

    deal = make_deal(hands=[[7, 3], [11], [19]], field=[14, 30, 31, 22])
    engine = _engine(deal, policies=[Stubborn(), None, None])
    with pytest.raises(RuntimeError):
        engine.advance()


def test_match_totals_are_zero_sum():
    totals, reports = run_match_3p(num_rounds=6, rng=random.Random(11))
    assert len(reports) == 6
    assert sum(totals) == pytest.approx(0.0)
    expected = [0.0, 0.0, 0.0]
    for r in reports:
        for i in range(3):
            expected[i] += r.teyaku_payments[i] + r.payments[i]
    assert list(totals) == pytest.approx(expected)


class AlwaysContinue(HeuristicOpponent):
    """Opens with the bridge and never stops."""

    def choose_hand_card(self, view):
        for c in view.hand:
            if c.id == 17:
                return c
        return super().choose_hand_card(view)

    def decide_after_capture(self, view):
        return Decision.CONTINUE if view.hand else Decision.LOCK_IN

    def decide_at_turn_start(self, view):
        return Decision.CONTINUE


def test_unimproved_risk_holder_scores_zero_at_exhaustion(make_deal):
    # All of May is with seat 1 or on the field, so only seat 1 can capture the ribbon (18)
    deal = make_deal(
        hands=[[4, 8, 12, 16, 24, 27, 31, 35], [17, 19, 20, 3, 7, 11, 15, 23], [28, 32, 36, 39, 40, 42, 43, 44]],
        field=[18, 2, 6, 10, 14, 22, 26, 30],
    )
    engine = _engine(
        deal,
        dekiyaku=dekiyaku_when_captured({18: ("May Ribbon", 8)}),
        policies=[HeuristicOpponent(), AlwaysContinue(), HeuristicOpponent()],
    )
    engine.run_automated()

    assert engine.is_over()
    assert engine.state.players[1].has_declared_risk
    assert engine.state.players[1].risk_baseline_value == 8
    report = engine.report
    assert report.termination_reason == TerminationReason.EXHAUSTED
    assert report.per_player[1].forfeited
    assert report.per_player[1].base_points == 0.0
    assert report.payments == (0.0, 0.0, 0.0)
    assert engine.state.players[1].combinations == []
    assert engine.state.cards_in_play() == 48
