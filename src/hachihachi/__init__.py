"""Hachi-Hachi (three-player hanafuda) round engine."""

__version__ = "0.1.0"

from .deck import Card, Category, Deck, card_by_id, make_deck_48
from .errors import HachiHachiError, IllegalActionError, InvalidDealError, InvariantViolation
from .combinations import Combination, detect_dekiyaku, detect_teyaku
from .deal import Deal3P, deal_3p, deal_valid_3p, field_is_valid, field_multiplier
from .state import Phase, PlayerView, RoundSnapshot, RoundState, TerminationReason
from .risk import Decision
from .scoring import PAR_VALUE, PlayerSettlement, SettlementReport, settle_round, teyaku_payments
from .agents import HeuristicOpponent, OpponentPolicy, RandomAgent
from .game import (
    ActionResult,
    RoundConfig,
    RoundEngine,
    play_one_round_3p,
    run_match_3p,
)
