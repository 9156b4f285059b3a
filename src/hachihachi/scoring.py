"""
Settlement: teyaku at round start, then one round-end settlement per termination path.
Every payment is a transfer between two players, so both vectors always sum to 0.

Round end, by termination reason (values in kan, times the field multiplier):
- locked-in:  the terminating player collects their locked value from each other player;
              a player who was at risk pays double.
- retreated:  the retreating player collects half their locked value from each other player.
- exhausted:  nobody ever at risk -> (card points - 88) for everyone;
              otherwise each player at risk collects half their final value from each other player.
A player at risk (other than the one who ended the round) whose final value did not exceed
their baseline forfeits: round total 0, no payment in either direction. Forfeits are
applied first, so a forfeited risk holder is excused from paying another player's lock-in;
the double payment only reaches risk holders who did improve.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence

from .errors import InvariantViolation
from .state import TerminationReason

logger = logging.getLogger(__name__)

PAR_VALUE = 88


class PlayerSettlement(NamedTuple):
    base_points: float
    teyaku_share: float
    combination_share: float
    round_total: float  # base_points + combination_share; teyaku is settled separately
    forfeited: bool = False


@dataclass(frozen=True)
class SettlementReport:
    per_player: tuple[PlayerSettlement, ...]
    termination_reason: TerminationReason
    terminating_player: Optional[int]
    winner_index: Optional[int]
    multiplier: int

    @property
    def payments(self) -> tuple[float, ...]:
        return tuple(p.round_total for p in self.per_player)

    @property
    def teyaku_payments(self) -> tuple[float, ...]:
        return tuple(p.teyaku_share for p in self.per_player)


def teyaku_payments(values: Sequence[int], multiplier: int) -> tuple[float, ...]:
    """
    Each player with a non-zero hand value collects value × multiplier from every other
    player; players with nothing only pay.
    """
    scaled = [v * multiplier for v in values]
    n = len(scaled)
    out: list[float] = []
    for i in range(n):
        collected = scaled[i] * (n - 1) if scaled[i] > 0 else 0
        paid = sum(scaled[j] for j in range(n) if j != i and scaled[j] > 0)
        out.append(float(collected - paid))
    _check_zero_sum(out, "teyaku")
    return tuple(out)


def card_point_scores(card_points: Sequence[int], multiplier: int, par_value: int = PAR_VALUE) -> list[float]:
    """Fallback scoring when nobody built anything: (points - par) × multiplier."""
    return [float((pts - par_value) * multiplier) for pts in card_points]


def forfeits(
    risk_declared: Sequence[bool],
    final_values: Sequence[int],
    risk_baselines: Sequence[int],
    terminating_player: Optional[int],
) -> list[bool]:
    """Players at risk who failed to improve on their baseline (the round's terminator excepted)."""
    return [
        bool(risk_declared[i]) and final_values[i] <= risk_baselines[i] and i != terminating_player
        for i in range(len(final_values))
    ]


def _check_zero_sum(vector: Sequence[float], label: str) -> None:
    if sum(vector) != 0:
        raise InvariantViolation(f"{label} settlement does not sum to zero: {tuple(vector)}")


def _winner(totals: Sequence[float]) -> Optional[int]:
    best = max(totals)
    if best <= 0 or list(totals).count(best) != 1:
        return None
    return list(totals).index(best)


def settle_round(
    reason: TerminationReason,
    terminating_player: Optional[int],
    final_values: Sequence[int],
    risk_declared: Sequence[bool],
    risk_baselines: Sequence[int],
    card_points: Sequence[int],
    multiplier: int,
    teyaku_shares: Sequence[float] | None = None,
    par_value: int = PAR_VALUE,
) -> SettlementReport:
    """
    Round-end settlement. ``final_values`` are the players' locked values where a lock was
    taken and their live combination values otherwise.
    """
    n = len(final_values)
    if teyaku_shares is None:
        teyaku_shares = [0.0] * n
    if reason in (TerminationReason.LOCKED_IN, TerminationReason.RETREATED) and terminating_player is None:
        raise ValueError(f"{reason.value} settlement needs a terminating player")

    forfeited = forfeits(risk_declared, final_values, risk_baselines, terminating_player)
    base = [0.0] * n
    combo = [0.0] * n

    def transfer(payer: int, payee: int, amount: float) -> None:
        combo[payer] -= amount
        combo[payee] += amount

    if reason == TerminationReason.LOCKED_IN:
        t = terminating_player
        amount = final_values[t] * multiplier
        for j in range(n):
            if j == t or forfeited[j]:
                continue
            transfer(j, t, amount * 2 if risk_declared[j] else amount)
    elif reason == TerminationReason.RETREATED:
        t = terminating_player
        amount = final_values[t] * multiplier / 2
        for j in range(n):
            if j != t and not forfeited[j]:
                transfer(j, t, amount)
    elif not any(risk_declared):
        base = card_point_scores(card_points, multiplier, par_value)
    else:
        for r in range(n):
            if not risk_declared[r] or forfeited[r] or final_values[r] <= 0:
                continue
            half = final_values[r] * multiplier / 2
            for j in range(n):
                if j != r and not forfeited[j]:
                    transfer(j, r, half)

    totals = [base[i] + combo[i] for i in range(n)]
    for i in range(n):
        if forfeited[i] and totals[i] != 0:
            raise InvariantViolation(f"Forfeited player {i} still scores {totals[i]}")
    _check_zero_sum(totals, "round")
    _check_zero_sum(teyaku_shares, "teyaku")

    per_player = tuple(
        PlayerSettlement(
            base_points=base[i],
            teyaku_share=float(teyaku_shares[i]),
            combination_share=combo[i],
            round_total=totals[i],
            forfeited=forfeited[i],
        )
        for i in range(n)
    )
    report = SettlementReport(
        per_player=per_player,
        termination_reason=reason,
        terminating_player=terminating_player,
        winner_index=_winner(totals),
        multiplier=multiplier,
    )
    logger.info(
        "Round settled (%s, %dx): payments=%s teyaku=%s",
        reason.value,
        multiplier,
        report.payments,
        report.teyaku_payments,
    )
    return report


__all__ = [
    "PAR_VALUE",
    "PlayerSettlement",
    "SettlementReport",
    "card_point_scores",
    "forfeits",
    "settle_round",
    "teyaku_payments",
]
