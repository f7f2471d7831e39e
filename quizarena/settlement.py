"""
quizarena/settlement.py - Scoring answers and paying out a finished room.

Pure functions. The arena calls settle() when a room finishes and writes the
resulting payouts to the ledger.
"""

import logging
from dataclasses import dataclass, field

from quizarena.pool import total_prize
from quizarena.prizes import OVERFLOW_POSITION, prize_distribution
from quizarena.rooms import Participant, Room

logger = logging.getLogger(__name__)

MIN_CORRECT_POINTS = 100
MAX_CORRECT_POINTS = 500
POINTS_LOST_PER_SECOND = 20


def score_answer(correct: bool, time_spent: float) -> int:
    """Points for one answer. Faster correct answers score more, floor of 100."""
    if not correct:
        return 0
    points = MAX_CORRECT_POINTS - POINTS_LOST_PER_SECOND * max(0.0, time_spent)
    return int(max(MIN_CORRECT_POINTS, points))


def rank_participants(room: Room) -> list[Participant]:
    """Highest score first. Equal scores keep join order."""
    return sorted(room.participants, key=lambda p: -p.score)


@dataclass
class Payout:
    user_id: str
    position: int
    score: int
    winnings: int
    correct_answers: int = 0


@dataclass
class Settlement:
    """Result of paying out a room."""

    room_id: str
    total_prize: int
    payouts: list[Payout] = field(default_factory=list)
    house_take: int = 0

    @property
    def winner_id(self) -> str | None:
        return self.payouts[0].user_id if self.payouts else None

    def winnings_for(self, user_id: str) -> int:
        for p in self.payouts:
            if p.user_id == user_id:
                return p.winnings
        return 0


def settle(room: Room) -> Settlement:
    """Rank the room and map its prize table onto the ranking.

    Ranks 1-3 take their row's amount. The "4+" row is split evenly (floored)
    between everyone ranked 4th or lower. Whatever is not paid out, rounding
    remainders and rows with nobody to claim them, is the house take.
    """
    total = total_prize(room)
    entries = prize_distribution(total, room.distribution_type)
    ranked = rank_participants(room)

    by_position = {e.position: e.amount for e in entries}
    overflow = ranked[3:]
    overflow_share = 0
    if OVERFLOW_POSITION in by_position and overflow:
        overflow_share = by_position[OVERFLOW_POSITION] // len(overflow)

    payouts = []
    for index, participant in enumerate(ranked):
        position = index + 1
        if position in by_position:
            winnings = by_position[position]
        elif position > 3:
            winnings = overflow_share
        else:
            winnings = 0
        payouts.append(
            Payout(
                user_id=participant.user_id,
                position=position,
                score=participant.score,
                winnings=winnings,
                correct_answers=participant.correct_answers,
            )
        )

    paid = sum(p.winnings for p in payouts)
    settlement = Settlement(
        room_id=room.id,
        total_prize=total,
        payouts=payouts,
        house_take=total - paid,
    )
    logger.debug(
        f"Settled room {room.id}: {len(payouts)} payouts, "
        f"{paid}/{total} paid, house take {settlement.house_take}"
    )
    return settlement
