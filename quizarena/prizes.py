"""
quizarena/prizes.py - Prize table per distribution type.

Each distribution type maps to a fixed list of (position, percentage) rows.
Amounts are floored per row with integer arithmetic, so the amounts can sum
to less than the pool. That remainder is reported, never spread across rows.
"""

from dataclasses import dataclass, field

from quizarena.pool import total_prize, user_bet
from quizarena.rooms import DistributionType, Room

# Position label for the aggregate row of the proportional table
OVERFLOW_POSITION = "4+"


@dataclass(frozen=True)
class PrizeEntry:
    """One payout row: a rank (or the aggregate "4+"), its share and amount."""

    position: int | str
    percentage: int
    amount: int


# Rows per distribution type. Percentages in each table sum to 100.
PRIZE_TABLES: dict[DistributionType, list[tuple[int | str, int]]] = {
    DistributionType.WINNER_TAKES_ALL: [(1, 100)],
    DistributionType.TOP3: [(1, 60), (2, 30), (3, 10)],
    DistributionType.PROPORTIONAL: [(1, 50), (2, 25), (3, 15), (OVERFLOW_POSITION, 10)],
}


def prize_distribution(
    total: int, distribution_type: DistributionType | str | None
) -> list[PrizeEntry]:
    """Payout breakdown of `total` under the given distribution type.

    Unknown or missing types get the winner-takes-all table.
    """
    rows = PRIZE_TABLES[DistributionType.parse(distribution_type)]
    return [
        PrizeEntry(position=position, percentage=pct, amount=total * pct // 100)
        for position, pct in rows
    ]


def undistributed(entries: list[PrizeEntry], total: int) -> int:
    """Rounding remainder left over after flooring each row."""
    return max(0, total - sum(e.amount for e in entries))


@dataclass
class BettingInfo:
    """Everything the lobby shows about a room's wagers."""

    room_id: str
    user_bet: int
    total_prize: int
    distribution_type: DistributionType
    prizes: list[PrizeEntry] = field(default_factory=list)
    remainder: int = 0
    allow_double_down: bool = False


def betting_info(room: Room, user_id: str | None) -> BettingInfo:
    """Lobby view of a room for the given user (None for anonymous)."""
    total = total_prize(room)
    prizes = prize_distribution(total, room.distribution_type)
    return BettingInfo(
        room_id=room.id,
        user_bet=user_bet(room, user_id),
        total_prize=total,
        distribution_type=room.distribution_type,
        prizes=prizes,
        remainder=undistributed(prizes, total),
        allow_double_down=room.allow_double_down,
    )
