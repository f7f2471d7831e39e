"""
CS Quiz Arena - Trivia quiz rooms with betting-style prize pools.

Players pay an entry fee, answer questions for points, and the pool is paid
out by rank according to the room's distribution type.
"""

__version__ = "0.1.0"

from .rooms import (
    DistributionType,
    RoomStatus,
    Participant,
    Room,
)

from .pool import (
    total_prize,
    user_bet,
    prize_pool,
)

from .prizes import (
    PrizeEntry,
    PRIZE_TABLES,
    BettingInfo,
    prize_distribution,
    undistributed,
    betting_info,
)

from .questions import (
    Question,
    QUESTION_BANK,
    pick_questions,
    check_answer,
)

from .settlement import (
    Payout,
    Settlement,
    score_answer,
    rank_participants,
    settle,
)

from .ledger import (
    HOUSE_ACCOUNT,
    BettingStats,
    InsufficientFundsError,
    betting_stats,
)

__all__ = [
    # Version
    "__version__",
    # Data model
    "DistributionType",
    "RoomStatus",
    "Participant",
    "Room",
    # Pool
    "total_prize",
    "user_bet",
    "prize_pool",
    # Prize table
    "PrizeEntry",
    "PRIZE_TABLES",
    "BettingInfo",
    "prize_distribution",
    "undistributed",
    "betting_info",
    # Questions
    "Question",
    "QUESTION_BANK",
    "pick_questions",
    "check_answer",
    # Settlement
    "Payout",
    "Settlement",
    "score_answer",
    "rank_participants",
    "settle",
    # Ledger
    "HOUSE_ACCOUNT",
    "BettingStats",
    "InsufficientFundsError",
    "betting_stats",
]
