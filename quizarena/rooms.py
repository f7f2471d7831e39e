"""
quizarena/rooms.py - Room and participant data model.

Rooms come out of storage as plain dicts. Room.from_record() turns them into
typed objects without ever failing: missing fields get defaults, unknown
distribution types fall back to winner-takes-all and unknown statuses
read as waiting.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# ============================================================================
# Distribution type
# ============================================================================


class DistributionType(str, Enum):
    """How a room's prize pool is paid out by rank."""

    WINNER_TAKES_ALL = "winner-takes-all"
    TOP3 = "top3"
    PROPORTIONAL = "proportional"

    @classmethod
    def parse(cls, value: "DistributionType | str | None") -> "DistributionType":
        """Map any value onto a distribution type.

        Unknown strings and None land on WINNER_TAKES_ALL.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.WINNER_TAKES_ALL


class RoomStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: "RoomStatus | str | None") -> "RoomStatus":
        """Unknown strings and None read as WAITING."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.WAITING


# ============================================================================
# Data types
# ============================================================================


@dataclass
class Participant:
    """A player seated in a room."""

    user_id: str
    bet_amount: int = 0
    is_host: bool = False
    is_ready: bool = False
    score: int = 0
    correct_answers: int = 0
    has_doubled_down: bool = False
    joined_at: str | None = None

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Participant":
        return cls(
            user_id=str(data["user_id"]),
            bet_amount=int(data.get("bet_amount") or 0),
            is_host=bool(data.get("is_host")),
            is_ready=bool(data.get("is_ready")),
            score=int(data.get("score") or 0),
            correct_answers=int(data.get("correct_answers") or 0),
            has_doubled_down=bool(data.get("has_doubled_down")),
            joined_at=data.get("joined_at"),
        )


@dataclass
class Room:
    """A quiz lobby and its prize pool."""

    id: str
    entry_fee: int = 0
    participants: list[Participant] = field(default_factory=list)
    distribution_type: DistributionType = DistributionType.WINNER_TAKES_ALL
    allow_double_down: bool = False
    name: str = ""
    host_id: str | None = None
    max_players: int = 10
    min_players_to_start: int = 2
    status: RoomStatus = RoomStatus.WAITING
    double_down_of: str | None = None
    double_down_room_id: str | None = None
    question_ids: list[int] = field(default_factory=list)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Room":
        """Build a Room from a storage dict (see ArenaDB.get_room)."""
        return cls(
            id=str(data.get("id", "")),
            entry_fee=int(data.get("entry_fee") or 0),
            participants=[
                Participant.from_record(p) for p in data.get("participants") or []
            ],
            distribution_type=DistributionType.parse(data.get("distribution_type")),
            allow_double_down=bool(data.get("allow_double_down")),
            name=data.get("name") or "",
            host_id=data.get("host_id"),
            max_players=int(data.get("max_players") or 10),
            min_players_to_start=int(data.get("min_players_to_start") or 2),
            status=RoomStatus.parse(data.get("status")),
            double_down_of=data.get("double_down_of"),
            double_down_room_id=data.get("double_down_room_id"),
            question_ids=[int(q) for q in data.get("question_ids") or []],
        )

    def find(self, user_id: str | None) -> Participant | None:
        """The participant with this user id, if seated."""
        if user_id is None:
            return None
        for p in self.participants:
            if p.user_id == user_id:
                return p
        return None

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= self.max_players
