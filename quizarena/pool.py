"""
quizarena/pool.py - Prize pool and per-user wager lookups.

Pure functions over a Room; nothing here touches storage.
"""

from quizarena.rooms import Room


def total_prize(room: Room) -> int:
    """Entry fee times the number of seated participants.

    Uses the room's uniform entry fee, not the sum of individual bets.
    """
    return room.entry_fee * len(room.participants)


def user_bet(room: Room, user_id: str | None) -> int:
    """What this user has staked in the room. 0 for spectators."""
    participant = room.find(user_id)
    if participant is None:
        return 0
    return participant.bet_amount


def prize_pool(room: Room) -> int:
    """Sum of the bets actually placed by participants."""
    return sum(p.bet_amount for p in room.participants)
