"""
arena/db.py - SQLite storage for quiz rooms and wallets.

All queries go through ArenaDB. One instance per server lifetime,
backed by a single SQLite file (or :memory: for tests).

Wallet balances are never stored: a balance is the starting balance plus
the signed sum of that user's transactions.
"""

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from quizarena import ledger
from quizarena.ledger import HOUSE_ACCOUNT, InsufficientFundsError
from quizarena.rooms import DistributionType
from quizarena.settlement import Settlement


class ArenaDB:
    """Thin wrapper around SQLite for room + ledger storage."""

    def __init__(
        self,
        path: str = "arena.db",
        starting_balance: int = ledger.DEFAULT_STARTING_BALANCE,
    ):
        self.starting_balance = starting_balance
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        # Endpoints run in a threadpool; room updates are read-check-write
        self._lock = threading.RLock()
        self._create_tables()

    def _create_tables(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS rooms (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                host_id TEXT,
                entry_fee INTEGER NOT NULL DEFAULT 0,
                distribution_type TEXT NOT NULL DEFAULT 'winner-takes-all',
                allow_double_down INTEGER NOT NULL DEFAULT 0,
                max_players INTEGER NOT NULL DEFAULT 10,
                min_players_to_start INTEGER NOT NULL DEFAULT 2,
                status TEXT DEFAULT 'waiting',
                double_down_of TEXT,
                double_down_room_id TEXT,
                question_ids TEXT NOT NULL DEFAULT '[]',
                created_at TEXT,
                started_at TEXT,
                completed_at TEXT
            );

            CREATE TABLE IF NOT EXISTS participants (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                room_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                is_host INTEGER NOT NULL DEFAULT 0,
                is_ready INTEGER NOT NULL DEFAULT 0,
                bet_amount INTEGER NOT NULL DEFAULT 0,
                score INTEGER NOT NULL DEFAULT 0,
                correct_answers INTEGER NOT NULL DEFAULT 0,
                position INTEGER,
                winnings INTEGER,
                has_doubled_down INTEGER NOT NULL DEFAULT 0,
                joined_at TEXT,
                UNIQUE (room_id, user_id)
            );

            CREATE TABLE IF NOT EXISTS answers (
                room_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                question_index INTEGER NOT NULL,
                question_id INTEGER NOT NULL,
                answer_index INTEGER NOT NULL,
                is_correct INTEGER NOT NULL,
                time_spent REAL NOT NULL DEFAULT 0,
                points INTEGER NOT NULL,
                answered_at TEXT,
                PRIMARY KEY (room_id, user_id, question_index)
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                kind TEXT NOT NULL,
                amount INTEGER NOT NULL,
                room_id TEXT,
                description TEXT,
                created_at TEXT
            );
            """
        )

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def transactions(self, user_id: str) -> list[dict[str, Any]]:
        """All transactions for a user, oldest first."""
        rows = self._conn.execute(
            "SELECT * FROM transactions WHERE user_id = ? ORDER BY id ASC",
            (user_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    def balance(self, user_id: str) -> int:
        starting = 0 if user_id == HOUSE_ACCOUNT else self.starting_balance
        return ledger.balance(self.transactions(user_id), starting)

    def _add_transaction(
        self,
        user_id: str,
        kind: str,
        amount: int,
        room_id: str | None = None,
        description: str = "",
    ) -> dict[str, Any]:
        """Insert a ledger row without committing."""
        now = _now()
        cursor = self._conn.execute(
            "INSERT INTO transactions (user_id, kind, amount, room_id, description, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (user_id, kind, amount, room_id, description, now),
        )
        return {
            "id": cursor.lastrowid,
            "user_id": user_id,
            "kind": kind,
            "amount": amount,
            "room_id": room_id,
            "description": description,
            "created_at": now,
        }

    def _debit(
        self,
        user_id: str,
        amount: int,
        kind: str,
        room_id: str | None = None,
        description: str = "",
    ) -> dict[str, Any]:
        """Take money out of a wallet. Raises InsufficientFundsError."""
        current = self.balance(user_id)
        if amount > current:
            raise InsufficientFundsError(user_id, current, amount)
        return self._add_transaction(user_id, kind, -amount, room_id, description)

    def deposit(self, user_id: str, amount: int) -> dict[str, Any]:
        with self._lock:
            tx = self._add_transaction(user_id, ledger.DEPOSIT, amount, description="Deposit")
            self._conn.commit()
            return tx

    def withdraw(self, user_id: str, amount: int) -> dict[str, Any]:
        with self._lock:
            tx = self._debit(user_id, amount, ledger.WITHDRAW, description="Withdrawal")
            self._conn.commit()
            return tx

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def create_room(
        self,
        host_id: str,
        name: str,
        entry_fee: int,
        distribution_type: DistributionType | str = DistributionType.WINNER_TAKES_ALL,
        allow_double_down: bool = True,
        max_players: int = 10,
        min_players_to_start: int = 2,
        double_down_of: str | None = None,
    ) -> str:
        """Create a room with the host seated. Returns room_id.

        The host pays the entry fee (as a double_down stake for rematch
        rooms). Raises InsufficientFundsError before anything is written.
        """
        room_id = str(uuid.uuid4())
        now = _now()
        stake_kind = ledger.DOUBLE_DOWN if double_down_of else ledger.BET
        with self._lock:
            if entry_fee > 0:
                self._debit(
                    host_id, entry_fee, stake_kind, room_id,
                    f"Entry into room {name}",
                )
            self._conn.execute(
                "INSERT INTO rooms (id, name, host_id, entry_fee, distribution_type, "
                "allow_double_down, max_players, min_players_to_start, status, "
                "double_down_of, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, 'waiting', ?, ?)",
                (
                    room_id,
                    name,
                    host_id,
                    entry_fee,
                    DistributionType.parse(distribution_type).value,
                    int(allow_double_down),
                    max_players,
                    min_players_to_start,
                    double_down_of,
                    now,
                ),
            )
            self._conn.execute(
                "INSERT INTO participants (room_id, user_id, is_host, bet_amount, "
                "has_doubled_down, joined_at) VALUES (?, ?, 1, ?, ?, ?)",
                (room_id, host_id, entry_fee, int(double_down_of is not None), now),
            )
            self._conn.commit()
        return room_id

    def get_room(self, room_id: str) -> dict[str, Any] | None:
        """Fetch a room with its participants (join order)."""
        row = self._conn.execute("SELECT * FROM rooms WHERE id = ?", (room_id,)).fetchone()
        if row is None:
            return None
        room = dict(row)
        room["allow_double_down"] = bool(room["allow_double_down"])
        room["question_ids"] = json.loads(room["question_ids"] or "[]")
        room["participants"] = self._participants(room_id)
        return room

    def _participants(self, room_id: str) -> list[dict[str, Any]]:
        rows = self._conn.execute(
            "SELECT * FROM participants WHERE room_id = ? ORDER BY seq ASC", (room_id,)
        ).fetchall()
        participants = []
        for r in rows:
            p = dict(r)
            del p["seq"]
            for flag in ("is_host", "is_ready", "has_doubled_down"):
                p[flag] = bool(p[flag])
            participants.append(p)
        return participants

    def list_open_rooms(self) -> list[dict[str, Any]]:
        """Waiting rooms that still have a free seat, oldest first."""
        rows = self._conn.execute(
            "SELECT r.id FROM rooms r WHERE r.status = 'waiting' AND "
            "(SELECT COUNT(*) FROM participants p WHERE p.room_id = r.id) < r.max_players "
            "ORDER BY r.created_at ASC"
        ).fetchall()
        return [self.get_room(r["id"]) for r in rows]

    def join_room(self, room_id: str, user_id: str) -> dict[str, Any] | None:
        """Seat a user, charging the entry fee.

        Returns the updated room, or None if the room is missing, not
        waiting, or full. Joining twice is a no-op.
        """
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["status"] != "waiting":
                return None
            if any(p["user_id"] == user_id for p in room["participants"]):
                return room
            if len(room["participants"]) >= room["max_players"]:
                return None

            fee = room["entry_fee"]
            if fee > 0:
                self._debit(
                    user_id, fee, ledger.BET, room_id, f"Entry into room {room['name']}"
                )
            self._conn.execute(
                "INSERT INTO participants (room_id, user_id, bet_amount, joined_at) "
                "VALUES (?, ?, ?, ?)",
                (room_id, user_id, fee, _now()),
            )
            self._conn.commit()
            return self.get_room(room_id)

    def leave_room(self, room_id: str, user_id: str) -> dict[str, Any] | None:
        """Unseat a user from a waiting room and refund their bet.

        The next participant in join order becomes host if the host leaves.
        A room left empty is cancelled. Returns the updated room, or None if
        the room is missing or no longer waiting.
        """
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["status"] != "waiting":
                return None
            seat = next((p for p in room["participants"] if p["user_id"] == user_id), None)
            if seat is None:
                return room

            self._conn.execute(
                "DELETE FROM participants WHERE room_id = ? AND user_id = ?",
                (room_id, user_id),
            )
            if seat["bet_amount"] > 0:
                self._add_transaction(
                    user_id, ledger.REFUND, seat["bet_amount"], room_id,
                    f"Left room {room['name']}",
                )

            remaining = [p for p in room["participants"] if p["user_id"] != user_id]
            if not remaining:
                self._conn.execute(
                    "UPDATE rooms SET status = 'cancelled', host_id = NULL WHERE id = ?",
                    (room_id,),
                )
            elif seat["is_host"]:
                new_host = remaining[0]["user_id"]
                self._conn.execute(
                    "UPDATE participants SET is_host = 1 WHERE room_id = ? AND user_id = ?",
                    (room_id, new_host),
                )
                self._conn.execute(
                    "UPDATE rooms SET host_id = ? WHERE id = ?", (new_host, room_id)
                )
            self._conn.commit()
            return self.get_room(room_id)

    def set_ready(self, room_id: str, user_id: str, ready: bool) -> dict[str, Any] | None:
        """Set a participant's ready flag. None if the room isn't waiting."""
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["status"] != "waiting":
                return None
            self._conn.execute(
                "UPDATE participants SET is_ready = ? WHERE room_id = ? AND user_id = ?",
                (int(ready), room_id, user_id),
            )
            self._conn.commit()
            return self.get_room(room_id)

    def start_room(self, room_id: str, question_ids: list[int]) -> dict[str, Any] | None:
        """Mark everyone ready, fix the question set and move the room to active.

        None if the room isn't waiting or is below its minimum player count.
        """
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["status"] != "waiting":
                return None
            if len(room["participants"]) < room["min_players_to_start"]:
                return None
            self._conn.execute(
                "UPDATE participants SET is_ready = 1 WHERE room_id = ?", (room_id,)
            )
            self._conn.execute(
                "UPDATE rooms SET status = 'active', started_at = ?, question_ids = ? "
                "WHERE id = ?",
                (_now(), json.dumps(list(question_ids)), room_id),
            )
            self._conn.commit()
            return self.get_room(room_id)

    def record_answer(
        self,
        room_id: str,
        user_id: str,
        question_index: int,
        answer_index: int,
        is_correct: bool,
        points: int,
        time_spent: float = 0.0,
    ) -> bool:
        """Store a graded answer and add its points to the participant's score.

        Each participant answers each question index once. False if the
        question was already answered, the user isn't seated, the room isn't
        active or the index is outside the room's question set.
        """
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["status"] != "active":
                return False
            if not 0 <= question_index < len(room["question_ids"]):
                return False
            if not any(p["user_id"] == user_id for p in room["participants"]):
                return False
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO answers (room_id, user_id, question_index, "
                "question_id, answer_index, is_correct, time_spent, points, answered_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    room_id,
                    user_id,
                    question_index,
                    room["question_ids"][question_index],
                    answer_index,
                    int(is_correct),
                    time_spent,
                    points,
                    _now(),
                ),
            )
            if cursor.rowcount == 0:
                return False
            self._conn.execute(
                "UPDATE participants SET score = score + ?, "
                "correct_answers = correct_answers + ? WHERE room_id = ? AND user_id = ?",
                (points, int(is_correct), room_id, user_id),
            )
            self._conn.commit()
            return True

    def answers(self, room_id: str, user_id: str) -> list[dict[str, Any]]:
        """A participant's answers in question order."""
        rows = self._conn.execute(
            "SELECT * FROM answers WHERE room_id = ? AND user_id = ? "
            "ORDER BY question_index ASC",
            (room_id, user_id),
        ).fetchall()
        answers = []
        for r in rows:
            a = dict(r)
            a["is_correct"] = bool(a["is_correct"])
            answers.append(a)
        return answers

    def complete_room(self, room_id: str, settlement: Settlement) -> dict[str, Any] | None:
        """Record a settlement: positions, winnings and ledger credits.

        None if the room isn't active.
        """
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["status"] != "active":
                return None

            for payout in settlement.payouts:
                self._conn.execute(
                    "UPDATE participants SET position = ?, winnings = ? "
                    "WHERE room_id = ? AND user_id = ?",
                    (payout.position, payout.winnings, room_id, payout.user_id),
                )
                if payout.winnings > 0:
                    self._add_transaction(
                        payout.user_id, ledger.WINNING, payout.winnings, room_id,
                        f"Prize from room {room['name']} - position {payout.position}",
                    )
            if settlement.house_take > 0:
                self._add_transaction(
                    HOUSE_ACCOUNT, ledger.HOUSE, settlement.house_take, room_id,
                    f"Undistributed prize from room {room['name']}",
                )
            self._conn.execute(
                "UPDATE rooms SET status = 'completed', completed_at = ? WHERE id = ?",
                (_now(), room_id),
            )
            self._conn.commit()
            return self.get_room(room_id)

    def create_double_down_room(self, room_id: str, user_id: str, stake: int) -> str | None:
        """Open a double-or-nothing rematch staked with `stake`.

        The rematch is winner-takes-all and cannot itself be doubled. Returns
        the new room id, or None if the original room already has a rematch.
        """
        with self._lock:
            room = self.get_room(room_id)
            if room is None or room["double_down_room_id"] is not None:
                return None
            new_id = self.create_room(
                host_id=user_id,
                name=f"{room['name']} (Double or Nothing)",
                entry_fee=stake,
                distribution_type=DistributionType.WINNER_TAKES_ALL,
                allow_double_down=False,
                max_players=room["max_players"],
                min_players_to_start=room["min_players_to_start"],
                double_down_of=room_id,
            )
            self._conn.execute(
                "UPDATE rooms SET double_down_room_id = ? WHERE id = ?", (new_id, room_id)
            )
            self._conn.commit()
            return new_id

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def open_rooms(self) -> int:
        """Number of rooms waiting for players."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM rooms WHERE status = 'waiting'"
        ).fetchone()[0]

    def active_rooms(self) -> int:
        """Number of rooms currently playing."""
        return self._conn.execute(
            "SELECT COUNT(*) FROM rooms WHERE status = 'active'"
        ).fetchone()[0]


def _now() -> str:
    """ISO timestamp in UTC."""
    return datetime.now(timezone.utc).isoformat()
