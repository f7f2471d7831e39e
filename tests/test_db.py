"""Tests for arena/db.py: room lifecycle and wallet ledger in SQLite."""

import pytest

from arena.db import ArenaDB
from quizarena import ledger
from quizarena.ledger import HOUSE_ACCOUNT, InsufficientFundsError
from quizarena.rooms import Room
from quizarena.settlement import settle


@pytest.fixture
def db():
    """Fresh in-memory DB for each test."""
    return ArenaDB(":memory:")


QUESTION_IDS = [1, 2, 3]


def _room(db, host="alice", fee=100, **kwargs):
    return db.create_room(host_id=host, name="Trivia Night", entry_fee=fee, **kwargs)


def _answer(db, room_id, user_id, points, question_index=0):
    """Store a graded answer worth `points` (correct when points > 0)."""
    return db.record_answer(room_id, user_id, question_index, 0, points > 0, points)


# ======================================================================
# Wallets
# ======================================================================


class TestWallet:
    def test_starting_balance(self, db):
        assert db.balance("alice") == 1000

    def test_custom_starting_balance(self):
        assert ArenaDB(":memory:", starting_balance=50).balance("bob") == 50

    def test_deposit_and_withdraw(self, db):
        db.deposit("alice", 250)
        db.withdraw("alice", 1000)
        assert db.balance("alice") == 250
        kinds = [tx["kind"] for tx in db.transactions("alice")]
        assert kinds == [ledger.DEPOSIT, ledger.WITHDRAW]

    def test_overdraft_raises(self, db):
        with pytest.raises(InsufficientFundsError):
            db.withdraw("alice", 1001)
        assert db.transactions("alice") == []

    def test_house_starts_empty(self, db):
        assert db.balance(HOUSE_ACCOUNT) == 0


# ======================================================================
# Rooms
# ======================================================================


class TestCreateRoom:
    def test_host_is_seated_and_charged(self, db):
        room_id = _room(db, fee=100)
        room = db.get_room(room_id)
        assert room["status"] == "waiting"
        assert room["host_id"] == "alice"
        assert [p["user_id"] for p in room["participants"]] == ["alice"]
        assert room["participants"][0]["is_host"] is True
        assert room["participants"][0]["bet_amount"] == 100
        assert db.balance("alice") == 900

    def test_free_room_writes_no_transaction(self, db):
        _room(db, fee=0)
        assert db.transactions("alice") == []

    def test_insufficient_funds_creates_nothing(self, db):
        with pytest.raises(InsufficientFundsError):
            _room(db, fee=5000)
        assert db.list_open_rooms() == []

    def test_unknown_distribution_stored_as_default(self, db):
        room = db.get_room(_room(db, distribution_type="random-mode"))
        assert room["distribution_type"] == "winner-takes-all"

    def test_get_missing_room(self, db):
        assert db.get_room("nope") is None


class TestJoinRoom:
    def test_join_charges_fee(self, db):
        room_id = _room(db, fee=100)
        room = db.join_room(room_id, "bob")
        assert [p["user_id"] for p in room["participants"]] == ["alice", "bob"]
        assert db.balance("bob") == 900

    def test_join_twice_is_noop(self, db):
        room_id = _room(db, fee=100)
        db.join_room(room_id, "bob")
        room = db.join_room(room_id, "bob")
        assert len(room["participants"]) == 2
        assert db.balance("bob") == 900

    def test_full_room(self, db):
        room_id = _room(db, max_players=2)
        db.join_room(room_id, "bob")
        assert db.join_room(room_id, "carol") is None
        assert db.balance("carol") == 1000

    def test_broke_player_not_seated(self, db):
        room_id = _room(db, fee=100)
        db.withdraw("bob", 950)
        with pytest.raises(InsufficientFundsError):
            db.join_room(room_id, "bob")
        assert len(db.get_room(room_id)["participants"]) == 1

    def test_full_room_hidden_from_open_list(self, db):
        open_id = _room(db, max_players=3)
        full_id = _room(db, host="bob", max_players=2)
        db.join_room(full_id, "carol")
        assert [r["id"] for r in db.list_open_rooms()] == [open_id]


class TestLeaveRoom:
    def test_leave_refunds(self, db):
        room_id = _room(db, fee=100)
        db.join_room(room_id, "bob")
        room = db.leave_room(room_id, "bob")
        assert [p["user_id"] for p in room["participants"]] == ["alice"]
        assert db.balance("bob") == 1000

    def test_host_leaving_passes_host(self, db):
        room_id = _room(db)
        db.join_room(room_id, "bob")
        db.join_room(room_id, "carol")
        room = db.leave_room(room_id, "alice")
        assert room["host_id"] == "bob"
        assert room["participants"][0]["is_host"] is True

    def test_last_player_cancels_room(self, db):
        room_id = _room(db)
        room = db.leave_room(room_id, "alice")
        assert room["status"] == "cancelled"
        assert db.open_rooms() == 0
        assert db.balance("alice") == 1000

    def test_cannot_leave_active_room(self, db):
        room_id = _room(db)
        db.join_room(room_id, "bob")
        db.start_room(room_id, QUESTION_IDS)
        assert db.leave_room(room_id, "bob") is None


class TestStartRoom:
    def test_needs_min_players(self, db):
        room_id = _room(db)
        assert db.start_room(room_id, QUESTION_IDS) is None

    def test_start_marks_everyone_ready(self, db):
        room_id = _room(db)
        db.join_room(room_id, "bob")
        room = db.start_room(room_id, QUESTION_IDS)
        assert room["status"] == "active"
        assert all(p["is_ready"] for p in room["participants"])
        assert db.active_rooms() == 1

    def test_join_after_start_rejected(self, db):
        room_id = _room(db)
        db.join_room(room_id, "bob")
        db.start_room(room_id, QUESTION_IDS)
        assert db.join_room(room_id, "carol") is None


class TestRecordAnswer:
    def _started(self, db):
        room_id = _room(db)
        db.join_room(room_id, "bob")
        db.start_room(room_id, QUESTION_IDS)
        return room_id

    def test_question_set_stored_on_start(self, db):
        room_id = self._started(db)
        assert db.get_room(room_id)["question_ids"] == QUESTION_IDS

    def test_answers_only_in_active_room(self, db):
        room_id = _room(db)
        db.join_room(room_id, "bob")
        assert _answer(db, room_id, "bob", 300) is False
        db.start_room(room_id, QUESTION_IDS)
        assert _answer(db, room_id, "bob", 300, question_index=0) is True
        assert _answer(db, room_id, "bob", 200, question_index=1) is True
        scores = {p["user_id"]: p["score"] for p in db.get_room(room_id)["participants"]}
        assert scores == {"alice": 0, "bob": 500}

    def test_second_answer_to_same_question_rejected(self, db):
        room_id = self._started(db)
        assert _answer(db, room_id, "bob", 500, question_index=2) is True
        assert _answer(db, room_id, "bob", 500, question_index=2) is False
        bob = db.get_room(room_id)["participants"][1]
        assert bob["score"] == 500
        assert bob["correct_answers"] == 1
        assert len(db.answers(room_id, "bob")) == 1

    def test_question_index_out_of_range(self, db):
        room_id = self._started(db)
        assert _answer(db, room_id, "bob", 500, question_index=len(QUESTION_IDS)) is False

    def test_wrong_answers_stored_without_points(self, db):
        room_id = self._started(db)
        _answer(db, room_id, "bob", 0)
        (answer,) = db.answers(room_id, "bob")
        assert answer["is_correct"] is False
        assert answer["question_id"] == QUESTION_IDS[0]
        bob = db.get_room(room_id)["participants"][1]
        assert (bob["score"], bob["correct_answers"]) == (0, 0)

    def test_answer_from_stranger_rejected(self, db):
        room_id = self._started(db)
        assert _answer(db, room_id, "mallory", 500) is False
        assert db.answers(room_id, "mallory") == []


class TestCompleteRoom:
    def _played_room(self, db, distribution="top3", fee=100):
        room_id = _room(db, fee=fee, distribution_type=distribution)
        for user in ("bob", "carol", "dave"):
            db.join_room(room_id, user)
        db.start_room(room_id, QUESTION_IDS)
        _answer(db, room_id, "carol", 900)
        _answer(db, room_id, "bob", 500)
        _answer(db, room_id, "dave", 100)
        return room_id

    def test_payouts_written_to_ledger(self, db):
        room_id = self._played_room(db)
        settlement = settle(Room.from_record(db.get_room(room_id)))
        room = db.complete_room(room_id, settlement)

        assert room["status"] == "completed"
        positions = {p["user_id"]: (p["position"], p["winnings"]) for p in room["participants"]}
        assert positions == {
            "carol": (1, 240),
            "bob": (2, 120),
            "dave": (3, 40),
            "alice": (4, 0),
        }
        assert db.balance("carol") == 900 + 240
        assert db.balance("alice") == 900

    def test_house_receives_remainder(self, db):
        room_id = self._played_room(db, distribution="proportional", fee=37)
        settlement = settle(Room.from_record(db.get_room(room_id)))
        db.complete_room(room_id, settlement)
        # pool 148 → 74 / 37 / 22 / 14, all claimed; remainder 1
        assert settlement.house_take == 1
        assert db.balance(HOUSE_ACCOUNT) == 1

    def test_ledger_balances(self, db):
        room_id = self._played_room(db, fee=37)
        settlement = settle(Room.from_record(db.get_room(room_id)))
        db.complete_room(room_id, settlement)
        paid_in = sum(
            -tx["amount"]
            for user in ("alice", "bob", "carol", "dave")
            for tx in db.transactions(user)
            if tx["kind"] == ledger.BET
        )
        paid_out = sum(
            tx["amount"]
            for user in ("alice", "bob", "carol", "dave", HOUSE_ACCOUNT)
            for tx in db.transactions(user)
            if tx["kind"] in (ledger.WINNING, ledger.HOUSE)
        )
        assert paid_in == paid_out == 148

    def test_cannot_complete_twice(self, db):
        room_id = self._played_room(db)
        settlement = settle(Room.from_record(db.get_room(room_id)))
        db.complete_room(room_id, settlement)
        assert db.complete_room(room_id, settlement) is None
        assert db.balance("carol") == 900 + 240


class TestDoubleDownRoom:
    def test_rematch_staked_with_winnings(self, db):
        room_id = _room(db, fee=100)
        db.join_room(room_id, "bob")
        db.start_room(room_id, QUESTION_IDS)
        _answer(db, room_id, "bob", 500)
        db.complete_room(room_id, settle(Room.from_record(db.get_room(room_id))))
        assert db.balance("bob") == 1100

        new_id = db.create_double_down_room(room_id, "bob", 200)
        rematch = db.get_room(new_id)
        assert rematch["entry_fee"] == 200
        assert rematch["distribution_type"] == "winner-takes-all"
        assert rematch["allow_double_down"] is False
        assert rematch["double_down_of"] == room_id
        assert rematch["participants"][0]["has_doubled_down"] is True
        assert db.get_room(room_id)["double_down_room_id"] == new_id
        assert db.balance("bob") == 900
        assert db.transactions("bob")[-1]["kind"] == ledger.DOUBLE_DOWN

    def test_only_once(self, db):
        room_id = _room(db, fee=0)
        assert db.create_double_down_room(room_id, "alice", 0) is not None
        assert db.create_double_down_room(room_id, "alice", 0) is None
