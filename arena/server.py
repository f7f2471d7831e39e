"""
arena/server.py - FastAPI server for CS Quiz Arena.

Endpoints:
    POST   /rooms                      Create a room (host pays the entry fee)
    GET    /rooms                      List rooms waiting for players
    GET    /rooms/{id}                 Room details
    GET    /rooms/{id}/betting         Prize pool and payout table for a user
    POST   /rooms/{id}/join            Join a room (pays the entry fee)
    POST   /rooms/{id}/leave           Leave a waiting room (bet refunded)
    POST   /rooms/{id}/ready           Toggle ready
    POST   /rooms/{id}/start           Host starts the quiz (questions are drawn)
    GET    /rooms/{id}/questions       The room's questions, without answers
    POST   /rooms/{id}/answers         Grade and score one answer
    POST   /rooms/{id}/finish          Host settles the room and pays out
    POST   /rooms/{id}/double-down     Winner opens a double-or-nothing rematch
    GET    /users/{id}/wallet          Wallet balance
    GET    /users/{id}/transactions    Transaction history
    GET    /users/{id}/stats           Betting stats
    POST   /users/{id}/deposit         Add funds
    POST   /users/{id}/withdraw        Remove funds
    GET    /health                     Server health check

Callers identify themselves with an explicit user_id. Token handling lives
in front of this server, not in it.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from quizarena.config import BettingConfig, load_config
from quizarena.ledger import InsufficientFundsError, betting_stats
from quizarena.prizes import betting_info
from quizarena.questions import QUESTIONS_BY_ID, check_answer, pick_questions
from quizarena.rooms import DistributionType, Room
from quizarena.settlement import score_answer, settle

from .db import ArenaDB

logger = logging.getLogger(__name__)

# Global DB instance and betting settings, set during lifespan
_db: ArenaDB | None = None
_settings: BettingConfig | None = None


def get_db() -> ArenaDB:
    assert _db is not None, "DB not initialized"
    return _db


def get_settings() -> BettingConfig:
    return _settings or BettingConfig()


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _db, _settings
    config = getattr(app.state, "config", None) or load_config()
    db_path = getattr(app.state, "db_path", None) or config.arena.db_path
    _settings = config.betting
    _db = ArenaDB(db_path, starting_balance=_settings.starting_balance)
    logger.info(f"Arena DB initialized: {db_path}")
    logger.info(
        f"Betting defaults: starting balance {_settings.starting_balance}, "
        f"distribution {_settings.default_distribution.value}, "
        f"{_settings.min_players_to_start}-{_settings.max_players} players, "
        f"double down {'on' if _settings.allow_double_down else 'off'}"
    )

    yield
    _db = None
    _settings = None


app = FastAPI(title="CS Quiz Arena", lifespan=lifespan)

# Allow the web frontend to call arena endpoints
from starlette.middleware.cors import CORSMiddleware

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ======================================================================
# Request/Response Models
# ======================================================================


class CreateRoomRequest(BaseModel):
    user_id: str
    name: str
    entry_fee: int = Field(ge=0)
    distribution_type: DistributionType | None = None  # None: configured default
    allow_double_down: bool | None = None
    max_players: int | None = Field(default=None, ge=2)
    min_players_to_start: int | None = Field(default=None, ge=1)


class UserRequest(BaseModel):
    user_id: str


class ReadyRequest(BaseModel):
    user_id: str
    ready: bool = True


class AnswerRequest(BaseModel):
    user_id: str
    question_index: int = Field(ge=0)
    answer_index: int = Field(ge=0)
    time_spent: float = Field(default=0.0, ge=0)


class AmountRequest(BaseModel):
    amount: int = Field(gt=0)


class ParticipantResponse(BaseModel):
    user_id: str
    is_host: bool = False
    is_ready: bool = False
    bet_amount: int = 0
    score: int = 0
    correct_answers: int = 0
    position: int | None = None
    winnings: int | None = None
    has_doubled_down: bool = False
    joined_at: str | None = None


class RoomResponse(BaseModel):
    id: str
    name: str
    host_id: str | None = None
    entry_fee: int
    distribution_type: str
    allow_double_down: bool
    max_players: int
    min_players_to_start: int
    status: str
    participants: list[ParticipantResponse] = []
    current_players: int = 0
    question_count: int = 0
    double_down_of: str | None = None
    double_down_room_id: str | None = None
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None


class PrizeEntryResponse(BaseModel):
    position: int | str
    percentage: int
    amount: int


class BettingInfoResponse(BaseModel):
    room_id: str
    user_bet: int
    total_prize: int
    distribution_type: str
    prizes: list[PrizeEntryResponse]
    remainder: int
    allow_double_down: bool


class QuestionResponse(BaseModel):
    index: int
    id: int
    text: str
    options: list[str]
    category: str
    difficulty: str
    answered: bool = False


class AnswerResponse(BaseModel):
    user_id: str
    question_index: int
    correct: bool
    points: int
    score: int


class PayoutResponse(BaseModel):
    user_id: str
    position: int
    score: int
    winnings: int
    correct_answers: int


class SettlementResponse(BaseModel):
    room_id: str
    winner_id: str | None = None
    total_prize: int
    house_take: int
    payouts: list[PayoutResponse]


class WalletResponse(BaseModel):
    user_id: str
    balance: int


class TransactionResponse(BaseModel):
    id: int
    user_id: str
    kind: str
    amount: int
    room_id: str | None = None
    description: str | None = None
    created_at: str | None = None


class StatsResponse(BaseModel):
    user_id: str
    total_bets: int
    total_bet_amount: int
    total_winnings: int
    net_profit: int
    roi: float


class HealthResponse(BaseModel):
    status: str
    open_rooms: int
    active_rooms: int


# ======================================================================
# Helpers
# ======================================================================


def _room_or_404(room_id: str) -> dict[str, Any]:
    room = get_db().get_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


def _room_response(room: dict[str, Any]) -> dict[str, Any]:
    return {
        **room,
        "current_players": len(room["participants"]),
        "question_count": len(room["question_ids"]),
    }


def _insufficient_funds(e: InsufficientFundsError) -> HTTPException:
    logger.warning(str(e))
    return HTTPException(status_code=400, detail="Insufficient funds")


# ======================================================================
# Room Endpoints
# ======================================================================


@app.post("/rooms", response_model=RoomResponse)
def create_room(req: CreateRoomRequest) -> dict[str, Any]:
    """Create a room. The host is seated and pays the entry fee."""
    db = get_db()
    settings = get_settings()

    max_players = req.max_players or settings.max_players
    min_players = req.min_players_to_start or settings.min_players_to_start
    if min_players > max_players:
        raise HTTPException(
            status_code=400, detail="min_players_to_start exceeds max_players"
        )

    try:
        room_id = db.create_room(
            host_id=req.user_id,
            name=req.name,
            entry_fee=req.entry_fee,
            distribution_type=req.distribution_type or settings.default_distribution,
            allow_double_down=(
                settings.allow_double_down
                if req.allow_double_down is None
                else req.allow_double_down
            ),
            max_players=max_players,
            min_players_to_start=min_players,
        )
    except InsufficientFundsError as e:
        raise _insufficient_funds(e)

    room = db.get_room(room_id)
    logger.info(
        f"Room created: {req.name} by {req.user_id} -> {room_id} "
        f"(fee {req.entry_fee}, {room['distribution_type']})"
    )
    return _room_response(room)


@app.get("/rooms", response_model=list[RoomResponse])
def list_rooms() -> list[dict[str, Any]]:
    """Rooms waiting for players with at least one free seat."""
    return [_room_response(r) for r in get_db().list_open_rooms()]


@app.get("/rooms/{room_id}", response_model=RoomResponse)
def get_room(room_id: str) -> dict[str, Any]:
    return _room_response(_room_or_404(room_id))


@app.get("/rooms/{room_id}/betting", response_model=BettingInfoResponse)
def get_betting_info(room_id: str, user_id: str | None = None) -> dict[str, Any]:
    """Prize pool, the caller's bet and the payout table for a room."""
    room = Room.from_record(_room_or_404(room_id))
    info = betting_info(room, user_id)
    return {
        "room_id": info.room_id,
        "user_bet": info.user_bet,
        "total_prize": info.total_prize,
        "distribution_type": info.distribution_type.value,
        "prizes": [
            {"position": e.position, "percentage": e.percentage, "amount": e.amount}
            for e in info.prizes
        ],
        "remainder": info.remainder,
        "allow_double_down": info.allow_double_down,
    }


@app.post("/rooms/{room_id}/join", response_model=RoomResponse)
def join_room(room_id: str, req: UserRequest) -> dict[str, Any]:
    """Join a waiting room, paying its entry fee."""
    db = get_db()
    room = _room_or_404(room_id)
    if room["status"] != "waiting":
        raise HTTPException(status_code=400, detail="Room is not accepting players")

    try:
        updated = db.join_room(room_id, req.user_id)
    except InsufficientFundsError as e:
        raise _insufficient_funds(e)

    if updated is None:
        logger.warning(f"Join rejected for {req.user_id}: room {room_id} is full")
        raise HTTPException(status_code=409, detail="Room is full")

    logger.info(
        f"{req.user_id} joined room {room_id} "
        f"({len(updated['participants'])}/{updated['max_players']})"
    )
    return _room_response(updated)


@app.post("/rooms/{room_id}/leave", response_model=RoomResponse)
def leave_room(room_id: str, req: UserRequest) -> dict[str, Any]:
    """Leave a waiting room. The bet is refunded."""
    db = get_db()
    _room_or_404(room_id)

    updated = db.leave_room(room_id, req.user_id)
    if updated is None:
        raise HTTPException(status_code=400, detail="Room has already started")

    logger.info(f"{req.user_id} left room {room_id} (status: {updated['status']})")
    return _room_response(updated)


@app.post("/rooms/{room_id}/ready", response_model=RoomResponse)
def set_ready(room_id: str, req: ReadyRequest) -> dict[str, Any]:
    db = get_db()
    room = _room_or_404(room_id)
    if not any(p["user_id"] == req.user_id for p in room["participants"]):
        raise HTTPException(status_code=403, detail="Not a participant")

    updated = db.set_ready(room_id, req.user_id, req.ready)
    if updated is None:
        raise HTTPException(status_code=400, detail="Room has already started")
    return _room_response(updated)


@app.post("/rooms/{room_id}/start", response_model=RoomResponse)
def start_room(room_id: str, req: UserRequest) -> dict[str, Any]:
    """Start the quiz. Only the host may start, once enough players joined."""
    db = get_db()
    room = _room_or_404(room_id)

    if room["host_id"] != req.user_id:
        raise HTTPException(status_code=403, detail="Only the host can start the room")
    if room["status"] != "waiting":
        raise HTTPException(status_code=400, detail="Room has already started")
    if len(room["participants"]) < room["min_players_to_start"]:
        raise HTTPException(
            status_code=400,
            detail=f"At least {room['min_players_to_start']} players are needed to start",
        )

    questions = pick_questions(get_settings().questions_per_room)
    updated = db.start_room(room_id, [q.id for q in questions])
    if updated is None:
        raise HTTPException(status_code=400, detail="Could not start the room")

    logger.info(
        f"Room {room_id} started with {len(updated['participants'])} players, "
        f"{len(questions)} questions"
    )
    return _room_response(updated)


@app.get("/rooms/{room_id}/questions", response_model=list[QuestionResponse])
def get_questions(room_id: str, user_id: str | None = None) -> list[dict[str, Any]]:
    """The room's question set. Correct answers are never sent."""
    db = get_db()
    room = _room_or_404(room_id)
    answered = (
        {a["question_index"] for a in db.answers(room_id, user_id)} if user_id else set()
    )
    result = []
    for index, question_id in enumerate(room["question_ids"]):
        q = QUESTIONS_BY_ID[question_id]
        result.append({
            "index": index,
            "id": q.id,
            "text": q.text,
            "options": list(q.options),
            "category": q.category,
            "difficulty": q.difficulty,
            "answered": index in answered,
        })
    return result


@app.post("/rooms/{room_id}/answers", response_model=AnswerResponse)
def submit_answer(room_id: str, req: AnswerRequest) -> dict[str, Any]:
    """Grade one answer against the room's question set and score it.

    Each participant answers each question once.
    """
    db = get_db()
    room = _room_or_404(room_id)
    if room["status"] != "active":
        raise HTTPException(status_code=400, detail="Room is not in play")
    if not any(p["user_id"] == req.user_id for p in room["participants"]):
        raise HTTPException(status_code=403, detail="Not a participant")
    if req.question_index >= len(room["question_ids"]):
        raise HTTPException(status_code=400, detail="No such question")

    question = QUESTIONS_BY_ID[room["question_ids"][req.question_index]]
    if req.answer_index >= len(question.options):
        raise HTTPException(status_code=400, detail="No such option")

    correct = check_answer(question, req.answer_index)
    points = score_answer(correct, req.time_spent)
    if not db.record_answer(
        room_id, req.user_id, req.question_index, req.answer_index,
        correct, points, req.time_spent,
    ):
        logger.warning(
            f"Duplicate answer from {req.user_id} to question "
            f"{req.question_index} in room {room_id}"
        )
        raise HTTPException(status_code=409, detail="Question already answered")

    participant = Room.from_record(db.get_room(room_id)).find(req.user_id)
    return {
        "user_id": req.user_id,
        "question_index": req.question_index,
        "correct": correct,
        "points": points,
        "score": participant.score,
    }


@app.post("/rooms/{room_id}/finish", response_model=SettlementResponse)
def finish_room(room_id: str, req: UserRequest) -> dict[str, Any]:
    """Rank the players and pay out the prize pool. Only the host may finish."""
    db = get_db()
    record = _room_or_404(room_id)
    if record["host_id"] != req.user_id:
        raise HTTPException(status_code=403, detail="Only the host can finish the room")
    if record["status"] != "active":
        raise HTTPException(status_code=400, detail="Room is not in play")

    settlement = settle(Room.from_record(record))
    if db.complete_room(room_id, settlement) is None:
        raise HTTPException(status_code=400, detail="Could not finish the room")

    logger.info(
        f"Room {room_id} settled: winner {settlement.winner_id}, "
        f"pool {settlement.total_prize}, house take {settlement.house_take}"
    )
    return {
        "room_id": room_id,
        "winner_id": settlement.winner_id,
        "total_prize": settlement.total_prize,
        "house_take": settlement.house_take,
        "payouts": [
            {
                "user_id": p.user_id,
                "position": p.position,
                "score": p.score,
                "winnings": p.winnings,
                "correct_answers": p.correct_answers,
            }
            for p in settlement.payouts
        ],
    }


@app.post("/rooms/{room_id}/double-down", response_model=RoomResponse)
def double_down(room_id: str, req: UserRequest) -> dict[str, Any]:
    """Stake the winnings of a finished room on a winner-takes-all rematch."""
    db = get_db()
    record = _room_or_404(room_id)
    room = Room.from_record(record)

    if record["status"] != "completed":
        raise HTTPException(status_code=400, detail="Room has not finished")
    if not room.allow_double_down:
        raise HTTPException(status_code=400, detail="Double or nothing is disabled for this room")

    winner = min(
        (p for p in record["participants"] if p.get("position")),
        key=lambda p: p["position"],
        default=None,
    )
    if winner is None or winner["user_id"] != req.user_id:
        raise HTTPException(status_code=403, detail="Only the winner can double down")
    if room.double_down_room_id is not None:
        raise HTTPException(status_code=409, detail="Already doubled down")

    stake = winner.get("winnings") or 0
    if stake <= 0:
        raise HTTPException(status_code=400, detail="No winnings to stake")

    try:
        new_id = db.create_double_down_room(room_id, req.user_id, stake)
    except InsufficientFundsError as e:
        raise _insufficient_funds(e)
    if new_id is None:
        raise HTTPException(status_code=409, detail="Already doubled down")

    logger.info(f"{req.user_id} doubled down {stake} from room {room_id} -> {new_id}")
    return _room_response(db.get_room(new_id))


# ======================================================================
# Wallet Endpoints
# ======================================================================


@app.get("/users/{user_id}/wallet", response_model=WalletResponse)
def get_wallet(user_id: str) -> dict[str, Any]:
    return {"user_id": user_id, "balance": get_db().balance(user_id)}


@app.get("/users/{user_id}/transactions", response_model=list[TransactionResponse])
def get_transactions(user_id: str) -> list[dict[str, Any]]:
    return get_db().transactions(user_id)


@app.get("/users/{user_id}/stats", response_model=StatsResponse)
def get_stats(user_id: str) -> dict[str, Any]:
    stats = betting_stats(get_db().transactions(user_id))
    return {
        "user_id": user_id,
        "total_bets": stats.total_bets,
        "total_bet_amount": stats.total_bet_amount,
        "total_winnings": stats.total_winnings,
        "net_profit": stats.net_profit,
        "roi": stats.roi,
    }


@app.post("/users/{user_id}/deposit", response_model=WalletResponse)
def deposit(user_id: str, req: AmountRequest) -> dict[str, Any]:
    db = get_db()
    db.deposit(user_id, req.amount)
    logger.info(f"Deposit: {user_id} +{req.amount}")
    return {"user_id": user_id, "balance": db.balance(user_id)}


@app.post("/users/{user_id}/withdraw", response_model=WalletResponse)
def withdraw(user_id: str, req: AmountRequest) -> dict[str, Any]:
    db = get_db()
    try:
        db.withdraw(user_id, req.amount)
    except InsufficientFundsError as e:
        raise _insufficient_funds(e)
    logger.info(f"Withdrawal: {user_id} -{req.amount}")
    return {"user_id": user_id, "balance": db.balance(user_id)}


@app.get("/health", response_model=HealthResponse)
def health() -> dict[str, Any]:
    db = get_db()
    return {
        "status": "ok",
        "open_rooms": db.open_rooms(),
        "active_rooms": db.active_rooms(),
    }
