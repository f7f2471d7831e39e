"""
quizarena/ledger.py - Wallet transaction kinds, balances and betting stats.

Amounts are signed: money leaving a wallet is negative, money arriving is
positive. A wallet's balance is its starting balance plus every amount.
"""

from dataclasses import dataclass
from typing import Any, Iterable

# Ledger account that collects settlement remainders
HOUSE_ACCOUNT = "__house__"

DEFAULT_STARTING_BALANCE = 1000

DEPOSIT = "deposit"
WITHDRAW = "withdraw"
BET = "bet"
DOUBLE_DOWN = "double_down"
WINNING = "winning"
REFUND = "refund"
HOUSE = "house"

TRANSACTION_KINDS = (DEPOSIT, WITHDRAW, BET, DOUBLE_DOWN, WINNING, REFUND, HOUSE)
WAGER_KINDS = (BET, DOUBLE_DOWN)


class InsufficientFundsError(ValueError):
    """Raised when a debit would take a wallet below zero."""

    def __init__(self, user_id: str, balance: int, amount: int):
        self.user_id = user_id
        self.balance = balance
        self.amount = amount
        super().__init__(
            f"Insufficient funds for {user_id}: balance {balance}, needs {amount}"
        )


def balance(
    transactions: Iterable[dict[str, Any]],
    starting_balance: int = DEFAULT_STARTING_BALANCE,
) -> int:
    return starting_balance + sum(tx["amount"] for tx in transactions)


@dataclass
class BettingStats:
    total_bets: int = 0
    total_bet_amount: int = 0
    total_winnings: int = 0
    net_profit: int = 0
    roi: float = 0.0  # percent


def betting_stats(transactions: Iterable[dict[str, Any]]) -> BettingStats:
    """Aggregate a user's wagers and winnings.

    A refund cancels the wager it returns: it comes off the bet count and
    amount rather than counting as winnings.
    """
    bets = 0
    bet_amount = 0
    winnings = 0
    for tx in transactions:
        if tx["kind"] in WAGER_KINDS:
            bets += 1
            bet_amount += abs(tx["amount"])
        elif tx["kind"] == WINNING:
            winnings += tx["amount"]
        elif tx["kind"] == REFUND:
            bets -= 1
            bet_amount -= abs(tx["amount"])

    bets = max(bets, 0)
    bet_amount = max(bet_amount, 0)
    net = winnings - bet_amount
    return BettingStats(
        total_bets=bets,
        total_bet_amount=bet_amount,
        total_winnings=winnings,
        net_profit=net,
        roi=(net / bet_amount) * 100 if bet_amount > 0 else 0.0,
    )
