"""
arena - HTTP server for CS Quiz Arena

Hosts quiz rooms, collects entry fees into the prize pool and pays out
winners. Wallets are a signed transaction ledger in SQLite.
"""

from .server import app
from .db import ArenaDB

__all__ = ["app", "ArenaDB"]
