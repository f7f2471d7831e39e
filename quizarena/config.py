"""
quizarena/config.py - Local configuration management

Reads config from ~/.quizarena/config.toml (on Windows
%APPDATA%\\quizarena\\config.toml). QUIZARENA_CONFIG points at another file.

Example:
    [arena]
    server = "http://localhost:8000"
    db = "arena.db"

    [betting]
    starting_balance = 1000
    default_distribution = "top3"
    max_players = 10
    min_players_to_start = 2
    allow_double_down = true
    questions_per_room = 10
"""

import logging
import os
import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from quizarena.ledger import DEFAULT_STARTING_BALANCE
from quizarena.rooms import DistributionType

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================


def _get_config_dir() -> Path:
    """Get platform-appropriate config directory."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "quizarena"
    return Path.home() / ".quizarena"


CONFIG_DIR = _get_config_dir()
CONFIG_PATH = CONFIG_DIR / "config.toml"

DEFAULT_ARENA_URL = "http://localhost:8000"
DEFAULT_DB_PATH = "arena.db"


# ============================================================================
# Data Types
# ============================================================================


@dataclass
class BettingConfig:
    """Wallet and room defaults used by the arena."""

    starting_balance: int = DEFAULT_STARTING_BALANCE
    default_distribution: DistributionType = DistributionType.WINNER_TAKES_ALL
    max_players: int = 10
    min_players_to_start: int = 2
    allow_double_down: bool = True
    questions_per_room: int = 10


@dataclass
class ArenaConfig:
    server: str = DEFAULT_ARENA_URL
    db_path: str = DEFAULT_DB_PATH


@dataclass
class QuizArenaConfig:
    """Top-level configuration."""

    arena: ArenaConfig = field(default_factory=ArenaConfig)
    betting: BettingConfig = field(default_factory=BettingConfig)


# ============================================================================
# Parsing
# ============================================================================


def _parse_bool(data: dict, key: str, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        logger.warning(f"Ignoring non-boolean {key} = {value!r}, using {default}")
        return default
    return value


def _parse_betting(data: dict) -> BettingConfig:
    """Parse a [betting] section. Missing keys keep their defaults."""
    _defaults = BettingConfig()
    return BettingConfig(
        starting_balance=int(data.get("starting_balance", _defaults.starting_balance)),
        default_distribution=DistributionType.parse(
            data.get("default_distribution", _defaults.default_distribution)
        ),
        max_players=int(data.get("max_players", _defaults.max_players)),
        min_players_to_start=int(
            data.get("min_players_to_start", _defaults.min_players_to_start)
        ),
        allow_double_down=_parse_bool(
            data, "allow_double_down", _defaults.allow_double_down
        ),
        questions_per_room=int(
            data.get("questions_per_room", _defaults.questions_per_room)
        ),
    )


def _parse_arena(data: dict) -> ArenaConfig:
    db_path = data.get("db")
    if db_path is not None:
        db_path = str(Path(db_path).expanduser())
    return ArenaConfig(
        server=data.get("server") or DEFAULT_ARENA_URL,
        db_path=db_path or DEFAULT_DB_PATH,
    )


def default_config_path() -> Path:
    """QUIZARENA_CONFIG if set, else the per-user config file."""
    override = os.environ.get("QUIZARENA_CONFIG")
    if override:
        return Path(override).expanduser()
    return CONFIG_PATH


def load_config(path: Path | None = None) -> QuizArenaConfig:
    """
    Read config from TOML file.

    Args:
        path: Override config file path (default: default_config_path())

    Returns:
        QuizArenaConfig. Missing file or bad TOML returns defaults.
    """
    config_path = path or default_config_path()

    if not config_path.exists():
        return QuizArenaConfig()

    try:
        with open(config_path, "rb") as f:
            raw = tomllib.load(f)
    except Exception as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return QuizArenaConfig()

    config = QuizArenaConfig()

    arena_data = raw.get("arena")
    if isinstance(arena_data, dict):
        config.arena = _parse_arena(arena_data)

    betting_data = raw.get("betting")
    if isinstance(betting_data, dict):
        try:
            config.betting = _parse_betting(betting_data)
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid [betting] section in {config_path}: {e}")

    return config
