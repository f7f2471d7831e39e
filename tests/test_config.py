"""Tests for quizarena.config: local config file management."""

import textwrap
from pathlib import Path

import pytest

from quizarena.config import (
    DEFAULT_ARENA_URL,
    DEFAULT_DB_PATH,
    BettingConfig,
    QuizArenaConfig,
    default_config_path,
    load_config,
)
from quizarena.rooms import DistributionType


@pytest.fixture
def config_dir(tmp_path):
    """Temporary directory for config files."""
    return tmp_path


def _write_config(config_dir: Path, content: str) -> Path:
    """Write a config.toml and return the path."""
    config_path = config_dir / "config.toml"
    config_path.write_text(textwrap.dedent(content))
    return config_path


class TestLoadConfig:
    def test_missing_file_returns_defaults(self, config_dir):
        cfg = load_config(config_dir / "nonexistent.toml")
        assert isinstance(cfg, QuizArenaConfig)
        assert cfg.arena.server == DEFAULT_ARENA_URL
        assert cfg.arena.db_path == DEFAULT_DB_PATH
        assert cfg.betting == BettingConfig()

    def test_full_config(self, config_dir):
        path = _write_config(config_dir, """\
            [arena]
            server = "https://quiz.example.com"
            db = "/var/lib/quizarena/arena.db"

            [betting]
            starting_balance = 250
            default_distribution = "top3"
            max_players = 6
            min_players_to_start = 3
            allow_double_down = false
            questions_per_room = 5
        """)
        cfg = load_config(path)
        assert cfg.arena.server == "https://quiz.example.com"
        assert cfg.arena.db_path == "/var/lib/quizarena/arena.db"
        assert cfg.betting.starting_balance == 250
        assert cfg.betting.default_distribution is DistributionType.TOP3
        assert cfg.betting.max_players == 6
        assert cfg.betting.min_players_to_start == 3
        assert cfg.betting.allow_double_down is False
        assert cfg.betting.questions_per_room == 5

    def test_partial_betting_keeps_defaults(self, config_dir):
        path = _write_config(config_dir, """\
            [betting]
            max_players = 4
        """)
        cfg = load_config(path)
        assert cfg.betting.max_players == 4
        assert cfg.betting.starting_balance == 1000
        assert cfg.betting.default_distribution is DistributionType.WINNER_TAKES_ALL

    def test_unknown_distribution_falls_back(self, config_dir):
        path = _write_config(config_dir, """\
            [betting]
            default_distribution = "random-mode"
        """)
        cfg = load_config(path)
        assert cfg.betting.default_distribution is DistributionType.WINNER_TAKES_ALL

    @pytest.mark.parametrize("value", ['"false"', '"no"', "0", "1"])
    def test_non_boolean_double_down_keeps_default(self, config_dir, value, caplog):
        path = _write_config(config_dir, f"""\
            [betting]
            allow_double_down = {value}
            max_players = 4
        """)
        cfg = load_config(path)
        assert cfg.betting.allow_double_down is BettingConfig().allow_double_down
        assert cfg.betting.max_players == 4
        assert "Ignoring non-boolean allow_double_down" in caplog.text

    def test_db_tilde_expansion(self, config_dir):
        path = _write_config(config_dir, """\
            [arena]
            db = "~/quizarena/arena.db"
        """)
        cfg = load_config(path)
        assert cfg.arena.db_path.startswith(str(Path.home()))
        assert "~" not in cfg.arena.db_path

    def test_bad_toml_returns_defaults(self, config_dir):
        path = _write_config(config_dir, "this is not [valid toml")
        cfg = load_config(path)
        assert cfg == QuizArenaConfig()

    def test_invalid_number_keeps_betting_defaults(self, config_dir):
        path = _write_config(config_dir, """\
            [arena]
            server = "http://arena.local"

            [betting]
            max_players = "lots"
        """)
        cfg = load_config(path)
        assert cfg.arena.server == "http://arena.local"
        assert cfg.betting == BettingConfig()

    def test_non_table_sections_ignored(self, config_dir):
        path = _write_config(config_dir, """\
            arena = "nope"
            betting = 3
        """)
        assert load_config(path) == QuizArenaConfig()


class TestDefaultConfigPath:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("QUIZARENA_CONFIG", str(tmp_path / "custom.toml"))
        assert default_config_path() == tmp_path / "custom.toml"

    def test_env_override_used_by_load(self, monkeypatch, config_dir):
        path = _write_config(config_dir, """\
            [betting]
            starting_balance = 5
        """)
        monkeypatch.setenv("QUIZARENA_CONFIG", str(path))
        assert load_config().betting.starting_balance == 5

    def test_default_location(self, monkeypatch):
        monkeypatch.delenv("QUIZARENA_CONFIG", raising=False)
        assert default_config_path().name == "config.toml"
