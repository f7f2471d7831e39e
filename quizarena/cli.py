#!/usr/bin/env python3
"""
quizarena/cli.py - Command line interface for CS Quiz Arena

Usage:
    quizarena arena [--port PORT] [--db PATH] [--config PATH]
    quizarena prizes --entry-fee N --players N [--distribution TYPE]
"""

import argparse
import logging
import sys
from pathlib import Path

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def cmd_arena(args):
    """Start the arena server."""
    try:
        import uvicorn
    except ImportError:
        logger.error("Arena requires extra dependencies: pip install quizarena[arena]")
        return 1

    from arena.server import app
    from quizarena.config import load_config

    config = load_config(Path(args.config) if args.config else None)
    db_path = args.db or config.arena.db_path

    # Lifespan picks these up from app state
    app.state.config = config
    app.state.db_path = db_path
    logger.info(f"Starting arena server on port {args.port} (db: {db_path})")
    uvicorn.run(app, host="0.0.0.0", port=args.port, log_level="info")
    return 0


def cmd_prizes(args):
    """Print the prize table for a hypothetical room."""
    from quizarena.prizes import prize_distribution, undistributed
    from quizarena.rooms import DistributionType

    if args.entry_fee < 0 or args.players < 0:
        logger.error("Entry fee and player count must be non-negative")
        return 1

    distribution = DistributionType.parse(args.distribution)
    if distribution.value != args.distribution:
        logger.warning(
            f"Unknown distribution {args.distribution!r}, using {distribution.value}"
        )

    total = args.entry_fee * args.players
    entries = prize_distribution(total, distribution)

    print(f"\n🏆 Prize pool: {total} ({args.players} x {args.entry_fee})")
    print(f"   Distribution: {distribution.value}\n")
    print(f"{'Position':<10} {'Share':>6} {'Amount':>10}")
    print("-" * 28)
    for e in entries:
        print(f"{str(e.position):<10} {e.percentage:>5}% {e.amount:>10}")

    remainder = undistributed(entries, total)
    if remainder:
        print(f"\n   Undistributed (rounding): {remainder}")
    print()
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="quizarena",
        description="Trivia quiz rooms with prize pools",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # arena command
    arena_parser = subparsers.add_parser("arena", help="Start the arena server")
    arena_parser.add_argument("--port", "-p", type=int, default=8000, help="Server port (default: 8000)")
    arena_parser.add_argument("--db", default=None, help="SQLite database path (default: from config, else arena.db)")
    arena_parser.add_argument("--config", "-c", default=None, help="Config file (default: ~/.quizarena/config.toml)")
    arena_parser.set_defaults(func=cmd_arena)

    # prizes command
    prizes_parser = subparsers.add_parser("prizes", help="Show the payout table for a room")
    prizes_parser.add_argument("--entry-fee", "-f", type=int, required=True, help="Entry fee per player")
    prizes_parser.add_argument("--players", "-n", type=int, required=True, help="Number of players")
    prizes_parser.add_argument(
        "--distribution", "-d", default="winner-takes-all",
        help="winner-takes-all, top3 or proportional (default: winner-takes-all)",
    )
    prizes_parser.set_defaults(func=cmd_prizes)

    args = parser.parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
