"""CLI interface for PersonaBook."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from personabook.core.config import load_config
from personabook.core.logging import setup_logging
from personabook.db.database import DatabaseManager
from personabook.orchestrator import PersonaBookApp

logger = logging.getLogger(__name__)


async def run_migrate(args: argparse.Namespace) -> None:
    """Handle database migration commands."""
    if not args.init:
        logger.error("No migration action specified. Use --init")
        sys.exit(1)

    logger.info("Initializing database...")
    db_manager = DatabaseManager(args.db_path)
    try:
        await db_manager.init_db()
        logger.info(f"Database initialized successfully at {args.db_path}")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)
    finally:
        await db_manager.close()


async def run_bot(args: argparse.Namespace) -> None:
    """Run the bot until SIGINT or SIGTERM."""
    config = load_config(args.config)
    setup_logging(
        level="DEBUG" if args.verbose else config.logging.level,
        directory=config.logging.directory,
        max_size_mb=config.logging.max_size_mb,
        backup_count=config.logging.backup_count,
    )

    app = PersonaBookApp(config)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def signal_handler() -> None:
        stop_event.set()

    loop.add_signal_handler(signal.SIGINT, signal_handler)
    loop.add_signal_handler(signal.SIGTERM, signal_handler)

    await app.start()
    try:
        await stop_event.wait()
        logger.info("Shutdown signal received, stopping...")
    finally:
        await app.stop()


async def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="PersonaBook - paid persona chat sessions")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run the bot")
    run_parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file",
    )
    run_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    migrate_parser = subparsers.add_parser("migrate", help="Database migration commands")
    migrate_parser.add_argument(
        "--init",
        action="store_true",
        help="Initialize the database (create tables)",
    )
    migrate_parser.add_argument(
        "--db-path",
        type=str,
        default="personabook.db",
        help="Path to SQLite database (default: personabook.db)",
    )

    args = parser.parse_args()

    if args.command == "migrate":
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        await run_migrate(args)
        return

    if args.command == "run":
        await run_bot(args)
        return

    parser.print_help()
    sys.exit(1)


def run() -> None:
    """Entry point for the console script."""
    load_dotenv()
    try:
        asyncio.run(main())
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
