"""Entry point: logging, .env loading and token checks before starting the bot."""

import logging
import os
import sys

import discord
from dotenv import load_dotenv

from dailyledger.config import (
    ERROR_MESSAGES,
    LOG_DIR,
    LOG_FILE,
    LOG_FORMAT,
    PROJECT_ROOT,
    ensure_directories,
    get_log_level,
)

from .client import create_bot

logger = logging.getLogger(__name__)


def configure_logging():
    """Log to LOG_DIR/LOG_FILE and stdout at the configured level."""
    ensure_directories()
    logging.basicConfig(
        level=get_log_level(),
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(LOG_DIR / LOG_FILE),
            logging.StreamHandler(sys.stdout),
        ],
    )
    # discord.py is chatty at INFO
    logging.getLogger("discord").setLevel(max(get_log_level(), logging.WARNING))


def load_environment():
    """Load a .env file from the project root if there is one."""
    env_path = PROJECT_ROOT / ".env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.info(f"Loaded environment from {env_path}")
    else:
        logger.debug(f".env file not found at {env_path}")


def get_token() -> str:
    """Read DISCORD_BOT_TOKEN, exiting when it is absent or obviously malformed."""
    token = os.environ.get("DISCORD_BOT_TOKEN")

    if not token:
        logger.error("DISCORD_BOT_TOKEN environment variable is not set")
        print("Set DISCORD_BOT_TOKEN in the environment or in .env before starting.")
        sys.exit(1)

    if len(token) < 50:
        logger.error(ERROR_MESSAGES["invalid_token"])
        print(ERROR_MESSAGES["invalid_token"])
        sys.exit(1)

    logger.debug("Bot token present")
    return token


def run():
    """Start the bot and block until it disconnects."""
    configure_logging()
    load_environment()
    token = get_token()

    try:
        bot = create_bot()
    except Exception as e:
        logger.critical(f"Could not build Daily Ledger: {e}", exc_info=True)
        sys.exit(1)

    logger.info("Connecting Daily Ledger to Discord")
    try:
        # bot.run closes the client on exit, which drains stats recomputes
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except discord.LoginFailure as e:
        logger.critical(f"Discord rejected the token: {e}")
        sys.exit(1)
    except Exception as e:
        logger.critical(f"Bot stopped with an error: {e}", exc_info=True)
        print(f"Daily Ledger stopped: {e} (see {LOG_DIR / LOG_FILE})")
        sys.exit(1)


if __name__ == "__main__":
    run()
