"""
HomeSync — Entry Point.

Single entry point: `python main.py` restores household state and starts
the Telegram bot, whose job queue drives the 1-second scheduler tick.
"""

import logging

from src.config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from src.bot.telegram_bot import main

if __name__ == "__main__":
    main()
