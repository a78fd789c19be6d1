import asyncio
import logging
import threading

from .bot import TelegramFileBot
from .config import Settings
from .storage import StorageManager
from .web import WebServer

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging(log_file: str = 'bot.log', level: str = 'INFO'):
    """Log to the console and append to `log_file`."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file, encoding='utf-8'),
        ],
        force=True
    )
    logging.getLogger("pyrogram").setLevel(logging.WARNING)


async def run_bot(bot):
    """Run the Telegram bot."""
    await bot.run()


def run_web_server(storage, settings):
    """Run the web server."""
    web_server = WebServer(storage, settings)
    web_server.run()


async def main(settings: Settings = None):
    """Main function to run both bot and web server."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_file, settings.log_level)

    # Check required environment variables
    missing_vars = settings.missing_bot_settings()
    if missing_vars:
        logger.error(f"Missing environment variables: {', '.join(missing_vars)}")
        return

    storage = StorageManager.from_settings(settings)
    bot = TelegramFileBot(settings, storage)

    # Start web server in separate thread
    web_thread = threading.Thread(target=run_web_server, args=(storage, settings), daemon=True)
    web_thread.start()

    # Run bot in main thread
    await run_bot(bot)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
