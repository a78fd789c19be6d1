import asyncio
import functools
import logging
import os
import uuid
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from asyncio_throttle import Throttler
from pyrogram import filters
from pyrogram.client import Client
from pyrogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from .config import Settings
from .errors import IdentityUnknown, PersistenceUnavailable, StorageError, UnsafeName
from .storage import StorageManager

logger = logging.getLogger(__name__)

MEDIA_FILTER = filters.document | filters.video | filters.audio | filters.photo


def main_menu() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("Token", callback_data="token"),
        InlineKeyboardButton("Upload", callback_data="upload"),
    ]])


def confirm_menu() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("Yes", callback_data="confirm_yes"),
        InlineKeyboardButton("No", callback_data="confirm_no"),
    ]])


def welcome_text(token: Optional[str]) -> str:
    text = "Welcome to Cloud Storage Bot! Here you can upload and manage your files."
    if token:
        text += f"\n\nYour current token: `{token}`"
    else:
        text += "\n\nYou do not have a token yet. Please generate one."
    return text


def error_text(error: StorageError) -> str:
    """User-facing message for a storage failure."""
    if isinstance(error, IdentityUnknown):
        return "I don't know you yet. Please send /start first."
    if isinstance(error, UnsafeName):
        return "❌ This file name cannot be stored. Please rename the file and try again."
    if isinstance(error, PersistenceUnavailable):
        return "❌ Storage is unavailable right now. Please try again later."
    return f"❌ {error}"


def media_of(message):
    return message.document or message.video or message.audio or message.photo


def media_name(message) -> str:
    """Name to store a chat file under."""
    media = media_of(message)
    name = getattr(media, 'file_name', None)
    if name:
        return name
    if message.photo:
        return f"photo_{message.id}.jpg"
    return f"file_{message.id}"


class TelegramFileBot:
    """Telegram front-end: hands out tokens and stores files sent in chat."""

    def __init__(self, settings: Settings, storage: StorageManager, client: Optional[Client] = None):
        self.settings = settings
        self.storage = storage
        self.downloads_dir = Path(settings.data_dir) / "downloads"

        # Initialize Telegram client
        self.app = client or Client(
            "cloud_storage_bot",
            api_id=settings.api_id,
            api_hash=settings.api_hash,
            bot_token=settings.bot_token,
            workdir=os.path.join(settings.data_dir, "session")
        )

        # Rate limiting
        self.throttler = Throttler(rate_limit=10, period=1)  # 10 operations per second

        # Setup handlers
        self._setup_handlers()

    def _setup_handlers(self):
        """Setup message handlers for the bot."""

        @self.app.on_message(filters.command("start"))
        async def start_handler(client, message):
            await self.handle_start(client, message)

        @self.app.on_message(filters.command("help"))
        async def help_handler(client, message):
            await self.handle_help(client, message)

        @self.app.on_message(filters.command("share"))
        async def share_handler(client, message):
            await self.handle_share(client, message)

        @self.app.on_message(MEDIA_FILTER)
        async def file_handler(client, message):
            await self.handle_file_upload(client, message)

        @self.app.on_callback_query()
        async def callback_handler(client, callback_query):
            await self.handle_callback(client, callback_query)

    async def _run(self, func, *args):
        """Run a blocking storage call off the event loop."""
        return await asyncio.get_event_loop().run_in_executor(None, functools.partial(func, *args))

    async def handle_start(self, client, message):
        """Handle /start command."""
        identity = message.chat.id
        try:
            await self._run(self.storage.ensure_registered, identity)
            token = await self._run(self.storage.current_token, identity)
        except StorageError as e:
            logger.error(f"Start failed for {identity}: {e}")
            await message.reply_text(error_text(e))
            return

        await message.reply_text(welcome_text(token), reply_markup=main_menu())

    async def handle_help(self, client, message):
        """Handle /help command."""
        help_text = """
📋 **Bot Commands:**

🔹 `/start` - Show your token and the main menu
🔹 `/share` - Reply to a file (or use it as a file caption) to get a share link
🔹 `/help` - Show this help

**Token** generates a new access token (your old link stops working).
**Upload** opens your storage area on the web.

Send any file to store it in your storage area.
        """
        await message.reply_text(help_text)

    async def handle_callback(self, client, callback_query):
        """Handle inline keyboard selections."""
        identity = callback_query.message.chat.id
        data = callback_query.data
        try:
            if data == "token":
                await callback_query.message.reply_text(
                    "Are you sure you want to generate a new token?",
                    reply_markup=confirm_menu()
                )
            elif data == "confirm_yes":
                token = await self._run(self.storage.rotate_token, identity)
                logger.info(f"Issued new token for {identity}")
                await callback_query.message.reply_text(f"Your new token is: `{token}`")
            elif data == "confirm_no":
                await callback_query.message.reply_text("Token generation cancelled. Returning to menu.")
            elif data == "upload":
                token = await self._run(self.storage.open_upload, identity)
                if token is None:
                    await callback_query.message.reply_text("You do not have a token yet. Please generate one.")
                else:
                    await callback_query.message.reply_text(
                        "Folder created for your token. Please upload your file.\n\n"
                        f"🔗 {self.settings.namespace_url(token)}"
                    )
        except StorageError as e:
            logger.error(f"Callback {data!r} failed for {identity}: {e}")
            await callback_query.message.reply_text(error_text(e))
        finally:
            await callback_query.answer()

    async def _fetch_media(self, client, message) -> Tuple[str, bytes]:
        """Download a chat file and return its name and contents."""
        name = media_name(message)
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        local_file_path = (self.downloads_dir / f"{uuid.uuid4()}.part").resolve()

        try:
            await client.download_media(message, file_name=str(local_file_path))
            async with aiofiles.open(local_file_path, 'rb') as f:
                data = await f.read()
        finally:
            # Clean up local file
            if local_file_path.exists():
                os.remove(local_file_path)
        return name, data

    def _too_large(self, message) -> bool:
        file_size = getattr(media_of(message), 'file_size', 0) or 0
        return file_size > self.settings.max_upload_mb * 1024 * 1024

    async def handle_file_upload(self, client, message):
        """Store a file sent in chat in the sender's namespace."""
        identity = message.chat.id
        async with self.throttler:
            if self._too_large(message):
                await message.reply_text(f"❌ File too large! Maximum size is {self.settings.max_upload_mb} MB.")
                return
            try:
                token = await self._run(self.storage.open_upload, identity)
                if token is None:
                    await message.reply_text("You do not have a token yet. Please generate one.")
                    return

                name, data = await self._fetch_media(client, message)
                await self._run(self.storage.put_entry, token, name, data)
            except StorageError as e:
                logger.error(f"Upload failed for {identity}: {e}")
                await message.reply_text(error_text(e))
                return
            except Exception as e:
                logger.error(f"Upload error: {e}")
                await message.reply_text("❌ Upload failed. Please try again.")
                return

            logger.info(f"Stored {name!r} ({len(data)} bytes) for {identity}")
            await message.reply_text(
                f"✅ **{name}** saved.\n\n🔗 {self.settings.namespace_url(token)}"
            )

    async def handle_share(self, client, message):
        """Handle /share sent as a reply to a file or as a file caption."""
        target = message if media_of(message) is not None else message.reply_to_message
        if target is None or media_of(target) is None:
            await message.reply_text("Reply to a file with /share to get a share link.")
            return

        async with self.throttler:
            if self._too_large(target):
                await message.reply_text(f"❌ File too large! Maximum size is {self.settings.max_upload_mb} MB.")
                return
            try:
                name, data = await self._fetch_media(client, target)
                token = await self._run(self.storage.create_share, [(name, data)])
            except StorageError as e:
                logger.error(f"Share failed for {message.chat.id}: {e}")
                await message.reply_text(error_text(e))
                return
            except Exception as e:
                logger.error(f"Share error: {e}")
                await message.reply_text("❌ Upload failed. Please try again.")
                return

            logger.info(f"Created share {token} for {message.chat.id}")
            await message.reply_text(f"🔗 Share link for **{name}**:\n{self.settings.share_url(token)}")

    async def run(self):
        """Start the bot."""
        logger.info("Starting Cloud Storage Bot...")

        try:
            await self.app.start()
            logger.info("✅ Bot started successfully!")

            me = await self.app.get_me()
            logger.info(f"Bot @{me.username} is running...")

            # Keep the bot running
            await asyncio.Event().wait()

        except Exception as e:
            logger.error(f"Bot stopped: {e}")
            raise
        finally:
            await self.app.stop()
