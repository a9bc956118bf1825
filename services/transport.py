# services/transport.py — обёртка над Bot: отправка ответов и скачивание голосовых

import logging
from typing import Optional

from telegram import Bot
from telegram.constants import ChatAction
from telegram.error import TelegramError

from errors import DownloadError

logger = logging.getLogger(__name__)


class TelegramTransport:
    def __init__(self, bot: Bot):
        self.bot = bot

    async def send_text(self, user_id: int, text: str, reply_markup=None,
                        parse_mode: Optional[str] = None):
        return await self.bot.send_message(
            chat_id=user_id, text=text, reply_markup=reply_markup, parse_mode=parse_mode
        )

    async def send_audio(self, user_id: int, data: bytes):
        return await self.bot.send_voice(chat_id=user_id, voice=data)

    async def send_action(self, user_id: int, action: str = ChatAction.RECORD_VOICE) -> None:
        try:
            await self.bot.send_chat_action(chat_id=user_id, action=action)
        except TelegramError as e:
            logger.debug("chat action failed for %s: %s", user_id, e)

    async def download_voice(self, file_id: str) -> bytes:
        try:
            f = await self.bot.get_file(file_id)
            data = await f.download_as_bytearray()
        except (TelegramError, OSError) as e:
            logger.warning("Error downloading voice %s: %s", file_id, e)
            raise DownloadError(f"Failed to download voice {file_id}: {e}") from e
        return bytes(data)
