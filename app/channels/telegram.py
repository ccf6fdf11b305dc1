"""Telegram channel adapter using aiogram 3.x.

Outbound only: sends text messages through the Bot API and reports the
provider confirmation. Flood-control answers are retried with tenacity,
everything else is reported to the caller as a DispatchError.
"""

import logging

from aiogram import Bot
from aiogram.exceptions import TelegramRetryAfter
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)

from app.channels.base import DispatchError
from app.channels.error_handler import error_handler
from app.config import Settings, get_settings
from app.logging_config import preview
from app.models import ParseMode, SentMessage

logger = logging.getLogger(__name__)


class TelegramChannel:
    """Telegram channel adapter."""

    def __init__(self, settings: Settings | None = None, bot: Bot | None = None) -> None:
        """Initialize Telegram bot.

        Args:
            settings: Application settings (defaults to cached settings)
            bot: Preconfigured aiogram Bot, built from the token if omitted
        """
        settings = settings or get_settings()
        self.bot = bot or Bot(token=settings.telegram_bot_token)
        self.send_attempts = settings.telegram_send_attempts
        self.retry_max_wait = settings.telegram_retry_max_wait

    def _wait_retry_after(self, retry_state: RetryCallState) -> float:
        """Wait as long as Telegram asked, capped by configuration."""
        error = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(error, "retry_after", 0) or 0
        return min(float(retry_after), self.retry_max_wait)

    async def send_message(self, chat_id: str, text: str, parse_mode: ParseMode = "HTML") -> SentMessage:
        """Send text message to Telegram chat.

        Args:
            chat_id: Telegram chat ID or @channel username
            text: Message text, already escaped for parse_mode
            parse_mode: "HTML" or "MarkdownV2"

        Returns:
            SentMessage built from the Message returned by Telegram

        Raises:
            DispatchError: If Telegram rejected the message or was unreachable
        """
        logger.debug(
            "Attempting to send message to %s: %r (parse_mode: %s)",
            chat_id,
            preview(text, 50),
            parse_mode,
        )
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TelegramRetryAfter),
                stop=stop_after_attempt(self.send_attempts),
                wait=self._wait_retry_after,
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    message = await self.bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
        except Exception as e:
            dispatch_error = error_handler.handle_error(e)
            logger.error(
                "Error sending message to %s: %s (code: %s)",
                chat_id,
                dispatch_error.description,
                dispatch_error.error_code,
            )
            raise dispatch_error from e

        if message is None:
            logger.warning("sendMessage to %s returned no message object unexpectedly.", chat_id)
            raise DispatchError("Telegram API did not return a message object")

        return SentMessage(
            chat_id=str(message.chat.id),
            message_id=message.message_id,
            sent_at=int(message.date.timestamp()),
            raw_payload=message.model_dump(mode="json", exclude_none=True),
        )

    async def verify(self) -> str:
        """Check the bot token with getMe.

        Returns:
            Bot username

        Raises:
            DispatchError: If Telegram rejects the token or is unreachable
        """
        try:
            me = await self.bot.get_me()
        except Exception as e:
            raise error_handler.handle_error(e) from e
        return me.username or str(me.id)

    async def close(self) -> None:
        """Close the bot HTTP session."""
        await self.bot.session.close()
