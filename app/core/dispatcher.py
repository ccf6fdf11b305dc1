"""Dispatch orchestrator: send through a channel, remember what was sent.

The cache is only touched after the channel confirmed delivery, and only with
the text that was actually transmitted and the provider timestamp and ID.
"""

import logging

from app.channels.base import ChannelProtocol, DispatchError
from app.core.dedup_cache import DedupCache
from app.models import DispatchResult, ParseMode

logger = logging.getLogger(__name__)


class Dispatcher:
    """Sends messages and records confirmed sends in the dedup cache."""

    def __init__(self, channel: ChannelProtocol, cache: DedupCache) -> None:
        self.channel = channel
        self.cache = cache

    async def send(self, chat_id: str, text: str, parse_mode: ParseMode = "HTML") -> DispatchResult:
        """Send a message and record it on success.

        Args:
            chat_id: Destination chat ID
            text: Message text in its final form
            parse_mode: Markup flavour of text

        Returns:
            DispatchResult with the provider message on success,
            or error description and code on failure
        """
        try:
            sent = await self.channel.send_message(chat_id, text, parse_mode)
        except DispatchError as e:
            return DispatchResult.failed(e.description, e.error_code)

        self.cache.record_dispatch(
            conversation_id=sent.chat_id,
            text=text,
            sent_at=sent.sent_at,
            dispatch_id=sent.message_id,
        )
        logger.info("Message sent to %s, ID: %s. Cached.", chat_id, sent.message_id)
        return DispatchResult.ok(sent)
