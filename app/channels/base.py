"""Channel protocol interface.

Unified interface for outbound messaging transports.
"""

from typing import Protocol

from app.models import ParseMode, SentMessage


class DispatchError(Exception):
    """Structured send failure reported by a channel."""

    def __init__(self, description: str, error_code: int | None = None) -> None:
        super().__init__(description)
        self.description = description
        self.error_code = error_code


class ChannelProtocol(Protocol):
    """Protocol for channel adapters."""

    async def send_message(self, chat_id: str, text: str, parse_mode: ParseMode = "HTML") -> SentMessage:
        """Send text message to chat.

        Args:
            chat_id: Chat ID (channel-specific)
            text: Message text, already escaped for parse_mode
            parse_mode: Markup flavour of text

        Returns:
            Delivery confirmation with provider timestamp and message ID

        Raises:
            DispatchError: If the provider rejected the message or was unreachable
        """
        ...

    async def verify(self) -> str:
        """Check credentials against the provider.

        Returns:
            Display name of the bot account

        Raises:
            DispatchError: If the credentials are rejected
        """
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
