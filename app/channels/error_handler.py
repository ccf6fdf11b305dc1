"""Telegram error handler: aiogram exceptions → description + error code.

The error code mirrors the HTTP status Telegram answered with, so the API layer
can pass 4xx codes through to callers.
"""

from aiogram.exceptions import (
    TelegramAPIError,
    TelegramBadRequest,
    TelegramConflictError,
    TelegramEntityTooLarge,
    TelegramForbiddenError,
    TelegramMigrateToChat,
    TelegramNotFound,
    TelegramRetryAfter,
    TelegramServerError,
    TelegramUnauthorizedError,
)

from app.channels.base import DispatchError

UNKNOWN_ERROR = "Unknown error sending message"


class TelegramErrorHandler:
    """Error handler for Telegram Bot API errors."""

    # Checked in order: subclasses before their bases.
    STATUS_CODES: tuple[tuple[type[TelegramAPIError], int], ...] = (
        (TelegramRetryAfter, 429),
        (TelegramMigrateToChat, 400),
        (TelegramEntityTooLarge, 413),
        (TelegramBadRequest, 400),
        (TelegramUnauthorizedError, 401),
        (TelegramForbiddenError, 403),
        (TelegramNotFound, 404),
        (TelegramConflictError, 409),
        (TelegramServerError, 500),
    )

    def error_code(self, error: Exception) -> int | None:
        """Get HTTP-like error code for an exception.

        Args:
            error: Exception from a Telegram call

        Returns:
            Status code, or None for network and unclassified errors
        """
        for error_type, code in self.STATUS_CODES:
            if isinstance(error, error_type):
                return code
        return None

    def describe(self, error: Exception) -> str:
        """Get the provider description of an error, without aiogram's label."""
        if isinstance(error, TelegramAPIError):
            return error.message or UNKNOWN_ERROR
        return str(error) or UNKNOWN_ERROR

    def handle_error(self, error: Exception) -> DispatchError:
        """Convert an exception from a send call into a DispatchError.

        Args:
            error: Exception from a Telegram call

        Returns:
            DispatchError carrying description and error code
        """
        return DispatchError(self.describe(error), self.error_code(error))


# Global error handler instance
error_handler = TelegramErrorHandler()
