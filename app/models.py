"""Pydantic v2 models for data boundaries.

Dispatch records are frozen: once a send is confirmed its facts never change.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ParseMode = Literal["HTML", "MarkdownV2"]


class DispatchRecord(BaseModel):
    """Confirmed fact that a text was sent to a conversation at a given second."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str = Field(..., description="Destination chat ID, exact-match key")
    text: str = Field(..., description="Exact text transmitted to the channel")
    sent_at: int = Field(..., description="Epoch seconds of the provider confirmation")
    dispatch_id: int | str = Field(..., description="Provider message ID, observability only")


class SentMessage(BaseModel):
    """Delivery confirmation returned by a channel."""

    chat_id: str = Field(..., description="Chat ID as reported by the provider")
    message_id: int | str = Field(..., description="Provider-assigned message ID")
    sent_at: int = Field(..., description="Provider timestamp, epoch seconds")
    raw_payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Provider message object as JSON",
    )


class DispatchResult(BaseModel):
    """Outcome of a dispatch attempt, success or structured failure."""

    success: bool
    data: dict[str, Any] | None = None
    error: str | None = None
    error_code: int | None = None

    @classmethod
    def ok(cls, message: SentMessage) -> "DispatchResult":
        return cls(success=True, data=message.raw_payload)

    @classmethod
    def failed(cls, error: str, error_code: int | None = None) -> "DispatchResult":
        return cls(success=False, error=error, error_code=error_code)


class SendMessageBody(BaseModel):
    """Body of POST /sendMessage. Text is already HTML-escaped UTF-8."""

    message: str = Field(..., min_length=1, description="Message text to send")
