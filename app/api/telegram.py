"""Telegram relay endpoints.

GET  /api/v1/telegram/getDuplicates?chatId=<ID>&timeframe=<seconds>&message=<text>
POST /api/v1/telegram/sendMessage?chatId=<ID>   body: {"message": "<text>"}

Messages arrive already HTML-escaped; they are cached and compared exactly as
they were sent to Telegram.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from app.core.dedup_cache import DedupCache
from app.core.dispatcher import Dispatcher
from app.logging_config import preview
from app.models import ParseMode, SendMessageBody

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/telegram", tags=["telegram"])


def get_dedup_cache(request: Request) -> DedupCache:
    return request.app.state.dedup_cache


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


@router.get("/getDuplicates")
async def get_duplicates(
    chat_id: str = Query(..., alias="chatId", min_length=1),
    timeframe: int = Query(..., gt=0, description="Window in seconds"),
    message: str = Query(..., min_length=1, description="URL-encoded UTF-8 text"),
    cache: DedupCache = Depends(get_dedup_cache),
) -> dict[str, bool]:
    """Check whether the text was sent to the chat within the last timeframe seconds."""
    logger.info(
        "Handling /getDuplicates: chatId=%s, timeframe=%ss, decoded_message=%r",
        chat_id,
        timeframe,
        preview(message),
    )
    return {"isDuplicate": cache.is_duplicate(chat_id, message, timeframe)}


@router.post("/sendMessage")
async def send_message(
    body: SendMessageBody,
    chat_id: str = Query(..., alias="chatId", min_length=1),
    parse_mode: ParseMode = Query("HTML", alias="parseMode"),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> JSONResponse:
    """Send a message to the chat and remember it for duplicate checks."""
    logger.info("Handling /sendMessage for chatId %s: %r", chat_id, preview(body.message))

    result = await dispatcher.send(chat_id, body.message, parse_mode)

    if result.success:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"success": True, "data": result.data},
        )

    logger.warning(
        "Failed to send message to %s: %s (Code: %s)",
        chat_id,
        result.error,
        result.error_code,
    )
    # Telegram answers 400 for most delivery problems (chat not found, bot blocked...)
    code = result.error_code
    status_code = code if code is not None and 400 <= code < 500 else status.HTTP_400_BAD_REQUEST
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": result.error, "errorCode": result.error_code},
    )
