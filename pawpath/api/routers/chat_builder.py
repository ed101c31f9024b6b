import asyncio
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from pawpath.api.dependencies import get_builder, get_user_id
from pawpath.core.conversation_builder import ConversationalBuilder
from pawpath.core.schemas import ChatBuilderRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat-builder", tags=["chat"])


@router.post("")
async def chat_builder(
    request: Request,
    builder: ConversationalBuilder = Depends(get_builder),
    user_id: str | None = Depends(get_user_id),
):
    """One conversational turn of the trip builder."""
    try:
        payload = await request.json()
        chat_request = ChatBuilderRequest.model_validate(payload)
    except (ValueError, ValidationError) as e:
        logger.info("[ChatBuilder] Malformed request body: %s", str(e)[:200])
        return JSONResponse({"reply": "Invalid request body."}, status_code=400)

    # The assistant client and poller block, keep them off the event loop
    result = await asyncio.to_thread(builder.handle, chat_request, user_id)
    return JSONResponse(result.to_response().to_wire(), status_code=result.status_code)
