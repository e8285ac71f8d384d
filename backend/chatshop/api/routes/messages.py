"""
Web chat channel: the same orchestrator the Telegram bot uses, over HTTP.

POST /messages  {"senderId": "...", "text": "...", "messageId": "..."}
"""
import logging

from fastapi import APIRouter, Depends

from chatshop.agent.runtime import Runtime
from chatshop.api.deps import get_runtime_dep
from chatshop.core.exceptions import BusinessError
from chatshop.schemas.conversation import InboundMessage, TurnResult

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=TurnResult)
async def post_message(inbound: InboundMessage, runtime: Runtime = Depends(get_runtime_dep)):
    """Process one inbound chat message and return the replies."""
    if not inbound.text.strip():
        raise BusinessError.bad_request("Message text is empty")
    return await runtime.orchestrator.handle(inbound)
