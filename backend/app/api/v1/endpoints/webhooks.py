"""
Webhooks API Endpoints
Receives call lifecycle events from the calling provider (Bolna)
"""
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from app.api.v1.dependencies import get_event_handler
from app.domain.models.call import ProviderEvent
from app.domain.services.call_event_handler import CallEventHandler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/bolna")
async def bolna_event(
    request: Request,
    handler: CallEventHandler = Depends(get_event_handler)
):
    """
    Handle a provider event: {"type": "<event type>", "data": {...call...}}.

    Always answers 200 so the provider does not retry; the body reports
    whether the event was applied.
    """
    try:
        body = await request.json()
    except ValueError:
        logger.warning("Received non-JSON provider webhook")
        return {"success": False, "message": "Invalid JSON body"}

    if not isinstance(body, dict) or not body.get("type"):
        logger.warning("Provider webhook without event type")
        return {"success": False, "message": "Missing event type"}

    try:
        event = ProviderEvent.model_validate({**body, "data": body.get("data") or {}})
    except ValidationError as e:
        logger.warning(f"Invalid {body['type']} webhook payload: {e}")
        return {"success": False, "message": "Invalid event payload"}

    logger.info(f"Received provider event: {event.type} for call {event.data.id}")
    return await handler.handle_event(event)
