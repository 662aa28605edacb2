"""
Call Event Handler
Processes calling-provider events (webhooks and polled outcomes)
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from app.domain.interfaces.assistant_store import AssistantStore
from app.domain.interfaces.call_history_store import CallHistoryStore
from app.domain.models.call import CallRecord, CallStatus, ProviderCall, ProviderEvent, ProviderEventType
from app.domain.services.lead_reconciler import LeadStatusReconciler, derive_call_status
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class CallEventHandler:
    """
    Routes provider events to call history and lead reconciliation.

    - call-started: call record -> in-progress, lead -> connected
    - call-ended: call record gets end data, lead gets the derived status
    - call-status-update: existing call record only, lead gets the status

    Every path ends in LeadStatusReconciler.reconcile, which tolerates
    the same outcome arriving from both the webhook and the poller.
    """

    def __init__(
        self,
        call_history_store: CallHistoryStore,
        assistant_store: AssistantStore,
        reconciler: LeadStatusReconciler,
        clock: Callable[[], datetime] = utc_now
    ):
        self.call_history_store = call_history_store
        self.assistant_store = assistant_store
        self.reconciler = reconciler
        self._clock = clock

    async def handle_provider_event(self, event_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Webhook entry point.

        Args:
            event_type: Provider event type
            payload: Event `data` object

        Returns:
            {"success": bool, "message": str}; never raises
        """
        try:
            event = ProviderEvent.model_validate({"type": event_type, "data": payload or {}})
        except ValidationError as e:
            logger.warning(f"Invalid {event_type} payload: {e}")
            return {"success": False, "message": "Invalid event payload"}

        return await self.handle_event(event)

    async def handle_event(self, event: ProviderEvent) -> Dict[str, Any]:
        """Dispatch a validated event envelope; never raises."""
        event_type, call = event.type, event.data
        try:
            if event_type == ProviderEventType.CALL_STARTED.value:
                await self.handle_call_started(call)
            elif event_type == ProviderEventType.CALL_ENDED.value:
                await self.handle_call_ended(call)
            elif event_type == ProviderEventType.CALL_STATUS_UPDATE.value:
                await self.handle_call_status_update(call)
            elif event_type == ProviderEventType.FUNCTION_CALL.value:
                logger.info(f"Function call event for call {call.id}")
            else:
                logger.info(f"Unknown provider event type: {event_type}")
        except Exception as e:
            logger.error(f"Error processing {event_type} for call {call.id}: {e}", exc_info=True)
            return {"success": False, "message": "Event processing failed"}

        return {"success": True, "message": "Event processed successfully"}

    async def handle_call_started(self, call: ProviderCall) -> None:
        """Record the call as in progress and mark the lead connected."""
        record = await self.call_history_store.get_by_call_id(call.id)

        if record is None:
            assistant = await self._find_assistant(call.assistant_id)
            if assistant is None:
                logger.warning(f"Assistant not found for call-started event: {call.assistant_id}")
                return
            record = await self.call_history_store.create(CallRecord(
                call_id=call.id,
                assistant_id=assistant.id,
                phone_number=call.customer.number or "Unknown",
                status=CallStatus.IN_PROGRESS,
                started_at=call.started_at or self._clock(),
                metadata=call.metadata,
                provider_payload=call.raw()
            ))
        else:
            record = await self.call_history_store.update_by_call_id(call.id, {
                "status": CallStatus.IN_PROGRESS,
                "started_at": call.started_at or record.started_at or self._clock(),
                "provider_payload": call.raw()
            }) or record

        await self.reconciler.reconcile(record, "connected", call.raw())

    async def handle_call_ended(self, call: ProviderCall) -> None:
        """Store end data and reconcile the derived terminal status."""
        record = await self.call_history_store.get_by_call_id(call.id)

        if record is None:
            assistant = await self._find_assistant(call.assistant_id)
            if assistant is None:
                logger.warning(f"Assistant not found for call-ended event: {call.assistant_id}")
                return
            record = await self.call_history_store.create(CallRecord(
                call_id=call.id,
                assistant_id=assistant.id,
                phone_number=call.customer.number or "Unknown",
                started_at=call.started_at or self._clock(),
                metadata=call.metadata,
                provider_payload=call.raw()
            ))

        first_end = record.ended_at is None
        status = derive_call_status(call.ended_reason, call.duration_seconds)
        fields: Dict[str, Any] = {
            "status": status,
            "ended_at": call.ended_at or self._clock(),
            "duration_seconds": call.duration_seconds or 0,
            "cost": call.cost or 0,
            "provider_payload": call.raw()
        }
        if call.recording_url:
            fields["recording_url"] = call.recording_url
        if call.transcript:
            fields["transcript"] = call.transcript

        logger.info(
            f"Call {call.id} ended - duration: {call.duration_seconds}s, "
            f"reason: {call.ended_reason}, status: {status.value}"
        )

        record = await self.call_history_store.update_by_call_id(call.id, fields) or record

        # Counted once per call; a repeated end report finds ended_at already set
        if first_end and record.assistant_id:
            await self._record_assistant_stats(record.assistant_id, call)

        await self.reconciler.reconcile(record, status, call.raw())

    async def handle_call_status_update(self, call: ProviderCall) -> None:
        """Apply an intermediate status to a call we already know about."""
        record = await self.call_history_store.get_by_call_id(call.id)
        if record is None:
            logger.info(f"No call history for status update of {call.id}, skipping")
            return

        status_value = call.status or CallStatus.IN_PROGRESS.value
        fields: Dict[str, Any] = {"provider_payload": call.raw()}
        if status_value in {s.value for s in CallStatus}:
            fields["status"] = CallStatus(status_value)
        if call.duration_seconds:
            fields["duration_seconds"] = call.duration_seconds

        record = await self.call_history_store.update_by_call_id(call.id, fields) or record
        await self.reconciler.reconcile(record, status_value, call.raw())

    async def _record_assistant_stats(self, assistant_id: str, call: ProviderCall) -> None:
        try:
            await self.assistant_store.record_call_stats(
                assistant_id,
                duration_seconds=call.duration_seconds or 0,
                successful=call.ended_reason != "error"
            )
        except Exception as e:
            logger.error(f"Failed to update call stats for assistant {assistant_id}: {e}")

    async def _find_assistant(self, provider_assistant_id: Optional[str]):
        if not provider_assistant_id:
            return None
        return await self.assistant_store.get_by_provider_id(provider_assistant_id)
