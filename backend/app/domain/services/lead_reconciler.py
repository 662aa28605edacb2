"""
Lead Status Reconciler
Applies call outcomes (webhook or poll) to lead status, idempotently
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Union

from app.domain.interfaces.lead_store import LeadStore
from app.domain.models.auto_call import ReconcileResult
from app.domain.models.call import CallRecord, CallStatus
from app.domain.models.lead import CallConnectionStatus, Lead, SUCCESS_STATUSES
from app.domain.services.phone_numbers import DEFAULT_COUNTRY_CODE, phone_number_variants
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


# Calls at least this long count as completed whatever the end reason
COMPLETED_MIN_DURATION_SECONDS = 30

# Provider end reason -> call status
ENDED_REASON_STATUS_MAP = {
    "customer-ended-call": CallStatus.COMPLETED,
    "assistant-ended-call": CallStatus.COMPLETED,
    "customer-did-not-answer": CallStatus.NO_ANSWER,
    "customer-busy": CallStatus.BUSY,
    "error": CallStatus.FAILED,
    "assistant-error": CallStatus.FAILED,
}

# Call status -> lead status (anything else maps to pending)
LEAD_STATUS_MAP = {
    "in-progress": CallConnectionStatus.CONNECTED,
    "connected": CallConnectionStatus.CONNECTED,
    "completed": CallConnectionStatus.COMPLETED,
    "failed": CallConnectionStatus.FAILED,
    "no-answer": CallConnectionStatus.FAILED,
    "busy": CallConnectionStatus.FAILED,
    "cancelled": CallConnectionStatus.FAILED,
}

# Call statuses that may move a connected lead to failed
GENUINE_FAILURE_STATUSES = {"no-answer", "busy", "cancelled"}


def derive_call_status(ended_reason: Optional[str], duration_seconds: Optional[float] = 0) -> CallStatus:
    """Terminal call status from the provider's end reason and duration."""
    duration = duration_seconds or 0
    if duration >= COMPLETED_MIN_DURATION_SECONDS:
        return CallStatus.COMPLETED

    status = ENDED_REASON_STATUS_MAP.get(ended_reason or "")
    if status is not None:
        return status

    return CallStatus.COMPLETED if duration > 0 else CallStatus.FAILED


def map_lead_status(call_status: Union[str, CallStatus]) -> CallConnectionStatus:
    """Lead status for a call status."""
    value = call_status.value if isinstance(call_status, CallStatus) else str(call_status)
    return LEAD_STATUS_MAP.get(value, CallConnectionStatus.PENDING)


class LeadStatusReconciler:
    """
    Maps call outcomes onto lead status.

    Safe under repeated delivery of the same outcome (webhook plus poller):
    the lead is re-read right before writing, better-known states are never
    downgraded, and an outcome already applied for the same call is skipped.

    Read-modify-write without locks: assumes a single writer per lead
    (one process). Multiple instances would need compare-and-swap on the
    lead row.
    """

    def __init__(
        self,
        lead_store: LeadStore,
        country_code: str = DEFAULT_COUNTRY_CODE,
        clock: Callable[[], datetime] = utc_now
    ):
        self.lead_store = lead_store
        self.country_code = country_code
        self._clock = clock

    async def find_lead_for_call(self, phone_number: str) -> Optional[Lead]:
        """Find a lead by phone number variants; first match wins."""
        for variant in phone_number_variants(phone_number, self.country_code):
            lead = await self.lead_store.find_by_phone(variant)
            if lead is not None:
                logger.debug(f"Matched lead {lead.id} with phone variant {variant}")
                return lead
        return None

    async def reconcile(
        self,
        call_record: Optional[CallRecord],
        call_status: Union[str, CallStatus],
        raw_outcome: Optional[Dict[str, Any]] = None
    ) -> ReconcileResult:
        """
        Apply a call status to the lead the call was made to.

        Args:
            call_record: Call history record (provides call id and phone)
            call_status: Call status (CallStatus value or "connected")
            raw_outcome: Provider payload stored with the outcome
        """
        status_value = call_status.value if isinstance(call_status, CallStatus) else str(call_status)

        if call_record is None or not call_record.phone_number or call_record.phone_number == "Unknown":
            logger.info("No call record or phone number to reconcile lead status")
            return ReconcileResult(updated=False, skipped_reason="no_phone_number")

        lead = await self.find_lead_for_call(call_record.phone_number)
        if lead is None:
            logger.info(f"No lead found for phone: {call_record.phone_number}")
            return ReconcileResult(updated=False, skipped_reason="lead_not_found")

        new_status = map_lead_status(status_value)

        # Re-read immediately before writing
        current = await self.lead_store.get_by_id(lead.id)
        if current is None:
            return ReconcileResult(updated=False, lead_id=lead.id, skipped_reason="lead_not_found")

        current_status = current.call_connection_status

        if current_status in SUCCESS_STATUSES and new_status not in SUCCESS_STATUSES:
            logger.info(f"Lead {lead.id} is already '{current_status.value}', skipping downgrade to '{new_status.value}'")
            return ReconcileResult(
                updated=False, lead_id=lead.id, new_status=current_status, skipped_reason="no_downgrade"
            )

        if (
            current_status == CallConnectionStatus.CONNECTED
            and new_status == CallConnectionStatus.FAILED
            and status_value not in GENUINE_FAILURE_STATUSES
        ):
            logger.info(f"Lead {lead.id} is 'connected', not downgrading to 'failed' for '{status_value}'")
            return ReconcileResult(
                updated=False, lead_id=lead.id, new_status=current_status, skipped_reason="not_genuine_failure"
            )

        last_call_data = current.last_call_data or {}
        if (
            current_status == new_status
            and last_call_data.get("call_id") == call_record.call_id
            and last_call_data.get("status") == status_value
        ):
            logger.debug(f"Outcome '{status_value}' for call {call_record.call_id} already applied to lead {lead.id}")
            return ReconcileResult(
                updated=False, lead_id=lead.id, new_status=current_status, skipped_reason="already_applied"
            )

        now = self._clock()
        fields: Dict[str, Any] = {
            "call_connection_status": new_status,
            "last_call_data": {
                "call_id": call_record.call_id,
                "status": status_value,
                "started_at": call_record.started_at.isoformat() if call_record.started_at else None,
                "ended_at": call_record.ended_at.isoformat() if call_record.ended_at else None,
                "duration": call_record.duration_seconds or (raw_outcome or {}).get("durationSeconds") or 0,
                "provider_payload": raw_outcome or {},
            },
            "last_call_time": now,
            "updated_at": now,
        }

        if new_status in SUCCESS_STATUSES:
            # Successful contact ends the cycle early
            fields["auto_call_attempts"] = 0
            fields["call_cycle_start_time"] = None

        updated = await self.lead_store.update(lead.id, fields)
        if updated is None:
            logger.error(f"Failed to update lead status: {lead.id}")
            return ReconcileResult(updated=False, lead_id=lead.id, skipped_reason="update_failed")

        logger.info(
            f"Lead {lead.id} status '{current_status.value}' -> '{new_status.value}' "
            f"(call {call_record.call_id}, call status '{status_value}')"
        )
        return ReconcileResult(updated=True, lead_id=lead.id, new_status=new_status)
