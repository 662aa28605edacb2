"""
Call Dispatcher
Places an auto-call for a lead and records attempt bookkeeping
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from app.domain.interfaces.call_history_store import CallHistoryStore
from app.domain.interfaces.call_provider import CallProvider, CallProviderError
from app.domain.interfaces.lead_store import LeadStore
from app.domain.models.assistant import Assistant
from app.domain.models.auto_call import DispatchResult
from app.domain.models.call import CallRecord, CallStatus
from app.domain.models.call_cycle import CallCyclePolicy
from app.domain.models.lead import CallConnectionStatus, Lead
from app.domain.services.dedup_cache import ExpiringKeySet
from app.domain.services.outcome_poller import OutcomePoller
from app.domain.services.phone_numbers import DEFAULT_COUNTRY_CODE, normalize_phone_number
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class CallDispatcher:
    """
    Dispatches one auto-call.

    Steps:
    1. Enforce the per-cycle attempt limit (reset an expired cycle)
    2. Plan the attempt number before dialing
    3. Create the call at the provider
    4. Persist attempt bookkeeping and the initial call history record
    5. Schedule the outcome poller and mark the lead in the dedup set

    A provider failure leaves the lead untouched so it stays eligible.
    """

    def __init__(
        self,
        call_provider: CallProvider,
        lead_store: LeadStore,
        call_history_store: CallHistoryStore,
        poller: OutcomePoller,
        dedup: ExpiringKeySet,
        policy: Optional[CallCyclePolicy] = None,
        country_code: str = DEFAULT_COUNTRY_CODE,
        clock: Callable[[], datetime] = utc_now
    ):
        self.call_provider = call_provider
        self.lead_store = lead_store
        self.call_history_store = call_history_store
        self.poller = poller
        self.dedup = dedup
        self.policy = policy or CallCyclePolicy.default()
        self.country_code = country_code
        self._clock = clock

    async def dispatch(self, lead: Lead, assistant: Assistant) -> DispatchResult:
        """Place a call to `lead` using `assistant`."""
        now = self._clock()
        max_attempts = self.policy.max_attempts_per_cycle

        if lead.attempts >= max_attempts:
            if not self.policy.cycle_expired(lead, now):
                logger.info(
                    f"Lead {lead.id}: max attempts ({max_attempts}) reached in current cycle, waiting"
                )
                return DispatchResult.failed("cycle_limit_reached")

            logger.info(f"Lead {lead.id}: cycle cooldown elapsed, starting new call cycle")
            await self.lead_store.update(lead.id, {
                "auto_call_attempts": 0,
                "call_cycle_start_time": None
            })
            lead = lead.model_copy(update={"auto_call_attempts": 0, "call_cycle_start_time": None})

        plan = self.policy.plan_attempt(lead, now)
        if plan is None:
            logger.warning(f"Lead {lead.id}: attempt would exceed {max_attempts} per cycle, blocked")
            return DispatchResult.failed("attempt_limit_exceeded")

        phone_number = normalize_phone_number(lead.contact_number or "", self.country_code)
        metadata = {
            "lead_id": lead.id,
            "user_id": lead.user_id,
            "source": "auto-call",
            "original_status": lead.call_connection_status.value,
            "assistant_id": assistant.id,
            "name": f"Auto Call - {lead.full_name or lead.contact_number}",
        }

        try:
            call_id = await self.call_provider.create_call(
                assistant_provider_id=assistant.provider_assistant_id,
                phone_number=phone_number,
                metadata=metadata
            )
        except CallProviderError as e:
            logger.warning(f"Failed to initiate auto-call for {phone_number}: {e.message}")
            return DispatchResult.failed(e.message)

        updated = await self.lead_store.update(lead.id, {
            "last_call_time": now,
            "last_auto_call_id": call_id,
            "call_connection_status": CallConnectionStatus.IN_PROGRESS,
            "auto_call_attempts": plan.attempt_number,
            "call_cycle_start_time": plan.cycle_start_time,
        })
        if updated is None:
            # The call is already placed; keep going so the lead is deduped and polled
            logger.error(f"Call {call_id} placed but lead {lead.id} could not be updated")

        await self._record_call(call_id, assistant, phone_number, metadata, now)

        self.poller.schedule(call_id, lead.id)
        self.dedup.add(lead.dedup_key)

        logger.info(
            f"Call initiated for lead {lead.id} - attempt {plan.attempt_number}/{max_attempts}"
            f"{' (new cycle)' if plan.new_cycle else ''}, call id: {call_id}"
        )
        return DispatchResult(
            success=True,
            provider_call_id=call_id,
            attempt_number=plan.attempt_number
        )

    async def _record_call(
        self,
        call_id: str,
        assistant: Assistant,
        phone_number: str,
        metadata: dict,
        started_at: datetime
    ) -> None:
        """Create the initial call history record; failures are not fatal."""
        try:
            await self.call_history_store.create(CallRecord(
                call_id=call_id,
                assistant_id=assistant.id,
                phone_number=phone_number,
                status=CallStatus.INITIATED,
                started_at=started_at,
                metadata=metadata
            ))
        except Exception as e:
            logger.error(f"Failed to create call history for {call_id}: {e}")
