"""
Unit Tests for Lead Status Reconciliation
Status mapping, anti-downgrade rules and repeated delivery
"""
import pytest
from datetime import timedelta

from app.domain.models.call import CallRecord, CallStatus
from app.domain.models.lead import CallConnectionStatus
from app.domain.services.lead_reconciler import (
    LeadStatusReconciler,
    derive_call_status,
    map_lead_status,
)


@pytest.fixture
def reconciler(lead_store, clock):
    return LeadStatusReconciler(lead_store, clock=clock)


def record(phone="+919876543201", call_id="call-1", **overrides) -> CallRecord:
    return CallRecord(call_id=call_id, phone_number=phone, **overrides)


class TestDeriveCallStatus:
    """End reason and duration -> call status"""

    @pytest.mark.parametrize("reason,duration,expected", [
        ("customer-did-not-answer", 45, CallStatus.COMPLETED),
        ("customer-ended-call", 12, CallStatus.COMPLETED),
        ("assistant-ended-call", 0, CallStatus.COMPLETED),
        ("customer-did-not-answer", 0, CallStatus.NO_ANSWER),
        ("customer-busy", 5, CallStatus.BUSY),
        ("error", 0, CallStatus.FAILED),
        ("assistant-error", 10, CallStatus.FAILED),
        ("silence-timed-out", 8, CallStatus.COMPLETED),
        ("silence-timed-out", 0, CallStatus.FAILED),
        (None, None, CallStatus.FAILED),
    ])
    def test_derive(self, reason, duration, expected):
        assert derive_call_status(reason, duration) == expected

    @pytest.mark.parametrize("call_status,expected", [
        ("connected", CallConnectionStatus.CONNECTED),
        (CallStatus.IN_PROGRESS, CallConnectionStatus.CONNECTED),
        (CallStatus.COMPLETED, CallConnectionStatus.COMPLETED),
        (CallStatus.NO_ANSWER, CallConnectionStatus.FAILED),
        (CallStatus.BUSY, CallConnectionStatus.FAILED),
        ("cancelled", CallConnectionStatus.FAILED),
        ("ringing", CallConnectionStatus.PENDING),
    ])
    def test_map_lead_status(self, call_status, expected):
        assert map_lead_status(call_status) == expected


class TestReconcile:
    """Applying outcomes to leads"""

    @pytest.mark.asyncio
    async def test_completed_call_resets_cycle(self, reconciler, make_lead, lead_store, clock):
        """45s customer-ended call completes the lead and clears the cycle"""
        lead = make_lead(
            call_connection_status=CallConnectionStatus.IN_PROGRESS,
            auto_call_attempts=1,
            call_cycle_start_time=clock.now - timedelta(minutes=2)
        )
        status = derive_call_status("customer-ended-call", 45)

        result = await reconciler.reconcile(
            record(phone=f"+91{lead.contact_number}", duration_seconds=45),
            status,
            {"durationSeconds": 45, "endedReason": "customer-ended-call"}
        )

        assert result.updated is True
        stored = lead_store.leads[lead.id]
        assert stored.call_connection_status == CallConnectionStatus.COMPLETED
        assert stored.auto_call_attempts == 0
        assert stored.call_cycle_start_time is None
        assert stored.last_call_data["call_id"] == "call-1"
        assert stored.last_call_data["duration"] == 45
        assert stored.last_call_data["provider_payload"]["endedReason"] == "customer-ended-call"

    @pytest.mark.asyncio
    async def test_failed_call_keeps_attempt_count(self, reconciler, make_lead, lead_store):
        lead = make_lead(call_connection_status=CallConnectionStatus.IN_PROGRESS, auto_call_attempts=1)

        result = await reconciler.reconcile(record(phone=lead.contact_number), CallStatus.NO_ANSWER)

        assert result.new_status == CallConnectionStatus.FAILED
        stored = lead_store.leads[lead.id]
        assert stored.call_connection_status == CallConnectionStatus.FAILED
        assert stored.auto_call_attempts == 1

    @pytest.mark.asyncio
    async def test_completed_is_never_downgraded(self, reconciler, make_lead, lead_store):
        lead = make_lead(call_connection_status=CallConnectionStatus.COMPLETED)

        result = await reconciler.reconcile(record(phone=lead.contact_number), CallStatus.FAILED)

        assert result.updated is False
        assert result.skipped_reason == "no_downgrade"
        assert lead_store.leads[lead.id].call_connection_status == CallConnectionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_connected_upgrades_to_completed(self, reconciler, make_lead, lead_store):
        lead = make_lead(call_connection_status=CallConnectionStatus.CONNECTED)

        result = await reconciler.reconcile(record(phone=lead.contact_number), CallStatus.COMPLETED)

        assert result.updated is True
        assert lead_store.leads[lead.id].call_connection_status == CallConnectionStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_unknown_status_does_not_downgrade_connected(self, reconciler, make_lead, lead_store):
        lead = make_lead(call_connection_status=CallConnectionStatus.CONNECTED)

        result = await reconciler.reconcile(record(phone=lead.contact_number), "ringing")

        assert result.updated is False
        assert lead_store.leads[lead.id].call_connection_status == CallConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_repeated_outcome_is_applied_once(self, reconciler, make_lead, lead_store):
        """Webhook and poller delivering the same failure update the lead once"""
        lead = make_lead(call_connection_status=CallConnectionStatus.IN_PROGRESS)
        call = record(phone=lead.contact_number)

        first = await reconciler.reconcile(call, CallStatus.BUSY)
        second = await reconciler.reconcile(call, CallStatus.BUSY)

        assert first.updated is True
        assert second.updated is False
        assert second.skipped_reason == "already_applied"
        assert len(lead_store.updates) == 1

    @pytest.mark.asyncio
    async def test_lead_matched_through_phone_variants(self, reconciler, make_lead):
        """Call placed to +91XXXXXXXXXX finds a lead stored as 10 digits"""
        lead = make_lead(contact_number="9876500000", call_connection_status=CallConnectionStatus.IN_PROGRESS)

        result = await reconciler.reconcile(record(phone="+919876500000"), "connected")

        assert result.lead_id == lead.id
        assert result.new_status == CallConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_unknown_phone_is_skipped(self, reconciler, make_lead):
        make_lead()

        missing = await reconciler.reconcile(record(phone="+10000000000"), CallStatus.COMPLETED)
        unknown = await reconciler.reconcile(record(phone="Unknown"), CallStatus.COMPLETED)
        no_record = await reconciler.reconcile(None, CallStatus.COMPLETED)

        assert missing.skipped_reason == "lead_not_found"
        assert unknown.skipped_reason == "no_phone_number"
        assert no_record.skipped_reason == "no_phone_number"

    @pytest.mark.asyncio
    async def test_update_failure_is_reported(self, reconciler, make_lead, lead_store):
        lead = make_lead(call_connection_status=CallConnectionStatus.IN_PROGRESS)
        lead_store.fail_updates = True

        result = await reconciler.reconcile(record(phone=lead.contact_number), CallStatus.COMPLETED)

        assert result.updated is False
        assert result.skipped_reason == "update_failed"
