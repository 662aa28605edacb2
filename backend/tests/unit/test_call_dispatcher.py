"""
Unit Tests for the Call Dispatcher
Attempt bookkeeping, cycle limits and provider failures
"""
import pytest
from datetime import timedelta
from unittest.mock import MagicMock

from app.domain.interfaces.call_provider import CallProviderError
from app.domain.models.call import CallStatus
from app.domain.models.lead import CallConnectionStatus
from app.domain.services.call_dispatcher import CallDispatcher


@pytest.fixture
def poller():
    return MagicMock()


@pytest.fixture
def dispatcher(provider, lead_store, history_store, poller, dedup, clock):
    return CallDispatcher(
        call_provider=provider,
        lead_store=lead_store,
        call_history_store=history_store,
        poller=poller,
        dedup=dedup,
        clock=clock
    )


class TestDispatch:
    """Successful dispatches"""

    @pytest.mark.asyncio
    async def test_first_call_starts_cycle(
        self, dispatcher, make_lead, make_assistant, lead_store, clock, provider
    ):
        """Pending lead with 0 attempts becomes in-progress with attempt 1"""
        lead = make_lead(auto_call_attempts=0)
        assistant = make_assistant()

        result = await dispatcher.dispatch(lead, assistant)

        assert result.success is True
        assert result.provider_call_id == "call-1"
        assert result.attempt_number == 1

        stored = lead_store.leads[lead.id]
        assert stored.call_connection_status == CallConnectionStatus.IN_PROGRESS
        assert stored.auto_call_attempts == 1
        assert stored.call_cycle_start_time == clock.now
        assert stored.last_call_time == clock.now
        assert stored.last_auto_call_id == "call-1"

    @pytest.mark.asyncio
    async def test_provider_request_carries_correlation_metadata(
        self, dispatcher, make_lead, make_assistant, provider
    ):
        lead = make_lead(contact_number="98765 43210", full_name="Asha")
        assistant = make_assistant()

        await dispatcher.dispatch(lead, assistant)

        request = provider.created[0]
        assert request["phone_number"] == "+919876543210"
        assert request["assistant_id"] == assistant.provider_assistant_id
        assert request["metadata"]["lead_id"] == lead.id
        assert request["metadata"]["source"] == "auto-call"
        assert request["metadata"]["original_status"] == "pending"
        assert request["metadata"]["name"] == "Auto Call - Asha"

    @pytest.mark.asyncio
    async def test_dispatch_records_history_polls_and_dedups(
        self, dispatcher, make_lead, make_assistant, history_store, poller, dedup
    ):
        lead = make_lead()
        assistant = make_assistant()

        await dispatcher.dispatch(lead, assistant)

        record = history_store.records["call-1"]
        assert record.status == CallStatus.INITIATED
        assert record.assistant_id == assistant.id
        poller.schedule.assert_called_once_with("call-1", lead.id)
        assert lead.dedup_key in dedup

    @pytest.mark.asyncio
    async def test_second_attempt_within_cycle(
        self, dispatcher, make_lead, make_assistant, lead_store, clock
    ):
        """One attempt 6 minutes ago becomes attempt 2 in the same cycle"""
        started = clock.now - timedelta(minutes=6)
        lead = make_lead(
            auto_call_attempts=1,
            last_call_time=started,
            call_cycle_start_time=started,
            call_connection_status=CallConnectionStatus.FAILED
        )

        result = await dispatcher.dispatch(lead, make_assistant())

        assert result.attempt_number == 2
        stored = lead_store.leads[lead.id]
        assert stored.auto_call_attempts == 2
        assert stored.call_cycle_start_time == started

    @pytest.mark.asyncio
    async def test_expired_cycle_resets_to_first_attempt(
        self, dispatcher, make_lead, make_assistant, lead_store, clock
    ):
        """Two attempts, last one 61 minutes ago: fresh cycle, attempt 1"""
        last = clock.now - timedelta(minutes=61)
        lead = make_lead(
            auto_call_attempts=2,
            last_call_time=last,
            call_cycle_start_time=last - timedelta(minutes=6),
            call_connection_status=CallConnectionStatus.FAILED
        )

        result = await dispatcher.dispatch(lead, make_assistant())

        assert result.success is True
        assert result.attempt_number == 1
        stored = lead_store.leads[lead.id]
        assert stored.auto_call_attempts == 1
        assert stored.call_cycle_start_time == clock.now

        reset_fields = lead_store.updates[0][1]
        assert reset_fields == {"auto_call_attempts": 0, "call_cycle_start_time": None}


class TestDispatchRefusals:
    """Dispatches that must not place a call"""

    @pytest.mark.asyncio
    async def test_cycle_limit_blocks_third_attempt(
        self, dispatcher, make_lead, make_assistant, provider, lead_store, clock
    ):
        recent = clock.now - timedelta(minutes=10)
        lead = make_lead(auto_call_attempts=2, last_call_time=recent, call_cycle_start_time=recent)

        result = await dispatcher.dispatch(lead, make_assistant())

        assert result.success is False
        assert result.error == "cycle_limit_reached"
        assert provider.created == []
        assert lead_store.updates == []

    @pytest.mark.asyncio
    async def test_provider_failure_leaves_lead_untouched(
        self, dispatcher, make_lead, make_assistant, provider, lead_store, poller, dedup
    ):
        """A rejected call keeps the lead eligible for the next tick"""
        provider.create_error = CallProviderError("Bolna API error (500): boom", status_code=500)
        lead = make_lead()

        result = await dispatcher.dispatch(lead, make_assistant())

        assert result.success is False
        assert "500" in result.error
        assert lead_store.updates == []
        assert lead_store.leads[lead.id].auto_call_attempts is None
        poller.schedule.assert_not_called()
        assert lead.dedup_key not in dedup


class TestDispatchPartialFailures:
    """Call placed but bookkeeping fails"""

    @pytest.mark.asyncio
    async def test_lead_update_failure_still_tracks_call(
        self, dispatcher, make_lead, make_assistant, lead_store, poller, dedup
    ):
        lead_store.fail_updates = True
        lead = make_lead()

        result = await dispatcher.dispatch(lead, make_assistant())

        assert result.success is True
        poller.schedule.assert_called_once()
        assert lead.dedup_key in dedup

    @pytest.mark.asyncio
    async def test_history_failure_is_not_fatal(
        self, dispatcher, make_lead, make_assistant, history_store, poller
    ):
        history_store.fail_creates = True

        result = await dispatcher.dispatch(make_lead(), make_assistant())

        assert result.success is True
        poller.schedule.assert_called_once()
