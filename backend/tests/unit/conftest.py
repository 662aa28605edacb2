"""
Shared fixtures for auto-call unit tests
In-memory stores, a scripted calling provider and a controllable clock
"""
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from app.domain.interfaces.assistant_store import AssistantStore
from app.domain.interfaces.call_history_store import CallHistoryStore
from app.domain.interfaces.call_provider import CallProvider, CallProviderError
from app.domain.interfaces.lead_store import LeadStore
from app.domain.models.assistant import Assistant, AssistantStatus, SyncStatus
from app.domain.models.call import CallRecord, ProviderCall
from app.domain.models.call_cycle import EligibilityCriteria
from app.domain.models.lead import Lead
from app.domain.services.dedup_cache import ExpiringKeySet


NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class InMemoryLeadStore(LeadStore):
    def __init__(self):
        self.leads: Dict[str, Lead] = {}
        self.updates: List[tuple] = []
        self.fail_updates = False
        self.fail_queries = False
        self.queries: List[tuple] = []

    def add(self, lead: Lead) -> Lead:
        self.leads[lead.id] = lead
        return lead

    async def find_eligible(self, criteria: EligibilityCriteria, limit: int, offset: int = 0) -> List[Lead]:
        self.queries.append((limit, offset))
        if self.fail_queries:
            raise RuntimeError("database unavailable")

        matches = []
        for lead in self.leads.values():
            if lead.call_connection_status not in criteria.statuses:
                continue
            if lead.deleted_at is not None or not lead.contact_number or not lead.project_name:
                continue
            if criteria.project_name and lead.project_name != criteria.project_name:
                continue
            if criteria.user_id and lead.user_id != criteria.user_id:
                continue

            attempts = lead.auto_call_attempts
            if attempts in (None, 0):
                matches.append(lead)
            elif lead.last_call_time is None:
                continue
            elif attempts == 1 and lead.last_call_time < criteria.second_attempt_before:
                matches.append(lead)
            elif attempts >= 2 and lead.last_call_time < criteria.new_cycle_before:
                matches.append(lead)

        matches.sort(key=lambda l: l.created_at or NOW)
        return matches[offset:offset + limit]

    async def get_by_id(self, lead_id: str) -> Optional[Lead]:
        return self.leads.get(lead_id)

    async def update(self, lead_id: str, fields: Dict[str, Any]) -> Optional[Lead]:
        self.updates.append((lead_id, dict(fields)))
        if self.fail_updates or lead_id not in self.leads:
            return None
        updated = self.leads[lead_id].model_copy(update=fields)
        self.leads[lead_id] = updated
        return updated

    async def find_by_phone(self, phone_number: str) -> Optional[Lead]:
        for lead in self.leads.values():
            if lead.contact_number == phone_number and lead.deleted_at is None:
                return lead
        return None


class InMemoryAssistantStore(AssistantStore):
    def __init__(self):
        self.assistants: List[Assistant] = []
        self.out_of_sync: List[tuple] = []
        self.synced: List[str] = []
        self.call_stats: List[tuple] = []
        self.fail_stats = False

    def add(self, assistant: Assistant) -> Assistant:
        self.assistants.append(assistant)
        return assistant

    def _candidates(self, synced_only: bool = True) -> List[Assistant]:
        rows = [
            a for a in self.assistants
            if a.status != AssistantStatus.ARCHIVED
            and (not synced_only or a.sync_status == SyncStatus.SYNCED)
        ]
        return sorted(rows, key=lambda a: a.updated_at or NOW, reverse=True)

    async def find_by_project_exact(self, project_name: str) -> Optional[Assistant]:
        for assistant in self._candidates():
            if assistant.project == project_name:
                return assistant
        return None

    async def find_by_project_fuzzy(self, project_name: str) -> Optional[Assistant]:
        needle = project_name.lower()
        for assistant in self._candidates():
            if needle in assistant.name.lower() or needle in str(assistant.project or "").lower():
                return assistant
        return None

    async def find_fallback(self, synced_only: bool = True, exclude_id: Optional[str] = None) -> Optional[Assistant]:
        for assistant in self._candidates(synced_only):
            if assistant.id != exclude_id:
                return assistant
        return None

    async def get_by_provider_id(self, provider_assistant_id: str) -> Optional[Assistant]:
        for assistant in self.assistants:
            if assistant.provider_assistant_id == provider_assistant_id:
                return assistant
        return None

    async def mark_out_of_sync(self, assistant_id: str, reason: str) -> None:
        self.out_of_sync.append((assistant_id, reason))
        self._set(assistant_id, sync_status=SyncStatus.OUT_OF_SYNC, last_sync_error=reason)

    async def mark_synced(self, assistant_id: str) -> None:
        self.synced.append(assistant_id)
        self._set(assistant_id, sync_status=SyncStatus.SYNCED, last_sync_error=None)

    async def record_call_stats(self, assistant_id: str, duration_seconds: float, successful: bool) -> None:
        if self.fail_stats:
            raise RuntimeError("stats update failed")
        self.call_stats.append((assistant_id, duration_seconds, successful))
        for assistant in self.assistants:
            if assistant.id == assistant_id:
                self._set(assistant_id, **assistant.call_stats_after(duration_seconds, successful, NOW))
                return

    def _set(self, assistant_id: str, **fields) -> None:
        self.assistants = [
            a.model_copy(update=fields) if a.id == assistant_id else a
            for a in self.assistants
        ]


class InMemoryCallHistoryStore(CallHistoryStore):
    def __init__(self):
        self.records: Dict[str, CallRecord] = {}
        self.fail_creates = False

    async def create(self, record: CallRecord) -> CallRecord:
        if self.fail_creates:
            raise RuntimeError("insert failed")
        self.records[record.call_id] = record
        return record

    async def get_by_call_id(self, call_id: str) -> Optional[CallRecord]:
        return self.records.get(call_id)

    async def update_by_call_id(self, call_id: str, fields: Dict[str, Any]) -> Optional[CallRecord]:
        if call_id not in self.records:
            return None
        self.records[call_id] = self.records[call_id].model_copy(update=fields)
        return self.records[call_id]


class FakeCallProvider(CallProvider):
    """Scripted provider: call ids are call-1, call-2, ..."""

    def __init__(self):
        self.created: List[Dict[str, Any]] = []
        self.calls: Dict[str, List[ProviderCall]] = {}
        self.missing_assistants = set()
        self.create_error: Optional[CallProviderError] = None
        self.get_call_error: Optional[CallProviderError] = None
        self.closed = False
        self._ids = itertools.count(1)

    @property
    def name(self) -> str:
        return "fake"

    async def create_call(self, assistant_provider_id, phone_number, metadata=None) -> str:
        if self.create_error is not None:
            raise self.create_error
        call_id = f"call-{next(self._ids)}"
        self.created.append({
            "call_id": call_id,
            "assistant_id": assistant_provider_id,
            "phone_number": phone_number,
            "metadata": metadata or {},
        })
        return call_id

    def script_call(self, call_id: str, *states: Dict[str, Any]) -> None:
        """Responses returned by successive get_call lookups (last one repeats)."""
        self.calls[call_id] = [ProviderCall.model_validate({"id": call_id, **s}) for s in states]

    async def get_call(self, call_id: str) -> ProviderCall:
        if self.get_call_error is not None:
            raise self.get_call_error
        states = self.calls.get(call_id)
        if not states:
            raise CallProviderError(f"Call not found: {call_id}", status_code=404)
        return states.pop(0) if len(states) > 1 else states[0]

    async def get_assistant(self, assistant_provider_id: str) -> Dict[str, Any]:
        if assistant_provider_id in self.missing_assistants:
            raise CallProviderError("Assistant not found", status_code=404)
        return {"id": assistant_provider_id}

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lead_store():
    return InMemoryLeadStore()


@pytest.fixture
def assistant_store():
    return InMemoryAssistantStore()


@pytest.fixture
def history_store():
    return InMemoryCallHistoryStore()


@pytest.fixture
def provider():
    return FakeCallProvider()


@pytest.fixture
def dedup(clock):
    return ExpiringKeySet(ttl_seconds=600, clock=clock)


@pytest.fixture
def make_lead(lead_store):
    """Factory that creates and stores a lead."""
    counter = itertools.count(1)

    def _make(**overrides) -> Lead:
        n = next(counter)
        data = {
            "id": f"lead-{n}",
            "user_id": "user-1",
            "full_name": f"Lead {n}",
            "contact_number": f"98765432{n:02d}",
            "project_name": "Skyline",
            "created_at": NOW - timedelta(days=1, minutes=-n),
        }
        data.update(overrides)
        return lead_store.add(Lead(**data))

    return _make


@pytest.fixture
def make_assistant(assistant_store):
    """Factory that creates and stores a synced assistant."""
    counter = itertools.count(1)

    def _make(project: Optional[str] = "Skyline", **overrides) -> Assistant:
        n = next(counter)
        data = {
            "id": f"asst-{n}",
            "provider_assistant_id": f"prov-asst-{n}",
            "name": f"Assistant {n}",
            "metadata": {"project": project} if project else {},
            "sync_status": SyncStatus.SYNCED,
            "updated_at": NOW - timedelta(hours=n),
        }
        data.update(overrides)
        return assistant_store.add(Assistant(**data))

    return _make
