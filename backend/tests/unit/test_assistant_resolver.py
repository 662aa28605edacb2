"""
Unit Tests for the Assistant Resolver
Selection order, provider verification and the out-of-sync fallback
"""
import pytest

from app.domain.models.assistant import AssistantStatus, SyncStatus
from app.domain.services.assistant_resolver import AssistantResolver, OUT_OF_SYNC_REASON


@pytest.fixture
def resolver(assistant_store, provider):
    return AssistantResolver(assistant_store, provider)


class TestSelection:
    """First match wins: exact, fuzzy, synced fallback, any"""

    @pytest.mark.asyncio
    async def test_exact_project_match_preferred(self, resolver, make_assistant):
        make_assistant(project="Skyline Towers", name="Skyline Towers Agent")
        exact = make_assistant(project="Skyline")

        assistant = await resolver.resolve("Skyline")

        assert assistant.id == exact.id

    @pytest.mark.asyncio
    async def test_fuzzy_match_on_name_is_case_insensitive(self, resolver, make_assistant):
        make_assistant(project="Other")
        fuzzy = make_assistant(project=None, name="ACME Sales Agent")

        assistant = await resolver.resolve("acme")

        assert assistant.id == fuzzy.id

    @pytest.mark.asyncio
    async def test_generic_fallback_when_no_project_match(self, resolver, make_assistant, assistant_store):
        """Project "Acme" with only a generic synced "Default" assistant"""
        default = make_assistant(project=None, name="Default")

        assistant = await resolver.resolve("Acme")

        assert assistant.name == "Default"
        assert assistant_store.synced == [default.id]

    @pytest.mark.asyncio
    async def test_unsynced_assistant_is_last_resort(self, resolver, make_assistant):
        pending = make_assistant(project=None, name="Draft", sync_status=SyncStatus.PENDING)

        assistant = await resolver.resolve("Acme")

        assert assistant.id == pending.id

    @pytest.mark.asyncio
    async def test_archived_assistants_are_never_used(self, resolver, make_assistant):
        make_assistant(project="Acme", status=AssistantStatus.ARCHIVED)

        assert await resolver.resolve("Acme") is None

    @pytest.mark.asyncio
    async def test_missing_project_uses_fallback(self, resolver, make_assistant):
        default = make_assistant(project=None, name="Default")

        assistant = await resolver.resolve(None)

        assert assistant.id == default.id


class TestVerification:
    """Provider verification and the single alternative"""

    @pytest.mark.asyncio
    async def test_failed_verification_uses_alternative(self, resolver, make_assistant, provider, assistant_store):
        """Selected assistant is gone at the provider; next synced one verifies"""
        stale = make_assistant(project="Acme")
        alternative = make_assistant(project=None, name="Backup")
        provider.missing_assistants.add(stale.provider_assistant_id)

        assistant = await resolver.resolve("Acme")

        assert assistant.id == alternative.id
        assert assistant_store.out_of_sync == [(stale.id, OUT_OF_SYNC_REASON)]
        assert alternative.id in assistant_store.synced

    @pytest.mark.asyncio
    async def test_failed_verification_without_alternative_returns_none(
        self, resolver, make_assistant, provider, assistant_store
    ):
        stale = make_assistant(project="Acme")
        provider.missing_assistants.add(stale.provider_assistant_id)

        assert await resolver.resolve("Acme") is None
        assert assistant_store.out_of_sync == [(stale.id, OUT_OF_SYNC_REASON)]

    @pytest.mark.asyncio
    async def test_only_one_alternative_is_tried(self, resolver, make_assistant, provider):
        first = make_assistant(project="Acme")
        second = make_assistant(project=None, name="Backup 1")
        make_assistant(project=None, name="Backup 2")
        provider.missing_assistants.update({first.provider_assistant_id, second.provider_assistant_id})

        assert await resolver.resolve("Acme") is None
