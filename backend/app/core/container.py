"""
Auto-Call Engine Wiring
Builds the scheduler, dispatcher, poller and event handler from settings
"""
import logging
from typing import Optional

from supabase import Client, create_client

from app.core.config import ConfigManager, Settings, get_settings
from app.domain.interfaces.assistant_store import AssistantStore
from app.domain.interfaces.call_history_store import CallHistoryStore
from app.domain.interfaces.call_provider import CallProvider
from app.domain.interfaces.lead_store import LeadStore
from app.domain.models.call_cycle import CallCyclePolicy
from app.domain.services.assistant_resolver import AssistantResolver
from app.domain.services.call_dispatcher import CallDispatcher
from app.domain.services.call_event_handler import CallEventHandler
from app.domain.services.dedup_cache import ExpiringKeySet
from app.domain.services.lead_reconciler import LeadStatusReconciler
from app.domain.services.outcome_poller import OutcomePoller
from app.workers.auto_call_scheduler import AutoCallScheduler

logger = logging.getLogger(__name__)


class AutoCallContainer:
    """
    Holds one process-wide auto-call engine.

    The outcome poller and the webhook share the same CallEventHandler, so
    both outcome paths end in the same reconciliation.
    """

    def __init__(
        self,
        settings: Settings,
        lead_store: LeadStore,
        assistant_store: AssistantStore,
        call_history_store: CallHistoryStore,
        call_provider: CallProvider,
        config: Optional[ConfigManager] = None
    ):
        config = config or ConfigManager()
        self.settings = settings
        self.call_provider = call_provider

        self.policy = CallCyclePolicy.from_dict(config.get_section("auto_call.policy"))
        polling = config.get_section("auto_call.polling")

        self.dedup = ExpiringKeySet(ttl_seconds=settings.auto_call_dedup_ttl_seconds)

        self.reconciler = LeadStatusReconciler(
            lead_store,
            country_code=settings.default_country_code
        )
        self.event_handler = CallEventHandler(
            call_history_store=call_history_store,
            assistant_store=assistant_store,
            reconciler=self.reconciler
        )
        self.poller = OutcomePoller(
            call_provider,
            on_call_ended=self.event_handler.handle_call_ended,
            delays_seconds=polling.get("delays_seconds", OutcomePoller.DEFAULT_DELAYS_SECONDS),
            max_attempts=polling.get("max_attempts", OutcomePoller.DEFAULT_MAX_ATTEMPTS)
        )
        self.resolver = AssistantResolver(assistant_store, call_provider)
        self.dispatcher = CallDispatcher(
            call_provider=call_provider,
            lead_store=lead_store,
            call_history_store=call_history_store,
            poller=self.poller,
            dedup=self.dedup,
            policy=self.policy,
            country_code=settings.default_country_code
        )
        self.scheduler = AutoCallScheduler(
            lead_store=lead_store,
            resolver=self.resolver,
            dispatcher=self.dispatcher,
            dedup=self.dedup,
            policy=self.policy,
            call_delay=settings.auto_call_interval_seconds,
            max_calls_per_batch=settings.auto_call_batch_size,
            dispatch_delay=settings.auto_call_dispatch_delay_seconds,
            bootstrap_delay=settings.auto_call_bootstrap_delay_seconds,
            allow_overlapping_cycles=settings.auto_call_allow_overlapping_cycles
        )

    async def shutdown(self) -> None:
        """Stop the scheduler, cancel outstanding polls and close the provider."""
        await self.scheduler.shutdown()
        await self.poller.shutdown()
        await self.call_provider.close()
        logger.info("Auto-call engine shut down")


def build_container(
    settings: Optional[Settings] = None,
    supabase: Optional[Client] = None,
    call_provider: Optional[CallProvider] = None,
    config: Optional[ConfigManager] = None
) -> AutoCallContainer:
    """
    Build the engine with Supabase stores and the Bolna provider.

    Raises:
        RuntimeError: If Supabase is not configured and no client is given
    """
    from app.infrastructure.storage.assistant_store import SupabaseAssistantStore
    from app.infrastructure.storage.call_history_store import SupabaseCallHistoryStore
    from app.infrastructure.storage.lead_store import SupabaseLeadStore
    from app.infrastructure.telephony.bolna_client import BolnaCallProvider

    settings = settings or get_settings()

    if supabase is None:
        if not settings.supabase_url or not settings.supabase_service_key:
            raise RuntimeError(
                "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set to run the auto-call engine"
            )
        supabase = create_client(settings.supabase_url, settings.supabase_service_key)

    if call_provider is None:
        call_provider = BolnaCallProvider(
            api_key=settings.bolna_api_key,
            base_url=settings.bolna_base_url,
            timeout=settings.bolna_timeout_seconds
        )

    return AutoCallContainer(
        settings=settings,
        lead_store=SupabaseLeadStore(supabase),
        assistant_store=SupabaseAssistantStore(supabase),
        call_history_store=SupabaseCallHistoryStore(supabase),
        call_provider=call_provider,
        config=config
    )
