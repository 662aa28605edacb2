"""
Auto-Call Scheduler
Background loop that dials eligible leads on a fixed interval

Runs inside the API process (started from the FastAPI lifespan) or as a
separate process:
    python -m app.workers.auto_call_scheduler
"""
import asyncio
import logging
import signal
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set

from dotenv import load_dotenv

from app.domain.interfaces.lead_store import LeadStore
from app.domain.models.auto_call import (
    AutoCallStatus,
    EligibleLeadsFilter,
    MIN_CALL_DELAY_SECONDS,
)
from app.domain.models.call_cycle import CallCyclePolicy
from app.domain.models.lead import Lead
from app.domain.services.assistant_resolver import AssistantResolver
from app.domain.services.call_dispatcher import CallDispatcher
from app.domain.services.dedup_cache import ExpiringKeySet
from app.utils.time_utils import utc_now

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


class AutoCallScheduler:
    """
    Periodically dials eligible leads.

    States: stopped -> running on start(), running -> stopped on stop().
    While running, a timer task fires check_and_call_leads() every
    `call_delay` seconds (wall-clock ticks, not chained off cycle
    completion), plus one bootstrap run shortly after start.

    Per cycle:
    1. Query eligible leads, oldest first, capped at the batch size
    2. Skip leads in the dedup set
    3. Resolve an assistant and dispatch; count successes
    4. Pause between dispatches

    Overlapping cycles are suppressed unless `allow_overlapping_cycles`
    is set; a tick that finds a cycle still running is skipped.
    One lead's failure never stops the batch.
    """

    DEFAULT_CALL_DELAY = 60
    DEFAULT_MAX_CALLS_PER_BATCH = 10

    # Candidate paging for get_eligible_leads
    CANDIDATE_PAGE_SIZE = 50
    MAX_CANDIDATE_PAGES = 20

    def __init__(
        self,
        lead_store: LeadStore,
        resolver: AssistantResolver,
        dispatcher: CallDispatcher,
        dedup: ExpiringKeySet,
        policy: Optional[CallCyclePolicy] = None,
        call_delay: int = DEFAULT_CALL_DELAY,
        max_calls_per_batch: int = DEFAULT_MAX_CALLS_PER_BATCH,
        dispatch_delay: float = 2.0,
        bootstrap_delay: float = 5.0,
        allow_overlapping_cycles: bool = False,
        clock: Callable[[], datetime] = utc_now
    ):
        self.lead_store = lead_store
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.dedup = dedup
        self.policy = policy or CallCyclePolicy.default()

        self.call_delay = call_delay
        self.max_calls_per_batch = max_calls_per_batch
        self.dispatch_delay = dispatch_delay
        self.bootstrap_delay = bootstrap_delay
        self.allow_overlapping_cycles = allow_overlapping_cycles
        self.candidate_page_size = self.CANDIDATE_PAGE_SIZE
        self.max_candidate_pages = self.MAX_CANDIDATE_PAGES
        self._clock = clock

        self.running = False
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()
        self._active_cycles = 0

        # Stats
        self.last_check_time: Optional[datetime] = None
        self.total_calls = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def auto_start(self, warmup_seconds: float = 15.0) -> None:
        """Start after a warm-up delay (process boot)."""
        await asyncio.sleep(warmup_seconds)
        self.start()

    def start(self) -> bool:
        """
        Start background monitoring.

        Returns:
            False if already running
        """
        if self.running:
            logger.info("Auto-call scheduler already running")
            return False

        self.running = True
        self.last_check_time = self._clock()
        self._timer_task = asyncio.create_task(self._tick_loop(self.call_delay), name="auto-call-timer")
        self._spawn_cycle(delay=self.bootstrap_delay)

        logger.info(
            f"Auto-call scheduler started - checking every {self.call_delay}s "
            f"for {', '.join(s.value for s in self.policy.eligible_statuses)} leads"
        )
        return True

    def stop(self) -> bool:
        """
        Stop the timer. In-flight cycles and outcome polls run to completion.

        Returns:
            False if it was not running
        """
        was_running = self.running
        self.running = False
        self._cancel_timer()
        if was_running:
            logger.info("Auto-call scheduler stopped")
        return was_running

    async def shutdown(self) -> None:
        """Stop and cancel any running cycle (process exit)."""
        self.stop()
        tasks = list(self._cycle_tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Auto-call scheduler shutdown complete. Total calls: {self.total_calls}")

    def update_settings(
        self,
        call_delay: Optional[int] = None,
        max_calls_per_batch: Optional[int] = None
    ) -> AutoCallStatus:
        """
        Change interval and/or batch size at runtime.

        A new interval replaces the timer in place; the running state is kept.

        Raises:
            ValueError: If a value is out of range
        """
        if call_delay is not None and call_delay < MIN_CALL_DELAY_SECONDS:
            raise ValueError(f"call_delay must be at least {MIN_CALL_DELAY_SECONDS} seconds")
        if max_calls_per_batch is not None and max_calls_per_batch < 1:
            raise ValueError("max_calls_per_batch must be at least 1")

        if call_delay is not None and call_delay != self.call_delay:
            self.call_delay = call_delay
            if self.running:
                old_timer = self._timer_task
                self._timer_task = asyncio.create_task(self._tick_loop(call_delay), name="auto-call-timer")
                if old_timer is not None:
                    old_timer.cancel()

        if max_calls_per_batch is not None:
            self.max_calls_per_batch = max_calls_per_batch

        logger.info(
            f"Auto-call settings updated: delay={self.call_delay}s, batch={self.max_calls_per_batch}"
        )
        return self.get_status()

    def get_status(self) -> AutoCallStatus:
        next_check = (
            self.last_check_time + timedelta(seconds=self.call_delay)
            if self.last_check_time else None
        )
        return AutoCallStatus(
            is_running=self.running,
            call_delay=self.call_delay,
            max_calls_per_batch=self.max_calls_per_batch,
            last_check_time=self.last_check_time,
            next_check_time=next_check,
            total_calls=self.total_calls,
            processed_leads_count=len(self.dedup),
            cycle_in_progress=self._active_cycles > 0,
            allow_overlapping_cycles=self.allow_overlapping_cycles
        )

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def get_eligible_leads(self, lead_filter: Optional[EligibleLeadsFilter] = None) -> List[Lead]:
        """
        Leads that may be dialed now, oldest first.

        Store query narrowed again in memory with the policy predicate and
        the dedup set. Candidates are read page by page until `limit` leads
        pass, so rejected rows at the head of the queue cannot hide newer
        valid leads.
        """
        lead_filter = lead_filter or EligibleLeadsFilter()
        now = self._clock()
        limit = lead_filter.limit or self.max_calls_per_batch
        page_size = max(limit, self.candidate_page_size)

        criteria = self.policy.criteria(
            now,
            project_name=lead_filter.project_name,
            user_id=lead_filter.user_id
        )

        eligible: List[Lead] = []
        scanned = 0
        for page in range(self.max_candidate_pages):
            candidates = await self.lead_store.find_eligible(criteria, page_size, offset=page * page_size)
            scanned += len(candidates)

            for lead in candidates:
                if lead.dedup_key in self.dedup:
                    logger.debug(f"Lead {lead.id} recently processed, skipping")
                    continue
                is_eligible, reason = self.policy.is_eligible(lead, now)
                if not is_eligible:
                    logger.debug(f"Lead {lead.id} not eligible: {reason}")
                    continue
                eligible.append(lead)
                if len(eligible) >= limit:
                    break

            if len(eligible) >= limit or len(candidates) < page_size:
                break

        logger.info(f"Eligible leads: {len(eligible)} of {scanned} candidates")
        return eligible

    async def check_and_call_leads(self) -> int:
        """
        Run one dialing cycle.

        Returns:
            Number of calls placed
        """
        if self._active_cycles > 0 and not self.allow_overlapping_cycles:
            logger.warning("Previous auto-call cycle still running, skipping this tick")
            return 0

        self._active_cycles += 1
        try:
            return await self._run_cycle()
        finally:
            self._active_cycles -= 1

    async def _run_cycle(self) -> int:
        self.last_check_time = self._clock()
        logger.info("Auto-call scheduler: checking for leads...")

        try:
            leads = await self.get_eligible_leads()
        except Exception as e:
            logger.error(f"Failed to query eligible leads: {e}", exc_info=True)
            return 0

        if not leads:
            logger.info("No eligible leads found for auto-calling")
            return 0

        calls_made = 0
        for index, lead in enumerate(leads[:self.max_calls_per_batch]):
            if lead.dedup_key in self.dedup:
                continue

            if await self._call_lead(lead):
                calls_made += 1
                self.total_calls += 1

            if self.dispatch_delay and index < len(leads) - 1:
                await asyncio.sleep(self.dispatch_delay)

        logger.info(f"Auto-call cycle complete: {calls_made} calls initiated")
        return calls_made

    async def _call_lead(self, lead: Lead) -> bool:
        """Resolve and dispatch for one lead; errors stay with the lead."""
        try:
            assistant = await self.resolver.resolve(lead.project_name)
            if assistant is None:
                logger.info(f"No valid assistant for project {lead.project_name}, skipping lead {lead.id}")
                return False

            result = await self.dispatcher.dispatch(lead, assistant)
            if not result.success:
                logger.info(f"Dispatch skipped for lead {lead.id}: {result.error}")
            return result.success

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Auto-call failed for lead {lead.id}: {e}", exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _tick_loop(self, interval: float) -> None:
        while self.running:
            await asyncio.sleep(interval)
            if not self.running:
                break
            self._spawn_cycle()

    def _spawn_cycle(self, delay: float = 0) -> asyncio.Task:
        task = asyncio.create_task(self._delayed_cycle(delay), name="auto-call-cycle")
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
        return task

    async def _delayed_cycle(self, delay: float) -> None:
        if delay:
            await asyncio.sleep(delay)
        if self.running:
            await self.check_and_call_leads()

    def _cancel_timer(self) -> None:
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None


async def main():
    """Entry point for running the scheduler as a separate process."""
    from app.core.container import build_container

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    container = build_container()
    scheduler = container.scheduler
    stop_event = asyncio.Event()

    # Handle shutdown signals
    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    scheduler.start()
    try:
        await stop_event.wait()
    finally:
        await container.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
