"""
Outcome Poller
Background backstop that re-queries the provider until a call has ended
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, Set

from app.domain.interfaces.call_provider import CallProvider, CallProviderError
from app.domain.models.call import ProviderCall

logger = logging.getLogger(__name__)


CallEndedCallback = Callable[[ProviderCall], Awaitable[object]]


class OutcomePoller:
    """
    Polls the provider for a call's terminal state.

    Webhooks are the primary outcome signal; this is an at-least-once
    backstop, so the ended-call callback must tolerate being invoked for a
    call the webhook already reported. Each poll runs as its own asyncio
    task carrying only (call_id, lead_id, attempt) and keeps running when
    the scheduler is stopped.

    Exhausting the attempts leaves the lead untouched.
    """

    DEFAULT_DELAYS_SECONDS = (60, 120, 180)
    DEFAULT_MAX_ATTEMPTS = 3

    def __init__(
        self,
        call_provider: CallProvider,
        on_call_ended: CallEndedCallback,
        delays_seconds: Sequence[float] = DEFAULT_DELAYS_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS
    ):
        self.call_provider = call_provider
        self.on_call_ended = on_call_ended
        self.delays_seconds = tuple(delays_seconds) or self.DEFAULT_DELAYS_SECONDS
        self.max_attempts = max_attempts
        self._tasks: Set[asyncio.Task] = set()

    def delay_for(self, attempt: int) -> float:
        """Delay before the given 1-based attempt."""
        if 1 <= attempt <= len(self.delays_seconds):
            return self.delays_seconds[attempt - 1]
        return self.delays_seconds[0]

    def schedule(self, call_id: str, lead_id: str, attempt: int = 1) -> asyncio.Task:
        """Start polling in the background (fire-and-forget)."""
        task = asyncio.create_task(
            self.poll(call_id, lead_id, attempt=attempt),
            name=f"poll-call-{call_id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def poll(
        self,
        call_id: str,
        lead_id: str,
        attempt: int = 1,
        max_attempts: Optional[int] = None
    ) -> bool:
        """
        Poll until the call ends or attempts run out.

        Returns:
            True if the ended call was handed to the callback
        """
        max_attempts = max_attempts or self.max_attempts

        while attempt <= max_attempts:
            await asyncio.sleep(self.delay_for(attempt))
            logger.info(f"Polling call status (attempt {attempt}/{max_attempts}): {call_id}")

            try:
                call = await self.call_provider.get_call(call_id)
            except CallProviderError as e:
                logger.warning(f"Failed to poll call {call_id} for lead {lead_id}: {e.message}")
                attempt += 1
                continue

            logger.info(
                f"Poll result for {call_id} - status: {call.status}, "
                f"duration: {call.duration_seconds}s, reason: {call.ended_reason}"
            )

            if call.is_ended:
                try:
                    await self.on_call_ended(call)
                except Exception as e:
                    logger.error(f"Error handling polled outcome for call {call_id}: {e}", exc_info=True)
                    return False
                return True

            attempt += 1

        logger.info(f"Call {call_id} not ended after {max_attempts} polls; leaving lead {lead_id} unchanged")
        return False

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        """Cancel outstanding polls (process exit only)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} outstanding call polls")
