"""
Assistant Resolver
Picks a provider-verified calling assistant for a lead's project
"""
import logging
from typing import Optional

from app.domain.interfaces.assistant_store import AssistantStore
from app.domain.interfaces.call_provider import CallProvider, CallProviderError
from app.domain.models.assistant import Assistant

logger = logging.getLogger(__name__)


OUT_OF_SYNC_REASON = "Assistant not found at calling provider - needs re-creation"


class AssistantResolver:
    """
    Resolves which assistant dials a given project.

    Selection order (first match wins):
    1. Exact metadata project match (synced)
    2. Name or project containing the project name, case-insensitive (synced)
    3. Most recently updated synced assistant
    4. Any non-archived assistant

    The pick is then verified against the provider. A failed verification
    marks the assistant out-of-sync and one alternative synced assistant
    is tried.
    """

    def __init__(self, assistant_store: AssistantStore, call_provider: CallProvider):
        self.assistant_store = assistant_store
        self.call_provider = call_provider

    async def resolve(self, project_name: Optional[str]) -> Optional[Assistant]:
        """
        Resolve a verified assistant for `project_name`.

        Returns:
            Assistant, or None when no candidate verifies
        """
        candidate = await self._select_candidate(project_name)
        if candidate is None:
            logger.info("No assistants available for auto-calling")
            return None

        if await self._verify(candidate):
            return candidate

        logger.info(f"Searching for alternative synced assistant (excluding {candidate.id})")
        alternative = await self.assistant_store.find_fallback(
            synced_only=True,
            exclude_id=candidate.id
        )
        if alternative is not None and await self._verify(alternative):
            logger.info(f"Using alternative assistant: {alternative.name}")
            return alternative

        logger.warning(f"No valid synced assistant available for project: {project_name}")
        return None

    async def _select_candidate(self, project_name: Optional[str]) -> Optional[Assistant]:
        if project_name:
            assistant = await self.assistant_store.find_by_project_exact(project_name)
            if assistant:
                logger.info(f"Found assistant (exact project match): {assistant.name} for {project_name}")
                return assistant

            assistant = await self.assistant_store.find_by_project_fuzzy(project_name)
            if assistant:
                logger.info(f"Found assistant (fuzzy match): {assistant.name} for {project_name}")
                return assistant

        assistant = await self.assistant_store.find_fallback(synced_only=True)
        if assistant:
            logger.info(f"Using fallback assistant: {assistant.name} (no project match for {project_name})")
            return assistant

        assistant = await self.assistant_store.find_fallback(synced_only=False)
        if assistant:
            logger.warning(f"Using unsynced assistant as last resort: {assistant.name}")
        return assistant

    async def _verify(self, assistant: Assistant) -> bool:
        """Check the assistant still exists at the provider and persist the result."""
        try:
            await self.call_provider.get_assistant(assistant.provider_assistant_id)
        except CallProviderError as e:
            logger.warning(
                f"Assistant {assistant.name} ({assistant.provider_assistant_id}) "
                f"failed provider verification: {e.message}"
            )
            await self.assistant_store.mark_out_of_sync(assistant.id, OUT_OF_SYNC_REASON)
            return False

        await self.assistant_store.mark_synced(assistant.id)
        logger.debug(f"Assistant verified at provider: {assistant.name}")
        return True
