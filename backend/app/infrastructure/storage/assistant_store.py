"""
Supabase Assistant Store
Assistants table access for project-based assistant resolution
"""
import logging
import re
from typing import Optional

from supabase import Client

from app.domain.interfaces.assistant_store import AssistantStore
from app.domain.models.assistant import Assistant, AssistantStatus, SyncStatus
from app.infrastructure.storage.rows import from_row, to_row
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class SupabaseAssistantStore(AssistantStore):
    """`assistants` table; project tag lives in the `metadata` jsonb column."""

    TABLE = "assistants"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _active(self, synced_only: bool = True):
        query = self.supabase.table(self.TABLE).select("*").neq("status", AssistantStatus.ARCHIVED.value)
        if synced_only:
            query = query.eq("sync_status", SyncStatus.SYNCED.value)
        return query

    async def find_by_project_exact(self, project_name: str) -> Optional[Assistant]:
        response = self._active().eq("metadata->>project", project_name).order(
            "updated_at", desc=True
        ).limit(1).execute()
        return self._first(response.data)

    async def find_by_project_fuzzy(self, project_name: str) -> Optional[Assistant]:
        pattern = re.compile(re.escape(project_name), re.IGNORECASE)
        response = self._active().order("updated_at", desc=True).execute()

        for row in response.data or []:
            assistant = Assistant.model_validate(from_row(row))
            if pattern.search(assistant.name) or pattern.search(str(assistant.project or "")):
                return assistant
        return None

    async def find_fallback(
        self,
        synced_only: bool = True,
        exclude_id: Optional[str] = None
    ) -> Optional[Assistant]:
        query = self._active(synced_only=synced_only)
        if exclude_id:
            query = query.neq("id", exclude_id)
        response = query.order("updated_at", desc=True).limit(1).execute()
        return self._first(response.data)

    async def get_by_provider_id(self, provider_assistant_id: str) -> Optional[Assistant]:
        response = self.supabase.table(self.TABLE).select("*").eq(
            "provider_assistant_id", provider_assistant_id
        ).limit(1).execute()
        return self._first(response.data)

    async def mark_out_of_sync(self, assistant_id: str, reason: str) -> None:
        self.supabase.table(self.TABLE).update(to_row({
            "sync_status": SyncStatus.OUT_OF_SYNC,
            "last_sync_error": reason,
            "updated_at": utc_now(),
        })).eq("id", assistant_id).execute()

    async def mark_synced(self, assistant_id: str) -> None:
        self.supabase.table(self.TABLE).update({
            "sync_status": SyncStatus.SYNCED.value,
            "last_sync_error": None,
        }).eq("id", assistant_id).execute()

    async def record_call_stats(self, assistant_id: str, duration_seconds: float, successful: bool) -> None:
        response = self.supabase.table(self.TABLE).select("*").eq("id", assistant_id).limit(1).execute()
        assistant = self._first(response.data)
        if assistant is None:
            logger.warning(f"Assistant not found for call stats: {assistant_id}")
            return

        fields = assistant.call_stats_after(duration_seconds, successful, utc_now())
        self.supabase.table(self.TABLE).update(to_row(fields)).eq("id", assistant_id).execute()

    @staticmethod
    def _first(rows) -> Optional[Assistant]:
        if not rows:
            return None
        return Assistant.model_validate(from_row(rows[0]))
