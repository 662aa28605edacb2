"""
Supabase Call History Store
"""
from typing import Any, Dict, Optional

from supabase import Client

from app.domain.interfaces.call_history_store import CallHistoryStore
from app.domain.models.call import CallRecord
from app.infrastructure.storage.rows import from_row, to_row


class SupabaseCallHistoryStore(CallHistoryStore):
    """`call_history` table keyed by provider `call_id`."""

    TABLE = "call_history"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def create(self, record: CallRecord) -> CallRecord:
        row = record.model_dump(mode="json", exclude_none=True)
        response = self.supabase.table(self.TABLE).insert(row).execute()
        if response.data:
            return CallRecord.model_validate(from_row(response.data[0]))
        return record

    async def get_by_call_id(self, call_id: str) -> Optional[CallRecord]:
        response = self.supabase.table(self.TABLE).select("*").eq("call_id", call_id).limit(1).execute()
        if not response.data:
            return None
        return CallRecord.model_validate(from_row(response.data[0]))

    async def update_by_call_id(self, call_id: str, fields: Dict[str, Any]) -> Optional[CallRecord]:
        response = self.supabase.table(self.TABLE).update(to_row(fields)).eq("call_id", call_id).execute()
        if not response.data:
            return None
        return CallRecord.model_validate(from_row(response.data[0]))
