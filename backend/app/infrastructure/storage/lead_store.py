"""
Supabase Lead Store
Leads table access for the auto-call engine
"""
import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from app.domain.interfaces.lead_store import LeadStore
from app.domain.models.call_cycle import EligibilityCriteria
from app.domain.models.lead import Lead
from app.infrastructure.storage.rows import filter_timestamp, from_row, to_row

logger = logging.getLogger(__name__)


class SupabaseLeadStore(LeadStore):
    """`leads` table, one row per lead, snake_case columns matching Lead."""

    TABLE = "leads"

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def find_eligible(self, criteria: EligibilityCriteria, limit: int, offset: int = 0) -> List[Lead]:
        second_before = filter_timestamp(criteria.second_attempt_before)
        cycle_before = filter_timestamp(criteria.new_cycle_before)

        query = self.supabase.table(self.TABLE).select("*").in_(
            "call_connection_status", [s.value for s in criteria.statuses]
        ).is_("deleted_at", "null").not_.is_(
            "contact_number", "null"
        ).neq("contact_number", "").not_.is_(
            "project_name", "null"
        ).neq("project_name", "").or_(
            "auto_call_attempts.is.null,"
            "auto_call_attempts.eq.0,"
            f"and(auto_call_attempts.eq.1,last_call_time.lt.{second_before}),"
            f"and(auto_call_attempts.gte.2,last_call_time.lt.{cycle_before})"
        )

        if criteria.project_name:
            query = query.eq("project_name", criteria.project_name)
        if criteria.user_id:
            query = query.eq("user_id", criteria.user_id)

        response = query.order("created_at").range(offset, offset + limit - 1).execute()
        return [Lead.model_validate(from_row(row)) for row in (response.data or [])]

    async def get_by_id(self, lead_id: str) -> Optional[Lead]:
        response = self.supabase.table(self.TABLE).select("*").eq("id", lead_id).limit(1).execute()
        if not response.data:
            return None
        return Lead.model_validate(from_row(response.data[0]))

    async def update(self, lead_id: str, fields: Dict[str, Any]) -> Optional[Lead]:
        response = self.supabase.table(self.TABLE).update(to_row(fields)).eq("id", lead_id).execute()
        if not response.data:
            logger.warning(f"Lead update matched no rows: {lead_id}")
            return None
        return Lead.model_validate(from_row(response.data[0]))

    async def find_by_phone(self, phone_number: str) -> Optional[Lead]:
        response = self.supabase.table(self.TABLE).select("*").eq(
            "contact_number", phone_number
        ).is_("deleted_at", "null").limit(1).execute()
        if not response.data:
            return None
        return Lead.model_validate(from_row(response.data[0]))
