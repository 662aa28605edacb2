"""
Lead Domain Models
"""
from pydantic import BaseModel, field_validator
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum

from app.utils.time_utils import ensure_utc


class CallConnectionStatus(str, Enum):
    """Lead-level call status driving auto-call eligibility"""
    PENDING = "pending"
    CONNECTED = "connected"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Statuses that end the lead's auto-call cycle early
SUCCESS_STATUSES = {CallConnectionStatus.COMPLETED, CallConnectionStatus.CONNECTED}


class Lead(BaseModel):
    """Lead/Contact for auto-calling"""
    id: str
    user_id: Optional[str] = None
    full_name: Optional[str] = None
    contact_number: Optional[str] = None
    project_name: Optional[str] = None
    call_connection_status: CallConnectionStatus = CallConnectionStatus.PENDING

    # Auto-call tracking (None attempts = never called)
    auto_call_attempts: Optional[int] = None
    last_call_time: Optional[datetime] = None
    call_cycle_start_time: Optional[datetime] = None
    last_auto_call_id: Optional[str] = None
    last_call_data: Optional[Dict[str, Any]] = None

    deleted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "last_call_time", "call_cycle_start_time", "deleted_at", "created_at", "updated_at"
    )
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @property
    def attempts(self) -> int:
        """Attempt count with unset treated as zero."""
        return self.auto_call_attempts or 0

    @property
    def dedup_key(self) -> str:
        """Key used by the scheduler's short-term dedup set."""
        return f"{self.id}_{self.contact_number}"
