"""
Auto-Call Models
Scheduler status/settings and per-operation results of the auto-call engine
"""
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from app.domain.models.lead import CallConnectionStatus


# Lower bound for the scheduler interval (seconds)
MIN_CALL_DELAY_SECONDS = 30


class AutoCallStatus(BaseModel):
    """Snapshot returned by the scheduler status query"""
    is_running: bool
    call_delay: int = Field(..., description="Seconds between scheduled checks")
    max_calls_per_batch: int
    last_check_time: Optional[datetime] = None
    next_check_time: Optional[datetime] = None
    total_calls: int = 0
    processed_leads_count: int = Field(0, description="Current dedup set size")
    cycle_in_progress: bool = False
    allow_overlapping_cycles: bool = False


class AutoCallSettingsUpdate(BaseModel):
    """Runtime settings change"""
    call_delay: Optional[int] = Field(
        default=None,
        ge=MIN_CALL_DELAY_SECONDS,
        description="Seconds between scheduled checks"
    )
    max_calls_per_batch: Optional[int] = Field(
        default=None,
        ge=1,
        le=100,
        description="Maximum leads dialed per check"
    )


class EligibleLeadsFilter(BaseModel):
    """Optional narrowing for the eligible-leads query"""
    project_name: Optional[str] = None
    user_id: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=100)


class DispatchResult(BaseModel):
    """Outcome of a single dispatch"""
    success: bool
    provider_call_id: Optional[str] = None
    attempt_number: Optional[int] = None
    error: Optional[str] = None

    @classmethod
    def failed(cls, error: str) -> "DispatchResult":
        return cls(success=False, error=error)


class ReconcileResult(BaseModel):
    """Outcome of applying a call status to a lead"""
    updated: bool
    lead_id: Optional[str] = None
    new_status: Optional[CallConnectionStatus] = None
    skipped_reason: Optional[str] = None
