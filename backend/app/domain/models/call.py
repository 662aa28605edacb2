"""
Call Domain Models
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class CallStatus(str, Enum):
    """Call history status"""
    INITIATED = "initiated"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    NO_ANSWER = "no-answer"
    BUSY = "busy"


class ProviderEventType(str, Enum):
    """Webhook event types sent by the calling provider"""
    CALL_STARTED = "call-started"
    CALL_ENDED = "call-ended"
    CALL_STATUS_UPDATE = "call-status-update"
    FUNCTION_CALL = "function-call"


# Provider status for a call that has finished
PROVIDER_ENDED_STATUS = "ended"


class Customer(BaseModel):
    """Call recipient"""
    model_config = ConfigDict(extra="allow")

    number: Optional[str] = None


class ProviderCall(BaseModel):
    """
    The provider's view of a call.

    Same shape for webhook event data and the "get call" lookup, so the
    poller and the webhook share one ended-call path. Accepts the
    provider's camelCase keys.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    assistant_id: Optional[str] = Field(default=None, alias="assistantId")
    customer: Customer = Field(default_factory=Customer)
    status: Optional[str] = None
    ended_reason: Optional[str] = Field(default=None, alias="endedReason")
    duration_seconds: Optional[float] = Field(default=None, alias="durationSeconds")
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    ended_at: Optional[datetime] = Field(default=None, alias="endedAt")
    cost: Optional[float] = None
    recording_url: Optional[str] = Field(default=None, alias="recordingUrl")
    transcript: Optional[str] = None
    metadata: Dict[str, Any] = {}

    @property
    def is_ended(self) -> bool:
        return self.status == PROVIDER_ENDED_STATUS

    def raw(self) -> Dict[str, Any]:
        """Payload as the provider sent it (camelCase, JSON-safe)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ProviderEvent(BaseModel):
    """Webhook envelope"""
    model_config = ConfigDict(extra="allow")

    type: str
    data: ProviderCall


class CallRecord(BaseModel):
    """Call history record"""
    call_id: str
    assistant_id: Optional[str] = None
    phone_number: str = "Unknown"
    status: CallStatus = CallStatus.INITIATED
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    cost: Optional[float] = None
    recording_url: Optional[str] = None
    transcript: Optional[str] = None
    metadata: Dict[str, Any] = {}
    provider_payload: Dict[str, Any] = {}
