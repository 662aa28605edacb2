"""
Assistant Domain Models
A calling agent configuration registered with the calling provider
"""
from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class SyncStatus(str, Enum):
    """Cached provider sync state"""
    SYNCED = "synced"
    OUT_OF_SYNC = "out-of-sync"
    PENDING = "pending"
    ERROR = "error"


class AssistantStatus(str, Enum):
    """Lifecycle status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    TESTING = "testing"
    ARCHIVED = "archived"


class Assistant(BaseModel):
    """Assistant record"""
    id: str
    provider_assistant_id: str
    name: str
    owner_id: Optional[str] = None
    metadata: Dict[str, Any] = {}
    sync_status: SyncStatus = SyncStatus.PENDING
    status: AssistantStatus = AssistantStatus.ACTIVE
    last_sync_error: Optional[str] = None
    updated_at: Optional[datetime] = None

    # Usage statistics
    total_calls: int = 0
    successful_calls: int = 0
    total_call_duration: float = 0
    average_call_duration: float = 0
    last_call_date: Optional[datetime] = None

    @property
    def project(self) -> Optional[str]:
        """Project tag from metadata"""
        return self.metadata.get("project")

    def call_stats_after(self, duration_seconds: float, successful: bool, at: datetime) -> Dict[str, Any]:
        """Usage statistics fields after one more finished call."""
        total_calls = self.total_calls + 1
        total_duration = self.total_call_duration + (duration_seconds or 0)
        return {
            "total_calls": total_calls,
            "successful_calls": self.successful_calls + (1 if successful else 0),
            "total_call_duration": total_duration,
            "average_call_duration": round(total_duration / total_calls),
            "last_call_date": at,
        }
