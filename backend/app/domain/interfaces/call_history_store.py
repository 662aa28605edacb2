"""
Call History Store Interface
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from app.domain.models.call import CallRecord


class CallHistoryStore(ABC):
    """Abstract call history persistence, keyed by provider call id"""

    @abstractmethod
    async def create(self, record: CallRecord) -> CallRecord:
        pass

    @abstractmethod
    async def get_by_call_id(self, call_id: str) -> Optional[CallRecord]:
        pass

    @abstractmethod
    async def update_by_call_id(self, call_id: str, fields: Dict[str, Any]) -> Optional[CallRecord]:
        """Partial update; returns the updated record or None if missing"""
        pass
