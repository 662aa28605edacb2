"""
Lead Store Interface
Read/write access to leads and their call-tracking fields
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any

from app.domain.models.lead import Lead
from app.domain.models.call_cycle import EligibilityCriteria


class LeadStore(ABC):
    """Abstract lead persistence"""

    @abstractmethod
    async def find_eligible(self, criteria: EligibilityCriteria, limit: int, offset: int = 0) -> List[Lead]:
        """
        Leads matching the criteria, oldest-created first.

        Returns at most `limit` rows after skipping the first `offset`;
        rows with an empty contact number or project name never match.
        """
        pass

    @abstractmethod
    async def get_by_id(self, lead_id: str) -> Optional[Lead]:
        pass

    @abstractmethod
    async def update(self, lead_id: str, fields: Dict[str, Any]) -> Optional[Lead]:
        """
        Apply a partial update.

        Keys are Lead field names; datetimes are passed as datetimes.

        Returns:
            The updated lead, or None if it does not exist
        """
        pass

    @abstractmethod
    async def find_by_phone(self, phone_number: str) -> Optional[Lead]:
        """First non-deleted lead whose contact number equals `phone_number`"""
        pass
