"""
Assistant Store Interface
"""
from abc import ABC, abstractmethod
from typing import Optional

from app.domain.models.assistant import Assistant


class AssistantStore(ABC):
    """
    Abstract assistant persistence.

    Every finder excludes archived assistants and returns the most recently
    updated match.
    """

    @abstractmethod
    async def find_by_project_exact(self, project_name: str) -> Optional[Assistant]:
        """Synced assistant whose metadata project equals `project_name`"""
        pass

    @abstractmethod
    async def find_by_project_fuzzy(self, project_name: str) -> Optional[Assistant]:
        """
        Synced assistant whose name or metadata project contains
        `project_name`, case-insensitively, with the name taken literally
        """
        pass

    @abstractmethod
    async def find_fallback(
        self,
        synced_only: bool = True,
        exclude_id: Optional[str] = None
    ) -> Optional[Assistant]:
        """Any (synced) assistant, optionally excluding one id"""
        pass

    @abstractmethod
    async def get_by_provider_id(self, provider_assistant_id: str) -> Optional[Assistant]:
        pass

    @abstractmethod
    async def mark_out_of_sync(self, assistant_id: str, reason: str) -> None:
        pass

    @abstractmethod
    async def mark_synced(self, assistant_id: str) -> None:
        pass

    @abstractmethod
    async def record_call_stats(self, assistant_id: str, duration_seconds: float, successful: bool) -> None:
        """Count one finished call toward the assistant's usage statistics"""
        pass
