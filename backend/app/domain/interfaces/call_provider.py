"""
Calling Provider Interface
Abstract base class for the voice-AI calling platform
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any

from app.domain.models.call import ProviderCall


class CallProviderError(Exception):
    """Raised when the calling provider rejects a request or is unreachable."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class CallProvider(ABC):
    """Abstract base class for calling providers"""

    @abstractmethod
    async def create_call(
        self,
        assistant_provider_id: str,
        phone_number: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Place an outbound call.

        Args:
            assistant_provider_id: Provider-side assistant id
            phone_number: Destination in canonical international form
            metadata: Correlation data echoed back in events

        Returns:
            Provider call id

        Raises:
            CallProviderError: On network or API failure
        """
        pass

    @abstractmethod
    async def get_call(self, call_id: str) -> ProviderCall:
        """Fetch the provider's current view of a call"""
        pass

    @abstractmethod
    async def get_assistant(self, assistant_provider_id: str) -> Dict[str, Any]:
        """Fetch an assistant; raises CallProviderError if it does not exist"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources"""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name"""
        pass
