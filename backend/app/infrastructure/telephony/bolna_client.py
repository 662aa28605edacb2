"""
Bolna Calling Provider
Places outbound voice-AI calls and reads call/assistant state over HTTPS
"""
import logging
from typing import Any, Dict, Optional

import httpx

from app.domain.interfaces.call_provider import CallProvider, CallProviderError
from app.domain.models.call import ProviderCall

logger = logging.getLogger(__name__)


class BolnaCallProvider(CallProvider):
    """
    Bolna REST API client.

    Endpoints:
    - POST /calls              place a call
    - GET  /calls/{id}         call status and outcome
    - GET  /assistants/{id}    assistant existence check

    Every failure (transport error, non-2xx, malformed body) surfaces as
    CallProviderError.
    """

    API_BASE_URL = "https://api.bolna.dev"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not api_key:
            logger.warning("BOLNA_API_KEY not configured - provider calls will be rejected")

        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key or ''}",
                "Content-Type": "application/json",
            }
        )

    @property
    def name(self) -> str:
        return "bolna"

    async def create_call(
        self,
        assistant_provider_id: str,
        phone_number: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        payload = {
            "assistant_id": assistant_provider_id,
            "recipient_phone_number": phone_number,
            "metadata": metadata or {},
        }
        logger.info(f"Creating call to {phone_number} with assistant {assistant_provider_id}")

        data = await self._request("POST", "/calls", json=payload)
        call_id = data.get("id") or data.get("call_id") or data.get("execution_id")
        if not call_id:
            raise CallProviderError("Provider response did not include a call id", details=data)
        return str(call_id)

    async def get_call(self, call_id: str) -> ProviderCall:
        data = await self._request("GET", f"/calls/{call_id}")
        data.setdefault("id", call_id)
        try:
            return ProviderCall.model_validate(data)
        except ValueError as e:
            raise CallProviderError(f"Malformed call response for {call_id}", details=str(e))

    async def get_assistant(self, assistant_provider_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/assistants/{assistant_provider_id}")

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Bolna {method} {path} failed: {e}")
            raise CallProviderError(f"Bolna request failed: {e}")

        if response.status_code >= 400:
            detail = self._error_detail(response)
            logger.error(f"Bolna {method} {path} returned {response.status_code}: {detail}")
            raise CallProviderError(
                f"Bolna API error ({response.status_code}): {detail}",
                status_code=response.status_code,
                details=detail
            )

        try:
            body = response.json()
        except ValueError:
            raise CallProviderError(f"Bolna returned a non-JSON body for {path}", status_code=response.status_code)

        if not isinstance(body, dict):
            raise CallProviderError(f"Unexpected Bolna response for {path}", details=body)
        return body

    @staticmethod
    def _error_detail(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return body.get("detail") or body.get("message") or body
        return body
