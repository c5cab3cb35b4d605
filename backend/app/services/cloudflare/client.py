"""
Async client for the Cloudflare v4 REST API.

Covers the three account-scoped endpoints the recommendation pipeline uses:
- Workers AI:  POST /accounts/{account}/ai/run/{model}
- Vectorize:   POST /accounts/{account}/vectorize/v2/indexes/{index}/query
- D1:          POST /accounts/{account}/d1/database/{database}/query

All calls authenticate with X-Auth-Email / X-Auth-Key. Responses are the
standard envelope `{"success": bool, "errors": [...], "result": ...}`.
"""
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)


class CloudflareAPIError(Exception):
    """Raised when a Cloudflare API call fails or reports `success: false`."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[List[Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or []


class CloudflareClient:
    """Thin async wrapper around the account-scoped Cloudflare endpoints."""

    def __init__(
        self,
        api_base: str,
        account_id: str,
        api_key: str,
        email: str,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.account_id = account_id
        self.api_key = api_key
        self.email = email
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @property
    def account_url(self) -> str:
        return f"{self.api_base}/accounts/{self.account_id}"

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "X-Auth-Email": self.email,
            "X-Auth-Key": self.api_key,
            "Content-Type": "application/json",
        }
        url = f"{self.account_url}{path}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            return await client.post(url, headers=headers, json=json_payload)

    async def post(self, path: str, json_payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST to an account-scoped path and return the decoded envelope.

        Raises:
            CloudflareAPIError on transport errors, HTTP error statuses,
            non-JSON bodies, or an envelope with `success: false`.
        """
        try:
            response = await self._post(path, json_payload)
        except httpx.HTTPError as exc:
            raise CloudflareAPIError(f"Cloudflare request failed: {exc}") from exc

        try:
            envelope = response.json()
        except ValueError as exc:
            raise CloudflareAPIError(
                "Cloudflare response body is not JSON",
                status_code=response.status_code,
            ) from exc

        if not isinstance(envelope, dict):
            raise CloudflareAPIError(
                "Cloudflare response body is not an object",
                status_code=response.status_code,
            )

        errors = envelope.get("errors") or []
        if response.is_error:
            raise CloudflareAPIError(
                f"Cloudflare API returned {response.status_code}",
                status_code=response.status_code,
                errors=errors,
            )
        if envelope.get("success") is False:
            raise CloudflareAPIError(
                "Cloudflare API reported success=false",
                status_code=response.status_code,
                errors=errors,
            )
        return envelope

    async def run_model(self, model: str, inputs: Dict[str, Any]) -> Any:
        """Run a Workers AI model and return the envelope's `result`."""
        envelope = await self.post(f"/ai/run/{model}", inputs)
        return envelope.get("result")

    async def query_vectors(self, index_name: str, vector: Sequence[float], top_k: int) -> Any:
        """Query a Vectorize index and return the envelope's `result`."""
        envelope = await self.post(
            f"/vectorize/v2/indexes/{index_name}/query",
            {"vector": list(vector), "topK": top_k},
        )
        return envelope.get("result")

    async def query_database(
        self,
        database_id: str,
        sql: str,
        params: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute one SQL statement against D1 with positional `?` params.

        Returns the full envelope; rows are under `result[0].results`.
        """
        return await self.post(
            f"/d1/database/{database_id}/query",
            {"sql": sql, "params": list(params or [])},
        )


_cloudflare_client: Optional[CloudflareClient] = None


def get_cloudflare_client() -> Optional[CloudflareClient]:
    """
    Get global Cloudflare client, or None when credentials are missing.
    """
    global _cloudflare_client
    if _cloudflare_client is None:
        settings = get_settings()
        if not settings.cloudflare_configured:
            logger.warning(
                "cloudflare_credentials_missing",
                message="Check CLOUDFLARE_API_KEY, ACCOUNT_ID and EMAIL",
            )
            return None
        _cloudflare_client = CloudflareClient(
            api_base=settings.cloudflare_api_base,
            account_id=settings.account_id,
            api_key=settings.cloudflare_api_key,
            email=settings.email,
            timeout_seconds=settings.cloudflare_timeout_seconds,
        )
    return _cloudflare_client
