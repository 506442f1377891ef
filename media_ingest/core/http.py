"""HTTP transport for application server calls.

Wraps a single ``httpx.AsyncClient``. Storage writes do not go through
here: they use their own client without session credentials.
"""

import logging
from typing import Any, Optional

import httpx

from media_ingest.core.config import settings
from media_ingest.core.session import ANONYMOUS, SessionContext

logger = logging.getLogger(__name__)


class ApiResponseError(Exception):
    """Exception raised for non-2xx application server responses."""

    def __init__(self, message: str, status_code: int, details: Optional[dict] = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def server_message(self) -> Optional[str]:
        """The server's own explanation, when the body carried one."""
        for key in ("message", "detail", "error"):
            value = self.details.get(key)
            if isinstance(value, str):
                return value
        return None


class ApiClient:
    """Client for the application server's JSON API."""

    def __init__(
        self,
        session: SessionContext = ANONYMOUS,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            session: Caller identity attached to every request
            base_url: Application server root (defaults to settings)
            timeout: Per-request timeout in seconds
            transport: Optional transport, e.g. ``httpx.MockTransport`` in tests
        """
        self.session = session
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.API_TIMEOUT_SECONDS,
            cookies=dict(session.cookies),
            transport=transport,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        json: Optional[dict] = None,
        data: Optional[dict] = None,
    ) -> dict[str, Any]:
        """Send a request and decode the JSON response.

        Args:
            method: HTTP method
            path: Path relative to the base URL
            json: JSON body
            data: Form body

        Returns:
            Decoded response body (empty dict for an empty body)

        Raises:
            ApiResponseError: If the server answers with a non-2xx status, or
                with a success body that is not a JSON object
            httpx.TransportError: If the server could not be reached
        """
        response = await self._client.request(
            method,
            path,
            json=json,
            data=data,
            headers=self.session.headers_for(method),
        )

        if not response.is_success:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"body": response.text[:500]}
            if not isinstance(error_data, dict):
                error_data = {"body": error_data}
            logger.debug(f"{method} {path} failed with {response.status_code}")
            raise ApiResponseError(
                f"{method} {path} failed: {response.status_code}",
                status_code=response.status_code,
                details=error_data,
            )

        if not response.content:
            return {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            logger.debug(f"{method} {path} returned a non-object body")
            raise ApiResponseError(
                f"{method} {path} returned a malformed body",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )
        return body

    async def get_json(self, path: str) -> dict[str, Any]:
        return await self.request("GET", path)

    async def post_json(self, path: str, body: dict) -> dict[str, Any]:
        return await self.request("POST", path, json=body)

    async def post_form(self, path: str, form: dict) -> dict[str, Any]:
        return await self.request("POST", path, data=form)

    async def put_json(self, path: str, body: dict) -> dict[str, Any]:
        return await self.request("PUT", path, json=body)
