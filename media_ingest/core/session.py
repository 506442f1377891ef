"""Explicit caller identity for application server calls."""

from dataclasses import dataclass, field
from typing import Mapping, Optional

CSRF_HEADER = "X-CSRF-Token"
_UNSAFE_METHODS = frozenset(("POST", "PUT", "PATCH", "DELETE"))


@dataclass(frozen=True)
class SessionContext:
    """Credentials supplied by the surrounding application.

    The pipeline never reads identity from global state; whoever owns the
    login hands one of these to the API client.
    """

    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    csrf_token: Optional[str] = None

    @classmethod
    def bearer(cls, access_token: str) -> "SessionContext":
        """Build a context that authenticates with a bearer token."""
        return cls(headers={"Authorization": f"Bearer {access_token}"})

    def headers_for(self, method: str) -> dict[str, str]:
        """Headers to send with a request of the given method.

        Args:
            method: HTTP method

        Returns:
            Session headers plus the CSRF token for state-changing methods
        """
        headers = dict(self.headers)
        if self.csrf_token and method.upper() in _UNSAFE_METHODS:
            headers[CSRF_HEADER] = self.csrf_token
        return headers


ANONYMOUS = SessionContext()
