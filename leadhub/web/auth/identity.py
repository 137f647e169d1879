"""Identity resolution: inbound request credentials to an external identity.

The resolver never raises. Any provider failure (missing configuration,
expired token, network error) degrades to ``None`` and the request is
handled as anonymous.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from starlette.requests import Request

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Identity:
    """A verified identity as reported by the identity provider."""

    external_id: str
    email: str
    name: str = ""
    claims: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RequestCredentials:
    """The raw credentials an inbound request carries."""

    bearer_token: str | None = None
    session_cookie: str | None = None

    @property
    def token(self) -> str | None:
        return self.bearer_token or self.session_cookie


class IdentityProvider(Protocol):
    """External identity provider contract."""

    async def get_identity(self, credentials: RequestCredentials) -> Identity | None: ...

    async def create_account(self, email: str, password: str) -> Identity: ...

    async def delete_account(self, external_id: str) -> None: ...


def credentials_from_request(
    request: Request, cookie_name: str = "__session"
) -> RequestCredentials:
    """Extract the bearer token and session cookie from a request."""
    auth_header = request.headers.get("authorization", "")
    bearer = auth_header[7:].strip() if auth_header.startswith("Bearer ") else None
    return RequestCredentials(
        bearer_token=bearer or None,
        session_cookie=request.cookies.get(cookie_name) or None,
    )


async def resolve_identity(
    provider: IdentityProvider, credentials: RequestCredentials
) -> Identity | None:
    """Ask the provider who is calling; treat every failure as "nobody"."""
    if not credentials.token:
        return None
    try:
        identity = await provider.get_identity(credentials)
    except Exception as exc:
        logger.warning("identity_resolution_failed", error=str(exc), error_type=type(exc).__name__)
        return None
    if identity is None or not identity.external_id:
        return None
    return identity
