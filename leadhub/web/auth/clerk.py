"""Clerk identity provider: JWT validation, JWKS caching and Backend API calls."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx
import jwt
import structlog

from leadhub.config.settings import get_settings
from leadhub.exceptions import ConfigError, IdentityProviderError
from leadhub.web.auth.identity import Identity, RequestCredentials

if TYPE_CHECKING:
    from leadhub.config.settings import Settings

logger = structlog.get_logger(__name__)

# JWKS cache TTL in seconds (1 hour)
_JWKS_CACHE_TTL = 3600


@dataclass
class _JWKSCache:
    """In-memory cache for Clerk JWKS keys."""

    keys: list[dict[str, Any]] = field(default_factory=list)
    fetched_at: float = 0.0

    @property
    def is_stale(self) -> bool:
        return time.monotonic() - self.fetched_at > _JWKS_CACHE_TTL


_cache = _JWKSCache()


async def _fetch_jwks(jwks_url: str) -> list[dict[str, Any]]:
    """Fetch JWKS from Clerk and update cache."""
    global _cache  # noqa: PLW0603
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.get(jwks_url)
            resp.raise_for_status()
            keys: list[dict[str, Any]] = resp.json().get("keys", [])
            _cache = _JWKSCache(keys=keys, fetched_at=time.monotonic())
            logger.debug("jwks_fetched", key_count=len(keys))
            return keys
    except (httpx.HTTPError, KeyError, ValueError) as exc:
        logger.warning("jwks_fetch_failed", error=str(exc))
        if _cache.keys:
            logger.info("jwks_using_stale_cache")
            return _cache.keys
        raise


async def _get_signing_keys() -> list[dict[str, Any]]:
    """Get JWKS keys, using cache when fresh."""
    settings = get_settings()
    jwks_url = settings.clerk_jwks_url
    if not jwks_url:
        msg = "CLERK_JWKS_URL is not configured"
        raise ConfigError(msg)

    if not _cache.is_stale and _cache.keys:
        return _cache.keys

    return await _fetch_jwks(jwks_url)


@dataclass(frozen=True, slots=True)
class ClerkClaims:
    """Parsed and validated claims from a Clerk session JWT."""

    sub: str  # Clerk user ID
    email: str
    name: str
    raw: dict[str, Any] = field(default_factory=dict)


async def verify_clerk_token(token: str) -> ClerkClaims:
    """Verify a Clerk JWT and return parsed claims.

    Raises jwt.PyJWTError on invalid/expired tokens.
    """
    settings = get_settings()
    keys = await _get_signing_keys()
    signing_key = jwt.PyJWKSet.from_dict({"keys": keys})

    decode_options: dict[str, Any] = {
        "algorithms": ["RS256"],
        "options": {"verify_aud": False},
    }
    if settings.clerk_issuer:
        decode_options["issuer"] = settings.clerk_issuer

    # Try each key until one works
    last_error: Exception | None = None
    for jwk in signing_key.keys:
        try:
            payload: dict[str, Any] = jwt.decode(token, jwk.key, **decode_options)
            return ClerkClaims(
                sub=payload["sub"],
                email=payload.get("email", ""),
                name=payload.get("name", ""),
                raw=payload,
            )
        except jwt.PyJWTError as exc:
            last_error = exc
            continue

    if last_error:
        raise last_error
    msg = "No valid signing key found"
    raise jwt.InvalidTokenError(msg)


def _primary_email(data: dict[str, Any]) -> str:
    """Extract the primary email from a Clerk user object."""
    email_addresses = data.get("email_addresses", [])
    primary_id = data.get("primary_email_address_id", "")
    for addr in email_addresses:
        if addr.get("id") == primary_id:
            return str(addr.get("email_address", ""))
    if email_addresses:
        return str(email_addresses[0].get("email_address", ""))
    return ""


def _display_name(data: dict[str, Any]) -> str:
    return f"{data.get('first_name') or ''} {data.get('last_name') or ''}".strip()


class ClerkIdentityProvider:
    """IdentityProvider backed by Clerk session tokens and the Clerk Backend API."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        secret = self._settings.clerk_secret_key
        if not secret:
            msg = "CLERK_SECRET_KEY is not configured"
            raise ConfigError(msg)
        return httpx.AsyncClient(
            base_url=self._settings.clerk_api_url,
            headers={"Authorization": f"Bearer {secret}"},
            timeout=10.0,
            transport=self._transport,
        )

    async def get_identity(self, credentials: RequestCredentials) -> Identity | None:
        token = credentials.token
        if not token:
            return None
        claims = await verify_clerk_token(token)
        email, name = claims.email, claims.name
        # Default Clerk session tokens omit the email; look it up once.
        if not email:
            user = await self._get_user(claims.sub)
            email = _primary_email(user)
            name = name or _display_name(user)
        if not email:
            logger.warning("identity_without_email", external_id=claims.sub)
            return None
        return Identity(external_id=claims.sub, email=email, name=name, claims=claims.raw)

    async def _get_user(self, external_id: str) -> dict[str, Any]:
        async with self._client() as client:
            try:
                resp = await client.get(f"/users/{external_id}")
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Failed to fetch user: {exc}") from exc
            data: dict[str, Any] = resp.json()
            return data

    async def create_account(self, email: str, password: str) -> Identity:
        async with self._client() as client:
            try:
                resp = await client.post(
                    "/users",
                    json={
                        "email_address": [email],
                        "password": password,
                        "skip_password_checks": False,
                    },
                )
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Failed to create user: {exc}") from exc
            if resp.status_code >= 400:
                raise IdentityProviderError(_error_message(resp))
            data: dict[str, Any] = resp.json()
        logger.info("identity_account_created", external_id=data.get("id"))
        return Identity(
            external_id=str(data["id"]),
            email=_primary_email(data) or email,
            name=_display_name(data),
        )

    async def delete_account(self, external_id: str) -> None:
        async with self._client() as client:
            try:
                resp = await client.delete(f"/users/{external_id}")
            except httpx.HTTPError as exc:
                raise IdentityProviderError(f"Failed to delete user: {exc}") from exc
            if resp.status_code == 404:
                logger.info("identity_account_already_gone", external_id=external_id)
                return
            if resp.status_code >= 400:
                raise IdentityProviderError(_error_message(resp))
        logger.info("identity_account_deleted", external_id=external_id)


def _error_message(resp: httpx.Response) -> str:
    """Pull the human-readable message out of a Clerk error response."""
    try:
        errors = resp.json().get("errors", [])
    except ValueError:
        errors = []
    if errors:
        first = errors[0]
        return str(first.get("long_message") or first.get("message") or "Identity provider error")
    return f"Identity provider returned HTTP {resp.status_code}"
