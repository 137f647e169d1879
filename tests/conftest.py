"""Shared test fixtures."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel.ext.asyncio.session import AsyncSession

from leadhub.exceptions import IdentityProviderError
from leadhub.models.database import Membership, Tenant, User
from leadhub.storage.database import get_engine, get_session, init_db, open_session
from leadhub.storage.repositories.users import UserRepository
from leadhub.tenancy.context import Principal, TenantContext
from leadhub.types import MembershipStatus, Role
from leadhub.web.app import create_app
from leadhub.web.auth.identity import Identity, RequestCredentials
from leadhub.web.dependencies import get_identity_provider


@dataclass
class FakeIdentityProvider:
    """In-memory identity provider: bearer tokens map straight to identities."""

    tokens: dict[str, Identity] = field(default_factory=dict)
    created: list[Identity] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    fail_create: bool = False
    fail_delete: bool = False
    _ids: itertools.count = field(default_factory=lambda: itertools.count(1))

    def sign_in(self, email: str, name: str = "", external_id: str | None = None) -> str:
        """Register an identity and return a bearer token for it."""
        external_id = external_id or f"ext_{next(self._ids)}"
        token = f"token-{external_id}"
        self.tokens[token] = Identity(external_id=external_id, email=email, name=name)
        return token

    async def get_identity(self, credentials: RequestCredentials) -> Identity | None:
        if credentials.token is None:
            return None
        return self.tokens.get(credentials.token)

    async def create_account(self, email: str, password: str) -> Identity:
        if self.fail_create:
            msg = "That email address is taken. Please try another."
            raise IdentityProviderError(msg)
        identity = Identity(external_id=f"ext_new_{next(self._ids)}", email=email)
        self.created.append(identity)
        return identity

    async def delete_account(self, external_id: str) -> None:
        if self.fail_delete:
            msg = "Identity provider unavailable"
            raise IdentityProviderError(msg)
        self.deleted.append(external_id)


class Workspace:
    """A seeded tenant that hands out members as TenantContext snapshots."""

    def __init__(self, session: AsyncSession, tenant: Tenant) -> None:
        self.session = session
        self.tenant_id = tenant.id
        self.tenant_name = tenant.name
        self.tenant_slug = tenant.slug

    async def member(
        self,
        email: str,
        role: Role = Role.USER,
        status: MembershipStatus = MembershipStatus.ACTIVE,
        *,
        external_id: str | None = None,
    ) -> TenantContext:
        user = await UserRepository(self.session).get_by_email(email)
        if user is None:
            user = User(email=email, name=email.split("@")[0].title(), external_id=external_id)
            self.session.add(user)
        membership = Membership(
            user_id=user.id, tenant_id=self.tenant_id, role=role, status=status
        )
        self.session.add(membership)
        await self.session.commit()
        return TenantContext(
            user=Principal.from_user(user),
            membership_id=membership.id,
            role=role,
            tenant_id=self.tenant_id,
            tenant_name=self.tenant_name,
            tenant_slug=self.tenant_slug,
        )


async def make_workspace(session: AsyncSession, name: str = "Acme") -> Workspace:
    tenant = Tenant(name=name, slug=f"{name.lower()}-test")
    session.add(tenant)
    await session.commit()
    return Workspace(session, tenant)


@pytest.fixture()
async def async_engine():
    """In-memory SQLite engine with all tables created.

    StaticPool keeps every session on the one connection that holds the
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def session(async_engine: AsyncEngine):
    async with open_session(async_engine) as session:
        yield session


@pytest.fixture()
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture()
async def workspace(session: AsyncSession) -> Workspace:
    return await make_workspace(session)


@pytest.fixture()
def new_workspace(session: AsyncSession):
    """Factory for additional tenants in the same database."""

    async def _make(name: str) -> Workspace:
        return await make_workspace(session, name)

    return _make


@pytest.fixture()
def app(async_engine: AsyncEngine, identity_provider: FakeIdentityProvider):
    """App wired to the in-memory database and the fake identity provider."""
    application = create_app()

    async def _session():
        async with open_session(async_engine) as session:
            yield session

    application.dependency_overrides[get_session] = _session
    application.dependency_overrides[get_engine] = lambda: async_engine
    application.dependency_overrides[get_identity_provider] = lambda: identity_provider
    return application


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
