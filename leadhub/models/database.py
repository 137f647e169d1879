"""SQLModel database table models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from leadhub.types import (
    ActivityType,
    CampaignStatus,
    DealStage,
    LeadStatus,
    MembershipStatus,
    Role,
    TaskPriority,
    TaskStatus,
)


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Tenancy models
# ---------------------------------------------------------------------------


class Tenant(SQLModel, table=True):
    __tablename__ = "tenants"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    # Set only for auto-provisioned workspaces; unique so a user gets at most one.
    provisioned_for_id: str | None = Field(default=None, unique=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    external_id: str | None = Field(default=None, unique=True)
    email: str = Field(unique=True, index=True)
    name: str = ""
    avatar: str | None = None
    role: str = Field(default="user")  # legacy global tag, superseded by Membership.role
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Membership(SQLModel, table=True):
    __tablename__ = "memberships"
    __table_args__ = (UniqueConstraint("user_id", "tenant_id", name="uq_memberships_user_tenant"),)

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    role: Role = Field(default=Role.USER)
    status: MembershipStatus = Field(default=MembershipStatus.ACTIVE)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Tenant-scoped resources
# ---------------------------------------------------------------------------


class Lead(SQLModel, table=True):
    __tablename__ = "leads"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    company: str
    contact_name: str = ""
    contact_email: str | None = None
    phone: str | None = None
    status: LeadStatus = Field(default=LeadStatus.WARM)
    source: str | None = None
    industry: str | None = None
    value: float = Field(default=0.0)
    conversion_probability: int | None = None
    assigned_to_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Contact(SQLModel, table=True):
    __tablename__ = "contacts"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    lead_id: str = Field(foreign_key="leads.id", index=True)
    name: str
    email: str | None = None
    phone: str | None = None
    title: str | None = None
    is_primary: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class OutreachHistory(SQLModel, table=True):
    __tablename__ = "outreach_history"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    lead_id: str = Field(foreign_key="leads.id", index=True)
    contact_id: str | None = Field(default=None, foreign_key="contacts.id")
    user_id: str = Field(index=True)
    channel: str = "email"  # email | call | linkedin | meeting
    notes: str = ""
    contact_date: datetime = Field(default_factory=_utc_now)
    created_at: datetime = Field(default_factory=_utc_now)


class Deal(SQLModel, table=True):
    __tablename__ = "deals"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    lead_id: str | None = Field(default=None, foreign_key="leads.id", index=True)
    company: str
    value: float = Field(default=0.0)
    stage: DealStage = Field(default=DealStage.PROSPECTING)
    probability: int | None = None
    expected_close_date: datetime | None = None
    owner_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    title: str
    description: str | None = None
    status: TaskStatus = Field(default=TaskStatus.TODO)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM)
    due_date: datetime | None = None
    lead_id: str | None = Field(default=None, foreign_key="leads.id")
    deal_id: str | None = Field(default=None, foreign_key="deals.id")
    assigned_to_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Campaign(SQLModel, table=True):
    __tablename__ = "campaigns"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    name: str
    channel: str = "email"
    status: CampaignStatus = Field(default=CampaignStatus.DRAFT)
    budget: float = Field(default=0.0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_by_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class Activity(SQLModel, table=True):
    __tablename__ = "activities"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    tenant_id: str = Field(foreign_key="tenants.id", index=True)
    type: ActivityType = Field(default=ActivityType.SYSTEM)
    title: str
    description: str = ""
    user_id: str = Field(index=True)
    lead_id: str | None = Field(default=None, foreign_key="leads.id", index=True)
    deal_id: str | None = Field(default=None, foreign_key="deals.id", index=True)
    created_at: datetime = Field(default_factory=_utc_now)
