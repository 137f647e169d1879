"""API request/response schemas for FastAPI endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from leadhub.types import (
    CampaignStatus,
    DealStage,
    LeadStatus,
    MembershipStatus,
    Role,
    TaskPriority,
    TaskStatus,
)


class _ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Users and tenants
# ---------------------------------------------------------------------------


class UserSummary(_ORMModel):
    id: str
    email: str
    name: str
    avatar: str | None = None


class UserResponse(UserSummary):
    role: str
    created_at: datetime
    updated_at: datetime


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    avatar: str | None = None


class TenantSummary(_ORMModel):
    id: str
    name: str
    slug: str


class CurrentContextResponse(BaseModel):
    user: UserSummary
    tenant: TenantSummary
    membership_id: str
    role: Role


# ---------------------------------------------------------------------------
# Memberships
# ---------------------------------------------------------------------------


class MembershipResponse(_ORMModel):
    id: str
    user_id: str
    tenant_id: str
    role: Role
    status: MembershipStatus
    created_at: datetime
    updated_at: datetime
    user: UserSummary | None = None


class InvitationResponse(_ORMModel):
    id: str
    tenant_id: str
    role: Role
    status: MembershipStatus
    created_at: datetime
    tenant: TenantSummary


class InviteRequest(BaseModel):
    email: EmailStr
    role: Role = Role.USER


class CreateMemberRequest(BaseModel):
    email: EmailStr
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8)
    role: Role = Role.USER


class UpdateStatusRequest(BaseModel):
    status: MembershipStatus


class UpdateRoleRequest(BaseModel):
    role: Role


# ---------------------------------------------------------------------------
# Leads, contacts, outreach
# ---------------------------------------------------------------------------


class LeadCreate(BaseModel):
    company: str = Field(min_length=1, max_length=200)
    contact_name: str = ""
    contact_email: EmailStr | None = None
    phone: str | None = None
    status: LeadStatus = LeadStatus.WARM
    source: str | None = None
    industry: str | None = None
    value: float = Field(default=0.0, ge=0)
    conversion_probability: int | None = Field(default=None, ge=0, le=100)
    assigned_to_id: str | None = None


class LeadUpdate(BaseModel):
    company: str | None = Field(default=None, min_length=1, max_length=200)
    contact_name: str | None = None
    contact_email: EmailStr | None = None
    phone: str | None = None
    status: LeadStatus | None = None
    source: str | None = None
    industry: str | None = None
    value: float | None = Field(default=None, ge=0)
    conversion_probability: int | None = Field(default=None, ge=0, le=100)


class LeadResponse(_ORMModel):
    id: str
    tenant_id: str
    company: str
    contact_name: str
    contact_email: str | None
    phone: str | None
    status: LeadStatus
    source: str | None
    industry: str | None
    value: float
    conversion_probability: int | None
    assigned_to_id: str
    created_at: datetime
    updated_at: datetime


class AssignRequest(BaseModel):
    user_id: str


class LeadConvertRequest(BaseModel):
    value: float = Field(gt=0)
    stage: DealStage = DealStage.PROSPECTING
    probability: int = Field(default=0, ge=0, le=100)
    expected_close_date: datetime | None = None


class ContactCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = None
    title: str | None = None
    is_primary: bool = False


class ContactResponse(_ORMModel):
    id: str
    lead_id: str
    name: str
    email: str | None
    phone: str | None
    title: str | None
    is_primary: bool
    created_at: datetime


class OutreachCreate(BaseModel):
    channel: str = Field(default="email", max_length=50)
    notes: str = ""
    contact_id: str | None = None
    contact_date: datetime | None = None


class OutreachResponse(_ORMModel):
    id: str
    lead_id: str
    contact_id: str | None
    user_id: str
    channel: str
    notes: str
    contact_date: datetime


# ---------------------------------------------------------------------------
# Deals, tasks, campaigns, activities
# ---------------------------------------------------------------------------


class DealCreate(BaseModel):
    company: str = Field(min_length=1, max_length=200)
    value: float = Field(default=0.0, ge=0)
    stage: DealStage = DealStage.PROSPECTING
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close_date: datetime | None = None
    lead_id: str | None = None
    owner_id: str | None = None


class DealUpdate(BaseModel):
    company: str | None = Field(default=None, min_length=1, max_length=200)
    value: float | None = Field(default=None, ge=0)
    stage: DealStage | None = None
    probability: int | None = Field(default=None, ge=0, le=100)
    expected_close_date: datetime | None = None


class DealResponse(_ORMModel):
    id: str
    tenant_id: str
    lead_id: str | None
    company: str
    value: float
    stage: DealStage
    probability: int | None
    expected_close_date: datetime | None
    owner_id: str
    created_at: datetime
    updated_at: datetime


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: datetime | None = None
    lead_id: str | None = None
    deal_id: str | None = None
    assigned_to_id: str | None = None


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    status: TaskStatus | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None


class TaskResponse(_ORMModel):
    id: str
    tenant_id: str
    title: str
    description: str | None
    status: TaskStatus
    priority: TaskPriority
    due_date: datetime | None
    lead_id: str | None
    deal_id: str | None
    assigned_to_id: str
    created_at: datetime
    updated_at: datetime


class CampaignCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    channel: str = Field(default="email", max_length=50)
    status: CampaignStatus = CampaignStatus.DRAFT
    budget: float = Field(default=0.0, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None


class CampaignUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    channel: str | None = Field(default=None, max_length=50)
    status: CampaignStatus | None = None
    budget: float | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None


class CampaignResponse(_ORMModel):
    id: str
    tenant_id: str
    name: str
    channel: str
    status: CampaignStatus
    budget: float
    start_date: datetime | None
    end_date: datetime | None
    created_by_id: str
    created_at: datetime
    updated_at: datetime


class ActivityResponse(_ORMModel):
    id: str
    tenant_id: str
    type: str
    title: str
    description: str
    user_id: str
    lead_id: str | None
    deal_id: str | None
    created_at: datetime


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SearchResult(BaseModel):
    id: str
    type: str  # lead | deal
    title: str
    subtitle: str
    description: str


class GlobalSearchResponse(BaseModel):
    query: str
    results: list[SearchResult]
    total: int
    leads_count: int
    deals_count: int


class ContactSearchResult(BaseModel):
    id: str
    lead_id: str
    name: str
    email: str | None
    phone: str | None
    company: str
