from typing import Optional, List
from enum import Enum
from datetime import datetime, date, timezone

from sqlmodel import Field, SQLModel, Relationship


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# --- Enum Definitions ---

class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class PartnerType(str, Enum):
    RESELLER = "Reseller"
    TECHNOLOGY_PARTNER = "Technology Partner"
    SYSTEM_INTEGRATOR = "System Integrator"
    MANAGED_SERVICE_PROVIDER = "Managed Service Provider"
    CONSULTING_PARTNER = "Consulting Partner"
    CHANNEL_PARTNER = "Channel Partner"
    OEM_PARTNER = "OEM Partner"
    OTHER = "Other"


class PartnerStatus(str, Enum):
    PROSPECT = "Prospect"
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
    TERMINATED = "Terminated"


class PartnerTier(str, Enum):
    GOLD = "Gold"
    SILVER = "Silver"
    BRONZE = "Bronze"
    STANDARD = "Standard"


class PartnerRole(str, Enum):
    """Role of an individual within their partner company"""
    ADMIN = "Admin"
    ACCOUNT_MANAGER = "Account Manager"
    SALES_REP = "Sales Rep"
    TECHNICAL = "Technical"
    FINANCE = "Finance"
    SUPPORT = "Support"
    OTHER = "Other"


class DealStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# --- User Models ---

class User(SQLModel, table=True):
    """Site account. OAuth-created accounts carry no password hash."""
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    name: Optional[str] = None
    hashed_password: Optional[str] = None
    role: UserRole = Field(default=UserRole.USER)
    last_signed_in: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)

    partner_users: List["PartnerUser"] = Relationship(back_populates="user")


# --- Partner Models ---

class PartnerCompany(SQLModel, table=True):
    """Registered partner organization"""
    id: Optional[int] = Field(default=None, primary_key=True)
    company_name: str
    email: str = Field(index=True)
    website: Optional[str] = None
    phone: Optional[str] = None
    partner_type: PartnerType
    partner_status: PartnerStatus = Field(default=PartnerStatus.PROSPECT, index=True)
    tier: PartnerTier = Field(default=PartnerTier.STANDARD)
    primary_contact_name: str
    primary_contact_email: str
    primary_contact_phone: Optional[str] = None
    commission_rate: float = Field(default=10.0, description="Commission percentage")
    mdf_budget_annual: float = Field(default=0.0, description="Marketing Development Fund budget")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    partner_users: List["PartnerUser"] = Relationship(back_populates="partner_company")
    deals: List["PartnerDeal"] = Relationship(back_populates="partner_company")


class PartnerUser(SQLModel, table=True):
    """
    Association between an individual and a partner company.

    Linked either by user_id (site/OAuth account) or by email alone
    (self-registered with a portal password).
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)
    partner_company_id: int = Field(foreign_key="partnercompany.id", index=True)
    email: Optional[str] = Field(default=None, unique=True, index=True)
    password_hash: Optional[str] = None
    email_verified: bool = Field(default=False)
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    partner_role: PartnerRole = Field(default=PartnerRole.SALES_REP)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    user: Optional[User] = Relationship(back_populates="partner_users")
    partner_company: Optional[PartnerCompany] = Relationship(back_populates="partner_users")


class PartnerDeal(SQLModel, table=True):
    """Deal registered by a partner, pending admin approval until reviewed"""
    id: Optional[int] = Field(default=None, primary_key=True)
    partner_company_id: int = Field(foreign_key="partnercompany.id", index=True)
    deal_name: str
    customer_name: str
    customer_email: Optional[str] = None
    deal_amount: float
    deal_stage: str = Field(default="Prospecting")
    deal_type: Optional[str] = None
    status: DealStatus = Field(default=DealStatus.PENDING, index=True)
    expected_close_date: Optional[date] = None
    submitted_by: Optional[int] = Field(default=None, foreign_key="partneruser.id")
    reviewed_by: Optional[int] = Field(default=None, foreign_key="user.id")
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    partner_company: Optional[PartnerCompany] = Relationship(back_populates="deals")


class PartnerPasswordResetToken(SQLModel, table=True):
    """Single-use token letting a partner user choose a new portal password"""
    id: Optional[int] = Field(default=None, primary_key=True)
    partner_user_id: int = Field(foreign_key="partneruser.id", index=True)
    token: str = Field(unique=True, index=True)
    expires_at: datetime
    is_used: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)


# --- Request / Response Models ---

class LoginRequest(SQLModel):
    email: str
    password: str


class TokenResponse(SQLModel):
    access_token: str
    token_type: str = "bearer"


class PasswordCheckRequest(SQLModel):
    password: str


class PartnerRegisterRequest(SQLModel):
    company_name: str
    contact_name: str
    partner_type: PartnerType
    email: str
    password: str
    phone: Optional[str] = None
    website: Optional[str] = None


class PartnerRegisterResponse(SQLModel):
    success: bool = True
    partner_id: int
    partner_user_id: int
    message: str


class PartnerCompanyRead(SQLModel):
    id: int
    company_name: str
    email: str
    website: Optional[str] = None
    partner_type: PartnerType
    partner_status: PartnerStatus
    tier: PartnerTier
    primary_contact_name: str
    primary_contact_email: str
    commission_rate: float
    mdf_budget_annual: float


class DealSubmitRequest(SQLModel):
    customer_company_name: str
    deal_name: str
    deal_value: float = Field(ge=0)
    estimated_close_date: date
    sales_stage: Optional[str] = None
    deal_type: Optional[str] = None
    primary_contact_email: Optional[str] = None


class PartnerDealRead(SQLModel):
    id: int
    partner_company_id: int
    deal_name: str
    customer_name: str
    customer_email: Optional[str] = None
    deal_amount: float
    deal_stage: str
    deal_type: Optional[str] = None
    status: DealStatus
    expected_close_date: Optional[date] = None
    submitted_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


class DealRejectRequest(SQLModel):
    reason: str = Field(min_length=1)


class PasswordResetRequest(SQLModel):
    email: str


class ResetPasswordRequest(SQLModel):
    token: str
    new_password: str


class ResetTokenStatus(SQLModel):
    valid: bool
    message: str


class LinkUserRequest(SQLModel):
    """Admin request to attach a site account to an existing partner user"""
    user_id: int
    partner_user_email: str


class MessageResponse(SQLModel):
    message: str
