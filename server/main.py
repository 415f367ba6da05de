from contextlib import asynccontextmanager
from typing import List, Optional
import logging
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import FastAPI, Depends, Query, Request, status
from sqlmodel import Session, select

from database import create_db_and_tables, get_session, get_database_info
from models import (
    User, PartnerCompany, PartnerUser, PartnerDeal, PartnerRole,
    PartnerStatus, PartnerTier, DealStatus, LoginRequest, TokenResponse,
    PasswordCheckRequest, PartnerRegisterRequest, PartnerRegisterResponse,
    PartnerCompanyRead, DealSubmitRequest, PartnerDealRead, DealRejectRequest,
    PasswordResetRequest, ResetPasswordRequest, ResetTokenStatus,
    LinkUserRequest, MessageResponse, utc_now,
)
from auth import (
    CallerIdentity,
    check_password_reset_token,
    cleanup_expired_password_reset_tokens,
    create_password_reset_token,
    generate_token,
    get_current_caller,
    get_password_hash,
    require_admin,
    verify_password,
)
from services import PartnerDirectory, PartnerIdentityService
from middleware import (
    setup_rate_limiting,
    auth_rate_limit,
    setup_error_handlers,
    RequestLoggerMiddleware,
)
from middleware.error_handler import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from middleware.password_validator import (
    validate_password_strength,
    get_password_policy,
)
from middleware.rate_limiter import check_rate_limiter_health

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

PARTNER_ROLE = "partner"
INVALID_CREDENTIALS = "Invalid email or password"
RESET_REQUESTED_MESSAGE = "If a partner account with that email exists, a password reset link has been sent."
INVALID_RESET_TOKEN = "Invalid or expired password reset token"


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    logger.info(f"Database ready: {get_database_info()['database_url']}")
    yield


app = FastAPI(title="Partner Portal API", lifespan=lifespan)

# Setup security middleware
setup_error_handlers(app)
setup_rate_limiting(app)
app.add_middleware(RequestLoggerMiddleware)


# Dependency helpers for services
def get_partner_directory(session: Session = Depends(get_session)) -> PartnerDirectory:
    return PartnerDirectory(session)


def get_identity_service(directory: PartnerDirectory = Depends(get_partner_directory)) -> PartnerIdentityService:
    return PartnerIdentityService(directory)


def require_strong_password(password: str):
    report = validate_password_strength(password)
    if not report.is_valid:
        raise ValidationError(
            "Password does not meet security requirements",
            details={"password_strength": report.to_dict()},
        )


@app.get("/health")
def health_check():
    return {
        "status": "healthy",
        "database": get_database_info(),
        "rate_limiter": check_rate_limiter_health(),
    }


# --- Site account auth ---

@app.post("/auth/login", response_model=TokenResponse)
@auth_rate_limit()
async def login(request: Request, credentials: LoginRequest, session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.email == credentials.email)).first()

    # Same error whether the account is missing or the password is wrong
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise AuthenticationError(INVALID_CREDENTIALS)

    user.last_signed_in = utc_now()
    session.add(user)
    session.commit()

    access_token = generate_token(user_id=user.id, email=user.email, role=user.role.value)
    return TokenResponse(access_token=access_token)


@app.post("/auth/password-strength")
async def check_password_strength(payload: PasswordCheckRequest):
    """Real-time strength feedback for registration and change-password forms"""
    report = validate_password_strength(payload.password)
    return {**report.to_dict(), "color": report.color, "label": report.label}


@app.get("/auth/password-policy")
async def password_policy():
    return get_password_policy()


# --- Partner portal ---

@app.post("/partners/register", response_model=PartnerRegisterResponse, status_code=status.HTTP_201_CREATED)
@auth_rate_limit()
async def register_partner(
    request: Request,
    registration: PartnerRegisterRequest,
    session: Session = Depends(get_session),
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    require_strong_password(registration.password)

    existing = session.exec(
        select(PartnerCompany).where(PartnerCompany.email == registration.email)
    ).first()
    if existing or directory.find_by_email(registration.email):
        raise ConflictError("Partner company already exists with this email")

    company = PartnerCompany(
        company_name=registration.company_name,
        email=registration.email,
        website=registration.website,
        phone=registration.phone,
        partner_type=registration.partner_type,
        partner_status=PartnerStatus.PROSPECT,
        tier=PartnerTier.STANDARD,
        primary_contact_name=registration.contact_name,
        primary_contact_email=registration.email,
        primary_contact_phone=registration.phone,
        commission_rate=0.0,
        mdf_budget_annual=0.0,
    )
    session.add(company)
    session.flush()

    partner_user = PartnerUser(
        partner_company_id=company.id,
        email=registration.email,
        password_hash=get_password_hash(registration.password),
        contact_name=registration.contact_name,
        phone=registration.phone,
        partner_role=PartnerRole.ADMIN,
    )
    session.add(partner_user)
    session.commit()
    session.refresh(company)
    session.refresh(partner_user)

    logger.info(f"Registered partner company {company.id} ({company.company_name})")

    return PartnerRegisterResponse(
        partner_id=company.id,
        partner_user_id=partner_user.id,
        message="Partner registered successfully",
    )


@app.post("/partners/login", response_model=TokenResponse)
@auth_rate_limit()
async def partner_login(
    request: Request,
    credentials: LoginRequest,
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    matches = directory.find_by_email(credentials.email)
    partner_user = matches[0] if matches else None

    if not partner_user or not verify_password(credentials.password, partner_user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not partner_user.is_active:
        raise AuthenticationError("Partner account is inactive")

    access_token = generate_token(
        user_id=partner_user.user_id,
        email=partner_user.email,
        role=PARTNER_ROLE,
        partner_id=partner_user.id,
        company_id=partner_user.partner_company_id,
    )
    return TokenResponse(access_token=access_token)


@app.get("/partners/me", response_model=PartnerCompanyRead)
async def get_my_partner_company(
    caller: CallerIdentity = Depends(get_current_caller),
    identity: PartnerIdentityService = Depends(get_identity_service),
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    company_id = identity.resolve(caller.user_id, caller.email)
    company = directory.get_company(company_id)
    if company is None:
        raise NotFoundError("Partner company not found")
    return company


@app.post("/partners/deals", response_model=PartnerDealRead, status_code=status.HTTP_201_CREATED)
async def submit_deal(
    deal: DealSubmitRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    identity: PartnerIdentityService = Depends(get_identity_service),
    session: Session = Depends(get_session),
):
    """Submit a deal for admin approval; it is created in pending status"""
    company_id = identity.resolve(caller.user_id, caller.email)

    db_deal = PartnerDeal(
        partner_company_id=company_id,
        deal_name=deal.deal_name,
        customer_name=deal.customer_company_name,
        customer_email=deal.primary_contact_email,
        deal_amount=deal.deal_value,
        deal_stage=deal.sales_stage or "Prospecting",
        deal_type=deal.deal_type,
        status=DealStatus.PENDING,
        expected_close_date=deal.estimated_close_date,
        submitted_by=caller.partner_user_id,
    )
    session.add(db_deal)
    session.commit()
    session.refresh(db_deal)

    logger.info(f"Deal {db_deal.id} submitted for partner company {company_id}")
    return db_deal


@app.get("/partners/deals", response_model=List[PartnerDealRead])
async def list_my_deals(
    caller: CallerIdentity = Depends(get_current_caller),
    identity: PartnerIdentityService = Depends(get_identity_service),
    session: Session = Depends(get_session),
):
    company_id = identity.resolve(caller.user_id, caller.email)
    return session.exec(
        select(PartnerDeal)
        .where(PartnerDeal.partner_company_id == company_id)
        .order_by(PartnerDeal.created_at.desc(), PartnerDeal.id.desc())
    ).all()


# --- Partner password reset ---

@app.post("/partners/password-reset/request", response_model=MessageResponse)
@auth_rate_limit()
async def request_password_reset(
    request: Request,
    reset_request: PasswordResetRequest,
    session: Session = Depends(get_session),
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    """Issue a reset token; the response never reveals whether the email is registered"""
    matches = directory.find_by_email(reset_request.email)
    partner_user = matches[0] if matches else None

    if partner_user is None or not partner_user.is_active:
        return MessageResponse(message=RESET_REQUESTED_MESSAGE)

    reset_token = create_password_reset_token(partner_user.id, session)

    # Delivery is handled outside this service; the link is logged for local development
    logger.info(f"Password reset requested for partner user {partner_user.id}")
    logger.debug(f"Reset link would be: /partner/reset-password?token={reset_token.token}")

    cleanup_expired_password_reset_tokens(session)

    return MessageResponse(message=RESET_REQUESTED_MESSAGE)


@app.get("/partners/password-reset/validate", response_model=ResetTokenStatus)
async def validate_reset_token(token: str, session: Session = Depends(get_session)):
    reset_token, message = check_password_reset_token(token, session)
    return ResetTokenStatus(valid=reset_token is not None, message=message)


@app.post("/partners/password-reset/reset", response_model=MessageResponse)
@auth_rate_limit()
async def reset_password(
    request: Request,
    reset: ResetPasswordRequest,
    session: Session = Depends(get_session),
):
    reset_token, _ = check_password_reset_token(reset.token, session)
    if reset_token is None:
        raise ValidationError(INVALID_RESET_TOKEN)

    partner_user = session.get(PartnerUser, reset_token.partner_user_id)
    if partner_user is None or not partner_user.is_active:
        raise ValidationError(INVALID_RESET_TOKEN)

    require_strong_password(reset.new_password)

    partner_user.password_hash = get_password_hash(reset.new_password)
    partner_user.updated_at = utc_now()
    reset_token.is_used = True
    session.add(partner_user)
    session.add(reset_token)
    session.commit()

    logger.info(f"Password reset for partner user {partner_user.id}")
    return MessageResponse(message="Password reset successfully")


# --- Admin ---

@app.post("/admin/partner-users/link", response_model=MessageResponse)
async def link_partner_user(
    link: LinkUserRequest,
    admin: CallerIdentity = Depends(require_admin),
    session: Session = Depends(get_session),
    directory: PartnerDirectory = Depends(get_partner_directory),
):
    """Attach a site account to an email-registered partner user"""
    user = session.get(User, link.user_id)
    if user is None:
        raise NotFoundError("User not found")

    matches = directory.find_by_email(link.partner_user_email)
    if not matches:
        raise NotFoundError("Partner user not found")

    partner_user = matches[0]
    partner_user.user_id = user.id
    partner_user.updated_at = utc_now()
    session.add(partner_user)
    session.commit()

    logger.info(f"Admin {admin.user_id} linked user {user.id} to partner user {partner_user.id}")
    return MessageResponse(message="Partner user linked successfully")


def get_pending_deal(deal_id: int, session: Session) -> PartnerDeal:
    deal = session.get(PartnerDeal, deal_id)
    if deal is None:
        raise NotFoundError("Deal not found")
    if deal.status != DealStatus.PENDING:
        raise ConflictError(f"Deal has already been {deal.status.value}")
    return deal


@app.get("/admin/deals", response_model=List[PartnerDealRead])
async def list_deals_for_review(
    deal_status: Optional[DealStatus] = Query(None, alias="status"),
    admin: CallerIdentity = Depends(require_admin),
    session: Session = Depends(get_session),
):
    """Deal registrations across all partners, oldest first, optionally filtered by status"""
    query = select(PartnerDeal).order_by(PartnerDeal.created_at, PartnerDeal.id)
    if deal_status is not None:
        query = query.where(PartnerDeal.status == deal_status)
    return session.exec(query).all()


@app.post("/admin/deals/{deal_id}/approve", response_model=PartnerDealRead)
async def approve_deal(
    deal_id: int,
    admin: CallerIdentity = Depends(require_admin),
    session: Session = Depends(get_session),
):
    deal = get_pending_deal(deal_id, session)

    deal.status = DealStatus.APPROVED
    deal.reviewed_by = admin.user_id
    deal.reviewed_at = utc_now()
    deal.updated_at = deal.reviewed_at
    session.add(deal)
    session.commit()
    session.refresh(deal)

    logger.info(f"Admin {admin.user_id} approved deal {deal.id}")
    return deal


@app.post("/admin/deals/{deal_id}/reject", response_model=PartnerDealRead)
async def reject_deal(
    deal_id: int,
    rejection: DealRejectRequest,
    admin: CallerIdentity = Depends(require_admin),
    session: Session = Depends(get_session),
):
    deal = get_pending_deal(deal_id, session)

    deal.status = DealStatus.REJECTED
    deal.deal_stage = "Closed Lost"
    deal.rejection_reason = rejection.reason
    deal.reviewed_by = admin.user_id
    deal.reviewed_at = utc_now()
    deal.updated_at = deal.reviewed_at
    session.add(deal)
    session.commit()
    session.refresh(deal)

    logger.info(f"Admin {admin.user_id} rejected deal {deal.id}: {rejection.reason}")
    return deal
