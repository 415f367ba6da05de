from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
import logging
import os
import secrets

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlmodel import Session, select

from middleware.error_handler import AuthenticationError, AuthorizationError
from models import PartnerPasswordResetToken, UserRole, utc_now

logger = logging.getLogger(__name__)

# Configuration
SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))  # Generate a secure random key if not set
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "7"))
PASSWORD_RESET_TOKEN_EXPIRE_HOURS = int(os.getenv("PASSWORD_RESET_TOKEN_EXPIRE_HOURS", "24"))

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller as described by a verified token"""
    user_id: Optional[int]
    email: Optional[str]
    role: str
    partner_user_id: Optional[int] = None
    company_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(days=ACCESS_TOKEN_EXPIRE_DAYS)
    to_encode.update({"iat": now, "exp": expire})
    encoded_jwt = jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def generate_token(
    user_id: Optional[int],
    email: Optional[str],
    role: str,
    partner_id: Optional[int] = None,
    company_id: Optional[int] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Issue a token for a site account or a partner user.

    Partner users registered by email alone have no site account, so
    `id` may be None; `sub` then falls back to the email address.
    """
    claims: Dict[str, Any] = {
        "sub": str(user_id) if user_id is not None else email,
        "id": user_id,
        "email": email,
        "role": role,
    }
    if partner_id is not None:
        claims["partnerId"] = partner_id
    if company_id is not None:
        claims["companyId"] = company_id
    return create_access_token(claims, expires_delta)


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode a token; returns None if the signature or expiry check fails"""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token verification failed: {e}")
        return None


def caller_from_claims(payload: Dict[str, Any]) -> Optional[CallerIdentity]:
    if not payload.get("sub") or not payload.get("role"):
        return None
    user_id = payload.get("id")
    return CallerIdentity(
        user_id=int(user_id) if user_id is not None else None,
        email=payload.get("email"),
        role=payload["role"],
        partner_user_id=payload.get("partnerId"),
        company_id=payload.get("companyId"),
    )


def get_current_caller(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> CallerIdentity:
    credentials_exception = AuthenticationError("Could not validate credentials")
    if not token:
        raise credentials_exception

    payload = verify_token(token)
    if payload is None:
        raise credentials_exception

    caller = caller_from_claims(payload)
    if caller is None:
        raise credentials_exception

    # Read back by the request logger
    request.state.caller = caller
    return caller


def require_admin(caller: CallerIdentity = Depends(get_current_caller)) -> CallerIdentity:
    if not caller.is_admin:
        raise AuthorizationError("Admin access required")
    return caller


# Password reset tokens

def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_password_reset_token(partner_user_id: int, session: Session) -> PartnerPasswordResetToken:
    """Issue a reset token for a partner user, retiring any still-unused ones"""
    existing_tokens = session.exec(
        select(PartnerPasswordResetToken).where(
            PartnerPasswordResetToken.partner_user_id == partner_user_id,
            PartnerPasswordResetToken.is_used == False,  # noqa: E712
        )
    ).all()

    for token in existing_tokens:
        token.is_used = True
        session.add(token)

    reset_token = PartnerPasswordResetToken(
        partner_user_id=partner_user_id,
        token=secrets.token_urlsafe(32),
        expires_at=utc_now() + timedelta(hours=PASSWORD_RESET_TOKEN_EXPIRE_HOURS),
    )
    session.add(reset_token)
    session.commit()
    session.refresh(reset_token)
    return reset_token


def check_password_reset_token(token: str, session: Session) -> Tuple[Optional[PartnerPasswordResetToken], str]:
    """
    Look up a reset token.

    Returns the token when it can still be used, else None, together with a
    message describing the outcome.
    """
    reset_token = session.exec(
        select(PartnerPasswordResetToken).where(PartnerPasswordResetToken.token == token)
    ).first()

    if reset_token is None or reset_token.is_used:
        return None, "Invalid token"
    if _as_utc(reset_token.expires_at) <= utc_now():
        return None, "Token expired"
    return reset_token, "Token is valid"


def cleanup_expired_password_reset_tokens(session: Session) -> int:
    """Delete reset tokens past their expiry"""
    now = utc_now()
    expired_tokens = [
        token for token in session.exec(select(PartnerPasswordResetToken)).all()
        if _as_utc(token.expires_at) <= now
    ]

    for expired_token in expired_tokens:
        session.delete(expired_token)

    session.commit()
    return len(expired_tokens)
