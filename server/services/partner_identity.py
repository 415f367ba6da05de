"""
Partner identity resolution.
Associates an authenticated caller with a partner company: the
user-id association wins, the email association is the fallback.
"""

import logging
from typing import Optional, Sequence

from models import PartnerUser

logger = logging.getLogger(__name__)

NOT_ASSOCIATED_MESSAGE = "You are not associated with a partner company"


class NotAssociatedError(Exception):
    """Raised when no lookup path links the caller to a partner company"""

    def __init__(self, message: str = NOT_ASSOCIATED_MESSAGE):
        self.message = message
        super().__init__(message)


def resolve_partner_company_id(
    by_user_id: Optional[Sequence[PartnerUser]],
    by_email: Optional[Sequence[PartnerUser]],
    email: Optional[str],
) -> int:
    """
    Pick the partner company for a caller from pre-fetched lookups.

    The by-email result is only consulted when the by-user-id result is
    missing or empty and an email is available. Only the first candidate
    counts; order is whatever the directory returned.

    Raises:
        NotAssociatedError: if neither lookup yields an association
    """
    candidates = by_user_id

    if not candidates and email:
        candidates = by_email

    if not candidates:
        raise NotAssociatedError()

    return candidates[0].partner_company_id


class PartnerIdentityService:
    """Runs directory lookups on demand and resolves the caller's company"""

    def __init__(self, directory):
        self.directory = directory

    def resolve(self, user_id: Optional[int], email: Optional[str]) -> int:
        by_user_id = None
        if user_id is not None:
            by_user_id = self.directory.find_by_user_id(user_id)

        by_email = None
        if not by_user_id and email:
            by_email = self.directory.find_by_email(email)

        try:
            company_id = resolve_partner_company_id(by_user_id, by_email, email)
        except NotAssociatedError:
            logger.info(f"No partner association for user_id={user_id} email={email}")
            raise

        source = "user_id" if by_user_id else "email"
        logger.debug(f"Resolved partner company {company_id} via {source}")
        return company_id
