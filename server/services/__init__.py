"""
Services package for partner directory lookups and identity resolution.
"""

from .partner_directory import PartnerDirectory
from .partner_identity import (
    NotAssociatedError,
    PartnerIdentityService,
    resolve_partner_company_id,
)

__all__ = [
    "PartnerDirectory",
    "NotAssociatedError",
    "PartnerIdentityService",
    "resolve_partner_company_id",
]
