"""
Partner directory lookups.
Reads partner user associations and companies; never writes them.
"""

from typing import List, Optional
from sqlmodel import Session, select

from models import PartnerCompany, PartnerUser


class PartnerDirectory:
    """Read-only access to partner associations backed by a database session"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def find_by_user_id(self, user_id: int) -> List[PartnerUser]:
        """Associations linked to a site account id, oldest first"""
        return list(self.db.exec(
            select(PartnerUser)
            .where(PartnerUser.user_id == user_id)
            .order_by(PartnerUser.id)
        ).all())

    def find_by_email(self, email: str) -> List[PartnerUser]:
        """Associations registered under an email address, oldest first"""
        return list(self.db.exec(
            select(PartnerUser)
            .where(PartnerUser.email == email)
            .order_by(PartnerUser.id)
        ).all())

    def get_company(self, company_id: int) -> Optional[PartnerCompany]:
        return self.db.get(PartnerCompany, company_id)
