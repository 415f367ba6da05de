"""
Unit tests for partner identity resolution and directory lookups
"""

from unittest.mock import Mock

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

from models import PartnerCompany, PartnerType, PartnerUser, User
from services import (
    NotAssociatedError,
    PartnerDirectory,
    PartnerIdentityService,
    resolve_partner_company_id,
)


def association(partner_company_id, user_id=None, email="user@example.com", is_active=True):
    return PartnerUser(
        user_id=user_id,
        partner_company_id=partner_company_id,
        email=email,
        is_active=is_active,
    )


class TestResolvePartnerCompanyId:

    def test_user_id_match(self):
        assert resolve_partner_company_id([association(5, user_id=42)], None, "user@example.com") == 5

    def test_user_id_wins_over_email(self):
        by_user_id = [association(5, user_id=42)]
        by_email = [association(99)]
        assert resolve_partner_company_id(by_user_id, by_email, "a@b.com") == 5

    def test_email_fallback_on_empty_user_id_result(self):
        assert resolve_partner_company_id([], [association(7)], "a@b.com") == 7

    def test_email_fallback_on_missing_user_id_result(self):
        assert resolve_partner_company_id(None, [association(8)], "emailonly@partner.com") == 8

    def test_email_result_ignored_without_email(self):
        with pytest.raises(NotAssociatedError):
            resolve_partner_company_id([], [association(7)], None)

    def test_email_result_ignored_with_empty_email(self):
        with pytest.raises(NotAssociatedError):
            resolve_partner_company_id([], [association(7)], "")

    def test_no_association(self):
        with pytest.raises(NotAssociatedError) as exc_info:
            resolve_partner_company_id([], [], None)
        assert str(exc_info.value) == "You are not associated with a partner company"

    def test_both_lookups_empty_with_email(self):
        with pytest.raises(NotAssociatedError):
            resolve_partner_company_id([], [], "unknown@example.com")

    def test_both_lookups_missing(self):
        with pytest.raises(NotAssociatedError):
            resolve_partner_company_id(None, None, "user@example.com")

    def test_first_candidate_is_authoritative(self):
        by_email = [association(3), association(1), association(2)]
        assert resolve_partner_company_id([], by_email, "a@b.com") == 3

    def test_inactive_association_is_not_filtered(self):
        assert resolve_partner_company_id([association(4, user_id=1, is_active=False)], None, None) == 4

    def test_same_company_on_both_paths(self):
        by_user_id = [association(10, user_id=200, email="bob@company.com")]
        by_email = [association(10, email="bob@company.com")]
        assert resolve_partner_company_id(by_user_id, by_email, "bob@company.com") == 10


class TestPartnerIdentityService:

    def test_email_lookup_skipped_when_user_id_matches(self):
        directory = Mock()
        directory.find_by_user_id.return_value = [association(5, user_id=42)]

        assert PartnerIdentityService(directory).resolve(42, "user@example.com") == 5
        directory.find_by_user_id.assert_called_once_with(42)
        directory.find_by_email.assert_not_called()

    def test_email_lookup_after_user_id_miss(self):
        directory = Mock()
        directory.find_by_user_id.return_value = []
        directory.find_by_email.return_value = [association(7)]

        assert PartnerIdentityService(directory).resolve(42, "partner@example.com") == 7
        directory.find_by_email.assert_called_once_with("partner@example.com")

    def test_user_id_lookup_skipped_without_user_id(self):
        directory = Mock()
        directory.find_by_email.return_value = [association(8)]

        assert PartnerIdentityService(directory).resolve(None, "partner@example.com") == 8
        directory.find_by_user_id.assert_not_called()

    def test_no_lookups_possible(self):
        directory = Mock()
        with pytest.raises(NotAssociatedError):
            PartnerIdentityService(directory).resolve(None, None)
        directory.find_by_user_id.assert_not_called()
        directory.find_by_email.assert_not_called()

    def test_directory_errors_propagate(self):
        directory = Mock()
        directory.find_by_user_id.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        with pytest.raises(OperationalError):
            PartnerIdentityService(directory).resolve(1, "user@example.com")


class TestPartnerDirectory:

    @pytest.fixture
    def session(self, engine):
        with Session(engine) as session:
            yield session

    @pytest.fixture
    def company(self, session):
        company = PartnerCompany(
            company_name="TechVision Solutions",
            email="contact@techvision.com",
            partner_type=PartnerType.RESELLER,
            primary_contact_name="John Smith",
            primary_contact_email="john.smith@techvision.com",
        )
        session.add(company)
        session.commit()
        session.refresh(company)
        return company

    def test_find_by_user_id(self, session, company):
        user = User(email="john@acme.com")
        session.add(user)
        session.commit()
        session.add(PartnerUser(user_id=user.id, partner_company_id=company.id, email="john@acme.com"))
        session.commit()

        directory = PartnerDirectory(session)
        results = directory.find_by_user_id(user.id)
        assert [r.partner_company_id for r in results] == [company.id]
        assert directory.find_by_user_id(user.id + 1) == []

    def test_find_by_email(self, session, company):
        session.add(PartnerUser(partner_company_id=company.id, email="jane@partner.com"))
        session.commit()

        directory = PartnerDirectory(session)
        assert [r.email for r in directory.find_by_email("jane@partner.com")] == ["jane@partner.com"]
        assert directory.find_by_email("nobody@partner.com") == []

    def test_get_company(self, session, company):
        directory = PartnerDirectory(session)
        assert directory.get_company(company.id).company_name == "TechVision Solutions"
        assert directory.get_company(company.id + 100) is None
