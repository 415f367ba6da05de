import json
from datetime import timedelta, timezone
from typing import Dict, Any, Optional
from sqlmodel import Session, select
from faker import Faker

from database import engine, create_db_and_tables
from models import (
    User, UserRole, PartnerCompany, PartnerUser, PartnerDeal, PartnerPasswordResetToken,
    PartnerType, PartnerStatus, PartnerTier, PartnerRole, utc_now,
)
from auth import get_password_hash

fake = Faker()

# Satisfies the portal password policy so seeded accounts can log in
DEMO_PASSWORD = "PartnerDemo#2024"

DEAL_STAGES = ["Prospecting", "Qualified Lead", "Proposal", "Negotiation"]


class DatabaseSeeder:
    """
    Database seeding utility for development and testing.
    """

    def __init__(self, session: Optional[Session] = None):
        """
        Initialize the database seeder.

        Args:
            session: Optional database session (will create one if not provided)
        """
        self.session = session or Session(engine)
        self.close_session = session is None  # Only close if we created it

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.close_session:
            self.session.close()

    def seed_all(self, clear_existing: bool = False, companies: int = 4) -> Dict[str, Any]:
        """
        Seed all data types in the correct order.

        Args:
            clear_existing: Whether to clear existing data first
            companies: Number of random partner companies to create

        Returns:
            Summary of seeded data
        """
        if clear_existing:
            self.clear_all_data()

        summary = {
            "users": self.seed_users(),
            "partner_companies": self.seed_partner_companies(companies),
        }
        self.session.commit()

        summary["partner_users"] = self.seed_partner_users()
        self.session.commit()

        summary["deals"] = self.seed_deals()
        self.session.commit()

        return summary

    def clear_all_data(self):
        """Clear all seeded data (in reverse dependency order)"""
        for model in (PartnerDeal, PartnerPasswordResetToken, PartnerUser, PartnerCompany, User):
            for record in self.session.exec(select(model)).all():
                self.session.delete(record)
            # Flush per table so child rows go before their parents
            self.session.flush()

        self.session.commit()

    def seed_users(self) -> int:
        """
        Seed the known site accounts: one admin and one OAuth-style user.

        Returns:
            Number of users created
        """
        existing_emails = {user.email for user in self.session.exec(select(User)).all()}
        users_created = 0

        if "admin@example.com" not in existing_emails:
            self.session.add(User(
                email="admin@example.com",
                name="Portal Admin",
                hashed_password=get_password_hash(DEMO_PASSWORD),
                role=UserRole.ADMIN,
                last_signed_in=utc_now(),
            ))
            users_created += 1

        # OAuth accounts carry no password
        if "oauth.partner@example.com" not in existing_emails:
            self.session.add(User(
                email="oauth.partner@example.com",
                name=fake.name(),
                role=UserRole.USER,
                last_signed_in=utc_now() - timedelta(days=1),
            ))
            users_created += 1

        return users_created

    def seed_partner_companies(self, count: int = 4) -> int:
        """Seed random partner companies"""
        existing_emails = {c.email for c in self.session.exec(select(PartnerCompany)).all()}
        created = 0
        attempts = 0

        while created < count and attempts < count * 3:
            attempts += 1
            domain = fake.unique.domain_name()
            email = f"partners@{domain}"
            if email in existing_emails:
                continue

            contact_name = fake.name()
            self.session.add(PartnerCompany(
                company_name=fake.company(),
                email=email,
                website=f"https://{domain}",
                phone=fake.phone_number(),
                partner_type=fake.random_element(list(PartnerType)),
                partner_status=fake.random_element([PartnerStatus.ACTIVE, PartnerStatus.PROSPECT]),
                tier=fake.random_element(list(PartnerTier)),
                primary_contact_name=contact_name,
                primary_contact_email=f"{contact_name.split()[0].lower()}@{domain}",
                commission_rate=float(fake.random_int(min=5, max=25)),
                mdf_budget_annual=float(fake.random_int(min=0, max=50) * 1000),
                created_at=fake.date_time_between(start_date="-180d", end_date="-1d", tzinfo=timezone.utc),
            ))
            existing_emails.add(email)
            created += 1

        return created

    def seed_partner_users(self) -> int:
        """
        Seed one email-registered admin per company, and link the OAuth
        demo account to the first company by user id.
        """
        companies = self.session.exec(select(PartnerCompany).order_by(PartnerCompany.id)).all()
        existing_emails = {pu.email for pu in self.session.exec(select(PartnerUser)).all()}
        created = 0

        for company in companies:
            if company.primary_contact_email in existing_emails:
                continue
            self.session.add(PartnerUser(
                partner_company_id=company.id,
                email=company.primary_contact_email,
                password_hash=get_password_hash(DEMO_PASSWORD),
                email_verified=True,
                contact_name=company.primary_contact_name,
                partner_role=PartnerRole.ADMIN,
            ))
            existing_emails.add(company.primary_contact_email)
            created += 1

        oauth_user = self.session.exec(
            select(User).where(User.email == "oauth.partner@example.com")
        ).first()
        if companies and oauth_user and oauth_user.email not in existing_emails:
            self.session.add(PartnerUser(
                user_id=oauth_user.id,
                partner_company_id=companies[0].id,
                email=oauth_user.email,
                contact_name=oauth_user.name,
                partner_role=PartnerRole.SALES_REP,
            ))
            created += 1

        return created

    def seed_deals(self, max_per_company: int = 3) -> int:
        """Seed pending deals for every company"""
        created = 0
        for company in self.session.exec(select(PartnerCompany)).all():
            submitter = self.session.exec(
                select(PartnerUser).where(PartnerUser.partner_company_id == company.id)
            ).first()
            for _ in range(fake.random_int(min=1, max=max_per_company)):
                self.session.add(PartnerDeal(
                    partner_company_id=company.id,
                    deal_name=f"{fake.bs().title()} Rollout",
                    customer_name=fake.company(),
                    customer_email=fake.company_email(),
                    deal_amount=float(fake.random_int(min=10, max=500) * 1000),
                    deal_stage=fake.random_element(DEAL_STAGES),
                    expected_close_date=fake.date_between(start_date="+7d", end_date="+180d"),
                    submitted_by=submitter.id if submitter else None,
                ))
                created += 1
        return created


def seed_database(clear_existing: bool = False, companies: int = 4) -> Dict[str, Any]:
    """
    Seed the database with sample data.

    Args:
        clear_existing: Whether to clear existing data first
        companies: Number of partner companies to create

    Returns:
        Summary of seeded data
    """
    create_db_and_tables()
    with DatabaseSeeder() as seeder:
        return seeder.seed_all(clear_existing=clear_existing, companies=companies)


def clear_database():
    """Clear all seeded data from the database"""
    with DatabaseSeeder() as seeder:
        seeder.clear_all_data()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Partner Portal Seeding Utility")
    parser.add_argument("action", choices=["seed", "clear"], help="Action to perform")
    parser.add_argument("--clear", action="store_true", help="Clear existing data before seeding")
    parser.add_argument("--companies", type=int, default=4, help="Number of partner companies to create")

    args = parser.parse_args()

    if args.action == "seed":
        result = seed_database(clear_existing=args.clear, companies=args.companies)
        print("Database seeding completed:")
        print(json.dumps(result, indent=2))
    else:
        clear_database()
        print("Database cleared successfully")
