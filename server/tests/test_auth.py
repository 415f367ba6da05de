"""
Unit tests for password hashing and JWT issuance/verification
"""

from datetime import datetime, timedelta, timezone

from jose import jwt

from auth import (
    ALGORITHM,
    SECRET_KEY,
    caller_from_claims,
    create_access_token,
    generate_token,
    get_password_hash,
    verify_password,
    verify_token,
)


class TestPasswordFunctions:

    def test_hash_is_not_plaintext(self):
        hashed = get_password_hash("ValidPassword123!")
        assert isinstance(hashed, str)
        assert hashed != "ValidPassword123!"

    def test_salted_hashes_differ(self):
        assert get_password_hash("same_password") != get_password_hash("same_password")

    def test_verify_password(self):
        hashed = get_password_hash("correct_password")
        assert verify_password("correct_password", hashed) is True
        assert verify_password("wrong_password", hashed) is False

    def test_verify_password_without_hash(self):
        # OAuth-created accounts have no local password
        assert verify_password("anything", None) is False
        assert verify_password("anything", "") is False


class TestTokenFunctions:

    def test_default_expiry_is_seven_days(self):
        token = create_access_token({"sub": "1"})
        decoded = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])

        exp_time = datetime.fromtimestamp(decoded["exp"], tz=timezone.utc)
        expected = datetime.now(timezone.utc) + timedelta(days=7)
        assert abs((exp_time - expected).total_seconds()) < 5
        assert "iat" in decoded

    def test_generate_token_claims(self):
        token = generate_token(user_id=42, email="user@example.com", role="user")
        claims = verify_token(token)

        assert claims["sub"] == "42"
        assert claims["id"] == 42
        assert claims["email"] == "user@example.com"
        assert claims["role"] == "user"
        assert "partnerId" not in claims

    def test_generate_token_for_email_only_partner(self):
        token = generate_token(
            user_id=None, email="jane@partner.com", role="partner",
            partner_id=3, company_id=7,
        )
        claims = verify_token(token)

        assert claims["sub"] == "jane@partner.com"
        assert claims["id"] is None
        assert claims["partnerId"] == 3
        assert claims["companyId"] == 7

    def test_verify_rejects_tampered_token(self):
        token = generate_token(user_id=1, email="a@b.com", role="user")
        assert verify_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb")) is None

    def test_verify_rejects_foreign_signature(self):
        token = jwt.encode({"sub": "1", "role": "admin"}, "some-other-secret", algorithm=ALGORITHM)
        assert verify_token(token) is None

    def test_verify_rejects_expired_token(self):
        token = generate_token(user_id=1, email="a@b.com", role="user", expires_delta=timedelta(seconds=-10))
        assert verify_token(token) is None

    def test_verify_rejects_garbage(self):
        assert verify_token("not-a-token") is None


class TestCallerFromClaims:

    def test_site_user(self):
        caller = caller_from_claims({"sub": "42", "id": 42, "email": "u@example.com", "role": "admin"})
        assert caller.user_id == 42
        assert caller.email == "u@example.com"
        assert caller.is_admin is True

    def test_partner_user_without_site_account(self):
        caller = caller_from_claims({
            "sub": "jane@partner.com", "id": None, "email": "jane@partner.com",
            "role": "partner", "partnerId": 3,
        })
        assert caller.user_id is None
        assert caller.partner_user_id == 3
        assert caller.is_admin is False

    def test_missing_role(self):
        assert caller_from_claims({"sub": "1", "id": 1}) is None
