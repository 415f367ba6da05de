"""
Unit tests for the password strength evaluator
"""

import dataclasses

import pytest

from middleware.password_validator import (
    PasswordValidator,
    SPECIAL_CHARS,
    get_password_policy,
    get_strength_color,
    get_strength_label,
    strength_for_score,
    validate_password_strength,
)


class TestRequirements:
    """Each requirement is reported independently"""

    def test_rejects_short_password(self):
        result = validate_password_strength("Short1!")
        assert result.is_valid is False
        assert result.requirements.min_length is False
        assert "Password must be at least 12 characters" in result.feedback

    def test_rejects_missing_uppercase(self):
        result = validate_password_strength("lowercase123!")
        assert result.is_valid is False
        assert result.requirements.has_uppercase is False
        assert "Include at least one uppercase letter (A-Z)" in result.feedback

    def test_rejects_missing_lowercase(self):
        result = validate_password_strength("UPPERCASE123!")
        assert result.is_valid is False
        assert result.requirements.has_lowercase is False
        assert "Include at least one lowercase letter (a-z)" in result.feedback

    def test_rejects_missing_number(self):
        result = validate_password_strength("NoNumbers!Here")
        assert result.is_valid is False
        assert result.requirements.has_numbers is False
        assert "Include at least one number (0-9)" in result.feedback

    def test_rejects_missing_special_character(self):
        result = validate_password_strength("NoSpecial123")
        assert result.is_valid is False
        assert result.requirements.has_special_chars is False
        assert any("special character" in message for message in result.feedback)

    def test_accepts_valid_password(self):
        result = validate_password_strength("ValidPassword123!")
        assert result.is_valid is True
        assert result.feedback == ()
        assert dataclasses.astuple(result.requirements) == (True, True, True, True, True)

    @pytest.mark.parametrize("char", sorted(SPECIAL_CHARS))
    def test_every_special_character_counts(self, char):
        result = validate_password_strength(f"ValidPass123{char}")
        assert result.requirements.has_special_chars is True

    def test_non_ascii_letters_do_not_count(self):
        result = validate_password_strength("ÄÖÜäöü1234!!")
        assert result.requirements.min_length is True
        assert result.requirements.has_uppercase is False
        assert result.requirements.has_lowercase is False
        assert result.is_valid is False


class TestScoring:

    def test_empty_password(self):
        result = validate_password_strength("")
        assert result.score == 0
        assert result.strength == "weak"
        assert result.is_valid is False
        assert result.feedback == (
            "Password must be at least 12 characters",
            "Include at least one uppercase letter (A-Z)",
            "Include at least one lowercase letter (a-z)",
            "Include at least one number (0-9)",
            "Include at least one special character (!@#$%^&* etc.)",
        )

    def test_score_grows_with_satisfied_categories(self):
        # All twelve characters long, one more category each step
        passwords = ["            ", "aaaaaaaaaaaa", "Aaaaaaaaaaaa", "Aaaaaaaaaaa1", "Aaaaaaaaaa1!"]
        scores = [validate_password_strength(p).score for p in passwords]
        assert scores == [20, 40, 60, 80, 100]
        assert scores == sorted(scores)

    def test_length_bonuses(self):
        assert validate_password_strength("lowercase12!").score == 80
        assert validate_password_strength("lowercase123456!").score == 85
        assert validate_password_strength("lowercase1234567890!").score == 90

    def test_bonus_is_clamped(self):
        result = validate_password_strength("VeryLongPassword123!WithExtraLength")
        assert result.score == 100
        assert result.strength == "very-strong"

    def test_bonus_does_not_affect_validity(self):
        result = validate_password_strength("nouppercaseatallinhere123!")
        assert result.score == 90
        assert result.is_valid is False

    @pytest.mark.parametrize("score, expected", [
        (0, "weak"), (19, "weak"),
        (20, "fair"), (39, "fair"),
        (40, "good"), (59, "good"),
        (60, "strong"), (79, "strong"),
        (80, "very-strong"), (100, "very-strong"),
    ])
    def test_strength_thresholds(self, score, expected):
        assert strength_for_score(score) == expected

    def test_validity_matches_feedback(self):
        for password in ["", "Short1!", "ValidPassword123!", "NoSpecial123", "aaaaaaaaaaaa"]:
            result = validate_password_strength(password)
            assert result.is_valid == (len(result.feedback) == 0)


class TestReport:

    def test_report_is_immutable(self):
        result = validate_password_strength("ValidPassword123!")
        with pytest.raises(dataclasses.FrozenInstanceError):
            result.score = 0

    def test_fresh_report_per_call(self):
        validator = PasswordValidator()
        assert validator.evaluate("a") is not validator.evaluate("a")

    def test_to_dict_wire_shape(self):
        data = validate_password_strength("NoSpecial123").to_dict()
        assert data["isValid"] is False
        assert data["strength"] == "very-strong"
        assert data["score"] == 80
        assert data["feedback"] == ["Include at least one special character (!@#$%^&* etc.)"]
        assert data["requirements"] == {
            "minLength": True,
            "hasUppercase": True,
            "hasLowercase": True,
            "hasNumbers": True,
            "hasSpecialChars": False,
        }

    def test_color_and_label_properties(self):
        result = validate_password_strength("")
        assert result.color == "#ef4444"
        assert result.label == "Weak"


class TestDisplayHelpers:

    def test_strength_colors(self):
        assert get_strength_color("weak") == "#ef4444"
        assert get_strength_color("fair") == "#f97316"
        assert get_strength_color("good") == "#eab308"
        assert get_strength_color("strong") == "#84cc16"
        assert get_strength_color("very-strong") == "#22c55e"

    def test_strength_labels(self):
        assert get_strength_label("weak") == "Weak"
        assert get_strength_label("fair") == "Fair"
        assert get_strength_label("good") == "Good"
        assert get_strength_label("strong") == "Strong"
        assert get_strength_label("very-strong") == "Very Strong"

    @pytest.mark.parametrize("strength", ["unknown", "", "WEAK", "very strong"])
    def test_fallbacks(self, strength):
        assert get_strength_color(strength) == "#6b7280"
        assert get_strength_label(strength) == "Unknown"

    def test_policy_description(self):
        policy = get_password_policy()
        assert policy["min_length"] == 12
        assert policy["scoring"]["max_score"] == 100


class TestRealWorldPasswords:

    @pytest.mark.parametrize("password", ["password", "123456", "qwerty", "abc123", "letmein"])
    def test_common_weak_passwords_rejected(self, password):
        assert validate_password_strength(password).is_valid is False

    @pytest.mark.parametrize("password", [
        "MySecurePass123!",
        "Correct-Horse-Battery-Staple1!",
        "P@ssw0rd2024Secure",
        "VisiumPartner#2024",
        "SecureP@ss123456",
    ])
    def test_realistic_strong_passwords_accepted(self, password):
        assert validate_password_strength(password).is_valid is True
