"""
Password Strength Validation
Scores partner portal passwords against the fixed account requirements
and produces real-time feedback for the registration form
"""

from typing import Dict, Tuple, Any
from dataclasses import dataclass, field


MIN_LENGTH = 12
LENGTH_BONUS_THRESHOLDS = (16, 20)
REQUIREMENT_POINTS = 20
LENGTH_BONUS_POINTS = 5
MAX_SCORE = 100

UPPERCASE_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZ")
LOWERCASE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyz")
DIGIT_CHARS = frozenset("0123456789")
SPECIAL_CHARS = frozenset("!@#$%^&*()_+-=[]{};':\"\\|,.<>/?")

STRENGTH_WEAK = "weak"
STRENGTH_FAIR = "fair"
STRENGTH_GOOD = "good"
STRENGTH_STRONG = "strong"
STRENGTH_VERY_STRONG = "very-strong"

# Upper bounds (exclusive) for each label, checked in order
STRENGTH_THRESHOLDS = (
    (20, STRENGTH_WEAK),
    (40, STRENGTH_FAIR),
    (60, STRENGTH_GOOD),
    (80, STRENGTH_STRONG),
)

STRENGTH_COLORS = {
    STRENGTH_WEAK: "#ef4444",
    STRENGTH_FAIR: "#f97316",
    STRENGTH_GOOD: "#eab308",
    STRENGTH_STRONG: "#84cc16",
    STRENGTH_VERY_STRONG: "#22c55e",
}
DEFAULT_STRENGTH_COLOR = "#6b7280"

STRENGTH_LABELS = {
    STRENGTH_WEAK: "Weak",
    STRENGTH_FAIR: "Fair",
    STRENGTH_GOOD: "Good",
    STRENGTH_STRONG: "Strong",
    STRENGTH_VERY_STRONG: "Very Strong",
}
DEFAULT_STRENGTH_LABEL = "Unknown"

LENGTH_FEEDBACK = f"Password must be at least {MIN_LENGTH} characters"
UPPERCASE_FEEDBACK = "Include at least one uppercase letter (A-Z)"
LOWERCASE_FEEDBACK = "Include at least one lowercase letter (a-z)"
NUMBER_FEEDBACK = "Include at least one number (0-9)"
SPECIAL_FEEDBACK = "Include at least one special character (!@#$%^&* etc.)"


@dataclass(frozen=True)
class PasswordRequirements:
    """Per-requirement breakdown of a password check"""
    min_length: bool = False
    has_uppercase: bool = False
    has_lowercase: bool = False
    has_numbers: bool = False
    has_special_chars: bool = False

    def all_met(self) -> bool:
        return (
            self.min_length
            and self.has_uppercase
            and self.has_lowercase
            and self.has_numbers
            and self.has_special_chars
        )

    def to_dict(self) -> Dict[str, bool]:
        return {
            "minLength": self.min_length,
            "hasUppercase": self.has_uppercase,
            "hasLowercase": self.has_lowercase,
            "hasNumbers": self.has_numbers,
            "hasSpecialChars": self.has_special_chars,
        }


@dataclass(frozen=True)
class PasswordStrengthReport:
    """Result of password strength evaluation"""
    score: int
    strength: str
    feedback: Tuple[str, ...] = ()
    is_valid: bool = False
    requirements: PasswordRequirements = field(default_factory=PasswordRequirements)

    @property
    def color(self) -> str:
        return get_strength_color(self.strength)

    @property
    def label(self) -> str:
        return get_strength_label(self.strength)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape consumed by the portal's strength indicator"""
        return {
            "score": self.score,
            "strength": self.strength,
            "feedback": list(self.feedback),
            "isValid": self.is_valid,
            "requirements": self.requirements.to_dict(),
        }


def _contains_any(password: str, charset: frozenset) -> bool:
    return any(char in charset for char in password)


def _add_points(score: int, points: int) -> int:
    return min(MAX_SCORE, score + points)


def strength_for_score(score: int) -> str:
    """Map a 0-100 score onto its strength label"""
    for upper_bound, strength in STRENGTH_THRESHOLDS:
        if score < upper_bound:
            return strength
    return STRENGTH_VERY_STRONG


class PasswordValidator:
    """Password strength evaluator for the fixed partner account policy"""

    def evaluate(self, password: str) -> PasswordStrengthReport:
        """
        Evaluate password strength.

        Never raises: unmet requirements are reported as feedback entries,
        in the order length, uppercase, lowercase, number, special character.

        Args:
            password: Candidate password

        Returns:
            PasswordStrengthReport with score, label, feedback and breakdown
        """
        feedback = []
        score = 0

        checks = (
            (len(password) >= MIN_LENGTH, LENGTH_FEEDBACK),
            (_contains_any(password, UPPERCASE_CHARS), UPPERCASE_FEEDBACK),
            (_contains_any(password, LOWERCASE_CHARS), LOWERCASE_FEEDBACK),
            (_contains_any(password, DIGIT_CHARS), NUMBER_FEEDBACK),
            (_contains_any(password, SPECIAL_CHARS), SPECIAL_FEEDBACK),
        )

        for passed, message in checks:
            if passed:
                score = _add_points(score, REQUIREMENT_POINTS)
            else:
                feedback.append(message)

        # Length bonuses are independent of the base requirements
        for threshold in LENGTH_BONUS_THRESHOLDS:
            if len(password) >= threshold:
                score = _add_points(score, LENGTH_BONUS_POINTS)

        requirements = PasswordRequirements(*(passed for passed, _ in checks))

        return PasswordStrengthReport(
            score=score,
            strength=strength_for_score(score),
            feedback=tuple(feedback),
            is_valid=requirements.all_met(),
            requirements=requirements,
        )

    def get_policy_description(self) -> Dict[str, Any]:
        """Get human-readable description of the password policy"""
        return {
            "min_length": MIN_LENGTH,
            "requirements": {
                "uppercase_letters": "At least 1 (A-Z)",
                "lowercase_letters": "At least 1 (a-z)",
                "digits": "At least 1 (0-9)",
                "special_characters": f"At least 1 of {''.join(sorted(SPECIAL_CHARS))}",
            },
            "scoring": {
                "points_per_requirement": REQUIREMENT_POINTS,
                "length_bonus_thresholds": list(LENGTH_BONUS_THRESHOLDS),
                "length_bonus_points": LENGTH_BONUS_POINTS,
                "max_score": MAX_SCORE,
            },
        }


def get_strength_color(strength: str) -> str:
    """Get indicator color for a strength label"""
    return STRENGTH_COLORS.get(strength, DEFAULT_STRENGTH_COLOR)


def get_strength_label(strength: str) -> str:
    """Get display label for a strength label"""
    return STRENGTH_LABELS.get(strength, DEFAULT_STRENGTH_LABEL)


# Global password validator instance
password_validator = PasswordValidator()


def validate_password_strength(password: str) -> PasswordStrengthReport:
    """
    Convenience function to evaluate password strength

    Args:
        password: Password to evaluate

    Returns:
        PasswordStrengthReport with evaluation results
    """
    return password_validator.evaluate(password)


def get_password_policy() -> Dict[str, Any]:
    """Get password policy description"""
    return password_validator.get_policy_description()
