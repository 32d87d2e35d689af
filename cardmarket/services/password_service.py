"""Password strength validation and hashing.

Strength rules apply to every new password (registration and password
change). Hashing uses bcrypt; inputs are truncated to bcrypt's 72-byte limit
so long passphrases hash the same way on every bcrypt release.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import bcrypt

SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'
BCRYPT_MAX_BYTES = 72

COMMON_PASSWORDS = (
    "password",
    "123456",
    "123456789",
    "qwerty",
    "abc123",
    "password123",
    "admin",
    "letmein",
    "welcome",
    "monkey",
    "1234567890",
    "password1",
)

_SEQUENTIAL_LETTERS = re.compile(
    "(?:abc|bcd|cde|def|efg|fgh|ghi|hij|ijk|jkl|klm|lmn|mno|nop|opq|pqr|qrs|rst|stu|tuv|uvw|vwx|wxy|xyz)",
    re.IGNORECASE,
)
_SEQUENTIAL_DIGITS = re.compile("(?:123|234|345|456|567|678|789|890)")
_REPEATED_CHARACTERS = re.compile(r"(.)\1{2,}")
_SPECIAL = re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]")


@dataclass(frozen=True)
class PasswordRequirements:
    min_length: int = 8
    max_length: int = 128
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = True


DEFAULT_PASSWORD_REQUIREMENTS = PasswordRequirements()


@dataclass
class PasswordValidationResult:
    """Outcome of ``validate_password``.

    Attributes:
        is_valid: True when no rule was violated.
        errors: Human-readable rule violations, in check order.
        score: Strength from 0 (very weak) to 4 (strong).
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    score: int = 0


def validate_password(
    password: str,
    requirements: PasswordRequirements = DEFAULT_PASSWORD_REQUIREMENTS,
) -> PasswordValidationResult:
    """Check a candidate password against the strength rules.

    Each satisfied character class and the minimum length add one point;
    common words, sequences and repeated characters are rejected and cost
    points. The final score is clamped to 0..4.
    """
    errors: list[str] = []
    score = 0

    if len(password) < requirements.min_length:
        errors.append(f"Password must be at least {requirements.min_length} characters long")
    else:
        score += 1

    if len(password) > requirements.max_length:
        errors.append(f"Password must be no more than {requirements.max_length} characters long")

    character_classes = (
        (
            requirements.require_uppercase,
            any(c.isascii() and c.isupper() for c in password),
            "Password must contain at least one uppercase letter",
        ),
        (
            requirements.require_lowercase,
            any(c.isascii() and c.islower() for c in password),
            "Password must contain at least one lowercase letter",
        ),
        (
            requirements.require_numbers,
            any(c.isascii() and c.isdigit() for c in password),
            "Password must contain at least one number",
        ),
        (
            requirements.require_special_chars,
            bool(_SPECIAL.search(password)),
            f"Password must contain at least one special character ({SPECIAL_CHARACTERS})",
        ),
    )
    for required, present, message in character_classes:
        if required and not present:
            errors.append(message)
        elif present:
            score += 1

    lowered = password.lower()
    if any(common in lowered for common in COMMON_PASSWORDS):
        errors.append("Password contains common words and is not secure")
        score = max(0, score - 2)

    if _SEQUENTIAL_LETTERS.search(password):
        errors.append("Password should not contain sequential letters")
        score = max(0, score - 1)

    if _SEQUENTIAL_DIGITS.search(password):
        errors.append("Password should not contain sequential numbers")
        score = max(0, score - 1)

    if _REPEATED_CHARACTERS.search(password):
        errors.append("Password should not contain repeated characters")
        score = max(0, score - 1)

    return PasswordValidationResult(
        is_valid=not errors,
        errors=errors,
        score=max(0, min(4, score)),
    )


def password_strength_label(score: int) -> str:
    if score <= 1:
        return "Very Weak"
    if score == 2:
        return "Weak"
    if score == 3:
        return "Fair"
    if score == 4:
        return "Strong"
    return "Very Strong"


def password_requirements_text(
    requirements: PasswordRequirements = DEFAULT_PASSWORD_REQUIREMENTS,
) -> list[str]:
    """Describe the rules in a form suitable for signup forms."""
    rules = [f"At least {requirements.min_length} characters long"]
    if requirements.require_uppercase:
        rules.append("At least one uppercase letter (A-Z)")
    if requirements.require_lowercase:
        rules.append("At least one lowercase letter (a-z)")
    if requirements.require_numbers:
        rules.append("At least one number (0-9)")
    if requirements.require_special_chars:
        rules.append(f"At least one special character ({SPECIAL_CHARACTERS})")
    rules.append("No common passwords or sequential characters")
    rules.append(f"Maximum {requirements.max_length} characters")
    return rules


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds)).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(password), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False
