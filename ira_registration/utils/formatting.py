"""
Display helpers for sensitive and separator-formatted fields.

Masking is for on-screen display only; submitted values are never masked.
"""

import re
from typing import Tuple

from ira_registration.utils.validation import validate_password

STRENGTH_LABELS = ("Very Weak", "Weak", "Fair", "Good", "Strong", "Very Strong")


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value or "")


def format_ssn(value: str) -> str:
    """
    Format to ###-##-#### as digits accumulate.

    Examples:
        "123" -> "123", "12345" -> "123-45", "123456789" -> "123-45-6789"
    """
    digits = _digits(value)
    if len(digits) <= 3:
        return digits
    if len(digits) <= 5:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:5]}-{digits[5:9]}"


def format_phone(value: str) -> str:
    """Format to ###-###-#### as digits accumulate."""
    digits = _digits(value)
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"{digits[:3]}-{digits[3:]}"
    return f"{digits[:3]}-{digits[3:6]}-{digits[6:10]}"


def mask_ssn(ssn: str) -> str:
    """Mask every digit except the trailing four, keeping separators."""
    return re.sub(r"\d(?=(?:\D*\d){4})", "*", ssn or "")


def mask_account_number(account: str) -> str:
    account = account or ""
    if len(account) <= 4:
        return account
    return "*" * (len(account) - 4) + account[-4:]


def password_strength(password: str) -> Tuple[int, str]:
    """Score 0..5 (five rules minus violations) and its label."""
    _, violations = validate_password(password)
    score = 5 - len(violations)
    return score, STRENGTH_LABELS[score]
