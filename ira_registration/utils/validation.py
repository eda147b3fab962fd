"""
Field-level validation for registration inputs.

Every function here is pure: no I/O, no mutation of its input. Predicates
return bool; rules with a user-facing message return (is_valid, message).
"""

import re
from datetime import date
from typing import Iterable, List, Optional, Tuple, Union

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
SSN_PATTERN = re.compile(r"^\d{3}-\d{2}-\d{4}$")
PHONE_PATTERN = re.compile(r"^\d{3}-\d{3}-\d{4}$")
ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
ROUTING_NUMBER_PATTERN = re.compile(r"^\d{9}$")
ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{5,17}$")
VERIFICATION_CODE_PATTERN = re.compile(r"^\d{6}$")

PASSWORD_SPECIAL_CHARACTERS = "!@#$%^&*"
MINIMUM_AGE = 18

ALLOWED_UPLOAD_TYPES = ("image/jpeg", "image/png", "application/pdf")
MAX_UPLOAD_SIZE = 5 * 1024 * 1024


def validate_email(email: str) -> bool:
    """Light local@domain.tld check."""
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def validate_password(password: str) -> Tuple[bool, List[str]]:
    """
    Check password strength rules.

    Unlike a short-circuiting validator this reports every violated rule,
    so callers can render a strength meter from the count.

    Requirements:
    - At least 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one number
    - At least one special character (!@#$%^&*)

    Returns:
        Tuple of (is_valid, violations)
    """
    password = password or ""
    violations: List[str] = []

    if len(password) < 8:
        violations.append("Minimum 8 characters")
    if not re.search(r"[A-Z]", password):
        violations.append("At least one uppercase letter")
    if not re.search(r"[a-z]", password):
        violations.append("At least one lowercase letter")
    if not re.search(r"\d", password):
        violations.append("At least one number")
    if not any(c in PASSWORD_SPECIAL_CHARACTERS for c in password):
        violations.append(f"At least one special character ({PASSWORD_SPECIAL_CHARACTERS})")

    return len(violations) == 0, violations


def validate_ssn(ssn: str) -> bool:
    return bool(ssn) and bool(SSN_PATTERN.match(ssn))


def validate_phone(phone: str) -> bool:
    return bool(phone) and bool(PHONE_PATTERN.match(phone))


def validate_zip(zip_code: str) -> bool:
    return bool(zip_code) and bool(ZIP_PATTERN.match(zip_code))


def validate_routing_number(routing_number: str) -> bool:
    return bool(routing_number) and bool(ROUTING_NUMBER_PATTERN.match(routing_number))


def validate_account_number(account_number: str) -> bool:
    return bool(account_number) and bool(ACCOUNT_NUMBER_PATTERN.match(account_number))


def validate_verification_code(code: str) -> bool:
    return bool(code) and bool(VERIFICATION_CODE_PATTERN.match(code))


def calculate_age(date_of_birth: date, today: date) -> int:
    """Calendar age: one less than the year difference until the birthday is reached."""
    age = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        age -= 1
    return age


def validate_date_of_birth(
    value: Union[str, date, None], today: Optional[date] = None
) -> Tuple[bool, Optional[str]]:
    """
    Validate the applicant is at least 18 years old.

    Args:
        value: ISO 8601 date string or date
        today: Reference date (defaults to the current date)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not value:
        return False, "Date of birth is required"

    if isinstance(value, date):
        dob = value
    else:
        try:
            dob = date.fromisoformat(str(value)[:10])
        except ValueError:
            return False, "Invalid date"

    if calculate_age(dob, today or date.today()) < MINIMUM_AGE:
        return False, "Must be at least 18 years old"

    return True, None


def validate_address(street: str) -> Tuple[bool, Optional[str]]:
    """Residential address only: P.O. boxes are rejected."""
    upper = (street or "").upper()
    if "P.O." in upper or "PO BOX" in upper:
        return False, "P.O. boxes are not allowed"
    return True, None


def _allocation_of(entry) -> int:
    if isinstance(entry, dict):
        return entry.get("allocationPercentage", entry.get("allocation_percentage")) or 0
    return getattr(entry, "allocation_percentage", 0) or 0


def allocation_total(beneficiaries: Iterable) -> int:
    return sum(_allocation_of(b) for b in beneficiaries)


def validate_beneficiary_percentages(beneficiaries: Iterable) -> Tuple[bool, Optional[str]]:
    """
    Allocation percentages must total exactly 100.

    Accepts Beneficiary models or raw dicts (camelCase or snake_case).
    """
    total = allocation_total(beneficiaries)
    if total != 100:
        return False, f"Percentages must total 100% (current: {total}%)"
    return True, None


def validate_upload(content_type: str, size: int) -> Tuple[bool, Optional[str]]:
    """Identity documents: JPG, PNG or PDF up to 5MB."""
    if content_type not in ALLOWED_UPLOAD_TYPES:
        return False, "Only JPG, PNG, or PDF files allowed"
    if size > MAX_UPLOAD_SIZE:
        return False, "File size must be less than 5MB"
    return True, None
