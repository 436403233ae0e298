"""Shared validation utilities"""

import re
from typing import Optional


def validate_in_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an Indian mobile number to E.164 format.

    Args:
        phone: Phone number string in various formats

    Returns:
        Normalized phone number in E.164 format (+91XXXXXXXXXX)

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    # Remove all non-digit characters
    digits = re.sub(r"\D", "", phone)

    # Handle +91 / 0 prefixes
    if digits.startswith("91") and len(digits) == 12:
        digits = digits[2:]
    elif digits.startswith("0") and len(digits) == 11:
        digits = digits[1:]

    if len(digits) != 10 or digits[0] not in "6789":
        raise ValueError("Phone number must be a 10 digit Indian mobile number")

    return f"+91{digits}"


def validate_non_blank(value: Optional[str], field: str) -> str:
    """Strip a required free-text field and reject empty values"""
    if value is None or not value.strip():
        raise ValueError(f"{field} is required")
    return value.strip()
