"""Reusable field validators for onboarding forms.

Provides shape checks for the few free-text fields that have one:
- Phone number validation (lenient, local formats allowed)
- Social profile URL validation
- Free-text trimming and length cap
"""

import re

# Regex patterns
PHONE_REGEX = re.compile(r"^\+?[0-9][0-9 ().-]{5,28}[0-9]$")
URL_REGEX = re.compile(
    r"^https?://"  # http:// or https://
    r"(?:(?:[A-Z0-9](?:[A-Z0-9-]{0,61}[A-Z0-9])?\.)+[A-Z]{2,63}\.?|"  # domain
    r"localhost|"  # localhost
    r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})"  # IP
    r"(?::\d+)?"  # optional port
    r"(?:/?|[/?]\S+)$",
    re.IGNORECASE,
)


def clean_text(value: str, max_length: int = 1000) -> str:
    """Trim free-text input and enforce a length cap.

    Content is otherwise stored as entered.

    Args:
        value: Input string
        max_length: Maximum allowed length

    Returns:
        Trimmed string

    Raises:
        ValueError: If validation fails
    """
    if not isinstance(value, str):
        raise ValueError("Must be a string")

    value = value.strip()

    if len(value) > max_length:
        raise ValueError(f"String too long (max {max_length} characters)")

    return value


def validate_phone(value: str) -> str:
    """Validate a shop phone number.

    Accepts local formats such as "555-0100" or "(02) 9999 1234" as
    well as E.164. Only the shape is checked; the value is stored as
    entered (trimmed).

    Raises:
        ValueError: If the phone number is malformed
    """
    if not value:
        raise ValueError("Phone number is required")

    value = value.strip()

    if not PHONE_REGEX.match(value):
        raise ValueError("Invalid phone number format")

    if sum(ch.isdigit() for ch in value) < 7:
        raise ValueError("Phone number needs at least 7 digits")

    return value


def validate_url(value: str) -> str:
    """Validate a social profile URL (http or https).

    Raises:
        ValueError: If URL is invalid
    """
    if not value:
        raise ValueError("URL is required")

    value = value.strip()

    if not URL_REGEX.match(value):
        raise ValueError("Invalid URL format")

    return value
