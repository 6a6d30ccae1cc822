"""Shared regular expressions for onboarding field validation."""

from __future__ import annotations

import re

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
"""Regex accepting the ``local@domain.tld`` shape used by the registration forms."""

NON_DIGIT_RE = re.compile(r"\D+")
"""Regex stripping everything but digits from phone numbers."""

OTP_RE = re.compile(r"^\d{6}$", re.ASCII)
"""Regex matching the six digit one-time codes sent for email verification."""

PINCODE_RE = re.compile(r"^\d{6}$")
"""Regex matching six digit postal index numbers."""

WEBSITE_RE = re.compile(r"^(?:https?://)?[\w-]+(?:\.[\w-]+)+(?:[/?#]\S*)?$", re.IGNORECASE)
"""Regex matching website addresses with or without a scheme."""


def strip_non_digits(value: str) -> str:
    """Return ``value`` with every non-digit character removed."""

    return NON_DIGIT_RE.sub("", value)


__all__ = [
    "EMAIL_RE",
    "NON_DIGIT_RE",
    "OTP_RE",
    "PINCODE_RE",
    "WEBSITE_RE",
    "strip_non_digits",
]
