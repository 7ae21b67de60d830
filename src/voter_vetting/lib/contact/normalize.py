"""Phone and email normalization for supporter contact fields."""

import re
from dataclasses import dataclass

_NON_DIGITS = re.compile(r"\D")

# Country code + 10-digit national number
_NATIONAL_NUMBER_LENGTH = 10


@dataclass(frozen=True)
class PhoneConfig:
    """Local numbering rules used when normalizing phone numbers.

    Attributes:
        country_code: Country calling code stripped from local numbers ("1").
        area_code: Local area code; only numbers in this area lose their
            country code ("671").
    """

    country_code: str = "1"
    area_code: str = "671"

    @property
    def prefix(self) -> str:
        return self.country_code + self.area_code


def normalize_phone(phone: str | None, config: PhoneConfig | None = None) -> str | None:
    """Reduce a phone number to comparable digits.

    Non-digit characters are stripped.  Numbers that start with the country
    code followed by the local area code and carry at least
    ``len(country_code) + 10`` digits lose the country code, so
    ``+1 (671) 555-1234`` and ``671-555-1234`` normalize to the same value.

    Args:
        phone: Raw phone number as entered.
        config: Local numbering rules (defaults to ``PhoneConfig()``).

    Returns:
        The normalized digit string, or None when no digits remain.
    """
    if not phone:
        return None
    config = config or PhoneConfig()
    digits = _NON_DIGITS.sub("", phone)
    if not digits:
        return None
    if digits.startswith(config.prefix) and len(digits) >= len(config.country_code) + _NATIONAL_NUMBER_LENGTH:
        digits = digits[len(config.country_code) :]
    return digits


def normalize_email(email: str | None) -> str | None:
    """Lowercase and trim an email address; blank values become None."""
    if email is None:
        return None
    cleaned = email.strip().lower()
    return cleaned or None
