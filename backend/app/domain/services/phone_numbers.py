"""
Phone Number Normalization
Canonical dialing form and the lookup variants used to match call records to leads

Canonical form is "+<country code><subscriber digits>", e.g. "+919876543210".
"""
import re
from typing import List

DEFAULT_COUNTRY_CODE = "91"
LOCAL_NUMBER_LENGTH = 10

_NON_DIGITS = re.compile(r"\D")


def digits_only(raw: str) -> str:
    """Strip everything except digits."""
    return _NON_DIGITS.sub("", raw or "")


def digit_count(raw: str) -> int:
    return len(digits_only(raw))


def normalize_phone_number(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """
    Normalize a stored contact number for dialing.

    - digits already starting with the country code get a "+" prefix
    - a bare 10-digit local number gets "+<country code>"
    - anything else gets a leading "+"
    """
    digits = digits_only(raw)
    if digits.startswith(country_code):
        return f"+{digits}"
    if len(digits) == LOCAL_NUMBER_LENGTH:
        return f"+{country_code}{digits}"
    return f"+{digits}"


def phone_number_variants(raw: str, country_code: str = DEFAULT_COUNTRY_CODE) -> List[str]:
    """
    Formats a lead's contact number may have been stored in.

    Order: original string, digits only, "+<cc>" + digits without the
    country prefix, digits without the country prefix. Duplicates and
    empty values are dropped, first occurrence kept.
    """
    digits = digits_only(raw)
    local = digits[len(country_code):] if digits.startswith(country_code) else digits

    variants = [raw, digits, f"+{country_code}{local}", local]

    seen = set()
    ordered = []
    for variant in variants:
        if variant and variant not in seen:
            seen.add(variant)
            ordered.append(variant)
    return ordered
