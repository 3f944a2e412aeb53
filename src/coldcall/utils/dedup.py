"""Deduplication key normalization for discovered leads.

A lead's dedup key is derived from the most reliable identifier available,
in fixed priority order:

1. Phone number (last 10 digits)
2. Website domain (lower-cased, ``www.`` stripped)
3. Name + address prefix
4. A unique fallback key that never collides with anything
"""

import re
import time
import uuid
from typing import Optional
from urllib.parse import urlsplit


PHONE_KEY_PREFIX = "phone_"
DOMAIN_KEY_PREFIX = "domain_"
NAME_ADDR_KEY_PREFIX = "name_addr_"
FALLBACK_KEY_PREFIX = "fallback_"

MIN_PHONE_DIGITS = 10
ADDRESS_KEY_LENGTH = 20

_NON_DIGIT = re.compile(r"\D")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize_phone_digits(phone: Optional[str]) -> str:
    """Strip everything but digits from a phone string."""
    if not phone:
        return ""
    return _NON_DIGIT.sub("", phone)


def extract_domain(website: Optional[str]) -> Optional[str]:
    """Extract the normalized hostname from a website URL.

    Args:
        website: URL with or without scheme.

    Returns:
        Lower-cased hostname without a leading ``www.``, or None if the
        URL cannot be parsed.
    """
    if not website or not website.strip():
        return None

    url = website.strip()
    if not url.lower().startswith("http"):
        url = f"https://{url}"

    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None

    if not hostname:
        return None

    hostname = hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    return hostname or None


def normalize_dedup_key(
    phone: Optional[str] = None,
    website: Optional[str] = None,
    name: Optional[str] = None,
    address: Optional[str] = None,
) -> str:
    """Compute the deduplication key for a lead.

    Args:
        phone: Phone number in any formatting.
        website: Website URL.
        name: Business display name.
        address: Street address.

    Returns:
        A key such as ``phone_5551234567``, ``domain_example.com``,
        ``name_addr_joescafe_123mainst`` or a unique ``fallback_...`` key.

    Examples:
        >>> normalize_dedup_key(phone="+1 (555) 123-4567")
        'phone_5551234567'
        >>> normalize_dedup_key(website="https://www.Example.com/contact")
        'domain_example.com'
    """
    digits = normalize_phone_digits(phone)
    if len(digits) >= MIN_PHONE_DIGITS:
        return f"{PHONE_KEY_PREFIX}{digits[-MIN_PHONE_DIGITS:]}"

    domain = extract_domain(website)
    if domain:
        return f"{DOMAIN_KEY_PREFIX}{domain}"

    if name and address:
        clean_name = _NON_ALNUM.sub("", name.lower())
        clean_address = _NON_ALNUM.sub("", address.lower())[:ADDRESS_KEY_LENGTH]
        return f"{NAME_ADDR_KEY_PREFIX}{clean_name}_{clean_address}"

    return f"{FALLBACK_KEY_PREFIX}{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
