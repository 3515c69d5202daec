"""Promo code string composition.

A full code is what a customer types at checkout: the affiliate's referral
code (when the promo is attributed to one) followed by the promo suffix,
e.g. ``AB12`` + ``SALE`` -> ``AB12SALE``.
"""

import re

SUFFIX_MIN_LENGTH = 3
SUFFIX_MAX_LENGTH = 10
SUFFIX_PATTERN = re.compile(rf"[A-Z0-9]{{{SUFFIX_MIN_LENGTH},{SUFFIX_MAX_LENGTH}}}")


def compose(referral_code: str | None, suffix: str) -> str:
    """Join referral prefix and suffix into the full code."""
    if referral_code:
        return referral_code + suffix
    return suffix


def split_full_code(full_code: str, referral_code: str | None) -> str:
    """Recover the suffix from a full code with a known referral prefix.

    Raises:
        ValueError: If the full code does not start with the referral code
    """
    if not referral_code:
        return full_code
    if not full_code.startswith(referral_code):
        raise ValueError(f"{full_code!r} does not start with referral code {referral_code!r}")
    return full_code[len(referral_code):]


def normalize_suffix(value: str) -> str:
    """Uppercase and truncate user input to the maximum suffix length.

    The result still has to pass ``is_valid_suffix`` before it is stored.
    """
    return value.strip().upper()[:SUFFIX_MAX_LENGTH]


def is_valid_suffix(value: str) -> bool:
    return SUFFIX_PATTERN.fullmatch(value) is not None


def normalize_referral_code(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None
