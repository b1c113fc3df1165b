"""
PHI minimization helpers.

Handlers call these explicitly per field; nothing is masked implicitly.
"""

from __future__ import annotations

from typing import Any

MASK_CHAR = "*"
# Fixed width so the masked form never reveals the original length.
MASK_RUN = MASK_CHAR * 9
ZIP_PREFIX_DIGITS = 3


def _text(value: Any) -> str:
    if value is None:
        return ""
    try:
        return str(value).strip()
    except Exception:
        return ""


def mask_last4(value: Any) -> str:
    """
    Reveal at most the last four characters behind a fixed mask run.

    >>> mask_last4("ABC123456789")
    '*********6789'

    Values of four characters or fewer keep all of their characters after
    the run (the last min(4, len) rule). Empty input yields "".
    """
    text = _text(value)
    if not text:
        return ""
    return MASK_RUN + text[-4:]


def mask_zip(value: Any) -> str:
    """
    Generalize a ZIP code to its 3-digit regional prefix.

    >>> mask_zip("94110-1234")
    '941**'
    """
    text = _text(value)
    if not text:
        return ""
    digits = "".join(ch for ch in text if ch.isdigit())
    if len(digits) < ZIP_PREFIX_DIGITS:
        return MASK_CHAR * 5
    return digits[:ZIP_PREFIX_DIGITS] + MASK_CHAR * 2
