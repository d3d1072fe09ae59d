"""
Masked phone-number editing for the 10-digit ``(XXX) XXX-XXXX`` field.

Everything here is pure: the same ``(value, key, caret)`` always yields
the same :class:`PhoneEdit`.  The canonical value of a field is always
``strip_formatting(value)``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    "MAX_DIGITS", "FORMAT_CHARS",
    "PhoneEdit",
    "strip_formatting", "format_phone", "apply_key", "set_text",
]

MAX_DIGITS = 10
FORMAT_CHARS = frozenset("() -")

_NON_DIGIT_RE = re.compile(r"\D")

BACKSPACE = "Backspace"
DELETE = "Delete"


@dataclass(frozen=True)
class PhoneEdit:
    value: str
    caret: int

    @property
    def digits(self) -> str:
        return strip_formatting(self.value)


def strip_formatting(value: str | None) -> str:
    """Remove every non-digit from *value*."""
    return _NON_DIGIT_RE.sub("", value or "")


def format_phone(value: str | None) -> str:
    """Render digits in *value* as a masked phone number.

    0-2 digits render bare, 3-5 as ``(DDD) DD``, 6-10 as ``(DDD) DDD-DDDD``.
    Digits beyond the tenth are dropped.
    """
    d = strip_formatting(value)[:MAX_DIGITS]
    if len(d) >= 6:
        return f"({d[:3]}) {d[3:6]}-{d[6:]}"
    if len(d) >= 3:
        return f"({d[:3]}) {d[3:]}"
    return d


def _caret_after_digit(value: str, n: int) -> int:
    """Index just past the *n*-th digit of *value* (0 when n <= 0)."""
    if n <= 0:
        return 0
    seen = 0
    for i, ch in enumerate(value):
        if ch.isdigit():
            seen += 1
            if seen == n:
                return i + 1
    return len(value)


def _reformat(raw: str, raw_caret: int) -> PhoneEdit:
    """Reformat an edited raw string and keep the caret next to the same digit.

    The caret is anchored to the count of digits before it, which nudges it
    left over any punctuation the reformatting put in front of it.
    """
    value = format_phone(raw)
    digits_before = len(strip_formatting(raw[:raw_caret]))
    digits_before = min(digits_before, len(strip_formatting(value)))
    return PhoneEdit(value, _caret_after_digit(value, digits_before))


def _backspace_span(value: str, caret: int) -> int:
    """How many raw characters one backspace removes at *caret*."""
    char_before = value[caret - 1]
    if char_before not in FORMAT_CHARS:
        return 1
    # Punctuation goes together with the digit in front of it.
    if char_before == " ":
        return min(caret, 3)
    return 2 if caret >= 2 else 1


def apply_key(value: str, key: str, caret: int) -> PhoneEdit:
    """Apply one key press to a masked phone field.

    Args:
        value: Current (masked) field text
        key: Key name as delivered by the UI (``"Backspace"``, ``"Delete"``,
             or a single printed character)
        caret: Caret index before the key press

    Returns:
        The new masked text and caret position.
    """
    value = value or ""
    caret = max(0, min(caret, len(value)))

    if key == BACKSPACE:
        if caret == 0:
            return PhoneEdit(value, 0)
        removed = _backspace_span(value, caret)
        start = caret - removed
        return _reformat(value[:start] + value[caret:], start)

    if key == DELETE:
        # Skip punctuation so Delete always takes out the next digit.
        for i in range(caret, len(value)):
            if value[i].isdigit():
                return _reformat(value[:i] + value[i + 1:], caret)
        return PhoneEdit(value, caret)

    if len(key) == 1 and key.isdigit():
        return _reformat(value[:caret] + key + value[caret:], caret + 1)

    # Letters, punctuation and navigation keys never change the value.
    return PhoneEdit(value, caret)


def set_text(text: str | None) -> PhoneEdit:
    """Replace the whole field (paste / programmatic fill); caret goes to the end."""
    value = format_phone(text)
    return PhoneEdit(value, len(value))
