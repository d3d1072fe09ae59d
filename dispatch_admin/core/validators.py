"""
Field validators for the dispatcher, driver and car forms.

``validate(values, rules)`` runs every rule and collects every error; an
empty map means the draft may be submitted.  Rules never short-circuit
each other, so the form can highlight all bad fields at once.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping, Optional

from dispatch_admin.core.domain import WorkerRole
from dispatch_admin.core.phone_mask import MAX_DIGITS, strip_formatting

__all__ = [
    "Rule", "validate",
    "check_name", "check_email", "check_phone", "check_license", "check_year",
    "check_required", "check_vin",
    "DISPATCHER_RULES", "DRIVER_RULES", "CAR_RULES", "rules_for",
    "validate_password_change",
    "is_valid_email", "is_valid_phone", "is_valid_license",
]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_LICENSE_RE = re.compile(r"^[A-Za-z0-9]{6,15}$")
_LICENSE_STRIP_RE = re.compile(r"[\s-]")

MIN_CAR_YEAR = 1990
MAX_VIN_LENGTH = 17


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------

def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(_text(email)))


def is_valid_phone(phone: str) -> bool:
    """Exactly ten digits once formatting is removed."""
    return len(strip_formatting(phone)) == MAX_DIGITS


def is_valid_license(license_no: str) -> bool:
    """6-15 alphanumerics once whitespace and hyphens are removed."""
    return bool(_LICENSE_RE.match(_LICENSE_STRIP_RE.sub("", license_no or "")))


# ---------------------------------------------------------------------------
# Field rules: each returns an error message or None
# ---------------------------------------------------------------------------

Check = Callable[[Any], Optional[str]]


@dataclass(frozen=True)
class Rule:
    field: str
    check: Check


def check_name(value: Any) -> Optional[str]:
    if not _text(value):
        return "Name is required"
    return None


def check_email(value: Any) -> Optional[str]:
    if not _text(value):
        return "Email is required"
    if not is_valid_email(value):
        return "Please enter a valid email address"
    return None


def check_phone(value: Any) -> Optional[str]:
    if not _text(value):
        return "Phone number is required"
    if not is_valid_phone(str(value)):
        return "Please enter a valid 10-digit phone number"
    return None


def check_license(value: Any) -> Optional[str]:
    if not _text(value):
        return "License number is required"
    if not is_valid_license(str(value)):
        return "Please enter a valid license number (6-15 alphanumeric characters)"
    return None


def check_year(value: Any, *, today: date | None = None, min_year: int = MIN_CAR_YEAR) -> Optional[str]:
    max_year = (today or date.today()).year + 1
    message = f"Year must be between {min_year} and {max_year}"
    if isinstance(value, bool):
        return message
    try:
        year = int(_text(value))
    except ValueError:
        return message
    if not min_year <= year <= max_year:
        return message
    return None


def check_required(label: str) -> Check:
    def _check(value: Any) -> Optional[str]:
        if not _text(value):
            return f"{label} is required"
        return None
    return _check


def check_vin(value: Any) -> Optional[str]:
    if len(_text(value)) > MAX_VIN_LENGTH:
        return f"VIN must be at most {MAX_VIN_LENGTH} characters"
    return None


# ---------------------------------------------------------------------------
# Rule sets
# ---------------------------------------------------------------------------

DISPATCHER_RULES: tuple[Rule, ...] = (
    Rule("name", check_name),
    Rule("email", check_email),
    Rule("phoneNumber", check_phone),
)

DRIVER_RULES: tuple[Rule, ...] = DISPATCHER_RULES + (
    Rule("license", check_license),
)

CAR_RULES: tuple[Rule, ...] = (
    Rule("make", check_required("Make")),
    Rule("model", check_required("Model")),
    Rule("year", check_year),
    Rule("vin", check_vin),
)


def rules_for(role: WorkerRole) -> tuple[Rule, ...]:
    return DRIVER_RULES if role is WorkerRole.DRIVER else DISPATCHER_RULES


def validate(values: Mapping[str, Any], rules: tuple[Rule, ...] | list[Rule]) -> dict[str, str]:
    """Run every rule against *values* and collect ``{field: message}``."""
    errors: dict[str, str] = {}
    for rule in rules:
        message = rule.check(values.get(rule.field))
        if message:
            errors[rule.field] = message
    return errors


def validate_password_change(new_password: str, confirm_password: str, *, min_length: int = 6) -> Optional[str]:
    """Single form-level error for the change-password form, or None."""
    if new_password != confirm_password:
        return "New passwords do not match"
    if len(new_password or "") < min_length:
        return f"Password must be at least {min_length} characters"
    return None
