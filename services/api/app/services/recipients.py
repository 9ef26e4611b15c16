"""Recipient list hygiene: field validation and duplicate detection.

Two recipients are the same person at the same address when their names,
first address line, city, state and ZIP match after trimming, case folding
and whitespace collapsing. Company and gift message are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from services.api.app.models.recipient import Recipient

US_STATES = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY", "DC",
    }
)  # fmt: skip

GIFT_MESSAGE_MAX_LENGTH = 200

_ZIP_RE = re.compile(r"^\d{5}(-?\d{4})?$")
_WS_RE = re.compile(r"\s+")


def validate_recipient(recipient: Recipient) -> list[str]:
    errors: list[str] = []

    for field_name, label in (
        ("first_name", "First name"),
        ("last_name", "Last name"),
        ("address1", "Address"),
        ("city", "City"),
    ):
        if not (getattr(recipient, field_name) or "").strip():
            errors.append(f"{field_name}: {label} is required")

    state = (recipient.state or "").strip().upper()
    if len(state) != 2:
        errors.append("state: State must be 2-letter abbreviation")
    elif state not in US_STATES:
        errors.append("state: Invalid US state abbreviation")

    if not _ZIP_RE.match((recipient.zip or "").strip()):
        errors.append("zip: ZIP must be 5 digits or 5+4 format")

    if recipient.gift_message and len(recipient.gift_message) > GIFT_MESSAGE_MAX_LENGTH:
        errors.append(
            f"gift_message: Gift message must be {GIFT_MESSAGE_MAX_LENGTH} characters or less"
        )

    return errors


def with_validation(recipient: Recipient) -> Recipient:
    errors = validate_recipient(recipient)
    return recipient.model_copy(
        update={
            "state": (recipient.state or "").strip().upper(),
            "is_valid": not errors,
            "errors": errors,
        }
    )


def _norm(value: str | None) -> str:
    return _WS_RE.sub(" ", (value or "").strip()).casefold()


def recipient_key(recipient: Recipient) -> str:
    return "|".join(
        _norm(part)
        for part in (
            recipient.first_name,
            recipient.last_name,
            recipient.address1,
            recipient.city,
            recipient.state,
            recipient.zip,
        )
    )


def find_duplicate_groups(recipients: list[Recipient]) -> list[list[Recipient]]:
    """Groups of two or more equal recipients, ordered by first occurrence."""
    groups: dict[str, list[Recipient]] = {}
    for recipient in recipients:
        groups.setdefault(recipient_key(recipient), []).append(recipient)
    return [group for group in groups.values() if len(group) > 1]


def collapse_duplicates(recipients: list[Recipient]) -> list[Recipient]:
    """Keep the first occurrence of each recipient, preserving input order."""
    seen: set[str] = set()
    unique: list[Recipient] = []
    for recipient in recipients:
        key = recipient_key(recipient)
        if key in seen:
            continue
        seen.add(key)
        unique.append(recipient)
    return unique


@dataclass
class MergeResult:
    unique: list[Recipient] = field(default_factory=list)
    duplicates: list[Recipient] = field(default_factory=list)


def diff_against_existing(existing: list[Recipient], incoming: list[Recipient]) -> MergeResult:
    """Split ``incoming`` into rows new to ``existing`` and rows already present.

    Repeats inside ``incoming`` count as duplicates of their first occurrence.
    """

    seen = {recipient_key(r) for r in existing}
    result = MergeResult()
    for recipient in incoming:
        key = recipient_key(recipient)
        if key in seen:
            result.duplicates.append(recipient)
            continue
        seen.add(key)
        result.unique.append(recipient)
    return result
