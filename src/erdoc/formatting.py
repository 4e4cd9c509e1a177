"""Display helpers for the membership summary."""

import re

VITALS_KIT_LABELS = {
    "has_kit": "You have a vitals kit",
    "kit_requested": "Kit requested",
    "kit_shipped": "Kit shipped",
    "unsure": "Not sure yet",
}


def phone_digits(phone: str | None) -> str:
    """Strip everything that is not a digit."""
    return re.sub(r"\D", "", phone or "")


def format_phone(phone: str | None) -> str:
    """Format a 10-digit US number as (555) 123-4567; other input is returned as given."""
    if not phone:
        return "—"

    digits = phone_digits(phone)
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"
    return phone


def format_dob(date_of_birth: str | None) -> str:
    """YYYY-MM-DD -> MM/DD/YYYY."""
    if not date_of_birth:
        return ""
    parts = date_of_birth.split("-")
    if len(parts) != 3 or not all(parts):
        return date_of_birth
    year, month, day = parts
    return f"{month.zfill(2)}/{day.zfill(2)}/{year}"


def vitals_kit_label(status: str | None) -> str:
    if not status:
        return "Not specified"
    return VITALS_KIT_LABELS.get(status, status)
