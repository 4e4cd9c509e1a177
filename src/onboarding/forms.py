"""
Onboarding Forms - Intake stage validation.

Each intake stage submits one of these models. Validation runs before any
database write, so a rejected form never leaves partial data behind.
"""

import logging
from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from erdoc.formatting import format_phone, phone_digits

logger = logging.getLogger(__name__)


# =============================================================================
# Valid Options
# =============================================================================

RELATIONSHIPS = [
    "self",
    "spouse",
    "partner",
    "child",
    "parent",
    "sibling",
    "grandparent",
    "grandchild",
    "other",
]

# Relationships a family member can be added or edited with
DEPENDENT_RELATIONSHIPS = [r for r in RELATIONSHIPS if r != "self"]

BASELINE_CONDITIONS = [
    "Hypertension",
    "Diabetes",
    "Asthma",
    "Heart disease",
    "Seizure disorder",
    "Autoimmune condition",
    "Pregnancy (if applicable)",
]

CONDITION_OPTIONS = [
    "Hypertension",
    "Diabetes",
    "Asthma or COPD",
    "Heart disease",
    "Seizure disorder",
    "Bleeding disorder",
    "Immunocompromised",
    "None",
]

ALLERGY_OPTIONS = ["None", "Penicillin", "Sulfa", "NSAIDs", "Opioids", "Other"]

SEX_AT_BIRTH_OPTIONS = ["female", "male", "intersex", "prefer_not_to_say"]

PREGNANCY_STATUSES = ["not_pregnant", "pregnant", "postpartum", "unsure", "not_applicable"]

VITALS_KIT_OPTIONS = [
    {"id": "has_kit", "label": "Yes — I have a working kit"},
    {"id": "need_kit", "label": "No — I need a kit shipped"},
    {"id": "unsure", "label": "I'm not sure"},
]

# Form selection -> memberships.vitals_kit_status
VITALS_KIT_STATUS = {
    "has_kit": "has_kit",
    "need_kit": "kit_requested",
    "unsure": "unsure",
}

MAX_EMERGENCY_CONTACTS = 2


# Stable question keys for intake_responses rows
INTAKE_KEYS = {
    "demographics": {
        "confirmed": "demographics.confirmed",
        "pcp": "demographics.primary_care_provider",
    },
    "conditions": {
        "list": "conditions.list",
        "none": "conditions.none",
    },
    "medications": {
        "list": "medications.list",
    },
    "allergies": {
        "list": "allergies.list",
        "none": "allergies.none",
    },
    "surgical_history": {
        "list": "surgical_history.list",
    },
    "consent": {
        "accuracy": "consent.accuracy_attestation",
    },
    "meta": {
        "version": "meta.intake_version",
    },
}

INTAKE_VERSION = 1


# =============================================================================
# Shared Validators
# =============================================================================

def normalize_phone(value: str) -> str:
    """Require a 10-digit US phone number and store it formatted."""
    digits = phone_digits(value)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        raise ValueError("Phone number must have 10 digits")
    return format_phone(digits)


def validate_birth_date(value: date) -> date:
    if value > date.today():
        raise ValueError("Date of birth cannot be in the future")
    if value.year < 1900:
        raise ValueError("Date of birth is too far in the past")
    return value


def _strip_required(value: str, label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError(f"{label} is required")
    return value


def _exclusive_none(values: list[str], label: str) -> list[str]:
    """'None' cannot be combined with other selections."""
    if "None" in values and len(values) > 1:
        raise ValueError(f"{label}: 'None' cannot be combined with other selections")
    return values


# =============================================================================
# Stage 1: Baseline
# =============================================================================

class BaselineForm(BaseModel):
    """Baseline medical intake for the primary member."""

    first_name: str
    last_name: str
    middle_name: str | None = None
    preferred_name: str | None = None
    date_of_birth: date

    conditions: list[str] = Field(default_factory=list)
    no_known_conditions: bool = False
    medications: str = ""
    allergies: str = ""
    no_known_allergies: bool = False
    primary_care_provider: str | None = None

    accuracy_consent: bool = Field(
        description="Member confirms the information is accurate and consents to its use"
    )

    @field_validator("first_name")
    @classmethod
    def validate_first_name(cls, v: str) -> str:
        return _strip_required(v, "First name")

    @field_validator("last_name")
    @classmethod
    def validate_last_name(cls, v: str) -> str:
        return _strip_required(v, "Last name")

    @field_validator("middle_name", "preferred_name", "primary_care_provider")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("date_of_birth")
    @classmethod
    def validate_dob(cls, v: date) -> date:
        return validate_birth_date(v)

    @field_validator("conditions")
    @classmethod
    def validate_conditions(cls, v: list[str]) -> list[str]:
        invalid = [c for c in v if c not in BASELINE_CONDITIONS]
        if invalid:
            raise ValueError(f"Unknown conditions: {', '.join(invalid)}")
        return v

    @model_validator(mode="after")
    def check_consistency(self) -> "BaselineForm":
        if self.no_known_conditions and self.conditions:
            raise ValueError("Select conditions or 'No known medical conditions', not both")
        if self.no_known_allergies and self.allergies.strip():
            raise ValueError("List allergies or check 'No known medication allergies', not both")
        if not self.accuracy_consent:
            raise ValueError("You must confirm the information is accurate")
        return self

    def person_updates(self) -> dict:
        """Columns written to the self row in people."""
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "middle_name": self.middle_name,
            "preferred_name": self.preferred_name,
            "date_of_birth": self.date_of_birth.isoformat(),
            "intake_complete": True,
        }

    def to_intake_responses(self, person_id: str, membership_id: str) -> list[dict]:
        """Answers keyed by stable question keys."""
        answers = {
            INTAKE_KEYS["demographics"]["confirmed"]: True,
            INTAKE_KEYS["demographics"]["pcp"]: self.primary_care_provider,
            INTAKE_KEYS["conditions"]["list"]: self.conditions,
            INTAKE_KEYS["conditions"]["none"]: self.no_known_conditions,
            INTAKE_KEYS["medications"]["list"]: self.medications.strip() or None,
            INTAKE_KEYS["allergies"]["list"]: self.allergies.strip() or None,
            INTAKE_KEYS["allergies"]["none"]: self.no_known_allergies,
            INTAKE_KEYS["consent"]["accuracy"]: self.accuracy_consent,
            INTAKE_KEYS["meta"]["version"]: INTAKE_VERSION,
        }
        return [
            {
                "person_id": person_id,
                "membership_id": membership_id,
                "question_key": key,
                "value": value,
            }
            for key, value in answers.items()
        ]


# =============================================================================
# Stage 2: Emergency Contacts
# =============================================================================

class EmergencyContact(BaseModel):
    name: str
    relationship: str
    phone: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _strip_required(v, "Contact name")

    @field_validator("relationship")
    @classmethod
    def validate_relationship(cls, v: str) -> str:
        return _strip_required(v, "Contact relationship")

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v)


class EmergencyContactsForm(BaseModel):
    """A required primary contact and an optional second one."""

    contacts: list[EmergencyContact] = Field(min_length=1, max_length=MAX_EMERGENCY_CONTACTS)

    @model_validator(mode="before")
    @classmethod
    def drop_blank_optional_contacts(cls, data):
        # The second contact row is optional; an untouched row arrives blank
        if isinstance(data, dict) and isinstance(data.get("contacts"), list):
            contacts = data["contacts"]
            kept = contacts[:1] + [
                c for c in contacts[1:]
                if not isinstance(c, dict) or any(str(c.get(k) or "").strip() for k in ("name", "relationship", "phone"))
            ]
            data = {**data, "contacts": kept}
        return data

    def to_rows(self, membership_id: str, person_id: str) -> list[dict]:
        # Identical contacts in one submission would conflict in a single upsert
        seen = set()
        rows = []
        for c in self.contacts:
            key = (c.name, c.relationship, c.phone)
            if key in seen:
                continue
            seen.add(key)
            rows.append({
                "membership_id": membership_id,
                "person_id": person_id,
                "name": c.name,
                "relationship": c.relationship,
                "phone": c.phone,
            })
        return rows


# =============================================================================
# Stage 3: Medical History
# =============================================================================

class MedicalHistoryForm(BaseModel):
    sex_at_birth: Literal["female", "male", "intersex", "prefer_not_to_say"]
    conditions: list[str] = Field(default_factory=list)
    other_condition: str | None = None
    medications: str | None = None
    allergies: list[str] = Field(default_factory=list)
    pregnancy_status: str | None = None
    acknowledged: bool

    @field_validator("conditions")
    @classmethod
    def validate_conditions(cls, v: list[str]) -> list[str]:
        invalid = [c for c in v if c not in CONDITION_OPTIONS]
        if invalid:
            raise ValueError(f"Unknown conditions: {', '.join(invalid)}")
        return _exclusive_none(v, "Conditions")

    @field_validator("allergies")
    @classmethod
    def validate_allergies(cls, v: list[str]) -> list[str]:
        invalid = [a for a in v if a not in ALLERGY_OPTIONS]
        if invalid:
            raise ValueError(f"Unknown allergies: {', '.join(invalid)}")
        return _exclusive_none(v, "Allergies")

    @field_validator("pregnancy_status")
    @classmethod
    def validate_pregnancy_status(cls, v: str | None) -> str | None:
        if v and v not in PREGNANCY_STATUSES:
            raise ValueError(f"Invalid pregnancy status: {v}")
        return v or None

    @field_validator("acknowledged")
    @classmethod
    def must_acknowledge(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must acknowledge the emergency care disclaimer")
        return v

    def to_row(self, membership_id: str) -> dict:
        return {
            "membership_id": membership_id,
            "conditions": self.conditions,
            "other_condition": (self.other_condition or "").strip() or None,
            "medications": (self.medications or "").strip() or None,
            "allergies": self.allergies,
            "pregnancy_status": self.pregnancy_status,
            "acknowledged": self.acknowledged,
        }


# =============================================================================
# Stage 4: Vitals Kit
# =============================================================================

class VitalsKitForm(BaseModel):
    selection: Literal["has_kit", "need_kit", "unsure"]

    @property
    def vitals_kit_status(self) -> str:
        return VITALS_KIT_STATUS[self.selection]


# =============================================================================
# Family Member Intake
# =============================================================================

class DependentIntakeForm(BaseModel):
    """Medical intake for a covered family member (not part of the step sequence)."""

    conditions: list[str] = Field(default_factory=list)
    allergies: list[str] = Field(default_factory=list)
    medications: str = ""
    surgical_history: str = ""
    acknowledged: bool

    @field_validator("conditions")
    @classmethod
    def validate_conditions(cls, v: list[str]) -> list[str]:
        invalid = [c for c in v if c not in CONDITION_OPTIONS]
        if invalid:
            raise ValueError(f"Unknown conditions: {', '.join(invalid)}")
        return _exclusive_none(v, "Conditions")

    @field_validator("allergies")
    @classmethod
    def validate_allergies(cls, v: list[str]) -> list[str]:
        invalid = [a for a in v if a not in ALLERGY_OPTIONS]
        if invalid:
            raise ValueError(f"Unknown allergies: {', '.join(invalid)}")
        return _exclusive_none(v, "Allergies")

    @field_validator("acknowledged")
    @classmethod
    def must_acknowledge(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must acknowledge the emergency care disclaimer")
        return v

    def to_intake_responses(self, person_id: str, membership_id: str) -> list[dict]:
        answers = {
            INTAKE_KEYS["conditions"]["list"]: self.conditions,
            INTAKE_KEYS["allergies"]["list"]: self.allergies,
            INTAKE_KEYS["medications"]["list"]: self.medications.strip() or None,
            INTAKE_KEYS["surgical_history"]["list"]: self.surgical_history.strip() or None,
            INTAKE_KEYS["meta"]["version"]: INTAKE_VERSION,
        }
        return [
            {
                "person_id": person_id,
                "membership_id": membership_id,
                "question_key": key,
                "value": value,
            }
            for key, value in answers.items()
        ]


def get_form_options() -> dict:
    """Option lists for rendering the intake forms."""
    return {
        "relationships": DEPENDENT_RELATIONSHIPS,
        "baseline_conditions": BASELINE_CONDITIONS,
        "conditions": CONDITION_OPTIONS,
        "allergies": ALLERGY_OPTIONS,
        "sex_at_birth": SEX_AT_BIRTH_OPTIONS,
        "pregnancy_statuses": PREGNANCY_STATUSES,
        "vitals_kit": VITALS_KIT_OPTIONS,
        "max_emergency_contacts": MAX_EMERGENCY_CONTACTS,
    }
