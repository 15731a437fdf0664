from pydantic import BaseModel, Field, ValidationInfo, field_validator
from email_validator import validate_email, EmailNotValidError
from typing import Optional, List, Union
from uuid import UUID
from datetime import date, datetime
import re

from warranty.models.submission import Submission, SubmissionStatus


STATUS_LABELS = {
    SubmissionStatus.OPEN: "Offen",
    SubmissionStatus.IN_PROGRESS: "In Bearbeitung",
    SubmissionStatus.DONE: "Erledigt",
    SubmissionStatus.REJECTED: "Mangel abgelehnt",
}

_ENGLISH_LABELS = {
    "open": SubmissionStatus.OPEN,
    "in progress": SubmissionStatus.IN_PROGRESS,
    "done": SubmissionStatus.DONE,
    "rejected": SubmissionStatus.REJECTED,
}

_STATUS_LOOKUP = dict(_ENGLISH_LABELS)
for _status, _label in STATUS_LABELS.items():
    _STATUS_LOOKUP[_label.lower()] = _status
    _STATUS_LOOKUP[_status.value.lower()] = _status

ALL_STATUS_FILTERS = {"alle", "all"}


def parse_status(value: Union[str, SubmissionStatus, None]) -> SubmissionStatus:
    """Map a display label ("Offen", "In Progress", ...) or enum value to SubmissionStatus"""
    if isinstance(value, SubmissionStatus):
        return value
    if not isinstance(value, str) or value.strip().lower() not in _STATUS_LOOKUP:
        raise ValueError("Ungültiger Status")
    return _STATUS_LOOKUP[value.strip().lower()]


REQUIRED_MESSAGES = {
    "first_name": "Vorname ist erforderlich",
    "last_name": "Nachname ist erforderlich",
    "street": "Straße und Hausnummer sind erforderlich",
    "postal_code": "PLZ ist erforderlich",
    "city": "Ort ist erforderlich",
    "tc_number": "Bauvorhaben-Nummer ist erforderlich",
    "email": "E-Mail-Adresse ist erforderlich",
    "phone": "Telefonnummer ist erforderlich",
    "description": "Beschreibung ist erforderlich",
}

POSTAL_CODE_PATTERN = re.compile(r"^\d{5}$")
MIN_DESCRIPTION_LENGTH = 20


def _require_text(field_name: str, value) -> str:
    if value is None:
        raise ValueError(REQUIRED_MESSAGES[field_name])
    value = str(value).strip()
    if not value:
        raise ValueError(REQUIRED_MESSAGES[field_name])
    return value


def _check_postal_code(value: str) -> str:
    if not POSTAL_CODE_PATTERN.match(value):
        raise ValueError("PLZ muss 5 Ziffern haben")
    return value


def _check_email(value: str) -> str:
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise ValueError("Ungültige E-Mail-Adresse")
    return value


def _check_description(value: str) -> str:
    if len(value) < MIN_DESCRIPTION_LENGTH:
        raise ValueError(f"Beschreibung muss mindestens {MIN_DESCRIPTION_LENGTH} Zeichen haben")
    return value


def _empty_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============= REQUEST SCHEMAS =============

class SubmissionCreate(BaseModel):
    """Schema for a new submission from the public intake form"""
    first_name: str
    last_name: str
    street: str
    postal_code: str
    city: str
    tc_number: str
    email: str
    phone: str
    description: str
    consent_accepted: bool = Field(default=False, validate_default=True)
    house_type: Optional[str] = Field(None, max_length=100)

    @field_validator(*REQUIRED_MESSAGES.keys(), mode="before")
    @classmethod
    def require_text(cls, v, info: ValidationInfo):
        return _require_text(info.field_name, v)

    @field_validator("postal_code")
    @classmethod
    def validate_postal_code(cls, v):
        return _check_postal_code(v)

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        return _check_email(v)

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _check_description(v)

    @field_validator("consent_accepted")
    @classmethod
    def require_consent(cls, v):
        if not v:
            raise ValueError("Sie müssen die Datenschutzerklärung akzeptieren")
        return v

    @field_validator("house_type", mode="before")
    @classmethod
    def convert_empty_strings_to_none(cls, v):
        return _empty_to_none(v)


class SubmissionUpdate(BaseModel):
    """
    Partial update of a submission (admin inline edit).

    Classification fields accept either the master-data id (``gewerk_id``)
    or the display name (``gewerk``). Only fields present in the request
    body are applied.
    """
    status: Optional[SubmissionStatus] = None
    first_deadline: Optional[date] = None
    second_deadline: Optional[date] = None
    completed_at: Optional[datetime] = None
    acceptance: Optional[str] = Field(None, max_length=100)
    house_type: Optional[str] = Field(None, max_length=100)

    bauleitung: Optional[str] = None
    bauleitung_id: Optional[UUID] = None
    verantwortlicher: Optional[str] = None
    verantwortlicher_id: Optional[UUID] = None
    gewerk: Optional[str] = None
    gewerk_id: Optional[UUID] = None
    firma: Optional[str] = None
    firma_id: Optional[UUID] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    street: Optional[str] = None
    postal_code: Optional[str] = None
    city: Optional[str] = None
    tc_number: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    description: Optional[str] = None

    class Config:
        extra = "forbid"

    @field_validator("status", mode="before")
    @classmethod
    def map_status_label(cls, v):
        return parse_status(v)

    @field_validator(
        "first_deadline", "second_deadline", "completed_at", "acceptance", "house_type",
        "bauleitung", "verantwortlicher", "gewerk", "firma",
        "bauleitung_id", "verantwortlicher_id", "gewerk_id", "firma_id",
        mode="before",
    )
    @classmethod
    def convert_empty_strings_to_none(cls, v):
        return _empty_to_none(v)

    @field_validator(*REQUIRED_MESSAGES.keys(), mode="before")
    @classmethod
    def require_text(cls, v, info: ValidationInfo):
        return _require_text(info.field_name, v)

    @field_validator("postal_code")
    @classmethod
    def validate_postal_code(cls, v):
        return _check_postal_code(v) if v is not None else v

    @field_validator("email")
    @classmethod
    def validate_email_address(cls, v):
        return _check_email(v) if v is not None else v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v):
        return _check_description(v) if v is not None else v


class BulkChanges(BaseModel):
    """Changes applicable to many submissions at once"""
    status: Optional[str] = None
    first_deadline: Optional[date] = None
    second_deadline: Optional[date] = None

    class Config:
        extra = "forbid"

    @field_validator("first_deadline", "second_deadline", mode="before")
    @classmethod
    def convert_empty_strings_to_none(cls, v):
        return _empty_to_none(v)


class SubmissionBulkUpdate(BaseModel):
    ids: List[UUID] = Field(..., min_length=1)
    changes: BulkChanges


# ============= RESPONSE SCHEMAS =============

class SubmissionFileOut(BaseModel):
    """Attached file metadata"""
    id: UUID
    name: str
    content_type: str
    size: int
    url: str
    uploaded_at: datetime

    class Config:
        from_attributes = True


class SubmissionPublicOut(BaseModel):
    """Submission detail shown to the customer (tracking link, customer dashboard)"""
    id: UUID
    tc_number: str
    first_name: str
    last_name: str
    street: str
    postal_code: str
    city: str
    email: str
    phone: str
    description: str
    house_type: Optional[str] = None
    status: str
    status_code: SubmissionStatus
    first_deadline: Optional[date] = None
    second_deadline: Optional[date] = None
    completed_at: Optional[datetime] = None
    acceptance: Optional[str] = None
    bauleitung: Optional[str] = None
    verantwortlicher: Optional[str] = None
    gewerk: Optional[str] = None
    firma: Optional[str] = None
    created_at: datetime
    files: List[SubmissionFileOut] = []

    @classmethod
    def from_submission(cls, submission: Submission, **extra):
        return cls(
            id=submission.id,
            tc_number=submission.tc_number,
            first_name=submission.first_name,
            last_name=submission.last_name,
            street=submission.street,
            postal_code=submission.postal_code,
            city=submission.city,
            email=submission.email,
            phone=submission.phone,
            description=submission.description,
            house_type=submission.house_type,
            status=STATUS_LABELS[submission.status],
            status_code=submission.status,
            first_deadline=submission.first_deadline,
            second_deadline=submission.second_deadline,
            completed_at=submission.completed_at,
            acceptance=submission.acceptance,
            bauleitung=submission.bauleitung.name if submission.bauleitung else None,
            verantwortlicher=submission.verantwortlicher.name if submission.verantwortlicher else None,
            gewerk=submission.gewerk.name if submission.gewerk else None,
            firma=submission.firma.name if submission.firma else None,
            created_at=submission.created_at,
            files=[SubmissionFileOut.model_validate(f) for f in submission.files],
            **extra,
        )


class SubmissionOut(SubmissionPublicOut):
    """Submission as shown in the admin list, classification ids included"""
    consent_accepted: bool
    bauleitung_id: Optional[UUID] = None
    verantwortlicher_id: Optional[UUID] = None
    gewerk_id: Optional[UUID] = None
    firma_id: Optional[UUID] = None
    tracking_token: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_submission(cls, submission: Submission, **extra):
        return super().from_submission(
            submission,
            consent_accepted=submission.consent_accepted,
            bauleitung_id=submission.bauleitung_id,
            verantwortlicher_id=submission.verantwortlicher_id,
            gewerk_id=submission.gewerk_id,
            firma_id=submission.firma_id,
            tracking_token=submission.tracking_token,
            updated_at=submission.updated_at,
            **extra,
        )


class SubmissionListOut(BaseModel):
    submissions: List[SubmissionOut]
    total: int


class SubmissionCreatedOut(BaseModel):
    success: bool = True
    submission: SubmissionPublicOut


class SubmissionUpdatedOut(BaseModel):
    success: bool = True
    submission: SubmissionOut


class BulkUpdateOut(BaseModel):
    success: bool = True
    updated: int
    not_found: List[UUID] = []


class TrackingPendingOut(BaseModel):
    """Tracking link resolved but not yet verified: only non-sensitive data"""
    verified: bool = False
    requires_verification: bool = True
    tc_number: str


class TrackingVerifiedOut(BaseModel):
    verified: bool = True
    submission: SubmissionPublicOut


class NameCount(BaseModel):
    name: str
    count: int


class FirmaCount(NameCount):
    gewerk: str


class StatusCount(BaseModel):
    status: SubmissionStatus
    label: str
    count: int


class SubmissionStatsOut(BaseModel):
    """Counts feeding the dashboard charts"""
    total: int
    by_gewerk: List[NameCount]
    by_bauleitung: List[NameCount]
    by_firma: List[FirmaCount]
    by_status: List[StatusCount]
