"""
Input sanitization and vehicle form validation.

Everything here is pure: no storage, no clock other than the current year
used by the model-year check.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Mapping

QR_SCHEME = "vehiscan://vehicle/"

_TAG = re.compile(r"</?[A-Za-z][^<>]*>")
_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)
_SCRIPT = re.compile(r"script", re.IGNORECASE)
_WHITESPACE_RUN = re.compile(r"\s{2,}")

_VEHICLE_ID = re.compile(r"[a-zA-Z0-9]{15,30}", re.ASCII)


def _pattern(expr: str) -> Callable[[str], bool]:
    compiled = re.compile(expr, re.ASCII)
    return lambda value: compiled.fullmatch(value) is not None


_DECIMAL = r"\d{1,6}(\.\d{1,2})?"
_DATE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_YEAR = re.compile(r"\d{4}", re.ASCII)


def _year_model(value: str) -> bool:
    if not _YEAR.fullmatch(value):
        return False
    return 1900 <= int(value) <= date.today().year + 2


def _date(value: str) -> bool:
    if not _DATE.fullmatch(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


FIELD_VALIDATORS: dict[str, Callable[[str], bool]] = {
    "licensePlate": _pattern(r"[A-Z0-9\s-]{1,15}"),
    "ownerName": _pattern(r"[a-zA-Z\s.]{2,100}"),
    "make": _pattern(r"[a-zA-Z0-9\s]{1,50}"),
    "model": _pattern(r"[a-zA-Z0-9\s-]{1,50}"),
    "yearModel": _year_model,
    "bodyType": _pattern(r"[a-zA-Z\s]{1,30}"),
    "chassisNumber": _pattern(r"[A-Z0-9]{8,25}"),
    "engineNumber": _pattern(r"[A-Z0-9]{5,25}"),
    "color": _pattern(r"[a-zA-Z\s]{2,20}"),
    "fuel": _pattern(r"[a-zA-Z\s]{2,20}"),
    "weight": _pattern(_DECIMAL),
    "capacity": _pattern(_DECIMAL),
    "displacement": _pattern(_DECIMAL),
    "series": _pattern(r"[a-zA-Z0-9\s]{1,30}"),
    "date": _date,
    "email": _pattern(r"[^\s@]+@[^\s@]+\.[^\s@]+"),
    "phone": _pattern(r"\+?[\d\s-]{10,15}"),
}

# (record field, validator kind, message, optional); optional fields may be left empty
VEHICLE_FORM_RULES: list[tuple[str, str, str, bool]] = [
    ("ownerName", "ownerName",
     "Owner name must be 2-100 characters with letters, spaces, and periods only", False),
    ("licensePlate", "licensePlate",
     "License plate must be 1-15 characters with letters, numbers, spaces, and hyphens only", False),
    ("make", "make",
     "Make must be 1-50 characters with letters, numbers, and spaces only", False),
    ("model", "model",
     "Model must be 1-50 characters with letters, numbers, spaces, and hyphens only", True),
    ("yearModel", "yearModel",
     "Year must be a valid 4-digit year between 1900 and current year + 2", False),
    ("bodyType", "bodyType",
     "Body type must be 1-30 characters with letters and spaces only", False),
    ("chassisNumber", "chassisNumber",
     "Chassis number must be 8-25 alphanumeric characters", False),
    ("engineNumber", "engineNumber",
     "Engine number must be 5-25 alphanumeric characters", False),
    ("color", "color", "Color must be 2-20 characters with letters and spaces only", False),
    ("fuel", "fuel", "Fuel type must be 2-20 characters with letters and spaces only", False),
    ("grossWt", "weight", "Gross weight must be a valid number", False),
    ("netWt", "weight", "Net weight must be a valid number", False),
    ("netCapacity", "capacity", "Net capacity must be a valid number", False),
    ("pistonDisplacement", "displacement", "Piston displacement must be a valid number", False),
    ("series", "series",
     "Series must be 1-30 characters with letters, numbers, and spaces only", False),
    ("lastRenewal", "date", "Last renewal must be in YYYY-MM-DD format", False),
]


@dataclass(frozen=True)
class FormValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class QRValidation:
    valid: bool
    sanitized_data: str
    vehicle_id: str | None = None
    error: str | None = None


def _sanitize_once(text: str) -> str:
    text = _TAG.sub("", text)
    text = _ANGLE_BRACKETS.sub("", text)
    text = _JS_SCHEME.sub("", text)
    text = _EVENT_HANDLER.sub("", text)
    text = _SCRIPT.sub("", text)
    return _WHITESPACE_RUN.sub(" ", text)


def sanitize(text: str) -> str:
    """
    Strip markup and script vectors from free text.

    Removals can splice new matches together ("scrscriptipt"), so the pass
    repeats until the text stops changing. Every pass that changes the text
    makes it shorter, which bounds the loop.
    """
    if not text:
        return ""

    while True:
        cleaned = _sanitize_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned


def validate_field(kind: str, value: Any) -> bool:
    try:
        validator = FIELD_VALIDATORS[kind]
    except KeyError:
        raise ValueError(f"Unknown field kind: {kind}") from None

    if not isinstance(value, str):
        return False
    return validator(value)


def validate_form(record: Mapping[str, Any]) -> FormValidation:
    errors = []
    for field_name, kind, message, optional in VEHICLE_FORM_RULES:
        value = record.get(field_name)
        if optional and not value:
            continue
        if not validate_field(kind, value):
            errors.append(message)

    return FormValidation(valid=not errors, errors=errors)


def sanitize_form(record: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: sanitize(value) if isinstance(value, str) else value
        for key, value in record.items()
    }


def validate_qr_code(data: Any) -> QRValidation:
    if not data or not isinstance(data, str):
        return QRValidation(valid=False, sanitized_data="", error="Invalid QR code data")

    sanitized = sanitize(data)

    if sanitized.startswith(QR_SCHEME):
        vehicle_id = sanitized[len(QR_SCHEME):]
        if _VEHICLE_ID.fullmatch(vehicle_id):
            return QRValidation(valid=True, sanitized_data=sanitized, vehicle_id=vehicle_id)
        return QRValidation(
            valid=False, sanitized_data=sanitized, error="Invalid vehicle ID format"
        )

    # foreign payloads pass through sanitized and unchecked
    return QRValidation(valid=True, sanitized_data=sanitized, vehicle_id=sanitized or None)


def qr_value_for(vehicle_id: str) -> str:
    return f"{QR_SCHEME}{vehicle_id}"
