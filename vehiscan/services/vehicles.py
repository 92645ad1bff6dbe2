from datetime import date, datetime, time, timezone
from typing import Any, Mapping

from vehiscan.core.exceptions import ValidationFailed
from vehiscan.core.validation import qr_value_for, sanitize, sanitize_form, validate_form
from vehiscan.services.documents import SqlDocumentStore
from vehiscan.services.registration import registration_month

VEHICLES_COLLECTION = "vehicles"

# kept in the case the owner typed; every other field is stored upper-case
CASE_PRESERVING_FIELDS = {"ownerName"}


def normalize_form(form: Mapping[str, Any]) -> dict[str, Any]:
    cleaned = sanitize_form(form)
    return {
        key: value.upper() if isinstance(value, str) and key not in CASE_PRESERVING_FIELDS else value
        for key, value in cleaned.items()
    }


def register_vehicle(
    documents: SqlDocumentStore, user_id: str, form: Mapping[str, Any]
) -> tuple[str, dict[str, Any]]:
    """
    Sanitize, validate and store a vehicle for ``user_id``.

    Returns the new document id and the stored document. Nothing is written
    when validation fails.
    """
    vehicle = normalize_form(form)

    result = validate_form(vehicle)
    if not result.valid:
        raise ValidationFailed(result.errors)

    renewal = date.fromisoformat(vehicle["lastRenewal"])
    vehicle.update(
        userId=user_id,
        registrationMonth=registration_month(vehicle["licensePlate"]),
        createdAt=datetime.now(timezone.utc).isoformat(),
        lastRenewal=datetime.combine(renewal, time(), tzinfo=timezone.utc).isoformat(),
    )

    vehicle_id = documents.add(VEHICLES_COLLECTION, vehicle)
    return vehicle_id, {**vehicle, "id": vehicle_id, "qrValue": qr_value_for(vehicle_id)}


def normalize_chassis_number(chassis_number: str) -> str:
    return sanitize(chassis_number).strip().upper()


def linked_chassis_numbers(code: str, added_vehicles: list[str]) -> set[str]:
    """Chassis numbers a user sees besides their own registrations."""
    return {normalize_chassis_number(c) for c in [code, *added_vehicles] if c}


def list_vehicles(
    documents: SqlDocumentStore, user_id: str, chassis_numbers: set[str] | None = None
) -> list[dict[str, Any]]:
    chassis_numbers = chassis_numbers or set()
    return [
        v for v in documents.where(VEHICLES_COLLECTION)
        if v.get("userId") == user_id or v.get("chassisNumber") in chassis_numbers
    ]


def find_by_chassis_number(
    documents: SqlDocumentStore, chassis_number: str
) -> dict[str, Any] | None:
    matches = documents.where(
        VEHICLES_COLLECTION, chassisNumber=normalize_chassis_number(chassis_number)
    )
    return matches[0] if matches else None


def get_vehicle(documents: SqlDocumentStore, vehicle_id: str) -> dict[str, Any] | None:
    return documents.get(VEHICLES_COLLECTION, vehicle_id)
