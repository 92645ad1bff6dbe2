from datetime import datetime, timezone

from fastapi import Request

from vehiscan.core.logging import log_security_event
from vehiscan.services.documents import SqlDocumentStore

SCANS_COLLECTION = "scannedVehicles"


def log_access(
    action: str,
    success: bool,
    user_id: str | None = None,
    vehicle_id: str | None = None,
    reason: str | None = None,
    request: Request | None = None,
):
    ip = None
    if request:
        ip = request.client.host if request.client else None

    log_security_event(
        action,
        success=success,
        user_id=user_id,
        vehicle_id=vehicle_id,
        reason=reason,
        ip=ip,
    )


def record_scan(
    documents: SqlDocumentStore,
    user_id: str,
    vehicle_id: str,
    license_plate: str,
    registration_status: str,
    scan_method: str = "qr_camera",
) -> str:
    """Append one entry to the user's scan history."""
    return documents.add(
        SCANS_COLLECTION,
        {
            "vehicleId": vehicle_id,
            "userId": user_id,
            "scannedAt": datetime.now(timezone.utc).isoformat(),
            "vehiclePlate": license_plate,
            "registrationStatus": registration_status,
            "scanMethod": scan_method,
        },
    )


def scan_history(documents: SqlDocumentStore, user_id: str) -> list[dict]:
    scans = documents.where(SCANS_COLLECTION, userId=user_id)
    return sorted(scans, key=lambda s: s["scannedAt"], reverse=True)


def get_scan(documents: SqlDocumentStore, scan_id: str) -> dict | None:
    return documents.get(SCANS_COLLECTION, scan_id)


def delete_scan(documents: SqlDocumentStore, scan_id: str) -> None:
    documents.delete(SCANS_COLLECTION, scan_id)
