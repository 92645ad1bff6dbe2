from dataclasses import dataclass
from typing import Any

from vehiscan.core.exceptions import (
    DocumentNotFound, InvalidQRCode, RateLimitExceeded
)
from vehiscan.core.logging import log_security_event
from vehiscan.core.notices import Notice
from vehiscan.core.rate_limit import RateLimiter
from vehiscan.core.validation import validate_qr_code
from vehiscan.services.audit import record_scan
from vehiscan.services.documents import SqlDocumentStore
from vehiscan.services.registration import registration_status
from vehiscan.services.vehicles import VEHICLES_COLLECTION

SCAN_ACTION = "scan"


@dataclass(frozen=True)
class ScanResult:
    scan_id: str
    vehicle: dict[str, Any]
    registration_status: str
    warning: Notice | None = None


class ScanService:
    def __init__(
        self,
        documents: SqlDocumentStore,
        rate_limiter: RateLimiter,
        max_attempts: int = 10,
        window_ms: int = 60 * 60 * 1000,
    ):
        self.documents = documents
        self.rate_limiter = rate_limiter
        self.max_attempts = max_attempts
        self.window_ms = window_ms

    def scan(self, user_id: str, qr_data: str) -> ScanResult:
        decision = self.rate_limiter.check_and_record(
            user_id, SCAN_ACTION, self.max_attempts, self.window_ms
        )
        if not decision:
            log_security_event("rate_limit_exceeded", user_id=user_id, action=SCAN_ACTION)
            raise RateLimitExceeded(decision.notice, decision.retry_after_ms or 0)

        qr = validate_qr_code(qr_data)
        if not qr.valid:
            log_security_event("invalid_qr_code", user_id=user_id, reason=qr.error)
            raise InvalidQRCode(qr.error)

        log_security_event(
            "scan_attempt", user_id=user_id, qr_data=qr.sanitized_data[:50] + "..."
        )

        vehicle = self.documents.get(VEHICLES_COLLECTION, qr.vehicle_id)
        if vehicle is None:
            log_security_event("vehicle_not_found", user_id=user_id, qr_data=qr.sanitized_data)
            raise DocumentNotFound(VEHICLES_COLLECTION, qr.vehicle_id)

        status = registration_status(vehicle["lastRenewal"]).value
        scan_id = record_scan(
            self.documents,
            user_id=user_id,
            vehicle_id=qr.vehicle_id,
            license_plate=vehicle.get("licensePlate", ""),
            registration_status=status,
        )
        log_security_event(
            "vehicle_found",
            vehicle_id=qr.vehicle_id,
            license_plate=vehicle.get("licensePlate"),
            registration_status=status,
            user_id=user_id,
        )

        warning = self.rate_limiter.approach_warning(
            user_id, SCAN_ACTION, self.max_attempts, self.window_ms
        )
        return ScanResult(
            scan_id=scan_id,
            vehicle={**vehicle, "registrationStatus": status},
            registration_status=status,
            warning=warning,
        )

    def rate_limit_status(self, user_id: str):
        return self.rate_limiter.detailed_status(
            user_id, SCAN_ACTION, self.max_attempts, self.window_ms
        )
