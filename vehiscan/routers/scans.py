from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from vehiscan.context import AppContext
from vehiscan.core.deps import get_context, get_current_user
from vehiscan.core.rate_limit import usage_status
from vehiscan.db.models import User
from vehiscan.services.audit import delete_scan, get_scan, log_access, scan_history

router = APIRouter(prefix="/scans", tags=["Scans"])


class ScanRequest(BaseModel):
    data: str


@router.post("")
def scan(
    body: ScanRequest,
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    result = ctx.scans.scan(current_user.id, body.data)
    return {
        "scan_id": result.scan_id,
        "registration_status": result.registration_status,
        "vehicle": result.vehicle,
        "warning": result.warning.as_dict() if result.warning else None,
    }


@router.get("/history")
def history(
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    return scan_history(ctx.documents, current_user.id)


@router.delete("/history/{scan_id}")
def delete_history_entry(
    request: Request,
    scan_id: str,
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    entry = get_scan(ctx.documents, scan_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Scan not found")

    if entry["userId"] != current_user.id:
        log_access("scan_delete", False, current_user.id, entry["vehicleId"], "forbidden", request)
        raise HTTPException(status_code=403, detail="Access denied")

    delete_scan(ctx.documents, scan_id)
    log_access("scan_delete", True, current_user.id, entry["vehicleId"], None, request)
    return {"status": "deleted", "id": scan_id}


@router.get("/rate-limit")
def rate_limit(
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    status = ctx.scans.rate_limit_status(current_user.id)
    usage = usage_status(status.attempts, status.max_attempts)
    return {
        "attempts": status.attempts,
        "max_attempts": status.max_attempts,
        "next_reset": status.next_reset.isoformat() if status.next_reset else None,
        "minutes_until_reset": status.minutes_until_reset,
        "is_at_limit": status.is_at_limit,
        "warning_level": status.warning_level.value,
        "usage": {"status": usage.status, "message": usage.message, "color": usage.color},
    }
