from fastapi import APIRouter, Depends

from vehiscan.context import AppContext
from vehiscan.core.deps import get_context, require_admin
from vehiscan.core.logging import get_security_logger
from vehiscan.db.models import User

router = APIRouter(prefix="/admin", tags=["Admin"])

sec_logger = get_security_logger()


@router.get("/rate-limits/{user_id}/{action}")
def rate_limit_status(
    user_id: str,
    action: str,
    ctx: AppContext = Depends(get_context),
    admin: User = Depends(require_admin),
):
    status = ctx.rate_limiter.status(user_id, action, ctx.settings.SCAN_WINDOW_MS)
    return {
        "attempts": status.attempts,
        "next_reset": status.next_reset.isoformat() if status.next_reset else None,
    }


@router.delete("/rate-limits/{user_id}/{action}")
def reset_rate_limit(
    user_id: str,
    action: str,
    ctx: AppContext = Depends(get_context),
    admin: User = Depends(require_admin),
):
    ctx.rate_limiter.reset(user_id, action)
    sec_logger.info(f"Rate limit reset by admin={admin.id[:8]}... action={action}")
    return {"status": "reset", "user_id": user_id, "action": action}


@router.delete("/rate-limits")
def clear_rate_limits(
    ctx: AppContext = Depends(get_context),
    admin: User = Depends(require_admin),
):
    removed = ctx.rate_limiter.clear_all()
    sec_logger.info(f"All rate limits cleared by admin={admin.id[:8]}...")
    return {"status": "cleared", "removed": removed}
