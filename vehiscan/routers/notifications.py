from fastapi import APIRouter, Depends

from vehiscan.context import AppContext
from vehiscan.core.deps import get_context, get_current_user
from vehiscan.db.models import User
from vehiscan.services.registration import renewal_reminders
from vehiscan.services.vehicles import linked_chassis_numbers, list_vehicles

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("")
def notifications(
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    chassis_numbers = linked_chassis_numbers(current_user.code, current_user.added_vehicles)
    vehicles = list_vehicles(ctx.documents, current_user.id, chassis_numbers)
    return [
        {
            "vehicle_id": r.vehicle_id,
            "license_plate": r.license_plate,
            "due_date": r.due_date.isoformat(),
            "days_left": r.days_left,
            "message": r.message,
        }
        for r in renewal_reminders(vehicles)
    ]
