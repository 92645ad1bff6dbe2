from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from vehiscan.context import AppContext
from vehiscan.core.deps import get_context, get_current_user
from vehiscan.db.models import User
from vehiscan.services.audit import log_access
from vehiscan.services.registration import registration_status
from vehiscan.services.vehicles import (
    find_by_chassis_number,
    get_vehicle,
    linked_chassis_numbers,
    list_vehicles,
    register_vehicle,
)

router = APIRouter(prefix="/vehicles", tags=["Vehicles"])


class VehicleForm(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    license_plate: str
    owner_name: str
    make: str
    model: str = ""
    year_model: str
    body_type: str
    chassis_number: str
    engine_number: str
    color: str
    fuel: str
    gross_wt: str
    net_wt: str
    net_capacity: str
    piston_displacement: str
    series: str
    last_renewal: str


class LinkVehicleRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    chassis_number: str


def with_status(vehicle: dict) -> dict:
    return {**vehicle, "registrationStatus": registration_status(vehicle["lastRenewal"]).value}


@router.post("", status_code=201)
def add_vehicle(
    request: Request,
    form: VehicleForm,
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    vehicle_id, vehicle = register_vehicle(
        ctx.documents, current_user.id, form.model_dump(by_alias=True)
    )
    log_access("vehicle_registered", True, user_id=current_user.id, vehicle_id=vehicle_id, request=request)
    return vehicle


@router.get("")
def my_vehicles(
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    chassis_numbers = linked_chassis_numbers(current_user.code, current_user.added_vehicles)
    return [
        with_status(v)
        for v in list_vehicles(ctx.documents, current_user.id, chassis_numbers)
    ]


@router.post("/link")
def link_vehicle(
    request: Request,
    body: LinkVehicleRequest,
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    vehicle = find_by_chassis_number(ctx.documents, body.chassis_number)
    if not vehicle:
        log_access("vehicle_link", False, current_user.id, None, "not_found", request)
        raise HTTPException(
            status_code=404, detail="Vehicle not found. Please check the chassis number."
        )

    ctx.auth.link_vehicle(current_user.id, vehicle["chassisNumber"])
    log_access("vehicle_link", True, current_user.id, vehicle["id"], None, request)
    return with_status(vehicle)


@router.get("/{vehicle_id}")
def vehicle_detail(
    request: Request,
    vehicle_id: str,
    ctx: AppContext = Depends(get_context),
    current_user: User = Depends(get_current_user),
):
    vehicle = get_vehicle(ctx.documents, vehicle_id)
    if not vehicle:
        log_access("view", False, current_user.id, vehicle_id, "not_found", request)
        raise HTTPException(status_code=404, detail="Vehicle not found")

    # owners, linked users and admins only; everyone else goes through the scan flow
    linked = vehicle.get("chassisNumber") in linked_chassis_numbers(
        current_user.code, current_user.added_vehicles
    )
    if vehicle["userId"] != current_user.id and not linked and not current_user.is_admin:
        log_access("view", False, current_user.id, vehicle_id, "forbidden", request)
        raise HTTPException(status_code=403, detail="Access denied")

    log_access("view", True, current_user.id, vehicle_id, None, request)
    return with_status(vehicle)
