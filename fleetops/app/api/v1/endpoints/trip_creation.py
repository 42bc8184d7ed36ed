"""
Fleet Manager Trip API Endpoints.

Fleet managers create, list, edit, assign and soft-delete trips, and pull
the proof-of-delivery receipt for completed ones.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Path, Query, Response, status

from fleetops.app.core.dependencies import get_trip_lifecycle
from fleetops.app.core.guards import require_role
from fleetops.app.models.enums import UserRole
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.trip import TripCreate, TripListResponse, TripPatch, TripRecord
from fleetops.app.schemas.trip_execution import DeliveryReceipt, TripAssignment
from fleetops.app.services.delivery_receipt import build_receipt
from fleetops.app.services.trip_lifecycle import TripLifecycle

router = APIRouter(prefix="/fleet-manager", tags=["Fleet Manager - Trips"])

fleet_manager_only = require_role([UserRole.FLEET_MANAGER])


@router.post("/trips", response_model=TripRecord, status_code=status.HTTP_201_CREATED)
async def create_trip(
    payload: TripCreate,
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """
    Create a trip (Fleet Manager only).

    The trip starts pending with both inspections outstanding; the caller
    becomes its fleet manager.
    """
    return await lifecycle.create(payload, actor)


@router.get("/trips", response_model=TripListResponse)
async def list_trips(
    driver_id: Optional[str] = Query(None, description="Only trips this driver is on"),
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """List live trips with the current / upcoming / completed board."""
    trips, board = await lifecycle.board(for_driver=driver_id)
    return TripListResponse(trips=trips, board=board, total=len(trips))


@router.get("/trips/{trip_id}", response_model=TripRecord)
async def get_trip(
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await lifecycle.get(trip_id)


@router.patch("/trips/{trip_id}", response_model=TripRecord)
async def update_trip(
    patch: TripPatch,
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """
    Partially update a trip.

    Only fields present in the body change. A status change must follow
    the lifecycle (409 otherwise).
    """
    return await lifecycle.update_trip(trip_id, patch, actor)


@router.post("/trips/{trip_id}/assign", response_model=TripRecord)
async def assign_trip(
    assignment: TripAssignment,
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """Assign driver(s) and a vehicle; a pending trip becomes assigned."""
    return await lifecycle.assign(
        trip_id,
        driver_id=assignment.driver_id,
        vehicle_id=assignment.vehicle_id,
        secondary_driver_id=assignment.secondary_driver_id,
        actor=actor,
    )


@router.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """Soft-delete a trip. Its notifications are kept."""
    await lifecycle.delete(trip_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/trips/{trip_id}/receipt", response_model=DeliveryReceipt)
async def get_delivery_receipt(
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(fleet_manager_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    trip = await lifecycle.get(trip_id)
    return build_receipt(trip)
