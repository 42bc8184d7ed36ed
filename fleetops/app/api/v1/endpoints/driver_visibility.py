"""
Driver Visibility API Endpoints.

Drivers see the trips they are primary or secondary driver on.
"""

from fastapi import APIRouter, Depends

from fleetops.app.core.dependencies import get_trip_lifecycle
from fleetops.app.core.guards import require_role
from fleetops.app.models.enums import UserRole
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.trip import TripListResponse
from fleetops.app.services.trip_lifecycle import TripLifecycle

router = APIRouter(prefix="/driver", tags=["Driver - Trips"])


@router.get("/trips", response_model=TripListResponse)
async def list_driver_trips(
    actor: Actor = Depends(require_role([UserRole.DRIVER])),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """
    List all trips the driver is on.

    Returns the current trip (if any), upcoming trips and completed trips.
    """
    trips, board = await lifecycle.board(for_driver=actor.user_id)
    return TripListResponse(trips=trips, board=board, total=len(trips))
