"""
Driver Trip Execution API Endpoints.

Drivers complete inspections, move their trips through the lifecycle,
report their position and file operational reports.
"""

from fastapi import APIRouter, Body, Depends, Path, status

from fleetops.app.core.dependencies import get_geofence_monitor, get_operational_reports, get_trip_lifecycle
from fleetops.app.core.guards import require_role
from fleetops.app.models.enums import UserRole
from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.trip import TripRecord
from fleetops.app.schemas.trip_execution import (
    InspectionPhase, InspectionRecord, LocationRecord, LocationRecordResponse,
    OperationalReport, ReportKind, ReportResponse, StatusChange,
)
from fleetops.app.services.geofence import GeofenceMonitor
from fleetops.app.services.operational_reports import OperationalReports
from fleetops.app.services.trip_lifecycle import TripLifecycle

router = APIRouter(prefix="/driver", tags=["Driver - Trip Execution"])

driver_only = require_role([UserRole.DRIVER])


@router.post("/trips/{trip_id}/inspections", response_model=TripRecord)
async def record_inspection(
    inspection: InspectionRecord,
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(driver_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """
    Record a pre- or post-trip inspection (Driver only).

    Issues found are forwarded to the fleet manager; the inspection still
    counts as completed.
    """
    return await lifecycle.record_inspection(
        trip_id,
        pre_trip=inspection.phase == InspectionPhase.PRE_TRIP,
        issues=inspection.issues,
        actor=actor,
    )


@router.post("/trips/{trip_id}/status", response_model=TripRecord)
async def change_status(
    change: StatusChange,
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(driver_only),
    lifecycle: TripLifecycle = Depends(get_trip_lifecycle),
):
    """
    Move a trip to its next status (Driver only).

    Validates:
    - Driver is on the trip
    - The move is one step forward and its inspection gate is closed
    - No other trip of the driver is in progress
    """
    return await lifecycle.transition(trip_id, change.status, actor)


@router.post("/trips/{trip_id}/location", response_model=LocationRecordResponse)
async def record_location(
    location: LocationRecord = Body(...),
    trip_id: str = Path(..., description="Trip ID"),
    actor: Actor = Depends(driver_only),
    monitor: GeofenceMonitor = Depends(get_geofence_monitor),
):
    """
    Record GPS location for a trip in progress (Driver only).

    Entering or leaving the pickup/drop-off zone notifies the fleet manager.
    """
    return await monitor.record_location(
        trip_id, location.latitude, location.longitude, actor=actor, broadcast=location.broadcast
    )


@router.post("/trips/{trip_id}/reports/{kind}", response_model=ReportResponse, status_code=status.HTTP_201_CREATED)
async def file_report(
    report: OperationalReport,
    trip_id: str = Path(..., description="Trip ID"),
    kind: ReportKind = Path(..., description="Report kind"),
    actor: Actor = Depends(driver_only),
    reports: OperationalReports = Depends(get_operational_reports),
):
    """File a vehicle issue, delay, fuel bill, emergency, maintenance or issue report."""
    return await reports.submit(trip_id, kind, report, actor)
