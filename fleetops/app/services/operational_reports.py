"""
Operational reports filed by drivers against a trip.
"""

import logging
from typing import Optional

from fleetops.app.schemas.auth import Actor
from fleetops.app.schemas.trip_execution import (
    REPORT_NOTIFICATION_TYPES, OperationalReport, ReportKind, ReportResponse,
)
from fleetops.app.services.notification_service import NotificationDispatcher
from fleetops.app.services.trip_lifecycle import TripLifecycle

logger = logging.getLogger("fleetops.reports")


class OperationalReports:

    def __init__(self, lifecycle: TripLifecycle, dispatcher: NotificationDispatcher):
        self.lifecycle = lifecycle
        self.dispatcher = dispatcher

    async def submit(
        self,
        trip_id: str,
        kind: ReportKind,
        report: OperationalReport,
        actor: Optional[Actor] = None,
    ) -> ReportResponse:
        """Notify the trip's fleet manager of a report. One notification per call."""
        trip = await self.lifecycle.get(trip_id, actor)
        notification_type = REPORT_NOTIFICATION_TYPES[ReportKind(kind)]
        notification_id = await self.dispatcher.dispatch(
            notification_type,
            trip,
            actor,
            issue=report.issue,
            reason=report.reason,
            fuel_amount=report.fuel_amount,
            latitude=report.latitude,
            longitude=report.longitude,
        )
        logger.info("Report %s filed for trip %s", notification_type.value, trip.id)
        return ReportResponse(trip_id=trip.id, type=notification_type, notification_id=notification_id)
