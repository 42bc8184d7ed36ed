"""
End-to-end trip flow over HTTP.
"""

import pytest

from conftest import DRIVER_ID, OTHER_DRIVER_ID, VEHICLE_ID, auth_headers
from fleetops.app.models.enums import UserRole


async def create_trip(client, headers, **fields):
    payload = {"destination": "Warehouse B", "pickup": "Depot A", "estimated_distance": 18.2}
    payload.update(fields)
    response = await client.post("/v1/fleet-manager/trips", json=payload, headers=headers)
    assert response.status_code == 201
    return response.json()


async def board(client, headers, path="/v1/fleet-manager/trips"):
    response = await client.get(path, headers=headers)
    assert response.status_code == 200
    return response.json()["board"]


@pytest.mark.asyncio
async def test_trip_moves_through_board_and_notifies(client, manager_headers, driver_headers):
    trip = await create_trip(client, manager_headers)
    trip_id = trip["id"]
    assert trip["status"] == "upcoming"
    assert trip["driver_id"] is None

    # Unassigned trip is upcoming only
    view = await board(client, manager_headers)
    assert [t["id"] for t in view["upcoming"]] == [trip_id]
    assert view["current"] is None
    assert view["completed"] == []

    # Assign driver and vehicle, then move to assigned
    response = await client.patch(
        f"/v1/fleet-manager/trips/{trip_id}",
        json={"driver_id": DRIVER_ID, "vehicle_id": VEHICLE_ID},
        headers=manager_headers,
    )
    assert response.status_code == 200
    response = await client.patch(
        f"/v1/fleet-manager/trips/{trip_id}", json={"status": "assigned"}, headers=manager_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "assigned"

    # Pre-trip inspection, then start
    response = await client.post(
        f"/v1/driver/trips/{trip_id}/inspections", json={"phase": "pre_trip"}, headers=driver_headers
    )
    assert response.status_code == 200
    assert response.json()["has_completed_pre_trip"] is True

    response = await client.post(
        f"/v1/driver/trips/{trip_id}/status", json={"status": "current"}, headers=driver_headers
    )
    assert response.status_code == 200
    assert response.json()["start_time"] is not None

    view = await board(client, driver_headers, "/v1/driver/trips")
    assert view["current"]["id"] == trip_id
    assert view["upcoming"] == []

    # Post-trip inspection, then deliver
    await client.post(f"/v1/driver/trips/{trip_id}/inspections", json={"phase": "post_trip"}, headers=driver_headers)
    response = await client.post(
        f"/v1/driver/trips/{trip_id}/status", json={"status": "delivered"}, headers=driver_headers
    )
    assert response.status_code == 200
    assert response.json()["end_time"] is not None

    view = await board(client, manager_headers)
    assert view["current"] is None
    assert [t["id"] for t in view["completed"]] == [trip_id]

    response = await client.get("/v1/notifications", headers=manager_headers)
    assert response.status_code == 200
    body = response.json()
    by_type = {n["type"]: n for n in body["notifications"]}
    assert set(by_type) == {"trip_started", "trip_completed"}
    assert by_type["trip_completed"]["metadata"]["distance_km"] == "18.20"
    assert by_type["trip_completed"]["trip_id"] == trip_id
    assert body["unread_count"] == 2

    response = await client.get(f"/v1/fleet-manager/trips/{trip_id}/receipt", headers=manager_headers)
    assert response.status_code == 200
    receipt = response.json()
    assert receipt["trip_id"] == trip_id
    assert receipt["distance_km"] == "18.20"
    assert receipt["post_trip_inspection_completed"] is True


@pytest.mark.asyncio
async def test_skipping_a_step_is_a_conflict(client, manager_headers):
    trip = await create_trip(client, manager_headers, driver_id=DRIVER_ID, vehicle_id=VEHICLE_ID)

    response = await client.patch(
        f"/v1/fleet-manager/trips/{trip['id']}", json={"status": "current"}, headers=manager_headers
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "ERR_TRIP_001"
    assert response.json()["details"] == {"current": "upcoming", "target": "current"}


@pytest.mark.asyncio
async def test_receipt_requires_delivery(client, manager_headers):
    trip = await create_trip(client, manager_headers)
    response = await client.get(f"/v1/fleet-manager/trips/{trip['id']}/receipt", headers=manager_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_assign_endpoint_moves_pending_trip(client, manager_headers):
    trip = await create_trip(client, manager_headers)
    response = await client.post(
        f"/v1/fleet-manager/trips/{trip['id']}/assign",
        json={"driver_id": DRIVER_ID, "vehicle_id": VEHICLE_ID, "secondary_driver_id": OTHER_DRIVER_ID},
        headers=manager_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "assigned"
    assert response.json()["secondary_driver_id"] == OTHER_DRIVER_ID


@pytest.mark.asyncio
async def test_deleted_trip_is_hidden_everywhere(client, manager_headers, driver_headers):
    trip = await create_trip(client, manager_headers, driver_id=DRIVER_ID)

    response = await client.delete(f"/v1/fleet-manager/trips/{trip['id']}", headers=manager_headers)
    assert response.status_code == 204

    assert (await client.get(f"/v1/fleet-manager/trips/{trip['id']}", headers=manager_headers)).status_code == 404
    listing = (await client.get("/v1/fleet-manager/trips", headers=manager_headers)).json()
    assert listing["total"] == 0
    assert (await board(client, driver_headers, "/v1/driver/trips"))["upcoming"] == []


@pytest.mark.asyncio
async def test_driver_only_sees_own_trips(client, manager_headers, driver_headers):
    mine = await create_trip(client, manager_headers, driver_id=DRIVER_ID)
    shared = await create_trip(client, manager_headers, driver_id=OTHER_DRIVER_ID, secondary_driver_id=DRIVER_ID)
    await create_trip(client, manager_headers, driver_id=OTHER_DRIVER_ID)

    response = await client.get("/v1/driver/trips", headers=driver_headers)

    assert response.status_code == 200
    assert {t["id"] for t in response.json()["trips"]} == {mine["id"], shared["id"]}

    filtered = await client.get("/v1/fleet-manager/trips", params={"driver_id": DRIVER_ID}, headers=manager_headers)
    assert {t["id"] for t in filtered.json()["trips"]} == {mine["id"], shared["id"]}


@pytest.mark.asyncio
async def test_role_guards(client, manager_headers, driver_headers):
    response = await client.post("/v1/fleet-manager/trips", json={"destination": "X"}, headers=driver_headers)
    assert response.status_code == 403

    response = await client.get("/v1/driver/trips", headers=manager_headers)
    assert response.status_code == 403

    response = await client.get("/v1/fleet-manager/trips")
    assert response.status_code in (401, 403)

    maintenance = auth_headers("mnt-0001", UserRole.MAINTENANCE_PERSONNEL)
    response = await client.get("/v1/notifications", headers=maintenance)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_invalid_payload_is_rejected(client, manager_headers):
    response = await client.post(
        "/v1/fleet-manager/trips", json={"destination": "X", "start_latitude": 123}, headers=manager_headers
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_other_driver_cannot_update_trip(client, manager_headers):
    trip = await create_trip(client, manager_headers, driver_id=DRIVER_ID, vehicle_id=VEHICLE_ID)
    stranger = auth_headers(OTHER_DRIVER_ID, UserRole.DRIVER)

    response = await client.post(
        f"/v1/driver/trips/{trip['id']}/inspections", json={"phase": "pre_trip"}, headers=stranger
    )

    assert response.status_code == 403
