from datetime import date, timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.models.fault import Fault
from app.models.reading import Reading
from app.models.sync_log import SyncLog
from app.services.sync_service import DUPLICATE_READING, READING_DENIED, STATION_DENIED
from tests.factories import fault_item, reading_item

DAY = date(2026, 10, 1)


async def upload(client: AsyncClient, headers: dict, readings=(), faults=()):
	response = await client.post(
		"/api/v1/sync/upload",
		headers=headers,
		json={"readings": list(readings), "faults": list(faults)}
	)
	assert response.status_code == 200, response.text
	return response.json()["data"]


async def count_readings(session_factory) -> int:
	async with session_factory() as session:
		return await session.scalar(select(func.count()).select_from(Reading))


@pytest.mark.asyncio
async def test_upload_creates_reading(client: AsyncClient, session_factory, auth_headers, operator, station):
	data = await upload(client, auth_headers, readings=[reading_item(station.id, DAY, clientRef="local-1")])

	readings = data["readings"]
	assert readings["created"] == 1
	assert readings["updated"] == 0
	assert readings["errors"] == []
	result = readings["results"][0]
	assert result["index"] == 0
	assert result["clientRef"] == "local-1"
	assert result["action"] == "created"

	async with session_factory() as session:
		reading = await session.get(Reading, UUID(result["id"]))
		assert reading.operator_id == operator.id
		assert reading.is_synced is True
		assert reading.ph_level == 7.2
		assert reading.tank_level_percentage == 80

		logs = await session.scalar(select(func.count()).select_from(SyncLog))
		assert logs == 1


@pytest.mark.asyncio
async def test_same_station_and_date_twice_in_one_batch(client: AsyncClient, session_factory, auth_headers, station):
	data = await upload(client, auth_headers, readings=[
		reading_item(station.id, DAY, clientRef="a"),
		reading_item(station.id, DAY, clientRef="b", phLevel=6.9),
	])

	readings = data["readings"]
	assert readings["created"] == 1
	assert len(readings["errors"]) == 1
	error = readings["errors"][0]
	assert error["index"] == 1
	assert error["clientRef"] == "b"
	assert error["error"] == DUPLICATE_READING
	assert await count_readings(session_factory) == 1


@pytest.mark.asyncio
async def test_foreign_station_fails_only_its_record(
		client: AsyncClient, session_factory, auth_headers, station, second_station, foreign_station
):
	batch = [
		reading_item(station.id, DAY),
		reading_item(second_station.id, DAY),
		reading_item(foreign_station.id, DAY),
		reading_item(station.id, DAY + timedelta(days=1)),
		reading_item(second_station.id, DAY + timedelta(days=1)),
	]
	data = await upload(client, auth_headers, readings=batch)

	readings = data["readings"]
	assert readings["created"] == 4
	assert [r["index"] for r in readings["results"]] == [0, 1, 3, 4]
	assert readings["errors"] == [{
		"index": 2,
		"id": None,
		"clientRef": None,
		"error": STATION_DENIED,
	}]
	assert await count_readings(session_factory) == 4


@pytest.mark.asyncio
async def test_update_by_id_and_identical_redelivery(client: AsyncClient, session_factory, auth_headers, station):
	created = await upload(client, auth_headers, readings=[reading_item(station.id, DAY)])
	reading_id = created["readings"]["results"][0]["id"]

	edit = reading_item(station.id, DAY, id=reading_id, phLevel=8.1, notes="Flushed filters")
	first = await upload(client, auth_headers, readings=[edit])
	second = await upload(client, auth_headers, readings=[edit])

	for data in (first, second):
		assert data["readings"]["updated"] == 1
		assert data["readings"]["errors"] == []
		assert data["readings"]["results"][0]["id"] == reading_id

	async with session_factory() as session:
		reading = await session.get(Reading, UUID(reading_id))
		assert reading.ph_level == 8.1
		assert reading.notes == "Flushed filters"
		assert reading.tds_level == 140
	assert await count_readings(session_factory) == 1


@pytest.mark.asyncio
async def test_update_of_someone_elses_reading_is_rejected(
		client: AsyncClient, auth_headers, other_headers, station, foreign_station
):
	theirs = await upload(client, other_headers, readings=[reading_item(foreign_station.id, DAY)])
	their_id = theirs["readings"]["results"][0]["id"]

	data = await upload(client, auth_headers, readings=[reading_item(station.id, DAY, id=their_id)])

	assert data["readings"]["updated"] == 0
	assert data["readings"]["errors"][0]["error"] == READING_DENIED
	assert data["readings"]["errors"][0]["id"] == their_id


@pytest.mark.asyncio
async def test_create_redelivery_is_confirmed_not_duplicated(
		client: AsyncClient, session_factory, auth_headers, station
):
	item = reading_item(station.id, DAY, clientRef="local-42")
	first = await upload(client, auth_headers, readings=[item])
	again = await upload(client, auth_headers, readings=[item])

	assert first["readings"]["results"][0]["action"] == "created"
	assert again["readings"]["results"][0]["action"] == "updated"
	assert again["readings"]["results"][0]["id"] == first["readings"]["results"][0]["id"]
	assert again["readings"]["errors"] == []
	assert await count_readings(session_factory) == 1


@pytest.mark.asyncio
async def test_invalid_record_rejects_whole_batch(client: AsyncClient, session_factory, auth_headers, station):
	response = await client.post(
		"/api/v1/sync/upload",
		headers=auth_headers,
		json={"readings": [
			reading_item(station.id, DAY),
			reading_item(station.id, DAY + timedelta(days=1), phLevel=15),
		]}
	)

	assert response.status_code == 400
	body = response.json()
	assert body["success"] is False
	assert body["errors"][0]["loc"][-1] == "phLevel"
	assert await count_readings(session_factory) == 0


@pytest.mark.asyncio
async def test_missing_station_id_is_a_bad_request(client: AsyncClient, auth_headers):
	response = await client.post(
		"/api/v1/sync/upload",
		headers=auth_headers,
		json={"faults": [{"title": "Leaking valve"}]}
	)
	assert response.status_code == 400


@pytest.mark.asyncio
async def test_upload_requires_auth(client: AsyncClient, station):
	response = await client.post("/api/v1/sync/upload", json={"readings": []})
	assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_fault_resolved_at_is_set_once(client: AsyncClient, session_factory, auth_headers, operator, station):
	created = await upload(client, auth_headers, faults=[fault_item(station.id, clientRef="f-1")])
	fault_id = created["faults"]["results"][0]["id"]

	async with session_factory() as session:
		fault = await session.get(Fault, UUID(fault_id))
		assert fault.status == "open"
		assert fault.reported_by == operator.id
		assert fault.resolved_at is None

	await upload(client, auth_headers, faults=[fault_item(station.id, id=fault_id, status="resolved")])
	async with session_factory() as session:
		first_resolved_at = (await session.get(Fault, UUID(fault_id))).resolved_at
	assert first_resolved_at is not None

	await upload(client, auth_headers, faults=[fault_item(station.id, id=fault_id, status="in_progress")])
	await upload(client, auth_headers, faults=[fault_item(station.id, id=fault_id, status="resolved")])

	async with session_factory() as session:
		fault = await session.get(Fault, UUID(fault_id))
		assert fault.status == "resolved"
		assert fault.resolved_at == first_resolved_at


@pytest.mark.asyncio
async def test_fault_on_foreign_station_is_rejected(client: AsyncClient, auth_headers, station, foreign_station):
	data = await upload(client, auth_headers, faults=[
		fault_item(foreign_station.id),
		fault_item(station.id),
	])

	assert data["faults"]["created"] == 1
	assert data["faults"]["errors"][0]["index"] == 0
	assert data["faults"]["errors"][0]["error"] == STATION_DENIED


@pytest.mark.asyncio
async def test_admin_may_use_any_station(client: AsyncClient, admin_headers, foreign_station):
	data = await upload(client, admin_headers, readings=[reading_item(foreign_station.id, DAY)])

	assert data["readings"]["created"] == 1
	assert data["readings"]["errors"] == []


@pytest.mark.asyncio
async def test_sync_metrics_are_exposed(client: AsyncClient, auth_headers, station):
	await upload(client, auth_headers, readings=[reading_item(station.id, DAY)])

	response = await client.get("/internal/metrics")
	assert response.status_code == 200
	assert 'sync_records_total{kind="reading",outcome="created"}' in response.text
	assert 'sync_operations_total{operation="upload",status="success"}' in response.text
