import logging
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.fault import Fault, FaultStatus, UNRESOLVED_STATUSES
from app.models.reading import Reading
from app.models.station import Station
from app.models.sync_log import SyncLog
from app.monitoring.metrics import sync_records
from app.schemas.sync import (
	FaultSyncItem,
	KindSyncResult,
	PendingData,
	PendingFault,
	PendingReading,
	ReadingSyncItem,
	SyncItemError,
	SyncItemResult,
	SyncKind,
	SyncUploadData,
	SyncUploadRequest,
)

logger = logging.getLogger(__name__)

STATION_DENIED = "Station not found or access denied"
READING_DENIED = "Reading not found or access denied"
FAULT_DENIED = "Fault not found or access denied"
DUPLICATE_READING = "Reading already exists for this station and date"


class RecordRejected(Exception):
	"""A single sync record broke a business rule; siblings keep going"""


class SyncService:
	"""Applies client batches against the authoritative store.

	Every record runs in its own transaction, so a rejected or failing record
	never rolls back the ones before it. Writes are always scoped to rows the
	caller owns.
	"""

	def __init__(self, session: AsyncSession):
		self.session = session

	async def apply_batch(
			self,
			batch: SyncUploadRequest,
			operator_id: uuid.UUID,
			is_admin: bool = False
	) -> SyncUploadData:
		"""Apply an upload batch and report the outcome of every record"""
		readings = await self._apply_kind(
			"reading", batch.readings, operator_id, is_admin, self._apply_reading
		)
		faults = await self._apply_kind(
			"fault", batch.faults, operator_id, is_admin, self._apply_fault
		)
		return SyncUploadData(readings=readings, faults=faults)

	async def _apply_kind(
			self,
			kind: str,
			items: Sequence,
			operator_id: uuid.UUID,
			is_admin: bool,
			apply_one: Callable[..., Awaitable[Tuple[uuid.UUID, str]]]
	) -> KindSyncResult:
		outcome = KindSyncResult()

		# Submission order, so duplicate errors land on the later record
		for index, item in enumerate(items):
			try:
				record_id, action = await apply_one(item, operator_id, is_admin)
				self.session.add(SyncLog(
					user_id=operator_id,
					record_id=record_id,
					record_type=kind,
					action=action,
				))
				await self.session.commit()
			except RecordRejected as e:
				await self.session.rollback()
				error = str(e)
			except IntegrityError as e:
				await self.session.rollback()
				logger.info(f"Constraint violation for {kind} #{index}: {e.orig}")
				error = DUPLICATE_READING if kind == "reading" else "Record conflicts with existing data"
			except SQLAlchemyError as e:
				await self.session.rollback()
				logger.error(f"Sync error for {kind} #{index}: {e}")
				error = "Failed to store record"
			else:
				if action == "created":
					outcome.created += 1
				else:
					outcome.updated += 1
				outcome.results.append(SyncItemResult(
					index=index, id=record_id, client_ref=item.client_ref, action=action
				))
				sync_records.labels(kind=kind, outcome=action).inc()
				continue

			outcome.errors.append(SyncItemError(
				index=index, id=item.id, client_ref=item.client_ref, error=error
			))
			sync_records.labels(kind=kind, outcome="error").inc()

		return outcome

	async def _check_station(self, station_id: uuid.UUID, operator_id: uuid.UUID, is_admin: bool):
		query = select(Station.id).where(Station.id == station_id)
		if not is_admin:
			query = query.where(Station.operator_id == operator_id)
		if await self.session.scalar(query) is None:
			raise RecordRejected(STATION_DENIED)

	async def _find_owned(self, model, owner_column, owner_id: uuid.UUID, record_id=None, client_ref=None):
		query = select(model).where(owner_column == owner_id)
		if record_id is not None:
			query = query.where(model.id == record_id)
		else:
			query = query.where(model.client_ref == client_ref)
		result = await self.session.execute(query)
		return result.scalar_one_or_none()

	async def _apply_reading(
			self,
			item: ReadingSyncItem,
			operator_id: uuid.UUID,
			is_admin: bool
	) -> Tuple[uuid.UUID, str]:
		await self._check_station(item.station_id, operator_id, is_admin)

		# Only supplied values overwrite stored ones
		values = item.model_dump(
			exclude={"id", "client_ref", "station_id", "reading_date"},
			exclude_none=True,
		)

		if item.id is not None:
			reading = await self._find_owned(Reading, Reading.operator_id, operator_id, record_id=item.id)
			if reading is None:
				raise RecordRejected(READING_DENIED)
		elif item.client_ref:
			# Redelivered create: the first delivery already stored it
			reading = await self._find_owned(Reading, Reading.operator_id, operator_id, client_ref=item.client_ref)
		else:
			reading = None

		if reading is not None:
			for field, value in values.items():
				setattr(reading, field, value)
			reading.is_synced = True
			reading.updated_at = utcnow()
			await self.session.flush()
			return reading.id, "updated"

		duplicate = await self.session.scalar(
			select(Reading.id).where(
				Reading.station_id == item.station_id,
				Reading.reading_date == item.reading_date
			)
		)
		if duplicate is not None:
			raise RecordRejected(DUPLICATE_READING)

		reading = Reading(
			station_id=item.station_id,
			operator_id=operator_id,
			reading_date=item.reading_date,
			client_ref=item.client_ref,
			is_synced=True,
			**values
		)
		self.session.add(reading)
		await self.session.flush()
		return reading.id, "created"

	async def _apply_fault(
			self,
			item: FaultSyncItem,
			operator_id: uuid.UUID,
			is_admin: bool
	) -> Tuple[uuid.UUID, str]:
		await self._check_station(item.station_id, operator_id, is_admin)

		values = item.model_dump(
			mode="json",
			exclude={"id", "client_ref", "station_id", "status"},
			exclude_none=True,
		)

		if item.id is not None:
			fault = await self._find_owned(Fault, Fault.reported_by, operator_id, record_id=item.id)
			if fault is None:
				raise RecordRejected(FAULT_DENIED)
		elif item.client_ref:
			fault = await self._find_owned(Fault, Fault.reported_by, operator_id, client_ref=item.client_ref)
		else:
			fault = None

		if fault is not None:
			for field, value in values.items():
				setattr(fault, field, value)
			apply_fault_status(fault, item.status)
			fault.updated_at = utcnow()
			await self.session.flush()
			return fault.id, "updated"

		fault = Fault(
			station_id=item.station_id,
			reported_by=operator_id,
			client_ref=item.client_ref,
			status=FaultStatus.OPEN.value,
			**values
		)
		apply_fault_status(fault, item.status)
		self.session.add(fault)
		await self.session.flush()
		return fault.id, "created"

	async def get_pending(
			self,
			operator_id: uuid.UUID,
			since: Optional[datetime] = None
	) -> PendingData:
		"""Readings not yet synced and faults still in the workflow, oldest first.

		With ``since``, anything the caller owns that changed after it is
		included too, which is how a second device catches up.
		"""
		server_time = utcnow()

		reading_filter = Reading.is_synced.is_(False)
		fault_filter = Fault.status.in_(UNRESOLVED_STATUSES)
		if since is not None:
			since = _as_utc(since)
			reading_filter = or_(reading_filter, Reading.updated_at > since)
			fault_filter = or_(fault_filter, Fault.updated_at > since)

		readings = await self.session.execute(
			select(Reading)
			.join(Station, Reading.station_id == Station.id)
			.where(Reading.operator_id == operator_id, reading_filter)
			.order_by(Reading.created_at.asc())
		)
		faults = await self.session.execute(
			select(Fault)
			.join(Station, Fault.station_id == Station.id)
			.where(Fault.reported_by == operator_id, fault_filter)
			.order_by(Fault.created_at.asc())
		)

		return PendingData(
			readings=[PendingReading.model_validate(r) for r in readings.scalars().all()],
			faults=[PendingFault.model_validate(f) for f in faults.scalars().all()],
			server_time=server_time,
		)

	async def mark_synced(self, operator_id: uuid.UUID, ids: List[uuid.UUID], kind: SyncKind) -> int:
		"""Acknowledge records the client now holds; returns the affected count"""
		if not ids:
			return 0

		if kind == "readings":
			# An acknowledgement is not a content change, keep updated_at
			stmt = (
				update(Reading)
				.where(Reading.id.in_(ids), Reading.operator_id == operator_id)
				.values(is_synced=True, updated_at=Reading.updated_at)
			)
		else:
			stmt = (
				update(Fault)
				.where(Fault.id.in_(ids), Fault.reported_by == operator_id)
				.values(updated_at=utcnow())
			)

		result = await self.session.execute(stmt.execution_options(synchronize_session=False))
		await self.session.commit()
		return result.rowcount


def apply_fault_status(fault: Fault, status: Optional[str]):
	"""Move a fault to ``status``; resolved_at is stamped only the first time"""
	if status is None:
		return
	fault.status = status
	if status == FaultStatus.RESOLVED.value and fault.resolved_at is None:
		fault.resolved_at = utcnow()


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)
