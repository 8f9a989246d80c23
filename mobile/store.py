import logging
import uuid
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import Boolean, Column, Date, DateTime, Float, Integer, String, Text, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from mobile.schemas import RemoteFault, RemoteReading, RemoteStation

logger = logging.getLogger(__name__)

LocalBase = declarative_base()


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def new_id() -> str:
	return str(uuid.uuid4())


class LocalStation(LocalBase):
	__tablename__ = "stations"

	id = Column(String(36), primary_key=True)
	name = Column(String(255), nullable=False)
	name_ar = Column(String(255), nullable=False)
	location_name = Column(String(255), nullable=False)
	location_name_ar = Column(String(255), nullable=False)
	latitude = Column(Float, nullable=False)
	longitude = Column(Float, nullable=False)
	address = Column(String(500))
	address_ar = Column(String(500))
	capacity_liters = Column(Integer)
	status = Column(String(20), default="active")
	operator_id = Column(String(36))
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class LocalReading(LocalBase):
	__tablename__ = "daily_readings"

	id = Column(String(36), primary_key=True, default=new_id)
	server_id = Column(String(36), unique=True, index=True)
	station_id = Column(String(36), nullable=False, index=True)
	operator_id = Column(String(36), nullable=False, index=True)
	reading_date = Column(Date, nullable=False)
	ph_level = Column(Float)
	tds_level = Column(Integer)
	temperature = Column(Float)
	pressure = Column(Float)
	tank_level_percentage = Column(Integer)
	notes = Column(Text)
	notes_ar = Column(Text)
	is_synced = Column(Boolean, nullable=False, default=False, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	updated_at = Column(DateTime, default=utcnow, nullable=False)


class LocalFault(LocalBase):
	__tablename__ = "faults"

	id = Column(String(36), primary_key=True, default=new_id)
	server_id = Column(String(36), unique=True, index=True)
	station_id = Column(String(36), nullable=False, index=True)
	reported_by = Column(String(36), nullable=False)
	assigned_to = Column(String(36))
	title = Column(String(255), nullable=False)
	title_ar = Column(String(255), nullable=False)
	description = Column(Text, nullable=False)
	description_ar = Column(Text, nullable=False)
	status = Column(String(20), nullable=False, default="open", index=True)
	priority = Column(String(20), nullable=False, default="medium")
	latitude = Column(Float)
	longitude = Column(Float)
	photo_url = Column(String(500))
	resolved_at = Column(DateTime)
	# Set by a local status change, cleared once the server acknowledges it
	status_changed = Column(Boolean, nullable=False, default=False)
	# Own flag, status alone cannot tell "not uploaded" from "still actionable"
	is_synced = Column(Boolean, nullable=False, default=False, index=True)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	updated_at = Column(DateTime, default=utcnow, nullable=False)


class SyncMetadata(LocalBase):
	__tablename__ = "sync_metadata"

	key = Column(String(100), primary_key=True)
	value = Column(Text)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


READING_FIELDS = (
	"ph_level", "tds_level", "temperature", "pressure",
	"tank_level_percentage", "notes", "notes_ar",
)
FAULT_FIELDS = (
	"title", "title_ar", "description", "description_ar", "priority",
	"latitude", "longitude", "photo_url", "assigned_to",
)
MODELS = {"readings": LocalReading, "faults": LocalFault}


class RecordNotFound(LookupError):
	pass


class LocalStore:
	"""Device database. Every user action lands here first, flagged unsynced."""

	def __init__(self, url: str):
		self.url = url
		self.engine = create_async_engine(url)
		self.session_factory = async_sessionmaker(
			self.engine,
			class_=AsyncSession,
			expire_on_commit=False,
		)

	async def init(self):
		async with self.engine.begin() as conn:
			await conn.run_sync(LocalBase.metadata.create_all)
		logger.info(f"Local store ready at {self.url}")

	async def close(self):
		await self.engine.dispose()

	# ---------------------------------------------------------------
	# Stations
	# ---------------------------------------------------------------

	async def upsert_stations(self, stations: Iterable[RemoteStation]) -> int:
		count = 0
		async with self.session_factory() as db:
			for station in stations:
				await db.merge(LocalStation(**station.model_dump()))
				count += 1
			await db.commit()
		return count

	async def get_stations(self) -> List[LocalStation]:
		async with self.session_factory() as db:
			result = await db.execute(select(LocalStation).order_by(LocalStation.name))
			return list(result.scalars().all())

	# ---------------------------------------------------------------
	# Optimistic writes
	# ---------------------------------------------------------------

	async def record_reading(
			self,
			*,
			station_id: str,
			operator_id: str,
			reading_date: date,
			**measurements
	) -> LocalReading:
		"""Store a new reading on the device; it goes up with the next sync"""
		unknown = set(measurements) - set(READING_FIELDS)
		if unknown:
			raise TypeError(f"Unknown reading fields: {sorted(unknown)}")

		reading = LocalReading(
			station_id=station_id,
			operator_id=operator_id,
			reading_date=reading_date,
			is_synced=False,
			**measurements
		)
		async with self.session_factory() as db:
			db.add(reading)
			await db.commit()
		logger.debug(f"Reading {reading.id} recorded locally for station {station_id}")
		return reading

	async def update_reading(self, reading_id: str, **changes) -> LocalReading:
		unknown = set(changes) - set(READING_FIELDS)
		if unknown:
			raise TypeError(f"Unknown reading fields: {sorted(unknown)}")

		async with self.session_factory() as db:
			reading = await db.get(LocalReading, reading_id)
			if reading is None:
				raise RecordNotFound(f"Reading {reading_id} not found")
			for field, value in changes.items():
				setattr(reading, field, value)
			reading.is_synced = False
			reading.updated_at = utcnow()
			await db.commit()
			return reading

	async def report_fault(
			self,
			*,
			station_id: str,
			reported_by: str,
			title: str,
			title_ar: str,
			description: str,
			description_ar: str,
			priority: str = "medium",
			latitude: Optional[float] = None,
			longitude: Optional[float] = None,
			photo_url: Optional[str] = None
	) -> LocalFault:
		fault = LocalFault(
			station_id=station_id,
			reported_by=reported_by,
			title=title,
			title_ar=title_ar,
			description=description,
			description_ar=description_ar,
			priority=priority,
			status="open",
			latitude=latitude,
			longitude=longitude,
			photo_url=photo_url,
			is_synced=False,
		)
		async with self.session_factory() as db:
			db.add(fault)
			await db.commit()
		logger.debug(f"Fault {fault.id} reported locally for station {station_id}")
		return fault

	async def update_fault(self, fault_id: str, *, status: Optional[str] = None, **changes) -> LocalFault:
		unknown = set(changes) - set(FAULT_FIELDS)
		if unknown:
			raise TypeError(f"Unknown fault fields: {sorted(unknown)}")

		async with self.session_factory() as db:
			fault = await db.get(LocalFault, fault_id)
			if fault is None:
				raise RecordNotFound(f"Fault {fault_id} not found")
			for field, value in changes.items():
				setattr(fault, field, value)
			if status is not None:
				fault.status = status
				fault.status_changed = True
				if status == "resolved" and fault.resolved_at is None:
					fault.resolved_at = utcnow()
			fault.is_synced = False
			fault.updated_at = utcnow()
			await db.commit()
			return fault

	async def get_reading(self, reading_id: str) -> Optional[LocalReading]:
		async with self.session_factory() as db:
			return await db.get(LocalReading, reading_id)

	async def get_fault(self, fault_id: str) -> Optional[LocalFault]:
		async with self.session_factory() as db:
			return await db.get(LocalFault, fault_id)

	async def get_readings(self, limit: int = 50, offset: int = 0) -> List[LocalReading]:
		async with self.session_factory() as db:
			result = await db.execute(
				select(LocalReading)
				.order_by(LocalReading.reading_date.desc(), LocalReading.created_at.desc())
				.limit(limit)
				.offset(offset)
			)
			return list(result.scalars().all())

	# ---------------------------------------------------------------
	# Sync support
	# ---------------------------------------------------------------

	async def get_unsynced(self, kind: str) -> List:
		"""Pending rows of one kind ("readings" or "faults"), oldest first"""
		model = MODELS[kind]
		async with self.session_factory() as db:
			result = await db.execute(
				select(model)
				.where(model.is_synced.is_(False))
				.order_by(model.created_at.asc())
			)
			return list(result.scalars().all())

	async def count_unsynced(self) -> Dict[str, int]:
		counts = {}
		async with self.session_factory() as db:
			for kind, model in MODELS.items():
				counts[kind] = await db.scalar(
					select(func.count()).select_from(model).where(model.is_synced.is_(False))
				)
		return counts

	async def mark_synced(self, kind: str, acknowledged: Dict[str, Tuple[str, datetime]]) -> int:
		"""Flag rows the server acknowledged.

		``acknowledged`` maps local id to (server id, updated_at as uploaded).
		A row edited again while the upload was in flight adopts the server
		id but stays unsynced, so the newer edit goes up next time.
		"""
		model = MODELS[kind]
		synced = {"is_synced": True}
		if model is LocalFault:
			synced["status_changed"] = False
		marked = 0
		async with self.session_factory() as db:
			for local_id, (server_id, uploaded_at) in acknowledged.items():
				result = await db.execute(
					update(model)
					.where(model.id == local_id, model.updated_at == uploaded_at)
					.values(server_id=server_id, **synced)
				)
				if result.rowcount:
					marked += 1
				else:
					await db.execute(
						update(model).where(model.id == local_id).values(server_id=server_id)
					)
					logger.info(f"{kind} {local_id} changed during upload, kept pending")
			await db.commit()
		return marked

	async def upsert_remote_readings(self, readings: Iterable[RemoteReading], operator_id: str) -> int:
		"""Store server readings as synced; local rows with pending edits win"""
		stored = 0
		async with self.session_factory() as db:
			for remote in readings:
				values = remote.model_dump(exclude={"id"})
				local = await self._by_server_id(db, LocalReading, remote.id)
				if local is None:
					db.add(LocalReading(
						id=remote.id,
						server_id=remote.id,
						operator_id=operator_id,
						is_synced=True,
						**values
					))
				elif not local.is_synced:
					logger.info(f"Reading {local.id} has local edits, server copy skipped")
					continue
				else:
					for field, value in values.items():
						setattr(local, field, value)
					local.updated_at = utcnow()
				stored += 1
			await db.commit()
		return stored

	async def upsert_remote_faults(self, faults: Iterable[RemoteFault], reported_by: str) -> int:
		stored = 0
		async with self.session_factory() as db:
			for remote in faults:
				values = remote.model_dump(exclude={"id"})
				local = await self._by_server_id(db, LocalFault, remote.id)
				if local is None:
					db.add(LocalFault(
						id=remote.id,
						server_id=remote.id,
						reported_by=reported_by,
						is_synced=True,
						**values
					))
				elif not local.is_synced:
					logger.info(f"Fault {local.id} has local edits, server copy skipped")
					continue
				else:
					for field, value in values.items():
						setattr(local, field, value)
					local.updated_at = utcnow()
				stored += 1
			await db.commit()
		return stored

	@staticmethod
	async def _by_server_id(db: AsyncSession, model, server_id: str):
		result = await db.execute(select(model).where(model.server_id == server_id))
		return result.scalar_one_or_none()

	# ---------------------------------------------------------------
	# Metadata
	# ---------------------------------------------------------------

	async def get_metadata(self, key: str) -> Optional[str]:
		async with self.session_factory() as db:
			row = await db.get(SyncMetadata, key)
			return row.value if row else None

	async def set_metadata(self, key: str, value: Optional[str]):
		async with self.session_factory() as db:
			await db.merge(SyncMetadata(key=key, value=value))
			await db.commit()
