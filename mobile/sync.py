"""Device-side sync orchestration.

One run uploads everything the Local Store holds as unsynced, then pulls
what the server has for this operator. Runs never overlap: a second call
while one is in flight fails immediately.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from mobile.api import ApiClient
from mobile.connectivity import ConnectivityMonitor
from mobile.errors import NoConnectivityError, SyncError, SyncInProgressError
from mobile.schemas import FaultPayload, KindOutcome, ReadingPayload
from mobile.store import LocalFault, LocalReading, LocalStore, READING_FIELDS

logger = logging.getLogger(__name__)

LAST_PULL_KEY = "last_pull_at"
LAST_SYNC_KEY = "last_sync_at"
USER_ID_KEY = "user_id"

# A device that never pulled asks for the whole history
FIRST_PULL_SINCE = datetime(1970, 1, 1, tzinfo=timezone.utc)


class SyncState(str, enum.Enum):
	IDLE = "idle"
	UPLOADING = "uploading"
	DOWNLOADING = "downloading"


@dataclass
class RecordError:
	kind: str
	local_id: str
	message: str
	server_id: Optional[str] = None


@dataclass
class KindSummary:
	created: int = 0
	updated: int = 0
	failed: int = 0
	downloaded: int = 0

	@property
	def uploaded(self) -> int:
		return self.created + self.updated


@dataclass
class SyncResult:
	started_at: datetime
	finished_at: Optional[datetime] = None
	readings: KindSummary = field(default_factory=KindSummary)
	faults: KindSummary = field(default_factory=KindSummary)
	stations: int = 0
	errors: List[RecordError] = field(default_factory=list)

	@property
	def success(self) -> bool:
		return not self.errors

	def summary(self) -> str:
		return (
			f"readings: {self.readings.created} created, {self.readings.updated} updated, "
			f"{self.readings.failed} failed, {self.readings.downloaded} downloaded; "
			f"faults: {self.faults.created} created, {self.faults.updated} updated, "
			f"{self.faults.failed} failed, {self.faults.downloaded} downloaded"
		)


@dataclass
class SyncStatus:
	online: bool
	state: SyncState
	unsynced_readings: int
	unsynced_faults: int
	last_sync_at: Optional[datetime]

	@property
	def has_pending(self) -> bool:
		return bool(self.unsynced_readings or self.unsynced_faults)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
	return datetime.fromisoformat(value) if value else None


def _reading_payload(row: LocalReading) -> ReadingPayload:
	return ReadingPayload(
		id=row.server_id,
		client_ref=row.id,
		station_id=row.station_id,
		reading_date=row.reading_date,
		**{name: getattr(row, name) for name in READING_FIELDS}
	)


def _fault_payload(row: LocalFault) -> FaultPayload:
	return FaultPayload(
		id=row.server_id,
		client_ref=row.id,
		station_id=row.station_id,
		title=row.title,
		title_ar=row.title_ar,
		description=row.description,
		description_ar=row.description_ar,
		priority=row.priority,
		status=row.status if row.status_changed else None,
		latitude=row.latitude,
		longitude=row.longitude,
		photo_url=row.photo_url,
	)


PAYLOAD_BUILDERS: Dict[str, Callable] = {
	"readings": _reading_payload,
	"faults": _fault_payload,
}


class SyncClient:
	def __init__(self, store: LocalStore, api: ApiClient, monitor: ConnectivityMonitor):
		self.store = store
		self.api = api
		self.monitor = monitor
		self.state = SyncState.IDLE
		self.user_id: Optional[str] = None
		self.last_sync_at: Optional[datetime] = None
		self._unsubscribe: Optional[Callable[[], None]] = None

	@property
	def is_syncing(self) -> bool:
		return self.state != SyncState.IDLE

	async def sync_all(self) -> SyncResult:
		"""Upload pending local records, then pull pending server records.

		Raises SyncInProgressError or NoConnectivityError before touching the
		network. Any SyncError raised after that, a transport failure or an
		error status from the server, carries the progress made so far in
		``partial_result``.
		"""
		# No await between the checks and the state change
		if self.state != SyncState.IDLE:
			raise SyncInProgressError()
		if not self.monitor.is_online():
			raise NoConnectivityError()
		self.state = SyncState.UPLOADING

		result = SyncResult(started_at=datetime.now(timezone.utc))
		try:
			await self._upload(result)
			self.state = SyncState.DOWNLOADING
			await self._download(result)
		except SyncError as e:
			e.partial_result = result
			logger.warning(f"Sync interrupted during {self.state.value}: {e}")
			raise
		finally:
			self.state = SyncState.IDLE

		result.finished_at = datetime.now(timezone.utc)
		self.last_sync_at = result.finished_at
		await self.store.set_metadata(LAST_SYNC_KEY, result.finished_at.isoformat())
		logger.info(f"Sync finished: {result.summary()}")
		return result

	# ---------------------------------------------------------------
	# Upload
	# ---------------------------------------------------------------

	def _prepare(self, kind: str, rows: list, result: SyncResult) -> Tuple[List[dict], list]:
		"""Wire payloads for the rows that pass validation, and those rows"""
		build = PAYLOAD_BUILDERS[kind]
		payloads, sent = [], []
		for row in rows:
			try:
				payload = build(row)
			except ValidationError as e:
				first = e.errors()[0]
				where = ".".join(str(part) for part in first["loc"])
				message = f"{where}: {first['msg']}"
				logger.warning(f"Local {kind} {row.id} not sent: {message}")
				result.errors.append(RecordError(kind, row.id, message, row.server_id))
				getattr(result, kind).failed += 1
				continue
			payloads.append(payload.to_wire())
			sent.append(row)
		return payloads, sent

	async def _upload(self, result: SyncResult):
		readings, sent_readings = self._prepare("readings", await self.store.get_unsynced("readings"), result)
		faults, sent_faults = self._prepare("faults", await self.store.get_unsynced("faults"), result)

		if not readings and not faults:
			logger.debug("Nothing to upload")
			return

		logger.info(f"Uploading {len(readings)} readings and {len(faults)} faults")
		outcome = await self.api.upload(readings, faults)

		await self._apply_outcome("readings", sent_readings, outcome.readings, result)
		await self._apply_outcome("faults", sent_faults, outcome.faults, result)

	async def _apply_outcome(self, kind: str, sent: list, outcome: KindOutcome, result: SyncResult):
		by_ref = {row.id: row for row in sent}
		summary: KindSummary = getattr(result, kind)

		def row_for(item):
			row = by_ref.get(item.client_ref) if item.client_ref else None
			if row is None and 0 <= item.index < len(sent):
				row = sent[item.index]
			return row

		acknowledged = {}
		for item in outcome.results:
			row = row_for(item)
			if row is None:
				logger.warning(f"Server acknowledged unknown {kind} at index {item.index}")
				continue
			acknowledged[row.id] = (item.id, row.updated_at)
			if item.action == "created":
				summary.created += 1
			else:
				summary.updated += 1

		for item in outcome.errors:
			row = row_for(item)
			local_id = row.id if row else (item.client_ref or f"#{item.index}")
			result.errors.append(RecordError(kind, local_id, item.error, item.id))
			summary.failed += 1

		if acknowledged:
			await self.store.mark_synced(kind, acknowledged)

	# ---------------------------------------------------------------
	# Download
	# ---------------------------------------------------------------

	async def _current_user_id(self) -> str:
		if self.user_id is None:
			self.user_id = await self.store.get_metadata(USER_ID_KEY)
		if self.user_id is None:
			self.user_id = await self.api.get_user_id()
			await self.store.set_metadata(USER_ID_KEY, self.user_id)
		return self.user_id

	async def _download(self, result: SyncResult):
		user_id = await self._current_user_id()

		result.stations = await self.store.upsert_stations(await self.api.list_stations())

		since = _parse_time(await self.store.get_metadata(LAST_PULL_KEY)) or FIRST_PULL_SINCE
		pending = await self.api.pending(since)

		result.readings.downloaded = await self.store.upsert_remote_readings(pending.readings, user_id)
		result.faults.downloaded = await self.store.upsert_remote_faults(pending.faults, user_id)

		await self.api.mark_synced([reading.id for reading in pending.readings], "readings")
		await self.store.set_metadata(LAST_PULL_KEY, pending.server_time.isoformat())

	# ---------------------------------------------------------------
	# Status and auto-sync
	# ---------------------------------------------------------------

	async def get_sync_status(self) -> SyncStatus:
		counts = await self.store.count_unsynced()
		if self.last_sync_at is None:
			self.last_sync_at = _parse_time(await self.store.get_metadata(LAST_SYNC_KEY))
		return SyncStatus(
			online=self.monitor.is_online(),
			state=self.state,
			unsynced_readings=counts["readings"],
			unsynced_faults=counts["faults"],
			last_sync_at=self.last_sync_at,
		)

	def enable_auto_sync(self):
		if self._unsubscribe is None:
			self._unsubscribe = self.monitor.subscribe(self._on_connectivity_change)

	def disable_auto_sync(self):
		if self._unsubscribe is not None:
			self._unsubscribe()
			self._unsubscribe = None

	async def _on_connectivity_change(self, online: bool):
		if not online:
			return
		counts = await self.store.count_unsynced()
		if not any(counts.values()):
			return
		logger.info(f"Back online with {counts['readings']} readings and {counts['faults']} faults pending")
		try:
			await self.sync_all()
		except (SyncInProgressError, NoConnectivityError) as e:
			logger.info(f"Auto-sync skipped: {e}")
