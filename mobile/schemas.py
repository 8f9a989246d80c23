"""Wire models as the device sees them.

Outgoing payloads repeat the server's constraints so a record the server
would reject is caught before it can fail a whole batch.
"""
from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import AnyUrl, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
	model_config = ConfigDict(
		alias_generator=to_camel,
		populate_by_name=True,
		from_attributes=True,
	)

	def to_wire(self) -> dict:
		return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ReadingPayload(WireModel):
	id: Optional[UUID] = None
	client_ref: str
	station_id: UUID
	reading_date: date
	ph_level: Optional[float] = Field(None, ge=0, le=14)
	tds_level: Optional[int] = Field(None, ge=0)
	temperature: Optional[float] = None
	pressure: Optional[float] = Field(None, ge=0)
	tank_level_percentage: Optional[int] = Field(None, ge=0, le=100)
	notes: Optional[str] = None
	notes_ar: Optional[str] = None


class FaultPayload(WireModel):
	id: Optional[UUID] = None
	client_ref: str
	station_id: UUID
	title: str = Field(..., min_length=5, max_length=255)
	title_ar: str = Field(..., min_length=5, max_length=255)
	description: str = Field(..., min_length=10)
	description_ar: str = Field(..., min_length=10)
	priority: Literal["low", "medium", "high", "critical"] = "medium"
	status: Optional[Literal["open", "assigned", "in_progress", "resolved", "closed"]] = None
	latitude: Optional[float] = Field(None, ge=-90, le=90)
	longitude: Optional[float] = Field(None, ge=-180, le=180)
	photo_url: Optional[AnyUrl] = None


class ItemResult(WireModel):
	index: int
	id: str
	client_ref: Optional[str] = None
	action: Literal["created", "updated"]


class ItemError(WireModel):
	index: int
	id: Optional[str] = None
	client_ref: Optional[str] = None
	error: str


class KindOutcome(WireModel):
	created: int = 0
	updated: int = 0
	errors: List[ItemError] = []
	results: List[ItemResult] = []


class UploadOutcome(WireModel):
	readings: KindOutcome = KindOutcome()
	faults: KindOutcome = KindOutcome()


class RemoteStation(WireModel):
	id: str
	name: str
	name_ar: str
	location_name: str
	location_name_ar: str
	latitude: float
	longitude: float
	address: Optional[str] = None
	address_ar: Optional[str] = None
	capacity_liters: Optional[int] = None
	status: str = "active"
	operator_id: Optional[str] = None


class RemoteReading(WireModel):
	id: str
	station_id: str
	reading_date: date
	ph_level: Optional[float] = None
	tds_level: Optional[int] = None
	temperature: Optional[float] = None
	pressure: Optional[float] = None
	tank_level_percentage: Optional[int] = None
	notes: Optional[str] = None
	notes_ar: Optional[str] = None


class RemoteFault(WireModel):
	id: str
	station_id: str
	assigned_to: Optional[str] = None
	title: str
	title_ar: str
	description: str
	description_ar: str
	priority: str = "medium"
	status: str = "open"
	latitude: Optional[float] = None
	longitude: Optional[float] = None
	photo_url: Optional[str] = None
	resolved_at: Optional[datetime] = None


class PendingPayload(WireModel):
	readings: List[RemoteReading] = []
	faults: List[RemoteFault] = []
	server_time: datetime
