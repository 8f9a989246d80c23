from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import AnyUrl, Field, field_validator

from app.config import settings
from app.schemas.base import CamelModel

FaultPriorityValue = Literal["low", "medium", "high", "critical"]
FaultStatusValue = Literal["open", "assigned", "in_progress", "resolved", "closed"]
SyncKind = Literal["readings", "faults"]
SyncAction = Literal["created", "updated"]


class ReadingSyncItem(CamelModel):
    """One reading in an upload batch. No id means create."""
    id: Optional[UUID] = None
    client_ref: Optional[str] = Field(None, max_length=255)
    station_id: UUID
    reading_date: date
    ph_level: Optional[float] = Field(None, ge=0, le=14)
    tds_level: Optional[int] = Field(None, ge=0)
    temperature: Optional[float] = None
    pressure: Optional[float] = Field(None, ge=0)
    tank_level_percentage: Optional[int] = Field(None, ge=0, le=100)
    notes: Optional[str] = None
    notes_ar: Optional[str] = None


class FaultSyncItem(CamelModel):
    """One fault in an upload batch. No id means create."""
    id: Optional[UUID] = None
    client_ref: Optional[str] = Field(None, max_length=255)
    station_id: UUID
    title: str = Field(..., min_length=5, max_length=255)
    title_ar: str = Field(..., min_length=5, max_length=255)
    description: str = Field(..., min_length=10)
    description_ar: str = Field(..., min_length=10)
    priority: FaultPriorityValue = "medium"
    status: Optional[FaultStatusValue] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    photo_url: Optional[AnyUrl] = None


class SyncUploadRequest(CamelModel):
    readings: List[ReadingSyncItem] = []
    faults: List[FaultSyncItem] = []

    @field_validator("readings", "faults")
    def check_batch_size(cls, v):
        if len(v) > settings.SYNC_MAX_BATCH_SIZE:
            raise ValueError(f"At most {settings.SYNC_MAX_BATCH_SIZE} records per kind in one batch")
        return v


class SyncItemResult(CamelModel):
    index: int
    id: UUID
    client_ref: Optional[str] = None
    action: SyncAction


class SyncItemError(CamelModel):
    index: int
    id: Optional[UUID] = None
    client_ref: Optional[str] = None
    error: str


class KindSyncResult(CamelModel):
    created: int = 0
    updated: int = 0
    errors: List[SyncItemError] = []
    results: List[SyncItemResult] = []


class SyncUploadData(CamelModel):
    readings: KindSyncResult
    faults: KindSyncResult


class SyncUploadResponse(CamelModel):
    success: bool = True
    message: str = "Sync completed"
    data: SyncUploadData


class PendingReading(CamelModel):
    id: UUID
    station_id: UUID
    reading_date: date
    ph_level: Optional[float] = None
    tds_level: Optional[int] = None
    temperature: Optional[float] = None
    pressure: Optional[float] = None
    tank_level_percentage: Optional[int] = None
    notes: Optional[str] = None
    notes_ar: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class PendingFault(CamelModel):
    id: UUID
    station_id: UUID
    assigned_to: Optional[UUID] = None
    title: str
    title_ar: str
    description: str
    description_ar: str
    priority: str
    status: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    photo_url: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PendingData(CamelModel):
    readings: List[PendingReading]
    faults: List[PendingFault]
    server_time: datetime


class PendingResponse(CamelModel):
    success: bool = True
    data: PendingData


class MarkSyncedRequest(CamelModel):
    ids: List[UUID]
    type: SyncKind


class MarkSyncedData(CamelModel):
    count: int


class MarkSyncedResponse(CamelModel):
    success: bool = True
    message: str
    data: MarkSyncedData
