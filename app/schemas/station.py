from datetime import datetime
from typing import List, Optional
from uuid import UUID

from app.schemas.base import CamelModel


class StationResponse(CamelModel):
    id: UUID
    name: str
    name_ar: str
    location_name: str
    location_name_ar: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    address_ar: Optional[str] = None
    capacity_liters: Optional[int] = None
    status: str
    operator_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime


class StationListResponse(CamelModel):
    success: bool = True
    total: int
    data: List[StationResponse]
