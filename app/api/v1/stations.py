import logging
from typing import Optional

from fastapi import APIRouter, Query, Depends
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.database import get_session
from app.models.station import Station
from app.models.user import User, UserRole
from app.schemas.station import StationResponse, StationListResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/", response_model=StationListResponse)
async def list_stations(
        skip: int = Query(0, ge=0),
        limit: int = Query(500, ge=1, le=1000),
        status: Optional[str] = None,
        session: AsyncSession = Depends(get_session),
        current_user: User = Depends(get_current_user)
):
    """Stations visible to the caller; operators only see their own"""
    query = select(Station)

    filters = []
    if status:
        filters.append(Station.status == status)
    if current_user.role != UserRole.ADMIN:
        filters.append(Station.operator_id == current_user.id)

    if filters:
        query = query.where(*filters)

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total = await session.scalar(count_query)

    query = query.offset(skip).limit(limit).order_by(Station.name)
    result = await session.execute(query)
    stations = result.scalars().all()

    return StationListResponse(
        total=total,
        data=[StationResponse.model_validate(s) for s in stations]
    )
