import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.database import get_session
from app.models.user import User, UserRole
from app.monitoring.metrics import sync_operations
from app.schemas.sync import (
	MarkSyncedData,
	MarkSyncedRequest,
	MarkSyncedResponse,
	PendingResponse,
	SyncUploadRequest,
	SyncUploadResponse,
)
from app.services.sync_service import SyncService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/pending", response_model=PendingResponse)
async def get_pending(
		since: Optional[datetime] = Query(None, description="Also return records changed after this time"),
		session: AsyncSession = Depends(get_session),
		current_user: User = Depends(get_current_user)
):
	"""Records the device may not hold yet"""
	sync_service = SyncService(session)
	data = await sync_service.get_pending(current_user.id, since)

	sync_operations.labels(operation="pending", status="success").inc()
	logger.info(
		f"Pending pull for {current_user.email}: "
		f"{len(data.readings)} readings, {len(data.faults)} faults (since={since})"
	)
	return PendingResponse(data=data)


@router.post("/upload", response_model=SyncUploadResponse)
async def upload(
		batch: SyncUploadRequest,
		session: AsyncSession = Depends(get_session),
		current_user: User = Depends(get_current_user)
):
	"""Apply a batch of records created or edited offline"""
	# Per-record rollbacks expire ORM state, read what we need up front
	operator_id = current_user.id
	email = current_user.email
	is_admin = current_user.role == UserRole.ADMIN

	sync_service = SyncService(session)
	data = await sync_service.apply_batch(batch, operator_id, is_admin=is_admin)

	failed = len(data.readings.errors) + len(data.faults.errors)
	sync_operations.labels(operation="upload", status="partial" if failed else "success").inc()
	logger.info(
		f"User {email} synced data: "
		f"{data.readings.created} readings created, {data.readings.updated} updated, "
		f"{data.faults.created} faults created, {data.faults.updated} updated, {failed} failed"
	)
	return SyncUploadResponse(data=data)


@router.post("/mark-synced", response_model=MarkSyncedResponse)
async def mark_synced(
		request: MarkSyncedRequest,
		session: AsyncSession = Depends(get_session),
		current_user: User = Depends(get_current_user)
):
	"""Acknowledge records the device has stored"""
	email = current_user.email
	sync_service = SyncService(session)
	count = await sync_service.mark_synced(current_user.id, request.ids, request.type)

	sync_operations.labels(operation="mark_synced", status="success").inc()
	logger.info(f"User {email} marked {count} {request.type} as synced")
	return MarkSyncedResponse(
		message=f"{count} {request.type} marked as synced",
		data=MarkSyncedData(count=count)
	)
