from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid

from app.database import Base
from app.models.base import BaseModel, utcnow


class SyncLog(Base, BaseModel):
	"""Audit trail of records applied through the sync endpoint"""
	__tablename__ = "sync_logs"

	user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	sync_type = Column(String(50), nullable=False, default="upload")
	record_id = Column(Uuid(as_uuid=True), nullable=False)
	record_type = Column(String(50), nullable=False)
	action = Column(String(20), nullable=False)
	synced_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
