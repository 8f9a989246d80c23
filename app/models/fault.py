import enum

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel


class FaultPriority(str, enum.Enum):
	LOW = "low"
	MEDIUM = "medium"
	HIGH = "high"
	CRITICAL = "critical"


class FaultStatus(str, enum.Enum):
	OPEN = "open"
	ASSIGNED = "assigned"
	IN_PROGRESS = "in_progress"
	RESOLVED = "resolved"
	CLOSED = "closed"


# Workflow states still waiting on someone
UNRESOLVED_STATUSES = (FaultStatus.OPEN.value, FaultStatus.ASSIGNED.value, FaultStatus.IN_PROGRESS.value)


class Fault(Base, BaseModel):
	__tablename__ = "faults"

	station_id = Column(Uuid(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False)
	reported_by = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	assigned_to = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"))
	title = Column(String(255), nullable=False)
	title_ar = Column(String(255), nullable=False)
	description = Column(Text, nullable=False)
	description_ar = Column(Text, nullable=False)
	priority = Column(String(20), nullable=False, default=FaultPriority.MEDIUM.value)
	status = Column(String(20), nullable=False, default=FaultStatus.OPEN.value, index=True)
	latitude = Column(Float)
	longitude = Column(Float)
	photo_url = Column(String(500))
	resolution_notes = Column(Text)
	resolved_at = Column(DateTime(timezone=True))
	client_ref = Column(String(255))

	# Relationships
	station = relationship("Station", back_populates="faults")

	__table_args__ = (
		UniqueConstraint("reported_by", "client_ref", name="unique_reporter_client_ref"),
	)
