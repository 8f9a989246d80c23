from sqlalchemy import Boolean, Column, Date, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel


class Reading(Base, BaseModel):
	__tablename__ = "daily_readings"

	station_id = Column(Uuid(as_uuid=True), ForeignKey("stations.id", ondelete="CASCADE"), nullable=False)
	operator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
	reading_date = Column(Date, nullable=False)
	ph_level = Column(Float)
	tds_level = Column(Integer)
	temperature = Column(Float)
	pressure = Column(Float)
	tank_level_percentage = Column(Integer)
	notes = Column(Text)
	notes_ar = Column(Text)
	is_synced = Column(Boolean, nullable=False, default=False, index=True)
	client_ref = Column(String(255))  # Device-local id, makes create redelivery idempotent

	# Relationships
	station = relationship("Station", back_populates="readings")
	operator = relationship("User", back_populates="readings")

	__table_args__ = (
		UniqueConstraint("station_id", "reading_date", name="unique_station_reading_date"),
		UniqueConstraint("operator_id", "client_ref", name="unique_operator_client_ref"),
	)
