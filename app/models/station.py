from sqlalchemy import Column, ForeignKey, Float, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel


class Station(Base, BaseModel):
	__tablename__ = "stations"

	name = Column(String(255), nullable=False)
	name_ar = Column(String(255), nullable=False)
	location_name = Column(String(255), nullable=False)
	location_name_ar = Column(String(255), nullable=False)
	latitude = Column(Float, nullable=False)
	longitude = Column(Float, nullable=False)
	address = Column(String(500))
	address_ar = Column(String(500))
	capacity_liters = Column(Integer)
	operator_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), index=True)
	status = Column(String(20), nullable=False, default="active", index=True)  # active, inactive, maintenance

	# Relationships
	operator = relationship("User", back_populates="stations")
	readings = relationship("Reading", back_populates="station", cascade="all, delete-orphan")
	faults = relationship("Fault", back_populates="station", cascade="all, delete-orphan")
