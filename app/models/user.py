import enum

from sqlalchemy import Column, String, Enum, Boolean
from sqlalchemy.orm import relationship

from app.database import Base
from app.models.base import BaseModel


class UserRole(str, enum.Enum):
	ADMIN = "admin"
	OPERATOR = "operator"


class User(Base, BaseModel):
	__tablename__ = "users"

	email = Column(String(255), unique=True, nullable=False, index=True)
	hashed_password = Column(String(255), nullable=False)
	first_name = Column(String(100), nullable=False)
	last_name = Column(String(100), nullable=False)
	phone = Column(String(20))
	role = Column(Enum(UserRole), nullable=False, default=UserRole.OPERATOR)
	is_active = Column(Boolean, default=True)

	# Relationships
	stations = relationship("Station", back_populates="operator")
	readings = relationship("Reading", back_populates="operator")
