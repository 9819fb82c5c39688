"""
User database model.

Riders and drivers as provided by the identity provider.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func
from ridepool.app.db.session import Base
from ridepool.app.models.enums import UserRole


class User(Base):
    """
    User model.

    The driver's row doubles as the per-driver lock for wallet and
    rating-profile updates.
    """
    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    role = Column(Enum(UserRole), default=UserRole.RIDER, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Drivers only
    car_model = Column(String(255), nullable=True)
    car_plate = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
