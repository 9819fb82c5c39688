"""
Driver profile database model.

Aggregate rating data shown to riders.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, ForeignKey, DateTime, JSON
from sqlalchemy.sql import func
from ridepool.app.db.session import Base


class DriverProfile(Base):
    """
    Driver Profile model.

    recent_ratings holds the newest ratings first, capped by
    settings.recent_ratings_cap.
    """
    __tablename__ = "driver_profiles"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)

    overall_rating = Column(Numeric(3, 2), default=Decimal("0.00"), nullable=False)
    total_ratings = Column(Integer, default=0, nullable=False)
    trips_completed = Column(Integer, default=0, nullable=False)
    badges = Column(JSON, default=list, nullable=False)
    recent_ratings = Column(JSON, default=list, nullable=False)

    join_date = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<DriverProfile(driver={self.driver_id}, rating={self.overall_rating}, count={self.total_ratings})>"
