"""
Route and pickup point database models.

Routes are fixed origin/destination pairs with a per-seat price.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, UniqueConstraint
from sqlalchemy.sql import func
from ridepool.app.db.session import Base


class Route(Base):
    """Route model."""
    __tablename__ = "routes"
    __table_args__ = (
        UniqueConstraint("origin", "destination", name="uq_route_origin_destination"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)

    # Price per seat
    price = Column(Numeric(12, 2), nullable=False)
    distance_km = Column(Numeric(10, 2), nullable=False)
    duration_mins = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<Route(id={self.id}, '{self.origin}' -> '{self.destination}', price={self.price})>"


class PickupPoint(Base):
    """Named stop along a route where riders can be collected."""
    __tablename__ = "pickup_points"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    route_id = Column(Integer, ForeignKey("routes.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    lat = Column(Numeric(10, 8), nullable=False)
    lng = Column(Numeric(11, 8), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<PickupPoint(id={self.id}, route={self.route_id}, name='{self.name}')>"
