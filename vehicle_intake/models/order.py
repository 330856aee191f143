# vehicle_intake/models/order.py
"""
Orders and their lines: a header plus vehicle, tracker and accessory lines.
order_number is unique across the table; automatic ones carry the AUTO- prefix.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Sequence
from vehicle_intake.database import Base

# Counter behind AUTO-### numbers. Only emitted on backends with sequences.
auto_order_number_seq = Sequence("auto_order_number_seq", metadata=Base.metadata)


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(50), nullable=False, unique=True, index=True)
    company_name = Column(String(255), nullable=False)
    configuration = Column(String(255))
    status = Column(String(30), nullable=False, default="novos")
    is_automatic = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status} auto={self.is_automatic}>"


class OrderVehicle(Base):
    __tablename__ = "order_vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    brand = Column(String(100), nullable=False)
    model = Column(String(200), nullable=False)
    year = Column(Integer)
    quantity = Column(Integer, nullable=False, default=1)


class OrderTracker(Base):
    __tablename__ = "order_trackers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    model = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
