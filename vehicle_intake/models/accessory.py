# vehicle_intake/models/accessory.py
"""
Accessories received with a submission.
Attached to an automatic order when one exists, otherwise to the incoming
vehicle and/or the first homologation card of its group.
"""

from sqlalchemy import Column, Integer, String, DateTime
from vehicle_intake.database import Base


class Accessory(Base):
    __tablename__ = "accessories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, index=True)
    incoming_vehicle_id = Column(Integer, index=True)
    homologation_card_id = Column(Integer, index=True)
    company_name = Column(String(255))
    usage_type = Column(String(50))
    accessory_name = Column(String(200), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    received_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Accessory {self.accessory_name} x{self.quantity}>"
