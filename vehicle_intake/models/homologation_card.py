# vehicle_intake/models/homologation_card.py
"""
Homologation cards: one per purchased unit awaiting (or past) approval.
Cards are never deleted by the pipeline and their status is never rewritten.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from vehicle_intake.database import Base


class HomologationCard(Base):
    __tablename__ = "homologation_cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    brand = Column(String(100), nullable=False, index=True)
    model = Column(String(200), nullable=False, index=True)
    year = Column(Integer)
    status = Column(String(50), nullable=False, default="homologar")
    incoming_vehicle_id = Column(Integer, index=True)
    configuration = Column(String(255))
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<HomologationCard {self.id} {self.brand} {self.model} {self.year} status={self.status}>"
