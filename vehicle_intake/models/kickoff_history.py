# vehicle_intake/models/kickoff_history.py
"""Kickoff history: snapshot of the vehicles confirmed at each approved kickoff."""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from vehicle_intake.database import Base


class KickoffHistory(Base):
    __tablename__ = "kickoff_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sale_summary_id = Column(Integer, nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    total_vehicles = Column(Integer, nullable=False, default=0)
    vehicles_data = Column(JSON)     # [{"id", "brand", "vehicle", "year", "quantity"}, ...]
    approved_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<KickoffHistory {self.id} sale={self.sale_summary_id} vehicles={self.total_vehicles}>"
