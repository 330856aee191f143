# vehicle_intake/models/incoming_vehicle.py
"""
Incoming vehicles table: one row per vehicle line submitted by the sales system.
Rows are never deleted; processed flips to True only together with its linkage.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text
from vehicle_intake.database import Base


class IncomingVehicle(Base):
    __tablename__ = "incoming_vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle = Column(String(200), nullable=False)
    brand = Column(String(100), nullable=False)
    year = Column(Integer)
    quantity = Column(Integer, nullable=False, default=1)
    usage_type = Column(String(50), nullable=False)
    company_name = Column(String(255), nullable=False, index=True)

    # Sales-system context
    cpf = Column(String(20))
    phone = Column(String(40))
    sale_summary_id = Column(Integer, index=True)
    pending_contract_id = Column(Integer)
    address_city = Column(String(120))
    address_district = Column(String(120))
    address_street = Column(String(255))
    address_number = Column(String(20))
    address_zip_code = Column(String(20))
    address_complement = Column(String(255))

    received_at = Column(DateTime, nullable=False, index=True)
    processed = Column(Boolean, nullable=False, default=False)
    created_order_id = Column(Integer, index=True)
    created_homologation_id = Column(Integer, index=True)
    homologation_status = Column(String(50))
    kickoff_completed = Column(Boolean, nullable=False, default=False)
    processing_notes = Column(Text)

    def __repr__(self):
        return f"<IncomingVehicle {self.id} {self.brand} {self.vehicle} x{self.quantity} processed={self.processed}>"
