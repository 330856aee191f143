# vehicle_intake/models/action_log.py
"""
Action log: durable audit trail of pipeline failures and operator actions.
Written by audit_service; read by the (external) audit viewer.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from vehicle_intake.database import Base


class ActionLog(Base):
    __tablename__ = "action_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(100))
    details = Column(JSON)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<ActionLog {self.id} {self.action} {self.entity_type}:{self.entity_id}>"
