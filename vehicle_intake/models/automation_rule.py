# vehicle_intake/models/automation_rule.py
"""
Automation rules: map an approved vehicle signature to the tracker kit and
configuration used for automatic orders. Brand/model are stored uppercase;
model_year is a string and may be empty for year-agnostic rules.
"""

from sqlalchemy import Column, Integer, String
from vehicle_intake.database import Base


class AutomationRule(Base):
    __tablename__ = "automation_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    brand = Column(String(100), nullable=False, index=True)
    model = Column(String(200), nullable=False, index=True)
    model_year = Column(String(10))
    tracker_model = Column(String(200), nullable=False)
    configuration = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<AutomationRule {self.brand} {self.model} {self.model_year or '*'} → {self.tracker_model}>"
