# vehicle_intake/services/automation_service.py
"""
Automation rule resolver.
Rules are stored with uppercase brand/model; a year-specific rule wins over
a year-agnostic one.
"""

from typing import Optional

from sqlalchemy.orm import Session

from vehicle_intake.models.automation_rule import AutomationRule
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)


def normalize_signature(value: Optional[str]) -> str:
    return (value or "").strip().upper()


def find_automation_rule(db: Session, brand: str, model: str,
                         year: Optional[int] = None) -> Optional[AutomationRule]:
    """Rule for brand/model (and year, when given), or None. A missing rule is not an error."""
    base = db.query(AutomationRule).filter(
        AutomationRule.brand == normalize_signature(brand),
        AutomationRule.model == normalize_signature(model),
    )

    if year is not None:
        rule = base.filter(AutomationRule.model_year == str(year)).order_by(AutomationRule.id).first()
        if rule:
            return rule

    rule = base.order_by(AutomationRule.id).first()
    if rule is None:
        logger.debug(f"[RULES] No automation rule for {brand} {model} {year or ''}".rstrip())
    return rule
