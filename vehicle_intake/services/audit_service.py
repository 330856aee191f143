# vehicle_intake/services/audit_service.py
"""
Shared action-log service.
Used by the processor, the kickoff reconciler and the HTTP layer to leave a
durable trail of failures that operators need to act on.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vehicle_intake.models.action_log import ActionLog
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)


async def log_action(db: Session, action: str, entity_type: str,
                     entity_id=None, details: Optional[dict] = None) -> Optional[ActionLog]:
    """Persist an action-log row. Commits immediately; a failed write is logged, not raised."""
    entry = ActionLog(
        action=action,
        entity_type=entity_type,
        entity_id=None if entity_id is None else str(entity_id),
        details=details or {},
        created_at=datetime.utcnow(),
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[AUDIT] Could not record {action} for {entity_type}:{entity_id}: {e} | {details}")
        return None
    logger.warning(f"[AUDIT][{action.upper()}] {entity_type}:{entity_id} {details or ''}")
    return entry
