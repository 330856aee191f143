# vehicle_intake/services/order_number_service.py
"""
Automatic order numbers: AUTO-001, AUTO-002, ...

Primary source is the auto_order_number_seq database sequence. When the
backend has no such sequence the fallback scans for the numerically greatest
AUTO- number and increments it (retried with backoff); if even that keeps
failing a millisecond timestamp is used. Collisions on insert are handled by
the order creator, not here.
"""

import time
from typing import Optional

from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from vehicle_intake.models.order import Order
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)


def format_order_number(prefix: str, n: int) -> str:
    return f"{prefix}{n:03d}"


def parse_order_suffix(order_number: Optional[str], prefix: str) -> Optional[int]:
    if not order_number or not order_number.startswith(prefix):
        return None
    try:
        return int(order_number[len(prefix):])
    except ValueError:
        return None


def _next_from_sequence(ctx) -> Optional[int]:
    try:
        value = ctx.db.execute(
            text("SELECT nextval(:seq)"), {"seq": ctx.settings.AUTO_ORDER_SEQUENCE}
        ).scalar()
        return int(value)
    except SQLAlchemyError as e:
        ctx.db.rollback()
        logger.debug(f"[ORDER] Sequence {ctx.settings.AUTO_ORDER_SEQUENCE} unavailable: {e}")
        return None


async def _next_from_max(ctx) -> int:
    prefix = ctx.settings.AUTO_ORDER_PREFIX
    # Longest first so AUTO-1000 sorts above AUTO-999
    rows = (
        ctx.db.query(Order.order_number)
        .filter(Order.order_number.like(f"{prefix}%"))
        .order_by(func.length(Order.order_number).desc(), Order.order_number.desc())
        .limit(100)
        .all()
    )
    for (order_number,) in rows:
        suffix = parse_order_suffix(order_number, prefix)
        if suffix is not None:
            return suffix + 1
        logger.warning(f"[ORDER] Skipping unparseable order number {order_number!r}")
    return 1


async def generate_order_number(ctx) -> str:
    """Next AUTO- number. Never raises for storage errors."""
    prefix = ctx.settings.AUTO_ORDER_PREFIX

    n = _next_from_sequence(ctx)
    if n is not None:
        return format_order_number(prefix, n)

    policy = ctx.retry_policy(retry_on=lambda e: isinstance(e, SQLAlchemyError))
    try:
        n = await policy.run(_next_from_max, ctx)
    except SQLAlchemyError as e:
        ctx.db.rollback()
        fallback = f"{prefix}{int(time.time() * 1000)}"
        logger.error(f"[ORDER] Order number lookup failed, using timestamp {fallback}: {e}")
        return fallback
    return format_order_number(prefix, n)
