# vehicle_intake/services/order_service.py
"""
Automatic order creator.

The header is committed on its own so a unique violation on order_number can
be detected and retried with a fresh number. Vehicle, tracker and accessory
lines follow in a second commit; a failure there leaves the header behind,
which find_orders_missing_lines() reports.
"""

from datetime import datetime
from typing import Iterable, List

from sqlalchemy import exists
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from vehicle_intake.exceptions import OrderCreationError, OrderNumberCollision
from vehicle_intake.models.accessory import Accessory
from vehicle_intake.models.order import Order, OrderTracker, OrderVehicle
from vehicle_intake.services.order_number_service import generate_order_number
from vehicle_intake.utils.db_errors import describe_db_error, is_unique_violation
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)


def add_accessories(db: Session, accessories: Iterable, *, company_name=None, usage_type=None,
                    order_id=None, incoming_vehicle_id=None, homologation_card_id=None) -> int:
    """Stage accessory rows (caller commits). Returns how many were added."""
    count = 0
    now = datetime.utcnow()
    for item in accessories or ():
        db.add(Accessory(
            order_id=order_id,
            incoming_vehicle_id=incoming_vehicle_id,
            homologation_card_id=homologation_card_id,
            company_name=company_name,
            usage_type=usage_type,
            accessory_name=item.accessory_name,
            quantity=item.quantity,
            received_at=now,
        ))
        count += 1
    return count


async def _insert_order(ctx, vehicle, rule, order_number, company_name, accessories) -> Order:
    db = ctx.db
    order = Order(
        order_number=order_number,
        company_name=company_name,
        configuration=rule.configuration,
        status=ctx.settings.DEFAULT_ORDER_STATUS,
        is_automatic=True,
        created_at=datetime.utcnow(),
    )
    db.add(order)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if is_unique_violation(e):
            logger.warning(f"[ORDER] {order_number} already taken")
            raise OrderNumberCollision(order_number) from e
        raise
    db.refresh(order)

    db.add(OrderVehicle(
        order_id=order.id,
        brand=vehicle.brand,
        model=vehicle.vehicle,
        year=vehicle.year,
        quantity=vehicle.quantity,
    ))
    db.add(OrderTracker(order_id=order.id, model=rule.tracker_model, quantity=vehicle.quantity))
    add_accessories(db, accessories, company_name=company_name,
                    usage_type=vehicle.usage_type, order_id=order.id)
    db.commit()
    return order


async def create_automatic_order(ctx, vehicle, rule, order_number: str, company_name: str,
                                 accessories: Iterable = ()) -> Order:
    """
    Create header + lines for an incoming vehicle that matched the catalog and a rule.
    Regenerates the number and retries on collision; raises OrderCreationError otherwise.
    """
    current = {"number": order_number}
    accessories = list(accessories or ())

    async def attempt():
        return await _insert_order(ctx, vehicle, rule, current["number"], company_name, accessories)

    async def regenerate(attempt_no, exc):
        current["number"] = await generate_order_number(ctx)
        logger.info(f"[ORDER] Retry {attempt_no} with new number {current['number']}")

    policy = ctx.retry_policy()
    try:
        order = await policy.run(attempt, on_retry=regenerate)
    except OrderNumberCollision as e:
        raise OrderCreationError(
            f"Could not allocate a unique order number after {policy.max_attempts} attempts",
            order_number=e.order_number,
        ) from e
    except SQLAlchemyError as e:
        ctx.db.rollback()
        code, message = describe_db_error(e)
        raise OrderCreationError(
            f"Order {current['number']} failed{f' [{code}]' if code else ''}: {message}",
            order_number=current["number"],
        ) from e

    logger.info(
        f"[ORDER] Created {order.order_number} for {company_name}: "
        f"{vehicle.brand} {vehicle.vehicle} x{vehicle.quantity} → {rule.tracker_model}"
    )
    return order


def find_orders_missing_lines(db: Session) -> List[Order]:
    """Automatic order headers without a vehicle or tracker line. Detection only."""
    has_vehicle = exists().where(OrderVehicle.order_id == Order.id)
    has_tracker = exists().where(OrderTracker.order_id == Order.id)
    return (
        db.query(Order)
        .filter(Order.is_automatic.is_(True), ~(has_vehicle & has_tracker))
        .order_by(Order.id)
        .all()
    )
