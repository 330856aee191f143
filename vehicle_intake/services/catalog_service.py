# vehicle_intake/services/catalog_service.py
"""
Catalog matcher: has this brand/model been fulfilled before?
Looks at vehicle lines of existing orders. Case-insensitive, trimmed, exact.
"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from vehicle_intake.models.order import OrderVehicle


def normalize_key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def find_fulfilled_vehicle(db: Session, brand: str, model: str) -> Optional[OrderVehicle]:
    """First order vehicle line matching brand and model, or None."""
    return (
        db.query(OrderVehicle)
        .filter(
            func.lower(func.trim(OrderVehicle.brand)) == normalize_key(brand),
            func.lower(func.trim(OrderVehicle.model)) == normalize_key(model),
        )
        .order_by(OrderVehicle.id)
        .first()
    )
