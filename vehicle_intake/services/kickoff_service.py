# vehicle_intake/services/kickoff_service.py
"""
Kickoff batch reconciler.

Once a sale's kickoff is approved, every vehicle in it must have one
homologation card per purchased unit. This re-runs the homologation
reconciler over the kickoff's vehicles, records every failure in the action
log, and reports what happened. check_kickoff_integrity() finds kickoffs that
still fall short so they can be reprocessed.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vehicle_intake.models.enums import CardStatus
from vehicle_intake.models.incoming_vehicle import IncomingVehicle
from vehicle_intake.models.kickoff_history import KickoffHistory
from vehicle_intake.services.audit_service import log_action
from vehicle_intake.services.homologation_service import (
    SOURCE_KICKOFF,
    collect_linked_cards,
    reconcile_homologation_cards,
)
from vehicle_intake.utils.db_errors import describe_db_error
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class KickoffFailure:
    id: int
    brand: str
    model: str
    error: str


@dataclass
class KickoffResult:
    success: bool = True
    processed_count: int = 0
    homologations_created: int = 0
    already_homologated_count: int = 0
    errors: List[str] = field(default_factory=list)
    failures: List[KickoffFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class OrphanKickoff:
    sale_summary_id: int
    company_name: Optional[str]
    approved_at: Optional[datetime]
    total_vehicles: int
    vehicles_without_cards: List[dict] = field(default_factory=list)


def latest_kickoff(db: Session, sale_summary_id: int) -> Optional[KickoffHistory]:
    return (
        db.query(KickoffHistory)
        .filter(KickoffHistory.sale_summary_id == sale_summary_id)
        .order_by(KickoffHistory.approved_at.desc(), KickoffHistory.id.desc())
        .first()
    )


def _snapshot_ids(history: Optional[KickoffHistory]) -> List[int]:
    ids = []
    for entry in (history.vehicles_data or []) if history else []:
        if isinstance(entry, dict) and entry.get("id") is not None:
            try:
                ids.append(int(entry["id"]))
            except (TypeError, ValueError):
                logger.warning(f"[KICKOFF] Ignoring snapshot entry with bad id: {entry}")
    return ids


def load_kickoff_vehicles(db: Session, sale_summary_id: int,
                          validated_vehicle_ids: Optional[Iterable[int]] = None) -> List[IncomingVehicle]:
    """Vehicles named by the latest kickoff snapshot, else every vehicle of the sale."""
    ids = _snapshot_ids(latest_kickoff(db, sale_summary_id))
    q = db.query(IncomingVehicle)
    if ids:
        q = q.filter(IncomingVehicle.id.in_(ids))
    else:
        q = q.filter(IncomingVehicle.sale_summary_id == sale_summary_id)
    if validated_vehicle_ids is not None:
        q = q.filter(IncomingVehicle.id.in_(list(validated_vehicle_ids)))
    return q.order_by(IncomingVehicle.id).all()


async def process_kickoff_vehicles(ctx, sale_summary_id: int,
                                   validated_vehicle_ids: Optional[Iterable[int]] = None) -> KickoffResult:
    """Ensure one card per purchased unit for every vehicle of an approved kickoff."""
    db = ctx.db
    result = KickoffResult()
    tag = f"[KICKOFF][{ctx.request_id}] sale={sale_summary_id}"

    try:
        history = latest_kickoff(db, sale_summary_id)
        company_name = history.company_name if history else None
        vehicles = load_kickoff_vehicles(db, sale_summary_id, validated_vehicle_ids)
        logger.info(f"{tag} reconciling {len(vehicles)} vehicle(s)")

        for vehicle in vehicles:
            vehicle_id, brand, model = vehicle.id, vehicle.brand, vehicle.vehicle
            if vehicle.created_order_id:
                # Fulfilled by an automatic order; no homologation needed
                logger.info(f"{tag} vehicle={vehicle_id} has order {vehicle.created_order_id}, skipping cards")
                vehicle.kickoff_completed = True
                db.commit()
                continue
            try:
                outcome = await reconcile_homologation_cards(ctx, vehicle, source=SOURCE_KICKOFF,
                                                             company_name=company_name)
                vehicle.kickoff_completed = True
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                code, message = describe_db_error(e)
                error = f"{code}: {message}" if code else message
                result.errors.append(f"Vehicle {vehicle_id} ({brand} {model}): {error}")
                result.failures.append(KickoffFailure(id=vehicle_id, brand=brand, model=model, error=error))
                await log_action(db, "kickoff_vehicle_failed", "incoming_vehicle", vehicle_id, {
                    "sale_summary_id": sale_summary_id, "vehicle_id": vehicle_id,
                    "brand": brand, "model": model, "error_code": code, "error_message": message,
                    "request_id": ctx.request_id,
                })
                continue

            for failure in outcome.failures:
                error = f"{failure.code}: {failure.message}" if failure.code else failure.message
                result.failures.append(KickoffFailure(id=vehicle_id, brand=brand, model=model, error=error))
                await log_action(db, "kickoff_card_creation_failed", "incoming_vehicle", vehicle_id, {
                    "sale_summary_id": sale_summary_id, "vehicle_id": vehicle_id,
                    "brand": brand, "model": model, "error_code": failure.code,
                    "error_message": failure.message, "request_id": ctx.request_id,
                })
            result.errors.extend(f"Vehicle {vehicle_id} ({brand} {model}): {err}" for err in outcome.errors)

            if outcome.linked:
                result.processed_count += 1
                result.homologations_created += outcome.created_count
                if CardStatus.parse(outcome.status).is_terminal:
                    result.already_homologated_count += 1

    except Exception as e:
        db.rollback()
        logger.error(f"{tag} aborted: {e}", exc_info=True)
        result.errors.append(f"Kickoff processing failed: {e}")
        await log_action(db, "kickoff_processing_failed", "sale_summary", sale_summary_id, {
            "error": str(e), "request_id": ctx.request_id,
        })

    result.success = not result.errors
    logger.info(
        f"{tag} done: processed={result.processed_count} created={result.homologations_created} "
        f"already_homologated={result.already_homologated_count} errors={len(result.errors)}"
    )
    return result


def check_kickoff_integrity(db: Session) -> List[OrphanKickoff]:
    """Kickoffs whose completed vehicles have fewer linked cards than purchased units."""
    vehicles = (
        db.query(IncomingVehicle)
        .filter(
            IncomingVehicle.kickoff_completed.is_(True),
            IncomingVehicle.created_order_id.is_(None),
        )
        .order_by(IncomingVehicle.id)
        .all()
    )

    orphans: Dict[int, OrphanKickoff] = {}
    for v in vehicles:
        expected = max(v.quantity or 0, 1)
        found = len(collect_linked_cards(db, v)[0])
        if found >= expected:
            continue
        sale_id = v.sale_summary_id
        if sale_id not in orphans:
            history = latest_kickoff(db, sale_id) if sale_id is not None else None
            orphans[sale_id] = OrphanKickoff(
                sale_summary_id=sale_id,
                company_name=history.company_name if history else v.company_name,
                approved_at=history.approved_at if history else None,
                total_vehicles=history.total_vehicles if history else 0,
            )
        orphans[sale_id].vehicles_without_cards.append({
            "id": v.id, "brand": v.brand, "model": v.vehicle, "year": v.year,
            "quantity": expected, "linked_cards": found,
        })

    if orphans:
        logger.warning(f"[KICKOFF] {len(orphans)} kickoff(s) with missing homologation cards")
    return list(orphans.values())
