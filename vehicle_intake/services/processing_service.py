# vehicle_intake/services/processing_service.py
"""
Vehicle group processor: runs a validated batch through the pipeline.

Groups and vehicles are handled one by one in submission order. Each vehicle
is persisted as an IncomingVehicle first, then either turned into an automatic
order (known model with an automation rule) or handed to the homologation
reconciler. A failing vehicle is rolled back, recorded and skipped; its
siblings carry on.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from vehicle_intake.exceptions import HomologationError
from vehicle_intake.models.enums import UsageType
from vehicle_intake.models.incoming_vehicle import IncomingVehicle
from vehicle_intake.schemas.submission import VehicleGroupSubmission, VehicleLineItem
from vehicle_intake.services.audit_service import log_action
from vehicle_intake.services.automation_service import find_automation_rule
from vehicle_intake.services.catalog_service import find_fulfilled_vehicle
from vehicle_intake.services.homologation_service import reconcile_homologation_cards
from vehicle_intake.services.order_number_service import generate_order_number
from vehicle_intake.services.order_service import add_accessories, create_automatic_order
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)

STATUS_ORDER_CREATED = "order_created"
STATUS_HOMOLOGATION_PENDING = "homologation_pending"
STATUS_ERROR = "error"


@dataclass
class VehicleResult:
    vehicle: str
    quantity: int
    incoming_vehicle_id: Optional[int] = None
    status: str = STATUS_ERROR
    order_number: Optional[str] = None
    order_id: Optional[int] = None
    homologation_id: Optional[int] = None
    homologation_created: bool = False
    homologations_created: int = 0
    processing_notes: Optional[str] = None
    error: Optional[str] = None


@dataclass
class GroupResult:
    group_index: int
    company_name: str
    usage_type: str
    total_vehicles: int
    vehicles_processed: List[VehicleResult] = field(default_factory=list)
    orders_created: int = 0
    homologations_created: int = 0
    errors: int = 0
    first_order_id: Optional[int] = None
    first_card_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "group_index": self.group_index,
            "company_name": self.company_name,
            "usage_type": self.usage_type,
            "total_vehicles": self.total_vehicles,
            "vehicles_processed": [asdict(v) for v in self.vehicles_processed],
            "processing_summary": {
                "orders_created": self.orders_created,
                "homologations_created": self.homologations_created,
                "errors": self.errors,
            },
        }


def _build_record(group: VehicleGroupSubmission, item: VehicleLineItem, usage_type: str) -> IncomingVehicle:
    address = group.address
    return IncomingVehicle(
        vehicle=item.vehicle,
        brand=item.brand,
        year=item.year,
        quantity=item.quantity,
        usage_type=usage_type,
        company_name=group.company_name,
        cpf=group.cpf,
        phone=group.phone,
        sale_summary_id=group.sale_summary_id,
        pending_contract_id=group.pending_contract_id,
        address_city=address.city if address else None,
        address_district=address.district if address else None,
        address_street=address.street if address else None,
        address_number=address.number if address else None,
        address_zip_code=address.zip_code if address else None,
        address_complement=address.complement if address else None,
        received_at=datetime.utcnow(),
        processed=False,
        kickoff_completed=False,
    )


def _record_failure(db, record: IncomingVehicle, message: str):
    """Leave the error on the record. processed stays False."""
    try:
        record.processing_notes = f"Error: {message}"
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[INTAKE] Could not store failure on incoming vehicle {record.id}: {e}")


async def _process_vehicle(ctx, group: VehicleGroupSubmission, item: VehicleLineItem,
                           group_result: GroupResult) -> VehicleResult:
    db = ctx.db
    result = VehicleResult(vehicle=f"{item.brand} {item.vehicle}", quantity=item.quantity)

    record = _build_record(group, item, group_result.usage_type)
    try:
        db.add(record)
        db.commit()
        db.refresh(record)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[INTAKE][{ctx.request_id}] Could not persist {result.vehicle}: {e}", exc_info=True)
        result.error = f"Could not store incoming vehicle: {e}"
        return result
    result.incoming_vehicle_id = record.id

    if item.accessories:
        try:
            add_accessories(db, item.accessories, company_name=group.company_name,
                            usage_type=record.usage_type, incoming_vehicle_id=record.id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[INTAKE][{ctx.request_id}] Accessories for incoming {record.id} not stored: {e}")
            await log_action(db, "vehicle_accessories_failed", "incoming_vehicle", record.id, {
                "request_id": ctx.request_id,
                "company_name": group.company_name,
                "accessories": [a.model_dump() for a in item.accessories],
                "error": str(e),
            })

    try:
        match = find_fulfilled_vehicle(db, item.brand, item.vehicle)
        rule = find_automation_rule(db, item.brand, item.vehicle, item.year) if match else None

        if match is not None and rule is not None:
            group_accessories = group.accessories if group_result.first_order_id is None else ()
            order_number = await generate_order_number(ctx)
            order = await create_automatic_order(ctx, record, rule, order_number,
                                                 group.company_name, accessories=group_accessories)
            record.processed = True
            record.created_order_id = order.id
            record.processing_notes = (
                f"Automatic order {order.order_number} created with rule {rule.id} "
                f"({rule.tracker_model} / {rule.configuration})"
            )
            db.commit()

            result.status = STATUS_ORDER_CREATED
            result.order_number = order.order_number
            result.order_id = order.id
            result.processing_notes = record.processing_notes
            if group_result.first_order_id is None:
                group_result.first_order_id = order.id
            return result

        if match is not None:
            route_note = "Model previously fulfilled but no automation rule exists; sent to homologation"
        else:
            route_note = "No fulfilled order for this brand/model; sent to homologation"

        outcome = await reconcile_homologation_cards(ctx, record, company_name=group.company_name)
        if not outcome.linked:
            raise HomologationError("; ".join(outcome.errors), errors=outcome.errors)

        notes = f"{route_note}. Linked cards {outcome.card_ids}, status {outcome.status}"
        if outcome.errors:
            notes += f". Partial failures: {'; '.join(outcome.errors)}"
        record.processing_notes = notes
        db.commit()

        result.status = STATUS_HOMOLOGATION_PENDING
        result.homologation_id = outcome.primary_id
        result.homologation_created = outcome.created_count > 0
        result.homologations_created = outcome.created_count
        result.processing_notes = notes
        if group_result.first_card_id is None:
            group_result.first_card_id = outcome.primary_id
        return result

    except Exception as e:
        db.rollback()
        logger.error(f"[INTAKE][{ctx.request_id}] {result.vehicle} (incoming {record.id}) failed: {e}",
                     exc_info=True)
        result.status = STATUS_ERROR
        result.error = str(e)
        _record_failure(db, record, str(e))
        await log_action(db, "vehicle_processing_failed", "incoming_vehicle", record.id, {
            "request_id": ctx.request_id,
            "company_name": group.company_name,
            "brand": item.brand,
            "model": item.vehicle,
            "error": str(e),
        })
        return result


async def _attach_group_accessories(ctx, group: VehicleGroupSubmission, group_result: GroupResult):
    """Group accessories not already placed on an order go to the first homologation card."""
    if not group.accessories or group_result.first_order_id is not None:
        return
    db = ctx.db
    try:
        add_accessories(db, group.accessories, company_name=group.company_name,
                        usage_type=group_result.usage_type,
                        homologation_card_id=group_result.first_card_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[INTAKE][{ctx.request_id}] Group {group_result.group_index} accessories not stored: {e}")
        await log_action(db, "group_accessories_failed", "vehicle_group", group_result.group_index, {
            "request_id": ctx.request_id,
            "company_name": group.company_name,
            "error": str(e),
        })


async def process_vehicle_groups(ctx, groups: List[VehicleGroupSubmission]) -> dict:
    """Process every group and vehicle; returns the response envelope."""
    group_results: List[GroupResult] = []

    for i, group in enumerate(groups):
        usage = UsageType.parse(group.usage_type)
        if usage is UsageType.OUTRO:
            logger.warning(f"[INTAKE][{ctx.request_id}] Unknown usage type {group.usage_type!r} in group {i}")

        group_result = GroupResult(
            group_index=i,
            company_name=group.company_name,
            usage_type=usage.value,
            total_vehicles=len(group.vehicles),
        )
        logger.info(f"[INTAKE][{ctx.request_id}] Group {i}: {group.company_name} ({usage.value}), "
                    f"{len(group.vehicles)} vehicle line(s)")

        for item in group.vehicles:
            vehicle_result = await _process_vehicle(ctx, group, item, group_result)
            group_result.vehicles_processed.append(vehicle_result)
            if vehicle_result.status == STATUS_ORDER_CREATED:
                group_result.orders_created += 1
            elif vehicle_result.status == STATUS_HOMOLOGATION_PENDING:
                group_result.homologations_created += vehicle_result.homologations_created
            else:
                group_result.errors += 1

        await _attach_group_accessories(ctx, group, group_result)
        group_results.append(group_result)

    summary = {
        "orders_created": sum(g.orders_created for g in group_results),
        "homologations_created": sum(g.homologations_created for g in group_results),
        "errors": sum(g.errors for g in group_results),
    }
    total_vehicles = sum(g.total_vehicles for g in group_results)
    message = f"Processed {total_vehicles} vehicle(s) in {len(group_results)} group(s)"
    if summary["errors"]:
        message += f" with {summary['errors']} error(s)"
    logger.info(f"[INTAKE][{ctx.request_id}] {message} | {summary}")

    return {
        "success": True,
        "message": message,
        "request_id": ctx.request_id,
        "total_groups": len(group_results),
        "total_vehicles": total_vehicles,
        "processing_summary": summary,
        "processed_groups": [g.to_dict() for g in group_results],
    }
