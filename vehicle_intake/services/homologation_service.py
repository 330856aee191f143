# vehicle_intake/services/homologation_service.py
"""
Homologation card reconciler.

Guarantees that an incoming vehicle ends up linked to at least max(quantity, 1)
homologation cards, reusing what already exists:

  1. cards already pointing at the vehicle
  2. the card recorded in created_homologation_id
  3. the most recently updated card with the same brand/model/year
  4. newly created cards for whatever is still missing

New cards copy the status and configuration of the card found in step 3, so
an approved model stays approved. Existing cards are never deleted and their
status is never touched. Used by both the intake processor and the kickoff
reconciler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from vehicle_intake.models.enums import CardStatus, never_regress
from vehicle_intake.models.homologation_card import HomologationCard
from vehicle_intake.services.automation_service import normalize_signature
from vehicle_intake.utils.db_errors import describe_db_error
from vehicle_intake.utils.logger import get_logger

logger = get_logger(__name__)

SOURCE_INTAKE = "intake"
SOURCE_KICKOFF = "kickoff"


@dataclass
class CardFailure:
    code: Optional[str]
    message: str


@dataclass
class HomologationOutcome:
    card_ids: List[int] = field(default_factory=list)
    created_ids: List[int] = field(default_factory=list)
    status: Optional[str] = None
    inherited_from: Optional[int] = None
    errors: List[str] = field(default_factory=list)
    failures: List[CardFailure] = field(default_factory=list)

    @property
    def linked(self) -> bool:
        return bool(self.card_ids)

    @property
    def primary_id(self) -> Optional[int]:
        return self.card_ids[0] if self.card_ids else None

    @property
    def created_count(self) -> int:
        return len(self.created_ids)


def _signature_filter(query, brand: str, model: str, year: Optional[int]):
    query = query.filter(
        func.upper(func.trim(HomologationCard.brand)) == brand,
        func.upper(func.trim(HomologationCard.model)) == model,
    )
    if year is None:
        return query.filter(HomologationCard.year.is_(None))
    return query.filter(HomologationCard.year == year)


def find_card_by_value(db: Session, brand: str, model: str, year: Optional[int],
                       unlinked_only: bool = False, exclude_ids=()) -> Optional[HomologationCard]:
    """Most recently updated card for the signature."""
    q = _signature_filter(db.query(HomologationCard), normalize_signature(brand),
                          normalize_signature(model), year)
    if unlinked_only:
        q = q.filter(HomologationCard.incoming_vehicle_id.is_(None))
    if exclude_ids:
        q = q.filter(HomologationCard.id.notin_(list(exclude_ids)))
    return q.order_by(HomologationCard.updated_at.desc(), HomologationCard.id.desc()).first()


def collect_linked_cards(db: Session, vehicle) -> Tuple[List[HomologationCard], Optional[HomologationCard]]:
    """
    Cards that count towards `vehicle`'s quantity, primary first, plus the
    by-value card (if any). Read-only; the reconciler does the linking.
    """
    linked: List[HomologationCard] = (
        db.query(HomologationCard)
        .filter(HomologationCard.incoming_vehicle_id == vehicle.id)
        .order_by(HomologationCard.created_at, HomologationCard.id)
        .all()
    )

    # Recorded primary card goes first so the link stays stable across runs
    if vehicle.created_homologation_id:
        primary = next((c for c in linked if c.id == vehicle.created_homologation_id), None)
        if primary is None:
            primary = db.query(HomologationCard).filter(
                HomologationCard.id == vehicle.created_homologation_id).first()
        if primary is not None:
            linked = [primary] + [c for c in linked if c.id != primary.id]

    by_value = find_card_by_value(db, vehicle.brand, vehicle.vehicle, vehicle.year)
    if by_value is not None and all(c.id != by_value.id for c in linked):
        linked.append(by_value)
    return linked, by_value


def _insert_card(db: Session, vehicle, brand: str, model: str, status: str,
                 configuration: Optional[str], notes: str) -> HomologationCard:
    now = datetime.utcnow()
    card = HomologationCard(
        brand=brand,
        model=model,
        year=vehicle.year,
        status=status,
        incoming_vehicle_id=vehicle.id,
        configuration=configuration,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    db.add(card)
    db.commit()
    db.refresh(card)
    return card


def _card_notes(vehicle, source: str, unit: int, quantity: int, company_name: Optional[str],
                inherited: Optional[HomologationCard]) -> str:
    company = company_name or vehicle.company_name
    if source == SOURCE_KICKOFF:
        notes = f"Created from kickoff for {company} (sale {vehicle.sale_summary_id}), unit {unit}/{quantity}"
    else:
        notes = f"Auto-created from vehicle intake for {company} (incoming vehicle {vehicle.id}), unit {unit}/{quantity}"
    if inherited is not None:
        notes += f". Status '{inherited.status}' inherited from card {inherited.id}"
    return notes


def overall_status(cards: List[HomologationCard], default: str = CardStatus.HOMOLOGAR.value) -> str:
    if any(CardStatus.parse(c.status).is_terminal for c in cards):
        return CardStatus.HOMOLOGADO.value
    if cards:
        return cards[0].status
    return default


async def reconcile_homologation_cards(ctx, vehicle, source: str = SOURCE_INTAKE,
                                       company_name: Optional[str] = None) -> HomologationOutcome:
    """Link (and create where missing) one card per purchased unit of `vehicle`."""
    db = ctx.db
    brand = normalize_signature(vehicle.brand)
    model = normalize_signature(vehicle.vehicle)
    tag = f"[HOMOLOG][{ctx.request_id}] vehicle={vehicle.id} {brand} {model} {vehicle.year or ''}"
    outcome = HomologationOutcome()

    linked, by_value = collect_linked_cards(db, vehicle)
    for card in linked:
        if card.incoming_vehicle_id is None:
            card.incoming_vehicle_id = vehicle.id
    db.commit()

    quantity = max(vehicle.quantity or 0, 1)
    missing = max(quantity - len(linked), 0)
    if by_value is not None:
        new_status = by_value.status
        new_configuration = by_value.configuration
        outcome.inherited_from = by_value.id
    else:
        new_status = CardStatus.HOMOLOGAR.value
        new_configuration = None

    logger.info(f"{tag} linked={len(linked)} quantity={quantity} missing={missing}")

    for i in range(missing):
        adoptable = find_card_by_value(db, brand, model, vehicle.year, unlinked_only=True,
                                       exclude_ids=[c.id for c in linked])
        if adoptable is not None:
            adoptable.incoming_vehicle_id = vehicle.id
            db.commit()
            linked.append(adoptable)
            logger.info(f"{tag} adopted unlinked card {adoptable.id}")
            continue

        unit = len(linked) + 1
        notes = _card_notes(vehicle, source, unit, quantity, company_name, by_value)
        try:
            card = _insert_card(db, vehicle, brand, model, new_status, new_configuration, notes)
        except SQLAlchemyError as e:
            db.rollback()
            code, message = describe_db_error(e)
            outcome.failures.append(CardFailure(code=code, message=message))
            outcome.errors.append(f"Card {i + 1}/{missing} failed{f' [{code}]' if code else ''}: {message}")
            logger.error(f"{tag} card creation failed: {code} {message}")
            continue
        linked.append(card)
        outcome.created_ids.append(card.id)

    outcome.card_ids = [c.id for c in linked]
    outcome.status = overall_status(linked)

    if linked:
        vehicle.processed = True
        vehicle.created_homologation_id = linked[0].id
        vehicle.homologation_status = never_regress(vehicle.homologation_status, outcome.status)
        db.commit()
        outcome.status = vehicle.homologation_status
        logger.info(
            f"{tag} → status={outcome.status} cards={outcome.card_ids} created={outcome.created_count}"
        )
    else:
        if not outcome.errors:
            outcome.errors.append("No homologation card could be linked")
        logger.error(f"{tag} left unlinked: {outcome.errors}")

    return outcome
