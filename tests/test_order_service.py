# tests/test_order_service.py
"""Unit tests for order numbering and automatic order creation."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import pytest
from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError
from vehicle_intake.context import PipelineContext
from vehicle_intake.exceptions import OrderCreationError
from vehicle_intake.models.accessory import Accessory
from vehicle_intake.models.incoming_vehicle import IncomingVehicle
from vehicle_intake.models.order import Order, OrderTracker, OrderVehicle
from vehicle_intake.schemas.submission import AccessoryItem
from vehicle_intake.services.order_number_service import generate_order_number, parse_order_suffix
from vehicle_intake.services.order_service import create_automatic_order, find_orders_missing_lines


def add_order(db, number):
    db.add(Order(order_number=number, company_name="X", status="novos",
                 is_automatic=True, created_at=datetime.utcnow()))
    db.commit()


def make_rule(tracker_model="TRK-4G", configuration="CFG-A"):
    return SimpleNamespace(id=1, tracker_model=tracker_model, configuration=configuration)


class TestOrderNumbers:
    def test_parse_suffix(self):
        assert parse_order_suffix("AUTO-041", "AUTO-") == 41
        assert parse_order_suffix("AUTO-X1", "AUTO-") is None
        assert parse_order_suffix("PED-1", "AUTO-") is None

    @pytest.mark.asyncio
    async def test_first_number(self, ctx):
        assert await generate_order_number(ctx) == "AUTO-001"

    @pytest.mark.asyncio
    async def test_sequential_generation_is_distinct(self, ctx, db):
        numbers = []
        for _ in range(5):
            number = await generate_order_number(ctx)
            add_order(db, number)
            numbers.append(number)
        assert numbers == ["AUTO-001", "AUTO-002", "AUTO-003", "AUTO-004", "AUTO-005"]

    @pytest.mark.asyncio
    async def test_ignores_other_prefixes(self, ctx, db):
        add_order(db, "PED-900")
        add_order(db, "AUTO-007")
        assert await generate_order_number(ctx) == "AUTO-008"

    @pytest.mark.asyncio
    async def test_numeric_max_past_three_digits(self, ctx, db):
        for number in ("AUTO-998", "AUTO-1000", "AUTO-999"):
            add_order(db, number)
        assert await generate_order_number(ctx) == "AUTO-1001"

    @pytest.mark.asyncio
    async def test_skips_unparseable_numbers(self, ctx, db):
        add_order(db, "AUTO-012")
        add_order(db, "AUTO-MANUAL")
        assert await generate_order_number(ctx) == "AUTO-013"

    @pytest.mark.asyncio
    async def test_sequence_used_when_available(self, ctx):
        with patch("vehicle_intake.services.order_number_service._next_from_sequence", return_value=42):
            assert await generate_order_number(ctx) == "AUTO-042"

    @pytest.mark.asyncio
    async def test_timestamp_fallback_after_retries(self, ctx):
        failing = AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        with patch("vehicle_intake.services.order_number_service._next_from_max", failing):
            number = await generate_order_number(ctx)
        assert failing.await_count == 3
        assert number.startswith("AUTO-")
        assert len(number) > len("AUTO-") + 10


class TestCreateAutomaticOrder:
    @pytest.mark.asyncio
    async def test_creates_header_and_lines(self, ctx, db, make_vehicle):
        vehicle = make_vehicle(quantity=3)
        accessories = [AccessoryItem(accessory_name="Panic button", quantity=3)]

        order = await create_automatic_order(ctx, vehicle, make_rule(), "AUTO-001", "Acme Corp", accessories)

        assert order.order_number == "AUTO-001"
        assert order.is_automatic is True
        assert order.status == "novos"
        assert order.configuration == "CFG-A"
        line = db.query(OrderVehicle).filter(OrderVehicle.order_id == order.id).one()
        assert (line.brand, line.model, line.quantity) == ("Brand", "Model X", 3)
        tracker = db.query(OrderTracker).filter(OrderTracker.order_id == order.id).one()
        assert (tracker.model, tracker.quantity) == ("TRK-4G", 3)
        assert db.query(Accessory).filter(Accessory.order_id == order.id).count() == 1

    @pytest.mark.asyncio
    async def test_collision_regenerates_once(self, ctx, db, make_vehicle):
        add_order(db, "AUTO-001")
        vehicle = make_vehicle()
        regen = AsyncMock(return_value="AUTO-050")

        with patch("vehicle_intake.services.order_service.generate_order_number", regen):
            order = await create_automatic_order(ctx, vehicle, make_rule(), "AUTO-001", "Acme Corp")

        regen.assert_awaited_once()
        assert order.order_number == "AUTO-050"
        assert db.query(Order).filter(Order.order_number == "AUTO-001").count() == 1

    @pytest.mark.asyncio
    async def test_collision_uses_real_generator(self, ctx, db, make_vehicle):
        add_order(db, "AUTO-001")
        order = await create_automatic_order(ctx, make_vehicle(), make_rule(), "AUTO-001", "Acme Corp")
        assert order.order_number == "AUTO-002"

    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self, ctx, db, make_vehicle):
        add_order(db, "AUTO-001")
        regen = AsyncMock(return_value="AUTO-001")

        with patch("vehicle_intake.services.order_service.generate_order_number", regen):
            with pytest.raises(OrderCreationError):
                await create_automatic_order(ctx, make_vehicle(), make_rule(), "AUTO-001", "Acme Corp")

        assert regen.await_count == 2
        assert db.query(Order).count() == 1

    @pytest.mark.asyncio
    async def test_line_failure_leaves_detectable_header(self, ctx, db, make_vehicle):
        # tracker_model is NOT NULL, so the second commit fails after the header is in
        with pytest.raises(OrderCreationError):
            await create_automatic_order(ctx, make_vehicle(), make_rule(tracker_model=None),
                                         "AUTO-001", "Acme Corp")

        broken = find_orders_missing_lines(db)
        assert [o.order_number for o in broken] == ["AUTO-001"]

    @pytest.mark.asyncio
    async def test_complete_orders_not_reported(self, ctx, make_vehicle, db):
        await create_automatic_order(ctx, make_vehicle(), make_rule(), "AUTO-001", "Acme Corp")
        assert find_orders_missing_lines(db) == []

    @pytest.mark.asyncio
    async def test_collision_past_three_digits(self, ctx, db, make_vehicle):
        add_order(db, "AUTO-999")
        add_order(db, "AUTO-1000")
        order = await create_automatic_order(ctx, make_vehicle(), make_rule(), "AUTO-1000", "Acme Corp")
        assert order.order_number == "AUTO-1001"

    @pytest.mark.asyncio
    async def test_two_contexts_holding_same_number(self, session_factory, make_vehicle):
        vehicle_ids = [make_vehicle().id, make_vehicle(vehicle="Model Y").id]
        session_a, session_b = session_factory(), session_factory()
        try:
            ctx_a = PipelineContext(db=session_a, request_id="req-a")
            ctx_b = PipelineContext(db=session_b, request_id="req-b")

            number_a, number_b = await asyncio.gather(generate_order_number(ctx_a),
                                                      generate_order_number(ctx_b))
            assert number_a == number_b == "AUTO-001"

            order_a, order_b = await asyncio.gather(
                create_automatic_order(ctx_a, session_a.get(IncomingVehicle, vehicle_ids[0]),
                                       make_rule(), number_a, "Acme Corp"),
                create_automatic_order(ctx_b, session_b.get(IncomingVehicle, vehicle_ids[1]),
                                       make_rule(), number_b, "Acme Corp"),
            )

            assert {order_a.order_number, order_b.order_number} == {"AUTO-001", "AUTO-002"}
            assert session_a.query(Order).count() == 2
        finally:
            session_a.close()
            session_b.close()
