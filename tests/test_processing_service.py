# tests/test_processing_service.py
"""Unit tests for the vehicle group processor."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import patch
from sqlalchemy.exc import OperationalError
from vehicle_intake.models.accessory import Accessory
from vehicle_intake.models.action_log import ActionLog
from vehicle_intake.models.homologation_card import HomologationCard
from vehicle_intake.models.incoming_vehicle import IncomingVehicle
from vehicle_intake.models.order import Order, OrderTracker
from vehicle_intake.services import homologation_service
from vehicle_intake.services.processing_service import process_vehicle_groups
from vehicle_intake.services.validation import validate_submission


def make_batch(vehicles, **group):
    payload = {"company_name": "Acme Corp", "usage_type": "frota", "vehicles": vehicles}
    payload.update(group)
    return validate_submission([payload])


class TestProcessVehicleGroups:
    @pytest.mark.asyncio
    async def test_unknown_model_goes_to_homologation(self, ctx, db):
        groups = make_batch([{"vehicle": "Model X", "brand": "Brand", "year": 2023, "quantity": 2}])

        result = await process_vehicle_groups(ctx, groups)

        assert result["success"] is True
        assert result["total_groups"] == 1
        assert result["total_vehicles"] == 1
        assert result["processing_summary"] == {"orders_created": 0, "homologations_created": 2, "errors": 0}
        vehicle_result = result["processed_groups"][0]["vehicles_processed"][0]
        assert vehicle_result["status"] == "homologation_pending"
        assert vehicle_result["vehicle"] == "Brand Model X"
        assert vehicle_result["homologation_created"] is True

        record = db.query(IncomingVehicle).one()
        assert record.processed is True
        assert record.homologation_status == "homologar"
        assert record.created_homologation_id == vehicle_result["homologation_id"]
        cards = db.query(HomologationCard).all()
        assert len(cards) == 2
        assert all(c.status == "homologar" for c in cards)

    @pytest.mark.asyncio
    async def test_known_model_with_rule_creates_order(self, ctx, db, fulfilled_catalog):
        groups = make_batch(
            [{"vehicle": "model x", "brand": "BRAND", "year": 2023, "quantity": 4}],
            accessories=[{"accessory_name": "Panic button", "quantity": 4}],
        )

        result = await process_vehicle_groups(ctx, groups)

        assert result["processing_summary"]["orders_created"] == 1
        vehicle_result = result["processed_groups"][0]["vehicles_processed"][0]
        assert vehicle_result["status"] == "order_created"
        assert vehicle_result["order_number"] == "AUTO-001"

        order = db.query(Order).filter(Order.order_number == "AUTO-001").one()
        assert order.is_automatic is True
        assert order.company_name == "Acme Corp"
        assert db.query(OrderTracker).filter(OrderTracker.order_id == order.id).one().quantity == 4
        assert db.query(Accessory).filter(Accessory.order_id == order.id).one().accessory_name == "Panic button"
        record = db.query(IncomingVehicle).one()
        assert record.processed is True
        assert record.created_order_id == order.id
        assert record.created_homologation_id is None
        assert db.query(HomologationCard).count() == 0

    @pytest.mark.asyncio
    async def test_known_model_without_rule_falls_through(self, ctx, db, fulfilled_catalog):
        db.delete(fulfilled_catalog)
        db.commit()
        groups = make_batch([{"vehicle": "Model X", "brand": "Brand", "year": 2023}])

        result = await process_vehicle_groups(ctx, groups)

        vehicle_result = result["processed_groups"][0]["vehicles_processed"][0]
        assert vehicle_result["status"] == "homologation_pending"
        assert "no automation rule" in vehicle_result["processing_notes"]
        assert db.query(Order).count() == 1

    @pytest.mark.asyncio
    async def test_group_accessories_go_to_first_card_without_orders(self, ctx, db):
        groups = make_batch(
            [{"vehicle": "Model X", "brand": "Brand", "accessories": [{"accessory_name": "Camera"}]}],
            accessories=[{"accessory_name": "Panic button", "quantity": 2}],
        )

        result = await process_vehicle_groups(ctx, groups)

        card_id = result["processed_groups"][0]["vehicles_processed"][0]["homologation_id"]
        record = db.query(IncomingVehicle).one()
        group_acc = db.query(Accessory).filter(Accessory.accessory_name == "Panic button").one()
        vehicle_acc = db.query(Accessory).filter(Accessory.accessory_name == "Camera").one()
        assert group_acc.homologation_card_id == card_id
        assert vehicle_acc.incoming_vehicle_id == record.id

    @pytest.mark.asyncio
    async def test_failure_is_isolated_to_one_vehicle(self, ctx, db):
        real_insert = homologation_service._insert_card

        def flaky(db_, vehicle, brand, model, *args, **kwargs):
            if brand == "BROKEN":
                raise OperationalError("INSERT INTO homologation_cards", {}, Exception("disk I/O error"))
            return real_insert(db_, vehicle, brand, model, *args, **kwargs)

        groups = make_batch([
            {"vehicle": "Model A", "brand": "Brand"},
            {"vehicle": "Model B", "brand": "Broken"},
            {"vehicle": "Model C", "brand": "Brand"},
        ])
        with patch("vehicle_intake.services.homologation_service._insert_card", side_effect=flaky):
            result = await process_vehicle_groups(ctx, groups)

        processed = result["processed_groups"][0]["vehicles_processed"]
        assert [v["status"] for v in processed] == ["homologation_pending", "error", "homologation_pending"]
        assert "disk I/O error" in processed[1]["error"]
        assert result["processing_summary"] == {"orders_created": 0, "homologations_created": 2, "errors": 1}
        assert result["total_vehicles"] == 3

        failed = db.query(IncomingVehicle).filter(IncomingVehicle.brand == "Broken").one()
        assert failed.processed is False
        assert failed.processing_notes.startswith("Error:")
        log = db.query(ActionLog).filter(ActionLog.action == "vehicle_processing_failed").one()
        assert log.entity_id == str(failed.id)

    @pytest.mark.asyncio
    async def test_accessory_write_failure_does_not_fail_vehicle(self, ctx, db):
        groups = make_batch([{"vehicle": "Model X", "brand": "Brand",
                              "accessories": [{"accessory_name": "Panic button", "quantity": 1}]}])
        broken = OperationalError("INSERT INTO accessories", {}, Exception("disk I/O error"))

        with patch("vehicle_intake.services.processing_service.add_accessories", side_effect=broken):
            result = await process_vehicle_groups(ctx, groups)

        vehicle_result = result["processed_groups"][0]["vehicles_processed"][0]
        assert vehicle_result["status"] == "homologation_pending"
        assert result["processing_summary"]["errors"] == 0
        record = db.query(IncomingVehicle).one()
        assert record.processed is True
        assert db.query(Accessory).count() == 0
        log = db.query(ActionLog).filter(ActionLog.action == "vehicle_accessories_failed").one()
        assert log.entity_id == str(record.id)

    @pytest.mark.asyncio
    async def test_usage_type_is_normalized(self, ctx, db):
        groups = make_batch([{"vehicle": "Model X", "brand": "Brand"}], usage_type="Telemetria CAN")
        result = await process_vehicle_groups(ctx, groups)
        assert result["processed_groups"][0]["usage_type"] == "telemetria_can"
        assert db.query(IncomingVehicle).one().usage_type == "telemetria_can"

    @pytest.mark.asyncio
    async def test_multiple_groups_counted(self, ctx, db):
        groups = validate_submission([
            {"company_name": "A", "usage_type": "frota", "vehicles": [{"vehicle": "M1", "brand": "B"}]},
            {"company_name": "B", "usage_type": "particular",
             "vehicles": [{"vehicle": "M2", "brand": "B"}, {"vehicle": "M3", "brand": "B", "quantity": 2}]},
        ])
        result = await process_vehicle_groups(ctx, groups)
        assert result["total_groups"] == 2
        assert result["total_vehicles"] == 3
        assert [g["group_index"] for g in result["processed_groups"]] == [0, 1]
        assert result["processing_summary"]["homologations_created"] == 4
