# tests/conftest.py
"""
Shared fixtures: in-memory SQLite database, pipeline context, data factories
and a FastAPI test client wired to the same database.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before vehicle_intake.config is imported anywhere
TEST_API_KEY = "test-intake-key-0123456789abcdef"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["VEHICLE_API_KEY"] = TEST_API_KEY
os.environ["RETRY_BASE_DELAY_SECONDS"] = "0"

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import vehicle_intake.models  # noqa
from vehicle_intake.context import PipelineContext
from vehicle_intake.database import Base, get_db
from vehicle_intake.models.automation_rule import AutomationRule
from vehicle_intake.models.homologation_card import HomologationCard
from vehicle_intake.models.incoming_vehicle import IncomingVehicle
from vehicle_intake.models.order import Order, OrderVehicle


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def ctx(db):
    return PipelineContext(db=db, request_id="test-request")


@pytest.fixture
def client(session_factory):
    from vehicle_intake.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_vehicle(db):
    def _make(vehicle="Model X", brand="Brand", year=2023, quantity=1, company_name="Acme Corp",
              usage_type="frota", **extra):
        extra.setdefault("processed", False)
        extra.setdefault("kickoff_completed", False)
        record = IncomingVehicle(
            vehicle=vehicle, brand=brand, year=year, quantity=quantity,
            company_name=company_name, usage_type=usage_type,
            received_at=datetime.utcnow(), **extra,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record
    return _make


@pytest.fixture
def make_card(db):
    counter = {"n": 0}

    def _make(brand="BRAND", model="MODEL X", year=2023, status="homologar",
              incoming_vehicle_id=None, configuration=None, age_minutes=None):
        # Older cards first unless told otherwise, so "most recent" is deterministic
        counter["n"] += 1
        stamp = datetime.utcnow() - timedelta(minutes=age_minutes if age_minutes is not None
                                              else 100 - counter["n"])
        card = HomologationCard(
            brand=brand, model=model, year=year, status=status,
            incoming_vehicle_id=incoming_vehicle_id, configuration=configuration,
            created_at=stamp, updated_at=stamp,
        )
        db.add(card)
        db.commit()
        db.refresh(card)
        return card
    return _make


@pytest.fixture
def fulfilled_catalog(db):
    """A previously fulfilled Brand/Model X order plus its automation rule."""
    order = Order(order_number="PED-100", company_name="Old Customer", configuration="CFG-A",
                  status="enviado", is_automatic=False, created_at=datetime.utcnow())
    db.add(order)
    db.commit()
    db.add(OrderVehicle(order_id=order.id, brand="Brand", model="Model X", year=2022, quantity=1))
    rule = AutomationRule(brand="BRAND", model="MODEL X", model_year="2023",
                          tracker_model="TRK-4G", configuration="CFG-A")
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule
