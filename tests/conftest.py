from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from amc_engine.database import Base, get_db
from amc_engine.domain.amc.schemas import AMCCreate
from amc_engine.domain.amc.service import AMCService
from amc_engine.main import app
from amc_engine.models import AMCContract


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
def db(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def service(db):
    return AMCService(db)


def amc_payload(**overrides) -> dict:
    payload = {
        "customerRef": "cust-001",
        "engineSerialNumber": "ENG-1001",
        "engineModel": "KTA50",
        "kva": 125,
        "dgMake": "Cummins",
        "amcType": "AMC",
        "startDate": "2025-01-01",
        "endDate": "2026-01-01",
        "contractValue": 1000,
        "numberOfVisits": 4,
        "products": ["prod-1"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_contract(service):
    """Create a contract through the service and return it"""

    def _make(**overrides) -> AMCContract:
        return service.create_contract(AMCCreate(**amc_payload(**overrides)), year=2025)

    return _make


def insert_contract(db, contract_number: str, serial: str, **fields) -> AMCContract:
    """Insert a bare contract row, bypassing number allocation"""
    contract = AMCContract(
        contract_number=contract_number,
        asset_serial_number=serial,
        customer_ref=fields.pop("customer_ref", "cust-001"),
        product_refs=fields.pop("product_refs", []),
        start_date=fields.pop("start_date", date(2025, 1, 1)),
        end_date=fields.pop("end_date", date(2026, 1, 1)),
        contract_value=fields.pop("contract_value", 1000),
        scheduled_visit_quota=fields.pop("scheduled_visit_quota", 4),
        completed_visit_count=fields.pop("completed_visit_count", 0),
        status=fields.pop("status", "active"),
        **fields,
    )
    db.add(contract)
    db.commit()
    db.refresh(contract)
    return contract
