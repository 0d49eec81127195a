"""Pytest configuration and fixtures"""

from datetime import datetime, timezone

import pytest

# 1x1 transparent PNG
SIGNATURE_PNG = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture(autouse=True)
def test_env(tmp_path, monkeypatch):
    """Set up test environment with temporary database and storage"""
    db_path = tmp_path / "test.db"
    storage_path = tmp_path / "storage"

    monkeypatch.setenv("DATABASE_PATH", str(db_path))
    monkeypatch.setenv("STORAGE_PATH", str(storage_path))
    monkeypatch.setenv("DB_MODE", "sqlite")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://dealer.test")
    monkeypatch.setenv("SIGNATURE_VALIDITY_DAYS", "7")

    yield

    # Cleanup handled by tmp_path fixture


@pytest.fixture
def db():
    from dealer_contracts.db.sqlite_client import SQLiteClient
    return SQLiteClient()


@pytest.fixture
def storage():
    from dealer_contracts.db.storage import LocalStorage
    return LocalStorage()


@pytest.fixture
def seeded_vehicle(db):
    """A B2C vehicle of 20000 with a linked customer, stored in SQLite"""
    from dealer_contracts.db.sqlite import upsert_contact, upsert_vehicle

    upsert_contact({
        "id": "contact-1",
        "name": "Jan de Vries",
        "email": "jan@example.nl",
        "address": "Kerkstraat 12, 1017 GC Amsterdam",
    })
    upsert_vehicle({
        "id": "vehicle-1",
        "vin": "WVWZZZ1KZAW000001",
        "license_number": "ab-123-c",
        "brand": "Volkswagen",
        "model": "Golf",
        "color": "Grijs",
        "year": 2019,
        "mileage": 84500,
        "selling_price": 20000,
        "customer_id": "contact-1",
        "sales_status": "verkocht_b2c",
    })
    return "vehicle-1"


@pytest.fixture
def vehicle(db, seeded_vehicle):
    from dealer_contracts.services.vehicles import VehicleLookup
    return VehicleLookup(db=db).get_vehicle(seeded_vehicle)


@pytest.fixture
def archive(db, storage):
    from dealer_contracts.services.archive import ContractArchive
    return ContractArchive(db=db, storage=storage)


@pytest.fixture
def manager(db, archive):
    from dealer_contracts.services.signature import SignatureSessionManager
    return SignatureSessionManager(db=db, archive=archive)


@pytest.fixture
def fixed_now():
    return datetime(2026, 3, 14, 10, 30, 0, tzinfo=timezone.utc)


@pytest.fixture
def signature_png():
    return SIGNATURE_PNG
