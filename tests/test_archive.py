"""Tests for the contract archive"""

from datetime import timedelta

import pytest

from dealer_contracts.db.storage import LocalStorage
from dealer_contracts.exceptions import NotFoundError, RenderError, StorageError, ValidationError
from dealer_contracts.models import ContractOptions, ContractType, TradeInVehicle
from dealer_contracts.services.archive import ContractArchive, artifact_path


@pytest.fixture
def options():
    return ContractOptions(
        delivery_package="12_maanden_autocity",
        payment_terms="aanbetaling_10",
        trade_in_vehicle=TradeInVehicle(brand="Opel", model="Corsa", license_number="12-AB-34", trade_in_price=5000),
        special_agreements="Inclusief winterbanden",
    )


class FailingInsertDB:
    """Wraps a real backend, failing every metadata insert"""

    def __init__(self, db):
        self._db = db

    def insert_contract(self, contract):
        raise RuntimeError("connection reset")

    def __getattr__(self, name):
        return getattr(self._db, name)


class FailingRemoveStorage(LocalStorage):
    def remove(self, path):
        raise OSError("permission denied")


class TestSave:

    def test_round_trip(self, archive, vehicle, options, fixed_now):
        handle = archive.save(vehicle, "b2c", options, now=fixed_now)

        latest = archive.get_latest("vehicle-1")
        assert latest.id == handle.id
        assert latest.metadata.options == options
        assert latest.metadata.contract_type == ContractType.B2C
        assert latest.metadata.vehicle.license_number == "ab-123-c"
        assert latest.metadata.saved_at == fixed_now
        assert latest.file_name == "koopcontract_AB-123-C_14-03-2026.pdf"
        assert archive.download(handle.id).startswith(b"%PDF")

    def test_artifact_path_is_unique_per_save(self, fixed_now):
        first = artifact_path("v1", "a.pdf", fixed_now)
        second = artifact_path("v1", "a.pdf", fixed_now + timedelta(microseconds=1))
        assert first.startswith("contracts/v1/")
        assert first != second

    def test_latest_and_list_order(self, archive, vehicle, options, fixed_now):
        old = archive.save(vehicle, "b2c", options, now=fixed_now)
        new = archive.save(vehicle, "b2b", options, now=fixed_now + timedelta(days=1))

        assert archive.get_latest("vehicle-1").id == new.id
        assert archive.get_latest("vehicle-1", "b2c").id == old.id
        assert [h.id for h in archive.list_all("vehicle-1")] == [new.id, old.id]

    def test_contract_type_argument_overrides_options(self, archive, vehicle, options, fixed_now):
        handle = archive.save(vehicle, "b2b", options, now=fixed_now)
        assert handle.metadata.options.contract_type == ContractType.B2B

    def test_nothing_archived(self, archive):
        assert archive.get_latest("vehicle-1") is None
        assert archive.list_all("vehicle-1") == []

    def test_delivered_flag(self, archive, vehicle, options, fixed_now):
        delivered = vehicle.model_copy(update={"sales_status": "afgeleverd"})
        assert archive.save(delivered, "b2c", options, now=fixed_now).metadata.is_delivered

    def test_invalid_options_store_nothing(self, archive, vehicle, storage):
        with pytest.raises(ValidationError):
            archive.save(vehicle, "b2c", ContractOptions(payment_terms="handmatig"))
        assert archive.list_all("vehicle-1") == []
        assert not storage.root.exists() or not any(storage.root.rglob("*.pdf"))

    def test_render_failure_stores_nothing(self, db, storage, vehicle, options):
        class BrokenPDF:
            def materialize(self, contract, signature=None):
                raise RenderError("layout engine crashed")

        archive = ContractArchive(db=db, storage=storage, pdf_generator=BrokenPDF())
        with pytest.raises(RenderError):
            archive.save(vehicle, "b2c", options)
        assert archive.list_all("vehicle-1") == []

    def test_metadata_failure_removes_uploaded_pdf(self, db, storage, vehicle, options, fixed_now):
        archive = ContractArchive(db=FailingInsertDB(db), storage=storage)
        with pytest.raises(StorageError):
            archive.save(vehicle, "b2c", options, now=fixed_now)
        assert list(storage.root.rglob("*.pdf")) == []
        assert db.list_contracts("vehicle-1") == []


class TestDelete:

    def test_delete(self, archive, vehicle, options, storage, fixed_now):
        handle = archive.save(vehicle, "b2c", options, now=fixed_now)
        result = archive.delete(handle.id)

        assert result.artifact_removed
        assert not result.partial
        assert archive.get_latest("vehicle-1") is None
        assert list(storage.root.rglob("*.pdf")) == []

    def test_delete_unknown(self, archive):
        with pytest.raises(NotFoundError):
            archive.delete("does-not-exist")

    def test_delete_reports_leftover_pdf(self, db, vehicle, options, fixed_now):
        archive = ContractArchive(db=db, storage=FailingRemoveStorage())
        handle = archive.save(vehicle, "b2c", options, now=fixed_now)

        result = archive.delete(handle.id)
        assert result.partial
        assert "permission denied" in result.artifact_error
        with pytest.raises(NotFoundError):
            archive.get(handle.id)


def test_download_url(archive, vehicle, options, fixed_now):
    handle = archive.save(vehicle, "b2c", options, now=fixed_now)
    assert archive.download_url(handle.id).startswith("file://")


def test_corrupt_row_is_reported(db, archive, vehicle, options, fixed_now):
    handle = archive.save(vehicle, "b2c", options, now=fixed_now)
    from dealer_contracts.db.sqlite import get_connection
    with get_connection() as conn:
        conn.execute("UPDATE vehicle_contracts SET metadata_json = '{' WHERE id = ?", (handle.id,))
    with pytest.raises(StorageError):
        archive.get(handle.id)
