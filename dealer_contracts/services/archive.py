"""Contract archive: stores materialized contracts per vehicle.

Saving is a two-step saga: the PDF is uploaded first, then the metadata row
is inserted. If the metadata write fails the uploaded PDF is removed again
(best effort) so no unreferenced artifact is left behind.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from dealer_contracts.db.base import DatabaseInterface, StorageInterface
from dealer_contracts.exceptions import NotFoundError, StorageError
from dealer_contracts.models.archive import (
    ArchivedContract,
    ArchivedVehicle,
    DeleteResult,
    SavedContractMetadata,
)
from dealer_contracts.models.contract import (
    CompanyProfile,
    ContractOptions,
    ContractType,
    GeneratedContract,
    coerce_contract_type,
)
from dealer_contracts.models.signature import SignatureSession, SignedState
from dealer_contracts.models.vehicle import VehicleSnapshot
from dealer_contracts.services.pdf_generator import ContractPDFGenerator
from dealer_contracts.services.pricing import compute_pricing
from dealer_contracts.services.renderer import company_from_settings, render_contract

logger = logging.getLogger(__name__)


def artifact_path(vehicle_id: str, file_name: str, now: datetime) -> str:
    """Storage path of an archived PDF; the timestamp keeps repeated saves apart"""
    return f"contracts/{vehicle_id}/{now:%Y%m%d%H%M%S%f}_{file_name}"


class ContractArchive:
    """Persists contract PDFs with a frozen metadata snapshot."""

    def __init__(
        self,
        db: Optional[DatabaseInterface] = None,
        storage: Optional[StorageInterface] = None,
        company: Optional[CompanyProfile] = None,
        pdf_generator: Optional[ContractPDFGenerator] = None,
    ):
        self._db = db
        self._storage = storage
        self._company = company
        self._pdf = pdf_generator

    @property
    def db(self) -> DatabaseInterface:
        """Lazy-load database client."""
        if self._db is None:
            from dealer_contracts.db.supabase import get_database
            self._db = get_database()
        return self._db

    @property
    def storage(self) -> StorageInterface:
        """Lazy-load storage client."""
        if self._storage is None:
            from dealer_contracts.db.supabase import get_storage
            self._storage = get_storage()
        return self._storage

    @property
    def company(self) -> CompanyProfile:
        if self._company is None:
            self._company = company_from_settings()
        return self._company

    @property
    def pdf(self) -> ContractPDFGenerator:
        if self._pdf is None:
            self._pdf = ContractPDFGenerator()
        return self._pdf

    # ---- Saving ----

    def save(
        self,
        vehicle: VehicleSnapshot,
        contract_type: ContractType | str,
        options: ContractOptions,
        signature_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ArchivedContract:
        """Render, materialize and archive a contract for a vehicle.

        Raises ValidationError for bad options, RenderError when the PDF
        cannot be built (nothing is stored then) and StorageError when the
        upload or the metadata write fails.
        """
        now = now or datetime.now(timezone.utc)
        options = options.model_copy(update={"contract_type": coerce_contract_type(contract_type)})
        pricing = compute_pricing(vehicle, options)
        contract = render_contract(
            vehicle, options, pricing, self.company,
            signature_url=signature_url, today=now,
        )
        pdf_bytes = self.pdf.materialize(contract)
        return self.store(vehicle, options, contract, pdf_bytes, now=now)

    def save_signed(self, session: SignatureSession, signature_url: Optional[str] = None) -> ArchivedContract:
        """Archive the signed contract of a session, signature image included."""
        if not isinstance(session.state, SignedState):
            raise ValueError(f"Session {session.id} is not signed")
        now = session.state.signed_at
        pricing = compute_pricing(session.vehicle, session.contract_options)
        contract = render_contract(
            session.vehicle, session.contract_options, pricing, self.company,
            signature_url=signature_url, today=now,
        )
        pdf_bytes = self.pdf.materialize(contract, signature=session.state)
        return self.store(
            session.vehicle, session.contract_options, contract, pdf_bytes,
            now=now, session_token=session.token,
        )

    def store(
        self,
        vehicle: VehicleSnapshot,
        options: ContractOptions,
        contract: GeneratedContract,
        pdf_bytes: bytes,
        now: Optional[datetime] = None,
        session_token: Optional[str] = None,
    ) -> ArchivedContract:
        """Upload an already materialized PDF and record its metadata."""
        now = now or datetime.now(timezone.utc)
        path = artifact_path(vehicle.id, contract.file_name, now)

        try:
            url = self.storage.put(path, pdf_bytes, "application/pdf")
        except Exception as e:
            logger.error(f"Upload of {path} failed: {e}")
            raise StorageError(f"Failed to upload contract {contract.file_name}: {e}") from e

        metadata = SavedContractMetadata(
            contract_type=options.contract_type,
            options=options,
            saved_at=now,
            vehicle=ArchivedVehicle(
                brand=vehicle.brand,
                model=vehicle.model,
                vin=vehicle.vin,
                license_number=vehicle.license_number,
            ),
            contract_number=contract.contract_number,
            signature_url=contract.signature_url,
            session_token=session_token,
            is_delivered=vehicle.is_delivered,
        )
        handle = ArchivedContract(
            id=str(uuid.uuid4()),
            vehicle_id=vehicle.id,
            file_name=contract.file_name,
            artifact_path=path,
            artifact_url=url,
            metadata=metadata,
            created_at=now,
        )

        try:
            self.db.insert_contract(self._to_row(handle))
        except Exception as e:
            logger.error(f"Metadata write for {path} failed: {e}")
            self._remove_orphan(path)
            raise StorageError(f"Failed to record contract {contract.file_name}: {e}") from e

        logger.info(f"Archived contract {handle.id} for vehicle {vehicle.id} at {path}")
        return handle

    def _remove_orphan(self, path: str) -> None:
        try:
            self.storage.remove(path)
            logger.info(f"Removed orphaned artifact {path}")
        except Exception as e:
            logger.warning(f"Could not remove orphaned artifact {path}: {e}")

    # ---- Retrieval ----

    def get(self, contract_id: str) -> ArchivedContract:
        try:
            row = self.db.get_contract(contract_id)
        except Exception as e:
            raise StorageError(f"Failed to read contract {contract_id}: {e}") from e
        if row is None:
            raise NotFoundError(f"Contract not found: {contract_id}")
        return self._from_row(row)

    def get_latest(
        self, vehicle_id: str, contract_type: Optional[ContractType | str] = None
    ) -> Optional[ArchivedContract]:
        """Most recently archived contract for a vehicle, optionally of one type."""
        rows = self._list_rows(vehicle_id, coerce_contract_type(contract_type).value if contract_type else None)
        return self._from_row(rows[0]) if rows else None

    def list_all(self, vehicle_id: str) -> List[ArchivedContract]:
        """All archived contracts for a vehicle, newest first."""
        return [self._from_row(row) for row in self._list_rows(vehicle_id)]

    def _list_rows(self, vehicle_id: str, contract_type: Optional[str] = None) -> List[dict]:
        try:
            return self.db.list_contracts(vehicle_id, contract_type)
        except Exception as e:
            raise StorageError(f"Failed to list contracts for vehicle {vehicle_id}: {e}") from e

    def download(self, contract_id: str) -> bytes:
        handle = self.get(contract_id)
        try:
            return self.storage.get(handle.artifact_path)
        except Exception as e:
            raise StorageError(f"Failed to read {handle.artifact_path}: {e}") from e

    def download_url(self, contract_id: str, ttl: Optional[int] = None) -> str:
        """Fresh URL for an archived PDF; stored signed URLs may have expired."""
        handle = self.get(contract_id)
        try:
            return self.storage.get_url(handle.artifact_path, ttl)
        except Exception as e:
            raise StorageError(f"Failed to sign URL for {handle.artifact_path}: {e}") from e

    # ---- Deletion ----

    def delete(self, contract_id: str) -> DeleteResult:
        """Remove the PDF and its metadata.

        Not a transaction: a PDF that cannot be removed is reported on the
        result while the metadata record is still deleted.
        """
        handle = self.get(contract_id)
        result = DeleteResult(contract_id=contract_id)

        try:
            self.storage.remove(handle.artifact_path)
        except Exception as e:
            logger.warning(f"Could not remove artifact {handle.artifact_path}: {e}")
            result = DeleteResult(contract_id=contract_id, artifact_removed=False, artifact_error=str(e))

        try:
            deleted = self.db.delete_contract(contract_id)
        except Exception as e:
            raise StorageError(f"Failed to delete contract record {contract_id}: {e}") from e
        if not deleted:
            raise NotFoundError(f"Contract not found: {contract_id}")

        logger.info(f"Deleted contract {contract_id} (artifact removed: {result.artifact_removed})")
        return result

    # ---- Row mapping ----

    @staticmethod
    def _to_row(handle: ArchivedContract) -> dict:
        return {
            "id": handle.id,
            "vehicle_id": handle.vehicle_id,
            "file_name": handle.file_name,
            "artifact_path": handle.artifact_path,
            "artifact_url": handle.artifact_url,
            "contract_type": handle.metadata.contract_type.value,
            "options_json": handle.metadata.options.model_dump_json(),
            "vehicle_snapshot_json": handle.metadata.vehicle.model_dump_json(),
            "metadata_json": handle.metadata.model_dump_json(),
            "created_at": handle.created_at.isoformat(),
        }

    @staticmethod
    def _from_row(row: dict) -> ArchivedContract:
        try:
            return ArchivedContract(
                id=row["id"],
                vehicle_id=row["vehicle_id"],
                file_name=row["file_name"],
                artifact_path=row["artifact_path"],
                artifact_url=row["artifact_url"],
                metadata=SavedContractMetadata.model_validate_json(row["metadata_json"]),
                created_at=row["created_at"],
            )
        except Exception as e:
            raise StorageError(f"Corrupt contract record {row.get('id')}: {e}") from e
