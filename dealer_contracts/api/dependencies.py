"""Service wiring shared by the API routes"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from dealer_contracts.db.base import DatabaseInterface, StorageInterface
from dealer_contracts.services.archive import ContractArchive
from dealer_contracts.services.signature import SignatureSessionManager
from dealer_contracts.services.vehicles import VehicleLookup


@dataclass
class ContractServices:
    vehicles: VehicleLookup
    archive: ContractArchive
    signatures: SignatureSessionManager

    @classmethod
    def build(
        cls,
        db: Optional[DatabaseInterface] = None,
        storage: Optional[StorageInterface] = None,
    ) -> "ContractServices":
        if db is None:
            from dealer_contracts.db.supabase import get_database
            db = get_database()
        archive = ContractArchive(db=db, storage=storage)
        return cls(
            vehicles=VehicleLookup(db=db),
            archive=archive,
            signatures=SignatureSessionManager(db=db, archive=archive),
        )


def get_services(request: Request) -> ContractServices:
    return request.app.state.services
