"""Archived contract models"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from dealer_contracts.models.contract import ContractOptions, ContractType


class ArchivedVehicle(BaseModel):
    """Vehicle fields frozen at save time"""
    model_config = ConfigDict(frozen=True)

    brand: str = ""
    model: str = ""
    vin: str = ""
    license_number: str = ""


class SavedContractMetadata(BaseModel):
    """Metadata stored next to every archived PDF"""
    model_config = ConfigDict(frozen=True)

    contract_type: ContractType
    options: ContractOptions
    saved_at: datetime
    vehicle: ArchivedVehicle
    contract_number: str = ""
    signature_url: Optional[str] = None
    session_token: Optional[str] = None
    is_delivered: bool = False


class ArchivedContract(BaseModel):
    """Handle to an archived contract"""
    model_config = ConfigDict(frozen=True)

    id: str
    vehicle_id: str
    file_name: str
    artifact_path: str
    artifact_url: str
    metadata: SavedContractMetadata
    created_at: datetime


class DeleteResult(BaseModel):
    """Outcome of removing an archived contract.

    The metadata record is always removed when this is returned; a binary that
    could not be removed is reported here rather than blocking the delete.
    """
    contract_id: str
    artifact_removed: bool = True
    artifact_error: Optional[str] = None

    @property
    def partial(self) -> bool:
        return not self.artifact_removed
