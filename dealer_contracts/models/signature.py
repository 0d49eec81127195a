"""Signature session models.

A session is in exactly one state. The state carries its own payload, so a
signed session without signer details cannot be constructed.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from dealer_contracts.models.contract import ContractOptions, ContractType
from dealer_contracts.models.vehicle import VehicleSnapshot


class SignatureStatus(str, Enum):
    PENDING = "pending"
    SIGNED = "signed"
    EXPIRED = "expired"


class PendingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["pending"] = "pending"


class SignedState(BaseModel):
    """Audit record of a completed signature"""
    model_config = ConfigDict(frozen=True)

    status: Literal["signed"] = "signed"
    signer_name: str = Field(min_length=1)
    signer_email: str = Field(min_length=1)
    signature_image: str = Field(min_length=1)   # data URL of the drawn signature
    source_address: str = Field(min_length=1)
    signed_at: datetime


class ExpiredState(BaseModel):
    """Closed without a signature, either by staff or found past its window"""
    model_config = ConfigDict(frozen=True)

    status: Literal["expired"] = "expired"
    expired_at: datetime
    reason: str = "timeout"     # 'timeout' | 'invalidated'


SessionState = Annotated[
    Union[PendingState, SignedState, ExpiredState],
    Field(discriminator="status"),
]


class SignatureSession(BaseModel):
    """One customer-facing signing request"""
    model_config = ConfigDict(frozen=True)

    id: str
    token: str
    vehicle_id: str
    contract_type: ContractType
    contract_options: ContractOptions
    vehicle: VehicleSnapshot
    created_at: datetime
    expires_at: datetime
    state: SessionState = Field(default_factory=PendingState)

    @property
    def status(self) -> SignatureStatus:
        return SignatureStatus(self.state.status)

    def is_expired_at(self, now: datetime) -> bool:
        return now > self.expires_at


class SignResult(BaseModel):
    """Outcome of a successful signature.

    The signature is recorded even when archiving the signed PDF failed;
    `archive_error` then describes the failure so the caller can retry.
    """
    session: SignatureSession
    contract_id: Optional[str] = None
    artifact_url: Optional[str] = None
    archive_error: Optional[str] = None

    @property
    def archived(self) -> bool:
        return self.contract_id is not None
