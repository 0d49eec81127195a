"""Request/response schemas for the contracts API"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from dealer_contracts.models import (
    ArchivedContract,
    MarkupBlock,
    PricingBreakdown,
    SignatureStatus,
)


class ContractRequest(BaseModel):
    """Vehicle plus the options a staff member configured"""
    vehicle_id: str = Field(..., min_length=1)
    contract_type: str = Field("b2c", description="'b2b' or 'b2c'")
    options: dict[str, Any] = Field(default_factory=dict)


class PricingResponse(BaseModel):
    pricing: PricingBreakdown
    remaining_amount: int
    summary: str


class PreviewResponse(BaseModel):
    """Rendered contract, both surfaces"""
    contract_number: str
    file_name: str
    contract_type: str
    text: str
    html: str
    markup: list[MarkupBlock] = []
    pricing: PricingBreakdown


class SessionCreateResponse(BaseModel):
    token: str
    signature_url: str
    status: SignatureStatus
    created_at: datetime
    expires_at: datetime


class VehicleSummary(BaseModel):
    brand: str
    model: str
    license_number: str
    year: Optional[int] = None


class SessionView(BaseModel):
    """What the public signing page shows"""
    token: str
    status: SignatureStatus
    expires_at: datetime
    vehicle: VehicleSummary
    contract_number: str
    text: str
    html: str


class SignRequest(BaseModel):
    signer_name: str = Field(..., min_length=1, max_length=200)
    signer_email: str = Field(..., min_length=3, max_length=320)
    signature_image: str = Field(..., min_length=1, description="Data URL (PNG) of the drawn signature")


class SignResponse(BaseModel):
    status: SignatureStatus
    signed_at: datetime
    archived: bool
    contract_id: Optional[str] = None
    artifact_url: Optional[str] = None
    archive_error: Optional[str] = None


class ArchiveRequest(ContractRequest):
    signature_url: Optional[str] = None


class ContractListResponse(BaseModel):
    contracts: list[ArchivedContract] = []


class DeleteResponse(BaseModel):
    contract_id: str
    artifact_removed: bool
    artifact_error: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response"""
    status: str  # "ok" | "error"
    db_mode: str
    version: str = "0.1.0"
