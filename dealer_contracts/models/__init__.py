"""Data models"""

from dealer_contracts.models.vehicle import (
    ContactInfo,
    VehicleSnapshot,
)
from dealer_contracts.models.contract import (
    ContractType,
    VehicleType,
    BtwType,
    PaymentTerms,
    TradeInVehicle,
    ContractOptions,
    PricingBreakdown,
    CompanyProfile,
    MarkupBlock,
    GeneratedContract,
    parse_options,
    coerce_contract_type,
)
from dealer_contracts.models.signature import (
    SignatureStatus,
    PendingState,
    SignedState,
    ExpiredState,
    SignatureSession,
    SignResult,
)
from dealer_contracts.models.archive import (
    ArchivedVehicle,
    SavedContractMetadata,
    ArchivedContract,
    DeleteResult,
)
from dealer_contracts.models.email import (
    TemplateType,
    EmailTemplate,
    ByVehicleId,
    Explicit,
    RecipientResolution,
    OutgoingEmail,
)

__all__ = [
    "ContactInfo",
    "VehicleSnapshot",
    "ContractType",
    "VehicleType",
    "BtwType",
    "PaymentTerms",
    "TradeInVehicle",
    "ContractOptions",
    "PricingBreakdown",
    "CompanyProfile",
    "MarkupBlock",
    "GeneratedContract",
    "parse_options",
    "coerce_contract_type",
    "SignatureStatus",
    "PendingState",
    "SignedState",
    "ExpiredState",
    "SignatureSession",
    "SignResult",
    "ArchivedVehicle",
    "SavedContractMetadata",
    "ArchivedContract",
    "DeleteResult",
    "TemplateType",
    "EmailTemplate",
    "ByVehicleId",
    "Explicit",
    "RecipientResolution",
    "OutgoingEmail",
]
