"""Contract options, pricing breakdown and rendered contract models"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from dealer_contracts.exceptions import ValidationError


class ContractType(str, Enum):
    """Kind of sale"""
    B2B = "b2b"     # Zakelijk
    B2C = "b2c"     # Particulier


class VehicleType(str, Enum):
    """VAT regime of the vehicle, drives the legal disclosure text"""
    BTW = "btw"
    MARGE = "marge"


class BtwType(str, Enum):
    """Whether the B2B price is quoted including or excluding VAT"""
    INCLUSIVE = "inclusive"
    EXCLUSIVE = "exclusive"


class PaymentTerms(str, Enum):
    """Down payment arrangement for consumer sales"""
    AANBETALING_5 = "aanbetaling_5"
    AANBETALING_10 = "aanbetaling_10"
    HANDMATIG = "handmatig"


class TradeInVehicle(BaseModel):
    """Customer vehicle taken in as partial payment"""
    model_config = ConfigDict(frozen=True)

    brand: str = ""
    model: str = ""
    license_number: str = ""
    mileage: Optional[int] = None
    trade_in_price: int = 0


class ContractOptions(BaseModel):
    """Commercial options a staff member configures for one contract"""
    model_config = ConfigDict(frozen=True)

    contract_type: ContractType = ContractType.B2C
    vehicle_type: Optional[VehicleType] = None
    btw_type: BtwType = BtwType.INCLUSIVE
    bpm_included: bool = False
    max_damage_amount: int = 0
    delivery_package: Optional[str] = None
    warranty_package_price: Optional[int] = None
    payment_terms: Optional[PaymentTerms] = None
    custom_down_payment: Optional[int] = None
    trade_in_vehicle: Optional[TradeInVehicle] = None
    contract_address: Optional[str] = None
    additional_clauses: str = ""
    special_agreements: str = ""

    @property
    def is_b2b(self) -> bool:
        return self.contract_type == ContractType.B2B


def parse_options(data: dict[str, Any]) -> ContractOptions:
    """Build ContractOptions from untrusted input, raising ValidationError on bad values."""
    try:
        return ContractOptions.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid contract options: {e}") from e


class PricingBreakdown(BaseModel):
    """All derived monetary figures of one contract, in whole euros"""
    model_config = ConfigDict(frozen=True)

    contract_type: ContractType
    base_price: int
    price_excl_vat: int
    vat_amount: int = 0
    delivery_package_price: int = 0
    trade_in_price: int = 0
    down_payment_amount: int = 0
    down_payment_percentage: int = 0
    final_price: int

    @property
    def remaining_amount(self) -> int:
        """Amount due on delivery after the down payment"""
        return self.final_price - self.down_payment_amount


class CompanyProfile(BaseModel):
    """Seller details printed in the contract header"""
    model_config = ConfigDict(frozen=True)

    name: str
    address: str
    vat_id: str
    iban: str
    kvk: str
    email: Optional[str] = None


class MarkupBlock(BaseModel):
    """One styled block of the sectioned contract surface.

    `style` is one of: title, meta, section, line, clause, signature_link, footer.
    """
    model_config = ConfigDict(frozen=True)

    style: str
    text: str
    label: Optional[str] = None


class GeneratedContract(BaseModel):
    """A rendered contract; recomputed on demand, never a source of truth"""
    contract_number: str
    file_name: str
    contract_type: ContractType
    text: str
    markup: list[MarkupBlock] = Field(default_factory=list)
    signature_url: Optional[str] = None


def coerce_contract_type(value: "ContractType | str") -> ContractType:
    """Accept 'b2b'/'b2c' or the enum, raising ValidationError otherwise."""
    try:
        return ContractType(value)
    except ValueError as e:
        raise ValidationError(f"Unknown contract type: {value!r}") from e
