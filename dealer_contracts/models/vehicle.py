"""Vehicle and contact snapshots consumed from the inventory/CRM side"""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class ContactInfo(BaseModel):
    """Customer contact as known to the CRM"""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    email: Optional[str] = None
    address: Optional[str] = None


class VehicleSnapshot(BaseModel):
    """Immutable projection of the inventory fields needed for contracting.

    A snapshot is taken when a contract is archived or a signature session is
    created, so later edits in the inventory never alter an issued contract.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    vin: str = ""
    license_number: str = ""
    brand: str = ""
    model: str = ""
    color: Optional[str] = None
    year: Optional[int] = None
    mileage: Optional[int] = None
    selling_price: int = 0          # whole euros
    customer_id: Optional[str] = None
    customer: Optional[ContactInfo] = None
    sales_status: Optional[str] = None   # 'verkocht_b2c', 'afgeleverd', ...

    @property
    def customer_name(self) -> Optional[str]:
        if self.customer and self.customer.name:
            return self.customer.name
        return None

    @property
    def is_delivered(self) -> bool:
        return self.sales_status == "afgeleverd"
