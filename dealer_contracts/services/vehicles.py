"""Read-only lookups of vehicles and contacts owned by inventory/CRM"""

import logging
from typing import Optional

from dealer_contracts.db.base import DatabaseInterface
from dealer_contracts.exceptions import NotFoundError, StorageError
from dealer_contracts.models.vehicle import ContactInfo, VehicleSnapshot

logger = logging.getLogger(__name__)


class VehicleLookup:
    """Resolves vehicle ids into immutable snapshots, contact included."""

    def __init__(self, db: Optional[DatabaseInterface] = None):
        self._db = db

    @property
    def db(self) -> DatabaseInterface:
        """Lazy-load database client."""
        if self._db is None:
            from dealer_contracts.db.supabase import get_database
            self._db = get_database()
        return self._db

    def get_contact(self, contact_id: str) -> ContactInfo:
        try:
            row = self.db.get_contact(contact_id)
        except Exception as e:
            raise StorageError(f"Failed to read contact {contact_id}: {e}") from e
        if row is None:
            raise NotFoundError(f"Contact not found: {contact_id}")
        return ContactInfo(
            name=row.get("name") or "",
            email=row.get("email"),
            address=row.get("address"),
        )

    def get_vehicle(self, vehicle_id: str) -> VehicleSnapshot:
        try:
            row = self.db.get_vehicle(vehicle_id)
        except Exception as e:
            raise StorageError(f"Failed to read vehicle {vehicle_id}: {e}") from e
        if row is None:
            raise NotFoundError(f"Vehicle not found: {vehicle_id}")

        customer = None
        customer_id = row.get("customer_id")
        if customer_id:
            try:
                customer = self.get_contact(customer_id)
            except NotFoundError:
                logger.warning(f"Vehicle {vehicle_id} links to missing contact {customer_id}")

        return VehicleSnapshot(
            id=row["id"],
            vin=row.get("vin") or "",
            license_number=row.get("license_number") or "",
            brand=row.get("brand") or "",
            model=row.get("model") or "",
            color=row.get("color"),
            year=row.get("year"),
            mileage=row.get("mileage"),
            selling_price=row.get("selling_price") or 0,
            customer_id=customer_id,
            customer=customer,
            sales_status=row.get("sales_status"),
        )
