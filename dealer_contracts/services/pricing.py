"""Pricing calculator: derives every monetary figure of a contract.

Pure functions, no I/O. All amounts are whole euros; each derived amount is
rounded exactly once, from unrounded inputs.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple, Optional

from dealer_contracts.exceptions import ValidationError
from dealer_contracts.models.contract import (
    ContractOptions,
    ContractType,
    PaymentTerms,
    PricingBreakdown,
)
from dealer_contracts.models.vehicle import VehicleSnapshot
from dealer_contracts.utils.formatting import format_currency

VAT_RATE = Decimal("0.21")


class DeliveryPackage(NamedTuple):
    id: str
    label: str
    price: int


# Warranty / delivery packages offered on consumer sales
DELIVERY_PACKAGES: dict[str, DeliveryPackage] = {
    p.id: p
    for p in (
        DeliveryPackage("geen_garantie_b2b", "Geen garantie (B2B autobedrijf)", 0),
        DeliveryPackage("garantie_wettelijk", "Wettelijke garantie (12 maanden)", 0),
        DeliveryPackage("6_maanden_autocity", "6 maanden Auto City garantie", 500),
        DeliveryPackage("12_maanden_autocity", "12 maanden Auto City garantie", 750),
        DeliveryPackage("12_maanden_bovag", "12 maanden BOVAG garantie", 1000),
        DeliveryPackage(
            "12_maanden_bovag_vervangend",
            "12 maanden BOVAG garantie (vervangend vervoer)",
            1250,
        ),
    )
}

DOWN_PAYMENT_PERCENTAGES = {
    PaymentTerms.AANBETALING_5: 5,
    PaymentTerms.AANBETALING_10: 10,
}


def round_half_up(value: Decimal) -> int:
    """Round to whole euros, halves away from zero (like Math.round for amounts)."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def resolve_package(options: ContractOptions) -> Optional[DeliveryPackage]:
    """Look up the selected delivery package, None when nothing was chosen."""
    if not options.delivery_package:
        return None
    package = DELIVERY_PACKAGES.get(options.delivery_package)
    if package is None:
        raise ValidationError(f"Unknown delivery package: {options.delivery_package!r}")
    return package


def resolve_package_price(options: ContractOptions) -> int:
    """Manual warranty price wins over the package table."""
    if options.warranty_package_price is not None:
        return options.warranty_package_price
    package = resolve_package(options)
    return package.price if package else 0


def _validate(vehicle: VehicleSnapshot, options: ContractOptions) -> None:
    if vehicle.selling_price is None or vehicle.selling_price < 0:
        raise ValidationError(f"Selling price must be a non-negative amount, got {vehicle.selling_price}")
    checks = {
        "max_damage_amount": options.max_damage_amount,
        "warranty_package_price": options.warranty_package_price,
        "custom_down_payment": options.custom_down_payment,
        "trade_in_price": options.trade_in_vehicle.trade_in_price if options.trade_in_vehicle else None,
    }
    for name, value in checks.items():
        if value is not None and value < 0:
            raise ValidationError(f"{name} must not be negative, got {value}")
    # Unknown package ids are rejected for B2C even when a manual price is set
    if options.contract_type == ContractType.B2C:
        resolve_package(options)


def compute_down_payment(base_price: int, options: ContractOptions) -> tuple[int, int]:
    """Return (amount, percentage) of the down payment, always based on the selling price."""
    terms = options.payment_terms
    if terms is None:
        return 0, 0
    if terms == PaymentTerms.HANDMATIG:
        amount = options.custom_down_payment or 0
        if base_price == 0:
            return amount, 0
        return amount, round_half_up(Decimal(amount) * 100 / Decimal(base_price))
    percentage = DOWN_PAYMENT_PERCENTAGES[terms]
    return round_half_up(Decimal(base_price) * percentage / 100), percentage


def compute_pricing(vehicle: VehicleSnapshot, options: ContractOptions) -> PricingBreakdown:
    """Compute the priced breakdown for a vehicle and a set of options.

    B2B: the selling price is the total; VAT is disclosed as a split of it.
    B2C: selling price plus delivery package minus trade-in. The result is not
    clamped, a trade-in worth more than the car yields zero or less.
    """
    _validate(vehicle, options)
    base_price = vehicle.selling_price

    if options.contract_type == ContractType.B2B:
        price_excl_vat = round_half_up(Decimal(base_price) / (1 + VAT_RATE))
        return PricingBreakdown(
            contract_type=ContractType.B2B,
            base_price=base_price,
            price_excl_vat=price_excl_vat,
            vat_amount=base_price - price_excl_vat,
            final_price=base_price,
        )

    package_price = resolve_package_price(options)
    trade_in_price = options.trade_in_vehicle.trade_in_price if options.trade_in_vehicle else 0
    down_payment, percentage = compute_down_payment(base_price, options)

    return PricingBreakdown(
        contract_type=ContractType.B2C,
        base_price=base_price,
        price_excl_vat=base_price,
        delivery_package_price=package_price,
        trade_in_price=trade_in_price,
        down_payment_amount=down_payment,
        down_payment_percentage=percentage,
        final_price=base_price + package_price - trade_in_price,
    )


def preview_summary(vehicle: VehicleSnapshot, options: ContractOptions) -> str:
    """Short multi-line summary shown next to the configuration screen"""
    pricing = compute_pricing(vehicle, options)
    kind = "B2B" if options.is_b2b else "B2C"
    lines = [
        f"Koopcontract {kind}",
        f"Voertuig: {vehicle.brand} {vehicle.model}",
        f"Kenteken: {vehicle.license_number}",
        f"Prijs: {format_currency(pricing.base_price)}",
    ]
    if options.is_b2b:
        vehicle_type = options.vehicle_type.value if options.vehicle_type else "onbekend"
        lines.append(f"BTW: {options.btw_type.value}, Type: {vehicle_type}")
    else:
        package = resolve_package(options)
        lines.append(f"Pakket: {package.label if package else 'geen'}")
        lines.append(f"Totaal: {format_currency(pricing.final_price)}")
    return "\n".join(lines)
