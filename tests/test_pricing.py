"""Tests for the pricing calculator"""

import pytest

from dealer_contracts.exceptions import ValidationError
from dealer_contracts.models import ContractOptions, ContractType, TradeInVehicle, VehicleSnapshot, parse_options
from dealer_contracts.services.pricing import (
    DELIVERY_PACKAGES,
    compute_down_payment,
    compute_pricing,
    preview_summary,
    round_half_up,
)


def make_vehicle(price: int) -> VehicleSnapshot:
    return VehicleSnapshot(id="v1", brand="Peugeot", model="208", license_number="XX-999-Y", selling_price=price)


def b2c(**kwargs) -> ContractOptions:
    return ContractOptions(contract_type=ContractType.B2C, **kwargs)


def b2b(**kwargs) -> ContractOptions:
    return ContractOptions(contract_type=ContractType.B2B, **kwargs)


# ──────────────────────────────────────────────────────────────────
# Worked examples
# ──────────────────────────────────────────────────────────────────

class TestExamples:

    def test_b2b_vat_split(self):
        pricing = compute_pricing(make_vehicle(27000), b2b())
        assert pricing.price_excl_vat == 22314
        assert pricing.vat_amount == 4686
        assert pricing.final_price == 27000

    def test_b2c_with_package(self):
        pricing = compute_pricing(make_vehicle(20000), b2c(delivery_package="12_maanden_autocity"))
        assert pricing.delivery_package_price == 750
        assert pricing.final_price == 20750

    def test_b2c_with_package_and_trade_in(self):
        options = b2c(
            delivery_package="12_maanden_autocity",
            trade_in_vehicle=TradeInVehicle(brand="Opel", model="Corsa", trade_in_price=5000),
        )
        pricing = compute_pricing(make_vehicle(20000), options)
        assert pricing.trade_in_price == 5000
        assert pricing.final_price == 15750

    def test_ten_percent_down_payment(self):
        pricing = compute_pricing(make_vehicle(20000), b2c(payment_terms="aanbetaling_10"))
        assert pricing.down_payment_amount == 2000
        assert pricing.down_payment_percentage == 10
        assert pricing.remaining_amount == 18000


# ──────────────────────────────────────────────────────────────────
# Invariants
# ──────────────────────────────────────────────────────────────────

class TestInvariants:

    @pytest.mark.parametrize("price", [0, 1, 999, 12345, 27000, 99999])
    def test_b2b_parts_add_up(self, price):
        pricing = compute_pricing(make_vehicle(price), b2b())
        assert pricing.price_excl_vat + pricing.vat_amount == pricing.base_price
        assert pricing.final_price == price

    def test_b2c_total_with_trade_in_above_price_is_not_clamped(self):
        options = b2c(trade_in_vehicle=TradeInVehicle(trade_in_price=25000))
        pricing = compute_pricing(make_vehicle(20000), options)
        assert pricing.final_price == -5000

    def test_b2c_total_formula(self):
        options = b2c(
            delivery_package="12_maanden_bovag",
            trade_in_vehicle=TradeInVehicle(trade_in_price=3210),
        )
        pricing = compute_pricing(make_vehicle(18765), options)
        assert pricing.final_price == 18765 + 1000 - 3210

    def test_down_payment_ignores_package_and_trade_in(self):
        plain = compute_pricing(make_vehicle(20000), b2c(payment_terms="aanbetaling_5"))
        loaded = compute_pricing(make_vehicle(20000), b2c(
            payment_terms="aanbetaling_5",
            delivery_package="12_maanden_bovag_vervangend",
            trade_in_vehicle=TradeInVehicle(trade_in_price=4000),
        ))
        assert plain.down_payment_amount == loaded.down_payment_amount == 1000

    def test_deterministic(self):
        options = b2c(delivery_package="6_maanden_autocity", payment_terms="aanbetaling_10")
        assert compute_pricing(make_vehicle(15999), options) == compute_pricing(make_vehicle(15999), options)

    def test_b2b_ignores_consumer_options(self):
        pricing = compute_pricing(make_vehicle(10000), b2b(
            delivery_package="12_maanden_bovag",
            payment_terms="aanbetaling_10",
        ))
        assert pricing.delivery_package_price == 0
        assert pricing.down_payment_amount == 0
        assert pricing.final_price == 10000


# ──────────────────────────────────────────────────────────────────
# Packages, rounding, down payments
# ──────────────────────────────────────────────────────────────────

class TestComponents:

    def test_package_table(self):
        prices = {pid: p.price for pid, p in DELIVERY_PACKAGES.items()}
        assert prices == {
            "geen_garantie_b2b": 0,
            "garantie_wettelijk": 0,
            "6_maanden_autocity": 500,
            "12_maanden_autocity": 750,
            "12_maanden_bovag": 1000,
            "12_maanden_bovag_vervangend": 1250,
        }

    def test_manual_warranty_price_wins(self):
        pricing = compute_pricing(make_vehicle(20000), b2c(
            delivery_package="12_maanden_bovag", warranty_package_price=600,
        ))
        assert pricing.delivery_package_price == 600
        assert pricing.final_price == 20600

    def test_round_half_up(self):
        from decimal import Decimal
        assert round_half_up(Decimal("0.5")) == 1
        assert round_half_up(Decimal("1.5")) == 2
        assert round_half_up(Decimal("2.5")) == 3
        assert round_half_up(Decimal("2.49")) == 2

    def test_five_percent_rounds_half_up(self):
        amount, pct = compute_down_payment(12330, b2c(payment_terms="aanbetaling_5"))
        assert (amount, pct) == (617, 5)   # 616.5

    def test_manual_down_payment(self):
        amount, pct = compute_down_payment(20000, b2c(payment_terms="handmatig", custom_down_payment=3000))
        assert (amount, pct) == (3000, 15)

    def test_manual_down_payment_on_zero_price(self):
        amount, pct = compute_down_payment(0, b2c(payment_terms="handmatig", custom_down_payment=100))
        assert (amount, pct) == (100, 0)

    def test_no_terms_no_down_payment(self):
        assert compute_down_payment(20000, b2c()) == (0, 0)


# ──────────────────────────────────────────────────────────────────
# Rejected input
# ──────────────────────────────────────────────────────────────────

class TestValidation:

    def test_negative_price(self):
        with pytest.raises(ValidationError):
            compute_pricing(make_vehicle(-1), b2c())

    def test_unknown_package(self):
        with pytest.raises(ValidationError, match="Unknown delivery package"):
            compute_pricing(make_vehicle(20000), b2c(delivery_package="levenslang"))

    def test_negative_trade_in(self):
        with pytest.raises(ValidationError):
            compute_pricing(make_vehicle(20000), b2c(trade_in_vehicle=TradeInVehicle(trade_in_price=-1)))

    def test_manual_terms_without_amount_default_to_zero(self):
        pricing = compute_pricing(make_vehicle(20000), b2c(payment_terms="handmatig"))
        assert pricing.down_payment_amount == 0
        assert pricing.down_payment_percentage == 0
        assert pricing.final_price == 20000

    def test_manual_terms_do_not_affect_b2b(self):
        pricing = compute_pricing(make_vehicle(27000), b2b(payment_terms="handmatig"))
        assert pricing.price_excl_vat == 22314
        assert pricing.vat_amount == 4686
        assert pricing.final_price == 27000

    def test_parse_options_rejects_bad_enum(self):
        with pytest.raises(ValidationError):
            parse_options({"contract_type": "b2x"})

    def test_parse_options_rejects_non_numeric(self):
        with pytest.raises(ValidationError):
            parse_options({"max_damage_amount": "veel"})


def test_preview_summary_b2c():
    summary = preview_summary(make_vehicle(20000), b2c(delivery_package="12_maanden_autocity"))
    assert "Koopcontract B2C" in summary
    assert "€ 20.750" in summary
    assert "12 maanden Auto City garantie" in summary


def test_preview_summary_b2b_unknown_type():
    summary = preview_summary(make_vehicle(27000), b2b())
    assert "Type: onbekend" in summary
