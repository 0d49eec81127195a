"""Tests for the contract renderer"""

from datetime import datetime, timezone

import pytest

from dealer_contracts.exceptions import ValidationError
from dealer_contracts.models import (
    CompanyProfile,
    ContactInfo,
    ContractOptions,
    ContractType,
    TradeInVehicle,
    VehicleSnapshot,
)
from dealer_contracts.services.pricing import compute_pricing
from dealer_contracts.services.renderer import (
    SIGNATURE_LINK_PLACEHOLDER,
    UNKNOWN_VAT_DISCLOSURE,
    VAT_DISCLOSURES,
    render_contract,
    render_html,
    substitute_signature_link,
)

TODAY = datetime(2026, 3, 14, 10, 30, 5)

COMPANY = CompanyProfile(
    name="Auto City",
    address="Industrieweg 1, 1234 AB Amsterdam",
    vat_id="NL000000000B01",
    iban="NL00BANK0000000000",
    kvk="00000000",
)

VEHICLE = VehicleSnapshot(
    id="v1",
    vin="VF3ABCDEF12345678",
    license_number="xx-999-y",
    brand="Peugeot",
    model="208",
    year=2021,
    mileage=45210,
    selling_price=20000,
    customer=ContactInfo(name="Sanne Bakker", email="sanne@example.nl", address="Dorpsweg 3, Utrecht"),
)


def render(options: ContractOptions, vehicle: VehicleSnapshot = VEHICLE, **kwargs):
    return render_contract(vehicle, options, compute_pricing(vehicle, options), COMPANY, today=TODAY, **kwargs)


class TestHeader:

    def test_contract_number_and_file_name(self):
        contract = render(ContractOptions())
        assert contract.contract_number == "XX-999-Y-20260314-103005"
        assert contract.file_name == "koopcontract_XX-999-Y_14-03-2026.pdf"

    def test_default_date_is_utc(self, monkeypatch):
        class LateEvening(datetime):
            @classmethod
            def now(cls, tz=None):
                utc = datetime(2026, 3, 14, 23, 30, tzinfo=timezone.utc)
                return utc if tz is not None else datetime(2026, 3, 15, 1, 30)

        monkeypatch.setattr("dealer_contracts.services.renderer.datetime", LateEvening)
        contract = render_contract(VEHICLE, ContractOptions(), compute_pricing(VEHICLE, ContractOptions()), COMPANY)
        assert contract.contract_number == "XX-999-Y-20260314-233000"
        assert contract.file_name == "koopcontract_XX-999-Y_14-03-2026.pdf"

    def test_seller_and_buyer(self):
        text = render(ContractOptions()).text
        assert "Verkoper: Auto City" in text
        assert "KvK-nummer: 00000000" in text
        assert "Koper (particulier): Sanne Bakker" in text
        assert "Adres: Dorpsweg 3, Utrecht" in text

    def test_contract_address_overrides_customer_address(self):
        text = render(ContractOptions(contract_address="Postbus 1, Den Haag")).text
        assert "Adres: Postbus 1, Den Haag" in text
        assert "Dorpsweg 3" not in text

    def test_missing_customer_uses_placeholders(self):
        vehicle = VEHICLE.model_copy(update={"customer": None})
        text = render(ContractOptions(), vehicle=vehicle).text
        assert "[Klantnaam]" in text
        assert "[Adres koper]" in text

    def test_mileage_formatted(self):
        assert "Kilometerstand: 45.210 km" in render(ContractOptions()).text


class TestConditionalSections:

    def test_vat_disclosure_follows_vehicle_type(self):
        for vehicle_type, wording in VAT_DISCLOSURES.items():
            text = render(ContractOptions(vehicle_type=vehicle_type)).text
            assert wording in text

    def test_unknown_vehicle_type_is_flagged(self):
        text = render(ContractOptions(contract_type=ContractType.B2B)).text
        assert UNKNOWN_VAT_DISCLOSURE in text

    def test_b2b_sections(self):
        options = ContractOptions(contract_type=ContractType.B2B, bpm_included=True, max_damage_amount=1500)
        text = render(options).text
        assert "BPM:" in text
        assert "Maximaal geaccepteerde schade: € 1.500" in text
        assert "AFLEVERPAKKET" not in text
        assert "Koper (zakelijk)" in text

    def test_b2b_without_bpm_or_damage(self):
        text = render(ContractOptions(contract_type=ContractType.B2B)).text
        assert "BPM:" not in text
        assert "SCHADE:" not in text

    def test_b2b_exclusive_shows_excl_first(self):
        text = render(ContractOptions(contract_type=ContractType.B2B, btw_type="exclusive")).text
        assert "Verkoopprijs excl. BTW: € 16.529" in text
        assert "BTW (21%): € 3.471" in text

    def test_b2c_package_and_payment(self):
        options = ContractOptions(delivery_package="12_maanden_autocity", payment_terms="aanbetaling_10")
        text = render(options).text
        assert "Pakket: 12 maanden Auto City garantie" in text
        assert "Aanbetaling (10%): € 2.000" in text
        assert "Restant bij aflevering: € 18.750" in text
        assert "Totaal te betalen: € 20.750" in text

    def test_trade_in_section_only_with_trade_in(self):
        assert "INRUILVOERTUIG" not in render(ContractOptions()).text
        options = ContractOptions(trade_in_vehicle=TradeInVehicle(brand="Opel", model="Corsa", trade_in_price=5000))
        text = render(options).text
        assert "INRUILVOERTUIG" in text
        assert "Inruilprijs: € 5.000" in text

    def test_empty_clauses_are_omitted(self):
        text = render(ContractOptions(additional_clauses="   ", special_agreements="")).text
        assert "AANVULLENDE CLAUSULES" not in text
        assert "SPECIALE AFSPRAKEN" not in text

    def test_clauses_included(self):
        text = render(ContractOptions(special_agreements="Winterbanden worden meegeleverd.")).text
        assert "SPECIALE AFSPRAKEN:" in text
        assert "Winterbanden worden meegeleverd." in text


class TestSignatureLink:

    def test_no_link_section_by_default(self):
        contract = render(ContractOptions())
        assert SIGNATURE_LINK_PLACEHOLDER not in contract.text
        assert "DIGITALE ONDERTEKENING" not in contract.text

    def test_placeholder_then_substitution(self):
        contract = render(ContractOptions(), with_signature_link=True)
        assert SIGNATURE_LINK_PLACEHOLDER in contract.text

        url = "https://dealer.test/contract/sign/abc"
        signed = substitute_signature_link(contract, url)
        assert url in signed.text
        assert SIGNATURE_LINK_PLACEHOLDER not in signed.text
        assert any(b.style == "signature_link" and b.text == url for b in signed.markup)
        assert signed.signature_url == url

    def test_substitution_needs_placeholder(self):
        with pytest.raises(ValidationError):
            substitute_signature_link(render(ContractOptions()), "https://dealer.test/x")

    def test_url_given_up_front(self):
        contract = render(ContractOptions(), signature_url="https://dealer.test/contract/sign/t")
        assert "Onderteken via: https://dealer.test/contract/sign/t" in contract.text


class TestSurfaces:

    def test_text_and_markup_carry_same_values(self):
        options = ContractOptions(
            delivery_package="12_maanden_bovag",
            payment_terms="aanbetaling_5",
            trade_in_vehicle=TradeInVehicle(brand="Opel", model="Corsa", trade_in_price=2500),
        )
        contract = render(options)
        for block in contract.markup:
            if block.label:
                assert f"{block.label}: {block.text}" in contract.text
            else:
                assert block.text in contract.text

    def test_html_escapes_content(self):
        contract = render(ContractOptions(special_agreements="<script>alert(1)</script>"))
        html = render_html(contract)
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_deterministic(self):
        options = ContractOptions(delivery_package="6_maanden_autocity")
        assert render(options) == render(options)

    def test_pricing_type_mismatch(self):
        pricing = compute_pricing(VEHICLE, ContractOptions(contract_type=ContractType.B2B))
        with pytest.raises(ValidationError):
            render_contract(VEHICLE, ContractOptions(), pricing, COMPANY, today=TODAY)
