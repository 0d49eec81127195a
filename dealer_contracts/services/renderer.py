"""Contract renderer.

Builds one list of sections from the vehicle, options and pricing, then
projects it onto two surfaces: plain text (archive, plain email bodies) and
styled markup blocks (screen, print, PDF). Because both surfaces come from the
same section list, a field can never read differently on the two.
"""

import html
from datetime import datetime, timezone
from typing import NamedTuple, Optional

from dealer_contracts.exceptions import ValidationError
from dealer_contracts.models.contract import (
    BtwType,
    CompanyProfile,
    ContractOptions,
    GeneratedContract,
    MarkupBlock,
    PaymentTerms,
    PricingBreakdown,
    VehicleType,
)
from dealer_contracts.models.vehicle import VehicleSnapshot
from dealer_contracts.services.pricing import resolve_package
from dealer_contracts.utils.config import Settings, get_settings
from dealer_contracts.utils.formatting import (
    format_currency,
    format_date,
    format_mileage,
    normalize_plate,
)

SIGNATURE_LINK_PLACEHOLDER = "{{SIGNATURE_LINK}}"

CONTRACT_TITLE = "KOOPOVEREENKOMST PERSONENAUTO"

# Legal wording, chosen by vehicle type only
VAT_DISCLOSURES = {
    VehicleType.MARGE: "Margeregeling van toepassing: de BTW wordt niet afzonderlijk vermeld en is niet aftrekbaar.",
    VehicleType.BTW: "BTW-voertuig: de verkoopprijs is inclusief 21% BTW.",
}
UNKNOWN_VAT_DISCLOSURE = "[BTW-regime onbekend]"

BPM_DISCLOSURE = "BPM is inbegrepen in de verkoopprijs (importvoertuig)."

DELIVERY_TERMS_B2B = [
    "Het voertuig wordt geleverd in de staat waarin het zich bevindt.",
    "Levering vindt plaats na volledige betaling.",
    "Het voertuig wordt geleverd conform zakelijke voorwaarden.",
    "Garantie volgens wettelijke bepalingen.",
]
DELIVERY_TERMS_B2C = [
    "Het voertuig wordt geleverd in de staat waarin het zich bevindt.",
    "Levering vindt plaats na volledige betaling.",
    "Particuliere verkoop met consumentenbescherming.",
]

FOOTER = "Deze overeenkomst is opgesteld conform Nederlandse wetgeving."


class Line(NamedTuple):
    label: Optional[str]
    value: str


class Section(NamedTuple):
    title: str
    lines: list[Line]
    style: str = "line"     # 'line' | 'clause' | 'signature_link'


def company_from_settings(settings: Optional[Settings] = None) -> CompanyProfile:
    """Build the seller profile from configuration"""
    settings = settings or get_settings()
    return CompanyProfile(
        name=settings.company_name,
        address=settings.company_address,
        vat_id=settings.company_vat_id,
        iban=settings.company_iban,
        kvk=settings.company_kvk,
        email=settings.company_email,
    )


def contract_number(license_number: str, now: datetime) -> str:
    """Human-facing contract number, unique on a best-effort basis"""
    return f"{normalize_plate(license_number)}-{now:%Y%m%d-%H%M%S}"


def contract_file_name(license_number: str, now: datetime) -> str:
    return f"koopcontract_{normalize_plate(license_number)}_{format_date(now)}.pdf"


def vat_disclosure(options: ContractOptions) -> str:
    if options.vehicle_type is None:
        return UNKNOWN_VAT_DISCLOSURE
    return VAT_DISCLOSURES[options.vehicle_type]


# ---- Sections ----

def _buyer_section(vehicle: VehicleSnapshot, options: ContractOptions) -> Section:
    customer = vehicle.customer
    address = options.contract_address or (customer.address if customer else None)
    label = "Koper (zakelijk)" if options.is_b2b else "Koper (particulier)"
    lines = [
        Line(label, vehicle.customer_name or "[Klantnaam]"),
        Line("Adres", address or "[Adres koper]"),
    ]
    if customer and customer.email:
        lines.append(Line("E-mail", customer.email))
    return Section("PARTIJEN", lines)


def _vehicle_section(vehicle: VehicleSnapshot) -> Section:
    lines = [
        Line("Merk en model", f"{vehicle.brand} {vehicle.model}".strip()),
        Line("Kenteken", vehicle.license_number or "-"),
        Line("VIN-nummer", vehicle.vin or "-"),
        Line("Kilometerstand", format_mileage(vehicle.mileage)),
    ]
    if vehicle.year:
        lines.append(Line("Bouwjaar", str(vehicle.year)))
    if vehicle.color:
        lines.append(Line("Kleur", vehicle.color))
    return Section("VOERTUIGGEGEVENS", lines)


def _trade_in_section(options: ContractOptions) -> Optional[Section]:
    trade_in = options.trade_in_vehicle
    if trade_in is None:
        return None
    return Section("INRUILVOERTUIG", [
        Line("Merk en model", f"{trade_in.brand} {trade_in.model}".strip()),
        Line("Kenteken", trade_in.license_number or "-"),
        Line("Kilometerstand", format_mileage(trade_in.mileage)),
        Line("Inruilprijs", format_currency(trade_in.trade_in_price)),
    ])


def _b2b_price_lines(options: ContractOptions, pricing: PricingBreakdown) -> list[Line]:
    if options.btw_type == BtwType.EXCLUSIVE:
        return [
            Line("Verkoopprijs excl. BTW", format_currency(pricing.price_excl_vat)),
            Line("BTW (21%)", format_currency(pricing.vat_amount)),
            Line("Verkoopprijs incl. BTW", format_currency(pricing.base_price)),
        ]
    return [
        Line("Verkoopprijs", format_currency(pricing.base_price)),
        Line("Waarvan BTW (21%)", f"{format_currency(pricing.vat_amount)} (inbegrepen)"),
        Line("Prijs excl. BTW", format_currency(pricing.price_excl_vat)),
    ]


def _price_section(options: ContractOptions, pricing: PricingBreakdown) -> Section:
    if options.is_b2b:
        lines = _b2b_price_lines(options, pricing)
    else:
        lines = [Line("Verkoopprijs", format_currency(pricing.base_price))]
        if pricing.delivery_package_price:
            lines.append(Line("Afleverpakket", format_currency(pricing.delivery_package_price)))
        if options.trade_in_vehicle is not None:
            lines.append(Line("Inruil", f"- {format_currency(pricing.trade_in_price)}"))
    lines.append(Line("BTW-regime", vat_disclosure(options)))
    lines.append(Line("Totaal te betalen", format_currency(pricing.final_price)))
    return Section("FINANCIELE BEPALINGEN", lines)


def _payment_section(options: ContractOptions, pricing: PricingBreakdown) -> Optional[Section]:
    if options.is_b2b or options.payment_terms is None:
        return None
    if options.payment_terms == PaymentTerms.HANDMATIG:
        label = "Aanbetaling (handmatig)"
    else:
        label = f"Aanbetaling ({pricing.down_payment_percentage}%)"
    return Section("BETALINGSVOORWAARDEN", [
        Line(label, format_currency(pricing.down_payment_amount)),
        Line("Restant bij aflevering", format_currency(pricing.remaining_amount)),
    ])


def _package_section(options: ContractOptions, pricing: PricingBreakdown) -> Optional[Section]:
    if options.is_b2b:
        return None
    package = resolve_package(options)
    if package is None and options.warranty_package_price is None:
        return None
    name = package.label if package else "Garantiepakket (handmatig)"
    return Section("AFLEVERPAKKET", [
        Line("Pakket", name),
        Line("Prijs", format_currency(pricing.delivery_package_price)),
    ])


def _b2b_sections(options: ContractOptions) -> list[Section]:
    sections = []
    if options.bpm_included:
        sections.append(Section("BPM", [Line(None, BPM_DISCLOSURE)]))
    if options.max_damage_amount > 0:
        sections.append(Section("SCHADE", [
            Line("Maximaal geaccepteerde schade", format_currency(options.max_damage_amount)),
        ]))
    return sections


def _delivery_section(options: ContractOptions) -> Section:
    terms = DELIVERY_TERMS_B2B if options.is_b2b else DELIVERY_TERMS_B2C
    return Section("LEVERINGSVOORWAARDEN", [Line(None, f"- {t}") for t in terms])


def _clause_sections(options: ContractOptions) -> list[Section]:
    sections = []
    for title, text in (
        ("AANVULLENDE CLAUSULES", options.additional_clauses),
        ("SPECIALE AFSPRAKEN", options.special_agreements),
    ):
        if text and text.strip():
            sections.append(Section(title, [Line(None, text.strip())], style="clause"))
    return sections


def build_sections(
    vehicle: VehicleSnapshot,
    options: ContractOptions,
    pricing: PricingBreakdown,
    company: CompanyProfile,
    today: datetime,
    with_signature_link: bool = False,
) -> list[Section]:
    """Ordered section list shared by both surfaces"""
    sections: list[Section] = [
        Section("VERKOPER", [
            Line("Verkoper", company.name),
            Line("Adres", company.address),
            Line("BTW-nummer", company.vat_id),
            Line("IBAN", company.iban),
            Line("KvK-nummer", company.kvk),
        ]),
        _buyer_section(vehicle, options),
        _vehicle_section(vehicle),
    ]
    optional = [
        _trade_in_section(options),
        _price_section(options, pricing),
        _package_section(options, pricing),
        _payment_section(options, pricing),
    ]
    sections.extend(s for s in optional if s is not None)
    if options.is_b2b:
        sections.extend(_b2b_sections(options))
    sections.append(_delivery_section(options))
    sections.extend(_clause_sections(options))
    if with_signature_link:
        sections.append(Section(
            "DIGITALE ONDERTEKENING",
            [Line("Onderteken via", SIGNATURE_LINK_PLACEHOLDER)],
            style="signature_link",
        ))
    sections.append(Section("ONDERTEKENING", [
        Line("Datum", format_date(today)),
        Line(None, "Verkoper: ________________    Koper: ________________"),
    ]))
    return sections


# ---- Surfaces ----

def _line_text(line: Line) -> str:
    return f"{line.label}: {line.value}" if line.label else line.value


def sections_to_text(title: str, meta: list[str], sections: list[Section]) -> str:
    parts = [title, *meta, ""]
    for section in sections:
        parts.append(f"{section.title}:")
        parts.extend(_line_text(line) for line in section.lines)
        parts.append("")
    parts.append(FOOTER)
    return "\n".join(parts)


def sections_to_markup(title: str, meta: list[str], sections: list[Section]) -> list[MarkupBlock]:
    blocks = [MarkupBlock(style="title", text=title)]
    blocks.extend(MarkupBlock(style="meta", text=m) for m in meta)
    for section in sections:
        blocks.append(MarkupBlock(style="section", text=section.title))
        for line in section.lines:
            blocks.append(MarkupBlock(style=section.style, text=line.value, label=line.label))
    blocks.append(MarkupBlock(style="footer", text=FOOTER))
    return blocks


def render_contract(
    vehicle: VehicleSnapshot,
    options: ContractOptions,
    pricing: PricingBreakdown,
    company: CompanyProfile,
    signature_url: Optional[str] = None,
    today: Optional[datetime] = None,
    with_signature_link: bool = False,
) -> GeneratedContract:
    """Render a contract to text and markup.

    When `signature_url` is given, or `with_signature_link` is set, a signing
    section is included holding SIGNATURE_LINK_PLACEHOLDER. A supplied URL is
    substituted straight away; otherwise use substitute_signature_link later.
    """
    if pricing.contract_type != options.contract_type:
        raise ValidationError("Pricing was computed for a different contract type")
    today = today or datetime.now(timezone.utc)
    number = contract_number(vehicle.license_number, today)
    meta = [
        f"Contractnummer: {number}",
        f"Datum: {format_date(today)}",
    ]
    sections = build_sections(
        vehicle, options, pricing, company, today,
        with_signature_link=with_signature_link or signature_url is not None,
    )
    contract = GeneratedContract(
        contract_number=number,
        file_name=contract_file_name(vehicle.license_number, today),
        contract_type=options.contract_type,
        text=sections_to_text(CONTRACT_TITLE, meta, sections),
        markup=sections_to_markup(CONTRACT_TITLE, meta, sections),
    )
    if signature_url:
        contract = substitute_signature_link(contract, signature_url)
    return contract


def substitute_signature_link(contract: GeneratedContract, url: str) -> GeneratedContract:
    """Fill the signature placeholder on both surfaces without re-rendering."""
    if SIGNATURE_LINK_PLACEHOLDER not in contract.text:
        raise ValidationError("Contract was rendered without a signature link placeholder")
    markup = [
        block.model_copy(update={"text": block.text.replace(SIGNATURE_LINK_PLACEHOLDER, url)})
        for block in contract.markup
    ]
    return contract.model_copy(update={
        "text": contract.text.replace(SIGNATURE_LINK_PLACEHOLDER, url),
        "markup": markup,
        "signature_url": url,
    })


def render_html(contract: GeneratedContract) -> str:
    """Styled HTML document of the markup surface, for screens and email bodies"""
    body = []
    for block in contract.markup:
        text = html.escape(block.text)
        label = html.escape(block.label) if block.label else None
        if block.style == "title":
            body.append(f"<h1>{text}</h1>")
        elif block.style == "meta":
            body.append(f'<p class="meta">{text}</p>')
        elif block.style == "section":
            body.append(f"<h2>{text}</h2>")
        elif block.style == "signature_link":
            body.append(f'<p class="signature"><strong>{label}:</strong> <a href="{text}">{text}</a></p>')
        elif block.style == "clause":
            body.append(f'<p class="clause">{text}</p>'.replace("\n", "<br/>"))
        elif block.style == "footer":
            body.append(f'<p class="footer">{text}</p>')
        elif label:
            body.append(f"<p><strong>{label}:</strong> {text}</p>")
        else:
            body.append(f"<p>{text}</p>")
    return (
        "<!DOCTYPE html>\n<html lang=\"nl\"><head><meta charset=\"utf-8\">"
        f"<title>{html.escape(contract.file_name)}</title>"
        "<style>body{font-family:Helvetica,Arial,sans-serif;max-width:800px;margin:auto}"
        "h1{text-align:center;color:#1a5f7a}h2{color:#1a5f7a;font-size:1.05em}"
        ".meta{color:#666}.footer{font-size:.8em;color:#666}</style></head><body>\n"
        + "\n".join(body)
        + "\n</body></html>"
    )
