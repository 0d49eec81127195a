"""Dutch number, currency and date formatting"""

import re
from datetime import date, datetime
from typing import Optional


def format_number(value: int | float) -> str:
    """Format a number with Dutch thousands separators: 27000 -> '27.000'"""
    return f"{value:,.0f}".replace(",", ".")


def format_currency(amount: int | float | None) -> str:
    """Format whole euros: 27000 -> '€ 27.000', -500 -> '€ -500'"""
    if amount is None:
        return "€ 0"
    return f"€ {format_number(amount)}"


def format_date(value: date | datetime) -> str:
    """Format a date the way nl-NL does: 17-10-2026"""
    return value.strftime("%d-%m-%Y")


def format_mileage(km: Optional[int]) -> str:
    if km is None:
        return "onbekend"
    return f"{format_number(km)} km"


def normalize_plate(license_number: str) -> str:
    """Uppercase a license plate and keep only letters, digits and dashes."""
    plate = re.sub(r"[^A-Za-z0-9-]", "", license_number or "")
    return plate.upper() or "ONBEKEND"
