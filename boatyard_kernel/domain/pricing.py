"""
Configuration pricing (``boatyard_kernel.domain.pricing``).

Responsibility
--------------
The single pricing algorithm for a boat configuration.  Every figure a
quote, snapshot, amendment or BOM shows comes from these functions.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over ``Decimal``.  ZERO I/O.

Invariants enforced
-------------------
* Money is ``Decimal``, never ``float``.
* Every named step is rounded half-up to two places before it feeds the
  next step, so results are bit-reproducible:

      line        = r2(quantity * unit_price)
      subtotal    = sum(line for included items)
      discount    = r2(subtotal * pct / 100)       (0 without discount)
      total_excl  = subtotal - discount
      vat         = r2(total_excl * rate / 100)
      total_incl  = total_excl + vat
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
_CENT = Decimal("0.01")
_WHOLE = Decimal("1")

DEFAULT_VAT_RATE = Decimal("21")

VAT_RATES: dict[str, Decimal] = {
    "NL": Decimal("21"),
    "DE": Decimal("19"),
    "BE": Decimal("21"),
    "FR": Decimal("20"),
    "UK": Decimal("20"),
}


class PricedLine(Protocol):
    """Anything with a line total and an inclusion flag."""

    line_total_excl_vat: Decimal
    is_included: bool


def round2(value: Decimal | int | str) -> Decimal:
    """Round half-up to two decimal places."""
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_whole(value: Decimal | int | str) -> Decimal:
    """Round half-up to whole currency units."""
    return Decimal(value).quantize(_WHOLE, rounding=ROUND_HALF_UP)


def line_total(quantity: Decimal, unit_price: Decimal) -> Decimal:
    return round2(Decimal(quantity) * Decimal(unit_price))


def subtotal_excl_vat(lines: Iterable[PricedLine]) -> Decimal:
    """Sum of line totals of included lines."""
    total = ZERO
    for line in lines:
        if line.is_included:
            total += line.line_total_excl_vat
    return round2(total)


def discount_amount(subtotal: Decimal, discount_percent: Decimal | None) -> Decimal:
    if not discount_percent:
        return ZERO
    return round2(subtotal * Decimal(discount_percent) / HUNDRED)


def vat_amount(total_excl_vat: Decimal, vat_rate: Decimal) -> Decimal:
    return round2(total_excl_vat * Decimal(vat_rate) / HUNDRED)


def vat_rate_for_country(country_code: str | None) -> Decimal:
    """VAT rate for an ISO country code, falling back to the default rate."""
    if not country_code:
        return DEFAULT_VAT_RATE
    return VAT_RATES.get(country_code.upper(), DEFAULT_VAT_RATE)


@dataclass(frozen=True)
class ConfigurationPricing:
    """Aggregates computed from items, discount and VAT rate."""

    subtotal_excl_vat: Decimal
    discount_amount: Decimal
    total_excl_vat: Decimal
    vat_amount: Decimal
    total_incl_vat: Decimal


def price_lines(
    lines: Iterable[PricedLine],
    discount_percent: Decimal | None,
    vat_rate: Decimal,
) -> ConfigurationPricing:
    """Run the full pricing algorithm over already-computed line totals."""
    subtotal = subtotal_excl_vat(lines)
    discount = discount_amount(subtotal, discount_percent)
    total_excl = subtotal - discount
    vat = vat_amount(total_excl, vat_rate)
    return ConfigurationPricing(
        subtotal_excl_vat=subtotal,
        discount_amount=discount,
        total_excl_vat=total_excl,
        vat_amount=vat,
        total_incl_vat=total_excl + vat,
    )
