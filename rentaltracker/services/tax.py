"""
Rental income tax - Danish bundfradrag method

Short-term rental income is taxed as personal income: 60% of the year's
revenue above a fixed allowance (bundfradrag) is taxable, at the owner's
marginal rate.

Two calculations:
- compute_booking_tax: the tax attributable to one booking, given the
  revenue the year already had before it. Stored as a snapshot.
- aggregate_period_tax: the tax for a dashboard period, either recomputed
  from the period's total revenue (lump) or summed from stored snapshots.

Both are pure and never raise for numeric input: out-of-range values are
clamped (money to >= 0, rates to [0, 1]).
"""
import logging
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from rentaltracker.config import PeriodMode, STAKEHOLDERS, TAXABLE_SHARE

logger = logging.getLogger(__name__)

Number = Union[Decimal, int, float, str]

ZERO = Decimal(0)
ONE = Decimal(1)
CENT = Decimal("0.01")
RATE_PRECISION = Decimal("0.0001")


# === NUMERIC HELPERS ===

def to_decimal(value: Optional[Number], default: Decimal = ZERO) -> Decimal:
    """Convert to Decimal; missing, unparsable or non-finite values give default"""
    if value is None:
        return default
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    if not result.is_finite():
        return default
    return result


def clamp(value: Optional[Number], low: Decimal = ZERO, high: Optional[Decimal] = None) -> Decimal:
    """Clamp to [low, high]"""
    result = max(low, to_decimal(value))
    if high is not None:
        result = min(high, result)
    return result


def round_money(value: Number) -> Decimal:
    """Round to whole øre, halves away from zero"""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def taxable_income(revenue: Decimal, bundfradrag: Decimal) -> Decimal:
    """Taxable part of a year's revenue"""
    return max(ZERO, revenue - bundfradrag) * TAXABLE_SHARE


# === VALUE OBJECTS ===

@dataclass(frozen=True)
class TaxParameters:
    """Allowance and rate for one tax year"""
    bundfradrag: Optional[Number] = ZERO
    tax_rate: Optional[Number] = ZERO

    def clamped(self) -> "TaxParameters":
        return TaxParameters(
            bundfradrag=clamp(self.bundfradrag),
            tax_rate=clamp(self.tax_rate, ZERO, ONE),
        )


@dataclass(frozen=True)
class BookingTaxResult:
    """Tax attributable to one booking"""
    booking_revenue: Decimal
    total_revenue_before: Decimal
    total_revenue_after: Decimal
    bundfradrag: Decimal
    taxable_base_booking: Decimal
    tax_on_booking: Decimal
    cut_after_tax_each: Decimal
    tax_rate: Decimal

    def rounded(self) -> "BookingTaxResult":
        """Copy rounded for storage and display (money to øre, rate to 4 decimals)"""
        values = {f.name: round_money(getattr(self, f.name)) for f in fields(self)}
        values["tax_rate"] = self.tax_rate.quantize(RATE_PRECISION, rounding=ROUND_HALF_UP)
        return BookingTaxResult(**values)

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class PeriodTaxResult:
    """Tax estimate for a dashboard period. Never stored."""
    owner_revenue: Decimal = ZERO
    owner_bundfradrag: Decimal = ZERO
    taxable_base: Decimal = ZERO
    tax_due: Decimal = ZERO
    net_after_tax: Decimal = ZERO

    def __add__(self, other: "PeriodTaxResult") -> "PeriodTaxResult":
        if not isinstance(other, PeriodTaxResult):
            return NotImplemented
        return PeriodTaxResult(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )


# === BOOKING CALCULATION ===

def compute_booking_tax(
    existing_revenue: Number,
    net_revenue: Number,
    tax_rate: Number,
    bundfradrag: Number,
    stakeholders: int = STAKEHOLDERS,
) -> BookingTaxResult:
    """
    Tax attributable to a new booking

    The allowance is used up by the year's bookings in the order they were
    added. A booking is taxed on the growth in the year's taxable income it
    causes, so only revenue above the allowance threshold is taxed:

        taxable_before = max(0, existing - bundfradrag) * 0.6
        taxable_after  = max(0, existing + net - bundfradrag) * 0.6
        taxable        = taxable_after - taxable_before
        tax            = taxable * rate

    What remains of the booking's revenue after tax is split evenly between
    the stakeholders.

    Results are at full precision; use BookingTaxResult.rounded() before
    storing or showing them.
    """
    existing = clamp(existing_revenue)
    revenue = clamp(net_revenue)
    allowance = clamp(bundfradrag)
    rate = clamp(tax_rate, ZERO, ONE)
    owners = max(1, int(stakeholders))

    total_after = existing + revenue
    taxable_before = taxable_income(existing, allowance)
    taxable_after = taxable_income(total_after, allowance)
    taxable_booking = max(ZERO, taxable_after - taxable_before)
    tax_on_booking = taxable_booking * rate
    cut_each = max(ZERO, revenue - tax_on_booking) / owners

    logger.debug(
        "Booking tax: before=%s revenue=%s allowance=%s rate=%s -> taxable=%s tax=%s",
        existing, revenue, allowance, rate, taxable_booking, tax_on_booking,
    )

    return BookingTaxResult(
        booking_revenue=revenue,
        total_revenue_before=existing,
        total_revenue_after=total_after,
        bundfradrag=allowance,
        taxable_base_booking=taxable_booking,
        tax_on_booking=tax_on_booking,
        cut_after_tax_each=cut_each,
        tax_rate=rate,
    )


# === PERIOD CALCULATION ===

def calculate_tax(
    total_revenue: Number,
    ownership_share: Number = ONE,
    bundfradrag: Number = ZERO,
    tax_rate: Number = ZERO,
) -> PeriodTaxResult:
    """
    Tax on a period's revenue taken as one block

    The owner's share scales both revenue and allowance. This does not
    reproduce the sum of booking snapshots when a year is split across
    settings changes, but the taxable base of a full year is the same
    regardless of booking order.
    """
    share = clamp(ownership_share)
    owner_revenue = clamp(total_revenue) * share
    owner_bundfradrag = clamp(bundfradrag) * share
    taxable_base = taxable_income(owner_revenue, owner_bundfradrag)
    tax_due = taxable_base * clamp(tax_rate, ZERO, ONE)

    return PeriodTaxResult(
        owner_revenue=owner_revenue,
        owner_bundfradrag=owner_bundfradrag,
        taxable_base=taxable_base,
        tax_due=tax_due,
        net_after_tax=owner_revenue - tax_due,
    )


def choose_period_mode(all_time: bool, snapshots_complete: bool) -> PeriodMode:
    """Snapshots are summed only for all-time views where every booking has one"""
    if all_time and snapshots_complete:
        return PeriodMode.SNAPSHOT_SUM
    return PeriodMode.LUMP


def aggregate_period_tax(
    mode: Union[PeriodMode, str],
    total_revenue: Number,
    settings=None,
    snapshots: Optional[Iterable] = None,
    snapshots_complete: bool = False,
    ownership_share: Number = ONE,
) -> PeriodTaxResult:
    """
    Tax estimate for a period

    mode LUMP: recompute from total_revenue with settings (anything with
    bundfradrag and tax_rate, e.g. TaxParameters or a TaxSettings row).

    mode SNAPSHOT_SUM: sum taxable_base_booking and tax_on_booking over the
    snapshots. The caller must pass snapshots_complete=True to confirm every
    booking in the period has one; otherwise use LUMP. The allowance is
    reported as 0 since each snapshot already deducted its share.

    A period without revenue gives an all-zero result.
    """
    mode = PeriodMode(mode)
    snapshots = list(snapshots or [])
    revenue = clamp(total_revenue)

    if revenue == ZERO and not snapshots:
        return PeriodTaxResult()

    if mode == PeriodMode.LUMP:
        params = TaxParameters(
            bundfradrag=getattr(settings, "bundfradrag", None),
            tax_rate=getattr(settings, "tax_rate", None),
        ).clamped()
        return calculate_tax(revenue, ownership_share, params.bundfradrag, params.tax_rate)

    if not snapshots_complete:
        raise ValueError("Snapshot sum requires a stored calculation for every booking in the period")

    taxable_base = sum((clamp(s.taxable_base_booking) for s in snapshots), ZERO)
    tax_due = sum((clamp(s.tax_on_booking) for s in snapshots), ZERO)

    return PeriodTaxResult(
        owner_revenue=revenue,
        owner_bundfradrag=ZERO,
        taxable_base=taxable_base,
        tax_due=tax_due,
        net_after_tax=revenue - tax_due,
    )
