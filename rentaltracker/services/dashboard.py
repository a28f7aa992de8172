"""
Dashboard - period overview, bookings table and seasonality

A period is a single tax year or all time (year=None).
"""
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from rentaltracker.config import PeriodMode
from rentaltracker.models import Apartment, Booking, TaxSettings
from rentaltracker.services.rental import RentalService
from rentaltracker.services.tax import (
    PeriodTaxResult, aggregate_period_tax, choose_period_mode,
)

logger = logging.getLogger(__name__)


@dataclass
class ApartmentSummary:
    apartment: Apartment
    revenue: Decimal
    tax: PeriodTaxResult
    mode: PeriodMode


@dataclass
class PeriodSummary:
    """Figures shown in the period overview"""
    year: Optional[int]
    settings: TaxSettings
    bookings: list[Booking]
    apartments: list[ApartmentSummary] = field(default_factory=list)

    @property
    def is_all_time(self) -> bool:
        return self.year is None

    @property
    def title(self) -> str:
        return "All time summary" if self.is_all_time else f"{self.year} summary"

    @property
    def total(self) -> PeriodTaxResult:
        return sum((a.tax for a in self.apartments), PeriodTaxResult())

    @property
    def overall_revenue(self) -> Decimal:
        return sum((a.revenue for a in self.apartments), Decimal(0))

    @property
    def overall_tax_due(self) -> Decimal:
        return self.total.tax_due

    @property
    def overall_net_after_tax(self) -> Decimal:
        return self.total.net_after_tax


@dataclass
class SeasonalityRow:
    """Revenue by check-in month and booked nights per month for one apartment"""
    apartment: Apartment
    revenue: list[Decimal]
    nights: list[int]

    @property
    def best_month(self) -> int:
        """Index of the month with the most revenue (first one on ties)"""
        best = 0
        for index, value in enumerate(self.revenue):
            if value > self.revenue[best]:
                best = index
        return best


def year_options(current_year: int, count: int = 5) -> list[int]:
    """The years offered in the period selector, newest first"""
    return [current_year - offset for offset in range(count)]


def sorted_bookings(
    bookings: list[Booking],
    apartment_id: Optional[int] = None,
    apartment_ids: Optional[set] = None,
) -> list[Booking]:
    """
    Bookings for the table: by apartment name, then latest check-in and check-out

    apartment_id filters to one apartment; an id not in apartment_ids is
    ignored.
    """
    result = sorted(bookings, key=lambda b: (b.start_date, b.end_date), reverse=True)
    result.sort(key=lambda b: b.apartment.name if b.apartment else "")

    if apartment_id is not None and (apartment_ids is None or apartment_id in apartment_ids):
        result = [b for b in result if b.apartment_id == apartment_id]
    return result


def seasonality(
    bookings: list[Booking],
    apartments: list[Apartment],
    year: Optional[int] = None,
) -> list[SeasonalityRow]:
    """
    Month buckets per apartment

    Revenue goes to the check-in month. Nights are counted in the month
    they fall in; for a single year only the nights inside that year count.
    """
    rows = {a.id: SeasonalityRow(a, [Decimal(0)] * 12, [0] * 12) for a in apartments}

    for booking in bookings:
        row = rows.get(booking.apartment_id)
        if row is None:
            continue
        row.revenue[booking.start_date.month - 1] += Decimal(str(booking.net_revenue_dkk))

        month_start = booking.start_date.replace(day=1)
        while month_start < booking.end_date:
            month_end = (month_start + timedelta(days=32)).replace(day=1)
            if year is None or month_start.year == year:
                row.nights[month_start.month - 1] += booking.nights_between(month_start, month_end)
            month_start = month_end

    return [rows[a.id] for a in apartments]


class DashboardService:
    """Builds the dashboard figures from stored bookings"""

    def __init__(self, db: Session):
        self.db = db
        self.rental_service = RentalService(db)

    def build_period_summary(self, year: Optional[int], today: Optional[date] = None) -> PeriodSummary:
        """
        Revenue and tax per apartment for a year or all time (year=None)

        All-time figures sum the frozen booking calculations when every
        booking of the apartment has one. Otherwise, and for single years,
        tax is recomputed from the revenue total with the settings of the
        selected year (current year for all time).
        """
        today = today or date.today()
        settings = self.rental_service.get_or_create_tax_settings(year if year is not None else today.year)
        apartments = self.rental_service.list_apartments()
        bookings = self.rental_service.list_bookings(year)

        summary = PeriodSummary(year=year, settings=settings, bookings=bookings)

        for apartment in apartments:
            apartment_bookings = [b for b in bookings if b.apartment_id == apartment.id]
            revenue = sum((Decimal(str(b.net_revenue_dkk)) for b in apartment_bookings), Decimal(0))
            snapshots = [b.snapshot for b in apartment_bookings]
            complete = bool(apartment_bookings) and all(s is not None for s in snapshots)

            mode = choose_period_mode(all_time=year is None, snapshots_complete=complete)
            tax = aggregate_period_tax(
                mode,
                revenue,
                settings=settings,
                snapshots=snapshots if mode == PeriodMode.SNAPSHOT_SUM else None,
                snapshots_complete=complete,
                ownership_share=apartment.ownership_share,
            )
            summary.apartments.append(ApartmentSummary(apartment, revenue, tax, mode))

        logger.debug("Period %s: revenue=%s tax=%s",
                     year or "all", summary.overall_revenue, summary.overall_tax_due)
        return summary
