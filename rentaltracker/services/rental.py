"""
Rental service - apartments, bookings and tax settings

Stores bookings together with their tax calculation. The calculation of a
new booking depends on the revenue the year already had, so creating
bookings is serialized per tax year.
"""
import json
import logging
import threading
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from rentaltracker.config import (
    CALC_NOTE_PREFIX, DEFAULT_APARTMENTS, DEFAULT_BUNDFRADRAG_PLATFORM,
    DEFAULT_BUNDFRADRAG_PRIVATE, DEFAULT_TAX_RATE, LEGACY_APARTMENT_NAMES,
)
from rentaltracker.models import Apartment, Booking, BookingCalculation, TaxSettings
from rentaltracker.services.tax import BookingTaxResult, compute_booking_tax, to_decimal

logger = logging.getLogger(__name__)


class InvalidBookingError(ValueError):
    """A booking was rejected before any calculation"""


def parse_snapshot_from_notes(notes: Optional[str]) -> Optional[dict]:
    """
    Read a calculation stored in booking notes by older versions

    The snapshot is JSON after the last '[calc_snapshot]' marker.
    """
    if not notes or CALC_NOTE_PREFIX not in notes:
        return None
    raw = notes[notes.rindex(CALC_NOTE_PREFIX) + len(CALC_NOTE_PREFIX):].strip()
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    # Older notes used *_dkk keys
    def value(name):
        return to_decimal(data.get(name, data.get(f"{name}_dkk")))

    return {
        "year": int(value("year")),
        "booking_revenue": value("booking_revenue"),
        "total_revenue_before": value("total_revenue_before"),
        "total_revenue_after": value("total_revenue_after"),
        "bundfradrag": value("bundfradrag"),
        "taxable_base_booking": value("taxable_base_booking"),
        "tax_on_booking": value("tax_on_booking"),
        "cut_after_tax_each": value("cut_after_tax_each"),
        "tax_rate": value("tax_rate"),
    }


class RentalService:
    """
    Service for rental bookkeeping

    Handles:
    - Apartments
    - Tax settings per year
    - Bookings and their frozen tax calculation
    """

    # One lock per tax year, shared by all sessions in the process. Locks are
    # never removed; keys are calendar years, so this holds a handful of entries.
    _year_locks = defaultdict(threading.Lock)
    _year_locks_guard = threading.Lock()

    def __init__(self, db: Session):
        self.db = db

    # === APARTMENTS ===

    def ensure_apartments(self) -> None:
        """Create the default apartments, or rename the old placeholder pair"""
        apartments = self.db.query(Apartment).order_by(Apartment.created_at, Apartment.id).all()

        if not apartments:
            for name in DEFAULT_APARTMENTS:
                self.db.add(Apartment(name=name, ownership_share=1))
            self.db.commit()
            logger.info("Created default apartments: %s", ", ".join(DEFAULT_APARTMENTS))
            return

        names = {a.name for a in apartments}
        if len(apartments) == len(LEGACY_APARTMENT_NAMES) and names <= LEGACY_APARTMENT_NAMES:
            for apartment, name in zip(apartments, DEFAULT_APARTMENTS):
                apartment.name = name
                apartment.ownership_share = 1
            self.db.commit()
            logger.info("Renamed placeholder apartments")

    def list_apartments(self) -> list[Apartment]:
        """All apartments by name"""
        return self.db.query(Apartment).order_by(Apartment.name).all()

    def get_apartment(self, apartment_id: int) -> Optional[Apartment]:
        return self.db.query(Apartment).filter(Apartment.id == apartment_id).first()

    def create_apartment(self, name: str) -> Apartment:
        """Add an apartment (sole ownership)"""
        name = (name or "").strip()
        if not name:
            raise ValueError("Apartment name is required")
        apartment = Apartment(name=name, ownership_share=1)
        self.db.add(apartment)
        self.db.commit()
        self.db.refresh(apartment)
        logger.info("Created apartment %s (%s)", apartment.id, name)
        return apartment

    def rename_apartment(self, apartment_id: int, name: str) -> Apartment:
        name = (name or "").strip()
        if not name:
            raise ValueError("Apartment name is required")
        apartment = self.get_apartment(apartment_id)
        if not apartment:
            raise ValueError(f"Apartment {apartment_id} does not exist")
        apartment.name = name
        self.db.commit()
        return apartment

    # === TAX SETTINGS ===

    def get_or_create_tax_settings(self, year: int) -> TaxSettings:
        """Settings for a year, created with defaults the first time"""
        settings = self.db.query(TaxSettings).filter(TaxSettings.year == year).first()
        if settings:
            return settings

        settings = TaxSettings(
            year=year,
            bundfradrag_platform_dkk=DEFAULT_BUNDFRADRAG_PLATFORM,
            bundfradrag_private_dkk=DEFAULT_BUNDFRADRAG_PRIVATE,
            uses_platform=True,
            tax_rate=DEFAULT_TAX_RATE,
        )
        self.db.add(settings)
        self.db.commit()
        self.db.refresh(settings)
        logger.info("Created default tax settings for %s", year)
        return settings

    def update_tax_settings(self, settings_id: int, bundfradrag: Decimal, tax_rate: Decimal) -> TaxSettings:
        """
        Change allowance and rate for a year

        The allowance is written to both the platform and private fields.
        Existing booking calculations are not touched.
        """
        settings = self.db.query(TaxSettings).filter(TaxSettings.id == settings_id).first()
        if not settings:
            raise ValueError(f"Tax settings {settings_id} do not exist")

        bundfradrag = to_decimal(bundfradrag)
        settings.bundfradrag_platform_dkk = bundfradrag
        settings.bundfradrag_private_dkk = bundfradrag
        settings.uses_platform = True
        settings.tax_rate = to_decimal(tax_rate)
        self.db.commit()
        self.db.refresh(settings)
        logger.info("Updated tax settings for %s: bundfradrag=%s rate=%s",
                    settings.year, bundfradrag, settings.tax_rate)
        return settings

    # === BOOKINGS ===

    def list_bookings(self, year: Optional[int] = None) -> list[Booking]:
        """
        Bookings with apartment and calculation, newest check-in first

        year=None gives all bookings. Bookings without a calculation row get
        one from their notes when available (not saved).
        """
        query = (
            self.db.query(Booking)
            .options(joinedload(Booking.apartment), joinedload(Booking.calculation))
        )
        if year is not None:
            query = query.filter(
                Booking.start_date >= date(year, 1, 1),
                Booking.start_date <= date(year, 12, 31),
            )
        bookings = query.order_by(Booking.start_date.desc(), Booking.id.desc()).all()

        for booking in bookings:
            if booking.calculation is None:
                snapshot = parse_snapshot_from_notes(booking.notes)
                if snapshot:
                    snapshot["year"] = snapshot["year"] or booking.year
                    # Transient, never added to the session
                    booking.note_calculation = BookingCalculation(**snapshot)
        return bookings

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        return self.db.query(Booking).filter(Booking.id == booking_id).first()

    def get_total_revenue_for_year(self, year: int) -> Decimal:
        """Net revenue of all bookings checking in during the year, all apartments"""
        result = (
            self.db.query(func.coalesce(func.sum(Booking.net_revenue_dkk), 0))
            .filter(
                Booking.start_date >= date(year, 1, 1),
                Booking.start_date <= date(year, 12, 31),
            )
            .scalar()
        )
        return Decimal(str(result or 0))

    def validate_booking(
        self,
        apartment_id: int,
        start_date: date,
        end_date: date,
        net_revenue: Decimal,
    ) -> None:
        """Raise InvalidBookingError for bookings that must not be stored"""
        if not apartment_id or not self.get_apartment(apartment_id):
            raise InvalidBookingError("Choose an apartment")
        if not start_date or not end_date:
            raise InvalidBookingError("Check-in and check-out dates are required")
        if start_date > end_date:
            raise InvalidBookingError("Check-out cannot be before check-in")
        if to_decimal(net_revenue) <= 0:
            raise InvalidBookingError("Net revenue must be greater than zero")

    @classmethod
    def _lock_for_year(cls, year: int) -> threading.Lock:
        with cls._year_locks_guard:
            return cls._year_locks[year]

    def create_booking(
        self,
        apartment_id: int,
        start_date: date,
        end_date: date,
        net_revenue: Decimal,
        notes: Optional[str] = None,
    ) -> tuple[Booking, BookingTaxResult]:
        """
        Register a booking and freeze its tax calculation

        Within the year's lock: read settings and the revenue so far,
        calculate, then store booking and calculation in one commit.
        Returns the booking and the unrounded calculation.

        Raises InvalidBookingError for a missing apartment, reversed dates or
        non-positive revenue.
        """
        self.validate_booking(apartment_id, start_date, end_date, net_revenue)
        net_revenue = to_decimal(net_revenue)
        year = start_date.year

        with self._lock_for_year(year):
            settings = self.get_or_create_tax_settings(year)
            revenue_before = self.get_total_revenue_for_year(year)

            params = settings.parameters
            summary = compute_booking_tax(revenue_before, net_revenue, params.tax_rate, params.bundfradrag)
            stored = summary.rounded()

            booking = Booking(
                apartment_id=apartment_id,
                start_date=start_date,
                end_date=end_date,
                net_revenue_dkk=net_revenue,
                notes=notes,
            )
            booking.calculation = BookingCalculation(year=year, **stored.as_dict())
            self.db.add(booking)
            try:
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(booking)

        logger.info(
            "Created booking %s (%s, %s - %s, %s DKK): tax %s",
            booking.id, apartment_id, start_date, end_date, net_revenue, stored.tax_on_booking,
        )
        return booking, summary

    def delete_booking(self, booking_id: int) -> bool:
        """
        Delete a booking and its calculation

        Calculations of the year's other bookings keep the revenue ordering
        they were created with.
        """
        booking = self.get_booking(booking_id)
        if not booking:
            return False
        self.db.delete(booking)
        self.db.commit()
        logger.info("Deleted booking %s", booking_id)
        return True
