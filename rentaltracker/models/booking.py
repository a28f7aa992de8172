"""
Booking models - stays and their frozen tax calculation
"""
from datetime import date, datetime
from typing import Optional
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, Numeric, Text, CheckConstraint
from sqlalchemy.orm import relationship
from rentaltracker.models.base import Base


class Booking(Base):
    """
    A guest stay in one apartment

    The tax year is the calendar year of the check-in date. end_date is the
    check-out day, so a booking covers the nights start_date .. end_date - 1.
    """
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("start_date <= end_date", name="check_booking_dates"),
        CheckConstraint("net_revenue_dkk >= 0", name="check_booking_revenue"),
    )

    id = Column(Integer, primary_key=True, index=True)
    apartment_id = Column(Integer, ForeignKey("apartments.id"), nullable=False)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    # Net payout received for the stay
    net_revenue_dkk = Column(Numeric(15, 2), nullable=False)

    notes = Column(Text)

    created_at = Column(DateTime, default=datetime.utcnow)

    apartment = relationship("Apartment", back_populates="bookings")
    calculation = relationship(
        "BookingCalculation",
        back_populates="booking",
        uselist=False,
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, {self.start_date} - {self.end_date}, {self.net_revenue_dkk})>"

    @property
    def snapshot(self) -> Optional["BookingCalculation"]:
        """Stored calculation, or one recovered from the notes by list_bookings"""
        return self.calculation or getattr(self, "note_calculation", None)

    @property
    def year(self) -> int:
        """Tax year of the booking"""
        return self.start_date.year

    @property
    def nights(self) -> int:
        return (self.end_date - self.start_date).days

    def nights_between(self, period_start: date, period_end: date) -> int:
        """Booked nights falling within [period_start, period_end)"""
        start = max(self.start_date, period_start)
        end = min(self.end_date, period_end)
        return max(0, (end - start).days)


class BookingCalculation(Base):
    """
    Tax calculation for a single booking, frozen when the booking was created

    Stores the revenue ordering and the allowance/rate in effect at that time,
    so the figures stay the same when settings change or earlier bookings are
    deleted.
    """
    __tablename__ = "booking_calculations"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), unique=True, nullable=False)

    year = Column(Integer, nullable=False)

    booking_revenue = Column(Numeric(15, 2), nullable=False)
    total_revenue_before = Column(Numeric(15, 2), nullable=False)
    total_revenue_after = Column(Numeric(15, 2), nullable=False)
    bundfradrag = Column(Numeric(15, 2), nullable=False)
    taxable_base_booking = Column(Numeric(15, 2), nullable=False)
    tax_on_booking = Column(Numeric(15, 2), nullable=False)
    cut_after_tax_each = Column(Numeric(15, 2), nullable=False)
    tax_rate = Column(Numeric(5, 4), nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    booking = relationship("Booking", back_populates="calculation")

    def __repr__(self):
        return f"<BookingCalculation(booking={self.booking_id}, tax={self.tax_on_booking})>"
