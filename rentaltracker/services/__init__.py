"""
Services for the rental income tracker
"""
from rentaltracker.services.tax import (
    BookingTaxResult, PeriodTaxResult, TaxParameters,
    aggregate_period_tax, calculate_tax, choose_period_mode, compute_booking_tax,
)

__all__ = [
    "BookingTaxResult",
    "PeriodTaxResult",
    "TaxParameters",
    "aggregate_period_tax",
    "calculate_tax",
    "choose_period_mode",
    "compute_booking_tax",
]
