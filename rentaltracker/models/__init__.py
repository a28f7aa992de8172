"""
Database models for the rental income tracker
"""
from rentaltracker.models.base import Base, engine, SessionLocal, init_db
from rentaltracker.models.apartment import Apartment
from rentaltracker.models.booking import Booking, BookingCalculation
from rentaltracker.models.tax_settings import TaxSettings

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "init_db",
    "Apartment",
    "Booking",
    "BookingCalculation",
    "TaxSettings",
]
