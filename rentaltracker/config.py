"""
Configuration for the rental income tracker
"""
import os
from decimal import Decimal
from enum import Enum
from pathlib import Path

# Project root
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
DATA_DIR = BASE_DIR / "data"
DATABASE_URL = os.environ.get("RENTAL_DATABASE_URL", f"sqlite:///{DATA_DIR}/rentals.db")

LOG_LEVEL = os.environ.get("RENTAL_LOG_LEVEL", "INFO")


class PeriodMode(str, Enum):
    """How a dashboard period derives its tax figures"""
    LUMP = "lump"                  # Recompute from the period's total revenue
    SNAPSHOT_SUM = "snapshot_sum"  # Sum the frozen per-booking calculations


# Danish short-term rental taxation (bundfradrag method)
DEFAULT_BUNDFRADRAG_PLATFORM = Decimal("33500")  # Rented out through a platform that reports to SKAT
DEFAULT_BUNDFRADRAG_PRIVATE = Decimal("13100")   # Rented out privately
DEFAULT_TAX_RATE = Decimal("0.35")

# Share of revenue above the allowance that is taxable
TAXABLE_SHARE = Decimal("0.6")

# Net proceeds after tax are split evenly between this many owners
STAKEHOLDERS = 2

# Apartments created on first start
DEFAULT_APARTMENTS = ["Vesterbro", "Århusgade"]
LEGACY_APARTMENT_NAMES = {"Apartment 1", "Apartment 2"}

# Snapshots written into booking notes by older versions
CALC_NOTE_PREFIX = "[calc_snapshot]"

# Login
SESSION_TTL_SECONDS = 60 * 60 * 24 * 30
PASSWORD_HASH_PREFIX = "scrypt"
PASSWORD_KEY_LENGTH = 64

ENV_PASSWORD_PLAIN = "APP_PASSWORD_PLAIN"
ENV_PASSWORD_HASH = "APP_PASSWORD_HASH"
ENV_PASSWORD_HASH_B64 = "APP_PASSWORD_HASH_B64"
ENV_SESSION_SECRET = "APP_SESSION_SECRET"

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
          "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
