"""
Tax settings per year
"""
from decimal import Decimal
from sqlalchemy import Column, Integer, Boolean, Numeric
from rentaltracker.models.base import Base
from rentaltracker.config import (
    DEFAULT_BUNDFRADRAG_PLATFORM, DEFAULT_BUNDFRADRAG_PRIVATE, DEFAULT_TAX_RATE
)
from rentaltracker.services.tax import TaxParameters


class TaxSettings(Base):
    """
    Allowance and tax rate for one tax year

    Created with defaults the first time a year is viewed. Bookings copy the
    values into their calculation snapshot, so later edits only affect
    recomputed (lump) figures.
    """
    __tablename__ = "tax_settings"

    id = Column(Integer, primary_key=True, index=True)
    year = Column(Integer, unique=True, nullable=False)

    # Bundfradrag, with and without a reporting platform
    bundfradrag_platform_dkk = Column(Numeric(15, 2), default=DEFAULT_BUNDFRADRAG_PLATFORM, nullable=False)
    bundfradrag_private_dkk = Column(Numeric(15, 2), default=DEFAULT_BUNDFRADRAG_PRIVATE, nullable=False)
    uses_platform = Column(Boolean, default=True, nullable=False)

    # Marginal tax rate as a ratio (0.35 = 35%)
    tax_rate = Column(Numeric(5, 4), default=DEFAULT_TAX_RATE, nullable=False)

    def __repr__(self):
        return f"<TaxSettings(year={self.year}, rate={self.tax_rate})>"

    @property
    def bundfradrag(self) -> Decimal:
        """The allowance in effect for this year"""
        if self.uses_platform:
            return Decimal(str(self.bundfradrag_platform_dkk))
        return Decimal(str(self.bundfradrag_private_dkk))

    @property
    def parameters(self) -> TaxParameters:
        """Settings as the value object the tax calculation takes"""
        return TaxParameters(bundfradrag=self.bundfradrag, tax_rate=Decimal(str(self.tax_rate)))
