"""
Apartment model
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Numeric
from sqlalchemy.orm import relationship
from rentaltracker.models.base import Base


class Apartment(Base):
    """
    A rented-out apartment

    ownership_share is the owner's fraction of the apartment (1 = sole owner)
    and scales both revenue and allowance in the period tax estimate.
    """
    __tablename__ = "apartments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    ownership_share = Column(Numeric(5, 4), default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    bookings = relationship("Booking", back_populates="apartment", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Apartment(id={self.id}, name='{self.name}')>"
