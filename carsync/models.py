# carsync/models.py
"""SQLAlchemy ORM model for persisted listings (the ``car_listings`` table)."""
from sqlalchemy import Boolean, Column, Integer, BigInteger, Text, TIMESTAMP, Index, false, func
from .db import Base

class Listing(Base):
    __tablename__ = "car_listings"
    identity = Column(Text, primary_key=True)
    source = Column(Text, nullable=False, index=True)
    canonical_url = Column(Text, nullable=False, index=True)
    native_id = Column(Text)
    image_url = Column(Text)
    contact_phone = Column(Text)
    contact_channel_url = Column(Text)
    model_year = Column(Text)
    odometer = Column(Text)
    regional_spec = Column(Text)
    price_display = Column(Text)
    price_numeric = Column(BigInteger)
    seller_name = Column(Text)
    trim = Column(Text)
    location = Column(Text)
    status = Column(Text, nullable=False, default="new", server_default="new")
    approved = Column(Boolean, nullable=False, default=False, server_default=false())
    messaged = Column(Boolean, nullable=False, default=False, server_default=false())
    replied = Column(Boolean, nullable=False, default=False, server_default=false())
    reply_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_messaged_at = Column(TIMESTAMP(timezone=True))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=func.now())

Index("idx_car_listings_price", Listing.price_numeric)
Index("idx_car_listings_updated", Listing.updated_at)
