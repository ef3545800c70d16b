# carsync/schemas.py
"""Canonical listing records.

``PartialRecord`` is what the extractor produces for one detail page;
``ListingRecord`` is the persisted entity, which adds identity, timestamps
and the operator-owned review state.
"""
import enum
from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import as_utc, utcnow


class Source(str, enum.Enum):
    DUBICARS = "dubicars"
    YALLAMOTOR = "yallamotor"


class Status(str, enum.Enum):
    NEW = "new"
    APPROVED = "approved"
    MESSAGED = "messaged"
    REPLIED = "replied"


# refreshed by the crawler on every re-observation
EXTRACTION_FIELDS = (
    "image_url",
    "contact_phone",
    "contact_channel_url",
    "model_year",
    "odometer",
    "regional_spec",
    "price_display",
    "price_numeric",
    "seller_name",
    "trim",
    "location",
)

# only ever changed by operator action
OPERATOR_FIELDS = (
    "status",
    "approved",
    "messaged",
    "replied",
    "reply_count",
    "last_messaged_at",
)


class PartialRecord(BaseModel):
    source: Source
    canonical_url: str = Field(..., min_length=1)
    native_id: Optional[str] = None
    image_url: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_channel_url: Optional[str] = None
    model_year: Optional[str] = None
    odometer: Optional[str] = None
    regional_spec: Optional[str] = None
    price_display: Optional[str] = None
    price_numeric: Optional[int] = None
    seller_name: Optional[str] = None
    trim: Optional[str] = None
    location: Optional[str] = None

    def extraction_fields(self):
        return {name: getattr(self, name) for name in EXTRACTION_FIELDS}


class ListingRecord(PartialRecord):
    model_config = ConfigDict(from_attributes=True)

    identity: str
    status: Status = Status.NEW
    approved: bool = False
    messaged: bool = False
    replied: bool = False
    reply_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    last_messaged_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at", "last_messaged_at")
    @classmethod
    def _aware(cls, value):
        return as_utc(value)


class ListingOut(ListingRecord):
    pass


class ListingPage(BaseModel):
    total: int
    items: List[ListingOut]


class UploadResult(BaseModel):
    count: int
    added: int
    updated: int


class CrawlReportOut(BaseModel):
    site: str
    pages_visited: int
    added: int
    updated: int
    skipped_known: int
    failed: int
    reason: str
    error: Optional[str] = None
