# carsync/crud.py
"""CRUD operations for `Listing` rows.

``upsert_listing`` is the crawler's write path: it inserts unseen identities
and otherwise refreshes only extraction-owned columns. The operator actions
(approve, messaged, replied) are the only writers of the review state.
"""
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy import and_, case, desc
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional

from .exceptions import NotFoundError, StoreError
from .models import Listing
from .schemas import EXTRACTION_FIELDS, ListingRecord, Status
from .utils import as_utc, utcnow

_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}

def _row_values(record: ListingRecord) -> Dict[str, Any]:
    data = record.model_dump()
    data["source"] = record.source.value
    data["status"] = record.status.value
    return data

def upsert_listing(db: Session, record: ListingRecord, reset_status: bool = False, commit: bool = True):
    dialect = db.get_bind().dialect.name
    insert = _INSERTS.get(dialect)
    if insert is None:
        raise StoreError(f"upsert not supported on {dialect}")
    stmt = insert(Listing.__table__).values(**_row_values(record))
    # refresh extraction-owned columns only; review state and created_at are kept
    # and updated_at never moves backwards
    refreshed = {name: stmt.excluded[name] for name in EXTRACTION_FIELDS}
    refreshed["native_id"] = stmt.excluded["native_id"]
    current = Listing.__table__.c.updated_at
    refreshed["updated_at"] = case(
        (current > stmt.excluded.updated_at, current), else_=stmt.excluded.updated_at
    )
    if reset_status:
        refreshed["status"] = Status.NEW.value
    stmt = stmt.on_conflict_do_update(index_elements=["identity"], set_=refreshed)
    db.execute(stmt)
    if commit:
        db.commit()

def get_listing(db: Session, identity: str) -> Optional[Listing]:
    return db.query(Listing).filter(Listing.identity == identity).first()

def all_listings(db: Session):
    return db.query(Listing).order_by(Listing.created_at, Listing.identity).all()

def list_listings(db: Session, skip: int = 0, limit: int = 50, filters: Dict = None):
    q = db.query(Listing)
    if filters:
        conds = []
        if filters.get("source"):
            conds.append(Listing.source == filters["source"])
        if filters.get("status"):
            conds.append(Listing.status == filters["status"])
        if filters.get("approved") is not None:
            conds.append(Listing.approved == filters["approved"])
        if filters.get("min_price") is not None:
            conds.append(Listing.price_numeric >= filters["min_price"])
        if filters.get("max_price") is not None:
            conds.append(Listing.price_numeric <= filters["max_price"])
        if filters.get("location"):
            conds.append(Listing.location.ilike(f"%{filters['location']}%"))
        if conds:
            q = q.filter(and_(*conds))
    total = q.count()
    items = q.order_by(desc(Listing.updated_at)).offset(skip).limit(limit).all()
    return {"total": total, "items": items}

def _operator_update(db: Session, identity: str, **changes) -> Listing:
    obj = get_listing(db, identity)
    if not obj:
        raise NotFoundError(f"listing {identity} not found")
    now = utcnow()
    for k, v in changes.items():
        setattr(obj, k, v(obj) if callable(v) else v)
    obj.updated_at = max(as_utc(obj.updated_at), now)
    db.commit()
    db.refresh(obj)
    return obj

def mark_approved(db: Session, identity: str) -> Listing:
    return _operator_update(db, identity, approved=True, status=Status.APPROVED.value)

def record_message(db: Session, identity: str) -> Listing:
    return _operator_update(
        db, identity, messaged=True, status=Status.MESSAGED.value, last_messaged_at=utcnow()
    )

def record_reply(db: Session, identity: str) -> Listing:
    return _operator_update(
        db, identity, replied=True, status=Status.REPLIED.value,
        reply_count=lambda obj: (obj.reply_count or 0) + 1,
    )
