# carsync/storage.py
"""Persisted-store backends the crawler checkpoints into.

``JsonFileStore`` keeps the whole dataset as a single JSON list, the format
the review dashboard consumes. ``DatabaseStore`` writes through the
SQLAlchemy CRUD layer.
"""
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Sequence

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from . import crud
from .config import StatusResetPolicy
from .exceptions import NotFoundError, StoreError
from .identity import identity, native_id_from_url, record_identity
from .reconcile import ReconcileResult, reconcile
from .schemas import ListingRecord, PartialRecord, Status
from .sites import SITES
from .utils import logger, parse_price, utcnow


class ListingStore(ABC):
    @abstractmethod
    def read_all(self) -> List[ListingRecord]:
        """Every persisted listing."""

    @abstractmethod
    def save(self, records: Sequence[ListingRecord]) -> None:
        """Durably write a merged dataset."""

    def commit(self, result: ReconcileResult) -> None:
        """Persist a merge. File stores rewrite the whole dataset."""
        self.save(result.records)

    def upsert(self, record: PartialRecord) -> None:
        """Insert or refresh one listing without touching its review state."""
        merged = reconcile(self.read_all(), [record], reset_policy=StatusResetPolicy.NEVER)
        self.commit(merged)

    @abstractmethod
    def mark_approved(self, identity: str) -> ListingRecord:
        """Set approved/status=approved; raises NotFoundError."""

    def known_identities(self):
        return {r.identity for r in self.read_all()}


# keys written by the earlier node scrapers
_LEGACY_KEYS = {
    "link": "canonical_url",
    "image": "image_url",
    "phone_number": "contact_phone",
    "whatsapp_link": "contact_channel_url",
    "year": "model_year",
    "mileage": "odometer",
    "specs": "regional_spec",
    "price": "price_display",
    "owner_name": "seller_name",
}
_DROPPED_KEYS = ("id", "date", "replies")


def from_legacy(item: dict) -> dict:
    data = {}
    for key, value in item.items():
        if key in _DROPPED_KEYS:
            continue
        data[_LEGACY_KEYS.get(key, key)] = value
    for key, value in list(data.items()):
        if value == "":
            data[key] = None
        elif key in ("model_year", "odometer", "contact_phone") and isinstance(value, (int, float)):
            data[key] = str(value)
    if data.get("price_numeric") is None and data.get("price_display") is not None:
        data["price_display"], data["price_numeric"] = parse_price(data["price_display"])
    source = str(data.get("source") or "").lower()
    data["source"] = source
    if "identity" not in data:
        site = SITES.get(source)
        native = native_id_from_url(data.get("canonical_url"), site.native_id_pattern if site else None)
        data.setdefault("native_id", native)
        data["identity"] = identity(source, data.get("canonical_url") or "", data.get("native_id"))
    return data


class JsonFileStore(ListingStore):
    def __init__(self, path):
        self.path = Path(path)

    def read_all(self) -> List[ListingRecord]:
        if not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError(f"cannot read {self.path}: {e}") from e
        if not isinstance(raw, list):
            raise StoreError(f"{self.path} does not contain a list of listings")
        records = []
        for item in raw:
            if not isinstance(item, dict):
                logger.warning("Skipping non-object entry in %s", self.path)
                continue
            try:
                records.append(ListingRecord.model_validate(from_legacy(item)))
            except ValidationError as e:
                raise StoreError(f"invalid listing in {self.path}: {e}") from e
        return records

    def save(self, records: Sequence[ListingRecord]) -> None:
        payload = [r.model_dump(mode="json") for r in records]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(prefix=self.path.name, suffix=".tmp", dir=self.path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(payload, fh, indent=2, ensure_ascii=False)
                    fh.flush()
                    os.fsync(fh.fileno())
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            raise StoreError(f"cannot write {self.path}: {e}") from e

    def mark_approved(self, identity: str) -> ListingRecord:
        records = self.read_all()
        for i, record in enumerate(records):
            if record.identity == identity:
                records[i] = record.model_copy(update={
                    "approved": True,
                    "status": Status.APPROVED,
                    "updated_at": max(record.updated_at, utcnow()),
                })
                self.save(records)
                return records[i]
        raise NotFoundError(f"listing {identity} not found")


class DatabaseStore(ListingStore):
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def read_all(self) -> List[ListingRecord]:
        db = self.session_factory()
        try:
            return [ListingRecord.model_validate(row) for row in crud.all_listings(db)]
        except SQLAlchemyError as e:
            raise StoreError(f"cannot read listings: {e}") from e
        finally:
            db.close()

    def _write(self, records, reset_ids=()):
        db = self.session_factory()
        try:
            for record in records:
                crud.upsert_listing(db, record, reset_status=record.identity in reset_ids, commit=False)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"cannot write listings: {e}") from e
        finally:
            db.close()

    def save(self, records: Sequence[ListingRecord]) -> None:
        self._write(records)

    def commit(self, result: ReconcileResult) -> None:
        # rows outside the batch may have been reviewed since the snapshot was read
        self._write(result.touched_records(), result.reset_ids)

    def upsert(self, record: PartialRecord) -> None:
        db = self.session_factory()
        try:
            row = crud.get_listing(db, record_identity(record))
            current = [ListingRecord.model_validate(row)] if row is not None else []
            merged = reconcile(current, [record], reset_policy=StatusResetPolicy.NEVER)
            crud.upsert_listing(db, merged.touched_records()[0], reset_status=False)
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"cannot upsert {record.canonical_url}: {e}") from e
        finally:
            db.close()

    def mark_approved(self, identity: str) -> ListingRecord:
        db = self.session_factory()
        try:
            return ListingRecord.model_validate(crud.mark_approved(db, identity))
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreError(f"cannot approve {identity}: {e}") from e
        finally:
            db.close()
