# carsync/reconcile.py
"""Merge a freshly extracted batch into the persisted listings.

Records are matched by identity. A re-observed listing gets its
extraction-owned fields refreshed while operator-owned fields and
``created_at`` stay as they were. Unseen listings are added with status
``new``. No record is ever dropped.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set

from .config import StatusResetPolicy
from .identity import record_identity
from .schemas import EXTRACTION_FIELDS, ListingRecord, PartialRecord, Status
from .utils import as_utc, logger, utcnow


@dataclass
class ReconcileResult:
    records: List[ListingRecord] = field(default_factory=list)
    added: int = 0
    updated: int = 0
    reset: int = 0
    touched: List[str] = field(default_factory=list)
    reset_ids: Set[str] = field(default_factory=set)

    def touched_records(self) -> List[ListingRecord]:
        """Records added or refreshed by this merge."""
        wanted = set(self.touched)
        return [r for r in self.records if r.identity in wanted]


def _index(existing: Iterable[ListingRecord]) -> Dict[str, ListingRecord]:
    lookup: Dict[str, ListingRecord] = {}
    for record in existing:
        key = record_identity(record)
        if key in lookup:
            logger.warning("Duplicate stored listing %s (%s) folded into first copy", key, record.canonical_url)
            continue
        if record.identity != key:
            record = record.model_copy(update={"identity": key})
        lookup[key] = record
    return lookup


def _refresh(record: ListingRecord, observed: PartialRecord, now: datetime,
             reset_policy: StatusResetPolicy):
    changes = {}
    for name in EXTRACTION_FIELDS:
        value = getattr(observed, name)
        if value is not None and value != getattr(record, name):
            changes[name] = value
    if observed.native_id and not record.native_id:
        changes["native_id"] = observed.native_id

    reset = False
    if record.status != Status.NEW:
        if reset_policy == StatusResetPolicy.ALWAYS:
            reset = True
        elif reset_policy == StatusResetPolicy.ON_CHANGE:
            reset = any(name in changes for name in EXTRACTION_FIELDS)
    if reset:
        changes["status"] = Status.NEW

    changes["updated_at"] = max(record.updated_at, now)
    return record.model_copy(update=changes), reset


def _create(identity: str, observed: PartialRecord, now: datetime) -> ListingRecord:
    fields = {name: getattr(observed, name) for name in PartialRecord.model_fields}
    return ListingRecord(
        **fields,
        identity=identity,
        status=Status.NEW,
        approved=False,
        created_at=now,
        updated_at=now,
    )


def reconcile(existing: Iterable[ListingRecord], observed: Iterable[PartialRecord],
              now: Optional[datetime] = None,
              reset_policy: StatusResetPolicy = StatusResetPolicy.ON_CHANGE) -> ReconcileResult:
    now = as_utc(now) if now else utcnow()
    lookup = _index(existing)
    result = ReconcileResult()

    for item in observed:
        key = record_identity(item)
        current = lookup.get(key)
        if current is not None:
            lookup[key], was_reset = _refresh(current, item, now, reset_policy)
            result.updated += 1
            result.reset += int(was_reset)
            if was_reset:
                result.reset_ids.add(key)
        else:
            lookup[key] = _create(key, item, now)
            result.added += 1
        if key not in result.touched:
            result.touched.append(key)

    result.records = list(lookup.values())
    logger.info(
        "Merge complete: %d added, %d updated, %d reset to new, %d total",
        result.added, result.updated, result.reset, len(result.records),
    )
    return result
