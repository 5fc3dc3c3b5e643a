from __future__ import annotations

import logging
import secrets
from typing import Dict, List, Optional, Sequence

from models import KEY_FIELDS, Record, has_conflict, parse_date, parse_time_of_day
from repository import CsvRecordStore, StorageIOError

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base class for domain/service errors."""


class RecordValidationError(StoreError):
    pass


class RecordNotFoundError(StoreError):
    pass


class BookingConflictError(StoreError):
    pass


REQUIRED_FIELDS: Dict[str, Sequence[str]] = {
    "bookings": ("id", "resource", "date", "startTime", "endTime", "user"),
    "users": ("id", "name"),
    "resources": ("id", "name"),
}


class RecordService:
    """Create/update/delete for one collection, each as a locked load -> mutate -> save."""

    def __init__(self, store: CsvRecordStore, collection: str) -> None:
        self._store = store
        self.collection = collection
        self.key_field = KEY_FIELDS[collection]
        self.required = REQUIRED_FIELDS.get(collection, (self.key_field,))

    def list(self) -> List[Record]:
        return self._store.load(self.collection)

    def get(self, key: str) -> Record:
        for r in self._store.load(self.collection):
            if r.get(self.key_field) == key:
                return r
        raise RecordNotFoundError(key)

    def create(self, record: Record) -> Record:
        self._check_required(record)
        self._validate(record)

        key = record[self.key_field]
        with self._store.locked(self.collection):
            records = self._store.load(self.collection)
            if any(r.get(self.key_field) == key for r in records):
                raise RecordValidationError(f"Duplicate {self.key_field}: {key}")
            self._check_insert(records, record)

            records.append(dict(record))
            self._store.save(self.collection, records)
        return record

    def update(self, key: str, updates: Record) -> Record:
        # The key is taken from the path; a body cannot rename the record.
        # None means "not given", never "clear the field".
        changes = {k: v for k, v in updates.items() if k != self.key_field and v is not None}

        with self._store.locked(self.collection):
            records = self._store.load(self.collection)
            index = self._index_of(records, key)
            if index is None:
                raise RecordNotFoundError(key)

            merged = {**records[index], **changes}
            self._check_required(merged)
            self._validate(merged)
            others = records[:index] + records[index + 1:]
            self._check_insert(others, merged)

            records[index] = merged
            self._store.save(self.collection, records)
        return merged

    def delete(self, key: str) -> None:
        with self._store.locked(self.collection):
            records = self._store.load(self.collection)
            remaining = [r for r in records if r.get(self.key_field) != key]
            if len(remaining) == len(records):
                raise RecordNotFoundError(key)
            self._store.save(self.collection, remaining)

    def _index_of(self, records: List[Record], key: str) -> Optional[int]:
        for i, r in enumerate(records):
            if r.get(self.key_field) == key:
                return i
        return None

    def _check_required(self, record: Record) -> None:
        missing = [f for f in self.required if not record.get(f)]
        if missing:
            raise RecordValidationError(f"Missing required fields: {', '.join(missing)}")

    def _validate(self, record: Record) -> None:
        """Hook for per-collection field checks."""

    def _check_insert(self, existing: List[Record], record: Record) -> None:
        """Hook run after load and before save."""


class BookingService(RecordService):
    def __init__(self, store: CsvRecordStore) -> None:
        super().__init__(store, "bookings")

    def _validate(self, record: Record) -> None:
        try:
            parse_date(record.get("date", ""))
        except ValueError:
            raise RecordValidationError("Validation error: date must be YYYY-MM-DD.")
        try:
            parse_time_of_day(record.get("startTime", ""))
            parse_time_of_day(record.get("endTime", ""))
        except ValueError:
            raise RecordValidationError("Validation error: times must be HH:MM.")

    def _check_insert(self, existing: List[Record], record: Record) -> None:
        try:
            conflict = has_conflict(existing, record)
        except ValueError as exc:
            # The candidate was validated already, so the bad value is on disk.
            raise StorageIOError(f"cannot read bookings: {exc}") from exc

        if conflict:
            logger.info(
                "Rejected booking %s: %s on %s %s-%s overlaps an existing booking",
                record.get("id"),
                record.get("resource"),
                record.get("date"),
                record.get("startTime"),
                record.get("endTime"),
            )
            raise BookingConflictError()

    def list_for_resource(self, resource_id: str, day: Optional[str] = None) -> List[Record]:
        items = [b for b in self.list() if b.get("resource") == resource_id]
        if day is not None:
            try:
                wanted = parse_date(day)
            except ValueError:
                raise RecordValidationError("Validation error: date must be YYYY-MM-DD.")

        try:
            if day is not None:
                items = [b for b in items if parse_date(b.get("date", "")) == wanted]
            items.sort(key=lambda b: (parse_date(b.get("date", "")), parse_time_of_day(b.get("startTime", ""))))
        except ValueError as exc:
            raise StorageIOError(f"cannot read bookings: {exc}") from exc
        return items


class AuthService:
    """
    Admin login against the admins collection.

    Passwords are stored and compared in plaintext. This is not safe for
    real deployments; a salted hash should replace it.
    """

    def __init__(self, store: CsvRecordStore) -> None:
        self._store = store

    def login(self, username: str, password: str) -> Optional[Record]:
        if not username or not password:
            return None
        # Duplicate usernames may exist in hand-edited files; any matching row is accepted.
        for admin in self._store.load("admins"):
            if admin.get("username") != username:
                continue
            if secrets.compare_digest(admin.get("password", "").encode(), password.encode()):
                return {"username": admin["username"], "name": admin.get("name", ""), "role": "admin"}
        return None
