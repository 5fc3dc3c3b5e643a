from __future__ import annotations

import csv
import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Dict, Iterator, List, Mapping, Optional, Sequence

from models import COLLECTION_FIELDS, DEFAULT_RECORDS, Record

logger = logging.getLogger(__name__)


class StorageIOError(OSError):
    """A collection file could not be read, parsed or written."""


class UnknownCollectionError(KeyError):
    pass


class CsvRecordStore:
    """
    One CSV file per collection under ``data_dir``.

    Every write replaces the whole file. Each collection has its own lock;
    ``locked(name)`` lets callers hold it across a load -> mutate -> save cycle.
    """

    def __init__(
        self,
        data_dir: Path,
        schemas: Optional[Mapping[str, List[str]]] = None,
        defaults: Optional[Mapping[str, List[Record]]] = None,
    ) -> None:
        self._data_dir = Path(data_dir)
        self._schemas: Dict[str, List[str]] = dict(schemas or COLLECTION_FIELDS)
        self._defaults: Dict[str, List[Record]] = dict(defaults if defaults is not None else DEFAULT_RECORDS)
        self._locks: Dict[str, RLock] = {name: RLock() for name in self._schemas}

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    def collections(self) -> List[str]:
        return list(self._schemas)

    def is_known(self, name: str) -> bool:
        return name in self._schemas

    def path_for(self, name: str) -> Path:
        self._check_name(name)
        return self._data_dir / f"{name}.csv"

    @contextmanager
    def locked(self, name: str) -> Iterator[None]:
        self._check_name(name)
        with self._locks[name]:
            yield

    def initialize(self) -> None:
        """Seed every missing collection file. Existing files are left untouched."""
        try:
            self._data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageIOError(f"cannot create data directory {self._data_dir}: {exc}") from exc

        for name in self._schemas:
            with self.locked(name):
                if self.path_for(name).exists():
                    continue
                self.save(name, self._defaults.get(name, []))
                logger.info("Created default %s.csv", name)

    def load(self, name: str) -> List[Record]:
        path = self.path_for(name)
        with self.locked(name):
            if not path.exists():
                return []
            try:
                with path.open(newline="", encoding="utf-8") as f:
                    rows = [row for row in csv.reader(f, strict=True) if row]
            except (csv.Error, UnicodeDecodeError, OSError) as exc:
                logger.error("Failed to read %s: %s", path, exc)
                raise StorageIOError(f"cannot read {name}: {exc}") from exc

        if not rows:
            return []

        header, body = rows[0], rows[1:]
        records = []
        for line_no, row in enumerate(body, start=2):
            if len(row) != len(header):
                logger.error("Malformed row %d in %s: %d fields, expected %d", line_no, path, len(row), len(header))
                raise StorageIOError(f"cannot read {name}: row {line_no} has {len(row)} fields, expected {len(header)}")
            records.append(dict(zip(header, row)))
        return records

    def save(self, name: str, records: Sequence[Record]) -> None:
        path = self.path_for(name)
        columns = self._columns_for(name, records)

        with self.locked(name):
            tmp_name = None
            try:
                fd, tmp_name = tempfile.mkstemp(prefix=f".{name}.", suffix=".tmp", dir=self._data_dir)
                with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                    writer = csv.writer(f, lineterminator="\n")
                    writer.writerow(columns)
                    writer.writerows([_cell(r.get(c)) for c in columns] for r in records)
                os.replace(tmp_name, path)
                tmp_name = None
            except OSError as exc:
                logger.error("Failed to write %s: %s", path, exc)
                raise StorageIOError(f"cannot write {name}: {exc}") from exc
            finally:
                if tmp_name is not None and os.path.exists(tmp_name):
                    os.remove(tmp_name)

    def _columns_for(self, name: str, records: Sequence[Record]) -> List[str]:
        # First record's key order, then missing canonical fields, then
        # keys only later records carry. Empty saves use the canonical header.
        if not records:
            return list(self._schemas[name])

        columns = list(records[0])
        for key in self._schemas[name]:
            if key not in columns:
                columns.append(key)
        for r in records[1:]:
            for key in r:
                if key not in columns:
                    columns.append(key)
        return columns

    def _check_name(self, name: str) -> None:
        if name not in self._schemas:
            raise UnknownCollectionError(name)


def _cell(value: object) -> str:
    if value is None:
        return ""
    return str(value)
