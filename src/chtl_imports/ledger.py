# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Import bookkeeping for duplicate detection and import statistics.

The ImportLedger records every (target, source file) import event.

Data Structure:
- _records: (target, source_file) -> ImportRecord
- _by_source: source_file -> keys of records imported by that file
- _by_target: target -> keys of records importing that target

Both indices hold each key at most once and are updated together on every
insert and removal, so lookups in either direction are O(1).

Queries return copies of the stored records; only the ledger mutates them.

Limitations:
- NOT thread-safe: owned by a single ImportResolver
- In-memory only, reset between compilation runs
"""

import dataclasses
import logging
import time
from typing import Dict, List, Optional, Tuple

from chtl_imports.models import CanonicalPath, ImportRecord

logger = logging.getLogger(__name__)

RecordKey = Tuple[str, str]


class ImportLedger:
    """Records import events keyed by (target, source file)."""

    def __init__(self) -> None:
        """Initialize empty ledger."""
        self._records: Dict[RecordKey, ImportRecord] = {}
        self._by_source: Dict[str, List[RecordKey]] = {}
        self._by_target: Dict[str, List[RecordKey]] = {}

    # =========================================================================
    # Recording
    # =========================================================================

    def record(
        self,
        target: CanonicalPath,
        source_file: CanonicalPath,
        original_spelling: str,
        timestamp: Optional[float] = None,
    ) -> ImportRecord:
        """Insert a record, or refresh the existing one for the same key.

        Args:
            target: Canonical path of the imported file.
            source_file: Canonical path of the importing file.
            original_spelling: Path as written in the import statement.
            timestamp: Event time. Defaults to time.time().

        Returns:
            A copy of the stored record.
        """
        now = time.time() if timestamp is None else timestamp
        key = (target, source_file)

        existing = self._records.get(key)
        if existing is not None:
            existing.import_count += 1
            existing.last_import_time = now
            logger.debug(
                f"Repeated import of {target} from {source_file} "
                f"(count={existing.import_count})"
            )
            return dataclasses.replace(existing)

        record = ImportRecord(
            target=target,
            source_file=source_file,
            original_spelling=original_spelling,
            import_time=now,
        )
        self._records[key] = record
        self._by_source.setdefault(source_file, []).append(key)
        self._by_target.setdefault(target, []).append(key)
        return dataclasses.replace(record)

    def mark_resolved(self, target: CanonicalPath, source_file: CanonicalPath) -> None:
        """Flag a record as resolved. No-op for unknown keys."""
        record = self._records.get((target, source_file))
        if record is not None:
            record.is_resolved = True

    def remove_record(self, target: CanonicalPath, source_file: CanonicalPath) -> None:
        """Delete one record and its index entries. Idempotent."""
        key = (target, source_file)
        if self._records.pop(key, None) is not None:
            self._unindex(key)

    def _unindex(self, key: RecordKey) -> None:
        target, source_file = key
        for index, index_key in ((self._by_source, source_file), (self._by_target, target)):
            keys = index.get(index_key)
            if keys is None:
                continue
            if key in keys:
                keys.remove(key)
            if not keys:
                del index[index_key]

    # =========================================================================
    # Queries
    # =========================================================================

    def is_already_imported(
        self, target: CanonicalPath, source_file: Optional[CanonicalPath] = None
    ) -> bool:
        """Return True if target was imported by source_file, or by any file.

        Args:
            target: Canonical path of the imported file.
            source_file: Importing file. None checks across all files.
        """
        if source_file is None:
            return bool(self._by_target.get(target))
        return (target, source_file) in self._records

    def get_record(
        self, target: CanonicalPath, source_file: CanonicalPath
    ) -> Optional[ImportRecord]:
        record = self._records.get((target, source_file))
        return dataclasses.replace(record) if record is not None else None

    def find_duplicates(self, target: CanonicalPath) -> List[ImportRecord]:
        """All records for target across every source file."""
        keys = self._by_target.get(target, [])
        return [dataclasses.replace(self._records[key]) for key in keys]

    def records_of_target(self, target: CanonicalPath) -> List[ImportRecord]:
        return self.find_duplicates(target)

    def records_for_file(self, source_file: CanonicalPath) -> List[ImportRecord]:
        """All records whose importing file is source_file."""
        keys = self._by_source.get(source_file, [])
        return [dataclasses.replace(self._records[key]) for key in keys]

    def all_records(self) -> List[ImportRecord]:
        return [dataclasses.replace(record) for record in self._records.values()]

    def count(self) -> int:
        """Number of distinct (target, source file) records."""
        return len(self._records)

    def total_import_events(self) -> int:
        """Number of import events, repeats included."""
        return sum(record.import_count for record in self._records.values())

    # =========================================================================
    # Statistics
    # =========================================================================

    def import_frequency(self) -> Dict[CanonicalPath, int]:
        """Import events per target, repeats from the same file included."""
        frequency: Dict[CanonicalPath, int] = {}
        for record in self._records.values():
            frequency[record.target] = frequency.get(record.target, 0) + record.import_count
        return frequency

    def most_imported_targets(self) -> List[CanonicalPath]:
        """Targets by descending frequency, ties broken by path."""
        frequency = self.import_frequency()
        return sorted(frequency, key=lambda target: (-frequency[target], target))

    def import_order(self) -> List[CanonicalPath]:
        """Targets in order of their first import, each listed once."""
        ordered = sorted(self._records.values(), key=lambda r: (r.import_time, r.target))
        result: List[CanonicalPath] = []
        seen = set()
        for record in ordered:
            if record.target not in seen:
                seen.add(record.target)
                result.append(record.target)
        return result

    # =========================================================================
    # Cleanup
    # =========================================================================

    def clear_for_file(self, source_file: CanonicalPath) -> int:
        """Remove every record imported by source_file.

        Returns:
            Number of records removed.
        """
        keys = list(self._by_source.get(source_file, []))
        for key in keys:
            del self._records[key]
            self._unindex(key)
        if keys:
            logger.debug(f"Cleared {len(keys)} import records for {source_file}")
        return len(keys)

    def clear_older_than(self, timestamp: float) -> int:
        """Remove records first imported before timestamp.

        Returns:
            Number of records removed.
        """
        stale = [key for key, record in self._records.items() if record.import_time < timestamp]
        for key in stale:
            del self._records[key]
            self._unindex(key)
        return len(stale)

    def clear(self) -> None:
        """Remove all records."""
        self._records.clear()
        self._by_source.clear()
        self._by_target.clear()
