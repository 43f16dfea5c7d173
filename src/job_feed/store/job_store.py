"""In-memory, order-preserving store of job postings."""

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from job_feed.schema import JobRecord, UpsertResult


class JobStore:
    """Ordered collection of job records, unique by id.

    Re-delivered ids are replaced in place, new ids are appended in arrival
    order. Records are only removed through an explicit ``remove``.
    """

    def __init__(self) -> None:
        self._records: list[JobRecord] = []
        self._index: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def upsert_many(self, records: Iterable[JobRecord | Mapping[str, Any]]) -> UpsertResult:
        """Insert or replace each record by id.

        Entries that do not validate as a job record (no id, wrong shapes) are
        dropped and counted instead of failing the whole batch.
        """
        result = UpsertResult()
        for raw in records:
            record = self._coerce(raw)
            if record is None:
                result.dropped += 1
                continue

            position = self._index.get(record.id)
            if position is None:
                self._index[record.id] = len(self._records)
                self._records.append(record)
                result.appended.append(record.id)
            else:
                self._records[position] = record
                result.replaced += 1

        if result.dropped:
            logger.warning(f"Dropped {result.dropped} job record(s) without a valid identity")
        logger.debug(
            f"Upserted jobs: {result.new_count} new | {result.replaced} replaced | total {len(self._records)}"
        )
        return result

    def remove(self, job_id: str) -> bool:
        """Withdraw a job. Returns False when the id is unknown."""
        position = self._index.pop(job_id, None)
        if position is None:
            return False
        del self._records[position]
        for shifted in self._records[position:]:
            self._index[shifted.id] -= 1
        return True

    @staticmethod
    def _coerce(raw: Any) -> JobRecord | None:
        if isinstance(raw, JobRecord):
            return raw
        if not isinstance(raw, Mapping):
            return None
        try:
            return JobRecord.model_validate(raw)
        except ValidationError as e:
            logger.debug(f"Invalid job record {dict(raw).get('id')!r}: {e.error_count()} error(s)")
            return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self) -> tuple[JobRecord, ...]:
        return tuple(self._records)

    def count(self) -> int:
        return len(self._records)

    def get(self, job_id: str) -> JobRecord | None:
        position = self._index.get(job_id)
        return None if position is None else self._records[position]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._index
