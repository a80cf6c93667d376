"""Change history recorder: per-field audit records for artifact updates.

One ``ChangeRecord`` per updated field, in the order the fields were given.
History is append-only; records are never edited or removed.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import TypeVar

from src.models.artifacts import Auditable, ChangeRecord
from src.models.common import utc_now

BOOKKEEPING_FIELDS = frozenset({"id", "version", "created_at", "updated_at", "change_history"})

A = TypeVar("A", bound=Auditable)


class ChangeHistoryRecorder:
    """Produce and append change records for one actor."""

    def __init__(self, actor: str = "user") -> None:
        if not actor:
            msg = "Change actor must be a non-empty label."
            raise ValueError(msg)
        self._actor = actor

    @property
    def actor(self) -> str:
        return self._actor

    def diff(
        self,
        existing: Auditable,
        updated: Auditable,
        fields: Iterable[str],
        timestamp: datetime | None = None,
    ) -> tuple[ChangeRecord, ...]:
        """Records for ``fields`` comparing ``existing`` to ``updated``.

        A record is produced for every requested field, even when the value
        did not change. Values are captured in JSON form.
        """
        ts = timestamp or utc_now()
        before = existing.model_dump(mode="json")
        after = updated.model_dump(mode="json")
        return tuple(
            ChangeRecord(
                field=name,
                old_value=before.get(name),
                new_value=after.get(name),
                timestamp=ts,
                changed_by=self._actor,
            )
            for name in fields
            if name not in BOOKKEEPING_FIELDS
        )

    @staticmethod
    def append(entity: A, records: Iterable[ChangeRecord]) -> A:
        """Return a copy of ``entity`` with ``records`` added to its history."""
        new_records = tuple(records)
        if not new_records:
            return entity
        return entity.model_copy(
            update={"change_history": entity.change_history + new_records},
        )
