"""
Live collection kept in step with the change feed.

A ``CollectionSnapshot`` holds the rows of one projection (waiting room,
lab worklist, unpaid visits, ...) keyed by primary id. ``refresh`` loads
the whole projection; ``apply`` patches a single row from a ChangeEvent
instead of reloading everything.
"""
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from django.db import DatabaseError

from apps.core.observability import get_sanitized_logger
from apps.realtime.feed import OP_DELETE, ChangeEvent, subscribe

logger = get_sanitized_logger(__name__)


def _row_key(row) -> str:
    if isinstance(row, dict):
        return str(row['id'])
    return str(row.pk)


class CollectionSnapshot:
    """
    Args:
        name: label used in logs
        order_by: optional sort key applied by ``rows()``
    """

    def __init__(self, name: str, order_by: Optional[Callable[[Any], Any]] = None):
        self.name = name
        self.order_by = order_by
        self._rows: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self.loaded = False

    def __len__(self):
        return len(self._rows)

    def __contains__(self, pk):
        return str(pk) in self._rows

    def get(self, pk):
        return self._rows.get(str(pk))

    def rows(self) -> List[Any]:
        with self._lock:
            rows = list(self._rows.values())
        if self.order_by is not None:
            rows.sort(key=self.order_by)
        return rows

    def refresh(self, fetch: Callable[[], Iterable[Any]]) -> bool:
        """
        Replace the collection with ``fetch()``.

        On a read failure the previous rows are kept and False is returned.
        """
        try:
            fresh = {_row_key(row): row for row in fetch()}
        except DatabaseError as e:
            logger.error(
                'Snapshot refresh failed; keeping previous rows',
                extra={'event': 'snapshot_refresh_failed', 'snapshot': self.name, 'error': str(e)}
            )
            return False

        with self._lock:
            self._rows = fresh
            self.loaded = True
        return True

    def apply(self, event: ChangeEvent, fetch_one: Callable[[str], Optional[Any]]) -> bool:
        """
        Patch one row.

        ``fetch_one(pk)`` returns the row as it now appears in the projection,
        or None when it no longer belongs there (e.g. a visit that left the
        waiting room). Deletes never hit the database.

        Returns False when the read failed; the snapshot is then unchanged.
        """
        if event.op == OP_DELETE:
            with self._lock:
                self._rows.pop(event.pk, None)
            return True

        try:
            row = fetch_one(event.pk)
        except DatabaseError as e:
            logger.error(
                'Snapshot row read failed; keeping previous rows',
                extra={
                    'event': 'snapshot_apply_failed',
                    'snapshot': self.name,
                    'table': event.table,
                    'pk': event.pk,
                    'error': str(e),
                }
            )
            return False

        with self._lock:
            if row is None:
                self._rows.pop(event.pk, None)
            else:
                self._rows[event.pk] = row
        return True

    def follow(self, table: str, fetch_one: Callable[[str], Optional[Any]]) -> Callable[[], None]:
        """Subscribe to ``table`` and apply each event. Returns the unsubscribe callable."""
        return subscribe(table, lambda event: self.apply(event, fetch_one))
