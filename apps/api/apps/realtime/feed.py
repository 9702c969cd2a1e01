"""
In-process change feed.

Writes to watched tables publish a ``ChangeEvent`` once their transaction
commits. Subscribers register per table and receive every event for it;
a subscriber that raises is logged and skipped, never failing the write.
"""
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Dict, List

from django.db import transaction

from apps.core.observability import get_sanitized_logger, metrics

logger = get_sanitized_logger(__name__)

OP_INSERT = 'INSERT'
OP_UPDATE = 'UPDATE'
OP_DELETE = 'DELETE'


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    op: str
    pk: str


Subscriber = Callable[[ChangeEvent], None]

_lock = threading.Lock()
_subscribers: Dict[str, List[Subscriber]] = defaultdict(list)


def subscribe(table: str, callback: Subscriber) -> Callable[[], None]:
    """
    Register ``callback`` for changes to ``table`` (db_table name).

    Returns a callable that removes the subscription; calling it twice is
    harmless.
    """
    with _lock:
        _subscribers[table].append(callback)

    def unsubscribe():
        with _lock:
            if callback in _subscribers[table]:
                _subscribers[table].remove(callback)

    return unsubscribe


def subscriber_count(table: str) -> int:
    with _lock:
        return len(_subscribers[table])


def dispatch(event: ChangeEvent):
    """Deliver ``event`` to the table's subscribers now."""
    with _lock:
        callbacks = list(_subscribers[event.table])

    for callback in callbacks:
        try:
            callback(event)
        except Exception as e:
            metrics.exceptions_total.labels(
                exception_type=type(e).__name__,
                location='realtime.dispatch'
            ).inc()
            logger.exception(
                'Change feed subscriber failed',
                extra={'event': 'realtime_subscriber_failed', 'table': event.table, 'op': event.op}
            )


def publish(table: str, op: str, pk) -> ChangeEvent:
    """
    Queue an event for delivery after the current transaction commits
    (immediately when there is no transaction).
    """
    event = ChangeEvent(table=table, op=op, pk=str(pk))
    transaction.on_commit(lambda: dispatch(event))
    return event


def clear_subscribers():
    with _lock:
        _subscribers.clear()
