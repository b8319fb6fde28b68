"""Change notifications published by the notebook store.

Views subscribe to a :class:`ChangeNotifier` and re-run their own queries
when an event arrives; the payload is only a hint. Subscriptions end when
they are cancelled or, for bound-method callbacks, when the owning object is
garbage collected.
"""

from __future__ import annotations

import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional

from .logger import configure_logging

_LOG = configure_logging()


class Topic(str, Enum):
    CATEGORY_CHANGED = "category-changed"
    CATEGORY_DELETED = "category-deleted"
    SUBCATEGORY_CHANGED = "subcategory-changed"
    SUBCATEGORY_DELETED = "subcategory-deleted"
    NOTE_CHANGED = "note-changed"
    NOTE_DELETED = "note-deleted"
    FORCE_REFRESH = "force-refresh"
    CREATE_NEW_NOTE = "create-new-note"
    FOCUS_SEARCH = "focus-search"


class EntityKind(str, Enum):
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    NOTE = "note"


DATA_TOPICS: FrozenSet[Topic] = frozenset(
    {
        Topic.CATEGORY_CHANGED,
        Topic.CATEGORY_DELETED,
        Topic.SUBCATEGORY_CHANGED,
        Topic.SUBCATEGORY_DELETED,
        Topic.NOTE_CHANGED,
        Topic.NOTE_DELETED,
        Topic.FORCE_REFRESH,
    }
)


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    topic: Topic
    entity_kind: Optional[EntityKind] = None
    entity_id: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=dict)


Callback = Callable[[ChangeEvent], Any]
Dispatcher = Callable[..., Any]


def call_now(func: Callable[..., Any], *args: Any) -> None:
    """Deliver synchronously on the calling thread."""
    func(*args)


class Subscription:
    """Handle returned by :meth:`ChangeNotifier.subscribe`."""

    def __init__(self, notifier: "ChangeNotifier", callback: Callback, topics: Optional[FrozenSet[Topic]]) -> None:
        self._notifier = notifier
        self.topics = topics
        self._strong: Optional[Callback] = None
        self._weak: Optional[weakref.WeakMethod] = None
        if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
            self._weak = weakref.WeakMethod(callback)  # type: ignore[arg-type]
        else:
            self._strong = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active and self.resolve() is not None

    def resolve(self) -> Optional[Callback]:
        if not self._active:
            return None
        if self._weak is not None:
            return self._weak()
        return self._strong

    def wants(self, topic: Topic) -> bool:
        return self.topics is None or topic in self.topics

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        self._strong = None
        self._weak = None
        self._notifier._forget(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc: object) -> None:
        self.cancel()


class ChangeNotifier:
    """Publish/subscribe channel for store changes and UI commands."""

    def __init__(self, dispatch: Optional[Dispatcher] = None) -> None:
        self._dispatch: Dispatcher = dispatch or call_now
        self._subscriptions: List[Subscription] = []
        self._suspended = 0
        self._pending: List[ChangeEvent] = []

    def set_dispatcher(self, dispatch: Optional[Dispatcher]) -> None:
        """Route delivery through ``dispatch(func, *args)``, e.g. ``GLib.idle_add``."""
        self._dispatch = dispatch or call_now

    def subscribe(self, callback: Callback, topics: Optional[Iterable[Topic]] = None) -> Subscription:
        subscription = Subscription(self, callback, frozenset(topics) if topics is not None else None)
        self._subscriptions.append(subscription)
        return subscription

    @property
    def subscriber_count(self) -> int:
        self._prune()
        return len(self._subscriptions)

    def emit(
        self,
        topic: Topic,
        entity_kind: Optional[EntityKind] = None,
        entity_id: Optional[str] = None,
        **payload: Any,
    ) -> None:
        self.publish(ChangeEvent(topic, entity_kind, entity_id, dict(payload)))

    def publish(self, event: ChangeEvent) -> None:
        if self._suspended:
            self._pending.append(event)
            return
        self._dispatch(self._deliver, event)

    @contextmanager
    def suspend(self) -> Iterator[None]:
        """Buffer events for a batch and replay each distinct one afterwards.

        Events buffered by a batch that fails are discarded and a single
        ``FORCE_REFRESH`` is sent instead.
        """
        self._suspended += 1
        try:
            yield
        except BaseException:
            self._suspended -= 1
            if not self._suspended:
                self._pending.clear()
                self.publish(ChangeEvent(Topic.FORCE_REFRESH))
            raise
        self._suspended -= 1
        if self._suspended:
            return
        pending = self._coalesce(self._pending)
        self._pending = []
        for event in pending:
            self.publish(event)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _coalesce(events: List[ChangeEvent]) -> List[ChangeEvent]:
        latest: Dict[Any, ChangeEvent] = {}
        for event in events:
            key = (event.topic, event.entity_kind, event.entity_id)
            latest.pop(key, None)
            latest[key] = event
        return list(latest.values())

    def _deliver(self, event: ChangeEvent) -> bool:
        for subscription in list(self._subscriptions):
            callback = subscription.resolve()
            if callback is None:
                self._forget(subscription)
                continue
            if not subscription.wants(event.topic):
                continue
            try:
                callback(event)
            except Exception:
                _LOG.exception("Subscriber failed while handling %s", event.topic.value)
        # False so GLib.idle_add does not reschedule the delivery
        return False

    def _forget(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def _prune(self) -> None:
        self._subscriptions = [sub for sub in self._subscriptions if sub.resolve() is not None]


__all__ = [
    "ChangeEvent",
    "ChangeNotifier",
    "DATA_TOPICS",
    "EntityKind",
    "Subscription",
    "Topic",
    "call_now",
]
