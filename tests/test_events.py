from __future__ import annotations

import gc
import importlib
import sys
import unittest
from pathlib import Path


def load_events():
    sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
    return importlib.import_module("notekeeper.events")


class Listener:
    def __init__(self) -> None:
        self.events = []

    def on_event(self, event) -> None:
        self.events.append(event)


class ChangeNotifierTest(unittest.TestCase):
    def setUp(self) -> None:
        self.events = load_events()
        self.notifier = self.events.ChangeNotifier()

    def test_delivers_to_every_subscriber(self) -> None:
        first, second = [], []
        self.notifier.subscribe(first.append)
        self.notifier.subscribe(second.append)
        self.notifier.emit(self.events.Topic.NOTE_CHANGED, self.events.EntityKind.NOTE, "n1", title="Plan")
        self.assertEqual(len(first), 1)
        self.assertEqual(first, second)
        event = first[0]
        self.assertEqual(event.entity_id, "n1")
        self.assertEqual(event.payload["title"], "Plan")

    def test_topic_filter(self) -> None:
        received = []
        self.notifier.subscribe(received.append, [self.events.Topic.FOCUS_SEARCH])
        self.notifier.emit(self.events.Topic.NOTE_CHANGED)
        self.notifier.emit(self.events.Topic.FOCUS_SEARCH)
        self.assertEqual([event.topic for event in received], [self.events.Topic.FOCUS_SEARCH])

    def test_cancelled_subscription_receives_nothing(self) -> None:
        received = []
        subscription = self.notifier.subscribe(received.append)
        subscription.cancel()
        subscription.cancel()
        self.notifier.emit(self.events.Topic.FORCE_REFRESH)
        self.assertEqual(received, [])
        self.assertFalse(subscription.active)
        self.assertEqual(self.notifier.subscriber_count, 0)

    def test_context_manager_ends_subscription(self) -> None:
        received = []
        with self.notifier.subscribe(received.append):
            self.notifier.emit(self.events.Topic.FORCE_REFRESH)
        self.notifier.emit(self.events.Topic.FORCE_REFRESH)
        self.assertEqual(len(received), 1)

    def test_bound_method_subscription_ends_with_owner(self) -> None:
        listener = Listener()
        self.notifier.subscribe(listener.on_event)
        self.notifier.emit(self.events.Topic.FORCE_REFRESH)
        self.assertEqual(len(listener.events), 1)
        del listener
        gc.collect()
        self.assertEqual(self.notifier.subscriber_count, 0)
        self.notifier.emit(self.events.Topic.FORCE_REFRESH)

    def test_failing_subscriber_does_not_stop_delivery(self) -> None:
        received = []

        def broken(_event) -> None:
            raise RuntimeError("boom")

        self.notifier.subscribe(broken)
        self.notifier.subscribe(received.append)
        self.notifier.emit(self.events.Topic.FORCE_REFRESH)
        self.assertEqual(len(received), 1)

    def test_suspend_coalesces_and_replays(self) -> None:
        received = []
        self.notifier.subscribe(received.append)
        Topic, Kind = self.events.Topic, self.events.EntityKind
        with self.notifier.suspend():
            self.notifier.emit(Topic.NOTE_CHANGED, Kind.NOTE, "n1", title="draft")
            with self.notifier.suspend():
                self.notifier.emit(Topic.NOTE_CHANGED, Kind.NOTE, "n2")
            self.notifier.emit(Topic.NOTE_CHANGED, Kind.NOTE, "n1", title="final")
            self.assertEqual(received, [])
        self.assertEqual([event.entity_id for event in received], ["n2", "n1"])
        self.assertEqual(received[1].payload["title"], "final")

    def test_failed_batch_sends_single_refresh(self) -> None:
        received = []
        self.notifier.subscribe(received.append)
        with self.assertRaises(ValueError):
            with self.notifier.suspend():
                self.notifier.emit(self.events.Topic.NOTE_CHANGED, self.events.EntityKind.NOTE, "n1")
                raise ValueError("abort")
        self.assertEqual([event.topic for event in received], [self.events.Topic.FORCE_REFRESH])

    def test_dispatcher_defers_delivery(self) -> None:
        queued = []
        received = []
        self.notifier.set_dispatcher(lambda func, *args: queued.append((func, args)))
        self.notifier.subscribe(received.append)
        self.notifier.emit(self.events.Topic.FORCE_REFRESH)
        self.assertEqual(received, [])
        func, args = queued.pop()
        self.assertFalse(func(*args))
        self.assertEqual(len(received), 1)


if __name__ == "__main__":
    unittest.main()
