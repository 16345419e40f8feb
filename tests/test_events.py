"""
Tests for change notification and environment signals.
"""

import pytest

from organizer.events import ChangeKind, ChangeNotifier
from organizer.sync.connectivity import ConnectivityMonitor


class TestChangeNotifier:
    """Tests for subscriptions."""

    def test_subscribers_receive_events(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(received.append)

        notifier.publish(ChangeKind.DATA_CHANGED, reason="habit_added")

        assert received[0].kind == ChangeKind.DATA_CHANGED
        assert received[0].details == {"reason": "habit_added"}

    def test_kind_filter(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(received.append, kinds=[ChangeKind.SETTINGS_CHANGED])

        notifier.publish(ChangeKind.DATA_CHANGED)
        notifier.publish(ChangeKind.SETTINGS_CHANGED)

        assert [e.kind for e in received] == [ChangeKind.SETTINGS_CHANGED]

    def test_unsubscribe(self):
        notifier = ChangeNotifier()
        received = []
        subscription = notifier.subscribe(received.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        notifier.publish(ChangeKind.DATA_CHANGED)

        assert received == []
        assert subscription.active is False
        assert notifier.subscriber_count == 0

    def test_failing_subscriber_does_not_block_others(self):
        notifier = ChangeNotifier()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        notifier.subscribe(broken)
        notifier.subscribe(received.append)
        notifier.publish(ChangeKind.DATA_CHANGED)

        assert len(received) == 1

    def test_unsubscribe_during_publish(self):
        notifier = ChangeNotifier()
        received = []
        subscription = None

        def once(event):
            received.append(event)
            subscription.unsubscribe()

        subscription = notifier.subscribe(once)
        notifier.publish(ChangeKind.DATA_CHANGED)
        notifier.publish(ChangeKind.DATA_CHANGED)

        assert len(received) == 1

    def test_clear(self):
        notifier = ChangeNotifier()
        notifier.subscribe(lambda e: None)
        notifier.subscribe(lambda e: None)
        notifier.clear()
        assert notifier.subscriber_count == 0


class TestConnectivityMonitor:
    """Tests for online/visibility flags."""

    def test_listeners_fire_only_on_change(self):
        monitor = ConnectivityMonitor()
        changes = []
        monitor.add_online_listener(changes.append)

        assert monitor.set_online(True) is False
        assert monitor.set_online(False) is True
        assert monitor.set_online(False) is False

        assert changes == [False]
        assert monitor.online is False

    def test_visibility(self):
        monitor = ConnectivityMonitor(visible=False)
        changes = []
        monitor.add_visibility_listener(changes.append)

        monitor.set_visible(True)

        assert changes == [True]
        assert monitor.visible is True

    def test_failing_listener_is_contained(self):
        monitor = ConnectivityMonitor()
        changes = []

        def broken(value):
            raise RuntimeError("boom")

        monitor.add_online_listener(broken)
        monitor.add_online_listener(changes.append)
        monitor.set_online(False)

        assert changes == [False]

    def test_clear_listeners(self):
        monitor = ConnectivityMonitor()
        changes = []
        monitor.add_online_listener(changes.append)
        monitor.clear_listeners()
        monitor.set_online(False)
        assert changes == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
