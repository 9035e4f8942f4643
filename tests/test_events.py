"""Tests for the event bus."""

from unittest.mock import MagicMock

from synchron.events import EventBus


class TestEventBus:
    """Test EventBus class."""

    def test_publish_to_subscribers(self, event_bus):
        """Test that every subscriber receives the payload."""
        first, second = MagicMock(), MagicMock()
        event_bus.subscribe(EventBus.TRACK_CHANGED, first)
        event_bus.subscribe(EventBus.TRACK_CHANGED, second)
        event_bus.publish(EventBus.TRACK_CHANGED, {"track": None})
        first.assert_called_once_with({"track": None})
        second.assert_called_once_with({"track": None})

    def test_unsubscribe(self, event_bus):
        """Test that unsubscribed callbacks are no longer called."""
        callback = MagicMock()
        event_bus.subscribe(EventBus.VOLUME_CHANGED, callback)
        event_bus.unsubscribe(EventBus.VOLUME_CHANGED, callback)
        event_bus.unsubscribe(EventBus.VOLUME_CHANGED, callback)
        event_bus.publish(EventBus.VOLUME_CHANGED, {"volume": 0.5})
        callback.assert_not_called()

    def test_failing_subscriber_does_not_stop_others(self, event_bus):
        """Test that a raising callback is logged and skipped."""
        broken = MagicMock(side_effect=RuntimeError("boom"))
        healthy = MagicMock()
        event_bus.subscribe(EventBus.END_OF_QUEUE, broken)
        event_bus.subscribe(EventBus.END_OF_QUEUE, healthy)
        event_bus.publish(EventBus.END_OF_QUEUE)
        healthy.assert_called_once_with(None)
