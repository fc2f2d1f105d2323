"""Tests for notification listener tracking and characteristic bindings."""

import asyncio
from unittest.mock import Mock

from conftest import CHAR_UUID, FakeCharacteristic

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.notifications import NotificationManager


class TestNotificationManager:
    """Test cases for NotificationManager."""

    def test_subscribe_replaces_existing_listener(self):
        manager = NotificationManager()
        first, second = Mock(), Mock()
        token_a = manager.subscribe("uuid", first)
        token_b = manager.subscribe("uuid", second)

        assert token_a != token_b
        assert len(manager) == 1
        assert manager.get_callback("uuid") is second
        assert manager.get_token("uuid") == token_b

    def test_unsubscribe(self):
        manager = NotificationManager()
        manager.subscribe("uuid", Mock())
        assert manager.unsubscribe("uuid")
        assert not manager.unsubscribe("uuid")
        assert manager.get_callback("uuid") is None

    def test_cleanup_all(self):
        manager = NotificationManager()
        manager.subscribe("a", Mock())
        manager.subscribe("b", Mock())
        manager.cleanup_all()
        assert len(manager) == 0
        assert manager.get_token("a") is None


class TestCharacteristicBinding:
    """Read, write and subscribe through a binding."""

    def test_read_and_write(self, target):
        async def scenario():
            characteristic = FakeCharacteristic(value=b"\x00")
            binding = CharacteristicBinding(characteristic, target)
            await binding.write_state(True)
            value = await binding.read_state()
            return characteristic, value

        characteristic, value = asyncio.run(scenario())
        assert characteristic.writes == [b"\x01"]
        assert value is True

    def test_subscribe_twice_enables_notifications_once(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            binding = CharacteristicBinding(characteristic, target)
            first, second = Mock(), Mock()
            await binding.subscribe(first)
            await binding.subscribe(second)
            characteristic.notify(b"\x01")
            return characteristic, binding, first, second

        characteristic, binding, first, second = asyncio.run(scenario())
        assert characteristic.start_notify_calls == 1
        assert binding.listener_count == 1
        first.assert_not_called()
        second.assert_called_once_with(b"\x01")

    def test_clear_listeners_drops_notifications(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            binding = CharacteristicBinding(characteristic, target)
            listener = Mock()
            await binding.subscribe(listener)
            binding.clear_listeners()
            characteristic.notify(b"\x01")
            return binding, listener

        binding, listener = asyncio.run(scenario())
        listener.assert_not_called()
        assert binding.is_subscribed

    def test_unsubscribe_disables_notifications(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            binding = CharacteristicBinding(characteristic, target)
            await binding.subscribe(Mock())
            await binding.unsubscribe()
            await binding.unsubscribe()
            return characteristic, binding

        characteristic, binding = asyncio.run(scenario())
        assert characteristic.stop_notify_calls == 1
        assert not binding.is_subscribed
        assert binding.listener_count == 0

    def test_detach_forgets_without_io(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            binding = CharacteristicBinding(characteristic, target)
            await binding.subscribe(Mock())
            binding.detach()
            return characteristic, binding

        characteristic, binding = asyncio.run(scenario())
        assert characteristic.stop_notify_calls == 0
        assert not binding.is_subscribed
        assert binding.listener_count == 0
        assert binding.uuid == CHAR_UUID
