"""Tests for push/poll update delivery."""

import asyncio

import pytest
from bleak.exc import BleakError
from conftest import FakeCharacteristic, settle

from bleswitch.interfaces.ble.binding import CharacteristicBinding
from bleswitch.interfaces.ble.config import UpdateMode
from bleswitch.interfaces.ble.constants import POLL_TIMER
from bleswitch.interfaces.ble.coordination import TimerCoordinator
from bleswitch.interfaces.ble.errors import UpdateError
from bleswitch.interfaces.ble.updates import UpdateSource


def fast_poll(monkeypatch, seconds=0.01):
    monkeypatch.setattr(UpdateMode, "interval_seconds", property(lambda self: seconds))


class Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, value, binding, source):
        self.events.append((value, source))


class TestPushUpdates:
    """Notification-driven updates."""

    def test_each_notification_emits_once_without_reads(self, target):
        async def scenario():
            timers = TimerCoordinator("t")
            characteristic = FakeCharacteristic()
            recorder = Recorder()
            source = UpdateSource(timers, recorder, "t")
            await source.start(CharacteristicBinding(characteristic, target), UpdateMode.push())
            characteristic.notify(b"\x01")
            characteristic.notify(b"\x01")
            characteristic.notify(b"\x00")
            return characteristic, recorder, timers

        characteristic, recorder, timers = asyncio.run(scenario())
        assert recorder.events == [(True, "push"), (True, "push"), (False, "push")]
        assert characteristic.reads == 0
        assert not timers.is_armed(POLL_TIMER)

    def test_empty_notification_is_dropped(self, target, caplog):
        async def scenario():
            characteristic = FakeCharacteristic()
            recorder = Recorder()
            source = UpdateSource(TimerCoordinator("t"), recorder, "t")
            await source.start(CharacteristicBinding(characteristic, target), UpdateMode.push())
            characteristic.notify(b"")
            return recorder

        with caplog.at_level("WARNING", logger="bleswitch.ble"):
            recorder = asyncio.run(scenario())
        assert recorder.events == []
        assert "Dropping notification" in caplog.text

    def test_subscribe_failure_raises_update_error(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            characteristic.notify_error = BleakError("not permitted")
            source = UpdateSource(TimerCoordinator("t"), Recorder(), "t")
            with pytest.raises(UpdateError):
                await source.start(
                    CharacteristicBinding(characteristic, target), UpdateMode.push()
                )
            return source

        assert not asyncio.run(scenario()).is_active

    def test_restart_does_not_stack_listeners(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            recorder = Recorder()
            source = UpdateSource(TimerCoordinator("t"), recorder, "t")
            binding = CharacteristicBinding(characteristic, target)
            await source.start(binding, UpdateMode.push())
            await source.start(binding, UpdateMode.push())
            characteristic.notify(b"\x01")
            return characteristic, recorder

        characteristic, recorder = asyncio.run(scenario())
        assert recorder.events == [(True, "push")]
        assert characteristic.start_notify_calls == 1


class TestPollUpdates:
    """Timer-driven reads."""

    def test_poll_emits_every_tick_without_dedup(self, target, monkeypatch):
        fast_poll(monkeypatch)

        async def scenario():
            timers = TimerCoordinator("t")
            characteristic = FakeCharacteristic(value=b"\x01")
            recorder = Recorder()
            source = UpdateSource(timers, recorder, "t")
            await source.start(
                CharacteristicBinding(characteristic, target), UpdateMode.poll(1000)
            )
            armed = timers.is_armed(POLL_TIMER)
            await asyncio.sleep(0.06)
            source.stop()
            return characteristic, recorder, armed

        characteristic, recorder, armed = asyncio.run(scenario())
        assert armed
        assert len(recorder.events) >= 2
        assert set(recorder.events) == {(True, "poll")}
        assert characteristic.start_notify_calls == 0

    def test_failed_reads_keep_polling(self, target, monkeypatch):
        fast_poll(monkeypatch)

        async def scenario():
            timers = TimerCoordinator("t")
            characteristic = FakeCharacteristic(value=b"")
            recorder = Recorder()
            source = UpdateSource(timers, recorder, "t")
            await source.start(
                CharacteristicBinding(characteristic, target), UpdateMode.poll(1000)
            )
            await asyncio.sleep(0.03)
            characteristic.value = b"\x01"
            characteristic.read_error = BleakError("busy")
            await asyncio.sleep(0.03)
            characteristic.read_error = None
            await asyncio.sleep(0.03)
            still_armed = timers.is_armed(POLL_TIMER)
            source.stop()
            return recorder, still_armed

        recorder, still_armed = asyncio.run(scenario())
        assert still_armed
        assert (True, "poll") in recorder.events

    def test_switching_to_poll_releases_subscription(self, target, monkeypatch):
        fast_poll(monkeypatch)

        async def scenario():
            timers = TimerCoordinator("t")
            characteristic = FakeCharacteristic()
            source = UpdateSource(timers, Recorder(), "t")
            binding = CharacteristicBinding(characteristic, target)
            await source.start(binding, UpdateMode.push())
            await source.start(binding, UpdateMode.poll(1000))
            result = (binding.is_subscribed, timers.is_armed(POLL_TIMER))
            source.stop()
            return characteristic, result

        characteristic, (subscribed, polling) = asyncio.run(scenario())
        assert characteristic.stop_notify_calls == 1
        assert not subscribed
        assert polling


class TestStop:
    """stop() and close()."""

    def test_stop_is_idempotent_and_silences_source(self, target, monkeypatch):
        fast_poll(monkeypatch)

        async def scenario():
            timers = TimerCoordinator("t")
            characteristic = FakeCharacteristic(value=b"\x01")
            recorder = Recorder()
            source = UpdateSource(timers, recorder, "t")
            await source.start(
                CharacteristicBinding(characteristic, target), UpdateMode.poll(1000)
            )
            source.stop()
            source.stop()
            await asyncio.sleep(0.04)
            return recorder, timers, source

        recorder, timers, source = asyncio.run(scenario())
        assert recorder.events == []
        assert timers.armed_count() == 0
        assert not source.is_active

    def test_stop_drops_later_notifications(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            recorder = Recorder()
            source = UpdateSource(TimerCoordinator("t"), recorder, "t")
            await source.start(CharacteristicBinding(characteristic, target), UpdateMode.push())
            source.stop()
            characteristic.notify(b"\x01")
            return recorder

        assert asyncio.run(scenario()).events == []

    def test_close_unsubscribes(self, target):
        async def scenario():
            characteristic = FakeCharacteristic()
            source = UpdateSource(TimerCoordinator("t"), Recorder(), "t")
            await source.start(CharacteristicBinding(characteristic, target), UpdateMode.push())
            await source.close()
            await source.close()
            await settle()
            return characteristic

        assert asyncio.run(scenario()).stop_notify_calls == 1
