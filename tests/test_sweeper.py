from __future__ import annotations

import threading

import pytest

from autolog_events.publisher import LivenessSweeper, SubscriberRegistry

from conftest import BrokenSubscriber, FailingNotifySubscriber, RecordingSubscriber, wait_for


def _registry_with(*subscribers):
    registry = SubscriberRegistry()
    for subscriber in subscribers:
        registry.register(subscriber.subscriber_id, subscriber)
    return registry


def test_sweep_once_evicts_only_failing_pings():
    healthy, broken, notify_broken = RecordingSubscriber(), BrokenSubscriber(), FailingNotifySubscriber()
    registry = _registry_with(healthy, broken, notify_broken)
    evicted_batches = []
    sweeper = LivenessSweeper(registry, interval=60, on_evict=evicted_batches.append)

    evicted = sweeper.sweep_once()

    assert evicted == [broken.subscriber_id]
    assert evicted_batches == [[broken.subscriber_id]]
    assert [sid for sid, _ in registry.snapshot()] == [healthy.subscriber_id, notify_broken.subscriber_id]
    assert healthy.pings == 1


def test_background_loop_evicts_without_external_trigger():
    broken = BrokenSubscriber()
    registry = _registry_with(broken, RecordingSubscriber())
    sweeper = LivenessSweeper(registry, interval=0.05, ping_timeout=1.0)
    sweeper.start()
    try:
        assert wait_for(lambda: broken.subscriber_id not in registry, timeout=3)
        assert registry.size() == 1
    finally:
        sweeper.stop()


def test_hung_ping_counts_as_dead():
    release = threading.Event()

    class HangingPing(RecordingSubscriber):
        def ping(self):
            release.wait(10)

    hanging = HangingPing()
    registry = _registry_with(hanging)
    sweeper = LivenessSweeper(registry, interval=60, ping_timeout=0.1)
    sweeper.start()
    try:
        assert sweeper.sweep_once() == [hanging.subscriber_id]
    finally:
        release.set()
        sweeper.stop()


def test_hung_pingers_never_cost_a_healthy_subscriber_its_slot():
    release = threading.Event()

    class HangingPing(RecordingSubscriber):
        def ping(self):
            release.wait(30)

    hanging = [HangingPing(f"hung-{i}") for i in range(6)]
    registry = _registry_with(*hanging)
    sweeper = LivenessSweeper(registry, interval=1000, ping_timeout=0.2)
    try:
        assert sorted(sweeper.sweep_once()) == sorted(h.subscriber_id for h in hanging)

        healthy = RecordingSubscriber("healthy")
        registry.register("healthy", healthy)
        assert sweeper.sweep_once() == []
        assert "healthy" in registry
        assert healthy.pings == 1
    finally:
        release.set()
        sweeper.stop()


def test_still_hanging_ping_from_previous_pass_counts_as_dead():
    release = threading.Event()

    class HangingPing(RecordingSubscriber):
        def ping(self):
            release.wait(30)

    hanging = HangingPing("hung")
    registry = SubscriberRegistry()
    sweeper = LivenessSweeper(registry, interval=1000, ping_timeout=0.1)
    try:
        registry.register("hung", hanging)
        assert sweeper.sweep_once() == ["hung"]

        # the same handle comes back while its first ping is still blocked
        registry.register("hung", hanging)
        assert sweeper.sweep_once() == ["hung"]
    finally:
        release.set()


def test_eviction_spares_newer_registration_under_same_id():
    registry = SubscriberRegistry()
    replacement = RecordingSubscriber("shared")

    class ReplacedWhilePinging(RecordingSubscriber):
        def ping(self):
            registry.register("shared", replacement)
            raise RuntimeError("gone")

    registry.register("shared", ReplacedWhilePinging("shared"))
    sweeper = LivenessSweeper(registry, interval=60)

    assert sweeper.sweep_once() == []
    assert registry.get("shared") is replacement


def test_stop_terminates_thread_and_cannot_restart():
    sweeper = LivenessSweeper(SubscriberRegistry(), interval=0.05)
    sweeper.start()
    assert sweeper.running

    sweeper.stop()
    sweeper.stop()

    assert not sweeper.running
    assert not sweeper._thread.is_alive()
    with pytest.raises(RuntimeError):
        sweeper.start()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        LivenessSweeper(SubscriberRegistry(), interval=0)
