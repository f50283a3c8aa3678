"""Unit tests for per-item locks (no database involved)."""

import threading
import time

import pytest

from src.services.exceptions import LockTimeoutError
from src.services.locking import KeyedLockRegistry, component_key, get_registry, supply_key
from src.utils.config import reset_config


def test_keys_are_tagged_by_item_type():
    assert supply_key(3) == ("supply", 3)
    assert component_key(3) == ("component", 3)
    assert supply_key(3) != component_key(3)


def test_same_key_returns_same_lock():
    registry = KeyedLockRegistry()
    assert registry.get_lock(supply_key(1)) is registry.get_lock(supply_key(1))
    assert registry.get_lock(supply_key(1)) is not registry.get_lock(supply_key(2))


def test_hold_acquires_in_sorted_order_without_duplicates():
    registry = KeyedLockRegistry()
    keys = [supply_key(2), component_key(9), supply_key(1), supply_key(2)]

    with registry.hold(keys, timeout=1) as held:
        assert held == [component_key(9), supply_key(1), supply_key(2)]


def test_hold_is_reentrant_in_one_thread():
    registry = KeyedLockRegistry()

    with registry.hold([supply_key(1)], timeout=1):
        with registry.hold([supply_key(1), supply_key(2)], timeout=1) as held:
            assert held == [supply_key(1), supply_key(2)]


def test_hold_times_out_when_another_thread_holds_a_key():
    registry = KeyedLockRegistry()
    acquired = threading.Event()
    release = threading.Event()

    def holder():
        with registry.hold([supply_key(2)], timeout=1):
            acquired.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert acquired.wait(5)
        with pytest.raises(LockTimeoutError) as exc_info:
            with registry.hold([supply_key(1), supply_key(2)], timeout=0.1):
                pass
        assert exc_info.value.keys == [supply_key(1), supply_key(2)]
    finally:
        release.set()
        thread.join(5)

    # The partially acquired key was released on timeout
    with registry.hold([supply_key(1)], timeout=0.1):
        pass


def test_writers_of_one_key_are_serialized():
    registry = KeyedLockRegistry()
    counter = {"value": 0}

    def increment():
        for _ in range(50):
            with registry.hold([supply_key(1)], timeout=5):
                current = counter["value"]
                time.sleep(0)
                counter["value"] = current + 1

    threads = [threading.Thread(target=increment) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(10)

    assert counter["value"] == 200


def test_overlapping_key_sets_do_not_deadlock():
    registry = KeyedLockRegistry()
    errors = []

    def worker(keys):
        try:
            for _ in range(25):
                with registry.hold(keys, timeout=5):
                    time.sleep(0)
        except LockTimeoutError as e:
            errors.append(e)

    first = threading.Thread(target=worker, args=([supply_key(1), supply_key(2)],))
    second = threading.Thread(target=worker, args=([supply_key(2), supply_key(1)],))
    first.start()
    second.start()
    first.join(15)
    second.join(15)

    assert errors == []


def test_default_timeout_comes_from_config(monkeypatch):
    monkeypatch.setenv("GP_INVENTORY_LOCK_TIMEOUT", "1")
    reset_config()
    registry = KeyedLockRegistry()
    release = threading.Event()
    acquired = threading.Event()

    def holder():
        with registry.hold([component_key(1)]):
            acquired.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert acquired.wait(5)
        started = time.monotonic()
        with pytest.raises(LockTimeoutError) as exc_info:
            with registry.hold([component_key(1)]):
                pass
        assert exc_info.value.timeout == 1
        assert time.monotonic() - started < 4
    finally:
        release.set()
        thread.join(5)


def test_process_wide_registry_is_shared():
    assert get_registry() is get_registry()
