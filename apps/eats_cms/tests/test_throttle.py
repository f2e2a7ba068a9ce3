from __future__ import annotations

from eats.throttle import BLOCK_SECONDS, MAX_FAILURES, WINDOW_SECONDS, InMemoryLoginThrottle


def test_blocks_after_threshold(clock):
    throttle = InMemoryLoginThrottle(clock=clock)
    for _ in range(MAX_FAILURES - 1):
        throttle.record_failure("1.2.3.4")
        assert throttle.check("1.2.3.4")

    throttle.record_failure("1.2.3.4")
    assert not throttle.check("1.2.3.4")
    # Other addresses are unaffected.
    assert throttle.check("5.6.7.8")


def test_block_expires(clock):
    throttle = InMemoryLoginThrottle(clock=clock)
    for _ in range(MAX_FAILURES):
        throttle.record_failure("ip")

    clock.advance(BLOCK_SECONDS - 1)
    assert not throttle.check("ip")
    clock.advance(1)
    assert throttle.check("ip")
    assert len(throttle) == 0


def test_window_resets_count(clock):
    throttle = InMemoryLoginThrottle(clock=clock)
    for _ in range(MAX_FAILURES - 1):
        throttle.record_failure("ip")

    clock.advance(WINDOW_SECONDS)
    throttle.record_failure("ip")
    assert throttle.check("ip")


def test_clear_forgets_failures(clock):
    throttle = InMemoryLoginThrottle(clock=clock)
    for _ in range(MAX_FAILURES - 1):
        throttle.record_failure("ip")
    throttle.clear("ip")
    throttle.record_failure("ip")
    assert throttle.check("ip")


def test_sweep_drops_stale_entries(clock):
    throttle = InMemoryLoginThrottle(clock=clock)
    for i in range(10):
        throttle.record_failure(f"10.0.0.{i}")
    assert len(throttle) == 10

    clock.advance(WINDOW_SECONDS + 1)
    throttle.record_failure("10.0.1.1")
    assert len(throttle) == 1
