"""Tests for fetch scheduling."""

import asyncio

import pytest

from instafeed.core.scheduler import FetchScheduler, IntervalPolicy


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


def test_policy_first_fetch_is_due(clock):
    assert IntervalPolicy(interval=60, clock=clock).should_fetch


def test_policy_waits_for_interval(clock):
    policy = IntervalPolicy(interval=60, clock=clock)
    policy.started()
    policy.completed()

    clock.now += 59
    assert not policy.should_fetch
    clock.now += 1
    assert policy.should_fetch


def test_policy_blocks_overlapping_attempts(clock):
    policy = IntervalPolicy(interval=60, clock=clock)
    policy.started()
    clock.now += 600
    assert not policy.should_fetch
    policy.failed()
    assert policy.should_fetch


def test_policy_failed_attempt_counts_toward_interval(clock):
    policy = IntervalPolicy(interval=60, clock=clock)
    policy.started()
    policy.failed()
    assert not policy.should_fetch


def test_policy_reset(clock):
    policy = IntervalPolicy(interval=60, clock=clock)
    policy.started()
    policy.reset()
    assert policy.should_fetch


def test_should_fetch_force_and_empty_cache(clock):
    scheduler = FetchScheduler(lambda: None, policy=IntervalPolicy(interval=60, clock=clock))
    scheduler.started()

    assert not scheduler.should_fetch()
    assert scheduler.should_fetch(force=True)
    assert scheduler.should_fetch(cache_empty=True)


def test_turning_on_without_loop_defers():
    scheduler = FetchScheduler(lambda: None)
    scheduler.is_on = True
    assert scheduler.is_on
    assert scheduler._task is None


@pytest.mark.asyncio
async def test_trigger_fires_while_on_and_due():
    calls = []
    scheduler = FetchScheduler(lambda: calls.append(1), policy=IntervalPolicy(interval=0), poll_interval=0.01)

    scheduler.is_on = True
    await asyncio.sleep(0.05)
    scheduler.is_on = False
    fired = len(calls)
    await asyncio.sleep(0.03)

    assert fired >= 1
    assert len(calls) == fired


@pytest.mark.asyncio
async def test_trigger_skips_when_not_due(clock):
    calls = []
    policy = IntervalPolicy(interval=60, clock=clock)
    policy.started()
    scheduler = FetchScheduler(lambda: calls.append(1), policy=policy, poll_interval=0.01)

    scheduler.is_on = True
    await asyncio.sleep(0.05)
    scheduler.stop()

    assert calls == []


@pytest.mark.asyncio
async def test_trigger_errors_do_not_stop_timer():
    calls = []

    def on_trigger():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler = FetchScheduler(on_trigger, policy=IntervalPolicy(interval=0), poll_interval=0.01)
    scheduler.is_on = True
    await asyncio.sleep(0.05)
    scheduler.stop()

    assert len(calls) >= 2
