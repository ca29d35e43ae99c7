from itertools import islice

import httpx
import pytest

from cdn_server.services.registration import (
    RegistrationState,
    backoff_delays,
    keep_registering,
    register_once,
)


class FlakyOrigin:
    root_addr = "http://root:8192"

    def __init__(self, failures):
        self.failures = failures
        self.calls = []

    async def register(self, remote_addr):
        self.calls.append(remote_addr)
        if len(self.calls) <= self.failures:
            raise httpx.ConnectError("connection refused")


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def test_backoff_delays_double_up_to_cap():
    assert list(islice(backoff_delays(0.5, 4.0), 6)) == [0.5, 1.0, 2.0, 4.0, 4.0, 4.0]


def test_backoff_delays_initial_above_cap():
    assert list(islice(backoff_delays(10.0, 3.0), 2)) == [3.0, 3.0]


@pytest.mark.asyncio
async def test_register_once_success():
    origin = FlakyOrigin(failures=0)
    state = RegistrationState()

    assert await register_once(origin, "http://cdn:8193", state)
    assert state == RegistrationState(registered=True, attempts=1)
    assert origin.calls == ["http://cdn:8193"]


@pytest.mark.asyncio
async def test_keep_registering_backs_off_until_success():
    origin = FlakyOrigin(failures=4)
    state = RegistrationState()
    sleep = RecordingSleep()

    assert not await register_once(origin, "http://cdn:8193", state)
    registered = await keep_registering(
        origin,
        "http://cdn:8193",
        state,
        initial_delay=0.5,
        max_delay=2.0,
        sleep=sleep,
    )

    assert registered
    assert state.registered
    assert state.attempts == 5
    assert sleep.delays == [0.5, 1.0, 2.0, 2.0]


@pytest.mark.asyncio
async def test_keep_registering_gives_up_after_max_attempts():
    origin = FlakyOrigin(failures=100)
    state = RegistrationState()
    sleep = RecordingSleep()

    await register_once(origin, "http://cdn:8193", state)
    registered = await keep_registering(
        origin,
        "http://cdn:8193",
        state,
        initial_delay=0.5,
        max_delay=2.0,
        max_attempts=3,
        sleep=sleep,
    )

    assert not registered
    assert not state.registered
    assert state.attempts == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_keep_registering_with_registered_state_returns_immediately():
    origin = FlakyOrigin(failures=0)
    sleep = RecordingSleep()

    assert await keep_registering(
        origin,
        "http://cdn:8193",
        RegistrationState(registered=True, attempts=1),
        initial_delay=0.5,
        max_delay=2.0,
        sleep=sleep,
    )
    assert origin.calls == []
    assert sleep.delays == []
