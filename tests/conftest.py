import asyncio

import pytest


class ThingToTest:
    """A target with asynchronous methods that mutate its own state."""

    def __init__(self):
        self.state = 0

    def inc_state_next_tick(self, state_arg, callback):
        self.state = state_arg["val"]

        def finish():
            self.state += 1
            callback(None, self.state)

        asyncio.get_running_loop().call_soon(finish)

    def echo_after(self, value, delay, callback):
        asyncio.get_running_loop().call_later(delay, callback, None, value)

    def fail_next_tick(self, reason, callback):
        asyncio.get_running_loop().call_soon(callback, ValueError(reason))

    async def inc_state_async(self, state_arg):
        self.state = state_arg["val"]
        await asyncio.sleep(0)
        self.state += 1
        return self.state

    async def echo_async(self, value):
        await asyncio.sleep(0)
        return value

    async def explode_async(self, key):
        await asyncio.sleep(0)
        raise KeyError(key)

    def reset_state(self):
        self.state = 0


def call_and_wait(method, *args):
    """Call a callback-style method and return a future resolved with the callback's arguments."""
    future = asyncio.get_running_loop().create_future()
    method(*args, lambda *result: future.set_result(result))
    return future


@pytest.fixture
def thing():
    return ThingToTest()


@pytest.fixture(name="call_and_wait")
def call_and_wait_fixture():
    return call_and_wait
