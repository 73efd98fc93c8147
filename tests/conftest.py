import pytest

from dispatch.errors import ReplyTransportError


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeInvocation:
    """Records every transport call; optionally fails chosen methods."""

    def __init__(self, command_name, options=None, fail_on=(), invocation_id="inv-1"):
        self.command_name = command_name
        self.options = list(options or [])
        self.invocation_id = invocation_id
        self.replied = False
        self.deferred = False
        self.calls = []
        self.fail_on = set(fail_on)

    async def _send(self, method, payload):
        if method in self.fail_on:
            raise ReplyTransportError(f"{method} failed")
        self.calls.append((method, payload))

    async def reply(self, payload):
        await self._send("reply", payload)
        self.replied = True

    async def edit_reply(self, payload):
        await self._send("edit_reply", payload)

    async def follow_up(self, payload):
        await self._send("follow_up", payload)

    async def defer(self):
        self.deferred = True

    @property
    def methods(self):
        return [method for method, _ in self.calls]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_invocation():
    return FakeInvocation
