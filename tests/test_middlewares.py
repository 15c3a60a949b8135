"""Whitelist gate and ledger-user injection."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

from middlewares import LedgerUserMiddleware, WhitelistMiddleware


def _event(user_id=1):
    return SimpleNamespace(from_user=SimpleNamespace(id=user_id, username="u", first_name="F", last_name=None))


class TestWhitelist:
    async def test_empty_whitelist_allows_everyone(self):
        handler = AsyncMock(return_value="ok")
        assert await WhitelistMiddleware(allowed_ids=[])(handler, _event(99), {}) == "ok"

    async def test_blocks_unknown_user(self):
        handler = AsyncMock()
        assert await WhitelistMiddleware(allowed_ids=[1])(handler, _event(2), {}) is None
        handler.assert_not_awaited()

    async def test_allows_listed_user(self):
        handler = AsyncMock(return_value="ok")
        assert await WhitelistMiddleware(allowed_ids=[1])(handler, _event(1), {}) == "ok"

    async def test_events_without_sender_are_dropped(self):
        handler = AsyncMock()
        await WhitelistMiddleware(allowed_ids=[])(handler, SimpleNamespace(), {})
        handler.assert_not_awaited()


class TestLedgerUser:
    async def test_injects_registered_user(self):
        orchestrator = SimpleNamespace(register_user=AsyncMock(return_value="ledger-user"))
        handler = AsyncMock(return_value="ok")
        data = {"orchestrator": orchestrator}

        await LedgerUserMiddleware()(handler, _event(5), data)

        orchestrator.register_user.assert_awaited_once_with(5, username="u", first_name="F", last_name=None)
        assert handler.await_args.args[1]["user"] == "ledger-user"
