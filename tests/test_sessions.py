"""Tests for the session model and stores."""

import asyncio

import pytest

from forgebot.bot.states import BuyTokenSelect
from forgebot.config import Settings
from forgebot.sessions.models import Session, TradeSettings
from forgebot.sessions.store import (
    DatabaseSessionStore,
    MemorySessionStore,
    create_session_store,
    purge_sessions_periodically,
)

ADDRESS = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def sample_session(session_id: str = "sid-0000000000000001") -> Session:
    session = Session(id=session_id, user_id="42", wallet_address=ADDRESS)
    session.enter(BuyTokenSelect(wallet_address=ADDRESS, balance=10**17))
    session.settings = TradeSettings(slippage=0.5, gas_priority="high")
    return session


class TestSessionModel:
    def test_record_uses_wire_names(self):
        record = sample_session().to_record()

        assert record["userId"] == "42"
        assert record["walletAddress"] == ADDRESS
        assert record["currentAction"] == "buy_token"
        assert record["tempData"]["balance"] == 10**17
        assert record["settings"] == {"slippage": 0.5, "gasPriority": "high"}

    def test_record_round_trip(self):
        session = sample_session()

        restored = Session.from_record(session.to_record())

        assert restored == session

    def test_guest(self):
        assert Session(id="s").is_guest
        assert not sample_session().is_guest

    def test_enter_replaces_temp_data(self):
        session = sample_session()
        session.temp_data["stale"] = True

        session.enter(BuyTokenSelect(wallet_address=ADDRESS, balance=1))

        assert "stale" not in session.temp_data
        assert session.temp_data["balance"] == 1


class TestMemorySessionStore:
    @pytest.mark.asyncio
    async def test_set_and_get(self):
        store = MemorySessionStore()
        session = sample_session()

        await store.set(session.id, session, ttl=60)
        loaded = await store.get(session.id)

        assert loaded == session
        assert loaded is not session

    @pytest.mark.asyncio
    async def test_mutation_needs_explicit_set(self):
        store = MemorySessionStore()
        session = sample_session()
        await store.set(session.id, session, ttl=60)

        session.reset()

        assert (await store.get(session.id)).current_action == "buy_token"

    @pytest.mark.asyncio
    async def test_expiry(self):
        store = MemorySessionStore()
        session = sample_session()
        await store.set(session.id, session, ttl=0)

        assert await store.get(session.id) is None

    @pytest.mark.asyncio
    async def test_destroy(self):
        store = MemorySessionStore()
        session = sample_session()
        await store.set(session.id, session, ttl=60)

        await store.destroy(session.id)
        await store.destroy("unknown")

        assert await store.get(session.id) is None

    @pytest.mark.asyncio
    async def test_purge_expired(self):
        store = MemorySessionStore()
        await store.set("a", sample_session("a"), ttl=0)
        await store.set("b", sample_session("b"), ttl=60)

        assert await store.purge_expired() == 1
        assert len(store) == 1


class TestDatabaseSessionStore:
    @pytest.mark.asyncio
    async def test_set_and_get(self, session_factory):
        store = DatabaseSessionStore(session_factory)
        session = sample_session()

        await store.set(session.id, session, ttl=60)

        assert await store.get(session.id) == session

    @pytest.mark.asyncio
    async def test_overwrite(self, session_factory):
        store = DatabaseSessionStore(session_factory)
        session = sample_session()
        await store.set(session.id, session, ttl=60)

        session.reset()
        await store.set(session.id, session, ttl=60)

        assert (await store.get(session.id)).is_idle

    @pytest.mark.asyncio
    async def test_expiry(self, session_factory):
        store = DatabaseSessionStore(session_factory)
        session = sample_session()
        await store.set(session.id, session, ttl=1)

        await asyncio.sleep(1.1)

        assert await store.get(session.id) is None

    @pytest.mark.asyncio
    async def test_destroy_and_purge(self, session_factory):
        store = DatabaseSessionStore(session_factory)
        await store.set("a", sample_session("a"), ttl=0)
        await store.set("b", sample_session("b"), ttl=60)

        assert await store.purge_expired() == 1

        await store.destroy("b")
        assert await store.get("b") is None


class TestStoreFactory:
    def test_memory_backend(self):
        assert isinstance(create_session_store(Settings(session_backend="memory")), MemorySessionStore)

    def test_database_backend(self, session_factory):
        store = create_session_store(Settings(session_backend="database"), session_factory)

        assert isinstance(store, DatabaseSessionStore)

    def test_database_backend_requires_factory(self):
        with pytest.raises(ValueError):
            create_session_store(Settings(session_backend="database"))

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_session_store(Settings(session_backend="redis"))


class TestPeriodicPurge:
    @pytest.mark.asyncio
    async def test_sweeps_until_cancelled(self):
        store = MemorySessionStore()
        await store.set("a", sample_session("a"), ttl=0)
        await store.set("b", sample_session("b"), ttl=60)

        task = asyncio.create_task(purge_sessions_periodically(store, 0.01))
        await asyncio.sleep(0.05)
        await store.set("c", sample_session("c"), ttl=0)
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(store) == 1
        assert await store.get("b") is not None

    @pytest.mark.asyncio
    async def test_failed_sweep_does_not_stop_loop(self, monkeypatch):
        store = MemorySessionStore()
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("database is locked")
            return 0

        monkeypatch.setattr(store, "purge_expired", flaky)

        task = asyncio.create_task(purge_sessions_periodically(store, 0.01))
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(calls) >= 2
