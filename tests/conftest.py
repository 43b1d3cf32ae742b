"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DRY_RUN"] = "true"
os.environ["DEBUG"] = "true"

from forgebot.bot.context import Services
from forgebot.bot.dispatcher import Dispatcher
from forgebot.bot.handlers import setup_routers
from forgebot.config import Settings
from forgebot.ledger.models import Base
from forgebot.ledger.repository import LedgerRepository
from forgebot.pipeline.execution import ExecutionPipeline
from forgebot.routing.dry_run import DryRunAggregator
from forgebot.services.chat_service import ChatService
from forgebot.sessions.models import Session
from forgebot.sessions.store import MemorySessionStore
from forgebot.utils.locks import clear_session_locks
from forgebot.wallet.dryrun import DryRunWalletProvider
from forgebot.wallet.keystore import KeyEncryptor, generate_encryption_key

USER_ID = "1001"
ONE_ETH = 10**18


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def ledger_repo(db_session: AsyncSession) -> LedgerRepository:
    """Create ledger repository for testing."""
    return LedgerRepository(db_session)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        environment="test",
        dry_run=True,
        record_retry_attempts=2,
        record_retry_delay=0.0,
        lease_timeout_seconds=5.0,
    )


@pytest.fixture
def encryptor() -> KeyEncryptor:
    return KeyEncryptor(generate_encryption_key())


@pytest.fixture
def wallets(session_factory, encryptor) -> DryRunWalletProvider:
    return DryRunWalletProvider(session_factory, encryptor)


@pytest.fixture
def aggregator(test_settings) -> DryRunAggregator:
    return DryRunAggregator(settings=test_settings)


@pytest.fixture
def pipeline(wallets, aggregator, session_factory, test_settings) -> ExecutionPipeline:
    return ExecutionPipeline(wallets, aggregator, session_factory, test_settings)


@pytest.fixture
def services(test_settings, session_factory, wallets, aggregator, pipeline) -> Services:
    return Services(
        settings=test_settings,
        session_factory=session_factory,
        wallets=wallets,
        aggregator=aggregator,
        pipeline=pipeline,
    )


@pytest.fixture
def store() -> MemorySessionStore:
    return MemorySessionStore()


@pytest.fixture
def dispatcher(services, store) -> Dispatcher:
    return Dispatcher(setup_routers(), services, store)


@pytest.fixture
def chat(store, dispatcher, test_settings) -> ChatService:
    clear_session_locks()
    return ChatService(store, dispatcher, test_settings)


@pytest.fixture
def session() -> Session:
    """A session already bound to the test user."""
    return Session(id="test-session-0001", user_id=USER_ID, fid=USER_ID)


@pytest_asyncio.fixture
async def registered_user(services):
    """User row plus default settings, no wallet."""
    async with services.ledger() as repo:
        await repo.create_user(USER_ID, fid=USER_ID, username="tester")
        await repo.save_user_settings(USER_ID, slippage=1.0, gas_priority="medium")
    return USER_ID


@pytest_asyncio.fixture
async def funded_wallet(registered_user, wallets):
    """Generated wallet holding 0.1 ETH."""
    wallet = await wallets.generate_wallet(registered_user)
    wallets.fund_native(wallet.address, ONE_ETH // 10)
    return wallet
