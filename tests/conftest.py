"""Pytest configuration and shared fixtures for cashback tests."""

import os

import pytest
import pytest_asyncio

from typing import TYPE_CHECKING, Any

from src.cashback.models import ChainConfig
from tests.fakes import CHAIN_ID, EXPLORER_URL, REFERRAL_ID, FakeRPC, FakeStore, RecordingSink


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@pytest.fixture
def chain_config() -> ChainConfig:
    """Chain config with the reference economics (fee 50000, reward 1000000)."""
    return ChainConfig(
        currency_id=CHAIN_ID,
        referral_currency_id=REFERRAL_ID,
        rpc_user="user",
        rpc_password="password",
        rpc_port=27486,
        zmq_block_hash_url="tcp://127.0.0.1:28332",
        explorer_url=EXPLORER_URL,
        fee=50_000,
        referral_amount=1_000_000,
        discord_channel_id=1227894258216734782,
        name="testchain",
    )


@pytest.fixture
def fake_rpc() -> FakeRPC:
    return FakeRPC()


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest_asyncio.fixture
async def pg_store() -> "AsyncGenerator[Any]":
    """CashbackStore on a real PostgreSQL database.

    Set TEST_DATABASE_URL (postgresql+psycopg://...) to run these tests.
    Tables are dropped and recreated around every test.

    Yields:
        CashbackStore: Store bound to a fresh schema
    """
    url = os.getenv("TEST_DATABASE_URL")
    if not url:
        pytest.skip("TEST_DATABASE_URL not set")

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    from src.cashback.store import CashbackStore
    from src.helpers.db import Base

    engine = create_async_engine(url, echo=False)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        await engine.dispose()
        pytest.skip(f"Database not available: {e}")

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield CashbackStore(factory)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
