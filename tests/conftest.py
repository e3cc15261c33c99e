"""Pytest configuration and fixtures."""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DRY_RUN"] = "true"
os.environ["DEBUG"] = "false"
os.environ["CUSTODY_IDENTITY"] = "escrow"

from bundleswap.events import DomainEvent, EventPublisher
from bundleswap.ledger.database import create_session_factory, init_db
from bundleswap.ledger.repository import OfferRepository, OrderRepository
from bundleswap.registry.base import AssetRef, RegistryDirectory
from bundleswap.registry.memory import InMemoryAssetRegistry
from bundleswap.swap.orchestrator import OrderSnapshot, SwapOrchestrator
from bundleswap.utils.locks import OperationGuard

CUSTODY = "escrow"
OWNER = "owner-o"
PROPOSER = "proposer-p"
OTHER = "mallory"


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    await init_db(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """Session factory bound to the test engine."""
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def order_repo(db_session: AsyncSession) -> OrderRepository:
    return OrderRepository(db_session)


@pytest.fixture
def offer_repo(db_session: AsyncSession) -> OfferRepository:
    return OfferRepository(db_session)


@pytest.fixture
def registry_x() -> InMemoryAssetRegistry:
    return InMemoryAssetRegistry("RegistryX")


@pytest.fixture
def registry_y() -> InMemoryAssetRegistry:
    return InMemoryAssetRegistry("RegistryY")


@pytest.fixture
def directory(registry_x, registry_y) -> RegistryDirectory:
    return RegistryDirectory([registry_x, registry_y])


@pytest.fixture
def events() -> list[DomainEvent]:
    """Every event the orchestrator publishes, in order."""
    return []


@pytest.fixture
def orchestrator(session_factory, directory, events) -> SwapOrchestrator:
    """Orchestrator over the test database and in-memory registries."""
    publisher = EventPublisher(history_size=50)
    publisher.subscribe(events.append)
    return SwapOrchestrator(
        session_factory=session_factory,
        directory=directory,
        custody_identity=CUSTODY,
        publisher=publisher,
        guard=OperationGuard(timeout=5.0),
    )


@pytest.fixture
def list_asset(orchestrator, registry_x):
    """Mint a RegistryX token to an owner, approve the escrow and open an order."""

    async def _list(token_id: str = "1", owner: str = OWNER) -> OrderSnapshot:
        registry_x.mint(owner, token_id)
        registry_x.set_approval_for_all(owner, CUSTODY)
        return await orchestrator.create_order(owner, AssetRef("RegistryX", token_id))

    return _list


@pytest.fixture
def fund(registry_y):
    """Mint RegistryY tokens to a proposer and grant the escrow blanket approval."""

    def _fund(*token_ids: str, proposer: str = PROPOSER) -> None:
        for token_id in token_ids:
            registry_y.mint(proposer, token_id)
        registry_y.set_approval_for_all(proposer, CUSTODY)

    return _fund
