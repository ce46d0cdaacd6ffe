"""
Pytest configuration and fixtures.

I test dei service girano su un database SQLite in memoria (aiosqlite),
ricreato per ogni test. I casi di errore del database usano invece
un mock di AsyncSession.
"""

import os

# Prima di importare l'applicazione: niente PostgreSQL nei test
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "testing")

from dataclasses import dataclass
from decimal import Decimal
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from service_station.models import (
    Base,
    Car,
    Client,
    DefectNode,
    DefectType,
    Order,
    Service,
    User,
    UserRole,
    UserStatus,
    defect_type_services,
)
from service_station.schemas.order import OrderStatus
from service_station.schemas.user import Actor


# ============================================================
# Database SQLite in memoria
# ============================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Engine SQLite in memoria con tutte le tabelle."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite gestisce BEGIN a modo suo e rompe i SAVEPOINT:
    # il BEGIN lo emette SQLAlchemy
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessione database del test."""
    async with session_factory() as session:
        yield session


# ============================================================
# Dati di base
# ============================================================


def actor_of(user: User) -> Actor:
    return Actor(id=user.id, role=UserRole(user.role), full_name=user.full_name)


@dataclass
class Station:
    """Personale, cliente e auto presenti in ogni test."""
    admin: User
    master: User
    diagnostician: User
    storekeeper: User
    worker: User
    other_worker: User
    inactive_worker: User
    client: Client
    car: Car

    @property
    def master_actor(self) -> Actor:
        return actor_of(self.master)

    @property
    def diagnostician_actor(self) -> Actor:
        return actor_of(self.diagnostician)

    @property
    def worker_actor(self) -> Actor:
        return actor_of(self.worker)


@pytest_asyncio.fixture
async def station(db: AsyncSession) -> Station:
    users = {
        "admin": User(full_name="Anna Amministratrice", role=UserRole.ADMIN.value, login="admin"),
        "master": User(full_name="Marco Master", role=UserRole.MASTER.value, login="master"),
        "diagnostician": User(full_name="Dario Diagnosta", role=UserRole.DIAGNOSTICIAN.value, login="diag"),
        "storekeeper": User(full_name="Sara Magazzino", role=UserRole.STOREKEEPER.value, login="store"),
        "worker": User(full_name="Otto Operaio", role=UserRole.WORKER.value),
        "other_worker": User(full_name="Olga Operaia", role=UserRole.WORKER.value),
        "inactive_worker": User(
            full_name="Ivo Inattivo",
            role=UserRole.WORKER.value,
            status=UserStatus.INACTIVE.value,
        ),
    }
    db.add_all(users.values())

    client = Client(full_name="Mario Rossi", phone="+39 333 1234567")
    db.add(client)
    await db.flush()

    car = Car(client_id=client.id, make="Fiat", model="Panda", license_plate="AB123CD", mileage=50000)
    db.add(car)
    await db.commit()

    return Station(client=client, car=car, **users)


@dataclass
class Catalog:
    """Catalogo minimo: un guasto con due lavorazioni, uno senza."""
    node: DefectNode
    pads: DefectType
    noise: DefectType
    pad_replacement: Service
    disc_check: Service


@pytest_asyncio.fixture
async def catalog(db: AsyncSession) -> Catalog:
    node = DefectNode(name="Freni", description="Impianto frenante")
    db.add(node)
    await db.flush()

    pad_replacement = Service(name="Sostituzione pastiglie", base_price=Decimal("500.00"), norm_hours=Decimal("2.00"))
    disc_check = Service(name="Controllo dischi", base_price=Decimal("80.00"), norm_hours=Decimal("0.50"))
    db.add_all([pad_replacement, disc_check])

    pads = DefectType(node_id=node.id, name="Usura pastiglie", description="Pastiglie sotto il limite")
    noise = DefectType(node_id=node.id, name="Rumore in frenata", description=None)
    db.add_all([pads, noise])
    await db.flush()

    # Collegate in ordine inverso: conta l'id, non l'ordine di inserimento
    await db.execute(
        defect_type_services.insert(),
        [
            {"defect_type_id": pads.id, "service_id": disc_check.id},
            {"defect_type_id": pads.id, "service_id": pad_replacement.id},
        ],
    )
    await db.commit()

    return Catalog(node=node, pads=pads, noise=noise, pad_replacement=pad_replacement, disc_check=disc_check)


@pytest.fixture
def make_order(db: AsyncSession, station: Station):
    """Factory per ordini già in un certo stato."""

    async def _make(
        status: OrderStatus = OrderStatus.DIAGNOSTICS,
        worker_id: Optional[int] = None,
    ) -> Order:
        order = Order(
            client_id=station.client.id,
            car_id=station.car.id,
            master_id=station.master.id,
            worker_id=worker_id,
            status=status.value,
            complaint="Rumore ai freni",
            current_mileage=50000,
        )
        db.add(order)
        await db.commit()
        return order

    return _make


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.refresh = AsyncMock()
    db.delete = MagicMock()
    db.begin_nested = MagicMock()
    return db
