"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Service Station (Stazione di Servizio)

Definisce engine, session factory e dependency injection per FastAPI.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from service_station.core.config import settings
from service_station.core.exceptions import PersistenceError

# Logger per questo modulo
logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Crea l'engine async con le opzioni adatte al dialetto.

    Il pool limitato (pool_size + max_overflow) fa da contropressione:
    a pool saturo le richieste attendono una connessione libera.
    SQLite non accetta le opzioni di dimensionamento del pool.
    """
    engine_kwargs = dict(echo=echo, pool_pre_ping=True)

    if not database_url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )

    return create_async_engine(database_url, **engine_kwargs)


# ------------------------------------------------------------
# Engine Async SQLAlchemy 2.0
# ------------------------------------------------------------
engine: AsyncEngine = build_engine(settings.database_url, echo=settings.debug)


# ------------------------------------------------------------
# Session Factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Crea una sessione database per ogni richiesta e la chiude
    automaticamente al termine. In caso di eccezione esegue il rollback:
    i service fanno solo flush, il commit spetta al router.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def flush_or_raise(db: AsyncSession, operation: str) -> None:
    """
    Esegue il flush traducendo gli errori SQLAlchemy in PersistenceError.

    Args:
        db: Sessione database
        operation: Descrizione dell'operazione, usata nel messaggio d'errore

    Raises:
        PersistenceError: Se il database rifiuta le modifiche
    """
    try:
        await db.flush()
    except SQLAlchemyError as e:
        logger.error("Errore database durante '%s': %s", operation, e)
        raise PersistenceError(f"Errore database durante {operation}") from e


async def commit_or_raise(db: AsyncSession, operation: str) -> None:
    """
    Commit della transazione della richiesta, con la stessa traduzione
    degli errori di flush_or_raise. Il rollback resta a get_db.

    Raises:
        PersistenceError: Se il database rifiuta il commit
    """
    try:
        await db.commit()
    except SQLAlchemyError as e:
        logger.error("Commit fallito durante '%s': %s", operation, e)
        raise PersistenceError(f"Errore database durante {operation}") from e


async def init_db() -> None:
    """
    Inizializza la connessione al database.

    Esegue un test di connessione per verificare
    che il database sia raggiungibile.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """
    Chiude le connessioni al database.

    Da chiamare durante lo shutdown dell'applicazione.
    """
    await engine.dispose()
    logger.info("Connessioni database chiuse")
