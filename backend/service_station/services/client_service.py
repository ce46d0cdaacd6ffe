"""
Service Layer per Clienti e Auto
Progetto: Service Station (Stazione di Servizio)

Anagrafica clienti, auto registrate e storico degli ordini per auto.
"""

import logging
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import DuplicateError, NotFoundError
from service_station.models import Car, Client, Order
from service_station.schemas.client import CarCreate, ClientCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class ClientService:
    """
    Service per clienti e auto.

    Usato dall'accettazione: il master cerca il cliente, sceglie
    o registra l'auto e apre l'ordine.
    """

    async def get_all(
        self,
        db: AsyncSession,
        page: int = 1,
        per_page: int = 20,
        search: Optional[str] = None,
    ) -> tuple[list[Client], int]:
        """
        Lista paginata dei clienti, con ricerca su nome, telefono ed email.

        Returns:
            Tuple di (lista clienti, totale count)
        """
        conditions = []
        if search:
            search_term = f"%{search}%"
            conditions.append(
                or_(
                    Client.full_name.ilike(search_term),
                    Client.phone.ilike(search_term),
                    Client.email.ilike(search_term),
                )
            )

        query = select(Client).order_by(Client.full_name.asc(), Client.id.asc())
        if conditions:
            query = query.where(*conditions)

        offset = (page - 1) * per_page
        result = await db.execute(query.offset(offset).limit(per_page))
        clients = list(result.scalars().all())

        count_query = select(func.count()).select_from(Client)
        if conditions:
            count_query = count_query.where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        logger.debug("Recuperati %s clienti su %s totali (pagina %s)", len(clients), total, page)
        return clients, total

    async def get_by_id(self, db: AsyncSession, client_id: int) -> Client:
        """
        Recupera un cliente tramite ID.

        Raises:
            NotFoundError: Se il cliente non esiste
        """
        client = await db.get(Client, client_id)
        if client is None:
            logger.warning("Cliente non trovato: %s", client_id)
            raise NotFoundError(f"Cliente con ID {client_id} non trovato")
        return client

    async def create(self, db: AsyncSession, data: ClientCreate) -> Client:
        client = Client(**data.model_dump())
        db.add(client)
        await flush_or_raise(db, "creazione cliente")

        logger.info("Creato nuovo cliente: %s - %s", client.id, client.full_name)
        return client

    # ------------------------------------------------------------
    # Auto
    # ------------------------------------------------------------

    async def list_cars(self, db: AsyncSession, client_id: int) -> list[Car]:
        """
        Auto del cliente.

        Raises:
            NotFoundError: Se il cliente non esiste
        """
        await self.get_by_id(db, client_id)
        result = await db.execute(
            select(Car).where(Car.client_id == client_id).order_by(Car.id)
        )
        return list(result.scalars().all())

    async def add_car(self, db: AsyncSession, client_id: int, data: CarCreate) -> Car:
        """
        Registra un'auto per il cliente.

        Raises:
            NotFoundError: Se il cliente non esiste
            DuplicateError: Se il VIN è già registrato
        """
        client = await self.get_by_id(db, client_id)

        if data.vin:
            existing = await db.execute(select(Car.id).where(Car.vin == data.vin))
            existing_id = existing.scalar_one_or_none()
            if existing_id is not None:
                logger.warning("VIN duplicato %s (auto esistente: %s)", data.vin, existing_id)
                raise DuplicateError(f"VIN '{data.vin}' già registrato")

        car = Car(client_id=client.id, **data.model_dump())
        db.add(car)
        await flush_or_raise(db, "registrazione auto")

        logger.info("Registrata auto %s (%s %s) per cliente %s", car.id, car.make, car.model, client.id)
        return car

    async def car_history(self, db: AsyncSession, car_id: int) -> list[Order]:
        """
        Storico degli ordini di un'auto, dal più recente.

        Raises:
            NotFoundError: Se l'auto non esiste
        """
        car = await db.get(Car, car_id)
        if car is None:
            raise NotFoundError(f"Auto con ID {car_id} non trovata")

        result = await db.execute(
            select(Order)
            .where(Order.car_id == car_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())
