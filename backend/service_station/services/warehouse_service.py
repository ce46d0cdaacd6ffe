"""
Service Layer per il magazzino
Progetto: Service Station (Stazione di Servizio)

Articoli a scorta da cui il magazziniere preleva i ricambi degli ordini.
"""

import logging
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import BusinessValidationError, NotFoundError
from service_station.models import WarehouseItem
from service_station.schemas.warehouse import WarehouseItemCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class WarehouseService:
    """Service per gli articoli di magazzino."""

    async def get_all(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        low_stock_only: bool = False,
    ) -> list[WarehouseItem]:
        """
        Articoli di magazzino, con ricerca su nome, marca e codice articolo.

        Args:
            db: Sessione database
            search: Termine di ricerca opzionale
            low_stock_only: Se True, solo gli articoli sotto scorta minima
        """
        query = select(WarehouseItem)
        if search:
            search_term = f"%{search}%"
            query = query.where(
                or_(
                    WarehouseItem.name.ilike(search_term),
                    WarehouseItem.brand.ilike(search_term),
                    WarehouseItem.article.ilike(search_term),
                )
            )
        if low_stock_only:
            query = query.where(WarehouseItem.quantity < WarehouseItem.min_quantity)

        result = await db.execute(query.order_by(WarehouseItem.name, WarehouseItem.id))
        return list(result.scalars().all())

    async def get_by_id(self, db: AsyncSession, item_id: int) -> WarehouseItem:
        item = await db.get(WarehouseItem, item_id)
        if item is None:
            raise NotFoundError(f"Articolo di magazzino con ID {item_id} non trovato")
        return item

    async def create(self, db: AsyncSession, data: WarehouseItemCreate) -> WarehouseItem:
        item = WarehouseItem(**data.model_dump())
        db.add(item)
        await flush_or_raise(db, "creazione articolo")

        logger.info("Creato articolo di magazzino %s: %s (qty=%s)", item.id, item.name, item.quantity)
        return item

    async def adjust_quantity(self, db: AsyncSession, item_id: int, delta: int) -> WarehouseItem:
        """
        Carica (delta > 0) o preleva (delta < 0) un articolo.

        Raises:
            NotFoundError: Se l'articolo non esiste
            ValidationError: Se la giacenza diventerebbe negativa
        """
        item = await self.get_by_id(db, item_id)

        new_quantity = item.quantity + delta
        if new_quantity < 0:
            raise BusinessValidationError(
                f"Giacenza insufficiente per '{item.name}': disponibili {item.quantity}, richiesti {-delta}",
                extra={"available": item.quantity},
            )

        item.quantity = new_quantity
        await flush_or_raise(db, "movimento di magazzino")

        if item.is_below_minimum:
            logger.warning("Articolo %s sotto scorta minima: %s/%s", item.id, item.quantity, item.min_quantity)
        logger.info("Movimento articolo %s: %+d (giacenza %s)", item.id, delta, item.quantity)
        return item
