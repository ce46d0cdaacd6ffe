"""
Service Layer per il catalogo guasti e lavorazioni
Progetto: Service Station (Stazione di Servizio)

Gestione di nodi, tipi di guasto e listino lavorazioni, più le letture
usate dalla diagnosi per risolvere un tipo di guasto nella sua lavorazione.
"""

import logging
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import DuplicateError, NotFoundError
from service_station.models import DefectNode, DefectType, Service, defect_type_services
from service_station.schemas.catalog import DefectNodeCreate, DefectTypeCreate, ServiceCreate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class CatalogService:
    """
    Service per il catalogo.

    Il catalogo è dato di riferimento: le modifiche non toccano i lavori
    già creati, che ne conservano una copia.
    """

    # ------------------------------------------------------------
    # Nodi
    # ------------------------------------------------------------

    async def list_nodes(self, db: AsyncSession) -> list[DefectNode]:
        result = await db.execute(select(DefectNode).order_by(DefectNode.name))
        return list(result.scalars().all())

    async def create_node(self, db: AsyncSession, data: DefectNodeCreate) -> DefectNode:
        """
        Crea un nodo del catalogo.

        Raises:
            DuplicateError: Se esiste già un nodo con lo stesso nome
        """
        existing = await db.execute(select(DefectNode.id).where(DefectNode.name == data.name))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError(f"Nodo '{data.name}' già presente")

        node = DefectNode(name=data.name, description=data.description)
        db.add(node)
        await flush_or_raise(db, "creazione nodo")

        logger.info("Creato nodo catalogo %s: %s", node.id, node.name)
        return node

    # ------------------------------------------------------------
    # Tipi di guasto
    # ------------------------------------------------------------

    async def list_defect_types(
        self,
        db: AsyncSession,
        node_id: Optional[int] = None,
    ) -> list[DefectType]:
        """Tipi di guasto, opzionalmente filtrati per nodo."""
        query = select(DefectType)
        if node_id is not None:
            query = query.where(DefectType.node_id == node_id)
        query = query.order_by(DefectType.node_id, DefectType.name)

        result = await db.execute(query)
        return list(result.scalars().all())

    async def create_defect_type(self, db: AsyncSession, data: DefectTypeCreate) -> DefectType:
        """
        Crea un tipo di guasto sotto un nodo.

        Raises:
            NotFoundError: Se il nodo non esiste
            DuplicateError: Se il nodo ha già un tipo con lo stesso nome
        """
        node = await db.get(DefectNode, data.node_id)
        if not node:
            raise NotFoundError(f"Nodo con ID {data.node_id} non trovato")

        existing = await db.execute(
            select(DefectType.id).where(DefectType.node_id == node.id, DefectType.name == data.name)
        )
        if existing.scalar_one_or_none() is not None:
            raise DuplicateError(f"Il nodo '{node.name}' ha già il guasto '{data.name}'")

        defect_type = DefectType(node_id=node.id, name=data.name, description=data.description)
        defect_type.node = node
        db.add(defect_type)
        await flush_or_raise(db, "creazione tipo di guasto")

        logger.info("Creato tipo di guasto %s: %s", defect_type.id, defect_type.label)
        return defect_type

    async def get_defect_types(
        self,
        db: AsyncSession,
        defect_type_ids: list[int],
    ) -> dict[int, DefectType]:
        """
        Carica i tipi di guasto richiesti con nodo e lavorazioni collegate.

        Returns:
            Dizionario id → DefectType (gli id inesistenti mancano)
        """
        if not defect_type_ids:
            return {}

        result = await db.execute(
            select(DefectType)
            .where(DefectType.id.in_(set(defect_type_ids)))
            .options(selectinload(DefectType.services))
            .execution_options(populate_existing=True)
        )
        return {dt.id: dt for dt in result.unique().scalars().all()}

    @staticmethod
    def first_service(defect_type: DefectType) -> Optional[Service]:
        """Lavorazione collegata con id più basso, o None."""
        return defect_type.services[0] if defect_type.services else None

    # ------------------------------------------------------------
    # Lavorazioni
    # ------------------------------------------------------------

    async def list_services(self, db: AsyncSession) -> list[Service]:
        result = await db.execute(select(Service).order_by(Service.name))
        return list(result.scalars().all())

    async def create_service(self, db: AsyncSession, data: ServiceCreate) -> Service:
        service = Service(name=data.name, base_price=data.base_price, norm_hours=data.norm_hours)
        db.add(service)
        await flush_or_raise(db, "creazione lavorazione")

        logger.info("Creata lavorazione %s: %s (%s)", service.id, service.name, service.base_price)
        return service

    async def list_services_for_type(self, db: AsyncSession, defect_type_id: int) -> list[Service]:
        """
        Lavorazioni collegate a un tipo di guasto, per id crescente.

        Raises:
            NotFoundError: Se il tipo di guasto non esiste
        """
        await self._get_defect_type(db, defect_type_id)

        result = await db.execute(
            select(Service)
            .join(defect_type_services, defect_type_services.c.service_id == Service.id)
            .where(defect_type_services.c.defect_type_id == defect_type_id)
            .order_by(Service.id)
        )
        return list(result.scalars().all())

    async def link_service(self, db: AsyncSession, defect_type_id: int, service_id: int) -> None:
        """
        Collega una lavorazione a un tipo di guasto. Idempotente.

        Raises:
            NotFoundError: Se il tipo di guasto o la lavorazione non esistono
        """
        await self._get_defect_type(db, defect_type_id)
        if not await db.get(Service, service_id):
            raise NotFoundError(f"Lavorazione con ID {service_id} non trovata")

        existing = await db.execute(
            select(defect_type_services.c.service_id).where(
                defect_type_services.c.defect_type_id == defect_type_id,
                defect_type_services.c.service_id == service_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            logger.debug("Lavorazione %s già collegata al guasto %s", service_id, defect_type_id)
            return

        await db.execute(
            insert(defect_type_services).values(defect_type_id=defect_type_id, service_id=service_id)
        )
        await flush_or_raise(db, "collegamento lavorazione")
        logger.info("Collegata lavorazione %s al guasto %s", service_id, defect_type_id)

    async def unlink_service(self, db: AsyncSession, defect_type_id: int, service_id: int) -> None:
        """
        Scollega una lavorazione da un tipo di guasto.

        Raises:
            NotFoundError: Se il collegamento non esiste
        """
        result = await db.execute(
            delete(defect_type_services).where(
                defect_type_services.c.defect_type_id == defect_type_id,
                defect_type_services.c.service_id == service_id,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError(
                f"La lavorazione {service_id} non è collegata al guasto {defect_type_id}"
            )
        logger.info("Scollegata lavorazione %s dal guasto %s", service_id, defect_type_id)

    async def _get_defect_type(self, db: AsyncSession, defect_type_id: int) -> DefectType:
        defect_type = await db.get(DefectType, defect_type_id)
        if not defect_type:
            raise NotFoundError(f"Tipo di guasto con ID {defect_type_id} non trovato")
        return defect_type
