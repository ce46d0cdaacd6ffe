"""
Service Layer per la diagnosi
Progetto: Service Station (Stazione di Servizio)

Trasforma i tipi di guasto selezionati dal diagnosta in difetti
dell'ordine e nei relativi lavori a listino.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import BusinessValidationError, CatalogLookupError
from service_station.models import OrderDefect, OrderWork
from service_station.schemas.order import OrderStatus, WorkStatus
from service_station.schemas.user import Actor
from service_station.services import audit_service
from service_station.services.audit_service import AuditLogger, audit_logger
from service_station.services.catalog_service import CatalogService
from service_station.services.order_service import OrderService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Valori del lavoro quando il guasto non ha una lavorazione a listino
PLACEHOLDER_PRICE = Decimal("0.00")
PLACEHOLDER_NORM_HOURS = Decimal("1.00")


class DiagnosisService:
    """
    Registrazione della diagnosi.

    Tutti gli id vengono risolti prima di scrivere: un id sconosciuto
    non lascia difetti o lavori a metà.
    """

    def __init__(
        self,
        orders: Optional[OrderService] = None,
        catalog: Optional[CatalogService] = None,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.orders = orders or OrderService()
        self.catalog = catalog or CatalogService()
        self.audit = audit or audit_logger

    async def record_diagnosis(
        self,
        db: AsyncSession,
        order_id: int,
        diagnostician: Actor,
        defect_type_ids: list[int],
    ) -> tuple[list[OrderDefect], list[OrderWork]]:
        """
        Registra i guasti rilevati sull'ordine.

        Per ogni id, nell'ordine ricevuto e senza deduplicare:
        1. un difetto con descrizione "<nodo>: <guasto>" e il testo
           del catalogo come commento
        2. un lavoro che copia nome, prezzo base e ore della prima
           lavorazione collegata (id più basso); senza lavorazione,
           un lavoro segnaposto a prezzo zero e un'ora
        3. il collegamento lavoro → difetto tramite defect_id

        Args:
            db: Sessione database
            order_id: ID dell'ordine
            diagnostician: Utente che registra la diagnosi
            defect_type_ids: Tipi di guasto selezionati

        Returns:
            Tuple (difetti creati, lavori creati), nello stesso ordine

        Raises:
            NotFoundError: Se l'ordine non esiste
            ValidationError: Se la lista è vuota o l'ordine non è in Diagnostics
            CatalogLookupError: Se un tipo di guasto non esiste
        """
        if not defect_type_ids:
            raise BusinessValidationError("Selezionare almeno un tipo di guasto")

        order = await self.orders.get_order(db, order_id)
        if OrderStatus(order.status) != OrderStatus.DIAGNOSTICS:
            raise BusinessValidationError(
                f"La diagnosi si registra solo in stato 'Diagnostics' (stato attuale: '{order.status}')",
                extra={"status": order.status},
            )

        catalog = await self.catalog.get_defect_types(db, defect_type_ids)
        missing = [i for i in dict.fromkeys(defect_type_ids) if i not in catalog]
        if missing:
            logger.warning("Tipi di guasto non trovati per l'ordine %s: %s", order_id, missing)
            raise CatalogLookupError(
                f"Tipi di guasto non presenti nel catalogo: {missing}",
                extra={"defect_type_ids": missing},
            )

        defects: list[OrderDefect] = []
        for type_id in defect_type_ids:
            defect_type = catalog[type_id]
            defect = OrderDefect(
                order_id=order.id,
                diagnostician_id=diagnostician.id,
                defect_type_id=defect_type.id,
                description=defect_type.label,
                comment=defect_type.description,
                is_confirmed=False,
            )
            db.add(defect)
            defects.append(defect)

        # Gli id dei difetti servono per collegare i lavori
        await flush_or_raise(db, "registrazione difetti")

        works: list[OrderWork] = []
        for defect, type_id in zip(defects, defect_type_ids):
            defect_type = catalog[type_id]
            service = self.catalog.first_service(defect_type)
            if service is not None:
                work = OrderWork(
                    order_id=order.id,
                    service_id=service.id,
                    defect_id=defect.id,
                    service_name_snapshot=service.name,
                    price=service.base_price,
                    norm_hours=service.norm_hours,
                )
            else:
                work = OrderWork(
                    order_id=order.id,
                    defect_id=defect.id,
                    service_name_snapshot=defect_type.label,
                    price=PLACEHOLDER_PRICE,
                    norm_hours=PLACEHOLDER_NORM_HOURS,
                )
            work.status = WorkStatus.PENDING.value
            work.is_confirmed = False
            db.add(work)
            works.append(work)

        await flush_or_raise(db, "registrazione lavori da diagnosi")

        await self.audit.record(
            db,
            diagnostician.id,
            audit_service.DIAGNOSIS_RECORDED,
            f"Ordine #{order.id}: registrati {len(defects)} difetti",
        )

        logger.info(
            "Diagnosi ordine %s: %d difetti, %d lavori (utente %s)",
            order.id,
            len(defects),
            len(works),
            diagnostician.id,
        )
        return defects, works
