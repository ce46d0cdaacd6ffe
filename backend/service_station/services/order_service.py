"""
Service Layer per gli Ordini
Progetto: Service Station (Stazione di Servizio)

Definisce la logica di business del ciclo di vita degli ordini:
accettazione, transizioni di stato, annullamento, vista per ruolo
e aggiunta delle voci (lavori e ricambi).
"""

import datetime
import logging
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import and_, exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import (
    AuthorizationError,
    BusinessValidationError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
)
from service_station.models import Car, Client, Order, OrderPart, OrderWork, Service, UserRole, WarehouseItem
from service_station.models.mixins import utcnow
from service_station.schemas.order import (
    ASSIGNMENT_ONLY_STATUSES,
    VALID_TRANSITIONS,
    OrderCreate,
    OrderPartCreate,
    OrderStatus,
    OrderWorkCreate,
    WorkStatus,
)
from service_station.schemas.user import Actor
from service_station.services import audit_service
from service_station.services.audit_service import AuditLogger, audit_logger

# Logger per questo modulo
logger = logging.getLogger(__name__)


# Stati in cui si possono aggiungere voci all'ordine
WORK_EDITABLE_STATUSES = frozenset({
    OrderStatus.DIAGNOSTICS,
    OrderStatus.PARTS_SELECTION,
    OrderStatus.APPROVAL,
})
PART_EDITABLE_STATUSES = frozenset({
    OrderStatus.PARTS_SELECTION,
    OrderStatus.APPROVAL,
})

# Vista per ruolo: stati visibili (None = tutti)
ROLE_VISIBLE_STATUSES: dict[UserRole, Optional[frozenset[OrderStatus]]] = {
    UserRole.ADMIN: None,
    UserRole.MASTER: frozenset(s for s in OrderStatus if s not in (OrderStatus.CLOSED, OrderStatus.CANCELLED)),
    UserRole.STOREKEEPER: frozenset({OrderStatus.PARTS_SELECTION, OrderStatus.APPROVAL, OrderStatus.IN_WORK}),
    UserRole.DIAGNOSTICIAN: frozenset({OrderStatus.DIAGNOSTICS}),
    UserRole.WORKER: frozenset({OrderStatus.IN_WORK}),
}

# Ruoli che possono chiedere qualsiasi transizione consentita
STATUS_MANAGERS = frozenset({UserRole.ADMIN, UserRole.MASTER})


def parse_status(value: Union[str, OrderStatus]) -> OrderStatus:
    """
    Converte il valore ricevuto dal client nello stato interno.

    Raises:
        InvalidStatusError: Se il valore non è uno stato riconosciuto
    """
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidStatusError(
            f"Stato '{value}' non riconosciuto",
            extra={"allowed": [s.value for s in OrderStatus]},
        )


def check_transition(current: OrderStatus, target: OrderStatus) -> None:
    """
    Verifica che target sia raggiungibile da current.

    Raises:
        InvalidTransitionError: Se la transizione non è nella matrice
    """
    if target not in VALID_TRANSITIONS.get(current, []):
        logger.warning("Transizione non consentita: %s -> %s", current.value, target.value)
        raise InvalidTransitionError(
            f"Transizione da '{current.value}' a '{target.value}' non consentita",
            extra={"from": current.value, "to": target.value},
        )


class OrderService:
    """
    Service per il ciclo di vita degli ordini.

    I metodi fanno solo flush: il commit spetta al router,
    così ogni operazione resta un'unica transazione.
    """

    def __init__(self, audit: Optional[AuditLogger] = None) -> None:
        self.audit = audit or audit_logger

    # ------------------------------------------------------------
    # Letture
    # ------------------------------------------------------------

    async def get_order(
        self,
        db: AsyncSession,
        order_id: int,
        for_update: bool = False,
    ) -> Order:
        """
        Recupera l'ordine senza le voci.

        Args:
            db: Sessione database
            order_id: ID dell'ordine
            for_update: Se True blocca la riga fino a fine transazione

        Raises:
            NotFoundError: Se l'ordine non esiste
        """
        query = select(Order).where(Order.id == order_id)
        if for_update:
            query = query.with_for_update()

        result = await db.execute(query)
        order = result.scalar_one_or_none()

        if not order:
            logger.warning("Ordine non trovato: %s", order_id)
            raise NotFoundError(f"Ordine con ID {order_id} non trovato")
        return order

    async def get_by_id(self, db: AsyncSession, order_id: int) -> Order:
        """
        Recupera l'ordine con difetti, lavori e ricambi.

        Raises:
            NotFoundError: Se l'ordine non esiste
        """
        query = (
            select(Order)
            .where(Order.id == order_id)
            .options(
                selectinload(Order.defects),
                selectinload(Order.works),
                selectinload(Order.parts),
            )
            .execution_options(populate_existing=True)
        )
        result = await db.execute(query)
        order = result.scalar_one_or_none()

        if not order:
            logger.warning("Ordine non trovato: %s", order_id)
            raise NotFoundError(f"Ordine con ID {order_id} non trovato")

        logger.debug(
            "Recuperato ordine %s: difetti=%d, lavori=%d, ricambi=%d",
            order_id,
            len(order.defects),
            len(order.works),
            len(order.parts),
        )
        return order

    async def list_visible(
        self,
        db: AsyncSession,
        actor: Actor,
        status_filter: Optional[OrderStatus] = None,
    ) -> list[Order]:
        """
        Ordini visibili all'utente in base al ruolo.

        - Admin: tutti
        - Master: tutti tranne Closed e Cancelled
        - Storekeeper: Parts_Selection, Approval, In_Work
        - Diagnostician: Diagnostics
        - Worker: In_Work di cui è operaio principale o con un lavoro assegnato

        Args:
            db: Sessione database
            actor: Utente che richiede la lista
            status_filter: Filtro aggiuntivo, applicato dentro la vista del ruolo

        Returns:
            Lista di ordini, dal più recente
        """
        conditions = self._visibility_conditions(actor)
        if status_filter is not None:
            conditions.append(Order.status == status_filter.value)

        query = select(Order)
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(Order.created_at.desc(), Order.id.desc())

        result = await db.execute(query)
        orders = list(result.scalars().all())

        logger.debug("Vista %s (utente %s): %d ordini", actor.role.value, actor.id, len(orders))
        return orders

    async def is_visible(self, db: AsyncSession, order_id: int, actor: Actor) -> bool:
        """True se l'ordine esiste e rientra nella vista del ruolo."""
        found = await db.scalar(
            select(Order.id).where(Order.id == order_id, *self._visibility_conditions(actor))
        )
        return found is not None

    async def get_visible(self, db: AsyncSession, order_id: int, actor: Actor) -> Order:
        """
        Dettaglio dell'ordine con le stesse regole di list_visible.

        Un ordine fuori dalla vista del ruolo risponde come inesistente.

        Raises:
            NotFoundError: Se l'ordine non esiste o non è visibile all'utente
        """
        if not await self.is_visible(db, order_id, actor):
            logger.warning("Ordine %s fuori dalla vista di %s (utente %s)", order_id, actor.role.value, actor.id)
            raise NotFoundError(f"Ordine con ID {order_id} non trovato")
        return await self.get_by_id(db, order_id)

    # ------------------------------------------------------------
    # Accettazione
    # ------------------------------------------------------------

    async def create_order(
        self,
        db: AsyncSession,
        data: OrderCreate,
        actor: Actor,
    ) -> Order:
        """
        Apre un nuovo ordine in stato Diagnostics.

        Aggiorna chilometraggio e data dell'ultima visita dell'auto.

        Raises:
            NotFoundError: Se il cliente o l'auto non esistono
            ValidationError: Se l'auto non è del cliente o il chilometraggio
                è inferiore a quello registrato
        """
        client = await db.get(Client, data.client_id)
        if not client:
            logger.warning("Cliente non trovato: %s", data.client_id)
            raise NotFoundError(f"Cliente con ID {data.client_id} non trovato")

        car = await db.get(Car, data.car_id)
        if not car:
            logger.warning("Auto non trovata: %s", data.car_id)
            raise NotFoundError(f"Auto con ID {data.car_id} non trovata")

        if car.client_id != data.client_id:
            logger.warning("Auto %s non appartiene al cliente %s", data.car_id, data.client_id)
            raise BusinessValidationError("L'auto non appartiene al cliente selezionato")

        if data.current_mileage is not None:
            if data.current_mileage < car.mileage:
                raise BusinessValidationError(
                    f"Il chilometraggio ({data.current_mileage}) non può essere "
                    f"inferiore a quello registrato ({car.mileage})"
                )
            car.mileage = data.current_mileage
        car.last_visit_date = datetime.date.today()

        order = Order(
            client_id=data.client_id,
            car_id=data.car_id,
            master_id=actor.id if actor.role == UserRole.MASTER else None,
            status=OrderStatus.DIAGNOSTICS.value,
            complaint=data.complaint,
            current_mileage=data.current_mileage,
            prepayment=data.prepayment,
            total_amount=Decimal("0.00"),
        )
        db.add(order)
        await flush_or_raise(db, "creazione ordine")

        await self.audit.record(
            db,
            actor.id,
            audit_service.ORDER_CREATED,
            f"Ordine #{order.id} creato per auto {car.id} (cliente {client.id})",
        )

        logger.info("Creato ordine %s (cliente %s, auto %s)", order.id, client.id, car.id)
        return order

    # ------------------------------------------------------------
    # Transizioni di stato
    # ------------------------------------------------------------

    async def transition(
        self,
        db: AsyncSession,
        order_id: int,
        target_status: Union[str, OrderStatus],
        actor: Actor,
    ) -> Order:
        """
        Cambia lo stato di un ordine.

        In_Work non si raggiunge da qui: serve l'assegnazione degli operai.
        Entrando in Closed viene impostato completed_at.

        Raises:
            NotFoundError: Se l'ordine non esiste
            InvalidStatusError: Se target_status non è uno stato valido
            InvalidTransitionError: Se la transizione non è consentita
        """
        order = await self.get_order(db, order_id)
        target = parse_status(target_status)
        current = OrderStatus(order.status)

        if target in ASSIGNMENT_ONLY_STATUSES:
            logger.warning("Tentativo di portare l'ordine %s in %s senza assegnazione", order_id, target.value)
            raise InvalidTransitionError(
                f"Lo stato '{target.value}' si raggiunge solo assegnando gli operai",
                extra={"from": current.value, "to": target.value},
            )
        check_transition(current, target)

        order.status = target.value
        if target == OrderStatus.CLOSED:
            order.completed_at = utcnow()

        await flush_or_raise(db, "cambio stato ordine")

        await self.audit.record(
            db,
            actor.id,
            audit_service.ORDER_STATUS_CHANGED,
            f"Ordine #{order.id}: {current.value} -> {target.value}",
        )

        logger.info("Ordine %s: %s -> %s (utente %s)", order.id, current.value, target.value, actor.id)
        return order

    async def cancel(
        self,
        db: AsyncSession,
        order_id: int,
        reason: str,
        actor: Actor,
    ) -> Order:
        """
        Annulla un ordine registrando la motivazione.

        Raises:
            ValidationError: Se la motivazione è vuota
            NotFoundError: Se l'ordine non esiste
            InvalidTransitionError: Se l'ordine è già chiuso o annullato
        """
        reason = (reason or "").strip()
        if not reason:
            raise BusinessValidationError("La motivazione dell'annullamento è obbligatoria")

        order = await self.get_order(db, order_id)
        current = OrderStatus(order.status)
        check_transition(current, OrderStatus.CANCELLED)

        order.status = OrderStatus.CANCELLED.value
        order.cancel_reason = reason

        await flush_or_raise(db, "annullamento ordine")

        await self.audit.record(
            db,
            actor.id,
            audit_service.ORDER_CANCELLED,
            f"Ordine #{order.id} annullato da {current.value}. Motivo: {reason}",
        )

        logger.info("Ordine %s annullato (utente %s)", order.id, actor.id)
        return order

    async def change_status(
        self,
        db: AsyncSession,
        order_id: int,
        target_status: Union[str, OrderStatus],
        actor: Actor,
        reason: Optional[str] = None,
    ) -> Order:
        """
        Cambio di stato richiesto dall'utente, con i permessi del ruolo.

        - Admin e Master: qualsiasi transizione consentita; verso Cancelled
          passa da cancel e quindi richiede la motivazione
        - Worker: solo In_Work -> Ready su un ordine di cui è operaio
        - Altri ruoli: nessun cambio di stato

        Raises:
            InvalidStatusError: Se target_status non è uno stato valido
            AuthorizationError: Se il ruolo non può chiedere questo cambio
            NotFoundError: Se l'ordine non esiste o non è visibile all'operaio
            ValidationError: Se manca la motivazione dell'annullamento
            InvalidTransitionError: Se la transizione non è consentita
        """
        target = parse_status(target_status)

        if actor.role in STATUS_MANAGERS:
            if target == OrderStatus.CANCELLED:
                return await self.cancel(db, order_id, reason, actor)
            return await self.transition(db, order_id, target, actor)

        if actor.role == UserRole.WORKER and target == OrderStatus.READY:
            if not await self.is_visible(db, order_id, actor):
                logger.warning("Operaio %s ha tentato di chiudere l'ordine %s", actor.id, order_id)
                raise NotFoundError(f"Ordine con ID {order_id} non trovato")
            return await self.transition(db, order_id, target, actor)

        logger.warning(
            "Cambio stato %s negato a %s (utente %s, ordine %s)",
            target.value,
            actor.role.value,
            actor.id,
            order_id,
        )
        raise AuthorizationError(
            f"Il ruolo {actor.role.value} non può portare un ordine in '{target.value}'"
        )

    # ------------------------------------------------------------
    # Voci dell'ordine
    # ------------------------------------------------------------

    async def add_work(
        self,
        db: AsyncSession,
        order_id: int,
        data: OrderWorkCreate,
        actor: Actor,
    ) -> OrderWork:
        """
        Aggiunge manualmente un lavoro all'ordine.

        Con service_id nome, prezzo e ore sono copiati dal listino;
        price e norm_hours espliciti hanno la precedenza sulla copia.

        Raises:
            NotFoundError: Se l'ordine o la lavorazione non esistono
            ValidationError: Se lo stato dell'ordine non ammette nuovi lavori
        """
        order = await self.get_order(db, order_id)
        self._check_status_in(order, WORK_EDITABLE_STATUSES, "aggiungere lavori")

        if data.service_id is not None:
            service = await db.get(Service, data.service_id)
            if not service:
                raise NotFoundError(f"Lavorazione con ID {data.service_id} non trovata")
            name = data.service_name or service.name
            price = data.price if data.price is not None else service.base_price
            norm_hours = data.norm_hours if data.norm_hours is not None else service.norm_hours
        else:
            name = data.service_name
            price = data.price
            norm_hours = data.norm_hours if data.norm_hours is not None else Decimal("1.00")

        work = OrderWork(
            order_id=order.id,
            service_id=data.service_id,
            service_name_snapshot=name,
            price=price,
            norm_hours=norm_hours,
            status=WorkStatus.PENDING.value,
            is_confirmed=False,
        )
        db.add(work)
        await flush_or_raise(db, "aggiunta lavoro")

        logger.info("Aggiunto lavoro %s all'ordine %s (utente %s)", work.id, order.id, actor.id)
        return work

    async def add_parts(
        self,
        db: AsyncSession,
        order_id: int,
        items: list[OrderPartCreate],
        actor: Actor,
    ) -> list[OrderPart]:
        """
        Aggiunge uno o più ricambi all'ordine.

        Gli articoli di magazzino vengono risolti tutti prima di scrivere:
        un articolo mancante non lascia ricambi parziali.

        Raises:
            NotFoundError: Se l'ordine o un articolo di magazzino non esistono
            ValidationError: Se lo stato non ammette ricambi o la lista è vuota
        """
        if not items:
            raise BusinessValidationError("Nessun ricambio indicato")

        order = await self.get_order(db, order_id)
        self._check_status_in(order, PART_EDITABLE_STATUSES, "aggiungere ricambi")

        item_ids = {i.warehouse_item_id for i in items if i.warehouse_item_id is not None}
        stock: dict[int, WarehouseItem] = {}
        if item_ids:
            result = await db.execute(select(WarehouseItem).where(WarehouseItem.id.in_(item_ids)))
            stock = {w.id: w for w in result.scalars().all()}
            missing = sorted(item_ids - stock.keys())
            if missing:
                raise NotFoundError(
                    f"Articoli di magazzino non trovati: {missing}",
                    extra={"warehouse_item_ids": missing},
                )

        parts = []
        for data in items:
            warehouse_item = stock.get(data.warehouse_item_id) if data.warehouse_item_id is not None else None
            if warehouse_item is not None:
                part = OrderPart(
                    order_id=order.id,
                    warehouse_item_id=warehouse_item.id,
                    name_snapshot=data.name or warehouse_item.name,
                    brand=data.brand or warehouse_item.brand,
                    price=data.price if data.price is not None else warehouse_item.sale_price,
                    quantity=data.quantity,
                )
            else:
                part = OrderPart(
                    order_id=order.id,
                    name_snapshot=data.name,
                    brand=data.brand,
                    price=data.price,
                    quantity=data.quantity,
                )
            db.add(part)
            parts.append(part)

        await flush_or_raise(db, "aggiunta ricambi")

        logger.info("Aggiunti %d ricambi all'ordine %s (utente %s)", len(parts), order.id, actor.id)
        return parts

    async def update_work_status(
        self,
        db: AsyncSession,
        order_id: int,
        work_id: int,
        status: WorkStatus,
        actor: Actor,
    ) -> OrderWork:
        """
        Aggiorna l'avanzamento di un lavoro. Non cambia lo stato dell'ordine.

        Raises:
            NotFoundError: Se l'ordine o il lavoro non esistono
            ValidationError: Se l'ordine non è In_Work
            AuthorizationError: Se un operaio aggiorna un lavoro non suo
        """
        order = await self.get_order(db, order_id)
        self._check_status_in(order, frozenset({OrderStatus.IN_WORK}), "aggiornare i lavori")

        result = await db.execute(
            select(OrderWork).where(OrderWork.id == work_id, OrderWork.order_id == order_id)
        )
        work = result.scalar_one_or_none()
        if not work:
            raise NotFoundError(f"Lavoro {work_id} non trovato nell'ordine {order_id}")

        if actor.role == UserRole.WORKER and work.worker_id != actor.id:
            logger.warning("Operaio %s ha tentato di aggiornare il lavoro %s", actor.id, work_id)
            raise AuthorizationError("Il lavoro non è assegnato a questo operaio")

        work.status = status.value
        await flush_or_raise(db, "aggiornamento lavoro")

        logger.info("Lavoro %s dell'ordine %s -> %s", work.id, order_id, status.value)
        return work

    # ------------------------------------------------------------
    # Helper
    # ------------------------------------------------------------

    def _visibility_conditions(self, actor: Actor) -> list:
        conditions = []

        visible = ROLE_VISIBLE_STATUSES.get(actor.role, frozenset())
        if visible is not None:
            conditions.append(Order.status.in_([s.value for s in visible]))

        if actor.role == UserRole.WORKER:
            assigned_work = exists().where(
                and_(OrderWork.order_id == Order.id, OrderWork.worker_id == actor.id)
            )
            conditions.append(or_(Order.worker_id == actor.id, assigned_work))

        return conditions

    def _check_status_in(
        self,
        order: Order,
        allowed: frozenset[OrderStatus],
        action: str,
    ) -> None:
        """
        Verifica che l'ordine sia in uno degli stati ammessi per l'azione.

        Raises:
            ValidationError: Se lo stato corrente non è tra quelli ammessi
        """
        if OrderStatus(order.status) not in allowed:
            raise BusinessValidationError(
                f"Impossibile {action}: l'ordine è in stato '{order.status}'",
                extra={"status": order.status},
            )
