"""
Service Layer per conferma delle voci e assegnazione operai
Progetto: Service Station (Stazione di Servizio)

La conferma segna lavori e ricambi approvati dal cliente e ricalcola
il totale senza toccare lo stato. L'assegnazione degli operai è l'unica
strada che porta un ordine in In_Work.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import (
    BusinessValidationError,
    InvalidTransitionError,
    NotFoundError,
)
from service_station.models import Order, OrderDefect, OrderPart, OrderWork, User, UserRole
from service_station.schemas.order import OrderStatus, WorkAssignment, WorkStatus
from service_station.schemas.user import Actor
from service_station.services import audit_service
from service_station.services.audit_service import AuditLogger, audit_logger
from service_station.services.order_service import OrderService

# Logger per questo modulo
logger = logging.getLogger(__name__)


CONFIRMABLE_STATUSES = frozenset({OrderStatus.PARTS_SELECTION, OrderStatus.APPROVAL})

# Stati da cui l'assegnazione porta in In_Work (In_Work: riassegnazione)
ASSIGNABLE_STATUSES = frozenset({
    OrderStatus.DIAGNOSTICS,
    OrderStatus.PARTS_SELECTION,
    OrderStatus.APPROVAL,
    OrderStatus.IN_WORK,
})


class ConfirmationService:
    """Conferma delle voci e assegnazione degli operai."""

    def __init__(
        self,
        orders: Optional[OrderService] = None,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.orders = orders or OrderService()
        self.audit = audit or audit_logger

    async def confirm_line_items(
        self,
        db: AsyncSession,
        order_id: int,
        work_ids: list[int],
        part_ids: list[int],
        actor: Actor,
    ) -> tuple[Order, int, int]:
        """
        Conferma lavori e ricambi dell'ordine.

        Gli id che non appartengono all'ordine vengono ignorati.
        Confermare un lavoro conferma anche il difetto da cui è nato.
        Lo stato dell'ordine non cambia.

        Args:
            db: Sessione database
            order_id: ID dell'ordine
            work_ids: Lavori approvati
            part_ids: Ricambi approvati
            actor: Utente che conferma

        Returns:
            Tuple (ordine con totale aggiornato, lavori confermati, ricambi confermati)

        Raises:
            NotFoundError: Se l'ordine non esiste
            ValidationError: Se l'ordine non è in Parts_Selection o Approval
        """
        order = await self.orders.get_order(db, order_id)
        if OrderStatus(order.status) not in CONFIRMABLE_STATUSES:
            raise BusinessValidationError(
                f"Impossibile confermare voci: l'ordine è in stato '{order.status}'",
                extra={"status": order.status},
            )

        confirmed_works = 0
        if work_ids:
            result = await db.execute(
                update(OrderWork)
                .where(OrderWork.id.in_(work_ids), OrderWork.order_id == order_id)
                .values(is_confirmed=True)
                .execution_options(synchronize_session=False)
            )
            confirmed_works = result.rowcount

            defect_ids = select(OrderWork.defect_id).where(
                OrderWork.id.in_(work_ids),
                OrderWork.order_id == order_id,
                OrderWork.defect_id.is_not(None),
            )
            await db.execute(
                update(OrderDefect)
                .where(OrderDefect.id.in_(defect_ids), OrderDefect.order_id == order_id)
                .values(is_confirmed=True)
                .execution_options(synchronize_session=False)
            )

        confirmed_parts = 0
        if part_ids:
            result = await db.execute(
                update(OrderPart)
                .where(OrderPart.id.in_(part_ids), OrderPart.order_id == order_id)
                .values(is_confirmed=True)
                .execution_options(synchronize_session=False)
            )
            confirmed_parts = result.rowcount

        order.total_amount = await self.confirmed_total(db, order_id)
        await flush_or_raise(db, "conferma voci")

        await self.audit.record(
            db,
            actor.id,
            audit_service.LINE_ITEMS_CONFIRMED,
            f"Ordine #{order.id}: confermati {confirmed_works} lavori e "
            f"{confirmed_parts} ricambi, totale {order.total_amount}",
        )

        logger.info(
            "Ordine %s: confermati %d lavori, %d ricambi (utente %s)",
            order.id,
            confirmed_works,
            confirmed_parts,
            actor.id,
        )
        return order, confirmed_works, confirmed_parts

    async def confirmed_total(self, db: AsyncSession, order_id: int) -> Decimal:
        """Somma dei lavori confermati più i ricambi confermati (prezzo × quantità)."""
        works_total = await db.scalar(
            select(func.coalesce(func.sum(OrderWork.price), 0)).where(
                OrderWork.order_id == order_id,
                OrderWork.is_confirmed.is_(True),
            )
        )
        parts_total = await db.scalar(
            select(func.coalesce(func.sum(OrderPart.price * OrderPart.quantity), 0)).where(
                OrderPart.order_id == order_id,
                OrderPart.is_confirmed.is_(True),
            )
        )
        total = Decimal(str(works_total)) + Decimal(str(parts_total))
        return total.quantize(Decimal("0.01"))

    async def assign_workers(
        self,
        db: AsyncSession,
        order_id: int,
        actor: Actor,
        assignments: list[WorkAssignment],
        main_worker_id: Optional[int] = None,
    ) -> Order:
        """
        Assegna gli operai ai lavori e porta l'ordine in In_Work.

        La riga dell'ordine resta bloccata fino al commit. Lavori e operai
        vengono verificati tutti prima di qualsiasi modifica.
        Senza main_worker_id l'operaio principale resta invariato.

        Raises:
            NotFoundError: Se l'ordine, un lavoro o un operaio non esistono
            ValidationError: Se un utente indicato non è un operaio attivo o se
                l'ordine resterebbe senza alcun operaio
            InvalidTransitionError: Se l'ordine è già Ready, Closed o Cancelled
        """
        order = await self.orders.get_order(db, order_id, for_update=True)
        current = OrderStatus(order.status)
        if current not in ASSIGNABLE_STATUSES:
            logger.warning("Assegnazione rifiutata per ordine %s in stato %s", order_id, current.value)
            raise InvalidTransitionError(
                f"Impossibile assegnare operai a un ordine in stato '{current.value}'",
                extra={"from": current.value, "to": OrderStatus.IN_WORK.value},
            )

        # In_Work richiede almeno un operaio
        if not assignments and main_worker_id is None and order.worker_id is None:
            logger.warning("Assegnazione vuota per ordine %s senza operaio principale", order_id)
            raise BusinessValidationError(
                "Indicare l'operaio principale o almeno un lavoro da assegnare"
            )

        # Lavori: devono appartenere all'ordine
        work_ids = {a.work_id for a in assignments}
        works: dict[int, OrderWork] = {}
        if work_ids:
            result = await db.execute(
                select(OrderWork).where(OrderWork.id.in_(work_ids), OrderWork.order_id == order_id)
            )
            works = {w.id: w for w in result.scalars().all()}
            missing = sorted(work_ids - works.keys())
            if missing:
                raise NotFoundError(
                    f"Lavori non trovati nell'ordine {order_id}: {missing}",
                    extra={"work_ids": missing},
                )

        # Operai: devono esistere, essere attivi e avere ruolo Worker
        worker_ids = {a.worker_id for a in assignments}
        if main_worker_id is not None:
            worker_ids.add(main_worker_id)
        await self._check_workers(db, worker_ids)

        for assignment in assignments:
            work = works[assignment.work_id]
            work.worker_id = assignment.worker_id
            work.status = WorkStatus.PENDING.value

        order.status = OrderStatus.IN_WORK.value
        if main_worker_id is not None:
            order.worker_id = main_worker_id

        await flush_or_raise(db, "assegnazione operai")

        await self.audit.record(
            db,
            actor.id,
            audit_service.WORKERS_ASSIGNED,
            f"Ordine #{order.id}: {len(assignments)} assegnazioni, operaio principale: "
            f"{main_worker_id if main_worker_id is not None else 'none'}",
        )

        logger.info(
            "Ordine %s in lavorazione: %d assegnazioni, principale=%s (utente %s)",
            order.id,
            len(assignments),
            main_worker_id,
            actor.id,
        )
        return order

    async def _check_workers(self, db: AsyncSession, worker_ids: set[int]) -> None:
        if not worker_ids:
            return

        result = await db.execute(select(User).where(User.id.in_(worker_ids)))
        users = {u.id: u for u in result.scalars().all()}

        missing = sorted(worker_ids - users.keys())
        if missing:
            raise NotFoundError(f"Operai non trovati: {missing}", extra={"worker_ids": missing})

        invalid = sorted(
            u.id for u in users.values()
            if u.role != UserRole.WORKER.value or not u.is_active
        )
        if invalid:
            raise BusinessValidationError(
                f"Utenti non assegnabili (non operai o disattivati): {invalid}",
                extra={"worker_ids": invalid},
            )
