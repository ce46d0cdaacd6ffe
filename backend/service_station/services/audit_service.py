"""
Service Layer per il registro eventi
Progetto: Service Station (Stazione di Servizio)

Ogni operazione di business che modifica un ordine lascia una traccia
in system_logs. La scrittura avviene in un SAVEPOINT: se fallisce,
l'errore viene solo loggato e l'operazione principale prosegue.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.models import SystemLog

# Logger per questo modulo
logger = logging.getLogger(__name__)


# Tipi di evento registrati dal ciclo di vita degli ordini
ORDER_CREATED = "ORDER_CREATED"
ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
ORDER_CANCELLED = "ORDER_CANCELLED"
DIAGNOSIS_RECORDED = "DIAGNOSIS_RECORDED"
LINE_ITEMS_CONFIRMED = "LINE_ITEMS_CONFIRMED"
WORKERS_ASSIGNED = "WORKERS_ASSIGNED"


class AuditLogger:
    """
    Scrive le voci del registro eventi.

    record() non solleva mai: un registro non disponibile non deve
    bloccare il lavoro in officina.
    """

    async def record(
        self,
        db: AsyncSession,
        actor_id: Optional[int],
        event_type: str,
        description: str,
    ) -> Optional[SystemLog]:
        """
        Aggiunge una voce al registro nella transazione corrente.

        Args:
            db: Sessione database della richiesta
            actor_id: Utente che ha eseguito l'azione (None per il sistema)
            event_type: Tipo di evento
            description: Descrizione leggibile

        Returns:
            La voce creata, oppure None se la scrittura è fallita
        """
        entry = SystemLog(
            user_id=actor_id,
            event_type=event_type,
            description=description,
        )
        try:
            async with db.begin_nested():
                db.add(entry)
        except SQLAlchemyError as e:
            logger.error(
                "Registro eventi non scritto (%s, utente %s): %s",
                event_type,
                actor_id,
                e,
            )
            return None

        logger.debug("Evento %s registrato per utente %s", event_type, actor_id)
        return entry

    async def list_recent(
        self,
        db: AsyncSession,
        limit: int = 100,
        event_type: Optional[str] = None,
    ) -> list[SystemLog]:
        """Ultime voci del registro, dalla più recente."""
        query = select(SystemLog)
        if event_type:
            query = query.where(SystemLog.event_type == event_type)
        query = query.order_by(SystemLog.id.desc()).limit(limit)

        result = await db.execute(query)
        return list(result.scalars().all())


# Istanza condivisa dai service
audit_logger = AuditLogger()
