"""
Router per la consultazione del registro eventi
Progetto: Service Station (Stazione di Servizio)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import get_db
from service_station.core.deps import AdminActor
from service_station.schemas.audit import SystemLogRead
from service_station.services.audit_service import audit_logger

router = APIRouter(
    prefix="/system-logs",
    tags=["Registro eventi"],
)


@router.get(
    "/",
    response_model=list[SystemLogRead],
    summary="Ultimi eventi registrati",
)
async def list_system_logs(
    actor: AdminActor,
    limit: int = Query(100, ge=1, le=1000, description="Numero massimo di eventi"),
    event_type: Optional[str] = Query(None, description="Filtro per tipo di evento"),
    db: AsyncSession = Depends(get_db),
) -> list[SystemLogRead]:
    entries = await audit_logger.list_recent(db, limit=limit, event_type=event_type)
    return [SystemLogRead.model_validate(e) for e in entries]
