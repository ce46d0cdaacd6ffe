"""
Router FastAPI per il magazzino
Progetto: Service Station (Stazione di Servizio)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import commit_or_raise, get_db
from service_station.core.deps import PartsActor
from service_station.schemas.warehouse import StockAdjustment, WarehouseItemCreate, WarehouseItemRead
from service_station.services.warehouse_service import WarehouseService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
warehouse_service = WarehouseService()

router = APIRouter(
    prefix="/warehouse",
    tags=["Magazzino"],
)


@router.get(
    "/items",
    name="magazzino_lista",
    summary="Articoli di magazzino",
    response_model=list[WarehouseItemRead],
)
async def list_items(
    actor: PartsActor,
    search: Optional[str] = Query(None, description="Ricerca su nome, marca, codice"),
    low_stock_only: bool = Query(False, description="Solo articoli sotto scorta"),
    db: AsyncSession = Depends(get_db),
) -> list[WarehouseItemRead]:
    items = await warehouse_service.get_all(db, search=search, low_stock_only=low_stock_only)
    return [WarehouseItemRead.model_validate(i) for i in items]


@router.post(
    "/items",
    name="magazzino_crea",
    summary="Nuovo articolo",
    response_model=WarehouseItemRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_item(
    data: WarehouseItemCreate,
    actor: PartsActor,
    db: AsyncSession = Depends(get_db),
) -> WarehouseItemRead:
    item = await warehouse_service.create(db, data)
    await commit_or_raise(db, "creazione articolo")
    return WarehouseItemRead.model_validate(item)


@router.post(
    "/items/{item_id}/adjust",
    name="magazzino_movimento",
    summary="Carico o prelievo",
    response_model=WarehouseItemRead,
)
async def adjust_item(
    data: StockAdjustment,
    actor: PartsActor,
    item_id: int = Path(..., description="ID dell'articolo"),
    db: AsyncSession = Depends(get_db),
) -> WarehouseItemRead:
    """
    Modifica la giacenza dell'articolo.

    Raises:
        NotFoundError: Se l'articolo non esiste
        ValidationError: Se la giacenza diventerebbe negativa
    """
    item = await warehouse_service.adjust_quantity(db, item_id, data.delta)
    await commit_or_raise(db, "rettifica giacenza")
    return WarehouseItemRead.model_validate(item)
