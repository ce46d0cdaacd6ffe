"""
Router FastAPI per Clienti e Auto
Progetto: Service Station (Stazione di Servizio)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import commit_or_raise, get_db
from service_station.core.deps import ManagerActor
from service_station.schemas.client import CarCreate, CarRead, ClientCreate, ClientRead
from service_station.schemas.order import OrderRead
from service_station.services.client_service import ClientService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
client_service = ClientService()

router = APIRouter(
    prefix="/clients",
    tags=["Clienti"],
)


class ClientList(BaseModel):
    """Lista paginata di clienti."""
    items: list[ClientRead]
    total: int
    page: int
    per_page: int


@router.get(
    "/",
    name="clienti_lista",
    summary="Lista clienti",
    response_model=ClientList,
)
async def list_clients(
    actor: ManagerActor,
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    search: Optional[str] = Query(None, description="Ricerca su nome, telefono, email"),
    db: AsyncSession = Depends(get_db),
) -> ClientList:
    clients, total = await client_service.get_all(db, page=page, per_page=per_page, search=search)
    return ClientList(
        items=[ClientRead.model_validate(c) for c in clients],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post(
    "/",
    name="cliente_crea",
    summary="Crea cliente",
    response_model=ClientRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_client(
    data: ClientCreate,
    actor: ManagerActor,
    db: AsyncSession = Depends(get_db),
) -> ClientRead:
    client = await client_service.create(db, data)
    await commit_or_raise(db, "creazione cliente")
    return ClientRead.model_validate(client)


@router.get(
    "/{client_id}",
    name="cliente_dettaglio",
    summary="Dettaglio cliente",
    response_model=ClientRead,
)
async def get_client(
    actor: ManagerActor,
    client_id: int = Path(..., description="ID del cliente"),
    db: AsyncSession = Depends(get_db),
) -> ClientRead:
    client = await client_service.get_by_id(db, client_id)
    return ClientRead.model_validate(client)


@router.get(
    "/{client_id}/cars",
    name="cliente_auto",
    summary="Auto del cliente",
    response_model=list[CarRead],
)
async def list_cars(
    actor: ManagerActor,
    client_id: int = Path(..., description="ID del cliente"),
    db: AsyncSession = Depends(get_db),
) -> list[CarRead]:
    cars = await client_service.list_cars(db, client_id)
    return [CarRead.model_validate(c) for c in cars]


@router.post(
    "/{client_id}/cars",
    name="cliente_registra_auto",
    summary="Registra auto",
    response_model=CarRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_car(
    data: CarCreate,
    actor: ManagerActor,
    client_id: int = Path(..., description="ID del cliente"),
    db: AsyncSession = Depends(get_db),
) -> CarRead:
    """
    Registra un'auto per il cliente.

    Raises:
        NotFoundError: Se il cliente non esiste
        DuplicateError: Se il VIN è già registrato
    """
    car = await client_service.add_car(db, client_id, data)
    await commit_or_raise(db, "aggiunta auto")
    return CarRead.model_validate(car)


@router.get(
    "/cars/{car_id}/history",
    name="auto_storico",
    summary="Storico ordini dell'auto",
    response_model=list[OrderRead],
)
async def car_history(
    actor: ManagerActor,
    car_id: int = Path(..., description="ID dell'auto"),
    db: AsyncSession = Depends(get_db),
) -> list[OrderRead]:
    orders = await client_service.car_history(db, car_id)
    return [OrderRead.model_validate(o) for o in orders]
