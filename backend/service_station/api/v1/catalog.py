"""
Router FastAPI per il catalogo guasti e lavorazioni
Progetto: Service Station (Stazione di Servizio)

Letture per qualsiasi utente autenticato (servono al selettore della
diagnosi); modifiche riservate ad Admin e Master.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import commit_or_raise, get_db
from service_station.core.deps import CurrentActor, ManagerActor
from service_station.schemas.catalog import (
    DefectNodeCreate,
    DefectNodeRead,
    DefectTypeCreate,
    DefectTypeRead,
    ServiceCreate,
    ServiceLink,
    ServiceRead,
)
from service_station.services.catalog_service import CatalogService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanza del service
catalog_service = CatalogService()

router = APIRouter(
    prefix="/catalog",
    tags=["Catalogo"],
)


# -------------------------------------------------------------------
# Nodi
# -------------------------------------------------------------------

@router.get(
    "/nodes",
    name="catalogo_nodi",
    summary="Lista nodi",
    response_model=list[DefectNodeRead],
)
async def list_nodes(
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> list[DefectNodeRead]:
    nodes = await catalog_service.list_nodes(db)
    return [DefectNodeRead.model_validate(n) for n in nodes]


@router.post(
    "/nodes",
    name="catalogo_crea_nodo",
    summary="Crea nodo",
    response_model=DefectNodeRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_node(
    data: DefectNodeCreate,
    actor: ManagerActor,
    db: AsyncSession = Depends(get_db),
) -> DefectNodeRead:
    node = await catalog_service.create_node(db, data)
    await commit_or_raise(db, "creazione nodo")
    return DefectNodeRead.model_validate(node)


# -------------------------------------------------------------------
# Tipi di guasto
# -------------------------------------------------------------------

@router.get(
    "/defect-types",
    name="catalogo_tipi_guasto",
    summary="Lista tipi di guasto",
    response_model=list[DefectTypeRead],
)
async def list_defect_types(
    actor: CurrentActor,
    node_id: Optional[int] = Query(None, description="Filtro per nodo"),
    db: AsyncSession = Depends(get_db),
) -> list[DefectTypeRead]:
    defect_types = await catalog_service.list_defect_types(db, node_id=node_id)
    return [DefectTypeRead.model_validate(dt) for dt in defect_types]


@router.post(
    "/defect-types",
    name="catalogo_crea_tipo_guasto",
    summary="Crea tipo di guasto",
    response_model=DefectTypeRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_defect_type(
    data: DefectTypeCreate,
    actor: ManagerActor,
    db: AsyncSession = Depends(get_db),
) -> DefectTypeRead:
    """
    Crea un tipo di guasto sotto un nodo esistente.

    Raises:
        NotFoundError: Se il nodo non esiste
    """
    defect_type = await catalog_service.create_defect_type(db, data)
    await commit_or_raise(db, "creazione tipo di guasto")
    return DefectTypeRead.model_validate(defect_type)


@router.get(
    "/defect-types/{defect_type_id}/services",
    name="catalogo_lavorazioni_guasto",
    summary="Lavorazioni collegate a un guasto",
    response_model=list[ServiceRead],
)
async def list_linked_services(
    actor: CurrentActor,
    defect_type_id: int = Path(..., description="ID del tipo di guasto"),
    db: AsyncSession = Depends(get_db),
) -> list[ServiceRead]:
    services = await catalog_service.list_services_for_type(db, defect_type_id)
    return [ServiceRead.model_validate(s) for s in services]


@router.post(
    "/defect-types/{defect_type_id}/services",
    name="catalogo_collega_lavorazione",
    summary="Collega lavorazione a guasto",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def link_service(
    data: ServiceLink,
    actor: ManagerActor,
    defect_type_id: int = Path(..., description="ID del tipo di guasto"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await catalog_service.link_service(db, defect_type_id, data.service_id)
    await commit_or_raise(db, "collegamento lavorazione")


@router.delete(
    "/defect-types/{defect_type_id}/services/{service_id}",
    name="catalogo_scollega_lavorazione",
    summary="Scollega lavorazione da guasto",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def unlink_service(
    actor: ManagerActor,
    defect_type_id: int = Path(..., description="ID del tipo di guasto"),
    service_id: int = Path(..., description="ID della lavorazione"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await catalog_service.unlink_service(db, defect_type_id, service_id)
    await commit_or_raise(db, "scollegamento lavorazione")


# -------------------------------------------------------------------
# Lavorazioni
# -------------------------------------------------------------------

@router.get(
    "/services",
    name="catalogo_lavorazioni",
    summary="Listino lavorazioni",
    response_model=list[ServiceRead],
)
async def list_services(
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> list[ServiceRead]:
    services = await catalog_service.list_services(db)
    return [ServiceRead.model_validate(s) for s in services]


@router.post(
    "/services",
    name="catalogo_crea_lavorazione",
    summary="Crea lavorazione",
    response_model=ServiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    data: ServiceCreate,
    actor: ManagerActor,
    db: AsyncSession = Depends(get_db),
) -> ServiceRead:
    service = await catalog_service.create_service(db, data)
    await commit_or_raise(db, "creazione lavorazione")
    return ServiceRead.model_validate(service)
