"""
Router FastAPI per gli Ordini
Progetto: Service Station (Stazione di Servizio)

Endpoint del ciclo di vita degli ordini: accettazione, cambio stato,
annullamento, diagnosi, voci, conferma e assegnazione operai.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import commit_or_raise, get_db
from service_station.core.deps import (
    CurrentActor,
    DiagnosticianActor,
    ManagerActor,
    PartsActor,
    WorkshopActor,
    require_role,
)
from service_station.models.user import UserRole
from service_station.schemas.order import (
    ConfirmationResult,
    DiagnosisCreate,
    DiagnosisResult,
    LineItemConfirmation,
    OrderCancel,
    OrderCreate,
    OrderDefectRead,
    OrderDetail,
    OrderPartCreate,
    OrderPartRead,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderWorkCreate,
    OrderWorkRead,
    WorkerAssignmentRequest,
    WorkStatusUpdate,
)
from service_station.schemas.user import Actor
from service_station.services.confirmation_service import ConfirmationService
from service_station.services.diagnosis_service import DiagnosisService
from service_station.services.order_service import OrderService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanze dei service
order_service = OrderService()
diagnosis_service = DiagnosisService(orders=order_service)
confirmation_service = ConfirmationService(orders=order_service)

# Chi può aggiungere lavori: tutti tranne gli operai
WorkEditor = Annotated[
    Actor,
    Depends(require_role(UserRole.ADMIN, UserRole.MASTER, UserRole.DIAGNOSTICIAN, UserRole.STOREKEEPER)),
]

# Router con prefix e tag
router = APIRouter(
    prefix="/orders",
    tags=["Ordini"],
)


# -------------------------------------------------------------------
# Endpoints per Ordini
# -------------------------------------------------------------------

@router.get(
    "/",
    name="ordini_lista",
    summary="Lista ordini visibili",
    description="Ordini visibili all'utente corrente in base al suo ruolo.",
    response_model=list[OrderRead],
    status_code=status.HTTP_200_OK,
)
async def list_orders(
    actor: CurrentActor,
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="Filtro per stato"),
    db: AsyncSession = Depends(get_db),
) -> list[OrderRead]:
    orders = await order_service.list_visible(db, actor, status_filter=status_filter)
    return [OrderRead.model_validate(o) for o in orders]


@router.get(
    "/{order_id}",
    name="ordine_dettaglio",
    summary="Dettaglio ordine",
    description="Ordine con difetti, lavori e ricambi, se visibile al ruolo.",
    response_model=OrderDetail,
    status_code=status.HTTP_200_OK,
)
async def get_order(
    actor: CurrentActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> OrderDetail:
    order = await order_service.get_visible(db, order_id, actor)
    return OrderDetail.model_validate(order)


@router.post(
    "/",
    name="ordine_crea",
    summary="Accettazione auto",
    description="Apre un nuovo ordine in stato Diagnostics.",
    response_model=OrderRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    data: OrderCreate,
    actor: ManagerActor,
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    """
    Crea un nuovo ordine.

    Raises:
        NotFoundError: Se il cliente o l'auto non esistono
        ValidationError: Se l'auto non è del cliente o il chilometraggio è inferiore
    """
    order = await order_service.create_order(db, data, actor)
    await commit_or_raise(db, "creazione ordine")
    return OrderRead.model_validate(order)


@router.patch(
    "/{order_id}/status",
    name="ordine_cambia_stato",
    summary="Cambia stato ordine",
    description="Cambia lo stato secondo la macchina a stati. "
               "In_Work si raggiunge solo con l'assegnazione degli operai; "
               "l'operaio può solo portare in Ready un ordine suo.",
    response_model=OrderRead,
    status_code=status.HTTP_200_OK,
)
async def change_order_status(
    data: OrderStatusUpdate,
    actor: CurrentActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    """
    Cambia lo stato di un ordine.

    Raises:
        NotFoundError: Se l'ordine non esiste
        InvalidStatusError: Se lo stato non è riconosciuto
        AuthorizationError: Se il ruolo non può chiedere questo cambio
        ValidationError: Se manca la motivazione per Cancelled
        InvalidTransitionError: Se la transizione non è consentita
    """
    order = await order_service.change_status(db, order_id, data.status, actor, reason=data.reason)
    await commit_or_raise(db, "cambio stato ordine")
    return OrderRead.model_validate(order)


@router.post(
    "/{order_id}/cancel",
    name="ordine_annulla",
    summary="Annulla ordine",
    description="Annulla l'ordine registrando la motivazione.",
    response_model=OrderRead,
    status_code=status.HTTP_200_OK,
)
async def cancel_order(
    data: OrderCancel,
    actor: ManagerActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> OrderRead:
    order = await order_service.cancel(db, order_id, data.reason, actor)
    await commit_or_raise(db, "annullamento ordine")
    return OrderRead.model_validate(order)


# -------------------------------------------------------------------
# Diagnosi
# -------------------------------------------------------------------

@router.post(
    "/{order_id}/diagnosis",
    name="ordine_diagnosi",
    summary="Registra diagnosi",
    description="Crea un difetto e un lavoro per ogni tipo di guasto selezionato.",
    response_model=DiagnosisResult,
    status_code=status.HTTP_201_CREATED,
)
async def record_diagnosis(
    data: DiagnosisCreate,
    actor: DiagnosticianActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> DiagnosisResult:
    """
    Registra la diagnosi dell'ordine.

    Raises:
        NotFoundError: Se l'ordine non esiste
        ValidationError: Se l'ordine non è in Diagnostics
        CatalogLookupError: Se un tipo di guasto non esiste
    """
    defects, works = await diagnosis_service.record_diagnosis(db, order_id, actor, data.defect_type_ids)
    await commit_or_raise(db, "registrazione diagnosi")
    return DiagnosisResult(
        order_id=order_id,
        defects_recorded=len(defects),
        defects=[OrderDefectRead.model_validate(d) for d in defects],
        works=[OrderWorkRead.model_validate(w) for w in works],
    )


# -------------------------------------------------------------------
# Voci dell'ordine
# -------------------------------------------------------------------

@router.post(
    "/{order_id}/works",
    name="ordine_aggiungi_lavoro",
    summary="Aggiungi lavoro",
    description="Aggiunge un lavoro da listino o libero.",
    response_model=OrderWorkRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_work(
    data: OrderWorkCreate,
    actor: WorkEditor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> OrderWorkRead:
    work = await order_service.add_work(db, order_id, data, actor)
    await commit_or_raise(db, "aggiunta lavoro")
    return OrderWorkRead.model_validate(work)


@router.post(
    "/{order_id}/parts",
    name="ordine_aggiungi_ricambi",
    summary="Aggiungi ricambi",
    description="Aggiunge ricambi dal magazzino o liberi.",
    response_model=list[OrderPartRead],
    status_code=status.HTTP_201_CREATED,
)
async def add_parts(
    data: list[OrderPartCreate],
    actor: PartsActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> list[OrderPartRead]:
    parts = await order_service.add_parts(db, order_id, data, actor)
    await commit_or_raise(db, "aggiunta ricambi")
    return [OrderPartRead.model_validate(p) for p in parts]


@router.patch(
    "/{order_id}/works/{work_id}/status",
    name="lavoro_cambia_stato",
    summary="Avanzamento lavoro",
    description="L'operaio aggiorna lo stato di un lavoro a lui assegnato.",
    response_model=OrderWorkRead,
    status_code=status.HTTP_200_OK,
)
async def update_work_status(
    data: WorkStatusUpdate,
    actor: WorkshopActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    work_id: int = Path(..., description="ID del lavoro"),
    db: AsyncSession = Depends(get_db),
) -> OrderWorkRead:
    work = await order_service.update_work_status(db, order_id, work_id, data.status, actor)
    await commit_or_raise(db, "aggiornamento lavoro")
    return OrderWorkRead.model_validate(work)


# -------------------------------------------------------------------
# Conferma e assegnazione
# -------------------------------------------------------------------

@router.post(
    "/{order_id}/confirmation",
    name="ordine_conferma_voci",
    summary="Conferma voci",
    description="Segna come approvati dal cliente lavori e ricambi. Lo stato non cambia.",
    response_model=ConfirmationResult,
    status_code=status.HTTP_200_OK,
)
async def confirm_line_items(
    data: LineItemConfirmation,
    actor: ManagerActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> ConfirmationResult:
    order, confirmed_works, confirmed_parts = await confirmation_service.confirm_line_items(
        db, order_id, data.work_ids, data.part_ids, actor
    )
    await commit_or_raise(db, "conferma voci")
    return ConfirmationResult(
        order_id=order.id,
        status=OrderStatus(order.status),
        confirmed_works=confirmed_works,
        confirmed_parts=confirmed_parts,
        total_amount=order.total_amount,
    )


@router.post(
    "/{order_id}/assignments",
    name="ordine_assegna_operai",
    summary="Assegna operai",
    description="Assegna gli operai ai lavori e porta l'ordine in In_Work.",
    response_model=OrderDetail,
    status_code=status.HTTP_200_OK,
)
async def assign_workers(
    data: WorkerAssignmentRequest,
    actor: ManagerActor,
    order_id: int = Path(..., description="ID dell'ordine"),
    db: AsyncSession = Depends(get_db),
) -> OrderDetail:
    """
    Assegna gli operai.

    Raises:
        NotFoundError: Se l'ordine, un lavoro o un operaio non esistono
        ValidationError: Se un utente non è un operaio attivo
        InvalidTransitionError: Se l'ordine è già Ready, Closed o Cancelled
    """
    await confirmation_service.assign_workers(
        db, order_id, actor, data.assignments, main_worker_id=data.main_worker_id
    )
    await commit_or_raise(db, "assegnazione operai")

    order = await order_service.get_by_id(db, order_id)
    return OrderDetail.model_validate(order)
