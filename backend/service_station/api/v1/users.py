"""
Router per la gestione utenti
Progetto: Service Station (Stazione di Servizio)

Creazione, modifica e attivazione degli utenti (solo Admin), lista del personale
per l'assegnazione (Admin e Master).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import commit_or_raise, get_db
from service_station.core.deps import AdminActor, ManagerActor, oauth2_scheme
from service_station.core.exceptions import AuthenticationError, AuthorizationError
from service_station.core.sessions import SessionDirectory, get_session_directory
from service_station.models.user import User, UserRole, UserStatus
from service_station.schemas.user import UserCreate, UserRead, UserUpdate
from service_station.services.auth_service import AuthService

# Logger per questo modulo
logger = logging.getLogger(__name__)

auth_service = AuthService()

router = APIRouter(
    prefix="/users",
    tags=["Utenti"],
)


class UserStatusUpdate(BaseModel):
    """Attivazione o disattivazione di un utente."""
    status: UserStatus


@router.post(
    "/",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Crea un nuovo utente",
)
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    sessions: SessionDirectory = Depends(get_session_directory),
    token: Optional[str] = Depends(oauth2_scheme),
) -> UserRead:
    """
    Crea un nuovo utente.

    Se NON esistono utenti (primo avvio) la creazione è libera e il ruolo
    viene forzato ad Admin. Altrimenti serve una sessione Admin.
    """
    count_result = await db.execute(select(func.count(User.id)))
    user_count = count_result.scalar()

    if user_count > 0:
        actor = sessions.resolve(token)
        if actor is None:
            raise AuthenticationError("Autenticazione richiesta per creare nuovi utenti")
        if actor.role != UserRole.ADMIN:
            raise AuthorizationError("Solo un amministratore può creare utenti")

    user = await auth_service.create_user(db, data)
    await commit_or_raise(db, "creazione utente")
    return UserRead.model_validate(user)


@router.get(
    "/",
    response_model=list[UserRead],
    summary="Lista utenti",
)
async def list_users(
    actor: ManagerActor,
    role: Optional[UserRole] = Query(None, description="Filtro per ruolo"),
    active_only: bool = Query(False, description="Solo utenti attivi"),
    db: AsyncSession = Depends(get_db),
) -> list[UserRead]:
    """Lista del personale; con role=Worker&active_only=true gli operai assegnabili."""
    users = await auth_service.list_users(db, role=role, active_only=active_only)
    return [UserRead.model_validate(u) for u in users]


@router.patch(
    "/{user_id}",
    response_model=UserRead,
    summary="Modifica un utente",
)
async def update_user(
    data: UserUpdate,
    actor: AdminActor,
    user_id: int = Path(..., description="ID dell'utente"),
    db: AsyncSession = Depends(get_db),
    sessions: SessionDirectory = Depends(get_session_directory),
) -> UserRead:
    """
    Modifica nome, login, ruolo, password o PIN.

    Se il ruolo cambia, le sessioni aperte dell'utente vengono chiuse
    dopo il commit: al prossimo accesso avrà il nuovo ruolo.
    """
    user, role_changed = await auth_service.update_user(db, user_id, data, actor)
    await commit_or_raise(db, "modifica utente")

    if role_changed:
        closed = sessions.close_for_user(user.id)
        logger.info("Ruolo dell'utente %s cambiato, %d sessioni chiuse", user.id, closed)
    return UserRead.model_validate(user)


@router.patch(
    "/{user_id}/status",
    response_model=UserRead,
    summary="Attiva o disattiva un utente",
)
async def set_user_status(
    data: UserStatusUpdate,
    actor: AdminActor,
    user_id: int = Path(..., description="ID dell'utente"),
    db: AsyncSession = Depends(get_db),
    sessions: SessionDirectory = Depends(get_session_directory),
) -> UserRead:
    user = await auth_service.set_status(db, user_id, data.status, actor)
    await commit_or_raise(db, "cambio stato utente")

    if data.status == UserStatus.INACTIVE:
        closed = sessions.close_for_user(user.id)
        logger.info("Utente %s disattivato, %d sessioni chiuse", user.id, closed)
    return UserRead.model_validate(user)
