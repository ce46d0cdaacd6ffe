"""
Router per l'autenticazione
Progetto: Service Station (Stazione di Servizio)

Endpoints per login (password o PIN), logout e profilo dell'utente corrente.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import get_db
from service_station.core.deps import CurrentActor, get_session_token
from service_station.core.sessions import SessionDirectory, get_session_directory
from service_station.schemas.user import LoginRequest, PinLoginRequest, SessionResponse, UserRead
from service_station.services.auth_service import AuthService

# Logger per questo modulo
logger = logging.getLogger(__name__)

auth_service = AuthService()

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
)


@router.post(
    "/login",
    response_model=SessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Login del personale",
)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
    sessions: SessionDirectory = Depends(get_session_directory),
) -> SessionResponse:
    """
    Autentica con login e password e apre una sessione.

    Raises:
        AuthenticationError: Se le credenziali sono errate
    """
    token, user = await auth_service.login(db, sessions, data.login, data.password)
    return SessionResponse(session_token=token, user=UserRead.model_validate(user))


@router.post(
    "/pin-login",
    response_model=SessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Login operaio con PIN",
)
async def pin_login(
    data: PinLoginRequest,
    db: AsyncSession = Depends(get_db),
    sessions: SessionDirectory = Depends(get_session_directory),
) -> SessionResponse:
    token, user = await auth_service.login_worker(db, sessions, data.pin)
    return SessionResponse(session_token=token, user=UserRead.model_validate(user))


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Chiude la sessione corrente",
)
async def logout(
    token: str = Depends(get_session_token),
    sessions: SessionDirectory = Depends(get_session_directory),
) -> None:
    auth_service.logout(sessions, token)


@router.get(
    "/me",
    response_model=UserRead,
    summary="Utente corrente",
)
async def get_me(
    actor: CurrentActor,
    db: AsyncSession = Depends(get_db),
) -> UserRead:
    """Profilo dell'utente autenticato."""
    user = await auth_service.get_user_by_id(db, actor.id)
    return UserRead.model_validate(user)
