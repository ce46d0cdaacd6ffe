"""
Dependency Injection per autenticazione
Progetto: Service Station (Stazione di Servizio)

Funzioni di dependency injection per autenticazione e autorizzazione.
Il token di sessione arriva nell'header Authorization (Bearer).
"""

from typing import Annotated, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from service_station.core.exceptions import AuthenticationError, AuthorizationError
from service_station.core.sessions import SessionDirectory, get_session_directory
from service_station.models.user import UserRole
from service_station.schemas.user import Actor

# OAuth2 scheme - estrae il token dall'header Authorization
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl="/api/v1/auth/login",
    auto_error=False,
)


async def get_current_actor(
    token: Optional[str] = Depends(oauth2_scheme),
    sessions: SessionDirectory = Depends(get_session_directory),
) -> Actor:
    """
    Dependency per ottenere l'utente della sessione corrente.

    Raises:
        AuthenticationError: Se il token manca, è sconosciuto o scaduto
    """
    if not token:
        raise AuthenticationError("Token di sessione non fornito")

    actor = sessions.resolve(token)
    if actor is None:
        raise AuthenticationError()
    return actor


def require_role(*allowed_roles: UserRole):
    """
    Factory per una dependency che verifica il ruolo dell'utente.

    Example:
        @router.post("/{order_id}/assignments")
        async def assign(actor: Actor = Depends(require_role(UserRole.MASTER))):
            ...
    """
    async def role_checker(
        actor: Annotated[Actor, Depends(get_current_actor)]
    ) -> Actor:
        if actor.role not in allowed_roles:
            raise AuthorizationError(
                f"Accesso negato. Ruolo richiesto: {', '.join(r.value for r in allowed_roles)}",
                extra={"role": actor.role.value},
            )
        return actor

    return role_checker


async def get_session_token(token: Optional[str] = Depends(oauth2_scheme)) -> str:
    """Token grezzo della richiesta, usato dal logout."""
    if not token:
        raise AuthenticationError("Token di sessione non fornito")
    return token


# Type aliases per uso comune
CurrentActor = Annotated[Actor, Depends(get_current_actor)]
AdminActor = Annotated[Actor, Depends(require_role(UserRole.ADMIN))]
ManagerActor = Annotated[Actor, Depends(require_role(UserRole.ADMIN, UserRole.MASTER))]
DiagnosticianActor = Annotated[
    Actor,
    Depends(require_role(UserRole.ADMIN, UserRole.MASTER, UserRole.DIAGNOSTICIAN)),
]
PartsActor = Annotated[
    Actor,
    Depends(require_role(UserRole.ADMIN, UserRole.MASTER, UserRole.STOREKEEPER)),
]
WorkshopActor = Annotated[
    Actor,
    Depends(require_role(UserRole.ADMIN, UserRole.MASTER, UserRole.WORKER)),
]


# Export
__all__ = [
    "get_current_actor",
    "get_session_token",
    "require_role",
    "oauth2_scheme",
    "CurrentActor",
    "AdminActor",
    "ManagerActor",
    "DiagnosticianActor",
    "PartsActor",
    "WorkshopActor",
]
