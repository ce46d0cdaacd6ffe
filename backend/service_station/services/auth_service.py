"""
Servizio per l'autenticazione e la gestione utenti
Progetto: Service Station (Stazione di Servizio)

Business logic per creazione utenti, login con password o PIN
e chiusura delle sessioni.
"""

import logging
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from service_station.core.database import flush_or_raise
from service_station.core.exceptions import (
    AuthenticationError,
    BusinessValidationError,
    DuplicateError,
    NotFoundError,
)
from service_station.core.security import hash_password, is_valid_pin, verify_password
from service_station.core.sessions import SessionDirectory
from service_station.models.user import User, UserRole, UserStatus
from service_station.schemas.user import Actor, UserCreate, UserUpdate

# Logger per questo modulo
logger = logging.getLogger(__name__)


def actor_for(user: User) -> Actor:
    """Actor immutabile associato alla sessione dell'utente."""
    return Actor(id=user.id, role=UserRole(user.role), full_name=user.full_name)


def match_pin(pin: str, pin_hashes: list[str]) -> Optional[int]:
    """
    Indice del primo hash che corrisponde al PIN, None se nessuno.

    Una verifica bcrypt per hash: va eseguita fuori dall'event loop.
    """
    for index, pin_hash in enumerate(pin_hashes):
        if verify_password(pin, pin_hash):
            return index
    return None


class AuthService:
    """Servizio per la gestione dell'autenticazione."""

    async def create_user(self, db: AsyncSession, data: UserCreate) -> User:
        """
        Crea un nuovo utente.

        Il primo utente creato nel sistema diventa sempre Admin.

        Args:
            db: Sessione database
            data: Dati dell'utente

        Returns:
            L'utente creato

        Raises:
            DuplicateError: Se il login o il PIN sono già in uso
        """
        if data.login is not None:
            await self._check_login_free(db, data.login)
        if data.pin_code is not None:
            await self._check_pin_free(db, data.pin_code)

        count_result = await db.execute(select(func.count(User.id)))
        user_count = count_result.scalar()

        role = data.role
        if user_count == 0:
            role = UserRole.ADMIN

        user = User(
            full_name=data.full_name,
            role=role.value,
            login=data.login,
            password_hash=hash_password(data.password) if data.password else None,
            pin_hash=hash_password(data.pin_code) if data.pin_code else None,
            status=UserStatus.ACTIVE.value,
        )
        db.add(user)
        await flush_or_raise(db, "creazione utente")

        logger.info("Creato utente %s (%s)", user.id, user.role)
        return user

    async def login(
        self,
        db: AsyncSession,
        sessions: SessionDirectory,
        login: str,
        password: str,
    ) -> tuple[str, User]:
        """
        Autentica il personale d'ufficio con login e password.

        Returns:
            Tuple (token di sessione, utente)

        Raises:
            AuthenticationError: Se le credenziali sono errate o l'utente è disattivato
        """
        result = await db.execute(select(User).where(User.login == login))
        user = result.scalar_one_or_none()

        if not user or not user.password_hash or not verify_password(password, user.password_hash):
            logger.warning("Login fallito per %s", login)
            raise AuthenticationError("Login o password non corretti")

        if not user.is_active:
            logger.warning("Login di utente disattivato: %s", login)
            raise AuthenticationError("Utente disattivato")

        token = sessions.open(actor_for(user))
        return token, user

    async def login_worker(
        self,
        db: AsyncSession,
        sessions: SessionDirectory,
        pin: str,
    ) -> tuple[str, User]:
        """
        Autentica un operaio tramite PIN di 4 cifre.

        I PIN sono salvati hashati: si confronta con ogni operaio attivo.

        Raises:
            ValidationError: Se il PIN non ha il formato corretto
            AuthenticationError: Se nessun operaio attivo ha quel PIN
        """
        if not is_valid_pin(pin):
            raise BusinessValidationError("Il PIN deve essere composto da 4 cifre")

        result = await db.execute(
            select(User).where(
                User.role == UserRole.WORKER.value,
                User.status == UserStatus.ACTIVE.value,
                User.pin_hash.is_not(None),
            ).order_by(User.id)
        )
        workers = list(result.scalars().all())

        index = await run_in_threadpool(match_pin, pin, [w.pin_hash for w in workers])
        if index is not None:
            user = workers[index]
            token = sessions.open(actor_for(user))
            return token, user

        logger.warning("Accesso con PIN fallito")
        raise AuthenticationError("PIN non valido")

    def logout(self, sessions: SessionDirectory, token: str) -> None:
        """
        Chiude la sessione.

        Raises:
            AuthenticationError: Se il token non corrisponde a una sessione aperta
        """
        if not sessions.close(token):
            raise AuthenticationError()

    async def get_user_by_id(self, db: AsyncSession, user_id: int) -> User:
        """
        Ottiene un utente per ID.

        Raises:
            NotFoundError: Se l'utente non esiste
        """
        user = await db.get(User, user_id)
        if not user:
            raise NotFoundError(f"Utente con ID {user_id} non trovato")
        return user

    async def list_users(
        self,
        db: AsyncSession,
        role: Optional[UserRole] = None,
        active_only: bool = False,
    ) -> list[User]:
        query = select(User)
        if role is not None:
            query = query.where(User.role == role.value)
        if active_only:
            query = query.where(User.status == UserStatus.ACTIVE.value)

        result = await db.execute(query.order_by(User.full_name, User.id))
        return list(result.scalars().all())

    async def update_user(
        self,
        db: AsyncSession,
        user_id: int,
        data: UserUpdate,
        actor: Actor,
    ) -> tuple[User, bool]:
        """
        Modifica nome, login, ruolo e credenziali di un utente.

        Le sessioni aperte portano ancora il vecchio ruolo: se il ruolo
        cambia, il chiamante deve chiuderle dopo il commit.

        Returns:
            Tuple (utente aggiornato, True se il ruolo è cambiato)

        Raises:
            NotFoundError: Se l'utente non esiste
            DuplicateError: Se il login o il PIN sono già in uso
            ValidationError: Se l'admin cambia il proprio ruolo o se l'utente
                resterebbe senza credenziali valide per il ruolo
        """
        user = await self.get_user_by_id(db, user_id)

        if data.login is not None and data.login != user.login:
            await self._check_login_free(db, data.login)
        if data.pin_code is not None:
            await self._check_pin_free(db, data.pin_code, exclude_user_id=user.id)

        previous_role = user.role
        if data.role is not None and data.role.value != previous_role and user.id == actor.id:
            raise BusinessValidationError("Non è possibile cambiare il proprio ruolo")

        role = data.role.value if data.role is not None else previous_role
        login = data.login if data.login is not None else user.login
        has_password = data.password is not None or user.password_hash is not None
        has_pin = data.pin_code is not None or user.pin_hash is not None
        if role == UserRole.WORKER.value:
            if not has_pin and (login is None or not has_password):
                raise BusinessValidationError("Un operaio deve avere un PIN oppure login e password")
        elif login is None or not has_password:
            raise BusinessValidationError("Login e password sono obbligatori per questo ruolo")

        if data.full_name is not None:
            user.full_name = data.full_name
        user.login = login
        user.role = role
        if data.password is not None:
            user.password_hash = hash_password(data.password)
        if data.pin_code is not None:
            user.pin_hash = hash_password(data.pin_code)

        await flush_or_raise(db, "modifica utente")

        role_changed = role != previous_role
        logger.info(
            "Utente %s modificato da %s%s",
            user.id,
            actor.id,
            f", ruolo {previous_role} -> {role}" if role_changed else "",
        )
        return user, role_changed

    async def set_status(
        self,
        db: AsyncSession,
        user_id: int,
        status: UserStatus,
        actor: Actor,
    ) -> User:
        """
        Attiva o disattiva un utente.

        Le sessioni di un utente disattivato vanno chiuse dal chiamante
        dopo il commit.

        Raises:
            NotFoundError: Se l'utente non esiste
            ValidationError: Se un admin tenta di disattivare se stesso
        """
        user = await self.get_user_by_id(db, user_id)

        if status == UserStatus.INACTIVE and user.id == actor.id:
            raise BusinessValidationError("Non è possibile disattivare il proprio utente")

        user.status = status.value
        await flush_or_raise(db, "cambio stato utente")

        logger.info("Utente %s -> %s (da %s)", user.id, status.value, actor.id)
        return user

    # ------------------------------------------------------------
    # Helper
    # ------------------------------------------------------------

    async def _check_login_free(self, db: AsyncSession, login: str) -> None:
        result = await db.execute(select(User.id).where(User.login == login))
        if result.scalar_one_or_none() is not None:
            raise DuplicateError(f"Il login {login} è già in uso")

    async def _check_pin_free(
        self,
        db: AsyncSession,
        pin: str,
        exclude_user_id: Optional[int] = None,
    ) -> None:
        """
        Il PIN identifica l'operaio: due utenti non possono condividerlo.

        Si confronta con tutti i PIN salvati, anche degli utenti disattivati,
        così una riattivazione non crea collisioni.

        Raises:
            DuplicateError: Se il PIN corrisponde a quello di un altro utente
        """
        query = select(User.pin_hash).where(User.pin_hash.is_not(None))
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)
        result = await db.execute(query)
        pin_hashes = list(result.scalars().all())

        if await run_in_threadpool(match_pin, pin, pin_hashes) is not None:
            logger.warning("PIN già assegnato a un altro utente")
            raise DuplicateError("PIN già in uso da un altro utente")
