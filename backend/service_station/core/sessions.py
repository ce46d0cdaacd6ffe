"""
Directory delle sessioni
Progetto: Service Station (Stazione di Servizio)

Associa un token opaco all'utente autenticato (Actor).
L'unico stato mutabile condiviso in-process: protetto da un solo lock,
mai trattenuto durante operazioni di I/O.
"""

import logging
import threading
import time
from datetime import timedelta
from typing import Callable, Dict, Optional, Tuple

from service_station.core.config import settings
from service_station.core.security import generate_session_token
from service_station.schemas.user import Actor

logger = logging.getLogger(__name__)


class SessionDirectory:
    """
    Mappa token → Actor con scadenza per inattività.

    Ogni resolve() riuscito rinnova la sessione. Sostituibile con uno store
    persistente implementando gli stessi metodi (open, resolve, close).
    """

    def __init__(
        self,
        idle_timeout: timedelta,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._idle_seconds = idle_timeout.total_seconds()
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, Tuple[Actor, float]] = {}

    def open(self, actor: Actor) -> str:
        """
        Apre una nuova sessione e restituisce il token.

        Rimuove anche le sessioni scadute, comprese quelle abbandonate
        senza logout che nessun resolve() toccherà più.
        """
        token = generate_session_token()
        now = self._clock()
        with self._lock:
            expired = [
                t for t, (_, last_seen) in self._sessions.items()
                if now - last_seen > self._idle_seconds
            ]
            for stale in expired:
                del self._sessions[stale]
            self._sessions[token] = (actor, now)
        if expired:
            logger.debug("Rimosse %d sessioni scadute", len(expired))
        logger.info("Sessione aperta per utente %s (%s)", actor.id, actor.role)
        return token

    def resolve(self, token: Optional[str]) -> Optional[Actor]:
        """
        Risolve un token nell'utente associato.

        Returns:
            L'Actor, oppure None se il token è sconosciuto o scaduto
        """
        if not token:
            return None

        now = self._clock()
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            actor, last_seen = entry
            if now - last_seen > self._idle_seconds:
                del self._sessions[token]
                expired = True
            else:
                self._sessions[token] = (actor, now)
                expired = False

        if expired:
            logger.info("Sessione scaduta per utente %s", actor.id)
            return None
        return actor

    def close(self, token: str) -> bool:
        """Chiude la sessione. Restituisce False se il token non esisteva."""
        with self._lock:
            entry = self._sessions.pop(token, None)
        if entry is not None:
            logger.info("Sessione chiusa per utente %s", entry[0].id)
        return entry is not None

    def close_for_user(self, user_id: int) -> int:
        """Chiude tutte le sessioni di un utente (es. dopo disattivazione)."""
        with self._lock:
            tokens = [t for t, (actor, _) in self._sessions.items() if actor.id == user_id]
            for token in tokens:
                del self._sessions[token]
        return len(tokens)


# Istanza di processo, iniettata tramite get_session_directory()
session_directory = SessionDirectory(
    idle_timeout=timedelta(minutes=settings.session_idle_minutes),
)


def get_session_directory() -> SessionDirectory:
    """Dependency FastAPI: sostituibile con app.dependency_overrides nei test."""
    return session_directory
