"""
Eccezioni Custom per l'applicazione.
Progetto: Service Station (Stazione di Servizio)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori. Ogni eccezione porta con sé lo status HTTP
e un error_code stabile che il frontend usa per distinguere i casi.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business logic (gestiti dal nostro handler → 422)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "DuplicateError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "InvalidStatusError",
    "InvalidTransitionError",
    "CatalogLookupError",
    "AuthenticationError",
    "AuthorizationError",
    "PersistenceError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    default_detail: str = "Errore interno"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato (default: quello di classe)
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail if detail is not None else self.default_detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(self.detail)


class NotFoundError(AppException):
    """Un'entità referenziata (ordine, lavoro, ricambio, utente...) non esiste."""

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"
    default_detail: str = "Risorsa non trovata"


class DuplicateError(AppException):
    """Violazione di un vincolo di unicità (es. login già in uso)."""

    status_code: int = 409
    error_code: str = "DUPLICATE_RESOURCE"
    default_detail: str = "Risorsa già esistente"


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.

    Esempi di utilizzo:
        - "L'auto non appartiene al cliente selezionato"
        - "La quantità deve essere maggiore di zero"
        - "Non è possibile aggiungere ricambi a un ordine in stato 'Diagnostics'"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"
    default_detail: str = "Validazione dati fallita"

    def __init__(
        self,
        detail: Optional[str] = None,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class InvalidStatusError(BusinessValidationError):
    """Lo stato richiesto non è uno dei valori riconosciuti."""

    error_code: str = "INVALID_STATUS"
    default_detail: str = "Stato ordine non riconosciuto"


class CatalogLookupError(BusinessValidationError):
    """Un tipo di difetto selezionato non ha corrispondenza nel catalogo."""

    error_code: str = "CATALOG_LOOKUP_FAILED"
    default_detail: str = "Tipo di difetto non presente nel catalogo"


class InvalidTransitionError(AppException):
    """Il cambio di stato richiesto non è raggiungibile dallo stato corrente."""

    status_code: int = 409
    error_code: str = "INVALID_TRANSITION"
    default_detail: str = "Transizione di stato non consentita"


class AuthenticationError(AppException):
    """Il token di sessione non corrisponde ad alcun utente autenticato."""

    status_code: int = 401
    error_code: str = "UNAUTHORIZED"
    default_detail: str = "Sessione non valida o scaduta"


class AuthorizationError(AppException):
    """
    L'utente autenticato non ha i permessi per l'operazione.

    Esempi di utilizzo:
        - "Solo i master possono assegnare gli operai"
        - "Il lavoro non è assegnato a questo operaio"
    """

    status_code: int = 403
    error_code: str = "FORBIDDEN"
    default_detail: str = "Accesso non autorizzato"


class PersistenceError(AppException):
    """Operazione sul database fallita (connessione, vincolo violato)."""

    status_code: int = 503
    error_code: str = "PERSISTENCE_ERROR"
    default_detail: str = "Errore di accesso al database"
