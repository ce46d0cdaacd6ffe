"""
Schemas Pydantic per utenti e sessioni
Progetto: Service Station (Stazione di Servizio)
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from service_station.models.user import UserRole, UserStatus


class Actor(BaseModel):
    """
    Utente autenticato per conto del quale viene eseguita un'operazione.

    Usato per i controlli di ruolo e per l'attribuzione nel registro eventi.
    """
    model_config = ConfigDict(frozen=True)

    id: int
    role: UserRole
    full_name: str = ""


class UserCreate(BaseModel):
    """
    Schema per la creazione di un utente.

    Gli operai accedono con PIN, gli altri ruoli con login e password.
    """
    full_name: str = Field(..., min_length=1, max_length=150)
    role: UserRole = Field(default=UserRole.WORKER)
    login: Optional[str] = Field(None, min_length=3, max_length=100)
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    pin_code: Optional[str] = Field(None, description="PIN di 4 cifre (operai)")

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Il nome non può essere vuoto")
        return v

    @field_validator("pin_code")
    @classmethod
    def validate_pin(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not (len(v) == 4 and v.isdigit()):
            raise ValueError("Il PIN deve essere composto da 4 cifre")
        return v

    @model_validator(mode="after")
    def validate_credentials(self) -> "UserCreate":
        """Ogni utente deve avere almeno un modo per accedere."""
        if self.role == UserRole.WORKER:
            if self.pin_code is None and (self.login is None or self.password is None):
                raise ValueError("Un operaio deve avere un PIN oppure login e password")
        elif self.login is None or self.password is None:
            raise ValueError("Login e password sono obbligatori per questo ruolo")
        return self


class UserUpdate(BaseModel):
    """
    Modifica di un utente da parte dell'Admin.

    Solo i campi presenti vengono aggiornati; password e PIN
    vengono di nuovo hashati.
    """
    full_name: Optional[str] = Field(None, min_length=1, max_length=150)
    role: Optional[UserRole] = None
    login: Optional[str] = Field(None, min_length=3, max_length=100)
    password: Optional[str] = Field(None, min_length=6, max_length=72)
    pin_code: Optional[str] = Field(None, description="PIN di 4 cifre (operai)")

    @field_validator("full_name")
    @classmethod
    def strip_full_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Il nome non può essere vuoto")
        return v

    @field_validator("pin_code")
    @classmethod
    def validate_pin(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not (len(v) == 4 and v.isdigit()):
            raise ValueError("Il PIN deve essere composto da 4 cifre")
        return v


class UserRead(BaseModel):
    """Utente senza credenziali."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    role: UserRole
    login: Optional[str]
    status: UserStatus
    created_at: datetime.datetime


class LoginRequest(BaseModel):
    """Credenziali del personale d'ufficio."""
    login: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class PinLoginRequest(BaseModel):
    """Accesso operaio tramite PIN."""
    pin: str = Field(..., min_length=4, max_length=4)


class SessionResponse(BaseModel):
    """Token di sessione restituito al login."""
    session_token: str
    user: UserRead
