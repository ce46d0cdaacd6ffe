"""
Modello SQLAlchemy per l'entità User
Progetto: Service Station (Stazione di Servizio)

Personale della stazione: amministratori, master, diagnosti,
magazzinieri e operai.
"""

from __future__ import annotations
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from service_station.models import Base
from service_station.models.mixins import IdMixin, TimestampMixin


class UserRole(str, Enum):
    """Ruoli utente nel sistema (nomi stabili lato frontend)."""
    ADMIN = "Admin"
    MASTER = "Master"
    DIAGNOSTICIAN = "Diagnostician"
    STOREKEEPER = "Storekeeper"
    WORKER = "Worker"


class UserStatus(str, Enum):
    """Stato dell'account."""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class User(Base, IdMixin, TimestampMixin):
    """
    Modello per gli utenti del sistema.

    Il personale d'ufficio accede con login e password, gli operai
    con un PIN di 4 cifre. Entrambe le credenziali sono salvate hashate.

    Attributes:
        id: Primary key
        full_name: Nome completo
        role: Ruolo (Admin, Master, Diagnostician, Storekeeper, Worker)
        login: Login univoco (assente per gli operai che usano solo il PIN)
        password_hash: Password hashata
        pin_hash: PIN hashato (solo operai)
        status: Active / Inactive
    """

    __tablename__ = "users"

    full_name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
        doc="Nome completo dell'utente",
    )

    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.WORKER.value,
        doc="Ruolo dell'utente",
    )

    login: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        doc="Login univoco per l'accesso con password",
    )

    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Password hashata",
    )

    pin_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="PIN hashato per l'accesso operai",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=UserStatus.ACTIVE.value,
        doc="Stato dell'account",
    )

    __table_args__ = (
        Index("ix_users_role", "role"),
        CheckConstraint(
            "role IN ('Admin', 'Master', 'Diagnostician', 'Storekeeper', 'Worker')",
            name="ck_users_role",
        ),
        CheckConstraint(
            "status IN ('Active', 'Inactive')",
            name="ck_users_status",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

    def __repr__(self) -> str:
        return f"<User(id={self.id}, login={self.login}, role={self.role})>"
