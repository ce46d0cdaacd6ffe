"""
Modello SQLAlchemy per il registro eventi
Progetto: Service Station (Stazione di Servizio)
"""

from __future__ import annotations
import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from service_station.models import Base
from service_station.models.mixins import IdMixin, utcnow


class SystemLog(Base, IdMixin):
    """
    Voce del registro eventi (solo aggiunta).

    Attributes:
        user_id: Utente che ha eseguito l'azione (None per eventi di sistema)
        event_type: Tipo di evento (es. ORDER_STATUS_CHANGED)
        description: Descrizione leggibile
        created_at: Data/ora dell'evento
    """

    __tablename__ = "system_logs"

    user_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_system_logs_event_created", "event_type", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<SystemLog(id={self.id}, event_type={self.event_type})>"
