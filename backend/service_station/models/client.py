"""
Modelli SQLAlchemy per Clienti e Auto
Progetto: Service Station (Stazione di Servizio)

Contiene:
- Client: Anagrafica clienti
- Car: Auto dei clienti
"""

from __future__ import annotations
from datetime import date
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from service_station.models import Base
from service_station.models.mixins import IdMixin, TimestampMixin

if TYPE_CHECKING:
    from service_station.models.order import Order


class Client(Base, IdMixin, TimestampMixin):
    """
    Modello per l'anagrafica clienti.

    Attributes:
        id: Primary key
        full_name: Nome completo o ragione sociale
        phone: Telefono
        address: Indirizzo (opzionale)
        email: Email (opzionale)

    Relationships:
        cars: Auto del cliente
    """

    __tablename__ = "clients"

    full_name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    cars: Mapped[List["Car"]] = relationship(
        "Car",
        back_populates="client",
        lazy="noload",
        doc="Auto del cliente",
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, full_name={self.full_name!r})>"


class Car(Base, IdMixin, TimestampMixin):
    """
    Modello per le auto dei clienti.

    Attributes:
        id: Primary key
        client_id: Proprietario
        make: Marca
        model: Modello
        vin: Numero di telaio (opzionale)
        license_plate: Targa (opzionale)
        production_year: Anno di produzione (opzionale)
        mileage: Ultimo chilometraggio registrato
        last_visit_date: Data dell'ultimo ingresso in officina
    """

    __tablename__ = "cars"

    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="Cliente proprietario",
    )

    make: Mapped[str] = mapped_column(String(100), nullable=False)
    model: Mapped[str] = mapped_column(String(100), nullable=False)
    vin: Mapped[Optional[str]] = mapped_column(String(17), nullable=True, index=True)
    license_plate: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, index=True)
    production_year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mileage: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_visit_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="cars",
        lazy="noload",
    )

    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="car",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint("mileage >= 0", name="ck_cars_mileage"),
    )

    def __repr__(self) -> str:
        return f"<Car(id={self.id}, make={self.make}, model={self.model})>"
