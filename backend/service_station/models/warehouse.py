"""
Modello SQLAlchemy per il magazzino ricambi
Progetto: Service Station (Stazione di Servizio)
"""

from __future__ import annotations
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from service_station.models import Base
from service_station.models.mixins import IdMixin, TimestampMixin


class WarehouseItem(Base, IdMixin, TimestampMixin):
    """
    Articolo a magazzino.

    Attributes:
        name: Descrizione dell'articolo
        brand: Marca
        article: Codice articolo del produttore
        location_cell: Cella/scaffale
        quantity: Giacenza attuale
        min_quantity: Scorta minima
        purchase_price: Prezzo di acquisto
        sale_price: Prezzo di vendita (copiato nel ricambio dell'ordine)
    """

    __tablename__ = "warehouse_items"

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    article: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    location_cell: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    min_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    purchase_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    sale_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_warehouse_items_quantity"),
        CheckConstraint("min_quantity >= 0", name="ck_warehouse_items_min_quantity"),
    )

    @property
    def is_below_minimum(self) -> bool:
        return self.quantity < self.min_quantity

    def __repr__(self) -> str:
        return f"WarehouseItem(name={self.name!r}, quantity={self.quantity})"
