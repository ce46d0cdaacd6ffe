"""
Modelli SQLAlchemy per gli Ordini
Progetto: Service Station (Stazione di Servizio)

 Contiene:
- Order: Ordine di riparazione (una coppia cliente/auto)
- OrderDefect: Difetti rilevati in diagnosi
- OrderWork: Lavori (manodopera) fatturabili
- OrderPart: Ricambi fatturabili
"""


from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from service_station.models import Base
from service_station.models.mixins import IdMixin, TimestampMixin

if TYPE_CHECKING:
    from service_station.models.client import Car


# Gli stati sono definiti in service_station.schemas.order.OrderStatus
# Gli stati dei lavori sono definiti in service_station.schemas.order.WorkStatus


class Order(Base, IdMixin, TimestampMixin):
    """
    Modello per gli ordini di riparazione.

    Attributes:
        id: Primary key
        client_id: Cliente
        car_id: Auto oggetto dell'intervento
        master_id: Master che ha aperto l'ordine
        worker_id: Operaio principale responsabile dell'ordine
        status: Stato corrente (vedi OrderStatus)
        complaint: Problema segnalato dal cliente
        current_mileage: Chilometraggio all'ingresso
        prepayment: Acconto versato
        total_amount: Totale delle voci confermate
        completed_at: Data/ora chiusura
        cancel_reason: Motivo dell'annullamento

    Relationships:
        defects, works, parts: voci dell'ordine (cancellate con l'ordine)

    States (State Machine):
        Diagnostics → Parts_Selection → Approval → In_Work → Ready → Closed
             ↓              ↓              ↓          ↓        ↓
                              Cancelled
    """

    __tablename__ = "orders"

    # ------------------------------------------------------------
    # Colonne Relazioni
    # ------------------------------------------------------------
    client_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    car_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("cars.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    master_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    worker_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        doc="Operaio principale",
    )

    # ------------------------------------------------------------
    # Colonne Stato e Dati
    # ------------------------------------------------------------
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="Diagnostics",
    )

    complaint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    current_mileage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    prepayment: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    cancel_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------
    car: Mapped["Car"] = relationship(
        "Car",
        back_populates="orders",
        lazy="noload",
    )

    defects: Mapped[List["OrderDefect"]] = relationship(
        "OrderDefect",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderDefect.id",
        lazy="noload",
    )

    works: Mapped[List["OrderWork"]] = relationship(
        "OrderWork",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderWork.id",
        lazy="noload",
    )

    parts: Mapped[List["OrderPart"]] = relationship(
        "OrderPart",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderPart.id",
        lazy="noload",
    )

    # ------------------------------------------------------------
    # Indici e Vincoli
    # ------------------------------------------------------------
    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_status_created", "status", "created_at"),
        CheckConstraint(
            "status IN ('Diagnostics', 'Parts_Selection', 'Approval', 'In_Work', "
            "'Ready', 'Closed', 'Cancelled')",
            name="ck_orders_status",
        ),
        CheckConstraint("prepayment >= 0", name="ck_orders_prepayment"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_amount"),
    )

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, status={self.status}, client_id={self.client_id})>"


class OrderDefect(Base, IdMixin, TimestampMixin):
    """
    Difetto rilevato dal diagnosta.

    Record di sola aggiunta: description e comment sono copie del catalogo
    al momento della diagnosi. is_confirmed cambia solo quando viene
    confermato il lavoro generato da questo difetto.
    """

    __tablename__ = "order_defects"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    diagnostician_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    defect_type_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("defect_types.id", ondelete="SET NULL"),
        nullable=True,
    )

    description: Mapped[str] = mapped_column(String(300), nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    order: Mapped["Order"] = relationship("Order", back_populates="defects")

    def __repr__(self) -> str:
        return f"<OrderDefect(id={self.id}, order_id={self.order_id}, description={self.description!r})>"


class OrderWork(Base, IdMixin, TimestampMixin):
    """
    Lavoro fatturabile.

    service_name_snapshot, price e norm_hours sono copiati dal listino
    alla creazione: modifiche successive al listino non li toccano.

    Attributes:
        service_id: Lavorazione di listino d'origine (opzionale)
        defect_id: Difetto d'origine (opzionale)
        worker_id: Operaio assegnato (impostato solo dall'assegnazione)
        status: Pending / In_Progress / Done
        is_confirmed: Approvato dal cliente
    """

    __tablename__ = "order_works"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    service_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("services.id", ondelete="SET NULL"),
        nullable=True,
    )

    defect_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("order_defects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    worker_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    service_name_snapshot: Mapped[str] = mapped_column(String(300), nullable=False)

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
    )

    norm_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2),
        nullable=False,
        default=Decimal("1.00"),
    )

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    is_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    order: Mapped["Order"] = relationship("Order", back_populates="works")

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'In_Progress', 'Done')",
            name="ck_order_works_status",
        ),
        CheckConstraint("price >= 0", name="ck_order_works_price"),
    )

    def __repr__(self) -> str:
        return f"<OrderWork(id={self.id}, order_id={self.order_id}, price={self.price})>"


class OrderPart(Base, IdMixin, TimestampMixin):
    """
    Ricambio fatturabile.

    name/brand/price sono copie al momento dell'inserimento,
    come per i lavori.
    """

    __tablename__ = "order_parts"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    warehouse_item_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("warehouse_items.id", ondelete="SET NULL"),
        nullable=True,
    )

    name_snapshot: Mapped[str] = mapped_column(String(300), nullable=False)
    brand: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Prezzo unitario",
    )

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    order: Mapped["Order"] = relationship("Order", back_populates="parts")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_parts_quantity"),
        CheckConstraint("price >= 0", name="ck_order_parts_price"),
    )

    @property
    def line_total(self) -> Decimal:
        """Totale riga (price * quantity)."""
        return self.price * self.quantity

    def __repr__(self) -> str:
        return f"<OrderPart(id={self.id}, order_id={self.order_id}, name={self.name_snapshot!r})>"
