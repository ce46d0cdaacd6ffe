"""
Modelli SQLAlchemy per il catalogo guasti e servizi
Progetto: Service Station (Stazione di Servizio)

Contiene:
- DefectNode: Sistema/componente dell'auto (es. "Freni")
- DefectType: Guasto specifico sotto un nodo (es. "Usura pastiglie")
- Service: Listino delle lavorazioni con prezzo base e ore standard
- defect_type_services: Associazione molti-a-molti guasto ↔ lavorazione
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Numeric, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from service_station.models import Base
from service_station.models.mixins import IdMixin, TimestampMixin


defect_type_services = Table(
    "defect_type_services",
    Base.metadata,
    Column("defect_type_id", Integer, ForeignKey("defect_types.id", ondelete="CASCADE"), primary_key=True),
    Column("service_id", Integer, ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
)


class DefectNode(Base, IdMixin, TimestampMixin):
    """Sistema dell'auto a cui appartengono i tipi di guasto."""

    __tablename__ = "defect_nodes"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    defect_types: Mapped[List["DefectType"]] = relationship(
        "DefectType",
        back_populates="node",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"DefectNode(name={self.name!r})"


class DefectType(Base, IdMixin, TimestampMixin):
    """
    Guasto specifico registrabile dal diagnosta.

    Attributes:
        node_id: Nodo di appartenenza
        name: Nome del guasto
        description: Descrizione dettagliata, copiata nel commento del difetto

    Relationships:
        node: Nodo di appartenenza (caricato sempre in join)
        services: Lavorazioni collegate, ordinate per id
    """

    __tablename__ = "defect_types"

    node_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("defect_nodes.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    node: Mapped["DefectNode"] = relationship(
        "DefectNode",
        back_populates="defect_types",
        lazy="joined",
    )

    services: Mapped[List["Service"]] = relationship(
        "Service",
        secondary=defect_type_services,
        back_populates="defect_types",
        order_by="Service.id",
        lazy="noload",
    )

    __table_args__ = (
        UniqueConstraint("node_id", "name", name="uq_defect_types_node_name"),
    )

    @property
    def node_name(self) -> str:
        return self.node.name

    @property
    def label(self) -> str:
        """Etichetta "<nodo>: <guasto>" usata come descrizione del difetto."""
        return f"{self.node.name}: {self.name}"

    def __repr__(self) -> str:
        return f"DefectType(node_id={self.node_id}, name={self.name!r})"


class Service(Base, IdMixin, TimestampMixin):
    """
    Lavorazione a listino.

    Attributes:
        name: Nome della lavorazione
        base_price: Prezzo base (copiato nel lavoro al momento della creazione)
        norm_hours: Ore standard previste
    """

    __tablename__ = "services"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    base_price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        doc="Prezzo base della lavorazione",
    )

    norm_hours: Mapped[Decimal] = mapped_column(
        Numeric(6, 2),
        nullable=False,
        default=Decimal("1.00"),
        doc="Ore standard della lavorazione",
    )

    defect_types: Mapped[List["DefectType"]] = relationship(
        "DefectType",
        secondary=defect_type_services,
        back_populates="services",
        lazy="noload",
    )

    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_services_base_price"),
        CheckConstraint("norm_hours > 0", name="ck_services_norm_hours"),
    )

    def __repr__(self) -> str:
        return f"Service(name={self.name!r}, base_price={self.base_price})"
