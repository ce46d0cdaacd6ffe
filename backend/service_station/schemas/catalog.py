"""
Schemas Pydantic per il catalogo guasti e servizi
Progetto: Service Station (Stazione di Servizio)
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Il nome non può essere vuoto")
    return v


class DefectNodeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Nome del nodo (es. Freni)")
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_required(v)


class DefectNodeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]


class DefectTypeCreate(BaseModel):
    node_id: int
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_required(v)


class DefectTypeRead(BaseModel):
    """Tipo di guasto con il nome del nodo, come lo mostra il selettore."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    node_id: int
    node_name: str
    name: str
    description: Optional[str]


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    base_price: Decimal = Field(..., ge=Decimal("0"), decimal_places=2, description="Prezzo base")
    norm_hours: Decimal = Field(default=Decimal("1.00"), gt=Decimal("0"), decimal_places=2)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return _strip_required(v)


class ServiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    base_price: Decimal
    norm_hours: Decimal


class ServiceLink(BaseModel):
    """Collegamento di una lavorazione a un tipo di guasto."""
    service_id: int
