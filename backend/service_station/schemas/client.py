"""
Schemas Pydantic per Clienti e Auto
Progetto: Service Station (Stazione di Servizio)
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ClientCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=3, max_length=50)
    address: Optional[str] = None
    email: Optional[str] = Field(None, max_length=255)

    @field_validator("full_name", "phone")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Il campo non può essere vuoto")
        return v


class ClientRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    phone: str
    address: Optional[str]
    email: Optional[str]


class CarCreate(BaseModel):
    make: str = Field(..., min_length=1, max_length=100)
    model: str = Field(..., min_length=1, max_length=100)
    vin: Optional[str] = Field(None, min_length=17, max_length=17, description="Numero di telaio")
    license_plate: Optional[str] = Field(None, max_length=20)
    production_year: Optional[int] = Field(None, ge=1900, le=2100)
    mileage: int = Field(default=0, ge=0)

    @field_validator("vin", "license_plate")
    @classmethod
    def normalize_upper(cls, v: Optional[str]) -> Optional[str]:
        """VIN e targa in maiuscolo, senza spazi."""
        if v is not None:
            v = v.replace(" ", "").upper() or None
        return v


class CarRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    make: str
    model: str
    vin: Optional[str]
    license_plate: Optional[str]
    production_year: Optional[int]
    mileage: int
    last_visit_date: Optional[datetime.date]
