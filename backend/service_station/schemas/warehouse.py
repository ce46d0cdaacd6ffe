"""
Schemas Pydantic per il magazzino
Progetto: Service Station (Stazione di Servizio)
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class WarehouseItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=300)
    brand: Optional[str] = Field(None, max_length=100)
    article: Optional[str] = Field(None, max_length=100)
    location_cell: Optional[str] = Field(None, max_length=50)
    quantity: int = Field(default=1, ge=0)
    min_quantity: int = Field(default=2, ge=0)
    purchase_price: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"), decimal_places=2)
    sale_price: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"), decimal_places=2)


class WarehouseItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    brand: Optional[str]
    article: Optional[str]
    location_cell: Optional[str]
    quantity: int
    min_quantity: int
    purchase_price: Decimal
    sale_price: Decimal

    @computed_field
    @property
    def is_below_minimum(self) -> bool:
        """True se la giacenza è sotto la scorta minima."""
        return self.quantity < self.min_quantity


class StockAdjustment(BaseModel):
    """Carico (delta positivo) o prelievo (delta negativo) di un articolo."""
    delta: int = Field(..., description="Variazione di giacenza")

    @field_validator("delta")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("La variazione non può essere zero")
        return v
