"""
Schemas Pydantic per gli Ordini
Progetto: Service Station (Stazione di Servizio)

Definisce gli stati dell'ordine, la matrice delle transizioni e gli schemi
di validazione e serializzazione per l'API. Gli importi viaggiano come
Decimal internamente e come stringa nel JSON.
"""

import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)


# -------------------------------------------------------------------
# Enum per gli stati dell'ordine
# -------------------------------------------------------------------

class OrderStatus(str, Enum):
    """Stati dell'ordine. I valori sono i nomi stabili usati dal frontend."""
    DIAGNOSTICS = "Diagnostics"
    PARTS_SELECTION = "Parts_Selection"
    APPROVAL = "Approval"
    IN_WORK = "In_Work"
    READY = "Ready"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"


class WorkStatus(str, Enum):
    """Stati di avanzamento di un singolo lavoro."""
    PENDING = "Pending"
    IN_PROGRESS = "In_Progress"
    DONE = "Done"


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# Avanzamento solo in avanti, senza salti; Cancelled da ogni stato non finale.
# La validazione avviene nel service layer (order_service.py).
VALID_TRANSITIONS: dict[OrderStatus, list[OrderStatus]] = {
    OrderStatus.DIAGNOSTICS: [OrderStatus.PARTS_SELECTION, OrderStatus.CANCELLED],
    OrderStatus.PARTS_SELECTION: [OrderStatus.APPROVAL, OrderStatus.CANCELLED],
    OrderStatus.APPROVAL: [OrderStatus.IN_WORK, OrderStatus.CANCELLED],
    OrderStatus.IN_WORK: [OrderStatus.READY, OrderStatus.CANCELLED],
    OrderStatus.READY: [OrderStatus.CLOSED, OrderStatus.CANCELLED],
    OrderStatus.CLOSED: [],  # Stato finale
    OrderStatus.CANCELLED: [],  # Stato finale
}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

# In_Work si raggiunge solo tramite l'assegnazione degli operai
ASSIGNMENT_ONLY_STATUSES: frozenset[OrderStatus] = frozenset({OrderStatus.IN_WORK})


# -------------------------------------------------------------------
# Schemas per le voci dell'ordine
# -------------------------------------------------------------------

class OrderDefectRead(BaseModel):
    """Difetto rilevato in diagnosi."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    diagnostician_id: int
    defect_type_id: Optional[int]
    description: str
    comment: Optional[str]
    is_confirmed: bool
    created_at: datetime.datetime


class OrderWorkCreate(BaseModel):
    """
    Schema per l'aggiunta manuale di un lavoro.

    Con service_id il lavoro copia nome, prezzo e ore dal listino;
    senza, service_name e price sono obbligatori.
    """
    service_id: Optional[int] = Field(None, description="Lavorazione di listino")
    service_name: Optional[str] = Field(None, min_length=1, max_length=300)
    price: Optional[Decimal] = Field(None, ge=Decimal("0"), decimal_places=2)
    norm_hours: Optional[Decimal] = Field(None, gt=Decimal("0"), decimal_places=2)

    @field_validator("service_name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("Il nome del lavoro non può essere vuoto")
        return v

    @model_validator(mode="after")
    def validate_source(self) -> "OrderWorkCreate":
        """Serve un listino oppure nome e prezzo espliciti."""
        if self.service_id is None and (self.service_name is None or self.price is None):
            raise ValueError("Indicare service_id oppure service_name e price")
        return self


class OrderWorkRead(BaseModel):
    """Lavoro dell'ordine."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    service_id: Optional[int]
    defect_id: Optional[int]
    worker_id: Optional[int]
    service_name_snapshot: str
    price: Decimal
    norm_hours: Decimal
    status: WorkStatus
    is_confirmed: bool


class WorkStatusUpdate(BaseModel):
    """Avanzamento di un lavoro da parte dell'operaio."""
    status: WorkStatus


class OrderPartCreate(BaseModel):
    """
    Schema per l'aggiunta di un ricambio.

    Con warehouse_item_id nome, marca e prezzo di vendita sono copiati
    dall'articolo di magazzino (price, se indicato, ha la precedenza).
    """
    warehouse_item_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1, max_length=300)
    brand: Optional[str] = Field(None, max_length=100)
    price: Optional[Decimal] = Field(None, ge=Decimal("0"), decimal_places=2)
    quantity: int = Field(default=1, gt=0, description="Quantità")

    @model_validator(mode="after")
    def validate_source(self) -> "OrderPartCreate":
        if self.warehouse_item_id is None and (self.name is None or self.price is None):
            raise ValueError("Indicare warehouse_item_id oppure name e price")
        return self


class OrderPartRead(BaseModel):
    """Ricambio dell'ordine."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    warehouse_item_id: Optional[int]
    name_snapshot: str
    brand: Optional[str]
    price: Decimal
    quantity: int
    is_confirmed: bool

    @computed_field
    @property
    def line_total(self) -> Decimal:
        """Totale della riga (price * quantity)."""
        return self.price * self.quantity


# -------------------------------------------------------------------
# Schemas per Order
# -------------------------------------------------------------------

class OrderCreate(BaseModel):
    """Accettazione di un'auto: apre un ordine in stato Diagnostics."""
    client_id: int
    car_id: int
    complaint: Optional[str] = Field(None, max_length=5000, description="Problema segnalato")
    current_mileage: Optional[int] = Field(None, ge=0, description="Chilometraggio all'ingresso")
    prepayment: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"), decimal_places=2)

    @field_validator("complaint")
    @classmethod
    def normalize_complaint(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip() or None
        return v


class OrderStatusUpdate(BaseModel):
    """
    Richiesta di cambio stato.

    Lo stato arriva come stringa: la verifica contro OrderStatus
    avviene nel service (InvalidStatusError).
    """
    status: str = Field(..., description="Nuovo stato dell'ordine")
    reason: Optional[str] = Field(None, max_length=2000, description="Motivazione, obbligatoria per Cancelled")


class OrderCancel(BaseModel):
    """Annullamento con motivazione obbligatoria."""
    reason: str = Field(..., max_length=2000)


class OrderRead(BaseModel):
    """Ordine senza le voci."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_id: int
    car_id: int
    master_id: Optional[int]
    worker_id: Optional[int]
    status: OrderStatus
    complaint: Optional[str]
    current_mileage: Optional[int]
    prepayment: Decimal
    total_amount: Decimal
    cancel_reason: Optional[str]
    created_at: datetime.datetime
    completed_at: Optional[datetime.datetime]


class OrderDetail(OrderRead):
    """Ordine con difetti, lavori e ricambi."""
    defects: list[OrderDefectRead] = Field(default_factory=list)
    works: list[OrderWorkRead] = Field(default_factory=list)
    parts: list[OrderPartRead] = Field(default_factory=list)

    @computed_field
    @property
    def total_works(self) -> Decimal:
        """Totale dei lavori (confermati e non)."""
        return sum((w.price for w in self.works), Decimal("0.00"))

    @computed_field
    @property
    def total_parts(self) -> Decimal:
        """Totale dei ricambi (confermati e non)."""
        return sum((p.line_total for p in self.parts), Decimal("0.00"))


# -------------------------------------------------------------------
# Schemas per diagnosi, conferma e assegnazione
# -------------------------------------------------------------------

class DiagnosisCreate(BaseModel):
    """Tipi di guasto selezionati dal diagnosta (duplicati ammessi)."""
    defect_type_ids: list[int] = Field(..., min_length=1)


class DiagnosisResult(BaseModel):
    """Esito della registrazione della diagnosi."""
    order_id: int
    defects_recorded: int
    defects: list[OrderDefectRead]
    works: list[OrderWorkRead]


class LineItemConfirmation(BaseModel):
    """Lavori e ricambi approvati dal cliente."""
    work_ids: list[int] = Field(default_factory=list)
    part_ids: list[int] = Field(default_factory=list)


class ConfirmationResult(BaseModel):
    """Esito della conferma: lo stato dell'ordine non cambia."""
    order_id: int
    status: OrderStatus
    confirmed_works: int
    confirmed_parts: int
    total_amount: Decimal


class WorkAssignment(BaseModel):
    """Coppia lavoro → operaio."""
    work_id: int
    worker_id: int


class WorkerAssignmentRequest(BaseModel):
    """Assegnazione degli operai: porta l'ordine In_Work."""
    assignments: list[WorkAssignment] = Field(default_factory=list)
    main_worker_id: Optional[int] = Field(None, description="Operaio principale dell'ordine")
