"""
Schemas Pydantic per il progetto Service Station

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle richieste e risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from service_station.schemas import OrderRead, ClientRead, etc.

from service_station.schemas.audit import SystemLogRead
from service_station.schemas.catalog import (
    DefectNodeCreate,
    DefectNodeRead,
    DefectTypeCreate,
    DefectTypeRead,
    ServiceCreate,
    ServiceLink,
    ServiceRead,
)
from service_station.schemas.client import CarCreate, CarRead, ClientCreate, ClientRead
from service_station.schemas.order import (
    ASSIGNMENT_ONLY_STATUSES,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    ConfirmationResult,
    DiagnosisCreate,
    DiagnosisResult,
    LineItemConfirmation,
    OrderCancel,
    OrderCreate,
    OrderDefectRead,
    OrderDetail,
    OrderPartCreate,
    OrderPartRead,
    OrderRead,
    OrderStatus,
    OrderStatusUpdate,
    OrderWorkCreate,
    OrderWorkRead,
    WorkAssignment,
    WorkerAssignmentRequest,
    WorkStatus,
    WorkStatusUpdate,
)
from service_station.schemas.user import (
    Actor,
    LoginRequest,
    PinLoginRequest,
    SessionResponse,
    UserCreate,
    UserRead,
    UserUpdate,
)
from service_station.schemas.warehouse import StockAdjustment, WarehouseItemCreate, WarehouseItemRead

# Esportazione di tutti gli schemi
__all__ = [
    # Audit
    "SystemLogRead",
    # Catalog
    "DefectNodeCreate",
    "DefectNodeRead",
    "DefectTypeCreate",
    "DefectTypeRead",
    "ServiceCreate",
    "ServiceLink",
    "ServiceRead",
    # Client
    "CarCreate",
    "CarRead",
    "ClientCreate",
    "ClientRead",
    # Order
    "ASSIGNMENT_ONLY_STATUSES",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
    "ConfirmationResult",
    "DiagnosisCreate",
    "DiagnosisResult",
    "LineItemConfirmation",
    "OrderCancel",
    "OrderCreate",
    "OrderDefectRead",
    "OrderDetail",
    "OrderPartCreate",
    "OrderPartRead",
    "OrderRead",
    "OrderStatus",
    "OrderStatusUpdate",
    "OrderWorkCreate",
    "OrderWorkRead",
    "WorkAssignment",
    "WorkerAssignmentRequest",
    "WorkStatus",
    "WorkStatusUpdate",
    # User
    "Actor",
    "LoginRequest",
    "PinLoginRequest",
    "SessionResponse",
    "UserCreate",
    "UserRead",
    "UserUpdate",
    # Warehouse
    "StockAdjustment",
    "WarehouseItemCreate",
    "WarehouseItemRead",
]
