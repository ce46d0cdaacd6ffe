"""
Modelli Database SQLAlchemy
Progetto: Service Station (Stazione di Servizio)

Import centralizzato di tutti i modelli per create_all e usage generico.
"""

# SQLAlchemy 2.0 Base declarativa
# Importato qui per essere disponibile per tutti i modelli
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


# Import modelli implementati
from service_station.models.user import User, UserRole, UserStatus
from service_station.models.client import Client, Car
from service_station.models.catalog import DefectNode, DefectType, Service, defect_type_services
from service_station.models.warehouse import WarehouseItem
from service_station.models.order import Order, OrderDefect, OrderWork, OrderPart
from service_station.models.audit import SystemLog

# Esportazione di tutti i modelli
__all__ = [
    "Base",
    "User",
    "UserRole",
    "UserStatus",
    "Client",
    "Car",
    "DefectNode",
    "DefectType",
    "Service",
    "defect_type_services",
    "WarehouseItem",
    "Order",
    "OrderDefect",
    "OrderWork",
    "OrderPart",
    "SystemLog",
]
