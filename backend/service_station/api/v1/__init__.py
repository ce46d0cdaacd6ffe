"""
API v1 Routes
Progetto: Service Station (Stazione di Servizio)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from service_station.api.v1 import auth, catalog, clients, orders, system_logs, users, warehouse

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(auth.router)
api_v1_router.include_router(users.router)
api_v1_router.include_router(clients.router)
api_v1_router.include_router(orders.router)
api_v1_router.include_router(catalog.router)
api_v1_router.include_router(warehouse.router)
api_v1_router.include_router(system_logs.router)

# Esportazione
__all__ = ["api_v1_router"]
