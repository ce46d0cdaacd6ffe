"""
API Routes
Progetto: Service Station (Stazione di Servizio)

Modulo per l'aggregazione dei router versionati.
"""

from service_station.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
