"""
API Routes
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Modulo per l'aggregazione dei router versionati.
"""

from cantieri.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
