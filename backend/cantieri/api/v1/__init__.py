"""
API v1 Routes
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from cantieri.api.v1 import progress_statements, reports, subcontractor_statements

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(progress_statements.router)
api_v1_router.include_router(subcontractor_statements.router)
api_v1_router.include_router(reports.router)

# Esportazione
__all__ = ["api_v1_router"]
