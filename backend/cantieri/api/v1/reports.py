"""
Router FastAPI per i riepiloghi SAL
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cantieri.core.database import get_db
from cantieri.schemas.progress_statement import StatementStatus, StatementSummary
from cantieri.services.line_calculator import round2
from cantieri.services.progress_statement_service import ProgressStatementService

# Logger per questo modulo
logger = logging.getLogger(__name__)

statement_service = ProgressStatementService()

router = APIRouter(
    prefix="/reports",
    tags=["Riepiloghi"],
)


@router.get(
    "/progress-statements",
    name="riepilogo_sal",
    summary="Riepilogo fatturazione SAL",
    description="Importi del periodo dei SAL cliente, filtrabili per periodo, cantiere e stato.",
    response_model=StatementSummary,
    status_code=status.HTTP_200_OK,
)
async def progress_statement_summary(
    billing_month: Optional[str] = Query(None, description="Periodo (es. 'Marzo 2025')"),
    site_code: Optional[str] = Query(None, description="Codice del cantiere"),
    status_filter: Optional[StatementStatus] = Query(None, alias="status", description="Stato del SAL"),
    db: AsyncSession = Depends(get_db),
) -> StatementSummary:
    """
    Riepilogo fatturazione dei SAL cliente.

    Args:
        billing_month: Filtro opzionale per periodo
        site_code: Filtro opzionale per cantiere
        status_filter: Filtro opzionale per stato (draft | finalized)
        db: Sessione database

    Returns:
        StatementSummary: Righe del riepilogo e totale complessivo
    """
    finalized = None
    if status_filter is not None:
        finalized = status_filter == StatementStatus.FINALIZED

    rows = await statement_service.summary(
        db,
        billing_month=billing_month,
        site_code=site_code,
        finalized=finalized,
    )
    return StatementSummary(
        items=rows,
        total=len(rows),
        total_amount=round2(sum((r.total_amount for r in rows), start=round2(0))),
    )
