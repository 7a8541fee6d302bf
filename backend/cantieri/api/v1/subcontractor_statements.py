"""
Router FastAPI per i SAL lato subappaltatore
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Stessa struttura dei SAL cliente, con ambito (cantiere, subappaltatore).
La creazione passa dal DualTrackCoordinator, che garantisce l'esistenza
del SAL cliente di riferimento.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from cantieri.core.database import get_db
from cantieri.schemas.progress_statement import (
    AmendmentCreate,
    AmendmentMutationRead,
    AmendmentRead,
    AmendmentUpdate,
    LineCreate,
    LineMutationRead,
    LineRead,
    LineUpdate,
    StatementTotalsRead,
    SubcontractorStatementCreate,
    SubcontractorStatementList,
    SubcontractorStatementMetaUpdate,
    SubcontractorStatementRead,
)
from cantieri.services.dual_track_coordinator import DualTrackCoordinator
from cantieri.services.progress_statement_service import StatementScope, SubcontractorStatementService
from cantieri.services.site_service import SiteService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanze dei service
coordinator = DualTrackCoordinator()
statement_service = SubcontractorStatementService()
site_service = SiteService()

# Router con prefix e tag
router = APIRouter(
    prefix="/sites/{site_code}/subcontractors/{subcontractor_id}/progress-statements",
    tags=["SAL Subappaltatori"],
)


async def _scope(db: AsyncSession, site_code: str, subcontractor_id: uuid.UUID) -> StatementScope:
    site = await site_service.get_by_code(db, site_code)
    return StatementScope(site.id, subcontractor_id)


# -------------------------------------------------------------------
# Endpoints per i SAL subappaltatore
# -------------------------------------------------------------------

@router.get(
    "/",
    name="sal_sub_lista",
    summary="Lista SAL del subappaltatore",
    description="Recupera i SAL del subappaltatore sul cantiere, dal più recente.",
    response_model=SubcontractorStatementList,
    status_code=status.HTTP_200_OK,
)
async def list_subcontractor_statements(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementList:
    """Recupera i SAL di un subappaltatore su un cantiere."""
    scope = await _scope(db, site_code, subcontractor_id)
    statements, total = await statement_service.list(db, scope)
    return SubcontractorStatementList(
        items=[SubcontractorStatementRead.model_validate(s) for s in statements],
        total=total,
    )


@router.post(
    "/",
    name="sal_sub_crea",
    summary="Crea SAL subappaltatore",
    description="Crea un nuovo SAL subappaltatore. Se il cantiere non ha SAL cliente, "
               "ne viene creato automaticamente uno come riferimento.",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_subcontractor_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    data: SubcontractorStatementCreate = ...,
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    """
    Crea un nuovo SAL subappaltatore.

    Raises:
        NotFoundError: Se cantiere, subappaltatore o ordine di subappalto non esistono
    """
    site = await site_service.get_by_code(db, site_code)
    statement = await coordinator.create_subcontractor_statement(db, site, subcontractor_id, data)
    await db.commit()
    return SubcontractorStatementRead.model_validate(statement)


@router.get(
    "/{number}",
    name="sal_sub_dettaglio",
    summary="Dettaglio SAL subappaltatore",
    description="Recupera un SAL subappaltatore con righe, varianti e totali.",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_200_OK,
)
async def get_subcontractor_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    """Recupera un SAL subappaltatore dal suo numero."""
    scope = await _scope(db, site_code, subcontractor_id)
    statement = await statement_service.get(db, scope, number)
    return SubcontractorStatementRead.model_validate(statement)


@router.patch(
    "/{number}",
    name="sal_sub_aggiorna",
    summary="Aggiorna dati SAL subappaltatore",
    description="Aggiorna commenti e data del SAL. finalized=true finalizza il SAL.",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_200_OK,
)
async def update_subcontractor_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    data: SubcontractorStatementMetaUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    """Aggiorna i dati descrittivi di un SAL subappaltatore."""
    scope = await _scope(db, site_code, subcontractor_id)
    statement = await statement_service.update_meta(db, scope, number, data)
    await db.commit()
    return SubcontractorStatementRead.model_validate(statement)


@router.post(
    "/{number}/finalize",
    name="sal_sub_finalizza",
    summary="Finalizza SAL subappaltatore",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_200_OK,
)
async def finalize_subcontractor_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    scope = await _scope(db, site_code, subcontractor_id)
    statement = await statement_service.finalize(db, scope, number)
    await db.commit()
    return SubcontractorStatementRead.model_validate(statement)


@router.post(
    "/{number}/reopen",
    name="sal_sub_riapri",
    summary="Riapri SAL subappaltatore",
    description="Riporta in bozza l'ultimo SAL finalizzato del subappaltatore.",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_200_OK,
)
async def reopen_subcontractor_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    scope = await _scope(db, site_code, subcontractor_id)
    statement = await statement_service.reopen(db, scope, number)
    await db.commit()
    return SubcontractorStatementRead.model_validate(statement)


@router.delete(
    "/{number}",
    name="sal_sub_elimina",
    summary="Elimina SAL subappaltatore",
    description="Elimina un SAL subappaltatore. Solo l'ultimo può essere eliminato.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_subcontractor_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> None:
    scope = await _scope(db, site_code, subcontractor_id)
    await statement_service.delete(db, scope, number)
    await db.commit()


# -------------------------------------------------------------------
# Endpoints per righe e varianti
# -------------------------------------------------------------------

@router.post(
    "/{number}/lines",
    name="sal_sub_riga_aggiungi",
    summary="Aggiungi riga",
    response_model=LineMutationRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_subcontractor_statement_line(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    data: LineCreate = ...,
    db: AsyncSession = Depends(get_db),
) -> LineMutationRead:
    scope = await _scope(db, site_code, subcontractor_id)
    row, statement = await statement_service.add_line(db, scope, number, data)
    await db.commit()
    return LineMutationRead(
        row=LineRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.put(
    "/{number}/lines/{line_id}",
    name="sal_sub_riga_aggiorna",
    summary="Aggiorna riga",
    response_model=LineMutationRead,
    status_code=status.HTTP_200_OK,
)
async def update_subcontractor_statement_line(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    line_id: uuid.UUID = Path(..., description="UUID della riga"),
    data: LineUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> LineMutationRead:
    scope = await _scope(db, site_code, subcontractor_id)
    row, statement = await statement_service.update_line(db, scope, number, line_id, data)
    await db.commit()
    return LineMutationRead(
        row=LineRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.delete(
    "/{number}/lines/{line_id}",
    name="sal_sub_riga_elimina",
    summary="Elimina riga",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_200_OK,
)
async def delete_subcontractor_statement_line(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    line_id: uuid.UUID = Path(..., description="UUID della riga"),
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    scope = await _scope(db, site_code, subcontractor_id)
    statement = await statement_service.delete_line(db, scope, number, line_id)
    await db.commit()
    return SubcontractorStatementRead.model_validate(statement)


@router.post(
    "/{number}/amendments",
    name="sal_sub_variante_aggiungi",
    summary="Aggiungi variante",
    response_model=AmendmentMutationRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_subcontractor_statement_amendment(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    data: AmendmentCreate = ...,
    db: AsyncSession = Depends(get_db),
) -> AmendmentMutationRead:
    scope = await _scope(db, site_code, subcontractor_id)
    row, statement = await statement_service.add_amendment(db, scope, number, data)
    await db.commit()
    return AmendmentMutationRead(
        row=AmendmentRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.put(
    "/{number}/amendments/{amendment_id}",
    name="sal_sub_variante_aggiorna",
    summary="Aggiorna variante",
    response_model=AmendmentMutationRead,
    status_code=status.HTTP_200_OK,
)
async def update_subcontractor_statement_amendment(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    amendment_id: uuid.UUID = Path(..., description="UUID della variante"),
    data: AmendmentUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> AmendmentMutationRead:
    scope = await _scope(db, site_code, subcontractor_id)
    row, statement = await statement_service.update_amendment(db, scope, number, amendment_id, data)
    await db.commit()
    return AmendmentMutationRead(
        row=AmendmentRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.delete(
    "/{number}/amendments/{amendment_id}",
    name="sal_sub_variante_elimina",
    summary="Elimina variante",
    response_model=SubcontractorStatementRead,
    status_code=status.HTTP_200_OK,
)
async def delete_subcontractor_statement_amendment(
    site_code: str = Path(..., description="Codice del cantiere"),
    subcontractor_id: uuid.UUID = Path(..., description="UUID del subappaltatore"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    amendment_id: uuid.UUID = Path(..., description="UUID della variante"),
    db: AsyncSession = Depends(get_db),
) -> SubcontractorStatementRead:
    scope = await _scope(db, site_code, subcontractor_id)
    statement = await statement_service.delete_amendment(db, scope, number, amendment_id)
    await db.commit()
    return SubcontractorStatementRead.model_validate(statement)
