"""
Router FastAPI per i SAL lato cliente
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Definisce gli endpoint API per la gestione dei SAL di un cantiere,
incluse le transizioni di stato e la gestione di righe e varianti.
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
    ProgressStatementCreate,
    ProgressStatementList,
    ProgressStatementRead,
    StatementMetaUpdate,
    StatementTotalsRead,
)
from cantieri.services.progress_statement_service import ProgressStatementService, StatementScope
from cantieri.services.site_service import SiteService

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Istanze dei service
statement_service = ProgressStatementService()
site_service = SiteService()

# Router con prefix e tag
router = APIRouter(
    prefix="/sites/{site_code}/progress-statements",
    tags=["SAL Cliente"],
)


async def _site_scope(db: AsyncSession, site_code: str) -> StatementScope:
    site = await site_service.get_by_code(db, site_code)
    return StatementScope(site.id)


# -------------------------------------------------------------------
# Endpoints per i SAL
# -------------------------------------------------------------------

@router.get(
    "/",
    name="sal_lista",
    summary="Lista SAL del cantiere",
    description="Recupera i SAL cliente del cantiere, dal più recente.",
    response_model=ProgressStatementList,
    status_code=status.HTTP_200_OK,
)
async def list_progress_statements(
    site_code: str = Path(..., description="Codice del cantiere"),
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementList:
    """
    Recupera i SAL del cantiere.

    Raises:
        NotFoundError: Se il cantiere non esiste
    """
    scope = await _site_scope(db, site_code)
    statements, total = await statement_service.list(db, scope)
    return ProgressStatementList(
        items=[ProgressStatementRead.model_validate(s) for s in statements],
        total=total,
    )


@router.post(
    "/",
    name="sal_crea",
    summary="Crea SAL",
    description="Crea un nuovo SAL cliente con numero progressivo e righe clonate "
               "dall'ordine del cliente validato.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_progress_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    data: ProgressStatementCreate = ...,
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """
    Crea un nuovo SAL cliente.

    Args:
        site_code: Codice del cantiere
        data: Dati del SAL
        db: Sessione database

    Returns:
        ProgressStatementRead: Il SAL creato con righe e totali

    Raises:
        NotFoundError: Se il cantiere o l'ordine richiesto non esistono
        ConflictError: Se l'ultimo SAL deve essere finalizzato prima
    """
    site = await site_service.get_by_code(db, site_code)
    statement = await statement_service.create(db, site, data)
    await db.commit()
    return ProgressStatementRead.model_validate(statement)


@router.get(
    "/{number}",
    name="sal_dettaglio",
    summary="Dettaglio SAL",
    description="Recupera un SAL con righe, varianti e totali.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_200_OK,
)
async def get_progress_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """Recupera un SAL cliente dal suo numero."""
    scope = await _site_scope(db, site_code)
    statement = await statement_service.get(db, scope, number)
    return ProgressStatementRead.model_validate(statement)


@router.patch(
    "/{number}",
    name="sal_aggiorna",
    summary="Aggiorna dati SAL",
    description="Aggiorna commenti, periodo e data del SAL (consentito anche se finalizzato). "
               "finalized=true finalizza il SAL.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_200_OK,
)
async def update_progress_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    data: StatementMetaUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """
    Aggiorna i dati descrittivi di un SAL.

    Raises:
        BusinessValidationError: Se non ci sono campi da aggiornare
        ConflictError: Se si tenta di togliere la finalizzazione
    """
    scope = await _site_scope(db, site_code)
    statement = await statement_service.update_meta(db, scope, number, data)
    await db.commit()
    return ProgressStatementRead.model_validate(statement)


@router.post(
    "/{number}/finalize",
    name="sal_finalizza",
    summary="Finalizza SAL",
    description="Finalizza il SAL: righe e varianti non saranno più modificabili.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_200_OK,
)
async def finalize_progress_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """Finalizza un SAL cliente."""
    scope = await _site_scope(db, site_code)
    statement = await statement_service.finalize(db, scope, number)
    await db.commit()
    return ProgressStatementRead.model_validate(statement)


@router.post(
    "/{number}/reopen",
    name="sal_riapri",
    summary="Riapri SAL",
    description="Riporta in bozza un SAL finalizzato. Consentito solo per l'ultimo SAL del cantiere.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_200_OK,
)
async def reopen_progress_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """Riapre l'ultimo SAL cliente."""
    scope = await _site_scope(db, site_code)
    statement = await statement_service.reopen(db, scope, number)
    await db.commit()
    return ProgressStatementRead.model_validate(statement)


@router.delete(
    "/{number}",
    name="sal_elimina",
    summary="Elimina SAL",
    description="Elimina un SAL. Solo l'ultimo SAL del cantiere può essere eliminato.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_progress_statement(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    db: AsyncSession = Depends(get_db),
) -> None:
    """
    Elimina un SAL cliente.

    Raises:
        NotFoundError: Se il SAL non esiste
        ConflictError: Se il SAL non è l'ultimo o è ancora di SAL subappaltatori
    """
    scope = await _site_scope(db, site_code)
    await statement_service.delete(db, scope, number)
    await db.commit()


# -------------------------------------------------------------------
# Endpoints per le righe
# -------------------------------------------------------------------

@router.post(
    "/{number}/lines",
    name="sal_riga_aggiungi",
    summary="Aggiungi riga",
    description="Aggiunge una riga al SAL e restituisce la riga ricalcolata con i totali.",
    response_model=LineMutationRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_progress_statement_line(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    data: LineCreate = ...,
    db: AsyncSession = Depends(get_db),
) -> LineMutationRead:
    """Aggiunge una riga a un SAL in bozza."""
    scope = await _site_scope(db, site_code)
    row, statement = await statement_service.add_line(db, scope, number, data)
    await db.commit()
    return LineMutationRead(
        row=LineRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.put(
    "/{number}/lines/{line_id}",
    name="sal_riga_aggiorna",
    summary="Aggiorna riga",
    description="Aggiorna una riga del SAL; importi e totali sono ricalcolati.",
    response_model=LineMutationRead,
    status_code=status.HTTP_200_OK,
)
async def update_progress_statement_line(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    line_id: uuid.UUID = Path(..., description="UUID della riga"),
    data: LineUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> LineMutationRead:
    """
    Aggiorna una riga del SAL.

    Raises:
        NotFoundError: Se la riga non appartiene al SAL
        ConflictError: Se il SAL è finalizzato
    """
    scope = await _site_scope(db, site_code)
    row, statement = await statement_service.update_line(db, scope, number, line_id, data)
    await db.commit()
    return LineMutationRead(
        row=LineRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.delete(
    "/{number}/lines/{line_id}",
    name="sal_riga_elimina",
    summary="Elimina riga",
    description="Elimina una riga dal SAL e restituisce il SAL aggiornato.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_200_OK,
)
async def delete_progress_statement_line(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    line_id: uuid.UUID = Path(..., description="UUID della riga"),
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """Elimina una riga da un SAL in bozza."""
    scope = await _site_scope(db, site_code)
    statement = await statement_service.delete_line(db, scope, number, line_id)
    await db.commit()
    return ProgressStatementRead.model_validate(statement)


# -------------------------------------------------------------------
# Endpoints per le varianti
# -------------------------------------------------------------------

@router.post(
    "/{number}/amendments",
    name="sal_variante_aggiungi",
    summary="Aggiungi variante",
    description="Aggiunge una variante al SAL con numero progressivo nel SAL.",
    response_model=AmendmentMutationRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_progress_statement_amendment(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    data: AmendmentCreate = ...,
    db: AsyncSession = Depends(get_db),
) -> AmendmentMutationRead:
    """Aggiunge una variante a un SAL in bozza."""
    scope = await _site_scope(db, site_code)
    row, statement = await statement_service.add_amendment(db, scope, number, data)
    await db.commit()
    return AmendmentMutationRead(
        row=AmendmentRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.put(
    "/{number}/amendments/{amendment_id}",
    name="sal_variante_aggiorna",
    summary="Aggiorna variante",
    description="Aggiorna una variante del SAL; importi e totali sono ricalcolati.",
    response_model=AmendmentMutationRead,
    status_code=status.HTTP_200_OK,
)
async def update_progress_statement_amendment(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    amendment_id: uuid.UUID = Path(..., description="UUID della variante"),
    data: AmendmentUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> AmendmentMutationRead:
    """Aggiorna una variante del SAL."""
    scope = await _site_scope(db, site_code)
    row, statement = await statement_service.update_amendment(db, scope, number, amendment_id, data)
    await db.commit()
    return AmendmentMutationRead(
        row=AmendmentRead.model_validate(row),
        totals=StatementTotalsRead.from_rows(statement.lines, statement.amendments),
    )


@router.delete(
    "/{number}/amendments/{amendment_id}",
    name="sal_variante_elimina",
    summary="Elimina variante",
    description="Elimina una variante dal SAL e restituisce il SAL aggiornato.",
    response_model=ProgressStatementRead,
    status_code=status.HTTP_200_OK,
)
async def delete_progress_statement_amendment(
    site_code: str = Path(..., description="Codice del cantiere"),
    number: int = Path(..., ge=1, description="Numero progressivo del SAL"),
    amendment_id: uuid.UUID = Path(..., description="UUID della variante"),
    db: AsyncSession = Depends(get_db),
) -> ProgressStatementRead:
    """Elimina una variante da un SAL in bozza."""
    scope = await _site_scope(db, site_code)
    statement = await statement_service.delete_amendment(db, scope, number, amendment_id)
    await db.commit()
    return ProgressStatementRead.model_validate(statement)
