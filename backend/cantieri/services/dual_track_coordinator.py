"""
Coordinamento SAL cliente / SAL subappaltatore
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Ogni SAL subappaltatore è agganciato a un SAL cliente dello stesso
cantiere. Se il cantiere non ha ancora SAL cliente, ne viene creato
automaticamente uno (n. 1, bozza, righe clonate dall'ordine del cliente
validato) prima del SAL subappaltatore, nella stessa transazione.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from cantieri.core.config import Settings, get_settings
from cantieri.models import ConstructionSite, ProgressStatement, SubcontractorProgressStatement
from cantieri.schemas.progress_statement import (
    ProgressStatementCreate,
    SubcontractorStatementCreate,
)
from cantieri.services.progress_statement_service import (
    ProgressStatementService,
    StatementScope,
    SubcontractorStatementService,
)
from cantieri.services.site_service import SiteService

# Logger per questo modulo
logger = logging.getLogger(__name__)


class DualTrackCoordinator:
    """
    Coordina la creazione dei SAL subappaltatore con il SAL cliente di riferimento.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()
        self.site_service = SiteService()
        self.client_service = ProgressStatementService(self.settings)
        self.subcontractor_service = SubcontractorStatementService(self.settings)

    async def ensure_client_anchor(self, db: AsyncSession, site: ConstructionSite) -> ProgressStatement:
        """
        Restituisce l'ultimo SAL cliente del cantiere, creandolo se assente.

        Il SAL creato automaticamente porta un commento esplicativo e le righe
        dell'ordine del cliente validato con quantità a zero.

        Args:
            db: Sessione database
            site: Cantiere

        Returns:
            ProgressStatement: Il SAL cliente di riferimento
        """
        scope = StatementScope(site.id)
        await self.client_service.lock_scope(db, scope)

        latest = await self.client_service.get_latest(db, scope)
        if latest is not None:
            return latest

        logger.info("Cantiere %s senza SAL cliente: creazione del SAL di riferimento", site.code)
        return await self.client_service.create(
            db,
            site,
            ProgressStatementCreate(comments=self.settings.anchor_statement_comment),
        )

    async def create_subcontractor_statement(
        self,
        db: AsyncSession,
        site: ConstructionSite,
        subcontractor_id: uuid.UUID,
        data: SubcontractorStatementCreate,
    ) -> SubcontractorProgressStatement:
        """
        Crea un nuovo SAL subappaltatore.

        Args:
            db: Sessione database
            site: Cantiere
            subcontractor_id: UUID del subappaltatore
            data: Dati del SAL

        Returns:
            SubcontractorProgressStatement: Il SAL creato, con righe clonate
            dall'ordine di subappalto

        Raises:
            NotFoundError: Se il subappaltatore non esiste o non ha un ordine
                di subappalto sul cantiere
        """
        await self.site_service.get_subcontractor(db, subcontractor_id)
        order = await self.site_service.get_subcontract_order(
            db, site.id, subcontractor_id, data.subcontract_order_id
        )

        anchor = await self.ensure_client_anchor(db, site)

        statement = await self.subcontractor_service.create(
            db,
            StatementScope(site.id, subcontractor_id),
            order,
            anchor,
            data,
        )
        logger.info(
            "SAL subappaltatore n. %s creato (cantiere %s, ancora SAL n. %s)",
            statement.sequence_number,
            site.code,
            anchor.sequence_number,
        )
        return statement
