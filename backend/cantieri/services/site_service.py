"""
Service Layer per le anagrafiche esterne
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Letture dei riferimenti esterni usati dal registro SAL: cantieri,
subappaltatori, ordini del cliente e ordini di subappalto.
Queste entità sono gestite da altri moduli: qui vengono solo lette.
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cantieri.core.exceptions import NotFoundError
from cantieri.models import BaseOrder, ConstructionSite, SubcontractOrder, Subcontractor

# Logger per questo modulo
logger = logging.getLogger(__name__)

VALIDATED_ORDER_STATUS = "validated"


class SiteService:
    """Service di sola lettura per cantieri, subappaltatori e ordini."""

    async def get_by_code(self, db: AsyncSession, code: str) -> ConstructionSite:
        """
        Recupera un cantiere dal suo codice leggibile.

        Raises:
            NotFoundError: Se il cantiere non esiste
        """
        result = await db.execute(select(ConstructionSite).where(ConstructionSite.code == code))
        site = result.scalar_one_or_none()

        if site is None:
            logger.warning("Cantiere non trovato: %s", code)
            raise NotFoundError(f"Cantiere '{code}' non trovato")

        return site

    async def get_subcontractor(self, db: AsyncSession, subcontractor_id: uuid.UUID) -> Subcontractor:
        """
        Recupera un subappaltatore per ID.

        Raises:
            NotFoundError: Se il subappaltatore non esiste
        """
        subcontractor = await db.get(Subcontractor, subcontractor_id)

        if subcontractor is None:
            logger.warning("Subappaltatore non trovato: %s", subcontractor_id)
            raise NotFoundError(f"Subappaltatore con ID {subcontractor_id} non trovato")

        return subcontractor

    async def get_validated_base_order(
        self,
        db: AsyncSession,
        site_id: uuid.UUID,
        base_order_id: Optional[uuid.UUID] = None,
    ) -> Optional[BaseOrder]:
        """
        Recupera l'ordine del cliente validato di un cantiere.

        Args:
            db: Sessione database
            site_id: UUID del cantiere
            base_order_id: Ordine specifico richiesto (opzionale)

        Returns:
            L'ordine richiesto, oppure il più recente validato del cantiere;
            None se il cantiere non ha ordini validati.

        Raises:
            NotFoundError: Se l'ordine richiesto non esiste, non è validato
                o appartiene a un altro cantiere
        """
        query = select(BaseOrder).where(
            BaseOrder.site_id == site_id,
            BaseOrder.status == VALIDATED_ORDER_STATUS,
        )

        if base_order_id is not None:
            result = await db.execute(query.where(BaseOrder.id == base_order_id))
            order = result.scalar_one_or_none()
            if order is None:
                logger.warning(
                    "Ordine cliente %s non trovato o non validato per il cantiere %s",
                    base_order_id,
                    site_id,
                )
                raise NotFoundError(f"Ordine del cliente con ID {base_order_id} non trovato")
            return order

        result = await db.execute(query.order_by(BaseOrder.created_at.desc()).limit(1))
        return result.scalar_one_or_none()

    async def get_subcontract_order(
        self,
        db: AsyncSession,
        site_id: uuid.UUID,
        subcontractor_id: uuid.UUID,
        subcontract_order_id: Optional[uuid.UUID] = None,
    ) -> SubcontractOrder:
        """
        Recupera l'ordine di subappalto di un subappaltatore su un cantiere.

        Raises:
            NotFoundError: Se non esiste alcun ordine per la coppia
                (cantiere, subappaltatore) o se l'ordine richiesto non corrisponde
        """
        query = select(SubcontractOrder).where(
            SubcontractOrder.site_id == site_id,
            SubcontractOrder.subcontractor_id == subcontractor_id,
        )
        if subcontract_order_id is not None:
            query = query.where(SubcontractOrder.id == subcontract_order_id)

        result = await db.execute(query.order_by(SubcontractOrder.created_at.desc()).limit(1))
        order = result.scalar_one_or_none()

        if order is None:
            logger.warning(
                "Ordine di subappalto non trovato: cantiere=%s subappaltatore=%s ordine=%s",
                site_id,
                subcontractor_id,
                subcontract_order_id,
            )
            raise NotFoundError("Ordine di subappalto non trovato per questo cantiere e subappaltatore")

        return order
