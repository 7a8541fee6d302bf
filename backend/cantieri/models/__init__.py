"""
Modelli Database SQLAlchemy
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Import centralizzato di tutti i modelli per Alembic e usage generico.

Modelli:
- ConstructionSite, Subcontractor: anagrafiche esterne (sola lettura per il SAL)
- BaseOrder, SubcontractOrder: ordini che forniscono le righe iniziali
- ProgressStatement: SAL lato cliente, con righe e varianti
- SubcontractorProgressStatement: SAL lato subappaltatore, con righe e varianti
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from cantieri.models.site import ConstructionSite, Subcontractor
from cantieri.models.order import BaseOrder, BaseOrderLine, SubcontractOrder, SubcontractOrderLine
from cantieri.models.progress_statement import (
    ProgressStatement,
    ProgressStatementAmendment,
    ProgressStatementLine,
    SubcontractorProgressStatement,
    SubcontractorStatementAmendment,
    SubcontractorStatementLine,
)

# Esportazione di tutti i modelli per Alembic
__all__ = [
    "Base",
    "ConstructionSite",
    "Subcontractor",
    "BaseOrder",
    "BaseOrderLine",
    "SubcontractOrder",
    "SubcontractOrderLine",
    "ProgressStatement",
    "ProgressStatementLine",
    "ProgressStatementAmendment",
    "SubcontractorProgressStatement",
    "SubcontractorStatementLine",
    "SubcontractorStatementAmendment",
]
