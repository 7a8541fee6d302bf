"""
Modelli SQLAlchemy per le anagrafiche esterne
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Contiene:
- ConstructionSite: cantiere, identificato da un codice leggibile
- Subcontractor: subappaltatore

Sono gestiti da altri moduli dell'applicazione: il registro SAL li legge soltanto.
"""


from __future__ import annotations
from typing import TYPE_CHECKING, List

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cantieri.models import Base
from cantieri.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from cantieri.models.order import BaseOrder, SubcontractOrder


class ConstructionSite(Base, UUIDMixin, TimestampMixin):
    """
    Cantiere.

    Attributes:
        id: UUID interno
        code: Codice leggibile usato negli URL (es. "CH-2024-017")
        name: Nome del cantiere
    """

    __tablename__ = "construction_sites"

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True,
        doc="Codice leggibile del cantiere",
    )

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        default="",
        doc="Nome del cantiere",
    )

    base_orders: Mapped[List["BaseOrder"]] = relationship(
        "BaseOrder",
        back_populates="site",
        lazy="noload",
    )

    subcontract_orders: Mapped[List["SubcontractOrder"]] = relationship(
        "SubcontractOrder",
        back_populates="site",
        lazy="noload",
    )

    def __repr__(self) -> str:
        return f"<ConstructionSite(id={self.id}, code={self.code})>"


class Subcontractor(Base, UUIDMixin, TimestampMixin):
    """Subappaltatore."""

    __tablename__ = "subcontractors"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Ragione sociale del subappaltatore",
    )

    def __repr__(self) -> str:
        return f"<Subcontractor(id={self.id}, name={self.name})>"
