"""
Modelli SQLAlchemy per gli Stati Avanzamento Lavori (SAL)
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Contiene:
- ProgressStatement: SAL lato cliente (numerazione per cantiere)
- ProgressStatementLine / ProgressStatementAmendment: righe e varianti del SAL cliente
- SubcontractorProgressStatement: SAL lato subappaltatore
  (numerazione per coppia subappaltatore + cantiere, ancorato a un SAL cliente)
- SubcontractorStatementLine / SubcontractorStatementAmendment: righe e varianti

Entrambi i SAL usano una colonna `version` per il controllo di concorrenza
ottimistico: ogni scrittura su righe o varianti incrementa la versione del SAL.
"""


from __future__ import annotations
import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cantieri.models import Base
from cantieri.models.mixins import LedgerRowMixin, StatementStateMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from cantieri.models.site import ConstructionSite, Subcontractor


class ProgressStatement(Base, UUIDMixin, TimestampMixin, StatementStateMixin):
    """
    SAL lato cliente.

    Attributes:
        site_id: UUID del cantiere
        sequence_number: progressivo per cantiere, senza buchi, a partire da 1
        base_order_id: ordine del cliente da cui sono state clonate le righe
        finalized: True se il SAL è bloccato
        billing_month: periodo di fatturazione (es. "Marzo 2025")
        version: contatore per il controllo di concorrenza ottimistico

    States (State Machine):
        draft → finalized
          ↑         │
          └─reopen──┘  (solo per l'ultimo SAL del cantiere)
    """

    __tablename__ = "progress_statements"

    site_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("construction_sites.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="UUID del cantiere",
    )

    base_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("base_orders.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID dell'ordine del cliente",
    )

    billing_month: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        doc="Periodo di fatturazione",
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    site: Mapped["ConstructionSite"] = relationship(
        "ConstructionSite",
        lazy="raise",
    )

    lines: Mapped[List["ProgressStatementLine"]] = relationship(
        "ProgressStatementLine",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="ProgressStatementLine.position",
        lazy="selectin",
    )

    amendments: Mapped[List["ProgressStatementAmendment"]] = relationship(
        "ProgressStatementAmendment",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="ProgressStatementAmendment.number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint("site_id", "sequence_number", name="uq_progress_statements_site_number"),
        CheckConstraint("sequence_number >= 1", name="ck_progress_statements_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<ProgressStatement(id={self.id}, site_id={self.site_id}, "
            f"number={self.sequence_number}, finalized={self.finalized})>"
        )


class ProgressStatementLine(Base, UUIDMixin, LedgerRowMixin):
    """Riga di un SAL cliente, clonata da una riga dell'ordine del cliente."""

    __tablename__ = "progress_statement_lines"

    statement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("progress_statements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_ref: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        doc="UUID della riga d'ordine di origine",
    )

    statement: Mapped["ProgressStatement"] = relationship(
        "ProgressStatement",
        back_populates="lines",
    )


class ProgressStatementAmendment(Base, UUIDMixin, LedgerRowMixin):
    """Variante (voce aggiuntiva libera) di un SAL cliente."""

    __tablename__ = "progress_statement_amendments"

    statement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("progress_statements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Numero progressivo della variante nel SAL",
    )

    statement: Mapped["ProgressStatement"] = relationship(
        "ProgressStatement",
        back_populates="amendments",
    )

    __table_args__ = (
        UniqueConstraint("statement_id", "number", name="uq_progress_statement_amendments_number"),
    )


class SubcontractorProgressStatement(Base, UUIDMixin, TimestampMixin, StatementStateMixin):
    """
    SAL lato subappaltatore.

    Attributes:
        site_id: UUID del cantiere
        subcontractor_id: UUID del subappaltatore
        sequence_number: progressivo per (subappaltatore, cantiere)
        subcontract_order_id: ordine di subappalto da cui sono clonate le righe
        anchor_statement_id: SAL cliente dello stesso cantiere a cui è agganciato
    """

    __tablename__ = "subcontractor_progress_statements"

    site_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("construction_sites.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="UUID del cantiere",
    )

    subcontractor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("subcontractors.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="UUID del subappaltatore",
    )

    subcontract_order_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("subcontract_orders.id", ondelete="SET NULL"),
        nullable=True,
        doc="UUID dell'ordine di subappalto",
    )

    anchor_statement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("progress_statements.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        doc="UUID del SAL cliente di riferimento",
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    site: Mapped["ConstructionSite"] = relationship(
        "ConstructionSite",
        lazy="raise",
    )

    subcontractor: Mapped["Subcontractor"] = relationship(
        "Subcontractor",
        lazy="raise",
    )

    lines: Mapped[List["SubcontractorStatementLine"]] = relationship(
        "SubcontractorStatementLine",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="SubcontractorStatementLine.position",
        lazy="selectin",
    )

    amendments: Mapped[List["SubcontractorStatementAmendment"]] = relationship(
        "SubcontractorStatementAmendment",
        back_populates="statement",
        cascade="all, delete-orphan",
        order_by="SubcontractorStatementAmendment.number",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        UniqueConstraint(
            "subcontractor_id",
            "site_id",
            "sequence_number",
            name="uq_subcontractor_statements_scope_number",
        ),
        CheckConstraint("sequence_number >= 1", name="ck_subcontractor_statements_number"),
    )

    def __repr__(self) -> str:
        return (
            f"<SubcontractorProgressStatement(id={self.id}, site_id={self.site_id}, "
            f"subcontractor_id={self.subcontractor_id}, number={self.sequence_number})>"
        )


class SubcontractorStatementLine(Base, UUIDMixin, LedgerRowMixin):
    """Riga di un SAL subappaltatore, clonata da una riga dell'ordine di subappalto."""

    __tablename__ = "subcontractor_statement_lines"

    statement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("subcontractor_progress_statements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_ref: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,
        doc="UUID della riga d'ordine di origine",
    )

    statement: Mapped["SubcontractorProgressStatement"] = relationship(
        "SubcontractorProgressStatement",
        back_populates="lines",
    )


class SubcontractorStatementAmendment(Base, UUIDMixin, LedgerRowMixin):
    """Variante di un SAL subappaltatore."""

    __tablename__ = "subcontractor_statement_amendments"

    statement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("subcontractor_progress_statements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Numero progressivo della variante nel SAL",
    )

    statement: Mapped["SubcontractorProgressStatement"] = relationship(
        "SubcontractorProgressStatement",
        back_populates="amendments",
    )

    __table_args__ = (
        UniqueConstraint(
            "statement_id", "number", name="uq_subcontractor_statement_amendments_number"
        ),
    )
