"""
Modelli SQLAlchemy per gli ordini
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Contiene:
- BaseOrder / BaseOrderLine: ordine del cliente (perimetro contrattuale)
- SubcontractOrder / SubcontractOrderLine: ordine di subappalto

Le righe d'ordine sono il modello da cui vengono clonate le righe dei SAL.
"""


from __future__ import annotations
import uuid
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cantieri.models import Base
from cantieri.models.mixins import OrderLineMixin, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from cantieri.models.site import ConstructionSite, Subcontractor


class BaseOrder(Base, UUIDMixin, TimestampMixin):
    """
    Ordine del cliente per un cantiere.

    Solo gli ordini in stato 'validated' alimentano i SAL.
    """

    __tablename__ = "base_orders"

    site_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("construction_sites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID del cantiere",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="validated",
        doc="Stato dell'ordine: draft o validated",
    )

    site: Mapped["ConstructionSite"] = relationship(
        "ConstructionSite",
        back_populates="base_orders",
    )

    lines: Mapped[List["BaseOrderLine"]] = relationship(
        "BaseOrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="BaseOrderLine.position",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint("status IN ('draft', 'validated')", name="ck_base_orders_status"),
    )

    def __repr__(self) -> str:
        return f"<BaseOrder(id={self.id}, site_id={self.site_id}, status={self.status})>"


class BaseOrderLine(Base, UUIDMixin, OrderLineMixin):
    """Riga dell'ordine del cliente."""

    __tablename__ = "base_order_lines"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("base_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    order: Mapped["BaseOrder"] = relationship("BaseOrder", back_populates="lines")


class SubcontractOrder(Base, UUIDMixin, TimestampMixin):
    """Ordine di subappalto per una coppia (cantiere, subappaltatore)."""

    __tablename__ = "subcontract_orders"

    site_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("construction_sites.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID del cantiere",
    )

    subcontractor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("subcontractors.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        doc="UUID del subappaltatore",
    )

    site: Mapped["ConstructionSite"] = relationship(
        "ConstructionSite",
        back_populates="subcontract_orders",
    )

    subcontractor: Mapped["Subcontractor"] = relationship("Subcontractor")

    lines: Mapped[List["SubcontractOrderLine"]] = relationship(
        "SubcontractOrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="SubcontractOrderLine.position",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<SubcontractOrder(id={self.id}, site_id={self.site_id}, "
            f"subcontractor_id={self.subcontractor_id})>"
        )


class SubcontractOrderLine(Base, UUIDMixin, OrderLineMixin):
    """Riga dell'ordine di subappalto."""

    __tablename__ = "subcontract_order_lines"

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("subcontract_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    order: Mapped["SubcontractOrder"] = relationship("SubcontractOrder", back_populates="lines")
