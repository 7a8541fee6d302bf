"""
Mixin SQLAlchemy per modelli
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Mixin riutilizzabili per aggiungere funzionalità comuni ai modelli.
"""

import datetime
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy import event
from sqlalchemy.orm import Mapped, mapped_column, Session
from sqlalchemy.sql import func

# Precisione di memorizzazione: quantità e prezzi a 4 decimali, importi a 2
QTY_SCALE = 4
AMOUNT_SCALE = 2


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class TimestampMixin:
    """
    Mixin per gestione automatica timestamp creazione e aggiornamento.

    Aggiunge i campi:
    - created_at: data/ora di creazione record (impostato automaticamente)
    - updated_at: data/ora ultimo aggiornamento (aggiornato automaticamente)
    """

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        doc="Data/ora di creazione del record",
    )

    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        nullable=False,
        doc="Data/ora ultimo aggiornamento del record",
    )


class UUIDMixin:
    """
    Mixin per ID UUID generato lato applicazione.

    Aggiunge il campo id come UUID primary key con generazione automatica.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        doc="UUID primary key",
    )


class StatementStateMixin:
    """
    Mixin con i campi comuni ai SAL (cliente e subappaltatore).

    Il campo `finalized` è il solo stato della macchina a stati:
    False = bozza, True = finalizzato (righe e varianti bloccate).
    """

    sequence_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Numero progressivo del SAL nel suo ambito (1, 2, 3, ...)",
    )

    finalized: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="True se il SAL è finalizzato",
    )

    date: Mapped[datetime.date] = mapped_column(
        Date,
        nullable=False,
        default=datetime.date.today,
        doc="Data del SAL",
    )

    comments: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        doc="Commenti liberi",
    )


class OrderLineMixin:
    """
    Mixin con i campi di una riga d'ordine (modello delle righe SAL).
    """

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Posizione della riga nell'ordine",
    )

    article: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Codice articolo / voce di capitolato",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        doc="Descrizione della voce",
    )

    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="STANDARD",
        doc="Tipo di riga: STANDARD, TITLE, SUBTITLE (anche codici storici QP/TITRE/SOUS_TITRE)",
    )

    unit: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Unità di misura",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Prezzo unitario",
    )

    quantity: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Quantità ordinata",
    )


class LedgerRowMixin:
    """
    Mixin con i campi di una riga SAL (riga o variante).

    Campi derivati (ricalcolati dal LineCalculator a ogni scrittura):
    - total_qty = precedent_qty + current_qty
    - current_amount = round2(current_qty * unit_price)
    - total_amount = round2(precedent_amount + current_amount)
    """

    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Posizione della riga nel SAL",
    )

    article: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Codice articolo / voce di capitolato",
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        doc="Descrizione della voce",
    )

    kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="STANDARD",
        doc="Tipo di riga: STANDARD, TITLE, SUBTITLE",
    )

    unit: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
        doc="Unità di misura",
    )

    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Prezzo unitario",
    )

    contract_qty: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Quantità a contratto (informativa)",
    )

    precedent_qty: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Quantità cumulata dei SAL precedenti",
    )

    current_qty: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Quantità del periodo",
    )

    total_qty: Mapped[Decimal] = mapped_column(
        Numeric(14, QTY_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Quantità totale (derivata)",
    )

    precedent_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, AMOUNT_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Importo cumulato dei SAL precedenti",
    )

    current_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, AMOUNT_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Importo del periodo (derivato)",
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, AMOUNT_SCALE),
        nullable=False,
        default=Decimal("0"),
        doc="Importo totale (derivato)",
    )


# ------------------------------------------------------------
# Event Listeners
# ------------------------------------------------------------
@event.listens_for(Session, "before_flush")
def update_timestamp(session: Session, flush_context, instances) -> None:
    """
    Event listener per aggiornare automaticamente il campo updated_at.

    Aggiorna updated_at di tutti gli oggetti modificati (dirty) e nuovi (new)
    che dispongono del campo.
    """
    now = datetime.datetime.now(datetime.timezone.utc)

    for obj in session.dirty:
        if hasattr(obj, "updated_at"):
            if session.is_modified(obj, include_collections=False):
                obj.updated_at = now

    for obj in session.new:
        if hasattr(obj, "updated_at"):
            obj.updated_at = now
