"""
Schemas Pydantic per gli Stati Avanzamento Lavori (SAL)
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Definisce gli schemi di validazione e serializzazione per l'API.

I valori numerici in ingresso accettano numeri o stringhe ("1 234,50"),
normalizzati con coerce_number. In uscita quantità e importi sono
serializzati come numeri JSON.
"""

import datetime
import uuid
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    field_validator,
)

from cantieri.services.line_calculator import LineKind, coerce_number
from cantieri.services.totals_aggregator import aggregate

# Decimal serializzato come numero JSON
Number = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

_ROW_NUMBER_FIELDS = (
    "unit_price",
    "contract_qty",
    "precedent_qty",
    "current_qty",
    "precedent_amount",
)


# -------------------------------------------------------------------
# Enum per gli stati del SAL
# -------------------------------------------------------------------

class StatementStatus(str, Enum):
    """Enum che definisce i possibili stati di un SAL."""
    DRAFT = "draft"
    FINALIZED = "finalized"

    @classmethod
    def of(cls, finalized: bool) -> "StatementStatus":
        return cls.FINALIZED if finalized else cls.DRAFT


# -------------------------------------------------------------------
# Matrice delle transizioni di stato valide
# -------------------------------------------------------------------

# La riapertura (FINALIZED -> DRAFT) è consentita solo per l'ultimo SAL
# del suo ambito: il vincolo è verificato nel service layer.
VALID_TRANSITIONS: dict[StatementStatus, list[StatementStatus]] = {
    StatementStatus.DRAFT: [StatementStatus.FINALIZED],
    StatementStatus.FINALIZED: [StatementStatus.DRAFT],
}


# -------------------------------------------------------------------
# Funzioni di validazione standalone
# -------------------------------------------------------------------

def normalize_optional_number(v: Any) -> Optional[Decimal]:
    """
    Normalizza un campo numerico opzionale.

    None resta None (campo non fornito), qualsiasi altro valore passa
    da coerce_number.
    """
    if v is None:
        return None
    return coerce_number(v)


def normalize_text(v: Optional[str]) -> Optional[str]:
    """Rimuove gli spazi iniziali e finali dai campi di testo."""
    if v is not None:
        v = v.strip()
    return v


# -------------------------------------------------------------------
# Schemas per righe e varianti
# -------------------------------------------------------------------

class LedgerRowBase(BaseModel):
    """
    Schema base per righe e varianti SAL.

    Attributes:
        position: Posizione nel SAL (default: in coda)
        article: Codice articolo / voce di capitolato
        description: Descrizione della voce
        kind: STANDARD, TITLE o SUBTITLE (accettati anche QP, TITRE, SOUS_TITRE)
        unit: Unità di misura
        unit_price: Prezzo unitario
        contract_qty: Quantità a contratto (informativa)
        precedent_qty: Quantità cumulata dei SAL precedenti
        current_qty: Quantità del periodo
        precedent_amount: Importo precedente; se omesso è calcolato dalla quantità
    """
    position: Optional[int] = Field(None, ge=0, description="Posizione nel SAL")
    article: Optional[str] = Field(None, max_length=100, description="Codice articolo")
    description: str = Field(default="", max_length=5000, description="Descrizione della voce")
    kind: LineKind = Field(default=LineKind.STANDARD, description="Tipo di riga")
    unit: Optional[str] = Field(None, max_length=20, description="Unità di misura")
    unit_price: Decimal = Field(default=Decimal("0"), description="Prezzo unitario")
    contract_qty: Decimal = Field(default=Decimal("0"), description="Quantità a contratto")
    precedent_qty: Decimal = Field(default=Decimal("0"), description="Quantità precedente")
    current_qty: Decimal = Field(default=Decimal("0"), description="Quantità del periodo")
    precedent_amount: Optional[Decimal] = Field(None, description="Importo precedente")

    @field_validator("unit_price", "contract_qty", "precedent_qty", "current_qty", mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Decimal:
        """Normalizza numeri e stringhe numeriche."""
        return coerce_number(v)

    @field_validator("precedent_amount", mode="before")
    @classmethod
    def coerce_precedent_amount(cls, v: Any) -> Optional[Decimal]:
        return normalize_optional_number(v)

    @field_validator("article", "description", "unit")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return normalize_text(v)


class LineCreate(LedgerRowBase):
    """Schema per l'aggiunta di una riga a un SAL."""
    line_ref: Optional[uuid.UUID] = Field(None, description="UUID della riga d'ordine di origine")


class AmendmentCreate(LedgerRowBase):
    """Schema per l'aggiunta di una variante a un SAL. Il numero è assegnato dal sistema."""
    pass


class LedgerRowUpdate(BaseModel):
    """
    Schema per l'aggiornamento di una riga o variante.

    Tutti i campi sono opzionali per permettere aggiornamenti parziali.
    I campi derivati (total_qty, current_amount, total_amount) non sono
    accettati: vengono sempre ricalcolati.
    """
    position: Optional[int] = Field(None, ge=0)
    article: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=5000)
    kind: Optional[LineKind] = None
    unit: Optional[str] = Field(None, max_length=20)
    unit_price: Optional[Decimal] = None
    contract_qty: Optional[Decimal] = None
    precedent_qty: Optional[Decimal] = None
    current_qty: Optional[Decimal] = None
    precedent_amount: Optional[Decimal] = None

    @field_validator(*_ROW_NUMBER_FIELDS, mode="before")
    @classmethod
    def coerce_numbers(cls, v: Any) -> Optional[Decimal]:
        """Normalizza numeri e stringhe numeriche (None = campo non modificato)."""
        return normalize_optional_number(v)

    @field_validator("article", "description", "unit")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return normalize_text(v)


class LineUpdate(LedgerRowUpdate):
    """Schema per l'aggiornamento di una riga SAL."""
    pass


class AmendmentUpdate(LedgerRowUpdate):
    """Schema per l'aggiornamento di una variante SAL."""
    pass


class LedgerRowRead(BaseModel):
    """Schema base per la lettura di righe e varianti, con i campi derivati ricalcolati."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    statement_id: uuid.UUID
    position: int
    article: Optional[str]
    description: str
    kind: LineKind
    unit: Optional[str]
    unit_price: Number
    contract_qty: Number
    precedent_qty: Number
    current_qty: Number
    total_qty: Number
    precedent_amount: Number
    current_amount: Number
    total_amount: Number


class LineRead(LedgerRowRead):
    """Schema per la lettura di una riga SAL."""
    line_ref: Optional[uuid.UUID] = None


class AmendmentRead(LedgerRowRead):
    """Schema per la lettura di una variante SAL."""
    number: int


# -------------------------------------------------------------------
# Schemas per i totali
# -------------------------------------------------------------------

class SubtotalRead(BaseModel):
    """Terna di importi precedente / periodo / totale."""
    model_config = ConfigDict(from_attributes=True)

    precedent: Number
    current: Number
    total: Number


class StatementTotalsRead(BaseModel):
    """
    Totali del SAL.

    Attributes:
        lines: Subtotale delle righe
        amendments: Subtotale delle varianti
        grand: Totale generale (righe + varianti)
    """
    model_config = ConfigDict(from_attributes=True)

    lines: SubtotalRead
    amendments: SubtotalRead
    grand: SubtotalRead

    @classmethod
    def from_rows(cls, lines: Any, amendments: Any) -> "StatementTotalsRead":
        """Calcola i totali a partire da righe e varianti."""
        return cls.model_validate(aggregate(lines, amendments))


class LineMutationRead(BaseModel):
    """Risposta alla scrittura di una riga: la riga ricalcolata e i nuovi totali del SAL."""
    row: LineRead
    totals: StatementTotalsRead


class AmendmentMutationRead(BaseModel):
    """Risposta alla scrittura di una variante: la variante ricalcolata e i nuovi totali."""
    row: AmendmentRead
    totals: StatementTotalsRead


# -------------------------------------------------------------------
# Schemas per ProgressStatement (SAL cliente)
# -------------------------------------------------------------------

class StatementMetaUpdate(BaseModel):
    """
    Schema per l'aggiornamento dei dati descrittivi di un SAL.

    Commenti, periodo e data sono sempre modificabili, anche su SAL finalizzati.
    `finalized=true` finalizza il SAL; la riapertura usa l'endpoint dedicato.
    """
    comments: Optional[str] = Field(None, max_length=5000)
    billing_month: Optional[str] = Field(None, max_length=30, description="Periodo (es. 'Marzo 2025')")
    date: Optional[datetime.date] = None
    finalized: Optional[bool] = None

    @field_validator("billing_month", "comments")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return normalize_text(v)


class ProgressStatementCreate(BaseModel):
    """
    Schema per la creazione di un SAL cliente.

    Il numero progressivo è assegnato dal sistema. Le righe sono clonate
    dall'ordine del cliente validato (o dal SAL precedente, se il riporto
    automatico è attivo).
    """
    date: Optional[datetime.date] = Field(None, description="Data del SAL (default: oggi)")
    billing_month: Optional[str] = Field(None, max_length=30, description="Periodo di fatturazione")
    comments: Optional[str] = Field(None, max_length=5000)
    base_order_id: Optional[uuid.UUID] = Field(
        None, description="Ordine del cliente da usare (default: l'ultimo validato del cantiere)"
    )

    @field_validator("billing_month", "comments")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return normalize_text(v)


class StatementReadBase(BaseModel):
    """Campi comuni alla lettura dei SAL cliente e subappaltatore."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    site_id: uuid.UUID
    sequence_number: int
    finalized: bool
    date: datetime.date
    comments: Optional[str]
    version: int
    created_at: datetime.datetime
    updated_at: datetime.datetime

    @computed_field
    @property
    def status(self) -> StatementStatus:
        """Stato del SAL derivato dal flag finalized."""
        return StatementStatus.of(self.finalized)


class ProgressStatementRead(StatementReadBase):
    """
    Schema per la lettura di un SAL cliente.

    Include righe, varianti e i totali ricalcolati.
    """
    base_order_id: Optional[uuid.UUID]
    billing_month: Optional[str]
    lines: list[LineRead] = Field(default_factory=list)
    amendments: list[AmendmentRead] = Field(default_factory=list)

    @computed_field
    @property
    def totals(self) -> StatementTotalsRead:
        """Subtotali di righe e varianti e totale generale."""
        return StatementTotalsRead.from_rows(self.lines, self.amendments)


class ProgressStatementList(BaseModel):
    """Elenco dei SAL cliente di un cantiere (dal più recente)."""
    items: list[ProgressStatementRead]
    total: int


# -------------------------------------------------------------------
# Schemas per SubcontractorProgressStatement (SAL subappaltatore)
# -------------------------------------------------------------------

class SubcontractorStatementCreate(BaseModel):
    """
    Schema per la creazione di un SAL subappaltatore.

    Se il cantiere non ha ancora un SAL cliente, ne viene creato uno
    automaticamente come ancora.
    """
    date: Optional[datetime.date] = Field(None, description="Data del SAL (default: oggi)")
    comments: Optional[str] = Field(None, max_length=5000)
    subcontract_order_id: Optional[uuid.UUID] = Field(
        None, description="Ordine di subappalto da usare (default: l'ultimo del subappaltatore)"
    )

    @field_validator("comments")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return normalize_text(v)


class SubcontractorStatementMetaUpdate(BaseModel):
    """Aggiornamento dei dati descrittivi di un SAL subappaltatore."""
    comments: Optional[str] = Field(None, max_length=5000)
    date: Optional[datetime.date] = None
    finalized: Optional[bool] = None

    @field_validator("comments")
    @classmethod
    def strip_text(cls, v: Optional[str]) -> Optional[str]:
        return normalize_text(v)


class SubcontractorStatementRead(StatementReadBase):
    """Schema per la lettura di un SAL subappaltatore, con righe, varianti e totali."""
    subcontractor_id: uuid.UUID
    subcontract_order_id: Optional[uuid.UUID]
    anchor_statement_id: uuid.UUID
    lines: list[LineRead] = Field(default_factory=list)
    amendments: list[AmendmentRead] = Field(default_factory=list)

    @computed_field
    @property
    def totals(self) -> StatementTotalsRead:
        """Subtotali di righe e varianti e totale generale."""
        return StatementTotalsRead.from_rows(self.lines, self.amendments)


class SubcontractorStatementList(BaseModel):
    """Elenco dei SAL di un subappaltatore su un cantiere (dal più recente)."""
    items: list[SubcontractorStatementRead]
    total: int


# -------------------------------------------------------------------
# Schemas per il riepilogo fatturazione
# -------------------------------------------------------------------

class StatementSummaryRow(BaseModel):
    """
    Riga del riepilogo SAL.

    Attributes:
        lines_amount: Importo del periodo delle righe
        amendments_amount: Importo del periodo delle varianti
        total_amount: Somma dei due importi
    """
    statement_id: uuid.UUID
    site_code: str
    site_name: str
    sequence_number: int
    billing_month: Optional[str]
    date: datetime.date
    status: StatementStatus
    lines_amount: Number
    amendments_amount: Number
    total_amount: Number


class StatementSummary(BaseModel):
    """Riepilogo SAL con il totale complessivo del periodo."""
    items: list[StatementSummaryRow]
    total: int
    total_amount: Number
