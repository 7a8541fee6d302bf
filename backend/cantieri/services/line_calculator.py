"""
Calcolo importi delle righe SAL
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Funzioni pure (nessun accesso al database) per:
- normalizzare i numeri in ingresso (numeri o stringhe in formato italiano)
- arrotondare gli importi a 2 decimali (ROUND_HALF_UP)
- ricalcolare i campi derivati di una riga o variante

Regole:
    total_qty      = precedent_qty + current_qty   (esatta, 4 decimali)
    current_amount = round2(current_qty * unit_price)
    total_amount   = round2(precedent_amount + current_amount)

Le righe di tipo TITLE / SUBTITLE sono intestazioni: quantità, prezzo e
importi sono sempre zero.
"""

import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

from cantieri.core.exceptions import BusinessValidationError

ZERO = Decimal("0")
CENT = Decimal("0.01")
QUANTITY_STEP = Decimal("0.0001")

# Limiti (esclusi) delle colonne Numeric(14, 4) e Numeric(14, 2)
MAX_QUANTITY = Decimal("1e10")
MAX_AMOUNT = Decimal("1e12")

# Spazi (anche non separabili) e separatori delle migliaia "/"
_NOISE_RE = re.compile(r"[\s/]+")
# Prefisso numerico più lungo: "12abc" -> "12", "3.5e2x" -> "3.5e2"
_NUMBER_PREFIX_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


# -------------------------------------------------------------------
# Tipi di riga
# -------------------------------------------------------------------

class LineKind(str, Enum):
    """Tipo di riga SAL: voce a quantità oppure intestazione."""
    STANDARD = "STANDARD"
    TITLE = "TITLE"
    SUBTITLE = "SUBTITLE"

    @classmethod
    def _missing_(cls, value: object) -> Optional["LineKind"]:
        # Codici storici dei capitolati importati
        if isinstance(value, str):
            code = value.strip().upper()
            legacy = {"QP": cls.STANDARD, "TITRE": cls.TITLE, "SOUS_TITRE": cls.SUBTITLE}
            if code in legacy:
                return legacy[code]
            for member in cls:
                if member.value == code:
                    return member
        return None

    @property
    def is_heading(self) -> bool:
        """True per le righe di intestazione (TITLE, SUBTITLE)."""
        return self is not LineKind.STANDARD


# -------------------------------------------------------------------
# Normalizzazione numeri
# -------------------------------------------------------------------

def coerce_number(value: Any) -> Decimal:
    """
    Converte un valore in ingresso in Decimal.

    Accetta numeri o stringhe: dalle stringhe vengono rimossi spazi e "/",
    la prima virgola diventa il separatore decimale e si legge il prefisso
    numerico più lungo. Tutto ciò che non è interpretabile vale zero.

    Examples:
        >>> coerce_number("1 234,50")
        Decimal('1234.50')
        >>> coerce_number("12abc")
        Decimal('12')
        >>> coerce_number(None)
        Decimal('0')
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        return Decimal(repr(value))

    if isinstance(value, str):
        cleaned = _NOISE_RE.sub("", value).replace(",", ".", 1)
        match = _NUMBER_PREFIX_RE.match(cleaned)
        if match is None:
            return ZERO
        try:
            number = Decimal(match.group(0))
        except InvalidOperation:
            return ZERO
        return number if number.is_finite() else ZERO

    return ZERO


def _quantize(value: Any, step: Decimal) -> Decimal:
    number = coerce_number(value)
    try:
        return number.quantize(step, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise BusinessValidationError(
            f"Valore numerico fuori scala: {number}",
            extra={"value": str(number)},
        ) from e


def round2(value: Any) -> Decimal:
    """Arrotonda un importo a 2 decimali (mezzo in su, lontano da zero)."""
    return _quantize(value, CENT)


def to_quantity(value: Any) -> Decimal:
    """Normalizza quantità e prezzi alla precisione di memorizzazione (4 decimali)."""
    return _quantize(value, QUANTITY_STEP)


def ensure_within(value: Decimal, limit: Decimal, field: str) -> Decimal:
    """
    Verifica che un valore sia memorizzabile nella colonna corrispondente.

    Raises:
        BusinessValidationError: Se |value| >= limit
    """
    if abs(value) >= limit:
        raise BusinessValidationError(
            f"Valore fuori scala per il campo '{field}': {value}",
            extra={"field": field, "value": str(value)},
        )
    return value


# -------------------------------------------------------------------
# Calcolo riga
# -------------------------------------------------------------------

@dataclass(frozen=True)
class LineFigures:
    """Valori numerici normalizzati e derivati di una riga SAL."""
    unit_price: Decimal
    precedent_qty: Decimal
    current_qty: Decimal
    total_qty: Decimal
    precedent_amount: Decimal
    current_amount: Decimal
    total_amount: Decimal

    @classmethod
    def zero(cls) -> "LineFigures":
        """Valori di una riga di intestazione."""
        return cls(
            unit_price=to_quantity(ZERO),
            precedent_qty=to_quantity(ZERO),
            current_qty=to_quantity(ZERO),
            total_qty=to_quantity(ZERO),
            precedent_amount=round2(ZERO),
            current_amount=round2(ZERO),
            total_amount=round2(ZERO),
        )

    def as_dict(self) -> dict[str, Decimal]:
        return {
            "unit_price": self.unit_price,
            "precedent_qty": self.precedent_qty,
            "current_qty": self.current_qty,
            "total_qty": self.total_qty,
            "precedent_amount": self.precedent_amount,
            "current_amount": self.current_amount,
            "total_amount": self.total_amount,
        }


def compute_line(
    precedent_qty: Any,
    current_qty: Any,
    unit_price: Any,
    kind: Union[LineKind, str] = LineKind.STANDARD,
    precedent_amount: Any = None,
) -> LineFigures:
    """
    Ricalcola i campi derivati di una riga o variante.

    Args:
        precedent_qty: Quantità cumulata dei SAL precedenti
        current_qty: Quantità del periodo (anche negativa, per rettifiche)
        unit_price: Prezzo unitario
        kind: Tipo di riga; le intestazioni restituiscono tutti zeri
        precedent_amount: Importo precedente inserito a mano o riportato;
            se None viene calcolato come round2(precedent_qty * unit_price)

    Returns:
        LineFigures: valori normalizzati e derivati

    Raises:
        ValueError: Se il tipo di riga non è riconosciuto
        BusinessValidationError: Se un valore supera la scala delle colonne
    """
    if LineKind(kind).is_heading:
        return LineFigures.zero()

    precedent = to_quantity(precedent_qty)
    current = to_quantity(current_qty)
    price = to_quantity(unit_price)

    if precedent_amount is None:
        precedent_value = round2(precedent * price)
    else:
        precedent_value = round2(precedent_amount)

    current_value = round2(current * price)

    figures = LineFigures(
        unit_price=price,
        precedent_qty=precedent,
        current_qty=current,
        total_qty=precedent + current,
        precedent_amount=precedent_value,
        current_amount=current_value,
        total_amount=round2(precedent_value + current_value),
    )
    for field, value in figures.as_dict().items():
        limit = MAX_AMOUNT if field.endswith("_amount") else MAX_QUANTITY
        ensure_within(value, limit, field)
    return figures
