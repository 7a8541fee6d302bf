"""
Totali di un SAL
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Somma gli importi (già arrotondati) di righe e varianti e produce
i subtotali e il totale generale del SAL.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from cantieri.services.line_calculator import ZERO, coerce_number, round2


@dataclass(frozen=True)
class Subtotal:
    """Terna precedente / periodo / totale."""
    precedent: Decimal
    current: Decimal
    total: Decimal

    def __add__(self, other: "Subtotal") -> "Subtotal":
        return Subtotal(
            precedent=round2(self.precedent + other.precedent),
            current=round2(self.current + other.current),
            total=round2(self.total + other.total),
        )


@dataclass(frozen=True)
class StatementTotals:
    """Subtotali di righe e varianti e totale generale."""
    lines: Subtotal
    amendments: Subtotal
    grand: Subtotal


def _amount(row: Any, name: str) -> Decimal:
    if isinstance(row, Mapping):
        return coerce_number(row.get(name))
    return coerce_number(getattr(row, name, None))


def subtotal(rows: Iterable[Any]) -> Subtotal:
    """
    Somma gli importi di un insieme di righe.

    Le righe possono essere oggetti ORM, schemi Pydantic o dizionari con
    le chiavi precedent_amount, current_amount, total_amount.
    """
    precedent = current = total = ZERO
    for row in rows:
        precedent += _amount(row, "precedent_amount")
        current += _amount(row, "current_amount")
        total += _amount(row, "total_amount")
    return Subtotal(precedent=round2(precedent), current=round2(current), total=round2(total))


def aggregate(lines: Iterable[Any], amendments: Iterable[Any] = ()) -> StatementTotals:
    """Calcola i totali del SAL: grand = round2(righe + varianti) per ciascuna colonna."""
    lines_total = subtotal(lines)
    amendments_total = subtotal(amendments)
    return StatementTotals(
        lines=lines_total,
        amendments=amendments_total,
        grand=lines_total + amendments_total,
    )
