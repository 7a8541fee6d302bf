"""
Unit tests for the statement totals aggregator.
"""

from decimal import Decimal
from types import SimpleNamespace

from cantieri.services.totals_aggregator import aggregate, subtotal


def _row(precedent, current, total):
    return {
        "precedent_amount": Decimal(precedent),
        "current_amount": Decimal(current),
        "total_amount": Decimal(total),
    }


class TestSubtotal:
    """Tests for subtotal."""

    def test_empty(self):
        """Test nessuna riga."""
        result = subtotal([])

        assert result.precedent == Decimal("0")
        assert result.current == Decimal("0")
        assert result.total == Decimal("0")

    def test_sum_of_rounded_amounts(self):
        """Test somma degli importi di riga già arrotondati."""
        result = subtotal([_row("400.00", "600.00", "1000.00"), _row("0.10", "0.20", "0.30")])

        assert result.precedent == Decimal("400.10")
        assert result.current == Decimal("600.20")
        assert result.total == Decimal("1000.30")

    def test_objects_with_attributes(self):
        """Test righe come oggetti (ORM o schemi)."""
        rows = [
            SimpleNamespace(precedent_amount=Decimal("1.00"), current_amount=Decimal("2.00"), total_amount=Decimal("3.00")),
            SimpleNamespace(precedent_amount=None, current_amount=Decimal("5.00"), total_amount=Decimal("5.00")),
        ]

        result = subtotal(rows)

        assert result.precedent == Decimal("1.00")
        assert result.current == Decimal("7.00")
        assert result.total == Decimal("8.00")


class TestAggregate:
    """Tests for aggregate."""

    def test_grand_total_is_lines_plus_amendments(self):
        """Test totale generale = righe + varianti per ciascuna colonna."""
        totals = aggregate(
            [_row("400.00", "600.00", "1000.00"), _row("0", "0", "0")],
            [_row("50.00", "25.50", "75.50")],
        )

        assert totals.lines.total == Decimal("1000.00")
        assert totals.amendments.current == Decimal("25.50")
        assert totals.grand.precedent == Decimal("450.00")
        assert totals.grand.current == Decimal("625.50")
        assert totals.grand.total == Decimal("1075.50")

    def test_without_amendments(self):
        """Test SAL senza varianti."""
        totals = aggregate([_row("1.00", "1.00", "2.00")])

        assert totals.amendments.total == Decimal("0")
        assert totals.grand == totals.lines
