"""
Unit tests for the line calculator.

Funzioni pure: nessun database.
"""

import math
from decimal import Decimal

import pytest

from cantieri.core.exceptions import BusinessValidationError
from cantieri.services.line_calculator import (
    MAX_AMOUNT,
    LineKind,
    coerce_number,
    compute_line,
    ensure_within,
    round2,
    to_quantity,
)


# ============================================================
# Tests for number normalization
# ============================================================


class TestCoerceNumber:
    """Tests for coerce_number."""

    def test_italian_thousands_and_decimal_comma(self):
        """Test stringa con spazio delle migliaia e virgola decimale."""
        assert coerce_number("1 234,50") == Decimal("1234.50")

    def test_non_breaking_spaces_and_slashes(self):
        """Test rimozione di spazi non separabili e barre."""
        assert coerce_number("1\u00a0234\u202f567,5") == Decimal("1234567.5")
        assert coerce_number("12/500") == Decimal("12500")

    def test_only_first_comma_is_decimal_separator(self):
        """Test solo la prima virgola diventa separatore decimale."""
        assert coerce_number("1,5,3") == Decimal("1.5")

    def test_leading_numeric_prefix(self):
        """Test lettura del prefisso numerico più lungo."""
        assert coerce_number("12abc") == Decimal("12")
        assert coerce_number("-3.5 m²") == Decimal("-3.5")
        assert coerce_number(".5") == Decimal("0.5")

    @pytest.mark.parametrize("value", [None, "", "   ", "abc", "-", True, False, object()])
    def test_unparseable_values_are_zero(self, value):
        """Test valori non interpretabili valgono zero."""
        assert coerce_number(value) == Decimal("0")

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan, Decimal("NaN"), Decimal("Infinity")])
    def test_non_finite_values_are_zero(self, value):
        """Test valori non finiti valgono zero."""
        assert coerce_number(value) == Decimal("0")

    def test_numbers_pass_through(self):
        """Test numeri nativi."""
        assert coerce_number(7) == Decimal("7")
        assert coerce_number(0.1) == Decimal("0.1")
        assert coerce_number(Decimal("2.25")) == Decimal("2.25")


class TestRounding:
    """Tests for round2 and to_quantity."""

    def test_round_half_up(self):
        """Test arrotondamento a 2 decimali mezzo in su."""
        assert round2(Decimal("2.345")) == Decimal("2.35")
        assert round2(Decimal("2.344")) == Decimal("2.34")

    def test_round_half_away_from_zero_for_negatives(self):
        """Test i negativi arrotondano lontano da zero."""
        assert round2(Decimal("-2.345")) == Decimal("-2.35")

    def test_round_absent_value(self):
        """Test valore assente vale zero."""
        assert round2(None) == Decimal("0.00")

    def test_quantity_precision(self):
        """Test quantità normalizzate a 4 decimali."""
        assert to_quantity("1,23456") == Decimal("1.2346")
        assert str(to_quantity(3)) == "3.0000"


# ============================================================
# Tests for line kinds
# ============================================================


class TestLineKind:
    """Tests for LineKind."""

    @pytest.mark.parametrize(
        "code,expected",
        [
            ("QP", LineKind.STANDARD),
            ("TITRE", LineKind.TITLE),
            ("SOUS_TITRE", LineKind.SUBTITLE),
            ("title", LineKind.TITLE),
            ("SUBTITLE", LineKind.SUBTITLE),
        ],
    )
    def test_codes(self, code, expected):
        """Test codici attuali e storici."""
        assert LineKind(code) is expected

    def test_unknown_code(self):
        """Test codice sconosciuto."""
        with pytest.raises(ValueError):
            LineKind("TOTALE")

    def test_heading(self):
        """Test intestazioni."""
        assert LineKind.TITLE.is_heading
        assert LineKind.SUBTITLE.is_heading
        assert not LineKind.STANDARD.is_heading


# ============================================================
# Tests for line computation
# ============================================================


class TestComputeLine:
    """Tests for compute_line."""

    def test_first_period(self):
        """Test primo periodo: 4 unità a 100,00."""
        figures = compute_line(0, 4, 100)

        assert figures.total_qty == Decimal("4")
        assert figures.current_amount == Decimal("400.00")
        assert figures.precedent_amount == Decimal("0.00")
        assert figures.total_amount == Decimal("400.00")

    def test_cumulative_period(self):
        """Test secondo periodo: 4 precedenti + 6 del periodo."""
        figures = compute_line(4, 6, 100)

        assert figures.total_qty == Decimal("10")
        assert figures.precedent_amount == Decimal("400.00")
        assert figures.current_amount == Decimal("600.00")
        assert figures.total_amount == Decimal("1000.00")

    def test_total_quantity_is_exact_sum(self):
        """Test quantità totale somma esatta, senza arrotondamento a 2 decimali."""
        figures = compute_line("0,3333", "0,3334", "1")

        assert figures.total_qty == Decimal("0.6667")

    def test_current_amount_rounded(self):
        """Test importo del periodo arrotondato."""
        figures = compute_line(0, "3", "0,335")

        assert figures.current_amount == Decimal("1.01")

    def test_explicit_precedent_amount_is_kept(self):
        """Test importo precedente inserito a mano prevale sul calcolo."""
        figures = compute_line(4, 1, 100, precedent_amount="395,555")

        assert figures.precedent_amount == Decimal("395.56")
        assert figures.total_amount == Decimal("495.56")

    def test_negative_current_quantity(self):
        """Test quantità negative ammesse per rettifiche."""
        figures = compute_line(10, -2, 100)

        assert figures.total_qty == Decimal("8")
        assert figures.current_amount == Decimal("-200.00")
        assert figures.total_amount == Decimal("800.00")

    @pytest.mark.parametrize("kind", [LineKind.TITLE, LineKind.SUBTITLE, "TITRE", "SOUS_TITRE"])
    def test_heading_rows_are_zero(self, kind):
        """Test intestazioni sempre a zero anche con valori in ingresso."""
        figures = compute_line(5, 3, 100, kind=kind, precedent_amount=999)

        assert figures.unit_price == Decimal("0")
        assert figures.total_qty == Decimal("0")
        assert figures.precedent_amount == Decimal("0")
        assert figures.current_amount == Decimal("0")
        assert figures.total_amount == Decimal("0")

    def test_string_inputs(self):
        """Test ingressi come stringhe in formato italiano."""
        figures = compute_line("", "2", "1 234,50")

        assert figures.unit_price == Decimal("1234.50")
        assert figures.current_amount == Decimal("2469.00")


class TestColumnScale:
    """Tests for values outside the storage scale."""

    def test_quantize_overflow_is_validation_error(self):
        """Test valore oltre la precisione decimale: errore di validazione."""
        with pytest.raises(BusinessValidationError):
            to_quantity("1e30")
        with pytest.raises(BusinessValidationError):
            round2(10**40)

    def test_unit_price_over_column_limit(self):
        """Test prezzo unitario oltre la scala della colonna."""
        with pytest.raises(BusinessValidationError) as exc_info:
            compute_line(0, 1, "1e30")

        assert exc_info.value.status_code == 422

    def test_amount_over_column_limit(self):
        """Test importo derivato oltre la scala della colonna."""
        with pytest.raises(BusinessValidationError) as exc_info:
            compute_line(0, "1000000", "10000000")

        assert exc_info.value.extra["field"] == "current_amount"

    def test_largest_storable_values(self):
        """Test valori al limite della scala accettati."""
        figures = compute_line(0, "9999999999,9999", "1")

        assert figures.current_qty == Decimal("9999999999.9999")
        assert ensure_within(Decimal("-9999.99"), MAX_AMOUNT, "total_amount") == Decimal("-9999.99")
