"""
Tests for DualTrackCoordinator and SubcontractorStatementService.
"""

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from cantieri.core.config import Settings
from cantieri.core.exceptions import ConflictError, NotFoundError
from cantieri.models import ProgressStatement
from cantieri.schemas.progress_statement import (
    LineUpdate,
    ProgressStatementCreate,
    SubcontractorStatementCreate,
)
from cantieri.services.dual_track_coordinator import DualTrackCoordinator
from cantieri.services.progress_statement_service import StatementScope


@pytest.fixture
def coordinator():
    return DualTrackCoordinator(Settings())


async def _client_statement_count(db, site_id):
    result = await db.execute(
        select(func.count()).select_from(ProgressStatement).where(ProgressStatement.site_id == site_id)
    )
    return result.scalar_one()


class TestClientAnchor:
    """Tests for ensure_client_anchor."""

    async def test_anchor_created_once(self, coordinator, db, site_data):
        """Test il primo SAL subappaltatore crea un solo SAL cliente n. 1."""
        statement = await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )
        await db.commit()

        assert await _client_statement_count(db, site_data.site.id) == 1
        anchor = await coordinator.client_service.get(db, StatementScope(site_data.site.id), 1)
        assert statement.anchor_statement_id == anchor.id
        assert anchor.finalized is False
        assert anchor.comments == Settings().anchor_statement_comment
        assert len(anchor.lines) == 2
        assert all(line.current_qty == Decimal("0") for line in anchor.lines)

        await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )
        await db.commit()

        assert await _client_statement_count(db, site_data.site.id) == 1

    async def test_anchor_is_latest_client_statement(self, coordinator, db, site_data):
        """Test il SAL subappaltatore si aggancia all'ultimo SAL cliente."""
        client_service = coordinator.client_service
        await client_service.create(db, site_data.site, ProgressStatementCreate())
        latest = await client_service.create(db, site_data.site, ProgressStatementCreate())

        statement = await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )

        assert statement.anchor_statement_id == latest.id
        assert await _client_statement_count(db, site_data.site.id) == 2

    async def test_anchor_cannot_be_deleted(self, coordinator, db, site_data):
        """Test un SAL cliente usato come ancora non può essere eliminato."""
        await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )
        await db.commit()

        with pytest.raises(ConflictError):
            await coordinator.client_service.delete(db, StatementScope(site_data.site.id), 1)


class TestSubcontractorStatements:
    """Tests for subcontractor statement creation and lifecycle."""

    async def test_lines_cloned_from_subcontract_order(self, coordinator, db, site_data):
        """Test righe clonate dall'ordine di subappalto con quantità a zero."""
        statement = await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate(comments="Primo")
        )

        assert statement.sequence_number == 1
        assert statement.subcontract_order_id == site_data.subcontract_order.id
        assert statement.comments == "Primo"
        assert len(statement.lines) == 1
        line = statement.lines[0]
        assert line.unit_price == Decimal("50")
        assert line.contract_qty == Decimal("20")
        assert line.total_amount == Decimal("0")

    async def test_numbering_per_subcontractor_and_site(self, coordinator, db, site_data):
        """Test numerazione per coppia (subappaltatore, cantiere)."""
        first = await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )
        second = await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )

        assert (first.sequence_number, second.sequence_number) == (1, 2)

    async def test_unknown_subcontractor(self, coordinator, db, site_data):
        """Test subappaltatore inesistente."""
        with pytest.raises(NotFoundError):
            await coordinator.create_subcontractor_statement(
                db, site_data.site, uuid.uuid4(), SubcontractorStatementCreate()
            )
        assert await _client_statement_count(db, site_data.site.id) == 0

    async def test_subcontractor_without_order(self, coordinator, db, site_data):
        """Test subappaltatore senza ordine di subappalto sul cantiere."""
        with pytest.raises(NotFoundError):
            await coordinator.create_subcontractor_statement(
                db, site_data.site, site_data.idle_subcontractor.id, SubcontractorStatementCreate()
            )

    async def test_mismatched_subcontract_order(self, coordinator, db, site_data):
        """Test ordine di subappalto richiesto che non corrisponde."""
        with pytest.raises(NotFoundError):
            await coordinator.create_subcontractor_statement(
                db,
                site_data.site,
                site_data.subcontractor.id,
                SubcontractorStatementCreate(subcontract_order_id=uuid.uuid4()),
            )

    async def test_lifecycle(self, coordinator, db, site_data):
        """Test righe, finalizzazione ed eliminazione dell'ultimo SAL subappaltatore."""
        service = coordinator.subcontractor_service
        scope = StatementScope(site_data.site.id, site_data.subcontractor.id)
        statement = await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )
        line = statement.lines[0]

        row, _ = await service.update_line(db, scope, 1, line.id, LineUpdate(current_qty="3"))
        assert row.current_amount == Decimal("150.00")

        await service.finalize(db, scope, 1)
        with pytest.raises(ConflictError):
            await service.update_line(db, scope, 1, line.id, LineUpdate(current_qty="4"))

        await coordinator.create_subcontractor_statement(
            db, site_data.site, site_data.subcontractor.id, SubcontractorStatementCreate()
        )
        with pytest.raises(ConflictError):
            await service.delete(db, scope, 1)

        await service.delete(db, scope, 2)
        statements, total = await service.list(db, scope)
        assert total == 1
