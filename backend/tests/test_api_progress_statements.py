"""
HTTP tests for the SAL routers (client track, subcontractor track, reports).
"""

import uuid

import pytest

SITE = "CH-2025-001"
BASE_URL = f"/api/v1/sites/{SITE}/progress-statements"


def _standard_line(body):
    return next(line for line in body["lines"] if line["kind"] == "STANDARD")


@pytest.fixture
def sub_url(site_data):
    return f"/api/v1/sites/{SITE}/subcontractors/{site_data.subcontractor.id}/progress-statements"


class TestHealth:
    """Tests for /health."""

    async def test_health(self, client):
        """Test stato dell'applicazione."""
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestClientStatementsApi:
    """Tests for /sites/{site_code}/progress-statements."""

    async def test_create_and_read(self, client, site_data):
        """Test creazione SAL e lettura con righe e totali."""
        response = await client.post(f"{BASE_URL}/", json={"billing_month": "Marzo 2025"})

        assert response.status_code == 201
        body = response.json()
        assert body["sequence_number"] == 1
        assert body["status"] == "draft"
        assert body["billing_month"] == "Marzo 2025"
        line = _standard_line(body)
        assert line["unit_price"] == 100.0
        assert line["contract_qty"] == 10.0
        assert line["current_qty"] == 0.0
        assert body["totals"]["grand"] == {"precedent": 0.0, "current": 0.0, "total": 0.0}

        response = await client.get(f"{BASE_URL}/1")
        assert response.status_code == 200
        assert response.json()["id"] == body["id"]

    async def test_unknown_site(self, client, site_data):
        """Test cantiere inesistente."""
        response = await client.get("/api/v1/sites/NOPE/progress-statements/")

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_NOT_FOUND"

    async def test_progress_scenario(self, client, site_data):
        """Test scenario di avanzamento su una riga e totali ricalcolati."""
        body = (await client.post(f"{BASE_URL}/", json={})).json()
        line_id = _standard_line(body)["id"]

        response = await client.put(f"{BASE_URL}/1/lines/{line_id}", json={"current_qty": 4})
        assert response.status_code == 200
        row = response.json()["row"]
        assert row["current_amount"] == 400.0
        assert row["total_amount"] == 400.0
        assert row["total_qty"] == 4.0

        response = await client.put(
            f"{BASE_URL}/1/lines/{line_id}", json={"precedent_qty": "4", "current_qty": "6"}
        )
        payload = response.json()
        assert payload["row"]["total_qty"] == 10.0
        assert payload["row"]["current_amount"] == 600.0
        assert payload["row"]["total_amount"] == 1000.0
        assert payload["totals"]["lines"] == {"precedent": 400.0, "current": 600.0, "total": 1000.0}
        assert payload["totals"]["grand"]["total"] == 1000.0

    async def test_italian_number_input(self, client, site_data):
        """Test prezzo in formato italiano con separatore delle migliaia."""
        body = (await client.post(f"{BASE_URL}/", json={})).json()
        line_id = _standard_line(body)["id"]

        response = await client.put(
            f"{BASE_URL}/1/lines/{line_id}", json={"unit_price": "1 234,50", "current_qty": "2"}
        )

        assert response.status_code == 200
        assert response.json()["row"]["unit_price"] == 1234.5
        assert response.json()["row"]["current_amount"] == 2469.0

    async def test_unknown_line_kind(self, client, site_data):
        """Test tipo di riga non valido."""
        await client.post(f"{BASE_URL}/", json={})

        response = await client.post(f"{BASE_URL}/1/lines", json={"kind": "TOTALE"})

        assert response.status_code == 422

    async def test_values_outside_column_scale(self, client, site_data):
        """Test valori fuori scala rifiutati con 422, SAL invariato."""
        body = (await client.post(f"{BASE_URL}/", json={})).json()
        line_id = _standard_line(body)["id"]

        response = await client.post(f"{BASE_URL}/1/lines", json={"unit_price": 1e30, "current_qty": 1})
        assert response.status_code == 422
        assert response.json()["error_code"] == "BUSINESS_VALIDATION_ERROR"

        response = await client.put(
            f"{BASE_URL}/1/lines/{line_id}", json={"unit_price": "10000000", "current_qty": "1000000"}
        )
        assert response.status_code == 422

        body = (await client.get(f"{BASE_URL}/1")).json()
        assert len(body["lines"]) == 2
        assert _standard_line(body)["unit_price"] == 100.0

    async def test_finalized_statement_rejects_row_changes(self, client, site_data):
        """Test righe bloccate dopo la finalizzazione, valori invariati."""
        body = (await client.post(f"{BASE_URL}/", json={})).json()
        line_id = _standard_line(body)["id"]
        await client.put(f"{BASE_URL}/1/lines/{line_id}", json={"current_qty": 4})

        response = await client.post(f"{BASE_URL}/1/finalize")
        assert response.status_code == 200
        assert response.json()["status"] == "finalized"

        response = await client.put(f"{BASE_URL}/1/lines/{line_id}", json={"current_qty": 9})
        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT_STATE"

        response = await client.post(f"{BASE_URL}/1/amendments", json={"description": "Extra"})
        assert response.status_code == 409

        body = (await client.get(f"{BASE_URL}/1")).json()
        assert _standard_line(body)["current_qty"] == 4.0

    async def test_patch_meta_and_finalize_flag(self, client, site_data):
        """Test aggiornamento dati e finalizzazione tramite PATCH."""
        await client.post(f"{BASE_URL}/", json={})

        response = await client.patch(f"{BASE_URL}/1", json={"comments": "Verificato", "finalized": True})
        assert response.status_code == 200
        assert response.json()["finalized"] is True
        assert response.json()["comments"] == "Verificato"

        response = await client.patch(f"{BASE_URL}/1", json={"billing_month": "Aprile 2025"})
        assert response.status_code == 200

        response = await client.patch(f"{BASE_URL}/1", json={"finalized": False})
        assert response.status_code == 409

        response = await client.patch(f"{BASE_URL}/1", json={})
        assert response.status_code == 422

    async def test_reopen_tail_only(self, client, site_data):
        """Test riapertura consentita solo sull'ultimo SAL."""
        await client.post(f"{BASE_URL}/", json={})
        await client.post(f"{BASE_URL}/1/finalize")
        await client.post(f"{BASE_URL}/", json={})

        response = await client.post(f"{BASE_URL}/1/reopen")
        assert response.status_code == 409

        await client.post(f"{BASE_URL}/2/finalize")
        response = await client.post(f"{BASE_URL}/2/reopen")
        assert response.status_code == 200
        assert response.json()["status"] == "draft"

    async def test_delete_tail_only(self, client, site_data):
        """Test eliminazione consentita solo sull'ultimo SAL."""
        await client.post(f"{BASE_URL}/", json={})
        second = (await client.post(f"{BASE_URL}/", json={})).json()
        assert second["sequence_number"] == 2

        response = await client.delete(f"{BASE_URL}/1")
        assert response.status_code == 409

        response = await client.delete(f"{BASE_URL}/2")
        assert response.status_code == 204

        listing = (await client.get(f"{BASE_URL}/")).json()
        assert listing["total"] == 1
        assert [s["sequence_number"] for s in listing["items"]] == [1]

    async def test_amendments(self, client, site_data):
        """Test varianti: numerazione, totali e eliminazione."""
        await client.post(f"{BASE_URL}/", json={})

        response = await client.post(
            f"{BASE_URL}/1/amendments",
            json={"description": "Maggiore spessore", "unit_price": "12,5", "current_qty": 3},
        )
        assert response.status_code == 201
        payload = response.json()
        assert payload["row"]["number"] == 1
        assert payload["row"]["current_amount"] == 37.5
        assert payload["totals"]["amendments"]["current"] == 37.5
        assert payload["totals"]["grand"]["current"] == 37.5

        amendment_id = payload["row"]["id"]
        response = await client.put(f"{BASE_URL}/1/amendments/{amendment_id}", json={"current_qty": 4})
        assert response.json()["row"]["total_amount"] == 50.0

        response = await client.delete(f"{BASE_URL}/1/amendments/{amendment_id}")
        assert response.status_code == 200
        assert response.json()["amendments"] == []

        response = await client.delete(f"{BASE_URL}/1/amendments/{uuid.uuid4()}")
        assert response.status_code == 404

    async def test_add_and_delete_line(self, client, site_data):
        """Test aggiunta ed eliminazione di una riga."""
        await client.post(f"{BASE_URL}/", json={})

        response = await client.post(
            f"{BASE_URL}/1/lines", json={"description": "Ponteggio", "unit_price": 20, "current_qty": 5}
        )
        assert response.status_code == 201
        line_id = response.json()["row"]["id"]
        assert response.json()["totals"]["lines"]["current"] == 100.0

        response = await client.delete(f"{BASE_URL}/1/lines/{line_id}")
        assert response.status_code == 200
        assert len(response.json()["lines"]) == 2


class TestSubcontractorStatementsApi:
    """Tests for /sites/{site_code}/subcontractors/{id}/progress-statements."""

    async def test_first_statement_creates_anchor(self, client, site_data, sub_url):
        """Test primo SAL subappaltatore con creazione del SAL cliente n. 1."""
        response = await client.post(f"{sub_url}/", json={})

        assert response.status_code == 201
        body = response.json()
        assert body["sequence_number"] == 1
        assert body["subcontractor_id"] == str(site_data.subcontractor.id)

        client_list = (await client.get(f"{BASE_URL}/")).json()
        assert client_list["total"] == 1
        assert client_list["items"][0]["id"] == body["anchor_statement_id"]

        response = await client.delete(f"{BASE_URL}/1")
        assert response.status_code == 409

    async def test_unknown_subcontractor(self, client, site_data):
        """Test subappaltatore inesistente."""
        response = await client.post(
            f"/api/v1/sites/{SITE}/subcontractors/{uuid.uuid4()}/progress-statements/", json={}
        )

        assert response.status_code == 404

    async def test_rows_and_state(self, client, site_data, sub_url):
        """Test righe e finalizzazione del SAL subappaltatore."""
        body = (await client.post(f"{sub_url}/", json={})).json()
        line_id = body["lines"][0]["id"]

        response = await client.put(f"{sub_url}/1/lines/{line_id}", json={"current_qty": 3})
        assert response.json()["row"]["current_amount"] == 150.0

        response = await client.post(f"{sub_url}/1/finalize")
        assert response.json()["status"] == "finalized"

        response = await client.put(f"{sub_url}/1/lines/{line_id}", json={"current_qty": 4})
        assert response.status_code == 409

        response = await client.post(f"{sub_url}/1/reopen")
        assert response.status_code == 200

        listing = (await client.get(f"{sub_url}/")).json()
        assert listing["total"] == 1


class TestReportsApi:
    """Tests for /reports/progress-statements."""

    async def test_summary(self, client, site_data):
        """Test riepilogo con filtri per periodo e stato."""
        body = (await client.post(f"{BASE_URL}/", json={"billing_month": "Marzo 2025"})).json()
        line_id = _standard_line(body)["id"]
        await client.put(f"{BASE_URL}/1/lines/{line_id}", json={"current_qty": 4})
        await client.post(f"{BASE_URL}/1/amendments", json={"unit_price": 10, "current_qty": 2})
        await client.post(f"{BASE_URL}/1/finalize")
        await client.post(f"{BASE_URL}/", json={"billing_month": "Aprile 2025"})

        response = await client.get(
            "/api/v1/reports/progress-statements", params={"billing_month": "Marzo 2025"}
        )

        assert response.status_code == 200
        summary = response.json()
        assert summary["total"] == 1
        assert summary["items"][0]["lines_amount"] == 400.0
        assert summary["items"][0]["amendments_amount"] == 20.0
        assert summary["items"][0]["total_amount"] == 420.0
        assert summary["items"][0]["status"] == "finalized"
        assert summary["total_amount"] == 420.0

        response = await client.get("/api/v1/reports/progress-statements", params={"status": "draft"})
        assert response.json()["total"] == 1
