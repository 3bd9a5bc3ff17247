import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock, patch

from fakes import (
    FakeBookingLedger,
    FakeProviderDirectory,
    FakeServiceCatalog,
    make_booking,
    make_listing,
    make_provider,
)
from provider_match.models.models import ApprovalState
from provider_match.models.settings import MatchingSettings
from provider_match.services.matching import MatchingPipeline

VALID_BODY = {
    "category": {"id": "plumbing", "name": "Plumbing"},
    "date": "2025-07-01",
    "time": "10:00",
    "duration": 120,
    "location": {"area": "Kileleshwa", "coordinates": {"lat": -1.28, "lng": 36.78}},
    "providersNeeded": 1,
    "urgency": "normal",
}


@pytest.fixture
def test_app():
    from fastapi import FastAPI
    from provider_match.middleware.error_handlers import register_exception_handlers
    from provider_match.routers import listings, matching, providers

    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(matching.router)
    app.include_router(listings.router)
    app.include_router(providers.router)
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


@pytest.fixture
def pipeline():
    return MatchingPipeline(
        MatchingSettings(),
        directory=FakeProviderDirectory([
            make_provider("P1", skills=["Plumbing"], rating=4.8),
            make_provider("P2", skills=["Plumbing"]),
            make_provider("P9", skills=["Plumbing"], approval_state=ApprovalState.PENDING),
        ]),
        catalog=FakeServiceCatalog([make_listing("P1")]),
        ledger=FakeBookingLedger([make_booking("P2", "09:30", "11:00")]),
    )


class TestMatchProvidersRoute:
    """Test cases for POST /match-providers"""

    def test_match_providers_success(self, client, pipeline):
        with patch('provider_match.routers.matching.build_pipeline', return_value=pipeline):
            response = client.post("/match-providers", json=VALID_BODY)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert [p["providerId"] for p in data["providers"]] == ["P1"]
        assert data["totalFound"] == 1
        assert data["searchCriteria"]["category"] == "plumbing"
        assert data["matching"]["algorithm"] == "tiered-availability-aware"
        assert data["matching"]["conflictExcluded"] == 1
        assert data["matching"]["checkFailed"] == 0
        assert data["recommendedProviders"] == ["P1"]
        assert data["pricing"]["currency"] == "KES"

    def test_empty_result_is_success(self, client):
        empty = MatchingPipeline(MatchingSettings(), FakeProviderDirectory(), FakeServiceCatalog(),
                                 FakeBookingLedger())

        with patch('provider_match.routers.matching.build_pipeline', return_value=empty):
            response = client.post("/match-providers", json=VALID_BODY)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["providers"] == []
        assert data["totalFound"] == 0
        assert data["suggestions"]

    def test_missing_fields(self, client):
        with patch('provider_match.routers.matching.build_pipeline') as mock_build:
            response = client.post("/match-providers", json={"location": {}})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        for field in ("category", "location.area", "date", "time"):
            assert field in body["message"]
        mock_build.assert_not_called()

    @pytest.mark.parametrize("override,field", [
        ({"time": "25:99"}, "time"),
        ({"date": "2025-13-45"}, "date"),
        ({"urgency": "whenever"}, "urgency"),
        ({"duration": 0}, "duration"),
        ({"providersNeeded": 0}, "providersNeeded"),
    ])
    def test_invalid_values(self, client, override, field):
        with patch('provider_match.routers.matching.build_pipeline') as mock_build:
            response = client.post("/match-providers", json={**VALID_BODY, **override})

        assert response.status_code == 400
        assert field in response.json()["message"]
        mock_build.assert_not_called()

    def test_wrong_body_types_are_400(self, client):
        response = client.post("/match-providers", json={**VALID_BODY, "duration": "long"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_pipeline_failure_is_generic_500(self, client, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        failing = MagicMock()
        failing.match = AsyncMock(side_effect=RuntimeError("connection pool exhausted"))

        with patch('provider_match.routers.matching.build_pipeline', return_value=failing):
            response = client.post("/match-providers", json=VALID_BODY)

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["message"] == "Error finding available providers"
        assert "error" not in body
        assert "connection pool" not in response.text

    def test_pipeline_failure_hides_detail_when_environment_unset(self, client, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        failing = MagicMock()
        failing.match = AsyncMock(side_effect=RuntimeError("connection pool exhausted"))

        with patch('provider_match.routers.matching.build_pipeline', return_value=failing):
            response = client.post("/match-providers", json=VALID_BODY)

        assert response.status_code == 500
        assert "error" not in response.json()
        assert "connection pool" not in response.text

    def test_pipeline_failure_detail_in_development(self, client, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")
        failing = MagicMock()
        failing.match = AsyncMock(side_effect=RuntimeError("connection pool exhausted"))

        with patch('provider_match.routers.matching.build_pipeline', return_value=failing):
            response = client.post("/match-providers", json=VALID_BODY)

        assert response.status_code == 500
        assert "connection pool exhausted" in response.json()["error"]["cause"]


class TestSyntheticListingRoute:
    """Test cases for POST /listings/synthetic"""

    def test_create_then_reuse(self, client, pipeline):
        with patch('provider_match.routers.listings.build_pipeline', return_value=pipeline):
            first = client.post("/listings/synthetic", json={"providerId": "P2", "category": "plumber"})
            second = client.post("/listings/synthetic", json={"providerId": "P2", "category": "plumbing"})

        assert first.status_code == 200
        assert first.json()["data"]["created"] is True
        listing = first.json()["data"]["listing"]
        assert listing["category"] == "plumbing"
        assert listing["autoGenerated"] is True
        assert second.json()["data"]["created"] is False
        assert second.json()["data"]["listing"]["id"] == listing["id"]

    def test_existing_listing_is_not_duplicated(self, client, pipeline):
        with patch('provider_match.routers.listings.build_pipeline', return_value=pipeline):
            response = client.post("/listings/synthetic", json={"providerId": "P1", "category": "plumbing"})

        assert response.status_code == 200
        assert response.json()["data"]["created"] is False
        assert pipeline.catalog.created == []

    @pytest.mark.parametrize("provider_id", ["P9", "unknown"])
    def test_unapproved_or_unknown_provider(self, client, pipeline, provider_id):
        with patch('provider_match.routers.listings.build_pipeline', return_value=pipeline):
            response = client.post("/listings/synthetic", json={"providerId": provider_id, "category": "plumbing"})

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_missing_fields(self, client):
        response = client.post("/listings/synthetic", json={})

        assert response.status_code == 400
        assert "providerId" in response.json()["message"]
        assert "category" in response.json()["message"]


class TestProviderScoreRoute:
    """Test cases for GET /provider-score/{provider_id}"""

    def test_score_report(self, client, pipeline):
        with patch('provider_match.routers.providers.build_pipeline', return_value=pipeline):
            response = client.get("/provider-score/P1", params={"category": "plumber", "location": "Kileleshwa"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["providerId"] == "P1"
        assert data["category"] == "plumbing"
        assert data["matchType"] == "exact-service"
        assert 0 < data["score"] <= data["maxPossible"]
        assert "rating" in data["breakdown"]
        assert isinstance(data["recommendations"], list)

    def test_missing_query_fields(self, client):
        with patch('provider_match.routers.providers.build_pipeline') as mock_build:
            response = client.get("/provider-score/P1")

        assert response.status_code == 400
        assert "category" in response.json()["message"]
        assert "location" in response.json()["message"]
        mock_build.assert_not_called()

    def test_invalid_urgency(self, client):
        response = client.get("/provider-score/P1",
                              params={"category": "plumbing", "location": "Kileleshwa", "urgency": "asap"})

        assert response.status_code == 400
        assert "urgency" in response.json()["message"]

    def test_unknown_provider(self, client, pipeline):
        with patch('provider_match.routers.providers.build_pipeline', return_value=pipeline):
            response = client.get("/provider-score/nobody", params={"category": "plumbing", "location": "Kileleshwa"})

        assert response.status_code == 404
        assert response.json()["success"] is False


def test_health_endpoints():
    from provider_match.main import app

    client = TestClient(app)

    assert client.get("/health").json()["status"] == "healthy"
    assert client.get("/").json()["status"] == "ok"
