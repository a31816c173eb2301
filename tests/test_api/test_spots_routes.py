"""Tests for the spots API endpoints."""

import uuid
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from spot_tracker.api.app import create_app
from spot_tracker.api.auth import verify_api_key
from spot_tracker.api.dependencies import get_spot_service
from spot_tracker.spots.errors import (
    CapabilityNotSupportedError,
    DuplicateSelfSpotError,
    InvalidCursorError,
    ProgramNotFoundError,
    StoreError,
)
from spot_tracker.spots.schemas import SpotFilters, SpotPage, SpotSource
from spot_tracker.spots.service import SpotService

PARTICIPANT_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
IDENTITY = {"X-Participant-ID": str(PARTICIPANT_ID), "X-Callsign": "n0call"}


@pytest.fixture
def mock_spot_service() -> AsyncMock:
    service = AsyncMock(spec=SpotService)
    service.list_spots = AsyncMock(return_value=SpotPage(spots=[], has_more=False))
    service.get_spot = AsyncMock(return_value=None)
    service.delete_own_spot = AsyncMock(return_value=False)
    service.admin_delete_spot = AsyncMock(return_value=False)
    return service


@pytest.fixture
def client(mock_spot_service):
    app = create_app()
    app.dependency_overrides[get_spot_service] = lambda: mock_spot_service
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    return TestClient(app)


class TestListSpots:
    def test_empty(self, client):
        response = client.get("/spots")

        assert response.status_code == 200
        assert response.json() == {"spots": [], "pagination": {"has_more": False}}

    def test_filters_forwarded(self, client, mock_spot_service):
        client.get(
            "/spots",
            params={
                "program": "pota",
                "callsign": "k1abc",
                "source": "rbn",
                "mode": "CW",
                "state": "WY",
                "max_age_minutes": 5000,
                "limit": 0,
                "cursor": "2024-01-01T12:00:00Z",
            },
        )

        args = mock_spot_service.list_spots.await_args.args
        assert args[0] == SpotFilters(
            program="pota", callsign="K1ABC", source=SpotSource.RBN, mode="CW", state="WY"
        )
        # Out-of-range values are left for the core to clamp
        assert args[1:] == (5000, 0, "2024-01-01T12:00:00Z")

    def test_page_serialized(self, client, mock_spot_service, spot_factory):
        mock_spot_service.list_spots.return_value = SpotPage(
            spots=[spot_factory()],
            has_more=True,
            next_cursor="2024-01-01T12:00:00+00:00",
        )

        data = client.get("/spots").json()

        assert data["pagination"] == {
            "has_more": True,
            "next_cursor": "2024-01-01T12:00:00+00:00",
        }
        spot = data["spots"][0]
        assert spot["callsign"] == "K1ABC"
        assert spot["source"] == "pota"
        assert spot["spotted_at"] == "2024-01-01T12:00:00+00:00"
        assert "snr" not in spot

    def test_unknown_source_rejected(self, client):
        assert client.get("/spots", params={"source": "dxcluster"}).status_code == 422

    def test_invalid_cursor(self, client, mock_spot_service):
        mock_spot_service.list_spots.side_effect = InvalidCursorError("nope")

        response = client.get("/spots", params={"cursor": "nope"})

        assert response.status_code == 422
        assert response.json()["error_type"] == "invalid_cursor"

    def test_store_failure(self, client, mock_spot_service):
        mock_spot_service.list_spots.side_effect = StoreError("list", ConnectionRefusedError())

        response = client.get("/spots")

        assert response.status_code == 503
        assert response.json()["error_type"] == "store_failure"


class TestGetSpot:
    def test_found(self, client, mock_spot_service, spot_factory):
        spot = spot_factory()
        mock_spot_service.get_spot.return_value = spot

        response = client.get(f"/spots/{spot.id}")

        assert response.status_code == 200
        assert response.json()["id"] == str(spot.id)

    def test_missing(self, client):
        response = client.get(f"/spots/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error_type"] == "spot_not_found"


class TestCreateSelfSpot:
    BODY = {"program_slug": "pota", "frequency_khz": 14062.0, "mode": "cw", "reference": "US-0001"}

    def test_created(self, client, mock_spot_service, spot_factory):
        mock_spot_service.insert_self_spot.return_value = spot_factory(
            source=SpotSource.SELF,
            callsign="N0CALL",
            external_id=None,
            submitted_by=PARTICIPANT_ID,
        )

        response = client.post("/spots", json=self.BODY, headers=IDENTITY)

        assert response.status_code == 201
        assert response.json()["source"] == "self"
        mock_spot_service.insert_self_spot.assert_awaited_once_with(
            PARTICIPANT_ID,
            "N0CALL",
            "pota",
            14062.0,
            "CW",
            reference="US-0001",
            comments=None,
        )

    @pytest.mark.parametrize(
        "headers",
        [
            {},
            {"X-Callsign": "N0CALL"},
            {"X-Participant-ID": str(PARTICIPANT_ID)},
            {"X-Participant-ID": "not-a-uuid", "X-Callsign": "N0CALL"},
        ],
    )
    def test_identity_required(self, client, mock_spot_service, headers):
        response = client.post("/spots", json=self.BODY, headers=headers)

        assert response.status_code == 401
        mock_spot_service.insert_self_spot.assert_not_called()

    @pytest.mark.parametrize(
        ("error", "status_code", "error_type"),
        [
            (DuplicateSelfSpotError(PARTICIPANT_ID, "pota"), 409, "self_spot_exists"),
            (ProgramNotFoundError("nope"), 404, "program_not_found"),
            (CapabilityNotSupportedError("selfSpot", "sota"), 422, "capability_not_supported"),
            (StoreError("insert_self_spot", ConnectionRefusedError()), 503, "store_failure"),
        ],
    )
    def test_rejections(self, client, mock_spot_service, error, status_code, error_type):
        mock_spot_service.insert_self_spot.side_effect = error

        response = client.post("/spots", json=self.BODY, headers=IDENTITY)

        assert response.status_code == status_code
        assert response.json()["error_type"] == error_type

    @pytest.mark.parametrize(
        "body",
        [
            {"program_slug": "pota", "frequency_khz": 0, "mode": "CW"},
            {"program_slug": "pota", "mode": "CW"},
            {"program_slug": "", "frequency_khz": 14062.0, "mode": "CW"},
        ],
    )
    def test_invalid_body(self, client, body):
        assert client.post("/spots", json=body, headers=IDENTITY).status_code == 422


class TestDeleteSpots:
    def test_delete_own(self, client, mock_spot_service):
        mock_spot_service.delete_own_spot.return_value = True
        spot_id = uuid.uuid4()

        response = client.delete(f"/spots/{spot_id}", headers=IDENTITY)

        assert response.status_code == 204
        mock_spot_service.delete_own_spot.assert_awaited_once_with(spot_id, PARTICIPANT_ID)

    def test_delete_not_owned(self, client):
        response = client.delete(f"/spots/{uuid.uuid4()}", headers=IDENTITY)

        assert response.status_code == 404

    def test_delete_requires_identity(self, client):
        assert client.delete(f"/spots/{uuid.uuid4()}").status_code == 401

    def test_admin_delete(self, client, mock_spot_service):
        mock_spot_service.admin_delete_spot.return_value = True

        assert client.delete(f"/admin/spots/{uuid.uuid4()}").status_code == 204

    def test_admin_delete_missing(self, client):
        response = client.delete(f"/admin/spots/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error_type"] == "spot_not_found"


class TestAdminAuth:
    def test_admin_requires_key_when_configured(self, mock_spot_service, monkeypatch):
        from spot_tracker.config.settings import get_settings

        monkeypatch.setenv("API_KEYS", "secret")
        get_settings.cache_clear()
        try:
            app = create_app()
            app.dependency_overrides[get_spot_service] = lambda: mock_spot_service
            client = TestClient(app)

            missing = client.delete(f"/admin/spots/{uuid.uuid4()}")
            wrong = client.delete(
                f"/admin/spots/{uuid.uuid4()}", headers={"X-API-KEY": "nope"}
            )
        finally:
            get_settings.cache_clear()

        assert missing.status_code == 401
        assert wrong.status_code == 401
        mock_spot_service.admin_delete_spot.assert_not_called()
