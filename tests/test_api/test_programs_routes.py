"""Tests for the program catalog endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from spot_tracker.api.app import create_app
from spot_tracker.api.dependencies import get_spot_service
from spot_tracker.spots.errors import ProgramNotFoundError, StoreError
from spot_tracker.spots.service import SpotService


@pytest.fixture
def mock_spot_service(pota_program, sota_program) -> AsyncMock:
    service = AsyncMock(spec=SpotService)
    service.list_programs = AsyncMock(return_value=([pota_program, sota_program], 1704110400))
    service.get_program = AsyncMock(return_value=pota_program)
    return service


@pytest.fixture
def client(mock_spot_service):
    app = create_app()
    app.dependency_overrides[get_spot_service] = lambda: mock_spot_service
    return TestClient(app)


class TestListPrograms:
    def test_programs_and_version(self, client):
        response = client.get("/programs")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 1704110400
        assert [p["slug"] for p in data["programs"]] == ["pota", "sota"]

    def test_program_fields(self, client):
        pota = client.get("/programs").json()["programs"][0]

        assert pota["name"] == "Parks on the Air"
        assert pota["short_name"] == "POTA"
        assert pota["reference_label"] == "Park Reference"
        assert "selfSpot" in pota["capabilities"]
        assert pota["sort_order"] == 1

    def test_empty_catalog(self, client, mock_spot_service):
        mock_spot_service.list_programs.return_value = ([], 0)

        assert client.get("/programs").json() == {"programs": [], "version": 0}

    def test_store_failure_is_503(self, client, mock_spot_service):
        mock_spot_service.list_programs.side_effect = StoreError(
            "list_programs", ConnectionError("down")
        )

        response = client.get("/programs")

        assert response.status_code == 503
        assert response.json()["error_type"] == "store_failure"


class TestGetProgram:
    def test_found(self, client, mock_spot_service):
        response = client.get("/programs/pota")

        assert response.status_code == 200
        assert response.json()["slug"] == "pota"
        mock_spot_service.get_program.assert_awaited_once_with("pota")

    def test_unknown_slug_is_404(self, client, mock_spot_service):
        mock_spot_service.get_program.side_effect = ProgramNotFoundError("wwff")

        response = client.get("/programs/wwff")

        assert response.status_code == 404
        body = response.json()
        assert body["error_type"] == "program_not_found"
        assert "wwff" in body["detail"]
