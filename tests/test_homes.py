"""Tests for the home endpoints (one-to-many model)."""

from typing import Any, Callable

from fastapi.testclient import TestClient

from src.errors import ErrorCode

HOME = {"address": "Damrak 1", "city": "Amsterdam", "country": "NL"}


class TestHomes:
    """Tests for /api/v1/users/{user_id}/homes."""

    def test_create_and_list(
        self, client: TestClient, create_user: Callable[..., dict[str, Any]], check_envelope
    ) -> None:
        user = create_user()
        response = client.post(f"/api/v1/users/{user['id']}/homes", json=HOME)
        assert response.status_code == 201
        check_envelope(response.json(), 201, True)
        home = response.json()["content"]
        assert home["user_id"] == user["id"]
        assert home["country"] == "NL"

        listing = client.get(f"/api/v1/users/{user['id']}/homes")
        assert listing.status_code == 200
        assert listing.json()["content"]["items"] == [home]
        assert listing.headers["x-total-count"] == "1"

    def test_home_under_other_user_not_found(
        self, client: TestClient, create_user: Callable[..., dict[str, Any]]
    ) -> None:
        ada = create_user("Ada")
        bob = create_user("Bob")
        home = client.post(f"/api/v1/users/{ada['id']}/homes", json=HOME).json()["content"]

        response = client.get(f"/api/v1/users/{bob['id']}/homes/{home['id']}")
        assert response.status_code == 404
        assert response.json()["error_details"][0]["text"] == (
            f"Home {home['id']} not found for user {bob['id']}"
        )

    def test_replace(self, client: TestClient, create_user: Callable[..., dict[str, Any]]) -> None:
        user = create_user()
        home = client.post(f"/api/v1/users/{user['id']}/homes", json=HOME).json()["content"]
        url = f"/api/v1/users/{user['id']}/homes/{home['id']}"

        response = client.put(url, json={**HOME, "city": "Utrecht"})
        assert response.status_code == 200
        assert client.get(url).json()["content"]["city"] == "Utrecht"

    def test_delete(self, client: TestClient, create_user: Callable[..., dict[str, Any]]) -> None:
        user = create_user()
        home = client.post(f"/api/v1/users/{user['id']}/homes", json=HOME).json()["content"]
        url = f"/api/v1/users/{user['id']}/homes/{home['id']}"

        assert client.delete(url).status_code == 200
        assert client.get(url).status_code == 404

    def test_invalid_country(
        self, client: TestClient, create_user: Callable[..., dict[str, Any]]
    ) -> None:
        user = create_user()
        response = client.post(
            f"/api/v1/users/{user['id']}/homes", json={**HOME, "country": "nl"}
        )
        assert response.status_code == 422
        detail = response.json()["error_details"][0]
        assert detail["code"] == int(ErrorCode.VALIDATION_FAILED)
        assert detail["text"].startswith("body.country")

    def test_homes_of_missing_user(self, client: TestClient) -> None:
        response = client.get("/api/v1/users/9/homes")
        assert response.status_code == 404
        assert response.json()["error_details"][0]["text"] == "User 9 not found"

    def test_homes_paginated(
        self, client: TestClient, create_user: Callable[..., dict[str, Any]]
    ) -> None:
        user = create_user()
        for i in range(3):
            client.post(f"/api/v1/users/{user['id']}/homes", json={**HOME, "address": f"Street {i}"})

        response = client.get(f"/api/v1/users/{user['id']}/homes?page=2&per_page=2")
        content = response.json()["content"]
        assert [h["address"] for h in content["items"]] == ["Street 2"]
        assert content["pagination"]["total_pages"] == 2
        assert 'rel="prev"' in response.headers["link"]
