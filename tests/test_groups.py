"""Tests for the group endpoints and the membership links (many-to-many)."""

from typing import Any, Callable

from fastapi.testclient import TestClient

from src.errors import ErrorCode


class TestGroups:
    """Tests for /api/v1/groups."""

    def test_create_and_get(self, client: TestClient, check_envelope) -> None:
        response = client.post(
            "/api/v1/groups", json={"name": "climbers", "description": "Weekly sessions"}
        )
        assert response.status_code == 201
        check_envelope(response.json(), 201, True)
        group = response.json()["content"]
        assert group["description"] == "Weekly sessions"

        fetched = client.get(f"/api/v1/groups/{group['id']}")
        assert fetched.json()["content"] == group

    def test_duplicate_name(
        self, client: TestClient, create_group: Callable[..., dict[str, Any]]
    ) -> None:
        create_group("climbers")
        response = client.post("/api/v1/groups", json={"name": "CLIMBERS"})
        assert response.status_code == 409
        assert response.json()["error_details"][0]["code"] == int(ErrorCode.DUPLICATE_RESOURCE)

    def test_replace(self, client: TestClient, create_group: Callable[..., dict[str, Any]]) -> None:
        group = create_group("climbers", "old")
        response = client.put(f"/api/v1/groups/{group['id']}", json={"name": "boulderers"})
        assert response.status_code == 200
        content = response.json()["content"]
        assert content["name"] == "boulderers"
        assert content["description"] is None

    def test_list(self, client: TestClient, create_group: Callable[..., dict[str, Any]]) -> None:
        create_group("a")
        create_group("b")
        items = client.get("/api/v1/groups").json()["content"]["items"]
        assert [g["name"] for g in items] == ["a", "b"]

    def test_missing_group(self, client: TestClient) -> None:
        response = client.get("/api/v1/groups/3")
        assert response.status_code == 404
        assert response.json()["error_details"][0]["text"] == "Group 3 not found"


class TestMemberships:
    """Tests for linking users and groups."""

    def test_link_from_user_side(
        self,
        client: TestClient,
        create_user: Callable[..., dict[str, Any]],
        create_group: Callable[..., dict[str, Any]],
        check_envelope,
    ) -> None:
        user = create_user()
        group = create_group()
        url = f"/api/v1/users/{user['id']}/groups/{group['id']}"

        first = client.put(url)
        assert first.status_code == 201
        check_envelope(first.json(), 201, True)
        assert first.json()["content"] == {"user_id": user["id"], "group_id": group["id"]}

        again = client.put(url)
        assert again.status_code == 200

        groups = client.get(f"/api/v1/users/{user['id']}/groups").json()["content"]["items"]
        assert [g["id"] for g in groups] == [group["id"]]

    def test_link_visible_from_both_sides(
        self,
        client: TestClient,
        create_user: Callable[..., dict[str, Any]],
        create_group: Callable[..., dict[str, Any]],
    ) -> None:
        user = create_user()
        group = create_group()
        assert client.put(f"/api/v1/groups/{group['id']}/users/{user['id']}").status_code == 201

        users = client.get(f"/api/v1/groups/{group['id']}/users").json()["content"]["items"]
        assert [u["id"] for u in users] == [user["id"]]
        assert client.put(f"/api/v1/users/{user['id']}/groups/{group['id']}").status_code == 200

    def test_unlink(
        self,
        client: TestClient,
        create_user: Callable[..., dict[str, Any]],
        create_group: Callable[..., dict[str, Any]],
    ) -> None:
        user = create_user()
        group = create_group()
        client.put(f"/api/v1/users/{user['id']}/groups/{group['id']}")

        response = client.delete(f"/api/v1/groups/{group['id']}/users/{user['id']}")
        assert response.status_code == 200
        assert client.get(f"/api/v1/users/{user['id']}").status_code == 200
        assert client.get(f"/api/v1/groups/{group['id']}").status_code == 200

        missing = client.delete(f"/api/v1/users/{user['id']}/groups/{group['id']}")
        assert missing.status_code == 404

    def test_link_to_missing_group(
        self, client: TestClient, create_user: Callable[..., dict[str, Any]]
    ) -> None:
        user = create_user()
        response = client.put(f"/api/v1/users/{user['id']}/groups/8")
        assert response.status_code == 404
        assert response.json()["error_details"][0]["text"] == "Group 8 not found"

    def test_deleting_group_removes_links(
        self,
        client: TestClient,
        create_user: Callable[..., dict[str, Any]],
        create_group: Callable[..., dict[str, Any]],
    ) -> None:
        user = create_user()
        group = create_group()
        client.put(f"/api/v1/users/{user['id']}/groups/{group['id']}")

        assert client.delete(f"/api/v1/groups/{group['id']}").status_code == 200
        groups = client.get(f"/api/v1/users/{user['id']}/groups").json()["content"]["items"]
        assert groups == []
