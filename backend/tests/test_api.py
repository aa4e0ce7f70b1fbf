"""
End-to-end API tests through TestClient with real signed bearer tokens.
"""

import pytest

BODY = "Please keep us in your prayers this week."


@pytest.fixture
def alice_headers(token_for):
    return token_for("alice-sub", email="alice@example.com", username="alice", name="Alice A")


@pytest.fixture
def bob_headers(token_for):
    return token_for("bob-sub", email="bob@example.com", username="bob", name="Bob B")


def _create_request(client, headers, **overrides):
    payload = {"title": "Healing for my father", "body": BODY, "category": "HEALTH", "visibility": "PUBLIC"}
    payload.update(overrides)
    return client.post("/api/v1/requests", json=payload, headers=headers)


class TestAuthentication:
    def test_health_is_public(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_protected_route_without_token(self, client):
        response = client.get("/api/v1/profile")

        assert response.status_code == 401
        assert response.json() == {"error": {"code": "UNAUTHORIZED", "message": "Authentication is required"}}
        assert response.headers["www-authenticate"] == "Bearer"

    def test_protected_route_with_garbage_token(self, client):
        response = client.get("/api/v1/profile", headers={"Authorization": "Bearer not.a.token"})

        assert response.status_code == 401

    def test_first_request_provisions_profile(self, client, alice_headers):
        response = client.get("/api/v1/profile", headers=alice_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "alice-sub"
        assert body["username"] == "alice"
        assert body["display_name"] == "Alice A"
        assert body["email"] == "alice@example.com"

    def test_public_feed_ignores_invalid_token(self, client):
        response = client.get("/api/v1/feed/public", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 200
        assert response.json()["items"] == []


class TestPrayerRequestEndpoints:
    def test_create_get_and_pray(self, client, alice_headers, bob_headers):
        created = _create_request(client, alice_headers)
        assert created.status_code == 201
        request_id = created.json()["id"]
        assert created.json()["author_username"] == "alice"
        assert created.json()["status"] == "ACTIVE"

        fetched = client.get(f"/api/v1/requests/{request_id}", headers=bob_headers)
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Healing for my father"

        prayed = client.post(f"/api/v1/requests/{request_id}/pray", json={"action_type": "HAIL_MARY"}, headers=bob_headers)
        assert prayed.status_code == 200
        assert prayed.json()["prayed_count"] == 1
        assert prayed.json()["my_prayer_types"] == ["HAIL_MARY"]
        assert prayed.json()["prayer_type_counts"]["HAIL_MARY"] == 1

        again = client.post(f"/api/v1/requests/{request_id}/pray", json={"action_type": "HAIL_MARY"}, headers=bob_headers)
        assert again.status_code == 429
        assert again.json()["error"]["code"] == "PRAYED_RATE_LIMITED"

    def test_validation_error_envelope(self, client, alice_headers):
        response = _create_request(client, alice_headers, category="WEATHER")

        assert response.status_code == 400
        assert response.json() == {"error": {"code": "VALIDATION_ERROR", "message": "invalid category"}}

    def test_malformed_payload_is_invalid_request(self, client, alice_headers):
        response = client.post("/api/v1/requests", json={"title": "Missing fields"}, headers=alice_headers)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_REQUEST"

    def test_private_request_is_not_found_for_others(self, client, alice_headers, bob_headers):
        request_id = _create_request(client, alice_headers, visibility="PRIVATE").json()["id"]

        response = client.get(f"/api/v1/requests/{request_id}", headers=bob_headers)

        assert response.status_code == 404

    def test_update_and_delete(self, client, alice_headers, bob_headers):
        request_id = _create_request(client, alice_headers).json()["id"]

        forbidden = client.patch(
            f"/api/v1/requests/{request_id}",
            json={"title": "Hijacked", "body": BODY, "category": "OTHER", "visibility": "PUBLIC"},
            headers=bob_headers,
        )
        assert forbidden.status_code == 403

        updated = client.patch(
            f"/api/v1/requests/{request_id}",
            json={"title": "Updated title", "body": BODY, "category": "FAMILY", "visibility": "PUBLIC"},
            headers=alice_headers,
        )
        assert updated.status_code == 200
        assert updated.json()["category"] == "FAMILY"

        deleted = client.delete(f"/api/v1/requests/{request_id}", headers=alice_headers)
        assert deleted.status_code == 204
        assert client.get(f"/api/v1/requests/{request_id}", headers=alice_headers).status_code == 404


class TestFeedEndpoints:
    def test_public_feed_pagination(self, client, alice_headers):
        for i in range(3):
            _create_request(client, alice_headers, title=f"Request number {i}")

        response = client.get("/api/v1/feed?limit=2&offset=2")

        assert response.status_code == 200
        body = response.json()
        assert len(body["items"]) == 1
        assert body["pagination"] == {"page": 2, "page_size": 2, "total": 3, "total_pages": 2}

    def test_home_feed_requires_token(self, client):
        assert client.get("/api/v1/feed/home").status_code == 401

    def test_home_feed_includes_own_private(self, client, alice_headers):
        _create_request(client, alice_headers, visibility="PRIVATE")

        response = client.get("/api/v1/feed/home", headers=alice_headers)

        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1


class TestSocialEndpoints:
    def test_friend_request_flow(self, client, alice_headers, bob_headers):
        # Provision bob so his username exists
        client.get("/api/v1/profile", headers=bob_headers)

        sent = client.post("/api/v1/friends/requests", json={"username": "@bob"}, headers=alice_headers)
        assert sent.status_code == 201

        pending = client.get("/api/v1/friends/requests", headers=bob_headers).json()["items"]
        assert [p["username"] for p in pending] == ["alice"]

        accepted = client.post(f"/api/v1/friends/requests/{pending[0]['id']}/accept", headers=bob_headers)
        assert accepted.status_code == 200

        friends = client.get("/api/v1/friends", headers=alice_headers).json()["items"]
        assert [f["username"] for f in friends] == ["bob"]

        duplicate = client.post("/api/v1/friends/requests", json={"username": "alice"}, headers=bob_headers)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"]["code"] == "FRIEND_REQUEST_EXISTS"

    def test_group_join_flow(self, client, alice_headers, bob_headers):
        created = client.post("/api/v1/groups", json={"name": "Bible Study", "join_policy": "REQUEST"}, headers=alice_headers)
        assert created.status_code == 201
        assert created.json()["role"] == "ADMIN"
        group_id = created.json()["id"]

        joined = client.post(f"/api/v1/groups/{group_id}/join-requests", headers=bob_headers)
        assert joined.json() == {"status": "REQUESTED"}

        assert client.get(f"/api/v1/groups/{group_id}/join-requests", headers=bob_headers).status_code == 403
        pending = client.get(f"/api/v1/groups/{group_id}/join-requests", headers=alice_headers).json()["items"]
        approved = client.post(
            f"/api/v1/groups/{group_id}/join-requests/{pending[0]['id']}/approve", headers=alice_headers
        )
        assert approved.json() == {"status": "APPROVED"}

        groups = client.get("/api/v1/groups", headers=bob_headers).json()["items"]
        assert [g["name"] for g in groups] == ["Bible Study"]

    def test_invite_only_group_rejects_join(self, client, alice_headers, bob_headers):
        group_id = client.post(
            "/api/v1/groups", json={"name": "Clergy", "join_policy": "INVITE_ONLY"}, headers=alice_headers
        ).json()["id"]

        response = client.post(f"/api/v1/groups/{group_id}/join-requests", headers=bob_headers)

        assert response.status_code == 403
        assert response.json() == {"error": {"code": "GROUP_INVITE_ONLY", "message": "invite only group"}}

    def test_username_availability(self, client, alice_headers):
        client.get("/api/v1/profile", headers=alice_headers)

        taken = client.get("/api/v1/username-availability?username=Alice")
        free = client.get("/api/v1/username-availability?username=newcomer")

        assert taken.json() == {"username": "alice", "available": False}
        assert free.json() == {"username": "newcomer", "available": True}
