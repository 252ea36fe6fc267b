"""
API integration tests for the FastAPI app.

Tests the routers end to end using FastAPI TestClient with the singletons
swapped for a temporary database and a scripted narrator.
"""

from unittest.mock import patch

import pytest
from conftest import turn_payload
from fastapi.testclient import TestClient

from taleforge.api.dependencies import (
    get_db,
    get_lifecycle,
    get_orchestrator,
    get_provider,
    get_rate_limiter,
    get_scene_renderer,
)
from taleforge.main import app

ANON_A = {"X-Forwarded-For": "203.0.113.7"}
ANON_B = {"X-Forwarded-For": "198.51.100.2, 10.0.0.1"}
USER = {"X-User-Id": "user-1"}

NEW_ADVENTURE = {
    "character": {
        "name": "Brannoc",
        "race": "Human",
        "class": "Warrior",
        "gender": "Male",
        "description": "Broad-shouldered, scarred, grey eyes",
    },
    "campaign": {
        "title": "The Ashen Crown",
        "act1": "A plague of ash falls on the village of Hollowmere.",
        "act2": "The cure lies in the tomb of the king who caused it.",
        "act3": "The ash king wakes and demands a successor.",
        "possible_endings": ["Cure the land", "Take the crown", "Burn with it"],
    },
}


@pytest.fixture
def client(db, lifecycle, rate_limiter, orchestrator, provider):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_provider] = lambda: provider
    app.dependency_overrides[get_scene_renderer] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def registered(db):
    return db.upsert_user({"id": "user-1", "email": "player@example.com"})


def start(client, headers):
    return client.post("/adventures/", json=NEW_ADVENTURE, headers=headers)


class TestRootEndpoints:
    """Test basic root endpoints"""

    def test_root_endpoint(self, client):
        """Test the root endpoint returns correct response"""
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "running"
        assert "version" in data

    def test_health_endpoint(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert "X-Request-Id" in response.headers

    def test_provider_health(self, client):
        response = client.get("/health/provider")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_provider_unreachable(self, client, provider):
        async def unreachable():
            return False

        with patch.object(provider, "health_check", unreachable):
            response = client.get("/health/provider")
        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"


class TestCreateAdventure:
    """Test POST /adventures/"""

    def test_registered_create(self, client, registered):
        response = start(client, USER)
        assert response.status_code == 200
        data = response.json()
        assert data["adventure"]["owner_id"] == "user-1"
        assert data["adventure"]["current_hp"] == 30
        assert data["adventure"]["max_turns"] == -1
        assert data["adventure"]["has_image"] is False
        assert "last_image" not in data["adventure"]
        assert data["resume"]["needs_initial_turn"] is True

    def test_anonymous_daily_limit(self, client, db):
        """Three starts from one IP, then 429; other IPs are unaffected"""
        for _ in range(3):
            assert start(client, ANON_A).status_code == 200

        response = start(client, ANON_A)
        assert response.status_code == 429
        assert response.json()["code"] == "daily_limit_reached"
        assert "3 games per day" in response.json()["detail"]

        assert start(client, ANON_B).status_code == 200
        assert db.count_rate_limit_rows() == 2

    def test_anonymous_adventure_is_capped(self, client):
        data = start(client, ANON_A).json()
        assert data["adventure"]["anonymous"] is True
        assert data["adventure"]["max_turns"] == 5
        assert data["adventure"]["owner_id"] == "anon:203.0.113.7"

    def test_registered_not_rate_limited(self, client, registered, db):
        for _ in range(4):
            assert start(client, USER).status_code == 200
        assert db.count_rate_limit_rows() == 0

    def test_invalid_starting_hp(self, client, registered):
        body = dict(NEW_ADVENTURE, starting_hp=0)
        response = client.post("/adventures/", json=body, headers=USER)
        assert response.status_code == 422
        assert response.json()["code"] == "validation_failed"

    def test_anonymous_play_disabled(self, client):
        with patch("taleforge.api.adventures.settings") as mock_settings:
            mock_settings.allow_anonymous_play = False
            response = start(client, ANON_A)
        assert response.status_code == 401

    def test_unknown_user_header(self, client):
        response = start(client, {"X-User-Id": "ghost"})
        assert response.status_code == 401
        assert response.json()["code"] == "unauthenticated"


class TestTurns:
    """Test POST /adventures/{id}/turns"""

    def test_play_two_turns(self, client, provider, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        provider.queue(turn_payload(hp=25, gold=15))

        first = client.post(f"/adventures/{adventure_id}/turns", json={}, headers=USER)
        assert first.status_code == 200
        data = first.json()
        assert data["degraded"] is False
        assert data["adventure"]["turn_count"] == 1
        assert data["turn"]["hp"] == 25
        assert data["turn"]["options"] == ["Fight", "Flee", "Parley"]

        provider.queue(turn_payload(hp=0, gold=15, game_over=True))
        second = client.post(
            f"/adventures/{adventure_id}/turns",
            json={"action": "Fight", "dice_roll": 2},
            headers=USER,
        )
        assert second.json()["adventure"]["status"] == "completed"
        assert second.json()["adventure"]["ending_type"] == "death"

        history = client.get(f"/adventures/{adventure_id}/turns", headers=USER).json()
        assert [t["turn_number"] for t in history["turns"]] == [1, 2]

        again = client.post(
            f"/adventures/{adventure_id}/turns", json={"action": "Rise"}, headers=USER
        )
        assert again.status_code == 409
        assert again.json()["code"] == "adventure_not_active"

    def test_generator_failure_is_degraded(self, client, provider, registered, db):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        provider.queue(RuntimeError("model offline"))

        response = client.post(f"/adventures/{adventure_id}/turns", json={}, headers=USER)

        assert response.status_code == 200
        data = response.json()
        assert data["degraded"] is True
        assert data["retry_turn_number"] == 1
        assert data["adventure"]["turn_count"] == 0
        assert db.count_turns(adventure_id) == 0

    def test_turn_cap_for_anonymous(self, client, provider):
        adventure_id = start(client, ANON_A).json()["adventure"]["id"]
        provider.queue(*[turn_payload(hp=30, gold=10) for _ in range(5)])
        for n in range(5):
            response = client.post(
                f"/adventures/{adventure_id}/turns", json={"action": f"Step {n}"}, headers=ANON_A
            )
            assert response.status_code == 200

        response = client.post(
            f"/adventures/{adventure_id}/turns", json={"action": "Step 6"}, headers=ANON_A
        )
        assert response.status_code == 403
        assert response.json()["code"] == "turn_limit_reached"
        assert len(provider.calls) == 5

    def test_bad_dice_roll(self, client, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        response = client.post(
            f"/adventures/{adventure_id}/turns", json={"dice_roll": 0}, headers=USER
        )
        assert response.status_code == 422


class TestOwnership:
    """Every id-taking route checks the owner"""

    @pytest.mark.parametrize(
        "method, suffix",
        [
            ("get", ""),
            ("get", "/turns"),
            ("post", "/turns"),
            ("post", "/restart"),
            ("post", "/abandon"),
            ("delete", ""),
            ("get", "/image"),
        ],
    )
    def test_other_caller_forbidden(self, client, registered, provider, method, suffix):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        kwargs = {"headers": ANON_B}
        if method == "post":
            kwargs["json"] = {}
        response = getattr(client, method)(f"/adventures/{adventure_id}{suffix}", **kwargs)

        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied", "code": "forbidden"}
        assert provider.calls == []

    def test_missing_adventure(self, client):
        response = client.get("/adventures/nope", headers=ANON_A)
        assert response.status_code == 404
        assert response.json()["code"] == "not_found"


class TestTransitions:
    """Test resume, restart, abandon, delete, claim and image routes"""

    def test_active_resume(self, client, provider, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        provider.queue(turn_payload(hp=27, gold=10, narrative="The gate creaks."))
        client.post(f"/adventures/{adventure_id}/turns", json={}, headers=USER)

        data = client.get("/adventures/active", headers=USER).json()
        assert data["adventure"]["id"] == adventure_id
        assert data["resume"]["needs_initial_turn"] is False
        assert data["resume"]["display"]["narrative"] == "The gate creaks."

    def test_no_active_adventure(self, client, registered):
        response = client.get("/adventures/active", headers=USER)
        assert response.status_code == 200
        assert response.json() is None

    def test_restart(self, client, provider, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        provider.queue(turn_payload(hp=0, gold=10, game_over=True))
        client.post(f"/adventures/{adventure_id}/turns", json={}, headers=USER)

        data = client.post(f"/adventures/{adventure_id}/restart", headers=USER).json()
        assert data["adventure"]["status"] == "active"
        assert data["adventure"]["turn_count"] == 0
        assert data["adventure"]["current_hp"] == 30

    def test_abandon_twice(self, client, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        first = client.post(f"/adventures/{adventure_id}/abandon", headers=USER)
        assert first.json()["adventure"]["status"] == "abandoned"
        second = client.post(f"/adventures/{adventure_id}/abandon", headers=USER)
        assert second.status_code == 409

    def test_delete(self, client, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        assert client.delete(f"/adventures/{adventure_id}", headers=USER).status_code == 200
        assert client.get(f"/adventures/{adventure_id}", headers=USER).status_code == 404

    def test_list(self, client, registered):
        for _ in range(2):
            start(client, USER)
        listed = client.get("/adventures/", headers=USER).json()
        assert len(listed) == 2
        assert [a["status"] for a in listed] == ["active", "abandoned"]

    def test_claim(self, client, registered):
        headers = {**ANON_A, **USER}
        adventure_id = start(client, ANON_A).json()["adventure"]["id"]

        response = client.post(f"/adventures/{adventure_id}/claim", headers=headers)

        assert response.status_code == 200
        claimed = response.json()["adventure"]
        assert claimed["owner_id"] == "user-1"
        assert claimed["max_turns"] == -1
        assert client.get(f"/adventures/{adventure_id}", headers=ANON_A).status_code == 403

    def test_claim_requires_sign_in(self, client):
        adventure_id = start(client, ANON_A).json()["adventure"]["id"]
        response = client.post(f"/adventures/{adventure_id}/claim", headers=ANON_A)
        assert response.status_code == 401

    def test_image_not_rendered_yet(self, client, registered):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        response = client.get(f"/adventures/{adventure_id}/image", headers=USER)
        assert response.status_code == 404

    def test_image_served(self, client, registered, lifecycle):
        adventure_id = start(client, USER).json()["adventure"]["id"]
        lifecycle.attach_scene_image(adventure_id, "iVBORw0KGgo=", 0)

        response = client.get(f"/adventures/{adventure_id}/image", headers=USER)
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")


class TestRateLimitStatus:
    """Test GET /rate-limit/status"""

    def test_anonymous_status(self, client):
        start(client, ANON_A)
        assert client.get("/rate-limit/status", headers=ANON_A).json() == {
            "unlimited": False,
            "games_remaining": 2,
            "total_allowed": 3,
            "games_used": 1,
        }

    def test_registered_status(self, client, registered):
        assert client.get("/rate-limit/status", headers=USER).json()["unlimited"] is True


class TestUsers:
    """Test the login callback and profile routes"""

    def test_sync_and_me(self, client):
        response = client.post(
            "/users/sync", json={"id": "user-2", "email": "b@example.com", "is_premium": True}
        )
        assert response.status_code == 200

        me = client.get("/users/me", headers={"X-User-Id": "user-2"}).json()
        assert me["email"] == "b@example.com"
        assert me["is_premium"] is True

    def test_sync_rejects_bad_secret(self, client):
        with patch("taleforge.api.users.settings") as mock_settings:
            mock_settings.auth_callback_secret = "s3cret"
            response = client.post(
                "/users/sync", json={"id": "user-2"}, headers={"X-Auth-Secret": "guess"}
            )
        assert response.status_code == 403

    def test_me_requires_sign_in(self, client):
        assert client.get("/users/me", headers=ANON_A).status_code == 401


class TestCharacters:
    """Test the creation helpers"""

    def test_options(self, client):
        data = client.get("/characters/options").json()
        warrior = next(c for c in data["classes"] if c["name"] == "Warrior")
        assert warrior["hp"] == 30
        assert data["starting_gold"] == 10
        assert data["dice"] == {"min": 1, "max": 20}

    def test_name(self, client, provider):
        provider.queue("Kestrel")
        response = client.post(
            "/characters/name", json={"race": "Elf", "class": "Ranger", "gender": "Female"}
        )
        assert response.json() == {"name": "Kestrel"}

    def test_campaign_fallback(self, client, provider):
        provider.queue(RuntimeError("offline"))
        response = client.post(
            "/characters/campaign",
            json={"name": "Kestrel", "race": "Elf", "class": "Ranger", "gender": "Female"},
        )
        assert response.status_code == 200
        assert response.json()["title"] == "The Shadow of the Void"
