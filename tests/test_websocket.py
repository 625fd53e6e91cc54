"""
End-to-end tests through the FastAPI app.
"""

import pytest
from fastapi.testclient import TestClient

from backend.app.main import app


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


def _connect(client, sid):
    return client.websocket_connect("/ws", headers={"cookie": f"sid={sid}"})


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_session_sets_cookie(client):
    response = client.get("/session")
    assert response.status_code == 204
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("sid=")
    assert "httponly" in set_cookie.lower()
    assert "samesite=lax" in set_cookie.lower()


def test_session_keeps_existing_cookie(client):
    response = client.get("/session", headers={"cookie": "sid=known"})
    assert response.status_code == 204
    assert "set-cookie" not in response.headers


def test_anonymous_socket_gets_an_id(client):
    with client.websocket_connect("/ws") as ws:
        message = ws.receive_json()
    assert message["method"] == "connect"
    assert len(message["clientId"]) == 36


def test_invalid_json_is_reported(client):
    with _connect(client, "mallory") as ws:
        ws.receive_json()
        ws.send_text("{not json")
        error = ws.receive_json()
    assert error == {
        "method": "error",
        "code": "malformed",
        "reason": "Message is not valid JSON.",
        "request": None,
    }


def test_full_round(client):
    with _connect(client, "ws-alice") as alice:
        assert alice.receive_json() == {"method": "connect", "clientId": "ws-alice"}
        alice.send_json({"method": "createGame", "name": "Alice"})
        created = alice.receive_json()
        assert created["method"] == "createGame"
        game_id = created["game"]["id"]

        with _connect(client, "ws-bob") as bob:
            bob.receive_json()
            bob.send_json({"method": "joinGame", "gameId": game_id, "name": "Bob"})
            assert bob.receive_json()["method"] == "joinGame"
            assert alice.receive_json()["method"] == "joinGame"

            alice.send_json({"method": "startGame", "gameId": game_id})
            started = alice.receive_json()
            assert started["method"] == "startGame"
            assert bob.receive_json()["method"] == "startGame"

            hand = started["game"]["players"][0]["hand"]
            assert len(hand) == 2
            alice.send_json({"method": "playCard", "gameId": game_id, "cardId": hand[0]["id"]})
            played = bob.receive_json()
            assert played["method"] == "playCard"
            assert played["game"]["discardPile"][-1]["id"] == hand[0]["id"]
            assert alice.receive_json()["method"] == "playCard"
