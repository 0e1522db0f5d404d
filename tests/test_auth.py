from tests.conftest import PASSWORD


def test_register_login_and_me(client, alice):
    response = client.get("/auth/me", headers=alice.headers)

    assert response.status_code == 200
    body = response.json()
    assert body["username"] == "alice"
    assert body["email"] == "alice@example.com"
    assert "password_hash" not in body


def test_duplicate_email_is_rejected(client, alice):
    response = client.post("/auth/register", json={
        "email": "alice@example.com",
        "username": "alice2",
        "password": PASSWORD,
    })

    assert response.status_code == 400
    assert response.json()["detail"] == "Email already registered"


def test_username_must_be_word_characters(client):
    response = client.post("/auth/register", json={
        "email": "carol@example.com",
        "username": "carol-smith",
        "password": PASSWORD,
    })

    assert response.status_code == 422


def test_wrong_password(client, alice):
    response = client.post("/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})

    assert response.status_code == 401


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sessions": 0, "rooms": 0}
