from auth.key_manager import hash_api_key


def _headers(issued):
    return {"Authorization": f"Bearer {issued.api_key}"}


def test_create_key_returns_plaintext_once(client, key_manager, admin_key):
    response = client.post("/api/keys", json={"name": "Zapier"}, headers=_headers(admin_key))
    assert response.status_code == 201
    body = response.json()
    assert body["name"] == "Zapier"
    assert body["permissions"] == ["read", "write"]
    assert body["api_key"].startswith("bh_")

    assert key_manager.validate(body["api_key"]).valid is True

    listing = client.get("/api/keys", headers=_headers(admin_key)).json()
    assert body["api_key"] not in str(listing)


def test_create_key_with_permissions(client, admin_key):
    response = client.post(
        "/api/keys",
        json={"name": "Publisher", "permissions": ["read", "publish"]},
        headers=_headers(admin_key),
    )
    assert response.status_code == 201
    assert response.json()["permissions"] == ["publish", "read"]


def test_create_key_rejects_blank_name(client, admin_key):
    response = client.post("/api/keys", json={"name": "   "}, headers=_headers(admin_key))
    assert response.status_code == 422


def test_list_keys(client, key_manager, admin_key):
    other = key_manager.issue("Other")

    response = client.get("/api/keys", headers=_headers(admin_key))
    assert response.status_code == 200
    keys = response.json()
    assert {k["name"] for k in keys} == {"Admin", "Other"}
    for k in keys:
        assert set(k) == {"id", "name", "created_at", "last_used_at", "is_active", "permissions"}

    text = response.text
    for issued in (admin_key, other):
        assert issued.api_key not in text
        assert hash_api_key(issued.api_key) not in text


def test_revoke_key(client, key_manager, admin_key):
    victim = key_manager.issue("Victim")

    response = client.post(f"/api/keys/{victim.id}/revoke", headers=_headers(admin_key))
    assert response.status_code == 200
    assert response.json() == {"id": victim.id, "revoked": True}

    assert client.get("/api/auth/whoami", headers=_headers(victim)).status_code == 401


def test_revoke_unknown_key(client, admin_key):
    response = client.post("/api/keys/9999/revoke", headers=_headers(admin_key))
    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


def test_delete_key(client, key_manager, admin_key):
    victim = key_manager.issue("Temp")

    response = client.delete(f"/api/keys/{victim.id}", headers=_headers(admin_key))
    assert response.status_code == 200
    assert response.json() == {"id": victim.id, "deleted": True}
    assert victim.id not in [k.id for k in key_manager.list_keys()]

    assert client.delete(f"/api/keys/{victim.id}", headers=_headers(admin_key)).status_code == 404


def test_key_routes_require_credentials(client):
    response = client.get("/api/keys")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_storage_failure_on_admin_route(client, key_manager, admin_key, monkeypatch):
    from auth.errors import PersistenceError

    def broken_list():
        raise PersistenceError("database is locked")

    monkeypatch.setattr(key_manager, "list_keys", broken_list)
    response = client.get("/api/keys", headers=_headers(admin_key))
    assert response.status_code == 500
    assert response.json()["error"] == "Internal Server Error"
