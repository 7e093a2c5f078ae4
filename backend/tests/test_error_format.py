from __future__ import annotations


def _assert_error_shape(res, *, error: str | None = None):
    data = res.json()
    assert isinstance(data, dict)
    assert isinstance(data.get("error"), str) and data["error"]
    assert isinstance(data.get("message"), str) and data["message"]
    if error is not None:
        assert data["error"] == error


def test_error_shape_404_missing_fields(client):
    res = client.post("/register", json={"username": "alice01"})
    assert res.status_code == 404
    _assert_error_shape(res, error="MISSING_FIELDS")
    assert res.json()["details"] == {"fields": ["password", "email"]}


def test_error_shape_400_wrong_body_type(client):
    res = client.post("/register", json={"username": ["not", "a", "string"], "password": "x", "email": "y"})
    assert res.status_code == 400
    _assert_error_shape(res, error="VALIDATION_ERROR")
    body = res.json()
    assert isinstance(body.get("details"), dict)
    assert isinstance(body["details"].get("errors"), list)


def test_error_shape_401_missing_token(client):
    res = client.get("/current-user")
    assert res.status_code == 401
    _assert_error_shape(res, error="UNAUTHORIZED")


def test_error_shape_409_conflict(client, make_user):
    make_user("alice01", "a@b.com", verified=True)
    res = client.post("/register", json={"username": "alice01", "password": "pass1234", "email": "a@b.com"})
    assert res.status_code == 409
    _assert_error_shape(res, error="CONFLICT")


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
