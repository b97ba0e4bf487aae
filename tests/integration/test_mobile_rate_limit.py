from bizflow.mobile.infrastructure.repositories.demo_seed import DEMO_OWNER_EMAIL


def _bad_login(client, device_id="dev-1"):
    return client.post(
        "/api/mobile/auth/login",
        json={
            "email": DEMO_OWNER_EMAIL,
            "password": "nope",
            "deviceId": device_id,
            "deviceName": "Pixel",
            "platform": "android",
            "appVersion": "3.2.0",
        },
        headers={"X-Device-Id": device_id},
    )


def test_auth_class_allows_ten_then_rejects(client, clock):
    for _ in range(10):
        assert _bad_login(client).status_code == 401

    clock.advance(20)
    r = _bad_login(client)
    assert r.status_code == 429
    body = r.json()
    assert body["error"] == "RATE_LIMITED"
    assert body["retryable"] is True
    assert body["retryAfter"] == 40
    assert body["message"] == "Too many auth attempts"
    assert r.headers["Retry-After"] == "40"
    assert r.headers["X-RateLimit-Limit"] == "10"
    assert r.headers["X-RateLimit-Remaining"] == "0"
    assert r.headers["X-API-Version"] == "v1"


def test_window_reset_lets_caller_back_in(client, clock):
    for _ in range(11):
        _bad_login(client)

    clock.advance(60)
    assert _bad_login(client).status_code == 401


def test_limits_are_per_device(client):
    for _ in range(11):
        _bad_login(client, device_id="dev-1")
    assert _bad_login(client, device_id="dev-2").status_code == 401


def test_rate_limit_runs_before_auth(client):
    for _ in range(30):
        assert client.post("/api/mobile/sync", json={"entity": "customers"}).status_code == 401
    r = client.post("/api/mobile/sync", json={"entity": "customers"})
    assert r.status_code == 429


def test_rate_limiting_can_be_disabled(make_client):
    client = make_client(ENABLE_RATE_LIMITING=False)
    for _ in range(12):
        assert _bad_login(client).status_code == 401
