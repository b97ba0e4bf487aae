def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def _sync(client, token, **body):
    payload = {"entity": "customers", "lastSyncedAt": None, "clientVersion": 0, "pendingChanges": []}
    payload.update(body)
    return client.post("/api/mobile/sync", json=payload, headers=_auth(token))


def test_sync_requires_auth(client):
    r = client.post("/api/mobile/sync", json={"entity": "customers"})
    assert r.status_code == 401
    assert r.json()["error"] == "AUTH_INVALID_TOKEN"


def test_sync_response_shape_and_headers(client, login_as):
    token = login_as(client)["tokens"]["accessToken"]
    r = _sync(
        client,
        token,
        pendingChanges=[{"id": "c-1", "action": "create", "payload": {"name": "Ada"}, "timestamp": 1000}],
    )
    assert r.status_code == 200
    body = r.json()
    assert set(body) == {
        "entity",
        "serverVersion",
        "syncedAt",
        "changes",
        "conflicts",
        "processed",
        "failed",
        "hasMore",
        "nextCursor",
        "checksum",
    }
    assert len(body["checksum"]) == 16
    assert r.headers["X-RateLimit-Limit"] == "30"
    # the legacy `payload` key is accepted for change data
    assert body["changes"][0]["data"] == {"name": "Ada"}


def test_concurrent_edit_from_another_device_conflicts(client, login_as):
    device_a = login_as(client, device_id="dev-a")["tokens"]["accessToken"]
    device_b = login_as(client, device_id="dev-b")["tokens"]["accessToken"]

    created = _sync(
        client,
        device_a,
        pendingChanges=[{"id": "c-1", "action": "create", "data": {"name": "From A"}, "timestamp": 1000}],
    ).json()
    assert created["processed"] == ["c-1"]

    r = _sync(
        client,
        device_b,
        pendingChanges=[{"id": "c-1", "action": "update", "data": {"name": "Stale B"}, "timestamp": 500}],
    )
    body = r.json()
    assert body["processed"] == []
    assert len(body["conflicts"]) == 1
    conflict = body["conflicts"][0]
    assert conflict["resolution"] == "server_wins"
    assert conflict["serverData"] == {"name": "From A"}
    assert conflict["clientChange"]["id"] == "c-1"
    assert conflict["clientChange"]["timestamp"] == 500


def test_changes_are_tenant_scoped(client, login_as):
    token = login_as(client)["tokens"]["accessToken"]
    _sync(
        client,
        token,
        pendingChanges=[{"id": "c-1", "action": "create", "data": {"name": "Acme only"}, "timestamp": 1}],
    )

    switched = client.post(
        "/api/mobile/auth/switch-tenant", json={"tenantId": "tenant-globex"}, headers=_auth(token)
    ).json()["tokens"]["accessToken"]
    body = _sync(client, switched).json()
    assert body["changes"] == []
    assert body["serverVersion"] == 1


def test_second_sync_from_last_synced_at_returns_only_new_changes(client, login_as):
    token = login_as(client)["tokens"]["accessToken"]
    first = _sync(
        client,
        token,
        pendingChanges=[{"id": "c-1", "action": "create", "data": {"name": "Ada"}, "timestamp": 1}],
    ).json()

    second = _sync(client, token, lastSyncedAt=first["syncedAt"]).json()
    assert second["changes"] == []
    assert second["serverVersion"] == 2


def test_batch_sync_isolates_failing_entities(client, login_as):
    token = login_as(client)["tokens"]["accessToken"]
    r = client.post(
        "/api/mobile/sync/batch",
        json={
            "entities": [
                {"entity": "customers", "lastSyncedAt": None, "clientVersion": 0, "pendingChanges": []},
                {"entity": "orders", "lastSyncedAt": None, "clientVersion": 0, "pendingChanges": [], "cursor": "bm90LWpzb24"},
            ]
        },
        headers=_auth(token),
    )
    assert r.status_code == 200
    results = r.json()["results"]
    assert results[0]["entity"] == "customers"
    assert results[0]["serverVersion"] == 1
    assert results[1]["entity"] == "orders"
    assert results[1]["error"] == "INVALID_REQUEST"
    assert results[1]["retryable"] is False


def test_too_many_pending_changes(make_client, login_as):
    client = make_client(SYNC_MAX_BATCH_SIZE=2)
    token = login_as(client)["tokens"]["accessToken"]
    changes = [{"id": f"c-{i}", "action": "create", "data": {"i": i}, "timestamp": i} for i in range(3)]

    r = _sync(client, token, pendingChanges=changes)
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"

    # nothing was applied
    assert _sync(client, token).json()["changes"] == []


def test_invalid_action_fails_whole_call(client, login_as):
    token = login_as(client)["tokens"]["accessToken"]
    r = _sync(
        client,
        token,
        pendingChanges=[
            {"id": "c-1", "action": "create", "data": {}, "timestamp": 1},
            {"id": "c-2", "action": "upsert", "data": {}, "timestamp": 1},
        ],
    )
    assert r.status_code == 400
    assert r.json()["error"] == "VALIDATION_ERROR"
    assert _sync(client, token).json()["changes"] == []
