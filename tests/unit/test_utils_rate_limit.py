import time

from fastapi import FastAPI, Depends, Request
from fastapi.testclient import TestClient

from storefront.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.get("/limitedA", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_a():
        return {"ok": True}

    @app.get("/limitedB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429


def test_rate_limit_is_per_path_and_token(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=60))
    alice = {"Authorization": "Bearer alice-token"}
    bob = {"Authorization": "Bearer bob-token"}

    assert client.get("/limitedA", headers=alice).status_code == 200
    assert client.get("/limitedA", headers=alice).status_code == 429
    assert client.get("/limitedA", headers=bob).status_code == 200
    assert client.get("/limitedB", headers=alice).status_code == 200


def test_rate_limit_resets_after_window(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=1))

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429
    time.sleep(1.1)
    assert client.get("/limitedA").status_code == 200


def test_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    app.state.rate_limit_enabled = False
    client = TestClient(app)

    for _ in range(3):
        assert client.get("/limitedA").status_code == 200


def test_health_info_reports_state(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app()
    app.state.rate_limit_enabled = False
    info = TestClient(app).get("/rl_info").json()
    assert info["enabled"] is False
    assert info["local_fallback"] is False


def test_fallback_store_forgets_idle_clients(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    app = _make_app(times=5, seconds=1)
    client = TestClient(app)

    for i in range(20):
        assert client.get("/limitedA", headers={"Authorization": f"Bearer token-{i}"}).status_code == 200
    assert len(app.state._rl_store) == 20

    time.sleep(1.1)
    assert client.get("/limitedB").status_code == 200
    assert len(app.state._rl_store) == 1
    assert all(k.endswith(":/limitedB") for k in app.state._rl_store)
