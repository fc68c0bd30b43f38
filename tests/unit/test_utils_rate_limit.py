from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from paygate.utils.rate_limit import optional_rate_limit, rate_limit_health_info


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
    r3 = client.get("/limitedA")
    assert r3.status_code == 429


def test_rate_limit_is_per_path(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429

    # path B: indépendant de A
    assert client.get("/limitedB").status_code == 200
    assert client.get("/limitedB").status_code == 200
    assert client.get("/limitedB").status_code == 429


def test_rate_limit_window_expires(monkeypatch):
    import paygate.utils.rate_limit as rl

    now = {"t": 1000.0}
    monkeypatch.setattr(rl.time, "time", lambda: now["t"])
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=60))

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429
    now["t"] += 61
    assert client.get("/limitedA").status_code == 200


def test_rate_limit_disabled_flag_bypasses_limit(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    app.state.rate_limit_enabled = False
    client = TestClient(app)

    for _ in range(3):
        assert client.get("/limitedA").status_code == 200


def test_rate_limit_health_info(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app()
    app.state.rate_limit_enabled = False
    client = TestClient(app)

    info = client.get("/rl_info").json()
    assert info["enabled"] is False
    assert info["ready"] is False
    assert info["backend"] is None

    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    assert client.get("/rl_info").json()["backend"] == "memory"
