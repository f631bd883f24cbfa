from fastapi.testclient import TestClient

from synapse.bridge.app import app

client = TestClient(app)


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_viewer_routes_are_mounted():
    paths = {route.path for route in app.routes}
    assert {"/api/stream", "/synapse", "/api/trigger", "/api/control/stream", "/api/status"} <= paths
    assert "/api/sessions/parse" in paths


def test_status_without_lifespan_is_unavailable():
    app.state.channel = None
    response = client.get("/api/status")
    assert response.status_code == 503
