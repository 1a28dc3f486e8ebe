import pytest
from django.db import DatabaseError


@pytest.mark.django_db
def test_health_reports_components(client, settings):
    settings.OPENAI_API_KEY = "sk-test"
    r = client.get("/health/")

    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["components"]["db"] == {"ok": True}
    assert body["components"]["mail"] == {"configured": False}
    assert body["components"]["generation"]["configured"] is True
    assert body["components"]["payments"] == {"configured": True}


@pytest.mark.django_db
def test_health_503_when_db_down(client, monkeypatch):
    from apps.monitoring import api

    class BrokenConnection:
        def cursor(self):
            raise DatabaseError("down")

    monkeypatch.setattr(api, "connection", BrokenConnection())
    r = client.get("/health/")
    assert r.status_code == 503
    assert r.json()["ok"] is False


def test_liveness_needs_no_database(client):
    r = client.get("/health/live/")
    assert r.status_code == 200
    assert r.json() == {"ok": True}
