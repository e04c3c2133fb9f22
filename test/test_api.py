import importlib
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from storage.memory_store import InMemoryTaskStore


def _client(extractor, store=None):
    main_mod = importlib.import_module("api.main")
    app = main_mod.create_app(store=store or InMemoryTaskStore(), extractor=extractor, refresh_interval_s=0)
    return TestClient(app)


def _manual_payload(**overrides):
    deadline = datetime.now(timezone.utc) + timedelta(days=5)
    data = {
        "title": "File quarterly report",
        "description": "Due to the ministry",
        "category": "Financial",
        "priority": "High",
        "deadline": deadline.isoformat(),
        "pre_submission_date": (deadline - timedelta(days=2)).isoformat(),
        "source": "https://example.org/q",
    }
    data.update(overrides)
    return data


def test_refresh_is_idempotent(extractor_factory):
    with _client(extractor_factory()) as client:
        first = client.post("/gazette/refresh")
        second = client.post("/gazette/refresh")

        assert first.status_code == 200
        assert first.json() == {"newEntries": 3}
        assert second.json() == {"newEntries": 0}

        body = client.get("/tasks").json()
        assert body["total"] == 3
        assert {t["category"] for t in body["tasks"]} == {"Legal", "Other"}


def test_refresh_with_unreachable_gazette_reports_zero(failing_extractor):
    with _client(failing_extractor) as client:
        r = client.post("/gazette/refresh")
        assert r.status_code == 200
        assert r.json() == {"newEntries": 0}


def test_refresh_internal_error_is_generic(extractor_factory):
    class BrokenStore(InMemoryTaskStore):
        async def find_by(self, field, value, limit=1):
            raise RuntimeError("connection reset")

    with _client(extractor_factory(), store=BrokenStore()) as client:
        r = client.post("/gazette/refresh")
        assert r.status_code == 500
        assert r.json()["detail"] == "Failed to fetch gazette data"


def test_task_crud_roundtrip(extractor_factory):
    with _client(extractor_factory()) as client:
        created = client.post("/tasks", json=_manual_payload(status="Completed"))
        assert created.status_code == 201
        task = created.json()
        assert task["status"] == "Pending"
        assert task["id"]

        got = client.get(f"/tasks/{task['id']}")
        assert got.status_code == 200
        assert got.json()["title"] == "File quarterly report"

        patched = client.patch(f"/tasks/{task['id']}", json={"title": "Renamed", "requires_registration": True})
        assert patched.status_code == 200
        assert patched.json()["title"] == "Renamed"
        assert patched.json()["requires_registration"] is True
        assert patched.json()["updated_at"] is not None

        status = client.patch(f"/tasks/{task['id']}/status", json={"status": "In Progress"})
        assert status.status_code == 200
        assert client.get(f"/tasks/{task['id']}").json()["status"] == "In Progress"

        assert client.delete(f"/tasks/{task['id']}").status_code == 204
        assert client.get(f"/tasks/{task['id']}").status_code == 404


def test_create_rejects_pre_submission_not_before_deadline(extractor_factory):
    deadline = (datetime.now(timezone.utc) + timedelta(days=3)).isoformat()
    with _client(extractor_factory()) as client:
        r = client.post("/tasks", json=_manual_payload(deadline=deadline, pre_submission_date=deadline))
        assert r.status_code == 422
        assert "pre_submission_date" in r.json()["detail"]
        assert client.get("/tasks").json()["total"] == 0


def test_create_rejects_missing_fields(extractor_factory):
    with _client(extractor_factory()) as client:
        r = client.post("/tasks", json={"title": "Only a title"})
        assert r.status_code == 422
        detail = r.json()["detail"]
        assert {"description", "deadline", "source"} <= set(detail)


def test_unknown_task_returns_404(extractor_factory):
    with _client(extractor_factory()) as client:
        assert client.patch("/tasks/nope", json={"title": "x"}).status_code == 404
        assert client.patch("/tasks/nope/status", json={"status": "Completed"}).status_code == 404
        assert client.delete("/tasks/nope").status_code == 404


def test_list_filters(extractor_factory):
    with _client(extractor_factory()) as client:
        client.post("/gazette/refresh")
        legal = client.get("/tasks", params={"category": "Legal"}).json()
        assert legal["total"] == 2
        other = client.get("/tasks", params={"category": "Other", "status": "Pending"}).json()
        assert other["total"] == 1
        assert client.get("/tasks", params={"priority": "High"}).json()["total"] == 0


def test_tasks_listed_by_deadline(extractor_factory):
    now = datetime.now(timezone.utc)
    with _client(extractor_factory()) as client:
        for days in (9, 3, 6):
            deadline = now + timedelta(days=days)
            client.post(
                "/tasks",
                json=_manual_payload(
                    title=f"due in {days}",
                    deadline=deadline.isoformat(),
                    pre_submission_date=None,
                ),
            )
        titles = [t["title"] for t in client.get("/tasks").json()["tasks"]]
        assert titles == ["due in 3", "due in 6", "due in 9"]


def test_health_and_metrics(extractor_factory):
    with _client(extractor_factory()) as client:
        client.post("/gazette/refresh")

        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["store_type"] == "in-memory"

        m = client.get("/metrics")
        assert m.status_code == 200
        assert "text/plain" in m.headers.get("content-type", "")
        body = m.text
        assert "gazette_requests_total" in body
        assert "gazette_tasks_ingested_total" in body
        assert "gazette_tasks_stored 3.0" in body
        assert any(
            line.startswith('gazette_requests_total{endpoint="/gazette/refresh",status="ok"}')
            for line in body.splitlines()
        )


def test_ingestion_status_reports_idle_between_runs(extractor_factory):
    with _client(extractor_factory()) as client:
        assert client.get("/gazette/status").json() == {"phase": "idle"}
        client.post("/gazette/refresh")
        assert client.get("/gazette/status").json() == {"phase": "idle"}
