import random

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import get_pipeline, get_repo, get_storage
from syllabus_sync.importing import (
    ImportPipeline,
    ImportStoragePaths,
    InMemoryEventRepository,
    LocalImportStorage,
    ProgressConfig,
)

from conftest import FakeExtractor, FakeParser

PDF_BYTES = b"%PDF-1.4\n% fake syllabus\n"


@pytest.fixture
def api(tmp_path):
    repo = InMemoryEventRepository()
    storage = LocalImportStorage(ImportStoragePaths(tmp_path / "data"))
    parser = FakeParser()
    pipeline = ImportPipeline(
        extractor=FakeExtractor(),
        parser=parser,
        event_store=repo,
        storage=storage,
        progress_config=ProgressConfig.instant(),
        rng=random.Random(3),
    )
    app = create_app()
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_repo] = lambda: repo
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as client:
        yield client, pipeline, parser


def upload(client, content=PDF_BYTES, content_type="application/pdf"):
    return client.post("/imports/upload", files={"file": ("syllabus.pdf", content, content_type)})


def test_healthz(api):
    client, _, _ = api
    assert client.get("/healthz").json() == {"status": "ok"}


def test_upload_runs_import(api, tmp_path):
    client, _, _ = api

    response = upload(client)

    assert response.status_code == 202
    source = response.json()["source"]
    assert source.startswith(str(tmp_path / "data" / "uploads"))
    session = client.get("/imports/session").json()
    assert session["status"] == "completed"
    assert session["progress"] == 1.0
    assert session["source"] == source
    assert [e["id"] for e in session["events"]] == ["evt-1"]
    assert session["diagnosticsSummary"] == "OpenAI • Confidence 87% • gpt-4o-mini"
    assert [e["id"] for e in client.get("/events").json()] == ["evt-1"]
    assert [c["code"] for c in client.get("/events/courses").json()] == ["CS101"]
    assert client.get("/imports/session/preview").headers["content-type"] == "image/png"


def test_upload_rejects_non_pdf_and_empty(api):
    client, _, _ = api
    assert upload(client, content_type="text/plain").status_code == 400
    assert upload(client, content=b"").status_code == 400
    assert client.get("/imports/session").json()["status"] == "idle"


def test_failed_import_exposes_error(api):
    client, _, parser = api
    parser.error = ValueError("parser exploded")

    upload(client)

    session = client.get("/imports/session").json()
    assert session["status"] == "failed"
    assert session["progress"] == 0.0
    assert session["error"]["kind"] == "unknown"
    assert session["error"]["message"] == "parser exploded"


def test_retry_requires_previous_source(api):
    client, _, parser = api
    assert client.post("/imports/retry").status_code == 404

    parser.error = ValueError("flaky")
    upload(client)
    parser.error = None

    assert client.post("/imports/retry").status_code == 202
    assert client.get("/imports/session").json()["status"] == "completed"


def test_cancel_when_idle(api):
    client, _, _ = api
    assert client.post("/imports/cancel").json() == {"cancelled": False}


def test_clear_results(api):
    client, _, _ = api
    upload(client)

    session = client.delete("/imports/results").json()

    assert session["events"] == []
    assert session["status"] == "completed"
    assert client.get("/imports/session/preview").status_code == 404


def test_edit_event(api):
    client, pipeline, _ = api
    upload(client)
    payload = client.get("/imports/session").json()["events"][0]
    payload["title"] = "Midterm Exam"

    response = client.put(f"/imports/events/{payload['id']}", json=payload)

    assert response.status_code == 200
    assert response.json()["inSession"] is True
    assert pipeline.session.events[0].title == "Midterm Exam"
    assert client.get("/events").json()[0]["title"] == "Midterm Exam"


def test_edit_event_validates_payload(api):
    client, _, _ = api
    assert client.put("/imports/events/evt-1", json={"title": "no id"}).status_code == 400
    mismatched = {"id": "other", "courseCode": "CS101", "title": "x", "start": "2025-10-01T09:00:00"}
    assert client.put("/imports/events/evt-1", json=mismatched).status_code == 400


def test_upload_conflict_discards_stored_pdf(api, tmp_path, monkeypatch):
    client, pipeline, _ = api
    monkeypatch.setattr(pipeline, "launch", lambda source: None)

    response = upload(client)

    assert response.status_code == 409
    assert list((tmp_path / "data" / "uploads").iterdir()) == []
    assert client.get("/imports/session").json()["status"] == "idle"
