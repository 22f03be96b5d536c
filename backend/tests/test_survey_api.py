"""Tests for the survey API routes."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import api_route_paths, app
from app.models.base import Base, get_db
from app.models.survey import CulvertSurvey, SurveyPhoto


@pytest.fixture()
def db_session():
    """Provide an isolated in-memory SQLite database for each test."""
    test_engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool,
    )
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    Base.metadata.create_all(bind=test_engine)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    db = TestSession()
    yield db
    db.close()
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    return TestClient(app)


def _form(**overrides):
    data = {
        "reporter_name": "crawler@example.org",
        "report_type": "Culvert",
        "latitude": "43.70220000",
        "longitude": "-72.28960000",
        "timestamp": "2025-06-15T10:30",
        "culvert_type": "Concrete",
        "ownership": "Town",
    }
    data.update(overrides)
    return data


class TestSubmit:
    def test_saves_survey_with_photos(self, client, db_session):
        files = [
            ("inlet_photo", ("inlet_photo.jpg", b"INLET", "image/jpeg")),
            ("additional_photos", ("a-1.jpg", b"A1", "image/jpeg")),
            ("additional_photos", ("a-2.jpg", b"A2", "image/jpeg")),
        ]
        resp = client.post("/api/submit", data=_form(), files=files)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Form saved successfully"

        survey = db_session.query(CulvertSurvey).filter(CulvertSurvey.id == body["id"]).first()
        assert survey.inlet_photo == b"INLET"
        assert survey.outlet_photo is None
        assert survey.latitude == pytest.approx(43.7022)
        assert survey.culvert_type == "Concrete"
        assert survey.ditch_water is None
        assert survey.ditch_water_other == ""
        assert sorted(p.image for p in survey.photos) == [b"A1", b"A2"]

    def test_form_without_files(self, client):
        resp = client.post("/api/submit", data=_form(report_type="Storm Drain", drain_type="Bars"))
        assert resp.status_code == 200

    def test_unknown_report_type_rejected(self, client):
        resp = client.post("/api/submit", data=_form(report_type="Bridge"))
        assert resp.status_code == 400

    def test_missing_coordinates_rejected(self, client):
        data = _form()
        del data["latitude"]
        resp = client.post("/api/submit", data=data)
        assert resp.status_code == 400

    def test_too_many_additional_photos_rejected(self, client, db_session):
        files = [("additional_photos", (f"a-{i}.jpg", b"x", "image/jpeg")) for i in range(6)]
        resp = client.post("/api/submit", data=_form(), files=files)
        assert resp.status_code == 400
        assert db_session.query(CulvertSurvey).count() == 0

    def test_replayed_submission_is_acknowledged_once(self, client, db_session):
        first = client.post("/api/submit", data=_form(client_submission_id="abc123"))
        second = client.post("/api/submit", data=_form(client_submission_id="abc123"))
        assert first.status_code == second.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert db_session.query(CulvertSurvey).count() == 1
        assert db_session.query(SurveyPhoto).count() == 0


class TestHistory:
    def test_newest_first_for_reporter(self, client):
        client.post("/api/submit", data=_form(timestamp="2025-06-01T08:00", report_type="Ditch"))
        client.post("/api/submit", data=_form(timestamp="2025-06-20T09:00"))
        client.post("/api/submit", data=_form(reporter_name="someone@else.org"))

        resp = client.get("/api/history", params={"reporter_name": "crawler@example.org"})
        assert resp.status_code == 200
        rows = resp.json()
        assert [r["timestamp"] for r in rows] == ["2025-06-20T09:00", "2025-06-01T08:00"]
        assert rows[1]["report_type"] == "Ditch"
        assert set(rows[0]) == {"id", "report_type", "latitude", "longitude", "ownership", "timestamp"}

    def test_missing_reporter_is_400(self, client):
        assert client.get("/api/history").status_code == 400


def test_ping(client):
    resp = client.get("/api/ping")
    assert resp.status_code == 200
    assert resp.text == "pong"


def test_api_routes_registered():
    paths = {getattr(r, "path", None) for r in app.routes}
    assert {"/api/submit", "/api/history", "/api/ping", "/health"} <= paths


def test_route_listing_skips_routes_without_path():
    class IncludedRouter:
        pass

    routes = list(app.routes) + [IncludedRouter()]
    paths = api_route_paths(routes)
    assert {"/api/submit", "/api/history", "/api/ping"} <= set(paths)
    assert "/health" not in paths


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
