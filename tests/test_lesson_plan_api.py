import pytest
from fastapi.testclient import TestClient

from lessonplanner.api.lesson_plan import get_store
from lessonplanner.core.errors import GenerationError
from lessonplanner.main import app
from lessonplanner.models.lesson_plan_model import PartialLessonPlan
from lessonplanner.services import ai_lesson_plan_generator


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _plan_payload(**fields):
    payload = {"id": "plan-1", "lessonTitle": "الفاعل", "subject": "اللغة العربية", "schoolName": "مدرسة الوحدة"}
    payload.update(fields)
    return payload


def test_root(client):
    assert client.get("/").json() == {"message": "Lesson Planner API is running"}


def test_save_list_and_get(client):
    assert client.get("/api/plans").json() == []

    resp = client.put("/api/plans", json=_plan_payload(date="2024-01-08"))
    assert resp.status_code == 200
    assert resp.json()["day"] == "الاثنين"

    plans = client.get("/api/plans").json()
    assert [p["id"] for p in plans] == ["plan-1"]
    assert plans[0]["lessonTitle"] == "الفاعل"

    assert client.get("/api/plans/plan-1").json()["subject"] == "اللغة العربية"
    assert client.get("/api/plans/plan-missing").status_code == 404


def test_save_refreshes_profile_used_by_new_plans(client):
    client.put("/api/plans", json=_plan_payload())
    assert client.get("/api/profile").json()["schoolName"] == "مدرسة الوحدة"

    new_plan = client.get("/api/plans/new").json()
    assert new_plan["schoolName"] == "مدرسة الوحدة"
    assert new_plan["id"] != "plan-1"
    assert client.get("/api/generation-details").json()["subject"] == "اللغة العربية"


def test_delete_needs_confirmation(client):
    client.put("/api/plans", json=_plan_payload())
    assert client.delete("/api/plans/plan-1").status_code == 400
    assert client.delete("/api/plans/plan-1", params={"confirm": True}).json() == []


def test_analyze_merges_into_plan(client, monkeypatch):
    async def fake_analyze(text):
        return PartialLessonPlan(subject="رياضيات", homework="تمارين")

    monkeypatch.setattr(ai_lesson_plan_generator, "analyze_lesson_text", fake_analyze)
    resp = client.post("/api/plans/analyze", json={"plan": _plan_payload(), "text": "درس"})

    assert resp.status_code == 200
    assert resp.json()["subject"] == "اللغة العربية"
    assert resp.json()["homework"] == "تمارين"


def test_analyze_blank_text_is_bad_request(client):
    resp = client.post("/api/plans/analyze", json={"plan": _plan_payload(), "text": "  "})
    assert resp.status_code == 400
    assert resp.json()["detail"] == ai_lesson_plan_generator.EMPTY_ANALYSIS_TEXT_MESSAGE


def test_generate_failure_is_bad_gateway(client, monkeypatch):
    async def fake_generate(content, details):
        raise GenerationError()

    monkeypatch.setattr(ai_lesson_plan_generator, "generate_full_lesson_plan", fake_generate)
    resp = client.post("/api/plans/generate", json={"lessonContent": "الفاعل", "details": {"subject": "عربي"}})
    assert resp.status_code == 502
    assert resp.json()["detail"] == GenerationError.default_message


def test_fill_from_generated(client):
    generated = {
        "structuredData": {"lessonTitle": "الفاعل", "homework": "تمارين"},
        "plainText": "خطة",
        "warnings": [],
    }
    plan = client.post("/api/plans/fill", json=generated).json()
    assert plan["lessonTitle"] == "الفاعل"
    assert plan["id"].startswith("plan-")


def test_extract_text_file(client):
    resp = client.post("/api/files/extract", files={"file": ("lesson.txt", "نص الدرس".encode("utf-8"), "text/plain")})
    assert resp.json() == {"filename": "lesson.txt", "text": "نص الدرس"}


def test_extract_unsupported_file(client):
    resp = client.post("/api/files/extract", files={"file": ("photo.png", b"\x89PNG", "image/png")})
    assert resp.status_code == 400


def test_exports(client):
    pdf = client.post("/api/export/plan.pdf", json=_plan_payload(lessonTitle="Fractions"))
    assert pdf.status_code == 200
    assert pdf.headers["content-type"] == "application/pdf"
    assert pdf.content.startswith(b"%PDF")

    txt = client.post("/api/export/text.txt", json={"text": "خطة"})
    assert txt.content == "خطة".encode("utf-8")
    assert "filename*=UTF-8''" in txt.headers["content-disposition"]

    assert client.post("/api/export/text.pdf", json={"text": "plan"}).content.startswith(b"%PDF")


def test_vocabulary(client):
    vocab = client.get("/api/vocabulary").json()
    assert "الأحد" in vocab["days"]
    assert vocab["teachingMethods"]
