import asyncio
import json

import pytest

from lessonplanner.core.constants import DEFAULT_TEACHER_ROLE, PLANS_KEY
from lessonplanner.core.errors import (
    AnalysisError,
    LessonValidationError,
    PersistenceError,
    RequestInProgressError,
)
from lessonplanner.models.lesson_plan_model import (
    GeneratedPlan,
    GenerationDetails,
    LessonPlan,
    Objective,
    PartialLessonPlan,
    TeacherProfile,
)
from lessonplanner.services.lesson_planner import LessonPlanner, PlanState
from lessonplanner.services.plan_store import MemoryStorage, PlanStore


async def _no_analysis(text):
    return PartialLessonPlan()


@pytest.fixture
def planner(store):
    return LessonPlanner(store, analyzer=_no_analysis)


# -------------------------
# Lifecycle
# -------------------------
def test_create_new_applies_profile(store, planner):
    store.save_profile(TeacherProfile(school_name="مدرسة الوحدة", teacher_name="أحمد"))
    plan = planner.create_new()

    assert planner.state is PlanState.NEW
    assert plan.id.startswith("plan-")
    assert plan.school_name == "مدرسة الوحدة"
    assert plan.teacher_name == "أحمد"
    assert plan.subject == ""
    assert plan.teacher_role == DEFAULT_TEACHER_ROLE


def test_new_plans_get_distinct_ids(planner):
    assert planner.create_new().id != planner.create_new().id


def test_load_coerces_legacy_plan(planner):
    plan = planner.load({"id": "plan-old", "teacherRole": "شارح", "studentRole": None, "date": "2024-01-08"})
    assert planner.state is PlanState.EDITING
    assert plan.teacher_role == ["شارح"]
    assert plan.student_role == []
    assert plan.day == "الاثنين"


def test_save_upserts_and_refreshes_profile(store, planner):
    planner.create_new()
    planner.update_field("school_name", "مدرسة الأمل")
    planner.update_field("subject", "رياضيات")
    saved = planner.save()

    assert planner.state is PlanState.SAVED
    assert [p.id for p in store.list_plans()] == [saved.id]
    profile = store.load_profile()
    assert profile.school_name == "مدرسة الأمل"
    assert profile.subject == "رياضيات"

    planner.update_field("lesson_title", "الكسور")
    assert planner.state is PlanState.EDITING
    planner.save()
    assert len(store.list_plans()) == 1


def test_delete_requires_confirmation(store, planner):
    planner.create_new()
    plan = planner.save()

    with pytest.raises(LessonValidationError):
        planner.delete(plan.id)
    assert len(store.list_plans()) == 1

    assert planner.delete(plan.id, confirmed=True) == []
    assert planner.delete("plan-missing", confirmed=True) == []


def test_generation_details_prefilled_from_profile(store, planner):
    store.save_profile(TeacherProfile(subject="علوم", grade="السادس", school_name="مدرسة"))
    details = planner.generation_details()
    assert details.subject == "علوم"
    assert details.grade == "السادس"
    assert details.lesson_title == ""


# -------------------------
# Edits
# -------------------------
def test_editing_date_recomputes_day(planner):
    planner.create_new()
    plan = planner.update_field("date", "2024-01-12")
    assert plan.day == "الجمعة"
    plan = planner.update_field("date", "")
    assert plan.day == ""


def test_read_only_and_unknown_fields_rejected(planner):
    planner.create_new()
    for name in ("day", "id", "not_a_field"):
        with pytest.raises(LessonValidationError):
            planner.update_field(name, "x")


def test_edit_without_plan_rejected(planner):
    with pytest.raises(LessonValidationError):
        planner.update_field("subject", "x")


def test_roles_split_one_per_line(planner):
    planner.create_new()
    plan = planner.update_field("student_role", "مشارك\nمناقش")
    assert plan.student_role == ["مشارك", "مناقش"]
    with pytest.raises(LessonValidationError):
        planner.set_roles("teaching_aids", "x")


def test_toggle_selection(planner):
    planner.create_new()
    planner.toggle_selection("teaching_methods", "الإلقاء")
    planner.toggle_selection("teaching_methods", "الحوار")
    assert planner.plan.teaching_methods == ["الإلقاء", "الحوار"]
    planner.toggle_selection("teaching_methods", "الإلقاء")
    assert planner.plan.teaching_methods == ["الحوار"]
    with pytest.raises(LessonValidationError):
        planner.toggle_selection("teacher_role", "x")


def test_objective_editing(planner):
    planner.create_new()
    first = planner.add_objective("cognitive")
    second = planner.add_objective("cognitive")
    assert first.id != second.id
    assert first.id.startswith("new-cognitive-")

    planner.update_objective("cognitive", 1, "formulation", "أن يحل الطالب المعادلة")
    assert planner.plan.cognitive_objectives[1].formulation == "أن يحل الطالب المعادلة"

    planner.remove_objective("cognitive", first.id)
    assert [o.id for o in planner.plan.cognitive_objectives] == [second.id]

    with pytest.raises(LessonValidationError):
        planner.update_objective("cognitive", 5, "level", "الفهم")
    with pytest.raises(LessonValidationError):
        planner.add_objective("spiritual")


def test_set_emblem(planner):
    planner.create_new()
    planner.set_emblem(1, "data:image/png;base64,AAAA")
    assert planner.plan.emblem1 == "data:image/png;base64,AAAA"
    planner.set_emblem(1, None)
    assert planner.plan.emblem1 is None
    with pytest.raises(LessonValidationError):
        planner.set_emblem(3, "x")


# -------------------------
# Analysis
# -------------------------
def test_analyze_fills_only_empty_fields(store):
    async def analyzer(text):
        return PartialLessonPlan(subject="لغة عربية", lesson_title="الفاعل", teaching_aids=["السبورة"])

    planner = LessonPlanner(store, analyzer=analyzer)
    planner.create_new()
    planner.update_field("subject", "رياضيات")

    merged = asyncio.run(planner.analyze("نص الدرس"))

    assert merged.subject == "رياضيات"
    assert merged.lesson_title == "الفاعل"
    assert merged.teaching_aids == ["السبورة"]
    assert planner.plan is merged
    assert not planner.is_loading_analysis


def test_analyze_failure_keeps_plan(store):
    async def analyzer(text):
        raise AnalysisError()

    planner = LessonPlanner(store, analyzer=analyzer)
    plan = planner.create_new()
    with pytest.raises(AnalysisError):
        asyncio.run(planner.analyze("نص"))
    assert planner.plan is plan
    assert not planner.is_loading_analysis


def test_second_analysis_while_in_flight_is_rejected(store):
    async def scenario():
        release = asyncio.Event()

        async def slow(text):
            await release.wait()
            return PartialLessonPlan(subject="علوم")

        planner = LessonPlanner(store, analyzer=slow)
        planner.create_new()
        task = asyncio.create_task(planner.analyze("نص"))
        await asyncio.sleep(0)

        assert planner.is_loading_analysis
        with pytest.raises(RequestInProgressError):
            await planner.analyze("نص")

        release.set()
        merged = await task
        assert merged.subject == "علوم"

    asyncio.run(scenario())


def test_stale_analysis_result_is_discarded(store):
    async def scenario():
        release = asyncio.Event()

        async def slow(text):
            await release.wait()
            return PartialLessonPlan(subject="علوم")

        planner = LessonPlanner(store, analyzer=slow)
        planner.create_new()
        task = asyncio.create_task(planner.analyze("نص"))
        await asyncio.sleep(0)

        other = planner.create_new()
        release.set()
        assert await task is None
        assert planner.plan is other
        assert other.subject == ""

    asyncio.run(scenario())


# -------------------------
# Generation
# -------------------------
def _generated() -> GeneratedPlan:
    structured = PartialLessonPlan(
        id="plan-ignored",
        subject="اللغة العربية",
        lesson_title="الفاعل",
        homework="تمارين",
        cognitive_objectives=[Objective(id="cog-gen-1", level="الفهم", formulation="أن يعرف")],
    )
    return GeneratedPlan(structured_data=structured, plain_text="خطة")


def test_fill_from_generated_creates_new_plan(store):
    store.save_profile(TeacherProfile(teacher_name="أحمد", subject="رياضيات"))
    generated = _generated()

    async def generator(text, details):
        return generated

    planner = LessonPlanner(store, analyzer=_no_analysis, generator=generator)
    result = asyncio.run(planner.generate("الفاعل", GenerationDetails()))
    assert result is generated
    assert planner.generated is generated

    plan = planner.fill_from_generated()
    assert planner.state is PlanState.EDITING
    assert plan.id != "plan-ignored"
    assert plan.teacher_name == "أحمد"
    # generated data wins over the profile
    assert plan.subject == "اللغة العربية"
    assert plan.homework == "تمارين"
    assert plan.cognitive_objectives[0].id == "cog-gen-1"
    assert plan.cognitive_objectives[0] is not generated.structured_data.cognitive_objectives[0]


def test_fill_without_generated_plan_rejected(planner):
    with pytest.raises(LessonValidationError):
        planner.fill_from_generated()


def test_stale_generation_is_discarded(store):
    async def scenario():
        release = asyncio.Event()

        async def slow(text, details):
            await release.wait()
            return _generated()

        planner = LessonPlanner(store, analyzer=_no_analysis, generator=slow)
        task = asyncio.create_task(planner.generate("الفاعل", GenerationDetails()))
        await asyncio.sleep(0)
        with pytest.raises(RequestInProgressError):
            await planner.generate("الفاعل", GenerationDetails())

        planner.close()
        release.set()
        assert await task is None
        assert planner.generated is None

    asyncio.run(scenario())


def test_load_accepts_model_instance(planner):
    plan = LessonPlan(id="plan-x", teacher_role=["a"])
    loaded = planner.load(plan)
    assert loaded.id == "plan-x"
    assert loaded is not plan


def test_update_field_coerces_lists_and_objectives(planner):
    planner.create_new()
    plan = planner.update_field("teaching_methods", "الحوار")
    assert plan.teaching_methods == ["الحوار"]

    plan = planner.update_field("cognitive_objectives", [{"id": "cog-1", "level": "الفهم"}])
    assert isinstance(plan.cognitive_objectives[0], Objective)
    planner.remove_objective("cognitive", "cog-1")
    assert planner.plan.cognitive_objectives == []


def test_update_field_rejects_invalid_value(planner):
    planner.create_new()
    with pytest.raises(LessonValidationError):
        planner.update_field("cognitive_objectives", "not a list")


def test_save_over_unreadable_collection_keeps_stored_plans():
    records = json.dumps([{"id": "plan-1"}, {"id": "plan-2", "cognitiveObjectives": "old scalar objective"}])
    backend = MemoryStorage({PLANS_KEY: records})
    planner = LessonPlanner(PlanStore(backend), analyzer=_no_analysis)
    planner.create_new()

    with pytest.raises(PersistenceError):
        planner.save()
    assert backend.get_item(PLANS_KEY) == records
    assert planner.plan is not None
