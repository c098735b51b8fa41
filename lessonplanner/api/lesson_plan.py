import logging
from functools import lru_cache
from typing import List
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from fastapi.responses import Response

from lessonplanner.core import constants
from lessonplanner.core.config import storage_config
from lessonplanner.core.errors import (
    ExternalCapabilityError,
    LessonPlannerError,
    LessonValidationError,
    RequestInProgressError,
    UnsupportedInputError,
)
from lessonplanner.models.lesson_plan_model import (
    CamelModel,
    GeneratedPlan,
    GenerationDetails,
    LessonPlan,
    TeacherProfile,
)
from lessonplanner.services import pdf_export
from lessonplanner.services.document_reader import read_file_as_text
from lessonplanner.services.lesson_planner import LessonPlanner
from lessonplanner.services.plan_store import FileStorage, PlanStore

router = APIRouter()

# -------------------------
# Logging Configuration
# -------------------------
logger = logging.getLogger("lesson_plan_api")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


# -------------------------
# Dependencies
# -------------------------
@lru_cache
def get_store() -> PlanStore:
    return PlanStore(FileStorage(storage_config.data_dir))


def get_planner(store: PlanStore = Depends(get_store)) -> LessonPlanner:
    return LessonPlanner(store)


# -------------------------
# Request Models
# -------------------------
class AnalyzeRequest(CamelModel):
    plan: LessonPlan
    text: str


class GenerateRequest(CamelModel):
    lesson_content: str
    details: GenerationDetails


class TextExportRequest(CamelModel):
    text: str


class ExtractedTextResponse(CamelModel):
    filename: str
    text: str


# -------------------------
# Helpers
# -------------------------
def _http_error(e: LessonPlannerError) -> HTTPException:
    if isinstance(e, (LessonValidationError, UnsupportedInputError)):
        status = 400
    elif isinstance(e, RequestInProgressError):
        status = 409
    elif isinstance(e, ExternalCapabilityError):
        status = 502
    else:
        # PersistenceError and anything unexpected
        status = 500
    return HTTPException(status_code=status, detail=e.message)


def _download(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
    )


# -------------------------
# Plans
# -------------------------
@router.get("/plans", response_model=List[LessonPlan])
def list_plans(planner: LessonPlanner = Depends(get_planner)):
    return planner.saved_plans()


@router.get("/plans/new", response_model=LessonPlan, summary="Fresh plan with the teacher profile applied")
def new_plan(planner: LessonPlanner = Depends(get_planner)):
    return planner.create_new()


@router.get("/plans/{plan_id}", response_model=LessonPlan)
def get_plan(plan_id: str, store: PlanStore = Depends(get_store), planner: LessonPlanner = Depends(get_planner)):
    plan = store.get_plan(plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="الخطة غير موجودة.")
    return planner.load(plan)


@router.put("/plans", response_model=LessonPlan, summary="Save (upsert) a plan and refresh the teacher profile")
def save_plan(plan: LessonPlan, planner: LessonPlanner = Depends(get_planner)):
    try:
        planner.load(plan)
        saved = planner.save()
    except LessonPlannerError as e:
        logger.exception("Failed to save lesson plan")
        raise _http_error(e)
    logger.info("Lesson plan %s saved", saved.id)
    return saved


@router.delete("/plans/{plan_id}", response_model=List[LessonPlan])
def delete_plan(plan_id: str, confirm: bool = Query(False), planner: LessonPlanner = Depends(get_planner)):
    try:
        return planner.delete(plan_id, confirmed=confirm)
    except LessonPlannerError as e:
        raise _http_error(e)


@router.get("/profile", response_model=TeacherProfile)
def get_profile(store: PlanStore = Depends(get_store)):
    return store.load_profile()


@router.get("/generation-details", response_model=GenerationDetails)
def generation_details(planner: LessonPlanner = Depends(get_planner)):
    return planner.generation_details()


# -------------------------
# AI operations
# -------------------------
@router.post("/plans/analyze", response_model=LessonPlan, summary="Fill empty fields from lesson text")
async def analyze_plan(req: AnalyzeRequest, planner: LessonPlanner = Depends(get_planner)):
    planner.load(req.plan)
    try:
        merged = await planner.analyze(req.text)
    except LessonPlannerError as e:
        logger.warning("Lesson analysis failed: %s", e.message)
        raise _http_error(e)
    return merged


@router.post("/plans/generate", response_model=GeneratedPlan, summary="Generate a full lesson plan")
async def generate_plan(req: GenerateRequest, planner: LessonPlanner = Depends(get_planner)):
    try:
        result = await planner.generate(req.lesson_content, req.details)
    except LessonPlannerError as e:
        logger.warning("Lesson generation failed: %s", e.message)
        raise _http_error(e)
    logger.info(
        "Lesson plan generated for %s (%s); warnings: %s",
        req.details.subject,
        req.details.grade,
        result.warnings,
    )
    return result


@router.post("/plans/fill", response_model=LessonPlan, summary="New plan from a generated plan")
def fill_plan(generated: GeneratedPlan, planner: LessonPlanner = Depends(get_planner)):
    return planner.fill_from_generated(generated)


# -------------------------
# Files and exports
# -------------------------
@router.post("/files/extract", response_model=ExtractedTextResponse)
async def extract_file(file: UploadFile = File(...)):
    data = await file.read()
    try:
        text = read_file_as_text(file.filename, data, file.content_type)
    except LessonPlannerError as e:
        raise _http_error(e)
    return ExtractedTextResponse(filename=file.filename, text=text)


@router.post("/export/plan.pdf")
def export_plan_pdf(plan: LessonPlan):
    try:
        content = pdf_export.render_plan_pdf(plan)
    except Exception:
        logger.exception("Failed to render plan PDF")
        raise HTTPException(status_code=500, detail="حدث خطأ أثناء إنشاء ملف PDF.")
    return _download(content, pdf_export.plan_pdf_filename(plan), "application/pdf")


@router.post("/export/text.pdf")
def export_text_pdf(req: TextExportRequest):
    try:
        content = pdf_export.render_text_pdf(req.text)
    except Exception:
        logger.exception("Failed to render text PDF")
        raise HTTPException(status_code=500, detail="حدث خطأ أثناء إنشاء ملف PDF.")
    return _download(content, pdf_export.TEXT_PDF_FILENAME, "application/pdf")


@router.post("/export/text.txt")
def export_text_file(req: TextExportRequest):
    return _download(pdf_export.export_text(req.text), pdf_export.TEXT_FILENAME, "text/plain; charset=utf-8")


@router.get("/vocabulary")
def vocabulary():
    return {
        "subjects": constants.SUBJECTS,
        "subjectBranches": constants.SUBJECT_BRANCHES,
        "grades": constants.GRADES,
        "sections": constants.SECTIONS,
        "periods": constants.PERIODS,
        "days": constants.DAYS,
        "introTypes": constants.INTRO_TYPES,
        "teachingMethods": constants.TEACHING_METHODS,
        "teachingAids": constants.TEACHING_AIDS,
        "bloomLevels": constants.BLOOM_LEVELS,
    }
