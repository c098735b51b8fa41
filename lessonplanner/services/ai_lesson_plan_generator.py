import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from lessonplanner.core.config import ai_config
from lessonplanner.core.constants import TEACHING_AIDS, TEACHING_METHODS
from lessonplanner.core.errors import AnalysisError, GenerationError, LessonValidationError
from lessonplanner.models.lesson_plan_model import (
    OBJECTIVE_FIELDS,
    GeneratedPlan,
    GenerationDetails,
    PartialLessonPlan,
)
from lessonplanner.utils.ai_client import AIAuthError, AIClientError, call_ai_model
from lessonplanner.utils.date_utils import weekday_name
from lessonplanner.utils.ids import id_allocator

# -------------------------
# Logging
# -------------------------
logger = logging.getLogger("lesson_plan_generator")
logger.setLevel(logging.INFO)

MISSING_KEY_MESSAGE = "لم يتم تكوين مفتاح Gemini API. يرجى التأكد من إعداده في متغيرات بيئة النشر."
INVALID_KEY_MESSAGE = "مفتاح API غير صالح. يرجى التحقق من المفتاح في إعدادات البيئة الخاصة بك."
EMPTY_ANALYSIS_TEXT_MESSAGE = "الرجاء إدخال نص خطة الدرس للتحليل."
EMPTY_GENERATION_TEXT_MESSAGE = "الرجاء إدخال موضوع الدرس أو لصق محتواه."

# Element counts requested from the model. Not enforced locally.
EXPECTED_COUNTS = {
    "cognitive_objectives": 3,
    "psychomotor_objectives": 2,
    "affective_objectives": 2,
    "teacher_role": 4,
    "student_role": 4,
}
EXPECTED_CONTENT_LINES = 3

COUNT_LABELS = {
    "cognitive_objectives": "الأهداف المعرفية",
    "psychomotor_objectives": "الأهداف المهارية",
    "affective_objectives": "الأهداف الوجدانية",
    "teacher_role": "أدوار المعلم",
    "student_role": "أدوار الطالب",
    "lesson_content": "أسطر محتوى الدرس",
}

ID_PREFIXES = {"cognitive": "cog", "psychomotor": "psy", "affective": "aff"}

# Text fields the analysis call may return
ANALYSIS_TEXT_FIELDS = {
    "lessonTitle": "The main title of the lesson.",
    "subject": "The subject matter (e.g., 'اللغة العربية').",
    "subjectBranch": "The specific branch of the subject (e.g., 'نحو', 'جبر').",
    "grade": "The target grade level (e.g., 'الصف الخامس الابتدائي').",
    "educationArea": "The educational area or district (e.g., 'مكتب التربية بأمانة العاصمة').",
    "schoolName": "The name of the school.",
    "teacherName": "The name of the teacher.",
    "section": "The class section (e.g., 'أ', 'ب', '1').",
    "period": "The class period (e.g., 'الأولى', 'الثانية').",
    "date": "The date of the lesson in YYYY-MM-DD format.",
    "lessonIntro": "A summary of the lesson's introduction or warm-up activity.",
    "introType": "The type of introduction (e.g., 'سؤال', 'قصة').",
    "lessonContent": "A detailed summary of the core content and activities of the lesson.",
    "lessonClosure": "A summary of the lesson's closing activity.",
    "homework": "The homework assignment given to students.",
}


# -------------------------
# Response schemas
# -------------------------
def _string_array(description: str, count: Optional[int] = None) -> dict:
    schema = {"type": "ARRAY", "items": {"type": "STRING"}, "description": description}
    if count is not None:
        schema["minItems"] = count
        schema["maxItems"] = count
    return schema


def _objective_array(description: str, level_hint: str, count: Optional[int] = None) -> dict:
    schema = {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                "level": {"type": "STRING", "description": level_hint},
                "formulation": {"type": "STRING", "description": "The exact wording of the behavioral objective."},
                "evaluation": {"type": "STRING", "description": "How to evaluate whether the objective was met."},
            },
            "required": ["level", "formulation", "evaluation"],
        },
        "description": description,
    }
    if count is not None:
        schema["minItems"] = count
        schema["maxItems"] = count
    return schema


def _analysis_schema() -> dict:
    properties = {name: {"type": "STRING", "description": desc} for name, desc in ANALYSIS_TEXT_FIELDS.items()}
    level_hint = "The Bloom's Taxonomy level of the objective."
    properties.update({
        "teachingMethods": _string_array("List of teaching methods and strategies used."),
        "teachingAids": _string_array("List of teaching aids or materials mentioned."),
        "cognitiveObjectives": _objective_array("Cognitive objectives from the lesson plan.", level_hint),
        "psychomotorObjectives": _objective_array("Psychomotor (skill-based) objectives.", level_hint),
        "affectiveObjectives": _objective_array("Affective (emotional/value-based) objectives.", level_hint),
        "teacherRole": _string_array("The teacher's roles during the lesson."),
        "studentRole": _string_array("The student's roles during the lesson."),
    })
    return {"type": "OBJECT", "properties": properties}


def _generation_schema() -> dict:
    level_hint = "مستوى الهدف حسب تصنيف بلوم (مثال: التذكر, الفهم)."
    return {
        "type": "OBJECT",
        "properties": {
            "teachingMethods": _string_array("قائمة من طرق تدريس مناسبة للدرس يتم اختيارها من القائمة المحددة."),
            "teachingAids": _string_array("قائمة من وسائل تعليمية مناسبة للدرس يتم اختيارها من القائمة المحددة."),
            "lessonIntro": {"type": "STRING", "description": "تمهيد شيق ومناسب للدرس."},
            "introType": {"type": "STRING", "description": "نوع التمهيد المستخدم (مثال: سؤال, قصة, عصف ذهني)."},
            "lessonContent": {"type": "STRING", "description": "شرح موجز لمحتوى الدرس والأنشطة التعليمية في ثلاثة أسطر بالضبط."},
            "teacherRole": _string_array("قائمة من 4 أدوار للمعلم بالضبط خلال الدرس.", EXPECTED_COUNTS["teacher_role"]),
            "studentRole": _string_array("قائمة من 4 أدوار للطالب بالضبط خلال الدرس.", EXPECTED_COUNTS["student_role"]),
            "lessonClosure": {"type": "STRING", "description": "خاتمة وتقويم ختامي مناسب للدرس."},
            "homework": {"type": "STRING", "description": "واجب منزلي واضح ومحدد مرتبط بأهداف الدرس."},
            "cognitiveObjectives": _objective_array(
                "قائمة من 3 أهداف معرفية بالضبط، متنوعة المستويات.", level_hint, EXPECTED_COUNTS["cognitive_objectives"]
            ),
            "psychomotorObjectives": _objective_array(
                "قائمة من هدفين مهاريين بالضبط.", level_hint, EXPECTED_COUNTS["psychomotor_objectives"]
            ),
            "affectiveObjectives": _objective_array(
                "قائمة من هدفين وجدانيين بالضبط.", level_hint, EXPECTED_COUNTS["affective_objectives"]
            ),
        },
    }


# -------------------------
# Prompt builders
# -------------------------
def _vocabulary_block(groups: Dict[str, List[str]]) -> str:
    return "\n\n".join(f"{category}:\n- " + "\n- ".join(items) for category, items in groups.items())


def _build_analysis_prompt(lesson_text: str) -> str:
    return f"""
You are an expert educational assistant specializing in analyzing and structuring lesson plans for Yemeni teachers.
Your task is to analyze the following lesson plan text and extract the required information into a structured JSON format.
Fill in all fields in the JSON schema. If a detail is missing from the text, infer appropriate, logical content from the lesson's subject, grade level and topic. Do not leave any fields empty. Ensure the objectives are well-formed and appropriate for the lesson.
For the 'date' field, use YYYY-MM-DD format. Do not include a 'day' field; it is calculated automatically.

The lesson plan is:
---
{lesson_text}
---
Return only the JSON object.
"""


def _build_generation_prompt(lesson_content: str, details: GenerationDetails) -> str:
    return f"""
أنت نظام آلي متخصص في إنشاء خطط الدروس التعليمية. مهمتك الوحيدة هي تحويل المعلومات المقدمة إلى JSON منظم بدقة متناهية.

**القواعد الصارمة:**
- **الأهداف المعرفية (cognitiveObjectives):** {EXPECTED_COUNTS["cognitive_objectives"]} عناصر بالضبط.
- **الأهداف المهارية (psychomotorObjectives):** {EXPECTED_COUNTS["psychomotor_objectives"]} عنصرين بالضبط.
- **الأهداف الوجدانية (affectiveObjectives):** {EXPECTED_COUNTS["affective_objectives"]} عنصرين بالضبط.
- **أدوار المعلم (teacherRole):** {EXPECTED_COUNTS["teacher_role"]} عناصر بالضبط.
- **أدوار الطالب (studentRole):** {EXPECTED_COUNTS["student_role"]} عناصر بالضبط.
- **محتوى الدرس (lessonContent):** نص من {EXPECTED_CONTENT_LINES} أسطر بالضبط، مفصولة بـ '\\n'.

**معلومات الدرس الأساسية:**
- المادة: {details.subject}
- فرع المادة: {details.subject_branch or 'غير محدد'}
- عنوان الدرس: {details.lesson_title}
- الصف: {details.grade}
- المحتوى الأساسي أو الموضوع الرئيسي للدرس:
---
{lesson_content}
---

**التعليمات:**
1. لكل هدف مستوى محدد حسب تصنيف بلوم، وصياغة سلوكية واضحة، وأسلوب تقييم مناسب.
2. اختر طرق تدريس ووسائل تعليمية مناسبة من القوائم التالية فقط:
---
طرق التدريس المتاحة:
{_vocabulary_block(TEACHING_METHODS)}
---
الوسائل التعليمية المتاحة:
{_vocabulary_block(TEACHING_AIDS)}
---
3. اكتب تمهيدًا جذابًا وحدد نوعه، ولخص المحتوى في {EXPECTED_CONTENT_LINES} أسطر بالضبط.
4. اكتب خاتمة تتضمن تقويمًا ختاميًا، واقترح واجبًا منزليًا مرتبطًا بأهداف الدرس.
"""


# -------------------------
# Response normalisation
# -------------------------
def _cleanup_ai_text(text: str) -> str:
    """Removes common Markdown artifacts from AI-generated text."""
    if not isinstance(text, str):
        return text
    text = re.sub(r"\*\*(.*?)\*\*", r"\1", text)
    text = re.sub(r"\*(.*?)\*", r"\1", text)
    text = re.sub(r"^#+\s*", "", text, flags=re.MULTILINE)
    return text.strip()


# Accept both camelCase (as requested) and snake_case keys
_FIELD_BY_KEY = {}
for _name in PartialLessonPlan.model_fields:
    _FIELD_BY_KEY[_name] = _name
    _FIELD_BY_KEY[to_camel(_name)] = _name


def _normalise_payload(parsed: Dict[str, Any]) -> PartialLessonPlan:
    """
    Turn the raw JSON object into a PartialLessonPlan.

    Unknown keys, `day` and `id` are dropped; objective entries that are not
    objects are skipped. Raises pydantic.ValidationError on a wrong shape.
    """
    cleaned: Dict[str, Any] = {}
    for key, value in parsed.items():
        name = _FIELD_BY_KEY.get(key)
        if name is None or name in ("day", "id", "emblem1", "emblem2"):
            continue
        if name in OBJECTIVE_FIELDS.values():
            items = value if isinstance(value, list) else []
            objectives = []
            for i, obj in enumerate(items):
                if not isinstance(obj, dict):
                    logger.warning("Skipping invalid objective at index %d of %s", i, key)
                    continue
                objectives.append({k: _cleanup_ai_text(obj.get(k) or "") for k in ("level", "formulation", "evaluation")})
            cleaned[name] = objectives
        elif isinstance(value, list):
            cleaned[name] = [_cleanup_ai_text(str(v)) for v in value if v is not None]
        elif isinstance(value, str):
            cleaned[name] = _cleanup_ai_text(value)
        elif value is not None:
            cleaned[name] = value
    return PartialLessonPlan.model_validate(cleaned)


def _assign_objective_ids(partial: PartialLessonPlan, tag: str = "") -> None:
    """Give every objective a fresh id, e.g. `cog-gen-<seed>-<n>`."""
    for domain, field in OBJECTIVE_FIELDS.items():
        objectives = getattr(partial, field)
        if objectives is None:
            continue
        prefix = f"{ID_PREFIXES[domain]}-{tag}" if tag else ID_PREFIXES[domain]
        for obj in objectives:
            obj.id = id_allocator.next_id(prefix)


def _derive_day(partial: PartialLessonPlan) -> None:
    if partial.date:
        day = weekday_name(partial.date)
        if day is not None:
            partial.day = day
        else:
            logger.warning("Could not parse date %r from AI response to set day", partial.date)


def check_requested_counts(partial: PartialLessonPlan) -> List[str]:
    """Compare the response with the requested counts; mismatches are reported, never fixed."""
    warnings = []
    for field, expected in EXPECTED_COUNTS.items():
        actual = len(getattr(partial, field) or [])
        if actual != expected:
            warnings.append(f"عدد {COUNT_LABELS[field]}: {actual} بدلًا من {expected}")
    lines = [line for line in (partial.lesson_content or "").split("\n") if line.strip()]
    if len(lines) != EXPECTED_CONTENT_LINES:
        warnings.append(f"عدد {COUNT_LABELS['lesson_content']}: {len(lines)} بدلًا من {EXPECTED_CONTENT_LINES}")
    return warnings


# -------------------------
# Plain-text rendering
# -------------------------
def _format_objectives(title: str, objectives) -> List[str]:
    if not objectives:
        return []
    lines = [f"**{title}**"]
    for obj in objectives:
        lines.append(f"- **({obj.level or 'غير محدد'})** {obj.formulation or ''} (التقييم: {obj.evaluation or ''})")
    lines.append("")
    return lines


def format_plan_to_string(plan: PartialLessonPlan) -> str:
    """
    Canonical text rendering of a generated plan, used for display, copy and
    export. Pure: the same plan always yields the same string.
    """
    lines = [
        f"**خطة درس: {plan.lesson_title or ''}**",
        "",
        f"**المادة:** {plan.subject or ''} ({plan.subject_branch or 'عام'}) | **الصف:** {plan.grade or ''} | **التاريخ:** {plan.date or ''}",
        "------------------------------------",
        "",
        "**الأهداف السلوكية:**",
    ]
    lines += _format_objectives("المجال المعرفي:", plan.cognitive_objectives)
    lines += _format_objectives("المجال المهاري (النفس حركي):", plan.psychomotor_objectives)
    lines += _format_objectives("المجال الوجداني:", plan.affective_objectives)

    lines += [
        "**الوسائل والاستراتيجيات:**",
        f"- **طرق التدريس:** {'، '.join(plan.teaching_methods or [])}",
        f"- **الوسائل التعليمية:** {'، '.join(plan.teaching_aids or [])}",
        "",
        "**سير الدرس:**",
        f"- **التمهيد ({plan.intro_type or ''}):** {plan.lesson_intro or ''}",
        "- **محتوى الدرس والأنشطة:**",
        plan.lesson_content or "",
        f"- **دور المعلم:** {'، '.join(plan.teacher_role or [])}",
        f"- **دور الطالب:** {'، '.join(plan.student_role or [])}",
        "",
        "**التقويم والخاتمة:**",
        f"- **الخاتمة والتقويم:** {plan.lesson_closure or ''}",
        f"- **الواجب المنزلي:** {plan.homework or ''}",
        "",
        f"**المعلم/ة:** {plan.teacher_name or ''}",
    ]
    return "\n".join(lines) + "\n"


# -------------------------
# Entry points
# -------------------------
async def analyze_lesson_text(lesson_text: str) -> PartialLessonPlan:
    """
    Extract structured plan fields from free lesson text.

    The result is meant for `merge_partial_plan`; objectives carry fresh ids
    and `day` is derived from the returned date.
    """
    if not lesson_text or not lesson_text.strip():
        raise LessonValidationError(EMPTY_ANALYSIS_TEXT_MESSAGE)
    if not ai_config.api_key:
        raise AnalysisError(MISSING_KEY_MESSAGE)

    try:
        partial = await call_ai_model(
            _build_analysis_prompt(lesson_text),
            api_url=ai_config.api_url,
            api_key=ai_config.api_key,
            model=ai_config.analysis_model,
            response_schema=_analysis_schema(),
            schema_parser=_normalise_payload,
            max_retries=ai_config.max_retries,
            backoff_base=ai_config.backoff_base,
            timeout=ai_config.timeout,
        )
    except AIAuthError as e:
        logger.error("Lesson analysis rejected credential: %s", e)
        raise AnalysisError(INVALID_KEY_MESSAGE) from e
    except AIClientError as e:
        logger.error("Lesson analysis failed: %s", e)
        raise AnalysisError() from e

    _assign_objective_ids(partial)
    _derive_day(partial)
    logger.info("Lesson text analysed: %d field(s) returned", len(partial.model_fields_set))
    return partial


async def generate_full_lesson_plan(lesson_content: str, details: GenerationDetails) -> GeneratedPlan:
    """
    Generate a complete plan from lesson content and the details form.

    Details act as defaults; generated fields take precedence. Requested
    element counts are checked and reported in `warnings`, not enforced.
    """
    if not lesson_content or not lesson_content.strip():
        raise LessonValidationError(EMPTY_GENERATION_TEXT_MESSAGE)
    if not ai_config.api_key:
        raise GenerationError(MISSING_KEY_MESSAGE)

    logger.info("Generating lesson plan for %s / %s (%s)", details.subject, details.lesson_title, details.grade)

    try:
        generated = await call_ai_model(
            _build_generation_prompt(lesson_content, details),
            api_url=ai_config.api_url,
            api_key=ai_config.api_key,
            model=ai_config.generation_model,
            response_schema=_generation_schema(),
            schema_parser=_normalise_payload,
            max_retries=ai_config.max_retries,
            backoff_base=ai_config.backoff_base,
            timeout=ai_config.timeout,
        )
    except AIAuthError as e:
        logger.error("Lesson generation rejected credential: %s", e)
        raise GenerationError(INVALID_KEY_MESSAGE) from e
    except AIClientError as e:
        logger.error("Lesson generation failed: %s", e)
        raise GenerationError() from e

    try:
        merged = {**details.model_dump(), **generated.present_fields()}
        structured = PartialLessonPlan.model_validate(merged)
    except ValidationError as e:
        logger.error("Generated plan could not be combined with the details form: %s", e)
        raise GenerationError() from e

    _assign_objective_ids(structured, tag="gen")
    _derive_day(structured)

    warnings = check_requested_counts(structured)
    for w in warnings:
        logger.warning("Generated plan does not match requested counts: %s", w)

    return GeneratedPlan(
        structured_data=structured,
        plain_text=format_plan_to_string(structured),
        warnings=warnings,
    )
