# services/pdf_export.py
"""
PDF and text export.

- render_plan_pdf: the plan's form layout (header, details, objectives, lesson
  flow) on A4 pages, flowing onto as many pages as needed.
- render_text_pdf: any right-to-left text, right aligned, simple pagination.
- export_text: UTF-8 bytes for the .txt download.

Arabic glyphs need a TTF font configured through PLANNER_PDF_FONT_PATH; the
built-in Helvetica is used otherwise.
"""
import base64
import io
import logging
from typing import List, Optional
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader, simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas
from reportlab.platypus import Image, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from lessonplanner.core.config import storage_config
from lessonplanner.core.constants import PLAN_PDF_FALLBACK_NAME, TEXT_EXPORT_BASENAME
from lessonplanner.models.lesson_plan_model import LessonPlan, Objective

logger = logging.getLogger(__name__)

TEXT_PDF_FILENAME = f"{TEXT_EXPORT_BASENAME}.pdf"
TEXT_FILENAME = f"{TEXT_EXPORT_BASENAME}.txt"

PLAN_MARGIN = 10 * mm
TEXT_MARGIN = 15 * mm
TEXT_LINE_HEIGHT = 7 * mm
TEXT_FONT_SIZE = 12
EMBLEM_SIZE = 20 * mm

_registered_font: Optional[str] = None


def _font_name() -> str:
    """Register the configured TTF once; fall back to Helvetica."""
    global _registered_font
    if _registered_font:
        return _registered_font
    path = storage_config.pdf_font_path
    if path:
        try:
            pdfmetrics.registerFont(TTFont(storage_config.pdf_font_name, path))
            _registered_font = storage_config.pdf_font_name
            return _registered_font
        except Exception as e:
            logger.warning("Could not register PDF font %s: %s", path, e)
    return "Helvetica"


def plan_pdf_filename(plan: LessonPlan) -> str:
    return f"{plan.lesson_title.strip() or PLAN_PDF_FALLBACK_NAME}.pdf"


def export_text(text: str) -> bytes:
    return text.encode("utf-8")


# -------------------------
# Plan layout
# -------------------------
def _decode_emblem(payload: Optional[str]) -> Optional[Image]:
    """Data-URL (or bare base64) image -> flowable. None when absent or undecodable."""
    if not payload:
        return None
    encoded = payload.split(",", 1)[1] if payload.startswith("data:") else payload
    try:
        raw = base64.b64decode(encoded, validate=True)
        ImageReader(io.BytesIO(raw)).getSize()
    except Exception as e:
        # reportlab wraps decoder failures in its own error types
        logger.warning("Skipping emblem that could not be decoded: %s", e)
        return None
    img = Image(io.BytesIO(raw), width=EMBLEM_SIZE, height=EMBLEM_SIZE)
    img.hAlign = "CENTER"
    return img


def _p(text: str, style: ParagraphStyle) -> Paragraph:
    return Paragraph(escape(text or "-").replace("\n", "<br/>"), style)


def _objective_rows(title: str, objectives: List[Objective], style: ParagraphStyle) -> list:
    rows = [[_p(title, style), "", ""]]
    for obj in objectives:
        # right-to-left: level on the right
        rows.append([_p(obj.evaluation, style), _p(obj.formulation, style), _p(obj.level, style)])
    return rows


def render_plan_pdf(plan: LessonPlan) -> bytes:
    font = _font_name()
    body = ParagraphStyle("body", fontName=font, fontSize=9, leading=12, alignment=TA_RIGHT)
    heading = ParagraphStyle("heading", parent=body, fontSize=11, leading=14, alignment=TA_CENTER)
    title = ParagraphStyle("title", parent=body, fontSize=14, leading=18, alignment=TA_CENTER)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=PLAN_MARGIN,
        rightMargin=PLAN_MARGIN,
        topMargin=PLAN_MARGIN,
        bottomMargin=PLAN_MARGIN,
        title=plan.lesson_title or PLAN_PDF_FALLBACK_NAME,
    )
    width = A4[0] - 2 * PLAN_MARGIN
    grid = TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ])

    # Header: emblem | republic/ministry/area/school | emblem
    header_text = "\n".join(filter(None, [plan.yemen_republic, plan.ministry, plan.education_area, plan.school_name]))
    header = Table(
        [[_decode_emblem(plan.emblem2) or "", _p(header_text, heading), _decode_emblem(plan.emblem1) or ""]],
        colWidths=[EMBLEM_SIZE + 4 * mm, width - 2 * (EMBLEM_SIZE + 4 * mm), EMBLEM_SIZE + 4 * mm],
    )

    details = Table(
        [
            [_p(f"التاريخ: {plan.date}", body), _p(f"اليوم: {plan.day}", body), _p(f"المادة: {plan.subject}", body), _p(f"الفرع: {plan.subject_branch}", body)],
            [_p(f"الحصة: {plan.period}", body), _p(f"الشعبة: {plan.section}", body), _p(f"الصف: {plan.grade}", body), _p(f"السلوك: {plan.behavior}", body)],
        ],
        colWidths=[width / 4] * 4,
    )
    details.setStyle(grid)

    objective_rows = (
        _objective_rows("الأهداف المعرفية", plan.cognitive_objectives, body)
        + _objective_rows("الأهداف المهارية", plan.psychomotor_objectives, body)
        + _objective_rows("الأهداف الوجدانية", plan.affective_objectives, body)
    )
    objectives = Table(objective_rows, colWidths=[width * 0.3, width * 0.5, width * 0.2], repeatRows=0)
    objectives.setStyle(grid)

    flow = Table(
        [
            [_p("، ".join(plan.teaching_methods), body), _p("طرق التدريس", body)],
            [_p("، ".join(plan.teaching_aids), body), _p("الوسائل التعليمية", body)],
            [_p(plan.lesson_intro, body), _p(f"التمهيد ({plan.intro_type})" if plan.intro_type else "التمهيد", body)],
            [_p(plan.lesson_content, body), _p("محتوى الدرس", body)],
            [_p(plan.activities, body), _p("الأنشطة", body)],
            [_p("\n".join(plan.teacher_role), body), _p("دور المعلم", body)],
            [_p("\n".join(plan.student_role), body), _p("دور الطالب", body)],
            [_p(plan.lesson_closure, body), _p(f"الخاتمة ({plan.closure_type})" if plan.closure_type else "الخاتمة", body)],
            [_p(plan.homework, body), _p(plan.homework_type or "الواجب", body)],
            [_p(plan.praise, body), _p("التعزيز", body)],
            [_p(plan.admin_notes, body), _p("ملاحظات الإدارة", body)],
        ],
        colWidths=[width * 0.8, width * 0.2],
    )
    flow.setStyle(grid)

    story = [
        header,
        Spacer(1, 4 * mm),
        _p(plan.lesson_title or PLAN_PDF_FALLBACK_NAME, title),
        Spacer(1, 4 * mm),
        details,
        Spacer(1, 4 * mm),
        objectives,
        Spacer(1, 4 * mm),
        flow,
        Spacer(1, 6 * mm),
        _p(f"المعلم/ة: {plan.teacher_name}", body),
    ]
    doc.build(story)
    logger.info("Rendered plan %s to PDF (%d bytes)", plan.id, buffer.tell())
    return buffer.getvalue()


# -------------------------
# Plain text
# -------------------------
def render_text_pdf(text: str) -> bytes:
    font = _font_name()
    buffer = io.BytesIO()
    page_width, page_height = A4
    usable_width = page_width - 2 * TEXT_MARGIN

    c = canvas.Canvas(buffer, pagesize=A4)
    c.setFont(font, TEXT_FONT_SIZE)

    lines: List[str] = []
    for paragraph in text.split("\n"):
        lines.extend(simpleSplit(paragraph, font, TEXT_FONT_SIZE, usable_width) or [""])

    y = TEXT_MARGIN  # distance from the top edge
    for line in lines:
        if y + TEXT_LINE_HEIGHT > page_height - TEXT_MARGIN:
            c.showPage()
            c.setFont(font, TEXT_FONT_SIZE)
            y = TEXT_MARGIN
        c.drawRightString(page_width - TEXT_MARGIN, page_height - y, line)
        y += TEXT_LINE_HEIGHT

    c.save()
    return buffer.getvalue()
