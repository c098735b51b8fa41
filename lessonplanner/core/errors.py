# core/errors.py
"""
Error taxonomy for the planner.

Every error carries a user-facing ``message`` (Arabic, like the rest of the
interface). None of them is fatal: callers recover at the operation that
raised and keep the active plan in memory.
"""


class LessonPlannerError(Exception):
    default_message = "حدث خطأ غير متوقع."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class LessonValidationError(LessonPlannerError):
    """A required input was empty (e.g. blank lesson text)."""

    default_message = "الرجاء تعبئة الحقول المطلوبة."


class ExternalCapabilityError(LessonPlannerError):
    """An external capability (AI service, file parser) failed."""


class GenerationError(ExternalCapabilityError):
    default_message = "فشل إنشاء خطة الدرس. قد يكون هناك ضغط على الخدمة، يرجى المحاولة مرة أخرى."


class AnalysisError(ExternalCapabilityError):
    default_message = "فشل تحليل خطة الدرس. يرجى المحاولة مرة أخرى أو التحقق من مفتاح API."


class ExtractionError(ExternalCapabilityError):
    default_message = "فشل في معالجة الملف. قد يكون الملف تالفًا."


class UnsupportedInputError(LessonPlannerError):
    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(
            f"نوع الملف ({filename}) غير مدعوم. يرجى استخدام ملف نصي أو PDF أو Word أو Excel."
        )


class PersistenceError(LessonPlannerError):
    default_message = "حدث خطأ أثناء حفظ الخطة."


class RequestInProgressError(LessonPlannerError):
    default_message = "هناك طلب قيد التنفيذ، يرجى الانتظار حتى يكتمل."
