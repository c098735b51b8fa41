# core/constants.py
"""
Controlled vocabularies and fixed values used across the planner.

The form offers these lists as suggestions; apart from the teaching methods
and aids (which the generation prompt restricts the model to) nothing is
validated against them.
"""

# Persistent record names
PLANS_KEY = "savedLessonPlans"
PROFILE_KEY = "teacherProfile"

# Sunday-first, matching the school week
DAYS = ["الأحد", "الاثنين", "الثلاثاء", "الأربعاء", "الخميس", "الجمعة", "السبت"]

# Static header strings and other form defaults
YEMEN_REPUBLIC = "الجمهورية اليمنية"
MINISTRY = "وزارة التربية والتعليم"
DEFAULT_BEHAVIOR = "سلوك متوقع إيجابي"
DEFAULT_TEACHER_ROLE = ["موجه ومرشد"]
DEFAULT_STUDENT_ROLE = ["مشارك ومتفاعل"]
DEFAULT_HOMEWORK_TYPE = "واجب منزلي"
DEFAULT_PRAISE = "ثناء وتشجيع"

# Export file names
PLAN_PDF_FALLBACK_NAME = "خطة-درس"
TEXT_EXPORT_BASENAME = "تحضير-الدرس"

# Bloom's taxonomy levels per domain
BLOOM_LEVELS_COGNITIVE = ["التذكر", "الفهم", "التطبيق", "التحليل", "التركيب", "التقويم"]
BLOOM_LEVELS_PSYCHOMOTOR = ["الملاحظة", "المحاكاة", "الأداء", "الدقة", "الإتقان", "الإبداع"]
BLOOM_LEVELS_AFFECTIVE = ["الاستقبال", "الاستجابة", "التقدير", "التنظيم", "التمثل"]

BLOOM_LEVELS = {
    "cognitive": BLOOM_LEVELS_COGNITIVE,
    "psychomotor": BLOOM_LEVELS_PSYCHOMOTOR,
    "affective": BLOOM_LEVELS_AFFECTIVE,
}

OBJECTIVE_DOMAINS = ("cognitive", "psychomotor", "affective")

SUBJECTS = [
    "القرآن الكريم",
    "التربية الإسلامية",
    "اللغة العربية",
    "اللغة الإنجليزية",
    "الرياضيات",
    "العلوم",
    "الفيزياء",
    "الكيمياء",
    "الأحياء",
    "الاجتماعيات",
    "التاريخ",
    "الجغرافيا",
    "التربية الوطنية",
    "الحاسوب",
]

SUBJECT_BRANCHES = {
    "اللغة العربية": ["قراءة", "نحو", "صرف", "إملاء", "خط", "أدب ونصوص", "بلاغة", "تعبير"],
    "التربية الإسلامية": ["عقيدة", "فقه", "حديث", "سيرة", "تهذيب"],
    "القرآن الكريم": ["تلاوة", "تجويد", "حفظ", "تفسير"],
    "الرياضيات": ["حساب", "جبر", "هندسة", "إحصاء", "مثلثات"],
    "العلوم": ["فيزياء", "كيمياء", "أحياء", "علوم الأرض"],
    "الاجتماعيات": ["تاريخ", "جغرافيا", "تربية وطنية"],
    "اللغة الإنجليزية": ["Reading", "Grammar", "Vocabulary", "Writing", "Listening"],
}

GRADES = [
    "الصف الأول الأساسي",
    "الصف الثاني الأساسي",
    "الصف الثالث الأساسي",
    "الصف الرابع الأساسي",
    "الصف الخامس الأساسي",
    "الصف السادس الأساسي",
    "الصف السابع الأساسي",
    "الصف الثامن الأساسي",
    "الصف التاسع الأساسي",
    "الصف الأول الثانوي",
    "الصف الثاني الثانوي",
    "الصف الثالث الثانوي",
]

SECTIONS = ["أ", "ب", "ج", "د", "هـ"]

PERIODS = ["الأولى", "الثانية", "الثالثة", "الرابعة", "الخامسة", "السادسة", "السابعة"]

INTRO_TYPES = ["سؤال", "قصة", "عصف ذهني", "مراجعة الدرس السابق", "موقف حياتي", "وسيلة تعليمية"]

TEACHING_METHODS = {
    "طرق العرض": ["الإلقاء", "المحاضرة", "العرض العملي"],
    "طرق تفاعلية": ["الحوار والمناقشة", "الاستجواب", "العصف الذهني", "لعب الأدوار"],
    "استراتيجيات التعلم النشط": [
        "التعلم التعاوني",
        "فكر - زاوج - شارك",
        "الخرائط الذهنية",
        "حل المشكلات",
        "التعلم بالاكتشاف",
        "الاستقصاء",
    ],
}

TEACHING_AIDS = {
    "وسائل تقليدية": ["السبورة", "الكتاب المدرسي", "البطاقات", "اللوحات", "المجسمات"],
    "وسائل تقنية": ["جهاز العرض", "الحاسوب", "مقاطع فيديو", "تسجيلات صوتية"],
    "وسائل واقعية": ["عينات حقيقية", "أدوات المختبر", "الخرائط", "أوراق العمل"],
}
