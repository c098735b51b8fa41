from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from lessonplanner.core import constants
from lessonplanner.utils.date_utils import today_iso, weekday_name
from lessonplanner.utils.ids import id_allocator, new_plan_id

# Fields that must always hold an ordered list of strings
STRING_LIST_FIELDS = ("teacher_role", "student_role", "teaching_methods", "teaching_aids")

OBJECTIVE_FIELDS = {
    "cognitive": "cognitive_objectives",
    "psychomotor": "psychomotor_objectives",
    "affective": "affective_objectives",
}

# Subset of a plan remembered between sessions
PROFILE_FIELDS = ("education_area", "school_name", "emblem1", "emblem2", "teacher_name", "subject", "grade")


def _coerce_string_list(value: Any) -> Any:
    """Older saved plans may hold a single string where a list is expected."""
    if value is None:
        return value
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


class CamelModel(BaseModel):
    """snake_case attributes, camelCase on the wire and in storage."""

    class Config:
        populate_by_name = True
        alias_generator = to_camel


class Objective(CamelModel):
    id: str = Field(default_factory=lambda: id_allocator.next_id("obj"))
    level: str = ""
    formulation: str = ""
    evaluation: str = ""

    @field_validator("level", "formulation", "evaluation", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return "" if v is None else v


class LessonPlan(CamelModel):
    class Config:
        # edits go through the same coercion as loading
        validate_assignment = True

    id: str = Field(default_factory=new_plan_id)
    emblem1: Optional[str] = None
    emblem2: Optional[str] = None
    yemen_republic: str = constants.YEMEN_REPUBLIC
    ministry: str = constants.MINISTRY
    education_area: str = ""
    school_name: str = ""
    day: str = ""
    date: str = Field(default_factory=today_iso)  # YYYY-MM-DD, source of truth for `day`
    subject: str = ""
    subject_branch: str = ""
    lesson_title: str = ""
    grade: str = ""
    section: str = ""
    period: str = ""
    behavior: str = constants.DEFAULT_BEHAVIOR
    teaching_methods: List[str] = Field(default_factory=list)
    teaching_aids: List[str] = Field(default_factory=list)
    lesson_intro: str = ""
    intro_type: str = ""
    activities: str = ""
    cognitive_objectives: List[Objective] = Field(default_factory=list)
    psychomotor_objectives: List[Objective] = Field(default_factory=list)
    affective_objectives: List[Objective] = Field(default_factory=list)
    teacher_role: List[str] = Field(default_factory=lambda: list(constants.DEFAULT_TEACHER_ROLE))
    student_role: List[str] = Field(default_factory=lambda: list(constants.DEFAULT_STUDENT_ROLE))
    lesson_content: str = ""
    lesson_closure: str = ""
    closure_type: str = ""
    homework: str = ""
    homework_type: str = constants.DEFAULT_HOMEWORK_TYPE
    admin_notes: str = ""
    praise: str = constants.DEFAULT_PRAISE
    teacher_name: str = ""

    @field_validator(*STRING_LIST_FIELDS, mode="before")
    @classmethod
    def coerce_lists(cls, v):
        v = _coerce_string_list(v)
        return [] if v is None else v

    @model_validator(mode="after")
    def sync_day(self):
        # `day` is never stored independently of `date`
        derived = weekday_name(self.date)
        if derived is not None and derived != self.day:
            self.day = derived
        return self


class PartialLessonPlan(CamelModel):
    """
    Any subset of LessonPlan fields, as returned by analysis or generation.

    A field counts as present only when it was explicitly set
    (``model_fields_set``); unset fields are ignored by the merge.
    """

    id: Optional[str] = None
    emblem1: Optional[str] = None
    emblem2: Optional[str] = None
    yemen_republic: Optional[str] = None
    ministry: Optional[str] = None
    education_area: Optional[str] = None
    school_name: Optional[str] = None
    day: Optional[str] = None
    date: Optional[str] = None
    subject: Optional[str] = None
    subject_branch: Optional[str] = None
    lesson_title: Optional[str] = None
    grade: Optional[str] = None
    section: Optional[str] = None
    period: Optional[str] = None
    behavior: Optional[str] = None
    teaching_methods: Optional[List[str]] = None
    teaching_aids: Optional[List[str]] = None
    lesson_intro: Optional[str] = None
    intro_type: Optional[str] = None
    activities: Optional[str] = None
    cognitive_objectives: Optional[List[Objective]] = None
    psychomotor_objectives: Optional[List[Objective]] = None
    affective_objectives: Optional[List[Objective]] = None
    teacher_role: Optional[List[str]] = None
    student_role: Optional[List[str]] = None
    lesson_content: Optional[str] = None
    lesson_closure: Optional[str] = None
    closure_type: Optional[str] = None
    homework: Optional[str] = None
    homework_type: Optional[str] = None
    admin_notes: Optional[str] = None
    praise: Optional[str] = None
    teacher_name: Optional[str] = None

    @field_validator(*STRING_LIST_FIELDS, mode="before")
    @classmethod
    def coerce_lists(cls, v):
        return _coerce_string_list(v)

    def present_fields(self) -> dict:
        """Explicitly set fields, as attribute name -> value."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class TeacherProfile(CamelModel):
    education_area: Optional[str] = None
    school_name: Optional[str] = None
    emblem1: Optional[str] = None
    emblem2: Optional[str] = None
    teacher_name: Optional[str] = None
    subject: Optional[str] = None
    grade: Optional[str] = None

    @classmethod
    def from_plan(cls, plan: LessonPlan) -> "TeacherProfile":
        return cls(**{name: getattr(plan, name) for name in PROFILE_FIELDS})

    def overlay(self) -> dict:
        """Fields to lay over a fresh plan; only those the profile actually holds."""
        values = {}
        for name in PROFILE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                values[name] = value
        return values


class GenerationDetails(CamelModel):
    """The details form shown before a full generation."""

    education_area: str = ""
    school_name: str = ""
    subject: str = ""
    subject_branch: str = ""
    lesson_title: str = ""
    grade: str = ""
    section: str = ""
    day: str = ""
    date: str = Field(default_factory=today_iso)
    period: str = ""
    teacher_name: str = ""

    @model_validator(mode="after")
    def sync_day(self):
        derived = weekday_name(self.date)
        if derived is not None:
            self.day = derived
        return self

    @classmethod
    def from_profile(cls, profile: TeacherProfile) -> "GenerationDetails":
        return cls(
            education_area=profile.education_area or "",
            school_name=profile.school_name or "",
            teacher_name=profile.teacher_name or "",
            subject=profile.subject or "",
            grade=profile.grade or "",
        )


class GeneratedPlan(CamelModel):
    structured_data: PartialLessonPlan
    plain_text: str
    warnings: List[str] = Field(default_factory=list)  # count-contract mismatches
