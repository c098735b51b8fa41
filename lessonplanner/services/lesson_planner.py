# services/lesson_planner.py
"""
Lesson planner session

Holds the plan being edited and drives its lifecycle:

    NEW --edit--> EDITING --save--> SAVED --edit--> EDITING ...

- create_new / load / fill_from_generated replace the active plan.
- analyze merges AI-extracted fields into the active plan (fill-empty-only).
- generate produces a full plan for review; fill_from_generated adopts it.
- Only one analysis and one generation may be in flight; a result that
  arrives after the user moved to another plan is discarded.
"""

from __future__ import annotations

import copy
import enum
import logging
from typing import Awaitable, Callable, List, Optional

from pydantic import ValidationError

from lessonplanner.core.constants import OBJECTIVE_DOMAINS
from lessonplanner.core.errors import LessonValidationError, RequestInProgressError
from lessonplanner.models.lesson_plan_model import (
    OBJECTIVE_FIELDS,
    GeneratedPlan,
    GenerationDetails,
    LessonPlan,
    Objective,
    PartialLessonPlan,
    TeacherProfile,
)
from lessonplanner.services import ai_lesson_plan_generator
from lessonplanner.services.plan_merge import merge_partial_plan
from lessonplanner.services.plan_store import PlanStore
from lessonplanner.utils.date_utils import weekday_name
from lessonplanner.utils.ids import id_allocator, new_plan_id

logger = logging.getLogger(__name__)

SELECTION_FIELDS = ("teaching_methods", "teaching_aids")
ROLE_FIELDS = ("teacher_role", "student_role")
# Not editable through update_field
READ_ONLY_FIELDS = ("id", "day")

DELETE_CONFIRMATION_MESSAGE = "هل أنت متأكد من حذف هذه الخطة؟"


class PlanState(str, enum.Enum):
    NEW = "new"
    EDITING = "editing"
    SAVED = "saved"


def build_new_plan(profile: Optional[TeacherProfile] = None, extra: Optional[dict] = None) -> LessonPlan:
    """Defaults, then the teacher profile, then `extra`; always a fresh id."""
    values = profile.overlay() if profile else {}
    if extra:
        values.update(extra)
    values["id"] = new_plan_id()
    return LessonPlan(**values)


def coerce_loaded_plan(plan: LessonPlan | dict) -> LessonPlan:
    """Validate a persisted plan; scalar role/selection values become lists."""
    if isinstance(plan, LessonPlan):
        plan = plan.model_dump()
    return LessonPlan.model_validate(plan)


class LessonPlanner:
    def __init__(
        self,
        store: PlanStore,
        analyzer: Callable[[str], Awaitable[PartialLessonPlan]] = None,
        generator: Callable[[str, GenerationDetails], Awaitable[GeneratedPlan]] = None,
    ):
        self.store = store
        self.analyzer = analyzer or ai_lesson_plan_generator.analyze_lesson_text
        self.generator = generator or ai_lesson_plan_generator.generate_full_lesson_plan

        self.plan: Optional[LessonPlan] = None
        self.state: Optional[PlanState] = None
        self.generated: Optional[GeneratedPlan] = None
        self.is_loading_analysis = False
        self.is_generating = False
        self._view = 0  # bumped whenever the active plan is replaced or closed

    # -------------------------
    # Lifecycle
    # -------------------------
    def _activate(self, plan: LessonPlan, state: PlanState) -> LessonPlan:
        self.plan = plan
        self.state = state
        self._view += 1
        return plan

    def create_new(self, profile: Optional[TeacherProfile] = None) -> LessonPlan:
        if profile is None:
            profile = self.store.load_profile()
        plan = build_new_plan(profile)
        logger.info("Created new plan %s", plan.id)
        return self._activate(plan, PlanState.NEW)

    def load(self, plan: LessonPlan | dict) -> LessonPlan:
        plan = coerce_loaded_plan(plan)
        logger.info("Loaded plan %s", plan.id)
        return self._activate(plan, PlanState.EDITING)

    def close(self) -> None:
        """Leave the editor; outstanding results will be discarded."""
        self.plan = None
        self.state = None
        self.generated = None
        self._view += 1

    def save(self) -> LessonPlan:
        plan = self._require_plan()
        self.store.upsert_plan(plan)
        # last write wins
        self.store.save_profile(TeacherProfile.from_plan(plan))
        self.state = PlanState.SAVED
        return plan

    def delete(self, plan_id: str, confirmed: bool = False) -> List[LessonPlan]:
        if not confirmed:
            raise LessonValidationError(DELETE_CONFIRMATION_MESSAGE)
        self.store.delete_plan(plan_id)
        return self.store.list_plans()

    def saved_plans(self) -> List[LessonPlan]:
        return self.store.list_plans()

    def generation_details(self) -> GenerationDetails:
        return GenerationDetails.from_profile(self.store.load_profile())

    # -------------------------
    # Edits
    # -------------------------
    def _require_plan(self) -> LessonPlan:
        if self.plan is None:
            raise LessonValidationError("لا توجد خطة مفتوحة.")
        return self.plan

    def _touch(self) -> None:
        self.state = PlanState.EDITING

    def update_field(self, name: str, value) -> LessonPlan:
        plan = self._require_plan()
        if name in READ_ONLY_FIELDS or name not in LessonPlan.model_fields:
            raise LessonValidationError(f"الحقل ({name}) غير قابل للتعديل.")
        if name in ROLE_FIELDS and isinstance(value, str):
            return self.set_roles(name, value)
        try:
            setattr(plan, name, value)
        except ValidationError as e:
            raise LessonValidationError(f"قيمة غير صالحة للحقل ({name}).") from e
        if name == "date":
            plan.day = weekday_name(plan.date) or ""
        self._touch()
        return plan

    def set_roles(self, field: str, text: str) -> LessonPlan:
        """One role per line, as typed in the textarea."""
        if field not in ROLE_FIELDS:
            raise LessonValidationError(f"الحقل ({field}) ليس قائمة أدوار.")
        plan = self._require_plan()
        setattr(plan, field, text.split("\n"))
        self._touch()
        return plan

    def toggle_selection(self, field: str, value: str) -> LessonPlan:
        if field not in SELECTION_FIELDS:
            raise LessonValidationError(f"الحقل ({field}) ليس قائمة اختيار.")
        plan = self._require_plan()
        current = getattr(plan, field)
        if value in current:
            setattr(plan, field, [item for item in current if item != value])
        else:
            setattr(plan, field, current + [value])
        self._touch()
        return plan

    def set_emblem(self, number: int, payload: Optional[str]) -> LessonPlan:
        if number not in (1, 2):
            raise LessonValidationError("رقم الشعار يجب أن يكون 1 أو 2.")
        plan = self._require_plan()
        setattr(plan, f"emblem{number}", payload)
        self._touch()
        return plan

    def _objectives(self, domain: str) -> List[Objective]:
        if domain not in OBJECTIVE_DOMAINS:
            raise LessonValidationError(f"مجال الأهداف ({domain}) غير معروف.")
        return getattr(self._require_plan(), OBJECTIVE_FIELDS[domain])

    def add_objective(self, domain: str) -> Objective:
        objectives = self._objectives(domain)
        objective = Objective(id=id_allocator.next_id(f"new-{domain}"))
        objectives.append(objective)
        self._touch()
        return objective

    def update_objective(self, domain: str, index: int, attribute: str, value: str) -> Objective:
        if attribute not in ("level", "formulation", "evaluation"):
            raise LessonValidationError(f"خاصية الهدف ({attribute}) غير معروفة.")
        objectives = self._objectives(domain)
        try:
            objective = objectives[index]
        except IndexError:
            raise LessonValidationError("الهدف المطلوب غير موجود.")
        setattr(objective, attribute, value)
        self._touch()
        return objective

    def remove_objective(self, domain: str, objective_id: str) -> None:
        objectives = self._objectives(domain)
        objectives[:] = [obj for obj in objectives if obj.id != objective_id]
        self._touch()

    # -------------------------
    # AI operations
    # -------------------------
    async def analyze(self, text: str) -> Optional[LessonPlan]:
        """
        Extract fields from `text` and merge them into the active plan.

        Returns the merged plan, or None when the user moved to another plan
        before the result arrived.
        """
        self._require_plan()
        if self.is_loading_analysis:
            raise RequestInProgressError()
        view = self._view
        self.is_loading_analysis = True
        try:
            partial = await self.analyzer(text)
        finally:
            self.is_loading_analysis = False

        if view != self._view or self.plan is None:
            logger.info("Discarding analysis result for a plan that is no longer active")
            return None
        self.plan = merge_partial_plan(self.plan, partial)
        self._touch()
        return self.plan

    async def generate(self, text: str, details: GenerationDetails) -> Optional[GeneratedPlan]:
        if self.is_generating:
            raise RequestInProgressError()
        view = self._view
        self.is_generating = True
        self.generated = None
        try:
            result = await self.generator(text, details)
        finally:
            self.is_generating = False

        if view != self._view:
            logger.info("Discarding generation result; the planner view changed")
            return None
        self.generated = result
        return result

    def fill_from_generated(self, generated: Optional[GeneratedPlan] = None) -> LessonPlan:
        """Replace the active plan with defaults + profile + generated data, under a new id."""
        generated = generated or self.generated
        if generated is None:
            raise LessonValidationError("لا توجد خطة مولدة لتعبئة الحقول.")
        data = {
            name: value
            for name, value in generated.structured_data.present_fields().items()
            if value is not None and name != "id"
        }
        plan = build_new_plan(self.store.load_profile(), copy.deepcopy(data))
        logger.info("Filled new plan %s from generated data", plan.id)
        return self._activate(plan, PlanState.EDITING)
