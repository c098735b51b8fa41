# services/plan_merge.py
"""
Fill-empty-only merge of a partial plan into the plan being edited.

Extracted values are treated as lower confidence than anything the teacher
typed: a candidate value is applied only when the plan's own field is empty.
"""
import copy
import logging
from typing import Any

from lessonplanner.models.lesson_plan_model import LessonPlan, PartialLessonPlan
from lessonplanner.utils.date_utils import weekday_name

logger = logging.getLogger(__name__)


def is_value_empty(value: Any) -> bool:
    """None, a whitespace-only string or an empty list."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def merge_partial_plan(base: LessonPlan, partial: PartialLessonPlan) -> LessonPlan:
    """
    Return a new plan: `base` with every empty field filled from `partial`.

    `day` is never taken as a candidate. When the merge changes `date`, `day`
    is recomputed from the new date; otherwise the base `day` is kept.
    Neither argument is modified.
    """
    updates = {}
    for name, candidate in partial.present_fields().items():
        if name == "day" or name not in LessonPlan.model_fields:
            continue
        if is_value_empty(candidate):
            continue
        if is_value_empty(getattr(base, name)):
            updates[name] = copy.deepcopy(candidate)

    merged = base.model_copy(update=updates, deep=True)

    if merged.date != base.date:
        derived = weekday_name(merged.date)
        merged.day = derived if derived is not None else (partial.day or "")

    if updates:
        logger.info("Merged %d field(s) into plan %s: %s", len(updates), base.id, sorted(updates))
    return merged
