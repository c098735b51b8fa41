# services/plan_store.py
"""
Plan Store

Responsibilities:
- Persist the collection of saved lesson plans and the teacher profile as two
  JSON records in a key-value backend.
- Upsert by plan id (the only write mode), delete by id, list all.
- Listing never raises: an absent or corrupt record is logged and treated as
  empty. Writes are immediately durable and raise PersistenceError on failure;
  upsert and delete refuse to overwrite a collection they cannot read.

Backends:
- FileStorage(directory): one `<key>.json` file per record, atomic replace.
- MemoryStorage(): dict-backed, for tests and throwaway sessions.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from lessonplanner.core.constants import PLANS_KEY, PROFILE_KEY
from lessonplanner.core.errors import PersistenceError
from lessonplanner.models.lesson_plan_model import LessonPlan, TeacherProfile

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

UNREADABLE_RECORD_MESSAGE = "تعذر قراءة الخطط المحفوظة، لذلك لم يتم الحفظ حتى لا تفقد البيانات."


# -------------------------
# Key-value backends
# -------------------------
class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """Stores each record as `<directory>/<key>.json`."""

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set_item(self, key: str, value: str) -> None:
        with self._lock:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(value)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self._path_for(key))
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise

    def remove_item(self, key: str) -> None:
        with self._lock:
            path = self._path_for(key)
            if path.exists():
                path.unlink()


# -------------------------
# Store
# -------------------------
class PlanStore:
    def __init__(self, backend, plans_key: str = PLANS_KEY, profile_key: str = PROFILE_KEY):
        self.backend = backend
        self.plans_key = plans_key
        self.profile_key = profile_key

    # --- reads ---
    def _load_json(self, key: str):
        """Parsed record, None when absent. Raises PersistenceError when unreadable."""
        try:
            raw = self.backend.get_item(key)
        except (OSError, ValueError) as e:
            # ValueError covers undecodable bytes
            raise PersistenceError(UNREADABLE_RECORD_MESSAGE) from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceError(UNREADABLE_RECORD_MESSAGE) from e

    def _load_plans(self) -> List[LessonPlan]:
        data = self._load_json(self.plans_key)
        if data is None:
            return []
        if not isinstance(data, list):
            raise PersistenceError(UNREADABLE_RECORD_MESSAGE)
        try:
            return [LessonPlan.model_validate(item) for item in data]
        except ValidationError as e:
            # a single bad entry invalidates the whole collection
            raise PersistenceError(UNREADABLE_RECORD_MESSAGE) from e

    def list_plans(self) -> List[LessonPlan]:
        try:
            return self._load_plans()
        except PersistenceError as e:
            logger.error("Failed to load saved lesson plans: %s", e.__cause__ or e.message)
            return []

    def get_plan(self, plan_id: str) -> Optional[LessonPlan]:
        for plan in self.list_plans():
            if plan.id == plan_id:
                return plan
        return None

    def load_profile(self) -> TeacherProfile:
        try:
            data = self._load_json(self.profile_key)
        except PersistenceError as e:
            logger.error("Failed to read teacher profile: %s", e.__cause__ or e.message)
            return TeacherProfile()
        if not isinstance(data, dict):
            return TeacherProfile()
        try:
            return TeacherProfile.model_validate(data)
        except ValidationError as e:
            logger.error("Failed to load teacher profile: %s", e)
            return TeacherProfile()

    # --- writes ---
    def _write_json(self, key: str, payload) -> None:
        try:
            self.backend.set_item(key, json.dumps(payload, ensure_ascii=False))
        except (OSError, TypeError, ValueError) as e:
            logger.exception("Failed to write record %s", key)
            raise PersistenceError() from e

    def _write_plans(self, plans: List[LessonPlan]) -> None:
        self._write_json(self.plans_key, [p.model_dump(by_alias=True) for p in plans])

    def upsert_plan(self, plan: LessonPlan) -> None:
        plans = self._load_plans()
        for idx, existing in enumerate(plans):
            if existing.id == plan.id:
                plans[idx] = plan
                break
        else:
            plans.append(plan)
        self._write_plans(plans)
        logger.info("Saved plan %s (%d plan(s) stored)", plan.id, len(plans))

    def delete_plan(self, plan_id: str) -> None:
        plans = self._load_plans()
        remaining = [p for p in plans if p.id != plan_id]
        if len(remaining) == len(plans):
            logger.debug("Plan %s not found; nothing to delete", plan_id)
            return
        self._write_plans(remaining)
        logger.info("Deleted plan %s", plan_id)

    def save_profile(self, profile: TeacherProfile) -> None:
        self._write_json(self.profile_key, profile.model_dump(by_alias=True))
