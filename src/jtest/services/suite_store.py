from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from ..core.errors import ConfigurationError, MissingSuite
from ..core.models import TestSuite
from ..core.paths import resolve_under

SUITE_FILE = "tests.json"


class SuiteStore:
    """
    Functional suites on disk, one per assignment:
      <suites_root>/<assignmentId>/tests.json   (pretty-printed JSON)
    The grading pipeline only calls `load`; `save`/`delete` serve the instructor API.
    """

    def __init__(self, root: Path):
        self.root = root if root.is_absolute() else root.resolve()

    def path_of(self, assignment_id: str) -> Path:
        return resolve_under(self.root, Path(assignment_id) / SUITE_FILE)

    def exists(self, assignment_id: str) -> bool:
        return self.path_of(assignment_id).is_file()

    def load_raw(self, assignment_id: str) -> Dict[str, Any]:
        p = self.path_of(assignment_id)
        if not p.is_file():
            raise MissingSuite(f"No {SUITE_FILE} for {assignment_id}")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid {SUITE_FILE} for {assignment_id}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Invalid {SUITE_FILE} for {assignment_id}: expected an object")
        return data

    def load(self, assignment_id: str) -> TestSuite:
        data = self.load_raw(assignment_id)
        data.setdefault("assignmentId", assignment_id)
        try:
            return TestSuite.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid {SUITE_FILE} for {assignment_id}: {e}") from e

    def save(self, assignment_id: str, payload: Dict[str, Any]) -> Path:
        p = self.path_of(assignment_id)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        return p

    def delete(self, assignment_id: str) -> bool:
        p = self.path_of(assignment_id)
        if p.exists():
            p.unlink()
            return True
        return False
