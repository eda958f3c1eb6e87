from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Optional

import structlog

from ..core.errors import ConfigurationError

log = structlog.get_logger(__name__)


class Workspace:
    """
    Ephemeral directory owned by exactly one grading run:
      <tmp>/jtest-XXXX/
        ├─ Main.java      (staged submission)
        ├─ tests/         (unit mode: copied instructor sources)
        └─ classes/       (javac -d output)
    Use as a context manager so it is removed on every exit path.
    """

    def __init__(self, path: Path):
        self.path = path
        self._destroyed = False

    @classmethod
    def create(cls, parent: Optional[Path] = None, prefix: str = "jtest-") -> "Workspace":
        try:
            if parent is not None:
                parent.mkdir(parents=True, exist_ok=True)
            path = Path(tempfile.mkdtemp(prefix=prefix, dir=str(parent) if parent else None)).resolve()
        except OSError as e:
            raise ConfigurationError(f"Cannot create workspace under {parent or tempfile.gettempdir()}: {e}") from e
        log.debug("workspace_created", workspace=str(path))
        return cls(path)

    @property
    def classes_dir(self) -> Path:
        return self.path / "classes"

    def stage(self, source: Path, name: str) -> Path:
        """Copy `source` into the workspace as `name` (may contain a subdir)."""
        dest = self.path / name
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)
        return dest

    def destroy(self) -> None:
        if self._destroyed:
            return
        shutil.rmtree(self.path, ignore_errors=True)
        self._destroyed = True
        if self.path.exists():
            log.warning("workspace_not_removed", workspace=str(self.path))
        else:
            log.debug("workspace_destroyed", workspace=str(self.path))

    def __enter__(self) -> "Workspace":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()
