from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from .errors import MissingSubmission, PathTraversal

StrPath = Union[str, "os.PathLike[str]"]


def resolve_under(root: StrPath, candidate: StrPath) -> Path:
    """
    Resolve `candidate` against `root` and make sure it stays inside.

    Both sides are canonicalised (symlinks followed) and compared with a
    trailing separator, so `/data/up` does not contain `/data/uploads-evil`.
    An absolute candidate is accepted only if it lands under the root.
    """
    if "\x00" in str(candidate):
        raise PathTraversal("Invalid path: embedded NUL")
    try:
        root_abs = Path(root).resolve()
        full = (root_abs / candidate).resolve()
    except (ValueError, OSError) as exc:  # symlink loop, bad root
        raise PathTraversal(f"Invalid path: {candidate!s}") from exc

    prefix = str(root_abs).rstrip(os.sep) + os.sep
    if not str(full).startswith(prefix):
        raise PathTraversal(f"Invalid path: {candidate!s} escapes {root_abs}")
    return full


def latest_submission(upload_root: StrPath, assignment_id: str, student_id: str, ext: str = ".java") -> Path:
    """Most recently modified `*<ext>` file under upload_root/<assignment>/<student>."""
    base = resolve_under(upload_root, Path(assignment_id) / student_id)
    if not base.is_dir():
        raise MissingSubmission("No uploads for this student")

    ext = ext.lower()
    files = [p for p in base.iterdir() if p.is_file() and p.name.lower().endswith(ext)]
    if not files:
        raise MissingSubmission(f"No {ext} uploads found")
    return max(files, key=lambda p: p.stat().st_mtime)


def submission_path(upload_root: StrPath, relative_path: StrPath) -> Path:
    full = resolve_under(upload_root, relative_path)
    if not full.is_file():
        raise MissingSubmission(f"Submission not found: {relative_path!s}")
    return full
