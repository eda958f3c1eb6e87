from __future__ import annotations

import re
from typing import Optional

from .models import Normalize

_WS_RUN = re.compile(r"\s+")


def normalize(s: Optional[str], opts: Optional[Normalize] = None) -> str:
    """
    Collapse whitespace runs to one space, then trim; each step only if enabled.
    Missing output normalises to "" so a silent crash compares as empty text.
    """
    t = s or ""
    if opts is None:
        return t
    if opts.collapse_ws:
        t = _WS_RUN.sub(" ", t)
    if opts.trim:
        t = t.strip()
    return t


def outputs_equal(actual: Optional[str], expected: Optional[str], opts: Optional[Normalize] = None) -> bool:
    return normalize(actual, opts) == normalize(expected, opts)


def case_passed(exit_status: int, actual: Optional[str], expected: Optional[str],
                opts: Optional[Normalize] = None) -> bool:
    return exit_status == 0 and outputs_equal(actual, expected, opts)
