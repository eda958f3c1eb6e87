from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PATH_TRAVERSAL = "path_traversal"
    MISSING_SUITE = "missing_suite"
    MISSING_SUBMISSION = "missing_submission"
    COMPILE_ERROR = "compile_error"
    CONFIGURATION = "configuration_error"


class GradingError(Exception):
    """Pipeline-level failure. Aborts the request; `detail` is returned verbatim."""

    kind: ErrorKind = ErrorKind.CONFIGURATION

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.detail}


class PathTraversal(GradingError):
    kind = ErrorKind.PATH_TRAVERSAL


class MissingSuite(GradingError):
    kind = ErrorKind.MISSING_SUITE


class MissingSubmission(GradingError):
    kind = ErrorKind.MISSING_SUBMISSION


class CompileError(GradingError):
    # detail holds the compiler's own diagnostics
    kind = ErrorKind.COMPILE_ERROR


class ConfigurationError(GradingError):
    """Operator misconfiguration: launcher/test dir missing, toolchain not found, ..."""

    kind = ErrorKind.CONFIGURATION
