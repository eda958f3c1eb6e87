"""jtest: compile-and-run grading engine for single-file Java submissions."""

__version__ = "0.3.0"
