"""Structured error kinds raised by the town generation pipeline.

Every phase failure aborts the whole run and surfaces one of these to the
caller. Each error carries a stable ``code`` plus a ``details`` mapping so the
HTTP layer and the CLI can report it without parsing messages.
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class TownGenError(Exception):
    """Base class for all generation / import failures."""

    code = "towngen_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": dict(self.details)}


class ConfigError(TownGenError):
    code = "config_error"


class LayoutFailure(TownGenError):
    """Spacing or connectivity target unreachable within the retry budget."""

    code = "layout_failure"


class SubdivisionFailure(TownGenError):
    """Unrecoverable partition state. Degenerate footprints are not failures."""

    code = "subdivision_failure"


class PopulationConstraintFailure(TownGenError):
    code = "population_constraint_failure"


class ImportParseError(TownGenError):
    """Malformed DOT, duplicate node ids or edges to undeclared nodes."""

    code = "import_parse_error"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None, **details: Any):
        super().__init__(message, line=line, column=column, **details)
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} (line {self.line}, column {self.column})"


class ImportConsistencyError(TownGenError):
    """Candidate graph fails a global invariant; nothing was committed."""

    code = "import_consistency_error"


__all__ = [
    "TownGenError",
    "ConfigError",
    "LayoutFailure",
    "SubdivisionFailure",
    "PopulationConstraintFailure",
    "ImportParseError",
    "ImportConsistencyError",
]
