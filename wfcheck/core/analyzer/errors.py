"""
Analyzer Errors
================
Fatal errors abort a run before any report exists. RuleEvaluationError is
the only recoverable one: it is collected as a diagnostic on the report.
"""

from typing import Any, Dict, Optional


class ComplianceError(Exception):
    """Base class for every error raised by the compliance analyzer."""


class PipelineModelError(ComplianceError):
    """The pipeline handed to the analyzer is malformed."""


class DanglingReferenceError(PipelineModelError):
    def __init__(self, artifact_id: str, operation_id: int):
        self.artifact_id = artifact_id
        self.operation_id = operation_id
        super().__init__(
            f"op#{operation_id} references artifact '{artifact_id}' "
            f"which no upstream operation produced"
        )


class DuplicateArtifactError(PipelineModelError):
    def __init__(self, artifact_id: str, operation_id: int, first_producer: Optional[int]):
        self.artifact_id = artifact_id
        self.operation_id = operation_id
        self.first_producer = first_producer
        origin = f"op#{first_producer}" if first_producer is not None else "pipeline sources"
        super().__init__(
            f"op#{operation_id} produces artifact '{artifact_id}' "
            f"already created by {origin}"
        )


class CatalogError(ComplianceError):
    """Rule catalog could not be assembled (e.g. duplicate rule ids)."""


class InvalidSeverityWeightError(ComplianceError, ValueError):
    """Scoring deduction table is misconfigured."""


class RuleEvaluationError(ComplianceError):
    """A single rule raised while evaluating. Recoverable."""

    def __init__(self, rule_id: str, cause: BaseException):
        self.rule_id = rule_id
        self.cause = cause
        super().__init__(f"{rule_id} failed: {type(cause).__name__}: {cause}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "error": type(self.cause).__name__,
            "message": str(self.cause),
        }
