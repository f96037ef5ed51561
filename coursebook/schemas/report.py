"""
Validation report schemas for Coursebook.

Defines Pydantic models for:
- Individual issues (dangling links, sequence problems, render failures)
- The report accumulated over a whole run
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class IssueKind(str, Enum):
    DANGLING_LINK = "dangling_link"
    SEQUENCE_INCONSISTENCY = "sequence_inconsistency"
    SEQUENCE_CYCLE = "sequence_cycle"
    ORPHAN_DOCUMENT = "orphan_document"
    RENDER_FAILURE = "render_failure"
    OUTPUT_COLLISION = "output_collision"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Issue(BaseModel):
    kind: IssueKind
    severity: Severity = Severity.ERROR
    document_id: str
    message: str
    target: Optional[str] = None      # link destination, for dangling links
    related_id: Optional[str] = None  # other document, for sequence issues

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.kind.value} in {self.document_id}: {self.message}"


class ValidationReport(BaseModel):
    """Issues collected during a run, in the order they were found."""
    generated_at: datetime = Field(default_factory=datetime.now)
    root: Optional[str] = None
    issues: list[Issue] = []
    stats: dict[str, int] = {}

    def add(self, issue: Issue) -> None:
        self.issues.append(issue)

    def extend(self, issues) -> None:
        for issue in issues:
            self.add(issue)

    def by_kind(self, kind: IssueKind) -> list[Issue]:
        return [issue for issue in self.issues if issue.kind == kind]

    @property
    def errors(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[Issue]:
        return [issue for issue in self.issues if issue.severity == Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def summary(self) -> dict[str, int]:
        """Issue counts keyed by kind."""
        counts = {kind.value: 0 for kind in IssueKind}
        for issue in self.issues:
            counts[issue.kind.value] += 1
        return counts
