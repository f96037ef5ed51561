"""
Error types for Coursebook.

NotFoundError is fatal and aborts a run. DanglingLinkError and
SequenceInconsistencyError are collected by the resolver and navigator
and turned into report issues instead of being raised.
"""

from typing import Optional

from coursebook.schemas import Issue, IssueKind, Severity


class CoursebookError(Exception):
    """Base class for all Coursebook errors."""


class NotFoundError(CoursebookError, FileNotFoundError):
    """Corpus root or document does not exist."""

    def __init__(self, path: str, what: str = "Document"):
        self.path = str(path)
        self.what = what
        super().__init__(f"{what} not found: {self.path}")


class DanglingLinkError(CoursebookError):
    """Internal link whose target is not in the document store."""

    def __init__(self, document_id: str, link_text: str, target: str, reason: str = "target not found"):
        self.document_id = document_id
        self.link_text = link_text
        self.target = target
        self.reason = reason
        super().__init__(f"{document_id}: dangling link [{link_text}]({target}) - {reason}")

    def to_issue(self) -> Issue:
        return Issue(
            kind=IssueKind.DANGLING_LINK,
            severity=Severity.ERROR,
            document_id=self.document_id,
            target=self.target,
            message=f"[{self.link_text}]({self.target}): {self.reason}",
        )


class SequenceInconsistencyError(CoursebookError):
    """
    Previous/next markers of two documents disagree.

    `document_id` declares `declared_id` as its next (or previous) lesson,
    but `declared_id` points back to `back_reference` instead.
    """

    def __init__(
        self,
        document_id: str,
        declared_id: str,
        direction: str,
        back_reference: Optional[str],
    ):
        self.document_id = document_id
        self.declared_id = declared_id
        self.direction = direction
        self.back_reference = back_reference
        opposite = "previous" if direction == "next" else "next"
        super().__init__(
            f"{document_id} declares {direction}={declared_id}, "
            f"but {declared_id} declares {opposite}={back_reference or 'nothing'}"
        )

    @property
    def pair(self) -> tuple[str, str]:
        """The two documents involved, in course order."""
        if self.direction == "next":
            return (self.document_id, self.declared_id)
        return (self.declared_id, self.document_id)

    def to_issue(self) -> Issue:
        return Issue(
            kind=IssueKind.SEQUENCE_INCONSISTENCY,
            severity=Severity.ERROR,
            document_id=self.document_id,
            related_id=self.declared_id,
            message=str(self),
        )
