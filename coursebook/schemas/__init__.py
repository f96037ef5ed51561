"""
Coursebook Schemas - Pydantic models for the course publishing pipeline.

This module exports all schema classes for:
- Document: ingested lessons, links, code blocks, resolved links
- Course: the ordered course sequence
- Report: validation issues and the run report
"""

# Document schemas
from .document import (
    Link,
    CodeBlock,
    Document,
    LinkKind,
    ResolvedLink,
    validate_identifier,
)

# Course schemas
from .course import CourseSequence

# Report schemas
from .report import (
    IssueKind,
    Severity,
    Issue,
    ValidationReport,
)

__all__ = [
    # Document
    'Link',
    'CodeBlock',
    'Document',
    'LinkKind',
    'ResolvedLink',
    'validate_identifier',
    # Course
    'CourseSequence',
    # Report
    'IssueKind',
    'Severity',
    'Issue',
    'ValidationReport',
]
