"""
Coursebook - Publishing pipeline for cross-linked Markdown lesson courses.

Loads lesson documents, validates their links and previous/next lesson
markers, and renders them to standalone HTML pages.
"""

__version__ = "0.1.0"

from coursebook.classroom import DocumentStore, LinkResolver, SequenceNavigator, load
from coursebook.config import CourseConfig, load_config
from coursebook.errors import (
    CoursebookError,
    DanglingLinkError,
    NotFoundError,
    SequenceInconsistencyError,
)
from coursebook.pipeline import BuildResult, CourseCheck, build_course, check_course
from coursebook.viewer import extract_code_blocks, render, render_page

__all__ = [
    "__version__",
    "DocumentStore",
    "LinkResolver",
    "SequenceNavigator",
    "load",
    "CourseConfig",
    "load_config",
    "CoursebookError",
    "DanglingLinkError",
    "NotFoundError",
    "SequenceInconsistencyError",
    "BuildResult",
    "CourseCheck",
    "build_course",
    "check_course",
    "extract_code_blocks",
    "render",
    "render_page",
]
