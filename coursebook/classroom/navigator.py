"""
SequenceNavigator - Course order from "Previous Lesson" / "Next Lesson" links.

Provides:
- Declared previous/next lesson per document
- Mutual consistency checking of those declarations
- The course sequence obtained by following next-lesson links
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from coursebook.config import CourseConfig
from coursebook.errors import NotFoundError, SequenceInconsistencyError
from coursebook.schemas import CourseSequence, Document, Issue, Link

from .resolver import is_external, resolve_relative, split_target
from .store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class LessonMarkers:
    """Trailing previous/next declarations of one document."""
    document_id: str
    previous: Optional[str] = None
    next: Optional[str] = None


class SequenceNavigator:
    """
    Navigate the course through each document's trailing lesson markers.

    The last link whose text matches the previous (next) pattern is the
    document's declared previous (next) lesson. Markers pointing at
    documents that are not in the store are ignored here; the link
    resolver reports them as dangling.
    """

    def __init__(self, store: DocumentStore, config: Optional[CourseConfig] = None):
        """
        Initialize navigator.

        Args:
            store: Loaded documents
            config: Marker patterns (defaults apply if None)
        """
        self.store = store
        self.config = config or CourseConfig()
        self._previous_re = re.compile(self.config.previous_pattern, re.IGNORECASE)
        self._next_re = re.compile(self.config.next_pattern, re.IGNORECASE)
        self._markers = {doc_id: self._parse_markers(doc) for doc_id, doc in store.items()}
        self.errors: list[SequenceInconsistencyError] = []

    # -------------------------------------------------------------------------
    # Marker parsing
    # -------------------------------------------------------------------------

    def _parse_markers(self, document: Document) -> LessonMarkers:
        markers = LessonMarkers(document_id=document.id)
        for link in document.links:
            if link.is_image:
                continue
            is_previous = bool(self._previous_re.search(link.text))
            if not is_previous and not self._next_re.search(link.text):
                continue
            target = self._marker_target(document, link)
            # Unusable targets never erase an earlier valid marker
            if target is None:
                continue
            if is_previous:
                markers.previous = target
            else:
                markers.next = target
        return markers

    def _marker_target(self, document: Document, link: Link) -> Optional[str]:
        target = link.target.strip()
        if is_external(target):
            return None
        path, _ = split_target(target)
        identifier = resolve_relative(document.id, path)
        if identifier is None or identifier == document.id or not self.store.has_document(identifier):
            return None
        return identifier

    def markers(self, doc_id: str) -> LessonMarkers:
        if doc_id not in self._markers:
            raise NotFoundError(doc_id)
        return self._markers[doc_id]

    # -------------------------------------------------------------------------
    # Navigation
    # -------------------------------------------------------------------------

    def previous(self, doc_id: str) -> Optional[str]:
        """Declared previous lesson of a document."""
        return self.markers(doc_id).previous

    def next(self, doc_id: str) -> Optional[str]:
        """Declared next lesson of a document."""
        return self.markers(doc_id).next

    def next_edges(self) -> list[tuple[str, str]]:
        """(document, declared next) pairs in store order."""
        return [(m.document_id, m.next) for m in self._markers.values() if m.next is not None]

    def heads(self) -> list[str]:
        """Documents that start a chain: a next marker but no previous marker."""
        return [
            m.document_id for m in self._markers.values()
            if m.next is not None and m.previous is None
        ]

    def sequence(self) -> CourseSequence:
        """
        Course order obtained by walking next-lesson links from each head.

        Chains from several heads are concatenated in store order. A walk
        stops at the first document already visited, so cycles never
        repeat an identifier.
        """
        heads = self.heads()
        if not heads:
            heads = [doc_id for doc_id, _ in self.next_edges()[:1]]

        order = []
        seen = set()
        for head in heads:
            current = head
            while current is not None and current not in seen:
                seen.add(current)
                order.append(current)
                current = self._markers[current].next

        return CourseSequence(identifiers=tuple(order))

    # -------------------------------------------------------------------------
    # Consistency
    # -------------------------------------------------------------------------

    def is_consistent(self, first_id: str, second_id: str) -> bool:
        """Whether first declares next=second and second declares previous=first."""
        return self.next(first_id) == second_id and self.previous(second_id) == first_id

    def check(self) -> list[SequenceInconsistencyError]:
        """
        Cross-check all markers and collect inconsistencies.

        A declares next=C but C does not declare previous=A, or C declares
        previous=A but A does not declare next=C. Each pair is reported once.
        """
        self.errors = []
        reported = set()

        for doc_id, markers in self._markers.items():
            if markers.next is not None:
                back = self._markers[markers.next].previous
                pair = (doc_id, markers.next)
                if back != doc_id and pair not in reported:
                    reported.add(pair)
                    self._record(SequenceInconsistencyError(doc_id, markers.next, "next", back))

            if markers.previous is not None:
                back = self._markers[markers.previous].next
                pair = (markers.previous, doc_id)
                if back != doc_id and pair not in reported:
                    reported.add(pair)
                    self._record(SequenceInconsistencyError(doc_id, markers.previous, "previous", back))

        return list(self.errors)

    def _record(self, error: SequenceInconsistencyError):
        self.errors.append(error)
        logger.warning(str(error))

    def issues(self) -> list[Issue]:
        return [error.to_issue() for error in self.errors]
