"""
LinkResolver - Resolve document links against the document store.

Internal links are resolved relative to the linking document's own
directory. Links whose target is missing are collected as
DanglingLinkError instances rather than raised, so one bad link never
stops the rest of the corpus from being processed.
"""

import logging
import posixpath
import re
from typing import Optional
from urllib.parse import unquote

from coursebook.config import CourseConfig
from coursebook.errors import DanglingLinkError
from coursebook.schemas import Document, Issue, Link, LinkKind, ResolvedLink

from .store import DocumentStore

logger = logging.getLogger(__name__)

SCHEME_RE = re.compile(r'^[A-Za-z][A-Za-z0-9+.-]*:')

# Documents served for a link to a directory
DIRECTORY_INDEX_NAMES = ("index.md", "README.md")


def is_external(target: str) -> bool:
    """URLs with a scheme (http:, mailto:, ...) and protocol-relative URLs."""
    return bool(SCHEME_RE.match(target)) or target.startswith("//")


def split_target(target: str) -> tuple[str, Optional[str]]:
    """Split a link target into (decoded path, fragment)."""
    path, _, fragment = target.partition("#")
    path = path.partition("?")[0]
    return unquote(path), fragment or None


def resolve_relative(base_id: str, path: str) -> Optional[str]:
    """
    Resolve `path` against the directory of document `base_id`.

    A leading '/' resolves against the corpus root. An empty path refers to
    the document itself. Returns None when the result escapes the root.
    """
    if not path:
        return base_id
    if path.startswith("/"):
        joined = path.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(base_id), path)
    normalized = posixpath.normpath(joined) if joined else "."
    if normalized == ".." or normalized.startswith("../"):
        return None
    return normalized


class LinkResolver:
    """
    Resolve links of documents in a DocumentStore.

    Dangling links accumulate in `errors` across calls to resolve().
    """

    def __init__(self, store: DocumentStore, config: Optional[CourseConfig] = None):
        self.store = store
        self.config = config or CourseConfig()
        self.errors: list[DanglingLinkError] = []

    def resolve(self, document: Document) -> set[ResolvedLink]:
        """
        Resolve every outbound link of a document.

        Returns:
            Set of resolved links. Dangling internal links are left out of
            the set and recorded in `errors` instead.
        """
        results = set()
        for link in document.links:
            resolved = self.resolve_link(document, link)
            if resolved is not None:
                results.add(resolved)
        return results

    def resolve_all(self) -> dict[str, set[ResolvedLink]]:
        """Resolve every document in the store, starting a fresh error list."""
        self.errors = []
        return {doc_id: self.resolve(document) for doc_id, document in self.store.items()}

    def resolve_link(self, document: Document, link: Link) -> Optional[ResolvedLink]:
        target = link.target.strip()
        if is_external(target):
            return ResolvedLink(text=link.text, target=target, kind=LinkKind.EXTERNAL)

        path, fragment = split_target(target)
        identifier = resolve_relative(document.id, path)
        if identifier is None:
            self._record_dangling(document, link, "target is outside the corpus root")
            return None

        if self.config.is_document(identifier):
            if self.store.has_document(identifier):
                return ResolvedLink(
                    text=link.text, target=identifier, kind=LinkKind.INTERNAL_DOCUMENT, fragment=fragment,
                )
        elif self.store.has_asset(identifier):
            return ResolvedLink(
                text=link.text, target=identifier, kind=LinkKind.INTERNAL_ASSET, fragment=fragment,
            )
        else:
            index_id = self._directory_index(identifier)
            if index_id is not None:
                return ResolvedLink(
                    text=link.text, target=index_id, kind=LinkKind.INTERNAL_DOCUMENT, fragment=fragment,
                )

        self._record_dangling(document, link, f"{identifier} not found")
        return None

    def _directory_index(self, identifier: str) -> Optional[str]:
        for name in DIRECTORY_INDEX_NAMES:
            candidate = name if identifier == "." else f"{identifier}/{name}"
            if self.store.has_document(candidate):
                return candidate
        return None

    def _record_dangling(self, document: Document, link: Link, reason: str):
        error = DanglingLinkError(document.id, link.text, link.target, reason)
        self.errors.append(error)
        logger.warning(f"{error} (line {link.line})")

    def issues(self) -> list[Issue]:
        """Dangling links collected so far, as report issues."""
        return [error.to_issue() for error in self.errors]
