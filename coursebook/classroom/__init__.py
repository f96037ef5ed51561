"""
Coursebook Classroom - Loading, resolving and navigating lesson documents.

This module provides:
- DocumentStore / load: Read documents and assets from a corpus root
- LinkResolver: Resolve links, collecting dangling ones
- SequenceNavigator: Previous/next lesson order and its consistency
- Link graph helpers: orphan documents and next-lesson cycles
"""

from .store import (
    DocumentStore,
    load,
    build_document,
    natural_key,
)

from .resolver import (
    LinkResolver,
    is_external,
    resolve_relative,
    split_target,
)

from .navigator import (
    SequenceNavigator,
    LessonMarkers,
)

from .graph import (
    build_link_graph,
    find_orphans,
    find_sequence_cycles,
    graph_issues,
)

__all__ = [
    # Store
    "DocumentStore",
    "load",
    "build_document",
    "natural_key",
    # Resolver
    "LinkResolver",
    "is_external",
    "resolve_relative",
    "split_target",
    # Navigator
    "SequenceNavigator",
    "LessonMarkers",
    # Graph
    "build_link_graph",
    "find_orphans",
    "find_sequence_cycles",
    "graph_issues",
]
