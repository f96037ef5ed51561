"""
Link graph analysis with networkx.

Builds a directed graph of document-to-document links and reports:
- Orphan documents (not reachable from the start of the course)
- Cycles in the next-lesson chain
"""

import logging
from typing import Iterable

import networkx as nx

from coursebook.schemas import Issue, IssueKind, LinkKind, ResolvedLink, Severity

from .navigator import SequenceNavigator

logger = logging.getLogger(__name__)


def build_link_graph(doc_ids: Iterable[str], resolved: dict[str, set[ResolvedLink]]) -> nx.DiGraph:
    """
    Directed graph with one node per document and one edge per internal
    document link. Edge attribute `count` holds the number of links.
    """
    graph = nx.DiGraph()
    graph.add_nodes_from(doc_ids)

    for source, links in resolved.items():
        for link in links:
            if link.kind != LinkKind.INTERNAL_DOCUMENT or link.target == source:
                continue
            if graph.has_edge(source, link.target):
                graph[source][link.target]["count"] += 1
            else:
                graph.add_edge(source, link.target, count=1)

    return graph


def find_orphans(graph: nx.DiGraph, entry_points: Iterable[str]) -> list[str]:
    """Documents not reachable from any entry point, in node order."""
    reachable = set()
    for entry in entry_points:
        if entry in graph:
            reachable.add(entry)
            reachable.update(nx.descendants(graph, entry))
    return [node for node in graph.nodes if node not in reachable]


def find_sequence_cycles(navigator: SequenceNavigator) -> list[list[str]]:
    """
    Cycles formed by next-lesson markers, in link order.

    Each cycle starts at its smallest identifier; cycles are sorted.
    """
    chain = nx.DiGraph()
    chain.add_edges_from(navigator.next_edges())
    cycles = []
    for cycle in nx.simple_cycles(chain):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
    return sorted(cycles)


def graph_issues(
    graph: nx.DiGraph,
    navigator: SequenceNavigator,
    entry_points: list[str],
) -> list[Issue]:
    """Orphan and cycle issues for the report."""
    issues = []

    for cycle in find_sequence_cycles(navigator):
        path = ' -> '.join(cycle + cycle[:1])
        logger.warning(f"Next-lesson cycle: {path}")
        issues.append(Issue(
            kind=IssueKind.SEQUENCE_CYCLE,
            severity=Severity.ERROR,
            document_id=cycle[0],
            message=f"next-lesson links form a cycle: {path}",
        ))

    # Without a course entry point every document would count as orphaned
    if entry_points:
        for orphan in find_orphans(graph, entry_points):
            issues.append(Issue(
                kind=IssueKind.ORPHAN_DOCUMENT,
                severity=Severity.WARNING,
                document_id=orphan,
                message="not reachable from the start of the course",
            ))

    return issues
