"""
Sequence navigator and link graph tests.
"""

import pytest

from coursebook.classroom import (
    LinkResolver,
    SequenceNavigator,
    build_link_graph,
    find_orphans,
    find_sequence_cycles,
    load,
)
from coursebook.config import CourseConfig
from coursebook.errors import NotFoundError
from coursebook.pipeline import check_course
from coursebook.schemas import IssueKind


class TestNavigation:
    """Test previous/next lookups."""

    def test_consistent_course(self, course_root):
        nav = SequenceNavigator(load(course_root))
        assert nav.previous("posts/101.md") is None
        assert nav.next("posts/101.md") == "posts/102.md"
        assert nav.previous("posts/102.md") == "posts/101.md"
        assert nav.next("posts/102.md") == "posts/103.md"
        assert nav.next("posts/103.md") is None
        assert nav.check() == []
        assert nav.is_consistent("posts/101.md", "posts/102.md")

    def test_sequence(self, course_root):
        nav = SequenceNavigator(load(course_root))
        assert nav.heads() == ["posts/101.md"]
        assert nav.sequence().identifiers == ("posts/101.md", "posts/102.md", "posts/103.md")

    def test_unknown_document(self, course_root):
        nav = SequenceNavigator(load(course_root))
        with pytest.raises(NotFoundError):
            nav.next("posts/999.md")
        with pytest.raises(NotFoundError):
            nav.previous("posts/999.md")

    def test_last_marker_wins(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Next Lesson](b.md)\n\nMore text.\n\n[Next Lesson](c.md)\n",
            "b.md": "",
            "c.md": "",
        }))
        assert SequenceNavigator(store).next("a.md") == "c.md"

    def test_markers_to_missing_or_external_targets_are_ignored(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Next Lesson](missing.md)\n\n[Previous Lesson](https://example.com/old)\n",
        }))
        nav = SequenceNavigator(store)
        assert nav.next("a.md") is None
        assert nav.previous("a.md") is None

    def test_unusable_later_marker_keeps_earlier_one(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Next Lesson](b.md)\n\n[next lesson notes](https://example.com)\n\n[Next Lesson](missing.md)\n",
            "b.md": "[Previous Lesson](b.md) [Previous Lesson](a.md) [previous lesson recap](#top)\n",
        }))
        nav = SequenceNavigator(store)
        assert nav.next("a.md") == "b.md"
        assert nav.previous("b.md") == "a.md"
        assert nav.check() == []

    def test_marker_matching_is_case_insensitive(self, make_corpus):
        store = load(make_corpus({"a.md": "[NEXT LESSON: Views](b.md)\n", "b.md": "[previous lesson](a.md)\n"}))
        nav = SequenceNavigator(store)
        assert nav.next("a.md") == "b.md"
        assert nav.previous("b.md") == "a.md"

    def test_custom_patterns(self, make_corpus):
        store = load(make_corpus({"a.md": "[Weiter](b.md)\n", "b.md": "[Zurück](a.md)\n"}))
        config = CourseConfig(previous_pattern="zurück", next_pattern="weiter")
        nav = SequenceNavigator(store, config)
        assert nav.next("a.md") == "b.md"
        assert nav.previous("b.md") == "a.md"
        assert nav.check() == []


class TestConsistency:
    """Test cross-checking of previous/next declarations."""

    def test_next_without_matching_previous(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Next Lesson](c.md)\n",
            "b.md": "[Next Lesson](c.md)\n",
            "c.md": "[Previous Lesson](b.md)\n",
        }))
        nav = SequenceNavigator(store)
        (error,) = nav.check()
        assert error.pair == ("a.md", "c.md")
        assert error.document_id == "a.md"
        assert error.declared_id == "c.md"
        assert error.back_reference == "b.md"

    def test_previous_without_matching_next(self, make_corpus):
        store = load(make_corpus({"a.md": "# A\n", "c.md": "[Previous Lesson](a.md)\n"}))
        nav = SequenceNavigator(store)
        (error,) = nav.check()
        assert error.pair == ("a.md", "c.md")
        assert error.direction == "previous"
        assert error.back_reference is None

    def test_every_broken_pair_reported(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Next Lesson](b.md)\n",
            "b.md": "[Previous Lesson](c.md)\n",
            "c.md": "[Next Lesson](d.md)\n",
            "d.md": "",
        }))
        errors = SequenceNavigator(store).check()
        assert sorted(error.pair for error in errors) == [("a.md", "b.md"), ("c.md", "b.md"), ("c.md", "d.md")]

    def test_inconsistency_is_logged(self, make_corpus, caplog):
        store = load(make_corpus({"a.md": "[Next Lesson](b.md)\n", "b.md": ""}))
        nav = SequenceNavigator(store)
        with caplog.at_level("WARNING"):
            nav.check()
        assert "a.md declares next=b.md" in caplog.text

    def test_issues(self, make_corpus):
        store = load(make_corpus({"a.md": "[Next Lesson](b.md)\n", "b.md": ""}))
        nav = SequenceNavigator(store)
        nav.check()
        (issue,) = nav.issues()
        assert issue.kind == IssueKind.SEQUENCE_INCONSISTENCY
        assert issue.related_id == "b.md"


class TestSequenceShapes:
    """Test course order for unusual marker graphs."""

    def test_multiple_chains_are_concatenated(self, make_corpus):
        store = load(make_corpus({
            "a1.md": "[Next Lesson](a2.md)\n",
            "a2.md": "[Previous Lesson](a1.md)\n",
            "b1.md": "[Next Lesson](b2.md)\n",
            "b2.md": "[Previous Lesson](b1.md)\n",
        }))
        assert SequenceNavigator(store).sequence().identifiers == ("a1.md", "a2.md", "b1.md", "b2.md")

    def test_cycle_does_not_repeat(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Previous Lesson](b.md) [Next Lesson](b.md)\n",
            "b.md": "[Previous Lesson](a.md) [Next Lesson](a.md)\n",
        }))
        nav = SequenceNavigator(store)
        assert nav.heads() == []
        assert nav.sequence().identifiers == ("a.md", "b.md")
        assert find_sequence_cycles(nav) == [["a.md", "b.md"]]

    def test_cycle_keeps_link_order(self, make_corpus, caplog):
        store = load(make_corpus({
            "a.md": "[Next Lesson](c.md)\n",
            "b.md": "[Next Lesson](a.md)\n",
            "c.md": "[Next Lesson](b.md)\n",
        }))
        assert find_sequence_cycles(SequenceNavigator(store)) == [["a.md", "c.md", "b.md"]]
        with caplog.at_level("WARNING"):
            (cycle,) = check_course(store).report.by_kind(IssueKind.SEQUENCE_CYCLE)
        assert cycle.document_id == "a.md"
        assert "a.md -> c.md -> b.md -> a.md" in cycle.message
        assert "a.md -> c.md -> b.md -> a.md" in caplog.text

    def test_no_markers_empty_sequence(self, make_corpus):
        store = load(make_corpus({"a.md": "# A\n", "b.md": "# B\n"}))
        assert len(SequenceNavigator(store).sequence()) == 0


class TestLinkGraph:
    """Test the networkx link graph."""

    def test_graph_and_orphans(self, course_root):
        store = load(course_root)
        resolved = LinkResolver(store).resolve_all()
        graph = build_link_graph(store.keys(), resolved)
        assert graph.has_edge("posts/101.md", "posts/102.md")
        assert graph.has_edge("posts/102.md", "posts/101.md")
        assert not graph.has_edge("posts/102.md", "image_resources/102/1.png")
        assert find_orphans(graph, ["posts/101.md"]) == []

    def test_orphan_found(self, make_corpus):
        store = load(make_corpus({"a.md": "[Next Lesson](b.md)\n", "b.md": "", "lost.md": ""}))
        graph = build_link_graph(store.keys(), LinkResolver(store).resolve_all())
        assert find_orphans(graph, ["a.md"]) == ["lost.md"]
