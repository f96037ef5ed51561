"""
End-to-end pipeline tests.
"""

import json

import pytest

from coursebook import pipeline
from coursebook.classroom import load
from coursebook.config import CourseConfig
from coursebook.errors import NotFoundError
from coursebook.pipeline import build_course, check_course, choose_index_name
from coursebook.schemas import IssueKind, Severity
from coursebook.viewer import extract_code_blocks


class TestCheckCourse:
    """Test validation without rendering."""

    def test_clean_course(self, course_root):
        check = check_course(load(course_root))
        assert check.report.issues == []
        assert check.sequence.identifiers == ("posts/101.md", "posts/102.md", "posts/103.md")
        assert check.report.stats["documents"] == 3
        assert check.report.stats["assets"] == 2
        assert check.report.stats["code_blocks"] == 3
        assert check.report.stats["sequence_length"] == 3

    def test_collects_every_kind_of_problem(self, course_files, make_corpus):
        files = dict(course_files)
        files["posts/103.md"] = "# Fetch Requests\n\n[Previous Lesson](101.md)\n"
        files["posts/extra.md"] = "# Extra\n\n[Broken](nope.md)\n"
        check = check_course(load(make_corpus(files)))

        dangling = check.report.by_kind(IssueKind.DANGLING_LINK)
        assert [(i.document_id, i.target) for i in dangling] == [("posts/extra.md", "nope.md")]

        inconsistent = check.report.by_kind(IssueKind.SEQUENCE_INCONSISTENCY)
        assert {(i.document_id, i.related_id) for i in inconsistent} == {
            ("posts/102.md", "posts/103.md"),
            ("posts/103.md", "posts/101.md"),
        }

        (orphan,) = check.report.by_kind(IssueKind.ORPHAN_DOCUMENT)
        assert orphan.document_id == "posts/extra.md"
        assert orphan.severity == Severity.WARNING

    def test_cycle_reported(self, make_corpus):
        store = load(make_corpus({
            "a.md": "[Previous Lesson](b.md) [Next Lesson](b.md)\n",
            "b.md": "[Previous Lesson](a.md) [Next Lesson](a.md)\n",
        }))
        (cycle,) = check_course(store).report.by_kind(IssueKind.SEQUENCE_CYCLE)
        assert "a.md -> b.md -> a.md" in cycle.message

    def test_index_name(self, make_corpus):
        assert choose_index_name(load(make_corpus({"a.md": ""}))) == "index.html"
        assert choose_index_name(load(make_corpus({"index.md": ""}))) == "contents.html"
        taken = {"index.md": "", "contents.md": "", "contents-1.md": ""}
        assert choose_index_name(load(make_corpus(taken))) == "contents-2.html"


class TestBuildCourse:
    """Test the full build."""

    def test_writes_site(self, course_root, tmp_path):
        out = tmp_path / "site"
        result = build_course(course_root, output_dir=out)

        for name in ("posts/101.html", "posts/102.html", "posts/103.html", "index.html", "report.json"):
            assert (out / name).is_file()
        assert (out / "image_resources/102/1.png").read_bytes() == (course_root / "image_resources/102/1.png").read_bytes()
        assert list(out.rglob("*.tmp")) == []
        assert list(result.rendered) == ["posts/101.md", "posts/102.md", "posts/103.md"]
        assert result.report.stats["rendered"] == 3

    def test_written_pages_keep_code(self, course_root, tmp_path):
        out = tmp_path / "site"
        result = build_course(course_root, output_dir=out)
        for doc_id, doc in result.store.items():
            page = (out / doc_id).with_suffix(".html").read_text(encoding="utf-8")
            assert [b.content for b in extract_code_blocks(page)] == [b.content for b in doc.code_blocks]

    def test_report_json(self, course_files, make_corpus, tmp_path):
        files = dict(course_files)
        files["posts/101.md"] += "\nSee also [the appendix](appendix.md).\n"
        out = tmp_path / "site"
        build_course(make_corpus(files), output_dir=out)

        data = json.loads((out / "report.json").read_text(encoding="utf-8"))
        assert data["summary"]["dangling_link"] == 1
        assert data["issues"][0]["target"] == "appendix.md"
        assert data["stats"]["documents"] == 3

    def test_dangling_link_does_not_stop_build(self, course_files, make_corpus, tmp_path):
        files = dict(course_files)
        files["posts/102.md"] = files["posts/102.md"].replace("103.md", "104.md")
        out = tmp_path / "site"
        result = build_course(make_corpus(files), output_dir=out)

        assert len(result.report.by_kind(IssueKind.DANGLING_LINK)) == 1
        assert len(result.rendered) == 3
        assert (out / "posts/103.html").is_file()

    def test_render_failure_is_isolated(self, course_root, tmp_path, monkeypatch):
        original = pipeline.render_page

        def flaky(document, **kwargs):
            if document.id == "posts/102.md":
                raise RuntimeError("boom")
            return original(document, **kwargs)

        monkeypatch.setattr(pipeline, "render_page", flaky)
        out = tmp_path / "site"
        result = build_course(course_root, output_dir=out)

        assert list(result.rendered) == ["posts/101.md", "posts/103.md"]
        assert not (out / "posts/102.html").exists()
        (failure,) = result.report.by_kind(IssueKind.RENDER_FAILURE)
        assert failure.document_id == "posts/102.md"
        assert "boom" in failure.message

    def test_parallel_matches_sequential(self, course_root, tmp_path):
        sequential = build_course(course_root, CourseConfig(workers=1), output_dir=tmp_path / "one")
        parallel = build_course(course_root, CourseConfig(workers=4), output_dir=tmp_path / "four")
        assert list(parallel.rendered) == list(sequential.rendered)
        assert parallel.rendered == sequential.rendered

    def test_no_assets(self, course_root, tmp_path):
        out = tmp_path / "site"
        build_course(course_root, CourseConfig(copy_assets=False), output_dir=out)
        assert not (out / "image_resources").exists()

    def test_output_inside_corpus_is_not_reingested(self, course_root):
        config = CourseConfig(output_dir=course_root / "site")
        build_course(course_root, config)
        second = build_course(course_root, config)
        assert len(second.store) == 3
        assert len(second.store.assets) == 2

    def test_index_page_avoids_document_collision(self, make_corpus, tmp_path):
        root = make_corpus({"index.md": "# Welcome\n\n[Next Lesson](a.md)\n", "a.md": "[Previous Lesson](index.md)\n"})
        out = tmp_path / "site"
        result = build_course(root, output_dir=out)
        assert result.index_name == "contents.html"
        assert "Welcome" in (out / "index.html").read_text(encoding="utf-8")
        assert (out / "contents.html").is_file()
        assert 'href="contents.html">Contents</a>' in result.rendered["a.md"]

    def test_index_page_skips_every_taken_name(self, make_corpus, tmp_path):
        root = make_corpus({
            "index.md": "# Welcome\n",
            "contents.md": "# Contents\n\nUNIQUE-CONTENTS-BODY\n",
            "contents-1.html": "<p>static</p>",
        })
        out = tmp_path / "site"
        result = build_course(root, output_dir=out)
        assert result.index_name == "contents-2.html"
        assert "UNIQUE-CONTENTS-BODY" in (out / "contents.html").read_text(encoding="utf-8")
        assert (out / "contents-1.html").read_text(encoding="utf-8") == "<p>static</p>"
        assert "<h1>Course</h1>" in (out / "contents-2.html").read_text(encoding="utf-8")

    def test_asset_never_overwrites_page(self, make_corpus, tmp_path):
        root = make_corpus({"x.md": "# Lesson X\n\nUNIQUE-X-BODY\n", "x.html": "<p>stale export</p>"})
        out = tmp_path / "site"
        result = build_course(root, output_dir=out)
        assert "UNIQUE-X-BODY" in (out / "x.html").read_text(encoding="utf-8")
        (collision,) = result.report.by_kind(IssueKind.OUTPUT_COLLISION)
        assert collision.document_id == "x.html"
        assert collision.severity == Severity.WARNING

    def test_missing_root(self, tmp_path):
        with pytest.raises(NotFoundError):
            build_course(tmp_path / "nope", output_dir=tmp_path / "site")
