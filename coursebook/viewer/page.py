"""
Page renderer - Standalone HTML pages for lessons and the course index.

Wraps rendered lesson fragments with page chrome: stylesheet, title,
previous/next navigation and the position within the course.
"""

import html
import posixpath
from pathlib import PurePosixPath
from typing import Optional

from coursebook.classroom import DocumentStore, SequenceNavigator
from coursebook.config import CourseConfig
from coursebook.schemas import CourseSequence, Document

from .document import make_link_rewriter, render


def get_page_css() -> str:
    """Get CSS styles for lesson pages."""
    return """
    <style>
    body {
        max-width: 860px;
        margin: 2em auto;
        padding: 0 1em;
        font-family: -apple-system, "Helvetica Neue", Helvetica, Arial, sans-serif;
        line-height: 1.6;
        color: #333;
    }
    pre {
        background: #f6f8fa;
        border-radius: 6px;
        padding: 1em;
        overflow-x: auto;
        line-height: 1.4;
    }
    code {
        font-family: Menlo, Monaco, Consolas, monospace;
        font-size: 0.9em;
    }
    img {
        max-width: 100%;
    }
    blockquote {
        border-left: 4px solid #ddd;
        margin: 1em 0;
        padding: 0 1em;
        color: #666;
    }
    .lesson-nav {
        display: flex;
        justify-content: space-between;
        margin: 2em 0;
        padding: 1em 0;
        border-top: 1px solid #eee;
        font-size: 0.95em;
    }
    .lesson-position {
        color: #888;
    }
    .course-index li {
        margin: 0.3em 0;
    }
    </style>
    """


def output_name(identifier: str) -> str:
    """Output page path for a document identifier ('lessons/104.md' -> 'lessons/104.html')."""
    return str(PurePosixPath(identifier).with_suffix('.html'))


def relative_href(from_id: str, to_id: str) -> str:
    """Link from the page of one document to the page of another."""
    start = posixpath.dirname(from_id) or '.'
    return posixpath.relpath(output_name(to_id), start)


def _page(title: str, body: str) -> str:
    return (
        '<!DOCTYPE html>\n'
        '<html lang="en">\n<head>\n<meta charset="utf-8" />\n'
        f'<title>{html.escape(title)}</title>\n{get_page_css()}\n</head>\n'
        f'<body>\n{body}\n</body>\n</html>\n'
    )


def render_navigation(
    document: Document,
    navigator: SequenceNavigator,
    sequence: Optional[CourseSequence] = None,
    index_name: str = "index.html",
) -> str:
    """Render the previous / index / next bar for a lesson page."""
    store = navigator.store
    parts = ['<nav class="lesson-nav">']

    previous_id = navigator.previous(document.id)
    if previous_id:
        title = store[previous_id].title
        parts.append(f'<a rel="prev" href="{html.escape(relative_href(document.id, previous_id))}">'
                     f'&larr; {html.escape(title)}</a>')
    else:
        parts.append('<span></span>')

    index_href = posixpath.relpath(index_name, posixpath.dirname(document.id) or '.')
    middle = f'<a href="{html.escape(index_href)}">Contents</a>'
    if sequence is not None and document.id in sequence:
        current, total = sequence.position(document.id)
        middle += f' <span class="lesson-position">Lesson {current} of {total}</span>'
    parts.append(f'<span>{middle}</span>')

    next_id = navigator.next(document.id)
    if next_id:
        title = store[next_id].title
        parts.append(f'<a rel="next" href="{html.escape(relative_href(document.id, next_id))}">'
                     f'{html.escape(title)} &rarr;</a>')
    else:
        parts.append('<span></span>')

    parts.append('</nav>')
    return ''.join(parts)


def render_page(
    document: Document,
    navigator: Optional[SequenceNavigator] = None,
    sequence: Optional[CourseSequence] = None,
    site_title: str = "Course",
    config: Optional[CourseConfig] = None,
    index_name: str = "index.html",
) -> str:
    """
    Render a complete HTML page for one document.

    Args:
        document: Document to render
        navigator: Adds the previous/next bar when given
        sequence: Adds "Lesson N of M" when the document is in it
        site_title: Suffix for the <title> element
        config: Document suffixes for link rewriting
        index_name: Page the "Contents" link points to

    Returns:
        Complete HTML page
    """
    body = [f'<article class="lesson">\n{render(document, make_link_rewriter(config))}\n</article>']
    if navigator is not None:
        body.append(render_navigation(document, navigator, sequence, index_name))
    return _page(f"{document.title} - {site_title}", '\n'.join(body))


def render_index(
    store: DocumentStore,
    sequence: CourseSequence,
    site_title: str = "Course",
) -> str:
    """
    Render the course table of contents.

    Lessons in the course sequence come first, in order; every other
    document follows in identifier order.
    """
    parts = [f'<h1>{html.escape(site_title)}</h1>']

    if len(sequence):
        parts.append('<ol class="course-index">')
        for doc_id in sequence.identifiers:
            parts.append(f'<li><a href="{html.escape(output_name(doc_id))}">'
                         f'{html.escape(store[doc_id].title)}</a></li>')
        parts.append('</ol>')

    others = [doc_id for doc_id in store if doc_id not in sequence]
    if others:
        parts.append('<h2>Other documents</h2>' if len(sequence) else '')
        parts.append('<ul class="course-index">')
        for doc_id in others:
            parts.append(f'<li><a href="{html.escape(output_name(doc_id))}">'
                         f'{html.escape(store[doc_id].title)}</a></li>')
        parts.append('</ul>')

    return _page(site_title, '\n'.join(part for part in parts if part))
