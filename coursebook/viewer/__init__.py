"""
Coursebook Viewer - HTML rendering for lesson documents.

This module provides:
- Markdown to HTML rendering with verbatim code blocks
- Code block extraction from rendered HTML
- Standalone lesson pages and the course index
"""

from .document import (
    RenderContext,
    slugify,
    make_link_rewriter,
    render_inline,
    render_code_block,
    render_block,
    render_blocks,
    render_markdown,
    render,
    extract_code_blocks,
)

from .page import (
    get_page_css,
    output_name,
    relative_href,
    render_navigation,
    render_page,
    render_index,
)

__all__ = [
    # Document rendering
    "RenderContext",
    "slugify",
    "make_link_rewriter",
    "render_inline",
    "render_code_block",
    "render_block",
    "render_blocks",
    "render_markdown",
    "render",
    "extract_code_blocks",
    # Pages
    "get_page_css",
    "output_name",
    "relative_href",
    "render_navigation",
    "render_page",
    "render_index",
]
