"""
Document renderer - Generate HTML for lesson documents.

Features:
- Markdown blocks and inline markup rendered to an HTML fragment
- Fenced code passed through verbatim, with its info string kept in
  data-info and the language in a language-* class
- Internal .md links rewritten to the .html pages the pipeline writes
- Code block extraction from rendered HTML
"""

import html
import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Optional

from coursebook.classroom.resolver import is_external
from coursebook.config import CourseConfig
from coursebook.schemas import CodeBlock, Document
from coursebook.utils.markdown_parser import (
    BlockQuote,
    FencedCode,
    Heading,
    HtmlBlock,
    IndentedCode,
    LinkDefinition,
    ListBlock,
    Paragraph,
    ThematicBreak,
    collect_definitions,
    parse_blocks,
    plain_text,
    scan_inline,
)

LinkRewriter = Callable[[str], str]

STRONG_RE = re.compile(r'(?<![\w*])\*\*(?=\S)(.+?)(?<=\S)\*\*(?![\w*])|(?<![\w_])__(?=\S)(.+?)(?<=\S)__(?![\w_])')
EM_RE = re.compile(r'(?<![\w*])\*(?=[^\s*])(.+?)(?<=[^\s*])\*(?![\w*])|(?<![\w_])_(?=[^\s_])(.+?)(?<=[^\s_])_(?![\w_])')
HARD_BREAK_RE = re.compile(r'(?: {2,}|\\)\n')
PLACEHOLDER_RE = re.compile(r'\x00(\d+)\x00')
SLUG_STRIP_RE = re.compile(r'[^\w\s-]')

CODE_BLOCK_HTML_RE = re.compile(
    r'<pre><code(?P<attrs>[^>]*?\bdata-info="(?P<info>[^"]*)"[^>]*)>(?P<body>.*?)</code></pre>',
    re.DOTALL,
)


@dataclass
class RenderContext:
    """Per-document rendering state."""
    definitions: dict = field(default_factory=dict)
    link_rewriter: Optional[LinkRewriter] = None
    used_slugs: dict[str, int] = field(default_factory=dict)

    def rewrite(self, target: str) -> str:
        return self.link_rewriter(target) if self.link_rewriter else target

    def unique_slug(self, text: str) -> str:
        base = slugify(text) or "section"
        count = self.used_slugs.get(base, 0)
        self.used_slugs[base] = count + 1
        return base if count == 0 else f"{base}-{count}"


def slugify(text: str) -> str:
    """GitHub-style heading anchor."""
    text = SLUG_STRIP_RE.sub('', text.strip().lower())
    return re.sub(r'\s+', '-', text)


def make_link_rewriter(config: Optional[CourseConfig] = None) -> LinkRewriter:
    """Rewriter mapping internal document links to their .html pages."""
    config = config or CourseConfig()

    def rewrite(target: str) -> str:
        if not target or is_external(target):
            return target
        path, hash_sep, fragment = target.partition('#')
        path, query_sep, query = path.partition('?')
        if path and config.is_document(path):
            path = str(PurePosixPath(path).with_suffix('.html'))
        return path + query_sep + query + hash_sep + fragment

    return rewrite


# -----------------------------------------------------------------------------
# Inline rendering
# -----------------------------------------------------------------------------

def _apply_emphasis(escaped: str) -> str:
    escaped = STRONG_RE.sub(lambda m: f'<strong>{m.group(1) or m.group(2)}</strong>', escaped)
    escaped = EM_RE.sub(lambda m: f'<em>{m.group(1) or m.group(2)}</em>', escaped)
    return HARD_BREAK_RE.sub('<br />\n', escaped)


def render_inline(text: str, ctx: Optional[RenderContext] = None) -> str:
    """
    Render inline Markdown to HTML.

    Non-text tokens are swapped for placeholders while emphasis is applied,
    so emphasis may span links and code spans without touching them.
    """
    ctx = ctx or RenderContext()
    pieces = []
    placeholders = []

    def hold(rendered: str) -> str:
        placeholders.append(rendered)
        return f'\x00{len(placeholders) - 1}\x00'

    for token in scan_inline(text, ctx.definitions):
        if token.kind == 'text':
            pieces.append(html.escape(token.text.replace('\x00', '�'), quote=False))
        elif token.kind == 'escape':
            pieces.append(hold(html.escape(token.text)))
        elif token.kind == 'code':
            pieces.append(hold(f'<code>{html.escape(token.text, quote=False)}</code>'))
        elif token.kind == 'link':
            title = f' title="{html.escape(token.title)}"' if token.title else ''
            href = html.escape(ctx.rewrite(token.target))
            pieces.append(hold(f'<a href="{href}"{title}>{render_inline(token.text, ctx)}</a>'))
        elif token.kind == 'image':
            title = f' title="{html.escape(token.title)}"' if token.title else ''
            alt = html.escape(plain_text(token.text, ctx.definitions))
            pieces.append(hold(f'<img src="{html.escape(token.target)}" alt="{alt}"{title} />'))
        elif token.kind == 'autolink':
            pieces.append(hold(f'<a href="{html.escape(token.target)}">{html.escape(token.text)}</a>'))
        elif token.kind == 'html':
            pieces.append(hold(token.text))

    rendered = _apply_emphasis(''.join(pieces))
    return PLACEHOLDER_RE.sub(lambda m: placeholders[int(m.group(1))], rendered)


# -----------------------------------------------------------------------------
# Block rendering
# -----------------------------------------------------------------------------

def render_code_block(block: FencedCode) -> str:
    """
    Render a fenced code block.

    Only &, < and > are escaped, so code without those characters appears
    in the output exactly as written.
    """
    attrs = []
    language = block.info.split()[0] if block.info.strip() else None
    if language:
        attrs.append(f' class="language-{html.escape(language)}"')
    attrs.append(f' data-info="{html.escape(block.info)}"')
    return f'<pre><code{"".join(attrs)}>{html.escape(block.content, quote=False)}</code></pre>'


def render_heading(block: Heading, ctx: RenderContext) -> str:
    slug = ctx.unique_slug(plain_text(block.text, ctx.definitions))
    return f'<h{block.level} id="{slug}">{render_inline(block.text, ctx)}</h{block.level}>'


def render_list(block: ListBlock, ctx: RenderContext) -> str:
    tag = 'ol' if block.ordered else 'ul'
    start = f' start="{block.start}"' if block.ordered and block.start != 1 else ''
    items = []
    for item in block.items:
        body = render_blocks(item, ctx, tight=not block.loose)
        items.append(f'<li>{body}</li>')
    return f'<{tag}{start}>\n' + '\n'.join(items) + f'\n</{tag}>'


def render_block(block, ctx: RenderContext, tight: bool = False) -> str:
    """Render any block."""
    if isinstance(block, Paragraph):
        inline = render_inline(block.text, ctx)
        return inline if tight else f'<p>{inline}</p>'
    elif isinstance(block, Heading):
        return render_heading(block, ctx)
    elif isinstance(block, FencedCode):
        return render_code_block(block)
    elif isinstance(block, IndentedCode):
        return f'<pre><code>{html.escape(block.content, quote=False)}</code></pre>'
    elif isinstance(block, BlockQuote):
        return f'<blockquote>\n{render_blocks(block.children, ctx)}\n</blockquote>'
    elif isinstance(block, ListBlock):
        return render_list(block, ctx)
    elif isinstance(block, ThematicBreak):
        return '<hr />'
    elif isinstance(block, HtmlBlock):
        return block.raw
    elif isinstance(block, LinkDefinition):
        return ''
    else:
        raise TypeError(f"Unknown block type: {type(block).__name__}")


def render_blocks(blocks: list, ctx: RenderContext, tight: bool = False) -> str:
    rendered = (render_block(block, ctx, tight=tight) for block in blocks)
    return '\n'.join(part for part in rendered if part)


def render_markdown(text: str, link_rewriter: Optional[LinkRewriter] = None) -> str:
    """
    Render Markdown source to an HTML fragment.

    Args:
        text: Markdown source
        link_rewriter: Optional mapping applied to link (not image) targets

    Returns:
        HTML string
    """
    blocks = parse_blocks(text)
    ctx = RenderContext(definitions=collect_definitions(blocks), link_rewriter=link_rewriter)
    return render_blocks(blocks, ctx)


def render(document: Document, link_rewriter: Optional[LinkRewriter] = None) -> str:
    """Render a document's content to an HTML fragment."""
    return render_markdown(document.content, link_rewriter)


# -----------------------------------------------------------------------------
# Extraction
# -----------------------------------------------------------------------------

def extract_code_blocks(rendered: str) -> list[CodeBlock]:
    """
    Recover fenced code blocks from rendered HTML.

    Inverse of render_code_block: the content and info string come back
    exactly as they were in the Markdown source.
    """
    return [
        CodeBlock(info=html.unescape(m.group('info')), content=html.unescape(m.group('body')))
        for m in CODE_BLOCK_HTML_RE.finditer(rendered)
    ]
