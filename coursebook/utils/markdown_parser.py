"""
Markdown parser for lesson documents.

Splits Markdown source into blocks and inline tokens. The same structure is
used at ingestion (links, code blocks, title) and by the HTML renderer, so
both always agree on what is code and what is prose.

Supported blocks: ATX and setext headings, paragraphs, fenced and indented
code, block quotes, bullet and ordered lists, thematic breaks, raw HTML
blocks and link reference definitions.
"""

import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

from coursebook.schemas import CodeBlock, Link


# -----------------------------------------------------------------------------
# Block patterns
# -----------------------------------------------------------------------------

LINE_RE = re.compile(r'[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+')
FENCE_OPEN_RE = re.compile(r'^( {0,3})(`{3,}|~{3,})(.*)$')
ATX_HEADING_RE = re.compile(r'^ {0,3}(#{1,6})(?:[ \t]+(.*?))?[ \t]*$')
ATX_CLOSING_RE = re.compile(r'(?:^|[ \t]+)#+$')
SETEXT_RE = re.compile(r'^ {0,3}(=+|-+)[ \t]*$')
THEMATIC_BREAK_RE = re.compile(r'^ {0,3}([-*_])(?:[ \t]*\1){2,}[ \t]*$')
BLOCKQUOTE_RE = re.compile(r'^ {0,3}> ?(.*)$')
LIST_ITEM_RE = re.compile(r'^( {0,3})([-*+]|\d{1,9}[.)])(?:([ \t]+)(.*))?$')
LINK_DEF_RE = re.compile(
    r'''^ {0,3}\[([^\]]+)\]:[ \t]*<?([^\s>]*)>?'''
    r'''(?:[ \t]+(?:"([^"]*)"|'([^']*)'|\(([^)]*)\)))?[ \t]*$'''
)
HTML_BLOCK_RE = re.compile(
    r'^ {0,3}(?:<!--|</?(?:address|article|aside|audio|blockquote|br|center|details|div|dl|'
    r'figcaption|figure|footer|form|h[1-6]|header|hr|iframe|img|ol|p|pre|script|section|'
    r'style|summary|table|ul|video)\b)',
    re.IGNORECASE,
)

# -----------------------------------------------------------------------------
# Inline patterns
# -----------------------------------------------------------------------------

ESCAPABLE = set('!"#$%&\'()*+,-./:;<=>?@[\\]^_`{|}~')
ESCAPED_CHAR_RE = re.compile(r'\\([!"#$%&\'()*+,\-./:;<=>?@\[\\\]^_`{|}~])')
AUTOLINK_RE = re.compile(r'<([A-Za-z][A-Za-z0-9+.-]{1,31}:[^\s<>]*)>')
EMAIL_AUTOLINK_RE = re.compile(
    r"<([A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*)>"
)
INLINE_HTML_RE = re.compile(
    r'''<!--.*?-->|</?[A-Za-z][A-Za-z0-9-]*'''
    r'''(?:\s+[A-Za-z_:][\w.:-]*(?:\s*=\s*(?:"[^"]*"|'[^']*'|[^\s"'=<>`]+))?)*\s*/?>''',
    re.DOTALL,
)
HTML_LINK_ATTR_RE = re.compile(
    r'''<(a|img)\b[^>]*?\b(?:href|src)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s>]+))''',
    re.IGNORECASE,
)
HTML_ALT_ATTR_RE = re.compile(r'''\balt\s*=\s*(?:"([^"]*)"|'([^']*)')''', re.IGNORECASE)
EMPHASIS_MARKUP_RE = re.compile(r'(?<![\w*])(\*{1,3}|_{1,3})(\S(?:.*?\S)?)\1(?![\w*])')


# -----------------------------------------------------------------------------
# Block types
# -----------------------------------------------------------------------------

@dataclass
class Heading:
    line: int
    level: int
    text: str


@dataclass
class Paragraph:
    line: int
    text: str


@dataclass
class FencedCode:
    """Fenced code block. `content` is the exact text between the fences."""
    line: int
    fence: str
    info: str
    content: str


@dataclass
class IndentedCode:
    line: int
    content: str


@dataclass
class BlockQuote:
    line: int
    children: list = field(default_factory=list)


@dataclass
class ListBlock:
    line: int
    ordered: bool
    start: int = 1
    items: list[list] = field(default_factory=list)
    loose: bool = False


@dataclass
class ThematicBreak:
    line: int


@dataclass
class HtmlBlock:
    line: int
    raw: str


@dataclass
class LinkDefinition:
    line: int
    label: str
    target: str
    title: Optional[str] = None


@dataclass
class InlineToken:
    """
    Inline element of a paragraph or heading.

    kind is one of: text, escape, code, link, image, autolink, html.
    For links `text` is the raw link text, for images the alt text.
    """
    kind: str
    text: str = ""
    target: str = ""
    title: Optional[str] = None
    pos: int = 0


@dataclass
class ScannedDocument:
    """Everything ingestion needs from one Markdown source."""
    blocks: list
    definitions: dict[str, tuple[str, Optional[str]]]
    links: list[Link]
    code_blocks: list[CodeBlock]
    title: Optional[str]


# -----------------------------------------------------------------------------
# Line helpers
# -----------------------------------------------------------------------------

def split_lines(text: str) -> list[str]:
    """
    Split on \\n, \\r\\n and \\r only, keeping line endings.

    Unlike str.splitlines, form feeds and other Unicode separators stay
    inside their line.
    """
    return LINE_RE.findall(text)


def _strip_eol(line: str) -> str:
    return line.rstrip('\r\n')


def _is_blank(line: str) -> bool:
    return not _strip_eol(line).strip()


def _indent_width(line: str) -> int:
    """Leading whitespace width, tabs counted as 4 columns."""
    width = 0
    for ch in line:
        if ch == ' ':
            width += 1
        elif ch == '\t':
            width += 4
        else:
            break
    return width


def _dedent(line: str, width: int) -> str:
    """Remove up to `width` columns of leading whitespace."""
    removed = 0
    i = 0
    while i < len(line) and removed < width:
        if line[i] == ' ':
            removed += 1
        elif line[i] == '\t':
            removed += 4
        else:
            break
        i += 1
    return line[i:]


def _is_fence_open(bare: str) -> Optional[re.Match]:
    m = FENCE_OPEN_RE.match(bare)
    # Backtick fences may not carry backticks in their info string
    if m and m.group(2)[0] == '`' and '`' in m.group(3):
        return None
    return m


def _list_marker_type(marker: str) -> str:
    return marker[-1]


def _interrupts_paragraph(bare: str) -> bool:
    """Whether a line starts a new block in the middle of a paragraph."""
    if _is_fence_open(bare) or ATX_HEADING_RE.match(bare) or THEMATIC_BREAK_RE.match(bare):
        return True
    if BLOCKQUOTE_RE.match(bare) or HTML_BLOCK_RE.match(bare):
        return True
    m = LIST_ITEM_RE.match(bare)
    if m and m.group(4):
        marker = m.group(2)
        return not marker[0].isdigit() or int(marker[:-1]) == 1
    return False


def normalize_label(label: str) -> str:
    """Case-fold and collapse whitespace of a reference label."""
    return ' '.join(label.split()).lower()


# -----------------------------------------------------------------------------
# Block parsing
# -----------------------------------------------------------------------------

def _parse_fence(lines: list[str], i: int, m: re.Match, start_line: int) -> tuple[FencedCode, int]:
    indent = len(m.group(1))
    fence = m.group(2)
    info = m.group(3).strip()
    close_re = re.compile(r'^ {0,3}' + re.escape(fence[0]) + '{' + str(len(fence)) + r',}[ \t]*$')

    body = []
    j = i + 1
    while j < len(lines):
        if close_re.match(_strip_eol(lines[j])):
            break
        body.append(_dedent(lines[j], indent) if indent else lines[j])
        j += 1

    block = FencedCode(line=start_line + i, fence=fence, info=info, content=''.join(body))
    # An unclosed fence runs to the end of the document
    return block, min(j + 1, len(lines))


def _parse_indented_code(lines: list[str], i: int, start_line: int) -> tuple[IndentedCode, int]:
    body = []
    j = i
    while j < len(lines) and (_is_blank(lines[j]) or _indent_width(lines[j]) >= 4):
        body.append(_dedent(lines[j], 4))
        j += 1
    while body and _is_blank(body[-1]):
        body.pop()
        j -= 1
    return IndentedCode(line=start_line + i, content=''.join(body)), j


def _parse_blockquote(lines: list[str], i: int, start_line: int) -> tuple[BlockQuote, int]:
    inner = []
    j = i
    while j < len(lines):
        bare = _strip_eol(lines[j])
        m = BLOCKQUOTE_RE.match(bare)
        if not m:
            break
        inner.append(m.group(1) + lines[j][len(bare):])
        j += 1
    children = parse_blocks(''.join(inner), start_line + i)
    return BlockQuote(line=start_line + i, children=children), j


def _parse_list(lines: list[str], i: int, start_line: int) -> tuple[ListBlock, int]:
    first = LIST_ITEM_RE.match(_strip_eol(lines[i]))
    marker = first.group(2)
    kind = _list_marker_type(marker)
    ordered = marker[0].isdigit()
    block = ListBlock(
        line=start_line + i,
        ordered=ordered,
        start=int(marker[:-1]) if ordered else 1,
    )

    while i < len(lines):
        bare = _strip_eol(lines[i])
        m = LIST_ITEM_RE.match(bare)
        if not m or _list_marker_type(m.group(2)) != kind or THEMATIC_BREAK_RE.match(bare):
            break

        spaces = m.group(3) or ''
        rest = m.group(4) or ''
        pad = len(spaces) if 1 <= len(spaces) <= 4 and rest else 1
        width = len(m.group(1)) + len(m.group(2)) + pad
        item_lines = [rest + lines[i][len(bare):]]
        item_start = start_line + i
        i += 1

        while i < len(lines):
            line = lines[i]
            if _is_blank(line):
                j = i
                while j < len(lines) and _is_blank(lines[j]):
                    j += 1
                if j < len(lines) and _indent_width(lines[j]) >= width:
                    item_lines.extend(lines[i:j])
                    block.loose = True
                    i = j
                    continue
                break
            bare_line = _strip_eol(line)
            if _indent_width(line) >= width:
                item_lines.append(_dedent(line, width))
            elif LIST_ITEM_RE.match(bare_line) or _interrupts_paragraph(bare_line):
                break
            else:
                # Lazy continuation of the item's paragraph
                item_lines.append(line.lstrip(' \t'))
            i += 1

        block.items.append(parse_blocks(''.join(item_lines), item_start))

        j = i
        while j < len(lines) and _is_blank(lines[j]):
            j += 1
        if j < len(lines):
            nxt = _strip_eol(lines[j])
            m = LIST_ITEM_RE.match(nxt)
            if m and _list_marker_type(m.group(2)) == kind and not THEMATIC_BREAK_RE.match(nxt):
                if j > i:
                    block.loose = True
                i = j
                continue
        break

    return block, i


def _parse_html_block(lines: list[str], i: int, start_line: int) -> tuple[HtmlBlock, int]:
    j = i
    while j < len(lines) and not _is_blank(lines[j]):
        j += 1
    raw = ''.join(lines[i:j]).rstrip('\r\n')
    return HtmlBlock(line=start_line + i, raw=raw), j


def _parse_paragraph(lines: list[str], i: int, start_line: int) -> tuple[object, int]:
    para = [_strip_eol(lines[i]).lstrip()]
    j = i + 1
    while j < len(lines):
        bare = _strip_eol(lines[j])
        if not bare.strip():
            break
        m = SETEXT_RE.match(bare)
        if m:
            level = 1 if m.group(1)[0] == '=' else 2
            return Heading(line=start_line + i, level=level, text='\n'.join(para).strip()), j + 1
        if _interrupts_paragraph(bare):
            break
        para.append(bare.lstrip())
        j += 1
    return Paragraph(line=start_line + i, text='\n'.join(para).rstrip()), j


def parse_blocks(text: str, start_line: int = 1) -> list:
    """
    Parse Markdown source into a list of blocks.

    Line endings inside fenced and indented code are preserved exactly.

    Args:
        text: Markdown source
        start_line: Source line number of the first line (for nested blocks)

    Returns:
        List of block dataclasses in document order
    """
    lines = split_lines(text)
    blocks = []
    i = 0

    while i < len(lines):
        line = lines[i]
        bare = _strip_eol(line)

        if not bare.strip():
            i += 1
            continue

        m = _is_fence_open(bare)
        if m:
            block, i = _parse_fence(lines, i, m, start_line)
            blocks.append(block)
            continue

        if _indent_width(line) >= 4:
            block, i = _parse_indented_code(lines, i, start_line)
            blocks.append(block)
            continue

        if THEMATIC_BREAK_RE.match(bare):
            blocks.append(ThematicBreak(line=start_line + i))
            i += 1
            continue

        m = ATX_HEADING_RE.match(bare)
        if m:
            heading_text = ATX_CLOSING_RE.sub('', (m.group(2) or '')).strip()
            blocks.append(Heading(line=start_line + i, level=len(m.group(1)), text=heading_text))
            i += 1
            continue

        if BLOCKQUOTE_RE.match(bare):
            block, i = _parse_blockquote(lines, i, start_line)
            blocks.append(block)
            continue

        if LIST_ITEM_RE.match(bare):
            block, i = _parse_list(lines, i, start_line)
            blocks.append(block)
            continue

        if HTML_BLOCK_RE.match(bare):
            block, i = _parse_html_block(lines, i, start_line)
            blocks.append(block)
            continue

        m = LINK_DEF_RE.match(bare)
        if m:
            title = m.group(3) or m.group(4) or m.group(5)
            blocks.append(LinkDefinition(
                line=start_line + i,
                label=m.group(1),
                target=m.group(2),
                title=title,
            ))
            i += 1
            continue

        block, i = _parse_paragraph(lines, i, start_line)
        blocks.append(block)

    return blocks


def iter_blocks(blocks: list) -> Iterator:
    """Yield every block, descending into block quotes and list items."""
    for block in blocks:
        yield block
        if isinstance(block, BlockQuote):
            yield from iter_blocks(block.children)
        elif isinstance(block, ListBlock):
            for item in block.items:
                yield from iter_blocks(item)


def collect_definitions(blocks: list) -> dict[str, tuple[str, Optional[str]]]:
    """Map normalized reference labels to (target, title). First definition wins."""
    definitions = {}
    for block in iter_blocks(blocks):
        if isinstance(block, LinkDefinition):
            definitions.setdefault(normalize_label(block.label), (block.target, block.title))
    return definitions


# -----------------------------------------------------------------------------
# Inline scanning
# -----------------------------------------------------------------------------

def _run_length(text: str, i: int, ch: str) -> int:
    j = i
    while j < len(text) and text[j] == ch:
        j += 1
    return j - i


def _find_backtick_run(text: str, start: int, run: int) -> int:
    """Find a backtick run of exactly `run` characters at or after `start`."""
    j = start
    while j < len(text):
        if text[j] == '`':
            k = _run_length(text, j, '`')
            if k == run:
                return j
            j += k
        else:
            j += 1
    return -1


def _normalize_code_span(code: str) -> str:
    code = code.replace('\r\n', ' ').replace('\n', ' ')
    if len(code) >= 2 and code[0] == ' ' and code[-1] == ' ' and code.strip():
        code = code[1:-1]
    return code


def _find_closing_bracket(text: str, i: int) -> int:
    depth = 0
    j = i
    while j < len(text):
        c = text[j]
        if c == '\\':
            j += 2
            continue
        if c == '`':
            run = _run_length(text, j, '`')
            close = _find_backtick_run(text, j + run, run)
            j = close + run if close != -1 else j + run
            continue
        if c == '[':
            depth += 1
        elif c == ']':
            depth -= 1
            if depth == 0:
                return j
        j += 1
    return -1


def _skip_whitespace(text: str, j: int) -> int:
    while j < len(text) and text[j] in ' \t\r\n':
        j += 1
    return j


def _parse_destination(text: str, j: int) -> Optional[tuple[str, Optional[str], int]]:
    """Parse `dest "title")` starting just after the opening parenthesis."""
    n = len(text)
    j = _skip_whitespace(text, j)

    if j < n and text[j] == '<':
        end = text.find('>', j + 1)
        if end == -1 or '\n' in text[j + 1:end]:
            return None
        target = text[j + 1:end]
        j = end + 1
    else:
        start = j
        depth = 0
        while j < n:
            c = text[j]
            if c == '\\' and j + 1 < n:
                j += 2
                continue
            if c.isspace():
                break
            if c == '(':
                depth += 1
            elif c == ')':
                if depth == 0:
                    break
                depth -= 1
            j += 1
        target = text[start:j]

    target = ESCAPED_CHAR_RE.sub(r'\1', target)
    j = _skip_whitespace(text, j)

    title = None
    if j < n and text[j] in '"\'(':
        closer = ')' if text[j] == '(' else text[j]
        end = text.find(closer, j + 1)
        if end == -1:
            return None
        title = text[j + 1:end]
        j = _skip_whitespace(text, end + 1)

    if j < n and text[j] == ')':
        return target, title, j + 1
    return None


def _parse_link(
    text: str,
    i: int,
    definitions: dict[str, tuple[str, Optional[str]]],
) -> Optional[tuple[str, str, Optional[str], int]]:
    """
    Parse a link starting at the opening bracket.

    Returns (label, target, title, end) or None if this is not a link.
    """
    close = _find_closing_bracket(text, i)
    if close == -1:
        return None
    label = text[i + 1:close]
    j = close + 1

    if j < len(text) and text[j] == '(':
        dest = _parse_destination(text, j + 1)
        if dest:
            target, title, end = dest
            return label, target, title, end

    if j < len(text) and text[j] == '[':
        ref_close = text.find(']', j + 1)
        if ref_close != -1:
            key = normalize_label(text[j + 1:ref_close] or label)
            if key in definitions:
                target, title = definitions[key]
                return label, target, title, ref_close + 1

    key = normalize_label(label)
    if key and key in definitions:
        target, title = definitions[key]
        return label, target, title, close + 1

    return None


def _push_text(tokens: list[InlineToken], s: str, pos: int):
    if tokens and tokens[-1].kind == 'text':
        tokens[-1].text += s
    else:
        tokens.append(InlineToken('text', s, pos=pos))


def scan_inline(
    text: str,
    definitions: Optional[dict[str, tuple[str, Optional[str]]]] = None,
) -> list[InlineToken]:
    """
    Split paragraph or heading text into inline tokens.

    Code spans are recognized first, so link syntax inside backticks is
    never treated as a link.
    """
    definitions = definitions or {}
    tokens: list[InlineToken] = []
    n = len(text)
    i = 0

    while i < n:
        ch = text[i]

        if ch == '\\' and i + 1 < n and text[i + 1] in ESCAPABLE:
            tokens.append(InlineToken('escape', text[i + 1], pos=i))
            i += 2
            continue

        if ch == '`':
            run = _run_length(text, i, '`')
            close = _find_backtick_run(text, i + run, run)
            if close == -1:
                _push_text(tokens, '`' * run, i)
                i += run
                continue
            tokens.append(InlineToken('code', _normalize_code_span(text[i + run:close]), pos=i))
            i = close + run
            continue

        if ch == '!' and i + 1 < n and text[i + 1] == '[':
            parsed = _parse_link(text, i + 1, definitions)
            if parsed:
                label, target, title, end = parsed
                tokens.append(InlineToken('image', label, target, title, pos=i))
                i = end
                continue

        if ch == '[':
            parsed = _parse_link(text, i, definitions)
            if parsed:
                label, target, title, end = parsed
                tokens.append(InlineToken('link', label, target, title, pos=i))
                i = end
                continue

        if ch == '<':
            m = AUTOLINK_RE.match(text, i)
            if m:
                tokens.append(InlineToken('autolink', m.group(1), m.group(1), pos=i))
                i = m.end()
                continue
            m = EMAIL_AUTOLINK_RE.match(text, i)
            if m:
                tokens.append(InlineToken('autolink', m.group(1), 'mailto:' + m.group(1), pos=i))
                i = m.end()
                continue
            m = INLINE_HTML_RE.match(text, i)
            if m:
                tokens.append(InlineToken('html', m.group(0), pos=i))
                i = m.end()
                continue

        _push_text(tokens, ch, i)
        i += 1

    return tokens


def plain_text(text: str, definitions: Optional[dict] = None) -> str:
    """Inline text with all markup removed."""
    parts = []
    for token in scan_inline(text, definitions):
        if token.kind in ('link', 'image'):
            parts.append(plain_text(token.text, definitions))
        elif token.kind == 'html':
            continue
        else:
            parts.append(token.text)
    return EMPHASIS_MARKUP_RE.sub(r'\2', ''.join(parts))


# -----------------------------------------------------------------------------
# Extraction
# -----------------------------------------------------------------------------

def _html_links(raw: str, line: int) -> Iterator[Link]:
    for m in HTML_LINK_ATTR_RE.finditer(raw):
        target = m.group(2) or m.group(3) or m.group(4) or ''
        if not target:
            continue
        is_image = m.group(1).lower() == 'img'
        text = ''
        if is_image:
            tag_end = raw.find('>', m.start())
            alt = HTML_ALT_ATTR_RE.search(raw, m.start(), tag_end if tag_end != -1 else len(raw))
            if alt:
                text = alt.group(1) or alt.group(2) or ''
        yield Link(text=text, target=target, is_image=is_image, line=line + raw.count('\n', 0, m.start()))


def _inline_links(text: str, line: int, definitions: dict) -> Iterator[Link]:
    for token in scan_inline(text, definitions):
        token_line = line + text.count('\n', 0, token.pos)
        if token.kind in ('link', 'image', 'autolink'):
            if token.target:
                yield Link(
                    text=plain_text(token.text, definitions) if token.kind != 'autolink' else token.text,
                    target=token.target,
                    is_image=token.kind == 'image',
                    line=token_line,
                )
            if token.kind == 'link':
                # Images nested in link text, e.g. [![alt](a.png)](b.md)
                for nested in _inline_links(token.text, token_line, definitions):
                    if nested.is_image:
                        yield nested
        elif token.kind == 'html':
            yield from _html_links(token.text, token_line)


def extract_links(blocks: list, definitions: dict) -> list[Link]:
    """All outbound links and images in document order, skipping code."""
    links = []
    for block in iter_blocks(blocks):
        if isinstance(block, (Paragraph, Heading)):
            links.extend(_inline_links(block.text, block.line, definitions))
        elif isinstance(block, HtmlBlock):
            links.extend(_html_links(block.raw, block.line))
    return links


def collect_code_blocks(blocks: list) -> list[CodeBlock]:
    """Fenced code blocks in document order."""
    return [
        CodeBlock(info=block.info, content=block.content, fence=block.fence, line=block.line)
        for block in iter_blocks(blocks)
        if isinstance(block, FencedCode)
    ]


def find_title(blocks: list, definitions: Optional[dict] = None) -> Optional[str]:
    """Plain text of the first heading, if any."""
    for block in iter_blocks(blocks):
        if isinstance(block, Heading) and block.text:
            return plain_text(block.text, definitions)
    return None


def scan_document(text: str) -> ScannedDocument:
    """Parse a Markdown source once and pull out everything ingestion needs."""
    blocks = parse_blocks(text)
    definitions = collect_definitions(blocks)
    return ScannedDocument(
        blocks=blocks,
        definitions=definitions,
        links=extract_links(blocks, definitions),
        code_blocks=collect_code_blocks(blocks),
        title=find_title(blocks, definitions),
    )
