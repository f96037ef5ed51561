"""Coursebook utilities."""

from .markdown_parser import (
    parse_blocks,
    scan_inline,
    scan_document,
    plain_text,
    extract_links,
    collect_code_blocks,
    collect_definitions,
    ScannedDocument,
)

__all__ = [
    "parse_blocks",
    "scan_inline",
    "scan_document",
    "plain_text",
    "extract_links",
    "collect_code_blocks",
    "collect_definitions",
    "ScannedDocument",
]
