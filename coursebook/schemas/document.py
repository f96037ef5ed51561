"""
Document schemas for Coursebook.

Defines Pydantic models for ingested lesson documents:
- Links and code blocks found while scanning the Markdown source
- The immutable Document itself
- Resolved links with their kind
"""

from enum import Enum
from pathlib import PurePosixPath
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


def validate_identifier(v: str) -> str:
    """Shared identifier validation: relative POSIX path without '..' parts."""
    path = PurePosixPath(v)
    if not v or path.is_absolute() or ".." in path.parts or "\\" in v:
        raise ValueError(f"Invalid document identifier: {v!r}")
    return v


# -----------------------------------------------------------------------------
# Scanned elements
# -----------------------------------------------------------------------------

class Link(BaseModel):
    """Outbound link as written in the source."""
    model_config = ConfigDict(frozen=True)

    text: str                 # link text, or alt text for images
    target: str               # raw destination
    is_image: bool = False
    line: int = Field(default=1, ge=1)  # 1-based source line


class CodeBlock(BaseModel):
    """Fenced code block; content is the exact text between the fences."""
    model_config = ConfigDict(frozen=True)

    info: str = ""            # full info string, e.g. "objc title=demo"
    content: str
    fence: str = "```"
    line: int = Field(default=1, ge=1)

    @computed_field
    @property
    def language(self) -> Optional[str]:
        """First word of the info string."""
        return self.info.split()[0] if self.info.strip() else None


class Document(BaseModel):
    """A lesson document. Created once at ingestion, never modified."""
    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    title: str
    links: tuple[Link, ...] = ()
    code_blocks: tuple[CodeBlock, ...] = ()

    @field_validator("id")
    @classmethod
    def id_valid(cls, v):
        return validate_identifier(v)

    @computed_field
    @property
    def asset_references(self) -> tuple[str, ...]:
        """Embedded image targets, in document order."""
        return tuple(link.target for link in self.links if link.is_image)

    @property
    def directory(self) -> str:
        """Directory of the document relative to the corpus root ('' at the root)."""
        parent = str(PurePosixPath(self.id).parent)
        return "" if parent == "." else parent


# -----------------------------------------------------------------------------
# Resolution results
# -----------------------------------------------------------------------------

class LinkKind(str, Enum):
    INTERNAL_DOCUMENT = "internal-document"
    INTERNAL_ASSET = "internal-asset"
    EXTERNAL = "external"


class ResolvedLink(BaseModel):
    """(text, target, kind) triple; target is a store identifier unless external."""
    model_config = ConfigDict(frozen=True)

    text: str
    target: str
    kind: LinkKind
    fragment: Optional[str] = None

    @property
    def is_internal(self) -> bool:
        return self.kind != LinkKind.EXTERNAL
