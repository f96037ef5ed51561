"""
DocumentStore - Load lesson documents from a corpus directory.

Provides read-only access to:
- Documents keyed by identifier (POSIX path relative to the corpus root)
- The set of asset files (images, code resources) under the same root
"""

import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Iterator, Optional

from coursebook.config import CourseConfig
from coursebook.errors import NotFoundError
from coursebook.schemas import Document
from coursebook.utils.markdown_parser import scan_document

logger = logging.getLogger(__name__)


def natural_key(identifier: str) -> list:
    """Sort key that orders '9.md' before '10.md'."""
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r'(\d+)', identifier)]


def read_text(path: Path) -> str:
    """Read UTF-8 text keeping line endings exactly as stored."""
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.warning(f"Invalid UTF-8 in {path}, undecodable bytes replaced")
        return raw.decode("utf-8-sig", errors="replace")


def build_document(identifier: str, content: str) -> Document:
    """Scan Markdown source and build the immutable Document."""
    scanned = scan_document(content)
    return Document(
        id=identifier,
        content=content,
        title=scanned.title or Path(identifier).stem,
        links=tuple(scanned.links),
        code_blocks=tuple(scanned.code_blocks),
    )


class DocumentStore(Mapping):
    """
    Mapping of identifier -> Document, plus the corpus asset index.

    Documents are created once at load time and never change, so a store
    can be shared freely between threads.
    """

    def __init__(self, root: str | Path, documents: dict[str, Document], assets: Optional[set[str]] = None):
        self.root = Path(root)
        self._documents = {key: documents[key] for key in sorted(documents, key=natural_key)}
        self._assets = frozenset(assets or ())

    def __getitem__(self, identifier: str) -> Document:
        return self._documents[identifier]

    def __iter__(self) -> Iterator[str]:
        return iter(self._documents)

    def __len__(self) -> int:
        return len(self._documents)

    def __repr__(self) -> str:
        return f"DocumentStore(root={str(self.root)!r}, documents={len(self)}, assets={len(self._assets)})"

    @property
    def assets(self) -> frozenset[str]:
        return self._assets

    def get_document(self, identifier: str) -> Document:
        """Get a document by identifier, raising NotFoundError if missing."""
        try:
            return self._documents[identifier]
        except KeyError:
            raise NotFoundError(identifier) from None

    def has_document(self, identifier: str) -> bool:
        return identifier in self._documents

    def has_asset(self, identifier: str) -> bool:
        return identifier in self._assets

    def path_for(self, identifier: str) -> Path:
        """Filesystem path of a document or asset."""
        return self.root / identifier


def _is_excluded(relative: Path, config: CourseConfig) -> bool:
    for part in relative.parts[:-1]:
        if part.startswith(".") or part in config.exclude_dirs:
            return True
    return relative.name.startswith(".")


def load(root: str | Path, config: Optional[CourseConfig] = None) -> DocumentStore:
    """
    Load every document and index every asset under `root`.

    Args:
        root: Corpus root directory
        config: Suffixes and exclusions (defaults apply if None)

    Returns:
        DocumentStore with documents sorted by identifier

    Raises:
        NotFoundError: If root does not exist or is not a directory
    """
    config = config or CourseConfig()
    root = Path(root)
    if not root.is_dir():
        raise NotFoundError(str(root), what="Corpus root")

    output_dir = config.output_dir.resolve() if config.output_dir else None
    documents = {}
    assets = set()

    for path in root.rglob("*"):
        if not path.is_file():
            continue
        relative = path.relative_to(root)
        if _is_excluded(relative, config):
            continue
        if output_dir is not None and output_dir in path.resolve().parents:
            continue

        identifier = relative.as_posix()
        if config.is_document(path):
            documents[identifier] = build_document(identifier, read_text(path))
        else:
            assets.add(identifier)

    logger.info(f"Loaded {len(documents)} documents and {len(assets)} assets from {root}")
    return DocumentStore(root, documents, assets)
