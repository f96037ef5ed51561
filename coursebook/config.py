"""
Configuration for Coursebook.

Settings come from three layers, later layers winning:
1. coursebook.yaml (or the file passed with --config)
2. Environment variables, including those in a .env file
3. Command line flags (applied by the CLI)
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from coursebook.errors import NotFoundError


DEFAULT_CONFIG_NAME = "coursebook.yaml"

# Environment variable -> config field
ENV_OVERRIDES = {
    "COURSEBOOK_CONTENT_DIR": "content_dir",
    "COURSEBOOK_OUTPUT_DIR": "output_dir",
    "COURSEBOOK_SITE_TITLE": "site_title",
    "COURSEBOOK_WORKERS": "workers",
}


class CourseConfig(BaseModel):
    content_dir: Optional[Path] = None
    output_dir: Path = Path("site")
    site_title: str = "Course"

    # Ingestion
    document_suffixes: list[str] = [".md", ".markdown"]
    exclude_dirs: list[str] = []   # hidden directories are always skipped

    # Trailing lesson markers (case-insensitive, matched against link text)
    previous_pattern: str = r"previous\s+lesson"
    next_pattern: str = r"next\s+lesson"

    # Output
    copy_assets: bool = True
    report_name: str = "report.json"
    workers: int = Field(default=1, ge=1)
    strict: bool = False

    @field_validator("document_suffixes")
    @classmethod
    def suffixes_valid(cls, v):
        if not v:
            raise ValueError("document_suffixes must not be empty")
        return [s.lower() if s.startswith(".") else f".{s.lower()}" for s in v]

    @field_validator("previous_pattern", "next_pattern")
    @classmethod
    def pattern_valid(cls, v):
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"Invalid marker pattern {v!r}: {e}") from e
        return v

    def is_document(self, path: str | Path) -> bool:
        return Path(path).suffix.lower() in self.document_suffixes


def apply_env_overrides(data: dict[str, Any], environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Return a copy of `data` with COURSEBOOK_* environment values applied."""
    environ = os.environ if environ is None else environ
    merged = dict(data)
    for env_name, field_name in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            merged[field_name] = value
    return merged


def load_config(path: Path | None = None, use_env: bool = True) -> CourseConfig:
    """
    Load configuration from YAML with environment overrides.

    Args:
        path: Config file. If None, coursebook.yaml in the working
            directory is used when present, otherwise defaults apply.
        use_env: Read .env and COURSEBOOK_* variables

    Raises:
        NotFoundError: If an explicit config path doesn't exist
        yaml.YAMLError: If YAML parsing fails
        pydantic.ValidationError: If a value is invalid
    """
    data: dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise NotFoundError(str(path), what="Config file")
    else:
        default = Path.cwd() / DEFAULT_CONFIG_NAME
        path = default if default.exists() else None

    if path is not None:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")
        # Relative directories in the file are relative to the file itself
        for key in ("content_dir", "output_dir"):
            if data.get(key) and not Path(data[key]).is_absolute():
                data[key] = str(path.parent / data[key])

    if use_env:
        load_dotenv(find_dotenv(usecwd=True))
        data = apply_env_overrides(data)

    return CourseConfig(**data)
