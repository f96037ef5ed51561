"""
Configuration tests.
"""

from pathlib import Path

import pytest

from coursebook.config import CourseConfig, apply_env_overrides, load_config
from coursebook.errors import NotFoundError


class TestCourseConfig:
    """Test config model validation."""

    def test_defaults(self):
        config = CourseConfig()
        assert config.content_dir is None
        assert config.output_dir == Path("site")
        assert config.document_suffixes == [".md", ".markdown"]
        assert config.workers == 1
        assert config.copy_assets is True

    def test_suffixes_normalized(self):
        config = CourseConfig(document_suffixes=["MD", ".Markdown"])
        assert config.document_suffixes == [".md", ".markdown"]
        assert config.is_document("posts/104.MD")
        assert not config.is_document("image_resources/1.png")

    def test_empty_suffixes_rejected(self):
        with pytest.raises(ValueError):
            CourseConfig(document_suffixes=[])

    def test_invalid_pattern_rejected(self):
        with pytest.raises(ValueError):
            CourseConfig(next_pattern="next (lesson")

    def test_workers_must_be_positive(self):
        with pytest.raises(ValueError):
            CourseConfig(workers=0)


class TestLoadConfig:
    """Test loading config from YAML and the environment."""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "coursebook.yaml"
        path.write_text(
            "content_dir: lessons\n"
            f"output_dir: {tmp_path / 'public'}\n"
            "site_title: iOS Course\n"
            "workers: 4\n"
            "exclude_dirs: [drafts]\n",
            encoding="utf-8",
        )
        config = load_config(path, use_env=False)
        assert config.content_dir == tmp_path / "lessons"
        assert config.output_dir == tmp_path / "public"
        assert config.site_title == "iOS Course"
        assert config.workers == 4
        assert config.exclude_dirs == ["drafts"]

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(NotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "coursebook.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(path, use_env=False)

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "coursebook.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path, use_env=False) == CourseConfig()

    def test_default_file_in_working_directory(self, tmp_path, monkeypatch):
        (tmp_path / "coursebook.yaml").write_text("site_title: Found\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert load_config(use_env=False).site_title == "Found"

    def test_no_file_gives_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert load_config(use_env=False) == CourseConfig()

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "coursebook.yaml"
        path.write_text("site_title: From File\nworkers: 2\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("COURSEBOOK_SITE_TITLE", "From Env")
        monkeypatch.setenv("COURSEBOOK_WORKERS", "8")

        config = load_config(path)
        assert config.site_title == "From Env"
        assert config.workers == 8
        assert load_config(path, use_env=False).site_title == "From File"

    def test_dotenv_file(self, tmp_path, monkeypatch):
        (tmp_path / ".env").write_text("COURSEBOOK_SITE_TITLE=From Dotenv\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert load_config().site_title == "From Dotenv"

    def test_apply_env_overrides(self):
        data = {"site_title": "File", "workers": 2}
        merged = apply_env_overrides(data, {"COURSEBOOK_CONTENT_DIR": "lessons", "COURSEBOOK_WORKERS": ""})
        assert merged == {"site_title": "File", "workers": 2, "content_dir": "lessons"}
        assert data == {"site_title": "File", "workers": 2}
