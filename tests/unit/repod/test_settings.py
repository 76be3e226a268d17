from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from repod import settings as settings_module
from repod.config import DEFAULT_CHUNK_SIZE, DEFAULT_IGNORE_FILENAMES
from repod.exceptions import ConfigFileError
from repod.settings import Settings, find_config_file, github_token, load_config_file

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_settings_defaults() -> None:
    settings = Settings()

    assert settings.input == ""
    assert settings.output_dir == Path("output")
    assert settings.clipboard is False
    assert settings.workers is None
    assert settings.chunk_size == DEFAULT_CHUNK_SIZE

    config = settings.filter_config()
    assert config.exclude_hidden is True
    assert config.ignore_filenames == DEFAULT_IGNORE_FILENAMES
    assert config.include_patterns == ()


@pytest.mark.unit
def test_settings_rejects_non_positive_workers() -> None:
    with pytest.raises(ValidationError):
        Settings(workers=0)
    with pytest.raises(ValidationError):
        Settings(chunk_size=0)


@pytest.mark.unit
def test_filter_config_maps_options() -> None:
    settings = Settings(
        exclude=["*.log"],
        include=["*.md"],
        include_dir=["docs/"],
        include_hidden=True,
        no_ignore=True,
    )

    config = settings.filter_config()

    assert config.user_excludes == ("*.log",)
    assert config.include_patterns == ("*.md", "docs/**")
    assert config.exclude_hidden is False
    assert config.ignore_filenames == ()
    assert config.use_git_info_exclude is False


@pytest.mark.unit
def test_preset_patterns_accept_aliases_and_comma_lists() -> None:
    settings = Settings(types=["rs, py", "TS"])

    patterns = settings.preset_patterns()

    assert "*.rs" in patterns
    assert "*.py" in patterns
    assert "*.tsx" in patterns
    assert "*.rs" in settings.filter_config().include_only


@pytest.mark.unit
def test_preset_patterns_unknown_type() -> None:
    with pytest.raises(ConfigFileError, match="unknown repository type: cobol"):
        Settings(types=["cobol"]).preset_patterns()


@pytest.mark.unit
def test_load_config_file_normalizes_keys_and_scalars(tmp_path: Path) -> None:
    path = tmp_path / ".repod.yaml"
    path.write_text("exclude: '*.log'\ninclude-dir:\n  - src\nworkers: 2\n", encoding="utf-8")

    assert load_config_file(path) == {"exclude": ["*.log"], "include_dir": ["src"], "workers": 2}


@pytest.mark.unit
def test_load_config_file_empty_file(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config_file(path) == {}


@pytest.mark.unit
@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("- a\n- b\n", "top level must be a mapping"),
        ("colour: blue\n", "unknown key: colour"),
        ("exclude:\n  - 1\n", "exclude must be a list of strings"),
        ("exclude: [unclosed\n", "invalid YAML"),
    ],
)
def test_load_config_file_errors(tmp_path: Path, content: str, message: str) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ConfigFileError, match=message) as exc_info:
        load_config_file(path)

    assert exc_info.value.path == path


@pytest.mark.unit
def test_load_config_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigFileError):
        load_config_file(tmp_path / "missing.yaml")


@pytest.mark.unit
def test_with_file_values_command_line_wins_and_lists_concatenate() -> None:
    settings = Settings(exclude=["*.tmp"], workers=4)

    merged = settings.with_file_values({"exclude": ["*.log"], "workers": 2, "chunk_size": 10})

    assert merged.exclude == ["*.log", "*.tmp"]
    assert merged.workers == 4
    assert merged.chunk_size == 10
    assert settings.exclude == ["*.tmp"]


@pytest.mark.unit
def test_with_file_values_invalid_value(tmp_path: Path) -> None:
    source = tmp_path / ".repod.yaml"

    with pytest.raises(ConfigFileError) as exc_info:
        Settings().with_file_values({"workers": 0}, source)

    assert exc_info.value.path == source


@pytest.mark.unit
def test_find_config_file(tmp_path: Path) -> None:
    assert find_config_file(Settings(), tmp_path) is None

    local = tmp_path / ".repod.yaml"
    local.write_text("workers: 1\n", encoding="utf-8")
    explicit = tmp_path / "custom.yaml"

    assert find_config_file(Settings(), tmp_path) == local
    assert find_config_file(Settings(config_file=explicit), tmp_path) == explicit


@pytest.mark.unit
def test_github_token_reads_environment(monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture) -> None:
    mocker.patch.object(settings_module, "ENV_FILE", "")
    monkeypatch.setenv("GITHUB_TOKEN", "tok")

    assert github_token() == "tok"

    monkeypatch.delenv("GITHUB_TOKEN")

    assert github_token() is None


@pytest.mark.unit
def test_github_token_loads_env_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, mocker: MockerFixture) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("GITHUB_TOKEN=from-file\n", encoding="utf-8")
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    mocker.patch.object(settings_module, "ENV_FILE", str(env_file))

    try:
        assert github_token() == "from-file"
    finally:
        os.environ.pop("GITHUB_TOKEN", None)


@pytest.mark.unit
def test_find_config_file_without_discovery(tmp_path: Path) -> None:
    (tmp_path / ".repod.yaml").write_text("workers: 1\n", encoding="utf-8")
    explicit = tmp_path / "custom.yaml"

    assert find_config_file(Settings(), tmp_path, discover=False) is None
    assert find_config_file(Settings(config_file=explicit), tmp_path, discover=False) == explicit
