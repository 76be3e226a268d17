from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from repod.config import DEFAULT_CHUNK_SIZE, DEFAULT_IGNORE_FILENAMES, LANGUAGE_PRESETS, PRESET_ALIASES, FilterConfig
from repod.exceptions import ConfigFileError

ENV_FILE = find_dotenv(usecwd=True)

CONFIG_FILENAME = ".repod.yaml"

# Settings a configuration file may provide; list values are prepended to the command line's.
FILE_KEYS = frozenset(
    {
        "output_dir",
        "types",
        "exclude",
        "include",
        "include_dir",
        "include_hidden",
        "no_ignore",
        "workers",
        "chunk_size",
    },
)
LIST_KEYS = frozenset({"types", "exclude", "include", "include_dir"})


class Settings(BaseModel):
    """Configuration settings for the repod command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    input: str = Field(default="", description="Git URL, CSV file of URLs, or local directory.")
    output_dir: Path = Field(default=Path("output"), description="Output directory.")
    clipboard: bool = Field(default=False, description="Copy the report to the clipboard.")
    at: Path | None = Field(default=None, description="Clone destination.")
    log_file: str = Field(default="", description="Log file path.")
    verbose: bool = Field(default=False, description="Log debug events.")
    config_file: Path | None = Field(default=None, description="YAML configuration file.")

    types: list[str] = Field(default_factory=list, description="Language presets.")
    exclude: list[str] = Field(default_factory=list, description="Exclude glob.")
    include: list[str] = Field(default_factory=list, description="Include-only glob.")
    include_dir: list[str] = Field(default_factory=list, description="Include-only directory.")
    include_hidden: bool = Field(default=False, description="Do not exclude dotfiles.")
    no_ignore: bool = Field(default=False, description="Do not read ignore files.")

    workers: int | None = Field(default=None, ge=1, description="Extraction threads.")
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1, description="Files per chunk.")

    def with_file_values(self, values: dict[str, Any], source: Path | None = None) -> Settings:
        """Merge values read from a configuration file into these settings.

        Options given explicitly on the command line win; list options are
        concatenated, file values first.

        Args:
            values (dict[str, Any]): the validated configuration file mapping
            source (Path | None): the file the values come from, for error messages

        Raises:
            ConfigFileError: if a value has the wrong type

        Returns:
            Settings: a new settings instance
        """
        data = self.model_dump()
        for key, value in values.items():
            if key in LIST_KEYS:
                data[key] = [*value, *getattr(self, key)]
            elif key not in self.model_fields_set:
                data[key] = value
        try:
            return Settings.model_validate(data)
        except ValidationError as e:
            raise ConfigFileError(path=source, reason=str(e)) from e

    def preset_patterns(self) -> list[str]:
        """Expand the language presets into include patterns.

        Raises:
            ConfigFileError: if a preset name is unknown
        """
        patterns: list[str] = []
        for entry in self.types:
            for name in (n.strip().lower() for n in entry.split(",")):
                if not name:
                    continue
                preset = PRESET_ALIASES.get(name)
                if preset is None:
                    raise ConfigFileError(path=self.config_file, reason=f"unknown repository type: {name}")
                patterns.extend(LANGUAGE_PRESETS[preset])
        return patterns

    def filter_config(self) -> FilterConfig:
        return FilterConfig(
            user_excludes=self.exclude,
            include_only=[*self.include, *self.preset_patterns()],
            include_dirs=self.include_dir,
            exclude_hidden=not self.include_hidden,
            ignore_filenames=() if self.no_ignore else DEFAULT_IGNORE_FILENAMES,
            use_git_info_exclude=not self.no_ignore,
        )


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML configuration file.

    Keys may be spelled with dashes or underscores. A scalar given for a list
    option is wrapped in a list.

    Args:
        path (Path): the YAML file to read

    Raises:
        ConfigFileError: if the file cannot be read or parsed, is not a mapping,
            or holds unknown keys

    Returns:
        dict[str, Any]: the settings found in the file
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigFileError(path=path, reason=str(e)) from e
    except yaml.YAMLError as e:
        raise ConfigFileError(path=path, reason=f"invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigFileError(path=path, reason="top level must be a mapping")

    values: dict[str, Any] = {}
    for raw_key, value in data.items():
        key = str(raw_key).replace("-", "_")
        if key not in FILE_KEYS:
            raise ConfigFileError(path=path, reason=f"unknown key: {raw_key}")
        if key in LIST_KEYS:
            if isinstance(value, str):
                value = [value]  # noqa: PLW2901
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ConfigFileError(path=path, reason=f"{raw_key} must be a list of strings")
        values[key] = value
    return values


def find_config_file(settings: Settings, root: Path, *, discover: bool = True) -> Path | None:
    """Return the configuration file to use for `root`, if any.

    An explicit ``--config`` always wins; otherwise, when `discover` is set,
    a `.repod.yaml` at the root of the flattened directory is picked up.
    Callers turn discovery off for cloned repositories, whose files must not
    choose where the report goes or which files it exposes.
    """
    if settings.config_file is not None:
        return settings.config_file
    if not discover:
        return None
    candidate = root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def github_token() -> str | None:
    """Return the GitHub token from the environment or the nearest `.env` file."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)
    return os.environ.get("GITHUB_TOKEN") or None
