import configparser
import json
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping

import yaml

from sweepforge.errors import (
    InvalidConfigError,
    InvalidConfigFormatError,
    NotFoundError,
    SweepIOError,
    UnsupportedConfigFormatError,
    UnsupportedOptionError,
)

from .types import ConfigFormat


@dataclass(frozen=True)
class _FormatSpec:
    suffixes: tuple[str, ...]
    parse: Callable[[str], Any] | None


def _parse_toml(text: str) -> Any:
    return tomllib.loads(text)


def _parse_json(text: str) -> Any:
    return json.loads(text)


def _parse_yaml(text: str) -> Any:
    return yaml.safe_load(text)


def _parse_ini(text: str) -> Any:
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # keep field names as written
    parser.read_string(text)

    groups = {}
    for section in parser.sections():
        groups[section] = {
            key: _ini_value(value) for key, value in parser.items(section)
        }
    return groups


def _ini_value(value: str) -> Any:
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


_PARSE_ERRORS = (
    tomllib.TOMLDecodeError,
    json.JSONDecodeError,
    yaml.YAMLError,
    configparser.Error,
)

FORMATS: dict[ConfigFormat, _FormatSpec] = {
    ConfigFormat.TOML: _FormatSpec((".toml",), _parse_toml),
    ConfigFormat.JSON: _FormatSpec((".json",), _parse_json),
    ConfigFormat.YAML: _FormatSpec((".yaml", ".yml"), _parse_yaml),
    ConfigFormat.INI: _FormatSpec((".ini",), _parse_ini),
    # No maintained RON decoder exists for Python.
    ConfigFormat.RON: _FormatSpec((".ron",), None),
}


def load_groups(
    path: str | Path, fmt: ConfigFormat | None = None
) -> dict[str, Any]:
    """Load a sweep config file into a mapping of group name to raw config.

    The format is checked against the file extension before anything is
    read. Group values are returned untouched; turning them into config
    objects is up to the caller's config factory.
    """
    return read_groups(check_config_file(path, fmt), fmt)


def read_groups(pure_path: Path, fmt: ConfigFormat | None = None) -> dict[str, Any]:
    """Like `load_groups`, for a path `check_config_file` already accepted."""
    fmt = fmt or detect_format(pure_path)
    spec = FORMATS[fmt]

    if spec.parse is None:
        raise UnsupportedOptionError(f"{fmt.value} config files are not supported")

    try:
        text = pure_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidConfigFormatError(f"{pure_path}: not a UTF-8 text file") from exc
    except OSError as exc:
        raise SweepIOError(f"{pure_path}: {exc}") from exc

    try:
        raw_file = spec.parse(text)
    except _PARSE_ERRORS as exc:
        raise InvalidConfigFormatError(
            f"{pure_path}: invalid {fmt.value.upper()}"
        ) from exc

    if not isinstance(raw_file, Mapping):
        raise InvalidConfigFormatError(
            f"{pure_path}: {fmt.value.upper()} parsed successfully but top-level value is not an object: {type(raw_file)}"
        )

    return _build_groups(raw_file)


def check_config_file(path: str | Path, fmt: ConfigFormat | None = None) -> Path:
    pure_path = Path(path).expanduser().resolve()

    if not pure_path.exists():
        raise NotFoundError(f"Config file not found: {pure_path}")

    if not pure_path.is_file():
        raise InvalidConfigError(f"Config path is not a file: {pure_path}")

    if fmt is None:
        detect_format(pure_path)
        return pure_path

    if not pure_path.suffix:
        raise InvalidConfigError(
            f"{pure_path}: config file must have a file extension"
        )

    expected = FORMATS[fmt].suffixes
    if pure_path.suffix.lower() not in expected:
        raise InvalidConfigError(
            f"{pure_path}: config file must be a {fmt.value} file ({'/'.join(expected)})"
        )

    return pure_path


def detect_format(path: Path) -> ConfigFormat:
    suffix = path.suffix.lower()
    for fmt, spec in FORMATS.items():
        if suffix in spec.suffixes:
            return fmt

    known = ", ".join(s for spec in FORMATS.values() for s in spec.suffixes)
    raise UnsupportedConfigFormatError(
        f"Non supported file extension: {suffix or '<none>'}\n Expected format: {known}"
    )


def _build_groups(raw: Mapping[Any, Any]) -> dict[str, Any]:
    groups: dict[str, Any] = {}

    for name, raw_config in raw.items():
        if not isinstance(name, str):
            raise InvalidConfigError(f"Group name must be a string, got {type(name)}")

        name_norm = name.strip()

        if len(name_norm) < 1:
            raise InvalidConfigError("A group name can't be empty")

        if name_norm in groups:
            raise InvalidConfigError(
                f"Duplicate group name after normalization: {name_norm}"
            )

        groups[name_norm] = raw_config

    return groups
