"""Configuration loading with pydantic-settings.

Supports loading configuration from multiple sources with precedence:
1. Direct kwargs, i.e. CLI flags that were actually given (highest priority)
2. Environment variables (XCSIFT__KEY, XCSIFT__LOGGING__LEVEL)
3. TOML config file
4. Built-in defaults (lowest priority)

The TOML file is resolved as: an explicit ``--config`` path (which must
exist), else ``./.xcsift.toml``, else ``~/.config/xcsift/config.toml``.
"""

import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from xcsift.config.models import XcsiftConfig
from xcsift.core.errors import ConfigError
from xcsift.core.logging import get_logger

log = get_logger("config.loader")

CONFIG_FILE_NAME = ".xcsift.toml"
USER_CONFIG_PATH = Path(".config") / "xcsift" / "config.toml"

# Sections written for output formats xcsift does not produce; accepted and ignored
IGNORED_SECTIONS = frozenset({"toon"})

CONFIG_TEMPLATE = """\
# xcsift configuration file
#
# CLI flags override values in this file.
# All options are optional - omit to use defaults.

# Output format: "json" (default) or "github-actions"
# format = "json"

# Warning options
# warnings = false          # Print detailed warnings list (-w)
# werror = false            # Treat warnings as errors (-W)

# Output control
# quiet = false             # Suppress output on success (-q)

# Test analysis
# slow_threshold = 1.0      # Threshold in seconds for slow test detection

# Coverage options
# coverage = false          # Enable coverage output (-c)
# coverage_details = false  # Include per-file coverage breakdown
# coverage_path = ""        # Custom path to coverage data (empty = auto-detect)

# Build info
# build_info = false        # Include per-target build phases and timing
# executable = false        # Include executable targets (-e)

# [logging]
# level = "WARNING"
"""


def find_config_file(cwd: Path | None = None, home: Path | None = None) -> Path | None:
    """Locate the config file: current directory first, then the user config dir."""
    cwd = cwd or Path.cwd()
    home = home or Path.home()
    for candidate in (cwd / CONFIG_FILE_NAME, home / USER_CONFIG_PATH):
        if candidate.is_file():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError.parse_error(str(path), str(e)) from e
    except OSError as e:
        raise ConfigError.read_error(str(path), str(e)) from e


class _TomlSource(PydanticBaseSettingsSource):
    """Settings source that reads from pre-loaded TOML config."""

    def __init__(self, settings_cls: type[BaseSettings], toml_config: dict[str, Any]) -> None:
        super().__init__(settings_cls)
        self._toml_config = toml_config

    def get_field_value(
        self,
        field: Any,  # noqa: ARG002
        field_name: str,
    ) -> tuple[Any, str, bool]:
        val = self._toml_config.get(field_name)
        return val, field_name, val is not None

    def __call__(self) -> dict[str, Any]:
        return self._toml_config


def _make_settings_class(toml_config: dict[str, Any]) -> type[BaseSettings]:
    """Create a Settings class bound to one loaded TOML document."""

    class XcsiftSettings(BaseSettings, XcsiftConfig):
        """Root config. Env vars: XCSIFT__FORMAT, XCSIFT__LOGGING__LEVEL, etc."""

        model_config = SettingsConfigDict(
            env_prefix="XCSIFT__",
            env_nested_delimiter="__",
            case_sensitive=False,
            extra="forbid",
        )

        @classmethod
        def settings_customise_sources(
            cls,
            settings_cls: type[BaseSettings],
            init_settings: PydanticBaseSettingsSource,
            env_settings: PydanticBaseSettingsSource,
            dotenv_settings: PydanticBaseSettingsSource,  # noqa: ARG003
            file_secret_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        ) -> tuple[PydanticBaseSettingsSource, ...]:
            # Precedence (first wins): init kwargs > env vars > toml file
            return (init_settings, env_settings, _TomlSource(settings_cls, toml_config))

    return XcsiftSettings


def load_config(config_path: Path | None = None, **overrides: Any) -> XcsiftConfig:
    """Load config: defaults < TOML file < env vars < overrides.

    Args:
        config_path: Explicit config file. Must exist when given.
        **overrides: Values from CLI flags (highest precedence). Pass only
            flags the user actually set; None values are ignored.

    Returns:
        Fully resolved configuration object.

    Raises:
        ConfigError: Missing explicit file, invalid TOML, or invalid values.
    """
    if config_path is not None:
        if not config_path.is_file():
            raise ConfigError.file_not_found(str(config_path))
        path: Path | None = config_path
    else:
        path = find_config_file()

    toml_config: dict[str, Any] = {}
    if path is not None:
        log.debug("config_file_loaded", path=str(path))
        toml_config = _load_toml(path)
        for section in IGNORED_SECTIONS.intersection(toml_config):
            log.debug("config_section_ignored", section=section, path=str(path))
            del toml_config[section]

    kwargs = {key: value for key, value in overrides.items() if value is not None}

    settings_cls = _make_settings_class(toml_config)
    try:
        return settings_cls(**kwargs)  # type: ignore[return-value]
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(loc) for loc in err["loc"])
        raise ConfigError.invalid_value(field, err.get("input"), err["msg"]) from e


def write_template(directory: Path | None = None) -> Path:
    """Write a commented ``.xcsift.toml`` template.

    Raises:
        ConfigError: If a config file already exists there.
    """
    target = (directory or Path.cwd()) / CONFIG_FILE_NAME
    if target.exists():
        raise ConfigError.invalid_value(
            "path", str(target), "configuration file already exists"
        )
    target.write_text(CONFIG_TEMPLATE)
    return target
