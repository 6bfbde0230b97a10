"""Shared configuration loader for sealed cookies.

Settings come from an optional YAML file, ``SEALED_COOKIE_*`` environment
variables, and explicit overrides, in increasing order of precedence.  The
secret key is never read from here: callers own it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .compression import DEFAULT_LEVEL, DEFAULT_MAX_OUTPUT_SIZE, MAX_LEVEL, MIN_LEVEL, ZstdCodec
from .cookies import CookieOptions


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".sealed_cookie.yaml"
ENV_PREFIX = "SEALED_COOKIE_"


@dataclass
class SealingConfig:
    """Compression parameters used when sealing and unsealing."""

    compression_level: int = DEFAULT_LEVEL
    max_decompressed_size: int = DEFAULT_MAX_OUTPUT_SIZE

    def codec(self) -> ZstdCodec:
        return ZstdCodec(level=self.compression_level, max_output_size=self.max_decompressed_size)


@dataclass
class CookieDefaults:
    """Attributes applied to every cookie built from configuration."""

    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = False
    samesite: str | None = "lax"
    max_age: int | None = None

    def cookie(self, name: str) -> CookieOptions:
        return CookieOptions(
            name=name,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,  # type: ignore[arg-type]
            max_age=self.max_age,
        )


@dataclass
class Settings:
    sealing: SealingConfig = field(default_factory=SealingConfig)
    cookie: CookieDefaults = field(default_factory=CookieDefaults)


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_int(raw: Any, *, source: str) -> int | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, bool):
        raise ConfigurationError(f"Invalid integer in {source}: {raw}")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid integer in {source}: {raw}") from exc


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def load_settings(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load sealing and cookie settings from overrides, environment, and YAML."""

    env_map = os.environ if env is None else env
    path = Path(config_path).expanduser() if config_path is not None else DEFAULT_CONFIG_PATH
    file_config = _load_config_file(path, required=config_path is not None)
    sealing_section = _section(file_config, "sealing", path)
    cookie_section = _section(file_config, "cookie", path)
    override_map = dict(overrides or {})

    def env_value(name: str) -> str | None:
        return env_map.get(ENV_PREFIX + name) or None

    compression_level = _first_value(
        _coerce_int(override_map.get("compression_level"), source="overrides"),
        _coerce_int(env_value("COMPRESSION_LEVEL"), source="environment"),
        _coerce_int(sealing_section.get("compression_level"), source=f"{path} sealing.compression_level"),
        DEFAULT_LEVEL,
    )
    if not MIN_LEVEL <= compression_level <= MAX_LEVEL:
        raise ConfigurationError(
            f"compression_level must be between {MIN_LEVEL} and {MAX_LEVEL}, got {compression_level}"
        )
    max_decompressed_size = _first_value(
        _coerce_int(override_map.get("max_decompressed_size"), source="overrides"),
        _coerce_int(env_value("MAX_DECOMPRESSED_SIZE"), source="environment"),
        _coerce_int(
            sealing_section.get("max_decompressed_size"),
            source=f"{path} sealing.max_decompressed_size",
        ),
        DEFAULT_MAX_OUTPUT_SIZE,
    )
    if max_decompressed_size <= 0:
        raise ConfigurationError("max_decompressed_size must be positive")

    samesite = _first_value(
        override_map.get("samesite"), env_value("SAMESITE"), cookie_section.get("samesite"), "lax"
    )
    samesite = str(samesite).lower()
    if samesite not in {"lax", "strict", "none"}:
        raise ConfigurationError(f"Invalid samesite setting: {samesite}")

    cookie = CookieDefaults(
        path=_first_value(override_map.get("path"), env_value("PATH"), cookie_section.get("path"), "/"),
        domain=_first_value(override_map.get("domain"), env_value("DOMAIN"), cookie_section.get("domain")),
        secure=bool(
            _first_value(
                _coerce_bool(override_map.get("secure")),
                _coerce_bool(env_value("SECURE")),
                _coerce_bool(cookie_section.get("secure")),
                False,
            )
        ),
        httponly=bool(
            _first_value(
                _coerce_bool(override_map.get("httponly")),
                _coerce_bool(env_value("HTTPONLY")),
                _coerce_bool(cookie_section.get("httponly")),
                False,
            )
        ),
        samesite=samesite,
        max_age=_first_value(
            _coerce_int(override_map.get("max_age"), source="overrides"),
            _coerce_int(env_value("MAX_AGE"), source="environment"),
            _coerce_int(cookie_section.get("max_age"), source=f"{path} cookie.max_age"),
        ),
    )

    return Settings(
        sealing=SealingConfig(
            compression_level=compression_level,
            max_decompressed_size=max_decompressed_size,
        ),
        cookie=cookie,
    )
