"""
featlint - Configuration.

Runtime configuration and CLI-derived settings.

Values are resolved in this order (later wins):
1. Defaults in LintConfig
2. YAML config file (--config, else .featlint.yaml in the scan root)
3. Environment variables
4. CLI flags (applied by the runner)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_MAGIC_COMMENT_REGEXP = (
    r"^\s*#\s*\[feature-revision\]\s*id:\s*(?P<id>\S+),\s*revision:\s*(?P<revision>\S+)\s*$"
)

CONFIG_FILENAME = ".featlint.yaml"

ENV_MAGIC_COMMENT_REGEXP = "FEATLINT_MAGIC_COMMENT_REGEXP"
ENV_WORKERS = "FEATLINT_WORKERS"
ENV_CHECK_ENABLED = "FEATLINT_CHECK_REVISIONS"

_FALSE_VALUES = frozenset({"0", "false", "no", "off"})

# YAML key -> LintConfig field
_YAML_KEYS = {
    "MagicCommentRegExp": "magic_comment_regexp",
    "magic_comment_regexp": "magic_comment_regexp",
    "workers": "workers",
    "exclude_dirs": "exclude_dirs",
    "python_exts": "python_exts",
    "hash_comment_exts": "hash_comment_exts",
}

_TUPLE_FIELDS = frozenset({"exclude_dirs", "python_exts", "hash_comment_exts"})


def _default_workers() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass
class LintConfig:
    """Runtime configuration for featlint."""

    root: Path

    # File extensions
    python_exts: tuple[str, ...] = (".py", ".pyi")
    hash_comment_exts: tuple[str, ...] = (".rb", ".rake", ".gemspec", ".ru")

    # Directory exclusions
    exclude_dirs: tuple[str, ...] = (
        ".git",
        ".venv",
        "venv",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        "node_modules",
        "vendor",
        "dist",
        "build",
    )

    # Magic comment pattern; must declare the `id` and `revision` groups
    magic_comment_regexp: str = DEFAULT_MAGIC_COMMENT_REGEXP

    # Thread pool size for scanning files
    workers: int = field(default_factory=_default_workers)

    # Run-level toggle; when False the check is skipped entirely
    enabled: bool = True

    # Explicit file list (disables directory scan)
    explicit_files: Optional[tuple[Path, ...]] = None


def should_exclude_path(cfg: LintConfig, path: Path) -> bool:
    """Check if path should be excluded from scanning (judged relative to root)."""
    try:
        parts = path.relative_to(cfg.root).parts
    except ValueError:
        parts = path.parts
    return any(d in parts for d in cfg.exclude_dirs)


def check_enabled(environ: Optional[Mapping[str, str]] = None) -> bool:
    """Read the run-level enable toggle. Unset means enabled."""
    env = os.environ if environ is None else environ
    value = env.get(ENV_CHECK_ENABLED)
    if value is None:
        return True
    return value.strip().lower() not in _FALSE_VALUES


def _parse_workers(value: Any) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError("workers must be an integer", value) from e
    if workers < 1:
        raise ConfigurationError("workers must be at least 1", value)
    return workers


def read_config_file(path: Path) -> Dict[str, Any]:
    """Load a YAML config file and map its keys onto LintConfig field names."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"cannot load config file {path}: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping", type(data).__name__)

    overrides: Dict[str, Any] = {}
    for key, value in data.items():
        name = _YAML_KEYS.get(key)
        if name is None:
            logger.warning("Ignoring unknown config key %r in %s", key, path)
            continue
        if name == "workers":
            value = _parse_workers(value)
        elif name in _TUPLE_FIELDS:
            if isinstance(value, str) or not isinstance(value, (list, tuple)):
                raise ConfigurationError(f"{key} must be a list", value)
            value = tuple(str(v) for v in value)
        elif not isinstance(value, str):
            raise ConfigurationError(f"{key} must be a string", value)
        overrides[name] = value
    return overrides


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if ENV_MAGIC_COMMENT_REGEXP in environ:
        overrides["magic_comment_regexp"] = environ[ENV_MAGIC_COMMENT_REGEXP]
    if ENV_WORKERS in environ:
        overrides["workers"] = _parse_workers(environ[ENV_WORKERS])
    return overrides


def load_config(
    root: Path,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    **cli_overrides: Any,
) -> LintConfig:
    """
    Build a LintConfig for root.

    An explicit config_path must exist; otherwise .featlint.yaml in root is
    used when present. Raises ConfigurationError on unusable values.
    """
    env = os.environ if environ is None else environ
    cfg = LintConfig(root=root)

    if config_path is not None:
        if not config_path.is_file():
            raise ConfigurationError("config file not found", str(config_path))
        cfg = replace(cfg, **read_config_file(config_path))
    elif (root / CONFIG_FILENAME).is_file():
        cfg = replace(cfg, **read_config_file(root / CONFIG_FILENAME))

    cfg = replace(cfg, **_env_overrides(env))
    cfg = replace(cfg, enabled=check_enabled(env))

    cli = {k: v for k, v in cli_overrides.items() if v is not None}
    if "workers" in cli:
        cli["workers"] = _parse_workers(cli["workers"])
    return replace(cfg, **cli)
