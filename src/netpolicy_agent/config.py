"""YAML configuration loader for the netpolicy-sync agent."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from netpolicy_sync.errors import ConfigurationError

ENV_REF_RE = re.compile(r"^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass
class RuntimeConfig:
    name: str = "netpolicy-sync"
    version: str = "0.1.0"
    interval: float = 900.0
    once: bool = True
    repo_dir: Path = Path("/var/lib/netpolicy-sync/repos")
    request_timeout: float = 10.0
    verify_tls: bool = True
    log_dir: Optional[Path] = None
    git_author_name: str = "netpolicy-sync"
    git_author_email: str = "netpolicy-sync@localhost"

    @property
    def user_agent(self) -> str:
        return f"{self.name}/{self.version}"


@dataclass
class SourceConfig:
    type: str
    path: Optional[Path] = None
    options: dict = field(default_factory=dict)


@dataclass
class AgentConfig:
    runtime: RuntimeConfig
    source: SourceConfig


def expand_env(value: Any) -> Any:
    """Replace a ``${NAME}`` string with the environment variable ``NAME``."""

    if not isinstance(value, str):
        return value
    match = ENV_REF_RE.match(value)
    if not match:
        return value
    name = match.group(1)
    if name not in os.environ:
        raise ConfigurationError(f"environment variable '{name}' is not set")
    return os.environ[name]


def _flag(section: dict, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"'agent.{key}' must be true or false, got {value!r}")
    return value


def _parse_runtime(section: dict) -> RuntimeConfig:
    if not isinstance(section, dict):
        raise ConfigurationError("'agent' section must be a mapping")
    defaults = RuntimeConfig()
    log_dir = section.get("log_dir")
    try:
        return RuntimeConfig(
            name=str(section.get("name", defaults.name)),
            version=str(section.get("version", defaults.version)),
            interval=float(section.get("interval", defaults.interval)),
            once=_flag(section, "once", defaults.once),
            repo_dir=Path(section.get("repo_dir", defaults.repo_dir)),
            request_timeout=float(section.get("request_timeout", defaults.request_timeout)),
            verify_tls=_flag(section, "verify_tls", defaults.verify_tls),
            log_dir=Path(log_dir) if log_dir else None,
            git_author_name=str(section.get("git_author_name", defaults.git_author_name)),
            git_author_email=str(section.get("git_author_email", defaults.git_author_email)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"invalid 'agent' section: {exc}") from exc


def _parse_source(section: dict) -> SourceConfig:
    if not isinstance(section, dict):
        raise ConfigurationError("'source' section must be a mapping")
    source_type = str(section.get("type", "file"))
    options = section.get("options", {})
    if not isinstance(options, dict):
        raise ConfigurationError("source 'options' must be a mapping if provided")
    options = {key: expand_env(value) for key, value in options.items()}

    path = section.get("path")
    if source_type == "file" and not path:
        raise ConfigurationError("file policy source requires 'path'")
    if source_type == "nam" and not options.get("url"):
        raise ConfigurationError("nam policy source requires 'options.url'")
    if source_type not in ("file", "nam"):
        raise ConfigurationError(f"unsupported policy source type '{source_type}'")

    return SourceConfig(
        type=source_type,
        path=Path(path) if path else None,
        options=options,
    )


def load_config(path: Path) -> AgentConfig:
    try:
        data = yaml.safe_load(Path(path).read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"cannot read configuration {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError("Agent configuration must be a mapping")

    source_section = data.get("source")
    if source_section is None:
        raise ConfigurationError("Configuration missing 'source' section")

    return AgentConfig(
        runtime=_parse_runtime(data.get("agent", {})),
        source=_parse_source(source_section),
    )
