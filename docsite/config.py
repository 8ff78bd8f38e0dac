"""Configuration loading for docsite (docsite.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = "docsite.yml"

ENV_TOKEN_KEYS = ("DOCSITE_GITHUB_TOKEN", "GITHUB_TOKEN")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class SiteInfo:
    """Site-wide metadata shown in page templates."""

    title: str = "Documentation"
    base_url: Optional[str] = None
    description: Optional[str] = None
    footer: Optional[str] = None


@dataclass
class SourceConfig:
    """Where documentation sources live."""

    root: Path
    hierarchy_file: str = "doc-config.yaml"
    exclude: List[Path] = field(default_factory=list)


@dataclass
class OutputConfig:
    """Where and how the site is written."""

    directory: Path
    templates_dir: Optional[Path] = None
    breadcrumb_separator: str = " / "
    breadcrumb_max_length: int = 60


@dataclass
class CacheConfig:
    """Mirror and manifest cache locations."""

    directory: Path
    ttl_hours: float = 12.0

    @property
    def mirror_dir(self) -> Path:
        return self.directory / "repos"

    @property
    def manifest_file(self) -> Path:
        return self.directory / "repos-cache.json"

    @property
    def link_report(self) -> Path:
        return self.directory / "link-report.json"


@dataclass
class GitHubConfig:
    """Access settings for the repository fetcher."""

    token: Optional[str] = None
    timeout: float = 30.0
    api_url: str = "https://api.github.com"
    raw_url: str = "https://raw.githubusercontent.com"


@dataclass
class BuildConfig:
    """Build execution settings."""

    max_workers: int = 4
    offline: bool = False


@dataclass
class SiteConfig:
    """Represents the settings defined in docsite.yml."""

    config_path: Path
    site: SiteInfo
    source: SourceConfig
    output: OutputConfig
    cache: CacheConfig
    github: GitHubConfig = field(default_factory=GitHubConfig)
    build: BuildConfig = field(default_factory=BuildConfig)

    @property
    def root(self) -> Path:
        return self.source.root


def load_config(config_path: Path) -> SiteConfig:
    """Load configuration from disk; a missing file yields defaults."""
    config_file = _resolve_config_path(config_path)
    base = config_file.parent.resolve()

    data: Dict[str, Any] = {}
    if config_file.exists():
        loaded = _read_config(config_file)
        if not isinstance(loaded, dict):
            raise ConfigError(f"{config_file.name} must contain a mapping at the root")
        data = loaded

    site_data = _as_dict(data.get("site"))
    site = SiteInfo(
        title=_as_str(site_data.get("title")) or SiteInfo.title,
        base_url=_as_str(site_data.get("base_url")),
        description=_as_str(site_data.get("description")),
        footer=_as_str(site_data.get("footer")),
    )

    source_data = _as_dict(data.get("source"))
    root = _as_path(base, source_data.get("root")) or base
    source = SourceConfig(
        root=root,
        hierarchy_file=_as_str(source_data.get("hierarchy_file")) or "doc-config.yaml",
        exclude=[base / item for item in _as_str_list(source_data.get("exclude"))],
    )

    output_data = _as_dict(data.get("output"))
    output = OutputConfig(
        directory=_as_path(base, output_data.get("directory")) or base / "dist",
        templates_dir=_as_path(base, output_data.get("templates_dir")),
        breadcrumb_separator=_as_str(output_data.get("breadcrumb_separator")) or " / ",
        breadcrumb_max_length=_positive(_as_int(output_data.get("breadcrumb_max_length")), 60),
    )

    cache_data = _as_dict(data.get("cache"))
    ttl_hours = _as_float(cache_data.get("ttl_hours"))
    cache = CacheConfig(
        directory=_as_path(base, cache_data.get("directory")) or base / ".docsite",
        ttl_hours=ttl_hours if ttl_hours is not None and ttl_hours >= 0 else 12.0,
    )

    github_data = _as_dict(data.get("github"))
    timeout = _as_float(github_data.get("timeout"))
    github = GitHubConfig(
        token=_first_env_value(ENV_TOKEN_KEYS) or _as_str(github_data.get("token")),
        timeout=timeout if timeout and timeout > 0 else 30.0,
        api_url=_as_str(github_data.get("api_url")) or GitHubConfig.api_url,
        raw_url=_as_str(github_data.get("raw_url")) or GitHubConfig.raw_url,
    )

    build_data = _as_dict(data.get("build"))
    build = BuildConfig(
        max_workers=_positive(_as_int(build_data.get("max_workers")), 4),
        offline=_as_bool(build_data.get("offline")) or False,
    )

    return SiteConfig(
        config_path=config_file,
        site=site,
        source=source,
        output=output,
        cache=cache,
        github=github,
        build=build,
    )


def resolve_config(
    project: Path | str,
    *,
    config_file: Path | str | None = None,
    output_dir: Path | str | None = None,
    max_workers: int | None = None,
    offline: bool | None = None,
) -> SiteConfig:
    """Load the configuration for ``project`` and apply command-line overrides."""
    project_path = Path(project).expanduser()
    if config_file is not None:
        config = load_config(Path(config_file))
    else:
        config = load_config(project_path)
        if not config.config_path.exists():
            config.source.root = project_path.resolve()
    if output_dir is not None:
        config.output.directory = Path(output_dir).expanduser().resolve()
    if max_workers is not None and max_workers > 0:
        config.build.max_workers = max_workers
    if offline is not None:
        config.build.offline = offline
    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return {} if loaded is None else loaded


def _first_env_value(keys: Sequence[str]) -> Optional[str]:
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def _positive(value: Optional[int], default: int) -> int:
    return value if value is not None and value > 0 else default


def _as_path(base: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if not text:
        return None
    path = Path(text).expanduser()
    return path if path.is_absolute() else (base / path).resolve()


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "BuildConfig",
    "CONFIG_FILENAME",
    "CacheConfig",
    "ConfigError",
    "GitHubConfig",
    "OutputConfig",
    "SiteConfig",
    "SiteInfo",
    "SourceConfig",
    "load_config",
    "resolve_config",
]
