"""
config.py

Responsibility: Build the single `PublishConfig` every component is constructed from.

Sources, highest precedence first:
- explicit overrides (CLI flags)
- environment variables (`GITHUB_TOKEN`, `GITHUB_REPO`, `GIT_AUTHOR_NAME`,
  `GIT_AUTHOR_EMAIL`, `RELEASE_TAG`, `RELEASE_NAME`)
- an optional YAML file (`publish.yaml` in the project directory)
- built-in defaults

Nothing outside this module looks at `os.environ`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Any, Mapping

import yaml

from publisher.errors import ConfigError, ConfigMissing

DEFAULT_APP_NAME = "NativeMacBrowser"
DEFAULT_REPO_SLUG = "allthingssecurity/browser"
DEFAULT_AUTHOR_NAME = "Release Bot"
DEFAULT_AUTHOR_EMAIL = "releases@example.invalid"
CONFIG_FILENAME = "publish.yaml"

_SLUG_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

_KNOWN_KEYS = {
    "app_name",
    "repo",
    "author",
    "dist_dir",
    "metadata",
    "build_command",
    "mirror_dir",
    "releases_dir",
    "exclude",
    "api_base",
    "git_host",
    "timeouts",
    "templates",
}


@dataclass(frozen=True)
class Timeouts:
    api: float = 30.0
    upload: float = 300.0
    build: float | None = None


@dataclass(frozen=True)
class PublishConfig:
    """Everything one publish run needs, resolved up front."""

    token: str
    project_dir: Path
    app_name: str = DEFAULT_APP_NAME
    repo_slug: str = DEFAULT_REPO_SLUG
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL
    tag_override: str | None = None
    name_override: str | None = None
    dist_dir: Path | None = None
    metadata_path: Path | None = None
    build_command: tuple[str, ...] = ("bash", "build.sh")
    mirror_dir: str | None = None
    releases_dir: str = "releases"
    exclude: tuple[str, ...] = (".git",)
    api_base: str = "https://api.github.com"
    git_host: str = "https://github.com"
    timeouts: Timeouts = field(default_factory=Timeouts)
    templates: dict[str, str] = field(default_factory=dict)

    @property
    def dist(self) -> Path:
        return self.dist_dir or self.project_dir / "dist"

    @property
    def metadata(self) -> Path:
        return self.metadata_path or self.project_dir / "Info.plist"

    @property
    def mirror_subdir(self) -> str:
        return self.mirror_dir or self.app_name

    @property
    def repo_url(self) -> str:
        return f"{self.git_host.rstrip('/')}/{self.repo_slug}"

    def remote_url(self) -> str:
        """
        Authenticated HTTPS remote for clone and push.

        GitHub accepts `x-access-token` in the username position.
        """
        clone_url = f"{self.repo_url}.git"
        return clone_url.replace("https://", f"https://x-access-token:{self.token}@", 1)


def _load_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level.")
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown keys in {path}: {', '.join(unknown)}")
    return data


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{key}` must be a mapping when provided.")
    return raw


def _command(raw: Any) -> tuple[str, ...]:
    if isinstance(raw, str):
        parts = raw.split()
    elif isinstance(raw, list) and all(isinstance(p, str) for p in raw):
        parts = list(raw)
    else:
        raise ConfigError("`build_command` must be a string or a list of strings.")
    if not parts:
        raise ConfigError("`build_command` must not be empty.")
    return tuple(parts)


def _file_settings(data: dict[str, Any], project_dir: Path) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in ("app_name", "mirror_dir", "releases_dir", "api_base", "git_host"):
        if data.get(key) is not None:
            out[key] = str(data[key]).strip()
    if data.get("repo") is not None:
        out["repo_slug"] = str(data["repo"]).strip()

    author = _mapping(data, "author")
    if author.get("name"):
        out["author_name"] = str(author["name"])
    if author.get("email"):
        out["author_email"] = str(author["email"])

    for key, target in (("dist_dir", "dist_dir"), ("metadata", "metadata_path")):
        if data.get(key):
            path = Path(str(data[key])).expanduser()
            out[target] = path if path.is_absolute() else project_dir / path

    if data.get("build_command") is not None:
        out["build_command"] = _command(data["build_command"])

    if data.get("exclude") is not None:
        exclude = data["exclude"]
        if not isinstance(exclude, list):
            raise ConfigError("`exclude` must be a list when provided.")
        out["exclude"] = tuple(str(x) for x in exclude)

    timeouts = _mapping(data, "timeouts")
    if timeouts:
        try:
            out["timeouts"] = Timeouts(
                api=float(timeouts.get("api", Timeouts.api)),
                upload=float(timeouts.get("upload", Timeouts.upload)),
                build=float(timeouts["build"]) if timeouts.get("build") is not None else None,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"`timeouts` values must be numbers: {e}") from e

    templates = _mapping(data, "templates")
    allowed = {"release_body", "commit_message", "tag_message"}
    bad = sorted(set(templates) - allowed)
    if bad:
        raise ConfigError(f"Unknown template names: {', '.join(bad)}")
    if templates:
        out["templates"] = {str(k): str(v) for k, v in templates.items()}
    return out


def _env_settings(env: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for var, key in (
        ("GITHUB_REPO", "repo_slug"),
        ("GIT_AUTHOR_NAME", "author_name"),
        ("GIT_AUTHOR_EMAIL", "author_email"),
        ("RELEASE_TAG", "tag_override"),
        ("RELEASE_NAME", "name_override"),
    ):
        value = (env.get(var) or "").strip()
        if value:
            out[key] = value
    return out


def _check_subdir(key: str, value: str) -> None:
    """A repository subdirectory must be a plain relative path without `.`/`..` parts."""
    path = PurePosixPath(value.replace("\\", "/"))
    if not value.strip() or path.is_absolute() or PureWindowsPath(value).is_absolute():
        raise ConfigError(f"`{key}` must be a non-empty relative path, got: {value!r}")
    if any(part in (".", "..", ".git") for part in value.replace("\\", "/").split("/")):
        raise ConfigError(f"`{key}` must not contain '.', '..' or '.git' parts, got: {value!r}")


def load_config(
    project_dir: str | Path,
    *,
    env: Mapping[str, str],
    config_path: str | Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> PublishConfig:
    """
    Resolve a `PublishConfig`.

    The auth token is checked first: a missing or blank `GITHUB_TOKEN` raises
    `ConfigMissing` before any file is read.
    """
    token = (env.get("GITHUB_TOKEN") or "").strip()
    if not token:
        raise ConfigMissing("GITHUB_TOKEN not set. export GITHUB_TOKEN=...")

    root = Path(project_dir).expanduser().resolve()
    if config_path is not None:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file does not exist: {path}")
    else:
        path = root / CONFIG_FILENAME

    settings: dict[str, Any] = {}
    if path.is_file():
        settings.update(_file_settings(_load_yaml(path), root))
    settings.update(_env_settings(env))
    settings.update({k: v for k, v in (overrides or {}).items() if v is not None})

    config = replace(PublishConfig(token=token, project_dir=root), **settings)
    if not _SLUG_RE.match(config.repo_slug):
        raise ConfigError(f"Repository must look like 'owner/name', got: {config.repo_slug!r}")
    if not config.app_name:
        raise ConfigError("`app_name` must not be empty.")
    _check_subdir("mirror_dir", config.mirror_subdir)
    _check_subdir("releases_dir", config.releases_dir)
    return config
